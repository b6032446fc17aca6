#!/usr/bin/env python3
"""
Sources - folder trees the export engine can walk

Every source exposes a ``root`` folder. GmailSource lives in
``mailexport.sources.gmail_source`` and needs the ``gmail`` extra, so it is
not imported here.
"""

from .imap_source import IMAP_SERVERS, ImapFolder, ImapSource
from .maildir_source import MaildirFolder, MaildirSource
from .mbox_source import MboxFolder, MboxSource

__all__ = [
    'ImapSource',
    'ImapFolder',
    'IMAP_SERVERS',
    'MaildirSource',
    'MaildirFolder',
    'MboxSource',
    'MboxFolder',
]
