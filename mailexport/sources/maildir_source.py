"""
Maildir Source - export folders of a Maildir++ tree

Reads the layout used by Dovecot and Courier: the root directory is the
inbox, every subfolder is a ``.Name`` directory next to it, and nesting is
spelled with dots (``.Projects.2024``). Folders nested as real directories
(what the standard ``mailbox`` module creates) are found as well.
"""

import mailbox
import os
from typing import Iterator, List

from ..enums import OlFlagStatus
from ..folders import LocalFolder
from ..items import MailItem, item_from_bytes

SUBFOLDER_SEPARATOR = "."


class MaildirFolder(LocalFolder):
    """One folder of a Maildir tree"""

    def __init__(self, name: str, maildir: mailbox.Maildir, source: 'MaildirSource',
                 flat_name: str = "", parent: LocalFolder = None):
        super().__init__(name, parent)
        self.maildir = maildir
        self.source = source
        self.flat_name = flat_name
        self._folders = None

    def _iter_items(self) -> Iterator[MailItem]:
        # Maildir file names start with the delivery time, so sorting keys
        # lists messages in the order they arrived
        for key in sorted(self.maildir.keys()):
            try:
                raw = self.maildir.get_bytes(key)
                flags = self.maildir.get_message(key).get_flags()
            except (KeyError, OSError) as e:
                if self.source.verbose:
                    print(f"MaildirSource: Skipping message {key} in {self.full_folder_path}: {e}")
                continue
            yield item_from_bytes(key, raw, extra_fields={
                "EntryID": key,
                "UnRead": 'S' not in flags,
                "FlagStatus": OlFlagStatus.olFlagMarked if "F" in flags else OlFlagStatus.olNoFlag,
            })

    @property
    def folders(self) -> List['MaildirFolder']:
        if self._folders is None:
            self._folders = self.source._children_of(self)
        return list(self._folders)


class MaildirSource:
    """
    Entry point for a Maildir tree.

    Usage:
        source = MaildirSource("~/Maildir", name="Mailbox")
        export_folders(source.root, "export")
    """

    def __init__(self, maildir_path: str, name: str = None, verbose: bool = True):
        self.maildir_path = os.path.abspath(os.path.expanduser(maildir_path))
        if not os.path.isdir(self.maildir_path):
            raise FileNotFoundError(f"Maildir not found: {maildir_path}")
        self.verbose = verbose
        self._maildir = mailbox.Maildir(self.maildir_path, factory=None, create=False)
        self.root = MaildirFolder(name or os.path.basename(self.maildir_path.rstrip(os.sep)),
                                  self._maildir, self)

    def folder(self, path: str) -> MaildirFolder:
        """Return the folder at ``path`` (``Projects/2024`` or ``Projects\\2024``) below the root"""
        folder = self.root
        for part in path.replace('\\', '/').split('/'):
            if not part:
                continue
            matches = [f for f in folder.folders if f.name == part]
            if not matches:
                raise KeyError(f"No folder '{part}' below {folder.full_folder_path}")
            folder = matches[0]
        return folder

    def _children_of(self, folder: MaildirFolder) -> List[MaildirFolder]:
        children = []
        seen = set()

        # Maildir++: all folders are siblings of the root, nesting is in the name
        prefix = folder.flat_name + SUBFOLDER_SEPARATOR if folder.flat_name else ""
        for flat_name in sorted(self._maildir.list_folders()):
            if not flat_name.startswith(prefix):
                continue
            rest = flat_name[len(prefix):]
            if not rest or SUBFOLDER_SEPARATOR in rest:
                continue
            seen.add(rest)
            children.append(MaildirFolder(rest, self._maildir.get_folder(flat_name), self,
                                          flat_name=flat_name, parent=folder))

        # Directories nested inside a subfolder
        if folder is not self.root:
            for name in sorted(folder.maildir.list_folders()):
                if name in seen:
                    continue
                children.append(MaildirFolder(name, folder.maildir.get_folder(name), self,
                                              flat_name=f"{folder.flat_name}/{name}", parent=folder))
        return children

    def describe(self) -> str:
        return f"Maildir at {self.maildir_path}"
