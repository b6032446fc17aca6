#!/usr/bin/env python3
"""
Mbox Source - export mbox files and Thunderbird-style mbox trees

An mbox file holds many messages concatenated together, each introduced by
a line starting with "From " (note the space). A directory is read as a tree
of such files: every file is a folder, and the messages of ``Name`` have
their subfolders in the ``Name.sbd`` directory next to it, the way
Thunderbird and other mail clients lay out local folders.
"""

import os
import re
from typing import Dict, Iterator, List, Optional

from ..enums import OlFlagStatus
from ..folders import LocalFolder
from ..items import MailItem, item_from_bytes

SUBFOLDER_SUFFIX = ".sbd"
# Index and summary files that sit next to mbox files
IGNORED_SUFFIXES = (".msf", ".dat", ".json", ".sqlite", ".html", ".idx")

QUOTED_FROM_RE = re.compile(rb"^>(>*From )")
MOZILLA_READ = 0x0001
MOZILLA_MARKED = 0x0004


def parse_mbox_separator(line: bytes) -> Optional[Dict[str, str]]:
    """
    Parse an mbox separator line.

    Args:
        line: Line starting with "From "

    Returns:
        Dictionary with sender and timestamp, or None if not a separator
    """
    # Mbox separator format: "From sender@domain.com timestamp"
    # Example: "From sa386@soi.city.ac.uk Sun Jun  1 10:42:18 2008 +0100"
    if not line.startswith(b"From "):
        return None

    parts = line[5:].decode('latin-1').split()
    if len(parts) < 2:
        return None

    return {
        'sender': parts[0],
        'timestamp': ' '.join(parts[1:]),
    }


def split_mbox(data: bytes) -> Iterator[bytes]:
    """Yield the raw bytes of every message in an mbox file"""
    current = None
    previous_blank = True
    for line in data.splitlines(keepends=True):
        if previous_blank and parse_mbox_separator(line):
            if current is not None:
                yield _finish(current)
            current = []
        elif current is not None:
            # Undo the ">From " quoting of body lines
            current.append(QUOTED_FROM_RE.sub(rb"\1", line))
        previous_blank = line.strip() == b""
    if current is not None:
        yield _finish(current)


def _finish(lines: List[bytes]) -> bytes:
    message = b"".join(lines)
    # The blank line before the next separator belongs to the mbox framing
    if message.endswith(b"\r\n\r\n"):
        return message[:-2]
    if message.endswith(b"\n\n"):
        return message[:-1]
    return message


def _read_status(fields: dict, raw: bytes):
    """Derive UnRead from the Status / X-Mozilla-Status headers"""
    header_end = raw.find(b"\n\n")
    headers = raw[:header_end if header_end >= 0 else len(raw)]
    unread = True
    flagged = False
    status = re.search(rb"^Status:\s*(\S*)", headers, re.MULTILINE | re.IGNORECASE)
    if status and b"R" in status.group(1):
        unread = False
    mozilla = re.search(rb"^X-Mozilla-Status:\s*([0-9A-Fa-f]+)", headers, re.MULTILINE | re.IGNORECASE)
    if mozilla:
        bits = int(mozilla.group(1), 16)
        unread = not bits & MOZILLA_READ
        flagged = bool(bits & MOZILLA_MARKED)
    fields["UnRead"] = unread
    fields["FlagStatus"] = OlFlagStatus.olFlagMarked if flagged else OlFlagStatus.olNoFlag


class MboxFolder(LocalFolder):
    """
    A folder backed by an mbox file, a ``.sbd`` directory, or both.

    Either path may be None: a store root is only a directory, and a leaf
    folder has no ``.sbd`` directory.
    """

    def __init__(self, name: str, mbox_path: Optional[str], children_dir: Optional[str],
                 parent: LocalFolder = None, verbose: bool = True):
        super().__init__(name, parent)
        self.mbox_path = mbox_path
        self.children_dir = children_dir
        self.verbose = verbose
        self._folders = None

    def _iter_items(self) -> Iterator[MailItem]:
        if not self.mbox_path:
            return
        try:
            with open(self.mbox_path, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise RuntimeError(f"Failed to read mbox file {self.mbox_path}: {e}") from e

        for index, raw in enumerate(split_mbox(data), 1):
            extra = {"EntryID": f"mbox_{index}"}
            _read_status(extra, raw)
            yield item_from_bytes(f"mbox_{index}", raw, extra_fields=extra)
        if self.verbose:
            print(f"MboxSource: Read {self.mbox_path}")

    @property
    def folders(self) -> List['MboxFolder']:
        if self._folders is None:
            self._folders = list_mbox_folders(self.children_dir, self, self.verbose) if self.children_dir else []
        return list(self._folders)


def is_mbox_file(path: str) -> bool:
    """Return True if ``path`` looks like an mbox file (first line is a separator, or empty)"""
    name = os.path.basename(path)
    if name.startswith('.') or name.lower().endswith(IGNORED_SUFFIXES) or not os.path.isfile(path):
        return False
    with open(path, 'rb') as f:
        first = f.readline()
    return not first or parse_mbox_separator(first) is not None


def list_mbox_folders(directory: str, parent: LocalFolder, verbose: bool = True) -> List[MboxFolder]:
    """Build the folders stored in ``directory``, sorted by name"""
    folders = []
    entries = sorted(os.listdir(directory))
    names = set(entries)
    for entry in entries:
        path = os.path.join(directory, entry)
        if entry.endswith(SUBFOLDER_SUFFIX) and os.path.isdir(path):
            # A .sbd directory without a matching mbox file is still a folder
            base = entry[:-len(SUBFOLDER_SUFFIX)]
            if base not in names:
                folders.append(MboxFolder(base, None, path, parent, verbose))
            continue
        if not is_mbox_file(path):
            continue
        sbd = path + SUBFOLDER_SUFFIX
        name = entry[:-5] if entry.lower().endswith('.mbox') else entry
        folders.append(MboxFolder(name, path, sbd if os.path.isdir(sbd) else None, parent, verbose))
    return sorted(folders, key=lambda f: f.name)


class MboxSource:
    """
    Entry point for an mbox file or a directory of mbox files.

    Usage:
        source = MboxSource("~/archive/Inbox.mbox")
        export_folders(source.root, "export")
    """

    def __init__(self, mbox_path: str, name: str = None, verbose: bool = True):
        self.mbox_path = os.path.abspath(os.path.expanduser(mbox_path))
        self.verbose = verbose
        if not os.path.exists(self.mbox_path):
            raise FileNotFoundError(f"Mbox file not found: {mbox_path}")

        base = os.path.basename(self.mbox_path.rstrip(os.sep))
        if os.path.isdir(self.mbox_path):
            self.root = MboxFolder(name or base, None, self.mbox_path, verbose=verbose)
        else:
            sbd = self.mbox_path + SUBFOLDER_SUFFIX
            if base.lower().endswith('.mbox'):
                base = base[:-5]
            self.root = MboxFolder(name or base, self.mbox_path,
                                   sbd if os.path.isdir(sbd) else None, verbose=verbose)

    def describe(self) -> str:
        return f"Mbox at {self.mbox_path}"
