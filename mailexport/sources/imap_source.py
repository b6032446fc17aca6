import base64
import imaplib
import re
import ssl
from typing import Dict, Generator, List, Optional

from ..enums import OlFlagStatus
from ..folders import Folder
from ..items import MailItem, item_from_bytes

# Common IMAP server configurations
IMAP_SERVERS = {
    "gmail": {
        "host": "imap.gmail.com",
        "port": 993,
        "use_ssl": True
    },
    "outlook": {
        "host": "outlook.office365.com",
        "port": 993,
        "use_ssl": True
    },
    "yahoo": {
        "host": "imap.mail.yahoo.com",
        "port": 993,
        "use_ssl": True
    },
    "icloud": {
        "host": "imap.mail.me.com",
        "port": 993,
        "use_ssl": True
    }
}

# (\HasNoChildren) "/" "INBOX/Projects"
LIST_RE = re.compile(rb'\((?P<flags>[^)]*)\)\s+(?P<delimiter>"[^"]*"|NIL)\s+(?P<name>.+)')
UID_RE = re.compile(rb'UID\s+(\d+)')
FLAGS_RE = re.compile(rb'FLAGS\s+\(([^)]*)\)')
SIZE_RE = re.compile(rb'RFC822\.SIZE\s+(\d+)')


def decode_mailbox_name(name: str) -> str:
    """
    Decode an IMAP modified UTF-7 mailbox name (RFC 3501 5.1.3)

    A malformed shift sequence is kept as it was sent.
    """
    out = []
    i = 0
    while i < len(name):
        if name[i] == '&':
            end = name.find('-', i)
            if end < 0:
                out.append(name[i:])
                break
            chunk = name[i + 1:end]
            if not chunk:
                out.append('&')
            else:
                padded = chunk.replace(',', '/') + '=' * (-len(chunk) % 4)
                try:
                    out.append(base64.b64decode(padded, validate=True).decode('utf-16-be'))
                except ValueError:
                    out.append(name[i:end + 1])
            i = end + 1
        else:
            out.append(name[i])
            i += 1
    return ''.join(out)


def quote_mailbox_name(name: str) -> str:
    return '"' + name.replace('\\', '\\\\').replace('"', '\\"') + '"'


def parse_list_response(line) -> Optional[Dict[str, object]]:
    """Parse one line of a LIST response into flags, delimiter and raw name"""
    if isinstance(line, tuple):
        # Literal mailbox name: (b'(\\HasNoChildren) "/" {12}', b'INBOX/Drafts')
        line = line[0].rsplit(b'{', 1)[0] + b'"' + line[1] + b'"'
    if not line:
        return None
    match = LIST_RE.match(line)
    if not match:
        return None
    delimiter = match.group('delimiter')
    name = match.group('name').strip()
    if name.startswith(b'"') and name.endswith(b'"'):
        name = name[1:-1].replace(b'\\"', b'"').replace(b'\\\\', b'\\')
    return {
        'flags': match.group('flags').decode().split(),
        'delimiter': None if delimiter == b'NIL' else delimiter.strip(b'"').decode(),
        'name': name.decode('ascii', errors='replace'),
    }


class ImapFolder(Folder):
    """An IMAP mailbox; restrictions are IMAP SEARCH criteria run by the server"""

    def __init__(self, source: 'ImapSource', name: str, mailbox: Optional[str],
                 parent: Folder = None, selectable: bool = True):
        super().__init__(name, parent)
        self.source = source
        self.mailbox = mailbox
        self.selectable = selectable
        self._children: List['ImapFolder'] = []

    def items(self, restriction: str = None) -> Generator[MailItem, None, None]:
        if self.mailbox is None or not self.selectable:
            return iter(())
        return self.source.list_messages(self.mailbox, restriction)

    @property
    def folders(self) -> List['ImapFolder']:
        self.source._ensure_tree()
        return list(self._children)


class ImapSource:
    """
    Folders and messages of an IMAP account.

    Messages are listed with their headers only; the full message is fetched
    the first time a body field is read or the item is saved whole. The
    mailbox is always selected read-only, so exporting never changes flags.
    """

    def __init__(self, credentials: Dict[str, str], name: str = None,
                 batch_size: int = 50, verbose: bool = True):
        """
        Initialize with credentials

        Args:
            credentials: Dict with keys:
                - 'host': IMAP server hostname (e.g., 'imap.gmail.com')
                - 'port': IMAP port (usually 993 for SSL)
                - 'username': Email username
                - 'password': Email password or app password
                - 'use_ssl': Boolean, default True
            name: Store name used as the top of every folder path (default: username)
            batch_size: Number of message headers fetched per request
            verbose: Whether to print progress information
        """
        self.credentials = credentials
        self.batch_size = max(batch_size, 1)
        self.verbose = verbose
        self.connection: Optional[imaplib.IMAP4] = None
        self.connected = False
        self._selected = None
        self.root = ImapFolder(self, name or credentials.get('username', 'IMAP'), None, selectable=False)
        self._tree_loaded = False

    def connect(self) -> None:
        """Establish connection to IMAP server"""
        try:
            host = self.credentials['host']
            port = self.credentials.get('port', 993)
            use_ssl = self.credentials.get('use_ssl', True)

            if use_ssl:
                context = ssl.create_default_context()
                self.connection = imaplib.IMAP4_SSL(host, port, ssl_context=context)
            else:
                self.connection = imaplib.IMAP4(host, port)

            self.connection.login(self.credentials['username'], self.credentials['password'])
            self.connected = True

        except (imaplib.IMAP4.error, OSError, KeyError) as e:
            raise ConnectionError(f"Failed to connect to IMAP server: {e}") from e

    def disconnect(self) -> None:
        """Close the IMAP connection"""
        if self.connection and self.connected:
            try:
                self.connection.logout()
            except (imaplib.IMAP4.error, OSError) as e:
                if self.verbose:
                    print(f"ImapSource: Ignoring error during logout: {e}")
            finally:
                self.connection = None
                self.connected = False
                self._selected = None

    def _run(self, command: str, *args, **kwargs):
        """Run an IMAP command; protocol errors and aborts become RuntimeError"""
        try:
            return getattr(self.connection, command)(*args, **kwargs)
        except imaplib.IMAP4.error as e:
            if isinstance(e, imaplib.IMAP4.abort):
                self._selected = None
            name = f"{command} {args[0]}" if command == 'uid' else command
            raise RuntimeError(f"IMAP {name.upper()} failed: {e}") from e

    def select_mailbox(self, mailbox: str = "INBOX") -> None:
        """Select a mailbox read-only, unless it is already selected"""
        if not self.connected:
            self.connect()
        if self._selected == mailbox:
            return

        status, _ = self._run('select', quote_mailbox_name(mailbox), readonly=True)
        if status != 'OK':
            raise RuntimeError(f"Failed to select mailbox '{mailbox}': {status}")
        self._selected = mailbox

    def folder(self, path: str) -> ImapFolder:
        """Return the folder with the given display path, e.g. ``INBOX/Projects``"""
        folder = self.root
        for part in re.split(r'[\\/]', path):
            if not part:
                continue
            matches = [f for f in folder.folders if f.name == part]
            if not matches:
                raise KeyError(f"No folder '{part}' below {folder.full_folder_path}")
            folder = matches[0]
        return folder

    def _ensure_tree(self):
        if self._tree_loaded:
            return
        if not self.connected:
            self.connect()

        status, data = self._run('list')
        if status != 'OK':
            raise RuntimeError(f"Failed to list mailboxes: {status}")

        nodes = {(): self.root}
        entries = [e for e in (parse_list_response(line) for line in data or []) if e]
        for entry in sorted(entries, key=lambda e: e['name']):
            delimiter = entry['delimiter']
            parts = tuple(entry['name'].split(delimiter)) if delimiter else (entry['name'],)
            selectable = '\\Noselect' not in entry['flags'] and '\\NonExistent' not in entry['flags']
            # Create intermediate folders the server did not list
            for depth in range(1, len(parts) + 1):
                key = parts[:depth]
                if key in nodes:
                    continue
                parent = nodes[key[:-1]]
                is_leaf = depth == len(parts)
                folder = ImapFolder(
                    self,
                    decode_mailbox_name(key[-1]),
                    entry['name'] if is_leaf else delimiter.join(key),
                    parent,
                    selectable=selectable if is_leaf else False,
                )
                parent._children.append(folder)
                nodes[key] = folder
            if parts in nodes and selectable:
                nodes[parts].selectable = True
                nodes[parts].mailbox = entry['name']

        self._tree_loaded = True
        if self.verbose:
            print(f"ImapSource: Found {len(entries)} mailboxes")

    def list_messages(self, mailbox: str, restriction: str = None) -> Generator[MailItem, None, None]:
        """
        List the messages of a mailbox, yielding MailItem objects.

        ``restriction`` is passed to the server as SEARCH criteria
        (e.g. ``SINCE 01-Jan-2024 FROM "bob"``); the default is ALL.
        """
        self.select_mailbox(mailbox)

        criteria = restriction or 'ALL'
        status, uid_data = self._run('uid', 'search', None, criteria)
        if status != 'OK':
            raise RuntimeError(f"Search '{criteria}' failed in '{mailbox}': {status}")
        if not uid_data or not uid_data[0]:
            return

        uids = uid_data[0].split()
        if self.verbose:
            print(f"ImapSource: {len(uids)} messages in {mailbox} match {criteria}")

        for i in range(0, len(uids), self.batch_size):
            batch_uids = uids[i:i + self.batch_size]
            status, message_data = self._run(
                'uid', 'fetch', b','.join(batch_uids), '(UID FLAGS RFC822.SIZE BODY.PEEK[HEADER])')
            if status != 'OK':
                raise RuntimeError(f"Failed to fetch headers from '{mailbox}': {status}")

            for part in message_data:
                if not isinstance(part, tuple) or len(part) != 2:
                    continue
                info, header_bytes = part
                uid_match = UID_RE.search(info)
                if not uid_match:
                    continue
                uid = uid_match.group(1).decode()
                flags_match = FLAGS_RE.search(info)
                flags = flags_match.group(1).decode().split() if flags_match else []
                size_match = SIZE_RE.search(info)

                yield item_from_bytes(uid, header_bytes, extra_fields={
                    "EntryID": f"{mailbox}:{uid}",
                    "Size": int(size_match.group(1)) if size_match else len(header_bytes),
                    "UnRead": '\\Seen' not in flags,
                    "FlagStatus": OlFlagStatus.olFlagMarked if '\\Flagged' in flags else OlFlagStatus.olNoFlag,
                }, fetch_raw_func=self._make_fetcher(mailbox, uid))

    def _make_fetcher(self, mailbox: str, uid: str):
        cache = {}

        def fetch_raw():
            if 'raw' not in cache:
                cache['raw'] = self._fetch_full_message(mailbox, uid)
            return cache['raw']
        return fetch_raw

    def _fetch_full_message(self, mailbox: str, uid: str) -> bytes:
        """Fetch the full message for a given UID without marking it read"""
        self.select_mailbox(mailbox)
        status, data = self._run('uid', 'fetch', uid, '(BODY.PEEK[])')
        if status != 'OK' or not data or not isinstance(data[0], tuple):
            raise RuntimeError(f"Failed to fetch message {uid} from '{mailbox}'")
        return data[0][1]

    def describe(self) -> str:
        return f"IMAP account {self.credentials.get('username', '')} at {self.credentials.get('host', '')}"

    def __enter__(self):
        """Context manager entry"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.disconnect()
