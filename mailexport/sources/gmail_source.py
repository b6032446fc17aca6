"""
Gmail Source - export Gmail labels as folders

Needs the ``gmail`` extra (google-api-python-client and friends). Labels
named ``Work/Projects`` are nested below ``Work``; the restriction string of
a folder is passed to Gmail as its search query (``from:bob after:2024/01/01``).
"""

import base64
import os
import pickle
from typing import Generator, List, Optional

from google.auth.transport.requests import Request
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..enums import OlFlagStatus, OlImportance
from ..folders import Folder
from ..items import MailItem, item_from_bytes

HEADER_NAMES = ['From', 'Sender', 'Subject', 'Date', 'Message-ID', 'Reply-To', 'To', 'Cc', 'Bcc',
                'Importance', 'X-Priority', 'Sensitivity', 'Content-Type']

# System labels exported by default, in this order
SYSTEM_LABELS = ['INBOX', 'SENT', 'DRAFT', 'SPAM', 'TRASH']


class GmailFolder(Folder):
    """A Gmail label"""

    def __init__(self, source: 'GmailSource', name: str, label_id: Optional[str], parent: Folder = None):
        super().__init__(name, parent)
        self.source = source
        self.label_id = label_id
        self._children: List['GmailFolder'] = []

    def items(self, restriction: str = None) -> Generator[MailItem, None, None]:
        if self.label_id is None:
            return iter(())
        return self.source.list_messages(self.label_id, restriction)

    @property
    def folders(self) -> List['GmailFolder']:
        self.source._ensure_tree()
        return list(self._children)


class GmailSource:
    """Gmail API access that exposes labels as a folder tree"""

    # Read-only access is all an export needs
    SCOPES = ['https://www.googleapis.com/auth/gmail.readonly']

    def __init__(self, credentials_json_path: str = "credentials.json", token_path: str = "token.pickle",
                 name: str = "Gmail", batch_size: int = 100, verbose: bool = True):
        """
        Initialize Gmail OAuth2 access

        Args:
            credentials_json_path: Path to the credentials.json file from Google Cloud Console
            token_path: Where the OAuth token is cached between runs
            name: Store name used as the top of every folder path
            batch_size: Number of message ids requested per API call (1-500, default 100)
            verbose: Whether to print progress information
        """
        self.credentials_path = credentials_json_path
        self.token_path = token_path
        self.batch_size = min(max(batch_size, 1), 500)
        self.verbose = verbose
        self.service = None
        self.connected = False
        self.root = GmailFolder(self, name, None)
        self._tree_loaded = False

    def _get_credentials(self):
        """Get OAuth2 credentials for the Gmail API, refreshing or re-authorising as needed"""
        creds = None

        if os.path.exists(self.token_path):
            with open(self.token_path, 'rb') as token:
                creds = pickle.load(token)

        if not creds or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                flow = InstalledAppFlow.from_client_secrets_file(self.credentials_path, self.SCOPES)
                creds = flow.run_local_server(port=0)

            with open(self.token_path, 'wb') as token:
                pickle.dump(creds, token)

        return creds

    def connect(self) -> None:
        """Establish connection to Gmail API"""
        try:
            creds = self._get_credentials()
            self.service = build('gmail', 'v1', credentials=creds)
            self.connected = True
        except (OSError, ValueError, HttpError) as e:
            raise ConnectionError(f"Failed to connect to Gmail API: {e}") from e

    def disconnect(self) -> None:
        """Close the Gmail API connection"""
        self.service = None
        self.connected = False

    def folder(self, path: str) -> GmailFolder:
        """Return the folder for a label path such as ``Work/Projects``"""
        folder = self.root
        for part in path.split('/'):
            if not part:
                continue
            matches = [f for f in folder.folders if f.name == part]
            if not matches:
                raise KeyError(f"No label '{part}' below {folder.full_folder_path}")
            folder = matches[0]
        return folder

    def _ensure_tree(self):
        if self._tree_loaded:
            return
        if not self.connected:
            self.connect()

        try:
            labels = self.service.users().labels().list(userId='me').execute().get('labels', [])
        except HttpError as error:
            raise RuntimeError(f"Gmail API error: {error}") from error

        system = {label['id']: label for label in labels if label.get('type') == 'system'}
        user = sorted((label for label in labels if label.get('type') != 'system'),
                      key=lambda label: label['name'])

        for label_id in SYSTEM_LABELS:
            if label_id in system:
                self.root._children.append(GmailFolder(self, label_id, label_id, self.root))

        nodes = {(): self.root}
        for label in user:
            parts = tuple(label['name'].split('/'))
            for depth in range(1, len(parts) + 1):
                key = parts[:depth]
                if key in nodes:
                    continue
                parent = nodes[key[:-1]]
                folder = GmailFolder(self, key[-1], None, parent)
                parent._children.append(folder)
                nodes[key] = folder
            nodes[parts].label_id = label['id']

        self._tree_loaded = True
        if self.verbose:
            print(f"GmailSource: Found {len(labels)} labels")

    def list_messages(self, label_id: str, query: str = None) -> Generator[MailItem, None, None]:
        """
        List the messages carrying a label, yielding MailItem objects.

        Only headers are requested here; the raw message is downloaded when a
        body field is read or the item is saved whole.
        """
        if not self.connected:
            self.connect()

        page_token = None
        count = 0
        try:
            while True:
                results = self.service.users().messages().list(
                    userId='me',
                    labelIds=[label_id],
                    q=query,
                    pageToken=page_token,
                    maxResults=self.batch_size
                ).execute()

                for msg in results.get('messages', []):
                    item = self._create_item(msg['id'])
                    if item is not None:
                        count += 1
                        yield item

                page_token = results.get('nextPageToken')
                if not page_token:
                    break
        except HttpError as error:
            raise RuntimeError(f"Gmail API error: {error}") from error

        if self.verbose:
            print(f"GmailSource: Listed {count} messages with label {label_id}" +
                  (f" matching '{query}'" if query else ""))

    def _create_item(self, msg_id: str) -> Optional[MailItem]:
        """Create a MailItem for a message id from its metadata"""
        try:
            msg = self.service.users().messages().get(
                userId='me', id=msg_id, format='metadata', metadataHeaders=HEADER_NAMES
            ).execute()
        except HttpError as error:
            if error.resp.status == 404:
                if self.verbose:
                    print(f"GmailSource: Skipping message {msg_id} - not found (may have been deleted)")
                return None
            raise

        headers = msg.get('payload', {}).get('headers', [])
        header_bytes = "".join(f"{h['name']}: {h['value']}\r\n" for h in headers).encode('utf-8') + b"\r\n"
        labels = msg.get('labelIds', [])

        extra = {
            "EntryID": msg_id,
            "UnRead": 'UNREAD' in labels,
            "FlagStatus": OlFlagStatus.olFlagMarked if 'STARRED' in labels else OlFlagStatus.olNoFlag,
            "Size": msg.get('sizeEstimate', 0),
        }
        if 'IMPORTANT' in labels and not any(h['name'].lower() in ('importance', 'x-priority') for h in headers):
            extra["Importance"] = OlImportance.olImportanceHigh

        def make_fetcher(msg_id=msg_id):
            cache = {}

            def fetch_raw():
                if 'raw' not in cache:
                    cache['raw'] = self._fetch_raw_message(msg_id)
                return cache['raw']
            return fetch_raw

        return item_from_bytes(msg_id, header_bytes, extra_fields=extra, fetch_raw_func=make_fetcher())

    def _fetch_raw_message(self, msg_id: str) -> bytes:
        """Download the complete RFC 822 message"""
        try:
            msg = self.service.users().messages().get(userId='me', id=msg_id, format='raw').execute()
        except HttpError as error:
            raise RuntimeError(f"Gmail API error fetching {msg_id}: {error}") from error
        return base64.urlsafe_b64decode(msg['raw'])

    def describe(self) -> str:
        return "Gmail account"
