import base64
import io
import os
from unittest.mock import MagicMock, Mock

import pytest

pytest.importorskip("googleapiclient")

from googleapiclient.errors import HttpError  # noqa: E402
from rich.console import Console  # noqa: E402

from mailexport import OlFlagStatus, OlImportance, export_folders  # noqa: E402
from mailexport.sources.gmail_source import GmailSource  # noqa: E402

LABELS = {'labels': [
    {'id': 'INBOX', 'name': 'INBOX', 'type': 'system'},
    {'id': 'SENT', 'name': 'SENT', 'type': 'system'},
    {'id': 'CATEGORY_UPDATES', 'name': 'CATEGORY_UPDATES', 'type': 'system'},
    {'id': 'Label_2', 'name': 'Work/Projects', 'type': 'user'},
    {'id': 'Label_1', 'name': 'Work', 'type': 'user'},
]}

RAW = b"From: Bob <bob@example.com>\r\nSubject: Hello\r\n\r\nGmail body\r\n"


def fake_get(userId, id, format, metadataHeaders=None):
    request = Mock()
    if format == 'raw':
        request.execute.return_value = {'id': id, 'raw': base64.urlsafe_b64encode(RAW).decode()}
    else:
        request.execute.return_value = {
            'id': id,
            'labelIds': ['INBOX', 'UNREAD', 'STARRED', 'IMPORTANT'],
            'sizeEstimate': 2048,
            'payload': {'headers': [
                {'name': 'From', 'value': 'Bob <bob@example.com>'},
                {'name': 'Subject', 'value': 'Hello'},
            ]},
        }
    return request


class TestGmailSource:
    """Test label folders and message listing against a mocked Gmail service"""

    def setup_method(self):
        self.source = GmailSource("credentials.json", token_path="token.pickle", verbose=False)
        self.service = MagicMock()
        users = self.service.users.return_value
        users.labels.return_value.list.return_value.execute.return_value = LABELS
        users.messages.return_value.list.return_value.execute.return_value = {'messages': [{'id': 'm1'}]}
        users.messages.return_value.get.side_effect = fake_get
        self.source.service = self.service
        self.source.connected = True

    def test_label_tree(self):
        root = self.source.root
        assert root.full_folder_path == "\\\\Gmail"
        assert [f.name for f in root.folders] == ["INBOX", "SENT", "Work"]
        work = self.source.folder("Work")
        assert work.label_id == "Label_1"
        assert [f.name for f in work.folders] == ["Projects"]
        assert self.source.folder("Work/Projects").label_id == "Label_2"

    def test_unknown_label(self):
        with pytest.raises(KeyError):
            self.source.folder("Nope")

    def test_list_messages(self):
        items = list(self.source.folder("INBOX").items("from:bob"))

        messages = self.service.users.return_value.messages.return_value
        kwargs = messages.list.call_args.kwargs
        assert kwargs['labelIds'] == ['INBOX']
        assert kwargs['q'] == "from:bob"

        assert len(items) == 1
        item = items[0]
        assert item.get("Subject") == "Hello"
        assert item.get("SenderName") == "Bob"
        assert item.get("UnRead") is True
        assert item.get("FlagStatus") == OlFlagStatus.olFlagMarked
        assert item.get("Importance") == OlImportance.olImportanceHigh
        assert item.get("Size") == 2048

    def test_body_downloads_raw_message(self):
        item = next(iter(self.source.list_messages("INBOX")))
        assert item.get("Body").strip() == "Gmail body"
        assert item.raw_bytes() == RAW

    def test_root_has_no_items(self):
        assert list(self.source.root.items()) == []


def server_error():
    return HttpError(Mock(status=500, reason="Backend Error"), b"boom")


class TestGmailFailures:
    """A failing API call costs one label or one message, not the whole export"""

    def setup_method(self):
        self.source = GmailSource("credentials.json", token_path="token.pickle", verbose=False)
        self.service = MagicMock()
        users = self.service.users.return_value
        users.labels.return_value.list.return_value.execute.return_value = LABELS
        users.messages.return_value.list.side_effect = self.fake_list
        users.messages.return_value.get.side_effect = fake_get
        self.source.service = self.service
        self.source.connected = True
        self.output = io.StringIO()
        self.console = Console(file=self.output, width=300)

    @staticmethod
    def fake_list(userId, labelIds, q=None, pageToken=None, maxResults=None):
        request = Mock()
        if labelIds == ['INBOX']:
            request.execute.side_effect = server_error()
        else:
            request.execute.return_value = {'messages': [{'id': f"m-{labelIds[0]}"}]}
        return request

    def test_listing_error_skips_only_that_label(self, tmp_path):
        summary = export_folders(self.source.root, str(tmp_path), fmt="eml", pattern="%Subject%",
                                 console=self.console)

        assert summary.exported == 3
        assert (tmp_path / "Gmail" / "SENT" / "Hello.eml").is_file()
        assert (tmp_path / "Gmail" / "Work" / "Projects" / "Hello.eml").is_file()
        assert not (tmp_path / "Gmail" / "INBOX").exists()
        assert "Gmail API error" in self.output.getvalue()

    def test_download_error_skips_the_message(self, tmp_path):
        def failing_get(userId, id, format, metadataHeaders=None):
            if format == 'raw':
                request = Mock()
                request.execute.side_effect = server_error()
                return request
            return fake_get(userId, id, format, metadataHeaders)
        self.service.users.return_value.messages.return_value.get.side_effect = failing_get
        skipped = []

        summary = export_folders(self.source.folder("SENT"), str(tmp_path), fmt="eml",
                                 pattern="%Subject%", skipped=skipped, console=self.console)

        assert summary.exported == 0
        assert len(skipped) == 1
        assert "Gmail API error fetching m-SENT" in skipped[0].reason
        assert os.listdir(tmp_path / "Gmail" / "SENT") == []
