import pytest

from mailexport import MailItem, MissingFieldError, validate
from mailexport.validation import get_field, has_field


class Contact:
    def __init__(self):
        self.FullName = "Alice"
        self.Email1Address = "alice@example.com"


class TestValidate:
    """Field presence checks across the record kinds the engine accepts"""

    def test_dict_record(self):
        record = {"Subject": "Hi", "SenderName": "Bob"}
        assert validate(record, {"Subject", "SenderName"}) == set()
        assert validate(record, {"Subject", "Body"}) == {"Body"}

    def test_attribute_record(self):
        assert validate(Contact(), ["FullName"]) == set()
        assert validate(Contact(), ["FullName", "Subject", "Body"]) == {"Subject", "Body"}

    def test_mail_item(self):
        item = MailItem("1", {"Subject": "Hi"})
        assert validate(item, {"Subject"}) == set()
        assert validate(item, {"Subject", "Body"}) == {"Body"}

    def test_body_fields_of_fetchable_item(self):
        item = MailItem("1", {"Subject": "Hi"}, fetch_raw_func=lambda: b"Subject: Hi\n\nbody")
        assert validate(item, {"Body", "HTMLBody", "RTFBody"}) == set()

    def test_presence_not_emptiness(self):
        assert validate({"Subject": "", "Body": None}, {"Subject", "Body"}) == set()

    def test_nothing_required(self):
        assert validate({}, set()) == set()


class TestGetField:
    def test_get_from_each_kind(self):
        assert get_field({"Subject": "Hi"}, "Subject") == "Hi"
        assert get_field(Contact(), "FullName") == "Alice"
        assert get_field(MailItem("1", {"Subject": "Hi"}), "Subject") == "Hi"

    def test_missing(self):
        with pytest.raises(MissingFieldError) as excinfo:
            get_field({"Subject": "Hi"}, "Body")
        assert "Body" in str(excinfo.value)

    def test_has_field(self):
        assert has_field({"A": 1}, "A")
        assert not has_field(Contact(), "Subject")
