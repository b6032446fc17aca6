#!/usr/bin/env python3
"""
Test mail item records and message parsing
"""

import email
import os
import shutil
import tempfile
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock

from mailexport import (MailItem, MissingFieldError, OlBodyFormat, OlImportance, OlObjectClass,
                        OlSensitivity, item_from_bytes, parse_envelope)
from mailexport.items import html_to_text, text_to_rtf

HEADERS = (b"From: Bob Smith <bob@example.com>\n"
           b"To: Alice <alice@example.com>, carol@example.com\n"
           b"Subject: Quarterly report\n"
           b"Date: Tue, 05 Mar 2024 14:07:00 +0000\n"
           b"Message-ID: <report-1@example.com>\n"
           b"Importance: high\n"
           b"Sensitivity: Private\n")

PLAIN = HEADERS + b"\nNumbers are up.\nSee you Monday.\n"

HTML_ONLY = (b"From: news@example.com\n"
             b"Subject: Newsletter\n"
             b"MIME-Version: 1.0\n"
             b"Content-Type: text/html; charset=utf-8\n"
             b"\n"
             b"<html><body><p>Hello <b>there</b></p><script>track()</script></body></html>\n")

REPORT = (b"From: MAILER-DAEMON@example.com\n"
          b"Subject: Undeliverable: Hi\n"
          b"MIME-Version: 1.0\n"
          b"Content-Type: multipart/report; report-type=delivery-status; boundary=\"XX\"\n"
          b"\n"
          b"--XX\n"
          b"Content-Type: text/plain\n"
          b"\n"
          b"Delivery failed.\n"
          b"--XX--\n")


class TestParseEnvelope(unittest.TestCase):
    def test_header_fields(self):
        fields = parse_envelope(PLAIN)
        self.assertEqual(fields["Subject"], "Quarterly report")
        self.assertEqual(fields["SenderName"], "Bob Smith")
        self.assertEqual(fields["SenderEmailAddress"], "bob@example.com")
        self.assertEqual(fields["To"], "Alice; carol@example.com")
        self.assertEqual(fields["InternetMessageID"], "<report-1@example.com>")
        self.assertEqual(fields["ReceivedTime"], datetime(2024, 3, 5, 14, 7, tzinfo=timezone.utc))
        self.assertEqual(fields["Importance"], OlImportance.olImportanceHigh)
        self.assertEqual(fields["Sensitivity"], OlSensitivity.olPrivate)
        self.assertEqual(fields["Class"], OlObjectClass.olMail)
        self.assertEqual(fields["MessageClass"], "IPM.Note")
        self.assertEqual(fields["Size"], len(PLAIN))

    def test_sender_name_falls_back_to_address(self):
        fields = parse_envelope(HTML_ONLY)
        self.assertEqual(fields["SenderName"], "news@example.com")

    def test_missing_date(self):
        fields = parse_envelope(HTML_ONLY)
        self.assertNotIn("ReceivedTime", fields)

    def test_delivery_report(self):
        fields = parse_envelope(REPORT)
        self.assertEqual(fields["Class"], OlObjectClass.olReport)
        self.assertEqual(fields["MessageClass"], "REPORT.IPM.Note.NDR")

    def test_priority_header(self):
        fields = parse_envelope(b"Subject: x\nX-Priority: 5 (Lowest)\n\nbody")
        self.assertEqual(fields["Importance"], OlImportance.olImportanceLow)


class TestMailItem(unittest.TestCase):
    def test_body_is_fetched_lazily_once(self):
        fetch = Mock(return_value=PLAIN)
        item = item_from_bytes("42", HEADERS + b"\n", fetch_raw_func=fetch)

        self.assertEqual(item["Subject"], "Quarterly report")
        self.assertTrue(item.has_field("Body"))
        fetch.assert_not_called()

        self.assertEqual(item.get("Body"), "Numbers are up.\nSee you Monday.\n")
        self.assertEqual(item.get("BodyFormat"), OlBodyFormat.olFormatPlain)
        self.assertIn("Numbers are up.", item.get("HTMLBody"))
        self.assertTrue(item.get("RTFBody").startswith(b"{\\rtf1"))
        fetch.assert_called_once()

    def test_html_only_message(self):
        item = item_from_bytes("1", HTML_ONLY)
        self.assertEqual(item.get("Body"), "Hello there")
        self.assertIn("<b>there</b>", item.get("HTMLBody"))
        self.assertEqual(item.get("BodyFormat"), OlBodyFormat.olFormatHTML)

    def test_item_without_fetcher_has_no_body(self):
        item = MailItem("1", {"Subject": "Hi"})
        self.assertFalse(item.has_field("Body"))
        self.assertNotIn("Body", item)
        with self.assertRaises(MissingFieldError):
            item.get("Body")

    def test_field_names(self):
        item = item_from_bytes("1", PLAIN)
        names = list(item.field_names())
        self.assertIn("Subject", names)
        self.assertIn("RTFBody", names)

    def test_save_as_writes_message(self):
        temp_dir = tempfile.mkdtemp()
        try:
            path = os.path.join(temp_dir, "report.msg")
            item_from_bytes("1", PLAIN).save_as(path, "MSG")
            with open(path, 'rb') as f:
                self.assertEqual(f.read(), PLAIN)
        finally:
            shutil.rmtree(temp_dir)

    def test_in_memory_item_is_rebuilt(self):
        item = MailItem("1", {
            "Subject": "Hi",
            "SenderName": "Bob",
            "SenderEmailAddress": "bob@example.com",
            "Body": "Hello Alice",
            "ReceivedTime": datetime(2024, 3, 5, 14, 7, tzinfo=timezone.utc),
        })
        msg = email.message_from_bytes(item.raw_bytes())
        self.assertEqual(msg["Subject"], "Hi")
        self.assertEqual(msg["From"], "Bob <bob@example.com>")
        self.assertIn("Hello Alice", msg.get_payload())


class TestBodyConversions(unittest.TestCase):
    def test_html_to_text(self):
        html = "<style>p {}</style><p>One</p><p>Two<br>Three</p>"
        self.assertEqual(html_to_text(html), "One\n\nTwo\nThree")

    def test_text_to_rtf_escapes(self):
        self.assertEqual(text_to_rtf("a{b}\\\né"),
                         b"{\\rtf1\\ansi\\deff0 a\\{b\\}\\\\\\par\n\\u233?}")


if __name__ == '__main__':
    unittest.main()
