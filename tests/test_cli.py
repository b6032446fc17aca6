#!/usr/bin/env python3
"""
Test the command line entry point
"""

import mailbox
import os
import shutil
import tempfile
import unittest

from mailexport.__main__ import build_parser, main, open_source
from mailexport.sources import MaildirSource, MboxSource

MBOX = (b"From bob@example.com Sat Jan  6 10:00:00 2024\n"
        b"From: Bob <bob@example.com>\n"
        b"Subject: One\n"
        b"\n"
        b"First\n"
        b"\n"
        b"From alice@example.com Sat Jan  6 11:00:00 2024\n"
        b"From: Alice <alice@example.com>\n"
        b"Subject: Two\n"
        b"\n"
        b"Second\n")


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.mbox_path = os.path.join(self.temp_dir, "Inbox.mbox")
        with open(self.mbox_path, 'wb') as f:
            f.write(MBOX)
        self.out = os.path.join(self.temp_dir, "export")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_defaults(self):
        args = build_parser().parse_args(["src", "out"])
        self.assertEqual(args.format, "msg")
        self.assertEqual(args.pattern, "%SenderName% - %Subject%")
        self.assertEqual(args.include_type, [])
        self.assertFalse(args.progress)

    def test_export_mbox(self):
        code = main([self.mbox_path, self.out, "--quiet"])
        self.assertEqual(code, 0)
        self.assertTrue(os.path.isfile(os.path.join(self.out, "Inbox", "Bob - One.msg")))
        self.assertTrue(os.path.isfile(os.path.join(self.out, "Inbox", "Alice - Two.msg")))

    def test_format_pattern_and_restriction(self):
        code = main([self.mbox_path, self.out, "--format", "txt", "--pattern", "%Subject%",
                     "--restrict", "[Subject] = 'Two'", "--include-type", "Mail", "--quiet"])
        self.assertEqual(code, 0)
        self.assertEqual(os.listdir(os.path.join(self.out, "Inbox")), ["Two.txt"])

    def test_skipped_items_exit_1(self):
        code = main([self.mbox_path, self.out, "--pattern", "%Categories%", "--quiet"])
        self.assertEqual(code, 1)

    def test_missing_source_exit_2(self):
        code = main([os.path.join(self.temp_dir, "nope"), self.out])
        self.assertEqual(code, 2)

    def test_unusable_output_exit_2(self):
        code = main([self.mbox_path, os.path.join(self.mbox_path, "out"), "--quiet"])
        self.assertEqual(code, 2)

    def test_open_source_detects_maildir(self):
        maildir_path = os.path.join(self.temp_dir, "Maildir")
        mailbox.Maildir(maildir_path, create=True)
        self.assertIsInstance(open_source(maildir_path, verbose=False), MaildirSource)
        self.assertIsInstance(open_source(self.mbox_path, verbose=False), MboxSource)

    def test_unknown_format_is_rejected(self):
        with self.assertRaises(SystemExit):
            main([self.mbox_path, self.out, "--format", "pdf"])


if __name__ == '__main__':
    unittest.main()
