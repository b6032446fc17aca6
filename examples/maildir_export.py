#!/usr/bin/env python3
"""
Example: Exporting a Maildir tree and a Gmail account
"""

from mailexport import export_folders
from mailexport.sources import MaildirSource


def main():
    # --- Example 1: Every message of a Maildir tree as .eml files ---
    print("📤 Exporting ~/Maildir:")
    skipped = []
    source = MaildirSource("~/Maildir", name="Mailbox")
    summary = export_folders(
        source.root,
        "export/maildir",
        pattern="%ReceivedTime|yyyy-MM-dd HH.mm% %SenderName% - %Subject|60%",
        fmt="eml",
        include_types={"Mail"},
        skipped=skipped,
        progress=True,
    )
    print(f"Exported {summary.exported} messages, {len(skipped)} skipped")
    for record in skipped:
        print(f"  {record.item!r}: {record.reason}")

    # --- Example 2: Plain-text bodies of unread messages in one folder ---
    print("\n📝 Unread messages of Projects as text:")
    export_folders(
        source.folder("Projects"),
        "export/unread",
        pattern="%SenderName% - %Subject%",
        fmt="txt",
        restriction="[UnRead] = True",
    )

    # --- Example 3: A Gmail label (needs the gmail extra and credentials.json) ---
    print("\n📬 Exporting the Gmail label Work:")
    from mailexport.sources.gmail_source import GmailSource
    gmail = GmailSource("credentials.json", token_path="token.pickle")
    # The restriction of a Gmail folder is a Gmail search query
    export_folders(gmail.folder("Work"), "export/gmail", fmt="html", restriction="after:2024/01/01")


if __name__ == "__main__":
    main()
