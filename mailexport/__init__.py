#!/usr/bin/env python3
"""
MailExport - export mail folder trees to disk

A Python library that walks mail folders (Maildir, mbox, IMAP, Gmail or
your own objects), and writes every item to a directory mirroring the
folder tree, under file names built from a pattern.

Main Components:
- template: %Field% / %Field|Format% file name patterns
- paths: collision-free, length-bounded output paths
- engine: pre-order folder traversal with type filters and restrictions
- exporters: whole-item and body-only (HTML, TXT, RTF) writers
- sources: Maildir, mbox, IMAP and Gmail folder trees

Usage:
    from mailexport import export_folders
    from mailexport.sources import MaildirSource

    skipped = []
    export_folders(MaildirSource("~/Maildir").root, "export",
                   pattern="%ReceivedTime|yyyy-MM-dd% %SenderName% - %Subject|60%",
                   fmt="eml", include_types={"Mail"}, skipped=skipped)
"""

from .engine import ExportRequest, ExportSummary, FolderExporter, export_folders
from .enums import OlBodyFormat, OlFlagStatus, OlImportance, OlObjectClass, OlSensitivity
from .errors import (ExportError, MissingFieldError, OutputRootError, PathNotUniqueError,
                     PathTooLongError, RestrictionError)
from .exporters import BodyExporter, ExportFormat, ItemExporter, SkipRecord, exporter_for
from .folders import Folder, MemoryFolder
from .items import MailItem, item_from_bytes, parse_envelope
from .paths import MAX_PATH, ResolvedPath, ensure_directory, resolve_unique_path
from .restrict import compile_restriction
from .template import DEFAULT_PATTERN, expand, referenced_fields
from .validation import validate

__all__ = [
    # Export engine
    'export_folders',
    'FolderExporter',
    'ExportRequest',
    'ExportSummary',

    # Exporters
    'ExportFormat',
    'ItemExporter',
    'BodyExporter',
    'SkipRecord',
    'exporter_for',

    # Records
    'MailItem',
    'item_from_bytes',
    'parse_envelope',
    'Folder',
    'MemoryFolder',

    # Building blocks
    'expand',
    'referenced_fields',
    'DEFAULT_PATTERN',
    'resolve_unique_path',
    'ensure_directory',
    'ResolvedPath',
    'MAX_PATH',
    'validate',
    'compile_restriction',

    # Enumerations
    'OlObjectClass',
    'OlSensitivity',
    'OlImportance',
    'OlBodyFormat',
    'OlFlagStatus',

    # Errors
    'ExportError',
    'MissingFieldError',
    'PathTooLongError',
    'PathNotUniqueError',
    'OutputRootError',
    'RestrictionError',
]
