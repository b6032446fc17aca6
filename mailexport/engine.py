import os
from collections.abc import Mapping
from contextlib import nullcontext
from typing import FrozenSet, Iterable, List, NamedTuple, Optional, Union

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from .enums import OlObjectClass, symbolic_name
from .errors import ExportError, OutputRootError
from .exporters import ExportFormat, SkipRecord, exporter_for
from .folders import is_folder
from .paths import (DEFAULT_FILE_NAME, MAX_PATH, ensure_directory, folder_directory,
                    resolve_unique_path, sanitize_file_name)
from .template import DEFAULT_PATTERN, expand, referenced_fields
from .validation import get_field, has_field, validate

# Errors that cost one item (or one folder listing) and let the run continue
ITEM_ERRORS = (ExportError, OSError, RuntimeError)


class ExportRequest(NamedTuple):
    """Everything that stays fixed during one export run"""
    output_root: str
    pattern: str = DEFAULT_PATTERN
    format: ExportFormat = ExportFormat.MSG
    include_types: FrozenSet[str] = frozenset()
    exclude_types: FrozenSet[str] = frozenset()
    restriction: Optional[str] = None
    progress: bool = False
    max_path: int = MAX_PATH


class ExportSummary:
    """Counters and written paths of one export run"""

    def __init__(self):
        self.exported = 0
        self.excluded = 0
        self.skipped = 0
        self.folders = 0
        self.paths: List[str] = []

    @property
    def total(self) -> int:
        return self.exported + self.excluded + self.skipped

    def __repr__(self):
        return (f"<ExportSummary exported={self.exported} excluded={self.excluded} "
                f"skipped={self.skipped} folders={self.folders}>")


def normalize_type(name: str) -> str:
    """``olMail``, ``Mail`` and ``mail`` all name the same item type"""
    name = str(name).strip()
    if name in OlObjectClass.__members__:
        name = name[2:]
    return name.lower()


def item_type(item) -> Optional[str]:
    """Return the normalized type of an item (``mail``, ``contact``...), or None"""
    if not has_field(item, "Class"):
        return None
    value = get_field(item, "Class")
    name = symbolic_name("Class", value)
    return normalize_type(name if name is not None else value)


class FolderExporter:
    """
    Exports folder trees and loose items to the file system.

    Folders are walked in pre-order: a folder's items in the order the
    folder yields them, then each subfolder in turn. Each folder's items land
    in a directory mirroring the folder's full path below the output root,
    created just before its first item is written.

    Failures of single items never stop the run. They are reported on the
    console and, when a ``skipped`` list is given, recorded in it as
    SkipRecord(item, reason). Items left out by the type filter are not
    failures and are not recorded.
    """

    def __init__(self, request: ExportRequest, skipped: list = None,
                 console: Console = None, verbose: bool = True):
        self.request = request
        self.skipped = skipped
        self.console = console or Console(stderr=True)
        self.verbose = verbose
        self.exporter = exporter_for(request.format)
        self.required_fields = referenced_fields(request.pattern) | set(self.exporter.required_fields)
        self.include_types = {normalize_type(t) for t in request.include_types or ()}
        self.exclude_types = {normalize_type(t) for t in request.exclude_types or ()}
        self.output_root = None
        self.summary = ExportSummary()
        self._stopped = False

    def stop(self):
        """Stop enumerating further items and folders; an item being written is finished first"""
        self._stopped = True

    def export(self, sources: Union[object, Iterable]) -> ExportSummary:
        """Export a folder, an item, or an iterable mixing both"""
        if is_folder(sources) or not _is_iterable(sources):
            sources = [sources]
        self._prepare_root()
        with self._progress() as progress:
            for source in sources:
                if self._stopped:
                    break
                if is_folder(source):
                    self._walk([source], progress)
                else:
                    self._export_into(source, self.output_root)
        self._report()
        return self.summary

    def export_folders(self, folders: Union[object, Iterable]) -> ExportSummary:
        """Export every item of ``folders`` and of all their subfolders"""
        if is_folder(folders):
            folders = [folders]
        self._prepare_root()
        with self._progress() as progress:
            self._walk(list(folders), progress)
        self._report()
        return self.summary

    def export_items(self, items: Iterable) -> ExportSummary:
        """Export loose items straight into the output root"""
        self._prepare_root()
        for item in items:
            if self._stopped:
                break
            self._export_into(item, self.output_root)
        self._report()
        return self.summary

    def _prepare_root(self):
        if self.output_root is not None:
            return
        root = self.request.output_root
        if not root or not str(root).strip():
            raise OutputRootError("No output directory given")
        root = os.path.abspath(os.path.expanduser(str(root)))
        try:
            ensure_directory(root)
        except OSError as e:
            raise OutputRootError(f"Cannot use output directory '{root}': {e}") from e
        self.output_root = root

    def _progress(self):
        if not self.request.progress:
            return nullcontext(None)
        return Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=self.console,
        )

    def _walk(self, folders: list, progress):
        # Explicit stack instead of recursion; children are pushed reversed
        # so they are popped in the order their parent lists them.
        stack = list(reversed(folders))
        while stack and not self._stopped:
            folder = stack.pop()
            if not is_folder(folder):
                self._error(f"Skipping invalid folder object {folder!r}: "
                            f"it has no items, full_folder_path or folders")
                continue

            self._export_folder(folder, progress)

            try:
                children = list(folder.folders)
            except ITEM_ERRORS as e:
                self._error(f"Cannot list subfolders of {folder.full_folder_path}: {e}")
                continue
            stack.extend(reversed(children))

    def _export_folder(self, folder, progress):
        self.summary.folders += 1
        output_dir = os.path.join(self.output_root, folder_directory(folder))
        try:
            if self.request.restriction:
                items = list(folder.items(self.request.restriction))
            else:
                items = list(folder.items())
        except ITEM_ERRORS as e:
            self._error(f"Cannot list items of {folder.full_folder_path}: {e}")
            return

        self._info(f"Exporting {len(items)} item(s) from {folder.full_folder_path}")
        task = None
        if progress is not None:
            task = progress.add_task(escape(folder.full_folder_path), total=len(items))

        directory_ready = False
        for item in items:
            if self._stopped:
                break
            outcome = self._export_item(item, output_dir, directory_ready)
            if task is not None:
                progress.advance(task)
            if outcome is None:
                # The folder's directory could not be created
                break
            directory_ready = directory_ready or outcome

    def _export_into(self, item, output_dir: str):
        return self._export_item(item, output_dir, directory_ready=True)

    def _export_item(self, item, output_dir: str, directory_ready: bool) -> Optional[bool]:
        """
        Export one item.

        Returns True once the output directory exists, False when the item
        was excluded or skipped before the directory was needed, and None when
        the directory could not be created.
        """
        kind = item_type(item)
        if self._is_excluded(kind):
            self.summary.excluded += 1
            self._warn(f"Excluded {kind or 'untyped'} item {_describe(item)}")
            return directory_ready

        missing = validate(item, self.required_fields) | self.exporter.missing_fields(item)
        if missing:
            self._skip(item, f"Missing field(s): {', '.join(sorted(missing))}")
            return directory_ready

        try:
            base_name = sanitize_file_name(expand(self.request.pattern, item)) or DEFAULT_FILE_NAME
        except ITEM_ERRORS as e:
            self._skip(item, f"Cannot build file name: {e}")
            return directory_ready

        if not directory_ready:
            try:
                ensure_directory(output_dir)
            except OSError as e:
                self._skip(item, f"Cannot create directory '{output_dir}': {e}")
                self._error(f"Abandoning remaining items of '{output_dir}'")
                return None

        try:
            resolved = resolve_unique_path(output_dir, base_name, self.exporter.extension,
                                           self.exporter.suffix_style, self.request.max_path)
        except ExportError as e:
            self._skip(item, str(e))
            return True

        if resolved.truncated:
            self._warn(f"File name truncated to fit the path limit: {resolved.path}")
        if resolved.suffixed:
            self._warn(f"File name already taken, saving as: {resolved.path}")

        try:
            self.exporter.export(item, resolved.path)
        except ITEM_ERRORS as e:
            self._skip(item, f"Cannot save to '{resolved.path}': {e}")
            return True

        self.summary.exported += 1
        self.summary.paths.append(resolved.path)
        self._info(f"Saved {resolved.path}")
        return True

    def _is_excluded(self, kind: Optional[str]) -> bool:
        if kind is not None and kind in self.exclude_types:
            return True
        if self.include_types and kind not in self.include_types:
            return True
        return False

    def _skip(self, item, reason: str):
        self.summary.skipped += 1
        if self.skipped is not None:
            self.skipped.append(SkipRecord(item, reason))
        self._error(f"Skipped {_describe(item)}: {reason}")

    def _report(self):
        s = self.summary
        self._info(
            f"Exported {s.exported}/{s.total} items from {s.folders} folder(s) using "
            f"{self.exporter.describe()} into {self.output_root}"
            + (f", {s.skipped} skipped" if s.skipped else "")
            + (f", {s.excluded} excluded" if s.excluded else "")
        )

    def _info(self, message: str):
        if self.verbose:
            self.console.print(escape(message))

    def _warn(self, message: str):
        if self.verbose:
            self.console.print(f"[yellow]{escape(message)}[/yellow]")

    def _error(self, message: str):
        self.console.print(f"[red]{escape(message)}[/red]")


def _describe(item) -> str:
    subject = get_field(item, "Subject") if has_field(item, "Subject") else None
    uid = getattr(item, 'uid', None)
    if subject is not None:
        return f"'{subject}'" + (f" ({uid})" if uid is not None else "")
    return repr(item)


def _is_iterable(obj) -> bool:
    # Records are single items even though MailItem and mappings support iteration
    if isinstance(obj, (str, bytes, Mapping)) or hasattr(obj, 'has_field'):
        return False
    try:
        iter(obj)
    except TypeError:
        return False
    return True


def export_folders(folders, output_root: str, pattern: str = DEFAULT_PATTERN,
                   fmt: Union[str, ExportFormat] = ExportFormat.MSG, restriction: str = None,
                   include_types: Iterable[str] = None, exclude_types: Iterable[str] = None,
                   progress: bool = False, skipped: list = None, max_path: int = MAX_PATH,
                   verbose: bool = True, console: Console = None) -> ExportSummary:
    """
    Export folders (with all their subfolders) and/or loose items.

    Args:
        folders: a folder, an item, or an iterable of folders and items
        output_root: directory to export into; relative paths are taken from
            the current working directory
        pattern: file name pattern, see mailexport.template
        fmt: ExportFormat member or its name ("msg", "eml", "html", "txt", "rtf")
        restriction: expression narrowing the items of every folder
        include_types: only export items of these types (e.g. {"Mail"})
        exclude_types: never export items of these types
        progress: show a progress bar per folder
        skipped: list receiving a SkipRecord for every item that failed
        max_path: path length ceiling, terminator included
        verbose: print per-item diagnostics (errors are always printed)

    Returns:
        ExportSummary of the run

    Raises:
        OutputRootError: the output directory cannot be used
    """
    request = ExportRequest(
        output_root=output_root,
        pattern=pattern,
        format=ExportFormat.parse(fmt),
        include_types=frozenset(include_types or ()),
        exclude_types=frozenset(exclude_types or ()),
        restriction=restriction,
        progress=progress,
        max_path=max_path,
    )
    exporter = FolderExporter(request, skipped=skipped, console=console, verbose=verbose)
    return exporter.export(folders)
