"""
Output path handling: file name sanitising, folder-to-directory mapping and
collision-free, length-bounded path resolution.
"""

import os
import re
from typing import Iterable, NamedTuple, Union

from .errors import PathNotUniqueError, PathTooLongError

# Path length ceiling, terminator included
MAX_PATH = 260

# Suffix styles used when a file name is already taken
TILDE_SUFFIX = "~{}"
PAREN_SUFFIX = " ({})"

# Base name used when a pattern expands to nothing usable
DEFAULT_FILE_NAME = "untitled"

INVALID_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


class ResolvedPath(NamedTuple):
    path: str
    truncated: bool = False
    counter: int = 0

    @property
    def suffixed(self) -> bool:
        return self.counter > 0


def sanitize_file_name(name: str) -> str:
    """Replace characters that cannot appear in a file name with underscores"""
    return INVALID_CHARS_RE.sub('_', name).rstrip(' .')


def folder_relative_path(full_folder_path: str) -> str:
    """
    Map a folder's full path to a relative output directory.

    ``\\\\Mailbox\\Inbox\\Projects`` becomes ``Mailbox/Inbox/Projects``
    (joined with the platform separator).
    """
    return join_folder_names(re.split(r'[\\/]+', full_folder_path or ''))


def join_folder_names(names: Iterable[str]) -> str:
    """Sanitize each folder name and join them into a relative directory"""
    parts = [sanitize_file_name(name) for name in names]
    parts = [p for p in parts if p]
    return os.path.join(*parts) if parts else ''


def folder_directory(folder) -> str:
    """
    Relative output directory of ``folder``.

    Folders that know their name chain (``path_names``) map one name to one
    directory, so ``A/B`` stays a single directory ``A_B``. Other folder
    objects fall back to splitting their full path.
    """
    names = getattr(folder, 'path_names', None)
    if names is None:
        return folder_relative_path(folder.full_folder_path)
    return join_folder_names(names)


def ensure_directory(path: str) -> str:
    """Create ``path`` and its parents if absent; safe to call repeatedly"""
    os.makedirs(path, exist_ok=True)
    return path


def write_file(path: str, content: Union[bytes, str]) -> None:
    """Write bytes, or text as UTF-8, to ``path``; a partly written file is removed"""
    if isinstance(content, str):
        content = content.encode('utf-8', errors='replace')
    try:
        with open(path, 'wb') as f:
            f.write(content)
    except OSError:
        if os.path.exists(path):
            os.remove(path)
        raise


def resolve_unique_path(directory: str, base_name: str, extension: str,
                        suffix_style: str = TILDE_SUFFIX, max_path: int = MAX_PATH) -> ResolvedPath:
    """
    Compute a path in ``directory`` that does not exist yet and fits in ``max_path``.

    The base name is truncated when the path would be too long, and a counter
    suffix (``~1``, ``~2``... or `` (1)``, `` (2)``...) is added before the
    extension while the path is taken. Nothing is created on disk.

    Raises:
        PathTooLongError: the directory alone leaves no room for a file name
        PathNotUniqueError: even an empty base name plus suffix is too long
    """
    extension = extension.lstrip('.')
    limit = max_path - 1
    if len(directory) + 1 + len(extension) >= limit:
        raise PathTooLongError(directory, max_path)

    prefix = os.path.join(directory, '')
    max_base_len = limit - len(extension) - 1
    truncated = False
    if len(prefix) + len(base_name) > max_base_len:
        base_name = base_name[:max(max_base_len - len(prefix), 0)].rstrip()
        truncated = True

    candidate = f"{prefix}{base_name}.{extension}"
    if not os.path.exists(candidate):
        return ResolvedPath(candidate, truncated, 0)

    counter = 1
    while True:
        suffix = suffix_style.format(counter)
        room = limit - len(prefix) - len(suffix) - len(extension) - 1
        if room < 0:
            raise PathNotUniqueError(candidate, max_path)
        stem = base_name
        if len(stem) > room:
            stem = stem[:room].rstrip()
            truncated = True
        path = f"{prefix}{stem}{suffix}.{extension}"
        if not os.path.exists(path):
            return ResolvedPath(path, truncated, counter)
        counter += 1
