"""
Folder records.

A folder has a full path, a collection of items (optionally narrowed by a
restriction string) and a collection of child folders. The export engine
only relies on those three members, so any object providing them can be
exported; the classes here are the ones the bundled sources build on.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, Optional

from .items import MailItem
from .restrict import compile_restriction

# Members a folder must expose to be traversed
FOLDER_MEMBERS = ("items", "full_folder_path", "folders")

SEPARATOR = "\\"


def is_folder(obj) -> bool:
    """Return True if ``obj`` has every member the traversal needs"""
    return all(hasattr(obj, member) for member in FOLDER_MEMBERS)


class Folder(ABC):
    """Abstract base class for a folder in a mail store"""

    def __init__(self, name: str, parent: Optional['Folder'] = None):
        self.name = name
        self.parent = parent

    @property
    def folder_path(self) -> str:
        """Path of the folder below its store, e.g. ``Inbox\\Projects``"""
        if self.parent is None:
            return ""
        parent_path = self.parent.folder_path
        return f"{parent_path}{SEPARATOR}{self.name}" if parent_path else self.name

    @property
    def path_names(self) -> List[str]:
        """Folder names from the store down to this folder"""
        if self.parent is None:
            return [self.name]
        return self.parent.path_names + [self.name]

    @property
    def full_folder_path(self) -> str:
        """Path including the store, e.g. ``\\\\Mailbox\\Inbox\\Projects``"""
        if self.parent is None:
            return f"{SEPARATOR}{SEPARATOR}{self.name}"
        return f"{self.parent.full_folder_path}{SEPARATOR}{self.name}"

    @abstractmethod
    def items(self, restriction: str = None) -> Iterable[MailItem]:
        """Return the folder's items, narrowed by ``restriction`` if given"""

    @property
    @abstractmethod
    def folders(self) -> List['Folder']:
        """Return the immediate child folders"""

    def __repr__(self):
        return f"<{type(self).__name__} {self.full_folder_path!r}>"


class LocalFolder(Folder):
    """A folder whose restriction is evaluated on the client side"""

    def items(self, restriction: str = None) -> Iterable[MailItem]:
        if not restriction:
            return self._iter_items()
        matches = compile_restriction(restriction)
        return (item for item in self._iter_items() if matches(item))

    @abstractmethod
    def _iter_items(self) -> Iterator[MailItem]:
        """Yield every item of the folder"""


class MemoryFolder(LocalFolder):
    """A folder held in memory, for tests and scripted exports"""

    def __init__(self, name: str, items: Iterable = (), folders: Iterable['MemoryFolder'] = (),
                 parent: Optional[Folder] = None):
        super().__init__(name, parent)
        self._items = list(items)
        self._folders = []
        for child in folders:
            self.add_folder(child)

    def add_folder(self, folder: 'MemoryFolder') -> 'MemoryFolder':
        folder.parent = self
        self._folders.append(folder)
        return folder

    def add_item(self, item) -> 'MemoryFolder':
        self._items.append(item)
        return self

    def _iter_items(self) -> Iterator[MailItem]:
        return iter(list(self._items))

    @property
    def folders(self) -> List['MemoryFolder']:
        return list(self._folders)
