from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, NamedTuple, Set, Tuple, Union

from .paths import PAREN_SUFFIX, TILDE_SUFFIX, write_file
from .validation import get_field, validate


class ExportFormat(Enum):
    """Formats an item can be exported in; the value is the file extension"""
    MSG = "msg"
    EML = "eml"
    HTML = "html"
    TXT = "txt"
    RTF = "rtf"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union[str, 'ExportFormat']) -> 'ExportFormat':
        """Accept a member, its name or its extension, case-insensitively"""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lstrip('.').upper()
        try:
            return cls[text]
        except KeyError:
            raise ValueError(
                f"Unknown export format '{value}'. Expected one of: "
                f"{', '.join(f.name for f in cls)}"
            ) from None


class SkipRecord(NamedTuple):
    """An item that could not be exported, and why"""
    item: Any
    reason: str


class Exporter(ABC):
    """Abstract base class for item exporters"""

    # Fields an item must expose before it can be exported
    required_fields: Tuple[str, ...] = ()
    # Pattern for the counter added to a file name that is already taken
    suffix_style = TILDE_SUFFIX

    def __init__(self, fmt: ExportFormat):
        self.format = fmt

    @property
    def extension(self) -> str:
        return self.format.extension

    def missing_fields(self, item) -> Set[str]:
        """Return the required fields ``item`` lacks"""
        return validate(item, self.required_fields)

    @abstractmethod
    def export(self, item, path: str):
        """Write ``item`` to ``path``. Raises OSError (or the source's error) on failure."""

    def describe(self) -> str:
        return f"{type(self).__name__}({self.format.name})"


class ItemExporter(Exporter):
    """Saves the complete item, attachments included, through the item's own save_as()"""

    required_fields = ("Subject",)

    def missing_fields(self, item) -> Set[str]:
        missing = super().missing_fields(item)
        if not callable(getattr(item, 'save_as', None)):
            missing.add("SaveAs")
        return missing

    def export(self, item, path: str):
        item.save_as(path, self.format.name)


class BodyExporter(Exporter):
    """Writes only the body of an item: no headers, no attachments"""

    suffix_style = PAREN_SUFFIX

    BODY_FIELDS = {
        ExportFormat.HTML: "HTMLBody",
        ExportFormat.TXT: "Body",
        ExportFormat.RTF: "RTFBody",
    }

    def __init__(self, fmt: ExportFormat):
        if fmt not in self.BODY_FIELDS:
            raise ValueError(f"{fmt.name} is not a body format")
        super().__init__(fmt)
        self.body_field = self.BODY_FIELDS[fmt]
        self.required_fields = (self.body_field,)

    def export(self, item, path: str):
        content = get_field(item, self.body_field)
        if content is None:
            content = b"" if self.format is ExportFormat.RTF else ""

        if self.format is ExportFormat.RTF:
            if isinstance(content, str):
                content = content.encode('utf-8')
        else:
            if isinstance(content, bytes):
                content = content.decode('utf-8', errors='replace')
        write_file(path, content)


def exporter_for(fmt: Union[str, ExportFormat]) -> Exporter:
    """Return the exporter that handles ``fmt``"""
    fmt = ExportFormat.parse(fmt)
    if fmt in BodyExporter.BODY_FIELDS:
        return BodyExporter(fmt)
    return ItemExporter(fmt)
