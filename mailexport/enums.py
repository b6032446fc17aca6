"""
Enumerated item fields.

Some item fields hold a value from a closed set of symbolic statuses
(sensitivity, importance, body format, flag status, item class). The
values mirror the constants of the desktop mail client's object model, so a
pattern such as ``%Sensitivity%`` expands to ``Private`` rather than ``2``.
"""

from enum import IntEnum
from typing import Optional, Type

# Length of the "ol" namespace prefix carried by every member name
PREFIX_LENGTH = 2


class OlObjectClass(IntEnum):
    olFolder = 2
    olAppointment = 26
    olContact = 40
    olDocument = 41
    olJournal = 42
    olMail = 43
    olNote = 44
    olPost = 45
    olReport = 46
    olTask = 48
    olTaskRequest = 49
    olMeetingRequest = 53
    olMeetingCancellation = 54
    olMeetingResponseNegative = 55
    olMeetingResponsePositive = 56
    olMeetingResponseTentative = 57
    olDistributionList = 69


class OlSensitivity(IntEnum):
    olNormal = 0
    olPersonal = 1
    olPrivate = 2
    olConfidential = 3


class OlImportance(IntEnum):
    olImportanceLow = 0
    olImportanceNormal = 1
    olImportanceHigh = 2


class OlBodyFormat(IntEnum):
    olFormatUnspecified = 0
    olFormatPlain = 1
    olFormatHTML = 2
    olFormatRichText = 3


class OlFlagStatus(IntEnum):
    olNoFlag = 0
    olFlagComplete = 1
    olFlagMarked = 2


ENUMERATIONS = {
    enum.__name__: enum
    for enum in (OlObjectClass, OlSensitivity, OlImportance, OlBodyFormat, OlFlagStatus)
}


def enum_for_field(field: str) -> Optional[Type[IntEnum]]:
    """
    Return the enumeration a field's values belong to, or None.

    Fields are matched by the ``Ol<Field>`` naming convention. ``Class`` is
    the one field whose enumeration has a different name (OlObjectClass).
    """
    if field == "Class":
        return OlObjectClass
    return ENUMERATIONS.get(f"Ol{field}")


def symbolic_name(field: str, value) -> Optional[str]:
    """
    Return the short display name of an enumerated field value.

    ``("Class", 43)`` gives ``"Mail"``. Returns None when the field is not
    enumerated or the value is not a known member.
    """
    enum = enum_for_field(field)
    if enum is None:
        return None
    if isinstance(value, enum):
        member = value
    else:
        try:
            member = enum(int(value))
        except (TypeError, ValueError):
            return None
    return member.name[PREFIX_LENGTH:]
