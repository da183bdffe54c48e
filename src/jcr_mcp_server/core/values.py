"""Value codec for the repository's compact textual value format.

A single property value is rendered as plain text (``true``, ``42``,
``2024-01-31T10:00:00.000Z``). Multi-valued properties are rendered as
``[a,b,c]`` with embedded commas escaped. An explicit type may be carried
as a ``{Type}`` prefix, e.g. ``{Long}42`` or ``{Date}[2024-01-01T00:00:00.000Z]``.

Escapes understood when reading: ``\\uXXXX``, ``\\\\``, ``\\,``, ``\\[``,
``\\{`` and ``\\]``. The two-character text ``\\0`` denotes the empty
string, which lets ``[\\0]`` (one empty string) be told apart from ``[]``.
"""

import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple

from .constants import VALUE_TYPE

_UNESCAPE_PATTERN = re.compile(r"\\(u([0-9a-fA-F]{4})|[,\\\[\]{])")
_TYPE_PREFIX_PATTERN = re.compile(r"^\{(\w+)\}")
_ARRAY_ELEMENT_PATTERN = re.compile(r"((?:\\.|[^\\,\]])*)([,\]]|$)")
_DATE_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d*))?"
    r"(Z|[+-]\d{2}:\d{2})?$"
)
_NUMBER_PATTERN = re.compile(
    r"^\s*[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*$"
)

EMPTY_STRING_MARKER = "\\0"


class ParsedValue(NamedTuple):
    """Result of :func:`unserialize_value`.

    ``type_hint`` is the explicit ``{Type}`` prefix found in the text, with
    ``[]`` appended for arrays, or ``""`` when the type was inferred.
    """

    value: Any
    type_hint: str


def get_value_type(value: Any) -> str:
    """Infer the value type tag of a native value.

    Returns ``""`` when no tag can be inferred (mappings, ``None`` and
    empty lists).
    """
    if isinstance(value, bool):
        return VALUE_TYPE.boolean
    if isinstance(value, (int, float)):
        if isinstance(value, int) or value.is_integer():
            return VALUE_TYPE.long
        return VALUE_TYPE.double
    if isinstance(value, str):
        return VALUE_TYPE.string
    if isinstance(value, datetime):
        return VALUE_TYPE.date
    if isinstance(value, (list, tuple)):
        element_type = get_value_type(value[0]) if value else ""
        return element_type and element_type + "[]"
    return ""


def _format_number(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _format_date(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    text += f".{value.microsecond // 1000:03d}"
    return text + "Z" if value.tzinfo is not None else text


def format_value(value: Any) -> str:
    """Render a single (non-array) value as text.

    Dates become ISO-8601 with millisecond precision, aware datetimes are
    converted to UTC and suffixed with ``Z``. Microseconds are truncated to
    milliseconds, the precision JCR stores, so a round trip through text
    drops them. Integral floats render without a fractional part so
    ``5.0`` and ``5`` compare equal as text.
    """
    match value:
        case bool():
            return "true" if value else "false"
        case float():
            return _format_number(value)
        case datetime():
            return _format_date(value)
        case _:
            return str(value)


def _parse_date(text: str) -> datetime:
    match = _DATE_PATTERN.match(text)
    if match is None:
        return datetime.fromisoformat(text)
    year, month, day, hour, minute, second, fraction, tz = match.groups()
    microsecond = int((fraction or "").ljust(6, "0")[:6])
    tzinfo = None
    if tz == "Z":
        tzinfo = timezone.utc
    elif tz:
        sign = -1 if tz[0] == "-" else 1
        offset = timedelta(hours=int(tz[1:3]), minutes=int(tz[4:6]))
        tzinfo = timezone(sign * offset)
    return datetime(
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        int(second),
        microsecond,
        tzinfo=tzinfo,
    )


def _parse_number(text: str) -> float:
    stripped = text.strip()
    if stripped.lstrip("+-") == "Infinity":
        return -math.inf if stripped.startswith("-") else math.inf
    return float(stripped)


def _unescape(text: str) -> str:
    def _replace(match: re.Match) -> str:
        if match.group(2):
            return chr(int(match.group(2), 16))
        return match.group(1)

    return _UNESCAPE_PATTERN.sub(_replace, text)


def parse_value(text: str, type_hint: str = "") -> Any:
    """Parse a single value, converting it according to *type_hint*.

    Without a type hint the type is inferred: ``true``/``false`` become
    booleans, ISO-8601 timestamps become datetimes, numeric text becomes a
    float. Everything else stays a string.

    Raises:
        ValueError: If the text cannot be converted to an explicit type.
    """
    if text == EMPTY_STRING_MARKER:
        return ""
    value = _unescape(text)
    if not type_hint:
        if value in ("true", "false"):
            type_hint = VALUE_TYPE.boolean
        elif _DATE_PATTERN.match(value):
            type_hint = VALUE_TYPE.date
        elif value and _NUMBER_PATTERN.match(value):
            type_hint = VALUE_TYPE.double

    match type_hint:
        case VALUE_TYPE.boolean:
            return value == "true"
        case VALUE_TYPE.date:
            return _parse_date(value)
        case VALUE_TYPE.double:
            return _parse_number(value)
        case VALUE_TYPE.long:
            number = _parse_number(value)
            return int(number) if not math.isinf(number) else number
        case _:
            return value


def _split_array(text: str) -> list[str]:
    """Split ``[a,b,c]`` into its raw (still escaped) elements."""
    if text in ("[", "[]"):
        return []
    items: list[str] = []
    pos = 1
    while pos <= len(text):
        match = _ARRAY_ELEMENT_PATTERN.match(text, pos)
        if match is None:
            break
        items.append(match.group(1))
        if match.group(2) != ",":
            break
        pos = match.end()
    return items


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\")


def _escape_element(text: str) -> str:
    return re.sub(r"([\\,\]])", r"\\\1", text)


def serialize_value(value: Any, type_hint: str = "") -> str:
    """Serialize a value (or list of values) to the textual format.

    Dates keep millisecond precision only, see :func:`format_value`.

    Args:
        value: Scalar or list of scalars.
        type_hint: Optional explicit type; emitted as a ``{Type}`` prefix.

    Returns:
        Serialized text.
    """
    prefix = "{" + type_hint.removesuffix("[]") + "}" if type_hint else ""
    if not isinstance(value, (list, tuple)):
        text = _escape(format_value(value))
        if text[:1] in ("[", "{"):
            # disambiguate from array and type hint syntax
            text = "\\" + text
        return prefix + text
    if len(value) == 1 and value[0] == "":
        return prefix + "[" + EMPTY_STRING_MARKER + "]"
    return (
        prefix
        + "["
        + ",".join(_escape_element(format_value(v)) for v in value)
        + "]"
    )


def unserialize_value(text: str) -> ParsedValue:
    """Parse serialized text back into a native value.

    Args:
        text: Serialized value, optionally prefixed by ``{Type}``.

    Returns:
        ``ParsedValue`` with the native value and the explicit type hint
        (``""`` if none was given).
    """
    type_hint = ""
    match = _TYPE_PREFIX_PATTERN.match(text)
    if match:
        text = text[match.end() :]
        type_hint = match.group(1)
    if text.startswith("["):
        value = [parse_value(item, type_hint) for item in _split_array(text)]
        return ParsedValue(value, type_hint and type_hint + "[]")
    return ParsedValue(parse_value(text, type_hint), type_hint)


def normalize_required_type(name: str) -> str:
    """Capitalize a node-type ``requiredType`` for display.

    Repository node-type definitions report upper-case names (``STRING``,
    ``WEAKREFERENCE``). They are shown title-cased, except that
    ``WEAKREFERENCE`` becomes ``WeakReference``.
    """
    if name == "WEAKREFERENCE":
        return VALUE_TYPE.weak_reference
    return name[:1] + name[1:].lower()
