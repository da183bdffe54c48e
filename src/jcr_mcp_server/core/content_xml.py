"""Conversion between property trees and ``.content.xml`` documents.

A content file describes one node and its descendants::

    <?xml version="1.0" encoding="UTF-8"?>
    <jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0" jcr:primaryType="nt:unstructured" title="Hello"><item jcr:primaryType="nt:unstructured"/></jcr:root>

Properties are attributes (values in the textual value format of
:mod:`jcr_mcp_server.core.values`), child nodes are child elements.
Names that are not valid XML names are escaped as ``_xHHHH_``.

Local file paths use a separate, simpler escaping for namespaced names:
``jcr:content`` is stored on disk as ``_jcr_content``.
"""

import re
from collections.abc import Mapping
from typing import Any
from xml.parsers import expat

from .constants import INTERNAL_PROPS, PROP, XMLNS
from .values import serialize_value, unserialize_value

XML_PROLOG = '<?xml version="1.0" encoding="UTF-8"?>'

_LOCAL_NAME_PATTERN = re.compile(
    r"^[\d\-.]|[^\w\-.:]|_(x[0-9a-fA-F]{4})", re.ASCII
)
_ESCAPED_NAME_PATTERN = re.compile(r"_x([0-9a-fA-F]{4,6})_")
_NAMESPACE_PATTERN = re.compile(r"^(\w+):")
_XML_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
    "\r": "&#xd;",
    "\n": "&#xa;",
    "\t": "&#x9;",
}
_XML_ENTITY_PATTERN = re.compile(r"[&<>\"'\r\n\t]")
_FS_NAMESPACED_PATTERN = re.compile(r"^([A-Za-z0-9]+):(.*)$", re.DOTALL)
_JCR_NAMESPACED_PATTERN = re.compile(r"^_([A-Za-z0-9]+)_(.*)$", re.DOTALL)


class ContentXmlError(ValueError):
    """Raised when a content file cannot be parsed."""


# ---------------------------------------------------------------------------
# Name escaping
# ---------------------------------------------------------------------------


def jcr_to_local_name(name: str) -> str:
    """Escape a JCR name so it is usable as an XML element or attribute name."""

    def _replace(match: re.Match) -> str:
        if match.group(1):
            return "_x005f_" + match.group(1)
        return f"_x{ord(match.group(0)):04x}_"

    return _LOCAL_NAME_PATTERN.sub(_replace, name)


def local_name_to_jcr(name: str) -> str:
    """Reverse :func:`jcr_to_local_name`."""
    return _ESCAPED_NAME_PATTERN.sub(
        lambda m: chr(int(m.group(1), 16)), name
    )


def jcr_to_filesystem(path: str) -> str:
    """Map a repository path to the relative path used on disk.

    Each ``ns:name`` segment becomes ``_ns_name``; a segment that already
    starts with an underscore gets a second one so the mapping stays
    reversible.
    """
    segments = []
    for segment in path.split("/"):
        match = _FS_NAMESPACED_PATTERN.match(segment)
        if match:
            segment = f"_{match.group(1)}_{match.group(2)}"
        elif segment.startswith("_"):
            segment = "_" + segment
        segments.append(segment)
    return "/".join(segments)


def filesystem_to_jcr(path: str) -> str:
    """Reverse :func:`jcr_to_filesystem`."""
    segments = []
    for segment in path.split("/"):
        if segment.startswith("__"):
            segment = segment[1:]
        else:
            match = _JCR_NAMESPACED_PATTERN.match(segment)
            if match:
                segment = f"{match.group(1)}:{match.group(2)}"
        segments.append(segment)
    return "/".join(segments)


def encode_xml(text: str) -> str:
    """Entity-encode text for use inside a double-quoted attribute."""
    return _XML_ENTITY_PATTERN.sub(lambda m: _XML_ENTITIES[m.group(0)], text)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _decode_name(name: str) -> str:
    try:
        return local_name_to_jcr(name)
    except ValueError as e:
        raise ContentXmlError(f"Invalid escaped name '{name}'") from e


def _attribute_pairs(attributes: list[str]):
    return zip(attributes[0::2], attributes[1::2])


def parse_content_xml(content: str | bytes) -> dict[str, Any]:
    """Parse a ``.content.xml`` document into a property tree.

    Explicit ``{Type}`` prefixes are kept as ``":" + name`` entries next to
    the property they describe.

    Args:
        content: XML document text.

    Returns:
        Property tree of the root element.

    Raises:
        ContentXmlError: If the document is malformed, the root element is
            not ``jcr:root``, two sibling elements share a name, or a typed
            value does not parse (``{Long}abc``).
    """
    # Namespace processing stays off so qualified names come through as
    # written (``jcr:primaryType``), declared or not.
    parser = expat.ParserCreate()
    parser.ordered_attributes = True
    stack: list[dict[str, Any]] = []
    roots: list[dict[str, Any]] = []

    def _start(name: str, attributes: list[str]) -> None:
        props: dict[str, Any] = {}
        for attr_name, raw in _attribute_pairs(attributes):
            if attr_name == "xmlns" or attr_name.startswith("xmlns:"):
                continue
            key = _decode_name(attr_name)
            try:
                parsed = unserialize_value(raw)
            except ValueError as e:
                raise ContentXmlError(
                    f"Invalid value for property '{key}': {raw!r} ({e})"
                ) from e
            if parsed.type_hint:
                props[":" + key] = parsed.type_hint
            props[key] = parsed.value

        if stack:
            parent = stack[-1]
            child_name = _decode_name(name)
            if child_name in parent:
                raise ContentXmlError(
                    f"Child nodes must have unique names: '{child_name}'"
                )
            parent[child_name] = props
        else:
            if name != PROP.jcr_root:
                raise ContentXmlError(
                    f"Root element must be <{PROP.jcr_root}>, found <{name}>"
                )
            roots.append(props)
        stack.append(props)

    def _end(name: str) -> None:
        stack.pop()

    parser.StartElementHandler = _start
    parser.EndElementHandler = _end
    try:
        parser.Parse(content, True)
    except expat.ExpatError as e:
        raise ContentXmlError(f"Malformed content XML: {e}") from e

    if not roots:
        raise ContentXmlError("Content XML has no root element")
    return roots[0]


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def convert_to_content_xml(properties: Mapping[str, Any]) -> str:
    """Render a property tree as a ``.content.xml`` document.

    Attributes precede child elements. Audit properties maintained by the
    repository (``jcr:created``, ``cq:lastModified``, ...) are left out.
    Namespace declarations are emitted on the root element only, for every
    known prefix used by a name or string value anywhere in the tree.
    """
    namespaces: dict[str, str] = {}

    def _add_namespace(value: Any) -> None:
        if not isinstance(value, str):
            return
        match = _NAMESPACE_PATTERN.match(value)
        if match and match.group(1) in XMLNS:
            prefix = match.group(1)
            namespaces.setdefault(prefix, f'xmlns:{prefix}="{XMLNS[prefix]}"')

    def _render(name: str, props: Mapping[str, Any], is_root: bool) -> str:
        local_name = jcr_to_local_name(name)
        attributes: list[str] = []
        children: list[str] = []
        for key, value in props.items():
            if key.startswith(":"):
                continue
            if isinstance(value, Mapping):
                children.append(_render(key, value, False))
            elif key in INTERNAL_PROPS:
                continue
            else:
                text = serialize_value(value, props.get(":" + key, ""))
                attributes.append(
                    f'{jcr_to_local_name(key)}="{encode_xml(text)}"'
                )
                for item in value if isinstance(value, (list, tuple)) else [value]:
                    _add_namespace(item)
            _add_namespace(key)

        if is_root:
            attributes[:0] = namespaces.values()
        head = " ".join([local_name, *attributes])
        if not children:
            return f"<{head}/>"
        return f"<{head}>{''.join(children)}</{local_name}>"

    _add_namespace(PROP.jcr_root)
    return XML_PROLOG + _render(PROP.jcr_root, properties, True)


def format_content_xml(
    xml: str, indent: str = "    ", wrap_attributes: bool = True
) -> str:
    """Pretty-print a compact content XML document.

    With *wrap_attributes*, every non-namespace attribute goes on its own
    line, one level deeper than its element, the way FileVault writes
    content files.
    """
    lines: list[str] = []
    level = 0
    for token in re.findall(r"<[^>]+>", xml):
        if token.startswith("<?"):
            lines.append(token)
            continue
        if token.startswith("</"):
            level -= 1
            lines.append(indent * level + token)
            continue

        closing = "/>" if token.endswith("/>") else ">"
        body = token[1 : -len(closing)]
        if wrap_attributes:
            name, _, rest = body.partition(" ")
            attributes = re.findall(r'[^\s=]+="[^"]*"', rest)
            head = [name] + [a for a in attributes if a.startswith("xmlns")]
            wrapped = [a for a in attributes if not a.startswith("xmlns")]
            body = " ".join(head)
            for attribute in wrapped:
                body += "\n" + indent * (level + 1) + attribute
        lines.append(indent * level + "<" + body + closing)
        if closing == ">":
            level += 1
    return "\n".join(lines) + "\n"
