"""Tests for .content.xml parsing, rendering and name escaping."""

from datetime import datetime, timezone

import pytest

from jcr_mcp_server.core.content_xml import (
    XML_PROLOG,
    ContentXmlError,
    convert_to_content_xml,
    encode_xml,
    filesystem_to_jcr,
    format_content_xml,
    jcr_to_filesystem,
    jcr_to_local_name,
    local_name_to_jcr,
    parse_content_xml,
)

SIMPLE_DOCUMENT = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0" '
    'xmlns:nt="http://www.jcp.org/jcr/nt/1.0" '
    'jcr:primaryType="nt:unstructured" title="Hello"/>'
)


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


def test_simple_document_round_trips_exactly():
    properties = parse_content_xml(SIMPLE_DOCUMENT)
    assert properties == {"jcr:primaryType": "nt:unstructured", "title": "Hello"}
    assert convert_to_content_xml(properties) == SIMPLE_DOCUMENT


def test_nested_document_round_trips():
    document = (
        XML_PROLOG
        + '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0" '
        'xmlns:cq="http://www.day.com/jcr/cq/1.0" '
        'xmlns:sling="http://sling.apache.org/jcr/sling/1.0" '
        'jcr:primaryType="cq:Page">'
        '<jcr:content jcr:primaryType="cq:PageContent" '
        'sling:resourceType="site/page" tags="[a,b]"/>'
        "</jcr:root>"
    )
    properties = parse_content_xml(document)
    assert properties["jcr:content"]["tags"] == ["a", "b"]
    assert convert_to_content_xml(properties) == document


def test_whitespace_in_values_round_trips():
    properties = {"jcr:primaryType": "nt:unstructured", "t": "a\tb\nc\r\n"}
    assert parse_content_xml(convert_to_content_xml(properties)) == properties


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseContentXml:
    def test_type_hints_are_kept(self):
        properties = parse_content_xml(
            '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0" '
            'count="{Long}3" flags="{Boolean}[true,false]"/>'
        )
        assert properties["count"] == 3
        assert properties[":count"] == "Long"
        assert properties["flags"] == [True, False]
        assert properties[":flags"] == "Boolean[]"

    def test_untyped_values_are_inferred(self):
        properties = parse_content_xml(
            '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0" '
            'hidden="true" modified="2024-01-31T10:00:00.000Z"/>'
        )
        assert properties["hidden"] is True
        assert properties["modified"] == datetime(
            2024, 1, 31, 10, 0, tzinfo=timezone.utc
        )
        assert ":hidden" not in properties

    def test_namespace_declarations_are_not_properties(self):
        properties = parse_content_xml(SIMPLE_DOCUMENT)
        assert not any(k.startswith("xmlns") for k in properties)

    def test_undeclared_prefix_is_accepted(self):
        properties = parse_content_xml(
            '<jcr:root jcr:primaryType="nt:unstructured" foo:bar="x"/>'
        )
        assert properties["foo:bar"] == "x"

    def test_escaped_names_are_decoded(self):
        properties = parse_content_xml(
            '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0">'
            "<_x0031_23 jcr:primaryType=\"nt:unstructured\"/></jcr:root>"
        )
        assert "123" in properties

    def test_entities_are_decoded(self):
        properties = parse_content_xml(
            '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0" '
            'text="&lt;p&gt;a &amp; b&lt;/p&gt;"/>'
        )
        assert properties["text"] == "<p>a & b</p>"

    def test_child_order_is_preserved(self):
        properties = parse_content_xml(
            '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0">'
            "<b/><a/><c/></jcr:root>"
        )
        assert list(properties) == ["b", "a", "c"]

    def test_duplicate_children_rejected(self):
        with pytest.raises(ContentXmlError, match="unique names"):
            parse_content_xml(
                '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0">'
                "<item/><item/></jcr:root>"
            )

    def test_wrong_root_rejected(self):
        with pytest.raises(ContentXmlError, match="jcr:root"):
            parse_content_xml("<root/>")

    def test_malformed_document_rejected(self):
        with pytest.raises(ContentXmlError, match="Malformed"):
            parse_content_xml("<jcr:root")

    @pytest.mark.parametrize("raw", ["{Long}abc", "{Date}garbage"])
    def test_invalid_typed_value_rejected(self, raw):
        with pytest.raises(ContentXmlError, match="'count'"):
            parse_content_xml(
                f'<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0" count="{raw}"/>'
            )

    def test_invalid_escaped_name_rejected(self):
        with pytest.raises(ContentXmlError, match="escaped name"):
            parse_content_xml(
                '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0">'
                "<_xFFFFFF_/></jcr:root>"
            )

    def test_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_content_xml("not xml")

    def test_bytes_input(self):
        properties = parse_content_xml(SIMPLE_DOCUMENT.encode("utf-8"))
        assert properties["title"] == "Hello"


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestConvertToContentXml:
    def test_internal_properties_are_dropped(self):
        xml = convert_to_content_xml(
            {
                "jcr:primaryType": "nt:unstructured",
                "jcr:created": "2024-01-01T00:00:00.000Z",
                "cq:lastModified": "2024-01-01T00:00:00.000Z",
            }
        )
        assert "jcr:created" not in xml
        assert "cq:lastModified" not in xml

    def test_type_hint_becomes_prefix(self):
        xml = convert_to_content_xml({"count": 3, ":count": "Long"})
        assert 'count="{Long}3"' in xml
        assert ":count" not in xml

    def test_attributes_precede_children(self):
        xml = convert_to_content_xml(
            {"child": {"a": "1"}, "title": "T"}
        )
        assert xml.index('title="T"') < xml.index("<child")

    def test_values_are_entity_encoded(self):
        xml = convert_to_content_xml({"text": 'say "hi" & <bye>'})
        assert 'text="say &quot;hi&quot; &amp; &lt;bye&gt;"' in xml

    def test_invalid_names_are_escaped(self):
        xml = convert_to_content_xml({"123": {}})
        assert "<_x0031_23/>" in xml

    def test_only_used_namespaces_declared(self):
        xml = convert_to_content_xml({"sling:resourceType": "x"})
        assert 'xmlns:sling="http://sling.apache.org/jcr/sling/1.0"' in xml
        assert "xmlns:cq" not in xml
        assert "xmlns:jcr" in xml


# ---------------------------------------------------------------------------
# Name escaping
# ---------------------------------------------------------------------------


class TestLocalNames:
    @pytest.mark.parametrize(
        "name, local",
        [
            ("title", "title"),
            ("jcr:content", "jcr:content"),
            ("123", "_x0031_23"),
            ("a b", "a_x0020_b"),
            ("_x0041_", "_x005f_x0041_"),
            ("-a", "_x002d_a"),
            (".a", "_x002e_a"),
            ("9-x y", "_x0039_-x_x0020_y"),
        ],
    )
    def test_escape(self, name, local):
        assert jcr_to_local_name(name) == local
        assert local_name_to_jcr(local) == name

    def test_encode_xml(self):
        assert encode_xml("a\nb\r\tc") == "a&#xa;b&#xd;&#x9;c"


class TestFilesystemNames:
    @pytest.mark.parametrize(
        "jcr_path, fs_path",
        [
            ("content/site", "content/site"),
            ("apps/site/cq:dialog", "apps/site/_cq_dialog"),
            ("content/site/jcr:content/image", "content/site/_jcr_content/image"),
            ("content/_private", "content/__private"),
        ],
    )
    def test_mapping(self, jcr_path, fs_path):
        assert jcr_to_filesystem(jcr_path) == fs_path
        assert filesystem_to_jcr(fs_path) == jcr_path


# ---------------------------------------------------------------------------
# Pretty printing
# ---------------------------------------------------------------------------


def test_format_content_xml_wraps_attributes():
    xml = convert_to_content_xml(
        {"jcr:primaryType": "nt:unstructured", "child": {"title": "T"}}
    )
    formatted = format_content_xml(xml)
    assert formatted.splitlines() == [
        XML_PROLOG,
        '<jcr:root xmlns:jcr="http://www.jcp.org/jcr/1.0" xmlns:nt="http://www.jcp.org/jcr/nt/1.0"',
        '    jcr:primaryType="nt:unstructured">',
        "    <child",
        '        title="T"/>',
        "</jcr:root>",
    ]


def test_formatted_document_parses_to_same_tree():
    properties = {"jcr:primaryType": "nt:unstructured", "child": {"title": "T"}}
    formatted = format_content_xml(convert_to_content_xml(properties))
    assert parse_content_xml(formatted) == properties
