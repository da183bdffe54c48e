"""Tests for node type parsing, the registry, and the per-host cache."""

import pytest

from jcr_mcp_server.core.schema import (
    NodeTypeRegistry,
    SchemaCache,
    parse_property_definition,
)

NODE_TYPES = {
    "jcr:primaryType": "rep:NodeTypes",
    "nt:base": {
        "jcr:primaryType": "nt:nodeType",
        "jcr:nodeTypeName": "nt:base",
        "jcr:isAbstract": True,
        "jcr:isMixin": False,
        "jcr:hasOrderableChildNodes": False,
        "rep:namedPropertyDefinitions": {
            "jcr:primaryType": "rep:NamedPropertyDefinitions",
            "jcr:mixinTypes": {
                "nt:base": {
                    "jcr:primaryType": "nt:propertyDefinition",
                    "jcr:name": "jcr:mixinTypes",
                    "jcr:requiredType": "NAME",
                    "jcr:multiple": True,
                    "jcr:protected": True,
                    "rep:declaringNodeType": "nt:base",
                }
            },
        },
    },
    "nt:unstructured": {
        "jcr:primaryType": "nt:nodeType",
        "jcr:nodeTypeName": "nt:unstructured",
        "jcr:supertypes": ["nt:base"],
        "jcr:hasOrderableChildNodes": True,
    },
    "mix:title": {
        "jcr:primaryType": "nt:nodeType",
        "jcr:nodeTypeName": "mix:title",
        "jcr:isMixin": True,
        "rep:namedPropertyDefinitions": {
            "jcr:title": {
                "mix:title": {
                    "jcr:name": "jcr:title",
                    "jcr:requiredType": "STRING",
                    "rep:declaringNodeType": "mix:title",
                }
            },
        },
    },
    "cq:PageContent": {
        "jcr:primaryType": "nt:nodeType",
        "jcr:nodeTypeName": "cq:PageContent",
        "jcr:supertypes": ["nt:unstructured", "mix:title"],
        "rep:namedPropertyDefinitions": {
            "cq:lastModified": {
                "cq:PageContent": {
                    "jcr:name": "cq:lastModified",
                    "jcr:requiredType": "DATE",
                    "jcr:autoCreated": True,
                }
            },
            "cq:template": {
                "cq:PageContent": {
                    "jcr:name": "cq:template",
                    "jcr:requiredType": "STRING",
                    "jcr:defaultValues": "/apps/site/templates/page",
                    "jcr:valueConstraints": ["/apps/.*", "/conf/.*"],
                }
            },
        },
        "rep:namedChildNodeDefinitions": {
            "jcr:primaryType": "rep:NamedChildNodeDefinitions",
            "cq:responsive": {},
        },
    },
}


@pytest.fixture
def registry():
    return NodeTypeRegistry.from_json(NODE_TYPES)


class TestParsing:
    def test_types_loaded(self, registry):
        assert len(registry) == 4
        assert set(registry.node_type_names()) == {
            "nt:base",
            "nt:unstructured",
            "mix:title",
            "cq:PageContent",
        }

    def test_node_type_flags(self, registry):
        base = registry.get_node_type("nt:base")
        assert base.is_abstract is True
        assert base.is_mixin is False
        assert registry.get_node_type("nt:unstructured").has_orderable_child_nodes
        assert registry.get_node_type("mix:title").is_mixin

    def test_supertypes_sorted(self, registry):
        page_content = registry.get_node_type("cq:PageContent")
        assert page_content.supertypes == ("mix:title", "nt:unstructured")

    def test_child_node_definitions(self, registry):
        assert registry.get_node_type("cq:PageContent").child_nodes == (
            "cq:responsive",
        )

    def test_property_definition(self, registry):
        props = registry.get_node_type("cq:PageContent").properties
        assert list(props) == ["cq:lastModified", "cq:template"]
        template = props["cq:template"]
        assert template.required_type == "String"
        assert template.default_values == ("/apps/site/templates/page",)
        assert template.value_constraints == ("/apps/.*", "/conf/.*")
        assert props["cq:lastModified"].required_type == "Date"
        assert props["cq:lastModified"].auto_created is True

    def test_multiple_and_protected(self, registry):
        mixins = registry.get_node_type("nt:base").properties["jcr:mixinTypes"]
        assert mixins.required_type == "Name"
        assert mixins.multiple is True
        assert mixins.protected is True
        assert mixins.declaring_node_type == "nt:base"

    def test_flat_definition(self):
        definition = parse_property_definition(
            "title", {"jcr:requiredType": "LONG", "jcr:mandatory": True}
        )
        assert definition.name == "title"
        assert definition.required_type == "Long"
        assert definition.mandatory is True


class TestRegistry:
    def test_unknown_type(self, registry):
        assert registry.get_node_type("cq:Missing") is None

    def test_filter_names(self, registry):
        assert registry.node_type_names(lambda t: t.is_mixin) == ["mix:title"]

    def test_declared_properties(self, registry):
        assert set(registry.get_node_properties("mix:title")) == {"jcr:title"}

    def test_falls_back_to_base(self, registry):
        assert set(registry.get_node_properties("nt:unstructured")) == {
            "jcr:mixinTypes"
        }
        assert set(registry.get_node_properties("cq:Missing")) == {
            "jcr:mixinTypes"
        }

    def test_effective_properties_include_inherited(self, registry):
        props = registry.get_effective_properties("cq:PageContent")
        assert set(props) == {
            "cq:lastModified",
            "cq:template",
            "jcr:title",
            "jcr:mixinTypes",
        }
        assert props["jcr:title"].declaring_node_type == "mix:title"

    def test_empty_registry(self):
        registry = NodeTypeRegistry()
        assert len(registry) == 0
        assert registry.get_node_properties("nt:base") == {}


class _CountingRepository:
    def __init__(self):
        self.requested: list[str] = []

    async def fetch_node_types(self, host):
        self.requested.append(host)
        return NODE_TYPES


class TestSchemaCache:
    async def test_loads_once_per_host(self):
        repository = _CountingRepository()
        cache = SchemaCache(repository)

        first = await cache.get("http://localhost:4502/")
        second = await cache.get("http://localhost:4502")
        assert first is second
        assert repository.requested == ["http://localhost:4502"]
        assert len(first) == 4

    async def test_hosts_cached_separately(self):
        repository = _CountingRepository()
        cache = SchemaCache(repository)
        await cache.get("http://localhost:4502")
        await cache.get("http://localhost:4503")
        assert len(repository.requested) == 2

    async def test_invalidate_host(self):
        repository = _CountingRepository()
        cache = SchemaCache(repository)
        await cache.get("http://localhost:4502")
        cache.invalidate("http://localhost:4502/")
        await cache.get("http://localhost:4502")
        assert len(repository.requested) == 2

    async def test_invalidate_all(self):
        repository = _CountingRepository()
        cache = SchemaCache(repository)
        await cache.get("http://localhost:4502")
        await cache.get("http://localhost:4503")
        cache.invalidate()
        await cache.get("http://localhost:4503")
        assert len(repository.requested) == 3
