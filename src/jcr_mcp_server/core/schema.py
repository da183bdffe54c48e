"""Node type definitions read from the repository.

The registry is informational: it answers "which properties does
``cq:Page`` declare" for tooling and is never consulted before a write.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .constants import NODE_TYPE, PROP
from .values import normalize_required_type

if TYPE_CHECKING:
    from .repo import JcrRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropertyDefinition:
    name: str
    required_type: str
    declaring_node_type: str | None = None
    multiple: bool = False
    mandatory: bool = False
    protected: bool = False
    auto_created: bool = False
    default_values: tuple[Any, ...] = ()
    value_constraints: tuple[str, ...] = ()


@dataclass(frozen=True)
class NodeType:
    name: str
    supertypes: tuple[str, ...] = ()
    is_abstract: bool = False
    is_mixin: bool = False
    has_orderable_child_nodes: bool = False
    properties: Mapping[str, PropertyDefinition] = field(default_factory=dict)
    child_nodes: tuple[str, ...] = ()


def _fields(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Drop type hints and ``jcr:primaryType``, strip namespace prefixes."""
    return {
        key.split(":", 1)[-1]: value
        for key, value in raw.items()
        if not key.startswith(":") and key != PROP.jcr_primary_type
    }


def _first_definition(entry: Mapping[str, Any]) -> Mapping[str, Any]:
    # Named definitions are stored one level down, keyed by the declaring
    # node type.
    for key, value in entry.items():
        if isinstance(value, Mapping) and not key.startswith(":"):
            return value
    return entry


def _as_tuple(value: Any) -> tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


def parse_property_definition(
    name: str, raw: Mapping[str, Any]
) -> PropertyDefinition:
    values = _fields(_first_definition(raw))
    return PropertyDefinition(
        name=str(values.get("name") or name),
        required_type=normalize_required_type(
            str(values.get("requiredType") or "UNDEFINED")
        ),
        declaring_node_type=values.get("declaringNodeType"),
        multiple=bool(values.get("multiple")),
        mandatory=bool(values.get("mandatory")),
        protected=bool(values.get("protected")),
        auto_created=bool(values.get("autoCreated")),
        default_values=_as_tuple(values.get("defaultValues")),
        value_constraints=_as_tuple(values.get("valueConstraints")),
    )


def parse_node_type(name: str, raw: Mapping[str, Any]) -> NodeType:
    values = _fields(raw)
    properties = {}
    for prop_name, entry in (values.get("namedPropertyDefinitions") or {}).items():
        if prop_name.startswith(":") or not isinstance(entry, Mapping):
            continue
        definition = parse_property_definition(prop_name, entry)
        properties[definition.name] = definition
    child_nodes = tuple(
        k
        for k, v in (values.get("namedChildNodeDefinitions") or {}).items()
        if isinstance(v, Mapping) and not k.startswith(":")
    )
    return NodeType(
        name=str(values.get("nodeTypeName") or name),
        supertypes=tuple(sorted(_as_tuple(values.get("supertypes")))),
        is_abstract=bool(values.get("isAbstract")),
        is_mixin=bool(values.get("isMixin")),
        has_orderable_child_nodes=bool(values.get("hasOrderableChildNodes")),
        properties=dict(sorted(properties.items())),
        child_nodes=child_nodes,
    )


class NodeTypeRegistry:
    """Lookup over the node types of one repository."""

    def __init__(self, node_types: Mapping[str, NodeType] | None = None):
        self._types: dict[str, NodeType] = dict(node_types or {})

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> NodeTypeRegistry:
        """Build from the JSON rendering of ``/jcr:system/jcr:nodeTypes``."""
        types = {}
        for name, raw in data.items():
            if isinstance(raw, Mapping) and not name.startswith(":"):
                node_type = parse_node_type(name, raw)
                types[node_type.name] = node_type
        return cls(types)

    def __len__(self) -> int:
        return len(self._types)

    def get_node_type(self, name: str) -> NodeType | None:
        return self._types.get(name)

    def node_types(self) -> list[NodeType]:
        return list(self._types.values())

    def node_type_names(
        self, filter: Callable[[NodeType], bool] | None = None
    ) -> list[str]:
        if filter is None:
            return list(self._types)
        return [name for name, t in self._types.items() if filter(t)]

    def get_node_properties(
        self, type_name: str
    ) -> Mapping[str, PropertyDefinition]:
        """Named property definitions declared by *type_name*.

        Unknown types, and types that declare no named property, fall back
        to ``nt:base``.
        """
        node_type = self._types.get(type_name)
        if node_type and node_type.properties:
            return node_type.properties
        base = self._types.get(NODE_TYPE.nt_base)
        return base.properties if base else {}

    def get_effective_properties(
        self, type_name: str
    ) -> dict[str, PropertyDefinition]:
        """Property definitions of *type_name* including inherited ones."""
        result: dict[str, PropertyDefinition] = {}
        seen: set[str] = set()
        pending = [type_name]
        while pending:
            name = pending.pop()
            node_type = self._types.get(name)
            if node_type is None or name in seen:
                continue
            seen.add(name)
            for prop_name, definition in node_type.properties.items():
                result.setdefault(prop_name, definition)
            pending.extend(reversed(node_type.supertypes))
        return result


class SchemaCache:
    """Node type registries per host, loaded on first use.

    Registries are kept until :meth:`invalidate` is called, e.g. after the
    host list changes.
    """

    def __init__(self, repository: JcrRepository):
        self.repository = repository
        self._registries: dict[str, NodeTypeRegistry] = {}
        self._lock = asyncio.Lock()

    async def get(self, host: str) -> NodeTypeRegistry:
        host = host.rstrip("/")
        async with self._lock:
            registry = self._registries.get(host)
            if registry is None:
                data = await self.repository.fetch_node_types(host)
                registry = NodeTypeRegistry.from_json(data)
                logger.info(
                    "Loaded %d node types from %s", len(registry), host
                )
                self._registries[host] = registry
            return registry

    def invalidate(self, host: str | None = None) -> None:
        if host is None:
            self._registries.clear()
        else:
            self._registries.pop(host.rstrip("/"), None)
