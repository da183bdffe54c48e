"""Diff-based property writer.

Brings a remote node tree in line with a desired property tree while
touching only the fields that differ. Each node is handled in four steps:

1. fetch the current node (a missing node counts as empty),
2. compare it with the desired properties (:func:`compute_node_diff`),
3. post the resulting Sling form fields in one request,
4. delete unwanted children concurrently, then recurse into the desired
   children one after another.

The comparison is textual: two values are equal when they format to the
same string.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import requests

from .async_utils import gather_limited
from .client import join_url
from .constants import INTERNAL_PROPS, PROP, VALUE_TYPE
from .errors import FetchError, OperationError
from .values import format_value, get_value_type, parse_value

if TYPE_CHECKING:
    from .repo import JcrRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveOptions:
    """Controls what a save may remove.

    Attributes:
        ignore_props: Property names neither compared nor written, in
            addition to the repository-maintained audit properties.
        delete_props: Delete remote properties missing from the desired
            tree (only on nodes whose desired tree names a
            ``jcr:primaryType``).
        delete_children: Delete remote child nodes missing from the desired
            tree.
    """

    ignore_props: tuple[str, ...] = ()
    delete_props: bool = False
    delete_children: bool = False


class FieldOperations:
    """Ordered multimap of Sling POST form fields.

    A field name may repeat (one entry per element of a multi-valued
    property); insertion order is kept because Sling applies ``@Patch``
    entries in the order received.
    """

    def __init__(self) -> None:
        self._items: list[tuple[str, str]] = []

    def append(self, name: str, value: str) -> None:
        self._items.append((name, value))

    def get_all(self, name: str) -> list[str]:
        return [v for k, v in self._items if k == name]

    def names(self) -> list[str]:
        return list(dict.fromkeys(k for k, _ in self._items))

    def items(self) -> list[tuple[str, str]]:
        return list(self._items)

    def __contains__(self, name: object) -> bool:
        return any(k == name for k, _ in self._items)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"FieldOperations({self._items!r})"


@dataclass
class NodeDiff:
    """Outcome of comparing one node.

    Attributes:
        operations: Form fields to post to the node; empty when the node's
            own properties already match.
        children_to_delete: Names of remote children to delete.
        child_props: Desired child trees, in desired order.
        reorder: Whether the desired child order differs from the remote
            one, in which case each child is written with ``:order``.
    """

    operations: FieldOperations = field(default_factory=FieldOperations)
    children_to_delete: list[str] = field(default_factory=list)
    child_props: dict[str, Mapping[str, Any]] = field(default_factory=dict)
    reorder: bool = False


def is_child_node(value: Any) -> bool:
    return isinstance(value, Mapping)


def change_paths(response: Any) -> list[str]:
    """Extract the changed paths from a Sling POST servlet response."""
    if not isinstance(response, Mapping):
        return []
    paths = []
    for change in response.get("changes") or ():
        if isinstance(change, Mapping):
            paths.append(str(change.get("argument", "")))
        else:
            paths.append(str(change))
    return paths


def _format_current(current: Mapping[str, Any], name: str, value: Any) -> str:
    # The remoting servlet renders dates as strings with their original
    # offset; normalize them the way desired dates are formatted.
    hint = str(current.get(":" + name, "")).removesuffix("[]")
    if hint == VALUE_TYPE.date and isinstance(value, str):
        try:
            return format_value(parse_value(value, VALUE_TYPE.date))
        except ValueError:
            return value
    return format_value(value)


def compute_node_diff(
    current: Mapping[str, Any],
    desired: Mapping[str, Any],
    options: SaveOptions | None = None,
    order: int | None = None,
) -> NodeDiff:
    """Compare the remote node *current* with *desired*.

    Args:
        current: Remote node as fetched at depth 0 (children are ``{}``).
        desired: Desired property tree; ``":name"`` keys carry type hints.
        options: Deletion and ignore settings.
        order: Position to move the node to among its siblings, or None.

    Returns:
        The operations for this node and the child work to do next.

    Raises:
        ValueError: If a desired value is not a scalar, list or mapping.
    """
    options = options or SaveOptions()
    ignored = (*INTERNAL_PROPS, *options.ignore_props)
    current = {k: v for k, v in current.items() if k not in ignored}
    desired = {k: v for k, v in desired.items() if k not in ignored}
    diff = NodeDiff()
    ops = diff.operations

    for name, value in current.items():
        if name in desired:
            continue
        if name.startswith(":"):
            desired[name] = value
        elif is_child_node(value):
            if options.delete_children:
                diff.children_to_delete.append(name)
        elif options.delete_props and desired.get(PROP.jcr_primary_type):
            # A node without jcr:primaryType is a placeholder for a node
            # defined elsewhere; its missing properties are kept.
            ops.append(name + "@Delete", "")

    for name, value in desired.items():
        if name.startswith(":"):
            continue
        if is_child_node(value):
            diff.child_props[name] = value
            continue

        existing = current.get(name)
        if isinstance(value, (list, tuple)):
            formatted = [format_value(v) for v in value]
            if isinstance(existing, (list, tuple)) and formatted == [
                _format_current(current, name, v) for v in existing
            ]:
                continue
            if not value and existing:
                ops.append(name + "@Patch", "true")
                for v in existing if isinstance(existing, (list, tuple)) else [existing]:
                    ops.append(name, "-" + format_value(v))
            else:
                for text in formatted:
                    ops.append(name, text)
        elif get_value_type(value):
            text = format_value(value)
            if name in current and text == _format_current(current, name, existing):
                continue
            ops.append(name, text)
        else:
            raise ValueError(
                f"Unsupported value for property '{name}': {value!r}"
            )

        type_hint = desired.get(":" + name) or get_value_type(value)
        if type_hint:
            ops.append(name + "@TypeHint", type_hint)

    if order is not None:
        ops.append(":order", str(order))

    desired_children = list(diff.child_props)
    current_children = [k for k in current if k in diff.child_props]
    diff.reorder = any(
        desired_children[i] != name for i, name in enumerate(current_children)
    )
    return diff


class PropertyWriter:
    """Writes property trees through a :class:`JcrRepository`."""

    def __init__(self, repository: JcrRepository):
        self.repository = repository

    async def reconcile(
        self,
        url: str,
        properties: Mapping[str, Any],
        options: SaveOptions | None = None,
        order: int | None = None,
    ) -> list[str]:
        """Make the node at *url* and its descendants match *properties*.

        Args:
            url: Node URL.
            properties: Desired property tree.
            options: Deletion and ignore settings.
            order: Sibling position for the root node, or None to leave it.

        Returns:
            Paths the server reported as changed; empty when the tree was
            already consistent.

        Raises:
            OperationError: If a request fails. Nodes written before the
                failure keep their new state.
            ValueError: If the tree contains an unsupported value.
        """
        options = options or SaveOptions()
        changes: list[str] = []
        try:
            await self._process_node(url, properties, options, order, changes)
        except (FetchError, OperationError, requests.RequestException) as e:
            message = f"Unable to update {url}: {e}"
            logger.error(message)
            raise OperationError(message) from e
        if changes:
            logger.info("Updated %s", url)
        return changes

    async def _process_node(
        self,
        url: str,
        properties: Mapping[str, Any],
        options: SaveOptions,
        order: int | None,
        changes: list[str],
    ) -> None:
        try:
            current = await self.repository.fetch_node(url)
        except FetchError as e:
            if not e.is_not_found:
                raise
            current = {}

        diff = compute_node_diff(current, properties, options, order)
        if diff.operations:
            response = await self.repository.post(url, diff.operations.items())
            changes.extend(change_paths(response))

        if diff.children_to_delete:
            await gather_limited(
                [
                    self.repository.delete_node(join_url(url, name))
                    for name in diff.children_to_delete
                ]
            )

        for index, (name, child) in enumerate(diff.child_props.items()):
            await self._process_node(
                join_url(url, name),
                child,
                options,
                index if diff.reorder else None,
                changes,
            )
