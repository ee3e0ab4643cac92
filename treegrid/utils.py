"""Forest construction and copy-on-write helpers.

A forest is a list of :class:`treegrid.types.TreeNode` dictionaries. The
mutation helpers never touch their input: they return a new forest where
only the nodes on the path from a root to the target are copied, every
other subtree is shared with the original.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from treegrid.exceptions import NodeNotFound, StructuralIntegrityError
from treegrid.types import Record, TreeNode, TreeSelectNode

TEMP_KEY_PREFIX = 'temp-'


def make_temp_key() -> str:
    """
    :returns: a temporary key for a record that was never persisted.
        Time-derived (uuid1) and unique across the process.
    """
    return TEMP_KEY_PREFIX + uuid.uuid1().hex


def is_temp_key(key: str) -> bool:
    return key.startswith(TEMP_KEY_PREFIX)


def _identity_key(value: Any) -> str | None:
    if value is None or value == '':
        return None
    return str(value)


def build_tree_from_flat(
    records: Iterable[Record], id_field: str, parent_field: str
) -> list[TreeNode]:
    """
    Builds a forest from a flat list of records that point to their parent.

    Children keep the input order, so callers that want a different order
    must sort the records first (usually by a ``sortOrder`` attribute).
    Records whose parent can't be found become roots.

    :raises StructuralIntegrityError: on duplicate identities or cycles.
    """
    records = list(records)
    index: dict[str, TreeNode] = {}
    for record in records:
        key = _identity_key(record.get(id_field))
        if key is None:
            raise StructuralIntegrityError(
                'Record without %r: %r' % (id_field, record))
        if key in index:
            raise StructuralIntegrityError('Duplicate identity %r' % key)
        index[key] = {'key': key, 'data': dict(record), 'children': []}

    roots: list[TreeNode] = []
    for record in records:
        node = index[str(record[id_field])]
        parent = index.get(_identity_key(record.get(parent_field)))
        if parent is not None:
            parent['children'].append(node)
        else:
            roots.append(node)

    # nodes on a parent cycle are attached to each other but never to a root
    reachable = {node['key'] for node in iter_nodes(roots)}
    if len(reachable) != len(index):
        unreachable = sorted(key for key in index if key not in reachable)
        raise StructuralIntegrityError(
            'Parent cycle between records %s' % ', '.join(unreachable))
    return roots


def map_nested_records(
    records: Iterable[Record], id_field: str, _seen: set[str] | None = None
) -> list[TreeNode]:
    """
    Wraps records that already carry their ``children`` into tree nodes.
    The nesting is kept as delivered, parent fields are not looked at.
    """
    if _seen is None:
        _seen = set()
    forest: list[TreeNode] = []
    for record in records:
        data = dict(record)
        children = data.pop('children', None) or []
        key = _identity_key(data.get(id_field)) or make_temp_key()
        if key in _seen:
            raise StructuralIntegrityError('Duplicate identity %r' % key)
        _seen.add(key)
        forest.append({
            'key': key,
            'data': data,
            'children': map_nested_records(children, id_field, _seen),
        })
    return forest


def build_forest(
    records: list[Record], id_field: str, parent_field: str | None = None
) -> list[TreeNode]:
    """
    Detects the shape of ``records`` and builds a forest out of them:

    - pre-nested when the first record has a ``children`` list,
    - flat with parent pointers when ``parent_field`` is set and present in
      the first record,
    - a flat list of roots otherwise.
    """
    if not records:
        return []
    first = records[0]
    if isinstance(first.get('children'), list):
        return map_nested_records(records, id_field)
    if parent_field and parent_field in first:
        return build_tree_from_flat(records, id_field, parent_field)
    return map_nested_records(records, id_field)


def iter_nodes(forest: Iterable[TreeNode]) -> Iterator[TreeNode]:
    "Yields every node of the forest in pre-order."
    stack = list(forest)[::-1]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(node['children'][::-1])


def flatten_forest(forest: Iterable[TreeNode]) -> list[Record]:
    ":returns: the data of every node, in pre-order."
    return [node['data'] for node in iter_nodes(forest)]


def count_total_nodes(forest: Iterable[TreeNode]) -> int:
    ":returns: the number of nodes at every depth of the forest."
    return sum(1 for _ in iter_nodes(forest))


def find_node_by_key(forest: Iterable[TreeNode], key: str) -> TreeNode | None:
    ":returns: the first node with ``key`` in pre-order, or ``None``."
    for node in iter_nodes(forest):
        if node['key'] == key:
            return node
    return None


def is_descendant_of(forest: list[TreeNode], key: str, ancestor_key: str) -> bool:
    """
    :returns: ``True`` if the node ``key`` is in the subtree of
        ``ancestor_key`` (the ancestor itself excluded).
    """
    ancestor = find_node_by_key(forest, ancestor_key)
    if ancestor is None:
        return False
    return find_node_by_key(ancestor['children'], key) is not None


def _update_path(
    nodes: list[TreeNode], key: str, fn: Callable[[TreeNode], TreeNode | None]
) -> list[TreeNode]:
    # returns ``nodes`` itself when the key is not found below it
    for index, node in enumerate(nodes):
        if node['key'] == key:
            replacement = fn(node)
            updated = list(nodes)
            if replacement is None:
                del updated[index]
            else:
                updated[index] = replacement
            return updated
        if node['children']:
            children = _update_path(node['children'], key, fn)
            if children is not node['children']:
                updated = list(nodes)
                updated[index] = {**node, 'children': children}
                return updated
    return nodes


def replace_node_data(forest: list[TreeNode], key: str, data: Record) -> list[TreeNode]:
    """
    :returns: a forest where the node ``key`` holds a copy of ``data``.
        The same forest is returned when the key is missing.
    """
    return _update_path(forest, key, lambda node: {**node, 'data': dict(data)})


def remove_node(forest: list[TreeNode], key: str) -> list[TreeNode]:
    """
    :returns: a forest without the node ``key`` and its subtree. The same
        forest is returned when the key is missing.
    """
    return _update_path(forest, key, lambda node: None)


def insert_node(
    forest: list[TreeNode],
    node: TreeNode,
    parent_key: str | None = None,
    first: bool = True,
) -> list[TreeNode]:
    """
    Adds ``node`` as a root, or as a child of ``parent_key``.

    :param first: prepends the node when ``True``, appends it otherwise.

    :raises NodeNotFound: when ``parent_key`` is not in the forest.
    """
    def add(siblings):
        return [node] + siblings if first else siblings + [node]

    if parent_key is None:
        return add(list(forest))
    updated = _update_path(
        forest, parent_key,
        lambda parent: {**parent, 'children': add(parent['children'])})
    if updated is forest:
        raise NodeNotFound('No node with key %r' % parent_key)
    return updated


def attach_parent_snapshots(forest: list[TreeNode], field: str) -> list[TreeNode]:
    """
    Stores a shallow copy of each parent's data under ``field`` in the data
    of its children. Root data is left as delivered. Works in place, so it
    is meant for freshly built forests only.
    """
    for parent in iter_nodes(forest):
        for child in parent['children']:
            child['data'][field] = dict(parent['data'])
    return forest


def map_to_tree_select_nodes(
    forest: Iterable[TreeNode], label_field: str
) -> list[TreeSelectNode]:
    ":returns: option trees labelled with ``data[label_field]``."
    return [
        {
            'key': node['key'],
            'label': node['data'].get(label_field),
            'data': node['data'],
            'children': map_to_tree_select_nodes(node['children'], label_field),
        }
        for node in forest
    ]
