# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Hierarchy sets for COA Studio.

A *hierarchy set* (e.g. "GASB General Purpose Reporting Structure") is a
named collection of per-segment trees. Each tree is a forest of
``HierarchyNode`` objects wrapping segment codes.

Tree invariants
---------------
- only summary codes may have children,
- a code appears at most once in a given tree,
- roots are summary codes (enforced by the editing helpers; trees derived
  from ``default_parent_code`` may carry detail roots for orphan codes).

Descendant expansion (``descendant_codes``) is computed by traversal every
time it is requested. Trees are small and edited in place by users, so no
cache is kept.

The editing helpers (``add_root``, ``add_child``, ``add_range_to_parent``,
``remove_node``) never mutate their input: they return a new tree, and
raise ``HierarchyError`` when the requested change would break an
invariant.
"""

import copy
import logging
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .exceptions import HierarchyError, HierarchyNodeNotFoundError, UnknownIdError
from .segments import Segment, SegmentCode, SegmentCodeStore

logger = logging.getLogger(__name__)

HIERARCHY_STATUSES = ("Active", "Inactive", "Deprecated")
SYSTEM_DEFAULT_SET_ID = "hset-system-default-code-hierarchy"


@dataclass
class HierarchyNode:
    """A node of a segment tree."""

    id: str
    segment_code: SegmentCode
    children: list["HierarchyNode"] = field(default_factory=list)

    @property
    def code(self) -> str:
        return self.segment_code.code


@dataclass
class SegmentHierarchy:
    """The tree of one segment within a hierarchy set."""

    id: str
    segment_id: str
    tree_nodes: list[HierarchyNode] = field(default_factory=list)
    description: str = ""


@dataclass
class HierarchySet:
    """Named collection of segment trees."""

    id: str
    name: str
    status: str = "Active"
    description: str = ""
    segment_hierarchies: list[SegmentHierarchy] = field(default_factory=list)
    last_modified_date: Optional[datetime] = None
    last_modified_by: Optional[str] = None

    def hierarchy_for(self, segment_id: str) -> Optional[SegmentHierarchy]:
        """Return the tree defined for ``segment_id`` in this set, if any."""
        return next(
            (h for h in self.segment_hierarchies if h.segment_id == segment_id), None
        )


@dataclass(frozen=True)
class RangeAddResult:
    """Outcome of ``add_range_to_parent``."""

    tree: list[HierarchyNode]
    added: list[str]
    skipped: list[str]


def _new_node_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def iter_nodes(tree: list[HierarchyNode]) -> Iterator[HierarchyNode]:
    """Yield every node of a tree, depth-first, in child order."""
    stack = list(reversed(tree))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_node(tree: list[HierarchyNode], node_id: str) -> Optional[HierarchyNode]:
    return next((n for n in iter_nodes(tree) if n.id == node_id), None)


def find_node_by_code(tree: list[HierarchyNode], code: str) -> Optional[HierarchyNode]:
    return next((n for n in iter_nodes(tree) if n.code == code), None)


def find_parent(tree: list[HierarchyNode], node_id: str) -> Optional[HierarchyNode]:
    """Return the parent of ``node_id``, or None for roots and unknown ids."""
    for node in iter_nodes(tree):
        if any(child.id == node_id for child in node.children):
            return node
    return None


def tree_codes(tree: list[HierarchyNode]) -> list[str]:
    return [n.code for n in iter_nodes(tree)]


def descendant_codes(node: HierarchyNode, include_children: bool = True) -> list[str]:
    """Expand a node into the codes it covers.

    Args:
        node: Node to expand.
        include_children: When False, only the node's own code is returned.
            When True, the codes of every descendant are appended.

    Returns:
        The node's code followed by its descendants' codes (depth-first).
    """
    if not include_children:
        return [node.code]
    return [n.code for n in iter_nodes([node])]


def validate_tree(
    tree: list[HierarchyNode], summary_roots: bool = True
) -> list[str]:
    """Check the tree invariants.

    Args:
        tree: Root nodes of the tree.
        summary_roots: When True, every root must be a summary code. The
            system default tree is checked with False, since codes without
            a default parent become roots there.

    Returns:
        List of violation messages (empty if the tree is valid).
    """
    errors: list[str] = []
    seen: set[str] = set()
    if summary_roots:
        for root in tree:
            if not root.segment_code.summary_indicator:
                errors.append(f"Root code {root.code} must be a summary code.")
    for node in iter_nodes(tree):
        if node.code in seen:
            errors.append(f"Code {node.code} appears more than once in the tree.")
        seen.add(node.code)
        if node.children and not node.segment_code.summary_indicator:
            errors.append(
                f"Detail code {node.code} cannot have children; only summary codes "
                "can be parents."
            )
    return errors


# ---------------------------------------------------------------------------
# Editing
# ---------------------------------------------------------------------------


def add_root(
    tree: list[HierarchyNode], code: SegmentCode, node_id: Optional[str] = None
) -> list[HierarchyNode]:
    """Return a copy of ``tree`` with ``code`` appended as a new root."""
    if find_node_by_code(tree, code.code) is not None:
        raise HierarchyError(f"Code {code.code} already exists in this hierarchy.")
    if not code.summary_indicator:
        raise HierarchyError(
            "Cannot add a detail code as a new root. Select a summary parent or "
            "add a summary code as a new root."
        )
    new_tree = copy.deepcopy(tree)
    new_tree.append(HierarchyNode(id=node_id or _new_node_id(), segment_code=code))
    return new_tree


def add_child(
    tree: list[HierarchyNode],
    parent_id: str,
    code: SegmentCode,
    node_id: Optional[str] = None,
) -> list[HierarchyNode]:
    """Return a copy of ``tree`` with ``code`` appended under ``parent_id``."""
    if find_node_by_code(tree, code.code) is not None:
        raise HierarchyError(f"Code {code.code} already exists in this hierarchy.")
    new_tree = copy.deepcopy(tree)
    parent = find_node(new_tree, parent_id)
    if parent is None:
        raise HierarchyError(f"Parent node {parent_id!r} not found.")
    if not parent.segment_code.summary_indicator:
        raise HierarchyError(
            f'Cannot add child to detail code "{parent.code}". Select a summary code.'
        )
    parent.children.append(
        HierarchyNode(id=node_id or _new_node_id(), segment_code=code)
    )
    return new_tree


def add_range_to_parent(
    tree: list[HierarchyNode],
    parent_id: str,
    all_codes: list[SegmentCode],
    start_code: str,
    end_code: str,
) -> RangeAddResult:
    """Attach every code between ``start_code`` and ``end_code`` to a parent.

    The range is taken over ``all_codes`` in the order given (the segment's
    stored order), both ends inclusive. Codes already present in the tree
    are skipped.

    Raises:
        HierarchyError: if the parent is missing or not a summary code, if a
            bound is unknown, or if the start code comes after the end code.
    """
    parent = find_node(tree, parent_id)
    if parent is None or not parent.segment_code.summary_indicator:
        raise HierarchyError("Selected parent is not valid.")
    if not start_code or not end_code:
        raise HierarchyError("Please enter Start and End Codes for the range.")

    positions = {c.code: i for i, c in enumerate(all_codes)}
    if start_code not in positions or end_code not in positions:
        raise HierarchyError("Start/End code not found.")
    start_idx = positions[start_code]
    end_idx = positions[end_code]
    if start_idx > end_idx:
        raise HierarchyError("Start Code must precede or be End Code.")

    current = tree
    added: list[str] = []
    skipped: list[str] = []
    for code in all_codes[start_idx : end_idx + 1]:
        if find_node_by_code(current, code.code) is not None:
            skipped.append(code.code)
            continue
        current = add_child(current, parent_id, code)
        added.append(code.code)

    if skipped:
        logger.info(
            "Range %s..%s under %s: skipped codes already in tree: %s",
            start_code,
            end_code,
            parent.code,
            ", ".join(skipped),
        )
    return RangeAddResult(tree=copy.deepcopy(current), added=added, skipped=skipped)


def remove_node(tree: list[HierarchyNode], node_id: str) -> list[HierarchyNode]:
    """Return a copy of ``tree`` without ``node_id`` and its subtree."""
    if find_node(tree, node_id) is None:
        raise HierarchyError(f"Node {node_id!r} not found.")

    def _strip(nodes: list[HierarchyNode]) -> list[HierarchyNode]:
        out = []
        for n in nodes:
            if n.id == node_id:
                continue
            out.append(
                HierarchyNode(
                    id=n.id,
                    segment_code=n.segment_code,
                    children=_strip(n.children),
                )
            )
        return out

    return _strip(copy.deepcopy(tree))


def build_default_tree(codes: list[SegmentCode]) -> list[HierarchyNode]:
    """Build a forest from the ``default_parent_code`` links of codes.

    A code is attached under its default parent only when the parent exists
    and is a summary code. Codes without a usable parent become roots.
    Node ids reuse the segment code ids.
    """
    if not codes:
        return []

    nodes: dict[str, HierarchyNode] = {}
    node_by_code: dict[str, HierarchyNode] = {}
    for sc in codes:
        node_id = sc.id or f"node-{sc.code}-{uuid.uuid4().hex[:9]}"
        node = HierarchyNode(id=node_id, segment_code=copy.copy(sc))
        nodes[node_id] = node
        node_by_code[sc.code] = node

    attached: set[str] = set()
    for node in nodes.values():
        parent_code = node.segment_code.default_parent_code
        if not parent_code:
            continue
        parent = node_by_code.get(parent_code)
        if parent is None:
            logger.debug(
                "Default parent %s of code %s not found; kept as root.",
                parent_code,
                node.code,
            )
            continue
        if not parent.segment_code.summary_indicator:
            logger.debug(
                "Default parent %s of code %s is not a summary code; kept as root.",
                parent_code,
                node.code,
            )
            continue
        if all(child.id != node.id for child in parent.children):
            parent.children.append(node)
            attached.add(node.id)

    return [n for n in nodes.values() if n.id not in attached]


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class HierarchyStore:
    """In-memory collection of hierarchy sets."""

    def __init__(self, hierarchy_sets: Optional[list[HierarchySet]] = None):
        self._sets: list[HierarchySet] = list(hierarchy_sets or [])

    @property
    def hierarchy_sets(self) -> list[HierarchySet]:
        return list(self._sets)

    def get(self, set_id: str) -> Optional[HierarchySet]:
        return next((s for s in self._sets if s.id == set_id), None)

    def require(self, set_id: str) -> HierarchySet:
        hset = self.get(set_id)
        if hset is None:
            raise UnknownIdError("hierarchy set", set_id)
        return hset

    def _check(self, hset: HierarchySet) -> None:
        if not hset.name or not hset.name.strip():
            raise HierarchyError("Hierarchy set name is required.")
        if hset.status not in HIERARCHY_STATUSES:
            raise HierarchyError(
                f"Invalid hierarchy set status {hset.status!r}. "
                f"Expected one of: {', '.join(HIERARCHY_STATUSES)}."
            )
        for sh in hset.segment_hierarchies:
            errors = validate_tree(
                sh.tree_nodes, summary_roots=hset.id != SYSTEM_DEFAULT_SET_ID
            )
            if errors:
                raise HierarchyError(
                    f"Invalid tree for segment {sh.segment_id!r}: " + "; ".join(errors)
                )

    def add(self, hset: HierarchySet) -> HierarchySet:
        if self.get(hset.id) is not None:
            raise HierarchyError(f"Hierarchy set id {hset.id!r} already exists.")
        self._check(hset)
        self._sets.append(hset)
        return hset

    def update(self, hset: HierarchySet) -> HierarchySet:
        self.require(hset.id)
        self._check(hset)
        self._sets = [hset if s.id == hset.id else s for s in self._sets]
        return hset

    def delete(self, set_id: str) -> None:
        self.require(set_id)
        self._sets = [s for s in self._sets if s.id != set_id]

    def rebuild_system_default(
        self, segments: list[Segment], code_store: SegmentCodeStore
    ) -> HierarchySet:
        """(Re)build the system set from every segment's default parent links."""
        hierarchies: list[SegmentHierarchy] = []
        for segment in segments:
            tree = build_default_tree(code_store.codes_for(segment.id))
            if tree:
                hierarchies.append(
                    SegmentHierarchy(
                        id=f"{SYSTEM_DEFAULT_SET_ID}-{segment.id}-sh",
                        segment_id=segment.id,
                        description=f"Default hierarchy for {segment.display_name}",
                        tree_nodes=tree,
                    )
                )

        system_set = self.get(SYSTEM_DEFAULT_SET_ID)
        if system_set is None:
            system_set = HierarchySet(
                id=SYSTEM_DEFAULT_SET_ID,
                name="Default Code Structures (System)",
                status="Active",
                description=(
                    "Automatically generated and updated based on 'Default Parent "
                    "Code' in segment code definitions. Managed by the system."
                ),
            )
            self._sets.append(system_set)
        system_set.segment_hierarchies = hierarchies
        system_set.last_modified_date = None
        system_set.last_modified_by = "System (Initial Build)"
        return system_set

    def find_node(
        self,
        node_id: str,
        segment_id: str,
        hierarchy_set_id: Optional[str] = None,
    ) -> HierarchyNode:
        """Locate a node in the tree defined for ``segment_id``.

        When ``hierarchy_set_id`` is given, only that set is searched.
        Otherwise every active set is searched in store order, and the first
        match is returned.

        Raises:
            HierarchyNodeNotFoundError: if no tree for the segment holds the node.
        """
        if hierarchy_set_id is not None:
            candidates = [self.require(hierarchy_set_id)]
        else:
            candidates = [s for s in self._sets if s.status == "Active"]

        for hset in candidates:
            sh = hset.hierarchy_for(segment_id)
            if sh is None:
                continue
            node = find_node(sh.tree_nodes, node_id)
            if node is not None:
                return node
        raise HierarchyNodeNotFoundError(node_id, segment_id)
