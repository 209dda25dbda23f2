import pytest

from coa_studio.exceptions import HierarchyError, HierarchyNodeNotFoundError
from coa_studio.hierarchies import (
    SYSTEM_DEFAULT_SET_ID,
    HierarchyNode,
    HierarchySet,
    HierarchyStore,
    SegmentHierarchy,
    add_child,
    add_range_to_parent,
    add_root,
    build_default_tree,
    descendant_codes,
    find_node_by_code,
    find_parent,
    remove_node,
    tree_codes,
    validate_tree,
)
from coa_studio.sample_data import build_workspace
from coa_studio.segments import SegmentCode


def code(value: str, summary: bool = False, parent: str = "") -> SegmentCode:
    return SegmentCode(
        id=f"c-{value}",
        code=value,
        description=value,
        summary_indicator=summary,
        default_parent_code=parent or None,
    )


def small_tree() -> list[HierarchyNode]:
    return [
        HierarchyNode(
            id="n-gov",
            segment_code=code("GOV", summary=True),
            children=[
                HierarchyNode(
                    id="n-fin",
                    segment_code=code("FIN", summary=True),
                    children=[
                        HierarchyNode(id="n-finacc", segment_code=code("FINACC"))
                    ],
                ),
                HierarchyNode(id="n-hr", segment_code=code("HR", summary=True)),
            ],
        )
    ]


def test_descendant_codes_exact_vs_children() -> None:
    tree = small_tree()
    gov = tree[0]

    assert descendant_codes(gov, include_children=False) == ["GOV"]
    expanded = descendant_codes(gov, include_children=True)
    assert expanded == ["GOV", "FIN", "FINACC", "HR"]


def test_find_parent_and_tree_codes() -> None:
    tree = small_tree()
    assert find_parent(tree, "n-finacc").id == "n-fin"
    assert find_parent(tree, "n-gov") is None
    assert tree_codes(tree) == ["GOV", "FIN", "FINACC", "HR"]


def test_validate_tree_reports_detail_parent_and_duplicates() -> None:
    tree = [
        HierarchyNode(
            id="a",
            segment_code=code("101"),
            children=[HierarchyNode(id="b", segment_code=code("101"))],
        )
    ]
    errors = validate_tree(tree)
    assert any("cannot have children" in e for e in errors)
    assert any("appears more than once" in e for e in errors)


def test_add_root_requires_summary_code() -> None:
    with pytest.raises(HierarchyError):
        add_root([], code("101"))

    tree = add_root([], code("100", summary=True), node_id="root")
    assert [n.id for n in tree] == ["root"]

    with pytest.raises(HierarchyError):
        add_root(tree, code("100", summary=True))


def test_add_child_does_not_mutate_input() -> None:
    tree = small_tree()
    new_tree = add_child(tree, "n-hr", code("HRREC"), node_id="n-hrrec")

    assert find_node_by_code(tree, "HRREC") is None
    assert find_node_by_code(new_tree, "HRREC").id == "n-hrrec"

    with pytest.raises(HierarchyError):
        add_child(tree, "n-finacc", code("X"))


def test_add_range_to_parent_skips_existing_codes() -> None:
    tree = small_tree()
    all_codes = [code("HRREC"), code("FINACC"), code("HRBEN"), code("ITINFRA")]

    result = add_range_to_parent(tree, "n-hr", all_codes, "HRREC", "HRBEN")

    assert result.added == ["HRREC", "HRBEN"]
    assert result.skipped == ["FINACC"]
    hr = find_node_by_code(result.tree, "HR")
    assert [c.code for c in hr.children] == ["HRREC", "HRBEN"]

    with pytest.raises(HierarchyError):
        add_range_to_parent(tree, "n-hr", all_codes, "HRBEN", "HRREC")


def test_remove_node_drops_subtree() -> None:
    tree = small_tree()
    new_tree = remove_node(tree, "n-fin")
    assert tree_codes(new_tree) == ["GOV", "HR"]
    assert tree_codes(tree) == ["GOV", "FIN", "FINACC", "HR"]


def test_build_default_tree_only_attaches_under_summary_parents() -> None:
    codes = [
        code("100", summary=True),
        code("101", parent="100"),
        code("101A", parent="101"),
        code("999X", parent="NOPE"),
    ]
    tree = build_default_tree(codes)

    assert [n.code for n in tree] == ["100", "101A", "999X"]
    assert [c.code for c in tree[0].children] == ["101"]


def test_store_find_node_by_set_and_across_active_sets() -> None:
    ws = build_workspace()
    store = ws.hierarchies

    node = store.find_node("gasb-fund-root-gov", "fund", "hset-gasb-1")
    assert descendant_codes(node) == ["100", "101", "103"]

    # Without a set id, every active set is searched.
    assert store.find_node("gasb-dept-child-finance", "department").code == "FIN"

    with pytest.raises(HierarchyNodeNotFoundError):
        store.find_node("gasb-fund-root-gov", "department")


def test_rebuild_system_default_set() -> None:
    ws = build_workspace()
    system = ws.hierarchies.require(SYSTEM_DEFAULT_SET_ID)

    fund_tree = system.hierarchy_for("fund").tree_nodes
    roots = [n.code for n in fund_tree]
    assert roots[:4] == ["100", "200", "300", "400"]
    # 101A's default parent is a detail code: it stays a root.
    assert "101A" in roots
    general = find_node_by_code(fund_tree, "100")
    assert [c.code for c in general.children] == ["101", "103", "105", "106"]


def test_store_rejects_invalid_sets() -> None:
    store = HierarchyStore()
    bad = HierarchySet(
        id="hs",
        name="Bad",
        segment_hierarchies=[
            SegmentHierarchy(
                id="sh",
                segment_id="fund",
                tree_nodes=[
                    HierarchyNode(
                        id="a",
                        segment_code=code("101"),
                        children=[HierarchyNode(id="b", segment_code=code("102"))],
                    )
                ],
            )
        ],
    )
    with pytest.raises(HierarchyError):
        store.add(bad)

    with pytest.raises(HierarchyError):
        store.add(HierarchySet(id="hs2", name="Odd status", status="Archived"))


def test_detail_root_is_rejected_outside_the_system_set() -> None:
    detail_root = [HierarchyNode(id="r", segment_code=code("101"))]
    assert validate_tree(detail_root) == ["Root code 101 must be a summary code."]
    assert validate_tree(detail_root, summary_roots=False) == []

    def one_tree(set_id: str) -> HierarchySet:
        return HierarchySet(
            id=set_id,
            name="Detail root",
            segment_hierarchies=[
                SegmentHierarchy(id="sh", segment_id="fund", tree_nodes=detail_root)
            ],
        )

    store = HierarchyStore()
    with pytest.raises(HierarchyError, match="must be a summary code"):
        store.add(one_tree("hs"))
    store.add(one_tree(SYSTEM_DEFAULT_SET_ID))
