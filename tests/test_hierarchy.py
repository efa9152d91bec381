from types import SimpleNamespace

from hierarchy import ancestry_path, build_children_map, descendants_of


def _loc(id, parent_id=None):
    return SimpleNamespace(id=id, parent_id=parent_id)


FOREST = [
    _loc(1),          # Building
    _loc(2, 1),       # Room
    _loc(3, 2),       # Shelf
    _loc(4, 2),       # Shelf
    _loc(5, 3),       # Bin
    _loc(6),          # Garage
    _loc(7, 6),
]


def test_children_map_groups_by_parent():
    children = build_children_map(FOREST)
    assert sorted(children[2]) == [3, 4]
    assert children[6] == [7]
    assert 5 not in children


def test_descendants_include_self_and_all_levels():
    assert descendants_of(1, FOREST) == {1, 2, 3, 4, 5}
    assert descendants_of(3, FOREST) == {3, 5}
    assert descendants_of(6, FOREST) == {6, 7}


def test_descendants_of_leaf_and_unknown_id():
    assert descendants_of(5, FOREST) == {5}
    assert descendants_of(42, FOREST) == {42}


def test_descendants_terminate_on_cycle():
    cyclic = [_loc(1, 3), _loc(2, 1), _loc(3, 2), _loc(4, 3)]
    assert descendants_of(1, cyclic) == {1, 2, 3, 4}
    assert descendants_of(4, cyclic) == {4}


def test_descendants_terminate_on_self_loop():
    assert descendants_of(1, [_loc(1, 1), _loc(2, 1)]) == {1, 2}


def test_ancestry_path_root_first():
    path = ancestry_path(5, FOREST)
    assert [loc.id for loc in path] == [1, 2, 3, 5]


def test_ancestry_path_unknown_and_dangling_parent():
    assert ancestry_path(42, FOREST) == []
    # parent row no longer exists
    assert [loc.id for loc in ancestry_path(9, [_loc(9, 100)])] == [9]


def test_ancestry_path_stops_on_cycle():
    cyclic = [_loc(1, 2), _loc(2, 1)]
    assert [loc.id for loc in ancestry_path(1, cyclic)] == [2, 1]
