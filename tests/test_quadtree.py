from floorgeom.geometry.quadtree import QuadTree
from floorgeom.types import BBox


def _cell(i, j, size=1.0):
    return BBox(i * 10.0, j * 10.0, i * 10.0 + size, j * 10.0 + size)


def test_query_returns_items_in_insertion_order_after_split():
    tree = QuadTree(BBox(0, 0, 100, 100), max_items=2)
    labels = []
    for i in range(9, -1, -1):
        for j in range(10):
            label = f"{i}-{j}"
            labels.append(label)
            tree.insert(label, _cell(i, j))

    assert len(tree) == 100
    everything = tree.query(BBox(0, 0, 100, 100))
    assert everything == labels

    corner = tree.query(BBox(0, 0, 15, 15))
    assert corner == ["1-0", "1-1", "0-0", "0-1"]


def test_remove_by_handle():
    tree = QuadTree(BBox(0, 0, 100, 100), max_items=2)
    handles = [tree.insert(i, _cell(i, i)) for i in range(6)]

    assert tree.remove(handles[2])
    assert not tree.remove(handles[2])
    assert 2 not in tree.query(BBox(0, 0, 100, 100))
    assert len(tree) == 5


def test_items_outside_world_bounds_stay_queryable():
    tree = QuadTree(BBox(0, 0, 10, 10), max_items=1)
    tree.insert("inside", BBox(1, 1, 2, 2))
    tree.insert("outside", BBox(50, 50, 60, 60))
    tree.insert("straddling", BBox(8, 8, 12, 12))

    assert tree.query(BBox(55, 55, 56, 56)) == ["outside"]
    assert tree.query(BBox(9, 9, 11, 11)) == ["straddling"]
    assert tree.query(BBox.empty()) == []


def test_empty_world_bounds_are_usable():
    tree = QuadTree(BBox.empty())
    tree.insert("a", BBox(1, 1, 1, 1))
    assert tree.query(BBox(0, 0, 2, 2)) == ["a"]
