#!/usr/bin/env python3
"""
Tests for foamdict/block_mesh.py

Run with:
    python -m foamdict.test_block_mesh
"""

from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from foamdict.block_mesh import (
    MeshDictError,
    build_vertices_block,
    format_coordinate,
    replace_cell_counts,
    replace_vertices,
    resolve_delta,
    triple_from_bbox,
)
from foamdict.models import BoundingBox

ROOM = BoundingBox(xmin=0, ymin=0, zmin=0, xmax=10, ymax=6, zmax=3)

BLOCK_MESH = """scale   1;

vertices
(
    (0 0 0)
    (1 0 0)
    (1 1 0)
    (0 1 0)
    (0 0 1)
    (1 0 1)
    (1 1 1)
    (0 1 1)
);

blocks
(
    hex (0 1 2 3 4 5 6 7) (10 10 10) simpleGrading (1 1 1)
);

edges
(
);
"""


def test_format_coordinate():
    assert format_coordinate(3) == "3"
    assert format_coordinate(-2.0) == "-2"
    assert format_coordinate(0.1 + 0.2) == "0.3"
    assert format_coordinate(1.23456789) == "1.234568"
    print("  PASS: test_format_coordinate")


def test_vertices_expanded_one_percent():
    block = build_vertices_block(ROOM)
    lines = block.splitlines()
    assert lines[0] == "vertices"
    assert lines[-1] == ");"
    assert "    (-0.1 -0.06 -0.03)" in lines
    assert "    (10.1 6.06 3.03)" in lines
    assert "    (10.1 -0.06 -0.03)" in lines
    assert "    (-0.1 6.06 3.03)" in lines
    assert len([line for line in lines if line.startswith("    (")]) == 8
    print("  PASS: test_vertices_expanded_one_percent")


def test_replace_vertices():
    result = replace_vertices(BLOCK_MESH, ROOM)
    assert "(1 1 0)" not in result
    assert "(10.1 6.06 3.03)" in result
    assert result.count("vertices") == 1
    assert result.startswith("scale   1;\n\nvertices\n(")
    assert ");\n\nblocks\n(" in result
    assert replace_vertices(result, ROOM) == result
    print("  PASS: test_replace_vertices")


def test_replace_vertices_missing():
    try:
        replace_vertices("blocks ( );", ROOM)
        assert False, "expected MeshDictError"
    except MeshDictError:
        pass
    print("  PASS: test_replace_vertices_missing")


def test_triple_from_bbox():
    assert triple_from_bbox(ROOM, 0.2) == (50, 30, 15)
    assert triple_from_bbox(ROOM, 0.1) == (100, 60, 30)
    flat = BoundingBox(xmin=0, ymin=0, zmin=0, xmax=1, ymax=1, zmax=0)
    assert triple_from_bbox(flat, 0.5) == (2, 2, 1)
    assert triple_from_bbox(flat, 10) == (1, 1, 1)
    print("  PASS: test_triple_from_bbox")


def test_replace_cell_counts():
    result = replace_cell_counts(BLOCK_MESH, (50, 30, 15))
    assert "hex (0 1 2 3 4 5 6 7) (50 30 15) simpleGrading (1 1 1)" in result
    assert result.replace("(50 30 15)", "(10 10 10)") == BLOCK_MESH

    ungraded = "blocks\n(\n    hex (0 1 2 3 4 5 6 7) (4 4 4)\n);\n"
    assert "(7 8 9)" in replace_cell_counts(ungraded, (7, 8, 9))
    print("  PASS: test_replace_cell_counts")


def test_replace_cell_counts_missing():
    try:
        replace_cell_counts("blocks\n(\n);\n", (1, 1, 1))
        assert False, "expected MeshDictError"
    except MeshDictError:
        pass
    print("  PASS: test_replace_cell_counts_missing")


def test_resolve_delta():
    assert resolve_delta("coarse") == 0.4
    assert resolve_delta("medium") == 0.2
    assert resolve_delta("fine") == 0.1
    assert resolve_delta("manual", "0,25") == 0.25
    assert resolve_delta("manual", "2e-1") == 0.2
    assert resolve_delta("manual", 0.5) == 0.5
    for bad in (None, "", "abc", "0", -1):
        try:
            resolve_delta("manual", bad)
            assert False, f"expected MeshDictError for {bad!r}"
        except MeshDictError:
            pass
    print("  PASS: test_resolve_delta")


if __name__ == "__main__":
    print("Running block mesh tests...")
    test_format_coordinate()
    test_vertices_expanded_one_percent()
    test_replace_vertices()
    test_replace_vertices_missing()
    test_triple_from_bbox()
    test_replace_cell_counts()
    test_replace_cell_counts_missing()
    test_resolve_delta()
    print("\nAll block mesh tests passed!")
