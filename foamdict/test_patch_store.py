#!/usr/bin/env python3
"""
Tests for foamdict/brace_scanner.py and foamdict/patch_store.py

Run with:
    python -m foamdict.test_patch_store
"""

from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from foamdict.brace_scanner import find_balanced_span, find_keyword_block
from foamdict.patch_store import (
    find_container,
    get_block,
    list_indexed_patches,
    remove_block,
    rename_block,
    set_body,
    upsert_body,
)


U_TEXT = """FoamFile
{
    version     2.0;
    object      U;
}

boundaryField
{
    inlet_1
    {
        type            fixedValue;
        value           uniform (1 0 0);
    }

    wall_1
    {
        type            noSlip;
    }
}
"""


# ---------------------------------------------------------------------------
# BraceScanner
# ---------------------------------------------------------------------------

def test_nested_braces():
    span = find_balanced_span("a { b { c } } d", r"a\s*")
    assert span is not None
    assert (span.start, span.open_delim, span.end) == (0, 2, 13)
    assert span.inner("a { b { c } } d") == " b { c } "
    print("  PASS: test_nested_braces")


def test_parentheses():
    text = "vertices ((0 0 0) (1 1 1));"
    span = find_balanced_span(text, r"vertices", "(")
    assert span.inner(text) == "(0 0 0) (1 1 1)"
    assert text[span.end] == ";"
    print("  PASS: test_parentheses")


def test_absent_cases():
    assert find_balanced_span("nothing here", r"geometry") is None
    assert find_balanced_span("geometry;", r"geometry") is None
    assert find_balanced_span("geometry { a { b }", r"geometry") is None
    assert find_keyword_block("boundaryField\n{\n", "boundaryField") is None
    print("  PASS: test_absent_cases")


# ---------------------------------------------------------------------------
# PatchStore
# ---------------------------------------------------------------------------

def test_get_block():
    block = get_block(U_TEXT, "inlet_1")
    assert block is not None
    assert "uniform (1 0 0)" in block.inner
    assert U_TEXT[block.start:block.end].startswith("inlet_1")
    assert get_block(U_TEXT, "inlet_2") is None
    print("  PASS: test_get_block")


def test_name_boundary():
    text = "boundaryField\n{\n    my_inlet_1\n    {\n        type noSlip;\n    }\n}\n"
    assert get_block(text, "inlet_1") is None
    assert get_block(text, "my_inlet_1") is not None
    print("  PASS: test_name_boundary")


def test_remove_block():
    result = remove_block(U_TEXT, "wall_1")
    assert get_block(result, "wall_1") is None
    assert get_block(result, "inlet_1").inner == get_block(U_TEXT, "inlet_1").inner
    assert remove_block(U_TEXT, "object_9") == U_TEXT
    print("  PASS: test_remove_block")


def test_set_body_existing():
    result = set_body(U_TEXT, "wall_1", ["type            slip;"])
    assert "    wall_1\n    {\n        type            slip;\n    }" in result
    assert "noSlip" not in result
    print("  PASS: test_set_body_existing")


def test_set_body_inserts_into_boundary_field():
    result = set_body(U_TEXT, "outlet_1", ["type            zeroGradient;"])
    container = find_container(result)
    assert "outlet_1" in container.inner
    assert result.rstrip().endswith("    outlet_1\n    {\n        type            zeroGradient;\n    }\n}")
    print("  PASS: test_set_body_inserts_into_boundary_field")


def test_set_body_creates_boundary_field():
    text = "FoamFile\n{\n    object      T;\n}\n"
    result = set_body(text, "inlet_1", ["type            fixedValue;"])
    assert result.startswith(text.rstrip())
    assert result.endswith(
        "boundaryField\n{\n    inlet_1\n    {\n        type            fixedValue;\n    }\n}\n"
    )
    print("  PASS: test_set_body_creates_boundary_field")


def test_untouched_region_preserved():
    before = get_block(U_TEXT, "wall_1")
    result = set_body(U_TEXT, "inlet_1", ["type            zeroGradient;"])
    after = get_block(result, "wall_1")
    assert result[after.start:after.end] == U_TEXT[before.start:before.end]
    print("  PASS: test_untouched_region_preserved")


def test_upsert_keeps_existing():
    assert upsert_body(U_TEXT, "inlet_1", ["type            slip;"]) == U_TEXT
    result = upsert_body(U_TEXT, "inlet_2", ["type            slip;"])
    assert get_block(result, "inlet_2") is not None
    print("  PASS: test_upsert_keeps_existing")


def test_rename_block():
    result = rename_block(U_TEXT, "wall_1", "wall_2")
    assert get_block(result, "wall_1") is None
    assert get_block(result, "wall_2").inner == get_block(U_TEXT, "wall_1").inner
    assert rename_block(U_TEXT, "missing", "other") == U_TEXT
    print("  PASS: test_rename_block")


def test_malformed_input_is_inert():
    text = "boundaryField\n{\n    wall_1\n    {\n        type noSlip;\n    }\n"
    assert get_block(text, "boundaryField") is None

    result = set_body(text, "inlet_1", ["type            fixedValue;"])
    assert result.startswith(text.rstrip())
    assert result.count("boundaryField") == 2
    assert "inlet_1" in find_container(result).inner
    assert get_block(result, "inlet_1") is not None
    print("  PASS: test_malformed_input_is_inert")


def test_list_indexed_patches():
    text = ("boundaryField\n{\n"
            "    inlet_3 { type a; }\n"
            "    inlet_1 { type a; }\n"
            "    inlet_1 { type b; }\n"
            "    my_inlet_2 { type c; }\n"
            "    inlet_4;\n"
            "}\n")
    assert list_indexed_patches(text, "inlet") == [1, 3]
    assert list_indexed_patches(text, "outlet") == []
    print("  PASS: test_list_indexed_patches")


if __name__ == "__main__":
    print("Running patch store tests...")
    test_nested_braces()
    test_parentheses()
    test_absent_cases()
    test_get_block()
    test_name_boundary()
    test_remove_block()
    test_set_body_existing()
    test_set_body_inserts_into_boundary_field()
    test_set_body_creates_boundary_field()
    test_untouched_region_preserved()
    test_upsert_keeps_existing()
    test_rename_block()
    test_malformed_input_is_inert()
    test_list_indexed_patches()
    print("\nAll patch store tests passed!")
