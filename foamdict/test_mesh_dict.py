#!/usr/bin/env python3
"""
Tests for foamdict/mesh_dict.py

Run with:
    python -m foamdict.test_mesh_dict
"""

import re
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from foamdict.block_mesh import MeshDictError
from foamdict.brace_scanner import find_keyword_block
from foamdict.case_files import CaseContext
from foamdict.mesh_dict import (
    FEATURE_PATH,
    SNAPPY_PATH,
    apply_mesh_settings,
    detect_geometry_counts,
    detect_local_resolution,
    infer_checklist,
    list_feature_entries,
    load_mesh_settings,
    read_location_in_mesh,
    replace_location_in_mesh,
    rewrite_features,
    rewrite_geometry,
    update_feature_extract,
)
from foamdict.models import BoundingBox, MeshChecklist, MeshSettings

TEMPLATE = Path(__file__).parent / "templates" / "hvac_case"
ROOM = BoundingBox(xmin=0, ymin=0, zmin=0, xmax=10, ymax=6, zmax=3)
COUNTS = {"inlet": 2, "object": 1, "wall": 1, "outlet": 1}


@contextmanager
def _case():
    with tempfile.TemporaryDirectory() as tmpdir:
        case_dir = Path(tmpdir) / "case"
        shutil.copytree(TEMPLATE, case_dir)
        yield case_dir


def _snappy() -> str:
    return (TEMPLATE / SNAPPY_PATH).read_text()


def _features() -> str:
    return (TEMPLATE / FEATURE_PATH).read_text()


def _section(text: str, keyword: str) -> str:
    return find_keyword_block(text, keyword).inner(text)


def test_rewrite_geometry():
    checklist = MeshChecklist(object=False, wind=True)
    result = rewrite_geometry(_snappy(), checklist, COUNTS, (2, 3))
    geometry = _section(result, "geometry")
    assert "    wind.stl { type triSurfaceMesh; name wind; }" in geometry
    assert "inlet_2.stl" in geometry
    assert "object_1" not in geometry

    surfaces = _section(result, "refinementSurfaces")
    assert f"{'inlet_2':<14} {{ level (0 1); }}" in surfaces
    assert f"{'wind':<14} {{ level (0 0); }}" in surfaces
    assert "object_1" not in surfaces
    # everything outside the two sections is kept
    assert "locationInMesh (5 3 1.5);" in result
    assert "maxGlobalCells      4000000;" in result
    print("  PASS: test_rewrite_geometry")


def test_object_levels_follow_local_resolution():
    result = rewrite_geometry(_snappy(), MeshChecklist(), COUNTS, (3, 4))
    assert f"{'object_1':<14} {{ level (3 4); }}" in result
    assert detect_local_resolution(result) == "fine"
    print("  PASS: test_object_levels_follow_local_resolution")


def test_rewrite_geometry_missing_section():
    text = _snappy().replace("geometry\n{", "shapes\n{")
    try:
        rewrite_geometry(text, MeshChecklist(), COUNTS, (2, 3))
        assert False, "expected MeshDictError"
    except MeshDictError:
        pass
    print("  PASS: test_rewrite_geometry_missing_section")


def test_rewrite_features():
    checklist = MeshChecklist(wall=False)
    once = rewrite_features(_snappy(), checklist, COUNTS)
    twice = rewrite_features(once, checklist, COUNTS)
    assert once == twice
    assert len(re.findall(r"\bfeatures\s*\(", once)) == 1
    assert '{ file "inlet_2.eMesh"; level 2; }' in once
    assert "wall_1.eMesh" not in once
    assert "outlet_1.eMesh" not in once
    assert "nCellsBetweenLevels 3;\n    features\n    (" in once
    print("  PASS: test_rewrite_features")


def test_rewrite_features_merges_duplicates():
    text = _snappy().replace(
        "    refinementSurfaces",
        "    features\n    (\n        { file \"old.eMesh\"; level 1; }\n    );\n\n    refinementSurfaces",
    )
    result = rewrite_features(text, MeshChecklist(), COUNTS)
    assert "old.eMesh" not in result
    assert len(re.findall(r"\bfeatures\s*\(", result)) == 1
    print("  PASS: test_rewrite_features_merges_duplicates")


def test_location_in_mesh():
    result = replace_location_in_mesh(_snappy(), (1, 2.5, -0.75))
    assert "locationInMesh (1 2.5 -0.75);" in result
    assert read_location_in_mesh(result) == (1.0, 2.5, -0.75)

    without = _snappy().replace("    locationInMesh (5 3 1.5);\n", "")
    appended = replace_location_in_mesh(without, (4, 4, 1))
    assert "locationInMesh (4 4 1);" in _section(appended, "castellatedMeshControls")
    assert read_location_in_mesh("nothing here") is None
    print("  PASS: test_location_in_mesh")


def test_infer_checklist():
    checklist = infer_checklist(_snappy())
    assert checklist.ceiling and checklist.floor and checklist.inlet
    assert checklist.object and checklist.wall and checklist.outlet
    assert not checklist.wind

    empty = infer_checklist("castellatedMeshControls\n{\n}\n")
    assert all(getattr(empty, name) for name in MeshChecklist.model_fields)
    print("  PASS: test_infer_checklist")


def test_detect_local_resolution():
    assert detect_local_resolution(_snappy()) == "medium"
    odd = _snappy().replace("object_1       { level (2 3); }", "object_1       { level (5 7); }")
    assert detect_local_resolution(odd) is None
    print("  PASS: test_detect_local_resolution")


def test_detect_geometry_counts():
    counts = detect_geometry_counts(["inlet_1.stl", "inlet_3.STL", "wall_2.obj", "floor.stl", "notes.txt"])
    assert counts == {"inlet": 3, "object": 0, "wall": 2, "outlet": 0}
    print("  PASS: test_detect_geometry_counts")


def test_feature_extract_update():
    checklist = MeshChecklist()
    grown = update_feature_extract(_features(), checklist, COUNTS)
    assert list_feature_entries(grown, "inlet") == [1, 2]
    assert update_feature_extract(grown, checklist, COUNTS) == grown

    shrunk = update_feature_extract(grown, checklist, {**COUNTS, "inlet": 1})
    assert list_feature_entries(shrunk, "inlet") == [1]

    no_walls = update_feature_extract(grown, MeshChecklist(wall=False), COUNTS)
    assert list_feature_entries(no_walls, "wall") == []
    assert "wall_1.stl" not in no_walls
    assert list_feature_entries(no_walls, "object") == [1]
    print("  PASS: test_feature_extract_update")


def test_feature_extract_legacy_entry():
    text = _features() + "\nobject.stl\n{\n    includedAngle       120;\n}\n"
    result = update_feature_extract(text, MeshChecklist(object=False), COUNTS)
    assert "object.stl" not in result
    assert "object_1.stl" not in result
    assert "inlet_1.stl" in result
    print("  PASS: test_feature_extract_legacy_entry")


def test_apply_mesh_settings():
    with _case() as case_dir:
        settings = MeshSettings(counts={"inlet": 2}, global_resolution="medium")
        result = apply_mesh_settings(CaseContext(case_dir), settings, ROOM)
        assert result.ok, result.error
        assert result.written == [FEATURE_PATH, "system/blockMeshDict", SNAPPY_PATH]
        assert result.delta == 0.2
        assert result.cells == (50, 30, 15)
        assert result.location == (5.0, 3.0, 1.5)
        assert result.location_source == "auto-midpoint"

        block = (case_dir / "system" / "blockMeshDict").read_text()
        assert "(10.1 6.06 3.03)" in block
        assert "(50 30 15) simpleGrading" in block
        snappy = (case_dir / SNAPPY_PATH).read_text()
        assert "inlet_2.stl" in snappy
        assert "locationInMesh (5 3 1.5);" in snappy
        assert "inlet_2.stl" in (case_dir / FEATURE_PATH).read_text()
    print("  PASS: test_apply_mesh_settings")


def test_apply_mesh_manual_location():
    with _case() as case_dir:
        settings = MeshSettings(location_mode="manual", location=[1, "2", 0.5],
                                global_resolution="manual", manual_delta="0,5")
        result = apply_mesh_settings(CaseContext(case_dir), settings, ROOM)
        assert result.ok, result.error
        assert result.cells == (20, 12, 6)
        assert result.location_source == "manual"
        assert "locationInMesh (1 2 0.5);" in (case_dir / SNAPPY_PATH).read_text()
    print("  PASS: test_apply_mesh_manual_location")


def test_apply_mesh_invalid_delta_writes_nothing():
    with _case() as case_dir:
        before = {p.name: p.read_text() for p in (case_dir / "system").iterdir()}
        settings = MeshSettings(global_resolution="manual", manual_delta="abc")
        result = apply_mesh_settings(CaseContext(case_dir), settings, ROOM)
        assert not result.ok
        assert "Manual cell size" in result.error
        assert result.written == []
        after = {p.name: p.read_text() for p in (case_dir / "system").iterdir()}
        assert before == after
    print("  PASS: test_apply_mesh_invalid_delta_writes_nothing")


def test_apply_mesh_creates_feature_dict():
    with _case() as case_dir:
        (case_dir / FEATURE_PATH).unlink()
        result = apply_mesh_settings(CaseContext(case_dir), MeshSettings(), ROOM)
        assert result.ok
        text = (case_dir / FEATURE_PATH).read_text()
        assert "object      surfaceFeatureExtractDict;" in text
        assert list_feature_entries(text, "outlet") == [1]
    print("  PASS: test_apply_mesh_creates_feature_dict")


def test_load_mesh_settings():
    with _case() as case_dir:
        tri = case_dir / "constant" / "triSurface"
        tri.mkdir(parents=True)
        (tri / "object_3.stl").write_text("solid object_3\nendsolid object_3\n")
        settings = load_mesh_settings(CaseContext(case_dir))
        assert settings.counts == {"inlet": 1, "object": 3, "wall": 1, "outlet": 1}
        assert settings.local_resolution == "medium"
        assert settings.location == [5.0, 3.0, 1.5]
        assert settings.checklist.wind is False
    print("  PASS: test_load_mesh_settings")


if __name__ == "__main__":
    print("Running mesh dictionary tests...")
    test_rewrite_geometry()
    test_object_levels_follow_local_resolution()
    test_rewrite_geometry_missing_section()
    test_rewrite_features()
    test_rewrite_features_merges_duplicates()
    test_location_in_mesh()
    test_infer_checklist()
    test_detect_local_resolution()
    test_detect_geometry_counts()
    test_feature_extract_update()
    test_feature_extract_legacy_entry()
    test_apply_mesh_settings()
    test_apply_mesh_manual_location()
    test_apply_mesh_invalid_delta_writes_nothing()
    test_apply_mesh_creates_feature_dict()
    test_load_mesh_settings()
    print("\nAll mesh dictionary tests passed!")
