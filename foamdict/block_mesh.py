#!/usr/bin/env python3
"""
Background mesh editing for system/blockMeshDict.

The vertices list and the hex cell counts are the only parts rewritten.
"""

import math
import re
from typing import Tuple

from foamdict.brace_scanner import find_balanced_span
from foamdict.field_codec import parse_number
from foamdict.models import BoundingBox

BLOCK_MESH_PATH = "system/blockMeshDict"

EXPANSION = 0.01
DELTA_PRESETS = {"coarse": 0.4, "medium": 0.2, "fine": 0.1}

_VERTICES_RE = re.compile(r"\bvertices\b")
_HEX_PREFIX = r"(blocks[\s\S]*?hex\s*\(\s*(?:\d+\s+){7}\d+\s*\)\s*)"
_COUNTS = r"\(\s*\d+\s+\d+\s+\d+\s*\)"
_GRADED_CELLS_RE = re.compile(
    _HEX_PREFIX + _COUNTS
    + r"(\s*simpleGrading\s*\(\s*[-+.\deE]+\s+[-+.\deE]+\s+[-+.\deE]+\s*\))",
    re.MULTILINE,
)
_CELLS_RE = re.compile(_HEX_PREFIX + _COUNTS, re.MULTILINE)


class MeshDictError(ValueError):
    """A mesh dictionary lacks a section that has to be rewritten, or input is invalid."""


def format_coordinate(value: float) -> str:
    """Integers verbatim, anything else rounded to 6 decimals."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    rounded = round(value, 6)
    return str(int(rounded)) if rounded.is_integer() else repr(rounded)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def build_vertices_block(bbox: BoundingBox) -> str:
    """The ``vertices ( ... );`` list of a box enlarged by 1% per axis."""
    dx = EXPANSION * (bbox.xmax - bbox.xmin)
    dy = EXPANSION * (bbox.ymax - bbox.ymin)
    dz = EXPANSION * (bbox.zmax - bbox.zmin)
    x0, x1 = bbox.xmin - dx, bbox.xmax + dx
    y0, y1 = bbox.ymin - dy, bbox.ymax + dy
    z0, z1 = bbox.zmin - dz, bbox.zmax + dz

    def point(x, y, z):
        return f"    ({format_coordinate(x)} {format_coordinate(y)} {format_coordinate(z)})"

    lines = ["vertices", "("]
    for z in (z0, z1):
        lines += [point(x0, y0, z), point(x1, y0, z), point(x1, y1, z), point(x0, y1, z), ""]
    lines.append(");")
    return "\n".join(lines)


def replace_vertices(text: str, bbox: BoundingBox) -> str:
    """Swap the whole vertices list (and its trailing ``;``) for the box corners."""
    span = find_balanced_span(text, _VERTICES_RE, "(")
    if span is None:
        raise MeshDictError("blockMeshDict has no balanced 'vertices ( ... )' list")
    end = span.end
    while end < len(text) and (text[end].isspace() or text[end] == ";"):
        end += 1
    return text[:span.start] + build_vertices_block(bbox) + "\n\n" + text[end:]


def resolve_delta(global_resolution: str, manual_delta=None) -> float:
    """Cell size for a preset name, or a validated manual value."""
    if global_resolution == "manual":
        raw = manual_delta.replace(",", ".") if isinstance(manual_delta, str) else manual_delta
        delta = parse_number(raw)
        if delta is None or delta <= 0:
            raise MeshDictError("Manual cell size must be a positive number (e.g. 0.25 or 2e-1)")
        return delta
    return DELTA_PRESETS.get(global_resolution, DELTA_PRESETS["medium"])


def triple_from_bbox(bbox: BoundingBox, delta: float) -> Tuple[int, int, int]:
    extents = (bbox.xmax - bbox.xmin, bbox.ymax - bbox.ymin, bbox.zmax - bbox.zmin)
    return tuple(max(1, _round_half_up(abs(extent) / delta)) for extent in extents)


def replace_cell_counts(text: str, triple: Tuple[int, int, int]) -> str:
    """Rewrite the ``(nx ny nz)`` that follows the first ``hex (...)`` in blocks."""
    counts = "({} {} {})".format(*triple)
    match = _GRADED_CELLS_RE.search(text)
    if match:
        return text[:match.start()] + match.group(1) + counts + match.group(2) + text[match.end():]
    match = _CELLS_RE.search(text)
    if match is None:
        raise MeshDictError("blockMeshDict has no 'hex (...) (nx ny nz)' cell counts")
    return text[:match.start()] + match.group(1) + counts + text[match.end():]
