#!/usr/bin/env python3
"""
Mesh Dictionaries — snappyHexMeshDict and surfaceFeatureExtractDict editing.

The ``geometry`` and ``refinementSurfaces`` sections and the ``features``
list are regenerated whole from the surface checklist and counts each time.
surfaceFeatureExtractDict entries are upserted and trimmed individually so
hand-written entries for other surfaces survive.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from foamdict.block_mesh import (
    BLOCK_MESH_PATH,
    MeshDictError,
    format_coordinate,
    replace_cell_counts,
    replace_vertices,
    resolve_delta,
    triple_from_bbox,
)
from foamdict.brace_scanner import Span, find_balanced_span
from foamdict.case_files import ApplyResult, CaseContext, CaseFileError
from foamdict.field_codec import parse_number
from foamdict.models import BoundingBox, MeshChecklist, MeshSettings
from foamdict.patch_store import closing_indent

logger = logging.getLogger("mesh_dict")

SNAPPY_PATH = "system/snappyHexMeshDict"
FEATURE_PATH = "system/surfaceFeatureExtractDict"
TRI_SURFACE_DIR = "constant/triSurface"

SINGLE_SURFACES = {"ceiling": (0, 0), "floor": (0, 0), "wind": (0, 0)}
INDEXED_SURFACES = ("inlet", "object", "wall", "outlet")
INDEXED_LEVELS = {"inlet": (0, 1), "wall": (0, 0), "outlet": (0, 1)}  # object: local resolution
LOCAL_TO_LEVEL = {"coarse": (1, 2), "medium": (2, 3), "fine": (3, 4)}
FEATURE_LEVELS = {"inlet": 2, "object": 2, "wall": 2}
INCLUDED_ANGLE = 150

FEATURE_HEADER = """FoamFile
{
    version     2.0;
    format      ascii;
    class       dictionary;
    object      surfaceFeatureExtractDict;
}
"""


def _section_pattern(keyword: str, delimiter: str = "{") -> "re.Pattern":
    return re.compile(rf"\b{keyword}\s*{re.escape(delimiter)}", re.IGNORECASE | re.MULTILINE)


def _require(text: str, keyword: str) -> Span:
    span = find_balanced_span(text, _section_pattern(keyword))
    if span is None:
        raise MeshDictError(f"Could not find '{keyword} {{ ... }}' in snappyHexMeshDict")
    return span


def _replace_section(text: str, span: Span, lines: List[str]) -> str:
    closing = closing_indent(span.inner(text)) or ""
    inner = "\n" + "\n".join(lines) + "\n" + closing
    return text[:span.open_delim + 1] + inner + text[span.end - 1:]


# ---------------------------------------------------------------------------
# Checklist and counts
# ---------------------------------------------------------------------------

def indexed_counts(settings: MeshSettings) -> Dict[str, int]:
    """Checked roles get at least one surface, unchecked roles none."""
    counts = {}
    for prefix in INDEXED_SURFACES:
        enabled = getattr(settings.checklist, prefix)
        counts[prefix] = max(1, int(settings.counts.get(prefix, 1) or 1)) if enabled else 0
    return counts


def surface_names(checklist: MeshChecklist, counts: Dict[str, int]) -> List[Tuple[str, str]]:
    """(role, surface name) pairs in geometry order."""
    names = [(role, role) for role in SINGLE_SURFACES if getattr(checklist, role)]
    for prefix in INDEXED_SURFACES:
        if getattr(checklist, prefix):
            names.extend((prefix, f"{prefix}_{i}") for i in range(1, counts.get(prefix, 0) + 1))
    return names


def build_geometry_lines(checklist: MeshChecklist, counts: Dict[str, int]) -> List[str]:
    return [f"    {name}.stl {{ type triSurfaceMesh; name {name}; }}"
            for _, name in surface_names(checklist, counts)]


def build_refinement_lines(
    checklist: MeshChecklist,
    counts: Dict[str, int],
    object_levels: Tuple[int, int],
) -> List[str]:
    lines = []
    for role, name in surface_names(checklist, counts):
        if role in SINGLE_SURFACES:
            low, high = SINGLE_SURFACES[role]
        elif role == "object":
            low, high = object_levels
        else:
            low, high = INDEXED_LEVELS[role]
        lines.append(f"        {name:<14} {{ level ({low} {high}); }}")
    return lines


def build_feature_lines(checklist: MeshChecklist, counts: Dict[str, int]) -> List[str]:
    lines = []
    for prefix, level in FEATURE_LEVELS.items():
        if not getattr(checklist, prefix):
            continue
        for i in range(1, counts.get(prefix, 0) + 1):
            lines.append(f'        {{ file "{prefix}_{i}.eMesh"; level {level}; }}')
    return lines


# ---------------------------------------------------------------------------
# snappyHexMeshDict
# ---------------------------------------------------------------------------

def rewrite_geometry(
    text: str,
    checklist: MeshChecklist,
    counts: Dict[str, int],
    object_levels: Tuple[int, int],
) -> str:
    """Regenerate ``geometry{}`` and ``castellatedMeshControls/refinementSurfaces{}``."""
    text = _replace_section(text, _require(text, "geometry"), build_geometry_lines(checklist, counts))

    cmc = _require(text, "castellatedMeshControls")
    body = cmc.inner(text)
    surfaces = find_balanced_span(body, _section_pattern("refinementSurfaces"))
    if surfaces is None:
        raise MeshDictError("Could not find 'refinementSurfaces { ... }' in castellatedMeshControls")
    body = _replace_section(body, surfaces, build_refinement_lines(checklist, counts, object_levels))
    return text[:cmc.open_delim + 1] + body + text[cmc.end - 1:]


def rewrite_features(text: str, checklist: MeshChecklist, counts: Dict[str, int]) -> str:
    """Replace every ``features ( ... );`` in castellatedMeshControls with one fresh list."""
    cmc = _require(text, "castellatedMeshControls")
    body = cmc.inner(text)

    pattern = _section_pattern("features", "(")
    while True:
        span = find_balanced_span(body, pattern, "(")
        if span is None:
            break
        cut_from = len(body[:span.start].rstrip())
        cut_to = span.end
        while cut_to < len(body) and body[cut_to].isspace():
            cut_to += 1
        if cut_to < len(body) and body[cut_to] == ";":
            cut_to += 1
        else:
            cut_to = span.end
        body = body[:cut_from] + body[cut_to:]

    lines = "".join(line + "\n" for line in build_feature_lines(checklist, counts))
    block = f"\n    features\n    (\n{lines}    );"
    anchor = re.search(r"\bnCellsBetweenLevels\b[^;]*;", body)
    at = anchor.end() if anchor else len(body.rstrip())
    body = body[:at] + block + body[at:]
    return text[:cmc.open_delim + 1] + body + text[cmc.end - 1:]


_LOCATION_RE = re.compile(
    r"(\blocationInMesh\s*\()\s*[-+.\deE]+\s+[-+.\deE]+\s+[-+.\deE]+(\s*\)\s*;)", re.MULTILINE
)


def replace_location_in_mesh(text: str, location: Tuple[float, float, float]) -> str:
    vector = " ".join(format_coordinate(c) for c in location)

    def substitute(source: str) -> Optional[str]:
        match = _LOCATION_RE.search(source)
        if not match:
            return None
        return source[:match.start()] + match.group(1) + vector + match.group(2) + source[match.end():]

    cmc = find_balanced_span(text, _section_pattern("castellatedMeshControls"))
    if cmc is not None:
        body = cmc.inner(text)
        new_body = substitute(body)
        if new_body is None:
            closing = closing_indent(body) or ""
            new_body = body.rstrip() + f"\n    locationInMesh ({vector});\n" + closing
        return text[:cmc.open_delim + 1] + new_body + text[cmc.end - 1:]

    replaced = substitute(text)
    if replaced is not None:
        return replaced
    return text + f"\n\nlocationInMesh ({vector});\n"


def read_location_in_mesh(text: str) -> Optional[Tuple[float, float, float]]:
    match = re.search(r"\blocationInMesh\s*\(([^)]*)\)", text)
    if not match:
        return None
    numbers = [parse_number(tok) for tok in match.group(1).split()]
    if len(numbers) != 3 or any(n is None for n in numbers):
        return None
    return tuple(numbers)


def infer_checklist(text: str) -> MeshChecklist:
    """Which surfaces the geometry section declares; everything when nothing is recognised."""
    span = find_balanced_span(text, _section_pattern("geometry"))
    body = span.inner(text) if span else ""

    def present(name: str) -> bool:
        return bool(re.search(rf"\bname\s+{name}\s*;", body)
                    or re.search(rf"{name}\.stl", body, re.IGNORECASE))

    flags = {
        "ceiling": present("ceiling"),
        "floor": present("floor"),
        "inlet": present("inlet_1"),
        "object": present("object_1"),
        "outlet": present("outlet_1") or present("outlet"),
        "wall": present("wall_1"),
        "wind": present("wind"),
    }
    if not any(flags.values()):
        flags = {key: True for key in flags}
    return MeshChecklist(**flags)


def geometry_counts(text: str) -> Dict[str, int]:
    """Highest ``<role>_<n>.stl`` index per role in the geometry section."""
    span = find_balanced_span(text, _section_pattern("geometry"))
    body = span.inner(text) if span else ""
    counts = {}
    for prefix in INDEXED_SURFACES:
        indices = [int(n) for n in re.findall(rf"\b{prefix}_(\d+)\.stl", body)]
        counts[prefix] = max(indices, default=0)
    return counts


def detect_local_resolution(text: str) -> Optional[str]:
    """Preset whose level pair matches the first object surface in refinementSurfaces."""
    span = find_balanced_span(text, _section_pattern("refinementSurfaces"))
    if span is None:
        return None
    body = span.inner(text)
    for match in re.finditer(r"(?<!\S)(object_\d+)\s*\{", body):
        entry = find_balanced_span(body[match.start():], re.compile(r"\{"))
        if entry is None:
            continue
        level = re.search(r"\blevel\s*\(\s*(\d+)\s+(\d+)\s*\)\s*;", entry.inner(body[match.start():]))
        if level:
            pair = (int(level.group(1)), int(level.group(2)))
            for key, levels in LOCAL_TO_LEVEL.items():
                if levels == pair:
                    return key
            return None
    return None


def detect_geometry_counts(filenames: Iterable[str]) -> Dict[str, int]:
    """Indexed counts implied by ``<role>_<n>.stl|obj`` file names."""
    counts = {prefix: 0 for prefix in INDEXED_SURFACES}
    for filename in filenames:
        match = re.match(r"^(inlet|object|wall|outlet)_(\d+)\.(stl|obj)$", filename, re.IGNORECASE)
        if match:
            prefix = match.group(1).lower()
            counts[prefix] = max(counts[prefix], int(match.group(2)))
    return counts


# ---------------------------------------------------------------------------
# surfaceFeatureExtractDict
# ---------------------------------------------------------------------------

def _feature_entry_pattern(base_name: str) -> "re.Pattern":
    return re.compile(rf"(^|\n)[ \t]*{re.escape(base_name)}\.stl\s*\{{", re.MULTILINE)


def find_feature_entry(text: str, base_name: str) -> Optional[Tuple[int, int]]:
    match = _feature_entry_pattern(base_name).search(text)
    if not match:
        return None
    span = find_balanced_span(text[match.start():], re.compile(r"\{"))
    if span is None:
        return None
    return match.start() + len(match.group(1)), match.start() + span.end


def feature_entry(base_name: str, angle: int = INCLUDED_ANGLE) -> str:
    return (f"{base_name}.stl\n{{\n"
            f"    extractionMethod    extractFromSurface;\n"
            f"    includedAngle       {angle};\n}}\n")


def set_feature_entry(text: str, base_name: str, angle: int = INCLUDED_ANGLE) -> str:
    bounds = find_feature_entry(text, base_name)
    block = feature_entry(base_name, angle)
    if bounds is None:
        return text.rstrip() + "\n\n" + block
    start, end = bounds
    if text[end:end + 1] == "\n":
        end += 1
    return text[:start] + block + text[end:]


def remove_feature_entry(text: str, base_name: str) -> str:
    bounds = find_feature_entry(text, base_name)
    if bounds is None:
        return text
    start, end = bounds
    return text[:start].rstrip() + "\n" + text[end:]


def list_feature_entries(text: str, prefix: str) -> List[int]:
    pattern = re.compile(rf"(?:^|\n)[ \t]*{re.escape(prefix)}_(\d+)\.stl\s*\{{", re.MULTILINE)
    return sorted({int(m.group(1)) for m in pattern.finditer(text)})


def update_feature_extract(
    text: str,
    checklist: MeshChecklist,
    counts: Dict[str, int],
    angle: int = INCLUDED_ANGLE,
) -> str:
    """Upsert an entry per enabled surface, drop surplus and disabled ones."""
    for prefix in ("inlet", "outlet", "object", "wall"):
        existing = list_feature_entries(text, prefix)
        if getattr(checklist, prefix):
            for i in range(1, counts.get(prefix, 0) + 1):
                text = set_feature_entry(text, f"{prefix}_{i}", angle)
            for k in existing:
                if k > counts.get(prefix, 0):
                    text = remove_feature_entry(text, f"{prefix}_{k}")
        else:
            for k in existing:
                text = remove_feature_entry(text, f"{prefix}_{k}")
            text = remove_feature_entry(text, prefix)
            # leftovers the entry finder cannot balance
            text = re.sub(rf"(^|\n)\s*{prefix}_\d+\.stl\s*\{{[\s\S]*?\}}\s*", "\n", text)
    return text


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

@dataclass
class MeshApplyResult(ApplyResult):
    delta: float = 0.0
    cells: Tuple[int, int, int] = (1, 1, 1)
    location: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    location_source: str = ""


def resolve_location(settings: MeshSettings, bbox: BoundingBox) -> Tuple[Tuple[float, float, float], str]:
    if settings.location_mode == "manual":
        values = [parse_number(v) for v in (list(settings.location) + [None] * 3)[:3]]
        if any(v is None for v in values):
            raise MeshDictError("Manual location-in-mesh needs numeric x, y and z")
        return tuple(values), "manual"
    midpoint = (0.5 * (bbox.xmin + bbox.xmax), 0.5 * (bbox.ymin + bbox.ymax), 0.5 * (bbox.zmin + bbox.zmax))
    return midpoint, "auto-midpoint"


def apply_mesh_settings(ctx: CaseContext, settings: MeshSettings, bbox: BoundingBox) -> MeshApplyResult:
    """Rewrite surfaceFeatureExtractDict, blockMeshDict and snappyHexMeshDict.

    Everything is computed before the first write, so a missing section or a
    bad manual value leaves all three files untouched.
    """
    result = MeshApplyResult()
    try:
        block_text = ctx.files.read_text(BLOCK_MESH_PATH)
        snappy_text = ctx.files.read_text(SNAPPY_PATH)
        if ctx.files.exists(FEATURE_PATH):
            feature_text = ctx.files.read_text(FEATURE_PATH)
        else:
            logger.warning(f"{FEATURE_PATH} missing, creating it")
            feature_text = FEATURE_HEADER

        counts = indexed_counts(settings)
        levels = LOCAL_TO_LEVEL.get(settings.local_resolution, LOCAL_TO_LEVEL["medium"])
        snappy_text = rewrite_geometry(snappy_text, settings.checklist, counts, levels)
        snappy_text = rewrite_features(snappy_text, settings.checklist, counts)
        feature_text = update_feature_extract(feature_text, settings.checklist, counts)

        result.delta = resolve_delta(settings.global_resolution, settings.manual_delta)
        result.cells = triple_from_bbox(bbox, result.delta)
        block_text = replace_vertices(block_text, bbox)
        block_text = replace_cell_counts(block_text, result.cells)

        result.location, result.location_source = resolve_location(settings, bbox)
        snappy_text = replace_location_in_mesh(snappy_text, result.location)

        for rel_path, text in ((FEATURE_PATH, feature_text),
                               (BLOCK_MESH_PATH, block_text),
                               (SNAPPY_PATH, snappy_text)):
            ctx.files.write_text(rel_path, text)
            result.written.append(rel_path)
    except (CaseFileError, MeshDictError) as e:
        logger.error(f"Mesh update aborted: {e}")
        result.error = str(e)
        return result

    logger.info(f"Mesh dictionaries updated: delta={result.delta} cells={result.cells} "
                f"locationInMesh={result.location} [{result.location_source}]")
    return result


def load_mesh_settings(ctx: CaseContext) -> MeshSettings:
    """Settings implied by the case's snappyHexMeshDict and triSurface files.

    Raises:
        CaseFileError: If snappyHexMeshDict cannot be read.
    """
    text = ctx.files.read_text(SNAPPY_PATH)
    checklist = infer_checklist(text)
    from_geometry = geometry_counts(text)
    from_files = detect_geometry_counts(ctx.files.list_dir(TRI_SURFACE_DIR))
    counts = {prefix: max(from_geometry[prefix], from_files[prefix], 1) for prefix in INDEXED_SURFACES}

    settings = MeshSettings(
        checklist=checklist,
        counts=counts,
        local_resolution=detect_local_resolution(text) or "medium",
    )
    location = read_location_in_mesh(text)
    if location is not None:
        settings.location = list(location)
    return settings
