#!/usr/bin/env python3
"""
Boundary Conditions — load and save the full boundary set of an HVAC case.

A save reads ``0/U`` and ``0/T``, reconciles every patch group against the
requested counts, writes U then T, then regenerates the auxiliary
turbulence/pressure fields from fixed templates. Each file is written whole
or not at all; a failure stops the cycle, so files later in the order keep
their previous content.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from foamdict.case_files import ApplyResult, CaseContext, CaseFileError
from foamdict.field_codec import (
    Vector,
    detect_mode_from_inner,
    display,
    entry,
    extract_inlet_value,
    extract_uniform_value,
    format_scalar,
    format_vector,
    from_kelvin,
    make_type_body_for_mode,
    parse_number,
    parse_vector,
    replace_uniform_value,
    to_kelvin,
    to_meters_per_second,
)
from foamdict.models import (
    BoundaryConfig,
    FixedPatchSpec,
    InletSpec,
    OutletSpec,
    ThermalPatchSpec,
    WindSpec,
)
from foamdict.patch_store import ensure_block, get_block, list_indexed_patches, set_body
from foamdict.reconciler import normalize_legacy, normalize_pair, reconcile

logger = logging.getLogger("boundary_conditions")

U_PATH = "0/U"
T_PATH = "0/T"
AUX_FIELDS = ("alphat", "epsilon", "omega", "k", "nut", "p", "p_rgh")

DEFAULT_VELOCITY: Vector = (0.0, 0.0, 0.0)
DEFAULT_TEMPERATURE = 290.0
DEFAULT_OBJECT_TEMPERATURE = 308.0
DEFAULT_WALL_TEMPERATURE = 300.0

WIND_PATCH = "wind"
FIXED_PATCHES = ("floor", "ceiling")

_INTERNAL = "$internalField"


# ---------------------------------------------------------------------------
# Auxiliary field templates: field -> role -> body lines
# ---------------------------------------------------------------------------

def _body(patch_type: str, *extra: Tuple[str, str]) -> List[str]:
    lines = [entry("type", patch_type)]
    lines.extend(entry(key, value) for key, value in extra)
    lines.append(entry("value", _INTERNAL))
    return lines


_WALL_COEFFS = (("Cmu", "0.09"), ("kappa", "0.41"), ("E", "9.8"))
_OUTFLOW = _body("inletOutlet", ("inletValue", _INTERNAL))

AUX_TEMPLATES: Dict[str, Dict[str, List[str]]] = {
    "alphat": {
        "inlet": _body("calculated"),
        "object": _body("compressible::alphatWallFunction", ("Prt", "0.85")),
        "outlet": _body("calculated"),
    },
    "epsilon": {
        "inlet": _body("fixedValue"),
        "object": _body("epsilonWallFunction", *_WALL_COEFFS),
        "outlet": _OUTFLOW,
    },
    "omega": {
        "inlet": _body("fixedValue"),
        "object": _body("omegaWallFunction"),
        "outlet": _OUTFLOW,
    },
    "k": {
        "inlet": _body("fixedValue"),
        "object": _body("kqRWallFunction"),
        "outlet": _OUTFLOW,
    },
    "nut": {
        "inlet": _body("calculated"),
        "object": _body("nutkWallFunction", *_WALL_COEFFS),
        "outlet": _body("calculated"),
    },
    "p": {
        "inlet": _body("calculated"),
        "object": _body("calculated"),
        "outlet": _body("calculated"),
    },
    "p_rgh": {
        "inlet": _body("fixedFluxPressure", ("gradient", "uniform 0")),
        "object": _body("fixedFluxPressure", ("gradient", "uniform 0")),
        "outlet": _body("fixedValue"),
    },
}

# walls share the object (wall-function) templates
ROLE_TEMPLATE = {"inlet": "inlet", "object": "object", "wall": "object", "outlet": "outlet"}


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

def _velocity(components: Sequence, unit: str) -> Vector:
    padded = list(components or []) + [None] * 3
    converted = (to_meters_per_second(c, unit) for c in padded[:3])
    return tuple(0.0 if c is None else c for c in converted)


def _kelvin(value, unit: str, default: float) -> float:
    kelvin = to_kelvin(value, unit)
    return default if kelvin is None else kelvin


def _thermal_body(spec: ThermalPatchSpec, default_kelvin: float) -> List[str]:
    return make_type_body_for_mode(
        spec.mode,
        to_kelvin(spec.temperature, spec.temperature_unit),
        spec.gradient,
        default_kelvin,
    )


def group_counts(config: BoundaryConfig) -> Dict[str, int]:
    """Patch counts a config produces; inlets and outlets never drop below one."""
    return {
        "inlet": max(len(config.inlets), 1),
        "object": len(config.objects),
        "wall": len(config.walls),
        "outlet": max(len(config.outlets), 1),
    }


# ---------------------------------------------------------------------------
# Group editors (pure text -> text)
# ---------------------------------------------------------------------------

def apply_inlets(u_text: str, t_text: str, specs: List[InletSpec]) -> Tuple[str, str]:
    """fixedValue velocity and temperature per inlet; existing patch types are kept."""
    count = max(len(specs), 1)
    u_text = reconcile(u_text, "inlet", count,
                       lambda i: [entry("type", "fixedValue"),
                                  entry("value", f"uniform {format_vector(DEFAULT_VELOCITY)}")])
    t_text = reconcile(t_text, "inlet", count,
                       lambda i: [entry("type", "fixedValue"),
                                  entry("value", f"uniform {format_scalar(DEFAULT_TEMPERATURE)}")])

    for index in range(1, count + 1):
        spec = specs[index - 1] if index <= len(specs) else InletSpec()
        name = f"inlet_{index}"
        velocity = _velocity(spec.velocity, spec.velocity_unit)
        kelvin = _kelvin(spec.temperature, spec.temperature_unit, DEFAULT_TEMPERATURE)
        u_text = replace_uniform_value(u_text, name, format_vector(velocity))
        t_text = replace_uniform_value(t_text, name, format_scalar(kelvin))
    return u_text, t_text


def apply_outlets(u_text: str, t_text: str, specs: List[OutletSpec]) -> Tuple[str, str]:
    count = max(len(specs), 1)

    def spec_at(index: int) -> OutletSpec:
        return specs[index - 1] if index <= len(specs) else OutletSpec()

    def u_body(index: int) -> List[str]:
        spec = spec_at(index)
        vector = format_vector(_velocity(spec.velocity, spec.velocity_unit))
        return [entry("type", "inletOutlet"),
                entry("inletValue", f"uniform {vector}"),
                entry("value", f"uniform {vector}")]

    def t_body(index: int) -> List[str]:
        spec = spec_at(index)
        kelvin = format_scalar(_kelvin(spec.temperature, spec.temperature_unit, DEFAULT_TEMPERATURE))
        return [entry("type", "inletOutlet"),
                entry("inletValue", f"uniform {kelvin}"),
                entry("value", f"uniform {kelvin}")]

    u_text = reconcile(u_text, "outlet", count, u_body, replace_existing=True)
    t_text = reconcile(t_text, "outlet", count, t_body, replace_existing=True)
    return u_text, t_text


def apply_thermal_group(
    u_text: str,
    t_text: str,
    prefix: str,
    specs: List[ThermalPatchSpec],
    default_kelvin: float,
) -> Tuple[str, str]:
    """noSlip velocity; temperature body rewritten from each patch's mode."""
    count = len(specs)
    u_text = reconcile(u_text, prefix, count, lambda i: [entry("type", "noSlip")])
    t_text = reconcile(t_text, prefix, count,
                       lambda i: _thermal_body(specs[i - 1], default_kelvin),
                       replace_existing=True)
    return u_text, t_text


def apply_fixed_patch(t_text: str, name: str, spec: Optional[FixedPatchSpec]) -> str:
    """Floor / ceiling temperature. A missing spec leaves the patch untouched."""
    if spec is None:
        return t_text
    return set_body(t_text, name, _thermal_body(spec, DEFAULT_WALL_TEMPERATURE))


def apply_wind(u_text: str, t_text: str, spec: Optional[WindSpec]) -> Tuple[str, str]:
    if spec is None or not spec.enabled:
        return u_text, t_text
    vector = format_vector(parse_vector(spec.velocity))
    u_text = set_body(u_text, WIND_PATCH, [
        entry("type", "inletOutlet"),
        entry("inletValue", f"uniform {vector}"),
        entry("value", f"uniform {vector}"),
    ])
    kelvin = to_kelvin(spec.temperature, spec.temperature_unit)
    if kelvin is not None:
        t_text = set_body(t_text, WIND_PATCH, [
            entry("type", "fixedValue"),
            entry("value", f"uniform {format_scalar(kelvin)}"),
        ])
    return u_text, t_text


def apply_aux_templates(text: str, field_name: str, counts: Dict[str, int]) -> str:
    """Rewrite every group patch of an auxiliary field from its template."""
    templates = AUX_TEMPLATES[field_name]
    text = ensure_block(text)
    text = normalize_legacy(text)
    for prefix, count in counts.items():
        body = templates[ROLE_TEMPLATE[prefix]]
        text = reconcile(text, prefix, count, lambda i, body=body: body, replace_existing=True)
    return text


def apply_to_texts(u_text: str, t_text: str, config: BoundaryConfig) -> Tuple[str, str]:
    """Apply a whole BoundaryConfig to the U/T pair in memory."""
    u_text, t_text = normalize_pair(u_text, t_text)
    u_text, t_text = apply_inlets(u_text, t_text, config.inlets)
    u_text, t_text = apply_thermal_group(u_text, t_text, "object", config.objects, DEFAULT_OBJECT_TEMPERATURE)
    u_text, t_text = apply_thermal_group(u_text, t_text, "wall", config.walls, DEFAULT_WALL_TEMPERATURE)
    u_text, t_text = apply_outlets(u_text, t_text, config.outlets)
    t_text = apply_fixed_patch(t_text, "floor", config.floor)
    t_text = apply_fixed_patch(t_text, "ceiling", config.ceiling)
    u_text, t_text = apply_wind(u_text, t_text, config.wind)
    return u_text, t_text


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------

def _render_count(u_text: str, t_text: str, prefix: str, minimum: int) -> int:
    last_u = (list_indexed_patches(u_text, prefix) or [0])[-1]
    last_t = (list_indexed_patches(t_text, prefix) or [0])[-1]
    return max(last_u, last_t, minimum)


def _inner(text: str, name: str) -> Optional[str]:
    block = get_block(text, name)
    return block.inner if block else None


def _load_flow_patch(u_text: str, t_text: str, name: str, spec_cls=InletSpec):
    prefer_inlet_value = spec_cls is OutletSpec
    def read(inner: Optional[str]) -> str:
        if inner is None:
            return ""
        if prefer_inlet_value:
            return extract_inlet_value(inner) or extract_uniform_value(inner)
        return extract_uniform_value(inner)

    u_raw = read(_inner(u_text, name))
    t_raw = read(_inner(t_text, name))
    velocity = parse_vector(u_raw) if u_raw else DEFAULT_VELOCITY
    temperature = parse_number(t_raw)
    return spec_cls(
        velocity=list(velocity),
        temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
    )


def _load_thermal_patch(t_text: str, name: str, default_kelvin: float) -> ThermalPatchSpec:
    inner = _inner(t_text, name)
    if inner is None:
        return ThermalPatchSpec(mode="driven")
    state = detect_mode_from_inner(inner)
    if state.mode == "flux":
        return ThermalPatchSpec(mode="flux", gradient=state.gradient)
    if state.mode == "fixed":
        kelvin = parse_number(state.value)
        celsius = from_kelvin(default_kelvin if kelvin is None else kelvin, "C")
        return ThermalPatchSpec(mode="fixed", temperature=display(celsius), temperature_unit="C")
    return ThermalPatchSpec(mode="driven")


def _load_fixed_patch(t_text: str, name: str) -> FixedPatchSpec:
    inner = _inner(t_text, name)
    if inner is None:
        return FixedPatchSpec(mode="fixed", temperature="")
    state = detect_mode_from_inner(inner)
    if state.mode == "flux":
        return FixedPatchSpec(mode="flux", gradient=parse_number(state.gradient) or 0.0)
    if state.mode == "fixed":
        return FixedPatchSpec(mode="fixed", temperature=parse_number(state.value))
    return FixedPatchSpec(mode="driven")


def _load_wind(u_text: str, t_text: str) -> WindSpec:
    u_inner = _inner(u_text, WIND_PATCH)
    if u_inner is None:
        return WindSpec(enabled=False)
    raw = extract_uniform_value(u_inner) or extract_inlet_value(u_inner)
    t_inner = _inner(t_text, WIND_PATCH)
    temperature = parse_number(extract_uniform_value(t_inner)) if t_inner is not None else None
    return WindSpec(enabled=True, velocity=list(parse_vector(raw)), temperature=temperature)


def config_from_texts(u_text: str, t_text: str) -> BoundaryConfig:
    """Rebuild the BoundaryConfig a UI would show for the given U/T pair."""
    inlets = [_load_flow_patch(u_text, t_text, f"inlet_{i}")
              for i in range(1, _render_count(u_text, t_text, "inlet", 1) + 1)]
    outlets = [_load_flow_patch(u_text, t_text, f"outlet_{i}", OutletSpec)
               for i in range(1, _render_count(u_text, t_text, "outlet", 1) + 1)]
    objects = [_load_thermal_patch(t_text, f"object_{i}", DEFAULT_OBJECT_TEMPERATURE)
               for i in range(1, _render_count(u_text, t_text, "object", 0) + 1)]
    walls = [_load_thermal_patch(t_text, f"wall_{i}", DEFAULT_WALL_TEMPERATURE)
             for i in range(1, _render_count(u_text, t_text, "wall", 0) + 1)]
    return BoundaryConfig(
        inlets=inlets,
        outlets=outlets,
        objects=objects,
        walls=walls,
        floor=_load_fixed_patch(t_text, "floor"),
        ceiling=_load_fixed_patch(t_text, "ceiling"),
        wind=_load_wind(u_text, t_text),
    )


def load_boundary_conditions(ctx: CaseContext) -> BoundaryConfig:
    """Read U/T, normalize legacy patch names (writing back if changed) and render.

    Raises:
        CaseFileError: If U or T cannot be read or written.
    """
    u_text = ctx.files.read_text(U_PATH)
    t_text = ctx.files.read_text(T_PATH)

    new_u, new_t = normalize_pair(u_text, t_text)
    if new_u != u_text:
        ctx.files.write_text(U_PATH, new_u)
        logger.info("Normalized legacy patch names in 0/U")
    if new_t != t_text:
        ctx.files.write_text(T_PATH, new_t)
        logger.info("Normalized legacy patch names in 0/T")

    return config_from_texts(new_u, new_t)


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------

def apply_boundary_condition_set(ctx: CaseContext, config: BoundaryConfig) -> ApplyResult:
    """Write U, then T, then each auxiliary field.

    Auxiliary fields missing from the case are skipped. The first I/O error
    stops the cycle and is reported in ``ApplyResult.error``.
    """
    result = ApplyResult()
    counts = group_counts(config)
    try:
        u_text = ctx.files.read_text(U_PATH)
        t_text = ctx.files.read_text(T_PATH)
        u_text, t_text = apply_to_texts(u_text, t_text, config)

        ctx.files.write_text(U_PATH, u_text)
        result.written.append(U_PATH)
        ctx.files.write_text(T_PATH, t_text)
        result.written.append(T_PATH)

        for field_name in AUX_FIELDS:
            rel_path = f"0/{field_name}"
            if not ctx.files.exists(rel_path):
                logger.warning(f"Skipping {rel_path}: not present in case")
                result.skipped.append(rel_path)
                continue
            text = apply_aux_templates(ctx.files.read_text(rel_path), field_name, counts)
            ctx.files.write_text(rel_path, text)
            result.written.append(rel_path)
    except CaseFileError as e:
        logger.error(f"Boundary save aborted: {e}")
        result.error = str(e)
        return result

    logger.info(f"Boundary conditions saved ({', '.join(f'{k}={v}' for k, v in counts.items())})")
    return result
