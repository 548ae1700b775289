#!/usr/bin/env python3
"""
OpenFOAM General Settings
Initial temperature, gravity and the thermal comfort function object.
"""

import logging
import re
from typing import Dict, List, Optional, Union

from foamdict.brace_scanner import find_keyword_block
from foamdict.case_files import ApplyResult, CaseContext, CaseFileError
from foamdict.field_codec import (
    extract_internal_field,
    format_scalar,
    format_vector,
    parse_number,
    parse_vector,
    replace_internal_field,
    to_kelvin,
)
from foamdict.models import ComfortSettings, GeneralSettings

logger = logging.getLogger("general_settings")

T_PATH = "0/T"
GRAVITY_PATH = "constant/g"
COMFORT_PATH = "system/FOcomfort"

BANNER = r"""/*--------------------------------*- C++ -*----------------------------------*\
| =========                 |                                                 |
| \\      /  F ield         | OpenFOAM: The Open Source CFD Toolbox           |
|  \\    /   O peration     |                                                 |
|   \\  /    A nd           | Website:  www.openfoam.com                      |
|    \\/     M anipulation  |                                                 |
\*---------------------------------------------------------------------------*/
"""

GRAVITY_TEMPLATE = BANNER + """FoamFile
{{
    version     2.0;
    format      ascii;
    class       uniformDimensionedVectorField;
    object      g;
}}

dimensions      [0 1 -2 0 0 0 0];
value           {vector};

"""

# keyword -> (kind, default)
COMFORT_DEFAULTS = {
    "clothing": ("number", 0.5),
    "metabolicRate": ("number", 1.2),
    "extWork": ("number", 0.0),
    "relHumidity": ("number", 60.0),
    "pSat": ("number", 100714),
    "tolerance": ("number", 1e-4),
    "maxClothIter": ("number", 100),
    "meanVelocity": ("bool", False),
    "region": ("word", "region0"),
    "enabled": ("bool", True),
    "log": ("bool", True),
    "timeStart": ("number", 0),
    "timeEnd": ("number", 10000),
    "executeControl": ("word", "writeTime"),
    "executeInterval": ("number", -1),
    "writeControl": ("word", "writeTime"),
    "writeInterval": ("number", -1),
}

_MANDATORY = ("clothing", "metabolicRate", "extWork", "relHumidity", "pSat",
              "tolerance", "maxClothIter", "meanVelocity")


# ---------------------------------------------------------------------------
# Gravity
# ---------------------------------------------------------------------------

def read_gravity(text: str) -> Optional[List[float]]:
    match = re.search(r"\bvalue\s+\(?\s*([-0-9.eE+\s]+?)\s*\)?\s*;", text)
    if not match:
        return None
    return list(parse_vector(match.group(1)))


def build_gravity(vector) -> str:
    return GRAVITY_TEMPLATE.format(vector=format_vector(parse_vector(vector)))


# ---------------------------------------------------------------------------
# Comfort function object
# ---------------------------------------------------------------------------

def parse_comfort(text: str) -> Dict[str, Union[float, bool, str, None]]:
    """Entries of the ``comfort {}`` block; keys that are missing map to None."""
    span = find_keyword_block(text or "", "comfort")
    if span is None:
        return {}
    inner = span.inner(text)
    values = {}
    for key, (kind, _) in COMFORT_DEFAULTS.items():
        if kind == "number":
            match = re.search(rf"^\s*{key}\s+([+-]?\d*\.?\d+(?:[eE][+-]?\d+)?)\s*;", inner, re.MULTILINE)
            values[key] = float(match.group(1)) if match else None
        elif kind == "bool":
            match = re.search(rf"^\s*{key}\s+(true|false)\s*;", inner, re.MULTILINE)
            values[key] = (match.group(1) == "true") if match else None
        else:
            match = re.search(rf"^\s*{key}\s+([A-Za-z0-9_+-]+)\s*;", inner, re.MULTILINE)
            values[key] = match.group(1) if match else None
    return values


def _comfort_value(key: str, value) -> str:
    kind, default = COMFORT_DEFAULTS[key]
    if kind == "bool":
        flag = value if isinstance(value, bool) else default
        return "true" if flag else "false"
    if kind == "word":
        return str(value or default)
    number = parse_number(value)
    return format_scalar(default if number is None else number)


def build_comfort(values: Dict) -> str:
    """Full FOcomfort file; unset entries take their defaults."""
    def line(key: str) -> str:
        return f"    {key:<15} {_comfort_value(key, values.get(key))};"

    body = [
        "    // Mandatory entries",
        f"    {'type':<15} comfort;",
        f"    {'libs':<15} (fieldFunctionObjects);",
        "",
        "    // Optional entries",
        *[line(key) for key in _MANDATORY],
        "",
        "    // Inherited entries",
        *[line(key) for key in COMFORT_DEFAULTS if key not in _MANDATORY],
    ]
    return BANNER + "\ncomfort\n{\n" + "\n".join(body) + "\n}\n"


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------

def load_general_settings(ctx: CaseContext) -> GeneralSettings:
    """Raises CaseFileError if 0/T cannot be read; gravity and comfort are optional."""
    settings = GeneralSettings()
    internal = extract_internal_field(ctx.files.read_text(T_PATH))
    if internal:
        settings.initial_temperature = parse_number(internal)

    if ctx.files.exists(GRAVITY_PATH):
        gravity = read_gravity(ctx.files.read_text(GRAVITY_PATH))
        if gravity is not None:
            settings.gravity = gravity

    if ctx.files.exists(COMFORT_PATH):
        comfort = parse_comfort(ctx.files.read_text(COMFORT_PATH))
        settings.comfort = ComfortSettings(
            clothing=comfort.get("clothing"),
            metabolic_rate=comfort.get("metabolicRate"),
            rel_humidity=comfort.get("relHumidity"),
        )
    return settings


def apply_general_settings(ctx: CaseContext, settings: GeneralSettings) -> ApplyResult:
    """Write 0/T (only when a temperature is given), constant/g and system/FOcomfort."""
    result = ApplyResult()
    try:
        kelvin = to_kelvin(settings.initial_temperature, settings.temperature_unit)
        if kelvin is not None:
            text = replace_internal_field(ctx.files.read_text(T_PATH), format_scalar(kelvin))
            ctx.files.write_text(T_PATH, text)
            result.written.append(T_PATH)

        ctx.files.write_text(GRAVITY_PATH, build_gravity(settings.gravity))
        result.written.append(GRAVITY_PATH)

        existing = parse_comfort(ctx.files.read_text(COMFORT_PATH)) if ctx.files.exists(COMFORT_PATH) else {}
        overrides = {
            "clothing": settings.comfort.clothing,
            "metabolicRate": settings.comfort.metabolic_rate,
            "relHumidity": settings.comfort.rel_humidity,
        }
        merged = {**existing, **{k: v for k, v in overrides.items() if v is not None}}
        ctx.files.write_text(COMFORT_PATH, build_comfort(merged))
        result.written.append(COMFORT_PATH)
    except CaseFileError as e:
        logger.error(f"General settings not saved: {e}")
        result.error = str(e)
    return result
