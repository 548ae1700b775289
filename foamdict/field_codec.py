#!/usr/bin/env python3
"""
Field Codec — uniform values, gradients and unit conversion.

Files always hold SI values (m/s, K, K/m). Conversion from the unit a user
typed happens here and nowhere else. Parsers are lenient: anything that does
not read as a finite number comes back as None (or 0 for vector components)
so callers can fall back to their own defaults.
"""

import math
import re
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

from foamdict.patch_store import BODY_INDENT, closing_indent, get_block, replace_inner

Number = Union[int, float, str, None]
Vector = Tuple[float, float, float]

KEY_WIDTH = 16

TEMPERATURE_UNITS = ("K", "C", "F")

# unit -> (multiplier, divisor) into m/s
VELOCITY_UNITS = {
    "m/s": (1.0, 1.0),
    "ft/min": (0.00508, 1.0),
    "ft/s": (0.3048, 1.0),
    "km/h": (1.0, 3.6),
    "mph": (0.44704, 1.0),
}

MODES = ("driven", "fixed", "flux")

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_VALUE_RE = re.compile(r"^(\s*)value\s+uniform\s+([^;]+);", re.MULTILINE)
_GRADIENT_RE = re.compile(r"^\s*gradient\s+uniform\s+([^;]+);", re.MULTILINE)
_INLET_VALUE_RE = re.compile(r"^\s*inletValue\s+uniform\s+([^;]+);", re.MULTILINE)
_TYPE_RE = re.compile(r"^([ \t]*)type\s+([A-Za-z0-9_:]+)\s*;", re.MULTILINE)
_INTERNAL_RE = re.compile(r"^(\s*)internalField\s+uniform\s+([^;]+);", re.MULTILINE)
_BOUNDARY_FIELD_RE = re.compile(r"^[ \t]*boundaryField\b", re.MULTILINE)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def entry(key: str, value: str) -> str:
    """``key`` padded to the dictionary keyword column, e.g. ``type            wall;``."""
    return f"{key:<{KEY_WIDTH - 1}} {value};"


def format_scalar(value: float) -> str:
    """Shortest round-trip text; integral values lose their decimal point."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def format_vector(vector: Sequence[float]) -> str:
    return "(" + " ".join(format_scalar(c) for c in vector) + ")"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_number(value: Number) -> Optional[float]:
    """Leading numeric prefix of ``value`` as a float, or None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _NUMBER_RE.match(str(value).strip())
        if not match:
            return None
        number = float(match.group(0))
    return number if math.isfinite(number) else None


def parse_vector(value: Union[str, Iterable, None]) -> Vector:
    """Three components from ``"(1 2 3)"`` or a sequence; bad or missing ones become 0."""
    if value is None:
        tokens: List = []
    elif isinstance(value, str):
        tokens = value.replace("(", " ").replace(")", " ").split()
    else:
        tokens = list(value)
    components = []
    for i in range(3):
        number = parse_number(tokens[i]) if i < len(tokens) else None
        components.append(number if number is not None else 0.0)
    return tuple(components)


def extract_uniform_value(inner: str) -> str:
    match = _VALUE_RE.search(inner)
    return match.group(2).strip() if match else ""


def extract_uniform_gradient(inner: str) -> str:
    match = _GRADIENT_RE.search(inner)
    return match.group(1).strip() if match else ""


def extract_inlet_value(inner: str) -> str:
    match = _INLET_VALUE_RE.search(inner)
    return match.group(1).strip() if match else ""


def extract_type(inner: str) -> str:
    match = _TYPE_RE.search(inner)
    return match.group(2) if match else ""


def replace_uniform_value(text: str, patch_name: str, new_value: str) -> str:
    """Rewrite the ``value uniform ...;`` line of a patch.

    The existing line keeps its indentation. Without one, the line goes right
    after ``type ...;`` or, failing that, at the end of the body. An absent
    patch leaves the text unchanged.
    """
    block = get_block(text, patch_name)
    if block is None:
        return text

    inner = block.inner
    line = entry("value", f"uniform {new_value}")
    match = _VALUE_RE.search(inner)
    if match:
        inner = inner[:match.start()] + match.group(1) + line + inner[match.end():]
        return replace_inner(text, block, inner)

    type_match = _TYPE_RE.search(inner)
    if type_match:
        indent = type_match.group(1) or BODY_INDENT
        inner = inner[:type_match.end()] + f"\n{indent}{line}" + inner[type_match.end():]
        return replace_inner(text, block, inner)

    closing = closing_indent(inner) or ""
    inner = inner.rstrip() + f"\n{BODY_INDENT}{line}\n" + closing
    return replace_inner(text, block, inner)


def extract_internal_field(text: str) -> str:
    match = _INTERNAL_RE.search(text)
    return match.group(2).strip() if match else ""


def replace_internal_field(text: str, new_value: str) -> str:
    """Set ``internalField uniform <v>;``, inserting it before boundaryField if absent."""
    line = f"internalField   uniform {new_value};"
    match = _INTERNAL_RE.search(text)
    if match:
        return text[:match.start()] + match.group(1) + line + text[match.end():]
    boundary = _BOUNDARY_FIELD_RE.search(text)
    if boundary:
        return text[:boundary.start()] + line + "\n\n" + text[boundary.start():]
    return text.rstrip() + f"\n\n{line}\n"


# ---------------------------------------------------------------------------
# Unit conversion
# ---------------------------------------------------------------------------

# offset arithmetic on 273.15 leaves float noise in the last digits
CONVERSION_DIGITS = 10


def to_kelvin(value: Number, unit: str = "K") -> Optional[float]:
    number = parse_number(value)
    if number is None:
        return None
    if unit == "C":
        return round(number + 273.15, CONVERSION_DIGITS)
    if unit == "F":
        return round((number - 32.0) * 5.0 / 9.0 + 273.15, CONVERSION_DIGITS)
    return number


def from_kelvin(kelvin: Number, unit: str = "K") -> Optional[float]:
    number = parse_number(kelvin)
    if number is None:
        return None
    if unit == "C":
        return round(number - 273.15, CONVERSION_DIGITS)
    if unit == "F":
        return round((number - 273.15) * 9.0 / 5.0 + 32.0, CONVERSION_DIGITS)
    return number


def to_meters_per_second(value: Number, unit: str = "m/s") -> Optional[float]:
    number = parse_number(value)
    if number is None:
        return None
    multiplier, divisor = VELOCITY_UNITS.get(unit, (1.0, 1.0))
    return number * multiplier / divisor


def from_meters_per_second(value: Number, unit: str = "m/s") -> Optional[float]:
    number = parse_number(value)
    if number is None:
        return None
    multiplier, divisor = VELOCITY_UNITS.get(unit, (1.0, 1.0))
    return number * divisor / multiplier


def display(value: Optional[float]) -> str:
    """Two-decimal text for showing a converted value, blank for None."""
    return "" if value is None else f"{value:.2f}"


# ---------------------------------------------------------------------------
# Temperature boundary modes
# ---------------------------------------------------------------------------

class ModeState(NamedTuple):
    mode: str
    value: str = ""
    gradient: str = ""


def make_type_body_for_mode(
    mode: str,
    kelvin: Optional[float] = None,
    gradient: Number = None,
    default_kelvin: float = 300.0,
) -> List[str]:
    """Full temperature body for a driven / fixed / flux patch."""
    if mode == "fixed":
        temperature = default_kelvin if kelvin is None else kelvin
        return [entry("type", "fixedValue"), entry("value", f"uniform {format_scalar(temperature)}")]
    if mode == "flux":
        grad = parse_number(gradient)
        return [entry("type", "fixedGradient"), entry("gradient", f"uniform {format_scalar(grad or 0.0)}")]
    return [entry("type", "zeroGradient")]


def detect_mode_from_inner(inner: str) -> ModeState:
    patch_type = extract_type(inner)
    if "zeroGradient" in patch_type:
        return ModeState("driven")
    if "fixedGradient" in patch_type:
        return ModeState("flux", gradient=extract_uniform_gradient(inner))
    value = extract_uniform_value(inner)
    if "fixedValue" in patch_type or value:
        return ModeState("fixed", value=value)
    return ModeState("driven")
