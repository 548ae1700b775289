#!/usr/bin/env python3
"""
OpenFOAM Solver Settings
Shared module for run control (controlDict) and domain decomposition (decomposeParDict).
"""

import logging
import re
from typing import List, Tuple

from foamdict.brace_scanner import find_keyword_block
from foamdict.case_files import ApplyResult, CaseContext, CaseFileError
from foamdict.field_codec import KEY_WIDTH, format_scalar, parse_number
from foamdict.models import SolverSettings

logger = logging.getLogger("solver_settings")

CONTROL_DICT_PATH = "system/controlDict"
DECOMPOSE_PATH = "system/decomposeParDict"

# model field -> controlDict keyword
CONTROL_KEYS = {
    "start_time": "startTime",
    "end_time": "endTime",
    "delta_t": "deltaT",
    "write_interval": "writeInterval",
}

DECOMPOSE_HEADER = "/* decomposeParDict autogenerated */\n"


def get_value(text: str, key: str) -> str:
    """Numeric right-hand side of ``key value;``, or ""."""
    match = re.search(rf"^\s*{re.escape(key)}\s+([+-]?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)\s*;",
                      text, re.MULTILINE)
    return match.group(1) if match else ""


def set_value(text: str, key: str, value: str) -> str:
    """Replace ``key <old>;`` in place, else add it before ``functions`` or at the end."""
    if value is None or value == "":
        return text
    pattern = re.compile(rf"(^\s*{re.escape(key)}\s+)([^\s;]+)(\s*;)", re.MULTILINE)
    match = pattern.search(text)
    if match:
        return text[:match.start()] + match.group(1) + value + match.group(3) + text[match.end():]

    line = f"{key:<{KEY_WIDTH}} {value};\n\n"
    functions = re.search(r"^\s*functions\s*\{", text, re.MULTILINE)
    if functions:
        return text[:functions.start()] + line + text[functions.start():]
    return text + ("" if text.endswith("\n") else "\n") + line


def factor_triple(n: int) -> Tuple[int, int, int]:
    """Split ``n`` into three factors as close to a cube as the primes allow."""
    n = max(1, int(n or 1))
    factors: List[int] = []
    rest = n
    while rest % 2 == 0:
        factors.append(2)
        rest //= 2
    p = 3
    while p * p <= rest:
        while rest % p == 0:
            factors.append(p)
            rest //= p
        p += 2
    if rest > 1:
        factors.append(rest)

    dims = [1, 1, 1]
    for factor in sorted(factors, reverse=True):
        dims.sort()
        dims[0] *= factor
    return tuple(dims)


def set_n_tuple(text: str, triple: Tuple[int, int, int]) -> str:
    line = "n           ({} {} {});".format(*triple)
    match = re.search(r"^[ \t]*n\s*\(\s*\d+\s+\d+\s+\d+\s*\)\s*;", text, re.MULTILINE)
    if match:
        indent = re.match(r"[ \t]*", match.group(0)).group(0)
        return text[:match.start()] + indent + line + text[match.end():]
    coeffs = find_keyword_block(text, "coeffs")
    if coeffs is not None:
        return text[:coeffs.start] + f"coeffs\n{{\n    {line}\n}}" + text[coeffs.end:]
    return text + f"\ncoeffs\n{{\n    {line}\n}}\n"


def _format_setting(value) -> str:
    number = parse_number(value)
    return "" if number is None else format_scalar(number)


def load_solver_settings(ctx: CaseContext) -> SolverSettings:
    settings = SolverSettings()
    try:
        control = ctx.files.read_text(CONTROL_DICT_PATH)
        for attr, key in CONTROL_KEYS.items():
            value = get_value(control, key)
            if value:
                setattr(settings, attr, value)
    except CaseFileError as e:
        logger.warning(f"Could not read {CONTROL_DICT_PATH}: {e}")
    try:
        subdomains = get_value(ctx.files.read_text(DECOMPOSE_PATH), "numberOfSubdomains")
        if subdomains:
            settings.subdomains = max(1, int(float(subdomains)))
    except CaseFileError as e:
        logger.warning(f"Could not read {DECOMPOSE_PATH}: {e}")
    return settings


def apply_solver_settings(ctx: CaseContext, settings: SolverSettings) -> ApplyResult:
    """Write controlDict times and a hierarchical decomposeParDict."""
    result = ApplyResult()
    subdomains = max(1, settings.subdomains)
    try:
        control = ctx.files.read_text(CONTROL_DICT_PATH) if ctx.files.exists(CONTROL_DICT_PATH) else ""
        for attr, key in CONTROL_KEYS.items():
            control = set_value(control, key, _format_setting(getattr(settings, attr)))
        ctx.files.write_text(CONTROL_DICT_PATH, control)
        result.written.append(CONTROL_DICT_PATH)

        if ctx.files.exists(DECOMPOSE_PATH):
            decompose = ctx.files.read_text(DECOMPOSE_PATH)
        else:
            decompose = DECOMPOSE_HEADER
        decompose = set_value(decompose, "numberOfSubdomains", str(subdomains))
        decompose = set_value(decompose, "method", "hierarchical")
        decompose = set_n_tuple(decompose, factor_triple(subdomains))
        ctx.files.write_text(DECOMPOSE_PATH, decompose)
        result.written.append(DECOMPOSE_PATH)
    except CaseFileError as e:
        logger.error(f"Solver settings not saved: {e}")
        result.error = str(e)
    return result
