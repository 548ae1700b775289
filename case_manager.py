"""
Case Manager - Create, open and track OpenFOAM HVAC cases.

New cases are copied from the master template shipped with foamdict. The
active case and the list of known cases live in a small registry
(cases/registry.json) so the HTTP layer can rebuild a CaseContext per request.
"""

import json
import os
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple
import logging

import foamdict
from foamdict.case_files import CaseContext

# Paths
SCRIPT_DIR = Path(__file__).parent.absolute()
CASES_DIR = Path(os.environ.get("HVAC_CASES_DIR", SCRIPT_DIR / "cases"))
REGISTRY_FILE = CASES_DIR / "registry.json"
TEMPLATE_DIR = Path(foamdict.__file__).parent / "templates" / "hvac_case"

logger = logging.getLogger("case_manager")

# Constants
SCHEMA_VERSION = "1.0"
REQUIRED_DIRS = ("0", "constant", "system")
CASE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def ensure_registry():
    """Ensure the registry file exists with default structure."""
    REGISTRY_FILE.parent.mkdir(parents=True, exist_ok=True)
    if not REGISTRY_FILE.exists():
        default_registry = {
            "schema_version": SCHEMA_VERSION,
            "active": None,
            "cases": {}
        }
        with open(REGISTRY_FILE, 'w') as f:
            json.dump(default_registry, f, indent=2)


def load_registry() -> dict:
    """Load the case registry from disk."""
    ensure_registry()
    try:
        with open(REGISTRY_FILE, 'r') as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Failed to load registry: {e}")
        return {"schema_version": SCHEMA_VERSION, "active": None, "cases": {}}


def save_registry(registry: dict):
    """Save the case registry to disk."""
    ensure_registry()
    with open(REGISTRY_FILE, 'w') as f:
        json.dump(registry, f, indent=2)


def validate_case_structure(case_path: Path) -> Tuple[bool, str]:
    """
    Validate that a directory looks like an OpenFOAM case.

    Returns:
        (is_valid, error_message)
    """
    if not case_path.is_dir():
        return False, f"Not a directory: {case_path}"

    missing = [f"{name}/" for name in REQUIRED_DIRS if not (case_path / name).is_dir()]
    if missing:
        return False, "Missing " + ", ".join(missing)
    return True, ""


def _register(case_path: Path) -> None:
    registry = load_registry()
    key = str(case_path)
    entry = registry.setdefault("cases", {}).get(key, {"name": case_path.name})
    entry["last_opened"] = datetime.now().isoformat()
    registry["cases"][key] = entry
    registry["active"] = key
    save_registry(registry)


def list_cases() -> List[dict]:
    """Known cases, most recently opened first."""
    registry = load_registry()
    cases = [dict(data, path=path) for path, data in registry.get("cases", {}).items()]
    cases.sort(key=lambda c: c.get("last_opened", ""), reverse=True)
    return cases


def create_case(base_dir: str, name: str) -> Tuple[bool, str, Optional[Path]]:
    """
    Copy the master template to base_dir/name and make it the active case.

    An existing directory is never overwritten.

    Returns:
        (success, message, case_path)
    """
    if not CASE_NAME_RE.match(name or ""):
        return False, "Case name may only contain letters, digits, '_', '-' and '.'", None

    base = Path(base_dir).expanduser()
    if not base.is_dir():
        return False, f"Base directory does not exist: {base}", None

    case_path = (base / name).resolve()
    if case_path.exists():
        return False, f"Target already exists: {case_path}", None

    if not TEMPLATE_DIR.is_dir():
        return False, f"Master template not found: {TEMPLATE_DIR}", None

    try:
        shutil.copytree(TEMPLATE_DIR, case_path)
    except (OSError, shutil.Error) as e:
        logger.error(f"Failed to create case {case_path}: {e}")
        return False, str(e), None

    _register(case_path)
    logger.info(f"Created case {case_path}")
    return True, f"Case '{name}' created", case_path


def open_case(case_dir: str) -> Tuple[bool, str, Optional[Path]]:
    """
    Make an existing case directory the active case.

    Returns:
        (success, message, case_path)
    """
    case_path = Path(case_dir).expanduser().resolve()
    is_valid, error = validate_case_structure(case_path)
    if not is_valid:
        return False, error, None

    _register(case_path)
    logger.info(f"Opened case {case_path}")
    return True, f"Case '{case_path.name}' opened", case_path


def get_active_case() -> Optional[Path]:
    """Path of the active case, or None if unset or no longer a valid case."""
    active = load_registry().get("active")
    if not active:
        return None
    path = Path(active)
    is_valid, error = validate_case_structure(path)
    if not is_valid:
        logger.warning(f"Active case {path} is unusable: {error}")
        return None
    return path


def clear_active_case() -> None:
    registry = load_registry()
    registry["active"] = None
    save_registry(registry)


def get_active_context() -> Optional[CaseContext]:
    path = get_active_case()
    return CaseContext(path) if path else None
