#!/usr/bin/env python3
"""
Value objects passed between the HTTP layer and the dictionary editors.

Numeric fields accept raw user input (numbers or strings) so blank or
half-typed rows reach the editors, which apply their own defaults.
"""

from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel

Value = Union[float, str, None]

TemperatureUnit = Literal["K", "C", "F"]
VelocityUnit = Literal["m/s", "ft/min", "ft/s", "km/h", "mph"]
BoundaryMode = Literal["driven", "fixed", "flux"]
Resolution = Literal["coarse", "medium", "fine"]


# ============================================================================
# Boundary conditions
# ============================================================================

class InletSpec(BaseModel):
    velocity: List[Value] = [0, 0, 0]
    velocity_unit: VelocityUnit = "m/s"
    temperature: Value = None
    temperature_unit: TemperatureUnit = "K"


class OutletSpec(InletSpec):
    pass


class ThermalPatchSpec(BaseModel):
    """Temperature condition of an object or wall patch."""
    mode: BoundaryMode = "driven"
    temperature: Value = None
    temperature_unit: TemperatureUnit = "C"
    gradient: Value = None  # K/m, used in flux mode


class FixedPatchSpec(ThermalPatchSpec):
    """Floor or ceiling."""
    mode: BoundaryMode = "fixed"
    temperature_unit: TemperatureUnit = "K"


class WindSpec(BaseModel):
    enabled: bool = False
    velocity: List[Value] = [0, 0, 0]
    temperature: Value = None
    temperature_unit: TemperatureUnit = "K"


class BoundaryConfig(BaseModel):
    inlets: List[InletSpec] = []
    outlets: List[OutletSpec] = []
    objects: List[ThermalPatchSpec] = []
    walls: List[ThermalPatchSpec] = []
    floor: Optional[FixedPatchSpec] = None    # None leaves the patch as it is
    ceiling: Optional[FixedPatchSpec] = None
    wind: Optional[WindSpec] = None


# ============================================================================
# Mesh
# ============================================================================

class MeshChecklist(BaseModel):
    ceiling: bool = True
    floor: bool = True
    inlet: bool = True
    object: bool = True
    outlet: bool = True
    wall: bool = True
    wind: bool = False


class MeshSettings(BaseModel):
    checklist: MeshChecklist = MeshChecklist()
    counts: Dict[str, int] = {}  # inlet/object/wall/outlet
    global_resolution: Literal["coarse", "medium", "fine", "manual"] = "medium"
    manual_delta: Value = None
    local_resolution: Resolution = "medium"
    location_mode: Literal["auto", "manual"] = "auto"
    location: List[Value] = [0, 0, 0]


class BoundingBox(BaseModel):
    xmin: float
    ymin: float
    zmin: float
    xmax: float
    ymax: float
    zmax: float


# ============================================================================
# Solver / general
# ============================================================================

class SolverSettings(BaseModel):
    start_time: Value = None
    end_time: Value = None
    delta_t: Value = None
    write_interval: Value = None
    subdomains: int = 1


class ComfortSettings(BaseModel):
    clothing: Optional[float] = None
    metabolic_rate: Optional[float] = None
    rel_humidity: Optional[float] = None


class GeneralSettings(BaseModel):
    initial_temperature: Value = None
    temperature_unit: TemperatureUnit = "K"
    gravity: List[float] = [0, 0, -9.81]
    comfort: ComfortSettings = ComfortSettings()
