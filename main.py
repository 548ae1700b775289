#!/usr/bin/env python3
"""
HVAC Case Setup - Main Server

FastAPI server exposing the case-setup editors:
- case creation / opening
- boundary conditions (0/U, 0/T and auxiliary fields)
- mesh dictionaries (blockMeshDict, snappyHexMeshDict, surfaceFeatureExtractDict)
- solver and general settings
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

import case_manager
from foamdict import __version__
from foamdict.boundary_conditions import apply_boundary_condition_set, load_boundary_conditions
from foamdict.case_files import CaseContext, CaseFileError
from foamdict.general_settings import apply_general_settings, load_general_settings
from foamdict.mesh_dict import apply_mesh_settings, load_mesh_settings
from foamdict.models import BoundaryConfig, BoundingBox, GeneralSettings, MeshSettings, SolverSettings
from foamdict.solver_settings import apply_solver_settings, load_solver_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("main")

PORT = 6060


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup."""
    case_manager.ensure_registry()
    print(f"[STARTUP] HVAC Case Setup {__version__}")
    print(f"[STARTUP] Registry: {case_manager.REGISTRY_FILE}")
    print(f"[STARTUP] Master template: {case_manager.TEMPLATE_DIR}")
    active = case_manager.get_active_case()
    print(f"[STARTUP] Active case: {active or '(none)'}")
    yield
    print("[SHUTDOWN] Cleaning up...")


app = FastAPI(
    title="HVAC Case Setup",
    description="Boundary, mesh and solver dictionary editor for OpenFOAM HVAC cases",
    version=__version__,
    lifespan=lifespan
)


# ============================================================================
# Pydantic Models
# ============================================================================

class CaseCreateRequest(BaseModel):
    base_dir: str
    name: str


class CaseOpenRequest(BaseModel):
    path: str


class MeshApplyRequest(BaseModel):
    settings: MeshSettings
    bbox: BoundingBox


# ============================================================================
# Helpers
# ============================================================================

def require_case() -> CaseContext:
    """Dependency: the active case, or 409 if none is open."""
    ctx = case_manager.get_active_context()
    if ctx is None:
        raise HTTPException(status_code=409, detail="No active case. Create or open one first.")
    return ctx


def _file_error(e: CaseFileError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


def _apply_response(result) -> dict:
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error)
    return {"success": True, "written": result.written, "skipped": result.skipped}


# ============================================================================
# Case Routes
# ============================================================================

@app.get("/api/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.post("/api/case/create")
async def create_case(request: CaseCreateRequest):
    success, message, path = case_manager.create_case(request.base_dir, request.name)
    if not success:
        raise HTTPException(status_code=400, detail=message)
    return {"success": True, "message": message, "path": str(path)}


@app.post("/api/case/open")
async def open_case(request: CaseOpenRequest):
    success, message, path = case_manager.open_case(request.path)
    if not success:
        raise HTTPException(status_code=400, detail=message)
    return {"success": True, "message": message, "path": str(path)}


@app.get("/api/case/active")
async def active_case():
    path = case_manager.get_active_case()
    return {"active": str(path) if path else None}


@app.get("/api/cases")
async def list_cases():
    return {"cases": case_manager.list_cases()}


@app.get("/api/files/{rel_path:path}", response_class=PlainTextResponse)
async def read_case_file(rel_path: str, ctx: CaseContext = Depends(require_case)):
    """Raw text of a case file, e.g. /api/files/0/U."""
    try:
        return ctx.files.read_text(rel_path)
    except CaseFileError as e:
        raise _file_error(e)


# ============================================================================
# Boundary Conditions
# ============================================================================

@app.get("/api/boundaries", response_model=BoundaryConfig)
async def get_boundaries(ctx: CaseContext = Depends(require_case)):
    try:
        return load_boundary_conditions(ctx)
    except CaseFileError as e:
        raise _file_error(e)


@app.post("/api/boundaries")
async def save_boundaries(config: BoundaryConfig, ctx: CaseContext = Depends(require_case)):
    return _apply_response(apply_boundary_condition_set(ctx, config))


# ============================================================================
# Mesh
# ============================================================================

@app.get("/api/mesh", response_model=MeshSettings)
async def get_mesh(ctx: CaseContext = Depends(require_case)):
    try:
        return load_mesh_settings(ctx)
    except CaseFileError as e:
        raise _file_error(e)


@app.post("/api/mesh")
async def save_mesh(request: MeshApplyRequest, ctx: CaseContext = Depends(require_case)):
    result = apply_mesh_settings(ctx, request.settings, request.bbox)
    response = _apply_response(result)
    response.update({
        "delta": result.delta,
        "cells": list(result.cells),
        "location": list(result.location),
        "location_source": result.location_source,
    })
    return response


# ============================================================================
# Solver / General Settings
# ============================================================================

@app.get("/api/solver", response_model=SolverSettings)
async def get_solver(ctx: CaseContext = Depends(require_case)):
    return load_solver_settings(ctx)


@app.post("/api/solver")
async def save_solver(settings: SolverSettings, ctx: CaseContext = Depends(require_case)):
    return _apply_response(apply_solver_settings(ctx, settings))


@app.get("/api/general", response_model=GeneralSettings)
async def get_general(ctx: CaseContext = Depends(require_case)):
    try:
        return load_general_settings(ctx)
    except CaseFileError as e:
        raise _file_error(e)


@app.post("/api/general")
async def save_general(settings: GeneralSettings, ctx: CaseContext = Depends(require_case)):
    return _apply_response(apply_general_settings(ctx, settings))


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
