"""Pass-through routes for the geographic analysis service."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from api.models.schemas import AlignmentRequest, AlignmentResult, CompactnessRequest, CompactnessScores
from collaborators import CollaboratorError, get_client

router = APIRouter(prefix="/api/geographic", tags=["geographic"])


@router.post("/compactness", response_model=CompactnessScores)
def compactness(request: CompactnessRequest) -> CompactnessScores:
    """Score a district geometry with the requested compactness metrics."""

    try:
        return get_client().calculate_compactness(request.geometry, request.metrics)
    except CollaboratorError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/align", response_model=AlignmentResult)
def align(request: AlignmentRequest) -> AlignmentResult:
    try:
        return get_client().align_spatial(request.source, request.target, request.resolution, request.id_properties)
    except CollaboratorError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
