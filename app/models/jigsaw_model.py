"""Response models for the jigsaw API."""

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class EngineResponse(BaseModel):
    """Response model describing the loaded geometry engine."""

    name: str
    precise: bool
    warnings: List[str] = Field(default_factory=list)


class PresetsResponse(BaseModel):
    """Response model for the configuration presets."""

    sheet_presets: Dict[str, List[float]] = Field(..., description="Sheet name -> [width, height] in mm")
    fit_modes: Dict[str, float] = Field(..., description="Fit mode -> clearance in mm")
    templates: Dict[str, str]
    limits: Dict[str, Any]


class GenerateResponse(BaseModel):
    """Response model for a generated puzzle."""

    svg: str = Field(..., description="Laser-ready SVG document")
    pieces: List[Dict[str, Any]]
    layout: Dict[str, Any]
    diagnostics: Dict[str, Any]
    warnings: List[str]
