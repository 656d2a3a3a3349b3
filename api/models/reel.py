"""
Response models for the reel endpoints
"""
from typing import Optional

from pydantic import BaseModel, Field


class ReelResponse(BaseModel):
    """Result of a successful render."""

    ok: bool = True
    id: str = Field(..., description="Opaque random artifact identifier")
    filename: str
    profile: str = Field(..., description="baseline or compressed")
    duration: int = Field(..., description="Main clip duration in seconds")
    fps: int
    width: int
    height: int
    intro_duration: int = Field(0, description="Seconds of intro prepended, 0 when none")
    url: str = Field(..., description="Absolute public URL of the artifact")
    path: str = Field(..., description="Public path relative to the service root")

    model_config = {
        "json_schema_extra": {
            "example": {
                "ok": True,
                "id": "0f8c2a4be5d94e0c9d3b6f7a1e2c4d5f",
                "filename": "reel-0f8c2a4be5d94e0c9d3b6f7a1e2c4d5f.mp4",
                "profile": "baseline",
                "duration": 5,
                "fps": 24,
                "width": 720,
                "height": 1280,
                "intro_duration": 0,
                "url": "https://reels.example.com/videos/reel-0f8c2a4be5d94e0c9d3b6f7a1e2c4d5f.mp4",
                "path": "/videos/reel-0f8c2a4be5d94e0c9d3b6f7a1e2c4d5f.mp4",
            }
        }
    }


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Optional[str] = None


class ErrorResponse(BaseModel):
    ok: bool = False
    error: ErrorDetail


class HealthResponse(BaseModel):
    ok: bool = True
