"""
Service configuration, resolved once from the environment at startup
"""
from pathlib import Path
from typing import List, Optional
import tempfile

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_CODECS = {"libx264", "libx265"}
SUPPORTED_PRESETS = {
    "ultrafast", "superfast", "veryfast", "faster", "fast",
    "medium", "slow", "slower", "veryslow",
}
FETCH_STRATEGIES = {"buffered", "streamed"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    VERSION: str = Field("1.0.0")
    DEBUG: bool = Field(False)

    # Server
    API_HOST: str = Field("0.0.0.0")
    PORT: int = Field(3001)
    API_WORKERS: int = Field(1)
    API_RELOAD: bool = Field(False)
    API_LOG_LEVEL: str = Field("info")
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])
    ENABLE_METRICS: bool = Field(True)

    # Storage
    VIDEO_DIR: Path = Field(Path("/app/data/videos"))
    TEMP_DIR: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    PUBLIC_BASE_URL: Optional[str] = Field(None)

    # Fetching
    MAX_IMAGE_BYTES: int = Field(25 * 1024 * 1024)
    DOWNLOAD_TIMEOUT_MS: int = Field(15000)
    MAX_REDIRECTS: int = Field(3)
    FETCH_STRATEGY: str = Field("streamed")
    FETCH_CHUNK_SIZE: int = Field(64 * 1024)

    # Encoding
    FFMPEG_PATH: str = Field("ffmpeg")
    VIDEO_CODEC: str = Field("libx264")
    VIDEO_CRF: int = Field(26, ge=0, le=51)
    VIDEO_PRESET: str = Field("slow")
    VIDEO_MAXRATE_KBPS: int = Field(2500)
    VIDEO_BUFSIZE_KBPS: int = Field(5000)
    VIDEO_KEYINT: int = Field(240)
    AUDIO_BR_KBPS: int = Field(64)
    BASELINE_AUDIO_BR_KBPS: int = Field(128)
    BACKGROUND_COLOR: str = Field("black")
    ENCODE_TIMEOUT_SECONDS: float = Field(300.0)

    # Request defaults and bounds
    TARGET_WIDTH: int = Field(1080)
    TARGET_HEIGHT: int = Field(1920)
    MIN_DIMENSION: int = Field(16)
    MAX_DIMENSION: int = Field(4096)
    DEFAULT_DURATION: int = Field(20)
    MIN_DURATION: int = Field(1)
    MAX_DURATION: int = Field(90)
    DEFAULT_FPS: int = Field(30)
    MIN_FPS: int = Field(1)
    MAX_FPS: int = Field(60)
    DEFAULT_INTRO_DURATION: int = Field(1)
    INTRO_MAX_DURATION: int = Field(1)

    @field_validator("VIDEO_CODEC")
    @classmethod
    def validate_codec(cls, v: str) -> str:
        if v not in SUPPORTED_CODECS:
            raise ValueError(f"VIDEO_CODEC must be one of {sorted(SUPPORTED_CODECS)}, got {v!r}")
        return v

    @field_validator("VIDEO_PRESET")
    @classmethod
    def validate_preset(cls, v: str) -> str:
        if v not in SUPPORTED_PRESETS:
            raise ValueError(f"VIDEO_PRESET must be one of {sorted(SUPPORTED_PRESETS)}, got {v!r}")
        return v

    @field_validator("FETCH_STRATEGY")
    @classmethod
    def validate_strategy(cls, v: str) -> str:
        v = v.lower()
        if v not in FETCH_STRATEGIES:
            raise ValueError(f"FETCH_STRATEGY must be one of {sorted(FETCH_STRATEGIES)}, got {v!r}")
        return v

    @field_validator(
        "MAX_IMAGE_BYTES", "DOWNLOAD_TIMEOUT_MS", "FETCH_CHUNK_SIZE",
        "VIDEO_MAXRATE_KBPS", "VIDEO_BUFSIZE_KBPS", "VIDEO_KEYINT",
        "AUDIO_BR_KBPS", "BASELINE_AUDIO_BR_KBPS",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("MAX_REDIRECTS", "INTRO_MAX_DURATION")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @model_validator(mode="after")
    def validate_bounds(self) -> "Settings":
        if self.MIN_DURATION > self.MAX_DURATION:
            raise ValueError("MIN_DURATION must not exceed MAX_DURATION")
        if self.MIN_FPS > self.MAX_FPS:
            raise ValueError("MIN_FPS must not exceed MAX_FPS")
        if self.MIN_DIMENSION > self.MAX_DIMENSION:
            raise ValueError("MIN_DIMENSION must not exceed MAX_DIMENSION")
        return self

    @property
    def download_timeout_seconds(self) -> float:
        return self.DOWNLOAD_TIMEOUT_MS / 1000


settings = Settings()
