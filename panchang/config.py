from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings, read from ``PANCHANG_*`` environment variables.
    """

    model_config = SettingsConfigDict(env_prefix="PANCHANG_", env_file=".env", extra="ignore")

    # Ephemeris
    ephemeris_file: str = Field(default="de421.bsp", description="JPL kernel loaded by skyfield")
    ephemeris_dir: Optional[str] = Field(
        default=None,
        description="Directory skyfield downloads/reads kernels from (cwd when unset)",
    )
    default_ayanamsha: str = Field(default="lahiri", description="Sidereal correction used when none is given")

    # Festivals
    default_region: str = Field(default="universal", description="Festival rule table id")
    default_tradition: str = Field(default="smartha", description="Ekadashi observance: smartha or vaishnava")
    amavasya_tolerance_deg: float = Field(default=8.0, description="Elongation tolerance for Amavasya/Purnima")

    # Aggregator
    location_bucket_degrees: float = Field(default=0.01, description="Coordinate granularity of cache keys")
    max_concurrency: int = Field(default=8, description="Concurrent per-day ephemeris calls within a batch")

    log_level: str = Field(default="INFO")

    @field_validator("location_bucket_degrees")
    @classmethod
    def _positive_bucket(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("location_bucket_degrees must be positive")
        return v

    @field_validator("max_concurrency")
    @classmethod
    def _positive_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrency must be at least 1")
        return v

    @field_validator("amavasya_tolerance_deg")
    @classmethod
    def _tolerance_range(cls, v: float) -> float:
        if not 0 < v < 90:
            raise ValueError("amavasya_tolerance_deg must be in (0, 90)")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
