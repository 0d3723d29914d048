"""
Settings - centralized configuration for a compilation run.

Values come from keyword arguments, ``REPRODOC_*`` environment variables
or a ``.env`` file in the working directory, in that order of precedence.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Compiler settings"""

    model_config = SettingsConfigDict(
        env_prefix="REPRODOC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========== Output ==========
    default_formats: list[str] = ["html"]

    # ========== Evaluation ==========
    engines: list[str] = ["python", "py", "python3"]

    # ========== Citations ==========
    citation_style: str = Field(default="author-year", pattern=r"^(author-year|numeric)$")
    references_title: str = "References"

    # ========== Figures ==========
    figure_format: str = "png"
    figure_dpi: int = Field(default=96, gt=0)
    figure_width: float = Field(default=7.0, gt=0, description="Default figure width in inches")
    figure_height: float = Field(default=5.0, gt=0, description="Default figure height in inches")

    # ========== PDF ==========
    pdf_paper: str = "a4"
    pdf_margin: float = Field(default=54.0, ge=0, description="Page margin in points")

    # ========== Logging ==========
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: str | None = None
    log_max_size_mb: int = Field(default=10, gt=0)
    log_backup_count: int = Field(default=3, ge=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
