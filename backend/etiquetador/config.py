"""
Etiquetador configuration.

Label constants live in LabelSettings; environment-dependent values in Settings.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LabelSettings:
    """
    Label rendering constants.

    Ratios are fractions of the label's pixel width/height at render time.
    """

    MM_PER_INCH: float = 25.4

    # Preview is always drawn at screen resolution, independent of export dpi
    SCREEN_DPI: int = 96
    MIN_DPI: int = 72

    # Reset-form values
    DEFAULT_VALUE: str = "123456789012"
    DEFAULT_WIDTH_MM: float = 50.0
    DEFAULT_HEIGHT_MM: float = 30.0
    DEFAULT_MARGIN_MM: float = 5.0
    DEFAULT_DPI: int = 300
    DEFAULT_HEADER_SCALE: float = 0.10
    DEFAULT_BODY_SCALE: float = 0.08
    DEFAULT_FOOTER_SCALE: float = 0.07

    # Page formats (width, height) in mm
    PAGE_SIZES: dict[str, tuple[float, float]] = {
        "a4": (210.0, 297.0),
        "letter": (216.0, 279.0),
    }

    # Size presets: name -> (width, height, margin) in mm
    PRESETS: dict[str, tuple[float, float, float]] = {
        "50 x 30 mm": (50.0, 30.0, 5.0),
        "70 x 25 mm": (70.0, 25.0, 4.0),
        "100 x 50 mm": (100.0, 50.0, 6.0),
    }

    # Layout ratios
    PADDING_RATIO: float = 0.03
    HEADER_ADVANCE_RATIO: float = 0.12
    LOGO_BOX_RATIO: float = 0.22
    LOGO_STRIP_HEIGHT_RATIO: float = 0.5
    BODY_HEIGHT_RATIO: float = 0.55
    BODY_HEIGHT_CODE_TOP_RATIO: float = 0.45
    BODY_TEXT_GAP_RATIO: float = 0.02
    LINE_GAP_RATIO: float = 0.01
    LINE_HEIGHT_FACTOR: float = 1.2
    BARCODE_HEIGHT_RATIO: float = 0.75
    LOGO_LEFT_MIN_X_RATIO: float = 0.25
    QR_SIZE_RATIO: float = 0.6
    QR_LOGO_LEFT_FACTOR: float = 0.75
    ERROR_FONT_RATIO: float = 0.07

    # Font floors in pixels
    MIN_HEADER_FONT_PX: int = 10
    MIN_TEXT_FONT_PX: int = 8
    MIN_RASTER_PX: int = 10
    MIN_BARCODE_MARGIN_PX: int = 4
    TEXT_EDGE_OFFSET_PX: int = 4

    # Colors
    COLOR_BLACK: str = "#000000"
    COLOR_WHITE: str = "#ffffff"
    COLOR_ERROR_FILL: str = "#ffeeee"
    COLOR_ERROR_TEXT: str = "#b00020"

    @classmethod
    def mm_to_pixels(cls, mm: float, dpi: float) -> float:
        """Millimeters to (fractional) pixels at the given dpi."""
        return (mm / cls.MM_PER_INCH) * dpi

    @classmethod
    def pixels_to_mm(cls, pixels: float, dpi: float) -> float:
        """Pixels to millimeters at the given dpi."""
        return pixels * cls.MM_PER_INCH / dpi

    @classmethod
    def page_size(cls, page_format: str) -> tuple[float, float]:
        """Page (width, height) in mm; unknown formats fall back to A4."""
        return cls.PAGE_SIZES.get(page_format.lower(), cls.PAGE_SIZES["a4"])


class Settings(BaseSettings):
    """
    Application settings from environment variables.

    Loaded from a .env file or the process environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Application ===
    app_name: str = "Etiquetador API"
    app_version: str = "0.1.0"
    debug: bool = False

    # === CORS ===
    allowed_origins: list[str] = Field(
        default=["http://localhost:4200", "http://127.0.0.1:4200"]
    )

    # === Limits ===
    max_upload_size_mb: int = 10
    max_batch_size: int = 5000  # Spreadsheet rows per batch

    # === Export ===
    default_page_format: Literal["a4", "letter"] = "a4"
    logo_fetch_timeout: float = 10.0
    # Local logo files are only read from this directory; unset disables paths
    logo_dir: Path | None = None

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @computed_field
    @property
    def max_upload_size_bytes(self) -> int:
        """Upload limit in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """
    Application settings (singleton).

    Cached so the .env file is read once.
    """
    return Settings()


LABEL = LabelSettings()


def mm_to_pixels(mm: float, dpi: float) -> float:
    """
    Convert millimeters to pixels.

    Linear in ``mm``: mm_to_pixels(0, dpi) == 0.

    Args:
        mm: Length in millimeters
        dpi: Target resolution in dots per inch

    Returns:
        Length in pixels (not rounded)
    """
    return LABEL.mm_to_pixels(mm, dpi)
