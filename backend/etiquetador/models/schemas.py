"""
Pydantic schemas for the API.

Request and response models.
"""

from typing import Literal

from pydantic import BaseModel, Field

from etiquetador.config import LABEL
from etiquetador.models.label_types import (
    BodyAlign,
    LabelConfig,
    LabelLayout,
    LabelMode,
    Symbology,
)

# === Labels ===


class LabelConfigSchema(BaseModel):
    """One label (or the form defaults used for a batch)."""

    value: str = Field(default=LABEL.DEFAULT_VALUE, description="Encoded payload")
    symbology: Symbology = Field(default=Symbology.CODE128, description="Barcode standard")
    mode: LabelMode = Field(default=LabelMode.BARCODE, description="barcode or qr")
    show_value: bool = Field(default=True, description="Print the human-readable value")

    description: str = Field(default="", description="First body line")
    price: str = Field(default="", description='Printed as "Precio: <price>"')
    lot: str = Field(default="", description='Printed as "Lote: <lot>"')
    header_text: str = Field(default="", description="Centered header")
    footer_text: str = Field(default="", description="Footer line")
    logo_source: str = Field(default="", description="Logo data URL, http(s) URL or path under LOGO_DIR")

    width_mm: float = Field(default=LABEL.DEFAULT_WIDTH_MM, description="Label width, mm")
    height_mm: float = Field(default=LABEL.DEFAULT_HEIGHT_MM, description="Label height, mm")
    margin_mm: float = Field(default=LABEL.DEFAULT_MARGIN_MM, description="Page margin and gap, mm")
    dpi: int = Field(default=LABEL.DEFAULT_DPI, description="Export resolution")

    layout: LabelLayout = Field(default=LabelLayout.CLASSIC, description="Layout variant")
    body_align: BodyAlign = Field(default=BodyAlign.CENTER, description="Body text alignment")
    header_scale: float = Field(default=LABEL.DEFAULT_HEADER_SCALE, description="Header font / height")
    body_scale: float = Field(default=LABEL.DEFAULT_BODY_SCALE, description="Body font / height")
    footer_scale: float = Field(default=LABEL.DEFAULT_FOOTER_SCALE, description="Footer font / height")

    qty: int = Field(default=1, ge=1, description="Copies")

    def to_config(self) -> LabelConfig:
        return LabelConfig(**self.model_dump())


class LabelPreset(BaseModel):
    """Label size preset."""

    name: str = Field(description="Preset name")
    width_mm: float = Field(description="Width, mm")
    height_mm: float = Field(description="Height, mm")
    margin_mm: float = Field(description="Margin, mm")


class PageFormatInfo(BaseModel):
    """Page size."""

    name: str = Field(description="a4 or letter")
    width_mm: float = Field(description="Width, mm")
    height_mm: float = Field(description="Height, mm")


class TemplatesResponse(BaseModel):
    """Available presets and page formats."""

    presets: list[LabelPreset]
    page_formats: list[PageFormatInfo]


# === Batch ===


class BatchRowStatus(BaseModel):
    """Validation status of one spreadsheet row."""

    index: int = Field(description="1-based row number (data rows only)")
    value: str = Field(description="Mapped payload")
    symbology: Symbology
    mode: LabelMode
    qty: int
    valid: bool
    error: str = Field(default="", description="Empty when valid")


class BatchValidationResponse(BaseModel):
    """Batch mapping + validation result."""

    loaded: bool = Field(description="False when the file could not be read")
    columns: list[str] = Field(default_factory=list, description="Headers found in the sheet")
    rows: list[BatchRowStatus] = Field(default_factory=list)
    error_count: int = 0
    has_errors: bool = False


ExportKind = Literal["pdf", "html", "per-row", "archive"]


class ErrorResponse(BaseModel):
    """Error payload."""

    message: str
    hint: str | None = None
