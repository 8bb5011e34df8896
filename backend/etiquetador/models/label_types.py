# backend/etiquetador/models/label_types.py
"""
Label data types shared by the mapper, validator, compositor and exporters.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from PIL import Image

from etiquetador.config import LABEL


class Symbology(str, Enum):
    """Barcode encoding standards."""

    CODE128 = "CODE128"
    EAN13 = "EAN13"
    EAN8 = "EAN8"
    UPC = "UPC"
    ITF14 = "ITF14"
    MSI = "MSI"
    PHARMACODE = "pharmacode"
    CODABAR = "codabar"

    @classmethod
    def lookup(cls, raw: str) -> "Symbology | None":
        """Case-insensitive match by value or name."""
        key = raw.strip().upper()
        for item in cls:
            if key in (item.value.upper(), item.name):
                return item
        return None


class LabelMode(str, Enum):
    """What goes in the body region."""

    BARCODE = "barcode"
    QR = "qr"


class LabelLayout(str, Enum):
    """Label layout variants."""

    CLASSIC = "classic"  # Header, logo top-left, code centered, text below
    LOGO_LEFT = "logoLeft"  # Left strip reserved for a larger logo
    CODE_TOP = "codeTop"  # Shorter body region, more room for text


class BodyAlign(str, Enum):
    """Horizontal alignment for body text lines and the footer."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass(frozen=True)
class LabelConfig:
    """
    Canonical description of one label.

    Immutable per render; ``logo_image`` is a shared decoded image that is
    never mutated, so repeated renders of the same row reuse it.
    """

    value: str = LABEL.DEFAULT_VALUE
    symbology: Symbology = Symbology.CODE128
    mode: LabelMode = LabelMode.BARCODE
    show_value: bool = True

    description: str = ""
    price: str = ""
    lot: str = ""
    header_text: str = ""
    footer_text: str = ""
    logo_source: str = ""
    logo_image: Image.Image | None = field(default=None, compare=False, repr=False)

    width_mm: float = LABEL.DEFAULT_WIDTH_MM
    height_mm: float = LABEL.DEFAULT_HEIGHT_MM
    margin_mm: float = LABEL.DEFAULT_MARGIN_MM
    dpi: int = LABEL.DEFAULT_DPI

    layout: LabelLayout = LabelLayout.CLASSIC
    body_align: BodyAlign = BodyAlign.CENTER
    header_scale: float = LABEL.DEFAULT_HEADER_SCALE
    body_scale: float = LABEL.DEFAULT_BODY_SCALE
    footer_scale: float = LABEL.DEFAULT_FOOTER_SCALE

    qty: int = 1

    @property
    def has_logo(self) -> bool:
        return self.logo_image is not None

    @property
    def copies(self) -> int:
        """Repetition count, never below one."""
        return max(1, int(self.qty or 1))

    def with_preset(self, name: str) -> "LabelConfig":
        """
        Apply a size preset (width, height, margin).

        Unknown preset names (e.g. "Custom") leave the geometry unchanged.
        """
        preset = LABEL.PRESETS.get(name)
        if preset is None:
            return self
        width, height, margin = preset
        return replace(self, width_mm=width, height_mm=height, margin_mm=margin)


def default_label_config() -> LabelConfig:
    """Reset-form values."""
    return LabelConfig()


# Canonical spreadsheet column names, also the keys of the alias map
CANONICAL_COLUMNS: tuple[str, ...] = (
    "Codigo",
    "Tipo",
    "Modo",
    "Cantidad",
    "MostrarValor",
    "Descripcion",
    "Precio",
    "Lote",
    "Encabezado",
    "Pie",
    "Ancho_mm",
    "Alto_mm",
    "Margen_mm",
    "DPI",
    "Layout",
    "Alineacion",
    "EscalaEncabezado",
    "EscalaCuerpo",
    "EscalaPie",
    "LogoUrl",
)


class ColumnAliasMap:
    """
    User overrides of which spreadsheet column feeds a canonical field.

    Empty (or whitespace-only) alias means "use the recognized names".
    Lives for the session only.
    """

    def __init__(self, aliases: dict[str, str] | None = None):
        self._aliases: dict[str, str] = {name: "" for name in CANONICAL_COLUMNS}
        if aliases:
            for canonical, column in aliases.items():
                self.set(canonical, column)

    def set(self, canonical: str, column: str | None) -> None:
        """
        Set the alias for a canonical field.

        Raises:
            KeyError: If ``canonical`` is not a known field
        """
        if canonical not in self._aliases:
            raise KeyError(f"Unknown label field: {canonical}")
        self._aliases[canonical] = column or ""

    def get(self, canonical: str) -> str | None:
        """Trimmed alias, or None when unset."""
        alias = self._aliases.get(canonical, "").strip()
        return alias or None

    def reset(self) -> None:
        for name in self._aliases:
            self._aliases[name] = ""

    def as_dict(self) -> dict[str, str]:
        return dict(self._aliases)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnAliasMap):
            return NotImplemented
        return self._aliases == other._aliases


# Raw spreadsheet row: column name -> cell value
BatchRow = dict[str, Any]


@dataclass(frozen=True)
class Placement:
    """One positioned item on a paginated output."""

    page_index: int
    x_mm: float
    y_mm: float
    item: Any


@dataclass(frozen=True)
class SheetLayout:
    """Page and slot geometry used for tiling, in mm."""

    page_format: str = "a4"
    label_width_mm: float = LABEL.DEFAULT_WIDTH_MM
    label_height_mm: float = LABEL.DEFAULT_HEIGHT_MM
    margin_mm: float = LABEL.DEFAULT_MARGIN_MM

    @property
    def page_size_mm(self) -> tuple[float, float]:
        return LABEL.page_size(self.page_format)

    @property
    def label_size_mm(self) -> tuple[float, float]:
        return (self.label_width_mm, self.label_height_mm)

    @classmethod
    def from_config(cls, config: LabelConfig, page_format: str = "a4") -> "SheetLayout":
        """Slot geometry taken from the form defaults."""
        return cls(
            page_format=page_format,
            label_width_mm=config.width_mm,
            label_height_mm=config.height_mm,
            margin_mm=config.margin_mm,
        )
