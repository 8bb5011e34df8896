"""
Spreadsheet row -> LabelConfig mapping.

Each canonical field is looked up through the user's column alias first,
then through the recognized column names (Spanish first, English second).
Unset or unparsable cells inherit the current form defaults, so mapping
never fails; invalid payloads are reported later by the batch validator.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable

from etiquetador.models.label_types import (
    BatchRow,
    BodyAlign,
    ColumnAliasMap,
    LabelConfig,
    LabelLayout,
    LabelMode,
    Symbology,
)

logger = logging.getLogger(__name__)

TRUTHY_TOKENS = frozenset({"true", "1", "si", "sí", "y", "yes"})
FALSY_TOKENS = frozenset({"false", "0", "no", "n"})

LAYOUT_SYNONYMS: dict[str, LabelLayout] = {
    "classic": LabelLayout.CLASSIC,
    "clasico": LabelLayout.CLASSIC,
    "clásico": LabelLayout.CLASSIC,
    "logoleft": LabelLayout.LOGO_LEFT,
    "logo_left": LabelLayout.LOGO_LEFT,
    "logo izquierda": LabelLayout.LOGO_LEFT,
    "codetop": LabelLayout.CODE_TOP,
    "code_top": LabelLayout.CODE_TOP,
    "codigo arriba": LabelLayout.CODE_TOP,
    "código arriba": LabelLayout.CODE_TOP,
}

ALIGN_SYNONYMS: dict[str, BodyAlign] = {
    "left": BodyAlign.LEFT,
    "izquierda": BodyAlign.LEFT,
    "center": BodyAlign.CENTER,
    "centro": BodyAlign.CENTER,
    "right": BodyAlign.RIGHT,
    "derecha": BodyAlign.RIGHT,
}


@dataclass(frozen=True)
class FieldSpec:
    """How one LabelConfig attribute is read from a row."""

    canonical: str  # Alias map key
    attr: str  # LabelConfig attribute
    columns: tuple[str, ...]  # Recognized names, in lookup order
    kind: str  # text | number | integer | quantity | boolean | symbology | mode | layout | align


FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("Codigo", "value", ("Codigo", "Código", "Valor", "Value", "Codigo_o_texto"), "text"),
    FieldSpec("Tipo", "symbology", ("Tipo", "Type"), "symbology"),
    FieldSpec("Modo", "mode", ("Modo", "mode"), "mode"),
    FieldSpec("MostrarValor", "show_value", ("MostrarValor", "ShowValue"), "boolean"),
    FieldSpec("Descripcion", "description", ("Descripcion", "Descripción", "Description"), "text"),
    FieldSpec("Precio", "price", ("Precio", "Price"), "text"),
    FieldSpec("Lote", "lot", ("Lote", "Lot"), "text"),
    FieldSpec("Encabezado", "header_text", ("Encabezado", "Header"), "text"),
    FieldSpec("Pie", "footer_text", ("Pie", "Footer"), "text"),
    FieldSpec("LogoUrl", "logo_source", ("LogoUrl", "Logo"), "text"),
    FieldSpec("Ancho_mm", "width_mm", ("Ancho_mm", "Width_mm"), "number"),
    FieldSpec("Alto_mm", "height_mm", ("Alto_mm", "Height_mm"), "number"),
    FieldSpec("Margen_mm", "margin_mm", ("Margen_mm", "Margin_mm"), "number"),
    FieldSpec("DPI", "dpi", ("DPI", "dpi"), "integer"),
    FieldSpec("Layout", "layout", ("Layout",), "layout"),
    FieldSpec("Alineacion", "body_align", ("Alineacion", "Alineación", "Align"), "align"),
    FieldSpec("EscalaEncabezado", "header_scale", ("EscalaEncabezado", "HeaderScale"), "number"),
    FieldSpec("EscalaCuerpo", "body_scale", ("EscalaCuerpo", "BodyScale"), "number"),
    FieldSpec("EscalaPie", "footer_scale", ("EscalaPie", "FooterScale"), "number"),
    FieldSpec("Cantidad", "qty", ("Cantidad", "Qty", "Quantity"), "quantity"),
)


def is_blank(value: Any) -> bool:
    """Missing, null, empty string or NaN cell."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, float):
        return math.isnan(value)
    return False


def to_text(value: Any) -> str:
    """
    Cell value as text.

    Integral floats from Excel (4601234567890.0) lose the ".0".
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value == int(value):
        return str(int(value))
    return str(value)


def parse_number(value: Any, default: float) -> float:
    """Locale-agnostic float; non-numeric or non-finite -> default."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def parse_bool(value: Any, default: bool) -> bool:
    """Literal booleans, non-zero numbers or yes/no tokens in two languages."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        token = value.strip().lower()
        if token in TRUTHY_TOKENS:
            return True
        if token in FALSY_TOKENS:
            return False
    return default


class RowMapper:
    """
    Resolves generic spreadsheet rows into LabelConfig objects.

    Never raises: every row produces a config.
    """

    def __init__(self, aliases: ColumnAliasMap | None = None):
        self.aliases = aliases or ColumnAliasMap()
        self._converters: dict[str, Callable[[Any, Any], Any]] = {
            "text": lambda raw, default: to_text(raw),
            "number": parse_number,
            "integer": self._parse_integer,
            "quantity": self._parse_quantity,
            "boolean": parse_bool,
            "symbology": self._parse_symbology,
            "mode": self._parse_mode,
            "layout": lambda raw, default: LAYOUT_SYNONYMS.get(to_text(raw).strip().lower(), default),
            "align": lambda raw, default: ALIGN_SYNONYMS.get(to_text(raw).strip().lower(), default),
        }

    def candidates(self, spec: FieldSpec) -> list[str]:
        """Column names tried for a field, alias first."""
        alias = self.aliases.get(spec.canonical)
        names = list(spec.columns)
        if alias:
            names.insert(0, alias)
        return names

    def lookup(self, row: BatchRow, spec: FieldSpec) -> Any | None:
        """First present, non-empty cell among the candidates, else None."""
        for column in self.candidates(spec):
            value = row.get(column)
            if not is_blank(value):
                return value
        return None

    def map_row(self, row: BatchRow, defaults: LabelConfig) -> LabelConfig:
        """
        Map one row onto a copy of the defaults snapshot.

        Args:
            row: Column name -> cell value
            defaults: Current form values used for unset/unparsable cells

        Returns:
            LabelConfig (possibly carrying an invalid value)
        """
        changes: dict[str, Any] = {}
        for spec in FIELDS:
            raw = self.lookup(row, spec)
            default = 1 if spec.kind == "quantity" else getattr(defaults, spec.attr)
            if raw is None:
                changes[spec.attr] = default
                continue
            changes[spec.attr] = self._converters[spec.kind](raw, default)

        # Another logo source needs its own decode
        if changes["logo_source"] != defaults.logo_source:
            changes["logo_image"] = None

        return replace(defaults, **changes)

    def map_rows(self, rows: list[BatchRow], defaults: LabelConfig) -> list[LabelConfig]:
        return [self.map_row(row, defaults) for row in rows]

    @staticmethod
    def _parse_integer(raw: Any, default: int) -> int:
        number = parse_number(raw, float("nan"))
        return default if math.isnan(number) else int(number)

    @staticmethod
    def _parse_quantity(raw: Any, default: int) -> int:
        number = parse_number(raw, float(default))
        return max(1, math.floor(number))

    @staticmethod
    def _parse_symbology(raw: Any, default: Symbology) -> Symbology:
        symbology = Symbology.lookup(to_text(raw))
        if symbology is None:
            logger.debug(f"Unknown symbology {raw!r}, keeping {default.value}")
            return default
        return symbology

    @staticmethod
    def _parse_mode(raw: Any, default: LabelMode) -> LabelMode:
        # Only an explicit "qr" selects QR; anything else is a barcode
        return LabelMode.QR if to_text(raw).strip().lower() == "qr" else LabelMode.BARCODE


def map_row(row: BatchRow, aliases: ColumnAliasMap, defaults: LabelConfig) -> LabelConfig:
    """Functional shortcut for RowMapper(aliases).map_row(row, defaults)."""
    return RowMapper(aliases).map_row(row, defaults)
