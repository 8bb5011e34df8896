"""
Per-symbology input checks run before rasterization.

Check digits are left to the rasterizer; this only rejects values that are
obviously malformed for the selected barcode standard. Results are plain
strings: "" means valid, anything else is the reason shown to the user.
"""

import re

from etiquetador.config import LABEL
from etiquetador.models.label_types import LabelConfig, LabelMode, Symbology

ValidationResult = str

VALID = ""

_DIGITS = re.compile(r"[0-9]+")

# Symbology -> (allowed lengths, failure reason)
DIGIT_RULES: dict[Symbology, tuple[frozenset[int], str]] = {
    Symbology.EAN13: (frozenset({12, 13}), "EAN13 debe ser 12 o 13 dígitos"),
    Symbology.EAN8: (frozenset({7, 8}), "EAN8 debe ser 7 u 8 dígitos"),
    Symbology.UPC: (frozenset({11, 12}), "UPC-A debe ser 11 o 12 dígitos"),
    Symbology.ITF14: (frozenset({13, 14}), "ITF-14 debe ser 13 o 14 dígitos"),
}

EMPTY_VALUE = "Valor vacío"
INVALID_SIZE = "Tamaño etiqueta inválido"
DPI_TOO_LOW = f"DPI muy bajo (<{LABEL.MIN_DPI})"


def is_ascii_digits(value: str) -> bool:
    return _DIGITS.fullmatch(value) is not None


def validate_value(value: str, symbology: Symbology) -> ValidationResult:
    """
    Check a payload against the rules of one symbology.

    Args:
        value: Encoded payload
        symbology: Barcode standard

    Returns:
        "" when valid, otherwise the failure reason
    """
    if not value:
        return EMPTY_VALUE

    rule = DIGIT_RULES.get(symbology)
    if rule is None:
        # MSI, pharmacode, codabar, CODE128: no charset/length rule
        return VALID

    lengths, reason = rule
    if not is_ascii_digits(value) or len(value) not in lengths:
        return reason
    return VALID


def validate_geometry(width_mm: float, height_mm: float, dpi: float) -> ValidationResult:
    """Size and resolution gate, independent of mode."""
    if width_mm <= 0 or height_mm <= 0:
        return INVALID_SIZE
    if dpi < LABEL.MIN_DPI:
        return DPI_TOO_LOW
    return VALID


def validate_config(config: LabelConfig) -> ValidationResult:
    """
    Validate one label configuration.

    Order: empty value, symbology rule (barcode mode only), size, dpi.
    """
    if not config.value:
        return EMPTY_VALUE

    if config.mode == LabelMode.BARCODE:
        reason = validate_value(config.value, config.symbology)
        if reason:
            return reason

    return validate_geometry(config.width_mm, config.height_mm, config.dpi)
