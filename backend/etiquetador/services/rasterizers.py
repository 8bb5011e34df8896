"""
Symbology and QR rasterizers.

Thin adapters over python-barcode and qrcode. The compositor only sees the
async ``rasterize`` contract and RasterizationError; any library failure is
re-raised as RasterizationError with a readable message.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol

import qrcode
from barcode import get_barcode_class
from barcode.writer import ImageWriter
from PIL import Image

from etiquetador.config import LABEL
from etiquetador.models.label_types import Symbology

# Symbology -> python-barcode name; None means the library has no encoder
BARCODE_NAMES: dict[Symbology, str | None] = {
    Symbology.CODE128: "code128",
    Symbology.EAN13: "ean13",
    Symbology.EAN8: "ean8",
    Symbology.UPC: "upca",
    Symbology.ITF14: "itf",
    Symbology.CODABAR: "codabar",
    Symbology.MSI: None,
    Symbology.PHARMACODE: None,
}

CODABAR_GUARDS = "ABCD"


class RasterizationError(Exception):
    """A barcode or QR code could not be generated for the given input."""


@dataclass(frozen=True)
class BarcodeOptions:
    """Rasterizer parameters, all sizes in pixels."""

    show_value: bool = True
    margin: int = 4
    bar_width: int = 1
    bar_height: int = 50
    font_size: int = 10
    line_color: str = LABEL.COLOR_BLACK
    background: str = LABEL.COLOR_WHITE
    dpi: int = LABEL.DEFAULT_DPI  # Unit conversion for the writer


class SymbologyRasterizer(Protocol):
    async def rasterize(
        self, value: str, symbology: Symbology, options: BarcodeOptions
    ) -> Image.Image: ...


class QRRasterizer(Protocol):
    async def rasterize(self, value: str, size: int, margin: int = 1) -> Image.Image: ...


def gs1_check_digit(body: str) -> str:
    """
    GS1 mod-10 check digit (EAN-13, EAN-8, UPC-A, ITF-14).

    Weights alternate 3, 1 starting from the rightmost body digit.
    """
    total = sum(int(d) * (3 if i % 2 == 0 else 1) for i, d in enumerate(reversed(body)))
    return str((10 - total % 10) % 10)


# Symbology -> full length including the check digit
CHECKED_LENGTHS: dict[Symbology, int] = {
    Symbology.EAN13: 13,
    Symbology.EAN8: 8,
    Symbology.UPC: 12,
    Symbology.ITF14: 14,
}


def writer_mm(pixels: int, dpi: int) -> float:
    """
    Pixel size as ImageWriter millimeters.

    The writer truncates its mm -> px conversion, so half a pixel is added
    to land on ``pixels`` exactly instead of one below.
    """
    return LABEL.pixels_to_mm(pixels + 0.5, dpi) if pixels > 0 else 0.0


class PythonBarcodeRasterizer:
    """
    Barcode rasterizer on python-barcode's ImageWriter.

    Pixel options are converted to the writer's millimeter/point units at
    the options' dpi so the output lands at the requested pixel sizes.
    """

    def _prepare(self, value: str, symbology: Symbology) -> str:
        """
        Normalize a payload for python-barcode.

        Raises:
            RasterizationError: A supplied GS1 check digit does not match
        """
        full_length = CHECKED_LENGTHS.get(symbology)
        if full_length is not None and value.isascii() and value.isdigit():
            if len(value) == full_length:
                body = value[:-1]
                expected = gs1_check_digit(body)
                if value[-1] != expected:
                    raise RasterizationError(
                        f"Dígito verificador inválido: {value[-1]} (se esperaba {expected})"
                    )
            elif len(value) == full_length - 1:
                body = value
            else:
                return value
            # python-barcode appends the check digit itself, except for ITF
            return body + gs1_check_digit(body) if symbology == Symbology.ITF14 else body
        if symbology == Symbology.CODABAR:
            upper = value.upper()
            if not (upper[:1] in CODABAR_GUARDS and upper[-1:] in CODABAR_GUARDS and len(upper) > 1):
                return f"A{value}A"
        return value

    def render(self, value: str, symbology: Symbology, options: BarcodeOptions) -> Image.Image:
        """
        Synchronous rasterization.

        Raises:
            RasterizationError: Unsupported format or value rejected by the encoder
        """
        name = BARCODE_NAMES.get(symbology)
        if name is None:
            raise RasterizationError(f"Formato {symbology.value} no soportado")

        dpi = options.dpi
        writer_options = {
            "module_width": writer_mm(options.bar_width, dpi),
            "module_height": writer_mm(options.bar_height, dpi),
            "quiet_zone": writer_mm(options.margin, dpi),
            # ImageWriter expects points
            "font_size": max(1, round(options.font_size * 72 / dpi)) if options.show_value else 0,
            "text_distance": writer_mm(options.margin, dpi),
            "write_text": options.show_value,
            "background": options.background,
            "foreground": options.line_color,
            "dpi": dpi,
        }

        try:
            barcode_cls = get_barcode_class(name)
            code = barcode_cls(self._prepare(value, symbology), writer=ImageWriter())
            img = code.render(writer_options=writer_options)
        except Exception as e:
            raise RasterizationError(str(e) or e.__class__.__name__) from e

        return img.convert("RGB")

    async def rasterize(
        self, value: str, symbology: Symbology, options: BarcodeOptions
    ) -> Image.Image:
        return await asyncio.to_thread(self.render, value, symbology, options)


class QRCodeRasterizer:
    """QR rasterizer on the qrcode package."""

    def render(self, value: str, size: int, margin: int = 1) -> Image.Image:
        """
        Synchronous rasterization to a ``size`` x ``size`` image.

        Raises:
            RasterizationError: Empty value or data overflow
        """
        if not value:
            raise RasterizationError("Texto vacío")
        try:
            qr = qrcode.QRCode(
                error_correction=qrcode.constants.ERROR_CORRECT_M,
                box_size=10,
                border=margin,
            )
            qr.add_data(value)
            qr.make(fit=True)
            img = qr.make_image(fill_color=LABEL.COLOR_BLACK, back_color=LABEL.COLOR_WHITE)
            pil_img = img.get_image() if hasattr(img, "get_image") else img
        except Exception as e:
            raise RasterizationError(str(e) or e.__class__.__name__) from e

        return pil_img.convert("RGB").resize((size, size), Image.Resampling.NEAREST)

    async def rasterize(self, value: str, size: int, margin: int = 1) -> Image.Image:
        return await asyncio.to_thread(self.render, value, size, margin)
