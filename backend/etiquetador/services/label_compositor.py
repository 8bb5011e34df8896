# backend/etiquetador/services/label_compositor.py
"""
Label compositor: one LabelConfig -> one raster.

Layout (all ratios are fractions of the label's pixel size):

┌──────────────────────────────┐
│ [logo]     HEADER            │  pad = 3% H, header advances 12% H
│          ║║║║║║║║║║          │  body region: 55% H (45% for codeTop)
│          ║║║║║║║║║║          │
│         7501234567893        │
│ Descripción                  │  body lines: description, price, lot
│ Precio: 10.99                │
│ Lote: L-01                   │
│ Pie de página                │  footer anchored to the bottom
└──────────────────────────────┘

Barcode and QR pixels come from external rasterizers. A rasterizer failure
fills the body region with an error placeholder and stops drawing that label.
"""

import logging
import math
from dataclasses import dataclass, field
from functools import lru_cache
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

from etiquetador.config import LABEL, mm_to_pixels
from etiquetador.models.label_types import BodyAlign, LabelConfig, LabelLayout, LabelMode
from etiquetador.services.image_codec import LogoCache
from etiquetador.services.rasterizers import (
    BarcodeOptions,
    PythonBarcodeRasterizer,
    QRCodeRasterizer,
    QRRasterizer,
    RasterizationError,
    SymbologyRasterizer,
)

logger = logging.getLogger(__name__)

FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "DejaVuSans.ttf",
    "arial.ttf",
)


def round_px(value: float) -> int:
    """Round half up (Math.round semantics), not banker's rounding."""
    return math.floor(value + 0.5)


def label_pixel_size(config: LabelConfig, dpi: float) -> tuple[int, int]:
    """Raster size for a config at ``dpi``, floored at LABEL.MIN_RASTER_PX."""
    width = max(LABEL.MIN_RASTER_PX, round_px(mm_to_pixels(config.width_mm, dpi)))
    height = max(LABEL.MIN_RASTER_PX, round_px(mm_to_pixels(config.height_mm, dpi)))
    return width, height


@lru_cache(maxsize=64)
def get_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Sans-serif font at a pixel size."""
    for path in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


@dataclass(frozen=True)
class DrawOp:
    """One recorded drawing instruction."""

    kind: str  # fill | text | image
    x: int
    y: int
    width: int = 0
    height: int = 0
    text: str = ""
    size: int = 0
    color: str = ""


class LabelCanvas:
    """PIL surface that records every drawing instruction it executes."""

    def __init__(self, width: int, height: int, background: str = LABEL.COLOR_WHITE):
        self.width = width
        self.height = height
        self.image = Image.new("RGB", (width, height), background)
        self._draw = ImageDraw.Draw(self.image)
        self.ops: list[DrawOp] = [DrawOp("fill", 0, 0, width, height, color=background)]

    def measure(self, text: str, size: int) -> int:
        return round_px(self._draw.textlength(text, font=get_font(size)))

    def fill_rect(self, x: int, y: int, width: int, height: int, color: str) -> None:
        self._draw.rectangle((x, y, x + width - 1, y + height - 1), fill=color)
        self.ops.append(DrawOp("fill", x, y, width, height, color=color))

    def text(self, x: int, y: int, text: str, size: int, color: str = LABEL.COLOR_BLACK) -> None:
        # Top-left anchored like a canvas with textBaseline = top
        self._draw.text((x, y), text, fill=color, font=get_font(size), anchor="la")
        self.ops.append(DrawOp("text", x, y, text=text, size=size, color=color))

    def paste(self, img: Image.Image, x: int, y: int, width: int, height: int) -> None:
        if img.size != (width, height):
            img = img.resize((max(1, width), max(1, height)), Image.Resampling.LANCZOS)
        mask = img if img.mode == "RGBA" else None
        self.image.paste(img, (x, y), mask)
        self.ops.append(DrawOp("image", x, y, width, height))

    def aligned_text(self, text: str, y: int, size: int, align: BodyAlign) -> None:
        """Left/right text keeps a fixed offset from the label edge."""
        text_width = self.measure(text, size)
        if align == BodyAlign.CENTER:
            x = round_px((self.width - text_width) / 2)
        elif align == BodyAlign.RIGHT:
            x = round_px(self.width - text_width - LABEL.TEXT_EDGE_OFFSET_PX)
        else:
            x = LABEL.TEXT_EDGE_OFFSET_PX
        self.text(x, y, text, size)


@dataclass
class RenderedLabel:
    """Compositor output."""

    image: Image.Image
    dpi: float
    error: str | None = None
    operations: tuple[DrawOp, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_png(self) -> bytes:
        buffer = BytesIO()
        self.image.save(buffer, format="PNG", dpi=(self.dpi, self.dpi))
        return buffer.getvalue()


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Uniform scale-down to fit a box; never upscales."""
    scale = min(max_width / width, max_height / height, 1.0)
    return max(1, round_px(width * scale)), max(1, round_px(height * scale))


class LabelCompositor:
    """
    Deterministic label layout.

    Rendering the same config at the same dpi always yields the same pixel
    size and the same DrawOp sequence.
    """

    def __init__(
        self,
        barcode_rasterizer: SymbologyRasterizer | None = None,
        qr_rasterizer: QRRasterizer | None = None,
        logos: LogoCache | None = None,
    ):
        self.barcode_rasterizer = barcode_rasterizer or PythonBarcodeRasterizer()
        self.qr_rasterizer = qr_rasterizer or QRCodeRasterizer()
        self.logos = logos

    async def render_preview(self, config: LabelConfig) -> RenderedLabel:
        """Screen preview, always at LABEL.SCREEN_DPI."""
        return await self.render(config, LABEL.SCREEN_DPI)

    async def render(self, config: LabelConfig, dpi: float) -> RenderedLabel:
        """
        Render one label.

        Args:
            config: Label configuration
            dpi: Target resolution

        Returns:
            RenderedLabel; ``error`` is set when the rasterizer failed and the
            body region holds the error placeholder instead of a code
        """
        if self.logos is not None:
            config = await self.logos.attach(config)

        width, height = label_pixel_size(config, dpi)
        canvas = LabelCanvas(width, height)

        pad = round_px(height * LABEL.PADDING_RATIO)
        y = pad

        if config.header_text:
            size = max(LABEL.MIN_HEADER_FONT_PX, round_px(height * config.header_scale))
            text_width = canvas.measure(config.header_text, size)
            x = max(pad, min(width - pad - text_width, round_px((width - text_width) / 2)))
            canvas.text(x, y, config.header_text, size)
            y += round_px(height * LABEL.HEADER_ADVANCE_RATIO)

        logo = config.logo_image
        logo_left = config.layout == LabelLayout.LOGO_LEFT and logo is not None

        if logo is not None:
            box_w = round_px(width * LABEL.LOGO_BOX_RATIO)
            box_h = round_px(height * LABEL.LOGO_BOX_RATIO)
            logo_w, logo_h = fit_within(logo.width, logo.height, box_w, box_h)
            canvas.paste(logo, pad, y, logo_w, logo_h)

        area_y = y
        area_height = round_px(height * LABEL.BODY_HEIGHT_RATIO)

        if logo_left:
            strip_w = round_px(width * LABEL.LOGO_BOX_RATIO)
            strip_h = round_px(height * LABEL.LOGO_STRIP_HEIGHT_RATIO)
            logo_w, logo_h = fit_within(logo.width, logo.height, strip_w, strip_h)
            canvas.paste(logo, pad, y, logo_w, logo_h)

        if config.layout == LabelLayout.CODE_TOP:
            area_height = round_px(height * LABEL.BODY_HEIGHT_CODE_TOP_RATIO)

        if config.mode == LabelMode.BARCODE:
            error = await self._draw_barcode(canvas, config, dpi, pad, area_y, area_height, logo_left)
        else:
            error = await self._draw_qr(canvas, config, pad, area_y, area_height, logo_left)

        if error:
            return RenderedLabel(canvas.image, dpi, error, tuple(canvas.ops))

        self._draw_body_text(canvas, config, area_y + area_height)
        self._draw_footer(canvas, config, pad)

        return RenderedLabel(canvas.image, dpi, None, tuple(canvas.ops))

    async def _draw_barcode(
        self,
        canvas: LabelCanvas,
        config: LabelConfig,
        dpi: float,
        pad: int,
        area_y: int,
        area_height: int,
        logo_left: bool,
    ) -> str | None:
        width, height = canvas.width, canvas.height
        options = BarcodeOptions(
            show_value=config.show_value,
            margin=max(LABEL.MIN_BARCODE_MARGIN_PX, round_px(height * 0.01)),
            bar_width=max(1, round_px(width / 200)),
            bar_height=max(LABEL.MIN_RASTER_PX, round_px(area_height * LABEL.BARCODE_HEIGHT_RATIO)),
            font_size=max(LABEL.MIN_TEXT_FONT_PX, round_px(height * config.body_scale)),
            line_color=LABEL.COLOR_BLACK,
            background=LABEL.COLOR_WHITE,
            dpi=max(1, round_px(dpi)),
        )

        try:
            raster = await self.barcode_rasterizer.rasterize(config.value, config.symbology, options)
        except RasterizationError as e:
            message = f"No se pudo generar el código de barras: {e}"
            self._draw_error(canvas, pad, area_y, area_height, "Error al generar código")
            logger.warning(f"[RENDER] {config.symbology.value} {config.value!r}: {e}")
            return message

        min_x = round_px(width * LABEL.LOGO_LEFT_MIN_X_RATIO) if logo_left else pad
        max_width = max(1, width - pad - min_x) if logo_left else max(LABEL.MIN_RASTER_PX, width - pad * 2)
        bc_w, bc_h = fit_within(raster.width, raster.height, max_width, max(1, area_height))

        dx = round_px((width - bc_w) / 2)
        if logo_left:
            # Keep clear of the logo strip
            dx = max(dx, min_x)
        canvas.paste(raster, dx, area_y, bc_w, bc_h)
        return None

    async def _draw_qr(
        self,
        canvas: LabelCanvas,
        config: LabelConfig,
        pad: int,
        area_y: int,
        area_height: int,
        logo_left: bool,
    ) -> str | None:
        width, height = canvas.width, canvas.height
        qr_size = round_px(min(width, height) * LABEL.QR_SIZE_RATIO)
        if logo_left:
            qr_size = round_px(qr_size * LABEL.QR_LOGO_LEFT_FACTOR)
        qr_size = max(1, qr_size)

        try:
            raster = await self.qr_rasterizer.rasterize(config.value, qr_size, 1)
        except RasterizationError as e:
            message = f"No se pudo generar el QR: {e}"
            self._draw_error(canvas, pad, area_y, area_height, "Error al generar QR")
            logger.warning(f"[RENDER] QR {config.value!r}: {e}")
            return message

        x = round_px((width - qr_size) / 2)
        y = area_y + round_px((area_height - qr_size) / 2)
        canvas.paste(raster, x, y, qr_size, qr_size)
        return None

    def _draw_error(self, canvas: LabelCanvas, pad: int, area_y: int, area_height: int, text: str) -> None:
        canvas.fill_rect(pad, area_y, canvas.width - pad * 2, area_height, LABEL.COLOR_ERROR_FILL)
        size = max(LABEL.MIN_HEADER_FONT_PX, round_px(canvas.height * LABEL.ERROR_FONT_RATIO))
        canvas.text(pad + 6, area_y + 6, text, size, LABEL.COLOR_ERROR_TEXT)

    def _draw_body_text(self, canvas: LabelCanvas, config: LabelConfig, body_bottom: int) -> None:
        height = canvas.height
        text_y = body_bottom + round_px(height * LABEL.BODY_TEXT_GAP_RATIO)
        size = max(LABEL.MIN_TEXT_FONT_PX, round_px(height * config.body_scale))
        line_gap = max(2, round_px(height * LABEL.LINE_GAP_RATIO))
        advance = round_px(height * config.body_scale * LABEL.LINE_HEIGHT_FACTOR) + line_gap

        lines: list[str] = []
        if config.description:
            lines.append(config.description)
        if config.price:
            lines.append(f"Precio: {config.price}")
        if config.lot:
            lines.append(f"Lote: {config.lot}")

        for line in lines:
            canvas.aligned_text(line, text_y, size, config.body_align)
            text_y += advance

    def _draw_footer(self, canvas: LabelCanvas, config: LabelConfig, pad: int) -> None:
        if not config.footer_text:
            return
        size = max(LABEL.MIN_TEXT_FONT_PX, round_px(canvas.height * config.footer_scale))
        canvas.aligned_text(config.footer_text, canvas.height - pad - size, size, config.body_align)
