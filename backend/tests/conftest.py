"""Shared fixtures: rasterizer doubles and sample label configs."""

import io

import pytest
from PIL import Image

from etiquetador.models.label_types import LabelConfig, Symbology
from etiquetador.services.label_compositor import LabelCompositor
from etiquetador.services.rasterizers import BarcodeOptions, RasterizationError


class FakeBarcodeRasterizer:
    """Solid black raster of a fixed size; records every call."""

    def __init__(self, size: tuple[int, int] = (200, 80)):
        self.size = size
        self.calls: list[tuple[str, Symbology, BarcodeOptions]] = []

    async def rasterize(self, value: str, symbology: Symbology, options: BarcodeOptions) -> Image.Image:
        self.calls.append((value, symbology, options))
        return Image.new("RGB", self.size, "black")


class FakeQRRasterizer:
    def __init__(self):
        self.calls: list[tuple[str, int, int]] = []

    async def rasterize(self, value: str, size: int, margin: int = 1) -> Image.Image:
        self.calls.append((value, size, margin))
        return Image.new("RGB", (size, size), "black")


class FailingRasterizer:
    """Both rasterizer contracts, always failing."""

    async def rasterize(self, value, *args, **kwargs) -> Image.Image:
        raise RasterizationError(f"valor rechazado: {value}")


@pytest.fixture
def barcode_rasterizer() -> FakeBarcodeRasterizer:
    return FakeBarcodeRasterizer()


@pytest.fixture
def qr_rasterizer() -> FakeQRRasterizer:
    return FakeQRRasterizer()


@pytest.fixture
def compositor(barcode_rasterizer, qr_rasterizer) -> LabelCompositor:
    """Compositor with fake rasterizers (no python-barcode/qrcode involved)."""
    return LabelCompositor(barcode_rasterizer=barcode_rasterizer, qr_rasterizer=qr_rasterizer)


@pytest.fixture
def failing_compositor() -> LabelCompositor:
    return LabelCompositor(barcode_rasterizer=FailingRasterizer(), qr_rasterizer=FailingRasterizer())


@pytest.fixture
def sample_config() -> LabelConfig:
    """Default 50x30 mm EAN13 label with text in every band."""
    return LabelConfig(
        value="7501234567893",
        symbology=Symbology.EAN13,
        description="Producto A",
        price="10.99",
        lot="L-01",
        header_text="Mi Tienda",
        footer_text="Hecho en México",
    )


@pytest.fixture
def logo_png_bytes() -> bytes:
    """Small red PNG logo."""
    buffer = io.BytesIO()
    Image.new("RGB", (40, 20), "red").save(buffer, format="PNG")
    return buffer.getvalue()
