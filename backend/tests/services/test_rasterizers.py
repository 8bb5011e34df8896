"""Tests for the python-barcode / qrcode adapters."""

import pytest

from etiquetador.models.label_types import Symbology
from etiquetador.services.rasterizers import (
    BarcodeOptions,
    PythonBarcodeRasterizer,
    QRCodeRasterizer,
    RasterizationError,
    gs1_check_digit,
    writer_mm,
)


def test_gs1_check_digit():
    assert gs1_check_digit("1234567890123") == "1"
    assert gs1_check_digit("0001234560001") == "2"
    assert gs1_check_digit("750123456789") == "3"
    assert gs1_check_digit("03600029145") == "2"


def test_writer_mm_rounds_to_nearest_pixel():
    # ImageWriter truncates mm -> px; half a pixel extra lands it on the requested size
    for dpi in (72, 96, 203, 300):
        for pixels in (1, 2, 3, 57):
            assert int(writer_mm(pixels, dpi) * dpi / 25.4) == pixels
    assert writer_mm(0, 96) == 0.0


class TestPythonBarcodeRasterizer:
    @pytest.mark.parametrize(
        "value, symbology",
        [
            ("ABC-001", Symbology.CODE128),
            ("7501234567893", Symbology.EAN13),
            ("750123456789", Symbology.EAN13),
            ("1234567", Symbology.EAN8),
            ("03600029145", Symbology.UPC),
            ("1234567890123", Symbology.ITF14),
            ("12345678901231", Symbology.ITF14),
            ("12345", Symbology.CODABAR),
        ],
    )
    def test_supported(self, value, symbology):
        img = PythonBarcodeRasterizer().render(value, symbology, BarcodeOptions(dpi=300))

        assert img.mode == "RGB"
        assert img.width > 0 and img.height > 0

    @pytest.mark.parametrize("symbology", [Symbology.MSI, Symbology.PHARMACODE])
    def test_unsupported(self, symbology):
        with pytest.raises(RasterizationError, match="no soportado"):
            PythonBarcodeRasterizer().render("1234", symbology, BarcodeOptions())

    @pytest.mark.parametrize(
        "value, symbology",
        [
            ("7501234567891", Symbology.EAN13),
            ("12345675", Symbology.EAN8),
            ("036000291453", Symbology.UPC),
            ("12345678901234", Symbology.ITF14),
        ],
    )
    def test_wrong_check_digit_rejected(self, value, symbology):
        with pytest.raises(RasterizationError, match="Dígito verificador"):
            PythonBarcodeRasterizer().render(value, symbology, BarcodeOptions())

    @pytest.mark.parametrize("dpi", [72, 96])
    def test_low_dpi_single_pixel_modules(self, dpi):
        options = BarcodeOptions(dpi=dpi, bar_width=1, bar_height=40, margin=4)

        img = PythonBarcodeRasterizer().render("7501234567893", Symbology.EAN13, options)

        assert img.width > 0

    def test_encoder_rejection_wrapped(self):
        with pytest.raises(RasterizationError):
            PythonBarcodeRasterizer().render("ABCDEFGHIJKL", Symbology.EAN13, BarcodeOptions())

    @pytest.mark.asyncio
    async def test_async_contract(self):
        img = await PythonBarcodeRasterizer().rasterize("ABC", Symbology.CODE128, BarcodeOptions(show_value=False))

        assert img.width > 0


class TestQRCodeRasterizer:
    def test_exact_size(self):
        assert QRCodeRasterizer().render("https://example.com", 212).size == (212, 212)

    def test_empty_value(self):
        with pytest.raises(RasterizationError):
            QRCodeRasterizer().render("", 100)
