"""Tests for the label compositor."""

from dataclasses import replace

import pytest
from PIL import Image

from etiquetador.config import LABEL
from etiquetador.models.label_types import BodyAlign, LabelConfig, LabelLayout, LabelMode, Symbology
from etiquetador.services.label_compositor import (
    LabelCompositor,
    fit_within,
    label_pixel_size,
    round_px,
)


def _ops(rendered, kind: str):
    return [op for op in rendered.operations if op.kind == kind]


def _texts(rendered) -> list[str]:
    return [op.text for op in _ops(rendered, "text")]


class TestGeometry:
    def test_50x30_at_300_dpi(self):
        assert label_pixel_size(LabelConfig(width_mm=50, height_mm=30), 300) == (591, 354)

    def test_preview_size_at_96_dpi(self):
        assert label_pixel_size(LabelConfig(width_mm=50, height_mm=30), 96) == (189, 113)

    def test_minimum_raster_size(self):
        assert label_pixel_size(LabelConfig(width_mm=0.1, height_mm=0.1), 300) == (10, 10)

    def test_round_half_up(self):
        assert round_px(0.5) == 1
        assert round_px(2.5) == 3
        assert round_px(2.49) == 2

    def test_fit_within_never_upscales(self):
        assert fit_within(100, 50, 400, 400) == (100, 50)
        assert fit_within(400, 100, 200, 200) == (200, 50)


class TestRender:
    @pytest.mark.asyncio
    async def test_image_size_matches_dpi(self, compositor, sample_config):
        rendered = await compositor.render(sample_config, 300)

        assert rendered.image.size == (591, 354)
        assert rendered.ok

    @pytest.mark.asyncio
    async def test_preview_uses_screen_dpi(self, compositor, sample_config):
        rendered = await compositor.render_preview(replace(sample_config, dpi=600))

        assert rendered.dpi == LABEL.SCREEN_DPI
        assert rendered.image.size == (189, 113)

    @pytest.mark.asyncio
    async def test_same_input_same_instructions(self, compositor, sample_config):
        first = await compositor.render(sample_config, 300)
        second = await compositor.render(sample_config, 300)

        assert first.operations == second.operations
        assert first.image.tobytes() == second.image.tobytes()

    @pytest.mark.asyncio
    async def test_band_order(self, compositor, sample_config):
        rendered = await compositor.render(sample_config, 300)
        texts = _ops(rendered, "text")

        assert [op.text for op in texts] == [
            "Mi Tienda",
            "Producto A",
            "Precio: 10.99",
            "Lote: L-01",
            "Hecho en México",
        ]
        body_ys = [op.y for op in texts[:-1]]
        assert body_ys == sorted(body_ys)
        # Footer anchored to the bottom edge
        footer = texts[-1]
        assert footer.y + footer.size <= 354

    @pytest.mark.asyncio
    async def test_barcode_centered_below_header(self, compositor, barcode_rasterizer):
        config = LabelConfig(value="ABC", header_text="Tienda")
        rendered = await compositor.render(config, 300)

        (code,) = _ops(rendered, "image")
        assert (code.width, code.height) == barcode_rasterizer.size
        assert code.x == round_px((591 - 200) / 2)
        assert code.y == 11 + 42  # pad + header advance

    @pytest.mark.asyncio
    async def test_barcode_options(self, compositor, barcode_rasterizer):
        await compositor.render(LabelConfig(value="ABC", show_value=False), 300)

        value, symbology, options = barcode_rasterizer.calls[0]
        assert (value, symbology) == ("ABC", Symbology.CODE128)
        assert options.show_value is False
        assert options.margin >= 4
        assert options.font_size == round_px(354 * 0.08)
        assert options.bar_height == round_px(round_px(354 * 0.55) * 0.75)

    @pytest.mark.asyncio
    async def test_code_top_shrinks_body(self, compositor, barcode_rasterizer):
        await compositor.render(LabelConfig(value="ABC", layout=LabelLayout.CODE_TOP), 300)

        options = barcode_rasterizer.calls[0][2]
        assert options.bar_height == round_px(round_px(354 * 0.45) * 0.75)

    @pytest.mark.asyncio
    async def test_body_align_left_and_right(self, compositor, sample_config):
        left = await compositor.render(replace(sample_config, body_align=BodyAlign.LEFT), 300)
        right = await compositor.render(replace(sample_config, body_align=BodyAlign.RIGHT), 300)

        description_left = next(op for op in _ops(left, "text") if op.text == "Producto A")
        description_right = next(op for op in _ops(right, "text") if op.text == "Producto A")
        assert description_left.x == LABEL.TEXT_EDGE_OFFSET_PX
        assert description_right.x > 591 // 2

    @pytest.mark.asyncio
    async def test_qr_centered(self, compositor, qr_rasterizer):
        config = LabelConfig(value="https://example.com", mode=LabelMode.QR)
        rendered = await compositor.render(config, 300)

        qr_size = round_px(354 * 0.6)
        assert qr_rasterizer.calls[0][1] == qr_size
        (qr,) = _ops(rendered, "image")
        assert qr.x == round_px((591 - qr_size) / 2)
        area_y, area_h = 11, round_px(354 * 0.55)
        assert qr.y == area_y + round_px((area_h - qr_size) / 2)


class TestLogo:
    @pytest.mark.asyncio
    async def test_logo_top_left_scaled_down(self, compositor):
        logo = Image.new("RGBA", (400, 100), "red")
        rendered = await compositor.render(LabelConfig(value="ABC", logo_image=logo), 300)

        logo_op, _code = _ops(rendered, "image")
        assert (logo_op.x, logo_op.y) == (11, 11)
        assert logo_op.width <= round_px(591 * 0.22)
        assert logo_op.height <= round_px(354 * 0.22)

    @pytest.mark.asyncio
    async def test_small_logo_not_upscaled(self, compositor):
        logo = Image.new("RGBA", (20, 10), "red")
        rendered = await compositor.render(LabelConfig(value="ABC", logo_image=logo), 300)

        assert (_ops(rendered, "image")[0].width, _ops(rendered, "image")[0].height) == (20, 10)

    @pytest.mark.asyncio
    async def test_logo_left_shifts_code_and_shrinks_qr(self, compositor, qr_rasterizer):
        logo = Image.new("RGBA", (400, 400), "red")
        config = LabelConfig(value="ABC", layout=LabelLayout.LOGO_LEFT, logo_image=logo)

        barcode = await compositor.render(config, 300)
        await compositor.render(replace(config, mode=LabelMode.QR), 300)

        images = _ops(barcode, "image")
        assert len(images) == 3  # logo box, logo strip, code
        assert images[-1].x >= round_px(591 * 0.25)
        assert qr_rasterizer.calls[0][1] == round_px(round_px(354 * 0.6) * 0.75)

    @pytest.mark.asyncio
    async def test_logo_left_without_logo_is_classic(self, compositor):
        classic = await compositor.render(LabelConfig(value="ABC"), 300)
        logo_left = await compositor.render(LabelConfig(value="ABC", layout=LabelLayout.LOGO_LEFT), 300)

        assert classic.operations == logo_left.operations


class TestRenderErrors:
    @pytest.mark.asyncio
    async def test_barcode_failure_draws_placeholder_and_stops(self, failing_compositor, sample_config):
        rendered = await failing_compositor.render(sample_config, 300)

        assert not rendered.ok
        assert rendered.error.startswith("No se pudo generar el código de barras")
        assert "Error al generar código" in _texts(rendered)
        assert any(op.color == LABEL.COLOR_ERROR_FILL for op in _ops(rendered, "fill"))
        # No body text, no footer after the failure
        assert "Producto A" not in _texts(rendered)
        assert "Hecho en México" not in _texts(rendered)
        # Header was drawn before the failure
        assert "Mi Tienda" in _texts(rendered)

    @pytest.mark.asyncio
    async def test_qr_failure(self, failing_compositor):
        rendered = await failing_compositor.render(LabelConfig(value="x", mode=LabelMode.QR), 300)

        assert rendered.error.startswith("No se pudo generar el QR")
        assert "Error al generar QR" in _texts(rendered)
        assert rendered.image.size == (591, 354)


class TestRealRasterizers:
    """End-to-end with python-barcode and qrcode."""

    @pytest.mark.asyncio
    async def test_ean13(self, sample_config):
        rendered = await LabelCompositor().render(sample_config, 300)

        assert rendered.ok, rendered.error
        assert rendered.image.size == (591, 354)
        assert rendered.to_png()[:8] == b"\x89PNG\r\n\x1a\n"

    @pytest.mark.asyncio
    async def test_qr(self):
        config = LabelConfig(value="https://example.com/p/1", mode=LabelMode.QR)
        rendered = await LabelCompositor().render(config, 203)

        assert rendered.ok, rendered.error

    @pytest.mark.asyncio
    async def test_unsupported_symbology_renders_error(self):
        rendered = await LabelCompositor().render(LabelConfig(value="1234", symbology=Symbology.MSI), 300)

        assert not rendered.ok
        assert "MSI" in rendered.error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("dpi", [72, 96, 300])
    @pytest.mark.parametrize(
        "value, symbology",
        [
            ("7501234567893", Symbology.EAN13),
            ("ABC-001", Symbology.CODE128),
            ("12345670", Symbology.EAN8),
            ("036000291452", Symbology.UPC),
        ],
    )
    async def test_linear_symbologies_across_dpi(self, value, symbology, dpi, sample_config):
        config = replace(sample_config, value=value, symbology=symbology)

        rendered = await LabelCompositor().render(config, dpi)

        assert rendered.ok, rendered.error
        assert rendered.image.size == label_pixel_size(config, dpi)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("dpi", [72, 96, 300])
    async def test_narrow_label(self, dpi):
        config = LabelConfig(value="7501234567893", symbology=Symbology.EAN13, width_mm=25, height_mm=15, margin_mm=2)

        rendered = await LabelCompositor().render(config, dpi)

        assert rendered.ok, rendered.error

    @pytest.mark.asyncio
    async def test_preview_of_default_form(self):
        rendered = await LabelCompositor().render_preview(LabelConfig())

        assert rendered.ok, rendered.error
        assert rendered.image.size == (189, 113)

    @pytest.mark.asyncio
    async def test_wrong_check_digit_renders_error(self, sample_config):
        config = replace(sample_config, value="7501234567891")

        rendered = await LabelCompositor().render(config, 300)

        assert not rendered.ok
        assert "Dígito verificador" in rendered.error
