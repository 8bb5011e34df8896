"""Tests for unit conversion and settings."""

import pytest

from etiquetador.config import LABEL, Settings, mm_to_pixels


class TestMmToPixels:
    def test_one_inch(self):
        assert mm_to_pixels(25.4, 300) == pytest.approx(300)

    def test_zero(self):
        assert mm_to_pixels(0, 300) == 0
        assert mm_to_pixels(0, 96) == 0

    @pytest.mark.parametrize("dpi", [72, 96, 203, 300, 600])
    def test_linear_in_mm(self, dpi):
        assert mm_to_pixels(80, dpi) == pytest.approx(2 * mm_to_pixels(40, dpi))

    def test_not_rounded(self):
        assert mm_to_pixels(50, 300) == pytest.approx(590.5511, rel=1e-4)

    def test_pixels_to_mm_inverse(self):
        assert LABEL.pixels_to_mm(mm_to_pixels(37.5, 203), 203) == pytest.approx(37.5)


class TestPageSizes:
    def test_known_formats(self):
        assert LABEL.page_size("a4") == (210.0, 297.0)
        assert LABEL.page_size("LETTER") == (216.0, 279.0)

    def test_unknown_falls_back_to_a4(self):
        assert LABEL.page_size("legal") == (210.0, 297.0)


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.max_upload_size_bytes == settings.max_upload_size_mb * 1024 * 1024
        assert settings.default_page_format in ("a4", "letter")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MAX_BATCH_SIZE", "10")

        assert Settings().max_batch_size == 10
