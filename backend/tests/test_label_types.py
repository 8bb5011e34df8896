"""Tests for label data types."""

from etiquetador.models.label_types import (
    CANONICAL_COLUMNS,
    ColumnAliasMap,
    LabelConfig,
    SheetLayout,
    Symbology,
)
from etiquetador.models.schemas import LabelConfigSchema


class TestLabelConfig:
    def test_preset(self):
        config = LabelConfig().with_preset("70 x 25 mm")

        assert (config.width_mm, config.height_mm, config.margin_mm) == (70, 25, 4)

    def test_custom_preset_keeps_geometry(self):
        config = LabelConfig(width_mm=33)

        assert config.with_preset("Custom") is config

    def test_copies_never_below_one(self):
        assert LabelConfig(qty=0).copies == 1
        assert LabelConfig(qty=4).copies == 4

    def test_schema_round_trip(self):
        schema = LabelConfigSchema(value="X", symbology="EAN8", qty=3)
        config = schema.to_config()

        assert config.symbology == Symbology.EAN8
        assert config.qty == 3
        assert config.logo_image is None


class TestSymbologyLookup:
    def test_by_value_or_name(self):
        assert Symbology.lookup("code128") == Symbology.CODE128
        assert Symbology.lookup("PHARMACODE") == Symbology.PHARMACODE
        assert Symbology.lookup("qr") is None


class TestColumnAliasMap:
    def test_all_canonical_fields_start_unset(self):
        aliases = ColumnAliasMap()

        assert all(aliases.get(name) is None for name in CANONICAL_COLUMNS)

    def test_set_and_reset(self):
        aliases = ColumnAliasMap()
        aliases.set("Cantidad", " Qty ")

        assert aliases.get("Cantidad") == "Qty"
        aliases.reset()
        assert aliases.as_dict()["Cantidad"] == ""


class TestSheetLayout:
    def test_from_config(self):
        sheet = SheetLayout.from_config(LabelConfig(width_mm=70, height_mm=25, margin_mm=4), "letter")

        assert sheet.page_size_mm == (216.0, 279.0)
        assert sheet.label_size_mm == (70, 25)
        assert sheet.margin_mm == 4
