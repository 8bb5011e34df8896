"""
Batch validation and the spreadsheet batch session.

Every row is validated on its own; an invalid row stays in the batch (so it
can be corrected) but is left out of rendering and export.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from etiquetador.config import get_settings
from etiquetador.models.label_types import BatchRow, ColumnAliasMap, LabelConfig, default_label_config
from etiquetador.services.excel_parser import SpreadsheetReader
from etiquetador.services.image_codec import LogoCache
from etiquetador.services.row_mapper import RowMapper
from etiquetador.services.symbology_validator import ValidationResult, validate_config

logger = logging.getLogger(__name__)


def validate_batch(configs: Sequence[LabelConfig]) -> list[ValidationResult]:
    """One result per config, in input order. "" means valid."""
    return [validate_config(config) for config in configs]


@dataclass(frozen=True)
class BatchItem:
    """A mapped row with its validation result."""

    index: int  # 0-based row position in the sheet
    config: LabelConfig
    error: ValidationResult

    @property
    def valid(self) -> bool:
        return not self.error


class BatchSession:
    """
    Spreadsheet-driven batch state.

    Holds the raw rows, the column alias map and the defaults snapshot, and
    remaps + revalidates every time one of them changes.
    """

    def __init__(
        self,
        defaults: LabelConfig | None = None,
        aliases: ColumnAliasMap | None = None,
        reader: SpreadsheetReader | None = None,
        max_rows: int | None = None,
    ):
        self.defaults = defaults or default_label_config()
        self.aliases = aliases or ColumnAliasMap()
        self.reader = reader or SpreadsheetReader()
        self.max_rows = max_rows if max_rows is not None else get_settings().max_batch_size

        self.rows: list[BatchRow] = []
        self.configs: list[LabelConfig] = []
        self.errors: list[ValidationResult] = []
        self.selected_index: int | None = None

    # === Loading ===

    def load_rows(self, rows: list[BatchRow]) -> None:
        if len(rows) > self.max_rows:
            logger.warning(f"[BATCH] {len(rows)} rows, keeping the first {self.max_rows}")
            rows = rows[: self.max_rows]
        self.rows = list(rows)
        self.remap()
        self.selected_index = 0 if self.configs else None

    def load_spreadsheet(self, file_bytes: bytes, filename: str) -> bool:
        """
        Load a spreadsheet; unreadable or empty input leaves the batch untouched.

        Returns:
            True if a new batch was loaded
        """
        rows = self.reader.read(file_bytes, filename)
        if not rows:
            return False
        self.load_rows(rows)
        return True

    # === Mapping ===

    def remap(self) -> None:
        """Map every raw row and revalidate."""
        mapper = RowMapper(self.aliases)
        self.configs = mapper.map_rows(self.rows, self.defaults)
        self.errors = validate_batch(self.configs)
        if self.selected_index is not None and self.configs:
            self.selected_index = min(self.selected_index, len(self.configs) - 1)
        logger.info(
            f"[BATCH] {len(self.configs)} rows mapped, {self.error_count} invalid"
        )

    def set_alias(self, canonical: str, column: str | None) -> None:
        self.aliases.set(canonical, column)
        self.remap()

    def apply_aliases(self, aliases: dict[str, str]) -> None:
        """Replace the whole alias map at once."""
        self.aliases = ColumnAliasMap(aliases)
        self.remap()

    def set_defaults(self, defaults: LabelConfig) -> None:
        self.defaults = defaults
        self.remap()

    def reset_mapping(self) -> None:
        self.aliases.reset()
        self.remap()

    def reset_batch(self) -> None:
        """Forget loaded rows; defaults and aliases are kept."""
        self.rows = []
        self.configs = []
        self.errors = []
        self.selected_index = None

    # === Logos ===

    async def resolve_logos(self, cache: LogoCache) -> None:
        """Decode logo sources once and share them across rows."""
        self.configs = await cache.attach_all(self.configs)

    # === Queries ===

    @property
    def active(self) -> bool:
        return bool(self.configs)

    @property
    def error_count(self) -> int:
        return sum(1 for error in self.errors if error)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def items(self) -> list[BatchItem]:
        return [
            BatchItem(index, config, error)
            for index, (config, error) in enumerate(zip(self.configs, self.errors))
        ]

    @property
    def valid_configs(self) -> list[LabelConfig]:
        return [item.config for item in self.items if item.valid]

    def select(self, index: int) -> bool:
        if 0 <= index < len(self.configs):
            self.selected_index = index
            return True
        return False

    @property
    def selected(self) -> LabelConfig | None:
        if self.selected_index is None:
            return None
        return self.configs[self.selected_index]
