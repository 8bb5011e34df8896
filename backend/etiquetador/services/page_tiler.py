"""
Page tiling: rendered labels -> positions on fixed-size pages.

Grid, with margin m doubling as the gap between slots:

    cols = max(1, floor((page_w - m) / (label_w + m)))
    rows = max(1, floor((page_h - m) / (label_h + m)))

Items fill slots row-major; a new page starts every cols * rows items.
"""

import math
from dataclasses import dataclass
from typing import Any, Sequence

from etiquetador.models.label_types import Placement


@dataclass(frozen=True)
class PageGrid:
    """Slot grid for one page geometry (mm)."""

    cols: int
    rows: int
    label_width_mm: float
    label_height_mm: float
    margin_mm: float

    @property
    def per_page(self) -> int:
        return self.cols * self.rows

    def position(self, slot: int) -> tuple[float, float]:
        """Top-left (x, y) in mm of an intra-page slot index."""
        col = slot % self.cols
        row = slot // self.cols
        x = self.margin_mm + col * (self.label_width_mm + self.margin_mm)
        y = self.margin_mm + row * (self.label_height_mm + self.margin_mm)
        return x, y

    def pages_for(self, count: int) -> int:
        return math.ceil(count / self.per_page) if count else 0


def _fit(page: float, label: float, margin_mm: float) -> int:
    pitch = label + margin_mm
    if pitch <= 0:
        return 1
    return max(1, math.floor((page - margin_mm) / pitch))


def compute_grid(
    page_size_mm: tuple[float, float],
    label_size_mm: tuple[float, float],
    margin_mm: float,
) -> PageGrid:
    """
    Fit label slots onto a page.

    Always at least one column and one row, even if the label is larger
    than the page or the slot pitch is zero or negative.
    """
    page_w, page_h = page_size_mm
    label_w, label_h = label_size_mm
    cols = _fit(page_w, label_w, margin_mm)
    rows = _fit(page_h, label_h, margin_mm)
    return PageGrid(cols, rows, label_w, label_h, margin_mm)


def tile(
    items: Sequence[Any],
    page_size_mm: tuple[float, float],
    label_size_mm: tuple[float, float],
    margin_mm: float,
    skip: Sequence[bool] | None = None,
) -> list[Placement]:
    """
    Place items on pages.

    Args:
        items: Rendered images (or anything standing in for them)
        page_size_mm: Page (width, height)
        label_size_mm: Slot (width, height)
        margin_mm: Page margin and gap between slots
        skip: Optional per-item flags; skipped items do not consume a slot,
            the next placed item takes it

    Returns:
        Placements in input order
    """
    grid = compute_grid(page_size_mm, label_size_mm, margin_mm)
    placements: list[Placement] = []
    placed = 0

    for index, item in enumerate(items):
        if skip is not None and index < len(skip) and skip[index]:
            continue
        page_index, slot = divmod(placed, grid.per_page)
        x, y = grid.position(slot)
        placements.append(Placement(page_index=page_index, x_mm=x, y_mm=y, item=item))
        placed += 1

    return placements


def tile_per_group(
    groups: Sequence[Sequence[Any]],
    page_size_mm: tuple[float, float],
    label_size_mm: tuple[float, float],
    margin_mm: float,
) -> list[list[Placement]]:
    """
    Tile each group independently, every group starting at page 0 slot 0.

    Used when every batch row becomes its own document.
    """
    return [tile(group, page_size_mm, label_size_mm, margin_mm) for group in groups]


def page_count(placements: Sequence[Placement]) -> int:
    return placements[-1].page_index + 1 if placements else 0
