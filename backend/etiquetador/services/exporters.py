"""
Export orchestrators.

Combine batch validation results, the label compositor and the page tiler
into output artifacts: a tiled PDF, a print-ready HTML page, one PDF per
batch row, a ZIP of PNG folders with a CSV manifest, and single-label PNG /
summary spreadsheet exports.

Rendering is sequential and follows batch order, then copy order within a
row. Each valid row is rendered once and its raster reused for its copies.
"""

import base64
import csv
import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from typing import Any, Sequence

from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from etiquetador.models.label_types import LabelConfig, Placement, SheetLayout
from etiquetador.services.excel_parser import SpreadsheetWriter
from etiquetador.services.label_compositor import LabelCompositor, RenderedLabel
from etiquetador.services.page_tiler import page_count, tile, tile_per_group
from etiquetador.services.row_mapper import to_text

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-z0-9_-]+", re.IGNORECASE)

ARCHIVE_ROOT = "etiquetas"
MANIFEST_NAME = "resumen.csv"
MANIFEST_COLUMNS = [
    "index",
    "value",
    "type",
    "mode",
    "qty",
    "description",
    "price",
    "lot",
    "width_mm",
    "height_mm",
    "margin_mm",
    "dpi",
    "layout",
    "align",
    "header",
    "footer",
    "has_logo",
    "folder",
]

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def safe_name(value: str, fallback: str) -> str:
    """File-system safe stem: unsafe runs become "_", max 40 chars."""
    return _UNSAFE_CHARS.sub("_", value or fallback)[:40]


def unique_name(safe: str, index: int, used: set[str]) -> str:
    """
    Claim ``safe`` for row ``index``, or ``safe-<row number>`` when an
    earlier row already took it. The claimed name is added to ``used``.
    """
    name = safe if safe not in used else f"{safe}-{index + 1}"
    extra = 2
    while name in used:
        name = f"{safe}-{index + 1}-{extra}"
        extra += 1
    used.add(name)
    return name


def manifest_csv(rows: list[dict[str, Any]]) -> str:
    """
    Manifest table as CSV.

    Fields containing a comma, quote or newline are quoted, quotes doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(MANIFEST_COLUMNS)
    for row in rows:
        writer.writerow([row.get(column, "") for column in MANIFEST_COLUMNS])
    return buffer.getvalue().rstrip("\n")


@dataclass
class ExportArtifact:
    """One produced file."""

    filename: str
    data: bytes
    content_type: str
    pages: int = 0
    labels: int = 0
    render_errors: list[str] = field(default_factory=list)


class ExportService:
    """
    Builds export artifacts for a batch or for the current label.

    ``errors`` arguments are per-config validation results; pass None in
    single-label mode, where nothing is skipped.
    """

    def __init__(
        self,
        sheet: SheetLayout | None = None,
        compositor: LabelCompositor | None = None,
        writer: SpreadsheetWriter | None = None,
    ):
        self.sheet = sheet or SheetLayout()
        self.compositor = compositor or LabelCompositor()
        self.writer = writer or SpreadsheetWriter()

    # === Rendering helpers ===

    @staticmethod
    def _is_valid(errors: Sequence[str] | None, index: int) -> bool:
        return errors is None or index >= len(errors) or not errors[index]

    async def _render(self, config: LabelConfig) -> RenderedLabel:
        return await self.compositor.render(config, config.dpi)

    async def _render_valid(
        self, configs: Sequence[LabelConfig], errors: Sequence[str] | None
    ) -> dict[int, RenderedLabel]:
        """Render each valid row once, in batch order."""
        rendered: dict[int, RenderedLabel] = {}
        for index, config in enumerate(configs):
            if self._is_valid(errors, index):
                rendered[index] = await self._render(config)
        return rendered

    async def _shared_placements(
        self, configs: Sequence[LabelConfig], errors: Sequence[str] | None
    ) -> tuple[list[Placement], list[str]]:
        """
        Qty-expanded items tiled into one page sequence.

        Invalid rows are skipped and do not consume grid slots.
        """
        rendered = await self._render_valid(configs, errors)

        items: list[RenderedLabel | None] = []
        skip: list[bool] = []
        for index, config in enumerate(configs):
            label = rendered.get(index)
            for _ in range(config.copies):
                items.append(label)
                skip.append(label is None)

        placements = tile(
            items,
            self.sheet.page_size_mm,
            self.sheet.label_size_mm,
            self.sheet.margin_mm,
            skip=skip,
        )
        render_errors = [label.error for label in rendered.values() if label.error]
        return placements, render_errors

    def _pdf(self, placements: Sequence[Placement]) -> bytes:
        page_w, page_h = self.sheet.page_size_mm
        label_w, label_h = self.sheet.label_size_mm

        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=(page_w * mm, page_h * mm))
        pdf.setTitle("Etiquetas")

        readers: dict[int, ImageReader] = {}
        current_page = 0
        for placement in placements:
            while placement.page_index > current_page:
                pdf.showPage()
                current_page += 1
            label: RenderedLabel = placement.item
            if id(label) not in readers:
                readers[id(label)] = ImageReader(label.image)
            reader = readers[id(label)]
            # PDF origin is bottom-left; placements are top-left
            pdf.drawImage(
                reader,
                placement.x_mm * mm,
                (page_h - placement.y_mm - label_h) * mm,
                width=label_w * mm,
                height=label_h * mm,
            )

        pdf.showPage()
        pdf.save()
        return buffer.getvalue()

    # === Exports ===

    async def export_pdf(
        self, configs: Sequence[LabelConfig], errors: Sequence[str] | None = None
    ) -> ExportArtifact:
        """All (qty-expanded) labels tiled into one multi-page PDF."""
        placements, render_errors = await self._shared_placements(configs, errors)
        data = self._pdf(placements)
        pages = max(1, page_count(placements))
        logger.info(f"[EXPORT] PDF: {len(placements)} labels on {pages} pages")
        return ExportArtifact(
            filename="etiquetas.pdf",
            data=data,
            content_type="application/pdf",
            pages=pages,
            labels=len(placements),
            render_errors=render_errors,
        )

    async def export_print_html(
        self, configs: Sequence[LabelConfig], errors: Sequence[str] | None = None
    ) -> ExportArtifact:
        """
        Print-ready HTML: page-sized panels with absolutely positioned images.

        The page prints itself on load.
        """
        placements, render_errors = await self._shared_placements(configs, errors)
        page_w, page_h = self.sheet.page_size_mm
        label_w, label_h = self.sheet.label_size_mm

        data_urls: dict[int, str] = {}
        parts: list[str] = [
            '<!DOCTYPE html><html><head><meta charset="utf-8"><title>Imprimir etiquetas</title>',
            f"<style>\n"
            f"  @page {{ size: {page_w:g}mm {page_h:g}mm; margin: 0; }}\n"
            f"  html, body {{ margin:0; padding:0; }}\n"
            f"  .page {{ position: relative; width: {page_w:g}mm; height: {page_h:g}mm; }}\n"
            f"  img {{ position: absolute; width: {label_w:g}mm; height: {label_h:g}mm; }}\n"
            f"</style></head><body>",
        ]

        pages = page_count(placements)
        by_page: list[list[Placement]] = [[] for _ in range(pages)]
        for placement in placements:
            by_page[placement.page_index].append(placement)

        for page in by_page:
            parts.append('<div class="page">')
            for placement in page:
                label: RenderedLabel = placement.item
                if id(label) not in data_urls:
                    encoded = base64.b64encode(label.to_png()).decode("ascii")
                    data_urls[id(label)] = f"data:image/png;base64,{encoded}"
                parts.append(
                    f'<img src="{data_urls[id(label)]}" '
                    f'style="left:{placement.x_mm:g}mm; top:{placement.y_mm:g}mm;" />'
                )
            parts.append("</div>")

        parts.append(
            "<script>window.onload = () => { window.print(); "
            "setTimeout(()=>window.close(), 200); };</script></body></html>"
        )
        html = "".join(parts)
        logger.info(f"[EXPORT] HTML: {len(placements)} labels on {pages} pages")
        return ExportArtifact(
            filename="etiquetas.html",
            data=html.encode("utf-8"),
            content_type="text/html; charset=utf-8",
            pages=pages,
            labels=len(placements),
            render_errors=render_errors,
        )

    async def export_pdf_per_row(
        self, configs: Sequence[LabelConfig], errors: Sequence[str] | None = None
    ) -> list[ExportArtifact]:
        """One PDF per valid row; each starts on its own first page."""
        rendered = await self._render_valid(configs, errors)
        groups = tile_per_group(
            [[label] * configs[index].copies for index, label in rendered.items()],
            self.sheet.page_size_mm,
            self.sheet.label_size_mm,
            self.sheet.margin_mm,
        )

        artifacts: list[ExportArtifact] = []
        used: set[str] = set()
        for (index, label), placements in zip(rendered.items(), groups):
            safe = unique_name(safe_name(configs[index].value, f"fila-{index + 1}"), index, used)
            artifacts.append(
                ExportArtifact(
                    filename=f"etiquetas_{safe}.pdf",
                    data=self._pdf(placements),
                    content_type="application/pdf",
                    pages=page_count(placements),
                    labels=len(placements),
                    render_errors=[label.error] if label.error else [],
                )
            )
        logger.info(f"[EXPORT] Per-row PDF: {len(artifacts)} files")
        return artifacts

    async def export_archive(
        self, configs: Sequence[LabelConfig], errors: Sequence[str] | None = None
    ) -> ExportArtifact:
        """
        ZIP with one folder of PNG copies per valid row plus resumen.csv.

        Layout: etiquetas/<safe>/etiqueta_<safe>[_<n>].png
        """
        buffer = io.BytesIO()
        manifest: list[dict[str, Any]] = []
        render_errors: list[str] = []
        images = 0

        used: set[str] = set()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for index, config in enumerate(configs):
                if not self._is_valid(errors, index):
                    continue
                count = config.copies
                safe = unique_name(safe_name(config.value, f"fila-{index + 1}"), index, used)
                folder = f"{ARCHIVE_ROOT}/{safe}"

                label = await self._render(config)
                if label.error:
                    render_errors.append(label.error)
                png = label.to_png()
                for copy in range(count):
                    name = f"etiqueta_{safe}_{copy + 1}.png" if count > 1 else f"etiqueta_{safe}.png"
                    archive.writestr(f"{folder}/{name}", png)
                    images += 1

                manifest.append(
                    {
                        "index": index + 1,
                        "value": config.value,
                        "type": config.symbology.value,
                        "mode": config.mode.value,
                        "qty": count,
                        "description": config.description,
                        "price": config.price,
                        "lot": config.lot,
                        "width_mm": to_text(config.width_mm),
                        "height_mm": to_text(config.height_mm),
                        "margin_mm": to_text(config.margin_mm),
                        "dpi": config.dpi,
                        "layout": config.layout.value,
                        "align": config.body_align.value,
                        "header": config.header_text,
                        "footer": config.footer_text,
                        "has_logo": "true" if config.has_logo else "false",
                        "folder": folder,
                    }
                )

            archive.writestr(MANIFEST_NAME, manifest_csv(manifest))

        logger.info(f"[EXPORT] Archive: {len(manifest)} rows, {images} images")
        return ExportArtifact(
            filename="etiquetas_png.zip",
            data=buffer.getvalue(),
            content_type="application/zip",
            labels=images,
            render_errors=render_errors,
        )

    async def export_png(self, config: LabelConfig) -> ExportArtifact:
        """Single label as PNG at its export dpi."""
        label = await self._render(config)
        safe = safe_name(config.value, "etiqueta")
        return ExportArtifact(
            filename=f"etiqueta_{safe}.png",
            data=label.to_png(),
            content_type="image/png",
            labels=1,
            render_errors=[label.error] if label.error else [],
        )

    def export_summary(self, config: LabelConfig, quantity: int) -> ExportArtifact:
        """Summary workbook: one row per copy of the current label."""
        return ExportArtifact(
            filename="etiquetas.xlsx",
            data=self.writer.build_summary(config, quantity),
            content_type=XLSX_CONTENT_TYPE,
            labels=max(0, quantity),
        )

    def export_template(self, defaults: LabelConfig) -> ExportArtifact:
        """Batch template workbook with two sample rows."""
        return ExportArtifact(
            filename="plantilla_etiquetas.xlsx",
            data=self.writer.build_template(defaults),
            content_type=XLSX_CONTENT_TYPE,
        )


def bundle(artifacts: Sequence[ExportArtifact], filename: str = "etiquetas_por_fila.zip") -> ExportArtifact:
    """Pack several artifacts into one ZIP (HTTP download of per-row PDFs)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for artifact in artifacts:
            archive.writestr(artifact.filename, artifact.data)
    return ExportArtifact(
        filename=filename,
        data=buffer.getvalue(),
        content_type="application/zip",
        pages=sum(artifact.pages for artifact in artifacts),
        labels=sum(artifact.labels for artifact in artifacts),
        render_errors=[e for artifact in artifacts for e in artifact.render_errors],
    )
