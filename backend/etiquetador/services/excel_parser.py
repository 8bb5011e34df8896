"""
Spreadsheet reader/writer for label batches.

Reads xlsx/csv files into generic rows (first row = headers) and writes the
template and summary workbooks.
"""

import logging
from io import BytesIO
from typing import Any

import pandas as pd

from etiquetador.models.label_types import BatchRow, LabelConfig, LabelMode
from etiquetador.services.row_mapper import is_blank

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = ("xlsx", "xlsm")
CSV_EXTENSIONS = ("csv", "txt")
SUPPORTED_EXTENSIONS = EXCEL_EXTENSIONS + CSV_EXTENSIONS

# Header order of the downloadable template
TEMPLATE_COLUMNS = [
    "Codigo",
    "Tipo",
    "Modo",
    "Cantidad",
    "Descripcion",
    "Precio",
    "Lote",
    "Encabezado",
    "Pie",
    "Ancho_mm",
    "Alto_mm",
    "Margen_mm",
    "DPI",
    "Layout",
    "Alineacion",
    "EscalaEncabezado",
    "EscalaCuerpo",
    "EscalaPie",
    "LogoUrl",
]

SUMMARY_COLUMNS = [
    "N",
    "Modo",
    "Codigo_o_texto",
    "TipoBarras",
    "Descripcion",
    "Precio",
    "Lote",
    "Encabezado",
    "Pie",
    "Ancho_mm",
    "Alto_mm",
    "MostrarValor",
    "TieneLogo",
]


def file_extension(filename: str) -> str:
    return filename.lower().rsplit(".", 1)[-1] if "." in filename else ""


class SpreadsheetReader:
    """
    Parses spreadsheet bytes into rows.

    Malformed or unsupported input yields an empty list (logged), never an
    exception: the caller keeps its current batch.
    """

    CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")

    def read(self, file_bytes: bytes, filename: str = "etiquetas.xlsx") -> list[BatchRow]:
        """
        Read the first sheet of a workbook (or a CSV file).

        Args:
            file_bytes: File content
            filename: Original name, used to pick the parser

        Returns:
            One dict per non-empty data row, keyed by header text
        """
        if not file_bytes:
            logger.warning(f"[SHEET] Empty file: {filename}")
            return []

        extension = file_extension(filename)
        try:
            if extension in CSV_EXTENSIONS:
                df = self._read_csv(file_bytes)
            elif extension in EXCEL_EXTENSIONS or not extension:
                df = pd.read_excel(
                    BytesIO(file_bytes),
                    engine="openpyxl",
                    sheet_name=0,
                    dtype=object,
                    keep_default_na=False,
                )
            else:
                logger.warning(f"[SHEET] Unsupported format: {filename}")
                return []
        except Exception as e:
            logger.warning(f"[SHEET] Could not read {filename}: {e}")
            return []

        rows = self._to_rows(df)
        logger.info(f"[SHEET] {filename}: {len(rows)} rows, {len(df.columns)} columns")
        return rows

    def columns(self, rows: list[BatchRow]) -> list[str]:
        """Header names in first-seen order."""
        seen: dict[str, None] = {}
        for row in rows:
            for key in row:
                seen.setdefault(key, None)
        return list(seen)

    def _read_csv(self, file_bytes: bytes) -> pd.DataFrame:
        last_error: Exception | None = None
        for encoding in self.CSV_ENCODINGS:
            try:
                text = file_bytes.decode(encoding)
            except UnicodeDecodeError as e:
                last_error = e
                continue
            return pd.read_csv(
                BytesIO(text.encode("utf-8")),
                sep=self._detect_delimiter(text),
                dtype=object,
                keep_default_na=False,
            )
        raise ValueError(f"Codificación no soportada: {last_error}")

    @staticmethod
    def _detect_delimiter(text: str) -> str:
        """Most frequent of ";", "," and tab in the header line."""
        header = text.lstrip("\ufeff").split("\n", 1)[0]
        counts = {",": header.count(","), ";": header.count(";"), "\t": header.count("\t")}
        return max(counts, key=counts.get)

    def _to_rows(self, df: pd.DataFrame) -> list[BatchRow]:
        df = df.rename(columns=lambda col: str(col).strip())
        rows: list[BatchRow] = []
        for record in df.to_dict(orient="records"):
            row = {str(key): self._plain(value) for key, value in record.items()}
            if all(is_blank(value) for value in row.values()):
                continue
            rows.append(row)
        return rows

    @staticmethod
    def _plain(value: Any) -> Any:
        """numpy scalars -> Python scalars."""
        if hasattr(value, "item") and not isinstance(value, (str, bytes)):
            try:
                return value.item()
            except (TypeError, ValueError):
                return value
        return value


class SpreadsheetWriter:
    """Builds xlsx workbooks."""

    def _to_xlsx(self, rows: list[dict[str, Any]], columns: list[str], sheet_name: str) -> bytes:
        buffer = BytesIO()
        df = pd.DataFrame(rows, columns=columns)
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet_name, index=False)
        return buffer.getvalue()

    def template_rows(self, defaults: LabelConfig) -> list[dict[str, Any]]:
        """Two sample rows showing symbology and quantity usage."""
        base = {
            "Codigo": "",
            "Tipo": "CODE128",
            "Modo": "barcode",
            "Cantidad": 1,
            "Descripcion": "",
            "Precio": "",
            "Lote": "",
            "Encabezado": "",
            "Pie": "",
            "Ancho_mm": defaults.width_mm,
            "Alto_mm": defaults.height_mm,
            "Margen_mm": defaults.margin_mm,
            "DPI": defaults.dpi,
            "Layout": defaults.layout.value,
            "Alineacion": defaults.body_align.value,
            "EscalaEncabezado": defaults.header_scale,
            "EscalaCuerpo": defaults.body_scale,
            "EscalaPie": defaults.footer_scale,
            "LogoUrl": "",
        }
        return [
            {
                **base,
                "Codigo": "7501234567893",
                "Tipo": "EAN13",
                "Cantidad": 5,
                "Descripcion": "Producto A",
                "Precio": "10.99",
            },
            {
                **base,
                "Codigo": "ABC-001",
                "Tipo": "CODE128",
                "Cantidad": 2,
                "Descripcion": "Producto B",
                "Precio": "7.50",
            },
        ]

    def build_template(self, defaults: LabelConfig) -> bytes:
        """Template workbook, sheet "Plantilla"."""
        return self._to_xlsx(self.template_rows(defaults), TEMPLATE_COLUMNS, "Plantilla")

    def summary_rows(self, config: LabelConfig, quantity: int) -> list[dict[str, Any]]:
        return [
            {
                "N": index + 1,
                "Modo": config.mode.value,
                "Codigo_o_texto": config.value,
                "TipoBarras": config.symbology.value if config.mode == LabelMode.BARCODE else "",
                "Descripcion": config.description,
                "Precio": config.price,
                "Lote": config.lot,
                "Encabezado": config.header_text,
                "Pie": config.footer_text,
                "Ancho_mm": config.width_mm,
                "Alto_mm": config.height_mm,
                "MostrarValor": config.show_value,
                "TieneLogo": bool(config.logo_source) or config.has_logo,
            }
            for index in range(max(0, quantity))
        ]

    def build_summary(self, config: LabelConfig, quantity: int) -> bytes:
        """One row per printed copy of the current label, sheet "Etiquetas"."""
        return self._to_xlsx(self.summary_rows(config, quantity), SUMMARY_COLUMNS, "Etiquetas")
