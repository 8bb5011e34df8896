"""
User-facing error messages.

Short message plus a hint instead of a technical error.
"""


class FriendlyError:
    """Readable error with a hint."""

    def __init__(self, message: str, hint: str | None = None, details: str | None = None):
        self.message = message
        self.hint = hint
        self.details = details  # Technical info for support

    def to_dict(self) -> dict:
        result = {"message": self.message}
        if self.hint:
            result["hint"] = self.hint
        if self.details:
            result["details"] = self.details
        return result


# === File errors ===

INVALID_FILE_FORMAT = FriendlyError(
    message="Formato de archivo no soportado",
    hint="Sube una hoja de cálculo .xlsx o un archivo .csv con encabezados en la primera fila",
)


def file_too_large(max_mb: int) -> FriendlyError:
    return FriendlyError(
        message="El archivo es demasiado grande",
        hint=f"Tamaño máximo: {max_mb} MB",
    )


# === Form errors ===


def invalid_json_field(field_name: str, error: str) -> FriendlyError:
    """Malformed JSON in a multipart form field."""
    return FriendlyError(
        message=f"El campo «{field_name}» no es un JSON válido",
        hint="Envía un objeto JSON, por ejemplo {} para usar los valores por defecto",
        details=error,
    )


UNKNOWN_ALIAS_FIELD = FriendlyError(
    message="Campo de mapeo desconocido",
    hint="Usa los nombres de columna de la plantilla (Codigo, Tipo, Cantidad...)",
)


def invalid_sheet_geometry(reason: str) -> FriendlyError:
    """Label size, margin or dpi that cannot be laid out on a page."""
    return FriendlyError(
        message="No se puede distribuir la etiqueta en la página",
        hint="Revisa el ancho, el alto, el margen y los DPI de la etiqueta",
        details=reason,
    )


# === Batch errors ===

NOTHING_TO_EXPORT = FriendlyError(
    message="No hay etiquetas válidas para exportar",
    hint="Corrige las filas marcadas con error o revisa el mapeo de columnas",
)
