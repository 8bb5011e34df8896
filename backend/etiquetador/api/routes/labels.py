"""
Label API endpoints.

Single-label preview/exports and spreadsheet batch validation/exports.
"""

import io
import json
import logging
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response, StreamingResponse

from etiquetador.config import LABEL, get_settings
from etiquetador.logging_config import bind_context
from etiquetador.models.label_types import LabelConfig, SheetLayout, default_label_config
from etiquetador.models.schemas import (
    BatchRowStatus,
    BatchValidationResponse,
    ErrorResponse,
    ExportKind,
    LabelConfigSchema,
    LabelPreset,
    PageFormatInfo,
    TemplatesResponse,
)
from etiquetador.services import error_messages
from etiquetador.services.batch_validator import BatchSession
from etiquetador.services.excel_parser import SUPPORTED_EXTENSIONS, file_extension
from etiquetador.services.exporters import ExportArtifact, ExportService, bundle
from etiquetador.services.image_codec import LogoCache
from etiquetador.services.label_compositor import LabelCompositor
from etiquetador.services.symbology_validator import validate_geometry

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    413: {"model": ErrorResponse, "description": "File too large"},
    422: {"model": ErrorResponse, "description": "Malformed form field"},
}


# === Helpers ===


def _parse_json_field(field_name: str, raw: str | None) -> dict:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error_messages.invalid_json_field(field_name, str(e)).to_dict(),
        )
    if not isinstance(data, dict):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error_messages.invalid_json_field(field_name, "expected an object").to_dict(),
        )
    return data


def _parse_defaults(raw: str | None) -> LabelConfig:
    data = _parse_json_field("defaults", raw)
    try:
        return LabelConfigSchema.model_validate(data).to_config()
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error_messages.invalid_json_field("defaults", str(e)).to_dict(),
        )


async def _read_upload(file: UploadFile) -> bytes:
    filename = file.filename or ""
    if file_extension(filename) not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_messages.INVALID_FILE_FORMAT.to_dict(),
        )
    data = await file.read()
    if len(data) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=error_messages.file_too_large(settings.max_upload_size_mb).to_dict(),
        )
    return data


async def _load_session(
    file: UploadFile, aliases: str | None, defaults: str | None
) -> tuple[BatchSession, bool]:
    session = BatchSession(defaults=_parse_defaults(defaults))
    try:
        session.apply_aliases(_parse_json_field("aliases", aliases))
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error_messages.UNKNOWN_ALIAS_FIELD.to_dict(),
        )
    loaded = session.load_spreadsheet(await _read_upload(file), file.filename or "")
    return session, loaded


def _check_sheet_geometry(defaults: LabelConfig) -> None:
    """Reject slot geometry the page tiler cannot lay out."""
    reason = validate_geometry(defaults.width_mm, defaults.height_mm, defaults.dpi)
    if not reason and defaults.margin_mm < 0:
        reason = "Margen negativo"
    if reason:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error_messages.invalid_sheet_geometry(reason).to_dict(),
        )


def _export_service(
    defaults: LabelConfig, page_format: str, logos: LogoCache | None = None
) -> ExportService:
    return ExportService(
        sheet=SheetLayout.from_config(defaults, page_format),
        compositor=LabelCompositor(logos=logos or LogoCache()),
    )


def _download(artifact: ExportArtifact) -> StreamingResponse:
    headers = {"Content-Disposition": f'attachment; filename="{artifact.filename}"'}
    if artifact.pages:
        headers["X-Pages"] = str(artifact.pages)
    headers["X-Labels"] = str(artifact.labels)
    return StreamingResponse(
        io.BytesIO(artifact.data),
        media_type=artifact.content_type,
        headers=headers,
    )


# === Single label ===


@router.get(
    "/labels/templates",
    response_model=TemplatesResponse,
    summary="Label size presets and page formats",
)
async def get_templates() -> TemplatesResponse:
    """
    Size presets and page formats.

    Returns:
        Presets (width, height, margin) and page sizes in mm
    """
    presets = [
        LabelPreset(name=name, width_mm=w, height_mm=h, margin_mm=m)
        for name, (w, h, m) in LABEL.PRESETS.items()
    ]
    page_formats = [
        PageFormatInfo(name=name, width_mm=w, height_mm=h)
        for name, (w, h) in LABEL.PAGE_SIZES.items()
    ]
    return TemplatesResponse(presets=presets, page_formats=page_formats)


@router.get(
    "/labels/template.xlsx",
    response_class=StreamingResponse,
    summary="Batch spreadsheet template",
)
async def download_template() -> StreamingResponse:
    """Template workbook with the recognized headers and two sample rows."""
    artifact = ExportService().export_template(default_label_config())
    return _download(artifact)


@router.post(
    "/labels/preview",
    response_class=Response,
    summary="Screen preview (96 dpi PNG)",
)
async def preview_label(payload: LabelConfigSchema) -> Response:
    """
    Render a label at screen resolution.

    A rasterizer failure still returns the image (with the error
    placeholder); the message is sent in the X-Render-Error header.
    """
    compositor = LabelCompositor(logos=LogoCache())
    rendered = await compositor.render_preview(payload.to_config())
    headers = {"X-Render-Error": quote(rendered.error)} if rendered.error else {}
    return Response(content=rendered.to_png(), media_type="image/png", headers=headers)


@router.post(
    "/labels/png",
    response_class=StreamingResponse,
    summary="Single label PNG at export dpi",
)
async def export_png(payload: LabelConfigSchema) -> StreamingResponse:
    service = ExportService(compositor=LabelCompositor(logos=LogoCache()))
    return _download(await service.export_png(payload.to_config()))


@router.post(
    "/labels/sheet/{kind}",
    response_class=StreamingResponse,
    responses=ERROR_RESPONSES,
    summary="Current label tiled qty times (pdf or html)",
)
async def export_single_sheet(
    kind: ExportKind,
    payload: LabelConfigSchema,
    page_format: Annotated[str, Query(description="a4 or letter")] = settings.default_page_format,
) -> StreamingResponse:
    """
    Tile the current label ``qty`` times.

    Single-label mode: nothing is skipped, even an invalid config.
    """
    config = payload.to_config()
    _check_sheet_geometry(config)
    service = _export_service(config, page_format)
    if kind == "pdf":
        return _download(await service.export_pdf([config]))
    if kind == "html":
        return _download(await service.export_print_html([config]))
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error_messages.FriendlyError(
            message=f"Exportación «{kind}» solo disponible para lotes"
        ).to_dict(),
    )


@router.post(
    "/labels/summary.xlsx",
    response_class=StreamingResponse,
    summary="Summary spreadsheet of the current label",
)
async def export_summary(payload: LabelConfigSchema) -> StreamingResponse:
    return _download(ExportService().export_summary(payload.to_config(), payload.qty))


# === Batch ===


@router.post(
    "/labels/batch/validate",
    response_model=BatchValidationResponse,
    responses=ERROR_RESPONSES,
    summary="Map and validate spreadsheet rows",
)
async def validate_batch(
    file: Annotated[UploadFile, File(description="xlsx or csv, headers in the first row")],
    aliases: Annotated[str | None, Form(description="JSON: canonical field -> column")] = None,
    defaults: Annotated[str | None, Form(description="JSON LabelConfig used for unset cells")] = None,
) -> BatchValidationResponse:
    """
    Map every row into a label and validate it.

    An unreadable file is not an error: ``loaded`` is false and no rows
    are returned.
    """
    session, loaded = await _load_session(file, aliases, defaults)
    if not loaded:
        return BatchValidationResponse(loaded=False)

    rows = [
        BatchRowStatus(
            index=item.index + 1,
            value=item.config.value,
            symbology=item.config.symbology,
            mode=item.config.mode,
            qty=item.config.copies,
            valid=item.valid,
            error=item.error,
        )
        for item in session.items
    ]
    return BatchValidationResponse(
        loaded=True,
        columns=session.reader.columns(session.rows),
        rows=rows,
        error_count=session.error_count,
        has_errors=session.has_errors,
    )


@router.post(
    "/labels/batch/export/{kind}",
    response_class=StreamingResponse,
    responses=ERROR_RESPONSES,
    summary="Export a spreadsheet batch",
)
async def export_batch(
    kind: ExportKind,
    file: Annotated[UploadFile, File(description="xlsx or csv, headers in the first row")],
    aliases: Annotated[str | None, Form(description="JSON: canonical field -> column")] = None,
    defaults: Annotated[str | None, Form(description="JSON LabelConfig used for unset cells")] = None,
    page_format: Annotated[str, Form(description="a4 or letter")] = settings.default_page_format,
) -> StreamingResponse:
    """
    Export the valid rows of a batch.

    Kinds:
    - ``pdf``: one tiled PDF, invalid rows do not take a slot
    - ``html``: print-ready HTML with the same tiling
    - ``per-row``: ZIP with one PDF per valid row
    - ``archive``: ZIP with PNG folders per row and resumen.csv
    """
    session, loaded = await _load_session(file, aliases, defaults)
    _check_sheet_geometry(session.defaults)
    if not loaded or not session.valid_configs:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_messages.NOTHING_TO_EXPORT.to_dict(),
        )

    # Decode logos up front so the manifest sees them
    logos = LogoCache()
    await session.resolve_logos(logos)
    service = _export_service(session.defaults, page_format, logos)
    configs, errors = session.configs, session.errors

    with bind_context(export=kind, batch_file=file.filename, batch_rows=len(configs)):
        if kind == "pdf":
            artifact = await service.export_pdf(configs, errors)
        elif kind == "html":
            artifact = await service.export_print_html(configs, errors)
        elif kind == "per-row":
            artifact = bundle(await service.export_pdf_per_row(configs, errors))
        else:
            artifact = await service.export_archive(configs, errors)

        logger.info(
            f"[BATCH] Export {kind}: {len(configs)} rows, {session.error_count} skipped, "
            f"{len(artifact.render_errors)} render errors"
        )
    return _download(artifact)
