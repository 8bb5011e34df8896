"""
FastAPI entry point of the Etiquetador service.

Barcode / QR label designer with spreadsheet batches.
"""

import logging
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from etiquetador.api.routes import health, labels
from etiquetador.config import get_settings
from etiquetador.logging_config import bind_context, setup_logging

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle."""
    logger.info(f"[START] {settings.app_name} v{settings.app_version}")
    yield
    logger.info(f"[STOP] {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## Etiquetador API

Diseño e impresión de etiquetas con código de barras o QR.

### Funciones:

* **Vista previa**: render de una etiqueta a resolución de pantalla
* **Lotes desde Excel/CSV**: mapeo de columnas, validación por fila
* **Exportación**: PDF en hojas A4/Carta, HTML para imprimir, PDF por fila, ZIP de PNG con resumen.csv
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Render-Error", "X-Pages", "X-Labels", "X-Request-ID"],
)


@app.middleware("http")
async def request_context(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Tag every log record of a request with its id; echo the id back."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    with bind_context(request_id=request_id, path=request.url.path):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(health.router, tags=["Health"])
app.include_router(labels.router, prefix="/api/v1", tags=["Labels"])


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    """Service info."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
