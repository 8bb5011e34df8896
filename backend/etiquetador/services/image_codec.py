"""
Logo decoding.

Logo sources come from the form or a spreadsheet column and may be a data
URL, an http(s) URL or, when a logo directory is configured, a file path
inside that directory.
"""

import base64
import binascii
import logging
from dataclasses import replace
from io import BytesIO
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from etiquetador.config import get_settings
from etiquetador.models.label_types import LabelConfig

logger = logging.getLogger(__name__)


class ImageDecodeError(ValueError):
    """Source could not be turned into a raster."""


class ImageCodec:
    """Decodes data URLs, byte buffers, URLs and paths into PIL images."""

    def __init__(self, timeout: float | None = None, logo_dir: Path | None = None):
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.logo_fetch_timeout
        self.logo_dir = logo_dir if logo_dir is not None else settings.logo_dir

    def decode_bytes(self, data: bytes) -> Image.Image:
        """
        Decode an encoded image buffer.

        Raises:
            ImageDecodeError: If the bytes are not a supported image
        """
        try:
            img = Image.open(BytesIO(data))
            img.load()
        except Image.DecompressionBombError as e:
            raise ImageDecodeError(f"Imagen demasiado grande: {e}") from e
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Imagen no válida: {e}") from e
        return img.convert("RGBA")

    def decode_data_url(self, data_url: str) -> Image.Image:
        """Decode ``data:image/...;base64,...``."""
        header, _, payload = data_url.partition(",")
        if not header.startswith("data:") or not payload:
            raise ImageDecodeError("Data URL incompleta")
        try:
            data = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"Base64 inválido: {e}") from e
        return self.decode_bytes(data)

    async def decode(self, source: str) -> Image.Image:
        """
        Decode any supported logo source.

        Args:
            source: Data URL, http(s) URL or a path under ``logo_dir``

        Returns:
            RGBA image

        Raises:
            ImageDecodeError: If the source cannot be fetched or decoded
        """
        source = source.strip()
        if source.startswith("data:"):
            return self.decode_data_url(source)

        if source.startswith(("http://", "https://")):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(source)
                    response.raise_for_status()
            except httpx.HTTPError as e:
                raise ImageDecodeError(f"No se pudo descargar el logo: {e}") from e
            return self.decode_bytes(response.content)

        path = self.resolve_path(source)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ImageDecodeError(f"No se pudo leer el logo: {e}") from e
        return self.decode_bytes(data)

    def resolve_path(self, source: str) -> Path:
        """
        Map a path source to a file inside ``logo_dir``.

        Relative paths are taken from ``logo_dir``; absolute ones must
        already point inside it.

        Raises:
            ImageDecodeError: No logo directory configured, or the path
                escapes it
        """
        if self.logo_dir is None:
            raise ImageDecodeError("Solo se aceptan logos como data URL o URL http(s)")
        base = Path(self.logo_dir).resolve()
        path = (base / source).resolve()
        if not path.is_relative_to(base):
            raise ImageDecodeError("Ruta de logo fuera de la carpeta permitida")
        return path


class LogoCache:
    """
    One decode per distinct logo source.

    Failed sources are remembered as None so a broken URL is not fetched
    again for every row that references it.
    """

    def __init__(self, codec: ImageCodec | None = None):
        self.codec = codec or ImageCodec()
        self._images: dict[str, Image.Image | None] = {}

    async def get(self, source: str) -> Image.Image | None:
        if not source:
            return None
        if source not in self._images:
            try:
                self._images[source] = await self.codec.decode(source)
            except ImageDecodeError as e:
                logger.warning(f"[LOGO] {e}")
                self._images[source] = None
        return self._images[source]

    async def attach(self, config: LabelConfig) -> LabelConfig:
        """Config with its logo decoded (shared image object)."""
        if config.logo_image is not None or not config.logo_source:
            return config
        return replace(config, logo_image=await self.get(config.logo_source))

    async def attach_all(self, configs: list[LabelConfig]) -> list[LabelConfig]:
        # Sequential: keeps decode order equal to batch order
        return [await self.attach(config) for config in configs]
