"""
Background removal with rembg.

Sessions are created lazily, one per mode, and reused. The model runs in
a worker thread.
"""

import base64
import binascii
import io
import time
from typing import Any

from fastapi.concurrency import run_in_threadpool
from PIL import Image, UnidentifiedImageError
from rembg import new_session, remove
from structlog import get_logger

from app.exceptions import EditFailedError
from app.models.api import RemovalMode
from app.observability.metrics import metrics

logger = get_logger(__name__)

MAX_IMAGE_BYTES = 15 * 1024 * 1024


def decode_image_payload(payload: str | None) -> bytes:
    """
    Decode a data URL or bare base64 string into image bytes.

    Raises ValueError when the payload is empty, not base64, too large, or
    not an image Pillow can read.
    """
    if not payload or not payload.strip():
        raise ValueError("Image is required")

    data = payload.strip()
    if data.startswith("data:"):
        header, _, data = data.partition(",")
        if ";base64" not in header:
            raise ValueError("Image data URL must be base64 encoded")

    try:
        image_data = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Image is not valid base64") from exc

    if not image_data:
        raise ValueError("Image is required")
    if len(image_data) > MAX_IMAGE_BYTES:
        raise ValueError(f"Image exceeds {MAX_IMAGE_BYTES} bytes")

    try:
        with Image.open(io.BytesIO(image_data)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, Image.DecompressionBombError) as exc:
        raise ValueError("Image could not be decoded") from exc

    return image_data


def image_mime_type(image_data: bytes) -> str:
    """MIME type Pillow detects for ``image_data``, PNG when unknown."""
    try:
        with Image.open(io.BytesIO(image_data)) as image:
            return Image.MIME.get(image.format or "", "image/png")
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        return "image/png"


def to_data_url(image_data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image_data).decode()}"


class BackgroundRemover:
    """Removes image backgrounds, trading speed for quality per mode."""

    def __init__(self, fast_model: str, quality_model: str) -> None:
        self.models = {
            RemovalMode.FAST: fast_model,
            RemovalMode.QUALITY: quality_model,
        }
        self._sessions: dict[RemovalMode, Any] = {}

    def _session(self, mode: RemovalMode) -> Any:
        if mode not in self._sessions:
            logger.info("removal_session_loading", mode=mode.value, model=self.models[mode])
            self._sessions[mode] = new_session(self.models[mode])
        return self._sessions[mode]

    def _remove_sync(self, image_data: bytes, mode: RemovalMode) -> bytes:
        with Image.open(io.BytesIO(image_data)) as image:
            # rembg expects RGB(A) input and adds the alpha channel itself
            source = image.convert("RGB") if image.mode not in ("RGB", "RGBA") else image.copy()

        result = remove(source, session=self._session(mode))
        if result.mode != "RGBA":
            result = result.convert("RGBA")

        output = io.BytesIO()
        result.save(output, format="PNG")
        return output.getvalue()

    async def remove_background(self, image_data: bytes, mode: RemovalMode) -> bytes:
        """
        Return PNG bytes of the image with its background removed.

        Raises:
            EditFailedError: The model failed on this image
        """
        start_time = time.time()
        try:
            output = await run_in_threadpool(self._remove_sync, image_data, mode)
        except Exception as exc:
            logger.error(
                "background_removal_failed",
                mode=mode.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise EditFailedError() from exc
        finally:
            metrics.removal_duration_seconds.labels(mode=mode.value).observe(
                time.time() - start_time
            )

        return output
