"""Glasses client - photo capture and text display."""

from __future__ import annotations

import io
import time
from dataclasses import dataclass, field

import httpx

from examsolver.common.errors import CaptureError
from examsolver.common.logging import get_logger
from examsolver.config import Config


@dataclass
class CaptureOptions:
    """Photo capture options."""

    quality: int = 90
    target_width: int = 2400
    target_height: int = 1800


@dataclass
class CapturedImage:
    """Captured JPEG photo."""

    jpeg_bytes: bytes
    width: int
    height: int
    timestamp: float = field(default_factory=time.time)
    metadata: dict = field(default_factory=dict)


@dataclass
class DisplayOptions:
    """Display options.

    ``force`` bypasses the device's suppression of repeated text.
    """

    force: bool = False


class GlassesClient:
    """Abstract glasses client."""

    async def connect(self) -> None:
        """Connect to the glasses."""
        pass

    async def disconnect(self) -> None:
        """Disconnect from the glasses."""
        pass

    async def capture(self, options: CaptureOptions | None = None) -> CapturedImage:
        """Take a photo.

        Raises:
            CaptureError: With a readable reason when no photo was taken.
        """
        raise NotImplementedError

    async def display(self, text: str, options: DisplayOptions | None = None) -> bool:
        """Show text on the glasses. Returns False if the device refused it."""
        raise NotImplementedError

    def get_status(self) -> dict:
        """Get client status."""
        raise NotImplementedError


class MockGlassesClient(GlassesClient):
    """Mock glasses for development and testing.

    Captures are solid-colour JPEGs; displayed text is kept in ``screen`` and
    ``shown``. Unforced repeats of the current text are dropped, as a device
    would.
    """

    def __init__(self) -> None:
        self.screen = ""
        self.shown: list[tuple[str, bool]] = []
        self._capture_count = 0
        self.logger = get_logger("mock_glasses")

    async def capture(self, options: CaptureOptions | None = None) -> CapturedImage:
        """Capture a mock photo."""
        from PIL import Image

        options = options or CaptureOptions()
        self._capture_count += 1

        img = Image.new("RGB", (640, 480), color=(73, 109, 137))
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=options.quality)

        return CapturedImage(
            jpeg_bytes=buffer.getvalue(),
            width=640,
            height=480,
            metadata={"mock": True, "capture_number": self._capture_count},
        )

    async def display(self, text: str, options: DisplayOptions | None = None) -> bool:
        """Record displayed text."""
        options = options or DisplayOptions()
        if not options.force and text == self.screen:
            return True

        self.screen = text
        self.shown.append((text, options.force))
        self.logger.debug("mock_display", text=text, force=options.force)
        return True

    def get_status(self) -> dict:
        """Get mock glasses status."""
        return {
            "available": True,
            "type": "mock",
            "captures": self._capture_count,
            "screen": self.screen,
        }


class HttpGlassesClient(GlassesClient):
    """Glasses reached through an HTTP device bridge.

    Endpoints:
        POST /api/capture  {"quality", "target_width", "target_height"} -> image/jpeg
        POST /api/display  {"text", "force"}
    """

    def __init__(
        self,
        endpoint: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._last_error: str | None = None
        self.logger = get_logger("http_glasses")

    async def connect(self) -> None:
        """Open the HTTP connection pool."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.endpoint,
                timeout=self.timeout_seconds,
                transport=self._transport,
            )
            self.logger.debug("glasses_connected", endpoint=self.endpoint)

    async def disconnect(self) -> None:
        """Close the HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def capture(self, options: CaptureOptions | None = None) -> CapturedImage:
        """Capture a photo through the bridge.

        Image size comes from the ``x-image-width`` / ``x-image-height``
        response headers; missing or unreadable values fall back to the
        requested target size.
        """
        options = options or CaptureOptions()
        if self._client is None:
            raise CaptureError("Glasses not connected")

        try:
            response = await self._client.post(
                "/api/capture",
                json={
                    "quality": options.quality,
                    "target_width": options.target_width,
                    "target_height": options.target_height,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._last_error = str(e)
            raise CaptureError(f"Capture request failed: {e}") from e

        if not response.content:
            self._last_error = "empty image"
            raise CaptureError("Capture returned an empty image")

        self._last_error = None
        return CapturedImage(
            jpeg_bytes=response.content,
            width=self._dimension(response, "x-image-width", options.target_width),
            height=self._dimension(response, "x-image-height", options.target_height),
        )

    def _dimension(self, response: httpx.Response, header: str, default: int) -> int:
        value = response.headers.get(header)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            self.logger.warning("bad_image_dimension", header=header, value=value)
            return default

    async def display(self, text: str, options: DisplayOptions | None = None) -> bool:
        """Send text to the glasses display."""
        options = options or DisplayOptions()
        if self._client is None:
            self.logger.warning("display_not_connected")
            return False

        try:
            response = await self._client.post(
                "/api/display",
                json={"text": text, "force": options.force},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._last_error = str(e)
            self.logger.warning("display_request_failed", error=str(e))
            return False

        return True

    def get_status(self) -> dict:
        """Get bridge status."""
        return {
            "available": self._client is not None and self._last_error is None,
            "type": "http",
            "endpoint": self.endpoint,
            "error": self._last_error,
        }


def create_glasses_client(config: Config) -> GlassesClient:
    """Create the glasses client for this configuration."""
    if config.mock_mode:
        return MockGlassesClient()
    return HttpGlassesClient(
        config.glasses.endpoint,
        timeout_seconds=config.glasses.timeout_seconds,
    )


def capture_options(config: Config) -> CaptureOptions:
    """Capture options from configuration."""
    return CaptureOptions(
        quality=config.glasses.capture_quality,
        target_width=config.glasses.target_width,
        target_height=config.glasses.target_height,
    )
