"""Glasses device clients."""

from examsolver.devices.glasses import (
    CaptureOptions,
    CapturedImage,
    DisplayOptions,
    GlassesClient,
    HttpGlassesClient,
    MockGlassesClient,
    create_glasses_client,
)

__all__ = [
    "CaptureOptions",
    "CapturedImage",
    "DisplayOptions",
    "GlassesClient",
    "HttpGlassesClient",
    "MockGlassesClient",
    "create_glasses_client",
]
