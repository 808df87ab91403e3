"""Render tiers and the vector fallback chart."""

from .backends import RenderBackendSelector, default_probes
from .fallback import FallbackContext, FallbackScene, build_fallback_scene, render_fallback

__all__ = [
    "FallbackContext",
    "FallbackScene",
    "RenderBackendSelector",
    "build_fallback_scene",
    "default_probes",
    "render_fallback",
]
