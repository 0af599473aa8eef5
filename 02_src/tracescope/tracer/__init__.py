"""Tracer module."""

from .tracer import ITracer, TracerController

__all__ = ["ITracer", "TracerController"]
