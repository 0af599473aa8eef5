"""Recorder (instrumentation hook) module."""

from .recorder import Delivery, IRecorder, Recorder
from .state_recorder import StateRecorder, module_name

__all__ = ["Delivery", "IRecorder", "Recorder", "StateRecorder", "module_name"]
