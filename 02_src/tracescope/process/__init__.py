"""Actor runtime module."""

from .actor import Actor, Behaviour, current_process, self_ref

__all__ = ["Actor", "Behaviour", "current_process", "self_ref"]
