"""Per-window highlighting sessions."""

from .controller import SessionController, SessionSettings, WindowSession
from .debounce import DEFAULT_DEBOUNCE_SECONDS, DebounceScheduler

__all__ = [
    "SessionController",
    "SessionSettings",
    "WindowSession",
    "DebounceScheduler",
    "DEFAULT_DEBOUNCE_SECONDS",
]
