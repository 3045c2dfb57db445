"""Notification and translation collaborators.

Both are fire-and-forget from the engine's point of view: return values of
``toast`` are ignored and ``translate`` only ever renders display text.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Optional, Any

logger = logging.getLogger(__name__)


class ToastVariant(Enum):
    DEFAULT = "default"
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Toast:
    """A single user-facing notification."""
    title: str
    description: str = ""
    variant: ToastVariant = ToastVariant.DEFAULT

    def as_dict(self) -> dict:
        return {"title": self.title, "description": self.description, "variant": self.variant.value}


class NotifierProtocol(Protocol):
    """Receives toasts emitted by the engine."""

    def toast(self, toast: Toast) -> Any:
        ...


class TranslatorProtocol(Protocol):
    """Renders a message id to display text, falling back to ``default``."""

    def __call__(self, key: str, default: str, **params: Any) -> str:
        ...


class LoggingNotifier:
    """Notifier used when no UI notifier is registered: writes toasts to the log."""

    _LEVELS = {
        ToastVariant.WARNING: logging.WARNING,
        ToastVariant.DESTRUCTIVE: logging.ERROR,
    }

    def toast(self, toast: Toast) -> None:
        level = self._LEVELS.get(toast.variant, logging.INFO)
        logger.log(level, f"[toast:{toast.variant.value}] {toast.title}: {toast.description}")


_notifier: Optional[NotifierProtocol] = None
_translator: Optional[TranslatorProtocol] = None


def register_notifier(notifier: Optional[NotifierProtocol]) -> None:
    """Register the process-wide notifier implementation."""
    global _notifier
    _notifier = notifier


def get_notifier() -> NotifierProtocol:
    """Get the registered notifier, or a LoggingNotifier if none is registered."""
    if _notifier is None:
        return LoggingNotifier()
    return _notifier


def register_translator(translator: Optional[TranslatorProtocol]) -> None:
    """Register the process-wide translation function."""
    global _translator
    _translator = translator


def get_translator() -> Optional[TranslatorProtocol]:
    """Get the registered translation function, if any."""
    return _translator
