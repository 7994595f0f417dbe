"""Toast notifications.

Sessions receive a ``Notifier`` at construction; the sink decides where the
toast ends up (log, MCP tool output, HTTP response).
"""

import logging
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

SUCCESS_DURATION = 3.0
ERROR_DURATION = 4.0
INFO_DURATION = 3.0


class ToastKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Toast(BaseModel):
    """A single auto-dismissing message."""

    message: str
    kind: ToastKind = ToastKind.INFO
    duration: float = INFO_DURATION

    def __str__(self) -> str:
        prefix = {ToastKind.SUCCESS: "✅", ToastKind.ERROR: "❌", ToastKind.INFO: "ℹ️"}[self.kind]
        return f"{prefix} {self.message}"


class ToastSink(Protocol):
    def deliver(self, toast: Toast) -> None: ...


class LoggingToastSink:
    """Writes every toast to the log."""

    def deliver(self, toast: Toast) -> None:
        if toast.kind == ToastKind.ERROR:
            logger.warning(f"[toast] {toast.message}")
        else:
            logger.info(f"[toast] {toast.message}")


class BufferedToastSink:
    """Keeps toasts until a surface drains them into its response."""

    def __init__(self) -> None:
        self.toasts: list[Toast] = []

    def deliver(self, toast: Toast) -> None:
        logger.debug(f"Buffered toast: {toast.kind.value}: {toast.message}")
        self.toasts.append(toast)

    def drain(self) -> list[Toast]:
        toasts, self.toasts = self.toasts, []
        return toasts


class Notifier:
    """Dispatches toasts to a sink."""

    def __init__(self, sink: Optional[ToastSink] = None) -> None:
        self.sink = sink or LoggingToastSink()

    def show(self, message: str, kind: ToastKind = ToastKind.INFO, duration: float = INFO_DURATION) -> Toast:
        toast = Toast(message=message, kind=kind, duration=duration)
        self.sink.deliver(toast)
        return toast

    def success(self, message: str = "Success!") -> Toast:
        return self.show(message, ToastKind.SUCCESS, SUCCESS_DURATION)

    def error(self, message: str = "Something went wrong") -> Toast:
        return self.show(message, ToastKind.ERROR, ERROR_DURATION)

    def info(self, message: str) -> Toast:
        return self.show(message, ToastKind.INFO, INFO_DURATION)
