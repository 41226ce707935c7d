"""
Notification module for the DNS reconciler.

Provides the notification event type, presentation channels (append-only log,
auto-dismissing toast stack, single inline banner) and a router that fans
events out to the registered channels.

Transient channels do not run timers. Every entry carries an expiry
timestamp and expired entries are swept whenever the channel is read.
"""

import sys
import time
from abc import abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, TextIO, runtime_checkable

from .audit_logger import AuditLogger
from .config import NotificationConfig
from .enums import LogLevel, NotificationKind, NotificationStyle, Severity


_SEVERITY_LOG_LEVELS = {
    Severity.INFO: LogLevel.INFO,
    Severity.WARNING: LogLevel.WARN,
    Severity.ERROR: LogLevel.ERROR,
}


@dataclass
class Notification:
    """A user-facing notification event."""

    message: str
    severity: Severity
    kind: NotificationKind
    created_at: float
    domain: Optional[str] = None


@dataclass
class ActiveNotification:
    """A notification shown by a transient channel until ``expires_at``."""

    notification: Notification
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


def format_notification(notification: Notification) -> str:
    """Render a notification as a single line, e.g. ``[WARNING] a.com is ...``."""
    return f"[{notification.severity.value.upper()}] {notification.message}"


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol defining the interface for notification channels."""

    @abstractmethod
    def send(self, notification: Notification) -> None:
        """
        Present a notification.

        Args:
            notification: The notification to present
        """
        ...

    @abstractmethod
    def get_name(self) -> str:
        """
        Get the channel name.

        Returns:
            The name of this notification channel
        """
        ...

    @abstractmethod
    def render(self, now: Optional[float] = None) -> list[str]:
        """Lines currently visible on this channel."""
        ...


class LogChannel:
    """Append-only notification log, optionally echoed to a stream."""

    def __init__(self, output_stream: Optional[TextIO] = None) -> None:
        """
        Initialize the log channel.

        Args:
            output_stream: Stream every notification is written to as it
                arrives (nothing is written when None)
        """
        self._output_stream = output_stream
        self._entries: list[Notification] = []

    def send(self, notification: Notification) -> None:
        self._entries.append(notification)
        if self._output_stream is not None:
            self._output_stream.write(format_notification(notification) + "\n")
            self._output_stream.flush()

    def get_name(self) -> str:
        """Return channel name."""
        return "log"

    def render(self, now: Optional[float] = None) -> list[str]:
        return [format_notification(n) for n in self._entries]

    @property
    def entries(self) -> list[Notification]:
        return self._entries.copy()


class ToastChannel:
    """Stack of auto-dismissing toast messages."""

    def __init__(
        self,
        lifetime_seconds: float = 5.0,
        max_toasts: int = 5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the toast stack.

        Args:
            lifetime_seconds: How long a toast stays visible
            max_toasts: Oldest toasts are dropped beyond this many
            clock: Source of the current time
        """
        self._lifetime = lifetime_seconds
        self._max_toasts = max_toasts
        self._clock = clock
        self._toasts: list[ActiveNotification] = []

    def send(self, notification: Notification) -> None:
        now = self._clock()
        self.sweep(now)
        self._toasts.append(
            ActiveNotification(notification=notification, expires_at=now + self._lifetime)
        )
        if len(self._toasts) > self._max_toasts:
            del self._toasts[: len(self._toasts) - self._max_toasts]

    def get_name(self) -> str:
        """Return channel name."""
        return "toast"

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Drop expired toasts.

        Returns:
            Number of toasts removed
        """
        if now is None:
            now = self._clock()
        before = len(self._toasts)
        self._toasts = [t for t in self._toasts if not t.expired(now)]
        return before - len(self._toasts)

    def active(self, now: Optional[float] = None) -> list[Notification]:
        self.sweep(now)
        return [t.notification for t in self._toasts]

    def dismiss(self, index: int) -> bool:
        """Dismiss one toast by position. Returns False if there is none."""
        if 0 <= index < len(self._toasts):
            del self._toasts[index]
            return True
        return False

    def render(self, now: Optional[float] = None) -> list[str]:
        return [format_notification(n) for n in self.active(now)]


class BannerChannel:
    """Single inline banner; a new notification replaces the current one."""

    def __init__(
        self,
        lifetime_seconds: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lifetime = lifetime_seconds
        self._clock = clock
        self._current: Optional[ActiveNotification] = None

    def send(self, notification: Notification) -> None:
        self._current = ActiveNotification(
            notification=notification,
            expires_at=self._clock() + self._lifetime,
        )

    def get_name(self) -> str:
        """Return channel name."""
        return "banner"

    def current(self, now: Optional[float] = None) -> Optional[Notification]:
        if self._current is None:
            return None
        if now is None:
            now = self._clock()
        if self._current.expired(now):
            self._current = None
            return None
        return self._current.notification

    def render(self, now: Optional[float] = None) -> list[str]:
        notification = self.current(now)
        return [format_notification(notification)] if notification else []


class NotificationRouter:
    """
    Fans notification events out to all registered channels.

    Every event is also recorded in ``history`` and, when a logger is
    configured, written to the audit log.
    """

    def __init__(
        self,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the notification router.

        Args:
            logger: Optional audit logger
            clock: Source of the creation timestamp of events
        """
        self._channels: dict[str, NotificationChannel] = {}
        self._logger = logger
        self._clock = clock
        self._history: list[Notification] = []

    def register_channel(self, channel: NotificationChannel) -> None:
        """
        Register a notification channel.

        Args:
            channel: The channel to register
        """
        self._channels[channel.get_name()] = channel

    def unregister_channel(self, channel_name: str) -> bool:
        """
        Unregister a notification channel.

        Args:
            channel_name: Name of the channel to remove

        Returns:
            True if channel was removed, False if not found
        """
        if channel_name in self._channels:
            del self._channels[channel_name]
            return True
        return False

    @property
    def channels(self) -> list[NotificationChannel]:
        """Get list of registered channels."""
        return list(self._channels.values())

    @property
    def history(self) -> list[Notification]:
        return self._history.copy()

    def notify(
        self,
        message: str,
        severity: Severity,
        kind: NotificationKind,
        domain: Optional[str] = None,
    ) -> Notification:
        """
        Create a notification event and deliver it to every channel.

        Returns:
            The delivered notification
        """
        notification = Notification(
            message=message,
            severity=severity,
            kind=kind,
            created_at=self._clock(),
            domain=domain,
        )
        self._history.append(notification)

        for channel in self._channels.values():
            channel.send(notification)

        if self._logger:
            self._logger.log(
                _SEVERITY_LOG_LEVELS[severity],
                "NotificationRouter",
                message,
                {"kind": kind.value, "domain": domain},
            )
        return notification

    def render(self, now: Optional[float] = None) -> list[str]:
        """Visible lines of all channels, in registration order."""
        lines: list[str] = []
        for channel in self._channels.values():
            lines.extend(channel.render(now))
        return lines


def create_notification_router(
    config: NotificationConfig,
    output_stream: Optional[TextIO] = None,
    logger: Optional[AuditLogger] = None,
) -> NotificationRouter:
    """
    Create a notification router with the channel selected by ``config.style``.

    Args:
        config: Notification configuration
        output_stream: Stream the log channel echoes to (defaults to sys.stdout)
        logger: Optional audit logger

    Returns:
        NotificationRouter with one registered channel
    """
    router = NotificationRouter(logger=logger)

    if config.style == NotificationStyle.TOAST:
        router.register_channel(
            ToastChannel(lifetime_seconds=config.toast_seconds, max_toasts=config.max_toasts)
        )
    elif config.style == NotificationStyle.BANNER:
        router.register_channel(BannerChannel(lifetime_seconds=config.toast_seconds))
    else:
        router.register_channel(LogChannel(output_stream=output_stream or sys.stdout))

    return router
