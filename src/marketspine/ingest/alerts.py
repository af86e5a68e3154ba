"""
Operator alerts for failed runs.

Channels receive an :class:`Alert` and report a :class:`DeliveryResult`.
:class:`AlertDispatcher.notify` is fire-and-forget: it never raises, so a
broken webhook cannot break the orchestrator's cleanup path.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import httpx

from marketspine.core.errors import NetworkError
from marketspine.core.timestamps import utc_now
from marketspine.logging import get_logger

logger = get_logger(__name__)


class AlertSeverity(str, Enum):
    """Alert severity levels, ordered."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return list(AlertSeverity).index(self)

    def __lt__(self, other: AlertSeverity) -> bool:  # type: ignore[override]
        return self.rank < other.rank

    def __ge__(self, other: AlertSeverity) -> bool:  # type: ignore[override]
        return self.rank >= other.rank


class ChannelType(str, Enum):
    WEBHOOK = "webhook"
    CONSOLE = "console"


@dataclass
class Alert:
    severity: AlertSeverity
    title: str
    message: str
    source: str
    run_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    fingerprint: str | None = None

    def __post_init__(self) -> None:
        if self.fingerprint is None:
            self.fingerprint = "|".join((self.severity.value, self.source, self.title))

    def to_dict(self) -> dict[str, Any]:
        result = {
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "source": self.source,
            "created_at": self.created_at.isoformat(),
            "fingerprint": self.fingerprint,
        }
        if self.run_id:
            result["run_id"] = self.run_id
        if self.metadata:
            result["metadata"] = self.metadata
        return result


@dataclass
class DeliveryResult:
    channel_name: str
    success: bool
    message: str | None = None
    error: Exception | None = None

    @classmethod
    def ok(cls, channel_name: str, message: str | None = None) -> DeliveryResult:
        return cls(channel_name=channel_name, success=True, message=message)

    @classmethod
    def fail(cls, channel_name: str, error: Exception) -> DeliveryResult:
        return cls(channel_name=channel_name, success=False, message=str(error), error=error)


@runtime_checkable
class AlertChannel(Protocol):
    @property
    def name(self) -> str: ...

    def should_send(self, alert: Alert) -> bool: ...

    def send(self, alert: Alert) -> DeliveryResult: ...


class BaseChannel(ABC):
    """Severity filtering and enable/disable for channels."""

    def __init__(
        self,
        name: str,
        channel_type: ChannelType,
        *,
        min_severity: AlertSeverity = AlertSeverity.ERROR,
        enabled: bool = True,
    ):
        self._name = name
        self.channel_type = channel_type
        self.min_severity = min_severity
        self.enabled = enabled

    @property
    def name(self) -> str:
        return self._name

    def should_send(self, alert: Alert) -> bool:
        return self.enabled and alert.severity >= self.min_severity

    @abstractmethod
    def send(self, alert: Alert) -> DeliveryResult: ...


class ConsoleChannel(BaseChannel):
    """Writes alerts to stderr."""

    def __init__(self, name: str = "console", *, min_severity: AlertSeverity = AlertSeverity.INFO, **kwargs: Any):
        super().__init__(name, ChannelType.CONSOLE, min_severity=min_severity, **kwargs)

    def send(self, alert: Alert) -> DeliveryResult:
        print(f"[{alert.severity.value}] {alert.title}", file=sys.stderr)
        print(f"  Source: {alert.source}", file=sys.stderr)
        if alert.run_id:
            print(f"  Run: {alert.run_id}", file=sys.stderr)
        print(f"  Message: {alert.message}", file=sys.stderr)
        return DeliveryResult.ok(self._name)


class WebhookChannel(BaseChannel):
    """POSTs the alert as JSON to ``url``."""

    def __init__(
        self,
        name: str,
        url: str,
        *,
        client: httpx.Client | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        min_severity: AlertSeverity = AlertSeverity.ERROR,
        **kwargs: Any,
    ):
        super().__init__(name, ChannelType.WEBHOOK, min_severity=min_severity, **kwargs)
        self._url = url
        self._client = client or httpx.Client()
        self._headers = headers or {}
        self._timeout = timeout

    def send(self, alert: Alert) -> DeliveryResult:
        try:
            response = self._client.post(self._url, json=alert.to_dict(), headers=self._headers, timeout=self._timeout)
        except httpx.HTTPError as e:
            return DeliveryResult.fail(self._name, NetworkError(str(e), cause=e))
        if response.status_code >= 400:
            return DeliveryResult.fail(self._name, NetworkError(f"Webhook returned HTTP {response.status_code}"))
        return DeliveryResult.ok(self._name, f"HTTP {response.status_code}")


class AlertDispatcher:
    """Sends alerts to every registered channel that accepts them."""

    def __init__(self, channels: list[AlertChannel] | None = None) -> None:
        self._channels: dict[str, AlertChannel] = {}
        for channel in channels or []:
            self.register(channel)

    def register(self, channel: AlertChannel) -> None:
        self._channels[channel.name] = channel

    def list_channels(self) -> list[str]:
        return sorted(self._channels)

    def notify(self, alert: Alert) -> list[DeliveryResult]:
        """Deliver to all matching channels. Never raises."""
        results = []
        for channel in self._channels.values():
            try:
                if not channel.should_send(alert):
                    continue
                result = channel.send(alert)
            except Exception as e:
                result = DeliveryResult.fail(channel.name, e)
            if not result.success:
                logger.warning("alert.delivery_failed", channel=channel.name, error=result.message)
            results.append(result)
        return results


def build_dispatcher(webhook_url: str | None, *, client: httpx.Client | None = None) -> AlertDispatcher:
    dispatcher = AlertDispatcher([ConsoleChannel(min_severity=AlertSeverity.ERROR)])
    if webhook_url:
        dispatcher.register(WebhookChannel("webhook", webhook_url, client=client))
    return dispatcher


__all__ = [
    "AlertSeverity",
    "ChannelType",
    "Alert",
    "DeliveryResult",
    "AlertChannel",
    "BaseChannel",
    "ConsoleChannel",
    "WebhookChannel",
    "AlertDispatcher",
    "build_dispatcher",
]
