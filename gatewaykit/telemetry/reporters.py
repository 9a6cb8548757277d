"""Reporters that print or ship finished trace spans."""

from __future__ import annotations

import logging
import pprint
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import msgpack

from gatewaykit.telemetry.config import parse_socket_address

logger = logging.getLogger(__name__)

_U64_MASK = (1 << 64) - 1
_SINGLE_ELEMENT_ARRAY = bytes([0b10010001])
DATADOG_TRACER_VERSION = "v1.27.0"

Sender = Callable[[str, dict, bytes], int]


def _as_u64(value: int) -> int:
    return value & _U64_MASK


def _as_i64(value: int) -> int:
    value &= _U64_MASK
    return value - (1 << 64) if value >= 1 << 63 else value


@dataclass(frozen=True)
class EventRecord:
    """A point-in-time event recorded inside a span."""

    name: str
    timestamp_unix_ns: int
    properties: list[tuple[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class SpanRecord:
    """A finished span, with its timing, properties and events."""

    trace_id: int
    span_id: int
    parent_id: int
    begin_time_unix_ns: int
    duration_ns: int
    name: str
    properties: list[tuple[str, str]] = field(default_factory=list)
    events: list[EventRecord] = field(default_factory=list)


class ConsoleReporter:
    """Logs every span in a readable form."""

    def report(self, spans: Sequence[SpanRecord]) -> None:
        for span in spans:
            logger.info("%s", pprint.pformat(span))


def _default_send(url: str, headers: dict, body: bytes) -> int:
    request = urllib.request.Request(url, data=body, headers=headers, method="POST")
    with urllib.request.urlopen(request, timeout=30) as response:
        return response.status


class DatadogReporter:
    """Encodes spans in the Datadog agent's msgpack format and posts them."""

    def __init__(
        self,
        agent_endpoint: str,
        service_name: str,
        resource: str,
        trace_type: str,
        send: Optional[Sender] = None,
    ) -> None:
        self.agent_endpoint = parse_socket_address(agent_endpoint)
        self.service_name = service_name
        self.resource = resource
        self.trace_type = trace_type
        self._send = send or _default_send

    def convert(self, spans: Sequence[SpanRecord]) -> list[dict[str, Any]]:
        """The spans as Datadog span objects, in the agent's field order."""
        converted = []
        for span in spans:
            item: dict[str, Any] = {
                "name": span.name,
                "service": self.service_name,
                "type": self.trace_type,
                "resource": self.resource,
                "start": _as_i64(span.begin_time_unix_ns),
                "duration": _as_i64(span.duration_ns),
            }
            if span.properties:
                item["meta"] = dict(span.properties)
            item["error_code"] = 0
            item["span_id"] = _as_u64(span.span_id)
            item["trace_id"] = _as_u64(span.trace_id)
            item["parent_id"] = _as_u64(span.parent_id)
            converted.append(item)
        return converted

    def serialize(self, spans: Sequence[dict[str, Any]]) -> bytes:
        """Encode converted spans as a single trace for the agent."""
        return _SINGLE_ELEMENT_ARRAY + msgpack.packb(list(spans), use_bin_type=True)

    def traces_url(self) -> str:
        return f"http://{self.agent_endpoint}/v0.4/traces"

    def flush(self, spans: Sequence[SpanRecord]) -> None:
        """Send the spans to the agent; failures are logged, not raised."""
        if not spans:
            return
        headers = {
            "Datadog-Meta-Tracer-Version": DATADOG_TRACER_VERSION,
            "Content-Type": "application/msgpack",
        }
        try:
            body = self.serialize(self.convert(spans))
            status = self._send(self.traces_url(), headers, body)
        except Exception as exc:  # noqa: BLE001 - a failed report must not break the caller
            logger.error("report to datadog failed: %s", exc)
            return
        logger.debug("datadog report done with status: %s", status)
        logger.debug("flushed %d traces to datadog agent", len(spans))