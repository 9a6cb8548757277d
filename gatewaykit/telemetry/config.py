"""Configuration of the telemetry plugin and its export targets."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Union

from gatewaykit.core import format_duration, parse_duration

DEFAULT_SERVICE_NAME = "conductor"
DEFAULT_ZIPKIN_ENDPOINT = "http://127.0.0.1:9411/api/v2/spans"
DEFAULT_DATADOG_AGENT_ENDPOINT = "127.0.0.1:8126"
DEFAULT_OTLP_TIMEOUT = 10.0


def _expect_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object")
    return data


def _required_str(data: Mapping[str, Any], key: str, what: str) -> str:
    if key not in data:
        raise ValueError(f"{what}: missing field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"{what}: field '{key}' must be a string")
    return value


def parse_socket_address(text: str) -> str:
    """Validate an `ip:port` address and return it in canonical form."""
    if not isinstance(text, str):
        raise ValueError("a socket address must be a string")
    if text.startswith("["):
        host, sep, port_text = text[1:].partition("]:")
        if not sep:
            raise ValueError(f"invalid socket address: {text!r}")
        try:
            address = ipaddress.IPv6Address(host)
        except ValueError as exc:
            raise ValueError(f"invalid socket address: {text!r}") from exc
    else:
        host, sep, port_text = text.rpartition(":")
        if not sep:
            raise ValueError(f"invalid socket address: {text!r}")
        try:
            address = ipaddress.IPv4Address(host)
        except ValueError as exc:
            raise ValueError(f"invalid socket address: {text!r}") from exc
    if not port_text.isdigit() or int(port_text) > 65535:
        raise ValueError(f"invalid port in socket address: {text!r}")
    port = int(port_text)
    if address.version == 6:
        return f"[{address.compressed}]:{port}"
    return f"{address}:{port}"


class OtlpProtocol(str, Enum):
    """The transport used to export data to an OTLP backend."""

    GRPC = "grpc"
    HTTP = "http"

    @classmethod
    def parse(cls, value: Any) -> "OtlpProtocol":
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"unknown OTLP protocol: {value!r}") from exc


@dataclass(frozen=True)
class StdoutTarget:
    """Print telemetry data to standard output in a human-readable form."""

    TYPE = "stdout"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.TYPE}


@dataclass(frozen=True)
class ZipkinTarget:
    """Send traces to a Zipkin collector over HTTP."""

    TYPE = "zipkin"

    collector_endpoint: str = DEFAULT_ZIPKIN_ENDPOINT

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.TYPE, "collector_endpoint": self.collector_endpoint}


@dataclass(frozen=True)
class OtlpTarget:
    """Send traces to an OpenTelemetry backend using the OTLP protocol."""

    TYPE = "otlp"

    endpoint: str
    protocol: OtlpProtocol = OtlpProtocol.GRPC
    timeout: float = DEFAULT_OTLP_TIMEOUT
    gzip_compression: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.TYPE,
            "endpoint": self.endpoint,
            "protocol": self.protocol.value,
            "timeout": format_duration(self.timeout),
            "gzip_compression": self.gzip_compression,
        }


@dataclass(frozen=True)
class DatadogTarget:
    """Send traces to a Datadog agent at an `ip:port` address."""

    TYPE = "datadog"

    agent_endpoint: str = DEFAULT_DATADOG_AGENT_ENDPOINT

    def __post_init__(self) -> None:
        object.__setattr__(self, "agent_endpoint", parse_socket_address(self.agent_endpoint))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.TYPE, "agent_endpoint": self.agent_endpoint}


TelemetryTarget = Union[StdoutTarget, ZipkinTarget, OtlpTarget, DatadogTarget]


def parse_target(data: Any) -> TelemetryTarget:
    """Build a telemetry target from its `type`-tagged object."""
    what = "telemetry target"
    data = _expect_mapping(data, what)
    kind = data.get("type")
    if kind == StdoutTarget.TYPE:
        return StdoutTarget()
    if kind == ZipkinTarget.TYPE:
        endpoint = data.get("collector_endpoint", DEFAULT_ZIPKIN_ENDPOINT)
        if not isinstance(endpoint, str):
            raise ValueError(f"{what}: field 'collector_endpoint' must be a string")
        return ZipkinTarget(collector_endpoint=endpoint)
    if kind == OtlpTarget.TYPE:
        timeout = DEFAULT_OTLP_TIMEOUT
        if "timeout" in data:
            raw = data["timeout"]
            if not isinstance(raw, str):
                raise ValueError(f"{what}: field 'timeout' must be a duration string")
            timeout = parse_duration(raw)
        gzip = data.get("gzip_compression", False)
        if not isinstance(gzip, bool):
            raise ValueError(f"{what}: field 'gzip_compression' must be a boolean")
        return OtlpTarget(
            endpoint=_required_str(data, "endpoint", what),
            protocol=OtlpProtocol.parse(data.get("protocol", OtlpProtocol.GRPC.value)),
            timeout=timeout,
            gzip_compression=gzip,
        )
    if kind == DatadogTarget.TYPE:
        endpoint = data.get("agent_endpoint", DEFAULT_DATADOG_AGENT_ENDPOINT)
        return DatadogTarget(agent_endpoint=parse_socket_address(endpoint))
    raise ValueError(f"unknown telemetry target type: {kind!r}")


@dataclass(frozen=True)
class TelemetryPluginConfig:
    """The reporting service name and the targets telemetry data is sent to."""

    service_name: str = DEFAULT_SERVICE_NAME
    targets: list[TelemetryTarget] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "TelemetryPluginConfig":
        """Build the configuration from decoded data; raises ValueError when it is invalid."""
        what = "telemetry plugin configuration"
        data = _expect_mapping(data, what)
        service_name = data.get("service_name", DEFAULT_SERVICE_NAME)
        if not isinstance(service_name, str):
            raise ValueError(f"{what}: field 'service_name' must be a string")
        if "targets" not in data:
            raise ValueError(f"{what}: missing field 'targets'")
        targets = data["targets"]
        if not isinstance(targets, list):
            raise ValueError(f"{what}: field 'targets' must be a list")
        return cls(service_name=service_name, targets=[parse_target(t) for t in targets])

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_name": self.service_name,
            "targets": [target.to_dict() for target in self.targets],
        }