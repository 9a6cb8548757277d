import pytest

from gatewaykit.telemetry.config import (
    DatadogTarget,
    OtlpProtocol,
    OtlpTarget,
    StdoutTarget,
    TelemetryPluginConfig,
    ZipkinTarget,
    parse_target,
)


def test_service_name_defaults_to_conductor():
    config = TelemetryPluginConfig.from_dict({"targets": []})
    assert config.service_name == "conductor"
    assert config.targets == []


def test_targets_are_required():
    with pytest.raises(ValueError):
        TelemetryPluginConfig.from_dict({"service_name": "svc"})


def test_stdout_target():
    assert parse_target({"type": "stdout"}) == StdoutTarget()


def test_zipkin_default_endpoint():
    target = parse_target({"type": "zipkin"})
    assert target == ZipkinTarget(collector_endpoint="http://127.0.0.1:9411/api/v2/spans")


def test_datadog_default_endpoint():
    target = parse_target({"type": "datadog"})
    assert isinstance(target, DatadogTarget)
    assert target.agent_endpoint == "127.0.0.1:8126"


def test_datadog_invalid_endpoint():
    with pytest.raises(ValueError):
        parse_target({"type": "datadog", "agent_endpoint": "localhost"})
    with pytest.raises(ValueError):
        parse_target({"type": "datadog", "agent_endpoint": "127.0.0.1:99999"})


def test_datadog_ipv6_endpoint_round_trips():
    target = parse_target({"type": "datadog", "agent_endpoint": "[::1]:8126"})
    assert parse_target(target.to_dict()) == target


def test_otlp_defaults():
    target = parse_target({"type": "otlp", "endpoint": "http://localhost:7201"})
    assert target == OtlpTarget(
        endpoint="http://localhost:7201",
        protocol=OtlpProtocol.GRPC,
        timeout=10.0,
        gzip_compression=False,
    )
    assert target.to_dict()["timeout"] == "10s"


def test_otlp_custom_values():
    target = parse_target(
        {
            "type": "otlp",
            "endpoint": "http://localhost:7201",
            "protocol": "http",
            "timeout": "2m",
            "gzip_compression": True,
        }
    )
    assert target.protocol is OtlpProtocol.HTTP
    assert target.timeout == 120.0
    assert target.gzip_compression is True


def test_otlp_requires_endpoint():
    with pytest.raises(ValueError):
        parse_target({"type": "otlp"})


def test_otlp_bad_protocol():
    with pytest.raises(ValueError):
        parse_target({"type": "otlp", "endpoint": "http://x", "protocol": "udp"})


def test_unknown_target_type():
    with pytest.raises(ValueError):
        parse_target({"type": "jaeger"})


def test_full_round_trip():
    data = {
        "service_name": "gateway",
        "targets": [
            {"type": "stdout"},
            {"type": "zipkin", "collector_endpoint": "http://127.0.0.1:9411/api/v2/spans"},
            {
                "type": "otlp",
                "endpoint": "http://localhost:7201",
                "protocol": "http",
                "timeout": "30s",
                "gzip_compression": False,
            },
            {"type": "datadog", "agent_endpoint": "127.0.0.1:8126"},
        ],
    }
    config = TelemetryPluginConfig.from_dict(data)
    assert config.to_dict() == data
    assert TelemetryPluginConfig.from_dict(config.to_dict()) == config