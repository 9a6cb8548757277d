"""Telemetry configuration, with console and Datadog span reporters."""