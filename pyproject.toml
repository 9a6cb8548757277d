[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gatewaykit"
version = "0.1.0"
description = "Request-processing plugins and configuration models for a GraphQL gateway: GET extraction, content-type matching, trusted documents, JWT auth config, telemetry and script hooks."
requires-python = ">=3.10"
keywords = ["graphql", "gateway", "plugins", "trusted-documents", "persisted-queries", "jwks", "telemetry", "datadog"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "msgpack",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["gatewaykit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
