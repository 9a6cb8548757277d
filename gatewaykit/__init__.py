"""Request-processing plugins and configuration models for a GraphQL gateway."""

__version__ = "0.1.0"