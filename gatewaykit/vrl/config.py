"""Configuration of the VRL scripting plugin."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from gatewaykit.core import LocalFileReference

PLUGIN_NAME = "vrl"

HOOKS = (
    "on_downstream_http_request",
    "on_downstream_graphql_request",
    "on_upstream_http_request",
    "on_downstream_http_response",
)


def _expect_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object")
    return data


def _load_file_reference(value: Any) -> LocalFileReference:
    if isinstance(value, LocalFileReference):
        return value
    if isinstance(value, Mapping):
        path = value.get("path")
        if not isinstance(path, str):
            raise ValueError("file reference: field 'path' must be a string")
        contents = value.get("contents", "")
        if not isinstance(contents, str):
            raise ValueError("file reference: field 'contents' must be a string")
        return LocalFileReference(path=path, contents=contents)
    if isinstance(value, str):
        try:
            contents = Path(value).read_text(encoding="utf-8")
        except OSError as exc:
            raise ValueError(f"failed to read file {value!r}: {exc}") from exc
        return LocalFileReference(path=value, contents=contents)
    raise ValueError("vrl file source: field 'path' must be a string")


@dataclass(frozen=True)
class InlineVrlSource:
    """A VRL program written directly in the configuration."""

    FROM = "inline"

    content: str

    @property
    def contents(self) -> str:
        return self.content

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.FROM, "content": self.content}


@dataclass(frozen=True)
class FileVrlSource:
    """A VRL program loaded from a local file."""

    FROM = "file"

    file: LocalFileReference

    @property
    def contents(self) -> str:
        return self.file.contents

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.FROM, "path": self.file.path}


VrlReference = Union[InlineVrlSource, FileVrlSource]


def parse_vrl_reference(data: Any) -> VrlReference:
    """Build a VRL program reference from its `from`-tagged object."""
    what = "vrl program reference"
    data = _expect_mapping(data, what)
    kind = data.get("from")
    if kind == InlineVrlSource.FROM:
        content = data.get("content")
        if not isinstance(content, str):
            raise ValueError(f"{what}: field 'content' must be a string")
        return InlineVrlSource(content=content)
    if kind == FileVrlSource.FROM:
        if "path" not in data:
            raise ValueError(f"{what}: missing field 'path'")
        return FileVrlSource(file=_load_file_reference(data["path"]))
    raise ValueError(f"unknown vrl program source: {kind!r}")


@dataclass(frozen=True)
class VrlPluginConfig:
    """VRL programs attached to the gateway's request and response hooks."""

    on_downstream_http_request: Optional[VrlReference] = None
    on_downstream_graphql_request: Optional[VrlReference] = None
    on_upstream_http_request: Optional[VrlReference] = None
    on_downstream_http_response: Optional[VrlReference] = None

    @classmethod
    def from_dict(cls, data: Any) -> "VrlPluginConfig":
        """Build the configuration from decoded data; raises ValueError when it is invalid."""
        data = _expect_mapping(data, "vrl plugin configuration")
        hooks = {
            hook: parse_vrl_reference(data[hook])
            for hook in HOOKS
            if data.get(hook) is not None
        }
        return cls(**hooks)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for hook in HOOKS:
            reference = getattr(self, hook)
            if reference is not None:
                result[hook] = reference.to_dict()
        return result

    @classmethod
    def examples(cls) -> list[dict[str, Any]]:
        """Documented example configurations, each with a title and description."""

        def example(title: str, description: str, config: "VrlPluginConfig") -> dict[str, Any]:
            return {
                "title": title,
                "description": description,
                "plugin": PLUGIN_NAME,
                "config": config,
            }

        return [
            example(
                "Inline",
                "Load and execute VRL plugins using inline configuration.",
                cls(
                    on_upstream_http_request=InlineVrlSource(
                        '.upstream_http_req.headers."x-authorization" = "some-value"\n'
                        "                "
                    )
                ),
            ),
            example(
                "File",
                "Load and execute VRL plugins using an external '.vrl' file.",
                cls(
                    on_upstream_http_request=FileVrlSource(
                        LocalFileReference(path="my_plugin.vrl", contents="")
                    )
                ),
            ),
            example(
                "Headers Passthrough",
                "This example is using the shared-state feature to store the headers from "
                "the incoming HTTP request, and it pass it through to upstream calls.",
                cls(
                    on_downstream_http_request=InlineVrlSource(
                        "incoming_headers = %downstream_http_req.headers\n                "
                    ),
                    on_upstream_http_request=InlineVrlSource(
                        ".upstream_http_req.headers = incoming_headers\n                "
                    ),
                ),
            ),
            example(
                "Shared State",
                "The following example is configuring a variable, and use it later",
                cls(
                    on_downstream_http_request=InlineVrlSource(
                        "authorization_header = %downstream_http_req.headers.authorization\n"
                        "                "
                    ),
                    on_upstream_http_request=InlineVrlSource(
                        '.upstream_http_req.headers."x-auth" = authorization_header\n'
                        "                "
                    ),
                ),
            ),
            example(
                "Short Circuit",
                'The following example rejects all incoming requests that doesn\'t have the '
                '"authorization" header set.',
                cls(
                    on_downstream_http_request=InlineVrlSource(
                        "if %downstream_http_req.headers.authorization == null {\n"
                        'short_circuit!(403, "Missing authorization header")\n'
                        "}\n                "
                    )
                ),
            ),
            example(
                "Custom GraphQL Extraction",
                "The following example is using a custom GraphQL extraction, overriding the "
                "default gateway behavior. In this example, we parse the incoming body as "
                "JSON and use the parsed value to find the GraphQL operation. Assuming the "
                'body structure is: `{ "runThisQuery": "query { __typename }", '
                '"variables": {  }`.',
                cls(
                    on_downstream_http_request=InlineVrlSource(
                        "parsed_body = parse_json!(%downstream_http_req.body)\n"
                        ".graphql.operation = parsed_body.runThisQuery\n"
                        ".graphql.variables = parsed_body.variables\n"
                        "                "
                    )
                ),
            ),
        ]