"""Plugin exposing the GraphQL endpoint over HTTP GET query parameters."""

from __future__ import annotations

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Mapping, Optional
from urllib.parse import unquote

from gatewaykit.core import (
    APPLICATION_GRAPHQL_JSON,
    APPLICATION_JSON,
    APPLICATION_WWW_FORM_URLENCODED,
    ExtractGraphQLOperationError,
    ExtractionErrorKind,
    GraphQLParseError,
    GraphQLRequest,
    GraphQLResponse,
    HttpRequest,
    ParsedGraphQLRequest,
    Plugin,
    RequestExecutionContext,
    extract_accept,
    extract_content_type,
    parse_json_object,
    parse_query_string,
)


@dataclass
class HttpGetPluginConfig:
    """Configuration of the GET plugin; mutations over GET are refused unless enabled."""

    mutations: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HttpGetPluginConfig":
        if not isinstance(data, Mapping):
            raise ValueError("http_get plugin configuration must be an object")
        mutations = data.get("mutations", False)
        if mutations is not None and not isinstance(mutations, bool):
            raise ValueError("'mutations' must be a boolean")
        return cls(mutations=mutations)

    def to_dict(self) -> dict[str, Any]:
        return {} if self.mutations is None else {"mutations": self.mutations}


def _optional_json_object(
    params: Mapping[str, str], name: str, kind: ExtractionErrorKind
) -> Optional[dict[str, Any]]:
    raw = params.get(name)
    if raw is None:
        return None
    try:
        return parse_json_object(raw)
    except ValueError as exc:
        raise ExtractGraphQLOperationError(kind, str(exc)) from exc


def extract_graphql_from_get_request(request: HttpRequest) -> GraphQLRequest:
    """Read a GraphQL request from the query string of a GET request.

    Raises ExtractGraphQLOperationError when nothing usable is found.
    """
    content_type = extract_content_type(request.headers)
    accept = extract_accept(request.headers)

    if content_type == APPLICATION_WWW_FORM_URLENCODED or accept in (
        APPLICATION_JSON,
        APPLICATION_GRAPHQL_JSON,
    ):
        params = parse_query_string(request.query_string)
        operation = params.get("query")
        if operation is None:
            raise ExtractGraphQLOperationError(ExtractionErrorKind.MISSING_QUERY_PARAMETER)
        variables = _optional_json_object(
            params, "variables", ExtractionErrorKind.INVALID_VARIABLES_JSON_FORMAT
        )
        extensions = _optional_json_object(
            params, "extensions", ExtractionErrorKind.INVALID_EXTENSIONS_JSON_FORMAT
        )
        try:
            query = unquote(operation, errors="strict")
        except UnicodeDecodeError as exc:
            raise ExtractGraphQLOperationError(
                ExtractionErrorKind.INVALID_QUERY_PARAMETER_ENCODING
            ) from exc
        return GraphQLRequest(
            operation=query,
            operation_name=params.get("operationName"),
            variables=variables,
            extensions=extensions,
        )

    if content_type is None:
        raise ExtractGraphQLOperationError(ExtractionErrorKind.EMPTY_EXTRACTION)
    raise ExtractGraphQLOperationError(ExtractionErrorKind.INVALID_CONTENT_TYPE_HEADER)


@dataclass
class HttpGetPlugin(Plugin):
    """Executes GraphQL operations sent over HTTP GET."""

    config: HttpGetPluginConfig = field(default_factory=HttpGetPluginConfig)

    def on_downstream_http_request(self, ctx: RequestExecutionContext) -> None:
        request = ctx.downstream_http_request
        if request.method != "GET":
            return
        accept = extract_accept(request.headers)
        try:
            gql_request = extract_graphql_from_get_request(request)
        except ExtractGraphQLOperationError as error:
            # An empty extraction is left for other plugins to handle.
            if error.kind is not ExtractionErrorKind.EMPTY_EXTRACTION:
                ctx.short_circuit(error.into_response(accept))
            return
        try:
            ctx.downstream_graphql_request = ParsedGraphQLRequest.create_and_parse(gql_request)
        except GraphQLParseError as exc:
            error = ExtractGraphQLOperationError(
                ExtractionErrorKind.GRAPHQL_PARSER_ERROR, str(exc)
            )
            ctx.short_circuit(error.into_response(accept))

    def on_downstream_graphql_request(self, ctx: RequestExecutionContext) -> None:
        if ctx.downstream_http_request.method != "GET" or self.config.mutations:
            return
        gql_request = ctx.downstream_graphql_request
        if gql_request is not None and gql_request.is_running_mutation():
            ctx.short_circuit(
                GraphQLResponse.new_error("mutations are not allowed over GET").into_response(
                    HTTPStatus.METHOD_NOT_ALLOWED
                )
            )