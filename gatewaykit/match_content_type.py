"""Plugin that sets the response Content-Type from the request's Accept header."""

from __future__ import annotations

from gatewaykit.core import (
    APPLICATION_GRAPHQL_JSON,
    APPLICATION_JSON,
    CONTENT_TYPE,
    HttpResponse,
    Plugin,
    RequestExecutionContext,
    extract_accept,
)


class MatchContentTypePlugin(Plugin):
    """Fills in a missing Content-Type on downstream responses."""

    def on_downstream_http_response(
        self, ctx: RequestExecutionContext, response: HttpResponse
    ) -> None:
        if any(name.lower() == CONTENT_TYPE for name in response.headers):
            return
        accept = extract_accept(ctx.downstream_http_request.headers) or APPLICATION_JSON
        if accept in (APPLICATION_JSON, "*/*"):
            response.headers[CONTENT_TYPE] = APPLICATION_JSON
        elif accept == APPLICATION_GRAPHQL_JSON:
            response.headers[CONTENT_TYPE] = APPLICATION_GRAPHQL_JSON