import pytest

from gatewaykit.core import (
    APPLICATION_GRAPHQL_JSON,
    APPLICATION_JSON,
    HttpRequest,
    HttpResponse,
    RequestExecutionContext,
)
from gatewaykit.match_content_type import MatchContentTypePlugin


def _run(request_headers, response_headers=None):
    ctx = RequestExecutionContext(HttpRequest(headers=request_headers))
    response = HttpResponse(headers=response_headers or {})
    MatchContentTypePlugin().on_downstream_http_response(ctx, response)
    return response


@pytest.mark.parametrize(
    "headers",
    [{}, {"Accept": APPLICATION_JSON}, {"Accept": "*/*"}],
)
def test_json_content_type(headers):
    assert _run(headers).headers["content-type"] == APPLICATION_JSON


def test_graphql_response_content_type():
    response = _run({"Accept": APPLICATION_GRAPHQL_JSON})
    assert response.headers["content-type"] == APPLICATION_GRAPHQL_JSON


def test_unknown_accept_leaves_header_unset():
    assert "content-type" not in _run({"Accept": "text/html"}).headers


def test_existing_content_type_is_kept():
    response = _run({"Accept": APPLICATION_JSON}, {"Content-Type": "text/plain"})
    assert response.headers == {"content-type": "text/plain"}


def test_existing_header_added_after_creation_is_kept():
    ctx = RequestExecutionContext(HttpRequest(headers={"Accept": APPLICATION_JSON}))
    response = HttpResponse()
    response.headers["Content-Type"] = "text/plain"
    MatchContentTypePlugin().on_downstream_http_response(ctx, response)
    assert response.headers == {"Content-Type": "text/plain"}