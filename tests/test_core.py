import json
from http import HTTPStatus
from urllib.parse import urlencode

import pytest

from gatewaykit.core import (
    APPLICATION_GRAPHQL_JSON,
    APPLICATION_JSON,
    ExtractGraphQLOperationError,
    ExtractionErrorKind,
    GraphQLParseError,
    GraphQLRequest,
    GraphQLResponse,
    HttpRequest,
    HttpResponse,
    ParsedGraphQLRequest,
    Plugin,
    RequestExecutionContext,
    extract_accept,
    extract_content_type,
    format_duration,
    parse_duration,
    parse_json_object,
    parse_query_string,
)


def _parse(document, operation_name=None):
    return ParsedGraphQLRequest.create_and_parse(
        GraphQLRequest(operation=document, operation_name=operation_name)
    )


def test_header_lookup_is_case_insensitive():
    request = HttpRequest(headers={"Content-Type": APPLICATION_JSON})
    assert request.header("content-type") == APPLICATION_JSON
    assert request.header("CONTENT-TYPE") == APPLICATION_JSON
    assert request.header("accept") is None


def test_json_body_round_trip():
    payload = {"documentId": "abc", "variables": {"code": "AF"}}
    request = HttpRequest(method="post", body=json.dumps(payload).encode())
    assert request.json_body() == payload
    assert request.method == "POST"


def test_json_body_invalid_raises():
    with pytest.raises(ValueError):
        HttpRequest(body=b"{").json_body()


def test_parse_query_string_round_trip():
    params = {"query": "query { __typename }", "variables": '{"a": 1}', "operationName": "Q"}
    assert parse_query_string(urlencode(params)) == params


def test_parse_query_string_last_value_wins_and_blank_kept():
    assert parse_query_string("a=1&a=2&b=") == {"a": "2", "b": ""}


def test_extract_content_type_strips_parameters():
    headers = {"Content-Type": "Application/JSON; charset=utf-8"}
    assert extract_content_type(headers) == APPLICATION_JSON
    assert extract_content_type({}) is None


def test_extract_accept_takes_first_media_type():
    headers = {"accept": f"{APPLICATION_GRAPHQL_JSON}, {APPLICATION_JSON}"}
    assert extract_accept(headers) == APPLICATION_GRAPHQL_JSON
    assert extract_accept({"accept": "garbage"}) is None


def test_parse_json_object():
    assert parse_json_object('{"code": "AF"}') == {"code": "AF"}
    with pytest.raises(ValueError):
        parse_json_object("[]")
    with pytest.raises(ValueError):
        parse_json_object("{")


def test_parse_duration_ten_minutes():
    assert parse_duration("10m") == 10 * 60
    assert format_duration(10 * 60) == "10m"


@pytest.mark.parametrize("seconds", [1, 59, 600, 3661, 90061, 1.5, 0.25])
def test_duration_round_trip(seconds):
    assert parse_duration(format_duration(seconds)) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "10", "10 parsecs", "m10", "5s x"])
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_format_duration_rejects_negative():
    with pytest.raises(ValueError):
        format_duration(-1)


def test_query_is_not_mutation():
    assert _parse("query { __typename }").is_running_mutation() is False
    assert _parse("{ __typename }").is_running_mutation() is False


def test_mutation_is_detected():
    assert _parse("mutation Add($a: Int!) @x { add(a: $a) { id } }").is_running_mutation() is True


def test_operation_name_selects_operation():
    document = "query A { a } mutation B { b } fragment F on T { f }"
    assert len(_parse(document).operations) == 2
    assert _parse(document, "B").is_running_mutation() is True
    assert _parse(document, "A").is_running_mutation() is False
    assert _parse(document).is_running_mutation() is False


def test_strings_and_comments_do_not_confuse_parser():
    document = 'mutation { a(s: "}", t: """ ) """) } # }'
    assert _parse(document).is_running_mutation() is True


@pytest.mark.parametrize(
    "document",
    ["", "query {", "{}", "foo { a }", "query { a ] }", "fragment F on T { a }", "query { a(b: ?) }"],
)
def test_invalid_documents_raise(document):
    with pytest.raises(GraphQLParseError):
        _parse(document)


def test_graphql_error_response():
    response = GraphQLResponse.new_error("boom").into_response(HTTPStatus.NOT_FOUND)
    assert response.status == HTTPStatus.NOT_FOUND
    assert json.loads(response.body) == {"errors": [{"message": "boom"}]}


def test_extraction_error_status_depends_on_accept():
    error = ExtractGraphQLOperationError(ExtractionErrorKind.MISSING_QUERY_PARAMETER)
    assert error.into_response(APPLICATION_JSON).status == HTTPStatus.OK
    assert error.into_response(APPLICATION_GRAPHQL_JSON).status == HTTPStatus.BAD_REQUEST
    assert error.into_response(None).status == HTTPStatus.BAD_REQUEST
    body = json.loads(error.into_response(None).body)
    assert body["errors"][0]["message"] == str(error)


def test_short_circuit_stores_response():
    ctx = RequestExecutionContext(HttpRequest())
    response = HttpResponse(status=HTTPStatus.NOT_FOUND)
    ctx.short_circuit(response)
    assert ctx.short_circuit_response is response


def test_base_plugin_leaves_context_untouched():
    ctx = RequestExecutionContext(HttpRequest())
    plugin = Plugin()
    plugin.on_downstream_http_request(ctx)
    plugin.on_downstream_graphql_request(ctx)
    response = HttpResponse()
    plugin.on_downstream_http_response(ctx, response)
    assert ctx.short_circuit_response is None
    assert ctx.downstream_graphql_request is None
    assert response.headers == {}