import json

import pytest

from gatewaykit.trusted_documents.config import TrustedDocumentsFileFormat
from gatewaykit.trusted_documents.store import FilesystemStore, StoreFormatError

APOLLO = TrustedDocumentsFileFormat.APOLLO_PERSISTED_QUERY_MANIFEST
KEY_VALUE = TrustedDocumentsFileFormat.JSON_KEY_VALUE


def test_apollo_manifest_empty_operations():
    store = FilesystemStore.from_file_contents(
        json.dumps({"format": "apollo", "version": 1, "operations": []}), APOLLO
    )
    assert len(store) == 0


def test_apollo_manifest_mapping():
    store = FilesystemStore.from_file_contents(
        json.dumps(
            {
                "format": "apollo",
                "version": 1,
                "operations": [
                    {
                        "id": "key1",
                        "body": "query test { __typename }",
                        "name": "test",
                        "type": "query",
                    }
                ],
            }
        ),
        APOLLO,
    )
    assert len(store) == 1
    assert store.has_document("key1") is True
    assert store.get_document("key1") == "query test { __typename }"


@pytest.mark.parametrize("contents", ["{", json.dumps({})])
def test_apollo_manifest_invalid(contents):
    with pytest.raises(StoreFormatError):
        FilesystemStore.from_file_contents(contents, APOLLO)


def test_json_key_value_empty():
    store = FilesystemStore.from_file_contents(json.dumps({}), KEY_VALUE)
    assert len(store) == 0


def test_json_key_value_mapping():
    store = FilesystemStore.from_file_contents(
        json.dumps({"key1": "query { __typename }"}), KEY_VALUE
    )
    assert len(store) == 1
    assert store.get_document("key1") == "query { __typename }"
    assert store.has_document("key2") is False
    assert store.get_document("key2") is None


@pytest.mark.parametrize("contents", [json.dumps([]), "{", json.dumps({"key1": 1})])
def test_json_key_value_invalid(contents):
    with pytest.raises(StoreFormatError):
        FilesystemStore.from_file_contents(contents, KEY_VALUE)


def test_store_format_error_is_value_error():
    with pytest.raises(ValueError):
        FilesystemStore.from_file_contents("[", KEY_VALUE)


def test_apollo_manifest_later_duplicate_wins():
    operations = [
        {"id": "key1", "body": "query a { __typename }", "name": "a", "type": "query"},
        {"id": "key1", "body": "query b { __typename }", "name": "b", "type": "query"},
    ]
    store = FilesystemStore.from_file_contents(
        json.dumps({"format": "apollo", "version": 1, "operations": operations}), APOLLO
    )
    assert len(store) == 1
    assert store.get_document("key1") == operations[1]["body"]