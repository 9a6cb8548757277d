import pytest

from gatewaykit.core import LocalFileReference
from gatewaykit.vrl.config import (
    FileVrlSource,
    InlineVrlSource,
    VrlPluginConfig,
    parse_vrl_reference,
)


def test_inline_reference_contents():
    ref = parse_vrl_reference({"from": "inline", "content": "x = 1"})
    assert ref == InlineVrlSource(content="x = 1")
    assert ref.contents == "x = 1"


def test_file_reference_reads_file(tmp_path):
    script = tmp_path / "hook.vrl"
    script.write_text(".a = 1", encoding="utf-8")
    ref = parse_vrl_reference({"from": "file", "path": str(script)})
    assert isinstance(ref, FileVrlSource)
    assert ref.contents == ".a = 1"
    assert ref.file.path == str(script)


def test_file_reference_missing_file_raises(tmp_path):
    with pytest.raises(ValueError):
        parse_vrl_reference({"from": "file", "path": str(tmp_path / "missing.vrl")})


def test_file_reference_missing_path_raises():
    with pytest.raises(ValueError):
        parse_vrl_reference({"from": "file"})


def test_unknown_source_raises():
    with pytest.raises(ValueError):
        parse_vrl_reference({"from": "remote", "content": "x"})


def test_inline_without_content_raises():
    with pytest.raises(ValueError):
        parse_vrl_reference({"from": "inline"})


def test_non_mapping_reference_raises():
    with pytest.raises(ValueError):
        parse_vrl_reference("x = 1")


def test_empty_config_has_no_hooks():
    config = VrlPluginConfig.from_dict({})
    assert config == VrlPluginConfig()
    assert config.to_dict() == {}


def test_config_round_trip_inline():
    data = {
        "on_downstream_http_request": {"from": "inline", "content": "a = 1"},
        "on_downstream_http_response": {"from": "inline", "content": "b = 2"},
    }
    config = VrlPluginConfig.from_dict(data)
    assert config.on_downstream_graphql_request is None
    assert config.on_upstream_http_request is None
    assert config.to_dict() == data
    assert VrlPluginConfig.from_dict(config.to_dict()) == config


def test_file_source_to_dict_keeps_path():
    source = FileVrlSource(LocalFileReference(path="my_plugin.vrl", contents=""))
    config = VrlPluginConfig(on_upstream_http_request=source)
    assert config.to_dict() == {
        "on_upstream_http_request": {"from": "file", "path": "my_plugin.vrl"}
    }


def test_config_must_be_mapping():
    with pytest.raises(ValueError):
        VrlPluginConfig.from_dict(["not", "a", "mapping"])


def test_examples_titles_and_plugin():
    examples = VrlPluginConfig.examples()
    assert [e["title"] for e in examples] == [
        "Inline",
        "File",
        "Headers Passthrough",
        "Shared State",
        "Short Circuit",
        "Custom GraphQL Extraction",
    ]
    assert all(e["plugin"] == "vrl" for e in examples)


def test_examples_round_trip_inline_configs():
    for example in VrlPluginConfig.examples():
        config = example["config"]
        if isinstance(config.on_upstream_http_request, FileVrlSource):
            continue
        assert VrlPluginConfig.from_dict(config.to_dict()) == config


def test_short_circuit_example_program():
    example = next(e for e in VrlPluginConfig.examples() if e["title"] == "Short Circuit")
    program = example["config"].on_downstream_http_request.contents
    assert 'short_circuit!(403, "Missing authorization header")' in program