import os

import pytest
import yaml

from subscan.config import create_provider_config_yaml, get_config_directory, unmarshal_from
from subscan.passive import NAME_SOURCE_MAP, all_sources


@pytest.fixture(autouse=True)
def restore_keys():
    saved = {source.name: list(source.api_keys) for source in all_sources()}
    yield
    for source in all_sources():
        source.api_keys = saved[source.name]


def _sources_by_name():
    return {source.name: source for source in all_sources()}


def test_config_get_directory(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))

    directory = get_config_directory()

    home = os.path.expanduser("~")
    assert directory == home + "/.config/subfinder"
    assert os.path.isdir(directory)


def test_create_provider_config_round_trip(tmp_path):
    path = tmp_path / "provider-config.yaml"
    create_provider_config_yaml(path, {"shodan": ["token"], "fofa": []})

    with open(path, encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)

    assert loaded == {"shodan": ["token"], "fofa": []}


def test_unmarshal_from_applies_keys_to_keyed_sources(tmp_path):
    path = tmp_path / "provider-config.yaml"
    create_provider_config_yaml(
        path, {"shodan": ["token"], "securitytrails": ["token"], "alienvault": ["token"]}
    )

    unmarshal_from(path)

    sources = _sources_by_name()
    assert sources["shodan"].api_keys == ["token"]
    assert sources["securitytrails"].api_keys == ["token"]
    assert sources["alienvault"].api_keys == []


def test_unmarshal_from_ignores_empty_key_lists(tmp_path):
    NAME_SOURCE_MAP["c99"].api_keys = []
    path = tmp_path / "provider-config.yaml"
    create_provider_config_yaml(path, {"c99": []})

    unmarshal_from(path)

    assert _sources_by_name()["c99"].api_keys == []


def test_unmarshal_from_accepts_empty_file(tmp_path):
    NAME_SOURCE_MAP["shodan"].api_keys = []
    path = tmp_path / "provider-config.yaml"
    path.write_text("", encoding="utf-8")

    unmarshal_from(path)

    assert _sources_by_name()["shodan"].api_keys == []


def test_unmarshal_from_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        unmarshal_from(tmp_path / "absent.yaml")


def test_unmarshal_from_malformed_yaml(tmp_path):
    path = tmp_path / "provider-config.yaml"
    path.write_text("shodan: [unclosed\n", encoding="utf-8")

    with pytest.raises(yaml.YAMLError):
        unmarshal_from(path)


def test_unmarshal_from_rejects_non_mapping(tmp_path):
    path = tmp_path / "provider-config.yaml"
    path.write_text("- token\n", encoding="utf-8")

    with pytest.raises(ValueError):
        unmarshal_from(path)