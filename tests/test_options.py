import logging
import os
import sys

import pytest
import yaml

from subscan.options import (
    VERSION,
    Options,
    has_stdin,
    list_sources,
    migrate_to_provider_config,
    parse_options,
    show_banner,
    unmarshal_to_lower_case_map,
)
from subscan.passive import ALL_SOURCES, all_sources
from subscan.resolve import DEFAULT_RESOLVERS


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    package_logger = logging.getLogger("subscan")
    level = package_logger.level
    handlers = list(package_logger.handlers)
    saved_keys = {source.name: list(source.api_keys) for source in ALL_SOURCES}
    yield home
    package_logger.setLevel(level)
    package_logger.handlers[:] = handlers
    for source in ALL_SOURCES:
        source.api_keys = saved_keys[source.name]


def _sources_by_name():
    return {source.name: source for source in all_sources()}


def test_parse_defaults_and_normalized_domain():
    options = parse_options(["-d", "Example.COM", "-silent"])
    assert options.domain == ["example.com"]
    assert options.threads == 10
    assert options.timeout == 30
    assert options.max_enumeration_time == 10
    assert options.resolvers == DEFAULT_RESOLVERS
    assert options.output is sys.stdout


def test_slice_flags_split_and_accumulate():
    options = parse_options(["-d", "example.com", "-s", "crtsh, AlienVault", "-s", "anubis",
                             "-silent"])
    assert options.sources == ["crtsh", "alienvault", "anubis"]


def test_match_patterns_read_from_file(tmp_path):
    patterns = tmp_path / "match.txt"
    patterns.write_text("a.example.com\nB.example.com\n")
    options = parse_options(["-d", "example.com", "-m", str(patterns), "-silent"])
    assert options.match == ["a.example.com", "b.example.com"]
    assert options.match_regexes[1].match("b.example.com")


def test_version_exits_successfully():
    with pytest.raises(SystemExit) as info:
        parse_options(["-version"])
    assert info.value.code == 0


def test_missing_input_exits_with_error():
    with pytest.raises(SystemExit) as info:
        parse_options(["-silent"])
    assert info.value.code == 1


def test_zero_threads_exits_with_error():
    with pytest.raises(SystemExit) as info:
        parse_options(["-d", "example.com", "-t", "0", "-silent"])
    assert info.value.code == 1


def test_unknown_flag_exits_with_error():
    with pytest.raises(SystemExit) as info:
        parse_options(["-no-such-flag"])
    assert info.value.code == 1


def test_config_file_fills_unset_options(tmp_path):
    config = tmp_path / "flags.yaml"
    config.write_text("t: 25\nsources: [crtsh]\n")
    options = parse_options(["-d", "example.com", "-config", str(config), "-silent"])
    assert options.threads == 25
    assert options.sources == ["crtsh"]


def test_command_line_overrides_config_file(tmp_path):
    config = tmp_path / "flags.yaml"
    config.write_text("t: 25\n")
    options = parse_options(["-d", "example.com", "-config", str(config), "-t", "5", "-silent"])
    assert options.threads == 5


def test_missing_config_file_is_fatal(tmp_path):
    with pytest.raises(SystemExit) as info:
        parse_options(["-d", "example.com", "-config", str(tmp_path / "absent.yaml"), "-silent"])
    assert info.value.code == 1


def test_list_sources_exits_and_marks_keyed_sources(capsys):
    with pytest.raises(SystemExit) as info:
        parse_options(["-ls", "-silent"])
    assert info.value.code == 0
    lines = capsys.readouterr().out.splitlines()
    assert "certspotter *" in lines
    assert "alienvault" in lines
    assert len(lines) == len(ALL_SOURCES)


def test_list_sources_function(capsys):
    list_sources(Options(provider_config="providers.yaml"))
    lines = capsys.readouterr().out.splitlines()
    assert "shodan *" in lines
    assert "hackertarget" in lines


def test_old_config_is_migrated_on_start(isolated):
    directory = isolated / ".config" / "subfinder"
    directory.mkdir(parents=True)
    (directory / "config.yaml").write_text("Shodan: [token]\n")
    options = parse_options(["-d", "example.com", "-silent"])
    assert options.domain == ["example.com"]
    assert not (directory / "config.yaml").exists()
    provider = yaml.safe_load((directory / "provider-config.yaml").read_text())
    assert provider["shodan"] == ["token"]
    assert _sources_by_name()["shodan"].api_keys == ["token"]


def test_migrate_to_provider_config(tmp_path):
    old = tmp_path / "config.yaml"
    old.write_text("Shodan: [placeholder]\nresolvers: [1.1.1.1]\n")
    new = tmp_path / "provider.yaml"
    migrate_to_provider_config(old, new)
    provider = yaml.safe_load(new.read_text())
    assert provider["shodan"] == ["placeholder"]
    assert provider["certspotter"] == []
    assert set(provider) == {source.name for source in ALL_SOURCES if source.needs_key}


def test_unmarshal_to_lower_case_map_keeps_original_keys(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("Shodan: [token]\n")
    configs = unmarshal_to_lower_case_map(path)
    assert configs == {"Shodan": ["token"], "shodan": ["token"]}


def test_unmarshal_to_lower_case_map_empty_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert unmarshal_to_lower_case_map(path) == {}


def test_unmarshal_to_lower_case_map_rejects_non_list(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("threads: 10\n")
    with pytest.raises(ValueError):
        unmarshal_to_lower_case_map(path)


def test_has_stdin_with_pipe(monkeypatch):
    read_fd, write_fd = os.pipe()
    with os.fdopen(read_fd) as reader:
        monkeypatch.setattr(sys, "stdin", reader)
        assert has_stdin() is True
    os.close(write_fd)


def test_has_stdin_without_file_descriptor(monkeypatch):
    monkeypatch.setattr(sys, "stdin", object())
    assert has_stdin() is False


def test_pre_process_options_sanitizes_domains():
    options = Options(domain=[' "example.com" ', "   "])
    options.pre_process_options()
    assert options.domain == ["example.com", ""]


def test_load_providers_from_missing_file_sets_default_resolvers(tmp_path):
    options = Options()
    options.load_providers_from(tmp_path / "absent.yaml")
    assert options.resolvers == DEFAULT_RESOLVERS


def test_load_providers_from_keeps_given_resolvers(tmp_path):
    options = Options(resolvers=["9.9.9.9"])
    options.load_providers_from(tmp_path / "absent.yaml")
    assert options.resolvers == ["9.9.9.9"]


def test_load_providers_from_applies_keys(tmp_path):
    path = tmp_path / "provider.yaml"
    path.write_text("securitytrails: [token]\n")
    options = Options()
    options.load_providers_from(path)
    assert options.resolvers == DEFAULT_RESOLVERS
    assert _sources_by_name()["securitytrails"].api_keys == ["token"]


def test_load_providers_from_malformed_file_is_fatal(tmp_path):
    path = tmp_path / "provider.yaml"
    path.write_text("shodan: [unclosed\n")
    with pytest.raises(SystemExit) as info:
        Options().load_providers_from(path)
    assert info.value.code == 1


@pytest.mark.parametrize(
    "verbose, expected",
    [
        (False, logging.INFO),
        (True, logging.DEBUG),
    ],
)
def test_configure_output_levels(verbose, expected):
    options = Options(verbose=verbose)
    options.configure_output()
    assert (options.verbose, logging.getLogger("subscan").level) == (verbose, expected)


def test_configure_output_silent_hides_critical():
    options = Options(silent=True)
    options.configure_output()
    enabled = logging.getLogger("subscan").isEnabledFor(logging.CRITICAL)
    assert (options.silent, enabled) == (True, False)


def test_configure_output_installs_one_handler():
    first = Options()
    first.configure_output()
    second = Options(no_color=True)
    second.configure_output()
    handlers = logging.getLogger("subscan").handlers
    assert (second.no_color, len(handlers)) == (True, 1)


def test_show_banner_mentions_version(capsys):
    show_banner()
    err = capsys.readouterr().err
    assert VERSION in err
    assert "Use with caution. You are responsible for your actions" in err