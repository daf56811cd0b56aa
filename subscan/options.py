"""Command-line options, configuration files and the start-up banner."""

from __future__ import annotations

import argparse
import logging
import os
import stat
import sys
from dataclasses import dataclass, field
from typing import Any, Iterable, TextIO

import yaml

from subscan.config import create_provider_config_yaml, unmarshal_from
from subscan.passive import ALL_SOURCES
from subscan.resolve import DEFAULT_RESOLVERS
from subscan.util import EmptyInputError, sanitize
from subscan.validate import OptionsError, validate_options

logger = logging.getLogger(__name__)

VERSION = "v2.5.4"

BANNER = rf"""
           _
 ___ _   _| |__  ___  ___ __ _ _ __
/ __| | | | '_ \/ __|/ __/ _` | '_ \
\__ \ |_| | |_) \__ \ (_| (_| | | | |
|___/\__,_|_.__/|___/\___\__,_|_| |_| {VERSION}
"""

DESCRIPTION = (
    "Subscan is a subdomain discovery tool that discovers subdomains for websites "
    "by using passive online sources."
)

_SLICE = "slice"
_FILE_SLICE = "file_slice"
_STR = "str"
_BOOL = "bool"
_INT = "int"

_LEVEL_LABELS = {
    logging.DEBUG: ("DBG", "\x1b[35m"),
    logging.INFO: ("INF", "\x1b[34m"),
    logging.WARNING: ("WRN", "\x1b[33m"),
    logging.ERROR: ("ERR", "\x1b[31m"),
    logging.CRITICAL: ("FTL", "\x1b[1;31m"),
}


@dataclass(frozen=True)
class _Flag:
    name: str
    short: str | None
    attr: str
    kind: str
    default: Any
    help: str
    group: str


_GROUPS = (
    ("input", "Input"),
    ("source", "Source"),
    ("filter", "Filter"),
    ("rate-limit", "Rate-limit"),
    ("output", "Output"),
    ("configuration", "Configuration"),
    ("debug", "Debug"),
    ("optimization", "Optimization"),
)

_FLAGS = (
    _Flag("domain", "d", "domain", _SLICE, (), "domains to find subdomains for", "input"),
    _Flag("list", "dL", "domains_file", _STR, "",
          "file containing list of domains for subdomain discovery", "input"),
    _Flag("sources", "s", "sources", _SLICE, (),
          "specific sources to use for discovery (-s crtsh,github). "
          "Use -ls to display all available sources.", "source"),
    _Flag("recursive", None, "only_recursive", _BOOL, False,
          "use only sources that can handle subdomains recursively "
          "(e.g. subdomain.domain.tld vs domain.tld)", "source"),
    _Flag("all", None, "all", _BOOL, False, "use all sources for enumeration (slow)", "source"),
    _Flag("exclude-sources", "es", "exclude_sources", _SLICE, (),
          "sources to exclude from enumeration (-es alienvault,crtsh)", "source"),
    _Flag("match", "m", "match", _FILE_SLICE, (),
          "subdomain or list of subdomain to match (file or comma separated)", "filter"),
    _Flag("filter", "f", "filter", _FILE_SLICE, (),
          "subdomain or list of subdomain to filter (file or comma separated)", "filter"),
    _Flag("rate-limit", "rl", "rate_limit", _INT, 0,
          "maximum number of http requests to send per second", "rate-limit"),
    _Flag("t", None, "threads", _INT, 10,
          "number of concurrent threads for resolving (-active only)", "rate-limit"),
    _Flag("output", "o", "output_file", _STR, "", "file to write output to", "output"),
    _Flag("json", "oJ", "json", _BOOL, False, "write output in JSONL(ines) format", "output"),
    _Flag("output-dir", "oD", "output_directory", _STR, "",
          "directory to write output (-dL only)", "output"),
    _Flag("collect-sources", "cs", "capture_sources", _BOOL, False,
          "include all sources in the output (-json only)", "output"),
    _Flag("ip", "oI", "host_ip", _BOOL, False,
          "include host IP in output (-active only)", "output"),
    _Flag("config", None, "config", _STR, None, "flag config file", "configuration"),
    _Flag("provider-config", "pc", "provider_config", _STR, None,
          "provider config file", "configuration"),
    _Flag("r", None, "resolvers", _SLICE, (),
          "comma separated list of resolvers to use", "configuration"),
    _Flag("rlist", "rL", "resolver_list", _STR, "",
          "file containing list of resolvers to use", "configuration"),
    _Flag("active", "nW", "remove_wildcard", _BOOL, False,
          "display active subdomains only", "configuration"),
    _Flag("proxy", None, "proxy", _STR, "", "http proxy to use", "configuration"),
    _Flag("exclude-ip", "ei", "exclude_ips", _BOOL, False,
          "exclude IPs from the list of domains", "configuration"),
    _Flag("silent", None, "silent", _BOOL, False, "show only subdomains in output", "debug"),
    _Flag("version", None, "version", _BOOL, False, "show version", "debug"),
    _Flag("v", None, "verbose", _BOOL, False, "show verbose output", "debug"),
    _Flag("no-color", "nc", "no_color", _BOOL, False, "disable color in output", "debug"),
    _Flag("list-sources", "ls", "list_sources", _BOOL, False,
          "list all available sources", "debug"),
    _Flag("timeout", None, "timeout", _INT, 30, "seconds to wait before timing out",
          "optimization"),
    _Flag("max-time", None, "max_enumeration_time", _INT, 10,
          "minutes to wait for enumeration results", "optimization"),
)

_FLAGS_BY_NAME = {flag.name: flag for flag in _FLAGS}


@dataclass
class Options:
    """Settings that tune the subdomain enumeration."""

    verbose: bool = False
    no_color: bool = False
    json: bool = False
    host_ip: bool = False
    silent: bool = False
    list_sources: bool = False
    remove_wildcard: bool = False
    capture_sources: bool = False
    stdin: bool = False
    version: bool = False
    only_recursive: bool = False
    all: bool = False
    threads: int = 10
    timeout: int = 30
    max_enumeration_time: int = 10
    domain: list[str] = field(default_factory=list)
    domains_file: str = ""
    output: TextIO = field(default_factory=lambda: sys.stdout)
    output_file: str = ""
    output_directory: str = ""
    sources: list[str] = field(default_factory=list)
    exclude_sources: list[str] = field(default_factory=list)
    resolvers: list[str] = field(default_factory=list)
    resolver_list: str = ""
    config: str = ""
    provider_config: str = ""
    proxy: str = ""
    rate_limit: int = 0
    exclude_ips: bool = False
    match: list[str] = field(default_factory=list)
    filter: list[str] = field(default_factory=list)
    match_regexes: list | None = None
    filter_regexes: list | None = None

    def load_providers_from(self, location) -> None:
        """Hand the API keys of a provider config file to the sources.

        A missing file is not an error; an unreadable one ends the program.
        """
        if not self.resolvers:
            self.resolvers = list(DEFAULT_RESOLVERS)
        try:
            unmarshal_from(location)
        except FileNotFoundError:
            pass
        except (OSError, ValueError, yaml.YAMLError) as exc:
            _fatal("Could not read providers from '%s': %s", location, exc)

    def pre_process_options(self) -> None:
        """Sanitize the given domains; empty ones become empty strings."""
        self.domain = [_sanitize_or_empty(domain) for domain in self.domain]

    def configure_output(self) -> None:
        """Set the log level and format of the package's messages."""
        level = logging.INFO
        if self.verbose:
            level = logging.DEBUG
        if self.silent:
            level = logging.CRITICAL + 10
        package_logger = logging.getLogger("subscan")
        package_logger.setLevel(level)
        handler = next(
            (h for h in package_logger.handlers if isinstance(h, _CliHandler)), None
        )
        if handler is None:
            handler = _CliHandler()
            package_logger.addHandler(handler)
        handler.setFormatter(_LevelFormatter(color=not self.no_color))


class _CliHandler(logging.StreamHandler):
    """Writes to whatever sys.stderr currently is."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


class _LevelFormatter(logging.Formatter):
    def __init__(self, color: bool):
        super().__init__("%(message)s")
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        label, code = _LEVEL_LABELS.get(record.levelno, ("INF", "\x1b[34m"))
        if self.color:
            label = f"{code}{label}\x1b[0m"
        return f"[{label}] {message}"


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        print(message)
        raise SystemExit(1)


class _SliceAction(argparse.Action):
    def __init__(self, option_strings, dest, from_files: bool = False, **kwargs):
        self.from_files = from_files
        super().__init__(option_strings, dest, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        items = list(getattr(namespace, self.dest) or [])
        items.extend(_normalize_items([values], self.from_files))
        setattr(namespace, self.dest, items)


def _fatal(message: str, *args) -> None:
    logger.critical(message, *args)
    raise SystemExit(1)


def _sanitize_or_empty(value: str) -> str:
    try:
        return sanitize(value)
    except EmptyInputError:
        return ""


def _normalize_items(values: Iterable[str], from_files: bool) -> list[str]:
    items = []
    for value in values:
        if from_files and os.path.isfile(value):
            with open(value, encoding="utf-8") as handle:
                parts = handle.read().splitlines()
        else:
            parts = value.split(",")
        for part in parts:
            item = part.strip().strip("\"'").strip().lower()
            if item:
                items.append(item)
    return items


def _home_directory() -> str:
    home = os.path.expanduser("~")
    if home == "~":
        _fatal("Could not get user home directory")
    return home


def _default_config_location() -> str:
    return os.path.join(_home_directory(), ".config/subfinder/config.yaml")


def _default_provider_config_location() -> str:
    return os.path.join(_home_directory(), ".config/subfinder/provider-config.yaml")


def _build_parser(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    parser = _ArgumentParser(description=DESCRIPTION, allow_abbrev=False)
    groups = {key: parser.add_argument_group(title) for key, title in _GROUPS}
    for flag in _FLAGS:
        names = [f"-{flag.name}", f"--{flag.name}"]
        if flag.short:
            names.append(f"-{flag.short}")
        group = groups[flag.group]
        default = defaults[flag.attr]
        if flag.kind in (_SLICE, _FILE_SLICE):
            group.add_argument(
                *names,
                dest=flag.attr,
                action=_SliceAction,
                from_files=flag.kind == _FILE_SLICE,
                default=list(default),
                help=flag.help,
            )
        elif flag.kind == _BOOL:
            group.add_argument(
                *names, dest=flag.attr, action="store_true", default=default, help=flag.help
            )
        elif flag.kind == _INT:
            group.add_argument(*names, dest=flag.attr, type=int, default=default, help=flag.help)
        else:
            group.add_argument(*names, dest=flag.attr, default=default, help=flag.help)
    return parser


def _config_value(flag: _Flag, value: Any) -> Any:
    if flag.kind in (_SLICE, _FILE_SLICE):
        raw = value if isinstance(value, list) else [value]
        return _normalize_items((str(item) for item in raw if item is not None),
                                flag.kind == _FILE_SLICE)
    if flag.kind == _BOOL:
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes", "on")
        return bool(value)
    if flag.kind == _INT:
        return int(value)
    return "" if value is None else str(value)


def _merge_config_file(options: Options, path, defaults: dict[str, Any]) -> None:
    """Apply values of a flag config file to options still at their defaults."""
    with open(path, encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return
    if not isinstance(data, dict):
        raise ValueError(f"config file '{path}' is not a mapping")
    for key, value in data.items():
        flag = _FLAGS_BY_NAME.get(str(key))
        if flag is None or flag.attr in ("config", "provider_config"):
            continue
        default = defaults[flag.attr]
        if flag.kind in (_SLICE, _FILE_SLICE):
            default = list(default)
        if getattr(options, flag.attr) != default:
            continue
        setattr(options, flag.attr, _config_value(flag, value))


def parse_options(argv=None) -> Options:
    """Parse the command line and configuration files into Options.

    Exits the program for -version, -list-sources and invalid settings.
    """
    config_location = _default_config_location()
    provider_location = _default_provider_config_location()

    if os.path.isfile(config_location) and not os.path.isfile(provider_location):
        logger.info(
            "Detected old '%s' config file, trying to migrate providers to '%s'",
            config_location,
            provider_location,
        )
        try:
            migrate_to_provider_config(config_location, provider_location)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.warning(
                "Could not migrate providers from existing config '%s' to provider config '%s': %s",
                config_location,
                provider_location,
                exc,
            )
        else:
            try:
                os.remove(config_location)
            except OSError:
                pass
            logger.info(
                "Migration successful from '%s' to '%s'.", config_location, provider_location
            )

    defaults = {flag.attr: flag.default for flag in _FLAGS}
    defaults["config"] = config_location
    defaults["provider_config"] = provider_location

    namespace = _build_parser(defaults).parse_args(argv)
    options = Options(**{flag.attr: getattr(namespace, flag.attr) for flag in _FLAGS})

    if options.config != config_location:
        try:
            _merge_config_file(options, options.config, defaults)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            _fatal("Could not read config: %s", exc)

    options.output = sys.stdout
    options.stdin = has_stdin()
    options.configure_output()

    if options.version:
        logger.info("Current Version: %s", VERSION)
        raise SystemExit(0)

    options.pre_process_options()

    if not options.silent:
        show_banner()

    if os.path.isfile(options.provider_config):
        logger.info("Loading provider config from '%s'", options.provider_config)
        options.load_providers_from(options.provider_config)
    else:
        logger.info("Loading provider config from the default location: '%s'", provider_location)
        options.load_providers_from(provider_location)

    if options.list_sources:
        list_sources(options)
        raise SystemExit(0)

    try:
        validate_options(options)
    except OptionsError as exc:
        _fatal("Program exiting: %s", exc)

    return options


def migrate_to_provider_config(config_location, provider_location) -> None:
    """Move the API keys of an old config file into a provider config file."""
    configs = unmarshal_to_lower_case_map(config_location)
    keys_map: dict[str, list[str]] = {}
    for source in ALL_SOURCES:
        if source.needs_key:
            name = source.name.lower()
            keys_map[name] = configs.get(name, [])
    create_provider_config_yaml(provider_location, keys_map)


def unmarshal_to_lower_case_map(path) -> dict[str, list[str]]:
    """Read a YAML mapping of lists; lower-cased copies of the keys are added."""
    with open(path, encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"config file '{path}' is not a mapping")

    configs: dict[str, list[str]] = {}
    for key, value in loaded.items():
        if value is None:
            value = []
        if not isinstance(value, list):
            raise ValueError(f"value of '{key}' in '{path}' is not a list")
        configs[str(key)] = [str(item) for item in value]

    for key, value in list(configs.items()):
        configs[key.lower()] = value
    return configs


def has_stdin() -> bool:
    """Tell whether input is piped or redirected into the process."""
    try:
        mode = os.fstat(sys.stdin.fileno()).st_mode
    except (AttributeError, OSError, ValueError):
        return False
    return not stat.S_ISCHR(mode) or stat.S_ISFIFO(mode)


def list_sources(options: Options) -> None:
    """Print every source; those needing keys are marked with an asterisk."""
    logger.info("Current list of available sources. [%d]", len(ALL_SOURCES))
    logger.info("Sources marked with an * need key(s) or token(s) to work.")
    logger.info("You can modify '%s' to configure your keys/tokens.", options.provider_config)
    for source in ALL_SOURCES:
        print(f"{source.name} *" if source.needs_key else source.name, file=sys.stdout)


def show_banner() -> None:
    """Print the banner and the usage notice."""
    sys.stderr.write(f"{BANNER}\n")
    sys.stderr.write("Use with caution. You are responsible for your actions\n")
    sys.stderr.write(
        "Developers assume no liability and are not responsible for any misuse or damage.\n"
    )
    sys.stderr.write("By using subscan, you also agree to the terms of the APIs used.\n\n")