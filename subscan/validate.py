"""Validation of the enumeration options."""

from __future__ import annotations

import re
from typing import Sequence


class OptionsError(ValueError):
    """Raised when the options cannot be used."""


def strip_regex_string(value: str) -> str:
    """Turn a wildcard host pattern into an anchored regular expression."""
    value = value.replace(".", "\\.").replace("*", ".*")
    return f"^{value}$"


def compile_patterns(patterns: Sequence[str] | None, kind: str) -> list[re.Pattern] | None:
    """Compile wildcard patterns; None when no patterns are given."""
    if not patterns:
        return None
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(strip_regex_string(pattern)))
        except re.error as exc:
            raise OptionsError(f"invalid value for {kind} regex option") from exc
    return compiled


def validate_options(options) -> None:
    """Check the options and compile their match and filter patterns."""
    if not options.domain and not options.domains_file and not options.stdin:
        raise OptionsError("no input list provided")
    if options.verbose and options.silent:
        raise OptionsError("both verbose and silent mode specified")
    if options.threads == 0:
        raise OptionsError("threads cannot be zero")
    if options.timeout == 0:
        raise OptionsError("timeout cannot be zero")
    if options.host_ip and not options.remove_wildcard:
        raise OptionsError("hostip flag must be used with RemoveWildcard option")

    options.match_regexes = compile_patterns(options.match, "match")
    options.filter_regexes = compile_patterns(options.filter, "filter")