import logging
import time
from datetime import timedelta

import pytest

from subscan.passive import NAME_SOURCE_MAP, Agent, all_sources
from subscan.scraping import Result, ResultType, Source

EXPECTED_ALL_SOURCES = [
    "alienvault",
    "anubis",
    "bufferover",
    "c99",
    "certspotter",
    "commoncrawl",
    "dnsdumpster",
    "fofa",
    "hackertarget",
    "passivetotal",
    "rapiddns",
    "riddler",
    "securitytrails",
    "shodan",
    "sonarsearch",
    "threatminer",
    "waybackarchive",
]

EXPECTED_DEFAULT_SOURCES = [
    "alienvault",
    "anubis",
    "bufferover",
    "c99",
    "certspotter",
    "dnsdumpster",
    "fofa",
    "hackertarget",
    "passivetotal",
    "quake_absent_placeholder",
][:-1] + [
    "riddler",
    "securitytrails",
    "shodan",
    "threatminer",
]

EXPECTED_DEFAULT_RECURSIVE_SOURCES = [
    "alienvault",
    "bufferover",
    "certspotter",
    "dnsdumpster",
    "hackertarget",
    "passivetotal",
    "securitytrails",
    "sonarsearch",
]

SOME_SOURCES = ["alienvault", "sonarsearch", "chaos", "virustotal"]
SOME_EXCLUSIONS = ["alienvault", "virustotal"]


def test_source_categorization():
    default_sources = [source.name for source in all_sources() if source.is_default]
    recursive_sources = [
        source.name for source in all_sources() if source.has_recursive_support
    ]

    assert sorted(default_sources) == sorted(EXPECTED_DEFAULT_SOURCES)
    assert sorted(recursive_sources) == sorted(EXPECTED_DEFAULT_RECURSIVE_SOURCES)
    assert sorted(NAME_SOURCE_MAP) == sorted(EXPECTED_ALL_SOURCES)


def _known(names):
    return [name for name in names if name in EXPECTED_ALL_SOURCES]


@pytest.mark.parametrize(
    "sources, exclusions, with_all, with_recursion, expected",
    [
        (SOME_SOURCES, SOME_EXCLUSIONS, False, False, {"sonarsearch"}),
        (SOME_SOURCES, SOME_EXCLUSIONS, False, True, {"sonarsearch"}),
        (
            SOME_SOURCES,
            SOME_EXCLUSIONS,
            True,
            False,
            set(EXPECTED_ALL_SOURCES) - set(SOME_EXCLUSIONS),
        ),
        (
            SOME_SOURCES,
            SOME_EXCLUSIONS,
            True,
            True,
            set(EXPECTED_DEFAULT_RECURSIVE_SOURCES) - set(SOME_EXCLUSIONS),
        ),
        (SOME_SOURCES, [], False, False, set(_known(SOME_SOURCES))),
        (SOME_SOURCES, [], True, False, set(EXPECTED_ALL_SOURCES)),
        ([], [], False, False, set(EXPECTED_DEFAULT_SOURCES)),
        (
            [],
            [],
            False,
            True,
            set(EXPECTED_DEFAULT_SOURCES) & set(EXPECTED_DEFAULT_RECURSIVE_SOURCES),
        ),
        ([], [], True, False, set(EXPECTED_ALL_SOURCES)),
        ([], [], True, True, set(EXPECTED_DEFAULT_RECURSIVE_SOURCES)),
    ],
)
def test_source_filtering(sources, exclusions, with_all, with_recursion, expected):
    agent = Agent(sources, exclusions, with_all, with_recursion)

    names = [source.name for source in agent.sources]
    assert len(names) == len(set(names))
    assert set(names) == expected


def test_unknown_source_logs_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="subscan.passive"):
        agent = Agent(["nosuchsource"], [], False, False)

    assert agent.sources == []
    assert "There is no source with the name: 'nosuchsource'" in caplog.text


def test_all_sources_are_shared_instances():
    assert all(NAME_SOURCE_MAP[source.name] is source for source in all_sources())


class _Listing(Source):
    name = "listing"

    def __init__(self, values):
        super().__init__()
        self.values = values

    def run(self, domain, session):
        for value in self.values:
            yield Result(ResultType.SUBDOMAIN, self.name, value=value)


class _Broken(Source):
    name = "broken"

    def run(self, domain, session):
        raise RuntimeError("boom")
        yield  # pragma: no cover


class _Slow(Source):
    name = "slow"

    def run(self, domain, session):
        time.sleep(0.3)
        session.simple_get("http://example.com/")
        yield Result(ResultType.SUBDOMAIN, self.name, value="never.example.com")


def test_enumerate_collects_results_from_all_sources():
    agent = Agent([], [], False, False)
    agent.sources = [_Listing(["a.example.com", "b.example.com"]), _Broken()]

    results = list(agent.enumerate_subdomains("example.com", "", 0, 5, 10))

    found = {result.value for result in results if result.type is ResultType.SUBDOMAIN}
    errors = [result for result in results if result.type is ResultType.ERROR]
    assert found == {"a.example.com", "b.example.com"}
    assert len(errors) == 1
    assert errors[0].source == "broken"
    assert str(errors[0].error) == "boom"


def test_enumerate_stops_requests_after_max_time():
    agent = Agent([], [], False, False)
    agent.sources = [_Slow()]

    results = list(
        agent.enumerate_subdomains("example.com", "", 0, 5, timedelta(milliseconds=50))
    )

    assert len(results) == 1
    assert results[0].type is ResultType.ERROR
    assert isinstance(results[0].error, TimeoutError)


def test_enumerate_reports_invalid_domain():
    agent = Agent([], [], False, False)
    agent.sources = [_Listing(["a.example.com"])]

    results = list(agent.enumerate_subdomains("(", "", 0, 5, 10))

    assert len(results) == 1
    assert results[0].type is ResultType.ERROR
    assert "could not init passive session for (" in str(results[0].error)


def test_enumerate_without_sources_yields_nothing():
    agent = Agent([], [], False, False)
    agent.sources = []

    assert list(agent.enumerate_subdomains("example.com", "", 0, 5, 10)) == []