"""Orchestration of the enumeration over the given domains."""

from __future__ import annotations

import io
import logging
import os
import re
import sys
import threading
import time
from datetime import timedelta
from typing import Iterable, Sequence, TextIO

from subscan import resolve
from subscan.options import Options, parse_options
from subscan.outputter import OutputWriter
from subscan.passive import Agent
from subscan.scraping import ResultType as SourceResultType
from subscan.util import EmptyInputError, load_from_file, sanitize

logger = logging.getLogger(__name__)

MAX_NUM_COUNT = 2

_IP_PATTERN = re.compile(r"^([0-9\.]+$)")

_MICROSECOND_UNITS = (
    ("year", 365 * 24 * 3600 * 1_000_000),
    ("week", 7 * 24 * 3600 * 1_000_000),
    ("day", 24 * 3600 * 1_000_000),
    ("hour", 3600 * 1_000_000),
    ("minute", 60 * 1_000_000),
    ("second", 1_000_000),
    ("millisecond", 1_000),
    ("microsecond", 1),
)


def _format_duration(seconds: float, limit: int = MAX_NUM_COUNT) -> str:
    remaining = int(seconds * 1_000_000)
    parts = []
    for name, size in _MICROSECOND_UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count} {name}{'' if count == 1 else 's'}")
    return " ".join(parts[:limit]) or "0 seconds"


class Runner:
    """Drives passive enumeration, optional resolution and output for domains."""

    def __init__(self, options: Options):
        self.options = options
        self.passive_agent = Agent(
            options.sources, options.exclude_sources, options.all, options.only_recursive
        )
        self.resolver_client = self._initialize_resolver()

    def _initialize_resolver(self) -> resolve.Resolver | None:
        resolvers: list[str] = []
        if self.options.resolver_list:
            resolvers = load_from_file(self.options.resolver_list)
        resolvers.extend(self.options.resolvers or resolve.DEFAULT_RESOLVERS)
        resolvers = [entry if ":" in entry else f"{entry}:53" for entry in resolvers]
        try:
            return resolve.Resolver(resolvers)
        except ValueError as exc:
            logger.warning("Could not create DNS resolver: %s", exc)
            return None

    def run_enumeration(self) -> None:
        """Enumerate the domains from the flags, the domain list file or stdin."""
        outputs = [self.options.output]
        if self.options.domain:
            self.enumerate_multiple_domains(io.StringIO("\n".join(self.options.domain)), outputs)
        elif self.options.domains_file:
            with open(self.options.domains_file, encoding="utf-8") as handle:
                self.enumerate_multiple_domains(handle, outputs)
        elif self.options.stdin:
            self.enumerate_multiple_domains(sys.stdin, outputs)

    def enumerate_multiple_domains(self, reader: Iterable[str], writers: Sequence[TextIO]) -> None:
        """Enumerate each domain read line by line; stop at the first error."""
        for line in reader:
            try:
                domain = sanitize(line.rstrip("\r\n"))
            except EmptyInputError:
                continue
            if self.options.exclude_ips and _IP_PATTERN.match(domain):
                continue

            if self.options.output_file:
                self._enumerate_to_file(domain, writers, self.options.output_file, True)
            elif self.options.output_directory:
                extension = ".json" if self.options.json else ".txt"
                path = os.path.join(self.options.output_directory, domain) + extension
                self._enumerate_to_file(domain, writers, path, False)
            else:
                self.enumerate_single_domain(domain, writers)

    def _enumerate_to_file(
        self, domain: str, writers: Sequence[TextIO], path: str, append: bool
    ) -> None:
        try:
            handle = OutputWriter(self.options.json).create_file(path, append)
        except (OSError, ValueError) as exc:
            logger.error("Could not create file %s for %s: %s", path, domain, exc)
            raise
        with handle:
            self.enumerate_single_domain(domain, [*writers, handle])

    def enumerate_single_domain(self, domain: str, writers: Sequence[TextIO]) -> None:
        """Enumerate the subdomains of one domain and write them to every writer."""
        logger.info("Enumerating subdomains for '%s'", domain)
        remove_wildcard = self.options.remove_wildcard

        pool: resolve.ResolutionPool | None = None
        if remove_wildcard:
            if self.resolver_client is None:
                raise RuntimeError("no DNS resolver available to remove wildcards")
            pool = self.resolver_client.new_resolution_pool(self.options.threads, True)
            try:
                pool.init_wildcards(domain)
            except Exception as exc:
                logger.warning("Could not get wildcards for domain '%s': %s", domain, exc)

        started = time.monotonic()
        passive_results = self.passive_agent.enumerate_subdomains(
            domain,
            self.options.proxy,
            self.options.rate_limit,
            self.options.timeout,
            timedelta(minutes=self.options.max_enumeration_time),
        )

        unique_map: dict[str, resolve.HostEntry] = {}
        source_map: dict[str, dict[str, None]] = {}
        suffix = "." + domain

        def consume() -> None:
            try:
                for result in passive_results:
                    if result.type is SourceResultType.ERROR:
                        logger.warning("Could not run source '%s': %s", result.source, result.error)
                        continue
                    if not result.value.endswith(suffix):
                        continue
                    subdomain = result.value.lower().replace("*.", "")
                    if not self.filter_and_match_subdomain(subdomain):
                        continue
                    sources = source_map.setdefault(subdomain, {})
                    if result.source not in sources:
                        logger.debug("[%s] %s", result.source, subdomain)
                    sources[result.source] = None
                    if subdomain in unique_map:
                        continue
                    entry = resolve.HostEntry(host=subdomain, source=result.source)
                    unique_map[subdomain] = entry
                    if pool is not None:
                        pool.submit(entry)
            finally:
                if pool is not None:
                    pool.close()

        found_results: dict[str, resolve.Result] = {}
        if pool is None:
            consume()
        else:
            failure: list[BaseException] = []

            def guarded() -> None:
                try:
                    consume()
                except BaseException as exc:
                    failure.append(exc)

            consumer = threading.Thread(target=guarded, daemon=True)
            consumer.start()
            for result in pool.results():
                if result.type is resolve.ResultType.ERROR:
                    logger.warning("Could not resolve host: '%s'", result.error)
                else:
                    found_results.setdefault(result.host, result)
            consumer.join()
            if failure:
                raise failure[0]

        output_writer = OutputWriter(self.options.json)
        for writer in writers:
            try:
                if self.options.host_ip:
                    output_writer.write_host_ip(domain, found_results, writer)
                elif remove_wildcard:
                    output_writer.write_host_no_wildcard(domain, found_results, writer)
                elif self.options.capture_sources:
                    output_writer.write_source_host(domain, source_map, writer)
                else:
                    output_writer.write_host(domain, unique_map, writer)
            except Exception as exc:
                logger.error("Could not write results for '%s': %s", domain, exc)
                raise

        duration = _format_duration(time.monotonic() - started)
        count = len(found_results) if remove_wildcard else len(unique_map)
        logger.info("Found %d subdomains for '%s' in %s", count, domain, duration)

    def filter_and_match_subdomain(self, subdomain: str) -> bool:
        """Tell whether a subdomain passes the filter and match patterns."""
        for pattern in self.options.filter_regexes or ():
            if pattern.search(subdomain):
                return False
        if self.options.match_regexes:
            return any(pattern.search(subdomain) for pattern in self.options.match_regexes)
        return True


def main(argv=None) -> None:
    """Parse the command line and run the enumeration."""
    options = parse_options(argv)
    try:
        runner = Runner(options)
    except Exception as exc:
        logger.critical("Could not create runner: %s", exc)
        raise SystemExit(1) from exc
    try:
        runner.run_enumeration()
    except Exception as exc:
        logger.critical("Could not run enumeration: %s", exc)
        raise SystemExit(1) from exc