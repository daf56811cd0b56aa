"""Selection of passive sources and concurrent enumeration over them."""

from __future__ import annotations

import logging
import queue
import re
import threading
import time
from datetime import timedelta
from typing import Iterator, Sequence

from subscan.scraping import Result, ResultType, Session, Source
from subscan.sources.indexes import BufferOver, CommonCrawl
from subscan.sources.keyed import C99, CertSpotter, Fofa, PassiveTotal, SecurityTrails, Shodan
from subscan.sources.keyless import (
    AlienVault,
    Anubis,
    DNSDumpster,
    HackerTarget,
    RapidDNS,
    Riddler,
    SonarSearch,
    ThreatMiner,
    WaybackArchive,
)

logger = logging.getLogger(__name__)

ALL_SOURCES: tuple[Source, ...] = (
    AlienVault(),
    Anubis(),
    BufferOver(),
    C99(),
    CertSpotter(),
    CommonCrawl(),
    DNSDumpster(),
    Fofa(),
    HackerTarget(),
    PassiveTotal(),
    RapidDNS(),
    Riddler(),
    SecurityTrails(),
    Shodan(),
    SonarSearch(),
    ThreatMiner(),
    WaybackArchive(),
)

NAME_SOURCE_MAP: dict[str, Source] = {source.name.lower(): source for source in ALL_SOURCES}

_DONE = object()


def all_sources() -> list[Source]:
    """Return every known source, in registration order."""
    return list(ALL_SOURCES)


class Agent:
    """Runs passive subdomain enumeration over a selection of sources."""

    def __init__(
        self,
        source_names: Sequence[str] = (),
        excluded_source_names: Sequence[str] = (),
        use_all_sources: bool = False,
        use_sources_supporting_recurse: bool = False,
    ):
        selected: dict[str, Source] = {}
        if use_all_sources:
            selected.update(NAME_SOURCE_MAP)
        elif source_names:
            for name in source_names:
                source = NAME_SOURCE_MAP.get(name)
                if source is None:
                    logger.warning("There is no source with the name: '%s'", name)
                else:
                    selected[name] = source
        else:
            selected = {source.name: source for source in ALL_SOURCES if source.is_default}

        for name in excluded_source_names:
            selected.pop(name, None)

        if use_sources_supporting_recurse:
            selected = {
                name: source
                for name, source in selected.items()
                if source.has_recursive_support
            }

        logger.debug("Selected source(s) for this search: %s", ", ".join(selected))
        self.sources: list[Source] = list(selected.values())

    def enumerate_subdomains(
        self,
        domain: str,
        proxy: str = "",
        rate_limit: int = 0,
        timeout: int = 30,
        max_enum_time: float | timedelta = 600.0,
    ) -> Iterator[Result]:
        """Run every source in parallel and yield their results as they arrive.

        ``max_enum_time`` is in seconds, or a timedelta; once it passes, further
        requests of the sources fail.
        """
        if isinstance(max_enum_time, timedelta):
            max_enum_time = max_enum_time.total_seconds()

        try:
            session = Session(domain, proxy, rate_limit, timeout)
        except re.error as exc:
            yield Result(
                ResultType.ERROR,
                "",
                error=RuntimeError(f"could not init passive session for {domain}: {exc}"),
            )
            return

        results: queue.Queue = queue.Queue()
        time_taken: dict[str, str] = {}
        time_taken_lock = threading.Lock()

        def work(source: Source) -> None:
            started = time.monotonic()
            try:
                for result in source.run(domain, session):
                    results.put(result)
            except Exception as exc:
                results.put(Result(ResultType.ERROR, source.name, error=exc))
            finally:
                duration = time.monotonic() - started
                with time_taken_lock:
                    time_taken[source.name] = f"Source took {duration:.3f}s for enumeration"
                results.put(_DONE)

        timer = threading.Timer(max_enum_time, session.cancel)
        timer.daemon = True
        timer.start()

        workers = [threading.Thread(target=work, args=(source,), daemon=True) for source in self.sources]
        for worker in workers:
            worker.start()

        remaining = len(workers)
        try:
            while remaining:
                item = results.get()
                if item is _DONE:
                    remaining -= 1
                    continue
                yield item
            for name, message in time_taken.items():
                logger.debug("[%s] %s", name, message)
        finally:
            timer.cancel()
            session.cancel()
            session.close()