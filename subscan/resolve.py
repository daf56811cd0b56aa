"""Resolution of found hosts and removal of wildcard answers."""

from __future__ import annotations

import queue
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Sequence

import dns.exception
import dns.resolver

MAX_WILDCARD_CHECKS = 3
MAX_RETRIES = 5

DEFAULT_RESOLVERS = [
    "1.1.1.1:53",  # Cloudflare primary
    "1.0.0.1:53",  # Cloudflare secondary
    "8.8.8.8:53",  # Google primary
    "8.8.4.4:53",  # Google secondary
    "9.9.9.9:53",  # Quad9 primary
    "9.9.9.10:53",  # Quad9 secondary
    "77.88.8.8:53",  # Yandex primary
    "77.88.8.1:53",  # Yandex secondary
    "208.67.222.222:53",  # OpenDNS primary
    "208.67.220.220:53",  # OpenDNS secondary
]

_DONE = object()


class ResultType(Enum):
    """Kind of resolution result."""

    SUBDOMAIN = 0
    ERROR = 1


@dataclass(frozen=True)
class HostEntry:
    """A host together with the source that reported it."""

    host: str
    source: str


@dataclass
class Result:
    """Outcome of resolving one host."""

    type: ResultType
    host: str
    ip: str = ""
    error: BaseException | None = None
    source: str = ""


def _split_host_port(entry: str) -> tuple[str, int]:
    if entry.startswith("["):
        address, _, rest = entry[1:].partition("]")
        port = rest[1:] if rest.startswith(":") else ""
        return address, int(port) if port else 53
    if entry.count(":") == 1:
        address, _, port = entry.partition(":")
        return address, int(port)
    return entry, 53


class Resolver:
    """Resolves A records through a fixed list of name servers."""

    def __init__(self, resolvers: Sequence[str] | None = None):
        self.resolvers = list(resolvers) if resolvers else list(DEFAULT_RESOLVERS)
        self._dns = dns.resolver.Resolver(configure=False)
        addresses = []
        ports = {}
        for entry in self.resolvers:
            address, port = _split_host_port(entry)
            addresses.append(address)
            ports[address] = port
        self._dns.nameserver_ports = ports
        self._dns.nameservers = addresses

    def lookup(self, host: str) -> list[str]:
        """Return the IPv4 addresses of the host; an empty list when it has none."""
        last_error: Exception | None = None
        for _ in range(MAX_RETRIES):
            try:
                answer = self._dns.resolve(host, "A")
            except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
                return []
            except dns.exception.DNSException as exc:
                last_error = exc
                continue
            return [record.address for record in answer]
        assert last_error is not None
        raise last_error

    def new_resolution_pool(self, workers: int, remove_wildcard: bool) -> ResolutionPool:
        """Start a pool of workers resolving hosts through this resolver."""
        return ResolutionPool(self, workers, remove_wildcard)


class ResolutionPool:
    """Worker threads that resolve hosts and drop wildcard answers."""

    def __init__(self, resolver, workers: int, remove_wildcard: bool):
        self.resolver = resolver
        self.remove_wildcard = remove_wildcard
        self.wildcard_ips: set[str] = set()
        self._tasks: queue.Queue = queue.Queue()
        self._results: queue.Queue = queue.Queue()
        self._workers = [
            threading.Thread(target=self._work, daemon=True) for _ in range(max(workers, 0))
        ]
        for worker in self._workers:
            worker.start()
        threading.Thread(target=self._finish, daemon=True).start()

    def init_wildcards(self, domain: str) -> None:
        """Collect the addresses random names of the domain resolve to."""
        for _ in range(MAX_WILDCARD_CHECKS):
            probe = f"{uuid.uuid4().hex}.{domain}"
            try:
                hosts = self.resolver.lookup(probe)
            except Exception:
                hosts = []
            if not hosts:
                raise ValueError(f"{domain} is not a wildcard domain")
            self.wildcard_ips.update(hosts)

    def submit(self, entry: HostEntry) -> None:
        """Queue a host for resolution."""
        self._tasks.put(entry)

    def close(self) -> None:
        """Signal that no more hosts will be submitted."""
        for _ in self._workers:
            self._tasks.put(_DONE)

    def results(self) -> Iterator[Result]:
        """Yield results until every worker has finished."""
        while (item := self._results.get()) is not _DONE:
            yield item

    def _finish(self) -> None:
        for worker in self._workers:
            worker.join()
        self._results.put(_DONE)

    def _work(self) -> None:
        while (task := self._tasks.get()) is not _DONE:
            result = self._resolve(task)
            if result is not None:
                self._results.put(result)

    def _resolve(self, task: HostEntry) -> Result | None:
        if not self.remove_wildcard:
            return Result(ResultType.SUBDOMAIN, task.host, "", source=task.source)
        try:
            hosts = self.resolver.lookup(task.host)
        except Exception as exc:
            return Result(ResultType.ERROR, task.host, error=exc, source=task.source)
        if not hosts:
            return None
        if any(host in self.wildcard_ips for host in hosts):
            return None
        return Result(ResultType.SUBDOMAIN, task.host, hosts[0], source=task.source)