"""Writing of found subdomains as plain text or JSON lines."""

from __future__ import annotations

import json as jsonlib
import os
from typing import Iterable, Mapping, TextIO

from subscan.resolve import HostEntry, Result


def _json_line(data: dict) -> str:
    return jsonlib.dumps(data, separators=(",", ":"), ensure_ascii=False) + "\n"


class OutputWriter:
    """Writes enumeration results to text streams."""

    def __init__(self, json: bool = False):
        self.json = json

    def create_file(self, filename: str, append: bool) -> TextIO:
        """Open an output file, creating its directory when missing."""
        if not filename:
            raise ValueError("empty filename")
        directory = os.path.dirname(filename)
        if directory and not os.path.exists(directory):
            os.makedirs(directory)
        return open(filename, "a" if append else "w", encoding="utf-8")

    def write_host_ip(
        self, input_domain: str, results: Mapping[str, Result], writer: TextIO
    ) -> None:
        """Write host, address and source of every resolved result."""
        if self.json:
            lines = (
                _json_line(
                    {
                        "host": result.host,
                        "ip": result.ip,
                        "input": input_domain,
                        "source": result.source,
                    }
                )
                for result in results.values()
            )
        else:
            lines = (
                f"{result.host},{result.ip},{result.source}\n" for result in results.values()
            )
        writer.write("".join(lines))

    def write_host_no_wildcard(
        self, input_domain: str, results: Mapping[str, Result], writer: TextIO
    ) -> None:
        """Write the hosts of resolved results that survived wildcard removal."""
        hosts = {
            host: HostEntry(host=result.host, source=result.source)
            for host, result in results.items()
        }
        self.write_host(input_domain, hosts, writer)

    def write_host(
        self, input_domain: str, results: Mapping[str, HostEntry], writer: TextIO
    ) -> None:
        """Write every host, with its first source in JSON mode."""
        if self.json:
            lines = (
                _json_line({"host": entry.host, "input": input_domain, "source": entry.source})
                for entry in results.values()
            )
        else:
            lines = (f"{entry.host}\n" for entry in results.values())
        writer.write("".join(lines))

    def write_source_host(
        self,
        input_domain: str,
        source_map: Mapping[str, Iterable[str]],
        writer: TextIO,
    ) -> None:
        """Write every host together with all the sources that reported it."""
        if self.json:
            lines = (
                _json_line({"host": host, "input": input_domain, "sources": list(sources)})
                for host, sources in source_map.items()
            )
        else:
            lines = (
                f"{host},[{','.join(sources).strip(', ')}]\n"
                for host, sources in source_map.items()
            )
        writer.write("".join(lines))