"""Passive sources backed by large crawl and DNS indexes."""

from __future__ import annotations

from typing import Generator, Iterator, Sequence

from subscan.scraping import Result, Session, Source, UnexpectedStatusError, pick_random
from subscan.sources.keyless import (
    _decode,
    _lines,
    _query_unescape,
    _strip_encoding_leftovers,
)

_BUFFEROVER_URL = "https://tls.bufferover.run/dns?q=.{domain}"
_COMMONCRAWL_INDEX_URL = "https://index.commoncrawl.org/collinfo.json"
_COMMONCRAWL_YEARS = ("2020", "2019", "2018", "2017")


class BufferOver(Source):
    """Forward and reverse DNS records from the BufferOver TLS API."""

    name = "bufferover"
    is_default = True
    has_recursive_support = True
    needs_key = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        key = pick_random(self.api_keys, self.name)
        if not key:
            return
        url = _BUFFEROVER_URL.format(domain=domain)
        try:
            response = session.get(url, "", {"x-api-key": key})
        except UnexpectedStatusError as exc:
            response = exc.response
        except Exception as exc:
            yield self._failed(exc)
            return

        try:
            data = _decode(response, dict)
        except Exception as exc:
            yield self._failed(exc)
            return

        meta = data.get("Meta")
        errors = (meta.get("Errors") or []) if isinstance(meta, dict) else []
        if errors:
            yield self._failed(RuntimeError(", ".join(str(error) for error in errors)))
            return

        forward = data.get("FDNS_A") or []
        if forward:
            entries = [*forward, *(data.get("RDNS") or [])]
        else:
            entries = data.get("Results") or []

        for entry in entries:
            for subdomain in session.extractor.findall(str(entry)):
                yield self._found(subdomain)

    def add_api_keys(self, keys: Sequence[str]) -> None:
        """Store the API keys."""
        self.api_keys = list(keys)


class CommonCrawl(Source):
    """Hosts of URLs in the Common Crawl indexes of recent years."""

    name = "commoncrawl"

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        try:
            response = session.simple_get(_COMMONCRAWL_INDEX_URL)
            indexes = _decode(response, list)
        except Exception as exc:
            yield self._failed(exc)
            return

        search_indexes: dict[str, str] = {}
        for year in _COMMONCRAWL_YEARS:
            for index in indexes:
                if isinstance(index, dict) and year in str(index.get("id") or ""):
                    search_indexes[year] = str(index.get("cdx-api") or "")
                    break

        for api_url in search_indexes.values():
            further = yield from self._get_subdomains(api_url, domain, session)
            if not further:
                break

    def _get_subdomains(
        self, api_url: str, domain: str, session: Session
    ) -> Generator[Result, None, bool]:
        headers = {"Host": "index.commoncrawl.org"}
        try:
            response = session.get(f"{api_url}?url=*.{domain}", "", headers)
        except Exception as exc:
            yield self._failed(exc)
            return False

        for line in _lines(response):
            match = session.extractor.search(_query_unescape(line))
            if match and match.group(0):
                yield self._found(_strip_encoding_leftovers(match.group(0)))
        return True