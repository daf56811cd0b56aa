"""Passive sources that work without an API key."""

from __future__ import annotations

import re
from typing import Iterator
from urllib.parse import unquote_plus, urlencode

import requests

from subscan.scraping import Result, Session, Source, UnexpectedStatusError

_CSRF_PATTERN = re.compile(r'<input type="hidden" name="csrfmiddlewaretoken" value="(.*)">')
_BAD_ESCAPE = re.compile(r"%(?![0-9a-fA-F]{2})")


def get_csrf_token(page: str) -> str:
    """Return the CSRF token embedded in a page, or an empty string."""
    match = _CSRF_PATTERN.search(page)
    return match.group(1).strip() if match else ""


def _query_unescape(text: str) -> str:
    """Decode a query-escaped string; malformed escapes give an empty string."""
    if _BAD_ESCAPE.search(text):
        return ""
    return unquote_plus(text)


def _lines(response: requests.Response) -> Iterator[str]:
    """Yield the non-empty lines of a response body."""
    for line in response.text.split("\n"):
        line = line.rstrip("\r")
        if line:
            yield line


def _decode(response: requests.Response, expected: type):
    """Decode a JSON body of the expected type; null gives an empty value."""
    data = response.json()
    if data is None:
        return expected()
    if not isinstance(data, expected):
        raise ValueError(f"unexpected JSON payload of type {type(data).__name__}")
    return data


def _strip_encoding_leftovers(subdomain: str) -> str:
    # Triple-encoded URLs leave "25" or "2f" in front of the host.
    subdomain = subdomain.lower()
    subdomain = subdomain.removeprefix("25")
    return subdomain.removeprefix("2f")


class AlienVault(Source):
    """Passive DNS records from the AlienVault OTX API."""

    name = "alienvault"
    is_default = True
    has_recursive_support = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        url = f"https://otx.alienvault.com/api/v1/indicators/domain/{domain}/passive_dns"
        try:
            response = session.simple_get(url)
        except UnexpectedStatusError as exc:
            response = exc.response
        except Exception as exc:
            yield self._failed(exc)
            return

        try:
            data = _decode(response, dict)
        except ValueError as exc:
            yield self._failed(exc)
            return

        error = data.get("error") or ""
        if error:
            detail = data.get("detail") or ""
            yield self._failed(RuntimeError(f"{detail}, {error}"))
            return

        for record in data.get("passive_dns") or []:
            hostname = record.get("hostname", "") if isinstance(record, dict) else ""
            yield self._found(hostname or "")


class Anubis(Source):
    """Subdomain list from the Anubis database."""

    name = "anubis"
    is_default = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        try:
            response = session.simple_get(f"https://jonlu.ca/anubis/subdomains/{domain}")
            subdomains = _decode(response, list)
        except Exception as exc:
            yield self._failed(exc)
            return
        for record in subdomains:
            yield self._found(record)


class HackerTarget(Source):
    """Host search results from HackerTarget."""

    name = "hackertarget"
    is_default = True
    has_recursive_support = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        try:
            response = session.simple_get(f"http://api.hackertarget.com/hostsearch/?q={domain}")
        except Exception as exc:
            yield self._failed(exc)
            return
        for line in _lines(response):
            for subdomain in session.extractor.findall(line):
                yield self._found(subdomain)


class RapidDNS(Source):
    """Subdomains scraped from the RapidDNS web page."""

    name = "rapiddns"

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        try:
            response = session.simple_get(f"https://rapiddns.io/subdomain/{domain}?full=1")
            page = response.text
        except Exception as exc:
            yield self._failed(exc)
            return
        for subdomain in session.extractor.findall(page):
            yield self._found(subdomain)


class Riddler(Source):
    """Subdomains from the Riddler data table export."""

    name = "riddler"
    is_default = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        url = f"https://riddler.io/search?q=pld:{domain}&view_type=data_table"
        try:
            response = session.simple_get(url)
        except Exception as exc:
            yield self._failed(exc)
            return
        for line in _lines(response):
            match = session.extractor.search(line)
            if match and match.group(0):
                yield self._found(match.group(0))


class ThreatMiner(Source):
    """Subdomains from the ThreatMiner domain API."""

    name = "threatminer"
    is_default = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        url = f"https://api.threatminer.org/v2/domain.php?q={domain}&rt=5"
        try:
            response = session.simple_get(url)
            data = _decode(response, dict)
        except Exception as exc:
            yield self._failed(exc)
            return
        for subdomain in data.get("results") or []:
            yield self._found(subdomain)


class WaybackArchive(Source):
    """Hosts of URLs archived by the Wayback Machine."""

    name = "waybackarchive"

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        url = (
            f"http://web.archive.org/cdx/search/cdx?url=*.{domain}/*"
            "&output=txt&fl=original&collapse=urlkey"
        )
        try:
            response = session.simple_get(url)
        except Exception as exc:
            yield self._failed(exc)
            return
        for line in _lines(response):
            match = session.extractor.search(_query_unescape(line))
            if match and match.group(0):
                yield self._found(_strip_encoding_leftovers(match.group(0)))


class SonarSearch(Source):
    """Paged subdomain lists from the Sonar search API."""

    name = "sonarsearch"
    has_recursive_support = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        base_url = f"https://sonar.omnisint.io/subdomains/{domain}?page="
        page = 0
        while True:
            try:
                response = session.simple_get(f"{base_url}{page}")
                subdomains = _decode(response, list)
            except Exception as exc:
                yield self._failed(exc)
                return
            if not subdomains:
                return
            for subdomain in subdomains:
                yield self._found(subdomain)
            page += 1


class DNSDumpster(Source):
    """Subdomains from the DNSDumpster search form."""

    name = "dnsdumpster"
    is_default = True
    has_recursive_support = True

    _URL = "https://dnsdumpster.com/"

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        try:
            page = session.simple_get(self._URL).text
        except Exception as exc:
            yield self._failed(exc)
            return

        try:
            data = self._post_form(session, get_csrf_token(page), domain)
        except Exception as exc:
            yield self._failed(exc)
            return

        for subdomain in session.extractor.findall(data):
            yield self._found(subdomain)

    def _post_form(self, session: Session, token: str, domain: str) -> str:
        form = urlencode(
            sorted({"csrfmiddlewaretoken": token, "targetip": domain, "user": "free"}.items())
        )
        response = session.http_request(
            "POST",
            self._URL,
            f"csrftoken={token}; Domain=dnsdumpster.com",
            {
                "Content-Type": "application/x-www-form-urlencoded",
                "Referer": "https://dnsdumpster.com",
                "X-CSRF-Token": token,
            },
            form,
        )
        return response.text