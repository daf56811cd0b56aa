"""Passive sources that need an API key."""

from __future__ import annotations

import base64
import re
from typing import Iterator, NamedTuple, Sequence

import requests

from subscan.scraping import (
    Result,
    Session,
    Source,
    UnexpectedStatusError,
    create_api_keys,
    pick_random,
)

# Entries like "1.2.3.4\032domain.tld" carry an address, not a subdomain.
_IP_PREFIXED = re.compile(r"^(?:\d{1,3}\.){3}\d{1,3}\\032")


class _Credentials(NamedTuple):
    """A two-part API key such as ``user:secret``."""

    username: str
    secret: str


def _decode(response: requests.Response, expected: type):
    """Decode a JSON body of the expected type; null gives an empty value."""
    data = response.json()
    if data is None:
        return expected()
    if not isinstance(data, expected):
        raise ValueError(f"unexpected JSON payload of type {type(data).__name__}")
    return data


def _pick_credentials(source: Source) -> _Credentials | None:
    credentials = pick_random(source.api_keys, source.name)
    if credentials is None or not credentials.username or not credentials.secret:
        return None
    return credentials


class CertSpotter(Source):
    """Certificate issuances from the Cert Spotter API, followed page by page."""

    name = "certspotter"
    is_default = True
    has_recursive_support = True
    needs_key = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        key = pick_random(self.api_keys, self.name)
        if not key:
            return
        headers = {"Authorization": f"Bearer {key}"}
        base_url = (
            f"https://api.certspotter.com/v1/issuances?domain={domain}"
            "&include_subdomains=true&expand=dns_names"
        )
        after: str | None = None
        while True:
            url = base_url if after is None else f"{base_url}&after={after}"
            try:
                response = session.get(url, "", headers)
                certificates = _decode(response, list)
                if not all(isinstance(cert, dict) for cert in certificates):
                    raise ValueError("unexpected certificate entry in response")
            except Exception as exc:
                yield self._failed(exc)
                return
            if not certificates:
                return
            for certificate in certificates:
                for name in certificate.get("dns_names") or []:
                    yield self._found(name)
            after = str(certificates[-1].get("id") or "")

    def add_api_keys(self, keys: Sequence[str]) -> None:
        """Store the bearer tokens."""
        self.api_keys = list(keys)


class SecurityTrails(Source):
    """Subdomains from the SecurityTrails domain API."""

    name = "securitytrails"
    is_default = True
    has_recursive_support = True
    needs_key = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        key = pick_random(self.api_keys, self.name)
        if not key:
            return
        url = f"https://api.securitytrails.com/v1/domain/{domain}/subdomains"
        try:
            response = session.get(url, "", {"APIKEY": key})
            data = _decode(response, dict)
        except Exception as exc:
            yield self._failed(exc)
            return
        for label in data.get("subdomains") or []:
            if label.endswith("."):
                yield self._found(label + domain)
            else:
                yield self._found(f"{label}.{domain}")

    def add_api_keys(self, keys: Sequence[str]) -> None:
        """Store the API keys."""
        self.api_keys = list(keys)


class Shodan(Source):
    """Subdomains from the Shodan DNS API."""

    name = "shodan"
    is_default = True
    needs_key = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        key = pick_random(self.api_keys, self.name)
        if not key:
            return
        try:
            response = session.simple_get(f"https://api.shodan.io/dns/domain/{domain}?key={key}")
        except Exception:
            # A failed request ends the source without reporting an error.
            return
        try:
            data = _decode(response, dict)
        except Exception as exc:
            yield self._failed(exc)
            return
        error = data.get("error") or ""
        if error:
            yield self._failed(RuntimeError(error))
            return
        for label in data.get("subdomains") or []:
            yield self._found(f"{label}.{domain}")

    def add_api_keys(self, keys: Sequence[str]) -> None:
        """Store the API keys."""
        self.api_keys = list(keys)


class C99(Source):
    """Subdomains from the C99 subdomain finder API."""

    name = "c99"
    is_default = True
    needs_key = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        key = pick_random(self.api_keys, self.name)
        if not key:
            return
        url = f"https://api.c99.nl/subdomainfinder?key={key}&domain={domain}&json"
        try:
            response = session.simple_get(url)
        except Exception:
            # A failed request ends the source without reporting an error.
            return
        try:
            data = _decode(response, dict)
        except Exception as exc:
            yield self._failed(exc)
            return
        error = data.get("error") or ""
        if error:
            yield self._failed(RuntimeError(error))
            return
        for entry in data.get("subdomains") or []:
            subdomain = entry.get("subdomain", "") if isinstance(entry, dict) else ""
            subdomain = subdomain or ""
            if not subdomain.startswith("."):
                yield self._found(subdomain)

    def add_api_keys(self, keys: Sequence[str]) -> None:
        """Store the API keys."""
        self.api_keys = list(keys)


class Fofa(Source):
    """Hosts from the FOFA search API."""

    name = "fofa"
    is_default = True
    needs_key = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        credentials = _pick_credentials(self)
        if credentials is None:
            return
        query = base64.b64encode(f'domain="{domain}"'.encode()).decode()
        url = (
            "https://fofa.info/api/v1/search/all?full=true&fields=host&page=1&size=10000"
            f"&email={credentials.username}&key={credentials.secret}&qbase64={query}"
        )
        try:
            response = session.simple_get(url)
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
        if data.get("error"):
            yield self._failed(RuntimeError(data.get("errmsg") or ""))
            return
        if (data.get("size") or 0) > 0:
            for host in data.get("results") or []:
                lowered = host.lower()
                if lowered.startswith("http://") or lowered.startswith("https://"):
                    host = host[host.index("//") + 2 :]
                yield self._found(host)

    def add_api_keys(self, keys: Sequence[str]) -> None:
        """Store ``email:key`` pairs; malformed keys are dropped."""
        self.api_keys = create_api_keys(keys, _Credentials)


class PassiveTotal(Source):
    """Subdomains from the PassiveTotal enrichment API."""

    name = "passivetotal"
    is_default = True
    has_recursive_support = True
    needs_key = True

    def run(self, domain: str, session: Session) -> Iterator[Result]:
        credentials = _pick_credentials(self)
        if credentials is None:
            return
        from subscan.scraping import BasicAuth

        body = ('{"query":"' + domain + '"}').encode()
        try:
            response = session.http_request(
                "GET",
                "https://api.passivetotal.org/v2/enrichment/subdomains",
                "",
                {"Content-Type": "application/json"},
                body,
                BasicAuth(credentials.username, credentials.secret),
            )
            data = _decode(response, dict)
        except Exception as exc:
            yield self._failed(exc)
            return
        for label in data.get("subdomains") or []:
            if _IP_PREFIXED.match(label):
                continue
            yield self._found(f"{label}.{domain}")

    def add_api_keys(self, keys: Sequence[str]) -> None:
        """Store ``username:secret`` pairs; malformed keys are dropped."""
        self.api_keys = create_api_keys(keys, _Credentials)