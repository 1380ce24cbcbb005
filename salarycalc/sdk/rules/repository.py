"""Rule document loading and caching.

Each supported country has exactly one JSON rule document, named by a
static country -> filename map. Documents are fetched from a base location
(a local directory, by default the documents shipped with the package, or
an http(s) URL) and cached in the repository object for its lifetime.

There is no retry, timeout or invalidation: a failed load is terminal for
the call, and picking up edited documents requires a new repository.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

import requests
from pydantic import ValidationError

from ..errors import RuleNotFound
from .schemas import CountryRuleDocument

logger = logging.getLogger(__name__)


COUNTRY_FILE_MAP = {
    "DE": "rules-DE.json",
    "ES": "rules-ES.json",
    "UK": "rules-UK.json",
    "FR": "rules-FR.json",
    "NL": "rules-NL.json",
    "PL": "rules-PL.json",
    "AT": "rules-AT.json",
    "SI": "rules-SI.json",
    "SE": "rules-SE.json",
    "IT": "rules-IT.json",
}

# (status, body) for a location string
Fetcher = Callable[[str], Awaitable[tuple[int, bytes]]]


def get_tax_rules_dir() -> Path:
    """Get the directory holding the rule documents shipped with the package."""
    return Path(__file__).parent.parent.parent / "tax_rules"  # rules -> sdk -> salarycalc


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


async def fetch_location(location: str) -> tuple[int, bytes]:
    """Fetch raw bytes from a URL or a local file path.

    Local files report 404 when missing, so both transports surface a
    missing document the same way.

    Raises:
        requests.RequestException, OSError: on transport failure
    """
    if _is_url(location):
        response = await asyncio.to_thread(requests.get, location)
        return response.status_code, response.content

    path = Path(location)
    if not path.is_file():
        return 404, b""
    data = await asyncio.to_thread(path.read_bytes)
    return 200, data


class RuleRepository:
    """Loads country rule documents and caches them by country code.

    Args:
        base: Directory path or http(s) URL holding the rule files.
            Defaults to the shipped tax_rules directory.
        fetch: Async callable (location) -> (status, body). Defaults to
            fetch_location.
        lint_on_load: Run the tax class lint over each document before caching.
        strict: With lint_on_load, raise instead of logging lint findings.
    """

    def __init__(
        self,
        base: Union[str, Path, None] = None,
        fetch: Optional[Fetcher] = None,
        lint_on_load: bool = False,
        strict: bool = False,
    ):
        self.base = str(base) if base is not None else str(get_tax_rules_dir())
        self._fetch = fetch or fetch_location
        self.lint_on_load = lint_on_load
        self.strict = strict
        self._cache: dict[str, dict] = {}
        self._pending: dict[str, asyncio.Future] = {}

    @staticmethod
    def supported_countries() -> list[str]:
        """Country codes with a known rule document."""
        return sorted(COUNTRY_FILE_MAP)

    def cached(self, country_code: str) -> Optional[dict]:
        """Return the cached document for a country, or None if not loaded."""
        return self._cache.get(str(country_code or "").upper())

    def build_location(self, country_code: str) -> str:
        """Build the fetch location for a (normalised) country code.

        Raises:
            RuleNotFound: If the country has no rule document
        """
        file_name = COUNTRY_FILE_MAP.get(country_code)
        if not file_name:
            raise RuleNotFound(details={"countryCode": country_code})
        if _is_url(self.base):
            return self.base.rstrip("/") + "/" + file_name
        return str(Path(self.base) / file_name)

    async def load(self, country_code: str) -> dict:
        """Load a country's rule document, serving repeats from the cache.

        Returns:
            The parsed document (a dict with at least a ``years`` mapping)

        Raises:
            RuleNotFound: Unknown country, transport error (cause=network),
                non-success status (cause=http), bad JSON (cause=invalid_json)
                or a document without years (cause=missing_years)
        """
        code = str(country_code or "").upper()
        if not code:
            raise RuleNotFound(details={"countryCode": code})

        if code in self._cache:
            logger.debug(f"rules cache hit: {code}")
            return self._cache[code]

        # Concurrent callers for the same code share one fetch
        pending = self._pending.get(code)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch_document(code))
            self._pending[code] = pending
            pending.add_done_callback(lambda _task: self._pending.pop(code, None))
        return await pending

    async def _fetch_document(self, code: str) -> dict:
        location = self.build_location(code)
        logger.debug(f"fetching rules for {code} from {location}")

        try:
            status, body = await self._fetch(location)
        except (requests.RequestException, OSError) as e:
            raise RuleNotFound(details={
                "countryCode": code,
                "cause": "network",
                "originalError": str(e),
            }) from e

        if not 200 <= status < 300:
            raise RuleNotFound(details={
                "countryCode": code,
                "cause": "http",
                "status": status,
            })

        try:
            document = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise RuleNotFound(details={
                "countryCode": code,
                "cause": "invalid_json",
                "originalError": str(e),
            }) from e

        try:
            CountryRuleDocument.model_validate(document)
        except ValidationError as e:
            raise RuleNotFound(details={
                "countryCode": code,
                "cause": "missing_years",
                "originalError": str(e),
            }) from e

        if self.lint_on_load:
            from .lint import lint_tax_classes, report_findings
            report_findings(lint_tax_classes(document, country_code=code), strict=self.strict)

        return self._cache.setdefault(code, document)
