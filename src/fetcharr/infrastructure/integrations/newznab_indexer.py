"""Newznab / Torznab indexer adapter.

Both APIs answer `GET {url}/api?t=search&q=...&apikey=...` with an RSS 2.0
document. Extra fields (size, seeders, ...) come as namespaced attribute
elements:

    <newznab:attr name="size" value="1503238553"/>
    <torznab:attr name="seeders" value="42"/>

Error responses are an XML `<error code=".." description=".."/>` root with
HTTP 200, so status code alone is not enough.
"""

import logging
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any
from xml.etree import ElementTree as ET

import httpx

from fetcharr.config import IndexerConfig
from fetcharr.domain.exceptions import (
    ExternalServiceError,
    IndexerUnavailableError,
    RateLimitExceededError,
)
from fetcharr.domain.ports import IIndexer, IndexerResult
from fetcharr.domain.value_objects import ContentKind, Protocol
from fetcharr.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

_ATTR_NAMESPACES = (
    "http://www.newznab.com/DTD/2010/feeds/attributes/",
    "http://torznab.com/schemas/2015/feed",
)

# Newznab error codes 100-199 are account/credential problems, retrying won't help.
# 500 is "request limit reached" which behaves like a 429.
_REQUEST_LIMIT_CODE = 500


def _parse_pub_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _int_or_none(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        # "inf" parses as a float but has no int; "nan" raises ValueError
        return None


class NewznabIndexer(IIndexer):
    """HTTP adapter for one Newznab (usenet) or Torznab (torrent) endpoint."""

    def __init__(
        self,
        config: IndexerConfig,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._limiter = RateLimiter.for_indexer(
            config.name, requests_per_second=config.requests_per_second
        )

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def protocol(self) -> Protocol:
        return Protocol(self.config.protocol)

    @property
    def priority(self) -> int:
        return self.config.priority

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def supports_rss(self) -> bool:
        return self.config.supports_rss

    @property
    def content_kinds(self) -> frozenset[ContentKind]:
        return frozenset(ContentKind(kind) for kind in self.config.content_kinds)

    @property
    def tags(self) -> frozenset[str]:
        return frozenset(self.config.tags)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.url.rstrip("/"),
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/rss+xml, application/xml"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def search(self, query: str, categories: tuple[int, ...] = ()) -> list[IndexerResult]:
        params: dict[str, Any] = {"t": "search", "q": query, "extended": 1}
        cats = categories or tuple(self.config.categories)
        if cats:
            params["cat"] = ",".join(str(c) for c in cats)
        return await self._query(params)

    async def fetch_rss(self) -> list[IndexerResult]:
        # A search without q returns the newest releases - that IS the feed
        params: dict[str, Any] = {"t": "search", "extended": 1}
        if self.config.categories:
            params["cat"] = ",".join(str(c) for c in self.config.categories)
        return await self._query(params)

    # Hey future me - every failure path ends in a TransientExternalError subclass
    # EXCEPT bad credentials (ExternalServiceError): retrying a wrong API key just
    # burns the daily request quota.
    async def _query(self, params: dict[str, Any]) -> list[IndexerResult]:
        if self.config.api_key:
            params["apikey"] = self.config.api_key
        client = await self._get_client()

        async with self._limiter:
            try:
                response = await client.get("/api", params=params)
            except httpx.TimeoutException as e:
                raise IndexerUnavailableError(
                    f"Indexer '{self.name}' timed out", service=self.name
                ) from e
            except httpx.TransportError as e:
                raise IndexerUnavailableError(
                    f"Indexer '{self.name}' unreachable: {e}", service=self.name
                ) from e

            if response.status_code == 429:
                retry_after = _int_or_none(response.headers.get("Retry-After"))
                await self._limiter.handle_rate_limit_response(retry_after)
                raise RateLimitExceededError(
                    f"Indexer '{self.name}' rate limited us",
                    service=self.name,
                    retry_after=retry_after,
                )
            if response.status_code >= 500:
                raise IndexerUnavailableError(
                    f"Indexer '{self.name}' returned HTTP {response.status_code}",
                    service=self.name,
                )
            if response.status_code >= 400:
                raise ExternalServiceError(
                    f"Indexer '{self.name}' rejected request: HTTP {response.status_code}",
                    service=self.name,
                )

        return self._parse_feed(response.text)

    def _parse_feed(self, body: str) -> list[IndexerResult]:
        try:
            root = ET.fromstring(body)
        except ET.ParseError as e:
            raise IndexerUnavailableError(
                f"Indexer '{self.name}' returned malformed XML: {e}", service=self.name
            ) from e

        if root.tag == "error":
            code = _int_or_none(root.get("code")) or 0
            description = root.get("description", "unknown error")
            if code == _REQUEST_LIMIT_CODE:
                raise RateLimitExceededError(
                    f"Indexer '{self.name}': {description}", service=self.name
                )
            raise ExternalServiceError(
                f"Indexer '{self.name}' error {code}: {description}", service=self.name
            )

        now = datetime.now(UTC)
        results = []
        for item in root.iter("item"):
            result = self._parse_item(item, now)
            if result is not None:
                results.append(result)

        logger.debug("Indexer %s returned %d result(s)", self.name, len(results))
        return results

    def _parse_item(self, item: ET.Element, now: datetime) -> IndexerResult | None:
        title = (item.findtext("title") or "").strip()
        attrs = self._attributes(item)

        link = item.findtext("link")
        enclosure = item.find("enclosure")
        if not link and enclosure is not None:
            link = enclosure.get("url")
        if not title or not link:
            return None

        size = _int_or_none(attrs.get("size"))
        if size is None:
            size = _int_or_none(item.findtext("size"))
        if size is None and enclosure is not None:
            size = _int_or_none(enclosure.get("length"))

        publish_date = _parse_pub_date(item.findtext("pubDate"))
        age_days = 0.0
        if publish_date is not None:
            age_days = max(0.0, (now - publish_date).total_seconds() / 86400)

        seeders = None
        if self.protocol == Protocol.TORRENT:
            seeders = _int_or_none(attrs.get("seeders"))

        return IndexerResult(
            title=title,
            payload_ref=link.strip(),
            indexer=self.name,
            protocol=self.protocol,
            indexer_priority=self.priority,
            age_days=age_days,
            size=size or 0,
            seeders=seeders,
            publish_date=publish_date,
            info_url=item.findtext("comments") or item.findtext("guid"),
        )

    @staticmethod
    def _attributes(item: ET.Element) -> dict[str, str]:
        attrs: dict[str, str] = {}
        for namespace in _ATTR_NAMESPACES:
            for attr in item.findall(f"{{{namespace}}}attr"):
                name = attr.get("name")
                value = attr.get("value")
                if name and value is not None:
                    attrs.setdefault(name, value)
        return attrs


__all__ = ["NewznabIndexer"]
