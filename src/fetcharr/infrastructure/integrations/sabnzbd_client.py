"""SABnzbd download client adapter.

Everything goes through `GET {url}/api?mode=...&output=json&apikey=...`.
A transfer lives in the QUEUE while downloading and moves to HISTORY once
SABnzbd is done with it (including post-processing), so poll_status has to
look in both places.
"""

import logging
from typing import Any

import httpx

from fetcharr.config import DownloadClientConfig
from fetcharr.domain.entities import ClientProgress, ClientState
from fetcharr.domain.exceptions import DownloadClientUnavailableError
from fetcharr.domain.ports import IDownloadClient
from fetcharr.domain.value_objects import Protocol
from fetcharr.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

_MB = 1024 * 1024

# Hey future me - SABnzbd has LOTS of states. Queue states map to QUEUED or
# DOWNLOADING. Once a job sits in HISTORY all bytes are in, and everything that
# is not "Completed" or "Failed" there is post-processing (verify, repair,
# unpack, move, script). That can take ages on a big par2 repair without
# remaining size ever moving, so it gets its own state and never counts as a stall.
QUEUE_STATUS_MAP = {
    "Queued": ClientState.QUEUED,
    "Grabbing": ClientState.QUEUED,
    "Fetching": ClientState.QUEUED,
    "Propagating": ClientState.QUEUED,
    "Downloading": ClientState.DOWNLOADING,
    "Checking": ClientState.DOWNLOADING,
    "Paused": ClientState.PAUSED,
}

HISTORY_STATUS_MAP = {
    "Completed": ClientState.COMPLETED,
    "Failed": ClientState.FAILED,
    "Queued": ClientState.POST_PROCESSING,
    "QuickCheck": ClientState.POST_PROCESSING,
    "Verifying": ClientState.POST_PROCESSING,
    "Repairing": ClientState.POST_PROCESSING,
    "Fetching": ClientState.POST_PROCESSING,
    "Extracting": ClientState.POST_PROCESSING,
    "Moving": ClientState.POST_PROCESSING,
    "Running": ClientState.POST_PROCESSING,
}


def _timeleft_seconds(value: str | None) -> int | None:
    """SABnzbd timeleft is "H:MM:SS" (hours may exceed 24) or "D:HH:MM:SS"."""
    if not value:
        return None
    try:
        parts = [int(p) for p in value.split(":")]
    except ValueError:
        return None
    seconds = 0
    for part, factor in zip(reversed(parts), (1, 60, 3600, 86400), strict=False):
        seconds += part * factor
    return seconds


def _mb_to_bytes(value: Any) -> int:
    try:
        return int(float(value) * _MB)
    except (TypeError, ValueError):
        return 0


class SabnzbdClient(IDownloadClient):
    """HTTP client for one SABnzbd instance."""

    def __init__(
        self,
        config: DownloadClientConfig,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._limiter = RateLimiter.for_download_client(config.name)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def protocol(self) -> Protocol:
        return Protocol.USENET

    @property
    def priority(self) -> int:
        return self.config.priority

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def tags(self) -> frozenset[str]:
        return frozenset(self.config.tags)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.url.rstrip("/"),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _call(self, mode: str, **params: Any) -> dict[str, Any]:
        query: dict[str, Any] = {"mode": mode, "output": "json", **params}
        if self.config.api_key:
            query["apikey"] = self.config.api_key
        client = await self._get_client()

        async with self._limiter:
            try:
                response = await client.get("/api", params=query)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise DownloadClientUnavailableError(
                    f"SABnzbd '{self.name}' returned HTTP {e.response.status_code}",
                    service=self.name,
                ) from e
            except httpx.HTTPError as e:
                raise DownloadClientUnavailableError(
                    f"SABnzbd '{self.name}' unreachable: {e}", service=self.name
                ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise DownloadClientUnavailableError(
                f"SABnzbd '{self.name}' returned invalid JSON", service=self.name
            ) from e
        # Errors come back as HTTP 200 with {"status": false, "error": "..."}
        if isinstance(data, dict) and data.get("status") is False:
            raise DownloadClientUnavailableError(
                f"SABnzbd '{self.name}' refused {mode}: {data.get('error', 'unknown error')}",
                service=self.name,
            )
        return data if isinstance(data, dict) else {}

    async def submit(self, payload_ref: str, title: str, category: str | None = None) -> str:
        params: dict[str, Any] = {"name": payload_ref, "nzbname": title}
        cat = category or self.config.category
        if cat:
            params["cat"] = cat
        data = await self._call("addurl", **params)

        nzo_ids = data.get("nzo_ids") or []
        if not nzo_ids:
            raise DownloadClientUnavailableError(
                f"SABnzbd '{self.name}' accepted '{title}' but returned no id",
                service=self.name,
            )
        logger.info("Submitted '%s' to SABnzbd %s as %s", title, self.name, nzo_ids[0])
        return str(nzo_ids[0])

    async def poll_status(self, client_id: str) -> ClientProgress:
        queue = await self._call("queue", nzo_ids=client_id)
        for slot in (queue.get("queue") or {}).get("slots", []):
            if slot.get("nzo_id") == client_id:
                return self._progress_from_queue_slot(slot)

        history = await self._call("history", nzo_ids=client_id)
        for slot in (history.get("history") or {}).get("slots", []):
            if slot.get("nzo_id") == client_id:
                return self._progress_from_history_slot(slot)

        return ClientProgress(state=ClientState.MISSING)

    @staticmethod
    def _progress_from_queue_slot(slot: dict[str, Any]) -> ClientProgress:
        state = QUEUE_STATUS_MAP.get(slot.get("status", ""), ClientState.DOWNLOADING)
        labels = [label for label in slot.get("labels", []) if label]
        return ClientProgress(
            state=state,
            total_size=_mb_to_bytes(slot.get("mb")),
            remaining_size=_mb_to_bytes(slot.get("mbleft")),
            eta_seconds=_timeleft_seconds(slot.get("timeleft")),
            warning_message=", ".join(labels) if labels else None,
        )

    @staticmethod
    def _progress_from_history_slot(slot: dict[str, Any]) -> ClientProgress:
        state = HISTORY_STATUS_MAP.get(slot.get("status", ""), ClientState.POST_PROCESSING)
        total = int(slot.get("bytes") or 0)
        return ClientProgress(
            state=state,
            total_size=total,
            remaining_size=0,
            output_path=slot.get("storage") or None,
            error_message=(slot.get("fail_message") or None) if state == ClientState.FAILED else None,
        )

    async def remove(self, client_id: str, delete_data: bool = True) -> None:
        del_files = 1 if delete_data else 0
        # We don't know which list it is in, delete from both. Unknown ids are a no-op.
        await self._call("queue", name="delete", value=client_id, del_files=del_files)
        await self._call("history", name="delete", value=client_id, del_files=del_files)

    async def pause(self, client_id: str) -> None:
        await self._call("queue", name="pause", value=client_id)

    async def resume(self, client_id: str) -> None:
        await self._call("queue", name="resume", value=client_id)


__all__ = ["HISTORY_STATUS_MAP", "QUEUE_STATUS_MAP", "SabnzbdClient"]
