"""Image resolution for POIs (Wikimedia Commons + Wikidata).

Fallback chain, first hit wins:
1. Direct ``image`` tag on the POI (URL, ``File:`` reference or bare file name)
2. ``wikimedia_commons`` file tag -> Commons file-serving URL
3. Wikidata P18 (image) claim for the POI's ``wikidata`` id
4. Placeholder

Wikidata lookups go through one FIFO queue drained by a single worker
task that sleeps a fixed delay between requests, so at most one lookup is
in flight no matter how many POIs ask at once. Ids whose lookup found no
image are remembered and answered with the placeholder without another
request.

The queue owns its state (worker, client, caches); create it once, call
``start()``, share it, and ``close()`` it on shutdown.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from poiroute.core.config import settings
from poiroute.models import POI

logger = logging.getLogger(__name__)

COMMONS_FILE_PATH_URL = "https://commons.wikimedia.org/wiki/Special:FilePath/"
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".tif", ".tiff")


def commons_file_url(file_name: str) -> Optional[str]:
    """Canonical file-serving URL for a Commons file reference."""
    name = file_name.strip()
    if name.lower().startswith("file:"):
        name = name[5:].strip()
    if not name:
        return None
    return COMMONS_FILE_PATH_URL + quote(name.replace(" ", "_"))


def is_bare_image_file(reference: str) -> bool:
    """True for a plain file name such as ``Gate.jpg`` (no scheme, no prefix)."""
    name = reference.strip()
    if "/" in name or ":" in name:
        return False
    return name.lower().endswith(IMAGE_EXTENSIONS)


class ImageResolutionQueue:
    """Resolves a display image per POI; never raises to the caller."""

    WIKIDATA_API = settings.WIKIDATA_API_URL

    HEADERS = {
        "User-Agent": settings.USER_AGENT,
        "Accept": "application/json",
    }

    def __init__(
        self,
        placeholder_url: str = settings.IMAGE_PLACEHOLDER_URL,
        delay_seconds: float = settings.IMAGE_LOOKUP_DELAY_SECONDS,
        wikidata_url: str | None = None,
        timeout: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._placeholder = placeholder_url
        self._delay = delay_seconds
        self._wikidata_url = wikidata_url or self.WIKIDATA_API
        self._timeout = timeout
        self._transport = transport

        self._client: httpx.AsyncClient | None = None
        self._queue: asyncio.Queue[str] | None = None
        self._worker: asyncio.Task | None = None
        # wikidata id -> future shared by every caller waiting on that id
        self._pending: dict[str, asyncio.Future] = {}
        self._resolved: dict[str, str] = {}
        self._negative: set[str] = set()

    @property
    def placeholder_url(self) -> str:
        return self._placeholder

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def is_known_missing(self, wikidata_id: str) -> bool:
        return wikidata_id in self._negative

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self.HEADERS,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def start(self) -> None:
        if self.is_running:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(self._queue), name="image-resolution-worker")
        logger.info("[IMAGE] Resolution worker started")

    async def close(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        # Anyone still waiting gets the placeholder
        for future in self._pending.values():
            if not future.done():
                future.set_result(None)
        self._pending.clear()
        self._queue = None

        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
        logger.info("[IMAGE] Resolution worker stopped")

    async def __aenter__(self) -> "ImageResolutionQueue":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def resolve_image(self, poi: POI) -> str:
        """Image URL for ``poi``; the placeholder on any failure.

        A real image is also memoized on the POI. Writing it back into the
        session cache is the caller's job.
        """
        if poi.resolved_image_url:
            return poi.resolved_image_url

        try:
            url = self._local_image(poi)
            if url is None and poi.wikidata_id:
                url = await self._lookup(poi.wikidata_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info(f"[IMAGE] {poi.id}: resolution failed: {type(e).__name__}: {e}")
            url = None

        if not url:
            return self._placeholder

        poi.set_resolved_image_url(url)
        return url

    def _local_image(self, poi: POI) -> Optional[str]:
        """Steps 1 and 2: references already present in the tags."""
        reference = poi.image_reference
        if reference:
            if reference.startswith(("http://", "https://")):
                return reference
            if reference.lower().startswith("file:") or is_bare_image_file(reference):
                return commons_file_url(reference)

        if poi.commons_file and poi.commons_file.lower().startswith("file:"):
            return commons_file_url(poi.commons_file)
        return None

    async def _lookup(self, wikidata_id: str) -> Optional[str]:
        """Step 3: queued Wikidata lookup, short-circuited by the caches."""
        if wikidata_id in self._resolved:
            return self._resolved[wikidata_id]
        if wikidata_id in self._negative:
            return None
        if not self.is_running or self._queue is None:
            raise RuntimeError("image resolution queue is not started")

        future = self._pending.get(wikidata_id)
        if future is None:
            future = asyncio.get_running_loop().create_future()
            self._pending[wikidata_id] = future
            self._queue.put_nowait(wikidata_id)

        # Shielded: a caller giving up must not cancel the shared lookup
        return await asyncio.shield(future)

    async def _run(self, queue: "asyncio.Queue[str]") -> None:
        while True:
            wikidata_id = await queue.get()
            url: Optional[str] = None
            try:
                url = await self._fetch_wikidata_image(wikidata_id)
                if url:
                    self._resolved[wikidata_id] = url
                else:
                    self._negative.add(wikidata_id)
                    logger.info(f"[IMAGE] {wikidata_id}: no image on Wikidata")
            except (httpx.HTTPError, ValueError) as e:
                # Transport problems are not proof of absence, so no negative entry
                logger.info(f"[IMAGE] {wikidata_id}: lookup error: {type(e).__name__}: {e}")
            except Exception:
                # One bad lookup must not stop the worker for everyone else
                logger.exception(f"[IMAGE] {wikidata_id}: unexpected lookup failure")
            finally:
                future = self._pending.pop(wikidata_id, None)
                if future is not None and not future.done():
                    future.set_result(url)
                queue.task_done()

            await asyncio.sleep(self._delay)

    async def _fetch_wikidata_image(self, wikidata_id: str) -> Optional[str]:
        """Single-property (P18) lookup for one entity.

        Raises:
            httpx.HTTPError: transport failure or non-2xx status.
            ValueError: the body is not JSON or not shaped like a
                ``wbgetclaims`` answer.
        """
        params = {
            "action": "wbgetclaims",
            "entity": wikidata_id,
            "property": "P18",
            "format": "json",
        }
        response = await self._get_client().get(self._wikidata_url, params=params)
        response.raise_for_status()
        data = response.json()

        if not isinstance(data, dict):
            raise ValueError("Wikidata answer is not a JSON object")
        if data.get("error"):
            return None
        claims = data.get("claims") or {}
        if not isinstance(claims, dict):
            raise ValueError("Wikidata claims is not an object")
        statements = claims.get("P18") or []
        if not isinstance(statements, list):
            raise ValueError("Wikidata P18 claims is not a list")

        for claim in statements:
            if not isinstance(claim, dict):
                continue
            value = ((claim.get("mainsnak") or {}).get("datavalue") or {}).get("value")
            if isinstance(value, str) and value:
                return commons_file_url(value)
        return None
