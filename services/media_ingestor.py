"""
Media ingestion for upload fields.

Turns URL-valued cells into media document ids:
- dedup through a run-scoped MediaCache, then through the store (URL match)
- download with requests, accept image/* responses only
- persist as a new media document, retrying transient failures

Failures never escape this module: an unresolvable URL becomes None.
"""

import json
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import requests
import structlog

from config import settings
from exceptions import (
    MediaFetchError,
    MediaWriteConflictError,
    StoreWriteConflictError,
)
from services.document_store import DocumentStore, MediaFile

logger = structlog.get_logger(__name__)

NETWORK_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)
CONFLICT_BACKOFF_CAP_SECONDS = 10.0


class MediaCache:
    """
    URL → resolved id for one import run.

    Concurrent callers asking for the same key wait on the first caller's
    result instead of downloading again. A None result is cached too, so a
    failed URL is not retried by later rows of the same run.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[tuple[str, str], Future] = {}

    def get_or_resolve(
        self,
        collection: str,
        url: str,
        resolver: Callable[[], Optional[str]]
    ) -> Optional[str]:
        key = (collection, url)
        with self._lock:
            future = self._entries.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._entries[key] = future

        if not owner:
            logger.debug("media_cache_hit", url=url, collection=collection)
            return future.result()

        try:
            future.set_result(resolver())
        except BaseException as e:
            future.set_exception(e)
            raise
        return future.result()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def normalize_urls(value: Any) -> list[str]:
    """
    Accept a list, a JSON-encoded list/string, or a comma-separated string.
    """
    if value is None or value == "":
        return []

    if isinstance(value, (list, tuple)):
        items = list(value)
    elif isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            parsed = None

        if isinstance(parsed, list):
            items = parsed
        elif isinstance(parsed, str):
            items = [parsed]
        else:
            items = value.split(",")
    else:
        items = [value]

    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def is_valid_url(url: str) -> bool:
    """Structural check only; no extension allow-list."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def filename_from_url(url: str, default: str = "image.jpg") -> str:
    """Last path segment without query string, or the default."""
    try:
        path = urlparse(url).path
    except ValueError:
        return default
    filename = path.split("/")[-1].split("?")[0]
    return filename or default


class MediaIngestor:
    """
    Resolves upload field values into media document ids.

    One instance serves one import run and shares its MediaCache with every
    row. The concurrency bound applies per resolve() call.
    """

    def __init__(
        self,
        store: DocumentStore,
        cache: Optional[MediaCache] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        batch_size: Optional[int] = None,
        batch_pause: Optional[float] = None,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        url_field: Optional[str] = None,
        identity_field: Optional[str] = None,
        log=None
    ):
        self.store = store
        self.cache = cache or MediaCache()
        self.session = session or requests.Session()
        self.sleep = sleep
        self.batch_size = batch_size or settings.media_batch_size
        self.batch_pause = settings.media_batch_pause_seconds if batch_pause is None else batch_pause
        self.max_attempts = max_attempts or settings.media_max_attempts
        self.timeout = timeout or settings.media_fetch_timeout_seconds
        self.url_field = url_field or settings.media_url_field
        self.identity_field = identity_field or settings.identity_field
        self.log = log or logger

    def resolve(self, value: Any, collection: str, has_many: bool = False):
        """
        Resolve an upload cell.

        Returns:
            has_many: list of ids (failed URLs dropped)
            single: id of the first URL, or None
        """
        urls = normalize_urls(value)

        if not has_many:
            if not urls:
                return None
            return self._resolve_url(urls[0], collection)

        if not urls:
            return []

        resolved: list[str] = []
        for start in range(0, len(urls), self.batch_size):
            batch = urls[start:start + self.batch_size]
            with ThreadPoolExecutor(max_workers=self.batch_size) as pool:
                results = list(pool.map(lambda url: self._resolve_url(url, collection), batch))
            resolved.extend(media_id for media_id in results if media_id)

            # Spread store writes between batches
            if start + self.batch_size < len(urls):
                self.sleep(self.batch_pause)

        self.log.info(
            "media_batch_resolved",
            collection=collection,
            requested=len(urls),
            resolved=len(resolved)
        )
        return resolved

    def _resolve_url(self, url: str, collection: str) -> Optional[str]:
        if not is_valid_url(url):
            self.log.warning("media_url_invalid", url=url)
            return None
        return self.cache.get_or_resolve(collection, url, lambda: self._ingest(url, collection))

    # ===================
    # SINGLE URL
    # ===================

    def _ingest(self, url: str, collection: str) -> Optional[str]:
        for attempt in range(1, self.max_attempts + 1):
            is_last_attempt = attempt == self.max_attempts
            try:
                return self._ingest_once(url, collection)

            except MediaFetchError as e:
                self.log.warning(
                    "media_fetch_failed",
                    url=url,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=e.message
                )
                if is_last_attempt:
                    break
                self.sleep(1.0 * attempt)

            except StoreWriteConflictError as e:
                self.log.warning(
                    "media_write_conflict",
                    url=url,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=e.message
                )
                if is_last_attempt:
                    break
                self.sleep(min(1.0 * 2 ** (attempt - 1), CONFLICT_BACKOFF_CAP_SECONDS))

            except Exception as e:
                self.log.error(
                    "media_ingest_failed",
                    url=url,
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__
                )
                return None

        self.log.warning("media_ingest_gave_up", url=url, attempts=self.max_attempts)
        return None

    def _ingest_once(self, url: str, collection: str) -> Optional[str]:
        existing = self.store.find(collection, {self.url_field: url}, limit=1)
        if existing:
            self.log.debug("media_reused", url=url, id=existing[0].get(self.identity_field))
            return str(existing[0][self.identity_field])

        try:
            response = self.session.get(url, timeout=self.timeout)
        except NETWORK_ERRORS as e:
            raise MediaFetchError(url, str(e)) from e

        if not response.ok:
            self.log.warning("media_download_rejected", url=url, status=response.status_code)
            return None

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            self.log.warning("media_not_an_image", url=url, content_type=content_type)
            return None

        filename = filename_from_url(url, settings.media_default_filename)
        file = MediaFile(name=filename, mimetype=content_type, data=response.content)

        try:
            document = self.store.create_media(
                collection,
                {"alt": filename, self.url_field: url},
                file
            )
        except StoreWriteConflictError as e:
            raise MediaWriteConflictError(url, e.message) from e

        self.log.info("media_created", url=url, id=document.get(self.identity_field), size_bytes=file.size)
        return str(document[self.identity_field])
