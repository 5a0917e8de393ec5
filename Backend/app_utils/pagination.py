"""
Catalog pagination.

The catalog is offset paginated: GET {url}?limit=N&offset=K returns
{"results": [...]}. A page shorter than N means there is nothing left.
"""
import logging
import threading
from typing import Any, Dict, List, Optional

import requests

from app_utils.constants import CATALOG_MAX_PAGES, CATALOG_TIMEOUT
from app_utils.errors import FetchCancelled, FetchFailed

logger = logging.getLogger(__name__)


def fetch_page(http, base_url: str, limit: int, offset: int, timeout: float = CATALOG_TIMEOUT) -> List[Dict[str, Any]]:
    """Fetch one page of raw records, raising FetchFailed on any transport or payload problem."""
    params = {"limit": limit, "offset": offset}
    try:
        res = http.get(base_url, params=params, timeout=timeout)
        res.raise_for_status()
        data = res.json()
    except (requests.RequestException, ValueError) as e:
        raise FetchFailed(f"Catalog request failed at offset {offset}: {e}", offset=offset) from e

    results = data.get("results") if isinstance(data, dict) else None
    if not isinstance(results, list):
        raise FetchFailed(f"Catalog response at offset {offset} has no 'results' list", offset=offset)
    return results


def fetch_all(
    base_url: str,
    page_size: int,
    http=None,
    max_pages: int = CATALOG_MAX_PAGES,
    cancel_event: Optional[threading.Event] = None,
    timeout: float = CATALOG_TIMEOUT,
) -> List[Dict[str, Any]]:
    """
    Fetch every record from the catalog, one page after another.

    - Stops on the first page holding fewer than page_size records. A final
      full page costs one extra request that comes back empty.
    - Any failing page aborts the whole fetch with FetchFailed; records
      gathered so far are dropped.
    - More than max_pages full pages is treated as a misbehaving endpoint.
    - cancel_event is checked before each request.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    owns_session = http is None
    if owns_session:
        http = requests.Session()

    records: List[Dict[str, Any]] = []
    offset = 0
    pages = 0
    try:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise FetchCancelled(f"Fetch cancelled after {pages} page(s)")
            if pages >= max_pages:
                raise FetchFailed(f"Catalog returned more than {max_pages} full pages", offset=offset)

            page = fetch_page(http, base_url, page_size, offset, timeout=timeout)
            pages += 1
            records.extend(page)
            logger.debug("Fetched page %d (offset=%d, %d records)", pages, offset, len(page))

            if len(page) < page_size:
                break
            offset += page_size
    finally:
        if owns_session:
            http.close()

    logger.info("Fetched %d records in %d page(s) from %s", len(records), pages, base_url)
    return records
