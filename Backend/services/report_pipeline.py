"""
Map sessions: one loaded report collection per map view.

A session fetches and normalizes the catalog once, then answers filter and
viewport events against that in-memory collection. Viewport passes carry a
generation number; a pass that finishes after a newer one has started is
thrown away instead of published.
Publishing a new collection (or failing, or closing) also advances the
generation, so a pass computed against the previous collection is dropped.
"""
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from app_utils.constants import (
    CATALOG_MAX_PAGES,
    CATALOG_PAGE_SIZE,
    CATALOG_URL,
    CLUSTER_DISTANCE,
    SESSION_IDLE_TIMEOUT,
    SESSION_MAX,
)
from app_utils.errors import FetchCancelled, PipelineError
from app_utils.filtering import FeatureView, FilterPredicate, apply_filter
from app_utils.geo import Cluster, cluster_features
from app_utils.normalize import FeatureCollection, normalize
from app_utils.pagination import fetch_all
from app_utils.render import RenderPrimitive, build_primitives, resolve_click

logger = logging.getLogger(__name__)

# ---------------- Session states ----------------
LOADING = "loading"
READY = "ready"
FAILED = "failed"
CLOSED = "closed"


class SessionNotReady(Exception):
    def __init__(self, state: str):
        super().__init__(f"Session is {state}")
        self.state = state


@dataclass(frozen=True)
class RenderPass:
    generation: int
    viewport: object
    distance: float
    clusters: Tuple[Cluster, ...]
    primitives: Tuple[RenderPrimitive, ...]


class MapSession:
    def __init__(
        self,
        session_id: str,
        catalog_url: str,
        page_size: int = CATALOG_PAGE_SIZE,
        http=None,
        max_pages: int = CATALOG_MAX_PAGES,
    ):
        self.session_id = session_id
        self.catalog_url = catalog_url
        self.page_size = page_size
        self.max_pages = max_pages
        self._http = http

        self.state = LOADING
        self.error: Optional[str] = None
        self.collection = FeatureCollection()
        self.predicate = FilterPredicate()

        self._views: Tuple[FeatureView, ...] = ()
        self._render: Optional[RenderPass] = None
        self._last_viewport = None
        self._last_distance = CLUSTER_DISTANCE
        self._generation = 0
        self._lock = threading.Lock()
        self._cancel = threading.Event()

    # ---------- Loading ----------
    def load(self) -> str:
        """
        Fetch and normalize the whole catalog, then publish it.
        On failure the session holds no data and reports FAILED with a message.
        """
        if self._cancel.is_set():
            return self.state

        with self._lock:
            self.state = LOADING
            self.error = None

        try:
            raw = fetch_all(
                self.catalog_url,
                self.page_size,
                http=self._http,
                max_pages=self.max_pages,
                cancel_event=self._cancel,
            )
            collection = normalize(raw)
        except FetchCancelled:
            logger.info("Session %s closed during fetch; nothing published", self.session_id)
            return self.state
        except PipelineError as e:
            logger.warning("Session %s failed to load reports: %s", self.session_id, e)
            with self._lock:
                self.state = FAILED
                self.error = str(e)
                self.collection = FeatureCollection()
                self._views = ()
                self._render = None
                self._generation += 1
            return self.state

        with self._lock:
            if self._cancel.is_set():
                return self.state
            self.collection = collection
            self._views = apply_filter(collection.features, self.predicate)
            self._render = None
            self._generation += 1
            self.state = READY

        if not collection:
            logger.info("Session %s loaded an empty dataset", self.session_id)
        return self.state

    def close(self) -> None:
        self._cancel.set()
        with self._lock:
            self.state = CLOSED
            self.collection = FeatureCollection()
            self._views = ()
            self._render = None
            self._generation += 1

    def _require_ready(self) -> None:
        if self.state != READY:
            raise SessionNotReady(self.state)

    # ---------- Filtering ----------
    @property
    def views(self) -> Tuple[FeatureView, ...]:
        return self._views

    def set_filter(self, predicate: FilterPredicate) -> Tuple[FeatureView, ...]:
        """Recompute visibility; re-cluster the last viewport if there is one."""
        while True:
            with self._lock:
                self._require_ready()
                collection = self.collection

            views = apply_filter(collection.features, predicate)

            with self._lock:
                if self.collection is not collection:
                    logger.debug("Collection of session %s replaced during filtering; redoing", self.session_id)
                    continue
                self._require_ready()
                self.predicate = predicate
                self._views = views
                viewport, distance = self._last_viewport, self._last_distance
                break

        if viewport is not None:
            self.update_viewport(viewport, distance)
        return views

    # ---------- Viewport ----------
    @property
    def current_render(self) -> Optional[RenderPass]:
        return self._render

    def update_viewport(self, viewport, distance: float = CLUSTER_DISTANCE) -> Optional[RenderPass]:
        """
        Rebuild clusters for a viewport. Returns the published pass, or None if
        a newer viewport event or a reload happened while this one was being
        computed.
        """
        self._require_ready()
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._last_viewport, self._last_distance = viewport, distance
            views = self._views
            collection = self.collection

        clusters = cluster_features(views, viewport.project, distance)
        primitives = build_primitives(clusters, collection.get)

        with self._lock:
            if generation != self._generation or self.state != READY:
                logger.debug("Discarding stale cluster pass %d for session %s", generation, self.session_id)
                return None
            self._render = RenderPass(
                generation=generation,
                viewport=viewport,
                distance=distance,
                clusters=clusters,
                primitives=primitives,
            )
            return self._render

    def click(self, x: float, y: float) -> Optional[RenderPrimitive]:
        self._require_ready()
        render = self._render
        if render is None:
            return None
        return resolve_click(render.primitives, x, y)

    def summary(self) -> dict:
        visible = sum(1 for v in self._views if v.visible)
        return {
            "session_id": self.session_id,
            "state": self.state,
            "error": self.error,
            "feature_count": len(self.collection),
            "visible_count": visible,
            "malformed_count": self.collection.malformed_count,
            "missing_photo_count": self.collection.missing_photo_count,
            "filter": {"category": self.predicate.category, "keyword": self.predicate.keyword},
        }


class SessionRegistry:
    """
    Live map sessions keyed by id.

    Sessions idle for longer than `idle_timeout` seconds are closed and
    dropped, and at most `max_sessions` are kept: creating one more evicts
    the least recently used. Both sweeps run on `create` and `get`, so a
    client that never sends DELETE does not pin its collection in memory.
    """

    def __init__(
        self,
        catalog_url: Optional[str] = CATALOG_URL,
        page_size: int = CATALOG_PAGE_SIZE,
        http=None,
        max_pages: int = CATALOG_MAX_PAGES,
        max_sessions: int = SESSION_MAX,
        idle_timeout: float = SESSION_IDLE_TIMEOUT,
        clock=time.monotonic,
    ):
        self.catalog_url = catalog_url
        self.page_size = page_size
        self.max_pages = max_pages
        self.max_sessions = max_sessions
        self.idle_timeout = idle_timeout
        self._http = http
        self._clock = clock
        self._sessions: Dict[str, MapSession] = {}
        self._last_access: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _pop_expired(self, now: float, room_for: int = 0) -> List[MapSession]:
        # caller holds self._lock
        expired = [
            sid for sid, seen in self._last_access.items()
            if now - seen > self.idle_timeout
        ]
        by_age = sorted(
            (sid for sid in self._last_access if sid not in expired),
            key=self._last_access.get,
        )
        overflow = len(by_age) + room_for - self.max_sessions
        if overflow > 0:
            expired.extend(by_age[:overflow])

        evicted = []
        for sid in expired:
            self._last_access.pop(sid, None)
            evicted.append(self._sessions.pop(sid))
        return evicted

    def _close_evicted(self, evicted: List[MapSession]) -> None:
        for session in evicted:
            logger.info("Evicting idle map session %s", session.session_id)
            session.close()

    def create(self, load: bool = True) -> MapSession:
        """
        Register a new session. With `load=False` the caller is responsible
        for calling `session.load()`; the session stays LOADING until then
        and can already be looked up or closed by id.
        """
        if not self.catalog_url:
            raise RuntimeError("CATALOG_URL is not set")

        session = MapSession(
            session_id=uuid.uuid4().hex[:8],
            catalog_url=self.catalog_url,
            page_size=self.page_size,
            http=self._http,
            max_pages=self.max_pages,
        )
        with self._lock:
            now = self._clock()
            evicted = self._pop_expired(now, room_for=1)
            self._sessions[session.session_id] = session
            self._last_access[session.session_id] = now
        self._close_evicted(evicted)

        if load:
            session.load()
        return session

    def get(self, session_id: str) -> Optional[MapSession]:
        with self._lock:
            now = self._clock()
            evicted = self._pop_expired(now)
            session = self._sessions.get(session_id)
            if session is not None:
                self._last_access[session_id] = now
        self._close_evicted(evicted)
        return session

    def close(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            self._last_access.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def __len__(self) -> int:
        return len(self._sessions)
