import asyncio
import logging
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional

from pydantic import ValidationError as SchemaError

from practicum.core import events
from practicum.core.events import InvalidationBus
from practicum.core.exceptions import PracticumError
from practicum.core.store import KeyValueStore
from practicum.schemas.notification import (
    NotifiableItem,
    NotificationSummary,
    StreamStatus,
    StreamType,
)
from practicum.schemas.submission import SubmissionKind
from practicum.services.backend.api_client import BackendClient
from practicum.services.notification.read_state import ReadStateRepository
from practicum.services.notification.tracker import NotificationTracker

logger = logging.getLogger(__name__)

STUDENT_STREAMS = (
    StreamType.ANNOUNCEMENT,
    StreamType.TEMPLATE,
    StreamType.COMMENT,
    StreamType.REPORT_VIEW,
)
INSTRUCTOR_STREAMS = (
    StreamType.REQUIREMENT,
    StreamType.REPORT,
)


class StreamSource(NamedTuple):
    collection: str
    timestamp_field: str
    title_field: str


SOURCES = {
    StreamType.ANNOUNCEMENT: StreamSource(events.ANNOUNCEMENTS, "createdAt", "title"),
    StreamType.TEMPLATE: StreamSource(events.REQUIREMENT_TEMPLATES, "createdAt", "title"),
    StreamType.COMMENT: StreamSource(events.REQUIREMENT_COMMENTS, "createdAt", "content"),
    StreamType.REPORT_VIEW: StreamSource(events.REPORT_VIEWS, "createdAt", "reportId"),
    StreamType.REQUIREMENT: StreamSource(events.REQUIREMENTS, "submittedDate", "title"),
    StreamType.REPORT: StreamSource(events.REPORTS, "submittedDate", "title"),
}


def to_item(stream: StreamType, raw: Dict[str, Any]) -> NotifiableItem:
    source = SOURCES[stream]
    return NotifiableItem(
        id=str(raw["id"]),
        created_at=raw.get(source.timestamp_field),
        title=raw.get(source.title_field),
        payload=raw,
    )


def streams_for_role(role: str) -> Iterable[StreamType]:
    return INSTRUCTOR_STREAMS if role == "instructor" else STUDENT_STREAMS


class NotificationCenter:
    """Aggregates every stream of one viewer.

    Each stream is fetched and diffed independently. A failed fetch leaves that
    stream at zero unread with the error kept beside the count; the other
    streams are unaffected. Tab badges, item highlights and the total all come
    from the same tracker computation.

    Every refresh takes a per-stream generation number when it starts; a result
    (or error) from a refresh that has since been superseded is discarded.
    Invalidations only schedule a background refresh, so the publishing
    mutation never waits on notification fetches.
    """

    def __init__(
        self,
        backend: BackendClient,
        store: KeyValueStore,
        bus: Optional[InvalidationBus] = None,
        streams: Iterable[StreamType] = STUDENT_STREAMS,
        prefix: Optional[str] = None,
    ):
        self.backend = backend
        self.repository = ReadStateRepository(store, prefix)
        self.bus = bus
        self.trackers: Dict[StreamType, NotificationTracker] = {
            stream: NotificationTracker(self.repository, stream) for stream in streams
        }
        self.errors: Dict[StreamType, PracticumError] = {}
        self._generations: Dict[StreamType, int] = {stream: 0 for stream in self.trackers}
        self._pending: Dict[StreamType, asyncio.Task] = {}
        self._unsubscribe: List[Callable[[], None]] = []
        if bus is not None:
            for stream in self.trackers:
                self._unsubscribe.append(bus.subscribe(SOURCES[stream].collection, self._on_invalidate))

    @property
    def viewer_id(self) -> Optional[str]:
        tracker = next(iter(self.trackers.values()), None)
        return tracker.viewer_id if tracker else None

    def tracker(self, stream: StreamType) -> NotificationTracker:
        try:
            return self.trackers[stream]
        except KeyError:
            raise PracticumError(f"Stream {stream.value} is not tracked here", code="UNKNOWN_STREAM")

    async def set_viewer(self, viewer_id: Optional[str]) -> None:
        """viewer 전환 시 모든 stream 상태를 새 viewer 의 저장값으로 초기화"""
        self.errors = {}
        for stream in self._generations:
            self._generations[stream] += 1
        await asyncio.gather(*(t.switch_viewer(viewer_id) for t in self.trackers.values()))

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        for task in self._pending.values():
            task.cancel()
        self._pending = {}

    async def _on_invalidate(self, collection: str, entity_id: Optional[str]) -> None:
        for stream in self.trackers:
            if SOURCES[stream].collection == collection:
                self.schedule_refresh(stream)

    def schedule_refresh(self, stream: StreamType) -> asyncio.Task:
        """백그라운드 새로고침 예약 (stream 당 최대 하나)"""
        previous = self._pending.get(stream)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.create_task(self.refresh(stream))
        self._pending[stream] = task
        task.add_done_callback(partial(self._collect, stream))
        return task

    def _collect(self, stream: StreamType, task: asyncio.Task) -> None:
        if self._pending.get(stream) is task:
            del self._pending[stream]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background {stream.value} refresh failed for {self.viewer_id}: {error}")

    async def drain(self) -> None:
        """예약된 새로고침이 모두 끝날 때까지 대기"""
        while True:
            running = [task for task in self._pending.values() if not task.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    async def _fetch(self, stream: StreamType, viewer_id: str) -> List[Dict[str, Any]]:
        last_checked = self.trackers[stream].last_checked_at
        if stream is StreamType.ANNOUNCEMENT:
            return await self.backend.list_announcements(viewer_id)
        if stream is StreamType.TEMPLATE:
            return [t for t in await self.backend.list_template_items() if t.get("isActive") is True]
        if stream is StreamType.COMMENT:
            return await self.backend.list_student_comments(viewer_id, last_checked)
        if stream is StreamType.REPORT_VIEW:
            return await self.backend.list_report_views(viewer_id, last_checked)

        kind = SubmissionKind.REQUIREMENT if stream is StreamType.REQUIREMENT else SubmissionKind.REPORT
        student_ids = set(await self.backend.list_student_ids_by_teacher(viewer_id))
        if not student_ids:
            return []
        return [s for s in await self.backend.list_submitted_raw(kind) if s.get("studentId") in student_ids]

    async def refresh(self, stream: StreamType) -> StreamStatus:
        tracker = self.tracker(stream)
        self._generations[stream] += 1
        generation = self._generations[stream]
        viewer_id = tracker.viewer_id
        if not viewer_id:
            tracker.set_items([])
            return self.status(stream)

        items: List[NotifiableItem] = []
        error: Optional[PracticumError] = None
        try:
            raw_items = await self._fetch(stream, viewer_id)
            items = [to_item(stream, raw) for raw in raw_items]
        except PracticumError as e:
            logger.error(f"{stream.value} stream fetch failed for {viewer_id}: {e.message}")
            error = e
        except (KeyError, SchemaError) as e:
            logger.error(f"{stream.value} stream returned malformed items for {viewer_id}: {e}")
            error = PracticumError(f"Malformed {stream.value} items", code="MALFORMED_RESPONSE")

        if self._generations[stream] != generation or tracker.viewer_id != viewer_id:
            # superseded by a newer refresh or a viewer switch
            logger.debug(f"Discarding stale {stream.value} result for {viewer_id}")
            return self.status(stream)
        if error is not None:
            self.errors[stream] = error
            return self.status(stream)
        self.errors.pop(stream, None)
        tracker.set_items(items)
        return self.status(stream)

    async def refresh_all(self) -> NotificationSummary:
        await asyncio.gather(*(self.refresh(stream) for stream in self.trackers))
        return self.summary()

    def status(self, stream: StreamType) -> StreamStatus:
        tracker = self.tracker(stream)
        error = self.errors.get(stream)
        if error is not None:
            return StreamStatus(stream=stream, unread_count=0, error=error.message, error_code=error.code)
        views = tracker.views()
        return StreamStatus(
            stream=stream,
            unread_count=sum(1 for view in views if view.unread),
            items=views,
        )

    def summary(self) -> NotificationSummary:
        return NotificationSummary(
            viewer_id=self.viewer_id or "",
            streams={stream: self.status(stream) for stream in self.trackers},
        )

    async def mark_as_read(self, stream: StreamType, item_id: str) -> StreamStatus:
        await self.tracker(stream).mark_as_read(item_id)
        return self.status(stream)

    async def mark_all_as_read(self, stream: StreamType) -> StreamStatus:
        await self.tracker(stream).mark_all_as_read()
        return self.status(stream)
