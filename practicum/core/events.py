import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# 무효화 대상 컬렉션 이름
REQUIREMENTS = "requirements"
REPORTS = "reports"
REQUIREMENT_COMMENTS = "requirement-comments"
REPORT_VIEWS = "report-views"
ANNOUNCEMENTS = "announcements"
REQUIREMENT_TEMPLATES = "requirement-templates"

InvalidationHandler = Callable[[str, Optional[str]], Awaitable[None]]


class InvalidationBus:
    """Cache-invalidation event bus.

    Mutations publish the collection they changed (and optionally the entity id);
    read-side subscribers re-fetch when they receive a signal for a collection
    they depend on. A subscriber registered with ``collection=None`` receives
    every signal.
    """

    def __init__(self):
        self._handlers: Dict[Optional[str], List[InvalidationHandler]] = defaultdict(list)

    def subscribe(self, collection: Optional[str], handler: InvalidationHandler) -> Callable[[], None]:
        self._handlers[collection].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[collection]:
                self._handlers[collection].remove(handler)

        return unsubscribe

    async def publish(self, collection: str, entity_id: Optional[str] = None) -> None:
        handlers = list(self._handlers.get(collection, [])) + list(self._handlers.get(None, []))
        logger.debug(f"Invalidating {collection} ({entity_id}) -> {len(handlers)} subscriber(s)")
        for handler in handlers:
            try:
                await handler(collection, entity_id)
            except Exception as e:
                # 구독자 실패는 변경 작업 결과에 영향을 주지 않음
                logger.error(f"Invalidation handler failed for {collection}: {e}")
