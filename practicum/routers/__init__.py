from .review import router as review_router
from .notifications import router as notification_router

__all__ = [
    'review_router',
    'notification_router'
]
