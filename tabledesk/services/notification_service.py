"""
Notification Service.

Tracks the user-visible notices raised by an editing session (offline
banners, save failures, recovery prompts). Notices share a key space: posting
a notice with an existing key replaces the earlier one, so a repeated
condition never stacks duplicate messages.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class NotificationType(str, Enum):
    """Notice severity."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationPriority(str, Enum):
    """How prominently a notice is shown."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


@dataclass
class Notice:
    """A user-visible notice."""
    key: str
    type: NotificationType
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    sticky: bool = False  # stays until dismissed
    duration_seconds: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


# Well-known notice keys
OFFLINE_NOTICE = "offline"
ONLINE_NOTICE = "online"
CONNECTION_WARNING = "connection-warning"
LOCAL_BACKUP_NOTICE = "local-backup-save"
REMOTE_SAVE_FAILED = "remote-save-fail"
BACKUP_RECOVERY = "backup-recovery"
FORMAT_AMBIGUITY = "delimiter-ambiguous"
LOAD_FAILED = "load-failed"
SUBMIT_BLOCKED = "submit-blocked"
SUBMIT_RESULT = "submit-result"
DELIMITER_NOTICE = "delimiter-change"


class NotificationCenter:
    """In-session store of active notices."""

    def __init__(self, on_post: Optional[Callable[[Notice], None]] = None):
        self._notices: Dict[str, Notice] = {}
        self._on_post = on_post

    def post(
        self,
        key: str,
        notification_type: NotificationType,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        sticky: bool = False,
        duration_seconds: Optional[float] = None,
    ) -> Notice:
        """
        Post a notice, replacing any active notice with the same key.

        Args:
            key: Deduplication key
            notification_type: Severity
            message: Text shown to the user
            priority: Display prominence
            sticky: Keep until explicitly dismissed
            duration_seconds: Suggested display time for non-sticky notices

        Returns:
            The posted Notice
        """
        notice = Notice(
            key=key,
            type=notification_type,
            message=message,
            priority=priority,
            sticky=sticky,
            duration_seconds=duration_seconds,
        )
        replaced = key in self._notices
        self._notices[key] = notice

        logger.info(
            "notice_posted",
            key=key,
            type=notification_type.value,
            replaced=replaced,
        )

        if self._on_post is not None:
            self._on_post(notice)
        return notice

    def info(self, key: str, message: str, **kwargs) -> Notice:
        return self.post(key, NotificationType.INFO, message, **kwargs)

    def success(self, key: str, message: str, **kwargs) -> Notice:
        return self.post(key, NotificationType.SUCCESS, message, **kwargs)

    def warning(self, key: str, message: str, **kwargs) -> Notice:
        return self.post(key, NotificationType.WARNING, message, **kwargs)

    def error(self, key: str, message: str, **kwargs) -> Notice:
        return self.post(key, NotificationType.ERROR, message, **kwargs)

    def dismiss(self, key: str) -> bool:
        """Remove an active notice. Returns False if it was not active."""
        return self._notices.pop(key, None) is not None

    def get(self, key: str) -> Optional[Notice]:
        return self._notices.get(key)

    def active(self) -> List[Notice]:
        """Active notices, oldest first."""
        return sorted(self._notices.values(), key=lambda n: n.created_at)

    def clear(self) -> None:
        self._notices.clear()
