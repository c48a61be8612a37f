"""File-persisted generation queue, one JSON file per job type."""
import json
import logging
import os
from dataclasses import asdict, dataclass
from enum import Enum

from .conf import app_settings
from .constants import QUEUE_FILENAME, CSSType
from .storage import ArtifactStore, read_file, write_file_atomic
from .variant import derive_queue_key

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 200


class EntryStatus(str, Enum):
    PENDING = "pending"
    REQUESTED = "requested"


@dataclass
class QueueEntry:
    url: str
    user_agent: str = ""
    is_mobile: bool = False
    is_webp: bool = False
    uid: int = 0
    vary: str = ""
    url_tag: str = ""
    status: EntryStatus = EntryStatus.PENDING

    def __post_init__(self):
        self.user_agent = (self.user_agent or "")[:USER_AGENT_MAX_LENGTH]

    @property
    def queue_key(self):
        return derive_queue_key(self.vary, self.url_tag)

    @property
    def is_requested(self):
        return self.status is EntryStatus.REQUESTED

    def is_valid(self, css_type):
        if not self.url:
            return False
        return bool(self.url_tag) or not CSSType(css_type).requires_url_tag

    def to_dict(self):
        data = asdict(self)
        data.pop("status")
        if self.is_requested:
            data["_status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data):
        """
        Build an entry from its persisted form.

        Older files may lack ``is_webp``; it defaults to False. Anything
        unreadable yields an entry that fails ``is_valid``.
        """
        if not isinstance(data, dict):
            data = {}

        try:
            uid = int(data.get("uid") or 0)
        except (TypeError, ValueError):
            uid = 0

        status = EntryStatus.REQUESTED if data.get("_status") else EntryStatus.PENDING
        return cls(
            url=str(data.get("url") or ""),
            user_agent=str(data.get("user_agent") or ""),
            is_mobile=bool(data.get("is_mobile")),
            is_webp=bool(data.get("is_webp", False)),
            uid=uid,
            vary=str(data.get("vary") or ""),
            url_tag=str(data.get("url_tag") or ""),
            status=status,
        )


class JobQueue:
    """
    Bounded mapping of queue key to ``QueueEntry`` per type.

    Reads and writes the whole file every time; callers hold the mapping
    between ``load`` and ``save``.
    """

    def __init__(self, store=None, limit=None):
        self.store = store or ArtifactStore()
        self.limit = limit if limit is not None else app_settings.QUEUE_LIMIT

    def path(self, css_type):
        return os.path.join(self.store.type_dir(css_type), QUEUE_FILENAME)

    def load(self, css_type):
        path = self.path(css_type)
        if not os.path.exists(path):
            return {}

        try:
            raw = json.loads(read_file(path) or "{}")
        except ValueError:
            logger.warning(f"Corrupt {css_type} queue file {path}, starting empty")
            return {}

        if not isinstance(raw, dict):
            logger.warning(f"Unexpected {css_type} queue format in {path}, starting empty")
            return {}

        return {key: QueueEntry.from_dict(value) for key, value in raw.items()}

    def save(self, css_type, queue):
        data = {key: entry.to_dict() for key, entry in queue.items()}
        write_file_atomic(self.path(css_type), json.dumps(data))

    def enqueue(self, css_type, entry):
        """
        Add or replace the entry under its queue key.

        Returns False when the queue is full; existing keys may still be
        replaced at capacity since that does not grow the queue.
        """
        css_type = CSSType(css_type)
        queue = self.load(css_type)
        queue_key = entry.queue_key
        if queue_key not in queue and len(queue) >= self.limit:
            logger.warning(f"{css_type.tag_prefix} queue is full - {self.limit}")
            return False

        queue[queue_key] = entry
        self.save(css_type, queue)
        logger.info(
            f"Added {css_type.value} queue [url_tag] {entry.url_tag} [UA] {entry.user_agent} "
            f"[vary] {entry.vary} [uid] {entry.uid}"
        )
        return True

    def remove(self, css_type, queue_key):
        queue = self.load(css_type)
        if queue.pop(queue_key, None) is None:
            return False
        self.save(css_type, queue)
        return True

    def clear(self, css_type):
        """Drop the queue file. Returns the number of entries discarded."""
        path = self.path(css_type)
        if not os.path.exists(path):
            return 0
        count = len(self.load(css_type))
        os.unlink(path)
        logger.info(f"Cleared {css_type} queue ({count} entries)")
        return count
