"""Live stream of newly inserted posts over Redis pub/sub.

Each subscriber gets its own infinite sequence: committed posts newer than
``since_id`` are replayed from the mirror first, then live inserts follow.
Delivery is at-least-once across restarts; a subscriber never sees the same
post id twice within one subscription.
"""

from __future__ import annotations

import json
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from poapgate.db.models import Post
    from poapgate.mirror.store import MirrorStore

logger = structlog.get_logger()

SEEN_WINDOW = 1024


@dataclass(frozen=True)
class PostEvent:
    id: int
    user_address: str
    title: str
    content: str
    created_at: str | None = None

    @classmethod
    def from_post(cls, post: Post) -> PostEvent:
        created = post.created_at.isoformat() if isinstance(post.created_at, datetime) else None
        return cls(
            id=post.id,
            user_address=post.user_address,
            title=post.title,
            content=post.content,
            created_at=created,
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PostEvent:
        return cls(
            id=int(payload["id"]),
            user_address=payload["user_address"],
            title=payload["title"],
            content=payload["content"],
            created_at=payload.get("created_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class _SeenIds:
    """Bounded memory of recently yielded ids."""

    def __init__(self, size: int = SEEN_WINDOW) -> None:
        self._order: deque[int] = deque()
        self._ids: set[int] = set()
        self._size = size

    def add(self, post_id: int) -> bool:
        """Record ``post_id``; False if it was already seen."""
        if post_id in self._ids:
            return False
        self._ids.add(post_id)
        self._order.append(post_id)
        if len(self._order) > self._size:
            self._ids.discard(self._order.popleft())
        return True


class PostStream:
    def __init__(self, store: MirrorStore, redis: object | None, channel: str = "pubsub:post_inserted") -> None:
        self.store = store
        self.redis = redis
        self.channel = channel

    async def publish(self, post: Post) -> None:
        """Announce a committed post. Failures are logged; the post is already stored."""
        if self.redis is None:
            return
        try:
            await self.redis.publish(  # type: ignore[attr-defined]
                self.channel, json.dumps(PostEvent.from_post(post).to_dict())
            )
        except Exception:
            logger.warning("post_publish_failed", post_id=post.id, exc_info=True)

    async def subscribe(
        self,
        since_id: int | None = None,
        poll_timeout: float = 1.0,
    ) -> AsyncIterator[PostEvent]:
        """Yield post insert events forever, starting after ``since_id``."""
        if self.redis is None:
            msg = "Post stream requires Redis. Call init_redis() first."
            raise RuntimeError(msg)

        pubsub = self.redis.pubsub()  # type: ignore[attr-defined]
        # Subscribe before replaying so nothing committed in between is missed.
        await pubsub.subscribe(self.channel)
        seen = _SeenIds()
        logger.debug("post_stream_subscribed", channel=self.channel, since_id=since_id)

        try:
            if since_id is not None:
                backlog = await self.store.posts.list(filter={"id__gt": since_id}, order=["id"])
                for post in backlog:
                    seen.add(post.id)
                    yield PostEvent.from_post(post)

            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=poll_timeout)
                if message is None:
                    continue

                data = message.get("data", b"")
                try:
                    if isinstance(data, bytes):
                        data = data.decode()
                    event = PostEvent.from_payload(json.loads(data))
                except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError, ValueError):
                    logger.warning("post_stream_invalid_message", channel=self.channel)
                    continue

                if since_id is not None and event.id <= since_id:
                    continue
                if not seen.add(event.id):
                    continue
                yield event
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
            logger.debug("post_stream_closed", channel=self.channel)
