"""Mirror store client: typed access to the secondary store's collections.

Every operation runs in its own short-lived session and commits on its own.
There are no cross-collection transactions; callers sequence writes
explicitly and own the failure handling between them.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from poapgate.db.models import Like, Milestone, Post, Proposal, UserMilestone, UserStats, Vote
from poapgate.errors import MirrorWriteError, UniqueConstraintViolation
from poapgate.mirror.stream import PostStream

T = TypeVar("T")

_OPERATORS = {
    "gt": lambda col, v: col > v,
    "gte": lambda col, v: col >= v,
    "lt": lambda col, v: col < v,
    "lte": lambda col, v: col <= v,
    "ne": lambda col, v: col != v,
    "in": lambda col, v: col.in_(list(v)),
}


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == "23505":  # asyncpg / psycopg
        return True
    message = str(orig).lower()
    return "unique" in message or "duplicate key" in message


class Collection(Generic[T]):
    """CRUD over one mirror table.

    Filters are ``column=value`` pairs; a ``__gt``/``__gte``/``__lt``/``__lte``/
    ``__ne``/``__in`` suffix selects another comparison. Order is a sequence
    of column names, ``-`` prefix for descending.
    """

    def __init__(self, store: MirrorStore, model: type[T], name: str) -> None:
        self.store = store
        self.model = model
        self.name = name

    def _column(self, name: str) -> Any:
        try:
            return getattr(self.model, name)
        except AttributeError:
            msg = f"{self.name} has no column {name!r}"
            raise ValueError(msg) from None

    def _conditions(self, filters: dict[str, Any] | None) -> list[Any]:
        conditions = []
        for key, value in (filters or {}).items():
            column_name, _, op = key.partition("__")
            column = self._column(column_name)
            if not op:
                conditions.append(column.is_(None) if value is None else column == value)
            elif op in _OPERATORS:
                conditions.append(_OPERATORS[op](column, value))
            else:
                msg = f"Unknown filter operator: {op}"
                raise ValueError(msg)
        return conditions

    def _ordering(self, order: Iterable[str] | None) -> list[Any]:
        clauses = []
        for item in order or ():
            if item.startswith("-"):
                clauses.append(self._column(item[1:]).desc())
            else:
                clauses.append(self._column(item).asc())
        return clauses

    async def get(self, **filters: Any) -> T | None:
        """First record matching all filters, or None."""
        async with self.store.session() as session:
            result = await session.execute(
                select(self.model).where(*self._conditions(filters)).limit(1)
            )
            return result.scalar_one_or_none()

    async def list(
        self,
        filter: dict[str, Any] | None = None,  # noqa: A002
        order: Iterable[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[T]:
        stmt = select(self.model).where(*self._conditions(filter)).order_by(*self._ordering(order))
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        async with self.store.session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count(self, filter: dict[str, Any] | None = None) -> int:  # noqa: A002
        async with self.store.session() as session:
            result = await session.execute(
                select(func.count()).select_from(self.model).where(*self._conditions(filter))
            )
            return int(result.scalar_one())

    async def insert(self, record: T) -> T:
        """Insert and commit; a uniqueness clash raises instead of overwriting."""
        async with self.store.session() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if _is_unique_violation(exc):
                    raise UniqueConstraintViolation(self.name, str(exc.orig)) from exc
                msg = f"Insert into {self.name} failed: {exc.orig}"
                raise MirrorWriteError(msg) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                msg = f"Insert into {self.name} failed: {exc}"
                raise MirrorWriteError(msg) from exc
        return record

    async def _execute_update(self, filters: dict[str, Any], values: dict[str, Any]) -> int:
        conditions = self._conditions(filters)
        if not conditions:
            msg = f"Refusing unfiltered update on {self.name}"
            raise ValueError(msg)
        stmt = (
            update(self.model)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.store.session() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                msg = f"Update of {self.name} failed: {exc}"
                raise MirrorWriteError(msg) from exc
            return result.rowcount or 0

    async def update(self, filter: dict[str, Any], patch: dict[str, Any]) -> int:  # noqa: A002
        """Apply ``patch`` to every matching record. Returns the affected count."""
        for key in patch:
            self._column(key)
        return await self._execute_update(filter, patch)

    async def increment(self, filter: dict[str, Any], column: str, by: int = 1, **extra: Any) -> int:  # noqa: A002
        """Atomic ``column = column + by`` on matching records."""
        col = self._column(column)
        return await self._execute_update(filter, {column: col + by, **extra})


class PostCollection(Collection[Post]):
    async def insert(self, record: Post) -> Post:
        post = await super().insert(record)
        await self.store.post_stream.publish(post)
        return post


class MirrorStore:
    """Handle on the mirror store, passed explicitly to everything that needs it."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        redis: object | None = None,
        post_channel: str = "pubsub:post_inserted",
    ) -> None:
        self._session_factory = session_factory
        self.redis = redis
        self.post_stream = PostStream(self, redis, post_channel)

        self.accounts: Collection[UserStats] = Collection(self, UserStats, "user_stats")
        self.posts: PostCollection = PostCollection(self, Post, "posts")
        self.likes: Collection[Like] = Collection(self, Like, "likes")
        self.proposals: Collection[Proposal] = Collection(self, Proposal, "proposals")
        self.votes: Collection[Vote] = Collection(self, Vote, "votes")
        self.milestones: Collection[Milestone] = Collection(self, Milestone, "milestones")
        self.user_milestones: Collection[UserMilestone] = Collection(self, UserMilestone, "user_milestones")

    def session(self) -> AsyncSession:
        return self._session_factory()

    async def ping(self) -> bool:
        async with self.session() as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar() == 1
