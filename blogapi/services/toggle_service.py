"""
Toggle engine: the shared on/off algorithm behind likes, collects,
comment likes and follows.

Design notes
------------
- Each ``ToggleKind`` maps to one ``LedgerSpec``: the ledger table, the
  columns holding the (subject, object) pair, and optionally the
  denormalized counter on the owning aggregate.  ``LEDGERS`` covers every
  kind; there is no other dispatch.
- A ledger row is created on the first toggle and never removed.  Later
  toggles flip ``is_deleted`` on that same row, so ``created_at`` keeps
  the first interaction time and the unique (subject, object) constraint
  is never contended after the first insert.
- The counter moves in the same transaction as the ledger row, through a
  single ``UPDATE ... SET col = col + :delta ... RETURNING col``.  The
  update carries the owning row's eligibility predicate; if the object
  became ineligible after the caller's precondition check the update
  matches nothing and ``ObjectNotEligible`` aborts the transaction.
- The ledger lookup takes a row lock (``FOR UPDATE``); callers lock the
  owning row first so that concurrent toggles on one object serialize.
- Nothing here commits.  The transaction boundary is owned by ``get_db``.
"""
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from blogapi.exceptions import ObjectNotEligible, OperationFailed
from blogapi.models import (
    Article,
    ArticleCollect,
    ArticleLike,
    ArticleState,
    Comment,
    CommentLike,
    ToggleKind,
    UserFollow,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Ledger specifications
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CounterSpec:
    """A denormalized count column and the predicate its row must satisfy."""

    owner: Any
    column: Any
    eligible: ColumnElement[bool]


@dataclass(frozen=True)
class LedgerSpec:
    model: Any
    subject: Any
    object: Any
    counter: CounterSpec | None


LEDGERS: dict[ToggleKind, LedgerSpec] = {
    ToggleKind.LIKE: LedgerSpec(
        model=ArticleLike,
        subject=ArticleLike.user_id,
        object=ArticleLike.article_id,
        counter=CounterSpec(
            owner=Article,
            column=Article.like_count,
            eligible=Article.state == ArticleState.PUBLISHED,
        ),
    ),
    ToggleKind.COLLECT: LedgerSpec(
        model=ArticleCollect,
        subject=ArticleCollect.user_id,
        object=ArticleCollect.article_id,
        counter=CounterSpec(
            owner=Article,
            column=Article.collect_count,
            eligible=Article.state == ArticleState.PUBLISHED,
        ),
    ),
    ToggleKind.COMMENT_LIKE: LedgerSpec(
        model=CommentLike,
        subject=CommentLike.user_id,
        object=CommentLike.comment_id,
        counter=CounterSpec(
            owner=Comment,
            column=Comment.comment_like_count,
            eligible=Comment.is_deleted.is_(False),
        ),
    ),
    # Follower counts are derived by counting active rows, never cached.
    ToggleKind.FOLLOW: LedgerSpec(
        model=UserFollow,
        subject=UserFollow.follower_id,
        object=UserFollow.followed_id,
        counter=None,
    ),
}


@dataclass(frozen=True)
class ToggleOutcome:
    active: bool
    new_count: int

    def to_dict(self) -> dict:
        return {"active": self.active, "new_count": self.new_count}


# ---------------------------------------------------------------------------
# Ledger operations
# ---------------------------------------------------------------------------

def record_query(kind: ToggleKind, actor_id: int, object_id: int):
    """
    SELECT for the (actor, object) row of *kind*, whatever its
    ``is_deleted`` state, locked for the rest of the transaction.
    """
    ledger = LEDGERS[kind]
    return (
        select(ledger.model)
        .where(ledger.subject == actor_id, ledger.object == object_id)
        .with_for_update()
    )


async def find_record(db: AsyncSession, kind: ToggleKind, actor_id: int, object_id: int):
    result = await db.execute(record_query(kind, actor_id, object_id))
    return result.scalar_one_or_none()


async def insert_record(db: AsyncSession, kind: ToggleKind, actor_id: int, object_id: int):
    ledger = LEDGERS[kind]
    record = ledger.model(
        **{ledger.subject.key: actor_id, ledger.object.key: object_id, "is_deleted": False}
    )
    db.add(record)
    await db.flush()
    return record


async def set_deleted_flag(db: AsyncSession, record, flag: bool) -> None:
    """Soft-delete (``flag=True``) or restore (``flag=False``) *record* in place."""
    record.is_deleted = flag
    await db.flush()


async def adjust_counter(
    db: AsyncSession, kind: ToggleKind, object_id: int, delta: int
) -> int | None:
    """
    Atomically add *delta* to the counter for *object_id* and return the new
    value.  Returns None for kinds without a counter.

    Raises ``ObjectNotEligible`` when the owning row no longer satisfies
    its eligibility predicate (or no longer exists).
    """
    counter = LEDGERS[kind].counter
    if counter is None:
        return None

    stmt = (
        update(counter.owner)
        .where(counter.owner.id == object_id, counter.eligible)
        .values({counter.column.key: counter.column + delta})
        .returning(counter.column)
        .execution_options(synchronize_session="fetch")
    )
    new_count = (await db.execute(stmt)).scalar_one_or_none()
    if new_count is None:
        raise ObjectNotEligible()
    return new_count


async def count_active(db: AsyncSession, kind: ToggleKind, object_id: int) -> int:
    """Number of active (not soft-deleted) ledger rows targeting *object_id*."""
    ledger = LEDGERS[kind]
    q = (
        select(func.count())
        .select_from(ledger.model)
        .where(ledger.object == object_id, ledger.model.is_deleted.is_(False))
    )
    return (await db.execute(q)).scalar_one()


async def is_active(db: AsyncSession, kind: ToggleKind, actor_id: int, object_id: int) -> bool:
    """Whether *actor_id* currently has an active *kind* interaction with *object_id*."""
    ledger = LEDGERS[kind]
    q = select(ledger.model.id).where(
        ledger.subject == actor_id,
        ledger.object == object_id,
        ledger.model.is_deleted.is_(False),
    )
    return (await db.execute(q)).first() is not None


# ---------------------------------------------------------------------------
# Toggle
# ---------------------------------------------------------------------------

async def toggle(db: AsyncSession, kind: ToggleKind, actor_id: int, object_id: int) -> ToggleOutcome:
    """
    Flip *actor_id*'s *kind* interaction with *object_id*.

    - no row: insert an active row, counter +1
    - active row: soft-delete it, counter -1
    - soft-deleted row: restore it, counter +1

    Callers check the object's preconditions (existence, state, self
    follow) before calling.  Database failures are re-raised as
    ``OperationFailed`` so the request's transaction is rolled back.
    """
    try:
        record = await find_record(db, kind, actor_id, object_id)
        if record is None:
            await insert_record(db, kind, actor_id, object_id)
            active = True
        elif not record.is_deleted:
            await set_deleted_flag(db, record, True)
            active = False
        else:
            await set_deleted_flag(db, record, False)
            active = True

        new_count = await adjust_counter(db, kind, object_id, 1 if active else -1)
        if new_count is None:
            new_count = await count_active(db, kind, object_id)
    except SQLAlchemyError as exc:
        logger.warning("Toggle %s failed for actor=%s object=%s: %s", kind.value, actor_id, object_id, exc)
        raise OperationFailed() from exc

    logger.debug(
        "Toggle %s actor=%s object=%s -> active=%s count=%s",
        kind.value, actor_id, object_id, active, new_count,
    )
    return ToggleOutcome(active=active, new_count=new_count)
