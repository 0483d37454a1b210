from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Sequence

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from betboard import db
from betboard.models import Match, Prediction, User
from .errors import NotFound, StoreConflict, StoreUnavailable

# Serialization failure and deadlock detected
_CONFLICT_SQLSTATES = {'40001', '40P01'}

_UPSERT_INSERTS = {
    'sqlite': sqlite_insert,
    'postgresql': pg_insert,
}


def _is_conflict(exc: DBAPIError) -> bool:
    orig = getattr(exc, 'orig', None)
    sqlstate = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    return 'database is locked' in str(orig or exc).lower()


@contextmanager
def atomic() -> Iterator[Session]:
    """Run the enclosed writes as one transaction.

    Commits on success. Any failure rolls back every write made inside the
    block; driver errors are translated to StoreConflict (retryable) or
    StoreUnavailable.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise StoreConflict('Conflicting write, please retry') from exc
    except DBAPIError as exc:
        session.rollback()
        if _is_conflict(exc):
            raise StoreConflict('Concurrent update in progress, please retry') from exc
        raise StoreUnavailable('Storage is unavailable') from exc
    except Exception:
        session.rollback()
        raise


def claim_match(match_id: int) -> None:
    """Take the match row's write lock for the rest of the transaction.

    A no-op UPDATE, since SQLite ignores SELECT ... FOR UPDATE and only
    serializes writers.
    """
    db.session.execute(
        update(Match)
        .where(Match.id == match_id)
        .values(status=Match.status)
        .execution_options(synchronize_session=False)
    )


def load_match(match_id: int, for_update: bool = False) -> Match:
    stmt = db.select(Match).where(Match.id == match_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    match = db.session.execute(stmt).scalar_one_or_none()
    if match is None:
        raise NotFound(f'Match {match_id} not found')
    return match


def upsert_prediction(match_id: int, user_id: str, bet_value: str, now: datetime) -> None:
    """Insert the (match, user) prediction or overwrite its bet in place."""
    insert = _UPSERT_INSERTS.get(db.engine.dialect.name)
    if insert is None:
        # Still guarded by the composite primary key
        db.session.merge(Prediction(match_id=match_id, user_id=user_id, bet_value=bet_value, updated_at=now))
        return
    stmt = insert(Prediction).values(
        match_id=match_id,
        user_id=user_id,
        bet_value=bet_value,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=['match_id', 'user_id'],
        set_={'bet_value': stmt.excluded.bet_value, 'updated_at': stmt.excluded.updated_at},
    )
    db.session.execute(stmt)


def matching_user_ids(match_id: int, outcome: str) -> list:
    rows = db.session.execute(
        db.select(Prediction.user_id)
        .where(Prediction.match_id == match_id, Prediction.bet_value == outcome)
        .order_by(Prediction.user_id)
    ).scalars()
    return list(rows)


def adjust_points(user_ids: Sequence[str], delta: int) -> int:
    if not user_ids:
        return 0
    res = db.session.execute(
        update(User)
        .where(User.id.in_(list(user_ids)))
        .values(points=User.points + delta)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != len(user_ids):
        raise StoreConflict(f'Point update touched {res.rowcount} of {len(user_ids)} users')
    return res.rowcount
