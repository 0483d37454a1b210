from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy import update

from betboard.models import FINISHED, UPCOMING, LedgerEntry, Match
from .errors import InvalidState
from .matches import validate_outcome
from .store import adjust_points, atomic, load_match, matching_user_ids

DECLARE = 'declare'
UNDO = 'undo'


@dataclass(frozen=True)
class ScoringReport:
    match_id: int
    action: str
    outcome: str
    delta: int
    user_ids: Tuple[str, ...]

    def to_dict(self):
        return {
            'match_id': self.match_id,
            'action': self.action,
            'outcome': self.outcome,
            'delta': self.delta,
            'user_ids': list(self.user_ids),
        }


def declare_result(match_id: int, outcome, now: datetime, actor_id: Optional[str] = None) -> ScoringReport:
    """Finish the match with ``outcome`` and give +1 to every exact-match bet.

    The status flip is a compare-and-swap on ``status = upcoming``, so of
    two concurrent declares only one can award points. A finished match is
    rejected; the admin has to undo the result first.
    """
    with atomic() as session:
        match = load_match(match_id, for_update=True)
        if match.status == FINISHED:
            raise InvalidState(f'Match {match_id} already has result {match.result!r}; undo it first')
        token = validate_outcome(match.format, outcome)
        claimed = session.execute(
            update(Match)
            .where(Match.id == match_id, Match.status == UPCOMING)
            .values(status=FINISHED, result=token, finished_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            raise InvalidState(f'Match {match_id} was finished by a concurrent request')
        winners = matching_user_ids(match_id, token)
        adjust_points(winners, 1)
        session.add(LedgerEntry(
            match_id=match_id,
            action=DECLARE,
            outcome=token,
            delta=1,
            awarded=len(winners),
            actor_id=actor_id,
            created_at=now,
        ))
    current_app.logger.info(f"[declare] match={match_id} outcome={token} awarded={len(winners)} actor={actor_id}")
    return ScoringReport(match_id=match_id, action=DECLARE, outcome=token, delta=1, user_ids=tuple(winners))


def undo_result(match_id: int, now: datetime, actor_id: Optional[str] = None) -> ScoringReport:
    """Reverse the last declare: -1 to every bet equal to the outcome being undone.

    The outcome is captured before the match row is cleared, and the clear
    only succeeds while the row still holds that same outcome.
    """
    with atomic() as session:
        match = load_match(match_id, for_update=True)
        outcome = match.result
        if match.status != FINISHED or outcome is None:
            raise InvalidState(f'Match {match_id} has no result to undo')
        claimed = session.execute(
            update(Match)
            .where(Match.id == match_id, Match.status == FINISHED, Match.result == outcome)
            .values(status=UPCOMING, result=None, finished_at=None)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            raise InvalidState(f'Match {match_id} result changed by a concurrent request')
        scored = matching_user_ids(match_id, outcome)
        adjust_points(scored, -1)
        session.add(LedgerEntry(
            match_id=match_id,
            action=UNDO,
            outcome=outcome,
            delta=-1,
            awarded=len(scored),
            actor_id=actor_id,
            created_at=now,
        ))
    current_app.logger.info(f"[undo] match={match_id} outcome={outcome} reverted={len(scored)} actor={actor_id}")
    return ScoringReport(match_id=match_id, action=UNDO, outcome=outcome, delta=-1, user_ids=tuple(scored))


def ledger_entries(match_id: int):
    load_match(match_id)
    return (
        LedgerEntry.query.filter_by(match_id=match_id)
        .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .all()
    )
