from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from betboard import db
from betboard.models import UPCOMING, Match, Prediction, User
from .errors import MatchLocked, NotFound, Unauthenticated
from .matches import validate_outcome
from .store import atomic, claim_match, load_match, upsert_prediction


@dataclass(frozen=True)
class HistoryEntry:
    match: Match
    bet_value: str

    @property
    def result(self) -> Optional[str]:
        return self.match.result

    def to_dict(self):
        return {
            'match': self.match.to_dict(),
            'bet_value': self.bet_value,
            'result': self.result,
            'correct': None if self.result is None else self.bet_value == self.result,
        }


def submit_prediction(match_id: int, user_id: Optional[str], bet_value, now: datetime) -> Prediction:
    """Record ``user_id``'s bet on a match, replacing any earlier bet in place.

    The match row is claimed before it is read, so a concurrent declare
    either commits before the lock check or waits until the bet is written.
    """
    if not user_id:
        raise Unauthenticated('Login required to predict')
    with atomic():
        claim_match(match_id)
        match = load_match(match_id, for_update=True)
        if match.status != UPCOMING:
            raise MatchLocked('Match is finished; predictions are closed')
        if match.is_locked(now):
            raise MatchLocked('Match has started; predictions are closed')
        bet = validate_outcome(match.format, bet_value)
        if db.session.get(User, user_id) is None:
            raise NotFound(f'User {user_id} not found')
        upsert_prediction(match.id, user_id, bet, now)
    return db.session.get(Prediction, (match_id, user_id))


def prediction_history(user_id: str) -> List[HistoryEntry]:
    rows = db.session.execute(
        db.select(Match, Prediction.bet_value)
        .join(Prediction, Prediction.match_id == Match.id)
        .where(Prediction.user_id == user_id)
        .order_by(Match.start_time.is_(None), Match.start_time.desc(), Match.id.desc())
    ).all()
    return [HistoryEntry(match=match, bet_value=bet) for match, bet in rows]
