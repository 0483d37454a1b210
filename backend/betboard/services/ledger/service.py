from datetime import datetime
from typing import Callable, List, Optional

from flask import current_app

from betboard.models import Match, Prediction, User, as_utc, utcnow
from . import matches, predictions, scoring, users
from .ranking import RankingRow, ranking as build_ranking
from .errors import Forbidden, Unauthenticated
from .store import load_match

Clock = Callable[[], datetime]
AdminCheck = Callable[[str], bool]


class Ledger:
    """Entry point for the match lifecycle and wagering ledger.

    Authorization (``is_admin``) and time (``clock``) are supplied at
    construction; the lock predicate is evaluated against ``clock()`` on
    every call.
    """

    def __init__(self, is_admin: AdminCheck, clock: Clock = utcnow):
        self._is_admin = is_admin
        self._clock = clock

    def now(self) -> datetime:
        return as_utc(self._clock())

    def is_admin(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and bool(self._is_admin(user_id))

    def require_admin(self, actor_id: Optional[str]) -> None:
        if not actor_id:
            raise Unauthenticated('Login required')
        if not self.is_admin(actor_id):
            raise Forbidden('Admin rights required')

    # Identity

    def record_login(self, identity: users.Identity) -> User:
        user = users.record_login(identity)
        current_app.logger.info(f"[login] user={user.id}")
        return user

    # Match lifecycle

    def create_match(self, actor_id, player1, player2, fmt, start_time=None) -> Match:
        self.require_admin(actor_id)
        match = matches.create_match(player1, player2, fmt, start_time, now=self.now())
        current_app.logger.info(
            f"[create] match={match.id} {match.player1} vs {match.player2} format={match.format} actor={actor_id}"
        )
        return match

    def edit_match(self, actor_id, match_id: int, fields: dict) -> Match:
        self.require_admin(actor_id)
        match = matches.edit_match(match_id, fields)
        current_app.logger.info(f"[edit] match={match_id} fields={sorted(fields)} actor={actor_id}")
        return match

    def get_match(self, match_id: int) -> matches.MatchView:
        match = load_match(match_id)
        return matches.MatchView(match=match, locked=matches.is_locked(match, self.now()))

    def list_open_matches(self) -> List[matches.MatchView]:
        return matches.list_open_matches(self.now())

    # Prediction register

    def submit(self, user_id, match_id: int, bet_value) -> Prediction:
        prediction = predictions.submit_prediction(match_id, user_id, bet_value, self.now())
        current_app.logger.info(f"[bet] match={match_id} user={user_id} bet={prediction.bet_value}")
        return prediction

    def history(self, user_id) -> List[predictions.HistoryEntry]:
        if not user_id:
            return []
        return predictions.prediction_history(user_id)

    # Scoring engine

    def declare_result(self, actor_id, match_id: int, outcome) -> scoring.ScoringReport:
        self.require_admin(actor_id)
        return scoring.declare_result(match_id, outcome, self.now(), actor_id=actor_id)

    def undo_result(self, actor_id, match_id: int) -> scoring.ScoringReport:
        self.require_admin(actor_id)
        return scoring.undo_result(match_id, self.now(), actor_id=actor_id)

    def ledger_entries(self, actor_id, match_id: int):
        self.require_admin(actor_id)
        return scoring.ledger_entries(match_id)

    # Ranking projector

    def ranking(self) -> List[RankingRow]:
        return build_ranking()


def get_ledger() -> Ledger:
    return current_app.extensions['ledger']
