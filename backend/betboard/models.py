from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple, Union

from flask_login import UserMixin

from betboard import db

UPCOMING = 'upcoming'
FINISHED = 'finished'

# Outcome space per match format. None means any non-empty token is accepted.
FORMATS = {
    'BO1': ('1-0', '0-1'),
    'BO3': ('2-0', '2-1', '1-2', '0-2'),
    'BO5': ('3-0', '3-1', '3-2', '2-3', '1-3', '0-3'),
    'YESNO': ('TAK', 'NIE'),
    'FREE': None,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime (SQLite hands back naive ones)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def outcome_space(fmt: str) -> Optional[Tuple[str, ...]]:
    return FORMATS.get((fmt or '').upper())


@dataclass(frozen=True)
class Upcoming:
    lock_at: Optional[datetime]


@dataclass(frozen=True)
class Finished:
    outcome: str


MatchState = Union[Upcoming, Finished]


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.String(64), primary_key=True)
    display_name = db.Column(db.String(128), nullable=False)
    avatar_ref = db.Column(db.String(256), nullable=True)
    points = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    predictions = db.relationship('Prediction', back_populates='user', lazy='dynamic')

    def avatar_url(self, template: str) -> Optional[str]:
        if not self.avatar_ref:
            return None
        return template.format(user_id=self.id, avatar=self.avatar_ref)

    def to_dict(self, avatar_template: Optional[str] = None):
        return {
            'id': self.id,
            'display_name': self.display_name,
            'avatar': self.avatar_ref,
            'avatar_url': self.avatar_url(avatar_template) if avatar_template else None,
            'points': self.points,
        }


class Match(db.Model):
    __tablename__ = 'match'
    id = db.Column(db.Integer, primary_key=True)
    player1 = db.Column(db.String(128), nullable=False)
    player2 = db.Column(db.String(128), nullable=False)
    format = db.Column(db.String(16), nullable=False)
    start_time = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    status = db.Column(db.String(16), default=UPCOMING, nullable=False)  # upcoming, finished
    result = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    finished_at = db.Column(db.DateTime(timezone=True), nullable=True)

    predictions = db.relationship('Prediction', back_populates='match', lazy='dynamic')

    @property
    def state(self) -> MatchState:
        if self.status == FINISHED:
            return Finished(outcome=self.result)
        return Upcoming(lock_at=as_utc(self.start_time))

    def is_locked(self, now: datetime) -> bool:
        """True while upcoming with a start time that has already passed.

        Evaluated against ``now`` on every call; never stored.
        """
        state = self.state
        if not isinstance(state, Upcoming) or state.lock_at is None:
            return False
        return state.lock_at <= as_utc(now)

    def to_dict(self):
        start = as_utc(self.start_time)
        return {
            'id': self.id,
            'player1': self.player1,
            'player2': self.player2,
            'format': self.format,
            'start_time': start.isoformat() if start else None,
            'status': self.status,
            'result': self.result,
        }


class Prediction(db.Model):
    __tablename__ = 'prediction'
    # The composite key is the one-prediction-per-user-per-match guarantee
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey('user.id'), primary_key=True, index=True)
    bet_value = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    match = db.relationship('Match', back_populates='predictions')
    user = db.relationship('User', back_populates='predictions')

    def to_dict(self):
        return {
            'match_id': self.match_id,
            'user_id': self.user_id,
            'bet_value': self.bet_value,
        }


class LedgerEntry(db.Model):
    """One row per applied declare or undo; the audit trail behind user points."""
    __tablename__ = 'ledger_entry'
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False, index=True)
    action = db.Column(db.String(16), nullable=False)  # declare, undo
    outcome = db.Column(db.String(64), nullable=False)
    delta = db.Column(db.Integer, nullable=False)
    awarded = db.Column(db.Integer, nullable=False, default=0)
    actor_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        created = as_utc(self.created_at)
        return {
            'id': self.id,
            'match_id': self.match_id,
            'action': self.action,
            'outcome': self.outcome,
            'delta': self.delta,
            'awarded': self.awarded,
            'actor_id': self.actor_id,
            'created_at': created.isoformat() if created else None,
        }
