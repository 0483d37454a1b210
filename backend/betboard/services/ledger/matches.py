"""Match lifecycle: creation, editing while upcoming, and the open-match board."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from betboard import db
from betboard.models import FORMATS, UPCOMING, Match, as_utc, outcome_space
from .errors import InvalidInput, InvalidState
from .store import atomic, load_match

EDITABLE_FIELDS = ('player1', 'player2', 'format', 'start_time')


@dataclass(frozen=True)
class MatchView:
    match: Match
    locked: bool

    def to_dict(self):
        payload = self.match.to_dict()
        payload['locked'] = self.locked
        return payload


def is_locked(match: Match, now: datetime) -> bool:
    return match.is_locked(now)


def normalize_format(fmt: Any) -> str:
    token = fmt.strip().upper() if isinstance(fmt, str) else ''
    if token not in FORMATS:
        raise InvalidInput(f"Unknown format {fmt!r}; expected one of {', '.join(sorted(FORMATS))}")
    return token


def validate_outcome(fmt: str, value: Any) -> str:
    """Return the stripped outcome token if it lies in the format's outcome space."""
    token = value.strip() if isinstance(value, str) else ''
    if not token:
        raise InvalidInput('Outcome must be a non-empty string')
    if len(token) > 64:
        raise InvalidInput('Outcome is too long')
    space = outcome_space(fmt)
    if space is not None and token not in space:
        raise InvalidInput(f"{token!r} is not a valid outcome for {fmt}; expected one of {', '.join(space)}")
    return token


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 instant; naive values are taken as UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        raise InvalidInput('start_time must be an ISO 8601 string')
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        raise InvalidInput(f'Invalid start_time {value!r}')


def _player(value: Any, field: str) -> str:
    name = value.strip() if isinstance(value, str) else ''
    if not name:
        raise InvalidInput(f'{field} is required')
    if len(name) > 128:
        raise InvalidInput(f'{field} is too long')
    return name


def create_match(player1, player2, fmt, start_time=None, now: Optional[datetime] = None) -> Match:
    p1 = _player(player1, 'player1')
    p2 = _player(player2, 'player2')
    if p1 == p2:
        raise InvalidInput('player1 and player2 must differ')
    match = Match(
        player1=p1,
        player2=p2,
        format=normalize_format(fmt),
        start_time=parse_instant(start_time),
        status=UPCOMING,
        result=None,
    )
    if now is not None:
        match.created_at = now
    with atomic() as session:
        session.add(match)
    return match


def edit_match(match_id: int, fields: Dict[str, Any]) -> Match:
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidInput(f"Cannot edit {', '.join(sorted(unknown))}")
    changes = {}
    if 'player1' in fields:
        changes['player1'] = _player(fields['player1'], 'player1')
    if 'player2' in fields:
        changes['player2'] = _player(fields['player2'], 'player2')
    if 'format' in fields:
        changes['format'] = normalize_format(fields['format'])
    if 'start_time' in fields:
        changes['start_time'] = parse_instant(fields['start_time'])

    with atomic():
        match = load_match(match_id, for_update=True)
        if match.status != UPCOMING:
            raise InvalidState('Only upcoming matches can be edited')
        if changes.get('player1', match.player1) == changes.get('player2', match.player2):
            raise InvalidInput('player1 and player2 must differ')
        for name, value in changes.items():
            setattr(match, name, value)
    return match


def list_open_matches(now: datetime) -> List[MatchView]:
    matches = db.session.execute(
        db.select(Match)
        .where(Match.status == UPCOMING)
        .order_by(Match.start_time.is_(None), Match.start_time.asc(), Match.id.asc())
    ).scalars()
    return [MatchView(match=m, locked=is_locked(m, now)) for m in matches]
