from dataclasses import dataclass
from typing import Optional

from betboard import db
from betboard.models import User
from .errors import InvalidInput, Unauthenticated
from .store import atomic


@dataclass(frozen=True)
class Identity:
    """An already-authenticated identity handed over by the login provider."""
    user_id: str
    display_name: str
    avatar_ref: Optional[str] = None


def record_login(identity: Identity) -> User:
    """Create the user on first login; refresh name and avatar afterwards.

    Points are never touched here.
    """
    user_id = identity.user_id.strip() if isinstance(identity.user_id, str) else ''
    if not user_id:
        raise Unauthenticated('Identity has no user id')
    if len(user_id) > 64:
        raise InvalidInput('User id is too long')
    display_name = (identity.display_name or '').strip() or user_id
    avatar_ref = identity.avatar_ref.strip() if isinstance(identity.avatar_ref, str) else None
    if avatar_ref and len(avatar_ref) > 256:
        raise InvalidInput('Avatar reference is too long')
    with atomic() as session:
        user = session.get(User, user_id)
        if user is None:
            user = User(id=user_id, points=0)
            session.add(user)
        user.display_name = display_name[:128]
        user.avatar_ref = avatar_ref or None
    return user
