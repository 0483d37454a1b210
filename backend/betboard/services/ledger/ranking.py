from dataclasses import dataclass
from typing import List

from betboard import db
from betboard.models import User


@dataclass(frozen=True)
class RankingRow:
    position: int
    user_id: str
    display_name: str
    points: int

    def to_dict(self):
        return {
            'position': self.position,
            'user_id': self.user_id,
            'username': self.display_name,
            'points': self.points,
        }


def ranking() -> List[RankingRow]:
    """Users by points descending; ties ordered by display name, then id.

    Tied users share a position (1, 1, 3).
    """
    users = db.session.execute(
        db.select(User).order_by(User.points.desc(), User.display_name.asc(), User.id.asc())
    ).scalars()
    rows = []
    position = 0
    previous = None
    for index, user in enumerate(users, start=1):
        if user.points != previous:
            position = index
            previous = user.points
        rows.append(RankingRow(position=position, user_id=user.id, display_name=user.display_name, points=user.points))
    return rows
