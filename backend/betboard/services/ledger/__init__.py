"""Match lifecycle and wagering ledger.

Pure(ish) domain logic imported by the HTTP blueprints: when a match
accepts predictions, how one prediction per (match, user) is kept, and how
a declared result turns into points exactly once and can be undone.
"""

from .errors import (
    Forbidden,
    InvalidInput,
    InvalidState,
    LedgerError,
    MatchLocked,
    NotFound,
    StoreConflict,
    StoreUnavailable,
    Unauthenticated,
)
from .service import Ledger, get_ledger
from .users import Identity
