class LedgerError(Exception):
    """Base for errors raised by the match lifecycle and wagering ledger."""
    status_code = 500
    code = 'ledger_error'

    def __init__(self, message: str = ''):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class Unauthenticated(LedgerError):
    status_code = 401
    code = 'unauthenticated'


class Forbidden(LedgerError):
    status_code = 403
    code = 'forbidden'


class NotFound(LedgerError):
    status_code = 404
    code = 'not_found'


class InvalidState(LedgerError):
    status_code = 400
    code = 'invalid_state'


class MatchLocked(InvalidState):
    status_code = 409
    code = 'match_locked'


class InvalidInput(LedgerError):
    status_code = 400
    code = 'invalid_input'


class StoreConflict(LedgerError):
    """Transaction lost a race; safe to retry."""
    status_code = 409
    code = 'store_conflict'


class StoreUnavailable(LedgerError):
    status_code = 503
    code = 'store_unavailable'
