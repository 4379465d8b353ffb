
class CirculationError(Exception):
    kind = "circulation_error"

class NotFoundError(CirculationError):
    kind = "not_found"

class ItemNotFoundError(NotFoundError): pass

class LoanNotFoundError(NotFoundError): pass

class InvalidInputError(CirculationError):
    kind = "invalid_input"

class ItemInactiveError(CirculationError):
    kind = "item_inactive"

class InsufficientStockError(CirculationError):
    kind = "insufficient_stock"

class InvalidStateError(CirculationError):
    kind = "invalid_state"

class IntegrityViolationError(CirculationError):
    kind = "integrity_violation"

class DatabaseError(CirculationError):
    kind = "database_error"

class UnauthorizedError(CirculationError):
    kind = "unauthorized"
