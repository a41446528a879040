"""Custom exceptions for the stock & cost ledger."""

class LedgerError(Exception):
    """Base exception for all application errors."""
    code = 'internal_error'
    retryable = False

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['status'] = 'error'
        return rv

class InvalidInputError(LedgerError):
    """Malformed request: bad quantity or price, duplicate or unknown fields."""
    code = 'invalid_input'

    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)

class NotFoundError(LedgerError):
    """Exception raised when a resource is not found in the tenant scope."""
    code = 'not_found'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class ProductNotFoundError(NotFoundError):
    """Product does not exist or belongs to another tenant."""

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", payload={'product_id': product_id})

class InsufficientStockError(LedgerError):
    """Raised when a sale line asks for more than is on hand."""
    code = 'insufficient_stock'

    def __init__(self, product_id, product_name, requested, available):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        message = f"Insufficient stock for {product_name}: requested {requested}, available {available}"
        payload = {'product_id': product_id, 'requested': requested, 'available': available}
        super().__init__(message, status_code=409, payload=payload)

class ConflictError(LedgerError):
    """Exclusive access could not be obtained in time; retry from scratch."""
    code = 'conflict'
    retryable = True

    def __init__(self, message="Product is busy, try again", payload=None):
        super().__init__(message, 409, payload)

class OperationCancelled(LedgerError):
    """Caller abandoned the operation before its write began."""
    code = 'cancelled'

    def __init__(self, message="Operation cancelled before commit"):
        super().__init__(message, 409)

class PersistenceError(LedgerError):
    """Storage write failed after validation; the unit was rolled back."""
    code = 'persistence_failure'

    def __init__(self, message="Could not persist the operation", payload=None):
        super().__init__(message, 500, payload)

class HistoryImmutableError(LedgerError):
    """Sale and restock records are append-only."""
    code = 'history_immutable'

    def __init__(self, record):
        super().__init__(f"{record!r} is append-only and cannot be changed", 409)
