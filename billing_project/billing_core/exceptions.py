"""
Ledger error taxonomy.

Every service in billing_core raises one of these; the views turn them into
structured JSON with a human-readable ``error`` message and a stable
``code`` the UI can branch on.
"""


class LedgerError(Exception):
    """Base class for every rejected ledger operation."""

    code = "ledger_error"
    http_status = 400

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def as_dict(self):
        return {"ok": False, "error": self.message, "code": self.code}


# ---------- Validation (caller-correctable, never retried) ----------
class LedgerValidationError(LedgerError):
    code = "validation_error"
    http_status = 400


class InvalidAmount(LedgerValidationError):
    code = "invalid_amount"

    def __init__(self, message="Amount must be positive."):
        super().__init__(message)


class InvalidRate(LedgerValidationError):
    code = "invalid_rate"

    def __init__(self, message="Withholding rate must be below 100%."):
        super().__init__(message)


class InvalidPayload(LedgerValidationError):
    code = "invalid_payload"


# ---------- Tenant boundary ----------
class NotFoundError(LedgerError):
    code = "not_found"
    http_status = 404


class NotFound(NotFoundError):
    """Raised for missing ids and for ids owned by another company."""

    def __init__(self, entity):
        self.entity = entity
        super().__init__(f"{entity.capitalize()} not found.")


# ---------- State ----------
class StateError(LedgerError):
    code = "invalid_state"
    http_status = 409


class InvalidState(StateError):
    pass


# ---------- Conservation ----------
class ConservationError(LedgerError):
    code = "conservation_error"
    http_status = 409


class Overallocation(ConservationError):
    code = "overallocation"

    MESSAGES = {
        "payment": "Amount exceeds payment remaining.",
        "invoice": "Amount exceeds invoice outstanding balance.",
    }

    def __init__(self, side, message=None):
        self.side = side
        super().__init__(message or self.MESSAGES.get(side, f"Amount exceeds {side} balance."))


class Exhausted(ConservationError):
    code = "exhausted"

    def __init__(self, side="payment"):
        self.side = side
        super().__init__(
            f"{side.capitalize()} is fully allocated. No further allocation is possible."
        )


# ---------- Conflicts (the only category retried automatically) ----------
class ConflictError(LedgerError):
    code = "conflict"
    http_status = 409


class NumberConflict(ConflictError):
    code = "number_conflict"

    def __init__(self, document_type, number=None):
        self.document_type = document_type
        self.number = number
        if number:
            message = f"Could not issue a unique {document_type} number ({number} is already taken)."
        else:
            message = f"Could not issue a unique {document_type} number."
        super().__init__(message)


class DatabaseBusy(ConflictError):
    """A write lost a database-level lock (SQLite locks the whole file)."""

    code = "database_busy"

    def __init__(self):
        super().__init__("Another request is updating the ledger. Please retry.")
