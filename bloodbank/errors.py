"""Error kinds raised by the ledger, the lifecycle controller and the registry.

Each kind carries the HTTP status it is surfaced as; the API layer is the
only place that turns them into responses.
"""


class BloodBankError(Exception):
    status_code = 500

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BloodBankError):
    """Bad input the caller can correct."""
    status_code = 400


class NotFoundError(BloodBankError):
    status_code = 404


class InvalidStateError(BloodBankError):
    """Illegal lifecycle transition."""
    status_code = 409


class InsufficientInventoryError(BloodBankError):
    status_code = 422

    def __init__(self, bank_id, blood_group, available, requested):
        super().__init__(
            f"Insufficient units available. Current inventory: {available}, Requested: {requested}",
            bank_id=bank_id, blood_group=blood_group,
            available=available, requested=requested,
        )
        self.available = available
        self.requested = requested


class StorageUnavailableError(BloodBankError):
    """The database could not be reached or timed out. Safe for the client to retry."""
    status_code = 503
