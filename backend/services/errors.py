# backend/services/errors.py
"""
Typed errors raised by the inventory services.

    InventoryError (base)
    +-- ValidationError    invalid quantity / status, 400
    +-- NotFoundError      referenced article / product / order missing, 404
    +-- PersistenceError   transaction or commit failure, 500

Every class carries a machine readable ``code`` and the HTTP status the API
layer answers with. Classifiers never raise these.
"""


class InventoryError(Exception):
    """Base exception for inventory service errors."""

    code: str = "INVENTORY_ERROR"
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(InventoryError):
    code: str = "VALIDATION_ERROR"
    status_code: int = 400

    def __init__(self, message: str, field: str = None):
        self.field = field
        super().__init__(message)


class NotFoundError(InventoryError):
    code: str = "NOT_FOUND"
    status_code: int = 404

    def __init__(self, resource: str, resource_id):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class PersistenceError(InventoryError):
    """The unit of work could not be committed; nothing was persisted."""

    code: str = "PERSISTENCE_ERROR"
    status_code: int = 500
