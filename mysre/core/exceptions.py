"""Domain error taxonomy.

Services raise these; the handlers registered in ``mysre.main`` turn them
into JSON responses. Each class carries the HTTP status it maps to.
"""

from fastapi import status


class MySREError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"detail": self.message, "error": type(self).__name__}


# ── 400: malformed input ─────────────────────────────────────

class ValidationError(MySREError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidAmount(ValidationError):
    def __init__(self, amount: object) -> None:
        super().__init__(f"Token amount must be a positive integer, got {amount!r}")
        self.amount = amount


class InvalidTier(ValidationError):
    def __init__(self, tier: object) -> None:
        super().__init__(f"Unknown tier: {tier!r}")
        self.tier = tier


# ── 404: referenced entity absent ────────────────────────────

class NotFoundError(MySREError):
    status_code = status.HTTP_404_NOT_FOUND


class UserNotFound(NotFoundError):
    def __init__(self, user_id: object) -> None:
        super().__init__("User not found")
        self.user_id = user_id


# ── 400: business rules ──────────────────────────────────────

class BusinessRuleViolation(MySREError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientBalance(BusinessRuleViolation):
    def __init__(self, required: int, available: int) -> None:
        super().__init__("Insufficient token balance")
        self.required = required
        self.available = available

    def payload(self) -> dict:
        return {**super().payload(), "required": self.required, "available": self.available}


class LastAdminDeletion(BusinessRuleViolation):
    def __init__(self) -> None:
        super().__init__("Cannot delete the last admin")


class UserHasBillingHistory(BusinessRuleViolation):
    """Usage events and billing records are append-only, so their owner stays."""

    def __init__(self) -> None:
        super().__init__("Cannot delete a user with token usage or billing history")


# ── 500: backend failure ─────────────────────────────────────

class PersistenceFailure(MySREError):
    """Underlying storage error; the backend message is passed through."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
