"""
Domain error taxonomy.

Every failure the commerce core reports to a caller is a MarketError.
Errors fall into five recoverable families, each with an HTTP status hint
used by the API shell:

- ValidationFailure (400): malformed input
- NotFound (404): referenced record absent
- Conflict (409): duplicate entitlement/review, invalid state transition
- Forbidden (403): caller lacks ownership or role
- WindowExpired (422): refund requested too late

StorageUnavailable (503) is the one fatal class; it is raised only after
the unit of work has rolled back.
"""

from __future__ import annotations

from uuid import UUID


class MarketError(Exception):
    """Base commerce error."""

    code = "market_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# --- Families ---


class ValidationFailure(MarketError):
    code = "validation_failed"
    status_code = 400

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class NotFound(MarketError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: UUID | str | None = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class Conflict(MarketError):
    code = "conflict"
    status_code = 409


class Forbidden(MarketError):
    code = "forbidden"
    status_code = 403


class WindowExpired(MarketError):
    code = "window_expired"
    status_code = 422


# --- Validation ---


class InvalidAmount(ValidationFailure):
    code = "invalid_amount"

    def __init__(self, amount: object) -> None:
        self.amount = amount
        super().__init__(f"Amount must be positive, got {amount}", field="amount")


class InvalidRating(ValidationFailure):
    code = "invalid_rating"

    def __init__(self, rating: object, minimum: int = 1, maximum: int = 5) -> None:
        self.rating = rating
        super().__init__(
            f"Rating must be an integer between {minimum} and {maximum}", field="rating"
        )


class MissingReason(ValidationFailure):
    code = "reason_required"

    def __init__(self, what: str = "Reason") -> None:
        super().__init__(f"{what} is required", field="reason")


# --- Conflicts ---


class RuleNotPurchasable(Conflict):
    code = "rule_not_purchasable"

    def __init__(self, rule_id: UUID) -> None:
        self.rule_id = rule_id
        super().__init__("This rule is not for sale")


class AlreadyOwned(Conflict):
    code = "already_owned"

    def __init__(self, buyer_id: UUID, rule_id: UUID) -> None:
        self.buyer_id = buyer_id
        self.rule_id = rule_id
        super().__init__("You have already purchased this rule")


class DuplicateReview(Conflict):
    code = "duplicate_review"

    def __init__(self, user_id: UUID, rule_id: UUID) -> None:
        self.user_id = user_id
        self.rule_id = rule_id
        super().__init__("You have already reviewed this rule")


class InvalidState(Conflict):
    code = "invalid_state"

    def __init__(self, current: str, expected: str | tuple[str, ...]) -> None:
        self.current = current
        self.expected = expected
        wanted = expected if isinstance(expected, str) else " or ".join(expected)
        super().__init__(f"Transaction is {current}, expected {wanted}")


class PaymentDeclined(Conflict):
    code = "payment_declined"
    status_code = 402

    def __init__(self, transaction_id: UUID, reason: str | None = None) -> None:
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(f"Payment was declined: {reason or 'unknown reason'}")


# --- Authorization ---


class SelfPurchaseForbidden(Forbidden):
    code = "self_purchase_forbidden"

    def __init__(self) -> None:
        super().__init__("You cannot purchase your own rule")


class NotBuyer(Forbidden):
    code = "not_buyer"

    def __init__(self) -> None:
        super().__init__("Only the buyer can request a refund")


class NotAuthor(Forbidden):
    code = "not_author"

    def __init__(self, action: str = "modify") -> None:
        super().__init__(f"You can only {action} your own reviews")


class AdminRequired(Forbidden):
    code = "admin_required"

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Admin role required to {action}")


class PurchaseRequired(Forbidden):
    code = "purchase_required"

    def __init__(self) -> None:
        super().__init__("You must purchase this rule to leave a review")


# --- Time ---


class RefundWindowExpired(WindowExpired):
    code = "refund_window_expired"

    def __init__(self, window_days: int) -> None:
        self.window_days = window_days
        super().__init__(f"Refund requests can only be made within {window_days} days")


# --- Fatal ---


class StorageUnavailable(MarketError):
    code = "storage_unavailable"
    status_code = 503

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage unavailable during {operation}")
