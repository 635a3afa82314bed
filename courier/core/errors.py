"""Error taxonomy shared by every fulfillment service.

Each error carries an HTTP-ish ``status`` and enough context for the caller
to correct the request. None of them are transient, so nothing retries.
"""


class CourierError(Exception):
    status = 500

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        result = {"error": self.message, "status": self.status}
        result.update({k: v for k, v in self.context.items() if v is not None})
        return result


class UnauthenticatedError(CourierError):
    status = 401


class ForbiddenError(CourierError):
    status = 403


class NotFoundError(CourierError):
    status = 404


class InvalidStateError(CourierError):
    status = 400


class InvalidTransitionError(InvalidStateError):
    def __init__(self, current_status, new_status, allowed):
        allowed_values = [s.value for s in allowed]
        message = (
            f"Invalid status transition from {current_status.value} to {new_status.value}. "
            f"Allowed transitions: {', '.join(allowed_values) or 'none'}"
        )
        super().__init__(
            message,
            current_status=current_status.value,
            requested_status=new_status.value,
            allowed_transitions=allowed_values,
        )
        self.current_status = current_status
        self.new_status = new_status
        self.allowed = allowed


class InvalidAmountError(InvalidStateError):
    def __init__(self, amount, expected):
        super().__init__(
            f"Payment amount ({amount}) does not match order total ({expected})",
            amount=str(amount),
            expected_amount=str(expected),
        )
        self.amount = amount
        self.expected = expected


class ConflictError(CourierError):
    status = 409


class DuplicatePaymentError(ConflictError, InvalidStateError):
    """A live (non-FAILED) payment already exists for the order."""
    status = 409
