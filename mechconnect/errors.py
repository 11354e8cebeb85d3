# mechconnect/errors.py
"""Domain errors raised by the core workflow.

Each error carries the HTTP status the API answers with, so routes can let
them propagate to the handler registered in ``create_app``.
"""
from fastapi import status


class MechConnectError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(MechConnectError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"

    @classmethod
    def resource(cls, name: str) -> "NotFound":
        return cls(f"{name} not found")


class InsufficientBalance(MechConnectError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = "Insufficient diamonds"


class InvalidState(MechConnectError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation not permitted in the current state"


class DuplicateProposal(InvalidState):
    default_detail = "You already sent a proposal for this request"


class RemoteFailure(MechConnectError):
    status_code = status.HTTP_424_FAILED_DEPENDENCY
    default_detail = "Remote service failure"


class Forbidden(MechConnectError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not allowed to act on this resource"
