"""Domain errors rendered as JSON error responses."""
from fastapi import status


class ShibrError(Exception):
    """Base error for business rule failures."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class BusinessRuleError(ShibrError):
    """A request that breaks a marketplace rule (stock, pricing, dates)."""


class NotFoundError(ShibrError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(ShibrError):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransitionError(ShibrError):
    """A workflow action attempted from the wrong status."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"Cannot move {entity} from '{current}' to '{target}'")
        self.entity = entity
        self.current = current
        self.target = target


class OTPDeliveryError(ShibrError):
    """The messaging provider failed to deliver a verification code."""

    status_code = status.HTTP_502_BAD_GATEWAY
