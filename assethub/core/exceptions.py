"""Error taxonomy for the approval engine.

Every error carries an HTTP status and a stable code so the API layer can
map it without inspecting messages.
"""

from typing import Any


class AssetHubError(Exception):
    """Base class for engine errors surfaced to callers."""

    status_code = 400
    code = "ASSET_HUB_ERROR"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(AssetHubError):
    """Malformed input for a create, transition or configuration call."""

    code = "VALIDATION_ERROR"


class NotFound(AssetHubError):
    """Unknown request, asset, consumable, operation or role."""

    status_code = 404
    code = "NOT_FOUND"


class AlreadyFinalized(AssetHubError):
    """Transition attempted on a request that is no longer pending."""

    status_code = 409
    code = "ALREADY_FINALIZED"


class InsufficientStock(AssetHubError):
    """Applying a stock delta would drive quantity below zero."""

    status_code = 409
    code = "INSUFFICIENT_STOCK"


class ApproverResolutionError(AssetHubError):
    """Base class for approver resolver failures."""

    code = "APPROVER_RESOLUTION_FAILED"


class OverrideNotAllowed(ApproverResolutionError):
    code = "OVERRIDE_NOT_ALLOWED"


class NoDefaultApprover(ApproverResolutionError):
    code = "NO_DEFAULT_APPROVER"


class NoRoleMembers(ApproverResolutionError):
    code = "NO_ROLE_MEMBERS"


class AmbiguousRoleApprover(ApproverResolutionError):
    code = "AMBIGUOUS_ROLE_APPROVER"


class ApproverNotInRole(ApproverResolutionError):
    code = "APPROVER_NOT_IN_ROLE"
