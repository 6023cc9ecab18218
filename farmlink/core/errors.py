"""Marketplace error taxonomy.

Services raise these; ``farmlink.main`` renders them as
``{"detail": ..., "code": ..., **context}`` with the matching status code.
"""
from typing import Any, Dict


class MarketplaceError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.context}


class NotFound(MarketplaceError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any = None):
        super().__init__(f"{entity} not found", entity=entity.lower(), id=entity_id)


class Unauthorized(MarketplaceError):
    status_code = 403
    code = "unauthorized"


class NotAssigned(Unauthorized):
    code = "not_assigned"

    def __init__(self, message: str = "You are not assigned to this delivery"):
        super().__init__(message)


class NotAvailable(MarketplaceError):
    code = "not_available"

    def __init__(self, message: str = "This job is no longer available", **context: Any):
        super().__init__(message, **context)


class AlreadyAssigned(NotAvailable):
    status_code = 409
    code = "already_assigned"

    def __init__(self, message: str = "This job has already been assigned to another transporter"):
        super().__init__(message)


class InvalidStatus(MarketplaceError):
    code = "invalid_status"

    def __init__(self, requested: Any, allowed):
        super().__init__(
            f"Invalid status. Must be one of: {', '.join(allowed)}",
            requested=requested,
            allowed=list(allowed),
        )


class InvalidTransition(MarketplaceError):
    code = "invalid_transition"

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change status from '{current}' to '{requested}'",
            current=current,
            requested=requested,
        )


class PhotoRequired(MarketplaceError):
    code = "photo_required"

    def __init__(self):
        super().__init__(
            "Pickup photo is mandatory when marking as picked. "
            "Please upload a photo of the product."
        )


class OutOfServiceArea(MarketplaceError):
    code = "out_of_service_area"

    def __init__(self, max_distance_km: float, warning: str | None = None):
        super().__init__(
            f"This job is outside your service radius of {max_distance_km:g}km",
            max_distance_km=max_distance_km,
            warning=warning,
        )


class DuplicateReview(MarketplaceError):
    code = "duplicate_review"

    def __init__(self):
        super().__init__("You have already reviewed this order")


class ValidationFailed(MarketplaceError):
    code = "validation_failed"


class Conflict(MarketplaceError):
    status_code = 409
    code = "conflict"
