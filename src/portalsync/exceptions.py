"""Custom exception hierarchy for portalsync."""

from __future__ import annotations


class PortalError(Exception):
    """Base exception for all portalsync errors."""


class PortalConfigError(PortalError):
    """Invalid or missing configuration."""


class PortalValidationError(PortalError):
    """A record failed service-level validation before being written."""


class StoreError(PortalError):
    """Document store failure (network, permissions, unsupported operation)."""

    def __init__(
        self,
        message: str,
        *,
        collection: str = "",
        document_id: str = "",
    ) -> None:
        self.collection = collection
        self.document_id = document_id
        super().__init__(message)


class StoreReadOnlyError(StoreError):
    """Write attempted against a read-only store adapter."""


class DocumentNotFoundError(StoreError):
    """Update targeted a document that does not exist."""


class SubscriptionError(PortalError):
    """Failure reported for a live subscription."""


class SubscriptionSetupError(SubscriptionError):
    """Building the query or registering the listener failed."""


class MaterializationError(PortalError):
    """Converting a raw store record into an entity failed.

    The underlying exception is available as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        collection: str = "",
        document_id: str = "",
        field: str = "",
    ) -> None:
        self.collection = collection
        self.document_id = document_id
        self.field = field
        super().__init__(message)
