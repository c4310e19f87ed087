"""
Exception taxonomy shared by the builder, the live configuration server,
the preview client and the code generator.
"""
from typing import Optional


class BuilderError(Exception):
    """Base exception for all builder errors"""
    pass


class UnknownKind(BuilderError):
    """Raised when a kind id is not present in the component registry"""

    def __init__(self, kind_id: str):
        self.kind_id = kind_id
        super().__init__(f"Unknown component kind: {kind_id!r}")


class InstanceNotFound(BuilderError):
    """Raised when an instance id is not present on a page"""

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"Component instance not found: {instance_id!r}")


class PersistenceFailure(BuilderError):
    """Raised when the persistence collaborator fails. Never retried."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class PageNotFound(BuilderError):
    """Raised when no page matches a lookup. Not a storage failure."""
    pass


class CatalogUnavailable(BuilderError):
    """Raised by storefront collaborators; always recovered with a fallback catalog"""
    pass


class GenerationAborted(BuilderError):
    """Fatal code generation error (missing skeleton, unwritable output)"""
    pass


class RenderFailure(BuilderError):
    """Raised by a preview renderer; isolated to a single instance"""

    def __init__(self, instance_id: str, kind_id: str, message: str):
        self.instance_id = instance_id
        self.kind_id = kind_id
        super().__init__(f"Failed to render {kind_id} ({instance_id}): {message}")
