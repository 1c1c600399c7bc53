"""
PageComposer - Custom Exceptions Module

This module defines custom exception classes for the error cases of
source loading, catalog manipulation and document assembly.
"""


class PageComposerError(Exception):
    """Base exception for all PageComposer errors.

    All custom exceptions should inherit from this class to allow
    catching any PageComposer-specific error.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional technical details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class SourceUnreadable(PageComposerError):
    """Raised when source bytes do not parse as a PDF or image.

    Recoverable: the user can upload the file again. Other sources and
    the catalog are not affected.
    """

    def __init__(self, source_id: str, name: str = "", reason: str | None = None) -> None:
        """Initialize the exception.

        Args:
            source_id: Identifier of the unreadable source
            name: Display name of the source, if known
            reason: Optional reason reported by the parser
        """
        self.source_id = source_id
        self.name = name
        self.reason = reason

        msg = f"Could not read source '{name or source_id}'"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg, details=f"source_id={source_id}")


class ReferenceOutOfRange(PageComposerError):
    """Raised when a page reference points outside its source.

    Catalog invariants make this unreachable in normal use, so seeing it
    means an internal invariant was broken.
    """

    def __init__(self, source_id: str, page_index: int, page_count: int | None = None) -> None:
        """Initialize the exception.

        Args:
            source_id: Source the reference points into
            page_index: The offending 0-based page index
            page_count: Number of pages the source actually has
        """
        self.source_id = source_id
        self.page_index = page_index
        self.page_count = page_count

        msg = f"Page index {page_index} is out of range for source '{source_id}'"
        details = None
        if page_count is not None:
            details = f"page_count={page_count}"
        super().__init__(msg, details=details)


class UnknownSource(ReferenceOutOfRange):
    """Raised when a source id is not present in the registry."""

    def __init__(self, source_id: str) -> None:
        self.source_id = source_id
        self.page_index = -1
        self.page_count = None
        PageComposerError.__init__(self, f"Unknown source '{source_id}'")


class UnknownPage(ReferenceOutOfRange):
    """Raised when a page id is not present in the catalog."""

    def __init__(self, page_id: str) -> None:
        self.page_id = page_id
        self.source_id = ""
        self.page_index = -1
        self.page_count = None
        PageComposerError.__init__(self, f"Unknown page '{page_id}'")


class AssemblyFailed(PageComposerError):
    """Raised when copying or serializing an output document fails.

    No partial output is ever emitted for the failed document.
    """

    def __init__(
        self,
        reason: str,
        cause: BaseException | None = None,
        output_index: int | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            reason: Description of the failing step
            cause: The underlying exception, if any
            output_index: Index of the failed output in range mode
        """
        self.reason = reason
        self.cause = cause
        self.output_index = output_index
        self.completed_outputs: list[bytes] = []

        msg = f"Assembly failed: {reason}"
        details = None
        if output_index is not None:
            details = f"output={output_index}"
        super().__init__(msg, details=details)


class EmptyPlan(PageComposerError):
    """Raised when assembly is requested with zero pages."""

    def __init__(self, output_index: int | None = None) -> None:
        self.output_index = output_index
        self.completed_outputs: list[bytes] = []
        details = None
        if output_index is not None:
            details = f"output={output_index}"
        super().__init__("Nothing to assemble: the plan has no pages", details=details)


class SessionBusy(PageComposerError):
    """Raised when the catalog is mutated while an assembly is in flight."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"Cannot {operation} while an assembly is in progress",
            details=f"operation={operation}",
        )


class PreviewUnavailable(PageComposerError):
    """Raised when a page preview cannot be rendered."""

    def __init__(self, source_id: str, page_index: int, reason: str | None = None) -> None:
        self.source_id = source_id
        self.page_index = page_index
        self.reason = reason

        msg = f"Preview unavailable for page {page_index + 1} of '{source_id}'"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg)


class ValidationError(PageComposerError):
    """Raised when input validation fails."""

    def __init__(
        self,
        field: str,
        value: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            field: Name of the field that failed validation
            value: Optional value that failed validation
            reason: Optional reason for the validation failure
        """
        self.field = field
        self.value = value
        self.reason = reason

        msg = f"Validation error for '{field}'"
        if reason:
            msg += f": {reason}"

        super().__init__(msg)


class InvalidRotation(ValidationError):
    """Raised when a rotation is not a multiple of 90 degrees."""

    def __init__(self, degrees: int) -> None:
        self.degrees = degrees
        super().__init__(
            "rotation",
            value=str(degrees),
            reason=f"{degrees} is not a multiple of 90 degrees",
        )


# Exception hierarchy summary:
# PageComposerError (base)
# ├── SourceUnreadable
# ├── ReferenceOutOfRange
# │   ├── UnknownSource
# │   └── UnknownPage
# ├── AssemblyFailed
# ├── EmptyPlan
# ├── SessionBusy
# ├── PreviewUnavailable
# └── ValidationError
#     └── InvalidRotation
