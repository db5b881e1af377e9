"""Error types surfaced to the operator.

Every error carries a human-readable message; callers (UI, CLI) display
``str(exc)`` as-is.
"""

from __future__ import annotations


class FormatDocsError(Exception):
    """Base class for all formatdocs errors."""


class UnsupportedFormat(FormatDocsError):
    """The uploaded file's extension is not a supported spreadsheet kind.

    Attributes:
        extension: The rejected extension, without the leading dot.
    """

    def __init__(self, extension: str) -> None:
        self.extension = extension
        super().__init__(
            f"Unsupported file format: .{extension}. "
            "Please upload an Excel (.xlsx) or CSV file"
        )


class EmptyData(FormatDocsError):
    """No header row plus at least one data row was found."""


class ReadError(FormatDocsError):
    """The underlying file could not be read or decoded."""


class TemplateNotLoaded(FormatDocsError):
    """A fill or generate call was made before templates were loaded."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Templates are not loaded")


class TemplateLoadError(FormatDocsError):
    """A template source was unreachable or returned a non-success status.

    Attributes:
        source: The path or URL that failed.
    """

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        super().__init__(f"Failed to load template {source}: {reason}")


class TemplateMismatchError(TemplateLoadError):
    """Preview and document templates declare different placeholder tokens."""

    def __init__(
        self,
        source: str,
        preview_only: set[str],
        document_only: set[str],
    ) -> None:
        self.preview_only = preview_only
        self.document_only = document_only
        parts = []
        if preview_only:
            parts.append(f"only in preview: {sorted(preview_only)}")
        if document_only:
            parts.append(f"only in document: {sorted(document_only)}")
        super().__init__(source, "placeholder mismatch, " + "; ".join(parts))


class RenderError(FormatDocsError):
    """The document codec could not bind data into the template.

    Attributes:
        row_number: 1-based data row that failed, when known.
    """

    def __init__(self, message: str, row_number: int | None = None) -> None:
        self.row_number = row_number
        full = message
        if row_number is not None:
            full = f"Row {row_number}: {message}"
        super().__init__(full)


class OperationInProgress(FormatDocsError):
    """A conflicting upload or generation is already running."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Another operation is in progress: {operation}")
