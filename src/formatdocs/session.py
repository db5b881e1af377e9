"""Operator session: upload, preview navigation, generation, reset.

One session drives one browser tab (or one CLI invocation).  Parsed data is
replaced wholesale on each successful upload and kept untouched when an
upload or generation fails.  Uploads and generations may not overlap.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any

from formatdocs import tabular
from formatdocs.config import mapping_from_config
from formatdocs.errors import (
    EmptyData,
    FormatDocsError,
    OperationInProgress,
    TemplateLoadError,
    TemplateNotLoaded,
)
from formatdocs.generator import BatchGenerator, Delivery, YieldPolicy, package_documents
from formatdocs.logging import EventType, emit_error, emit_info, emit_warning, error_code_for
from formatdocs.preview import PreviewNavigator
from formatdocs.tabular import ParseResult
from formatdocs.template_mapper import TemplateMapper


class DocumentSession:
    """Coordinates parsing, preview and generation for one operator."""

    def __init__(
        self,
        mapper: TemplateMapper,
        generator: BatchGenerator | None = None,
        *,
        archive_name: str = "Specification_Documents.zip",
        on_render: Callable[[str], None] | None = None,
    ) -> None:
        self.mapper = mapper
        self.generator = generator or BatchGenerator(mapper)
        self.archive_name = archive_name
        self.navigator = PreviewNavigator(mapper, on_render=on_render)
        self.parsed: ParseResult | None = None
        self.filename: str | None = None
        self.progress: tuple[int, int] = (0, 0)
        self._busy: str | None = None

    @property
    def busy(self) -> str | None:
        """Name of the operation in flight, or None."""
        return self._busy

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        if self._busy is not None:
            raise OperationInProgress(self._busy)
        self._busy = name
        try:
            yield
        finally:
            self._busy = None

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def load_file(self, file_bytes: bytes, filename: str) -> ParseResult:
        """Parse an upload and make it the current data set."""
        with self._operation("parse"):
            emit_info(EventType.parse_started, f"Parsing {filename}", {"filename": filename})
            try:
                result = tabular.parse(file_bytes, filename)
            except FormatDocsError as exc:
                emit_error(
                    EventType.parse_failed, str(exc), {"filename": filename},
                    error_code=error_code_for(exc),
                )
                raise

            self.parsed = result
            self.filename = filename
            self.progress = (0, 0)
            self.navigator.set_rows(result.rows)
            emit_info(
                EventType.parse_completed,
                f"Loaded {_plural(len(result.rows), 'row')} from {filename}",
                {"filename": filename, "rows": len(result.rows), "columns": len(result.headers)},
            )
            return result

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def next(self) -> bool:
        return self.navigator.next()

    def previous(self) -> bool:
        return self.navigator.previous()

    def go_to(self, index: int) -> bool:
        return self.navigator.go_to(index)

    @property
    def preview_html(self) -> str:
        return self.navigator.rendered

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _on_progress(self, completed: int, total: int) -> None:
        self.progress = (completed, total)

    async def generate(self) -> Delivery:
        """Generate every row and package the result for download.

        Raises:
            EmptyData: No file has been loaded.
            TemplateNotLoaded: Templates failed to load at startup.
            RenderError: Any row failed; nothing is delivered.
        """
        if self.parsed is None or not self.parsed.rows:
            raise EmptyData("No data loaded")
        if not self.mapper.loaded:
            raise TemplateNotLoaded("No data loaded or template missing")

        with self._operation("generate"):
            rows = self.parsed.rows
            self.progress = (0, len(rows))
            emit_info(
                EventType.generation_started,
                f"Generating {_plural(len(rows), 'document')}",
                {"filename": self.filename, "total": len(rows)},
            )
            try:
                documents = await self.generator.generate_all(rows, self._on_progress)
                delivery = package_documents(documents, self.archive_name)
            except FormatDocsError as exc:
                emit_error(
                    EventType.generation_failed,
                    f"Generation failed: {exc}",
                    {"filename": self.filename, "total": len(rows)},
                    error_code=error_code_for(exc),
                )
                raise

            if delivery.count > 1:
                emit_info(
                    EventType.archive_created,
                    f"Archived {delivery.count} documents",
                    {"archive": delivery.filename, "bytes": len(delivery.content)},
                )
            emit_info(
                EventType.generation_completed,
                f"Generated {_plural(delivery.count, 'document')}",
                {"filename": self.filename, "total": delivery.count, "delivery": delivery.filename},
            )
            return delivery

    # ------------------------------------------------------------------
    # Reset / state
    # ------------------------------------------------------------------

    def reset(self) -> None:
        self.parsed = None
        self.filename = None
        self.progress = (0, 0)
        self.navigator.clear()
        emit_info(EventType.session_reset, "Session reset")

    def state(self) -> dict[str, Any]:
        nav = self.navigator.state()
        completed, total = self.progress
        return {
            "templates_loaded": self.mapper.loaded,
            "filename": self.filename,
            "headers": list(self.parsed.headers) if self.parsed else [],
            "row_count": len(self.parsed.rows) if self.parsed else 0,
            "navigation": asdict(nav),
            "progress": {"completed": completed, "total": total},
            "busy": self._busy,
        }


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def create_session(config: dict[str, Any], *, load_templates: bool = True) -> DocumentSession:
    """Build a session from a loaded configuration dict.

    A template load failure is logged and leaves the session usable for
    preview navigation; generation then fails with ``TemplateNotLoaded``.
    """
    mapper = TemplateMapper(
        mapping_from_config(config),
        identity_field=config["identity_field"],
        filename_suffix=config["filename_suffix"],
    )
    generator = BatchGenerator(mapper, policy=YieldPolicy(config["yield_every"]))
    session = DocumentSession(mapper, generator, archive_name=config["archive_name"])

    if load_templates:
        preview_src = config["preview_template"]
        document_src = config["document_template"]
        try:
            mapper.load_templates(preview_src, document_src)
        except TemplateLoadError as exc:
            emit_warning(
                EventType.template_load_failed, str(exc),
                {"preview_template": preview_src, "document_template": document_src},
                error_code=error_code_for(exc),
            )
        else:
            emit_info(
                EventType.templates_loaded,
                f"Loaded templates ({len(mapper.mapping)} placeholders)",
                {"preview_template": preview_src, "document_template": document_src},
            )
    return session
