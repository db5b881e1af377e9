"""Batch document generation and packaging.

Generation is fail-fast: the first record that cannot be rendered aborts the
whole batch and nothing is delivered.
"""

from __future__ import annotations

import asyncio
import io
import zipfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from formatdocs.codec import DocxCodec
from formatdocs.errors import EmptyData, FormatDocsError, RenderError
from formatdocs.tabular import Record
from formatdocs.template_mapper import TemplateMapper

ZIP_MEDIA_TYPE = "application/zip"

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class GeneratedDocument:
    filename: str
    content: bytes


@dataclass(frozen=True)
class Delivery:
    """What is offered to the operator as a single download."""

    filename: str
    content: bytes
    media_type: str
    count: int


class YieldPolicy:
    """Hand control back to the event loop after every *every* records.

    Keeps a long batch from starving other tasks on the loop; it has no
    effect on output order.
    """

    def __init__(self, every: int = 10) -> None:
        if every < 1:
            raise ValueError("every must be >= 1")
        self.every = every

    def due(self, completed: int) -> bool:
        return completed % self.every == 0

    async def checkpoint(self, completed: int) -> None:
        if self.due(completed):
            await asyncio.sleep(0)


class BatchGenerator:
    """Fill, render and name one document per record."""

    def __init__(
        self,
        mapper: TemplateMapper,
        codec: DocxCodec | None = None,
        policy: YieldPolicy | None = None,
    ) -> None:
        self.mapper = mapper
        self.codec = codec or DocxCodec()
        self.policy = policy or YieldPolicy()

    def generate_one(self, record: Record, index: int) -> GeneratedDocument:
        bindings = self.mapper.fill_for_generation(record)
        content = self.codec.render(self.mapper.document_template, bindings)
        return GeneratedDocument(
            filename=self.mapper.generate_filename(record, index),
            content=content,
        )

    async def generate_all(
        self,
        records: Sequence[Record],
        on_progress: ProgressCallback | None = None,
    ) -> list[GeneratedDocument]:
        """Generate documents for *records* in order.

        Args:
            records: Parsed rows.
            on_progress: Called with ``(completed, total)`` after each record.

        Raises:
            RenderError: The first failing record, tagged with its row number.
            TemplateNotLoaded: Templates were never loaded.
        """
        total = len(records)
        documents: list[GeneratedDocument] = []
        for idx, record in enumerate(records):
            try:
                documents.append(self.generate_one(record, idx))
            except RenderError as exc:
                raise RenderError(str(exc), row_number=idx + 1) from exc
            if on_progress is not None:
                on_progress(idx + 1, total)
            await self.policy.checkpoint(idx + 1)
        return documents


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------


def dedupe_filenames(names: Sequence[str]) -> list[str]:
    """Make *names* unique, keeping the first occurrence of each unchanged.

    A repeated name gets ``_1``, ``_2``, ... inserted before its extension
    until an unused name is found.
    """
    used: set[str] = set()
    result: list[str] = []
    for name in names:
        stem, dot, ext = name.rpartition(".")
        if not dot:
            stem, ext = name, ""
        candidate = name
        counter = 1
        while candidate in used:
            candidate = f"{stem}_{counter}{dot}{ext}"
            counter += 1
        used.add(candidate)
        result.append(candidate)
    return result


def create_archive(documents: Sequence[GeneratedDocument]) -> bytes:
    """Bundle *documents* into a deflate-compressed ZIP with unique names."""
    names = dedupe_filenames([d.filename for d in documents])
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, doc in zip(names, documents):
            zf.writestr(name, doc.content)
    return buf.getvalue()


def package_documents(
    documents: Sequence[GeneratedDocument],
    archive_name: str = "Specification_Documents.zip",
) -> Delivery:
    """Deliver one document directly, or several as an archive."""
    if not documents:
        raise EmptyData("No documents to deliver")
    if len(documents) == 1:
        doc = documents[0]
        return Delivery(doc.filename, doc.content, DocxCodec.media_type, 1)
    try:
        content = create_archive(documents)
    except (OSError, zipfile.BadZipFile) as exc:
        raise FormatDocsError(f"Failed to create ZIP archive: {exc}")
    return Delivery(archive_name, content, ZIP_MEDIA_TYPE, len(documents))
