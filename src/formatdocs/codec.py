"""Word document codec built on python-docx.

Binds placeholder values into a ``.docx`` template in a single pass over each
paragraph's text, so inserted values are never rescanned.  Word's editor may
split a token across several runs; only the runs a token covers are merged,
into the first of them (keeping its formatting).  Other runs, including
drawings and fields, are left alone.
"""

from __future__ import annotations

import bisect
import io
import re
from collections.abc import Iterable, Iterator
from typing import Any

from formatdocs.errors import RenderError
from formatdocs.mapping import token_pattern

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class DocxCodec:
    """Render data-binding sets into ``.docx`` bytes."""

    media_type = DOCX_MEDIA_TYPE

    def render(self, template: bytes, bindings: dict[str, str]) -> bytes:
        """Return a new document with every token in *bindings* replaced.

        Raises:
            RenderError: If *template* is not a readable ``.docx`` or the
                rendered document cannot be written.
        """
        doc = self._open(template)
        pattern = token_pattern(bindings)
        for paragraph in _iter_paragraphs(doc):
            _replace_in_paragraph(paragraph, pattern, bindings)

        out = io.BytesIO()
        try:
            doc.save(out)
        except Exception as exc:
            raise RenderError(f"Failed to render document. Check template placeholders. ({exc})")
        return out.getvalue()

    def collect_tokens(self, template: bytes, candidates: Iterable[str]) -> set[str]:
        """Return the subset of *candidates* present in the template text."""
        return _find_tokens(self._open(template), candidates)

    @staticmethod
    def _open(template: bytes) -> Any:
        from docx import Document

        try:
            return Document(io.BytesIO(template))
        except Exception as exc:
            raise RenderError(f"Invalid document template: {exc}")


# ---------------------------------------------------------------------------
# Paragraph walking
# ---------------------------------------------------------------------------


def _iter_paragraphs(doc: Any) -> Iterator[Any]:
    """Yield body, table, header and footer paragraphs."""
    yield from _iter_container(doc)
    for section in doc.sections:
        for part in (
            section.header, section.footer,
            section.first_page_header, section.first_page_footer,
            section.even_page_header, section.even_page_footer,
        ):
            if part.is_linked_to_previous:
                continue
            yield from _iter_container(part)


def _iter_container(container: Any) -> Iterator[Any]:
    yield from container.paragraphs
    for table in container.tables:
        yield from _iter_table(table)


def _iter_table(table: Any) -> Iterator[Any]:
    for row in table.rows:
        for cell in row.cells:
            yield from cell.paragraphs
            for nested in cell.tables:
                yield from _iter_table(nested)


def _paragraph_text(paragraph: Any) -> str:
    return "".join(run.text for run in paragraph.runs)


def _replace_in_paragraph(paragraph: Any, pattern: re.Pattern[str], bindings: dict[str, str]) -> None:
    runs = paragraph.runs
    texts: list[str | None] = [run.text for run in runs]
    full = "".join(texts)
    matches = list(pattern.finditer(full))
    if not matches:
        return

    starts: list[int] = []
    offset = 0
    for text in texts:
        starts.append(offset)
        offset += len(text)

    # Right to left, so offsets of earlier matches stay valid
    for match in reversed(matches):
        first = bisect.bisect_right(starts, match.start()) - 1
        last = bisect.bisect_right(starts, match.end() - 1) - 1
        head = texts[first][: match.start() - starts[first]]
        tail = texts[last][match.end() - starts[last]:]
        texts[first] = head + bindings[match.group(0)] + tail
        for idx in range(first + 1, last + 1):
            texts[idx] = None

    for run, text in zip(runs, texts):
        if text is None:
            parent = run._r.getparent()
            if parent is not None:
                parent.remove(run._r)
        elif text != run.text:
            run.text = text


def _find_tokens(doc: Any, candidates: Iterable[str]) -> set[str]:
    wanted = set(candidates)
    found: set[str] = set()
    for paragraph in _iter_paragraphs(doc):
        text = _paragraph_text(paragraph)
        if not text:
            continue
        found.update(t for t in wanted if t in text)
    return found
