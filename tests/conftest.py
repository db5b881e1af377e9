"""Shared fixtures: template builders, spreadsheet builders, loaded mappers."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import pytest

from formatdocs.logging import disable_sink
from formatdocs.mapping import DEFAULT_MAPPINGS


def build_docx(paragraphs: list[str], *, split_runs: bool = False, table_cell: str | None = None) -> bytes:
    """Build a .docx whose body holds *paragraphs* (one per line)."""
    from docx import Document

    doc = Document()
    for text in paragraphs:
        p = doc.add_paragraph()
        if split_runs and len(text) > 4:
            # Simulate Word splitting a token across formatting runs
            mid = len(text) // 2
            p.add_run(text[:mid]).bold = True
            p.add_run(text[mid:])
        else:
            p.add_run(text)
    if table_cell is not None:
        table = doc.add_table(rows=1, cols=1)
        table.cell(0, 0).text = table_cell
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def docx_text(content: bytes) -> str:
    """All paragraph and table-cell text of a .docx, newline-joined."""
    from docx import Document

    doc = Document(io.BytesIO(content))
    parts = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                parts.append(cell.text)
    return "\n".join(parts)


def build_html(tokens: list[str]) -> str:
    body = "".join(f"<p>{t}</p>" for t in tokens)
    return f"<html><body>{body}</body></html>"


@pytest.fixture(autouse=True)
def _no_event_sink():
    """Tests never write to a shared event log unless they configure one."""
    disable_sink()
    yield
    disable_sink()


@pytest.fixture
def default_tokens() -> list[str]:
    return [token for _, token in DEFAULT_MAPPINGS]


@pytest.fixture
def template_files(tmp_path: Path, default_tokens: list[str]) -> tuple[Path, Path]:
    """Matching HTML and DOCX templates for the default mapping."""
    html_path = tmp_path / "format-docs.html"
    html_path.write_text(build_html(default_tokens), encoding="utf-8")
    docx_path = tmp_path / "template.docx"
    docx_path.write_bytes(build_docx(default_tokens))
    return html_path, docx_path


@pytest.fixture
def mapper(template_files: tuple[Path, Path]):
    from formatdocs.mapping import FieldMapping
    from formatdocs.template_mapper import TemplateMapper

    m = TemplateMapper(FieldMapping.default())
    html_path, docx_path = template_files
    m.load_templates(str(html_path), str(docx_path))
    return m


@pytest.fixture
def make_xlsx():
    """Factory returning XLSX bytes built with openpyxl.

    ``rows`` is a list of row value lists; ``formats`` maps cell address to
    number format.
    """
    openpyxl = pytest.importorskip("openpyxl")

    def _make(
        rows: list[list[Any]],
        formats: dict[str, str] | None = None,
        extra_sheets: dict[str, list[list[Any]]] | None = None,
    ) -> bytes:
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Sheet1"
        for row in rows:
            ws.append(row)
        for addr, fmt in (formats or {}).items():
            ws[addr].number_format = fmt
        for name, sheet_rows in (extra_sheets or {}).items():
            other = wb.create_sheet(name)
            for row in sheet_rows:
                other.append(row)
        buf = io.BytesIO()
        wb.save(buf)
        wb.close()
        return buf.getvalue()

    return _make


@pytest.fixture
def sample_csv() -> bytes:
    return (
        "Client,Desired Completion Date,Budgetary Estimates\n"
        "Acme Corp,2024-06-01,\"$10,000\"\n"
        "Globex,2024-07-15,$5000\n"
        "Initech,2024-08-30,$2500\n"
    ).encode("utf-8")
