"""Template loading and placeholder substitution.

Two representations of the same document are loaded once: an HTML template
for in-browser preview and a ``.docx`` template for generation.  Both must
carry the same placeholder tokens, which is checked when they load, so that
a preview always matches the generated file.
"""

from __future__ import annotations

import html
import re
from pathlib import Path

from formatdocs.codec import DocxCodec
from formatdocs.errors import (
    FormatDocsError,
    TemplateLoadError,
    TemplateMismatchError,
    TemplateNotLoaded,
)
from formatdocs.mapping import FieldMapping
from formatdocs.tabular import Record

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9\s\-_]")
_WHITESPACE_RE = re.compile(r"\s+")
_MAX_STEM_LEN = 50

BLANK_PREVIEW = "<html><body></body></html>"


class TemplateMapper:
    """Substitute record values into the loaded templates.

    Args:
        mapping: Field -> token pairs applied on every fill.
        identity_field: Column whose value names each generated file.
        filename_suffix: Appended to every generated file name.
        codec: Used to discover tokens in the ``.docx`` template at load time.
    """

    def __init__(
        self,
        mapping: FieldMapping,
        *,
        identity_field: str = "Client",
        filename_suffix: str = "_Specification.docx",
        codec: DocxCodec | None = None,
    ) -> None:
        self.mapping = mapping
        self.identity_field = identity_field
        self.filename_suffix = filename_suffix
        self._codec = codec or DocxCodec()
        self._pattern = mapping.pattern()
        self._token_fields = {token: field for field, token in mapping}
        self._preview_template: str | None = None
        self._document_template: bytes | None = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def loaded(self) -> bool:
        return self._preview_template is not None and self._document_template is not None

    def load_templates(self, preview_source: str, document_source: str) -> None:
        """Fetch both templates and validate their placeholder sets.

        Each source is a filesystem path or an ``http(s)://`` URL.  State is
        replaced only after both templates load and agree.

        Raises:
            TemplateLoadError: A source is unreachable or not a success.
            TemplateMismatchError: The templates carry different tokens.
        """
        preview_bytes = fetch_source(preview_source)
        try:
            preview = preview_bytes.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise TemplateLoadError(preview_source, f"not UTF-8 text ({exc})")
        document = fetch_source(document_source)

        tokens = self.mapping.tokens
        preview_tokens = {t for t in tokens if t in preview}
        try:
            document_tokens = self._codec.collect_tokens(document, tokens)
        except FormatDocsError as exc:
            raise TemplateLoadError(document_source, str(exc))
        if preview_tokens != document_tokens:
            raise TemplateMismatchError(
                f"{preview_source} / {document_source}",
                preview_only=preview_tokens - document_tokens,
                document_only=document_tokens - preview_tokens,
            )

        self._preview_template = preview
        self._document_template = document

    @property
    def document_template(self) -> bytes:
        if self._document_template is None:
            raise TemplateNotLoaded(
                "Document template is missing. Please ensure templates/template.docx exists."
            )
        return self._document_template

    # ------------------------------------------------------------------
    # Filling
    # ------------------------------------------------------------------

    def fill_for_preview(self, record: Record) -> str:
        """Return the HTML template with HTML-escaped record values."""
        if self._preview_template is None:
            raise TemplateNotLoaded("Preview template is not loaded")
        escaped = {
            token: html.escape(record.get(field) or "", quote=True)
            for token, field in self._token_fields.items()
        }
        return self._pattern.sub(lambda m: escaped[m.group(0)], self._preview_template)

    def fill_for_generation(self, record: Record) -> dict[str, str]:
        """Return token -> raw value bindings for the document codec."""
        if self._document_template is None:
            raise TemplateNotLoaded("Document template is not loaded")
        return {token: record.get(field) or "" for field, token in self.mapping}

    def generate_filename(self, record: Record, index: int) -> str:
        """Derive a sanitized file name from the identity column.

        Falls back to ``Document_<index + 1>`` when the column is empty.
        """
        name = record.get(self.identity_field) or f"Document_{index + 1}"
        name = _UNSAFE_FILENAME_RE.sub("", name)
        name = _WHITESPACE_RE.sub("_", name)[:_MAX_STEM_LEN]
        return f"{name}{self.filename_suffix}"


def fetch_source(source: str) -> bytes:
    """Read a template from a path or URL.

    Raises:
        TemplateLoadError: On any read or HTTP failure.
    """
    if source.startswith(("http://", "https://")):
        import httpx

        try:
            response = httpx.get(source, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise TemplateLoadError(source, f"unreachable ({exc})")
        if not response.is_success:
            raise TemplateLoadError(source, f"HTTP {response.status_code}")
        return response.content

    path = Path(source)
    if not path.is_file():
        raise TemplateLoadError(source, "file not found")
    try:
        return path.read_bytes()
    except OSError as exc:
        raise TemplateLoadError(source, str(exc))
