"""Bundled preview (HTML) and document (.docx) templates."""
