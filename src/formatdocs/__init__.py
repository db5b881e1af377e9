"""formatdocs -- spreadsheet rows to populated Word documents, with preview."""

__version__ = "0.1.0"
