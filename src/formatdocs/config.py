"""Tool configuration loaded from ``formatdocs.yaml``, with defaults."""

from __future__ import annotations

import importlib.resources
from pathlib import Path
from typing import Any

import yaml

from formatdocs.mapping import FieldMapping

CONFIG_FILENAME = "formatdocs.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "preview_template": None,  # default: bundled templates/format-docs.html
    "document_template": None,  # default: bundled templates/template.docx
    "identity_field": "Client",
    "filename_suffix": "_Specification.docx",
    "archive_name": "Specification_Documents.zip",
    "yield_every": 10,
    "field_mappings": None,  # default: formatdocs.mapping.DEFAULT_MAPPINGS
    "logs_dir": "logs",
    "logging_fsync": False,
}

DEMO_CONFIG = """\
# formatdocs configuration
# preview_template: templates/format-docs.html
# document_template: templates/template.docx
identity_field: Client
filename_suffix: _Specification.docx
archive_name: Specification_Documents.zip
yield_every: 10
# field_mappings:
#   Client: "[INSERT_CLIENT_NAME]"
#   Desired Completion Date: "[INSERT_DATE]"
"""


class ConfigError(ValueError):
    """Raised when ``formatdocs.yaml`` is malformed."""


def bundled_template(name: str) -> str:
    """Return the filesystem path of a template shipped inside the package."""
    return str(importlib.resources.files("formatdocs.templates") / name)


def load_config(base_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from ``formatdocs.yaml`` in *base_dir*, with defaults.

    Relative template and log paths resolve against *base_dir*.  Unset
    template paths fall back to the bundled templates.

    Args:
        base_dir: Directory holding ``formatdocs.yaml``.  Defaults to the
            current working directory.

    Returns:
        Merged configuration dict.

    Raises:
        ConfigError: If the file is not a YAML mapping or a value has the
            wrong shape.
    """
    base_dir = base_dir or Path.cwd()
    config = dict(DEFAULT_CONFIG)
    config_path = base_dir / CONFIG_FILENAME
    if config_path.exists():
        try:
            user_config = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"{config_path}: invalid YAML: {exc}")
        if not isinstance(user_config, dict):
            raise ConfigError(f"{config_path}: must be a YAML mapping")
        unknown = set(user_config) - set(DEFAULT_CONFIG)
        if unknown:
            raise ConfigError(
                f"{config_path}: unknown key(s): {', '.join(sorted(unknown))}"
            )
        config.update(user_config)

    for key in ("preview_template", "document_template"):
        value = config[key]
        if value and not _is_url(str(value)) and not Path(value).is_absolute():
            config[key] = str(base_dir / value)
    if not config["preview_template"]:
        config["preview_template"] = bundled_template("format-docs.html")
    if not config["document_template"]:
        config["document_template"] = bundled_template("template.docx")

    logs_dir = Path(config["logs_dir"])
    if not logs_dir.is_absolute():
        logs_dir = base_dir / logs_dir
    config["logs_dir"] = str(logs_dir)

    try:
        config["yield_every"] = int(config["yield_every"])
    except (TypeError, ValueError):
        raise ConfigError(f"yield_every must be an integer, got {config['yield_every']!r}")
    if config["yield_every"] < 1:
        raise ConfigError("yield_every must be at least 1")

    return config


def mapping_from_config(config: dict[str, Any]) -> FieldMapping:
    """Build the :class:`FieldMapping` described by *config*."""
    raw = config.get("field_mappings")
    if raw is None:
        return FieldMapping.default()
    if not isinstance(raw, dict) or not raw:
        raise ConfigError("field_mappings must be a non-empty mapping of column -> token")
    try:
        return FieldMapping.from_dict(raw)
    except ValueError as exc:
        raise ConfigError(f"field_mappings: {exc}")


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))
