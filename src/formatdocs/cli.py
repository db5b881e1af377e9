"""Command-line interface for formatdocs (batch generation + local UI)."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click

from formatdocs import __version__


def _load(config_dir: str | None) -> dict:
    from formatdocs.config import ConfigError, load_config
    from formatdocs.logging import configure_sink

    try:
        cfg = load_config(Path(config_dir) if config_dir else None)
    except ConfigError as e:
        raise click.ClickException(str(e))
    configure_sink(cfg["logs_dir"], fsync=bool(cfg["logging_fsync"]))
    return cfg


def _load_rows(session, input_file: str):
    from formatdocs.errors import FormatDocsError

    path = Path(input_file)
    try:
        return asyncio.run(session.load_file(path.read_bytes(), path.name))
    except FormatDocsError as e:
        raise click.ClickException(str(e))


_config_option = click.option(
    "--config-dir",
    default=None,
    type=click.Path(exists=True, file_okay=False),
    help="Directory containing formatdocs.yaml (default: current directory).",
)


@click.group()
@click.version_option(version=__version__, prog_name="formatdocs")
def main() -> None:
    """formatdocs -- turn spreadsheet rows into populated Word documents.

    Workflow: Upload -> Preview -> Generate
    """


# ---------------------------------------------------------------------------
# Init
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path(file_okay=False), default=".")
def init(directory: str) -> None:
    """Write a starter formatdocs.yaml into DIRECTORY."""
    from formatdocs.config import CONFIG_FILENAME, DEMO_CONFIG

    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    config_path = target / CONFIG_FILENAME
    if config_path.exists():
        raise click.ClickException(f"{config_path} already exists")
    config_path.write_text(DEMO_CONFIG, encoding="utf-8")
    click.echo(f"Created {config_path}")


# ---------------------------------------------------------------------------
# Inspect
# ---------------------------------------------------------------------------


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--rows", "show_rows", type=int, default=3, help="Number of rows to print.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def inspect(input_file: str, show_rows: int, as_json: bool) -> None:
    """Print headers, row count and the first rows of INPUT_FILE."""
    from formatdocs import tabular
    from formatdocs.errors import FormatDocsError

    path = Path(input_file)
    try:
        result = tabular.parse(path.read_bytes(), path.name)
    except FormatDocsError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(
            {"headers": result.headers, "row_count": len(result.rows), "rows": result.rows[:show_rows]},
            indent=2,
        ))
        return
    click.echo(f"File: {path.name}")
    click.echo(f"Columns: {', '.join(result.headers)}")
    click.echo(f"Rows: {len(result.rows)}")
    for idx, row in enumerate(result.rows[:show_rows], start=1):
        click.echo(f"  [{idx}] {row}")


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--row", "row_number", type=int, default=1, help="1-based row to render.")
@click.option("--out", "out_path", type=click.Path(dir_okay=False), default=None, help="Write HTML here instead of stdout.")
@_config_option
def preview(input_file: str, row_number: int, out_path: str | None, config_dir: str | None) -> None:
    """Render the preview HTML for one row of INPUT_FILE."""
    from formatdocs.session import create_session

    session = create_session(_load(config_dir))
    if not session.mapper.loaded:
        raise click.ClickException("Failed to load templates; see the event log.")
    _load_rows(session, input_file)
    if not session.go_to(row_number - 1):
        raise click.ClickException(
            f"Row {row_number} out of range (1-{session.navigator.state().total})"
        )

    html = session.preview_html
    if out_path:
        Path(out_path).write_text(html, encoding="utf-8")
        click.echo(f"Preview written to {out_path}")
    else:
        click.echo(html)


# ---------------------------------------------------------------------------
# Generate
# ---------------------------------------------------------------------------


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--out", "out_dir", type=click.Path(file_okay=False), default=".", help="Output directory.")
@_config_option
def generate(input_file: str, out_dir: str, config_dir: str | None) -> None:
    """Generate one document per row of INPUT_FILE.

    A single row is written as a .docx; several rows as a ZIP archive.
    """
    from formatdocs.errors import FormatDocsError
    from formatdocs.session import create_session

    session = create_session(_load(config_dir))
    result = _load_rows(session, input_file)
    click.echo(f"Loaded {len(result.rows)} row(s) from {Path(input_file).name}")

    try:
        delivery = asyncio.run(session.generate())
    except FormatDocsError as e:
        raise click.ClickException(f"Generation failed: {e}")

    target = Path(out_dir)
    target.mkdir(parents=True, exist_ok=True)
    out_path = target / delivery.filename
    out_path.write_bytes(delivery.content)
    if delivery.count == 1:
        click.echo(f"Document written to {out_path}")
    else:
        click.echo(f"{delivery.count} documents written to {out_path}")


# ---------------------------------------------------------------------------
# UI
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.option("--port", type=int, default=3000, help="Port to listen on.")
@click.option("--no-open", is_flag=True, help="Don't auto-open browser.")
@_config_option
def ui(host: str, port: int, no_open: bool, config_dir: str | None) -> None:
    """Launch the local browser UI."""
    import webbrowser

    import uvicorn

    from formatdocs.ui.server import create_app

    app = create_app(_load(config_dir))

    url = f"http://{host}:{port}"
    click.echo(f"Format Docs server starting on {url}")
    click.echo("Press Ctrl+C to stop")

    if not no_open:
        import threading
        threading.Timer(0.8, lambda: webbrowser.open(url)).start()

    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    except KeyboardInterrupt:
        click.echo("\nStopped.")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@_config_option
def events_cmd(level: str | None, event_type: str | None, limit: int, as_json: bool, config_dir: str | None) -> None:
    """Show the structured event log."""
    from formatdocs.config import ConfigError, load_config
    from formatdocs.logging import EventSink

    try:
        cfg = load_config(Path(config_dir) if config_dir else None)
    except ConfigError as e:
        raise click.ClickException(str(e))
    sink = EventSink(Path(cfg["logs_dir"]))
    events = sink.read_events(level=level, event_type=event_type, limit=limit)

    if as_json:
        click.echo(json.dumps(events, indent=2))
        return
    if not events:
        click.echo("No events found.")
        return
    for e in events:
        code = f" [{e['error_code']}]" if e.get("error_code") else ""
        click.echo(f"{e['ts']}  {e['level']:7s} {e['event_type']:22s} {e['message']}{code}")


if __name__ == "__main__":
    main()
