"""Tests for the operator session (upload -> preview -> generate -> reset)."""

from __future__ import annotations

import asyncio
import io
import zipfile

import pytest

pytest.importorskip("docx")


@pytest.fixture
def session(mapper):
    from formatdocs.session import DocumentSession

    return DocumentSession(mapper)


class TestLoadFile:
    def test_load_populates_state(self, session, sample_csv):
        result = asyncio.run(session.load_file(sample_csv, "clients.csv"))
        assert len(result.rows) == 3
        state = session.state()
        assert state["filename"] == "clients.csv"
        assert state["row_count"] == 3
        assert state["headers"][0] == "Client"
        assert state["navigation"] == {"current": 1, "total": 3, "has_prev": False, "has_next": True}
        assert "Acme Corp" in session.preview_html

    def test_failed_upload_keeps_previous_data(self, session, sample_csv):
        from formatdocs.errors import UnsupportedFormat

        asyncio.run(session.load_file(sample_csv, "clients.csv"))
        session.next()
        with pytest.raises(UnsupportedFormat):
            asyncio.run(session.load_file(b"whatever", "notes.txt"))
        state = session.state()
        assert state["filename"] == "clients.csv"
        assert state["row_count"] == 3
        assert state["navigation"]["current"] == 2
        assert state["busy"] is None

    def test_reload_replaces_rows(self, session, sample_csv):
        asyncio.run(session.load_file(sample_csv, "clients.csv"))
        asyncio.run(session.load_file(b"Client\nSolo\n", "one.csv"))
        assert session.state()["row_count"] == 1
        assert "Solo" in session.preview_html


class TestGenerate:
    def test_nothing_loaded(self, session):
        from formatdocs.errors import EmptyData

        with pytest.raises(EmptyData, match="No data loaded"):
            asyncio.run(session.generate())

    def test_templates_missing(self, sample_csv):
        from formatdocs.errors import TemplateNotLoaded
        from formatdocs.mapping import FieldMapping
        from formatdocs.session import DocumentSession
        from formatdocs.template_mapper import TemplateMapper

        s = DocumentSession(TemplateMapper(FieldMapping.default()))
        asyncio.run(s.load_file(sample_csv, "clients.csv"))
        with pytest.raises(TemplateNotLoaded):
            asyncio.run(s.generate())

    def test_single_row_delivers_docx(self, session):
        asyncio.run(session.load_file(b"Client\nAcme & Sons, Inc.\n", "one.csv"))
        delivery = asyncio.run(session.generate())
        assert delivery.count == 1
        assert delivery.filename == "Acme_Sons_Inc_Specification.docx"
        assert delivery.content[:2] == b"PK"

    def test_many_rows_deliver_zip(self, session, sample_csv):
        asyncio.run(session.load_file(sample_csv, "clients.csv"))
        delivery = asyncio.run(session.generate())
        assert delivery.count == 3
        assert delivery.filename == "Specification_Documents.zip"
        with zipfile.ZipFile(io.BytesIO(delivery.content)) as zf:
            assert len(zf.namelist()) == 3
        assert session.state()["progress"] == {"completed": 3, "total": 3}

    def test_concurrent_operations_rejected(self, mapper, sample_csv):
        from formatdocs.errors import OperationInProgress
        from formatdocs.generator import BatchGenerator
        from formatdocs.session import DocumentSession

        async def scenario():
            started = asyncio.Event()
            release = asyncio.Event()

            class SlowGenerator(BatchGenerator):
                async def generate_all(self, records, on_progress=None):
                    started.set()
                    await release.wait()
                    return await super().generate_all(records, on_progress)

            s = DocumentSession(mapper, SlowGenerator(mapper))
            await s.load_file(sample_csv, "clients.csv")
            task = asyncio.create_task(s.generate())
            await started.wait()
            assert s.busy == "generate"
            with pytest.raises(OperationInProgress):
                await s.load_file(sample_csv, "again.csv")
            with pytest.raises(OperationInProgress):
                await s.generate()
            release.set()
            delivery = await task
            return s, delivery

        s, delivery = asyncio.run(scenario())
        assert delivery.count == 3
        assert s.busy is None
        assert s.state()["filename"] == "clients.csv"

    def test_render_failure_delivers_nothing(self, mapper, sample_csv):
        from formatdocs.codec import DocxCodec
        from formatdocs.errors import RenderError
        from formatdocs.generator import BatchGenerator
        from formatdocs.session import DocumentSession

        class Broken(DocxCodec):
            def render(self, template, bindings):
                raise RenderError("bad template")

        s = DocumentSession(mapper, BatchGenerator(mapper, codec=Broken()))
        asyncio.run(s.load_file(sample_csv, "clients.csv"))
        with pytest.raises(RenderError, match="Row 1"):
            asyncio.run(s.generate())
        assert s.busy is None
        assert s.state()["row_count"] == 3


class TestReset:
    def test_reset_clears_everything(self, session, sample_csv):
        from formatdocs.template_mapper import BLANK_PREVIEW

        asyncio.run(session.load_file(sample_csv, "clients.csv"))
        session.next()
        session.reset()
        state = session.state()
        assert state["filename"] is None
        assert state["row_count"] == 0
        assert state["headers"] == []
        assert state["navigation"]["total"] == 0
        assert session.preview_html == BLANK_PREVIEW
        assert state["templates_loaded"] is True


class TestCreateSession:
    def test_bundled_templates_load(self, tmp_path):
        from formatdocs.config import load_config
        from formatdocs.session import create_session

        s = create_session(load_config(tmp_path))
        assert s.mapper.loaded
        assert s.generator.policy.every == 10

    def test_template_failure_logged_not_raised(self, tmp_path):
        from formatdocs.config import load_config
        from formatdocs.logging import EventSink, configure_sink
        from formatdocs.session import create_session

        (tmp_path / "formatdocs.yaml").write_text("document_template: missing.docx\n")
        cfg = load_config(tmp_path)
        configure_sink(cfg["logs_dir"])

        s = create_session(cfg)
        assert s.mapper.loaded is False
        assert s.state()["templates_loaded"] is False

        events = EventSink(tmp_path / "logs").read_events()
        assert events[0]["event_type"] == "template_load_failed"
        assert events[0]["level"] == "warning"
        assert events[0]["error_code"] == "template_load_error"

    def test_session_events_written(self, tmp_path, sample_csv):
        from formatdocs.config import load_config
        from formatdocs.logging import EventSink, configure_sink
        from formatdocs.session import create_session

        cfg = load_config(tmp_path)
        configure_sink(cfg["logs_dir"])
        s = create_session(cfg)
        asyncio.run(s.load_file(sample_csv, "clients.csv"))
        asyncio.run(s.generate())
        s.reset()

        types = [e["event_type"] for e in EventSink(tmp_path / "logs").read_events()]
        assert types == [
            "session_reset",
            "generation_completed",
            "archive_created",
            "generation_started",
            "parse_completed",
            "parse_started",
            "templates_loaded",
        ]

    def test_parse_failure_event(self, tmp_path):
        from formatdocs.config import load_config
        from formatdocs.errors import EmptyData
        from formatdocs.logging import EventSink, configure_sink
        from formatdocs.session import create_session

        cfg = load_config(tmp_path)
        configure_sink(cfg["logs_dir"])
        s = create_session(cfg, load_templates=False)
        with pytest.raises(EmptyData):
            asyncio.run(s.load_file(b"Client\n", "empty.csv"))

        failed = EventSink(tmp_path / "logs").read_events(event_type="parse_failed")
        assert len(failed) == 1
        assert failed[0]["error_code"] == "empty_data"
        assert failed[0]["context"]["filename"] == "empty.csv"
