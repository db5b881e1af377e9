"""Tests for record-at-a-time preview navigation."""

from __future__ import annotations

import pytest

from formatdocs.template_mapper import BLANK_PREVIEW


@pytest.fixture
def rows() -> list[dict[str, str]]:
    return [{"Client": "Acme"}, {"Client": "Globex"}, {"Client": "Initech"}]


@pytest.fixture
def nav(mapper):
    from formatdocs.preview import PreviewNavigator

    return PreviewNavigator(mapper)


class TestNavigation:
    def test_empty_state(self, nav):
        state = nav.state()
        assert (state.current, state.total, state.has_prev, state.has_next) == (0, 0, False, False)
        assert nav.rendered == BLANK_PREVIEW
        assert nav.current_record() is None

    def test_set_rows_renders_first(self, nav, rows):
        nav.set_rows(rows)
        assert nav.cursor == 0
        assert "Acme" in nav.rendered
        state = nav.state()
        assert (state.current, state.total, state.has_prev, state.has_next) == (1, 3, False, True)

    def test_next_and_previous(self, nav, rows):
        nav.set_rows(rows)
        assert nav.next() is True
        assert "Globex" in nav.rendered
        assert nav.previous() is True
        assert "Acme" in nav.rendered

    def test_bounds_are_no_ops(self, nav, rows):
        nav.set_rows(rows)
        assert nav.previous() is False
        assert nav.cursor == 0
        nav.go_to(2)
        assert nav.next() is False
        assert nav.cursor == 2
        assert "Initech" in nav.rendered

    def test_go_to_out_of_range(self, nav, rows):
        nav.set_rows(rows)
        assert nav.go_to(3) is False
        assert nav.go_to(-1) is False
        assert nav.cursor == 0

    def test_moves_on_empty_are_no_ops(self, nav):
        assert nav.next() is False
        assert nav.previous() is False
        assert nav.go_to(0) is False

    def test_single_row(self, nav):
        nav.set_rows([{"Client": "Solo"}])
        state = nav.state()
        assert (state.current, state.total, state.has_prev, state.has_next) == (1, 1, False, False)

    def test_cursor_invariant_over_move_sequence(self, nav, rows):
        nav.set_rows(rows)
        moves = [nav.next, nav.next, nav.next, nav.previous, nav.next, nav.previous,
                 nav.previous, nav.previous, nav.next]
        expected = 0
        for move in moves:
            before = nav.cursor
            moved = move()
            if move == nav.next:
                expected = min(expected + 1, len(rows) - 1)
            else:
                expected = max(expected - 1, 0)
            assert nav.cursor == expected
            assert moved == (nav.cursor != before)
            assert 0 <= nav.cursor < len(rows)
            state = nav.state()
            assert state.has_prev == (nav.cursor > 0)
            assert state.has_next == (nav.cursor < len(rows) - 1)

    def test_set_rows_resets_cursor(self, nav, rows):
        nav.set_rows(rows)
        nav.go_to(2)
        nav.set_rows(rows[:2])
        assert nav.cursor == 0
        assert "Acme" in nav.rendered

    def test_clear(self, nav, rows):
        nav.set_rows(rows)
        nav.next()
        nav.clear()
        assert nav.empty
        assert nav.rendered == BLANK_PREVIEW
        assert nav.state().total == 0


class TestRenderCallback:
    def test_called_after_each_move(self, mapper, rows):
        from formatdocs.preview import PreviewNavigator

        seen = []
        nav = PreviewNavigator(mapper, on_render=seen.append)
        nav.set_rows(rows)
        nav.next()
        nav.next()
        nav.next()  # no-op, no render
        assert len(seen) == 3
        assert "Initech" in seen[-1]

    def test_not_loaded_shows_blank(self, rows):
        from formatdocs.mapping import FieldMapping
        from formatdocs.preview import PreviewNavigator
        from formatdocs.template_mapper import TemplateMapper

        nav = PreviewNavigator(TemplateMapper(FieldMapping.default()))
        nav.set_rows(rows)
        assert nav.next() is True
        assert nav.rendered == BLANK_PREVIEW
        assert nav.state().current == 2

    def test_values_escaped_in_render(self, nav):
        nav.set_rows([{"Client": "<img src=x onerror=alert(1)>"}])
        assert "<img" not in nav.rendered
