"""Record-at-a-time preview navigation."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from formatdocs.tabular import Record
from formatdocs.template_mapper import BLANK_PREVIEW, TemplateMapper


@dataclass(frozen=True)
class NavigationState:
    current: int  # 1-based; 0 when empty
    total: int
    has_prev: bool
    has_next: bool


class PreviewNavigator:
    """Cursor over parsed rows; every move re-renders the preview.

    The cursor satisfies ``0 <= cursor < len(rows)`` whenever rows is
    non-empty.

    Args:
        mapper: Renders a record to preview HTML.
        on_render: Receives the markup after each successful transition.
    """

    def __init__(
        self,
        mapper: TemplateMapper,
        on_render: Callable[[str], None] | None = None,
    ) -> None:
        self.mapper = mapper
        self.on_render = on_render
        self.rows: list[Record] = []
        self.cursor = 0
        self.rendered = BLANK_PREVIEW

    @property
    def empty(self) -> bool:
        return not self.rows

    def set_rows(self, rows: Sequence[Record]) -> None:
        self.rows = list(rows)
        self.cursor = 0
        if self.rows:
            self._render()
        else:
            self._show(BLANK_PREVIEW)

    def next(self) -> bool:
        if self.cursor < len(self.rows) - 1:
            self.cursor += 1
            self._render()
            return True
        return False

    def previous(self) -> bool:
        if self.rows and self.cursor > 0:
            self.cursor -= 1
            self._render()
            return True
        return False

    def go_to(self, index: int) -> bool:
        if 0 <= index < len(self.rows):
            self.cursor = index
            self._render()
            return True
        return False

    def clear(self) -> None:
        self.rows = []
        self.cursor = 0
        self._show(BLANK_PREVIEW)

    def current_record(self) -> Record | None:
        if not self.rows:
            return None
        return self.rows[self.cursor]

    def state(self) -> NavigationState:
        total = len(self.rows)
        return NavigationState(
            current=self.cursor + 1 if total else 0,
            total=total,
            has_prev=self.cursor > 0,
            has_next=self.cursor < total - 1,
        )

    def _render(self) -> None:
        # Navigation keeps working without templates; the view stays blank
        if not self.mapper.loaded:
            self._show(BLANK_PREVIEW)
            return
        self._show(self.mapper.fill_for_preview(self.rows[self.cursor]))

    def _show(self, markup: str) -> None:
        self.rendered = markup
        if self.on_render is not None:
            self.on_render(markup)
