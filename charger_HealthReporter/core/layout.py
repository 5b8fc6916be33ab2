# charger_HealthReporter/core/layout.py
"""
Page/column layout for the printable report.

A ``Document`` is a list of physical pages plus an active page and y position.
``parallel_section`` opens N columns that all start on the active page; each
column has its own ``ColumnCursor`` (page, y). Blocks are placed through the
cursor, which redirects them to the physical page it points at. When a block
does not fit, the cursor breaks to its next page, and a physical page is only
appended when the cursor would pass the last allocated one. Closing the
section moves the document to the highest page any column reached, below the
lowest content on that page.

Nothing here draws: the result is a plan of placements that a backend
(``core.plotting.render_pdf``) walks.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Union


@dataclass(frozen=True)
class PageGeometry:
    width: float = 297.0            # mm, A4 landscape
    height: float = 210.0
    top: float = 15.0               # first content y on a page
    bottom: float = 200.0           # content must end above this
    margin: float = 10.0
    column_x: tuple[float, ...] = (10.0, 105.0, 200.0)
    column_width: float = 90.0

    @classmethod
    def from_config(cls, cfg: dict | None) -> "PageGeometry":
        page = ((cfg or {}).get("pdf", {}) or {}).get("page", {}) or {}
        base = cls()
        kw = {}
        for name in ("width", "height", "top", "bottom", "margin", "column_width"):
            if page.get(name) is not None:
                kw[name] = float(page[name])
        if page.get("column_x"):
            kw["column_x"] = tuple(float(x) for x in page["column_x"])
        return replace(base, **kw)


# ---------- blocks ----------
@dataclass(frozen=True)
class Text:
    text: str
    kind: str = "caption"            # title | caption | period
    height: float = 3.0
    gap: float = 0.0


@dataclass(frozen=True)
class Header:
    text: str
    height: float = 4.0
    gap: float = 1.0


@dataclass(frozen=True)
class Banner:
    text: str
    style: str | None = None         # good | attention
    height: float = 3.0
    gap: float = 1.0


@dataclass(frozen=True)
class Note:
    text: str
    height: float = 4.0
    gap: float = 2.0


@dataclass(frozen=True)
class Table:
    head: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    styles: Mapping[tuple[int, int], str] = field(default_factory=dict)   # (row, col) -> style
    row_height: float = 4.0
    gap: float = 2.0
    continued: bool = False

    @property
    def height(self) -> float:
        return self.row_height * (1 + len(self.rows))

    def split(self, n: int) -> tuple["Table", "Table"]:
        """First ``n`` body rows (no trailing gap) and the remainder (head repeated)."""
        head_styles = {k: v for k, v in self.styles.items() if k[0] < n}
        tail_styles = {(r - n, c): v for (r, c), v in self.styles.items() if r >= n}
        return (
            replace(self, rows=self.rows[:n], styles=head_styles, gap=0.0),
            replace(self, rows=self.rows[n:], styles=tail_styles, continued=True),
        )


Block = Union[Text, Header, Banner, Note, Table]


@dataclass(frozen=True)
class Placement:
    column: str | None
    page: int
    x: float
    y: float
    width: float
    block: Block


@dataclass
class Page:
    number: int
    placements: list[Placement] = field(default_factory=list)


class ColumnCursor:
    """Logical position of one column: its own page pointer and y."""

    def __init__(self, doc: "Document", name: str, x: float, width: float, page: int, y: float):
        self._doc = doc
        self.name = name
        self.x = x
        self.width = width
        self.page = page
        self.y = y

    @property
    def remaining(self) -> float:
        return self._doc.geometry.bottom - self.y

    def page_break(self) -> int:
        nxt = self.page + 1
        if nxt > self._doc.page_count:
            self._doc.add_page()
        self.page = nxt
        self.y = self._doc.geometry.top
        return self.page

    def _put(self, block: Block) -> None:
        self._doc.page(self.page).placements.append(
            Placement(self.name, self.page, self.x, self.y, self.width, block))
        self.y += block.height + block.gap

    def place(self, block: Block) -> None:
        top = self._doc.geometry.top
        while True:
            if block.height <= self.remaining:
                self._put(block)
                return
            if isinstance(block, Table) and len(block.rows) > 1:
                fit = int((self.remaining - block.row_height) // block.row_height)
                if fit >= 1:
                    first, block = block.split(min(fit, len(block.rows) - 1))
                    self._put(first)
                    self.page_break()
                    continue
            if self.y <= top:
                # taller than a whole page; let it overflow rather than loop
                self._put(block)
                return
            self.page_break()


class ParallelSection:
    def __init__(self, doc: "Document", names: Iterable[str], start_page: int, start_y: float):
        names = list(names)
        g = doc.geometry
        if len(names) > len(g.column_x):
            raise ValueError(f"{len(names)} columns requested, geometry has {len(g.column_x)}")
        self._doc = doc
        self.start_page = start_page
        self.columns: dict[str, ColumnCursor] = {
            name: ColumnCursor(doc, name, g.column_x[i], g.column_width, start_page, start_y)
            for i, name in enumerate(names)
        }
        self.closed = False

    def column(self, name: str) -> ColumnCursor:
        return self.columns[name]

    def place(self, name: str, block: Block) -> None:
        self.columns[name].place(block)

    def place_all(self, step: Mapping[str, Iterable[Block]]) -> None:
        """Place one content step in every column before the next step starts."""
        for name, cursor in self.columns.items():
            for block in step.get(name, ()):
                cursor.place(block)

    @property
    def high_water(self) -> int:
        return max(c.page for c in self.columns.values())

    def close(self) -> int:
        if not self.closed:
            page = self.high_water
            self._doc.active_page = page
            self._doc.y = max(c.y for c in self.columns.values() if c.page == page)
            self.closed = True
        return self._doc.active_page

    def __enter__(self) -> "ParallelSection":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class Document:
    def __init__(self, geometry: PageGeometry | None = None):
        self.geometry = geometry or PageGeometry()
        self.pages: list[Page] = [Page(1)]
        self.active_page = 1
        self.y = self.geometry.top

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def page(self, number: int) -> Page:
        return self.pages[number - 1]

    def add_page(self) -> int:
        self.pages.append(Page(len(self.pages) + 1))
        return len(self.pages)

    def new_page(self) -> int:
        """Move the active page forward by one, allocating it if needed."""
        if self.active_page + 1 > self.page_count:
            self.add_page()
        self.active_page += 1
        self.y = self.geometry.top
        return self.active_page

    def place(self, block: Block, *, y: float | None = None) -> None:
        """Full-width block at the document cursor (titles, captions)."""
        g = self.geometry
        if y is not None:
            self.y = y
        if block.height > g.bottom - self.y and self.y > g.top:
            self.new_page()
        self.page(self.active_page).placements.append(
            Placement(None, self.active_page, g.margin, self.y, g.width - 2 * g.margin, block))
        self.y += block.height + block.gap

    def parallel_section(self, names: Iterable[str], fresh_page: bool = False) -> ParallelSection:
        if fresh_page:
            self.new_page()
        return ParallelSection(self, names, self.active_page, self.y)

    def placements(self, column: str | None = None) -> list[Placement]:
        out = []
        for p in self.pages:
            out.extend(pl for pl in p.placements if column is None or pl.column == column)
        return out

    def column_pages(self, column: str) -> list[int]:
        return sorted({pl.page for pl in self.placements(column)})
