# charger_HealthReporter/core/plotting.py
from __future__ import annotations
from pathlib import Path
import re
from typing import Sequence
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.patches import Rectangle

from .layout import Banner, Document, Header, Note, Placement, Table, Text
from .model import Breakdown, TrendPoint

MM_PER_INCH = 25.4

# RGB 0..255
_COLORS = {
    "good": (0, 128, 0),
    "attention": (220, 38, 38),
    "header": (45, 45, 45),
    "grid": (200, 200, 200),
    "text": (20, 20, 20),
    "muted": (110, 110, 110),
    "oem": (59, 130, 246),
    "overall": (234, 88, 12),
}
_FONT = {"title": 14, "caption": 7, "period": 7, "header": 7, "banner": 8, "cell": 6, "note": 6}


def _rgb(name: str | None, default: str = "text") -> tuple[float, float, float]:
    r, g, b = _COLORS.get(name or default, _COLORS[default])
    return r / 255, g / 255, b / 255


def safe_name(name: str) -> str:
    s = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("_")
    return s[:120] if len(s) > 120 else s


# ---------- PDF backend ----------
def _draw_text(ax, pl: Placement, block: Text) -> None:
    ax.text(pl.x + pl.width / 2, pl.y + block.height * 0.75, block.text,
            ha="center", va="baseline", fontsize=_FONT.get(block.kind, 7),
            fontweight="bold" if block.kind == "title" else "normal",
            color=_rgb("muted" if block.kind != "title" else None))


def _draw_header(ax, pl: Placement, block: Header) -> None:
    ax.add_patch(Rectangle((pl.x, pl.y), pl.width, block.height, color=_rgb("header")))
    ax.text(pl.x + 1.5, pl.y + block.height * 0.72, block.text, fontsize=_FONT["header"],
            fontweight="bold", color="white", va="baseline")


def _draw_banner(ax, pl: Placement, block: Banner) -> None:
    ax.text(pl.x + pl.width / 2, pl.y + block.height * 0.8, block.text, ha="center",
            va="baseline", fontsize=_FONT["banner"], fontweight="bold", color=_rgb(block.style))


def _draw_note(ax, pl: Placement, block: Note) -> None:
    ax.text(pl.x + 1.5, pl.y + block.height * 0.6, block.text, fontsize=_FONT["note"],
            style="italic", color=_rgb("muted"), va="baseline")


def _column_widths(n: int, width: float) -> list[float]:
    if n == 2:
        return [width * 2 / 3, width / 3]
    return [width / n] * n


def _draw_table(ax, pl: Placement, block: Table) -> None:
    widths = _column_widths(len(block.head), pl.width)
    rh = block.row_height
    head = tuple(block.head)
    if block.continued:
        head = (f"{head[0]} (cont.)",) + head[1:]
    for i, row in enumerate((head,) + tuple(block.rows)):
        y = pl.y + i * rh
        x = pl.x
        if i == 0:
            ax.add_patch(Rectangle((pl.x, y), pl.width, rh, color=_rgb("header")))
        for j, cell in enumerate(row):
            if i > 0:
                ax.add_patch(Rectangle((x, y), widths[j], rh, fill=False,
                                       edgecolor=_rgb("grid"), linewidth=0.3))
            style = block.styles.get((i - 1, j)) if i > 0 else None
            ax.text(x + 1.0, y + rh * 0.72, str(cell), fontsize=_FONT["cell"], va="baseline",
                    color="white" if i == 0 else _rgb(style),
                    fontweight="bold" if i == 0 or style else "normal")
            x += widths[j]


_DRAW = {Text: _draw_text, Header: _draw_header, Banner: _draw_banner, Note: _draw_note, Table: _draw_table}


def render_pdf(doc: Document, out_pdf: Path, title: str = "Charger Health Report") -> Path:
    """One PDF page per layout page, drawn in mm with a 'Page i / N' footer."""
    g = doc.geometry
    out_pdf.parent.mkdir(parents=True, exist_ok=True)
    total = doc.page_count
    with PdfPages(out_pdf) as pdf:
        for page in doc.pages:
            fig = plt.figure(figsize=(g.width / MM_PER_INCH, g.height / MM_PER_INCH))
            ax = fig.add_axes([0, 0, 1, 1])
            ax.set_xlim(0, g.width)
            ax.set_ylim(g.height, 0)
            ax.axis("off")
            for pl in page.placements:
                _DRAW[type(pl.block)](ax, pl, pl.block)
            ax.text(g.width / 2, g.height - 4, f"Page {page.number} / {total}", ha="center",
                    fontsize=6, color=_rgb("muted"))
            pdf.savefig(fig)
            plt.close(fig)
        info = pdf.infodict()
        info["Title"] = title
    print(f"[OK] wrote PDF report ({total} page(s)) → {out_pdf}")
    return out_pdf


# ---------- charts ----------
def save_trend_plot(points: Sequence[TrendPoint], out_dir: Path, title_suffix: str, dpi: int = 160):
    if not points:
        print(f"[INFO] {title_suffix}: no dated sessions; skipping trend plot.")
        return None
    out_dir.mkdir(parents=True, exist_ok=True)
    labels = [p.label for p in points]
    xs = range(len(points))

    plt.figure(figsize=(11, 5))
    plt.plot(xs, [p.peak for p in points], marker="o", label="Peak Power (kW)", color=_rgb("overall"))
    plt.plot(xs, [p.avg for p in points], marker="o", label="Avg Power (kW)", color=_rgb("oem"))
    step = max(1, len(labels) // 20)
    plt.xticks(list(xs)[::step], labels[::step], rotation=45, ha="right", fontsize=8)
    plt.ylabel("Power [kW]")
    plt.title(f"Power quality trend ({title_suffix})")
    plt.grid(True, alpha=0.3)
    plt.legend(fontsize=8, loc="upper right", frameon=False)
    plt.tight_layout()
    out_path = out_dir / f"{safe_name(title_suffix) or 'trend'}_power_trend.png"
    plt.savefig(out_path, dpi=dpi)
    plt.close()
    print(f"[OK] {title_suffix}: {len(points)} trend point(s) → {out_path}")
    return out_path


def save_network_plot(items: Sequence[Breakdown], out_dir: Path, dpi: int = 160):
    if not items:
        return None
    out_dir.mkdir(parents=True, exist_ok=True)
    plt.figure(figsize=(max(6, 1.2 * len(items)), 5))
    plt.bar([b.name for b in items], [b.value for b in items],
            color=[_rgb(b.fill, "oem") for b in items])
    plt.ylabel("Negative stops [% of charging sessions]")
    plt.title("Network performance by OEM")
    plt.grid(True, axis="y", alpha=0.3)
    plt.tight_layout()
    out_path = out_dir / "network_performance.png"
    plt.savefig(out_path, dpi=dpi)
    plt.close()
    print(f"[OK] network performance: {len(items)} bar(s) → {out_path}")
    return out_path
