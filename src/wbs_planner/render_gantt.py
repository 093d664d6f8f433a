from __future__ import annotations

import datetime as dt
from importlib import metadata
from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle
from matplotlib.ticker import FixedLocator, NullFormatter

from .config import ChartSettings
from .task_models import TimelineRow
from .timeline import day_index, month_spans

STATUS_COLORS = {
    "pending": "#9ca3af",
    "in_progress": "#3b82f6",
    "completed": "#22c55e",
    "cancelled": "#ef4444",
}
PROGRESS_SHADE = (0.0, 0.0, 0.0, 0.2)
WEEKEND_SHADE = "#f3f4f6"
TODAY_COLOR = "#6366f1"
BAR_MARGIN_FRAC = 8 / 36  # vertical gap around bars, as a fraction of the row
PIXELS_PER_INCH = 96.0
FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
LABEL_FONT = 10 * FONT_SCALE
MONTH_FONT = 9 * FONT_SCALE
DAY_FONT = 6 * FONT_SCALE
FOOTER_FONT = 8 * FONT_SCALE
TITLE_Y = 0.99


def render_gantt(
    rows: Sequence[TimelineRow],
    window: Sequence[dt.date],
    out_path: str,
    title: str,
    today: dt.date | None = None,
    settings: ChartSettings | None = None,
) -> None:
    """
    Render a static SVG timeline of the visible rows to `out_path`.

    - Bars are drawn from the row's precomputed position; rows without one
      only get a label.
    - The header carries month names and day numbers; weekends are shaded.
    - A vertical line marks `today` when it falls inside the window.
    """

    if not window:
        raise ValueError("window must not be empty")

    settings = settings or ChartSettings()
    unit = settings.day_width
    chart_width = len(window) * unit
    n_rows = max(len(rows), 1)

    fig_width = (settings.task_list_width + chart_width) / PIXELS_PER_INCH
    fig_height = max(2.0, (settings.header_height + n_rows * settings.row_height) / PIXELS_PER_INCH + 0.6)
    fig = plt.figure(figsize=(fig_width, fig_height))
    # Allocate explicit grid: left column for labels, right for chart.
    gs = fig.add_gridspec(
        1,
        2,
        width_ratios=[settings.task_list_width, chart_width],
        wspace=0.0,
        left=0.01,
        right=0.99,
        top=1.0 - settings.header_height / PIXELS_PER_INCH / fig_height,
        bottom=0.05,
    )
    label_ax = fig.add_subplot(gs[0, 0])
    ax = fig.add_subplot(gs[0, 1], sharey=label_ax)

    # Rows on y (top to bottom), pixels on x.
    ax.set_ylim(-0.5, n_rows - 0.5)
    ax.invert_yaxis()
    ax.set_xlim(0, chart_width)
    ax.set_yticks([])
    _draw_header(ax, window, unit)

    label_ax.set_xlim(0, settings.task_list_width)
    label_ax.axis("off")

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT, y=TITLE_Y)
    footer = f"wbs-planner v{_tool_version()}"
    fig.text(0.99, 0.01, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    for idx, day in enumerate(window):
        if day.weekday() >= 5:
            ax.axvspan(idx * unit, (idx + 1) * unit, color=WEEKEND_SHADE, zorder=0)

    today_idx = day_index(window, today)
    if today_idx is not None:
        ax.axvline(today_idx * unit + unit / 2, color=TODAY_COLOR, linewidth=1.5, zorder=4)

    bar_height = 1.0 - 2 * BAR_MARGIN_FRAC
    for y, row in enumerate(rows):
        label_x = 4 + row.indent * settings.indent_width
        marker = ""
        if row.has_children:
            marker = "- " if row.expanded else "+ "
        label_ax.text(
            label_x,
            y,
            f"{marker}{row.title}",
            ha="left",
            va="center",
            fontsize=LABEL_FONT,
            fontweight="bold" if row.has_children else "normal",
            clip_on=True,
        )
        ax.axhline(y + 0.5, color="#e5e7eb", linewidth=0.5, zorder=1)

        if row.bar is None:
            continue
        color = STATUS_COLORS.get(row.status, "#999999")
        ax.add_patch(
            Rectangle(
                (row.bar.offset, y - bar_height / 2),
                row.bar.width,
                bar_height,
                facecolor=color,
                edgecolor="black",
                linewidth=0.5,
                alpha=0.9,
                zorder=2,
            )
        )
        if row.progress > 0:
            ax.add_patch(
                Rectangle(
                    (row.bar.offset, y - bar_height / 2),
                    row.bar.width * row.progress / 100,
                    bar_height,
                    facecolor=PROGRESS_SHADE,
                    linewidth=0,
                    zorder=3,
                )
            )

    try:
        Path(out_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out_path, format="svg", bbox_inches="tight")
    finally:
        plt.close(fig)


def _draw_header(ax: plt.Axes, window: Sequence[dt.date], unit: float) -> None:
    """Month names centred over their span, day numbers on the minor ticks."""
    ax.xaxis.tick_top()
    spans = month_spans(window)
    ax.xaxis.set_major_locator(FixedLocator([s.first_index * unit for s in spans]))
    ax.xaxis.set_major_formatter(NullFormatter())
    ax.xaxis.set_minor_locator(FixedLocator([idx * unit + unit / 2 for idx in range(len(window))]))
    ax.set_xticklabels([str(day.day) for day in window], minor=True, fontsize=DAY_FONT)
    ax.grid(True, axis="x", which="major", linestyle="-", alpha=0.5)
    ax.tick_params(axis="x", which="minor", length=0, pad=2)

    for span in spans:
        center = (span.first_index + span.day_count / 2) * unit
        ax.annotate(
            span.label,
            xy=(center, 1.0),
            xycoords=("data", "axes fraction"),
            xytext=(0, 16),
            textcoords="offset points",
            ha="center",
            va="bottom",
            fontsize=MONTH_FONT,
        )


def _tool_version() -> str:
    try:
        return metadata.version("wbs-planner")
    except metadata.PackageNotFoundError:
        return "0.0.0"
