"""Rich terminal rendering for set plans and transition curves."""

from typing import Optional, Sequence

import numpy as np
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import DJSetPlan, DJTransition

BLOCKS = " ▁▂▃▄▅▆▇█"
COLORS = ["blue", "cyan", "green", "yellow", "red"]

TYPE_COLORS = {
    "cut": "red",
    "crossfade": "white",
    "beatmatch": "cyan",
    "harmonic": "green",
    "energy_buildup": "yellow",
    "breakdown": "magenta",
    "echo_out": "blue",
    "filter_sweep": "bright_magenta",
}


def _level_color(level: float) -> str:
    """Map a normalized level (0-1) to a color name."""
    idx = min(int(level * len(COLORS)), len(COLORS) - 1)
    return COLORS[idx]


def _format_time(seconds: float) -> str:
    """Format seconds as M:SS."""
    m = int(seconds) // 60
    s = int(seconds) % 60
    return f"{m}:{s:02d}"


def _resample(values: Sequence[float], width: int) -> list:
    """Pick width evenly spaced samples (or all of them when shorter)."""
    if len(values) <= width:
        return list(values)
    indices = np.linspace(0, len(values) - 1, width, dtype=int)
    return [values[i] for i in indices]


def sparkline(values: Sequence[float], width: Optional[int] = None) -> Text:
    """Build a Rich Text line of colored block characters for 0-1 values."""
    if width is not None:
        values = _resample(values, width)
    text = Text()
    for v in values:
        level = min(max(float(v), 0.0), 1.0)
        idx = min(int(level * (len(BLOCKS) - 1)), len(BLOCKS) - 1)
        text.append(BLOCKS[idx], style=_level_color(level))
    return text


def render_transition(
    transition: DJTransition, width: int = 60, console: Optional[Console] = None
) -> None:
    """Render one transition's curves and notes to the terminal."""
    console = console or Console()
    header = Text(
        f"{transition.transition_type.value}  "
        f"start {transition.start_time:.1f}s before end, {transition.duration:.1f}s long  "
        f"compatibility {transition.compatibility:.2f}",
        style=TYPE_COLORS.get(transition.transition_type.value, "white"),
    )

    content = Text()
    content.append_text(header)
    content.append("\n\n")
    content.append("volume ")
    content.append_text(sparkline(transition.volume_curve, width))
    content.append("\nenergy ")
    content.append_text(sparkline(transition.energy_curve, width))
    if transition.filter_curve is not None:
        content.append("\nfilter ")
        content.append_text(sparkline(transition.filter_curve, width))
    if transition.bpm_adjustment != 1.0:
        content.append(f"\n\nTempo x{transition.bpm_adjustment:.3f}")
        if transition.pitch_adjustment:
            content.append(f", pitch {transition.pitch_adjustment:+.2f} st")
    content.append(f"\n{transition.notes}", style="dim")

    title = f"{transition.from_track.display_name} → {transition.to_track.display_name}"
    console.print(Panel(content, title=title, expand=False))


def render_set_plan(plan: DJSetPlan, console: Optional[Console] = None) -> None:
    """Render a set plan as an energy sparkline plus a per-track table."""
    console = console or Console()

    summary = Text(
        f"{len(plan.tracks)} tracks  {_format_time(plan.total_duration)}  "
        f"avg energy {plan.average_energy:.2f}  compatibility {plan.compatibility:.2f}"
    )
    content = Text()
    content.append_text(summary)
    content.append("\n\nenergy  ")
    content.append_text(sparkline(plan.energy_profile))
    if plan.energy_targets:
        content.append("\ntarget  ")
        content.append_text(sparkline(plan.energy_targets))
    console.print(Panel(content, title="DJ set", expand=False))

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Track")
    table.add_column("BPM", justify="right")
    table.add_column("Key")
    table.add_column("Energy", justify="right")
    table.add_column("Transition in")
    for i, track in enumerate(plan.tracks):
        transition = plan.transitions[i - 1] if i > 0 else None
        if transition is None:
            mix = Text("-", style="dim")
        else:
            kind = transition.transition_type.value
            mix = Text(f"{kind} ({transition.compatibility:.2f})", style=TYPE_COLORS.get(kind, "white"))
        table.add_row(
            str(i + 1),
            track.display_name,
            f"{plan.bpm_progression[i]:.1f}",
            plan.key_progression[i],
            f"{plan.energy_profile[i]:.2f}",
            mix,
        )
    console.print(table)

    for note in plan.notes:
        console.print(f"• {note}", style="dim")
