"""Command-line interface for djmix."""

import asyncio
import json
import sys
from pathlib import Path

import click

from .cache import AnalysisCache
from .config import CROSSFADE_CURVES, ENERGY_CURVES, KEY_PROGRESSIONS, MixerConfig, SetPlanOptions
from .exceptions import DJMixError
from .logging_config import setup_logging
from .provider import load_library
from .scoring import calculate_bpm_compatibility, calculate_key_compatibility
from .set_planner import plan_dj_set, plan_set
from .transitions import analyze_track_for_mixing, create_transition_plan
from .visualizer import render_set_plan, render_transition


def format_time(seconds):
    """Formats seconds into M:SS format.

    Example:
        >>> format_time(125.3)
        '2:05'
    """
    if seconds is None:
        return "N/A"
    return f"{int(seconds) // 60}:{int(seconds) % 60:02d}"


def _fail(message):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _load(library):
    try:
        return load_library(library)
    except ValueError as e:
        _fail(str(e))


def _find(tracks, track_id):
    for track in tracks:
        if track.id == track_id:
            return track
    _fail(f"Track not found in library: {track_id}")


def _cache(cache_dir):
    return AnalysisCache(Path(cache_dir)) if cache_dir else AnalysisCache()


def _transition_dict(t):
    """Convert a transition to a JSON-serializable dict."""
    return {
        "from": t.from_track.id,
        "to": t.to_track.id,
        "transition_type": t.transition_type.value,
        "start_time": t.start_time,
        "duration": t.duration,
        "bpm_adjustment": t.bpm_adjustment,
        "pitch_adjustment": t.pitch_adjustment,
        "compatibility": t.compatibility,
        "volume_curve": list(t.volume_curve),
        "energy_curve": list(t.energy_curve),
        "filter_curve": list(t.filter_curve) if t.filter_curve is not None else None,
        "notes": t.notes,
    }


def format_transition(t):
    """Format a transition as text lines."""
    lines = [
        f"{t.from_track.display_name} → {t.to_track.display_name}",
        f"Transition: {t.transition_type.value} (compatibility: {t.compatibility:.2f})",
        f"Start: {t.start_time:.1f}s before end, duration {t.duration:.1f}s",
    ]
    if t.bpm_adjustment != 1.0:
        lines.append(f"Tempo: x{t.bpm_adjustment:.3f}, pitch {t.pitch_adjustment:+.2f} semitones")
    lines.append(f"Notes: {t.notes}")
    return "\n".join(lines)


def format_set_plan(plan):
    """Format a set plan for text output."""
    lines = [
        f"DJ set: {len(plan.tracks)} tracks, {format_time(plan.total_duration)}, "
        f"average energy {plan.average_energy:.2f}, compatibility {plan.compatibility:.2f}"
    ]
    for i, track in enumerate(plan.tracks):
        lines.append(
            f"{i + 1}. {track.display_name} "
            f"({plan.bpm_progression[i]:.1f} BPM, {plan.key_progression[i]}, "
            f"energy {plan.energy_profile[i]:.2f})"
        )
        if i < len(plan.transitions):
            t = plan.transitions[i]
            lines.append(f"   ↳ {t.transition_type.value} ({t.compatibility:.2f})")
    lines.append("")
    lines.extend(f"- {note}" for note in plan.notes)
    return "\n".join(lines)


def _set_plan_dict(plan):
    return {
        "tracks": [t.id for t in plan.tracks],
        "total_duration": plan.total_duration,
        "average_energy": plan.average_energy,
        "energy_profile": plan.energy_profile,
        "energy_targets": plan.energy_targets,
        "bpm_progression": plan.bpm_progression,
        "key_progression": plan.key_progression,
        "compatibility": plan.compatibility,
        "transitions": [_transition_dict(t) for t in plan.transitions],
        "notes": plan.notes,
    }


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, verbose):
    """djmix - DJ mixing compatibility engine."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("current", type=float)
@click.argument("candidate", type=float)
@click.option("--genre", default=None, help="Genre hint for the candidate track")
@click.option("--format", "output_format", default="text", type=click.Choice(["text", "json"]))
def bpm(current, candidate, genre, output_format):
    """Score mixing CANDIDATE BPM out of CURRENT BPM.

    Example:
        djmix bpm 120 240
    """
    result = calculate_bpm_compatibility(current, candidate, genre)
    if output_format == "json":
        click.echo(
            json.dumps(
                {
                    "bpm": result.bpm,
                    "compatibility": result.compatibility,
                    "relationship": result.relationship.value,
                    "recommended_technique": result.recommended_technique.value,
                    "confidence": result.confidence,
                },
                indent=2,
            )
        )
        return
    click.echo(f"Relationship: {result.relationship.value}")
    click.echo(f"Compatibility: {result.compatibility:.2f}")
    click.echo(f"Technique: {result.recommended_technique.value}")
    click.echo(f"Confidence: {result.confidence:.2f}")


@cli.command()
@click.argument("from_key")
@click.argument("to_key")
@click.option("--format", "output_format", default="text", type=click.Choice(["text", "json"]))
def key(from_key, to_key, output_format):
    """Score the harmonic move from FROM_KEY to TO_KEY (e.g. C Am F#m)."""
    try:
        result = calculate_key_compatibility(from_key, to_key)
    except ValueError as e:
        _fail(str(e))
    if output_format == "json":
        click.echo(
            json.dumps(
                {
                    "key": result.key,
                    "compatibility": result.compatibility,
                    "relationship": result.relationship.value,
                    "harmonic_function": result.harmonic_function.value,
                },
                indent=2,
            )
        )
        return
    click.echo(f"Relationship: {result.relationship.value}")
    click.echo(f"Compatibility: {result.compatibility:.2f}")
    click.echo(f"Harmonic function: {result.harmonic_function.value}")


@cli.command()
@click.argument("library", type=click.Path(exists=True, dir_okay=False))
@click.argument("track_id")
@click.option("--previous", default=None, help="Id of the track playing before it")
@click.option("--format", "output_format", default="text", type=click.Choice(["text", "json"]))
def analyze(library, track_id, previous, output_format):
    """Analyze a library track for mixing after --previous."""
    tracks, provider = _load(library)
    track = _find(tracks, track_id)
    prev = _find(tracks, previous) if previous else None
    try:
        result = asyncio.run(analyze_track_for_mixing(track, provider, prev))
    except DJMixError as e:
        _fail(e.message)

    if output_format == "json":
        click.echo(
            json.dumps(
                {
                    "track": track.id,
                    "bpm_relationship": result.bpm_compatibility.relationship.value,
                    "key_relationship": result.key_compatibility.relationship.value,
                    "energy_direction": result.energy_flow.energy_direction.value,
                    "overall_compatibility": result.overall_compatibility,
                    "recommended_transition": result.recommended_transition.value,
                    "notes": result.transition_notes,
                },
                indent=2,
            )
        )
        return
    click.echo(track.display_name)
    click.echo(f"BPM: {result.analysis.bpm:.1f} ({result.bpm_compatibility.relationship.value})")
    click.echo(f"Key: {result.analysis.key} ({result.key_compatibility.relationship.value})")
    click.echo(
        f"Energy: {result.analysis.energy:.2f} ({result.energy_flow.energy_direction.value})"
    )
    click.echo(f"Overall: {result.overall_compatibility:.2f}")
    click.echo(f"Recommended transition: {result.recommended_transition.value}")
    for note in result.transition_notes:
        click.echo(f"- {note}")


@cli.command()
@click.argument("library", type=click.Path(exists=True, dir_okay=False))
@click.argument("from_id")
@click.argument("to_id")
@click.option("--curve", default="s-curve", type=click.Choice(CROSSFADE_CURVES))
@click.option("--duration", default=8.0, type=float, help="Base transition length (seconds)")
@click.option("--no-key-lock", is_flag=True, help="Shift pitch along with tempo")
@click.option("--format", "output_format", default="text", type=click.Choice(["text", "json"]))
@click.option("--visualize", is_flag=True, help="Show the transition curves")
def transition(library, from_id, to_id, curve, duration, no_key_lock, output_format, visualize):
    """Plan the transition between two library tracks."""
    tracks, provider = _load(library)
    config = MixerConfig(
        crossfade_curve=curve, transition_duration=duration, enable_key_lock=not no_key_lock
    )
    try:
        result = asyncio.run(
            create_transition_plan(_find(tracks, from_id), _find(tracks, to_id), provider, config)
        )
    except DJMixError as e:
        _fail(e.message)

    if output_format == "json":
        click.echo(json.dumps(_transition_dict(result), indent=2))
    elif visualize:
        render_transition(result)
    else:
        click.echo(format_transition(result))


@cli.command()
@click.argument("library", type=click.Path(exists=True, dir_okay=False))
@click.option("--curve", default="wave", type=click.Choice(ENERGY_CURVES), help="Energy curve")
@click.option("--start-energy", default=0.5, type=float)
@click.option("--end-energy", default=0.7, type=float)
@click.option("--max-songs", default=20, type=int)
@click.option("--key-progression", default="harmonic", type=click.Choice(KEY_PROGRESSIONS))
@click.option("--genre", "genre_focus", multiple=True, help="Only tracks matching this genre")
@click.option("--exclude-genre", "exclude_genres", multiple=True)
@click.option("--bpm-min", type=float, default=None)
@click.option("--bpm-max", type=float, default=None)
@click.option("--seed", default=0, type=int, help="Seed for the random key progression")
@click.option("--ordered", is_flag=True, help="Keep library order instead of sequencing")
@click.option("--cache-dir", type=click.Path(file_okay=False), default=None)
@click.option("--format", "output_format", default="text", type=click.Choice(["text", "json"]))
@click.option("--visualize", is_flag=True, help="Show the plan as a rich table")
def plan(
    library,
    curve,
    start_energy,
    end_energy,
    max_songs,
    key_progression,
    genre_focus,
    exclude_genres,
    bpm_min,
    bpm_max,
    seed,
    ordered,
    cache_dir,
    output_format,
    visualize,
):
    """Plan a DJ set from the tracks in LIBRARY.

    Example:
        djmix plan library.json --curve peak --max-songs 8
    """
    tracks, provider = _load(library)
    cache = _cache(cache_dir)
    bpm_range = None
    if bpm_min is not None or bpm_max is not None:
        bpm_range = (bpm_min or 0.0, bpm_max or float("inf"))

    try:
        if ordered:
            result = asyncio.run(plan_dj_set(tracks, provider, cache=cache))
        else:
            options = SetPlanOptions(
                energy_curve=curve,
                start_energy=start_energy,
                end_energy=end_energy,
                max_songs=max_songs,
                key_progression=key_progression,
                genre_focus=list(genre_focus),
                exclude_genres=list(exclude_genres),
                bpm_range=bpm_range,
                seed=seed,
            )
            result = asyncio.run(plan_set(tracks, provider, options, cache=cache))
    except DJMixError as e:
        _fail(e.message)

    if output_format == "json":
        click.echo(json.dumps(_set_plan_dict(result), indent=2))
    elif visualize:
        render_set_plan(result)
    else:
        click.echo(format_set_plan(result))


if __name__ == "__main__":
    cli()
