"""Set planning: sequencing candidate tracks along a target energy curve."""

import random
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .cache import AnalysisCache
from .config import (
    DEFAULT_MIXER_CONFIG,
    ENERGY_CURVES,
    KEY_PROGRESSIONS,
    MixerConfig,
    SetPlanOptions,
)
from .exceptions import (
    DJMixError,
    DJSetError,
    DJSetPlanningError,
    InsufficientFilteredError,
    InsufficientSongsError,
    NoCandidatesError,
)
from .logging_config import get_logger
from .models import AudioAnalysis, DJSetPlan, DJTransition, KeyRelationship, Track
from .provider import AudioFeatureProvider, default_analysis, fetch_analyses
from .scoring import calculate_key_compatibility
from .transitions import build_transition

logger = get_logger(__name__)

MIN_TARGET_ENERGY = 0.1
MAX_TARGET_ENERGY = 1.0
VALLEY_FLOOR = 0.2
WAVE_AMPLITUDE = 0.2

# BPM continuity loses all credit at this tempo gap
BPM_CONTINUITY_SPAN = 50.0
MIN_BPM_CONTINUITY = 0.1

ENERGY_BASED_KEY_SCORE = 0.8
CIRCLE_OF_FIFTHS_PREFERRED = {KeyRelationship.PERFECT_MATCH, KeyRelationship.DOMINANT}
CIRCLE_OF_FIFTHS_PENALTY = 0.9

# Thresholds for set notes
ENERGY_JUMP = 0.3
BPM_JUMP = 10.0
KEY_CLASH = 0.5

GENRE_KEYWORDS = (
    "rock", "pop", "jazz", "classical", "electronic", "hip-hop", "hip hop", "rap",
    "country", "blues", "metal", "punk", "indie", "alternative", "folk", "soul",
    "r&b", "reggae", "techno", "house", "ambient", "experimental", "psychedelic",
    "funk", "disco", "grunge", "emo", "ska", "gospel", "latin", "world",
    "acoustic", "instrumental", "dubstep", "drum", "bass", "trance", "dub",
)

MODE_NOTES = {
    "conservative": "Conservative mixing - prioritizes smooth transitions over creativity",
    "balanced": "Balanced mixing - good balance between smoothness and creativity",
    "aggressive": "Aggressive mixing - prioritizes energy and creativity",
}

Candidate = Tuple[Track, AudioAnalysis]


def energy_targets(curve: str, start: float, end: float, count: int) -> List[float]:
    """Target energy for each set position, clamped to [0.1, 1.0].

    Raises:
        ValueError: If the curve shape is unknown.
    """
    if curve not in ENERGY_CURVES:
        raise ValueError(f"Unknown energy curve: {curve!r}")
    if count <= 0:
        return []
    progress = np.linspace(0.0, 1.0, count) if count > 1 else np.zeros(1)
    first_half = progress < 0.5

    if curve in ("rising", "falling"):
        targets = start + (end - start) * progress
    elif curve == "peak":
        targets = np.where(
            first_half,
            start + (1.0 - start) * progress * 2,
            1.0 - (1.0 - end) * (progress - 0.5) * 2,
        )
    elif curve == "valley":
        targets = np.where(
            first_half,
            start - (start - VALLEY_FLOOR) * progress * 2,
            VALLEY_FLOOR + (end - VALLEY_FLOOR) * (progress - 0.5) * 2,
        )
    else:
        targets = start + (end - start) * progress + WAVE_AMPLITUDE * np.sin(progress * 2 * np.pi)

    return np.round(np.clip(targets, MIN_TARGET_ENERGY, MAX_TARGET_ENERGY), 4).tolist()


def progression_key_score(
    previous_key: str, key: str, progression: str, rng: random.Random
) -> float:
    """Score a key move under the chosen key progression style."""
    if progression == "random":
        return rng.random()
    if progression == "energy_based":
        return ENERGY_BASED_KEY_SCORE

    compat = calculate_key_compatibility(previous_key, key)
    if progression == "circle_of_fifths":
        if compat.relationship in CIRCLE_OF_FIFTHS_PREFERRED:
            return 1.0
        return compat.compatibility * CIRCLE_OF_FIFTHS_PENALTY
    return compat.compatibility


def bpm_continuity(previous_bpm: float, bpm: float) -> float:
    return max(MIN_BPM_CONTINUITY, 1.0 - abs(bpm - previous_bpm) / BPM_CONTINUITY_SPAN)


def genre_hints(track: Track) -> List[str]:
    """Genre words found in the track's genre tag and metadata."""
    hints = [track.genre.lower()] if track.genre else []
    metadata = f"{track.artist} {track.title} {track.album}".lower()
    hints.extend(keyword for keyword in GENRE_KEYWORDS if keyword in metadata)
    return hints


def _matches_any(hints: Sequence[str], genres: Sequence[str]) -> bool:
    return any(g.lower() in hint for g in genres for hint in hints)


def filter_candidates(candidates: List[Candidate], options: SetPlanOptions) -> List[Candidate]:
    """Apply the genre focus, genre exclusion and BPM range filters in turn."""
    remaining = candidates
    if options.genre_focus:
        remaining = [c for c in remaining if _matches_any(genre_hints(c[0]), options.genre_focus)]
        logger.debug("Genre focus: %s/%s remain", len(remaining), len(candidates))
    if options.exclude_genres:
        remaining = [
            c for c in remaining if not _matches_any(genre_hints(c[0]), options.exclude_genres)
        ]
        logger.debug("Genre exclusion: %s/%s remain", len(remaining), len(candidates))
    if options.bpm_range:
        low, high = options.bpm_range
        remaining = [c for c in remaining if low <= c[1].bpm <= high]
        logger.debug("BPM range: %s/%s remain", len(remaining), len(candidates))
    return remaining


def select_sequence(
    candidates: List[Candidate], targets: List[float], options: SetPlanOptions
) -> List[Candidate]:
    """Greedily pick the best unused candidate for each target position.

    Ties keep input order, so identical inputs always give the same set.
    """
    if options.key_progression not in KEY_PROGRESSIONS:
        raise ValueError(f"Unknown key progression: {options.key_progression!r}")
    rng = random.Random(options.seed)
    selected: List[Candidate] = []
    used = set()

    for target in targets:
        best = None
        best_score = -1.0
        previous = selected[-1][1] if selected else None

        for track, analysis in candidates:
            if track.id in used:
                continue
            energy_score = 1.0 - abs(analysis.energy - target)
            key_score = 1.0
            bpm_score = 1.0
            if previous is not None:
                key_score = progression_key_score(
                    previous.key, analysis.key, options.key_progression, rng
                )
                bpm_score = bpm_continuity(previous.bpm, analysis.bpm)

            score = (
                options.energy_weight * energy_score
                + options.key_weight * key_score
                + options.bpm_weight * bpm_score
            )
            if score > best_score:
                best_score = score
                best = (track, analysis)

        if best is None:
            best = next((c for c in candidates if c[0].id not in used), None)
            if best is None:
                break
        selected.append(best)
        used.add(best[0].id)

    return selected


def set_notes(transitions: List[DJTransition], config: MixerConfig) -> List[str]:
    """Describe energy, tempo and harmonic variation across a set."""
    notes = []
    count = len(transitions)

    energy_jumps = sum(
        1 for t in transitions if abs(t.from_analysis.energy - t.to_analysis.energy) > ENERGY_JUMP
    )
    if energy_jumps > count * 0.5:
        notes.append("High energy variation - good for dynamic mixing")
    elif energy_jumps == 0:
        notes.append("Consistent energy level - good for steady vibe")
    else:
        notes.append("Moderate energy variation - balanced set structure")

    bpm_jumps = sum(
        1 for t in transitions if abs(t.from_analysis.bpm - t.to_analysis.bpm) > BPM_JUMP
    )
    if bpm_jumps > count * 0.5:
        notes.append("Significant BPM variations - requires careful mixing")
    elif bpm_jumps == 0:
        notes.append("Consistent BPM - easy to mix")
    else:
        notes.append("Moderate BPM variation - standard progression")

    clashes = sum(
        1
        for t in transitions
        if calculate_key_compatibility(t.from_analysis.key, t.to_analysis.key).compatibility
        < KEY_CLASH
    )
    if clashes:
        notes.append(f"{clashes} key clashes detected - consider using effects or filters")
    else:
        notes.append("Good harmonic compatibility throughout the set")

    if config.auto_mix_mode in MODE_NOTES:
        notes.append(MODE_NOTES[config.auto_mix_mode])
    return notes


def assemble_plan(
    sequence: List[Candidate],
    config: MixerConfig,
    targets: Optional[List[float]] = None,
) -> DJSetPlan:
    """Build transitions and statistics for an ordered set."""
    transitions = [
        build_transition(a[0], b[0], a[1], b[1], config) for a, b in zip(sequence, sequence[1:])
    ]
    tracks = [track for track, _ in sequence]
    analyses = [analysis for _, analysis in sequence]
    energies = [a.energy for a in analyses]
    compatibility = (
        sum(t.compatibility for t in transitions) / len(transitions) if transitions else 0.0
    )

    return DJSetPlan(
        tracks=tracks,
        transitions=transitions,
        total_duration=sum(t.duration for t in tracks),
        average_energy=round(sum(energies) / len(energies), 4),
        energy_profile=energies,
        bpm_progression=[a.bpm for a in analyses],
        key_progression=[a.key for a in analyses],
        compatibility=round(compatibility, 4),
        notes=set_notes(transitions, config),
        energy_targets=list(targets or []),
    )


def _with_analyses(
    tracks: Sequence[Track], analyses: Dict[str, Optional[AudioAnalysis]]
) -> List[Candidate]:
    candidates = []
    seen = set()
    for track in tracks:
        if track.id in seen:
            continue
        seen.add(track.id)
        analysis = analyses.get(track.id)
        if analysis is None:
            logger.warning("Using default analysis for %s", track.id)
            analysis = default_analysis()
        candidates.append((track, analysis))
    return candidates


async def plan_set(
    tracks: Optional[Sequence[Track]],
    provider: AudioFeatureProvider,
    options: Optional[SetPlanOptions] = None,
    config: MixerConfig = DEFAULT_MIXER_CONFIG,
    cache: Optional[AnalysisCache] = None,
) -> DJSetPlan:
    """Choose and order tracks from a candidate pool to follow an energy curve.

    Args:
        tracks: Candidate pool.
        provider: Source of per-track analyses.
        options: Curve shape, filters and key progression.
        config: Mixer configuration for the transitions.
        cache: Analysis cache; a fresh one is used per call when omitted.

    Returns:
        DJSetPlan with one transition per consecutive pair.

    Raises:
        NoCandidatesError: If no candidate pool is given.
        InsufficientSongsError: If fewer than two candidates are given.
        InsufficientFilteredError: If fewer than two survive the filters.
        DJSetPlanningError: If planning fails for any other reason.
    """
    if tracks is None:
        raise NoCandidatesError("No candidate tracks provided for set planning")
    if len(tracks) < 2:
        raise InsufficientSongsError("Need at least 2 tracks to plan a DJ set")

    options = options or SetPlanOptions()
    try:
        analyses = await fetch_analyses(provider, tracks, cache)
        candidates = filter_candidates(_with_analyses(tracks, analyses), options)
        if len(candidates) < 2:
            raise InsufficientFilteredError(
                "Not enough tracks pass the filtering criteria for a DJ set"
            )

        count = max(2, min(options.max_songs, len(candidates)))
        targets = energy_targets(
            options.energy_curve, options.start_energy, options.end_energy, count
        )
        sequence = select_sequence(candidates, targets, options)
        plan = assemble_plan(sequence, config, targets)
    except DJMixError:
        raise
    except Exception as e:
        raise DJSetPlanningError(f"Failed to plan DJ set: {e}") from e

    logger.info(
        "Planned set: %s tracks, %.0f minutes", len(plan.tracks), plan.total_duration / 60
    )
    return plan


async def plan_dj_set(
    tracks: Sequence[Track],
    provider: AudioFeatureProvider,
    config: MixerConfig = DEFAULT_MIXER_CONFIG,
    cache: Optional[AnalysisCache] = None,
) -> DJSetPlan:
    """Plan transitions for tracks in the order given.

    Raises:
        DJSetError: If fewer than two tracks are given.
        DJSetPlanningError: If planning fails.
    """
    if len(tracks) < 2:
        raise DJSetError("Need at least 2 tracks to plan a DJ set")
    try:
        analyses = await fetch_analyses(provider, tracks, cache)
        sequence = []
        for track in tracks:
            analysis = analyses.get(track.id)
            if analysis is None:
                logger.warning("Using default analysis for %s", track.id)
                analysis = default_analysis()
            sequence.append((track, analysis))
        return assemble_plan(sequence, config)
    except DJMixError:
        raise
    except Exception as e:
        raise DJSetPlanningError(f"Failed to plan DJ set: {e}") from e
