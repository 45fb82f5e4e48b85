"""Transition planning: type selection, timing, curves and notes."""

import math
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .cache import AnalysisCache
from .config import DEFAULT_MIXER_CONFIG, MixerConfig
from .energy import analyze_energy_flow
from .exceptions import DJMixError, MixAnalysisError, TransitionPlanError
from .logging_config import get_logger
from .models import (
    AudioAnalysis,
    BPMCompatibility,
    BPMRelationship,
    DJTransition,
    EnergyDirection,
    EnergyFlow,
    KeyCompatibility,
    KeyRelationship,
    MixAnalysis,
    TransitionCompatibility,
    TransitionRecommendation,
    TransitionType,
    Track,
)
from .provider import DEFAULT_BPM, AudioFeatureProvider, analysis_or_default, fetch_analysis
from .scoring import calculate_bpm_compatibility, calculate_key_compatibility

logger = get_logger(__name__)

# Aggregate weights: bpm, key, energy alignment
BPM_WEIGHT = 0.4
KEY_WEIGHT = 0.4
ENERGY_WEIGHT = 0.2

# Lowest overall compatibility for each fallback type, checked in order
FALLBACK_TYPES = [
    (0.5, TransitionType.CROSSFADE),
    (0.4, TransitionType.FILTER_SWEEP),
    (0.3, TransitionType.ECHO_OUT),
    (0.0, TransitionType.CUT),
]

CUT_DURATION = 1.0
DURATION_STRETCH = 1.5

# Tempo ratio applied to the incoming track per relationship
BPM_ADJUSTMENTS = {
    BPMRelationship.EXACT_MATCH: 1.0,
    BPMRelationship.CLOSE_MATCH: 1.0,
    BPMRelationship.DOUBLE_TIME: 0.5,
    BPMRelationship.HALF_TIME: 2.0,
}

CROSSFADE_FUNCTIONS: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "linear": lambda p: p,
    "exponential": lambda p: p**2,
    "logarithmic": np.sqrt,
    "s-curve": lambda p: 0.5 * (1 - np.cos(np.pi * p)),
}

BPM_NOTES = {
    BPMRelationship.EXACT_MATCH: "Perfect BPM match - no adjustment needed",
    BPMRelationship.CLOSE_MATCH: "Close BPM match ({bpm} BPM) - slight adjustment may be needed",
    BPMRelationship.DOUBLE_TIME: "Double time transition - use beatjump or half-time mixing",
    BPMRelationship.HALF_TIME: "Half time transition - good for breakdown sections",
    BPMRelationship.ONE_POINT_FIVE: "1.5x tempo relationship - mix on a shared phrase",
    BPMRelationship.UNKNOWN: "Unknown BPM - match tempo by ear",
}
BPM_DEFAULT_NOTE = "BPM adjustment needed: {bpm} BPM"

KEY_NOTES = {
    KeyRelationship.PERFECT_MATCH: "Same key - perfect harmonic mixing",
    KeyRelationship.RELATIVE_MINOR: "Relative minor/major relationship - excellent for harmonic mixing",
    KeyRelationship.RELATIVE_MAJOR: "Relative minor/major relationship - excellent for harmonic mixing",
    KeyRelationship.DOMINANT: "Dominant relationship - strong harmonic connection",
    KeyRelationship.SUBDOMINANT: "Subdominant relationship - strong harmonic connection",
    KeyRelationship.COMPATIBLE: "Compatible keys - harmonic mixing possible",
    KeyRelationship.INCOMPATIBLE: "Key clash detected - consider using filter or effects",
}

ENERGY_NOTES = {
    EnergyDirection.RISING: "Energy rising - build up tension",
    EnergyDirection.FALLING: "Energy falling - create breakdown or cooldown",
    EnergyDirection.STEADY: "Energy steady - maintain current vibe",
}

TYPE_NOTES = {
    TransitionType.ENERGY_BUILDUP: "Use risers, filter sweeps, and snare rolls",
    TransitionType.BREAKDOWN: "Strip back to percussion or atmospheric elements",
    TransitionType.HARMONIC: "Focus on smooth EQ transitions and melody blending",
    TransitionType.BEATMATCH: "Align phrases and use precise timing",
    TransitionType.CROSSFADE: "Use EQ to prevent frequency clashes during crossfade",
    TransitionType.ECHO_OUT: "Echo out the outgoing track before bringing in the next",
    TransitionType.FILTER_SWEEP: "Sweep a filter to mask the clash",
    TransitionType.CUT: "Hard cut on the downbeat",
}

DIFFICULTY_LEVELS = ["easy", "medium", "hard", "expert"]

# Types that need more skill than their scores suggest
COMPLEX_TYPES = {
    TransitionType.ENERGY_BUILDUP,
    TransitionType.BREAKDOWN,
    TransitionType.FILTER_SWEEP,
}


def overall_compatibility(bpm_score: float, key_score: float, energy_alignment: float) -> float:
    return BPM_WEIGHT * bpm_score + KEY_WEIGHT * key_score + ENERGY_WEIGHT * energy_alignment


def choose_transition_type(
    bpm: BPMCompatibility,
    key: KeyCompatibility,
    flow: EnergyFlow,
    overall: float,
    config: MixerConfig = DEFAULT_MIXER_CONFIG,
) -> TransitionType:
    """Pick the transition archetype, energy moves first."""
    if config.enable_energy_flow:
        if flow.energy_direction == EnergyDirection.RISING and flow.target_energy > 0.7:
            return TransitionType.ENERGY_BUILDUP
        if flow.energy_direction == EnergyDirection.FALLING and flow.target_energy < 0.3:
            return TransitionType.BREAKDOWN
    if config.enable_harmonic_mixing and key.compatibility > 0.9:
        return TransitionType.HARMONIC
    if config.enable_bpm_matching and bpm.compatibility > 0.8:
        return TransitionType.BEATMATCH

    for threshold, transition_type in FALLBACK_TYPES:
        if overall >= threshold:
            return transition_type
    return TransitionType.CUT


def transition_timing(
    from_analysis: AudioAnalysis,
    bpm: BPMCompatibility,
    transition_type: TransitionType,
    config: MixerConfig = DEFAULT_MIXER_CONFIG,
) -> Tuple[float, float]:
    """Return (start_time, duration) in seconds.

    start_time counts back from the end of the outgoing track.
    """
    beats = config.bars_before_end * config.beats_per_bar
    # Unknown tempo: count the bars at the default BPM
    bpm_value = from_analysis.bpm if from_analysis.bpm > 0 else DEFAULT_BPM
    start_time = beats * 60.0 / bpm_value

    if transition_type == TransitionType.CUT:
        return start_time, CUT_DURATION

    duration = config.transition_duration
    if bpm.compatibility > 0.8 and bpm.relationship != BPMRelationship.EXACT_MATCH:
        duration *= DURATION_STRETCH
    return start_time, duration


def tempo_adjustment(
    from_analysis: AudioAnalysis,
    to_analysis: AudioAnalysis,
    bpm: BPMCompatibility,
    config: MixerConfig = DEFAULT_MIXER_CONFIG,
) -> Tuple[float, float]:
    """Return (bpm_adjustment, pitch_adjustment in semitones)."""
    if not config.enable_bpm_matching or from_analysis.bpm <= 0 or to_analysis.bpm <= 0:
        return 1.0, 0.0

    ratio = BPM_ADJUSTMENTS.get(bpm.relationship)
    if ratio is None:
        ratio = from_analysis.bpm / to_analysis.bpm

    pitch = 0.0
    if not config.enable_key_lock and ratio != 1.0:
        pitch = round(12 * math.log2(ratio), 3)
    return ratio, pitch


def crossfade(progress, curve: str = "linear") -> np.ndarray:
    """Apply a crossfade curve shape to progress values in [0, 1]."""
    try:
        shape = CROSSFADE_FUNCTIONS[curve]
    except KeyError:
        raise ValueError(f"Unknown crossfade curve: {curve!r}") from None
    return shape(np.asarray(progress, dtype=float))


def _energy_curve(
    progress: np.ndarray, current: float, target: float, transition_type: TransitionType
) -> np.ndarray:
    if transition_type == TransitionType.ENERGY_BUILDUP:
        curve = current + (target - current) * np.sqrt(progress)
    elif transition_type == TransitionType.BREAKDOWN:
        curve = current * (1 - 0.8 * progress)
    elif transition_type == TransitionType.BEATMATCH:
        curve = np.full_like(progress, max(current, target))
    else:
        curve = current + (target - current) * progress
    return np.clip(curve, 0.0, 1.0)


def _filter_curve(progress: np.ndarray, transition_type: TransitionType) -> Optional[np.ndarray]:
    if transition_type == TransitionType.ENERGY_BUILDUP:
        return progress
    if transition_type == TransitionType.BREAKDOWN:
        return 1 - 0.7 * progress
    return None


def _as_tuple(values: np.ndarray) -> Tuple[float, ...]:
    return tuple(np.round(values, 4).tolist())


def generate_curves(
    from_analysis: AudioAnalysis,
    to_analysis: AudioAnalysis,
    transition_type: TransitionType,
    duration: float,
    config: MixerConfig = DEFAULT_MIXER_CONFIG,
):
    """Sample the volume, energy and filter curves over the transition window.

    Returns:
        (volume_curve, energy_curve, filter_curve) tuples; filter_curve is None
        unless the type sweeps a filter.
    """
    steps = max(1, int(duration * config.curve_samples_per_second))
    progress = np.linspace(0.0, 1.0, steps + 1)

    volume = crossfade(progress, config.crossfade_curve)
    energy = _energy_curve(progress, from_analysis.energy, to_analysis.energy, transition_type)
    filt = _filter_curve(progress, transition_type)

    return _as_tuple(volume), _as_tuple(energy), None if filt is None else _as_tuple(filt)


def transition_notes(
    bpm: BPMCompatibility,
    key: KeyCompatibility,
    flow: EnergyFlow,
    transition_type: TransitionType,
) -> List[str]:
    """Human-readable DJ notes for each sub-score and the chosen type."""
    bpm_text = BPM_NOTES.get(bpm.relationship, BPM_DEFAULT_NOTE)
    return [
        bpm_text.format(bpm=round(bpm.bpm)),
        KEY_NOTES[key.relationship],
        ENERGY_NOTES[flow.energy_direction],
        TYPE_NOTES[transition_type],
    ]


def build_transition(
    from_track: Track,
    to_track: Track,
    from_analysis: AudioAnalysis,
    to_analysis: AudioAnalysis,
    config: MixerConfig = DEFAULT_MIXER_CONFIG,
) -> DJTransition:
    """Build a complete transition from two analyzed tracks."""
    bpm = calculate_bpm_compatibility(from_analysis.bpm, to_analysis.bpm, to_track.genre)
    key = calculate_key_compatibility(from_analysis.key, to_analysis.key)
    flow = analyze_energy_flow(from_analysis, to_analysis)

    overall = overall_compatibility(bpm.compatibility, key.compatibility, flow.alignment)
    transition_type = choose_transition_type(bpm, key, flow, overall, config)
    start_time, duration = transition_timing(from_analysis, bpm, transition_type, config)
    bpm_adjustment, pitch_adjustment = tempo_adjustment(from_analysis, to_analysis, bpm, config)
    volume, energy, filt = generate_curves(
        from_analysis, to_analysis, transition_type, duration, config
    )

    logger.debug(
        "Transition %s -> %s: %s (%.2f)",
        from_track.id,
        to_track.id,
        transition_type.value,
        overall,
    )
    return DJTransition(
        from_track=from_track,
        to_track=to_track,
        from_analysis=from_analysis,
        to_analysis=to_analysis,
        transition_type=transition_type,
        start_time=round(start_time, 3),
        duration=duration,
        bpm_adjustment=bpm_adjustment,
        pitch_adjustment=pitch_adjustment,
        energy_curve=energy,
        volume_curve=volume,
        filter_curve=filt,
        compatibility=round(overall, 4),
        notes=". ".join(transition_notes(bpm, key, flow, transition_type)),
    )


async def create_transition_plan(
    from_track: Track,
    to_track: Track,
    provider: AudioFeatureProvider,
    config: MixerConfig = DEFAULT_MIXER_CONFIG,
    cache: Optional[AnalysisCache] = None,
) -> DJTransition:
    """Plan the transition between two tracks.

    Tracks without an analysis are mixed with neutral defaults.

    Raises:
        TransitionPlanError: If the transition cannot be built.
    """
    try:
        from_analysis = await analysis_or_default(provider, from_track, cache)
        to_analysis = await analysis_or_default(provider, to_track, cache)
        return build_transition(from_track, to_track, from_analysis, to_analysis, config)
    except DJMixError:
        raise
    except Exception as e:
        raise TransitionPlanError(f"Failed to create transition plan: {e}") from e


async def analyze_track_for_mixing(
    track: Track,
    provider: AudioFeatureProvider,
    previous: Optional[Track] = None,
    config: MixerConfig = DEFAULT_MIXER_CONFIG,
    cache: Optional[AnalysisCache] = None,
) -> MixAnalysis:
    """Score a track against the one playing before it.

    Without a previous track the track is compared with itself.

    Raises:
        MixAnalysisError: If the track has no analysis or scoring fails.
    """
    try:
        analysis = await fetch_analysis(provider, track, cache)
        if analysis is None:
            raise MixAnalysisError(f"No analysis available for {track.display_name}")
        prev_analysis = analysis
        if previous is not None:
            prev_analysis = await analysis_or_default(provider, previous, cache)

        bpm = calculate_bpm_compatibility(prev_analysis.bpm, analysis.bpm, track.genre)
        key = calculate_key_compatibility(prev_analysis.key, analysis.key)
        flow = analyze_energy_flow(prev_analysis, analysis)

        weights = (
            BPM_WEIGHT if config.enable_bpm_matching else 0.0,
            KEY_WEIGHT if config.enable_harmonic_mixing else 0.0,
            ENERGY_WEIGHT if config.enable_energy_flow else 0.0,
        )
        total = sum(weights)
        if total > 0:
            scores = (bpm.compatibility, key.compatibility, flow.alignment)
            overall = sum(w * s for w, s in zip(weights, scores)) / total
        else:
            overall = 0.5

        transition_type = choose_transition_type(bpm, key, flow, overall, config)
        return MixAnalysis(
            track=track,
            analysis=analysis,
            bpm_compatibility=bpm,
            key_compatibility=key,
            energy_flow=flow,
            overall_compatibility=round(overall, 4),
            recommended_transition=transition_type,
            transition_notes=transition_notes(bpm, key, flow, transition_type),
        )
    except MixAnalysisError:
        raise
    except Exception as e:
        raise MixAnalysisError(f"Failed to analyze track for mixing: {e}") from e


def get_recommended_transition(
    key_score: float, bpm_score: float, energy_score: float
) -> TransitionRecommendation:
    """Recommend a transition style straight from the three sub-scores."""
    if key_score >= 0.8 and bpm_score >= 0.8:
        if key_score >= bpm_score:
            return TransitionRecommendation(
                TransitionType.HARMONIC, 8000, "sine", ["filter", "eq"]
            )
        return TransitionRecommendation(TransitionType.BEATMATCH, 8000, "linear", ["delay", "eq"])

    overall = overall_compatibility(bpm_score, key_score, energy_score)
    if overall >= 0.5:
        return TransitionRecommendation(TransitionType.CROSSFADE, 4000, "sine", ["eq"])
    if overall >= 0.35:
        return TransitionRecommendation(
            TransitionType.FILTER_SWEEP, 2000, "exponential", ["filter"]
        )
    return TransitionRecommendation(TransitionType.CUT, 500, "linear", [])


def calculate_transition_compatibility(
    bpm_score: float,
    key_score: float,
    energy_score: float,
    transition_type: Optional[TransitionType] = None,
) -> TransitionCompatibility:
    """Overall compatibility with a difficulty label for the mix."""
    overall = overall_compatibility(bpm_score, key_score, energy_score)
    if overall > 0.8:
        level = 0
    elif overall >= 0.4:
        level = 1
    elif overall >= 0.3:
        level = 2
    else:
        level = 3
    if transition_type in COMPLEX_TYPES:
        level = min(level + 1, len(DIFFICULTY_LEVELS) - 1)

    return TransitionCompatibility(
        overall=round(overall, 4),
        bpm_score=bpm_score,
        key_score=key_score,
        energy_score=energy_score,
        difficulty=DIFFICULTY_LEVELS[level],
    )
