"""Configuration for mixing, queue and set-planning parameters."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

CROSSFADE_CURVES = ("linear", "exponential", "logarithmic", "s-curve")
ENERGY_CURVES = ("rising", "falling", "peak", "valley", "wave")
KEY_PROGRESSIONS = ("circle_of_fifths", "random", "harmonic", "energy_based")
AUTO_MIX_STRATEGIES = ("balanced", "harmonic", "bpm", "energy", "crowd_pleaser")


@dataclass
class MixerConfig:
    """Configuration for transition planning."""

    enable_bpm_matching: bool = True
    enable_harmonic_mixing: bool = True
    enable_energy_flow: bool = True

    # Base transition length (seconds)
    transition_duration: float = 8.0
    crossfade_curve: str = "s-curve"

    # conservative, balanced, aggressive
    auto_mix_mode: str = "balanced"
    min_compatibility_threshold: float = 0.6
    max_bpm_difference: float = 10.0

    # Keep pitch when stretching tempo
    enable_key_lock: bool = True

    # Transition start point
    bars_before_end: int = 8
    beats_per_bar: int = 4

    # Curve sampling
    curve_samples_per_second: int = 10


@dataclass
class AutoMixOptions:
    """How the queue picks auto-mixed tracks."""

    strategy: str = "balanced"
    max_results: int = 10
    min_compatibility: float = 0.6
    bpm_range: Optional[Tuple[float, float]] = None


@dataclass
class QueueConfig:
    """Configuration for the live DJ queue."""

    max_queue_size: int = 20
    auto_mix_enabled: bool = True
    smart_transitions: bool = True
    duplicate_prevention: bool = True

    # Top the queue up with auto-mixed tracks
    auto_refill: bool = True
    refill_count: int = 5

    max_event_history: int = 100

    # Candidate filters (seconds)
    min_song_duration: float = 60.0
    max_song_duration: float = 600.0
    blocked_artists: List[str] = field(default_factory=list)

    auto_mix_options: AutoMixOptions = field(default_factory=AutoMixOptions)


@dataclass
class SetPlanOptions:
    """Options for sequencing a set from a candidate pool."""

    energy_curve: str = "wave"
    start_energy: float = 0.5
    end_energy: float = 0.7
    max_songs: int = 20
    key_progression: str = "harmonic"

    # Filters, each optional
    genre_focus: List[str] = field(default_factory=list)
    exclude_genres: List[str] = field(default_factory=list)
    bpm_range: Optional[Tuple[float, float]] = None

    # Scoring weights for each greedy pick
    energy_weight: float = 0.5
    key_weight: float = 0.3
    bpm_weight: float = 0.2

    # Seeds the "random" key progression so plans stay reproducible
    seed: int = 0


# Default configuration instances
DEFAULT_MIXER_CONFIG = MixerConfig()
DEFAULT_QUEUE_CONFIG = QueueConfig()
