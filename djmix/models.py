"""Domain models for the DJ mixing engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .config import MixerConfig


class BPMRelationship(str, Enum):
    """How an incoming tempo relates to the outgoing one."""

    EXACT_MATCH = "exact_match"
    CLOSE_MATCH = "close_match"
    DOUBLE_TIME = "double_time"
    HALF_TIME = "half_time"
    ONE_POINT_FIVE = "one_point_five"
    NEEDS_ADJUSTMENT = "needs_adjustment"
    INCOMPATIBLE = "incompatible"
    UNKNOWN = "unknown"


class MixTechnique(str, Enum):
    """Tempo technique a DJ would use for a BPM relationship."""

    DIRECT_MIX = "direct_mix"
    TEMPO_MATCH = "tempo_match"
    TEMPO_ADJUST = "tempo_adjust"
    SLIGHT_ADJUST = "slight_adjust"
    MAJOR_ADJUST = "major_adjust"


class KeyRelationship(str, Enum):
    """Harmonic relationship between two keys."""

    PERFECT_MATCH = "perfect_match"
    RELATIVE_MINOR = "relative_minor"
    RELATIVE_MAJOR = "relative_major"
    DOMINANT = "dominant"
    SUBDOMINANT = "subdominant"
    COMPATIBLE = "compatible"
    INCOMPATIBLE = "incompatible"


class HarmonicFunction(str, Enum):
    TONIC = "tonic"
    DOMINANT = "dominant"
    SUBDOMINANT = "subdominant"


class EnergyDirection(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STEADY = "steady"


class TransitionType(str, Enum):
    """The eight transition archetypes a plan can use."""

    CUT = "cut"
    CROSSFADE = "crossfade"
    BEATMATCH = "beatmatch"
    HARMONIC = "harmonic"
    ENERGY_BUILDUP = "energy_buildup"
    BREAKDOWN = "breakdown"
    ECHO_OUT = "echo_out"
    FILTER_SWEEP = "filter_sweep"


class QueueEventType(str, Enum):
    SONG_ADDED = "song_added"
    SONG_REMOVED = "song_removed"
    SONG_PLAYED = "song_played"
    SONG_SKIPPED = "song_skipped"
    QUEUE_CLEARED = "queue_cleared"
    AUTO_MIX_ADDED = "auto_mix_added"
    QUEUE_REORDERED = "queue_reordered"
    PRIORITY_CHANGED = "priority_changed"


@dataclass(frozen=True)
class Track:
    """A track from the external catalog."""

    id: str
    title: str = ""
    artist: str = ""
    album: str = ""
    duration: float = 0.0  # seconds
    genre: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Get display name for the track."""
        if self.artist and self.title:
            return f"{self.artist} - {self.title}"
        return self.title or self.id


@dataclass
class AudioAnalysis:
    """Per-track audio features supplied by the feature provider."""

    bpm: float
    key: str  # e.g. "C", "F#", "Am", "C#m"
    energy: float = 0.5  # 0-1
    danceability: float = 0.5  # 0-1
    valence: float = 0.5  # 0-1
    acousticness: float = 0.5  # 0-1
    instrumentalness: float = 0.5  # 0-1
    loudness: float = -10.0  # dB
    tempo_confidence: float = 0.5  # 0-1
    key_confidence: float = 0.5  # 0-1
    version: int = 1  # cache invalidation version


@dataclass
class BPMCompatibility:
    bpm: float  # candidate tempo
    compatibility: float  # 0-1
    relationship: BPMRelationship
    recommended_technique: MixTechnique
    confidence: float  # 0-1


@dataclass
class KeyCompatibility:
    key: str  # candidate key
    compatibility: float  # 0-1
    relationship: KeyRelationship
    harmonic_function: HarmonicFunction


@dataclass
class EnergyFlow:
    current_energy: float
    target_energy: float
    energy_direction: EnergyDirection
    transition_type: str  # buildup, breakdown, peak, cooldown

    @property
    def alignment(self) -> float:
        """How close the two energy levels are (1.0 = identical)."""
        return 1.0 - abs(self.current_energy - self.target_energy)


@dataclass(frozen=True)
class DJTransition:
    """A planned transition from one track into the next.

    Frozen: regenerate the plan instead of editing it when inputs change.
    """

    from_track: Track
    to_track: Track
    from_analysis: AudioAnalysis
    to_analysis: AudioAnalysis
    transition_type: TransitionType
    start_time: float  # seconds before the end of from_track
    duration: float  # seconds
    bpm_adjustment: float  # ratio, 1.0 = none
    pitch_adjustment: float  # semitones
    energy_curve: Tuple[float, ...]
    volume_curve: Tuple[float, ...]
    filter_curve: Optional[Tuple[float, ...]]
    compatibility: float  # 0-1
    notes: str


@dataclass
class MixAnalysis:
    """Mixing suitability of a track relative to the one before it."""

    track: Track
    analysis: AudioAnalysis
    bpm_compatibility: BPMCompatibility
    key_compatibility: KeyCompatibility
    energy_flow: EnergyFlow
    overall_compatibility: float
    recommended_transition: TransitionType
    transition_notes: List[str]


@dataclass
class TransitionRecommendation:
    """Transition style derived from raw compatibility scores."""

    transition_type: TransitionType
    duration_ms: int
    curve: str  # linear, sine, exponential
    effects: List[str]


@dataclass
class TransitionCompatibility:
    overall: float
    bpm_score: float
    key_score: float
    energy_score: float
    difficulty: str  # easy, medium, hard, expert


@dataclass
class DJSetPlan:
    """An ordered set with a transition between every consecutive pair."""

    tracks: List[Track]
    transitions: List[DJTransition]
    total_duration: float  # seconds
    average_energy: float
    energy_profile: List[float]
    bpm_progression: List[float]
    key_progression: List[str]
    compatibility: float
    notes: List[str]
    energy_targets: List[float] = field(default_factory=list)


@dataclass
class DJQueueItem:
    """A live queue entry."""

    id: str
    track: Track
    position: int
    analysis: Optional[AudioAnalysis] = None
    transition: Optional[DJTransition] = None
    compatibility: Optional[float] = None  # with the predecessor
    is_auto_queued: bool = False
    priority: str = "normal"  # low, normal, high, urgent
    queued_at: datetime = field(default_factory=datetime.now)
    notes: Optional[str] = None


@dataclass
class QueueEvent:
    type: QueueEventType
    timestamp: datetime
    track_id: Optional[str] = None
    data: Dict[str, object] = field(default_factory=dict)


@dataclass
class QueueStats:
    total_songs: int
    auto_mixed_songs: int
    user_added_songs: int
    average_energy: float
    average_bpm: float
    key_distribution: Dict[str, int]
    transition_count: int
    queue_age: float  # average age of entries, minutes


@dataclass
class AutoMixRecommendation:
    track: Track
    strategy: str
    compatibility: float
    transition: Optional[DJTransition] = None


@dataclass
class DJRecommendation:
    track: Track
    analysis: AudioAnalysis
    compatibility: float
    transition_type: TransitionType
    notes: List[str]
    priority: str  # high, medium, low


@dataclass
class DJSession:
    """A DJ session: its queue, playback pointer and running statistics."""

    id: str
    name: str
    config: MixerConfig
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    queue: List[DJQueueItem] = field(default_factory=list)
    current_index: int = -1  # -1 until playback starts
    is_auto_mixing: bool = False
    is_transitioning: bool = False
    current_transition: Optional[DJTransition] = None
    total_transitions: int = 0
    average_compatibility: float = 0.0
    energy_history: List[float] = field(default_factory=list)
    bpm_history: List[float] = field(default_factory=list)
    key_history: List[str] = field(default_factory=list)

    @property
    def current_item(self) -> Optional[DJQueueItem]:
        if 0 <= self.current_index < len(self.queue):
            return self.queue[self.current_index]
        return None
