"""Pure compatibility calculators for tempo and harmonic mixing."""

from typing import Dict, Optional, Tuple

from .logging_config import get_logger
from .models import (
    BPMCompatibility,
    BPMRelationship,
    HarmonicFunction,
    KeyCompatibility,
    KeyRelationship,
    MixTechnique,
)

logger = get_logger(__name__)

# --- BPM compatibility ---

# Deviation (percent) allowed when matching a tempo ratio
RATIO_TOLERANCE_PERCENT = 3.0

# (ratio of candidate to current, relationship, compatibility)
TEMPO_RATIOS = [
    (0.5, BPMRelationship.HALF_TIME, 0.9),
    (2.0, BPMRelationship.DOUBLE_TIME, 0.9),
    (1.5, BPMRelationship.ONE_POINT_FIVE, 0.85),
    (2.0 / 3.0, BPMRelationship.ONE_POINT_FIVE, 0.85),
]

# (max percent difference, relationship, compatibility)
TEMPO_BANDS = [
    (3.0, BPMRelationship.EXACT_MATCH, 1.0),
    (6.0, BPMRelationship.CLOSE_MATCH, 0.8),
    (10.0, BPMRelationship.NEEDS_ADJUSTMENT, 0.5),
]

INCOMPATIBLE_BASE_SCORE = 0.3
INCOMPATIBLE_MIN_SCORE = 0.1

TECHNIQUES = {
    BPMRelationship.EXACT_MATCH: MixTechnique.DIRECT_MIX,
    BPMRelationship.CLOSE_MATCH: MixTechnique.SLIGHT_ADJUST,
    BPMRelationship.DOUBLE_TIME: MixTechnique.TEMPO_MATCH,
    BPMRelationship.HALF_TIME: MixTechnique.TEMPO_MATCH,
    BPMRelationship.ONE_POINT_FIVE: MixTechnique.TEMPO_ADJUST,
    BPMRelationship.NEEDS_ADJUSTMENT: MixTechnique.TEMPO_ADJUST,
    BPMRelationship.INCOMPATIBLE: MixTechnique.MAJOR_ADJUST,
    BPMRelationship.UNKNOWN: MixTechnique.TEMPO_ADJUST,
}

CONFIDENCE = {
    BPMRelationship.EXACT_MATCH: 0.95,
    BPMRelationship.CLOSE_MATCH: 0.85,
    BPMRelationship.DOUBLE_TIME: 0.8,
    BPMRelationship.HALF_TIME: 0.8,
    BPMRelationship.ONE_POINT_FIVE: 0.7,
    BPMRelationship.NEEDS_ADJUSTMENT: 0.6,
    BPMRelationship.INCOMPATIBLE: 0.4,
    BPMRelationship.UNKNOWN: 0.0,
}

# Electronic music tolerates tempo drift better than acoustic recordings
GENRE_ADJUSTMENT = 0.05
ELECTRONIC_GENRES = (
    "electronic",
    "edm",
    "house",
    "techno",
    "trance",
    "dubstep",
    "drum and bass",
    "drum & bass",
    "dnb",
    "electro",
    "breakbeat",
    "garage",
    "hardstyle",
)
ACOUSTIC_GENRES = (
    "acoustic",
    "folk",
    "classical",
    "jazz",
    "blues",
    "country",
    "singer-songwriter",
)


def percent_deviation(value: float, reference: float) -> float:
    """Absolute deviation of value from reference, in percent of reference."""
    return abs(value - reference) / reference * 100


def genre_adjustment(genre: Optional[str]) -> float:
    """Compatibility nudge for a genre hint (positive for electronic styles)."""
    if not genre:
        return 0.0
    g = genre.lower()
    if any(name in g for name in ELECTRONIC_GENRES):
        return GENRE_ADJUSTMENT
    if any(name in g for name in ACOUSTIC_GENRES):
        return -GENRE_ADJUSTMENT
    return 0.0


def _classify_tempo(current: float, candidate: float) -> Tuple[BPMRelationship, float]:
    for ratio, relationship, score in TEMPO_RATIOS:
        if percent_deviation(candidate, current * ratio) < RATIO_TOLERANCE_PERCENT:
            return relationship, score

    diff_percent = percent_deviation(candidate, current)
    for max_percent, relationship, score in TEMPO_BANDS:
        if diff_percent <= max_percent:
            return relationship, score

    score = INCOMPATIBLE_BASE_SCORE - (diff_percent - TEMPO_BANDS[-1][0]) / 100
    return BPMRelationship.INCOMPATIBLE, max(INCOMPATIBLE_MIN_SCORE, score)


def calculate_bpm_compatibility(
    current: float, candidate: float, genre: Optional[str] = None
) -> BPMCompatibility:
    """Score how well a candidate tempo can be mixed out of the current one."""
    if not current or not candidate or current <= 0 or candidate <= 0:
        relationship = BPMRelationship.UNKNOWN
        return BPMCompatibility(
            bpm=candidate or 0.0,
            compatibility=0.5,
            relationship=relationship,
            recommended_technique=TECHNIQUES[relationship],
            confidence=CONFIDENCE[relationship],
        )

    relationship, score = _classify_tempo(current, candidate)
    if relationship != BPMRelationship.EXACT_MATCH:
        score = min(1.0, max(0.0, score + genre_adjustment(genre)))

    logger.debug("BPM %.1f -> %.1f: %s (%.2f)", current, candidate, relationship.value, score)
    return BPMCompatibility(
        bpm=candidate,
        compatibility=round(score, 3),
        relationship=relationship,
        recommended_technique=TECHNIQUES[relationship],
        confidence=CONFIDENCE[relationship],
    )


# --- Key compatibility ---

KEY_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

ENHARMONICS = {"Db": "C#", "Eb": "D#", "Gb": "F#", "Ab": "G#", "Bb": "A#"}

# Camelot wheel: (number, letter); B = major, A = minor
CAMELOT = {
    "C": (8, "B"),
    "G": (9, "B"),
    "D": (10, "B"),
    "A": (11, "B"),
    "E": (12, "B"),
    "B": (1, "B"),
    "F#": (2, "B"),
    "C#": (3, "B"),
    "G#": (4, "B"),
    "D#": (5, "B"),
    "A#": (6, "B"),
    "F": (7, "B"),
    "Am": (8, "A"),
    "Em": (9, "A"),
    "Bm": (10, "A"),
    "F#m": (11, "A"),
    "C#m": (12, "A"),
    "G#m": (1, "A"),
    "D#m": (2, "A"),
    "A#m": (3, "A"),
    "Fm": (4, "A"),
    "Cm": (5, "A"),
    "Gm": (6, "A"),
    "Dm": (7, "A"),
}

KEY_SCORES = {
    KeyRelationship.PERFECT_MATCH: 1.0,
    KeyRelationship.RELATIVE_MINOR: 0.9,
    KeyRelationship.RELATIVE_MAJOR: 0.9,
    KeyRelationship.DOMINANT: 0.8,
    KeyRelationship.SUBDOMINANT: 0.8,
    KeyRelationship.COMPATIBLE: 0.6,
}

# Incompatible keys lose 0.1 per wheel step beyond the compatible radius
INCOMPATIBLE_KEY_BASE = 0.5
INCOMPATIBLE_KEY_MIN = 0.1


def parse_key(k: str) -> Tuple[int, str]:
    """Parse key string into (index, mode)."""
    name = normalize_key(k)
    if name.endswith("m"):
        return KEY_NAMES.index(name[:-1]), "minor"
    return KEY_NAMES.index(name), "major"


def normalize_key(k: str) -> str:
    """Canonical key name (sharps, trailing "m" for minor).

    Raises:
        ValueError: If the key is not one of the 24 major/minor keys.
    """
    name = (k or "").strip()
    minor = name.endswith("m")
    root = name[:-1] if minor else name
    root = ENHARMONICS.get(root, root)
    if root not in KEY_NAMES:
        raise ValueError(f"Unknown musical key: {k!r}")
    return f"{root}m" if minor else root


def wheel_step(key1: str, key2: str) -> int:
    """Signed Camelot wheel distance from key1 to key2, in -5..6."""
    step = (CAMELOT[key2][0] - CAMELOT[key1][0]) % 12
    return step - 12 if step > 6 else step


def _direction(step: int) -> HarmonicFunction:
    return HarmonicFunction.SUBDOMINANT if step < 0 else HarmonicFunction.DOMINANT


def _relate(key1: str, key2: str) -> KeyCompatibility:
    if key1 == key2:
        rel = KeyRelationship.PERFECT_MATCH
        return KeyCompatibility(key2, KEY_SCORES[rel], rel, HarmonicFunction.TONIC)

    step = wheel_step(key1, key2)
    same_mode = CAMELOT[key1][1] == CAMELOT[key2][1]

    if step == 0:
        if CAMELOT[key1][1] == "B":
            rel = KeyRelationship.RELATIVE_MINOR
            return KeyCompatibility(key2, KEY_SCORES[rel], rel, HarmonicFunction.SUBDOMINANT)
        rel = KeyRelationship.RELATIVE_MAJOR
        return KeyCompatibility(key2, KEY_SCORES[rel], rel, HarmonicFunction.TONIC)

    if same_mode and step == 1:
        rel = KeyRelationship.DOMINANT
        return KeyCompatibility(key2, KEY_SCORES[rel], rel, HarmonicFunction.DOMINANT)
    if same_mode and step == -1:
        rel = KeyRelationship.SUBDOMINANT
        return KeyCompatibility(key2, KEY_SCORES[rel], rel, HarmonicFunction.SUBDOMINANT)
    if (same_mode and abs(step) == 2) or (not same_mode and abs(step) == 1):
        rel = KeyRelationship.COMPATIBLE
        return KeyCompatibility(key2, KEY_SCORES[rel], rel, _direction(step))

    steps = abs(step) + (0 if same_mode else 1)
    score = max(INCOMPATIBLE_KEY_MIN, INCOMPATIBLE_KEY_BASE - 0.1 * (steps - 2))
    return KeyCompatibility(
        key2, round(score, 2), KeyRelationship.INCOMPATIBLE, _direction(step)
    )


# Every ordered pair of the 24 keys, computed once
KEY_COMPATIBILITY_TABLE: Dict[Tuple[str, str], KeyCompatibility] = {
    (k1, k2): _relate(k1, k2) for k1 in CAMELOT for k2 in CAMELOT
}


def calculate_key_compatibility(key1: str, key2: str) -> KeyCompatibility:
    """Look up the harmonic relationship of mixing from key1 into key2.

    Raises:
        ValueError: If either key is not a recognised major/minor key.
    """
    entry = KEY_COMPATIBILITY_TABLE[(normalize_key(key1), normalize_key(key2))]
    # Hand out a copy so callers cannot corrupt the shared table
    return KeyCompatibility(
        key=entry.key,
        compatibility=entry.compatibility,
        relationship=entry.relationship,
        harmonic_function=entry.harmonic_function,
    )
