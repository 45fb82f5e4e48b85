"""Audio feature sources consumed by the mixing engine."""

import asyncio
import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from .cache import AnalysisCache
from .logging_config import get_logger
from .models import AudioAnalysis, Track
from .scoring import parse_key

logger = get_logger(__name__)

# Neutral analysis used when a track has none
DEFAULT_BPM = 120.0
DEFAULT_KEY = "C"
DEFAULT_ENERGY = 0.5


class AudioFeatureProvider(Protocol):
    """Anything that can supply an analysis for a track."""

    async def get_analysis(self, track: Track) -> Optional[AudioAnalysis]:
        ...


class StaticFeatureProvider:
    """Serves analyses from a fixed in-memory mapping of track id to analysis."""

    def __init__(self, analyses: Optional[Dict[str, AudioAnalysis]] = None):
        self.analyses: Dict[str, AudioAnalysis] = dict(analyses or {})

    def add(self, track_id: str, analysis: AudioAnalysis):
        self.analyses[track_id] = analysis

    async def get_analysis(self, track: Track) -> Optional[AudioAnalysis]:
        return self.analyses.get(track.id)


def default_analysis() -> AudioAnalysis:
    return AudioAnalysis(bpm=DEFAULT_BPM, key=DEFAULT_KEY, energy=DEFAULT_ENERGY)


async def fetch_analysis(
    provider: AudioFeatureProvider, track: Track, cache: Optional[AnalysisCache] = None
) -> Optional[AudioAnalysis]:
    """Fetch one analysis, consulting the cache first.

    Provider failures are logged and reported as a missing analysis.
    """
    if cache is not None:
        cached = cache.get(track.id)
        if cached is not None:
            return cached

    try:
        analysis = await provider.get_analysis(track)
    except Exception as e:
        logger.warning("Analysis unavailable for %s: %s", track.id, e)
        return None

    if analysis is None:
        logger.debug("No analysis for %s", track.id)
    elif cache is not None:
        cache.set(track.id, analysis)
    return analysis


async def analysis_or_default(
    provider: AudioFeatureProvider, track: Track, cache: Optional[AnalysisCache] = None
) -> AudioAnalysis:
    analysis = await fetch_analysis(provider, track, cache)
    if analysis is None:
        logger.warning("Using default analysis for %s", track.id)
        return default_analysis()
    return analysis


async def fetch_analyses(
    provider: AudioFeatureProvider,
    tracks: Iterable[Track],
    cache: Optional[AnalysisCache] = None,
) -> Dict[str, Optional[AudioAnalysis]]:
    """Fetch analyses for many tracks, keyed by track id."""
    tracks = list(tracks)
    if cache is None:
        cache = AnalysisCache()
    results = await asyncio.gather(*(fetch_analysis(provider, t, cache) for t in tracks))
    return {t.id: a for t, a in zip(tracks, results)}


def _parse_analysis(data: dict) -> AudioAnalysis:
    fields = AudioAnalysis.__dataclass_fields__
    return AudioAnalysis(**{k: v for k, v in data.items() if k in fields})


def load_library(path) -> Tuple[List[Track], StaticFeatureProvider]:
    """Load a JSON track library.

    The file holds ``{"tracks": [{"id": ..., "title": ..., "analysis": {...}}]}``;
    ``analysis`` is optional per track.

    Raises:
        ValueError: If the file is not a valid library.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Unable to read library {path}: {e}") from e

    entries = data.get("tracks") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ValueError(f"Library {path} has no track list")

    tracks = []
    provider = StaticFeatureProvider()
    for entry in entries:
        if "id" not in entry:
            raise ValueError(f"Library entry without id: {entry!r}")
        track = Track(
            id=str(entry["id"]),
            title=entry.get("title", ""),
            artist=entry.get("artist", ""),
            album=entry.get("album", ""),
            duration=float(entry.get("duration", 0.0)),
            genre=entry.get("genre"),
        )
        tracks.append(track)
        if entry.get("analysis"):
            try:
                analysis = _parse_analysis(entry["analysis"])
                parse_key(analysis.key)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Bad analysis for track {track.id}: {e}") from e
            provider.add(track.id, analysis)

    logger.debug("Loaded %s tracks from %s", len(tracks), path)
    return tracks, provider
