"""Per-track analysis caching for djmix."""

import hashlib
import pickle
from pathlib import Path
from typing import Dict, Optional

from .logging_config import get_logger
from .models import AudioAnalysis

logger = get_logger(__name__)

# Bump this when AudioAnalysis schema changes to invalidate stale cache
CACHE_VERSION = 1


class AnalysisCache:
    """Cache for audio analyses, keyed by track id.

    Entries always live in memory. When ``cache_dir`` is given they are also
    pickled to disk so later sessions can reuse them.
    """

    def __init__(self, cache_dir: Optional[Path] = None):
        """Initialize cache.

        Args:
            cache_dir: Directory for cache files. Memory-only when None.
        """
        self._memory: Dict[str, AudioAnalysis] = {}
        self.cache_dir = cache_dir
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.debug("Cache directory: %s", self.cache_dir)

    def __len__(self):
        return len(self._memory)

    def __contains__(self, track_id: str) -> bool:
        return track_id in self._memory

    def _cache_file(self, track_id: str) -> Path:
        key_hash = hashlib.md5(track_id.encode()).hexdigest()
        return self.cache_dir / f"{key_hash}.pkl"

    def get(self, track_id: str) -> Optional[AudioAnalysis]:
        """Get cached analysis, returning None if missing or stale."""
        if track_id in self._memory:
            logger.debug("Cache hit: %s", track_id)
            return self._memory[track_id]
        if self.cache_dir is None:
            logger.debug("Cache miss: %s", track_id)
            return None

        try:
            cache_file = self._cache_file(track_id)
            if not cache_file.exists():
                logger.debug("Cache miss: %s", track_id)
                return None

            with open(cache_file, "rb") as f:
                analysis = pickle.load(f)

            # Invalidate stale cache entries
            if not isinstance(analysis, AudioAnalysis):
                logger.debug("Cache stale (not AudioAnalysis): %s", track_id)
                cache_file.unlink(missing_ok=True)
                return None
            if getattr(analysis, "version", 0) < CACHE_VERSION:
                logger.debug(
                    "Cache stale (version %s < %s): %s",
                    getattr(analysis, "version", 0),
                    CACHE_VERSION,
                    track_id,
                )
                cache_file.unlink(missing_ok=True)
                return None

            logger.debug("Cache hit (disk): %s", track_id)
            self._memory[track_id] = analysis
            return analysis
        except Exception as e:
            logger.warning("Cache read error: %s", e)
            return None

    def set(self, track_id: str, analysis: AudioAnalysis):
        """Cache analysis for a track."""
        self._memory[track_id] = analysis
        if self.cache_dir is None:
            return
        try:
            with open(self._cache_file(track_id), "wb") as f:
                pickle.dump(analysis, f)
            logger.debug("Cached analysis: %s", track_id)
        except Exception as e:
            logger.warning("Cache write error: %s", e)

    def clear(self):
        """Clear all cached analyses."""
        self._memory.clear()
        if self.cache_dir is not None:
            for cache_file in self.cache_dir.glob("*.pkl"):
                cache_file.unlink()
        logger.info("Cache cleared")
