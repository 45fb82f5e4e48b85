"""Live DJ queue with auto-mixing and an event log."""

import asyncio
import uuid
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from .cache import AnalysisCache
from .config import (
    AUTO_MIX_STRATEGIES,
    DEFAULT_MIXER_CONFIG,
    AutoMixOptions,
    MixerConfig,
    QueueConfig,
)
from .exceptions import DJMixError, DuplicateSongError, QueueError
from .logging_config import get_logger
from .models import (
    AudioAnalysis,
    AutoMixRecommendation,
    DJQueueItem,
    DJTransition,
    QueueEvent,
    QueueEventType,
    QueueStats,
    Track,
)
from .provider import AudioFeatureProvider, fetch_analyses, fetch_analysis
from .scoring import calculate_bpm_compatibility, calculate_key_compatibility
from .transitions import build_transition

logger = get_logger(__name__)

PRIORITY_ORDER = {"urgent": 0, "high": 1, "normal": 2, "low": 3}

# Compatibility reported for picks made without an anchor track
UNANCHORED_COMPATIBILITY = 0.5


def _strategy_balanced(current: AudioAnalysis, candidate: AudioAnalysis, transition) -> float:
    return transition.compatibility


def _strategy_harmonic(current: AudioAnalysis, candidate: AudioAnalysis, transition) -> float:
    return calculate_key_compatibility(current.key, candidate.key).compatibility


def _strategy_bpm(current: AudioAnalysis, candidate: AudioAnalysis, transition) -> float:
    return calculate_bpm_compatibility(current.bpm, candidate.bpm).compatibility


def _strategy_energy(current: AudioAnalysis, candidate: AudioAnalysis, transition) -> float:
    return 1.0 - abs(candidate.energy - current.energy)


def _strategy_crowd_pleaser(current: AudioAnalysis, candidate: AudioAnalysis, transition) -> float:
    return 0.6 * candidate.energy + 0.4 * candidate.danceability


STRATEGY_SCORES: Dict[str, Callable[[AudioAnalysis, AudioAnalysis, DJTransition], float]] = {
    "balanced": _strategy_balanced,
    "harmonic": _strategy_harmonic,
    "bpm": _strategy_bpm,
    "energy": _strategy_energy,
    "crowd_pleaser": _strategy_crowd_pleaser,
}


class DJQueueManager:
    """Mutable queue of tracks with planned transitions between neighbours.

    Positions always run 0..n-1 in list order. Async mutations are serialized
    through a lock; the synchronous ones complete without yielding.
    """

    def __init__(
        self,
        provider: AudioFeatureProvider,
        config: Optional[QueueConfig] = None,
        mixer_config: MixerConfig = DEFAULT_MIXER_CONFIG,
        cache: Optional[AnalysisCache] = None,
    ):
        self.provider = provider
        self.config = config or QueueConfig()
        self.mixer_config = mixer_config
        self.cache = cache if cache is not None else AnalysisCache()
        self.candidates: List[Track] = []
        self._queue: List[DJQueueItem] = []
        self._events = deque(maxlen=self.config.max_event_history)
        self._lock = asyncio.Lock()

    def __len__(self):
        return len(self._queue)

    @property
    def auto_mix_options(self) -> AutoMixOptions:
        return self.config.auto_mix_options

    async def initialize(self, candidates: Sequence[Track]) -> List[DJQueueItem]:
        """Load the candidate pool, pre-fetch analyses and fill the queue."""
        self.candidates = list(candidates)
        await fetch_analyses(self.provider, self.candidates, self.cache)
        logger.info("Queue initialized with %s candidates", len(self.candidates))
        if self.config.auto_refill and len(self._queue) < self.config.refill_count:
            return await self.auto_refill_queue()
        return []

    # --- mutations ---

    async def add_song(
        self,
        track: Track,
        position: Optional[int] = None,
        priority: str = "normal",
        auto_queued: bool = False,
        notes: Optional[str] = None,
    ) -> DJQueueItem:
        """Insert a track, at the end unless a position is given.

        Raises:
            DuplicateSongError: If duplicate prevention rejects the track.
            QueueError: If the queue is full or the insert fails.
        """
        async with self._lock:
            return await self._insert(track, position, priority, auto_queued, notes)

    async def _insert(
        self,
        track: Track,
        position: Optional[int],
        priority: str,
        auto_queued: bool,
        notes: Optional[str],
    ) -> DJQueueItem:
        if self.config.duplicate_prevention and self._is_duplicate(track):
            raise DuplicateSongError(
                f'Track "{track.title}" by {track.artist} is already in the queue'
            )
        if len(self._queue) >= self.config.max_queue_size:
            raise QueueError(f"Queue is full (max {self.config.max_queue_size} songs)")
        if priority not in PRIORITY_ORDER:
            raise QueueError(f"Unknown priority: {priority!r}")

        item = None
        try:
            analysis = await fetch_analysis(self.provider, track, self.cache)
            if position is None:
                position = len(self._queue)
            position = max(0, min(position, len(self._queue)))
            item = DJQueueItem(
                id=uuid.uuid4().hex,
                track=track,
                position=position,
                analysis=analysis,
                is_auto_queued=auto_queued,
                priority=priority,
                notes=notes,
            )
            self._queue.insert(position, item)
            self._refresh()
        except Exception as e:
            # Leave the queue as it was before the failed add
            if item is not None and item in self._queue:
                self._queue.remove(item)
                self._refresh()
            if isinstance(e, DJMixError):
                raise
            raise QueueError(f"Failed to add {track.display_name}: {e}") from e

        self._log_event(
            QueueEventType.SONG_ADDED,
            track.id,
            position=item.position,
            auto=auto_queued,
        )
        return item

    def remove_song(self, track_id: str) -> Optional[DJQueueItem]:
        """Remove the entry for a track; returns None when it is not queued."""
        index = self._index_of(track_id)
        if index is None:
            return None
        removed = self._queue.pop(index)
        self._refresh()
        self._log_event(QueueEventType.SONG_REMOVED, track_id)
        return removed

    def reorder_queue(self, from_position: int, to_position: int):
        """Move the entry at from_position to to_position.

        Raises:
            QueueError: If either position is out of range.
        """
        size = len(self._queue)
        if not (0 <= from_position < size and 0 <= to_position < size):
            raise QueueError(f"Invalid queue position: {from_position} -> {to_position}")
        item = self._queue.pop(from_position)
        self._queue.insert(to_position, item)
        self._refresh()
        self._log_event(
            QueueEventType.QUEUE_REORDERED,
            item.track.id,
            from_position=from_position,
            to_position=to_position,
        )

    def change_priority(self, track_id: str, priority: str):
        """Set an entry's priority and re-sort; equal priorities keep their order.

        Raises:
            QueueError: If the track is not queued or the priority is unknown.
        """
        if priority not in PRIORITY_ORDER:
            raise QueueError(f"Unknown priority: {priority!r}")
        index = self._index_of(track_id)
        if index is None:
            raise QueueError(f"Track {track_id} is not in the queue")
        self._queue[index].priority = priority
        self._queue.sort(key=lambda item: PRIORITY_ORDER[item.priority])
        self._refresh()
        self._log_event(QueueEventType.PRIORITY_CHANGED, track_id, priority=priority)

    def clear_queue(self):
        self._queue.clear()
        self._log_event(QueueEventType.QUEUE_CLEARED)
        logger.info("Queue cleared")

    # --- playback ---

    def get_next_song(self) -> Optional[DJQueueItem]:
        """The head of the queue, without removing it."""
        return self._queue[0] if self._queue else None

    async def mark_song_played(self) -> Optional[DJQueueItem]:
        """Remove the head as played, then top the queue back up."""
        return await self._consume(QueueEventType.SONG_PLAYED)

    async def skip_song(self) -> Optional[DJQueueItem]:
        """Remove the head without playing it, then top the queue back up."""
        return await self._consume(QueueEventType.SONG_SKIPPED)

    async def _consume(self, event_type: QueueEventType) -> Optional[DJQueueItem]:
        if not self._queue:
            return None
        head = self._queue.pop(0)
        self._refresh()
        self._log_event(event_type, head.track.id)
        if self.config.auto_refill:
            await self.auto_refill_queue()
        return head

    # --- auto-mix ---

    async def get_auto_mix_recommendations(
        self, anchor: Optional[DJQueueItem] = None, count: Optional[int] = None
    ) -> List[AutoMixRecommendation]:
        """Rank candidate tracks to follow the anchor (default: the queue tail)."""
        options = self.auto_mix_options
        if options.strategy not in AUTO_MIX_STRATEGIES:
            raise QueueError(f"Unknown auto-mix strategy: {options.strategy!r}")
        if count is None:
            count = options.max_results
        if anchor is None and self._queue:
            anchor = self._queue[-1]

        pool = self._eligible_candidates()
        if count <= 0 or not pool:
            return []

        if anchor is None or anchor.analysis is None:
            return [
                AutoMixRecommendation(track, options.strategy, UNANCHORED_COMPATIBILITY)
                for track in pool[:count]
            ]

        analyses = await fetch_analyses(self.provider, pool, self.cache)
        score = STRATEGY_SCORES[options.strategy]
        ranked = []
        for track in pool:
            analysis = analyses.get(track.id)
            if analysis is None:
                continue
            if options.bpm_range and not (
                options.bpm_range[0] <= analysis.bpm <= options.bpm_range[1]
            ):
                continue
            transition = build_transition(
                anchor.track, track, anchor.analysis, analysis, self.mixer_config
            )
            compatibility = round(score(anchor.analysis, analysis, transition), 4)
            if compatibility < options.min_compatibility:
                continue
            ranked.append(AutoMixRecommendation(track, options.strategy, compatibility, transition))

        ranked.sort(key=lambda rec: rec.compatibility, reverse=True)
        return ranked[:count]

    async def auto_refill_queue(self) -> List[DJQueueItem]:
        """Append auto-mixed tracks until the queue holds refill_count entries."""
        if not (self.config.auto_refill and self.config.auto_mix_enabled and self.candidates):
            return []

        added = []
        async with self._lock:
            needed = min(
                self.config.refill_count - len(self._queue),
                self.config.max_queue_size - len(self._queue),
            )
            if needed <= 0:
                return []

            for rec in await self.get_auto_mix_recommendations(count=needed):
                try:
                    item = await self._insert(
                        rec.track,
                        None,
                        "normal",
                        True,
                        f"Auto-mixed using {rec.strategy} strategy",
                    )
                except QueueError as e:
                    logger.warning("Failed to add auto-mix track %s: %s", rec.track.id, e)
                    continue
                added.append(item)

        self._log_event(QueueEventType.AUTO_MIX_ADDED, count=len(added))
        logger.debug("Auto-refill added %s tracks", len(added))
        return added

    # --- inspection ---

    def get_queue(self) -> List[DJQueueItem]:
        return list(self._queue)

    def get_queue_stats(self) -> QueueStats:
        analyzed = [item.analysis for item in self._queue if item.analysis is not None]
        key_distribution: Dict[str, int] = {}
        for analysis in analyzed:
            key_distribution[analysis.key] = key_distribution.get(analysis.key, 0) + 1

        now = datetime.now()
        ages = [(now - item.queued_at).total_seconds() / 60 for item in self._queue]
        auto = sum(1 for item in self._queue if item.is_auto_queued)

        return QueueStats(
            total_songs=len(self._queue),
            auto_mixed_songs=auto,
            user_added_songs=len(self._queue) - auto,
            average_energy=sum(a.energy for a in analyzed) / len(analyzed) if analyzed else 0.0,
            average_bpm=sum(a.bpm for a in analyzed) / len(analyzed) if analyzed else 0.0,
            key_distribution=key_distribution,
            transition_count=sum(1 for item in self._queue if item.transition is not None),
            queue_age=sum(ages) / len(ages) if ages else 0.0,
        )

    def get_event_history(self) -> List[QueueEvent]:
        return list(self._events)

    def update_config(self, **changes):
        """Replace queue config fields, e.g. ``update_config(max_queue_size=50)``."""
        self.config = replace(self.config, **changes)
        if self._events.maxlen != self.config.max_event_history:
            self._events = deque(self._events, maxlen=self.config.max_event_history)

    def update_auto_mix_options(self, **changes):
        self.config.auto_mix_options = replace(self.config.auto_mix_options, **changes)

    # --- internals ---

    def _is_duplicate(self, track: Track) -> bool:
        return any(
            item.track.id == track.id
            or (
                bool(track.title)
                and item.track.title == track.title
                and item.track.artist == track.artist
            )
            for item in self._queue
        )

    def _index_of(self, track_id: str) -> Optional[int]:
        for index, item in enumerate(self._queue):
            if item.track.id == track_id:
                return index
        return None

    def _eligible_candidates(self) -> List[Track]:
        queued = {item.track.id for item in self._queue}
        eligible = []
        for track in self.candidates:
            if track.id in queued or track.artist in self.config.blocked_artists:
                continue
            if track.duration and not (
                self.config.min_song_duration <= track.duration <= self.config.max_song_duration
            ):
                continue
            eligible.append(track)
        return eligible

    def _refresh(self):
        """Renumber positions and rebuild each entry's incoming transition."""
        previous = None
        for position, item in enumerate(self._queue):
            item.position = position
            item.transition = None
            item.compatibility = None
            if (
                self.config.smart_transitions
                and previous is not None
                and previous.analysis is not None
                and item.analysis is not None
            ):
                item.transition = build_transition(
                    previous.track, item.track, previous.analysis, item.analysis, self.mixer_config
                )
                item.compatibility = item.transition.compatibility
            previous = item

    def _log_event(self, event_type: QueueEventType, track_id: Optional[str] = None, **data):
        self._events.append(QueueEvent(event_type, datetime.now(), track_id, data))


def create_queue_manager(
    provider: AudioFeatureProvider,
    config: Optional[QueueConfig] = None,
    auto_mix_options: Optional[AutoMixOptions] = None,
    mixer_config: MixerConfig = DEFAULT_MIXER_CONFIG,
) -> DJQueueManager:
    """Build a queue manager, optionally overriding its auto-mix options."""
    config = replace(config) if config is not None else QueueConfig()
    if auto_mix_options is not None:
        config.auto_mix_options = auto_mix_options
    return DJQueueManager(provider, config, mixer_config)
