"""DJ session lifecycle, session queue and playback statistics."""

import json
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional, Sequence

from .cache import AnalysisCache
from .config import DEFAULT_MIXER_CONFIG, MixerConfig
from .exceptions import (
    DJMixError,
    NoAnalysisError,
    NoCurrentSongError,
    NoSessionError,
    QueueError,
)
from .logging_config import get_logger
from .models import DJQueueItem, DJRecommendation, DJSession, DJTransition, Track
from .provider import AudioFeatureProvider, analysis_or_default
from .transitions import build_transition

logger = get_logger(__name__)

# (minimum compatibility, priority), checked in order
RECOMMENDATION_PRIORITIES = [(0.8, "high"), (0.6, "medium"), (0.0, "low")]
PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}


def recommendation_priority(compatibility: float) -> str:
    for threshold, priority in RECOMMENDATION_PRIORITIES:
        if compatibility >= threshold:
            return priority
    return "low"


class SessionManager:
    """Owns at most one active DJ session plus the archive of past ones.

    Each manager is independent, so separate managers never share a session.
    """

    def __init__(self, provider: AudioFeatureProvider, cache: Optional[AnalysisCache] = None):
        self.provider = provider
        self.cache = cache if cache is not None else AnalysisCache()
        self._active: Optional[DJSession] = None
        self._history: List[DJSession] = []

    @property
    def active(self) -> Optional[DJSession]:
        return self._active

    def start(self, name: str, config: MixerConfig = DEFAULT_MIXER_CONFIG) -> DJSession:
        """Start a session, ending (and archiving) any session already running."""
        if self._active is not None:
            self.end()
        session = DJSession(id=str(uuid.uuid4()), name=name, config=config)
        self._active = session
        self._history.append(session)
        logger.info('DJ session "%s" started', name)
        return session

    def end(self) -> Optional[DJSession]:
        if self._active is None:
            return None
        session = self._active
        session.end_time = datetime.now()
        self._active = None
        logger.info('DJ session "%s" ended', session.name)
        return session

    def get_session(self) -> DJSession:
        """The active session.

        Raises:
            NoSessionError: If no session is running.
        """
        if self._active is None:
            raise NoSessionError("No active DJ session")
        return self._active

    def history(self) -> List[DJSession]:
        return list(self._history)

    def clear_history(self):
        """Forget archived sessions; the active one is kept."""
        self._history = [s for s in self._history if s is self._active]

    # --- session queue ---

    async def add_to_queue(
        self, track: Track, position: Optional[int] = None, auto_queued: bool = False
    ) -> DJQueueItem:
        """Add a track to the session queue, appending unless a position is given.

        Raises:
            NoSessionError: If no session is running.
            QueueError: If the track cannot be added.
        """
        session = self.get_session()
        previous_index = session.current_index
        item = None
        try:
            analysis = await analysis_or_default(self.provider, track, self.cache)
            if position is None:
                position = len(session.queue)
            position = max(0, min(position, len(session.queue)))
            item = DJQueueItem(
                id=uuid.uuid4().hex,
                track=track,
                position=position,
                analysis=analysis,
                is_auto_queued=auto_queued,
            )
            session.queue.insert(position, item)
            if position <= session.current_index:
                session.current_index += 1
            self._relink(session)
        except Exception as e:
            # Leave the session as it was before the failed add
            if item is not None and item in session.queue:
                session.queue.remove(item)
                session.current_index = previous_index
                self._relink(session)
            if isinstance(e, DJMixError):
                raise
            raise QueueError(f"Failed to add track to DJ queue: {e}") from e

        logger.debug(
            "Added to DJ queue: %s (compatibility: %.2f)", track.display_name, item.compatibility
        )
        return item

    def remove_from_queue(self, position: int) -> Optional[DJQueueItem]:
        """Remove the entry at position; None when out of range.

        Raises:
            NoSessionError: If no session is running.
        """
        session = self.get_session()
        if not 0 <= position < len(session.queue):
            return None
        removed = session.queue.pop(position)
        if position < session.current_index:
            session.current_index -= 1
        elif position == session.current_index:
            session.current_index = min(session.current_index, len(session.queue) - 1)
        self._relink(session)
        logger.debug("Removed from DJ queue: %s", removed.track.display_name)
        return removed

    def _relink(self, session: DJSession):
        previous = None
        for position, item in enumerate(session.queue):
            item.position = position
            if previous is None:
                item.transition = None
                item.compatibility = 1.0
            else:
                item.transition = build_transition(
                    previous.track, item.track, previous.analysis, item.analysis, session.config
                )
                item.compatibility = item.transition.compatibility
            previous = item

    # --- recommendations and playback ---

    async def get_recommendations(
        self,
        candidates: Sequence[Track],
        max_results: int = 10,
        min_compatibility: Optional[float] = None,
    ) -> List[DJRecommendation]:
        """Rank candidates to follow the current song, best priority first.

        Before playback starts the head of the queue is the anchor. Candidates
        further than max_bpm_difference from the anchor tempo are skipped, and
        min_compatibility defaults to the session's min_compatibility_threshold.

        Raises:
            NoSessionError: If no session is running.
            NoCurrentSongError: If the queue is empty.
            NoAnalysisError: If the anchor track has no analysis.
        """
        session = self.get_session()
        if not session.queue:
            raise NoCurrentSongError("No current song to base recommendations on")
        anchor = session.current_item or session.queue[0]
        if anchor.analysis is None:
            raise NoAnalysisError("Current song has not been analyzed")

        if min_compatibility is None:
            min_compatibility = session.config.min_compatibility_threshold
        queued = {item.track.id for item in session.queue}
        recommendations = []
        for track in candidates:
            if track.id in queued:
                continue
            analysis = await analysis_or_default(self.provider, track, self.cache)
            if abs(analysis.bpm - anchor.analysis.bpm) > session.config.max_bpm_difference:
                continue
            transition = build_transition(
                anchor.track, track, anchor.analysis, analysis, session.config
            )
            if transition.compatibility < min_compatibility:
                continue
            recommendations.append(
                DJRecommendation(
                    track=track,
                    analysis=analysis,
                    compatibility=transition.compatibility,
                    transition_type=transition.transition_type,
                    notes=[n for n in transition.notes.split(". ") if n.strip()],
                    priority=recommendation_priority(transition.compatibility),
                )
            )

        recommendations.sort(
            key=lambda r: (PRIORITY_RANK[r.priority], r.compatibility), reverse=True
        )
        return recommendations[:max_results]

    def set_auto_mixing(self, enabled: bool):
        self.get_session().is_auto_mixing = enabled
        logger.info("Auto-mixing %s", "enabled" if enabled else "disabled")

    def start_playback(self) -> DJQueueItem:
        """Start playing the head of the queue.

        Raises:
            NoSessionError: If no session is running.
            NoCurrentSongError: If the queue is empty.
        """
        session = self.get_session()
        if not session.queue:
            raise NoCurrentSongError("DJ queue is empty")
        session.current_index = 0
        self._record(session, session.queue[0])
        return session.queue[0]

    def auto_mix_next(self) -> Optional[DJTransition]:
        """Begin the transition into the next queued song.

        Returns None when auto-mixing is off or nothing follows the current song.
        """
        session = self._active
        if session is None or not session.is_auto_mixing:
            return None
        current = session.current_item
        if current is None or session.current_index >= len(session.queue) - 1:
            return None

        upcoming = session.queue[session.current_index + 1]
        transition = upcoming.transition
        if transition is None:
            transition = build_transition(
                current.track, upcoming.track, current.analysis, upcoming.analysis, session.config
            )
            upcoming.transition = transition

        session.is_transitioning = True
        session.current_transition = transition
        session.total_transitions += 1
        # Running mean over every transition started this session
        n = session.total_transitions
        session.average_compatibility += (transition.compatibility - session.average_compatibility) / n

        logger.info(
            "Auto-mixing %s -> %s (%s)",
            current.track.display_name,
            upcoming.track.display_name,
            transition.transition_type.value,
        )
        return transition

    def complete_transition(self) -> Optional[DJQueueItem]:
        """Finish the running transition and advance to the next song."""
        session = self._active
        if session is None:
            return None
        session.is_transitioning = False
        session.current_transition = None
        session.current_index = min(session.current_index + 1, len(session.queue))
        item = session.current_item
        if item is not None:
            self._record(session, item)
            logger.debug("Now playing: %s", item.track.display_name)
        return item

    def _record(self, session: DJSession, item: DJQueueItem):
        if item.analysis is not None:
            session.energy_history.append(item.analysis.energy)
            session.bpm_history.append(item.analysis.bpm)
            session.key_history.append(item.analysis.key)

    # --- export ---

    def export_session(self, session: Optional[DJSession] = None) -> str:
        """Serialize a session (default: the active one) to JSON."""
        session = session or self.get_session()
        data = {
            "id": session.id,
            "name": session.name,
            "start_time": session.start_time.isoformat(),
            "end_time": session.end_time.isoformat() if session.end_time else None,
            "config": asdict(session.config),
            "current_index": session.current_index,
            "is_auto_mixing": session.is_auto_mixing,
            "total_transitions": session.total_transitions,
            "average_compatibility": round(session.average_compatibility, 4),
            "energy_history": session.energy_history,
            "bpm_history": session.bpm_history,
            "key_history": session.key_history,
            "queue": [
                {
                    "position": item.position,
                    "track": asdict(item.track),
                    "compatibility": item.compatibility,
                    "transition_type": (
                        item.transition.transition_type.value if item.transition else None
                    ),
                    "is_auto_queued": item.is_auto_queued,
                    "queued_at": item.queued_at.isoformat(),
                }
                for item in session.queue
            ],
        }
        return json.dumps(data, indent=2)
