"""Tests for the live DJ queue."""

import pytest

from djmix.config import AutoMixOptions, QueueConfig
from djmix.exceptions import DuplicateSongError, QueueError
from djmix.models import AudioAnalysis, QueueEventType, Track
from djmix.provider import StaticFeatureProvider
from djmix.queue import DJQueueManager, create_queue_manager


def _make_track(track_id, artist="Artist", duration=240.0):
    return Track(id=track_id, title=f"Title {track_id}", artist=artist, duration=duration)


def _make_manager(specs=(), **config):
    """Manager whose provider knows (id, bpm, key, energy) tuples."""
    provider = StaticFeatureProvider()
    for track_id, bpm, key, energy in specs:
        provider.add(track_id, AudioAnalysis(bpm=bpm, key=key, energy=energy))
    return DJQueueManager(provider, QueueConfig(**config))


def _ids(manager):
    return [item.track.id for item in manager.get_queue()]


def _positions(manager):
    return [item.position for item in manager.get_queue()]


# --- Adding and removing ---


class TestAddRemove:
    @pytest.mark.asyncio
    async def test_add_appends_with_positions(self):
        manager = _make_manager()
        for track_id in "abc":
            await manager.add_song(_make_track(track_id))
        assert _ids(manager) == ["a", "b", "c"]
        assert _positions(manager) == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_add_at_position(self):
        manager = _make_manager()
        await manager.add_song(_make_track("a"))
        await manager.add_song(_make_track("b"))
        await manager.add_song(_make_track("c"), position=1)
        await manager.add_song(_make_track("d"), position=99)
        assert _ids(manager) == ["a", "c", "b", "d"]
        assert _positions(manager) == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_add_then_remove_restores_queue(self):
        manager = _make_manager()
        await manager.add_song(_make_track("a"))
        await manager.add_song(_make_track("b"))
        await manager.add_song(_make_track("x"), position=1)
        removed = manager.remove_song("x")
        assert removed.track.id == "x"
        assert _ids(manager) == ["a", "b"]
        assert _positions(manager) == [0, 1]

    @pytest.mark.asyncio
    async def test_remove_missing_returns_none(self):
        manager = _make_manager()
        await manager.add_song(_make_track("a"))
        assert manager.remove_song("zzz") is None
        assert len(manager) == 1

    @pytest.mark.asyncio
    async def test_duplicate_by_id(self):
        manager = _make_manager()
        await manager.add_song(_make_track("a"))
        with pytest.raises(DuplicateSongError) as exc_info:
            await manager.add_song(_make_track("a"))
        assert exc_info.value.code == "DUPLICATE_SONG"
        assert len(manager) == 1

    @pytest.mark.asyncio
    async def test_duplicate_by_title_and_artist(self):
        manager = _make_manager()
        await manager.add_song(Track(id="1", title="Song", artist="Band"))
        with pytest.raises(DuplicateSongError):
            await manager.add_song(Track(id="2", title="Song", artist="Band"))

    @pytest.mark.asyncio
    async def test_untitled_tracks_are_not_duplicates(self):
        manager = _make_manager()
        await manager.add_song(Track(id="x"))
        await manager.add_song(Track(id="y"))
        assert _ids(manager) == ["x", "y"]

    @pytest.mark.asyncio
    async def test_failed_add_leaves_queue_unchanged(self):
        manager = _make_manager([("a", 120, "C", 0.5), ("b", 120, "H", 0.5), ("c", 124, "C", 0.5)])
        await manager.add_song(_make_track("a"))
        with pytest.raises(QueueError):
            await manager.add_song(_make_track("b"))
        assert _ids(manager) == ["a"]
        assert [e.track_id for e in manager.get_event_history()] == ["a"]

        await manager.add_song(_make_track("c"))
        manager.reorder_queue(0, 1)
        assert _ids(manager) == ["c", "a"]
        assert manager.remove_song("c") is not None
        assert _positions(manager) == [0]

    @pytest.mark.asyncio
    async def test_duplicates_allowed_when_prevention_off(self):
        manager = _make_manager(duplicate_prevention=False)
        await manager.add_song(_make_track("a"))
        await manager.add_song(_make_track("a"))
        assert len(manager) == 2

    @pytest.mark.asyncio
    async def test_full_queue(self):
        manager = _make_manager(max_queue_size=2)
        await manager.add_song(_make_track("a"))
        await manager.add_song(_make_track("b"))
        with pytest.raises(QueueError, match="Queue is full"):
            await manager.add_song(_make_track("c"))

    @pytest.mark.asyncio
    async def test_unknown_priority(self):
        manager = _make_manager()
        with pytest.raises(QueueError):
            await manager.add_song(_make_track("a"), priority="asap")

    @pytest.mark.asyncio
    async def test_clear(self):
        manager = _make_manager()
        await manager.add_song(_make_track("a"))
        manager.clear_queue()
        assert len(manager) == 0
        assert manager.get_event_history()[-1].type == QueueEventType.QUEUE_CLEARED


class TestTransitions:
    @pytest.mark.asyncio
    async def test_neighbours_get_transitions(self):
        manager = _make_manager([("a", 120, "C", 0.5), ("b", 120, "G", 0.6)])
        await manager.add_song(_make_track("a"))
        await manager.add_song(_make_track("b"))
        first, second = manager.get_queue()
        assert first.transition is None
        assert second.transition.from_track.id == "a"
        assert second.compatibility == second.transition.compatibility

    @pytest.mark.asyncio
    async def test_unanalyzed_entries_have_no_transition(self):
        manager = _make_manager([("a", 120, "C", 0.5)])
        await manager.add_song(_make_track("a"))
        await manager.add_song(_make_track("b"))
        assert manager.get_queue()[1].transition is None

    @pytest.mark.asyncio
    async def test_smart_transitions_off(self):
        manager = _make_manager(
            [("a", 120, "C", 0.5), ("b", 120, "G", 0.6)], smart_transitions=False
        )
        await manager.add_song(_make_track("a"))
        await manager.add_song(_make_track("b"))
        assert manager.get_queue()[1].transition is None


# --- Ordering ---


class TestOrdering:
    @pytest.mark.asyncio
    async def test_reorder(self):
        manager = _make_manager()
        for track_id in "abc":
            await manager.add_song(_make_track(track_id))
        manager.reorder_queue(0, 2)
        assert _ids(manager) == ["b", "c", "a"]
        assert _positions(manager) == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_reorder_out_of_range(self):
        manager = _make_manager()
        await manager.add_song(_make_track("a"))
        with pytest.raises(QueueError):
            manager.reorder_queue(0, 5)

    @pytest.mark.asyncio
    async def test_change_priority_is_stable(self):
        manager = _make_manager()
        for track_id in "abcd":
            await manager.add_song(_make_track(track_id))
        manager.change_priority("c", "urgent")
        manager.change_priority("a", "low")
        assert _ids(manager) == ["c", "b", "d", "a"]
        assert _positions(manager) == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_change_priority_unknown_track(self):
        manager = _make_manager()
        with pytest.raises(QueueError):
            manager.change_priority("zzz", "high")


# --- Playback ---


class TestPlayback:
    @pytest.mark.asyncio
    async def test_next_song_peeks(self):
        manager = _make_manager()
        assert manager.get_next_song() is None
        await manager.add_song(_make_track("a"))
        assert manager.get_next_song().track.id == "a"
        assert len(manager) == 1

    @pytest.mark.asyncio
    async def test_played_and_skipped(self):
        manager = _make_manager()
        for track_id in "abc":
            await manager.add_song(_make_track(track_id))
        played = await manager.mark_song_played()
        skipped = await manager.skip_song()
        assert played.track.id == "a"
        assert skipped.track.id == "b"
        assert _ids(manager) == ["c"]
        types = [event.type for event in manager.get_event_history()]
        assert QueueEventType.SONG_PLAYED in types
        assert QueueEventType.SONG_SKIPPED in types

    @pytest.mark.asyncio
    async def test_played_on_empty_queue(self):
        assert await _make_manager().mark_song_played() is None


# --- Auto-mix ---


def _pool(count, bpm=120, key="C", energy=0.5):
    specs = [(f"c{i}", bpm, key, energy) for i in range(count)]
    return specs, [_make_track(track_id) for track_id, *_ in specs]


class TestAutoRefill:
    @pytest.mark.asyncio
    async def test_initialize_fills_to_refill_count(self):
        specs, tracks = _pool(5)
        manager = _make_manager(specs, refill_count=3)
        added = await manager.initialize(tracks)
        assert len(added) == 3
        assert len(manager) == 3
        assert all(item.is_auto_queued for item in manager.get_queue())
        assert manager.get_queue()[0].notes == "Auto-mixed using balanced strategy"

    @pytest.mark.asyncio
    async def test_refill_after_played(self):
        specs, tracks = _pool(5)
        manager = _make_manager(specs, refill_count=3)
        await manager.initialize(tracks)
        played = await manager.mark_song_played()
        assert played.track.id == "c0"
        assert len(manager) == 3
        assert manager.get_event_history()[-1].type == QueueEventType.AUTO_MIX_ADDED

    @pytest.mark.asyncio
    async def test_refill_respects_max_size(self):
        specs, tracks = _pool(5)
        manager = _make_manager(specs, refill_count=5, max_queue_size=2)
        await manager.initialize(tracks)
        assert len(manager) == 2

    @pytest.mark.asyncio
    async def test_refill_disabled(self):
        specs, tracks = _pool(5)
        manager = _make_manager(specs, auto_refill=False)
        assert await manager.initialize(tracks) == []
        assert await manager.auto_refill_queue() == []
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_refill_without_auto_mix(self):
        specs, tracks = _pool(5)
        manager = _make_manager(specs, auto_mix_enabled=False)
        await manager.initialize(tracks)
        assert len(manager) == 0


class TestRecommendations:
    async def _anchored(self, strategy):
        manager = _make_manager(
            [
                ("anchor", 120, "C", 0.5),
                ("same", 120, "C", 0.5),
                ("dominant", 128, "G", 0.9),
                ("clash", 200, "F#", 0.5),
            ],
            auto_refill=False,
        )
        manager.candidates = [_make_track(t) for t in ("same", "dominant", "clash")]
        manager.update_auto_mix_options(strategy=strategy, min_compatibility=0.0)
        await manager.add_song(_make_track("anchor"))
        return manager

    @pytest.mark.asyncio
    async def test_harmonic_strategy(self):
        manager = await self._anchored("harmonic")
        recs = await manager.get_auto_mix_recommendations()
        assert [r.track.id for r in recs] == ["same", "dominant", "clash"]
        assert [r.compatibility for r in recs] == [1.0, 0.8, 0.1]

    @pytest.mark.asyncio
    async def test_energy_strategy_keeps_ties_in_order(self):
        manager = await self._anchored("energy")
        recs = await manager.get_auto_mix_recommendations()
        assert [r.track.id for r in recs] == ["same", "clash", "dominant"]

    @pytest.mark.asyncio
    async def test_crowd_pleaser_prefers_energy(self):
        manager = await self._anchored("crowd_pleaser")
        recs = await manager.get_auto_mix_recommendations()
        assert recs[0].track.id == "dominant"

    @pytest.mark.asyncio
    async def test_balanced_carries_transition(self):
        manager = await self._anchored("balanced")
        recs = await manager.get_auto_mix_recommendations()
        assert recs[0].track.id == "same"
        assert recs[0].transition.from_track.id == "anchor"
        assert recs[0].compatibility == recs[0].transition.compatibility

    @pytest.mark.asyncio
    async def test_min_compatibility(self):
        manager = await self._anchored("harmonic")
        manager.update_auto_mix_options(min_compatibility=0.5)
        recs = await manager.get_auto_mix_recommendations()
        assert [r.track.id for r in recs] == ["same", "dominant"]

    @pytest.mark.asyncio
    async def test_bpm_range(self):
        manager = await self._anchored("harmonic")
        manager.update_auto_mix_options(bpm_range=(110, 125))
        recs = await manager.get_auto_mix_recommendations()
        assert [r.track.id for r in recs] == ["same"]

    @pytest.mark.asyncio
    async def test_count_limits_results(self):
        manager = await self._anchored("harmonic")
        assert len(await manager.get_auto_mix_recommendations(count=1)) == 1

    @pytest.mark.asyncio
    async def test_unknown_strategy(self):
        manager = await self._anchored("vibes")
        with pytest.raises(QueueError):
            await manager.get_auto_mix_recommendations()

    @pytest.mark.asyncio
    async def test_unanchored_takes_pool_order(self):
        specs, tracks = _pool(3)
        manager = _make_manager(specs, auto_refill=False)
        manager.candidates = tracks
        recs = await manager.get_auto_mix_recommendations(count=2)
        assert [r.track.id for r in recs] == ["c0", "c1"]
        assert all(r.compatibility == 0.5 for r in recs)

    @pytest.mark.asyncio
    async def test_candidate_filters(self):
        manager = _make_manager(auto_refill=False, blocked_artists=["Nope"])
        manager.candidates = [
            _make_track("ok"),
            _make_track("blocked", artist="Nope"),
            _make_track("short", duration=30.0),
            _make_track("long", duration=900.0),
            _make_track("unknown_length", duration=0.0),
        ]
        recs = await manager.get_auto_mix_recommendations()
        assert [r.track.id for r in recs] == ["ok", "unknown_length"]


# --- Inspection ---


class TestStatsAndEvents:
    @pytest.mark.asyncio
    async def test_stats(self):
        manager = _make_manager([("a", 120, "C", 0.4), ("b", 130, "Am", 0.6)])
        await manager.add_song(_make_track("a"))
        await manager.add_song(_make_track("b"))
        await manager.add_song(_make_track("unanalyzed"))
        stats = manager.get_queue_stats()
        assert stats.total_songs == 3
        assert stats.user_added_songs == 3
        assert stats.auto_mixed_songs == 0
        assert stats.average_energy == pytest.approx(0.5)
        assert stats.average_bpm == pytest.approx(125.0)
        assert stats.key_distribution == {"C": 1, "Am": 1}
        assert stats.transition_count == 1
        assert stats.queue_age >= 0.0

    def test_empty_stats(self):
        stats = _make_manager().get_queue_stats()
        assert stats.total_songs == 0
        assert stats.average_bpm == 0.0

    @pytest.mark.asyncio
    async def test_event_history_is_bounded(self):
        manager = _make_manager(max_event_history=3)
        for track_id in "abcde":
            await manager.add_song(_make_track(track_id))
        events = manager.get_event_history()
        assert len(events) == 3
        assert [e.track_id for e in events] == ["c", "d", "e"]
        assert events[-1].data == {"position": 4, "auto": False}

    @pytest.mark.asyncio
    async def test_update_config_resizes_history(self):
        manager = _make_manager()
        for track_id in "abcd":
            await manager.add_song(_make_track(track_id))
        manager.update_config(max_event_history=2)
        assert len(manager.get_event_history()) == 2
        assert manager.config.max_event_history == 2


class TestCreateQueueManager:
    def test_auto_mix_options_override(self):
        manager = create_queue_manager(
            StaticFeatureProvider(), auto_mix_options=AutoMixOptions(strategy="energy")
        )
        assert manager.auto_mix_options.strategy == "energy"

    def test_config_is_copied(self):
        config = QueueConfig(max_queue_size=5)
        manager = create_queue_manager(
            StaticFeatureProvider(), config, AutoMixOptions(strategy="bpm")
        )
        assert manager.config.max_queue_size == 5
        assert config.auto_mix_options.strategy == "balanced"
