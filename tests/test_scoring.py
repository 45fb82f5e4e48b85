"""Tests for the BPM and key compatibility calculators."""

import pytest

from djmix.models import BPMRelationship, HarmonicFunction, KeyRelationship, MixTechnique
from djmix.scoring import (
    CAMELOT,
    KEY_COMPATIBILITY_TABLE,
    calculate_bpm_compatibility,
    calculate_key_compatibility,
    genre_adjustment,
    normalize_key,
    parse_key,
    wheel_step,
)

# --- BPM compatibility ---


class TestBPMCompatibility:
    @pytest.mark.parametrize("bpm", [60.0, 90.0, 120.0, 128.0, 174.0])
    def test_identical_tempo_is_exact_match(self, bpm):
        result = calculate_bpm_compatibility(bpm, bpm)
        assert result.compatibility == 1.0
        assert result.relationship == BPMRelationship.EXACT_MATCH
        assert result.recommended_technique == MixTechnique.DIRECT_MIX

    @pytest.mark.parametrize("bpm", [70.0, 100.0, 120.0, 140.0])
    def test_double_and_half_time(self, bpm):
        double = calculate_bpm_compatibility(bpm, bpm * 2)
        half = calculate_bpm_compatibility(bpm, bpm / 2)
        assert double.compatibility == 0.9
        assert double.relationship == BPMRelationship.DOUBLE_TIME
        assert half.compatibility == 0.9
        assert half.relationship == BPMRelationship.HALF_TIME

    def test_double_time_uses_tempo_match(self):
        result = calculate_bpm_compatibility(120, 240)
        assert result.relationship == BPMRelationship.DOUBLE_TIME
        assert result.compatibility == 0.9
        assert result.recommended_technique == MixTechnique.TEMPO_MATCH

    def test_one_point_five_ratio(self):
        up = calculate_bpm_compatibility(120, 180)
        down = calculate_bpm_compatibility(120, 80)
        assert up.relationship == BPMRelationship.ONE_POINT_FIVE
        assert up.compatibility == 0.85
        assert down.relationship == BPMRelationship.ONE_POINT_FIVE

    def test_within_three_percent_is_exact(self):
        result = calculate_bpm_compatibility(120, 123)
        assert result.relationship == BPMRelationship.EXACT_MATCH
        assert result.compatibility == 1.0

    def test_close_match_band(self):
        result = calculate_bpm_compatibility(120, 126)
        assert result.relationship == BPMRelationship.CLOSE_MATCH
        assert result.compatibility == 0.8
        assert result.recommended_technique == MixTechnique.SLIGHT_ADJUST

    def test_needs_adjustment_band(self):
        """120 -> 128 is a 6.67% change: the 0.5 band."""
        result = calculate_bpm_compatibility(120, 128)
        assert result.relationship == BPMRelationship.NEEDS_ADJUSTMENT
        assert result.compatibility == 0.5
        assert result.recommended_technique == MixTechnique.TEMPO_ADJUST

    def test_incompatible_scales_down(self):
        near = calculate_bpm_compatibility(120, 150)
        far = calculate_bpm_compatibility(120, 200)
        assert near.relationship == BPMRelationship.INCOMPATIBLE
        assert near.compatibility == pytest.approx(0.15)
        assert far.compatibility == 0.1
        assert near.recommended_technique == MixTechnique.MAJOR_ADJUST

    @pytest.mark.parametrize("current,candidate", [(0, 120), (120, 0), (-5, 120)])
    def test_non_positive_bpm_is_neutral(self, current, candidate):
        result = calculate_bpm_compatibility(current, candidate)
        assert result.compatibility == 0.5
        assert result.relationship == BPMRelationship.UNKNOWN
        assert result.confidence == 0.0

    def test_confidence_tracks_relationship(self):
        exact = calculate_bpm_compatibility(120, 120)
        far = calculate_bpm_compatibility(120, 200)
        assert exact.confidence > far.confidence


class TestGenreAdjustment:
    def test_electronic_genre_raises_score(self):
        plain = calculate_bpm_compatibility(120, 126)
        house = calculate_bpm_compatibility(120, 126, "Deep House")
        assert house.compatibility == pytest.approx(plain.compatibility + 0.05)

    def test_acoustic_genre_lowers_score(self):
        plain = calculate_bpm_compatibility(120, 126)
        folk = calculate_bpm_compatibility(120, 126, "folk")
        assert folk.compatibility == pytest.approx(plain.compatibility - 0.05)

    def test_exact_match_is_not_nudged(self):
        assert calculate_bpm_compatibility(120, 120, "techno").compatibility == 1.0
        assert calculate_bpm_compatibility(120, 120, "jazz").compatibility == 1.0

    def test_unknown_genre_has_no_effect(self):
        assert genre_adjustment("polka") == 0.0
        assert genre_adjustment(None) == 0.0


# --- Key compatibility ---


class TestKeyParsing:
    def test_parse_major_and_minor(self):
        assert parse_key("C") == (0, "major")
        assert parse_key("F#m") == (6, "minor")

    def test_flats_normalize_to_sharps(self):
        assert normalize_key("Db") == "C#"
        assert normalize_key("Bbm") == "A#m"

    @pytest.mark.parametrize("bad", ["H", "", "Cmaj", "X#m"])
    def test_unknown_keys_raise(self, bad):
        with pytest.raises(ValueError):
            parse_key(bad)

    def test_wheel_step_wraps(self):
        assert wheel_step("C", "G") == 1
        assert wheel_step("C", "F") == -1
        assert wheel_step("B", "E") == -1


class TestKeyCompatibility:
    @pytest.mark.parametrize("k", list(CAMELOT))
    def test_same_key_is_perfect(self, k):
        result = calculate_key_compatibility(k, k)
        assert result.compatibility == 1.0
        assert result.relationship == KeyRelationship.PERFECT_MATCH
        assert result.harmonic_function == HarmonicFunction.TONIC

    def test_relative_pair_symmetric_score_different_labels(self):
        down = calculate_key_compatibility("C", "Am")
        up = calculate_key_compatibility("Am", "C")
        assert down.compatibility == up.compatibility == 0.9
        assert down.relationship == KeyRelationship.RELATIVE_MINOR
        assert down.harmonic_function == HarmonicFunction.SUBDOMINANT
        assert up.relationship == KeyRelationship.RELATIVE_MAJOR
        assert up.harmonic_function == HarmonicFunction.TONIC

    def test_dominant_and_subdominant(self):
        fifth = calculate_key_compatibility("C", "G")
        fourth = calculate_key_compatibility("C", "F")
        assert fifth.relationship == KeyRelationship.DOMINANT
        assert fifth.compatibility == 0.8
        assert fourth.relationship == KeyRelationship.SUBDOMINANT
        assert fourth.compatibility == 0.8

    def test_minor_keys_follow_the_wheel(self):
        assert calculate_key_compatibility("Am", "Em").relationship == KeyRelationship.DOMINANT
        assert calculate_key_compatibility("Am", "Dm").relationship == KeyRelationship.SUBDOMINANT

    def test_two_steps_is_compatible(self):
        result = calculate_key_compatibility("C", "D")
        assert result.relationship == KeyRelationship.COMPATIBLE
        assert result.compatibility == 0.6

    def test_diagonal_move_is_compatible(self):
        result = calculate_key_compatibility("C", "Em")
        assert result.relationship == KeyRelationship.COMPATIBLE

    def test_tritone_is_incompatible(self):
        result = calculate_key_compatibility("C", "F#")
        assert result.relationship == KeyRelationship.INCOMPATIBLE
        assert result.compatibility < 0.5

    def test_enharmonic_input(self):
        assert calculate_key_compatibility("Db", "C#").compatibility == 1.0

    def test_table_covers_every_pair(self):
        assert len(KEY_COMPATIBILITY_TABLE) == 24 * 24

    def test_scores_are_symmetric(self):
        for k1 in CAMELOT:
            for k2 in CAMELOT:
                forward = KEY_COMPATIBILITY_TABLE[(k1, k2)].compatibility
                backward = KEY_COMPATIBILITY_TABLE[(k2, k1)].compatibility
                assert forward == backward, (k1, k2)

    def test_incompatible_scores_stay_below_compatible(self):
        for entry in KEY_COMPATIBILITY_TABLE.values():
            if entry.relationship == KeyRelationship.INCOMPATIBLE:
                assert 0.1 <= entry.compatibility < 0.5
            else:
                assert entry.compatibility >= 0.6

    def test_result_is_a_copy(self):
        result = calculate_key_compatibility("C", "G")
        result.compatibility = 0.0
        assert calculate_key_compatibility("C", "G").compatibility == 0.8
