"""
Tests for the transition engine: target resolution, placement rules and
restoring clip positions when a transition is deleted.
"""

import pytest

from models.timeline_models import (
    MediaType,
    Scrubber,
    TimelineState,
    TrackState,
    Transition,
    TransitionPresentation,
    TransitionTemplate,
)
from operators.timeline_operator import InvalidOperationError, TrackNotFoundError, TransitionNotFoundError
from operators.transition_operator import (
    add_transition,
    remove_transition,
    resolve_transition_targets,
)
from utils.timeline_integrity import find_integrity_issues

PPS = 100.0


def _clip(scrubber_id: str, left: float, width: float, media_type: MediaType = MediaType.VIDEO) -> Scrubber:
    return Scrubber(id=scrubber_id, media_type=media_type, left=left, width=width)


def _timeline(*scrubbers: Scrubber) -> TimelineState:
    return TimelineState(tracks=[TrackState(id="track-1", scrubbers=list(scrubbers)), TrackState(id="track-2")])


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def fade() -> TransitionTemplate:
    """15 frames = 50px at 100 px/s."""
    return TransitionTemplate(presentation=TransitionPresentation.FADE, duration_in_frames=15)


@pytest.fixture
def snapped() -> TimelineState:
    """Three back-to-back clips on track-1."""
    return _timeline(_clip("a", 0, 300), _clip("b", 300, 300), _clip("c", 600, 300))


# =============================================================================
# TARGET RESOLUTION
# =============================================================================


class TestResolveTargets:
    @pytest.fixture
    def track(self) -> TrackState:
        return TrackState(scrubbers=[_clip("b", 400, 100), _clip("a", 100, 200)])

    def test_before_first_is_intro(self, track):
        left, right = resolve_transition_targets(track, 50)

        assert left is None
        assert right.id == "a"

    def test_gap_is_between(self, track):
        left, right = resolve_transition_targets(track, 350)

        assert (left.id, right.id) == ("a", "b")

    def test_left_half_without_neighbour_is_intro(self, track):
        left, right = resolve_transition_targets(track, 150)

        assert left is None
        assert right.id == "a"

    def test_right_half_with_distant_successor_is_outro(self, track):
        left, right = resolve_transition_targets(track, 280)

        assert left.id == "a"
        assert right is None

    def test_left_half_bridges_snapped_predecessor(self):
        track = TrackState(scrubbers=[_clip("a", 0, 300), _clip("b", 305, 300)])

        left, right = resolve_transition_targets(track, 350)

        assert (left.id, right.id) == ("a", "b")

    def test_right_half_bridges_snapped_successor(self):
        track = TrackState(scrubbers=[_clip("a", 0, 300), _clip("b", 300, 300)])

        left, right = resolve_transition_targets(track, 250)

        assert (left.id, right.id) == ("a", "b")

    def test_left_half_with_distant_predecessor_is_intro(self, track):
        left, right = resolve_transition_targets(track, 420)

        assert left is None
        assert right.id == "b"

    def test_after_last_is_outro(self, track):
        left, right = resolve_transition_targets(track, 900)

        assert left.id == "b"
        assert right is None

    def test_empty_track(self):
        assert resolve_transition_targets(TrackState(), 10) == (None, None)


# =============================================================================
# ADD
# =============================================================================


class TestAddTransition:
    def test_snapped_clips_overlap_by_transition_width(self, snapped, fade):
        new_timeline, transition = add_transition(snapped, "track-1", fade, 300, PPS)

        track = new_timeline.tracks[0]
        assert transition.left_scrubber_id == "a"
        assert transition.right_scrubber_id == "b"
        assert track.find_scrubber("b").left == pytest.approx(250)
        assert track.find_scrubber("a").right_transition_id == transition.id
        assert track.find_scrubber("b").left_transition_id == transition.id
        assert find_integrity_issues(new_timeline) == []

    def test_distant_clips_are_not_pulled(self, fade):
        timeline = _timeline(_clip("a", 0, 300), _clip("b", 400, 300))

        new_timeline, _ = add_transition(timeline, "track-1", fade, 350, PPS)

        assert new_timeline.tracks[0].find_scrubber("b").left == 400

    def test_intro_transition(self, snapped, fade):
        timeline = _timeline(_clip("a", 100, 300))

        new_timeline, transition = add_transition(timeline, "track-1", fade, 20, PPS)

        assert transition.left_scrubber_id is None
        assert transition.right_scrubber_id == "a"
        assert new_timeline.tracks[0].find_scrubber("a").left_transition_id == transition.id

    def test_template_id_is_used(self, snapped):
        template = TransitionTemplate(id="my-wipe", presentation=TransitionPresentation.WIPE, duration_in_frames=6)

        _, transition = add_transition(snapped, "track-1", template, 300, PPS)

        assert transition.id == "my-wipe"
        assert transition.presentation == TransitionPresentation.WIPE

    def test_duration_cap(self, fade):
        timeline = _timeline(_clip("a", 0, 30), _clip("b", 30, 300))

        with pytest.raises(InvalidOperationError) as exc_info:
            add_transition(timeline, "track-1", fade, 10, PPS)

        assert exc_info.value.error_code == "transition_too_long"
        assert timeline.all_transitions() == {}

    def test_audio_rejected(self, fade):
        timeline = _timeline(_clip("a", 0, 300, MediaType.AUDIO), _clip("b", 300, 300))

        with pytest.raises(InvalidOperationError) as exc_info:
            add_transition(timeline, "track-1", fade, 100, PPS)

        assert exc_info.value.error_code == "audio_transition"

    def test_composite_rejected(self, fade):
        timeline = _timeline(_clip("g", 0, 300, MediaType.COMPOSITE))

        with pytest.raises(InvalidOperationError) as exc_info:
            add_transition(timeline, "track-1", fade, 400, PPS)

        assert exc_info.value.error_code == "composite_transition"

    def test_back_to_back_rejected(self, snapped, fade):
        once, _ = add_transition(snapped, "track-1", fade, 300, PPS)

        with pytest.raises(InvalidOperationError) as exc_info:
            add_transition(once, "track-1", fade, 280, PPS)

        assert exc_info.value.error_code == "adjacent_transitions"

    def test_occupied_edge_rejected(self, fade):
        timeline = _timeline(_clip("a", 0, 300))
        with_outro, _ = add_transition(timeline, "track-1", fade, 500, PPS)
        with_outro.tracks[0].scrubbers.append(_clip("b", 800, 300))

        with pytest.raises(InvalidOperationError) as exc_info:
            add_transition(with_outro, "track-1", fade, 500, PPS)

        assert exc_info.value.error_code == "edge_occupied"

    def test_empty_track_rejected(self, fade):
        with pytest.raises(InvalidOperationError) as exc_info:
            add_transition(_timeline(), "track-2", fade, 0, PPS)

        assert exc_info.value.error_code == "no_adjacent_scrubber"

    def test_unknown_track(self, snapped, fade):
        with pytest.raises(TrackNotFoundError):
            add_transition(snapped, "track-9", fade, 0, PPS)


# =============================================================================
# REMOVE
# =============================================================================


class TestRemoveTransition:
    def test_restores_snapped_position_and_shifts_later_clips(self, snapped, fade):
        linked, transition = add_transition(snapped, "track-1", fade, 300, PPS)

        restored, warnings = remove_transition(linked, transition.id, PPS)

        lefts = {s.id: s.left for s in restored.tracks[0].scrubbers}
        assert lefts == {"a": 0, "b": pytest.approx(300), "c": pytest.approx(650)}
        assert warnings == []
        assert restored.all_transitions() == {}
        assert all(not s.transition_ids for s in restored.all_scrubbers())

    def test_distant_clips_stay_put(self, fade):
        timeline = _timeline(_clip("a", 0, 300), _clip("b", 400, 300))
        linked, transition = add_transition(timeline, "track-1", fade, 350, PPS)

        restored, _ = remove_transition(linked, transition.id, PPS)

        assert restored.tracks[0].find_scrubber("b").left == 400

    def test_dangling_endpoint_is_reported(self):
        a = _clip("a", 0, 300).model_copy(update={"right_transition_id": "t"})
        transition = Transition(id="t", duration_in_frames=10, left_scrubber_id="a", right_scrubber_id="gone")
        timeline = _timeline(a)
        timeline.tracks[0].transitions.append(transition)

        restored, warnings = remove_transition(timeline, "t", PPS)

        assert len(warnings) == 1
        assert "gone" in warnings[0]
        assert restored.tracks[0].find_scrubber("a").right_transition_id is None

    def test_unknown_transition(self, snapped):
        with pytest.raises(TransitionNotFoundError):
            remove_transition(snapped, "nope", PPS)
