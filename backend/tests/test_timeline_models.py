"""
Tests for the timeline data model.

These tests verify validation rules, lookups and that a timeline survives a
trip through its JSON form unchanged.
"""

import pytest
from pydantic import ValidationError

from models.timeline_models import (
    MediaBinItem,
    MediaType,
    Resolution,
    Scrubber,
    TextProperties,
    TimelineState,
    TrackState,
    Transition,
    TransitionPresentation,
)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def linked_timeline() -> TimelineState:
    """Two overlapping clips on track-1 joined by a fade, one title on track-2."""
    first = Scrubber(
        id="clip-a",
        name="A",
        media_type=MediaType.VIDEO,
        media_url_remote="https://cdn.example.com/a.mp4",
        duration_in_seconds=5,
        left=0,
        width=300,
        y=0,
        trim_before=15,
        trim_after=30,
        right_transition_id="fade-1",
    )
    second = Scrubber(
        id="clip-b",
        name="B",
        media_type=MediaType.VIDEO,
        duration_in_seconds=4,
        left=250,
        width=300,
        y=0,
        left_transition_id="fade-1",
    )
    title = Scrubber(
        id="title",
        name="Title",
        media_type=MediaType.TEXT,
        text=TextProperties(text_content="Hello", font_size=64, template="glassy"),
        left=120.5,
        width=80,
        y=1,
    )
    fade = Transition(
        id="fade-1",
        duration_in_frames=15,
        left_scrubber_id="clip-a",
        right_scrubber_id="clip-b",
    )
    return TimelineState(
        tracks=[
            TrackState(id="track-1", scrubbers=[first, second], transitions=[fade]),
            TrackState(id="track-2", scrubbers=[title]),
        ],
        resolution=Resolution.SHORTS,
    )


# =============================================================================
# VALIDATION
# =============================================================================


class TestValidation:
    def test_scrubber_width_must_be_positive(self):
        with pytest.raises(ValidationError):
            Scrubber(media_type=MediaType.VIDEO, width=0)

    def test_scrubber_left_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            Scrubber(media_type=MediaType.VIDEO, width=10, left=-1)

    def test_transition_needs_an_endpoint(self):
        with pytest.raises(ValidationError):
            Transition(duration_in_frames=10)

    def test_transition_duration_must_be_positive(self):
        with pytest.raises(ValidationError):
            Transition(duration_in_frames=0, left_scrubber_id="a")

    def test_intro_transition_is_valid(self):
        transition = Transition(duration_in_frames=10, right_scrubber_id="a")

        assert transition.scrubber_ids == ["a"]
        assert transition.presentation == TransitionPresentation.FADE

    def test_media_type_uses_wire_names(self):
        assert MediaType("groupped_scrubber") == MediaType.COMPOSITE
        assert TransitionPresentation("clockWipe") == TransitionPresentation.CLOCK_WIPE


# =============================================================================
# GEOMETRY & LOOKUPS
# =============================================================================


class TestScrubberGeometry:
    def test_touching_edges_do_not_overlap(self):
        a = Scrubber(media_type=MediaType.VIDEO, left=0, width=100)
        b = Scrubber(media_type=MediaType.VIDEO, left=100, width=100)

        assert not a.overlaps(b)
        assert not b.overlaps(a)

    def test_intersecting_spans_overlap(self):
        a = Scrubber(media_type=MediaType.VIDEO, left=0, width=100)
        b = Scrubber(media_type=MediaType.VIDEO, left=99.5, width=10)

        assert a.overlaps(b)
        assert a.right == 100

    def test_transition_ids_lists_set_sides(self):
        scrubber = Scrubber(media_type=MediaType.IMAGE, width=10, right_transition_id="t")

        assert scrubber.transition_ids == ["t"]
        assert not scrubber.is_composite


class TestTimelineLookups:
    def test_create_default(self):
        timeline = TimelineState.create_default()

        assert [t.id for t in timeline.tracks] == ["track-1", "track-2", "track-3", "track-4"]
        assert timeline.resolution == Resolution.FOUR_K
        assert timeline.all_scrubbers() == []

    def test_find_scrubber_returns_track_index(self, linked_timeline):
        index, scrubber = linked_timeline.find_scrubber("title")

        assert index == 1
        assert scrubber.name == "Title"
        assert linked_timeline.find_scrubber("missing") is None

    def test_track_index(self, linked_timeline):
        assert linked_timeline.track_index("track-2") == 1
        assert linked_timeline.track_index("nope") == -1

    def test_all_transitions_keyed_by_id(self, linked_timeline):
        assert list(linked_timeline.all_transitions()) == ["fade-1"]

    def test_resolution_dimensions(self):
        assert (Resolution.FOUR_K.width, Resolution.FOUR_K.height) == (3840, 2160)
        assert (Resolution.SHORTS.width, Resolution.SHORTS.height) == (1080, 1920)


# =============================================================================
# SERIALIZATION
# =============================================================================


class TestSerialization:
    def test_json_round_trip_is_lossless(self, linked_timeline):
        data = linked_timeline.model_dump(mode="json")
        restored = TimelineState.model_validate(data)

        assert restored == linked_timeline
        assert data["resolution"] == "shorts"
        assert data["tracks"][1]["scrubbers"][0]["left"] == 120.5

    def test_composite_children_round_trip(self):
        child = Scrubber(id="child", media_type=MediaType.AUDIO, width=50, trim_before=3)
        item = MediaBinItem(
            name="Group",
            media_type=MediaType.COMPOSITE,
            duration_in_seconds=0.5,
            groupped_scrubbers=[child],
        )

        restored = MediaBinItem.model_validate(item.model_dump(mode="json"))

        assert restored.groupped_scrubbers[0] == child
        assert restored.media_type == MediaType.COMPOSITE
