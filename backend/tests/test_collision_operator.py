import pytest

from models.timeline_models import (
    MediaType,
    Scrubber,
    TimelineState,
    TrackState,
    Transition,
)
from operators.collision_operator import (
    check_collision,
    get_connected_elements,
    has_transition_between,
    move_connected_group,
    resolve_collision,
)
from operators.timeline_operator import CollisionError, TrackNotFoundError
from utils.timeline_integrity import find_integrity_issues


def _clip(scrubber_id: str, left: float, width: float, y: int = 0, **links) -> Scrubber:
    return Scrubber(id=scrubber_id, media_type=MediaType.VIDEO, left=left, width=width, y=y, **links)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def chained() -> TimelineState:
    """a -> b -> c chained by two transitions on track-1, d alone further right."""
    a = _clip("a", 0, 300, right_transition_id="t1")
    b = _clip("b", 250, 300, left_transition_id="t1", right_transition_id="t2")
    c = _clip("c", 500, 300, left_transition_id="t2")
    d = _clip("d", 1200, 100)
    t1 = Transition(id="t1", duration_in_frames=15, left_scrubber_id="a", right_scrubber_id="b")
    t2 = Transition(id="t2", duration_in_frames=15, left_scrubber_id="b", right_scrubber_id="c")
    return TimelineState(
        tracks=[
            TrackState(id="track-1", scrubbers=[a, b, c, d], transitions=[t1, t2]),
            TrackState(id="track-2", scrubbers=[_clip("e", 0, 100, y=1)]),
            TrackState(id="track-3"),
        ]
    )


# =============================================================================
# COLLISION CHECKS
# =============================================================================


class TestCollisionChecks:
    def test_transition_link_is_symmetric(self, chained):
        assert has_transition_between(chained, "a", "b")
        assert has_transition_between(chained, "b", "a")
        assert not has_transition_between(chained, "a", "c")

    def test_linked_overlap_is_not_a_collision(self, chained):
        _, b = chained.find_scrubber("b")

        assert not check_collision(chained, b)

    def test_unlinked_overlap_collides(self, chained):
        candidate = _clip("new", 1250, 100)

        assert check_collision(chained, candidate)

    def test_touching_edges_do_not_collide(self, chained):
        candidate = _clip("new", 1100, 100)

        assert not check_collision(chained, candidate)

    def test_other_tracks_are_ignored(self, chained):
        candidate = _clip("new", 0, 100, y=2)

        assert not check_collision(chained, candidate)


class TestResolveCollision:
    def test_free_spot_is_kept(self, chained):
        proposed = _clip("new", 900, 100)

        assert resolve_collision(chained, proposed, None, 2000) == proposed

    def test_snaps_to_left_side_when_center_is_left(self, chained):
        proposed = _clip("new", 1150, 100)

        resolved = resolve_collision(chained, proposed, None, 2000)

        assert resolved.left == 1100

    def test_snaps_to_right_side_when_center_is_right(self, chained):
        proposed = _clip("new", 1230, 100)

        resolved = resolve_collision(chained, proposed, None, 2000)

        assert resolved.left == 1300

    def test_right_snap_respects_timeline_width(self, chained):
        proposed = _clip("new", 1230, 100)

        resolved = resolve_collision(chained, proposed, None, 1350)

        assert resolved.left == 1100

    def test_falls_back_to_original_when_boxed_in(self):
        timeline = TimelineState(
            tracks=[
                TrackState(
                    id="track-1",
                    scrubbers=[_clip("left", 0, 100), _clip("mid", 100, 100), _clip("right", 200, 100)],
                )
            ]
        )
        original = _clip("mover", 500, 100)
        proposed = original.model_copy(update={"left": 120})

        assert resolve_collision(timeline, proposed, original, 2000) is original


# =============================================================================
# CONNECTED GROUPS
# =============================================================================


class TestConnectedElements:
    def test_walks_the_whole_chain(self, chained):
        connected = get_connected_elements(chained, "a")

        assert connected == ["a", "t1", "b", "t2", "c"]

    def test_start_from_transition(self, chained):
        assert set(get_connected_elements(chained, "t2")) == {"a", "b", "c", "t1", "t2"}

    def test_standalone_clip(self, chained):
        assert get_connected_elements(chained, "d") == ["d"]


class TestMoveConnectedGroup:
    def test_moves_every_chained_clip(self, chained):
        new_timeline = move_connected_group(chained, "b", 100)

        lefts = {s.id: s.left for s in new_timeline.all_scrubbers()}
        assert (lefts["a"], lefts["b"], lefts["c"]) == (100, 350, 600)
        assert lefts["d"] == 1200
        assert find_integrity_issues(new_timeline) == []

    def test_transitions_follow_to_new_track(self, chained):
        new_timeline = move_connected_group(chained, "a", 0, 2)

        assert [s.id for s in new_timeline.tracks[2].scrubbers] == ["a", "b", "c"]
        assert {t.id for t in new_timeline.tracks[2].transitions} == {"t1", "t2"}
        assert new_timeline.tracks[0].transitions == []
        assert all(s.y == 2 for s in new_timeline.tracks[2].scrubbers)
        assert find_integrity_issues(new_timeline) == []

    def test_collision_leaves_value_untouched(self, chained):
        with pytest.raises(CollisionError):
            move_connected_group(chained, "a", 500)

        _, a = chained.find_scrubber("a")
        assert a.left == 0

    def test_cannot_move_before_start(self, chained):
        with pytest.raises(CollisionError) as exc_info:
            move_connected_group(chained, "c", -10)

        assert exc_info.value.error_code == "out_of_bounds"

    def test_target_track_must_exist(self, chained):
        with pytest.raises(TrackNotFoundError):
            move_connected_group(chained, "a", 0, 5)
