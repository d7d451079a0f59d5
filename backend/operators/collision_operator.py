"""
Placement & collision engine.

Two scrubbers on the same track may only overlap when a transition links
them. During an interactive drag a colliding scrubber is snapped flush
against the scrubber it hit; scrubbers chained together by transitions move
as one unit or not at all.
"""

from __future__ import annotations

import logging
from collections import deque

from models.timeline_models import Scrubber, TimelineState
from operators.timeline_operator import (
    CollisionError,
    clone_timeline,
    get_scrubber,
    get_track_at,
    reindex_tracks,
)

logger = logging.getLogger(__name__)


def has_transition_between(timeline: TimelineState, first_id: str, second_id: str) -> bool:
    """True if a transition links the two scrubbers, in either direction."""
    for track in timeline.tracks:
        for transition in track.transitions:
            if (
                transition.left_scrubber_id == first_id
                and transition.right_scrubber_id == second_id
            ) or (
                transition.left_scrubber_id == second_id
                and transition.right_scrubber_id == first_id
            ):
                return True
    return False


def colliding_scrubbers(
    timeline: TimelineState,
    candidate: Scrubber,
    exclude_ids: set[str] | None = None,
) -> list[Scrubber]:
    """
    Scrubbers on the candidate's track whose span intersects the candidate's
    and that no transition links to it, ordered by position.
    """
    if candidate.y >= len(timeline.tracks):
        return []

    excluded = {candidate.id} | (exclude_ids or set())
    hits = [
        other
        for other in timeline.tracks[candidate.y].scrubbers
        if other.id not in excluded
        and candidate.overlaps(other)
        and not has_transition_between(timeline, candidate.id, other.id)
    ]
    return sorted(hits, key=lambda s: s.left)


def check_collision(
    timeline: TimelineState,
    candidate: Scrubber,
    exclude_ids: set[str] | None = None,
) -> bool:
    return bool(colliding_scrubbers(timeline, candidate, exclude_ids))


def resolve_collision(
    timeline: TimelineState,
    updated: Scrubber,
    original: Scrubber | None,
    timeline_width: float,
) -> Scrubber | None:
    """
    Decide where a dragged scrubber actually lands.

    Returns the proposed scrubber when it fits, otherwise a copy snapped
    flush against the first scrubber it hits (trying the side nearer the
    drag center first). Falls back to `original` when both sides are
    blocked; `original` may be None for a fresh drop.
    """
    hits = colliding_scrubbers(timeline, updated)
    if not hits:
        return updated

    blocker = hits[0]
    drag_center = updated.left + updated.width / 2
    blocker_center = blocker.left + blocker.width / 2

    snap_left = max(0.0, blocker.left - updated.width)
    snap_right = min(blocker.right, timeline_width - updated.width)

    if drag_center < blocker_center:
        candidates = [snap_left, snap_right]
    else:
        candidates = [snap_right, snap_left]

    for left in candidates:
        if left < 0:
            continue
        snapped = updated.model_copy(deep=True, update={"left": left})
        if not check_collision(timeline, snapped):
            return snapped

    logger.debug(
        "Scrubber %s blocked on both sides of %s, keeping original position",
        updated.id,
        blocker.id,
    )
    return original


def get_connected_elements(timeline: TimelineState, element_id: str) -> list[str]:
    """
    Breadth-first walk over transition links starting at a scrubber or
    transition id. Returns every reachable scrubber and transition id,
    including the start element.
    """
    scrubbers = {s.id: s for s in timeline.all_scrubbers()}
    transitions = timeline.all_transitions()

    visited: list[str] = []
    seen: set[str] = set()
    queue: deque[str] = deque([element_id])

    while queue:
        current = queue.popleft()
        if current in seen:
            continue
        seen.add(current)
        visited.append(current)

        if current in scrubbers:
            neighbours = scrubbers[current].transition_ids
        elif current in transitions:
            neighbours = transitions[current].scrubber_ids
        else:
            neighbours = []

        for neighbour in neighbours:
            if neighbour not in seen:
                queue.append(neighbour)

    return visited


def move_connected_group(
    timeline: TimelineState,
    scrubber_id: str,
    offset_x: float,
    offset_y: int = 0,
) -> TimelineState:
    """
    Apply the same delta to every scrubber chained to `scrubber_id` by
    transitions. The transitions follow their scrubbers to the new track.

    Raises:
        CollisionError: a moved scrubber would overlap an outside scrubber
            or start before 0. Nothing is moved in that case.
        TrackNotFoundError: the target track does not exist.
    """
    get_scrubber(timeline, scrubber_id)
    connected = set(get_connected_elements(timeline, scrubber_id))

    new_timeline = clone_timeline(timeline)

    moved_scrubbers = []
    moved_transitions = []
    for index, track in enumerate(new_timeline.tracks):
        for scrubber in track.scrubbers:
            if scrubber.id in connected:
                moved_scrubbers.append((index, scrubber))
        for transition in track.transitions:
            if transition.id in connected:
                moved_transitions.append((index, transition))

    for index, scrubber in moved_scrubbers:
        get_track_at(new_timeline, index + offset_y)
        scrubber.left += offset_x
        if scrubber.left < 0:
            raise CollisionError(
                f"Moving the group would place scrubber {scrubber.id} before the timeline start",
                "out_of_bounds",
            )

    if offset_y:
        for track in new_timeline.tracks:
            track.scrubbers = [s for s in track.scrubbers if s.id not in connected]
            track.transitions = [t for t in track.transitions if t.id not in connected]
        for index, scrubber in moved_scrubbers:
            new_timeline.tracks[index + offset_y].scrubbers.append(scrubber)
        for index, transition in moved_transitions:
            new_timeline.tracks[index + offset_y].transitions.append(transition)
        reindex_tracks(new_timeline)

    for _, scrubber in moved_scrubbers:
        if check_collision(new_timeline, scrubber, exclude_ids=connected):
            raise CollisionError(
                f"Connected scrubbers of {scrubber_id} would collide on track {scrubber.y}"
            )

    return new_timeline
