"""
Transition engine.

Resolves which scrubbers a dropped transition attaches to, validates the
placement and wires the references on both sides. Deleting a transition
restores the scrubbers it pulled together when they were snapped.
"""

from __future__ import annotations

import logging

from models.timeline_models import (
    MediaType,
    Scrubber,
    TimelineState,
    TrackState,
    Transition,
    TransitionTemplate,
    generate_id,
)
from operators.timeline_operator import (
    InvalidOperationError,
    clone_timeline,
    detach_transitions,
    get_track,
    get_transition,
)
from utils.coordinates import frames_to_pixels
from utils.settings import SNAP_DISTANCE_PX

logger = logging.getLogger(__name__)


def resolve_transition_targets(
    track: TrackState,
    drop_position: float,
) -> tuple[Scrubber | None, Scrubber | None]:
    """
    Find the (left, right) scrubbers a transition dropped at `drop_position`
    would attach to.

    - Drop before the first scrubber: intro on that scrubber.
    - Drop in a gap: between the scrubbers on either side.
    - Drop on the left half of a scrubber: between it and its predecessor
      when they are within the snap distance, otherwise an intro.
    - Drop on the right half: the same against its successor, otherwise
      an outro.
    - Drop after the last scrubber: outro on it.
    """
    scrubbers = track.sorted_scrubbers()
    if not scrubbers:
        return None, None

    if drop_position < scrubbers[0].left:
        return None, scrubbers[0]

    for index, current in enumerate(scrubbers):
        previous = scrubbers[index - 1] if index > 0 else None
        following = scrubbers[index + 1] if index + 1 < len(scrubbers) else None

        if current.left <= drop_position <= current.right:
            if drop_position <= current.left + current.width / 2:
                if previous is not None and current.left - previous.right <= SNAP_DISTANCE_PX:
                    return previous, current
                return None, current
            if following is not None and following.left - current.right <= SNAP_DISTANCE_PX:
                return current, following
            return current, None

        if following is not None and current.right < drop_position < following.left:
            return current, following

    return scrubbers[-1], None


def validate_transition_placement(
    left: Scrubber | None,
    right: Scrubber | None,
    duration_in_frames: int,
    pixels_per_second: float,
) -> None:
    """Raise InvalidOperationError when a transition may not go between left and right."""
    if left is None and right is None:
        raise InvalidOperationError(
            "There is no scrubber to attach the transition to",
            "no_adjacent_scrubber",
        )

    for scrubber in (left, right):
        if scrubber is None:
            continue
        if scrubber.media_type == MediaType.AUDIO:
            raise InvalidOperationError(
                "Audio scrubbers cannot have transitions",
                "audio_transition",
            )
        if scrubber.media_type == MediaType.COMPOSITE:
            raise InvalidOperationError(
                "Grouped scrubbers cannot have transitions",
                "composite_transition",
            )

    transition_px = frames_to_pixels(duration_in_frames, pixels_per_second)
    if left is not None and transition_px > left.width:
        raise InvalidOperationError(
            "Transition is longer than the previous scrubber",
            "transition_too_long",
        )
    if right is not None and transition_px > right.width:
        raise InvalidOperationError(
            "Transition is longer than the next scrubber",
            "transition_too_long",
        )

    left_busy = left is not None and left.right_transition_id is not None
    right_busy = right is not None and right.left_transition_id is not None
    if left_busy and right_busy:
        raise InvalidOperationError(
            "Cannot place transitions next to each other",
            "adjacent_transitions",
        )
    if left_busy or right_busy:
        raise InvalidOperationError(
            "That scrubber edge already has a transition",
            "edge_occupied",
        )


def add_transition(
    timeline: TimelineState,
    track_id: str,
    template: TransitionTemplate,
    drop_position: float,
    pixels_per_second: float,
) -> tuple[TimelineState, Transition]:
    """
    Attach a transition to the track at the drop position.

    When both sides exist and their gap is within the snap distance, the
    right scrubber is pulled left so the two overlap by exactly the
    transition's pixel width.

    Raises:
        TrackNotFoundError: unknown track.
        InvalidOperationError: placement rejected (see validate_transition_placement).
    """
    track_index, track = get_track(timeline, track_id)
    left, right = resolve_transition_targets(track, drop_position)
    validate_transition_placement(left, right, template.duration_in_frames, pixels_per_second)

    transition_id = template.id or generate_id()
    if template.id and timeline.find_transition(template.id) is not None:
        transition_id = generate_id()

    transition = Transition(
        id=transition_id,
        presentation=template.presentation,
        timing=template.timing,
        duration_in_frames=template.duration_in_frames,
        left_scrubber_id=left.id if left else None,
        right_scrubber_id=right.id if right else None,
    )

    new_timeline = clone_timeline(timeline)
    new_track = new_timeline.tracks[track_index]
    new_track.transitions.append(transition)

    new_left = new_track.find_scrubber(left.id) if left else None
    new_right = new_track.find_scrubber(right.id) if right else None
    if new_left is not None:
        new_left.right_transition_id = transition.id
    if new_right is not None:
        new_right.left_transition_id = transition.id

    if new_left is not None and new_right is not None:
        gap = new_right.left - new_left.right
        if gap <= SNAP_DISTANCE_PX:
            transition_px = frames_to_pixels(transition.duration_in_frames, pixels_per_second)
            new_right.left = max(0.0, new_left.right - transition_px)

    logger.debug(
        "Added transition %s (%s) on track %s between %s and %s",
        transition.id,
        transition.presentation.value,
        track_id,
        transition.left_scrubber_id,
        transition.right_scrubber_id,
    )
    return new_timeline, transition


def remove_transition(
    timeline: TimelineState,
    transition_id: str,
    pixels_per_second: float,
) -> tuple[TimelineState, list[str]]:
    """
    Delete a transition and clear the references to it.

    If the two scrubbers were snapped together (the gap they would have
    without the overlap is within the snap distance), the right scrubber is
    put back at that gap and every later scrubber on the track shifts right
    by the same amount. Scrubbers left overlapping are always separated.

    Returns the new timeline and a list of warnings for references that
    could not be resolved.

    Raises:
        TransitionNotFoundError: unknown transition.
    """
    track_index, transition = get_transition(timeline, transition_id)

    new_timeline = clone_timeline(timeline)
    track = new_timeline.tracks[track_index]
    warnings = []

    left = right = None
    if transition.left_scrubber_id is not None:
        left = track.find_scrubber(transition.left_scrubber_id)
        if left is None:
            warnings.append(
                f"Transition {transition_id} references missing scrubber {transition.left_scrubber_id}"
            )
    if transition.right_scrubber_id is not None:
        right = track.find_scrubber(transition.right_scrubber_id)
        if right is None:
            warnings.append(
                f"Transition {transition_id} references missing scrubber {transition.right_scrubber_id}"
            )

    if left is not None and right is not None:
        transition_px = frames_to_pixels(transition.duration_in_frames, pixels_per_second)
        current_gap = right.left - left.right
        original_gap = current_gap + transition_px

        if original_gap <= SNAP_DISTANCE_PX or current_gap < 0:
            restored_gap = max(0.0, original_gap) if original_gap <= SNAP_DISTANCE_PX else 0.0
            new_right_left = left.right + restored_gap
            movement = new_right_left - right.left
            previous_right_left = right.left

            for scrubber in track.scrubbers:
                if scrubber.id == right.id:
                    scrubber.left = new_right_left
                elif (
                    movement > 0
                    and scrubber.id != left.id
                    and scrubber.left >= previous_right_left
                ):
                    scrubber.left += movement

    for message in warnings:
        logger.warning(message)

    detach_transitions(new_timeline, {transition_id})
    return new_timeline, warnings
