"""
Timeline Operator - exceptions, lookups and diffing shared by every editor.

This module provides the foundation for timeline mutations:
- The TimelineError hierarchy raised by editors and engines
- Lookup helpers that raise instead of returning None
- clone_timeline(), the copy every editor works on
- Diff between two timeline values

Editors never touch the TimelineState they are given. They clone it, edit
the clone and return it, so a raised error always leaves the caller's value
untouched.
"""

from copy import deepcopy

from models.timeline_models import (
    Scrubber,
    TimelineDiff,
    TimelineState,
    TrackState,
    Transition,
)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class TimelineError(Exception):
    """Base exception for timeline operations."""
    error_code = "timeline_error"


class TrackNotFoundError(TimelineError):
    """Raised when a track id or index does not resolve."""
    error_code = "track_not_found"

    def __init__(self, track_id: str | None = None, track_index: int | None = None):
        self.track_id = track_id
        self.track_index = track_index
        if track_id is not None:
            super().__init__(f"Track not found: {track_id}")
        elif track_index is not None:
            super().__init__(f"Track index {track_index} out of range")
        else:
            super().__init__("Track not found")


class ScrubberNotFoundError(TimelineError):
    """Raised when a scrubber id does not resolve."""
    error_code = "scrubber_not_found"

    def __init__(self, scrubber_id: str):
        self.scrubber_id = scrubber_id
        super().__init__(f"Scrubber not found: {scrubber_id}")


class TransitionNotFoundError(TimelineError):
    """Raised when a transition id does not resolve."""
    error_code = "transition_not_found"

    def __init__(self, transition_id: str):
        self.transition_id = transition_id
        super().__init__(f"Transition with ID {transition_id} not found in any track")


class InvalidOperationError(TimelineError):
    """Raised when a request is understood but not allowed."""
    error_code = "invalid_operation"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code


class CollisionError(InvalidOperationError):
    """
    Raised when a placement would overlap another scrubber without a
    transition licensing it, and no snap position is available.
    """
    error_code = "collision"


# =============================================================================
# LOOKUPS
# =============================================================================


def clone_timeline(timeline: TimelineState) -> TimelineState:
    return deepcopy(timeline)


def get_track(timeline: TimelineState, track_id: str) -> tuple[int, TrackState]:
    index = timeline.track_index(track_id)
    if index == -1:
        raise TrackNotFoundError(track_id=track_id)
    return index, timeline.tracks[index]


def get_track_at(timeline: TimelineState, track_index: int) -> TrackState:
    if track_index < 0 or track_index >= len(timeline.tracks):
        raise TrackNotFoundError(track_index=track_index)
    return timeline.tracks[track_index]


def get_scrubber(timeline: TimelineState, scrubber_id: str) -> tuple[int, Scrubber]:
    found = timeline.find_scrubber(scrubber_id)
    if found is None:
        raise ScrubberNotFoundError(scrubber_id)
    return found


def get_transition(timeline: TimelineState, transition_id: str) -> tuple[int, Transition]:
    found = timeline.find_transition(transition_id)
    if found is None:
        raise TransitionNotFoundError(transition_id)
    return found


def detach_transitions(timeline: TimelineState, transition_ids: set[str]) -> None:
    """
    Remove the given transitions from every track and clear every scrubber
    reference to them. Works in place on a timeline the caller already cloned.
    """
    if not transition_ids:
        return
    for track in timeline.tracks:
        track.transitions = [t for t in track.transitions if t.id not in transition_ids]
        for scrubber in track.scrubbers:
            if scrubber.left_transition_id in transition_ids:
                scrubber.left_transition_id = None
            if scrubber.right_transition_id in transition_ids:
                scrubber.right_transition_id = None


def connected_transition_ids(timeline: TimelineState, scrubber_ids: set[str]) -> set[str]:
    """Ids of transitions that reference any of the given scrubbers."""
    return {
        transition.id
        for track in timeline.tracks
        for transition in track.transitions
        if transition.left_scrubber_id in scrubber_ids
        or transition.right_scrubber_id in scrubber_ids
    }


def reindex_tracks(timeline: TimelineState) -> None:
    """Set every scrubber's y to the index of the track holding it."""
    for index, track in enumerate(timeline.tracks):
        for scrubber in track.scrubbers:
            scrubber.y = index


# =============================================================================
# DIFF
# =============================================================================


def diff_timelines(before: TimelineState, after: TimelineState) -> TimelineDiff:
    """
    Compare two timeline values and return a structured diff.

    Scrubbers and transitions are matched by id; a scrubber whose fields
    changed (position, trims, track, links) is reported as modified.
    """
    before_tracks = {t.id for t in before.tracks}
    after_tracks = {t.id for t in after.tracks}

    before_scrubbers = {s.id: s for s in before.all_scrubbers()}
    after_scrubbers = {s.id: s for s in after.all_scrubbers()}

    before_transitions = set(before.all_transitions())
    after_transitions = set(after.all_transitions())

    tracks_added = [t.id for t in after.tracks if t.id not in before_tracks]
    tracks_removed = [t.id for t in before.tracks if t.id not in after_tracks]
    scrubbers_added = [sid for sid in after_scrubbers if sid not in before_scrubbers]
    scrubbers_removed = [sid for sid in before_scrubbers if sid not in after_scrubbers]
    scrubbers_modified = [
        sid for sid, scrubber in after_scrubbers.items()
        if sid in before_scrubbers and before_scrubbers[sid] != scrubber
    ]
    transitions_added = sorted(after_transitions - before_transitions)
    transitions_removed = sorted(before_transitions - after_transitions)

    changes = []
    if tracks_added:
        changes.append(f"Added {len(tracks_added)} track(s)")
    if tracks_removed:
        changes.append(f"Removed {len(tracks_removed)} track(s)")
    if scrubbers_added:
        changes.append(f"Added {len(scrubbers_added)} scrubber(s)")
    if scrubbers_removed:
        changes.append(f"Removed {len(scrubbers_removed)} scrubber(s)")
    if scrubbers_modified:
        changes.append(f"Modified {len(scrubbers_modified)} scrubber(s)")
    if transitions_added:
        changes.append(f"Added {len(transitions_added)} transition(s)")
    if transitions_removed:
        changes.append(f"Removed {len(transitions_removed)} transition(s)")
    if before.resolution != after.resolution:
        changes.append(f"Resolution {before.resolution.value} -> {after.resolution.value}")

    return TimelineDiff(
        tracks_added=tracks_added,
        tracks_removed=tracks_removed,
        scrubbers_added=scrubbers_added,
        scrubbers_removed=scrubbers_removed,
        scrubbers_modified=scrubbers_modified,
        transitions_added=transitions_added,
        transitions_removed=transitions_removed,
        summary="; ".join(changes) if changes else "No changes",
    )
