"""
Group engine.

Collapses several scrubbers into one composite scrubber and expands a
composite back into its children. Composites own deep copies of their
children plus the transitions that ran between them; transitions crossing
the group boundary are removed when grouping.
"""

from __future__ import annotations

import logging

from models.timeline_models import (
    MediaBinItem,
    MediaType,
    Scrubber,
    TimelineState,
    Transition,
    generate_id,
)
from operators.collision_operator import check_collision
from operators.timeline_operator import (
    CollisionError,
    InvalidOperationError,
    clone_timeline,
    detach_transitions,
    get_scrubber,
)

logger = logging.getLogger(__name__)

GROUP_MEDIA_HEIGHT = 60


# =============================================================================
# ID REMAPPING
# =============================================================================


def _collect_scrubber_ids(scrubbers: list[Scrubber], id_map: dict[str, str]) -> None:
    for scrubber in scrubbers:
        id_map[scrubber.id] = generate_id()
        if scrubber.groupped_scrubbers:
            _collect_scrubber_ids(scrubber.groupped_scrubbers, id_map)


def _rewrite_transition(
    transition: Transition,
    new_id: str,
    scrubber_ids: dict[str, str],
) -> Transition | None:
    """Point the copy at the copied scrubbers; endpoints outside the copy are cleared."""
    left_id = scrubber_ids.get(transition.left_scrubber_id) if transition.left_scrubber_id else None
    right_id = scrubber_ids.get(transition.right_scrubber_id) if transition.right_scrubber_id else None
    if left_id is None and right_id is None:
        return None
    return transition.model_copy(
        deep=True,
        update={"id": new_id, "left_scrubber_id": left_id, "right_scrubber_id": right_id},
    )


def _rewrite_level(
    scrubbers: list[Scrubber],
    transitions: list[Transition],
    lookup: dict[str, Transition],
    scrubber_ids: dict[str, str],
) -> tuple[list[Scrubber], list[Transition]]:
    available = {**lookup, **{t.id: t for t in transitions}}

    transition_ids: dict[str, str] = {}
    for transition in transitions:
        transition_ids.setdefault(transition.id, generate_id())
    for scrubber in scrubbers:
        for transition_id in scrubber.transition_ids:
            if transition_id in available:
                transition_ids.setdefault(transition_id, generate_id())
            else:
                logger.warning(
                    "Dropping reference from %s to unknown transition %s",
                    scrubber.id,
                    transition_id,
                )

    new_transitions = []
    for old_id, new_id in list(transition_ids.items()):
        rewritten = _rewrite_transition(available[old_id], new_id, scrubber_ids)
        if rewritten is None:
            logger.warning("Dropping transition %s with no endpoint inside the copy", old_id)
            del transition_ids[old_id]
            continue
        new_transitions.append(rewritten)

    new_scrubbers = []
    for scrubber in scrubbers:
        children = child_transitions = None
        if scrubber.groupped_scrubbers is not None:
            children, child_transitions = _rewrite_level(
                scrubber.groupped_scrubbers,
                scrubber.groupped_transitions or [],
                {},
                scrubber_ids,
            )
        new_scrubbers.append(
            scrubber.model_copy(
                deep=True,
                update={
                    "id": scrubber_ids[scrubber.id],
                    "left_transition_id": transition_ids.get(scrubber.left_transition_id),
                    "right_transition_id": transition_ids.get(scrubber.right_transition_id),
                    "groupped_scrubbers": children,
                    "groupped_transitions": child_transitions or None,
                },
            )
        )

    return new_scrubbers, new_transitions


def remap_grouped_ids(
    scrubbers: list[Scrubber],
    transitions: list[Transition] | None = None,
    lookup: dict[str, Transition] | None = None,
) -> tuple[list[Scrubber], list[Transition]]:
    """
    Copy a composite's children (and the transitions between them) with
    fresh ids, at every nesting depth.

    First pass assigns a new id to every scrubber in the tree; second pass
    rewrites scrubbers and transitions through the id maps so every link
    among the copies points at the copies. Transition references that
    resolve neither in `transitions` nor in `lookup` are dropped, and
    transition endpoints outside the copied tree are cleared.
    """
    scrubber_ids: dict[str, str] = {}
    _collect_scrubber_ids(scrubbers, scrubber_ids)
    return _rewrite_level(scrubbers, transitions or [], lookup or {}, scrubber_ids)


# =============================================================================
# GROUP / UNGROUP
# =============================================================================


def group_scrubbers(
    timeline: TimelineState,
    scrubber_ids: list[str],
    pixels_per_second: float,
) -> tuple[TimelineState, Scrubber]:
    """
    Replace the selected scrubbers with one composite scrubber.

    The composite spans from the leftmost start to the rightmost end and
    sits on the topmost selected track. Transitions whose endpoints are all
    inside the selection move into the composite; transitions crossing the
    boundary are deleted.

    Raises:
        InvalidOperationError: fewer than two known scrubbers were selected.
        CollisionError: the composite span would overlap another scrubber.
    """
    selected: list[Scrubber] = []
    for scrubber_id in dict.fromkeys(scrubber_ids):
        found = timeline.find_scrubber(scrubber_id)
        if found is None:
            logger.warning("Ignoring unknown scrubber %s in group selection", scrubber_id)
            continue
        selected.append(found[1])

    if len(selected) < 2:
        raise InvalidOperationError(
            "Select at least two scrubbers to group",
            "group_needs_two",
        )

    inside = {s.id for s in selected}
    leftmost = min(s.left for s in selected)
    rightmost = max(s.right for s in selected)
    topmost = min(s.y for s in selected)

    new_timeline = clone_timeline(timeline)

    internal: list[Transition] = []
    boundary: set[str] = set()
    for track in new_timeline.tracks:
        for transition in track.transitions:
            endpoints = transition.scrubber_ids
            if all(sid in inside for sid in endpoints):
                internal.append(transition)
            elif any(sid in inside for sid in endpoints):
                boundary.add(transition.id)

    detach_transitions(new_timeline, boundary)
    internal_ids = {t.id for t in internal}
    for track in new_timeline.tracks:
        track.transitions = [t for t in track.transitions if t.id not in internal_ids]

    children = sorted(
        (s for s in new_timeline.all_scrubbers() if s.id in inside),
        key=lambda s: s.left,
    )
    for track in new_timeline.tracks:
        track.scrubbers = [s for s in track.scrubbers if s.id not in inside]

    width = rightmost - leftmost
    composite = Scrubber(
        id=generate_id(),
        name="Group: " + " + ".join(s.name for s in children),
        media_type=MediaType.COMPOSITE,
        media_width=width,
        media_height=GROUP_MEDIA_HEIGHT,
        duration_in_seconds=width / pixels_per_second,
        source_media_bin_id=generate_id(),
        left=leftmost,
        width=width,
        y=topmost,
        groupped_scrubbers=children,
        groupped_transitions=internal,
    )

    if check_collision(new_timeline, composite):
        raise CollisionError(
            "The group would overlap another scrubber on its track",
            "group_collision",
        )

    new_timeline.tracks[topmost].scrubbers.append(composite)
    logger.info(
        "Grouped %d scrubbers into %s (%d internal, %d boundary transitions removed)",
        len(children),
        composite.id,
        len(internal),
        len(boundary),
    )
    return new_timeline, composite


def ungroup_scrubber(
    timeline: TimelineState,
    group_id: str,
) -> tuple[TimelineState, list[Scrubber]]:
    """
    Expand a composite back into its children.

    Children keep their relative positions, scaled to the composite's current
    width and shifted by its current position and track. A child whose track
    falls outside the timeline lands on the nearest existing track. The
    composite's internal transitions are restored.

    Raises:
        ScrubberNotFoundError: unknown group id.
        InvalidOperationError: the scrubber is not a composite.
        CollisionError: a restored child would overlap another scrubber.
    """
    track_index, group = get_scrubber(timeline, group_id)
    if not group.is_composite or not group.groupped_scrubbers:
        raise InvalidOperationError(f"Scrubber {group_id} is not a group", "not_a_group")

    children = group.groupped_scrubbers
    original_left = min(c.left for c in children)
    original_right = max(c.right for c in children)
    original_top = min(c.y for c in children)
    original_width = original_right - original_left

    scale = group.width / original_width if original_width > 0 else 1.0
    y_offset = group.y - original_top

    new_timeline = clone_timeline(timeline)
    host = new_timeline.tracks[track_index]
    host.scrubbers = [s for s in host.scrubbers if s.id != group_id]

    last_track = len(new_timeline.tracks) - 1
    restored: list[Scrubber] = []
    for child in children:
        target_y = min(max(child.y + y_offset, 0), last_track)
        restored_child = child.model_copy(
            deep=True,
            update={
                "left": group.left + (child.left - original_left) * scale,
                "width": child.width * scale,
                "y": target_y,
            },
        )
        new_timeline.tracks[target_y].scrubbers.append(restored_child)
        restored.append(restored_child)

    positions = {c.id: c.y for c in restored}
    for transition in group.groupped_transitions or []:
        endpoint = next((sid for sid in transition.scrubber_ids if sid in positions), None)
        if endpoint is None:
            logger.warning(
                "Dropping grouped transition %s with no restored endpoint",
                transition.id,
            )
            continue
        new_timeline.tracks[positions[endpoint]].transitions.append(
            transition.model_copy(deep=True)
        )

    for child in restored:
        if check_collision(new_timeline, child):
            raise CollisionError(
                f"Ungrouped scrubber {child.id} would overlap another scrubber",
                "ungroup_collision",
            )

    logger.info("Ungrouped %s into %d scrubbers", group_id, len(restored))
    return new_timeline, restored


# =============================================================================
# MEDIA BIN
# =============================================================================


def scrubber_to_media_bin_item(scrubber: Scrubber, pixels_per_second: float) -> MediaBinItem:
    """Turn a composite scrubber into a reusable media entry."""
    return MediaBinItem(
        id=scrubber.id,
        name=scrubber.name or "Grouped Media",
        media_type=MediaType.COMPOSITE,
        media_width=scrubber.media_width,
        media_height=scrubber.media_height,
        duration_in_seconds=scrubber.width / pixels_per_second,
        groupped_scrubbers=[c.model_copy(deep=True) for c in scrubber.groupped_scrubbers or []],
        groupped_transitions=[t.model_copy(deep=True) for t in scrubber.groupped_transitions or []],
    )


def move_group_to_media_bin(
    timeline: TimelineState,
    group_id: str,
    pixels_per_second: float,
) -> tuple[TimelineState, MediaBinItem]:
    """
    Remove a composite from the timeline and return it as a media entry.

    Raises:
        ScrubberNotFoundError: unknown group id.
        InvalidOperationError: the scrubber is not a composite.
    """
    track_index, group = get_scrubber(timeline, group_id)
    if not group.is_composite:
        raise InvalidOperationError(f"Scrubber {group_id} is not a group", "not_a_group")

    item = scrubber_to_media_bin_item(group, pixels_per_second)

    new_timeline = clone_timeline(timeline)
    detach_transitions(new_timeline, set(group.transition_ids))
    track = new_timeline.tracks[track_index]
    track.scrubbers = [s for s in track.scrubbers if s.id != group_id]
    return new_timeline, item
