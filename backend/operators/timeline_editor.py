import logging

from models.timeline_models import (
    MediaBinItem,
    MediaType,
    Resolution,
    Scrubber,
    ScrubberUpdate,
    TimelineState,
    TrackState,
    generate_id,
)
from operators.collision_operator import check_collision, resolve_collision
from operators.group_operator import remap_grouped_ids
from operators.timeline_operator import (
    CollisionError,
    InvalidOperationError,
    clone_timeline,
    connected_transition_ids,
    detach_transitions,
    get_scrubber,
    get_track,
    get_track_at,
    reindex_tracks,
)
from utils.coordinates import frames_to_pixels, pixels_to_frames
from utils.settings import TIMELINE_FPS

logger = logging.getLogger(__name__)

MIN_DROP_WIDTH = 20
TEXT_DROP_WIDTH = 80
IMAGE_DROP_WIDTH = 100
DEFAULT_DROP_WIDTH = 150
DEFAULT_PLAYER_OFFSET = 100


def _drop_width(item: MediaBinItem, pixels_per_second: float) -> float:
    if item.media_type == MediaType.TEXT:
        width = TEXT_DROP_WIDTH
    elif item.media_type == MediaType.IMAGE:
        width = IMAGE_DROP_WIDTH
    elif item.duration_in_seconds and item.media_type in (
        MediaType.VIDEO,
        MediaType.AUDIO,
        MediaType.COMPOSITE,
    ):
        width = item.duration_in_seconds * pixels_per_second
    else:
        width = DEFAULT_DROP_WIDTH
    return max(MIN_DROP_WIDTH, width)


def _player_size(item: MediaBinItem) -> tuple[float, float]:
    if item.media_type != MediaType.TEXT:
        return item.media_width, item.media_height

    font_size = item.text.font_size if item.text else 48
    length = len(item.text.text_content) if item.text and item.text.text_content else 10
    width = item.media_width or max(200, length * font_size * 0.6)
    height = item.media_height or max(80, font_size * 1.5)
    return width, height


def _place(timeline: TimelineState, scrubber: Scrubber) -> None:
    """Put `scrubber` on track scrubber.y, replacing any scrubber with its id."""
    for track in timeline.tracks:
        for position, existing in enumerate(track.scrubbers):
            if existing.id != scrubber.id:
                continue
            if track is timeline.tracks[scrubber.y]:
                track.scrubbers[position] = scrubber
                return
            del track.scrubbers[position]
            break
    timeline.tracks[scrubber.y].scrubbers.append(scrubber)


def validate_trim(scrubber: Scrubber, pixels_per_second: float) -> None:
    """Trims plus the visible frames must fit in the source duration (1 frame slack)."""
    trim_before = scrubber.trim_before or 0
    trim_after = scrubber.trim_after or 0
    if trim_before < 0 or trim_after < 0:
        raise InvalidOperationError("Trims cannot be negative", "trim_out_of_range")
    if not scrubber.duration_in_seconds or (not trim_before and not trim_after):
        return

    total_frames = round(scrubber.duration_in_seconds * TIMELINE_FPS)
    visible_frames = round(scrubber.width / pixels_per_second * TIMELINE_FPS)
    if trim_before + visible_frames + trim_after > total_frames + 1:
        raise InvalidOperationError(
            f"Trim of {trim_before}+{trim_after} frames leaves no room for "
            f"{visible_frames} visible frames of {total_frames}",
            "trim_out_of_range",
        )


# =============================================================================
# TRACKS
# =============================================================================


def add_track(timeline: TimelineState) -> tuple[TimelineState, TrackState]:
    new_timeline = clone_timeline(timeline)
    track = TrackState(id=generate_id())
    new_timeline.tracks.append(track)
    return new_timeline, track


def remove_track(timeline: TimelineState, track_id: str) -> TimelineState:
    """Delete a track, its scrubbers and transitions; later tracks move up."""
    index, track = get_track(timeline, track_id)
    new_timeline = clone_timeline(timeline)

    removed = {s.id for s in track.scrubbers}
    del new_timeline.tracks[index]
    # loaded state may carry cross-track links
    detach_transitions(new_timeline, connected_transition_ids(new_timeline, removed))
    reindex_tracks(new_timeline)
    return new_timeline


# =============================================================================
# SCRUBBERS
# =============================================================================


def add_scrubber(timeline: TimelineState, track_id: str, scrubber: Scrubber) -> TimelineState:
    index, _ = get_track(timeline, track_id)
    if timeline.find_scrubber(scrubber.id) is not None:
        raise InvalidOperationError(
            f"Scrubber {scrubber.id} is already on the timeline",
            "duplicate_scrubber",
        )

    placed = scrubber.model_copy(deep=True, update={"y": index})
    if check_collision(timeline, placed):
        raise CollisionError(f"Scrubber {scrubber.id} would overlap another scrubber")

    new_timeline = clone_timeline(timeline)
    new_timeline.tracks[index].scrubbers.append(placed)
    return new_timeline


def drop_media(
    timeline: TimelineState,
    item: MediaBinItem,
    track_id: str,
    drop_left_px: float,
    pixels_per_second: float,
    timeline_width: float,
) -> tuple[TimelineState, Scrubber]:
    """
    Create a scrubber from a media entry dropped on a track.

    A composite entry gets fresh ids for all its children and the
    transitions between them. If the drop spot is taken, the scrubber snaps
    next to the blocking scrubber.
    """
    index, _ = get_track(timeline, track_id)

    children, child_transitions = None, None
    if item.media_type == MediaType.COMPOSITE:
        children, child_transitions = remap_grouped_ids(
            item.groupped_scrubbers or [],
            item.groupped_transitions,
            timeline.all_transitions(),
        )

    player_width, player_height = _player_size(item)
    scrubber = Scrubber(
        id=generate_id(),
        name=item.name,
        media_type=item.media_type,
        media_url_local=item.media_url_local,
        media_url_remote=item.media_url_remote,
        media_width=item.media_width,
        media_height=item.media_height,
        duration_in_seconds=item.duration_in_seconds,
        text=item.text.model_copy() if item.text else None,
        source_media_bin_id=item.id,
        left=max(0.0, drop_left_px),
        width=_drop_width(item, pixels_per_second),
        y=index,
        groupped_scrubbers=children,
        groupped_transitions=child_transitions,
        left_player=DEFAULT_PLAYER_OFFSET,
        top_player=DEFAULT_PLAYER_OFFSET,
        width_player=player_width,
        height_player=player_height,
    )

    placed = resolve_collision(timeline, scrubber, None, timeline_width)
    if placed is None:
        raise CollisionError(f"No room for {item.name or item.id} near {drop_left_px:.0f}px")

    new_timeline = clone_timeline(timeline)
    new_timeline.tracks[index].scrubbers.append(placed)
    return new_timeline, placed


def update_scrubber(
    timeline: TimelineState,
    scrubber_id: str,
    update: ScrubberUpdate,
    pixels_per_second: float,
) -> TimelineState:
    index, scrubber = get_scrubber(timeline, scrubber_id)

    changes = update.model_dump(exclude_unset=True)
    for key in ("left", "width", "y", "name", "is_dragging"):
        if changes.get(key, 0) is None:
            del changes[key]
    if "text" in changes and update.text is not None:
        changes["text"] = update.text.model_copy()

    updated = scrubber.model_copy(deep=True, update=changes)
    if updated.y != index:
        get_track_at(timeline, updated.y)
        if scrubber.transition_ids:
            raise InvalidOperationError(
                "Remove the transitions of this scrubber before moving it to another track",
                "linked_track_change",
            )

    validate_trim(updated, pixels_per_second)

    for transition_id in scrubber.transition_ids:
        found = timeline.find_transition(transition_id)
        if found is None:
            continue
        if frames_to_pixels(found[1].duration_in_frames, pixels_per_second) > updated.width:
            raise InvalidOperationError(
                f"Scrubber {scrubber_id} would be shorter than transition {transition_id}",
                "transition_too_long",
            )

    if check_collision(timeline, updated):
        raise CollisionError(f"Scrubber {scrubber_id} would overlap another scrubber")

    new_timeline = clone_timeline(timeline)
    _place(new_timeline, updated)
    return new_timeline


def place_scrubber(timeline: TimelineState, scrubber: Scrubber) -> TimelineState:
    """Commit an already-resolved position for an existing scrubber."""
    get_scrubber(timeline, scrubber.id)
    get_track_at(timeline, scrubber.y)
    new_timeline = clone_timeline(timeline)
    _place(new_timeline, scrubber.model_copy(deep=True))
    return new_timeline


def delete_scrubber(timeline: TimelineState, scrubber_id: str) -> tuple[TimelineState, set[str]]:
    """Delete a scrubber and every transition referencing it."""
    index, _ = get_scrubber(timeline, scrubber_id)
    removed_transitions = connected_transition_ids(timeline, {scrubber_id})

    new_timeline = clone_timeline(timeline)
    track = new_timeline.tracks[index]
    track.scrubbers = [s for s in track.scrubbers if s.id != scrubber_id]
    detach_transitions(new_timeline, removed_transitions)
    return new_timeline, removed_transitions


def delete_scrubbers_by_media(
    timeline: TimelineState,
    media_id: str,
) -> tuple[TimelineState, list[str], set[str]]:
    """Delete every top-level scrubber created from the media entry."""
    removed = [s.id for s in timeline.all_scrubbers() if s.source_media_bin_id == media_id]
    if not removed:
        return timeline, [], set()

    removed_set = set(removed)
    removed_transitions = connected_transition_ids(timeline, removed_set)

    new_timeline = clone_timeline(timeline)
    for track in new_timeline.tracks:
        track.scrubbers = [s for s in track.scrubbers if s.id not in removed_set]
    detach_transitions(new_timeline, removed_transitions)
    return new_timeline, removed, removed_transitions


def set_resolution(timeline: TimelineState, resolution: Resolution) -> TimelineState:
    new_timeline = clone_timeline(timeline)
    new_timeline.resolution = resolution
    return new_timeline


def rescale_timeline(timeline: TimelineState, ratio: float) -> TimelineState:
    """
    Multiply every top-level pixel position and width by ratio. Composite
    children keep their grouping-time geometry; ungroup scales them from the
    composite's width.
    """
    new_timeline = clone_timeline(timeline)
    if ratio == 1:
        return new_timeline
    for scrubber in new_timeline.all_scrubbers():
        scrubber.left *= ratio
        scrubber.width *= ratio
    return new_timeline


# =============================================================================
# SPLIT
# =============================================================================


def _linked_overlaps(
    timeline: TimelineState,
    scrubber: Scrubber,
    transition_ids: set[str],
) -> tuple[float, float]:
    """Pixels of `scrubber` covered by the neighbours it is linked to, on each side."""
    left_overlap = right_overlap = 0.0
    for transition_id in transition_ids:
        _, transition = timeline.find_transition(transition_id)
        if transition.right_scrubber_id == scrubber.id and transition.left_scrubber_id:
            found = timeline.find_scrubber(transition.left_scrubber_id)
            if found is not None:
                left_overlap = max(left_overlap, found[1].right - scrubber.left)
        if transition.left_scrubber_id == scrubber.id and transition.right_scrubber_id:
            found = timeline.find_scrubber(transition.right_scrubber_id)
            if found is not None:
                right_overlap = max(right_overlap, scrubber.right - found[1].left)
    return left_overlap, right_overlap


def split_scrubber(
    timeline: TimelineState,
    ruler_px: float,
    selected_ids: list[str],
    pixels_per_second: float,
) -> tuple[TimelineState, int]:
    """
    Cut the single selected scrubber in two at the ruler position.

    The first piece keeps the original trim_before and trims everything after
    the cut; the second piece starts at the cut frame and keeps the original
    trim_after. Both pieces get fresh ids.

    Transitions attached to the scrubber are dropped without moving any
    scrubber. Where a linked neighbour overlapped the scrubber, that span is
    trimmed off the outer edge of the touching piece, so the cut stays at
    the ruler and nothing overlaps once the link is gone.
    """
    if not selected_ids:
        raise InvalidOperationError("Select a scrubber to split", "no_selection")
    if len(selected_ids) > 1:
        raise InvalidOperationError("Select only one scrubber to split", "multiple_selection")

    scrubber_id = selected_ids[0]
    _, scrubber = get_scrubber(timeline, scrubber_id)
    if ruler_px <= scrubber.left or ruler_px >= scrubber.right:
        raise InvalidOperationError(
            "The ruler is not inside the selected scrubber",
            "split_out_of_bounds",
        )
    offset_px = ruler_px - scrubber.left

    linked = connected_transition_ids(timeline, {scrubber_id})
    left_overlap, right_overlap = _linked_overlaps(timeline, scrubber, linked)
    if ruler_px <= scrubber.left + left_overlap or ruler_px >= scrubber.right - right_overlap:
        raise InvalidOperationError(
            "The ruler is inside a transition of the selected scrubber",
            "split_in_transition",
        )

    new_timeline = clone_timeline(timeline)
    detach_transitions(new_timeline, linked)
    index, scrubber = get_scrubber(new_timeline, scrubber_id)

    trim_before = scrubber.trim_before or 0
    trim_after = scrubber.trim_after or 0
    visible_frames = round(scrubber.width / pixels_per_second * TIMELINE_FPS)
    if scrubber.duration_in_seconds:
        total_frames = round(scrubber.duration_in_seconds * TIMELINE_FPS)
    else:
        total_frames = trim_before + visible_frames + trim_after
    split_frame = trim_before + round(offset_px / pixels_per_second * TIMELINE_FPS)

    first = scrubber.model_copy(
        deep=True,
        update={
            "id": generate_id(),
            "left": scrubber.left + left_overlap,
            "width": offset_px - left_overlap,
            "trim_before": trim_before + round(pixels_to_frames(left_overlap, pixels_per_second)),
            "trim_after": max(0, total_frames - split_frame),
            "left_transition_id": None,
            "right_transition_id": None,
        },
    )
    second = scrubber.model_copy(
        deep=True,
        update={
            "id": generate_id(),
            "left": scrubber.left + offset_px,
            "width": scrubber.width - offset_px - right_overlap,
            "trim_before": split_frame,
            "trim_after": trim_after + round(pixels_to_frames(right_overlap, pixels_per_second)),
            "left_transition_id": None,
            "right_transition_id": None,
        },
    )

    if scrubber.is_composite and scrubber.groupped_scrubbers:
        # both halves own the children; give the second half its own ids
        second.groupped_scrubbers, second.groupped_transitions = remap_grouped_ids(
            scrubber.groupped_scrubbers, scrubber.groupped_transitions
        )
        second.groupped_transitions = second.groupped_transitions or None

    track = new_timeline.tracks[index]
    position = next(i for i, s in enumerate(track.scrubbers) if s.id == scrubber_id)
    track.scrubbers[position:position + 1] = [first, second]

    logger.debug("Split %s at %.1fpx into %s and %s", scrubber_id, ruler_px, first.id, second.id)
    return new_timeline, 1
