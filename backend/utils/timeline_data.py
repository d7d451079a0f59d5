from models.timeline_models import (
    TimelineDataItem,
    TimelineDataScrubber,
    TimelineState,
)


def build_timeline_data(timeline: TimelineState, pixels_per_second: float) -> TimelineDataItem:
    """
    Flatten the timeline into the render view: pixel geometry becomes
    absolute seconds, every transition is keyed by id.
    """
    scrubbers = []
    for track_index, track in enumerate(timeline.tracks):
        for scrubber in track.scrubbers:
            start_time = scrubber.left / pixels_per_second
            duration = scrubber.width / pixels_per_second
            scrubbers.append(
                TimelineDataScrubber(
                    id=scrubber.id,
                    media_type=scrubber.media_type,
                    media_url_local=scrubber.media_url_local,
                    media_url_remote=scrubber.media_url_remote,
                    width=scrubber.width,
                    start_time=start_time,
                    end_time=start_time + duration,
                    duration=duration,
                    track_id=track.id,
                    track_index=track_index,
                    media_width=scrubber.media_width,
                    media_height=scrubber.media_height,
                    text=scrubber.text,
                    left_player=scrubber.left_player,
                    top_player=scrubber.top_player,
                    width_player=scrubber.width_player,
                    height_player=scrubber.height_player,
                    trim_before=scrubber.trim_before,
                    trim_after=scrubber.trim_after,
                    left_transition_id=scrubber.left_transition_id,
                    right_transition_id=scrubber.right_transition_id,
                    groupped_scrubbers=scrubber.groupped_scrubbers,
                )
            )

    transitions = dict(timeline.all_transitions())
    for track in timeline.tracks:
        for scrubber in track.scrubbers:
            for transition in scrubber.groupped_transitions or []:
                transitions.setdefault(transition.id, transition)

    return TimelineDataItem(
        scrubbers=scrubbers,
        transitions=transitions,
        resolution=timeline.resolution,
        width=timeline.resolution.width,
        height=timeline.resolution.height,
    )
