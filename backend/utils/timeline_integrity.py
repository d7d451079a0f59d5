"""
Consistency checks for timeline values that arrive from outside the
operators (loaded state, hand-built fixtures).
"""

from __future__ import annotations

from models.timeline_models import TimelineState


def find_integrity_issues(timeline: TimelineState) -> list[str]:
    """
    Return a human-readable message for every broken invariant:
    stale track indices, duplicate ids, unlicensed overlaps and transition
    references that do not resolve or do not agree on both sides.
    """
    issues: list[str] = []
    seen: set[str] = set()

    for index, track in enumerate(timeline.tracks):
        by_id = {s.id: s for s in track.scrubbers}
        transitions = {t.id: t for t in track.transitions}

        for scrubber in track.scrubbers:
            if scrubber.id in seen:
                issues.append(f"Duplicate scrubber id {scrubber.id}")
            seen.add(scrubber.id)

            if scrubber.y != index:
                issues.append(
                    f"Scrubber {scrubber.id} has y={scrubber.y} but sits on track {index}"
                )

            for side, transition_id in (
                ("left", scrubber.left_transition_id),
                ("right", scrubber.right_transition_id),
            ):
                if transition_id is not None and transition_id not in transitions:
                    issues.append(
                        f"Scrubber {scrubber.id} {side} transition {transition_id} is not on its track"
                    )

        for transition in track.transitions:
            if transition.left_scrubber_id is not None:
                left = by_id.get(transition.left_scrubber_id)
                if left is None:
                    issues.append(
                        f"Transition {transition.id} left scrubber {transition.left_scrubber_id} is missing"
                    )
                elif left.right_transition_id != transition.id:
                    issues.append(
                        f"Scrubber {left.id} does not point back to transition {transition.id}"
                    )
            if transition.right_scrubber_id is not None:
                right = by_id.get(transition.right_scrubber_id)
                if right is None:
                    issues.append(
                        f"Transition {transition.id} right scrubber {transition.right_scrubber_id} is missing"
                    )
                elif right.left_transition_id != transition.id:
                    issues.append(
                        f"Scrubber {right.id} does not point back to transition {transition.id}"
                    )

        linked = {
            frozenset(t.scrubber_ids) for t in track.transitions if len(t.scrubber_ids) == 2
        }
        ordered = track.sorted_scrubbers()
        for position, scrubber in enumerate(ordered):
            for other in ordered[position + 1:]:
                if other.left >= scrubber.right:
                    break
                if frozenset((scrubber.id, other.id)) not in linked:
                    issues.append(
                        f"Scrubbers {scrubber.id} and {other.id} overlap on track {index}"
                    )

    return issues
