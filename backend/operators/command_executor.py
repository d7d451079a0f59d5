from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from models.timeline_models import EditResult
from operators.timeline_store import TimelineStore

logger = logging.getLogger(__name__)


SUPPORTED_OPERATIONS = (
    "add_track",
    "delete_track",
    "add_scrubber",
    "drop_media",
    "update_scrubber",
    "move_scrubber",
    "delete_scrubber",
    "delete_media",
    "split_scrubber",
    "add_transition",
    "delete_transition",
    "group_scrubbers",
    "ungroup_scrubber",
    "move_group_to_media_bin",
    "begin_transform",
    "zoom_in",
    "zoom_out",
    "zoom_reset",
    "undo",
    "redo",
    "set_resolution",
)


def execute_command(
    store: TimelineStore,
    operation_type: str,
    operation_data: dict[str, Any] | None = None,
) -> EditResult:
    """
    Run one named timeline operation against the store.

    This is the entry point for automated callers (scripts, the chat
    command layer) that describe an edit as (operation_type, operation_data)
    instead of calling store methods directly.
    """
    arguments = operation_data or {}

    try:
        if operation_type == "add_track":
            return store.add_track()

        elif operation_type == "delete_track":
            return store.delete_track(arguments["track_id"])

        elif operation_type == "add_scrubber":
            return store.add_scrubber_to_track(arguments["track_id"], arguments["scrubber"])

        elif operation_type == "drop_media":
            return store.drop_media_on_track(
                arguments["item"],
                arguments["track_id"],
                float(arguments.get("drop_left_px", 0)),
            )

        elif operation_type == "update_scrubber":
            return store.update_scrubber(arguments["scrubber_id"], arguments["update"])

        elif operation_type == "move_scrubber":
            return store.move_scrubber(
                arguments["scrubber_id"],
                float(arguments["left"]),
                arguments.get("y"),
            )

        elif operation_type == "delete_scrubber":
            return store.delete_scrubber(arguments["scrubber_id"])

        elif operation_type == "delete_media":
            return store.delete_scrubbers_by_media_id(arguments["media_id"])

        elif operation_type == "split_scrubber":
            return store.split_scrubber_at_ruler(
                float(arguments["ruler_px"]),
                list(arguments.get("selected_ids", [])),
            )

        elif operation_type == "add_transition":
            return store.add_transition(
                arguments["track_id"],
                arguments.get("template", {}),
                float(arguments["drop_position"]),
            )

        elif operation_type == "delete_transition":
            return store.delete_transition(arguments["transition_id"])

        elif operation_type == "group_scrubbers":
            return store.group_scrubbers(list(arguments["scrubber_ids"]))

        elif operation_type == "ungroup_scrubber":
            return store.ungroup_scrubber(arguments["group_id"])

        elif operation_type == "move_group_to_media_bin":
            return store.move_group_to_media_bin(arguments["group_id"])

        elif operation_type == "begin_transform":
            return store.begin_transform()

        elif operation_type == "zoom_in":
            return store.zoom_in()

        elif operation_type == "zoom_out":
            return store.zoom_out()

        elif operation_type == "zoom_reset":
            return store.zoom_reset()

        elif operation_type == "undo":
            return store.undo()

        elif operation_type == "redo":
            return store.redo()

        elif operation_type == "set_resolution":
            return store.set_resolution(arguments["resolution"])

    except KeyError as e:
        logger.info("%s is missing argument %s", operation_type, e)
        return EditResult(
            ok=False,
            operation_type=operation_type,
            error=f"Missing argument: {e.args[0]}",
            error_code="missing_argument",
        )
    except (TypeError, ValueError) as e:
        if isinstance(e, ValidationError):
            error_code = "validation_error"
        else:
            error_code = "invalid_argument"
        logger.info("%s got an invalid argument: %s", operation_type, e)
        return EditResult(ok=False, operation_type=operation_type, error=str(e), error_code=error_code)

    logger.warning("Unknown timeline operation: %s", operation_type)
    return EditResult(
        ok=False,
        operation_type=operation_type,
        error=f"Unknown operation: {operation_type}",
        error_code="unknown_operation",
    )
