"""Parse Tasking Manager task responses and detect the task's mapper.

Mapper detection runs in two passes:

1. ``taskHistory`` from most recent to oldest: the ``actionBy`` of the first
   ``STATE_CHANGE`` whose ``actionText`` contains MAPPED or BADIMAGERY.
2. ``properties.mappedBy``.

A task with neither is reported as a business-rule failure, not a parse
error: it usually means nobody has mapped it yet.
"""

from dpwtool.data.json_scan import (
    find_array_body,
    find_object,
    find_string_field,
    split_top_level_objects,
)
from dpwtool.models.outcome import BusinessRuleError, Success
from dpwtool.models.records import TaskInfo

_MAPPED_MARKERS = ("MAPPED", "BADIMAGERY")

NO_MAPPER_MESSAGE = "No mapper found for this task. Task may not be mapped yet."


def _mapper_from_history(json: str) -> str | None:
    history = find_array_body(json, "taskHistory")
    if history is None:
        return None
    for entry in reversed(split_top_level_objects(history)):
        if find_string_field(entry, "action") != "STATE_CHANGE":
            continue
        action_text = find_string_field(entry, "actionText") or ""
        if any(marker in action_text for marker in _MAPPED_MARKERS):
            return find_string_field(entry, "actionBy")
    return None


def _mapper_from_properties(json: str) -> str | None:
    properties = find_object(json, "properties")
    if properties is None:
        return None
    return find_string_field(properties, "mappedBy")


def find_mapper(json: str) -> str | None:
    """Username of the task's mapper, or None."""
    mapper = _mapper_from_history(json)
    if not mapper:
        mapper = _mapper_from_properties(json)
    if not mapper or not mapper.strip():
        return None
    return mapper.strip()


def parse_task_info(json: str, project_id: int, task_id: int) -> Success[TaskInfo] | BusinessRuleError:
    """Build TaskInfo from a ``/projects/{P}/tasks/{T}/`` response."""
    status = find_string_field(json, "taskStatus") or "UNKNOWN"
    mapper = find_mapper(json)
    if mapper is None:
        return BusinessRuleError(NO_MAPPER_MESSAGE)
    return Success(TaskInfo(
        project_id=project_id,
        task_id=task_id,
        mapper_username=mapper,
        status=status,
    ))
