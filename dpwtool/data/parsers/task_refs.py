"""Recognize Tasking Manager project/task references in free text.

Supported task URLs:
- https://tasks.hotosm.org/projects/12345/tasks/678
- https://tasks.hotosm.org/projects/12345#task/678
- tasks.hotosm.org/projects/12345            (project only)

Changeset comments carry ``#hotosm-project-12345-task-678``.
"""

import re

from dpwtool.models.records import TaskRef

_TM_URL_RE = re.compile(
    r"(?:https?://)?(?:www\.)?tasks\.hotosm\.org/projects/(\d+)(?:/tasks/(\d+))?"
)
_CHANGESET_COMMENT_RE = re.compile(r"#hotosm-project-(\d+)-task-(\d+)")


def parse_task_manager_url(url: str | None) -> TaskRef | None:
    """Extract (project, task?) from a pasted Tasking Manager URL."""
    if not url or not url.strip():
        return None
    normalized = url.strip().replace("#task/", "/tasks/")
    match = _TM_URL_RE.search(normalized)
    if match is None:
        return None
    task = match.group(2)
    return TaskRef(
        project_id=int(match.group(1)),
        task_id=int(task) if task is not None else None,
    )


def parse_changeset_comment(comment: str | None) -> TaskRef | None:
    """Extract (project, task) from a ``#hotosm-project-P-task-T`` tag."""
    if not comment or not comment.strip():
        return None
    match = _CHANGESET_COMMENT_RE.search(comment)
    if match is None:
        return None
    return TaskRef(project_id=int(match.group(1)), task_id=int(match.group(2)))


def has_task_manager_info(comment: str | None) -> bool:
    """Whether a changeset comment references a Tasking Manager task."""
    return parse_changeset_comment(comment) is not None
