"""Records parsed out of backend responses.

Pure data holders: the parsers in dpwtool.data.parsers build them, the
workflow layer reads them.
"""

from pydantic import Field

from dpwtool.models.common import UNKNOWN_ID, DPWBase


class UserRecord(DPWBase):
    """A mapper or validator known to the DPW Manager."""

    osm_username: str = Field(..., min_length=1)
    settlement: str = ""
    user_id: int = Field(default=UNKNOWN_ID, description="-1 when the backend did not send one.")


class TaskRef(DPWBase):
    """Project/task pair recognized in a URL or changeset comment."""

    project_id: int
    task_id: int | None = None


class TaskInfo(DPWBase):
    """Tasking Manager task with its detected mapper."""

    project_id: int = UNKNOWN_ID
    task_id: int = UNKNOWN_ID
    mapper_username: str | None = None
    status: str = "UNKNOWN"


class SubmissionReceipt(DPWBase):
    """Body of a 201 from the validation-log endpoint."""

    log_id: int = Field(..., gt=0)
    mapper_name: str = ""
    validator_name: str = ""


class ReleaseInfo(DPWBase):
    """Latest published release of the plugin."""

    version: str
    name: str = ""
    notes: str = ""
    download_url: str | None = None


class UpdateInfo(DPWBase):
    """Result of comparing the latest release with the running version."""

    update_available: bool
    latest_version: str
    current_version: str
    release_name: str = ""
    release_notes: str = ""
    download_url: str | None = None
