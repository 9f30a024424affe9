"""Parse DPW Manager user responses.

List endpoint shape: {"success": true, "data": [{osm_username, settlement,
user_id}, ...], "count": N}.
"""

import logging

from dpwtool.data.json_scan import (
    find_array_body,
    find_int_field,
    find_string_field,
    split_top_level_objects,
)
from dpwtool.models.common import UNKNOWN_ID
from dpwtool.models.outcome import BusinessRuleError, ParseError, Success
from dpwtool.models.records import UserRecord

logger = logging.getLogger(__name__)


def parse_user_list(json: str) -> Success[list[UserRecord]] | ParseError:
    """Parse the authorized-mapper list.

    Records without an ``osm_username`` are skipped; ``settlement`` defaults
    to "" and ``user_id`` to -1.
    """
    data = find_array_body(json, "data")
    if data is None:
        return ParseError("No 'data' array in response")

    users: list[UserRecord] = []
    for entry in split_top_level_objects(data):
        username = find_string_field(entry, "osm_username")
        if not username or not username.strip():
            logger.debug("Skipping user record without osm_username")
            continue
        settlement = find_string_field(entry, "settlement") or ""
        user_id = find_int_field(entry, "user_id")
        users.append(UserRecord(
            osm_username=username,
            settlement=settlement,
            user_id=user_id if user_id is not None else UNKNOWN_ID,
        ))
    return Success(users)


def parse_user_id(json: str, osm_username: str) -> Success[int] | BusinessRuleError:
    """Extract ``user_id`` from a lookup-by-username response."""
    user_id = find_int_field(json, "user_id")
    if user_id is None or user_id <= 0:
        return BusinessRuleError(f"No user_id found for {osm_username}")
    return Success(user_id)
