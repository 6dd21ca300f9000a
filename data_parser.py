"""
Buddy record field extraction.

Each parser takes the ordered fields of one delimiter-split record and hands
back the buddies it names, left to right. Records that don't match the
expected shape produce an empty list; nothing here raises on bad input.
"""

import re
from collections import namedtuple

from packets import BUDDY_LIST, BUDDY_ADDED, BUDDY_ONLINE, XT_HEADER

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE)
NUMERIC_PATTERN = re.compile(r"^\d+$")

# %xt%bl%-1%0%...: entries start after the "0" list indicator.
BUDDY_LIST_MIN_FIELDS = 6
BUDDY_LIST_INDICATOR_INDEX = 4
BUDDY_LIST_FIRST_ENTRY = 5

# %xt%ba%<id>%<username>%<uuid>%<status>%...
BUDDY_ADDED_MIN_FIELDS = 7
BUDDY_ADDED_NAME_INDEX = 4
BUDDY_ADDED_STATUS_INDEX = 6

# %xt%bon%<id>%<username>%...
BUDDY_ONLINE_MIN_FIELDS = 5
BUDDY_ONLINE_NAME_INDEX = 4

STATUS_ONLINE = "online"
STATUS_UNKNOWN = "unknown"


BuddyObservation = namedtuple("BuddyObservation", ["username", "status"])


def is_uuid(token):
    return bool(token) and UUID_PATTERN.match(token) is not None


def _has_header(fields, tag, min_fields):
    return (len(fields) >= min_fields and fields[1] == XT_HEADER
            and fields[2] == tag)


def _find_uuid(fields, start):
    for index in range(start, len(fields)):
        if is_uuid(fields[index]):
            return index
    return -1


def parse_buddy_list(fields):
    """
    Walk an initial buddy list. Every entry is bracketed by its buddy's UUID:
    the field before the UUID is the username and the field after it is the
    status.

    :param fields: Delimiter-split record.
    :return: List of BuddyObservation.
    """
    if not _has_header(fields, BUDDY_LIST, BUDDY_LIST_MIN_FIELDS):
        return []
    if fields[BUDDY_LIST_INDICATOR_INDEX] != "0":
        return []

    found = []
    start = BUDDY_LIST_FIRST_ENTRY
    while start < len(fields):
        uuid_index = _find_uuid(fields, start)
        if uuid_index == -1:
            break
        # The candidate must sit after the previous UUID, never on it.
        if uuid_index > start:
            username = fields[uuid_index - 1]
            if uuid_index + 1 < len(fields) and fields[uuid_index + 1]:
                status = fields[uuid_index + 1]
            else:
                status = STATUS_UNKNOWN
            if (username and not NUMERIC_PATTERN.match(username)
                    and not is_uuid(username)):
                found.append(BuddyObservation(username, status))
        start = uuid_index + 1
    return found


def parse_buddy_added(fields):
    if not _has_header(fields, BUDDY_ADDED, BUDDY_ADDED_MIN_FIELDS):
        return []
    username = fields[BUDDY_ADDED_NAME_INDEX]
    if not username:
        return []
    status = fields[BUDDY_ADDED_STATUS_INDEX] or STATUS_ONLINE
    return [BuddyObservation(username, status)]


def parse_buddy_online(fields):
    if not _has_header(fields, BUDDY_ONLINE, BUDDY_ONLINE_MIN_FIELDS):
        return []
    username = fields[BUDDY_ONLINE_NAME_INDEX]
    if not username:
        return []
    return [BuddyObservation(username, STATUS_ONLINE)]


parse_map = {
    BUDDY_LIST: parse_buddy_list,
    BUDDY_ADDED: parse_buddy_added,
    BUDDY_ONLINE: parse_buddy_online,
}


def extract(record_type, fields):
    """
    Hand the record to the parser for its type.

    :param record_type: Record-type tag, eg - "bl".
    :param fields: Delimiter-split record.
    :return: List of BuddyObservation; empty for unknown types.
    """
    parser = parse_map.get(record_type)
    if parser is None:
        return []
    return parser(list(fields))
