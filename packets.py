"""
Record format constants for the extension ("xt") message family, and the
mapping from record-type tag to the packet hook it triggers.
"""

DELIMITER = "%"
XT_HEADER = "xt"

BUDDY_LIST = "bl"
BUDDY_ADDED = "ba"
BUDDY_ONLINE = "bon"

packets = {
    BUDDY_LIST: "buddy_list",
    BUDDY_ADDED: "buddy_added",
    BUDDY_ONLINE: "buddy_online",
}


class XtMessage:
    """
    An extension message as decoded by the game client. Only these are
    handed to the packet parser; everything else is rejected at the host
    boundary.
    """
    def __init__(self, raw):
        self.raw = raw

    def to_message(self):
        return self.raw

    def __eq__(self, other):
        return isinstance(other, XtMessage) and other.raw == self.raw

    def __hash__(self):
        return hash(self.raw)

    def __repr__(self):
        return "<XtMessage: {!r}>".format(self.raw)
