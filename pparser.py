import logging

from configuration_manager import ConfigurationManager
from data_parser import extract
from packets import DELIMITER, XT_HEADER, XtMessage, packets
from utilities import Direction

logger = logging.getLogger("buddylog.pparser")


class PacketParser:
    """
    Object for framing and parsing buddy records handed over by the host.
    """
    def __init__(self, config: ConfigurationManager = None):
        self.config = config

    def frame(self, message, direction=Direction.TO_CLIENT):
        """
        Check that the host handed us an extension message, split it on the
        record delimiter and work out which record type it carries. Anything
        that isn't a buddy record comes back as None.

        :param message: Decoded message object from the host.
        :param direction: Which way the message was travelling.
        :return: Packet dictionary, or None.
        """
        if not isinstance(message, XtMessage):
            return None
        raw = message.to_message()
        if not isinstance(raw, str):
            return None
        fields = raw.split(DELIMITER)
        if len(fields) < 3 or fields[1] != XT_HEADER:
            return None
        if fields[2] not in packets:
            return None
        return {"type": fields[2],
                "fields": fields,
                "original_data": raw,
                "direction": direction}

    def parse(self, packet):
        """
        Given a framed packet, extract the buddies it names into
        packet["parsed"]. Packets which were parsed upstream (console
        commands, for instance) are passed back untouched.

        :param packet: Framed packet.
        :return: Fully parsed packet.
        """
        if "parsed" in packet:
            return packet
        try:
            packet["parsed"] = extract(packet["type"], packet["fields"])
        except Exception:
            logger.exception("Error during parsing of %r.",
                             packet.get("original_data"))
            packet["parsed"] = []
        return packet
