from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from .exceptions import PacketDecodeError

class MessageType(IntEnum):
    ADVERTISE = 0x00
    SEARCHGW = 0x01
    GWINFO = 0x02
    CONNECT = 0x04
    CONNACK = 0x05
    WILLTOPICREQ = 0x06
    WILLTOPIC = 0x07
    WILLMSGREQ = 0x08
    WILLMSG = 0x09
    REGISTER = 0x0A
    REGACK = 0x0B
    PUBLISH = 0x0C
    PUBACK = 0x0D
    PUBCOMP = 0x0E
    PUBREC = 0x0F
    PUBREL = 0x10
    SUBSCRIBE = 0x12
    SUBACK = 0x13
    UNSUBSCRIBE = 0x14
    UNSUBACK = 0x15
    PINGREQ = 0x16
    PINGRESP = 0x17
    DISCONNECT = 0x18
    WILLTOPICUPD = 0x1A
    WILLTOPICRESP = 0x1B
    WILLMSGUPD = 0x1C
    WILLMSGRESP = 0x1D

class ReturnCode(IntEnum):
    ACCEPTED = 0x00
    CONGESTION = 0x01
    INVALID_TOPIC_ID = 0x02
    NOT_SUPPORTED = 0x03

# Flags byte
FLAG_DUP = 0x80
FLAG_QOS_N1 = 0x60
FLAG_QOS_0 = 0x00
FLAG_QOS_1 = 0x20
FLAG_QOS_2 = 0x40
FLAG_RETAIN = 0x10
FLAG_WILL = 0x08
FLAG_CLEAN = 0x04
FLAG_TOPIC_TYPE_MASK = 0x03

PROTOCOL_ID = 0x01

# A leading 0x01 announces a three byte length field
LONG_HEADER_MARKER = 0x01
MAX_SHORT_FRAME = 0xFF
MAX_FRAME = 0xFFFF

class Packet:
    """Base class of every MQTT-SN packet"""
    msg_type: int

    def encode_body(self) -> bytes:
        raise NotImplementedError

    def encode(self) -> bytes:
        """Encode the packet into a complete MQTT-SN frame"""
        return encode_frame(self.msg_type, self.encode_body())

@dataclass
class GenericPacket(Packet):
    """A packet the client does not model in detail"""
    msg_type: int
    body: bytes = b''

    def encode_body(self) -> bytes:
        return self.body

def encode_frame(msg_type: int, body: bytes) -> bytes:
    """Prefix a message body with the MQTT-SN length and type header"""
    length = 2 + len(body)
    if length <= MAX_SHORT_FRAME:
        return bytes([length, msg_type]) + body

    length += 2  # the extra length bytes are counted too
    if length > MAX_FRAME:
        raise ValueError(f"Packet too large: {length} bytes (max {MAX_FRAME})")
    return bytes([LONG_HEADER_MARKER]) + length.to_bytes(2, 'big') + bytes([msg_type]) + body

def decode_frame(data: bytes) -> Tuple[int, bytes]:
    """Split a datagram into (message type, body), checking the length field"""
    if len(data) < 2:
        raise PacketDecodeError(f"Datagram too short: {len(data)} bytes")

    if data[0] == LONG_HEADER_MARKER:
        if len(data) < 4:
            raise PacketDecodeError(f"Long header truncated: {len(data)} bytes")
        length = int.from_bytes(data[1:3], 'big')
        pos = 3
    else:
        length = data[0]
        pos = 1

    if length != len(data):
        raise PacketDecodeError(
            f"Length field ({length}) does not match datagram size ({len(data)})"
        )

    return data[pos], bytes(data[pos + 1:])

def message_type_name(msg_type) -> str:
    """Readable name for a message type, tolerating unknown values"""
    if msg_type is None:
        return "nothing"
    try:
        return MessageType(msg_type).name
    except ValueError:
        return f"0x{msg_type:02X}"

def describe_return_code(code: int) -> str:
    try:
        return ReturnCode(code).name.lower().replace('_', ' ')
    except ValueError:
        return f"return code 0x{code:02X}"
