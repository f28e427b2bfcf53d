import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, ClassVar, Optional

from .exceptions import PacketDecodeError
from .packet import MessageType, Packet, ReturnCode
from .state import SessionState, StateMachine

if TYPE_CHECKING:
    from .transport import Transport

logger = logging.getLogger(__name__)

SHORT_TOPIC_LENGTH = 2

class TopicIdType(IntEnum):
    NORMAL = 0x00
    PREDEFINED = 0x01
    SHORT = 0x02

@dataclass(frozen=True)
class ResolvedTopic:
    topic_id: int
    id_type: TopicIdType

def is_short_topic(name: Optional[str]) -> bool:
    """Two characters of one byte each, packed into a 16-bit topic id"""
    return (name is not None and len(name) == SHORT_TOPIC_LENGTH
            and all(ord(c) <= 0xFF for c in name))

def pack_short_topic(name: str) -> int:
    """Pack a two character topic name: first character high byte, second low byte"""
    if not is_short_topic(name):
        raise ValueError(f"Not a short topic name: {name!r}")
    return (ord(name[0]) << 8) | ord(name[1])

@dataclass
class RegisterPacket(Packet):
    msg_type: ClassVar[int] = MessageType.REGISTER

    topic_name: str
    message_id: int
    topic_id: int = 0

    def encode_body(self) -> bytes:
        packet = bytearray()
        packet.extend(self.topic_id.to_bytes(2, 'big'))
        packet.extend(self.message_id.to_bytes(2, 'big'))
        packet.extend(self.topic_name.encode())
        return bytes(packet)

@dataclass
class RegackPacket(Packet):
    msg_type: ClassVar[int] = MessageType.REGACK

    topic_id: int
    message_id: int
    return_code: int = ReturnCode.ACCEPTED

    def encode_body(self) -> bytes:
        return (self.topic_id.to_bytes(2, 'big')
                + self.message_id.to_bytes(2, 'big')
                + bytes([self.return_code]))

    @classmethod
    def decode(cls, body: bytes) -> 'RegackPacket':
        if len(body) != 5:
            raise PacketDecodeError(f"REGACK body must be 5 bytes, got {len(body)}")
        return cls(
            topic_id=int.from_bytes(body[0:2], 'big'),
            message_id=int.from_bytes(body[2:4], 'big'),
            return_code=body[4]
        )

class TopicResolver:
    """Turn a configured topic into the id used on PUBLISH"""

    def __init__(self, transport: 'Transport', machine: StateMachine):
        self.transport = transport
        self.machine = machine

    async def resolve(self, topic_name: Optional[str] = None, predefined_id: Optional[int] = None,
                      message_id: int = 0) -> ResolvedTopic:
        """Predefined id, packed short name, or a REGISTER round trip, in that order"""
        self.machine.move_to(SessionState.TOPIC_RESOLVING)

        if predefined_id is not None:
            resolved = ResolvedTopic(predefined_id, TopicIdType.PREDEFINED)
            self.machine.move_to(SessionState.PUBLISHING)
        elif is_short_topic(topic_name):
            resolved = ResolvedTopic(pack_short_topic(topic_name), TopicIdType.SHORT)
            self.machine.move_to(SessionState.PUBLISHING)
        else:
            resolved = await self._register(topic_name, message_id)

        logger.debug("Topic resolved to id 0x%04X (%s)", resolved.topic_id, resolved.id_type.name)
        return resolved

    async def _register(self, topic_name: str, message_id: int) -> ResolvedTopic:
        logger.debug("Registering topic %r (message id %d)", topic_name, message_id)
        await self.transport.send(RegisterPacket(topic_name=topic_name, message_id=message_id))

        regack = await self.transport.receive_packet()
        self.machine.advance(regack, message_id=message_id)
        return ResolvedTopic(regack.topic_id, TopicIdType.NORMAL)
