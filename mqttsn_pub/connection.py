import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Optional

from .exceptions import DisconnectAckError, PacketDecodeError, TransportError
from .packet import (
    FLAG_CLEAN,
    FLAG_RETAIN,
    FLAG_WILL,
    PROTOCOL_ID,
    MessageType,
    Packet,
    ReturnCode,
)
from .state import SessionState, StateMachine
from .will_message import QoSLevel, WillMessage

if TYPE_CHECKING:
    from .transport import Transport

logger = logging.getLogger(__name__)

MAX_CLIENT_ID_LENGTH = 23
DEFAULT_CLIENT_ID_PREFIX = "mqtt-sn-tools-"

def default_client_id() -> str:
    """Client ID used when none was configured"""
    return f"{DEFAULT_CLIENT_ID_PREFIX}{os.getpid()}"

def _expect_empty(name: str, body: bytes) -> None:
    if body:
        raise PacketDecodeError(f"{name} carries no body, got {len(body)} bytes")

@dataclass
class ConnectPacket(Packet):
    msg_type: ClassVar[int] = MessageType.CONNECT

    client_id: str
    clean_session: bool = True
    will: bool = False
    keep_alive: int = 1

    def encode_body(self) -> bytes:
        """Encode flags, protocol id, duration and client id"""
        flags = 0
        if self.clean_session:
            flags |= FLAG_CLEAN
        if self.will:
            flags |= FLAG_WILL

        packet = bytearray([flags, PROTOCOL_ID])
        packet.extend(self.keep_alive.to_bytes(2, 'big'))
        packet.extend(self.client_id.encode())
        return bytes(packet)

@dataclass
class ConnackPacket(Packet):
    msg_type: ClassVar[int] = MessageType.CONNACK

    return_code: int = ReturnCode.ACCEPTED

    def encode_body(self) -> bytes:
        return bytes([self.return_code])

    @classmethod
    def decode(cls, body: bytes) -> 'ConnackPacket':
        if len(body) != 1:
            raise PacketDecodeError(f"CONNACK body must be 1 byte, got {len(body)}")
        return cls(return_code=body[0])

@dataclass
class WillTopicReqPacket(Packet):
    msg_type: ClassVar[int] = MessageType.WILLTOPICREQ

    def encode_body(self) -> bytes:
        return b''

    @classmethod
    def decode(cls, body: bytes) -> 'WillTopicReqPacket':
        _expect_empty("WILLTOPICREQ", body)
        return cls()

@dataclass
class WillTopicPacket(Packet):
    msg_type: ClassVar[int] = MessageType.WILLTOPIC

    topic: str
    qos: QoSLevel = QoSLevel.AT_LEAST_ONCE
    retain: bool = True

    @classmethod
    def from_will(cls, will: WillMessage) -> 'WillTopicPacket':
        return cls(topic=will.topic, qos=will.qos, retain=will.retain)

    def encode_body(self) -> bytes:
        flags = QoSLevel(self.qos).flags
        if self.retain:
            flags |= FLAG_RETAIN
        return bytes([flags]) + self.topic.encode()

@dataclass
class WillMsgReqPacket(Packet):
    msg_type: ClassVar[int] = MessageType.WILLMSGREQ

    def encode_body(self) -> bytes:
        return b''

    @classmethod
    def decode(cls, body: bytes) -> 'WillMsgReqPacket':
        _expect_empty("WILLMSGREQ", body)
        return cls()

@dataclass
class WillMsgPacket(Packet):
    msg_type: ClassVar[int] = MessageType.WILLMSG

    payload: bytes = b''

    def encode_body(self) -> bytes:
        return self.payload

@dataclass
class DisconnectPacket(Packet):
    msg_type: ClassVar[int] = MessageType.DISCONNECT

    duration: Optional[int] = None

    def encode_body(self) -> bytes:
        if self.duration is None:
            return b''
        return self.duration.to_bytes(2, 'big')

    @classmethod
    def decode(cls, body: bytes) -> 'DisconnectPacket':
        if not body:
            return cls()
        if len(body) != 2:
            raise PacketDecodeError(f"DISCONNECT duration must be 2 bytes, got {len(body)}")
        return cls(duration=int.from_bytes(body, 'big'))

class ConnectionHandler:
    """Client side of CONNECT (with the optional will sub-handshake) and DISCONNECT"""

    def __init__(self, transport: 'Transport', machine: StateMachine):
        self.transport = transport
        self.machine = machine

    async def connect(self, client_id: Optional[str] = None, keep_alive: int = 1,
                      will: Optional[WillMessage] = None) -> None:
        """Connect to the gateway; any unexpected answer is fatal"""
        packet = ConnectPacket(
            client_id=client_id or default_client_id(),
            clean_session=True,
            will=will is not None,
            keep_alive=keep_alive
        )
        self.machine.move_to(SessionState.CONNECTING)
        logger.debug("Connecting as %r (keep alive %ss)", packet.client_id, keep_alive)
        await self.transport.send(packet)

        if will is not None:
            # WILLTOPICREQ -> WILLTOPIC, WILLMSGREQ -> WILLMSG
            self.machine.advance(await self.transport.receive_packet())
            await self.transport.send(WillTopicPacket.from_will(will))

            self.machine.advance(await self.transport.receive_packet())
            await self.transport.send(WillMsgPacket(payload=will.payload))

        self.machine.advance(await self.transport.receive_packet())
        logger.info("Connected to gateway as %r", packet.client_id)

    async def disconnect(self) -> bool:
        """Send DISCONNECT; returns False when the gateway did not acknowledge it"""
        await self.transport.send(DisconnectPacket())
        try:
            self.machine.advance(await self.transport.receive_packet())
        except (DisconnectAckError, TransportError) as e:
            logger.warning("DISCONNECT not acked: %s", e)
            self.machine.move_to(SessionState.DONE)
            return False
        logger.debug("Disconnected from gateway")
        return True
