import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, ClassVar

from .exceptions import PacketDecodeError, PublishAckError, PublishNotAckedError
from .packet import (
    FLAG_DUP,
    FLAG_QOS_N1,
    FLAG_RETAIN,
    FLAG_TOPIC_TYPE_MASK,
    MessageType,
    Packet,
    ReturnCode,
)
from .register import ResolvedTopic, TopicIdType
from .state import SessionState, StateMachine
from .will_message import QoSLevel

if TYPE_CHECKING:
    from .transport import Transport

logger = logging.getLogger(__name__)

RETRY_INTERVAL = 1.0  # seconds
MAX_RETRIES = 10

@dataclass
class PublishPacket(Packet):
    msg_type: ClassVar[int] = MessageType.PUBLISH

    topic_id: int
    id_type: TopicIdType
    payload: bytes
    qos: QoSLevel = QoSLevel.AT_MOST_ONCE
    retain: bool = False
    dup: bool = False
    message_id: int = 0

    def encode_body(self) -> bytes:
        """Encode flags, topic id, message id and payload"""
        flags = QoSLevel(self.qos).flags | (self.id_type & FLAG_TOPIC_TYPE_MASK)
        if self.dup:
            flags |= FLAG_DUP
        if self.retain:
            flags |= FLAG_RETAIN

        packet = bytearray([flags])
        packet.extend(self.topic_id.to_bytes(2, 'big'))
        packet.extend(self.message_id.to_bytes(2, 'big'))
        packet.extend(self.payload)
        return bytes(packet)

    @classmethod
    def decode(cls, body: bytes) -> 'PublishPacket':
        if len(body) < 5:
            raise PacketDecodeError(f"PUBLISH body too short: {len(body)} bytes")
        flags = body[0]
        qos_bits = flags & FLAG_QOS_N1
        qos = next((level for level in QoSLevel if level.flags == qos_bits), None)
        if qos is None:
            raise PacketDecodeError(f"Unsupported PUBLISH QoS flags 0x{qos_bits:02X}")
        try:
            id_type = TopicIdType(flags & FLAG_TOPIC_TYPE_MASK)
        except ValueError:
            raise PacketDecodeError(f"Reserved topic id type {flags & FLAG_TOPIC_TYPE_MASK}") from None
        return cls(
            topic_id=int.from_bytes(body[1:3], 'big'),
            id_type=id_type,
            payload=bytes(body[5:]),
            qos=qos,
            retain=bool(flags & FLAG_RETAIN),
            dup=bool(flags & FLAG_DUP),
            message_id=int.from_bytes(body[3:5], 'big')
        )

@dataclass
class PubackPacket(Packet):
    msg_type: ClassVar[int] = MessageType.PUBACK

    topic_id: int
    message_id: int
    return_code: int = ReturnCode.ACCEPTED

    def encode_body(self) -> bytes:
        return (self.topic_id.to_bytes(2, 'big')
                + self.message_id.to_bytes(2, 'big')
                + bytes([self.return_code]))

    @classmethod
    def decode(cls, body: bytes) -> 'PubackPacket':
        if len(body) != 5:
            raise PacketDecodeError(f"PUBACK body must be 5 bytes, got {len(body)}")
        return cls(
            topic_id=int.from_bytes(body[0:2], 'big'),
            message_id=int.from_bytes(body[2:4], 'big'),
            return_code=body[4]
        )

class PublishHandler:
    def __init__(self, transport: 'Transport', machine: StateMachine,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 retry_interval: float = RETRY_INTERVAL, max_retries: int = MAX_RETRIES):
        self.transport = transport
        self.machine = machine
        self.sleep = sleep
        self.retry_interval = retry_interval
        self.max_retries = max_retries

    async def publish(self, topic: ResolvedTopic, payload: bytes, qos: QoSLevel = QoSLevel.AT_MOST_ONCE,
                      retain: bool = False, message_id: int = 0) -> int:
        """Publish once, or until acknowledged for QoS 1; returns the number of sends"""
        packet = PublishPacket(
            topic_id=topic.topic_id,
            id_type=topic.id_type,
            payload=payload,
            qos=qos,
            retain=retain,
            message_id=message_id if qos == QoSLevel.AT_LEAST_ONCE else 0
        )
        logger.debug("Publishing %d bytes to topic id 0x%04X at QoS %d",
                     len(payload), topic.topic_id, qos)
        await self.transport.send(packet)

        if qos != QoSLevel.AT_LEAST_ONCE:
            # Nothing to wait for; QoS -1 never opened a session to close
            if qos == QoSLevel.FIRE_AND_FORGET:
                self.machine.move_to(SessionState.DONE)
            else:
                self.machine.move_to(SessionState.DISCONNECTING)
            return 1

        return await self._wait_for_puback(packet)

    async def _wait_for_puback(self, packet: PublishPacket) -> int:
        """Resend the same packet after each missing or rejected PUBACK"""
        attempts = 1
        while True:
            try:
                self.machine.advance(await self.transport.receive_packet(), message_id=packet.message_id)
                break
            except PublishAckError as e:
                if attempts > self.max_retries:
                    logger.error("QoS 1 publish not acked, tried %d times", attempts)
                    self.machine.fail()
                    raise PublishNotAckedError(attempts) from e
                logger.warning("QoS 1 publish not acked (%s), retrying (%d/%d)",
                               e, attempts, self.max_retries)

            self.machine.move_to(SessionState.PUBLISH_RETRY)
            await self.sleep(self.retry_interval)
            await self.transport.send(packet)
            attempts += 1

        if attempts > 1:
            logger.warning("Publish required %d attempts, but was successful", attempts)
        return attempts
