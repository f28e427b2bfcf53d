import asyncio
import logging
from typing import Optional, Protocol, Tuple, Union

from .codec import decode_packet
from .exceptions import PacketDecodeError, TransportError
from .packet import Packet, message_type_name

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0  # seconds

class Transport(Protocol):
    async def send(self, packet: Packet) -> None: ...

    async def receive_packet(self) -> Optional[Packet]: ...

    async def close(self) -> None: ...

class _GatewayProtocol(asyncio.DatagramProtocol):
    """Queue every datagram (or socket error) for the session to pick up"""

    def __init__(self):
        self.queue: "asyncio.Queue[Union[bytes, Exception]]" = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self.queue.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        self.queue.put_nowait(exc)

class UDPTransport:
    def __init__(self, transport: asyncio.DatagramTransport, protocol: _GatewayProtocol,
                 timeout: float = DEFAULT_TIMEOUT):
        self._transport = transport
        self._protocol = protocol
        self.timeout = timeout

    @classmethod
    async def open(cls, host: str, port: int, timeout: float = DEFAULT_TIMEOUT) -> 'UDPTransport':
        """Create a UDP endpoint bound to the gateway address"""
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await loop.create_datagram_endpoint(
                _GatewayProtocol, remote_addr=(host, port)
            )
        except OSError as exc:
            raise TransportError(f"Could not open UDP socket to {host}:{port}: {exc}") from exc
        logger.debug("UDP endpoint open to %s:%d", host, port)
        return cls(transport, protocol, timeout)

    @property
    def closed(self) -> bool:
        return self._transport.is_closing()

    async def send(self, packet: Packet) -> None:
        data = packet.encode()
        logger.debug("Sending %s: %s", message_type_name(packet.msg_type), data.hex())
        self._transport.sendto(data)

    async def receive_packet(self) -> Optional[Packet]:
        """Next packet from the gateway, or None on timeout or an undecodable datagram"""
        try:
            item = await asyncio.wait_for(self._protocol.queue.get(), self.timeout)
        except asyncio.TimeoutError:
            logger.debug("Timed out after %ss waiting for a packet", self.timeout)
            return None

        if isinstance(item, Exception):
            raise TransportError(f"Receive failed: {item}") from item

        logger.debug("Received %d bytes: %s", len(item), item.hex())
        try:
            return decode_packet(item)
        except PacketDecodeError as e:
            logger.warning("Dropping malformed packet: %s", e)
            return None

    async def close(self) -> None:
        if not self._transport.is_closing():
            self._transport.close()
            logger.debug("UDP endpoint closed")
