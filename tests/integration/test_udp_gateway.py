import asyncio
import unittest
from unittest.mock import AsyncMock

# Add package into path
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from mqttsn_pub.config import resolve_config
from mqttsn_pub.connection import ConnackPacket, DisconnectPacket, WillMsgReqPacket, WillTopicReqPacket
from mqttsn_pub.exceptions import HandshakeError, TransportError
from mqttsn_pub.packet import FLAG_WILL, MessageType, decode_frame
from mqttsn_pub.publish import PubackPacket, PublishPacket
from mqttsn_pub.register import RegackPacket, TopicIdType
from mqttsn_pub.session import run_session
from mqttsn_pub.state import SessionState
from mqttsn_pub.will_message import QoSLevel

class FakeGateway(asyncio.DatagramProtocol):
    """Minimal MQTT-SN gateway answering on the loopback interface"""

    def __init__(self, dropped_pubacks: int = 0):
        self.dropped_pubacks = dropped_pubacks
        self.received = []
        self.published = []
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        msg_type, body = decode_frame(data)
        self.received.append(msg_type)
        reply = self.reply_for(msg_type, body)
        if reply is not None:
            self.transport.sendto(reply.encode(), addr)

    def reply_for(self, msg_type, body):
        if msg_type == MessageType.CONNECT:
            return WillTopicReqPacket() if body[0] & FLAG_WILL else ConnackPacket()
        if msg_type == MessageType.WILLTOPIC:
            return WillMsgReqPacket()
        if msg_type == MessageType.WILLMSG:
            return ConnackPacket()
        if msg_type == MessageType.REGISTER:
            return RegackPacket(topic_id=0x0101, message_id=int.from_bytes(body[2:4], 'big'))
        if msg_type == MessageType.PUBLISH:
            packet = PublishPacket.decode(body)
            self.published.append(packet)
            if packet.qos != QoSLevel.AT_LEAST_ONCE:
                return None
            if self.dropped_pubacks:
                self.dropped_pubacks -= 1
                return None
            return PubackPacket(topic_id=packet.topic_id, message_id=packet.message_id)
        if msg_type == MessageType.DISCONNECT:
            return DisconnectPacket()
        return None

class TestUDPGateway(unittest.IsolatedAsyncioTestCase):
    """Integration test suite running sessions over real UDP sockets"""

    async def start_gateway(self, **kwargs) -> int:
        loop = asyncio.get_running_loop()
        transport, self.gateway = await loop.create_datagram_endpoint(
            lambda: FakeGateway(**kwargs), local_addr=("127.0.0.1", 0)
        )
        self.addCleanup(transport.close)
        return transport.get_extra_info('sockname')[1]

    async def wait_for_datagrams(self, count: int) -> None:
        for _ in range(100):
            if len(self.gateway.received) >= count:
                return
            await asyncio.sleep(0.01)

    async def test_qos0_session(self):
        port = await self.start_gateway()
        config = resolve_config(topic_name="sensors/temp", message="21.5", port=port, timeout=2.0)

        result = await run_session(config)

        self.assertEqual(self.gateway.received, [
            MessageType.CONNECT,
            MessageType.REGISTER,
            MessageType.PUBLISH,
            MessageType.DISCONNECT,
        ])
        self.assertEqual(self.gateway.published[0].topic_id, 0x0101)
        self.assertEqual(self.gateway.published[0].payload, b"21.5")
        self.assertEqual(result.final_state, SessionState.DONE)
        self.assertTrue(result.disconnect_acked)

    async def test_qos1_session_with_lost_puback(self):
        port = await self.start_gateway(dropped_pubacks=1)
        config = resolve_config(topic_name="ab", message="x", qos=1, port=port, timeout=0.2,
                                will_topic="clients/gone", will_message="bye")

        with self.assertLogs('mqttsn_pub.publish', level='WARNING'):
            result = await run_session(config, sleep=AsyncMock())

        self.assertEqual(result.publish_attempts, 2)
        self.assertEqual(len(self.gateway.published), 2)
        self.assertEqual(self.gateway.published[0], self.gateway.published[1])
        self.assertEqual(self.gateway.published[0].id_type, TopicIdType.SHORT)
        self.assertEqual(self.gateway.received[:3], [
            MessageType.CONNECT,
            MessageType.WILLTOPIC,
            MessageType.WILLMSG,
        ])

    async def test_qos_minus_one_session(self):
        port = await self.start_gateway()
        config = resolve_config(topic_id=9, message="x", qos=-1, port=port)

        result = await run_session(config)
        await self.wait_for_datagrams(1)

        self.assertEqual(self.gateway.received, [MessageType.PUBLISH])
        self.assertEqual(self.gateway.published[0].qos, QoSLevel.FIRE_AND_FORGET)
        self.assertEqual(result.final_state, SessionState.DONE)

    async def test_no_gateway(self):
        """Nothing listening: the CONNACK never arrives or the OS refuses the datagram"""
        port = await self.start_gateway()
        self.gateway.transport.close()
        config = resolve_config(topic_name="ab", message="x", port=port, timeout=0.2)

        with self.assertRaises((HandshakeError, TransportError)):
            await run_session(config)

if __name__ == '__main__':
    unittest.main()
