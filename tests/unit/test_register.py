import unittest
from unittest.mock import AsyncMock, Mock

# add package into path, upper level two from this file
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from mqttsn_pub.exceptions import RegistrationError
from mqttsn_pub.packet import ReturnCode
from mqttsn_pub.register import (
    RegackPacket,
    RegisterPacket,
    ResolvedTopic,
    TopicIdType,
    TopicResolver,
    is_short_topic,
    pack_short_topic,
)
from mqttsn_pub.state import SessionState, StateMachine

class TestShortTopics(unittest.TestCase):
    """Test suite for two character topic names"""

    def test_pack_short_topic(self):
        """First character in the high byte, second in the low byte"""
        self.assertEqual(pack_short_topic("AB"), 0x4142)
        self.assertEqual(pack_short_topic("AB"), (ord('A') << 8) | ord('B'))
        self.assertEqual(pack_short_topic("t1"), 0x7431)
        self.assertEqual(pack_short_topic("é1"), 0xE931)

    def test_is_short_topic(self):
        self.assertTrue(is_short_topic("ab"))
        self.assertFalse(is_short_topic("a"))
        self.assertFalse(is_short_topic("abc"))
        self.assertFalse(is_short_topic(None))
        self.assertTrue(is_short_topic("é!"))
        self.assertFalse(is_short_topic("€!"))

    def test_pack_rejects_long_name(self):
        with self.assertRaises(ValueError):
            pack_short_topic("abc")

class TestTopicResolver(unittest.IsolatedAsyncioTestCase):
    """Test suite for resolving a topic to its 16-bit id"""

    async def asyncSetUp(self):
        self.transport = Mock()
        self.transport.send = AsyncMock()
        self.transport.receive_packet = AsyncMock()
        self.machine = StateMachine()
        self.resolver = TopicResolver(self.transport, self.machine)

    async def test_predefined_topic(self):
        """Pre-defined ids are used without a round trip"""
        resolved = await self.resolver.resolve(predefined_id=7)

        self.assertEqual(resolved, ResolvedTopic(7, TopicIdType.PREDEFINED))
        self.transport.send.assert_not_awaited()
        self.transport.receive_packet.assert_not_awaited()
        self.assertEqual(self.machine.state, SessionState.PUBLISHING)

    async def test_short_topic(self):
        resolved = await self.resolver.resolve(topic_name="AB")

        self.assertEqual(resolved, ResolvedTopic(0x4142, TopicIdType.SHORT))
        self.transport.send.assert_not_awaited()

    async def test_register_topic(self):
        """Longer names are registered and the REGACK id is used"""
        self.transport.receive_packet.return_value = RegackPacket(topic_id=9, message_id=3)

        resolved = await self.resolver.resolve(topic_name="sensors/temp", message_id=3)

        self.assertEqual(resolved, ResolvedTopic(9, TopicIdType.NORMAL))
        self.transport.send.assert_awaited_once_with(
            RegisterPacket(topic_name="sensors/temp", message_id=3)
        )
        self.assertEqual(self.machine.state, SessionState.PUBLISHING)

    async def test_missing_regack(self):
        self.transport.receive_packet.return_value = None

        with self.assertRaises(RegistrationError) as ctx:
            await self.resolver.resolve(topic_name="sensors/temp", message_id=1)

        self.assertEqual(ctx.exception.expected, "REGACK")
        self.assertEqual(self.machine.state, SessionState.FAILED)

    async def test_rejected_regack(self):
        self.transport.receive_packet.return_value = RegackPacket(
            topic_id=0,
            message_id=1,
            return_code=ReturnCode.NOT_SUPPORTED
        )

        with self.assertRaises(RegistrationError) as ctx:
            await self.resolver.resolve(topic_name="sensors/temp", message_id=1)

        self.assertEqual(ctx.exception.reason, "not supported")

    async def test_regack_for_other_message(self):
        self.transport.receive_packet.return_value = RegackPacket(topic_id=9, message_id=4)

        with self.assertRaises(RegistrationError):
            await self.resolver.resolve(topic_name="sensors/temp", message_id=1)

if __name__ == '__main__':
    unittest.main()
