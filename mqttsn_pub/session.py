import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from .config import SessionConfig
from .connection import ConnectionHandler
from .exceptions import MQTTSNError
from .publish import MAX_RETRIES, RETRY_INTERVAL, PublishHandler
from .register import ResolvedTopic, TopicResolver
from .state import SessionState, StateMachine
from .transport import Transport, UDPTransport

logger = logging.getLogger(__name__)

@dataclass
class SessionResult:
    final_state: SessionState
    topic: ResolvedTopic
    publish_attempts: int = 1
    disconnect_acked: Optional[bool] = None
    warnings: List[str] = field(default_factory=list)

class PublishSession:
    """One connect / resolve / publish / disconnect run against a gateway.

    The transport is closed exactly once when :meth:`run` returns or raises.
    Fatal errors propagate to the caller; retried publishes and an
    unacknowledged DISCONNECT end up in ``SessionResult.warnings``.
    """

    def __init__(self, config: SessionConfig, transport: Transport,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 retry_interval: float = RETRY_INTERVAL, max_retries: int = MAX_RETRIES):
        self.config = config
        self.transport = transport
        self.machine = StateMachine(will=config.will is not None)
        self.connection = ConnectionHandler(transport, self.machine)
        self.resolver = TopicResolver(transport, self.machine)
        self.publisher = PublishHandler(transport, self.machine, sleep=sleep,
                                        retry_interval=retry_interval, max_retries=max_retries)
        self.next_message_id: int = 1

    @property
    def state(self) -> SessionState:
        return self.machine.state

    def _get_next_message_id(self) -> int:
        message_id = self.next_message_id
        self.next_message_id = (self.next_message_id % 0xFFFF) + 1  # 0 is not a valid id
        return message_id

    async def run(self) -> SessionResult:
        try:
            return await self._run()
        except MQTTSNError:
            self.machine.fail()
            raise
        finally:
            await self.transport.close()

    async def _run(self) -> SessionResult:
        config = self.config
        warnings: List[str] = []

        if config.has_session:
            await self.connection.connect(config.client_id, config.keep_alive, config.will)
        else:
            logger.debug("QoS -1: publishing without a session")

        topic = await self.resolver.resolve(
            topic_name=config.topic.name,
            predefined_id=config.topic.predefined_id,
            message_id=self._get_next_message_id()
        )

        attempts = await self.publisher.publish(
            topic,
            config.payload,
            qos=config.qos,
            retain=config.retain,
            message_id=self._get_next_message_id()
        )
        if attempts > 1:
            warnings.append(f"publish required {attempts} attempts")

        disconnect_acked = None
        if config.has_session:
            disconnect_acked = await self.connection.disconnect()
            if not disconnect_acked:
                warnings.append("DISCONNECT not acked")

        return SessionResult(
            final_state=self.machine.state,
            topic=topic,
            publish_attempts=attempts,
            disconnect_acked=disconnect_acked,
            warnings=warnings
        )

async def run_session(config: SessionConfig,
                      sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> SessionResult:
    """Open a UDP transport to the configured gateway and run one session"""
    transport = await UDPTransport.open(config.host, config.port, timeout=config.timeout)
    return await PublishSession(config, transport, sleep=sleep).run()
