import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Type

from .exceptions import (
    DisconnectAckError,
    HandshakeError,
    ProtocolError,
    PublishAckError,
    RegistrationError,
)
from .packet import MessageType, Packet, ReturnCode, describe_return_code, message_type_name

logger = logging.getLogger(__name__)

class SessionState(Enum):
    INIT = "init"
    CONNECTING = "connecting"
    WILL_TOPIC = "will_topic"
    WILL_MESSAGE = "will_message"
    CONNECTED = "connected"
    TOPIC_RESOLVING = "topic_resolving"
    PUBLISHING = "publishing"
    PUBLISH_RETRY = "publish_retry"
    DISCONNECTING = "disconnecting"
    DONE = "done"
    FAILED = "failed"

TERMINAL_STATES: FrozenSet[SessionState] = frozenset({SessionState.DONE, SessionState.FAILED})

# Packet each waiting state expects next
_EXPECTED: Dict[SessionState, MessageType] = {
    SessionState.CONNECTING: MessageType.CONNACK,
    SessionState.WILL_TOPIC: MessageType.WILLMSGREQ,
    SessionState.WILL_MESSAGE: MessageType.CONNACK,
    SessionState.TOPIC_RESOLVING: MessageType.REGACK,
    SessionState.PUBLISHING: MessageType.PUBACK,
    SessionState.PUBLISH_RETRY: MessageType.PUBACK,
    SessionState.DISCONNECTING: MessageType.DISCONNECT,
}

_ON_RECEIVE: Dict[Tuple[SessionState, MessageType], SessionState] = {
    (SessionState.CONNECTING, MessageType.CONNACK): SessionState.CONNECTED,
    (SessionState.CONNECTING, MessageType.WILLTOPICREQ): SessionState.WILL_TOPIC,
    (SessionState.WILL_TOPIC, MessageType.WILLMSGREQ): SessionState.WILL_MESSAGE,
    (SessionState.WILL_MESSAGE, MessageType.CONNACK): SessionState.CONNECTED,
    (SessionState.TOPIC_RESOLVING, MessageType.REGACK): SessionState.PUBLISHING,
    (SessionState.PUBLISHING, MessageType.PUBACK): SessionState.DISCONNECTING,
    (SessionState.PUBLISH_RETRY, MessageType.PUBACK): SessionState.DISCONNECTING,
    (SessionState.DISCONNECTING, MessageType.DISCONNECT): SessionState.DONE,
}

_FAILURES: Dict[SessionState, Type[ProtocolError]] = {
    SessionState.CONNECTING: HandshakeError,
    SessionState.WILL_TOPIC: HandshakeError,
    SessionState.WILL_MESSAGE: HandshakeError,
    SessionState.TOPIC_RESOLVING: RegistrationError,
    SessionState.PUBLISHING: PublishAckError,
    SessionState.PUBLISH_RETRY: PublishAckError,
    SessionState.DISCONNECTING: DisconnectAckError,
}

# Moves made after sending, without waiting for the gateway
_MOVES: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.INIT: frozenset({SessionState.CONNECTING, SessionState.TOPIC_RESOLVING}),
    SessionState.CONNECTED: frozenset({SessionState.TOPIC_RESOLVING}),
    SessionState.TOPIC_RESOLVING: frozenset({SessionState.PUBLISHING}),
    SessionState.PUBLISHING: frozenset({
        SessionState.PUBLISH_RETRY, SessionState.DISCONNECTING, SessionState.DONE,
    }),
    SessionState.PUBLISH_RETRY: frozenset({SessionState.PUBLISH_RETRY}),
    SessionState.DISCONNECTING: frozenset({SessionState.DONE}),
}

def expected_packet(state: SessionState, will: bool = False) -> MessageType:
    """Packet type the session is waiting for in ``state``"""
    if state is SessionState.CONNECTING and will:
        return MessageType.WILLTOPICREQ
    try:
        return _EXPECTED[state]
    except KeyError:
        raise ValueError(f"State {state.name} does not wait for a packet") from None

def transition(state: SessionState, received: Optional[int], *, will: bool = False) -> SessionState:
    """Map (current state, received packet type) to the next state.

    ``received`` is ``None`` when the receive timed out. An unexpected or
    missing packet raises the error class bound to ``state``.
    """
    expected = expected_packet(state, will)
    if received != expected:
        raise _FAILURES[state](expected.name, message_type_name(received), state.name)
    return _ON_RECEIVE[(state, expected)]

class StateMachine:
    """Current state of one publishing session"""

    def __init__(self, will: bool = False):
        self.will = will
        self.state = SessionState.INIT
        self.history: List[SessionState] = [SessionState.INIT]

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def _set(self, state: SessionState) -> None:
        logger.debug("Session state %s -> %s", self.state.name, state.name)
        self.state = state
        self.history.append(state)

    def move_to(self, state: SessionState) -> None:
        """Apply a move that follows a send"""
        if state not in _MOVES.get(self.state, frozenset()):
            raise RuntimeError(f"Invalid session transition {self.state.name} -> {state.name}")
        self._set(state)

    def advance(self, packet: Optional[Packet], message_id: Optional[int] = None) -> SessionState:
        """Apply a received packet (``None`` for a timeout).

        The packet must have the expected type and, where it carries them,
        the given message id and an accepted return code.
        """
        received = packet.msg_type if packet is not None else None
        try:
            next_state = transition(self.state, received, will=self.will)
            self._check_packet(packet, message_id)
        except ProtocolError as exc:
            if exc.fatal:
                self.fail()
            raise
        self._set(next_state)
        return next_state

    def _check_packet(self, packet: Packet, message_id: Optional[int]) -> None:
        expected = expected_packet(self.state, self.will).name
        error = _FAILURES[self.state]

        packet_message_id = getattr(packet, 'message_id', None)
        if message_id is not None and packet_message_id is not None and packet_message_id != message_id:
            raise error(expected, f"{expected} for message id {packet_message_id}", self.state.name)

        return_code = getattr(packet, 'return_code', ReturnCode.ACCEPTED)
        if return_code != ReturnCode.ACCEPTED:
            raise error(expected, expected, self.state.name, reason=describe_return_code(return_code))

    def fail(self) -> None:
        if not self.terminal:
            self._set(SessionState.FAILED)
