from .config import SessionConfig, TopicSpec, resolve_config
from .connection import ConnectionHandler, ConnectPacket
from .exceptions import (
    ConfigError,
    HandshakeError,
    MQTTSNError,
    ProtocolError,
    PublishNotAckedError,
    RegistrationError,
    TransportError,
)
from .publish import PublishHandler, PublishPacket
from .register import ResolvedTopic, TopicIdType, TopicResolver
from .session import PublishSession, SessionResult, run_session
from .state import SessionState, StateMachine, transition
from .transport import Transport, UDPTransport
from .will_message import QoSLevel, WillMessage

__all__ = [
    'SessionConfig',
    'TopicSpec',
    'resolve_config',
    'ConnectionHandler',
    'ConnectPacket',
    'ConfigError',
    'HandshakeError',
    'MQTTSNError',
    'ProtocolError',
    'PublishNotAckedError',
    'RegistrationError',
    'TransportError',
    'PublishHandler',
    'PublishPacket',
    'ResolvedTopic',
    'TopicIdType',
    'TopicResolver',
    'PublishSession',
    'SessionResult',
    'run_session',
    'SessionState',
    'StateMachine',
    'transition',
    'Transport',
    'UDPTransport',
    'QoSLevel',
    'WillMessage'
]
