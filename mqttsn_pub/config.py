from dataclasses import dataclass
from typing import Optional, Union

from .connection import MAX_CLIENT_ID_LENGTH
from .exceptions import ConfigError
from .packet import MAX_FRAME
from .register import is_short_topic
from .transport import DEFAULT_TIMEOUT
from .will_message import QoSLevel, WillMessage

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 1883
KEEP_ALIVE_SECONDS = 1

MAX_TOPIC_ID = 0xFFFF
# Long header (4) + flags, topic id and message id (5)
MAX_PAYLOAD_LENGTH = MAX_FRAME - 9
# Long header (4) + topic id and message id (4)
MAX_TOPIC_NAME_LENGTH = MAX_FRAME - 8
# Long header (4) + flags (1)
MAX_WILL_TOPIC_LENGTH = MAX_FRAME - 5
MAX_WILL_MESSAGE_LENGTH = MAX_FRAME - 4

@dataclass(frozen=True)
class TopicSpec:
    """Topic given either by name or by a pre-defined id, never both"""
    name: Optional[str] = None
    predefined_id: Optional[int] = None

    def __post_init__(self):
        if self.name is not None and self.predefined_id is not None:
            raise ConfigError("please provide either a topic id or a topic name, not both")
        if self.name is None and self.predefined_id is None:
            raise ConfigError("a topic name or a pre-defined topic id must be given")
        if self.name == "":
            raise ConfigError("topic name cannot be empty")
        if self.name is not None and len(self.name.encode()) > MAX_TOPIC_NAME_LENGTH:
            raise ConfigError(f"topic name is too long (max {MAX_TOPIC_NAME_LENGTH} bytes)")
        if self.predefined_id is not None and not 1 <= self.predefined_id <= MAX_TOPIC_ID:
            raise ConfigError(f"topic id must be between 1 and {MAX_TOPIC_ID}, got {self.predefined_id}")

    @property
    def is_short(self) -> bool:
        return is_short_topic(self.name)

@dataclass(frozen=True)
class SessionConfig:
    topic: TopicSpec
    payload: bytes
    qos: QoSLevel = QoSLevel.AT_MOST_ONCE
    retain: bool = False
    will: Optional[WillMessage] = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    client_id: Optional[str] = None
    keep_alive: int = KEEP_ALIVE_SECONDS
    timeout: float = DEFAULT_TIMEOUT
    debug: bool = False

    def __post_init__(self):
        if self.payload is None:
            raise ConfigError("a message payload must be given (use -n for an empty message)")
        if not isinstance(self.payload, bytes):
            raise ConfigError("message payload must be bytes")
        if len(self.payload) > MAX_PAYLOAD_LENGTH:
            raise ConfigError(f"payload is too big: {len(self.payload)} bytes (max {MAX_PAYLOAD_LENGTH})")

        try:
            object.__setattr__(self, 'qos', QoSLevel(self.qos))
        except ValueError:
            raise ConfigError("only QoS level 1, 0 or -1 is supported") from None

        if self.qos == QoSLevel.FIRE_AND_FORGET and self.topic.predefined_id is None and not self.topic.is_short:
            raise ConfigError(
                "either a pre-defined topic id or a short topic name must be given for QoS -1"
            )

        if self.qos == QoSLevel.AT_LEAST_ONCE and self.will is None:
            raise ConfigError("QoS 1 requires a will topic (-w) and a will message (-W)")
        if self.qos != QoSLevel.AT_LEAST_ONCE and self.will is not None:
            raise ConfigError("a will is only registered at QoS 1")
        if self.will is not None:
            if len(self.will.topic.encode()) > MAX_WILL_TOPIC_LENGTH:
                raise ConfigError(f"will topic is too long (max {MAX_WILL_TOPIC_LENGTH} bytes)")
            if len(self.will.payload) > MAX_WILL_MESSAGE_LENGTH:
                raise ConfigError(f"will message is too big (max {MAX_WILL_MESSAGE_LENGTH} bytes)")

        if self.client_id is not None and len(self.client_id) > MAX_CLIENT_ID_LENGTH:
            raise ConfigError(f"client id is too long (max {MAX_CLIENT_ID_LENGTH} characters)")
        if not 1 <= self.port <= 0xFFFF:
            raise ConfigError(f"port must be between 1 and 65535, got {self.port}")

    @property
    def has_session(self) -> bool:
        """QoS -1 publishes without connecting"""
        return self.qos != QoSLevel.FIRE_AND_FORGET

def _to_bytes(value: Union[str, bytes, None]) -> Optional[bytes]:
    if value is None or isinstance(value, bytes):
        return value
    return value.encode('utf-8')

def resolve_config(topic_name: Optional[str] = None, topic_id: Optional[int] = None,
                   message: Union[str, bytes, None] = None, qos: int = 0, retain: bool = False,
                   will_topic: Optional[str] = None, will_message: Union[str, bytes, None] = None,
                   host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, client_id: Optional[str] = None,
                   timeout: float = DEFAULT_TIMEOUT, debug: bool = False) -> SessionConfig:
    """Validate raw user input into a SessionConfig"""
    will = None
    if will_topic is not None or will_message is not None:
        if will_topic is None or will_message is None:
            raise ConfigError("a will needs both a will topic (-w) and a will message (-W)")
        try:
            will = WillMessage(topic=will_topic, payload=_to_bytes(will_message))
        except ValueError as e:
            raise ConfigError(str(e)) from e

    return SessionConfig(
        topic=TopicSpec(name=topic_name, predefined_id=topic_id),
        payload=_to_bytes(message),
        qos=qos,
        retain=retain,
        will=will,
        host=host,
        port=port,
        client_id=client_id,
        timeout=timeout,
        debug=debug
    )
