from typing import Optional

class MQTTSNError(Exception):
    """Base class for every error raised by the publishing client"""
    fatal: bool = True

class ConfigError(MQTTSNError, ValueError):
    """Invalid or contradictory session parameters, detected before any I/O"""

class TransportError(MQTTSNError):
    """The UDP endpoint could not be opened or reported a socket error"""

class PacketDecodeError(MQTTSNError, ValueError):
    """A datagram could not be decoded as an MQTT-SN packet"""

class ProtocolError(MQTTSNError):
    """The gateway did not answer with the packet the session expected"""

    def __init__(self, expected: str, received: Optional[str] = None,
                 state: Optional[str] = None, reason: Optional[str] = None):
        self.expected = expected
        self.received = received
        self.state = state
        self.reason = reason
        if reason:
            message = f"{expected} rejected: {reason}"
        else:
            message = f"did not get expected {expected} (got {received or 'nothing'})"
        super().__init__(message)

class HandshakeError(ProtocolError):
    """CONNECT or will sub-handshake failed"""

class RegistrationError(ProtocolError):
    """REGISTER was not acknowledged with a usable topic id"""

class PublishAckError(ProtocolError):
    """A QoS 1 PUBLISH was not acknowledged; retried by the publish step"""
    fatal = False

class DisconnectAckError(ProtocolError):
    """DISCONNECT was not acknowledged; reported as a warning"""
    fatal = False

class PublishNotAckedError(MQTTSNError):
    """Every QoS 1 publish attempt went unacknowledged"""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"QoS 1 publish not acked after {attempts} tries")
