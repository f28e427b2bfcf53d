from dataclasses import dataclass
from enum import IntEnum

from .packet import FLAG_QOS_0, FLAG_QOS_1, FLAG_QOS_N1

class QoSLevel(IntEnum):
    FIRE_AND_FORGET = -1
    AT_MOST_ONCE = 0
    AT_LEAST_ONCE = 1

    @property
    def flags(self) -> int:
        """QoS bits of the MQTT-SN flags byte"""
        return _QOS_FLAGS[self]

_QOS_FLAGS = {
    QoSLevel.FIRE_AND_FORGET: FLAG_QOS_N1,
    QoSLevel.AT_MOST_ONCE: FLAG_QOS_0,
    QoSLevel.AT_LEAST_ONCE: FLAG_QOS_1,
}

@dataclass(frozen=True)
class WillMessage:
    topic: str
    payload: bytes
    qos: QoSLevel = QoSLevel.AT_LEAST_ONCE
    retain: bool = True

    def __post_init__(self):
        if not isinstance(self.payload, bytes):
            raise TypeError("Payload must be bytes type")

        if not self.topic:
            raise ValueError("Will topic cannot be empty")

        if '+' in self.topic or '#' in self.topic:
            raise ValueError("Will topic cannot contain wildcards (+ or #)")

        if not isinstance(self.qos, QoSLevel):
            try:
                object.__setattr__(self, 'qos', QoSLevel(self.qos))
            except ValueError:
                raise ValueError(f"Invalid QoS value: {self.qos}. Must be -1, 0, or 1")
