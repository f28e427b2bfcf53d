from typing import Callable, Dict

from .connection import ConnackPacket, DisconnectPacket, WillMsgReqPacket, WillTopicReqPacket
from .packet import GenericPacket, MessageType, Packet, decode_frame
from .publish import PubackPacket, PublishPacket
from .register import RegackPacket

DECODERS: Dict[int, Callable[[bytes], Packet]] = {
    MessageType.CONNACK: ConnackPacket.decode,
    MessageType.WILLTOPICREQ: WillTopicReqPacket.decode,
    MessageType.WILLMSGREQ: WillMsgReqPacket.decode,
    MessageType.REGACK: RegackPacket.decode,
    MessageType.PUBLISH: PublishPacket.decode,
    MessageType.PUBACK: PubackPacket.decode,
    MessageType.DISCONNECT: DisconnectPacket.decode,
}

def decode_packet(data: bytes) -> Packet:
    """Decode one datagram received from the gateway"""
    msg_type, body = decode_frame(data)
    decoder = DECODERS.get(msg_type)
    if decoder is None:
        return GenericPacket(msg_type=msg_type, body=body)
    return decoder(body)
