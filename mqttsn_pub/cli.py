import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import DEFAULT_HOST, DEFAULT_PORT, resolve_config
from .exceptions import ConfigError, MQTTSNError
from .session import run_session

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

def build_arg_parser() -> argparse.ArgumentParser:
    # -h selects the host, so help lives on --help only
    parser = argparse.ArgumentParser(
        prog="mqttsn-pub",
        usage="%(prog)s [opts] -t <topic> -m <message>",
        description="Publish a single message to an MQTT-SN gateway.",
        add_help=False,
    )
    parser.add_argument("--help", action="help", help="Show this help message and exit.")
    parser.add_argument("-d", dest="debug", action="store_true", help="Enable debug messages.")
    parser.add_argument("-h", dest="host", metavar="<host>", default=DEFAULT_HOST,
                        help=f"MQTT-SN host to connect to. Defaults to '{DEFAULT_HOST}'.")
    parser.add_argument("-i", dest="client_id", metavar="<clientid>", default=None,
                        help="ID to use for this client. Defaults to 'mqtt-sn-tools-' with process id.")
    parser.add_argument("-m", dest="message", metavar="<message>", default=None,
                        help="Message payload to send.")
    parser.add_argument("-n", dest="message", action="store_const", const="",
                        help="Send a null (zero length) message.")
    parser.add_argument("-p", dest="port", metavar="<port>", type=int, default=DEFAULT_PORT,
                        help=f"Network port to connect to. Defaults to {DEFAULT_PORT}.")
    parser.add_argument("-q", dest="qos", metavar="<qos>", type=int, default=0,
                        help="Quality of Service value (1, 0 or -1). Defaults to 0.")
    parser.add_argument("-r", dest="retain", action="store_true", help="Message should be retained.")
    parser.add_argument("-t", dest="topic_name", metavar="<topic>", default=None,
                        help="MQTT topic name to publish to.")
    parser.add_argument("-T", dest="topic_id", metavar="<topicid>", type=int, default=None,
                        help="Pre-defined MQTT-SN topic ID to publish to.")
    parser.add_argument("-w", dest="will_topic", metavar="<topic>", default=None,
                        help="MQTT LWT topic name (required for QoS 1).")
    parser.add_argument("-W", dest="will_message", metavar="<message>", default=None,
                        help="LWT message payload (required for QoS 1).")
    return parser

def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(
            topic_name=args.topic_name,
            topic_id=args.topic_id,
            message=args.message,
            qos=args.qos,
            retain=args.retain,
            will_topic=args.will_topic,
            will_message=args.will_message,
            host=args.host,
            port=args.port,
            client_id=args.client_id,
            debug=args.debug
        )
    except ConfigError as e:
        parser.print_usage(sys.stderr)
        print(f"Error: {e}.", file=sys.stderr)
        return EXIT_USAGE

    configure_logging(config.debug)

    try:
        result = asyncio.run(run_session(config))
    except MQTTSNError as e:
        logger.error("%s", e)
        return EXIT_FAILURE

    logger.info("Published to topic id 0x%04X in %d attempt(s)",
                result.topic.topic_id, result.publish_attempts)
    return EXIT_OK

if __name__ == "__main__":
    sys.exit(main())
