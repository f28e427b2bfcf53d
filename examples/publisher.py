import asyncio
import logging

from mqttsn_pub import QoSLevel, resolve_config, run_session

async def run_publisher():
    # Publish a few readings, one session each, as the command-line tool does
    messages = [
        ("sensors/temperature", None, b"24.5", QoSLevel.AT_MOST_ONCE),
        ("hu", None, b"65", QoSLevel.FIRE_AND_FORGET),
        (None, 0x0101, b"1013", QoSLevel.AT_LEAST_ONCE),
    ]

    for topic_name, topic_id, payload, qos in messages:
        will = {}
        if qos == QoSLevel.AT_LEAST_ONCE:
            will = {"will_topic": "clients/example_publisher", "will_message": "offline"}

        config = resolve_config(
            topic_name=topic_name,
            topic_id=topic_id,
            message=payload,
            qos=qos,
            client_id="example_publisher",
            **will
        )
        result = await run_session(config)

        print(f"Published to topic id 0x{result.topic.topic_id:04X} with QoS {int(qos)}")
        for warning in result.warnings:
            print(f"Warning: {warning}")

        # Small delay between messages
        await asyncio.sleep(1)

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_publisher())
