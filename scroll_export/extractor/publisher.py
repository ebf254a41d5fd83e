"""
Event Publisher for Export Runs

Publishes export completion events to Redis Pub/Sub after the output file
has been written.

Usage:
    from scroll_export.extractor.publisher import publish_export_event

    await publish_export_event("/data/exports/data.json", records=1234)
"""

import logging

from scroll_export.utils.mq import RedisPublisher
from scroll_export.utils.schemas import ExportEvent

logger = logging.getLogger(__name__)


async def publish_export_event(
    output_file: str,
    records: int,
    publisher: RedisPublisher | None = None,
) -> None:
    """
    Publish export completion event on the publisher's Redis channel.

    Args:
        output_file: Path of the written export file
        records: Number of records in the export
        publisher: Publisher to use; a new one is created (and closed) if omitted

    Raises:
        redis.RedisError: If publishing fails
    """
    owns_publisher = publisher is None
    if publisher is None:
        publisher = RedisPublisher()

    channel = publisher.channel

    try:
        event = ExportEvent(path=output_file, records=records)
        await publisher.publish_event(event)

        logger.info(
            "Published export event",
            extra={
                "channel": channel,
                "file_path": output_file,
                "records": records,
                "message_type": event.type,
            },
        )

    except Exception as e:
        logger.error(
            "Failed to publish event",
            extra={
                "channel": channel,
                "file_path": output_file,
                "error": str(e),
            },
        )
        raise

    finally:
        if owns_publisher:
            await publisher.close()
