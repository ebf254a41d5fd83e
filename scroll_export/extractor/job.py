"""
Export Job

Assembles one export run from settings: Elasticsearch scroll source, JSON
file sink and logging progress reporter.
"""

import logging

from scroll_export.extractor.pipeline import ExportPipeline
from scroll_export.extractor.progress import LoggingProgressReporter
from scroll_export.extractor.source import ElasticsearchScrollSource
from scroll_export.saver.sink import JsonFileSink
from scroll_export.utils.config import ExportConfig, Settings, settings
from scroll_export.utils.schemas import ResultSet

logger = logging.getLogger(__name__)


def build_source(app_settings: Settings) -> ElasticsearchScrollSource:
    auth = None
    if app_settings.ES_USERNAME:
        auth = (app_settings.ES_USERNAME, app_settings.ES_PASSWORD or "")

    return ElasticsearchScrollSource(
        base_url=app_settings.ES_URL,
        index=app_settings.ES_INDEX,
        doc_type=app_settings.ES_DOC_TYPE,
        scroll_keepalive=app_settings.ES_SCROLL_KEEPALIVE,
        timeout=app_settings.API_TIMEOUT,
        auth=auth,
    )


async def run_export(app_settings: Settings = settings) -> tuple[str, ResultSet]:
    """
    Run one export with the given settings.

    Returns:
        Tuple of (output file path, exported result set)

    Raises:
        ExportError: If the run failed; nothing was written in that case
    """
    config = ExportConfig.from_settings(app_settings)
    sink = JsonFileSink(app_settings.OUTPUT_PATH)
    progress = LoggingProgressReporter(every=app_settings.PROGRESS_LOG_EVERY, name=app_settings.ES_INDEX)

    logger.info(
        "Starting export",
        extra={"es_url": app_settings.ES_URL, "index": app_settings.ES_INDEX, "output": str(sink.path)},
    )

    async with build_source(app_settings) as source:
        pipeline = ExportPipeline(source, sink, config=config, progress=progress)
        result_set = await pipeline.run()

    return str(sink.path.resolve()), result_set
