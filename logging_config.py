"""
Structured logging setup.

JSON lines in production so the log shipper can index them, colored
key=value output while developing:

    logger = structlog.get_logger(__name__)
    logger.info('post_created', post_id=12, tags=3)
"""
import logging
import sys

import structlog


def configure_logging(level='INFO', json_logs=False, colors=True):
    level_no = logging.getLevelName(str(level).upper())
    if not isinstance(level_no, int):
        level_no = logging.INFO

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt='iso'),
    ]

    if json_logs:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=colors)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    # Third-party libraries still log through the stdlib
    logging.basicConfig(format='%(message)s', stream=sys.stdout, level=level_no)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
