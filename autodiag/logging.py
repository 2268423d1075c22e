import logging
from autodiag.config import settings
from autodiag.utils.logging_filter import RequestIdFilter


def configure_logging() -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s request_id=%(request_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # httpx logs every outbound request at INFO, including the full URL
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
