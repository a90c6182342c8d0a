from __future__ import annotations

import logging

from smart_garden.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    level = logging.DEBUG if settings.debug else settings.log_level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("smart_garden").setLevel(level)
    # The influx client logs every request at INFO when debug is on.
    logging.getLogger("influxdb_client").setLevel(logging.WARNING)
