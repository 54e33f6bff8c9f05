from __future__ import annotations

import logging

from . import models  # noqa: F401  (регистрирует таблицы в metadata)
from .base import Base
from .session import engine

log = logging.getLogger(__name__)


def init_db() -> None:
    log.info("creating tables on %s", engine.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=engine)
