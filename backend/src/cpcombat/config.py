from __future__ import annotations

import os

# все настройки берём из env, дефолты рассчитаны на локальный запуск
DATABASE_URL = os.getenv("CPCOMBAT_DATABASE_URL", "sqlite:///./cpcombat.sqlite3")

LOG_LEVEL = os.getenv("CPCOMBAT_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("CPCOMBAT_LOG_JSON", "0").lower() in ("1", "true", "yes")

# только эта роль применяет эффекты смены хода (остальные наблюдатели игнорируются)
AUTHORITATIVE_ROLE = os.getenv("CPCOMBAT_AUTHORITATIVE_ROLE", "gm")
