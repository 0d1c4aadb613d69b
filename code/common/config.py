# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

import os
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from common.db import DBManager

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

logger = logging.getLogger(__name__)
CURRENT_VERSION = "v1.4.0"

DEFAULT_WELCOME_MESSAGE = (
    "Thank you for contacting support.\n"
    "Please describe your issue and await a response."
)
DEFAULT_TICKET_LIMIT = 5


class Config:
    def __init__(
        self,
        db: Optional[DBManager] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.DATA_DIR = os.getenv("DATA_DIR", "/data")
        self.DB_PATH = os.getenv("DB_PATH", "/data/data.db")
        self.db = db

        def _get_from_db(key: str):
            if self.db is None:
                return None
            try:
                return self.db.get_config(key, None)
            except Exception:
                return None

        def _str(key: str, env_default: Optional[str] = None) -> Optional[str]:
            v = _get_from_db(key)
            if v is None or (isinstance(v, str) and v.strip() == ""):
                v = os.getenv(key, env_default)
            return v

        def _int(key: str, env_default: str = "0") -> int:
            raw = _str(key, env_default)
            try:
                return int(str(raw).strip())
            except Exception:
                try:
                    return int(env_default)
                except Exception:
                    return 0

        self.LOG_LEVEL = (_str("LOG_LEVEL", "INFO") or "INFO").upper()

        self.DISCORD_BOT_TOKEN = _str("DISCORD_BOT_TOKEN", "") or ""
        self.DISCORD_API_BASE = (
            _str("DISCORD_API_BASE", "https://discord.com/api/v10")
            or "https://discord.com/api/v10"
        ).rstrip("/")
        self.DISCORD_TIMEOUT = _int("DISCORD_TIMEOUT", "10")

        self.ARCHIVER_URL = (
            _str("ARCHIVER_URL", "http://archiver:8080") or "http://archiver:8080"
        ).rstrip("/")
        self.ARCHIVER_AUTH_KEY = _str("ARCHIVER_AUTH_KEY", "") or ""
        self.ARCHIVER_TIMEOUT = _int("ARCHIVER_TIMEOUT", "10")

        self.SECRET_KEY = (_str("SECRET_KEY", "") or "").strip()

        self.BLACKLIST_PAGE_LIMIT = _int("BLACKLIST_PAGE_LIMIT", "100000")
        self.EXPORT_TIMEOUT_SECONDS = _int("EXPORT_TIMEOUT_SECONDS", "60")

        self.logger = (logger or logging.getLogger(__name__)).getChild(
            self.__class__.__name__
        )

        if not self.DISCORD_BOT_TOKEN:
            self.logger.warning(
                "[⚠️] DISCORD_BOT_TOKEN is not set; owner checks and ticket views will fail"
            )
