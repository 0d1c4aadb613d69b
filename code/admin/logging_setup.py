# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations
import contextvars
import logging
import os

req_id_var = contextvars.ContextVar("req_id", default="-")
route_var = contextvars.ContextVar("route", default="-")
client_var = contextvars.ContextVar("client", default="-")
guild_var = contextvars.ContextVar("guild", default=None)

REDACT_KEYS = (
    "SECRET_KEY",
    "DISCORD_BOT_TOKEN",
    "ARCHIVER_AUTH_KEY",
    "token",
    "password",
)

LOGGER = logging.getLogger("dashboard")


class _RequestContextFilter(logging.Filter):
    """
    Stamp every record with the request id / route / client of the request
    that emitted it, and prefix the guild when one is in scope.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.req_id = req_id_var.get()
        record.route = route_var.get()
        record.client = client_var.get()

        g = guild_var.get()
        if g and not getattr(record, "_guild_prefix_injected", False):
            record.msg = f"[{g}] " + str(record.msg)
            record._guild_prefix_injected = True
        return True


def get_logger(name: str) -> logging.Logger:
    return LOGGER.getChild(name)


def configure_app_logging(level_name: str | None = None) -> None:
    level_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-5s | %(req_id)s %(route)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, "_dashboard_handler", False) for h in root.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(formatter)
        ch.setLevel(level)
        ch.addFilter(_RequestContextFilter())
        ch._dashboard_handler = True
        root.addHandler(ch)

    for lib in ("aiohttp.access", "uvicorn.access", "asyncio"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    LOGGER.setLevel(level)


def redact(d: dict) -> dict:
    rd = dict(d or {})
    for k in REDACT_KEYS:
        if k in rd and rd[k]:
            rd[k] = "***REDACTED***"
    return rd
