# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================


import asyncio
import functools
import re
import sqlite3
from typing import Callable, Dict, Optional, Tuple

from common.errors import DataFetchError


MENTION_RE = re.compile(r"<@!?(\d+)>")
CUSTOM_EMOJI_RE = re.compile(r"^<(a?):([A-Za-z0-9_~]{2,32}):(\d{15,21})>$")


async def run_blocking(fn: Callable, *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))


async def lookup(fn: Callable, *args, **kwargs):
    """
    Run one blocking store lookup on the executor. Store failures come back
    as DataFetchError naming the lookup that failed.
    """
    try:
        return await run_blocking(fn, *args, **kwargs)
    except sqlite3.Error as e:
        name = getattr(fn, "__name__", repr(fn))
        raise DataFetchError(f"{name} failed: {e}") from e


def parse_snowflake(raw) -> Optional[int]:
    """
    Accept an int or a decimal string; anything else (or a negative) is None.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    s = str(raw or "").strip()
    if not s.isdigit():
        return None
    return int(s)


def mentioned_user_ids(content: str) -> list[int]:
    seen: list[int] = []
    for m in MENTION_RE.finditer(content or ""):
        uid = int(m.group(1))
        if uid not in seen:
            seen.append(uid)
    return seen


def format_mentions(content: str, usernames: Dict[int, str]) -> str:
    """
    Rewrite <@id> / <@!id> user mentions as @username. Ids without a known
    username are left untouched.
    """

    def _sub(m: re.Match) -> str:
        name = usernames.get(int(m.group(1)))
        return f"@{name}" if name else m.group(0)

    return MENTION_RE.sub(_sub, content or "")


def parse_emote(raw: str) -> Tuple[Optional[str], Optional[int]]:
    """
    "<:name:123>" / "<a:name:123>" -> ("name", 123); a unicode emoji comes back
    as (emoji, None); blank input is (None, None).
    """
    s = (raw or "").strip()
    if not s:
        return None, None
    m = CUSTOM_EMOJI_RE.match(s)
    if m:
        return m.group(2), int(m.group(3))
    return s, None
