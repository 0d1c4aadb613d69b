# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from datetime import timedelta
import sqlite3, threading
from typing import Any, Dict, Iterable, List, Optional


PANEL_COLUMNS = (
    "panel_id",
    "message_id",
    "channel_id",
    "guild_id",
    "title",
    "content",
    "colour",
    "target_category",
    "emoji_name",
    "emoji_id",
    "welcome_message",
    "with_default_team",
    "custom_id",
    "image_url",
    "thumbnail_url",
    "button_style",
    "button_label",
    "form_id",
    "naming_scheme",
    "force_disabled",
    "disabled",
)

EMBED_COLUMNS = (
    "id",
    "guild_id",
    "title",
    "description",
    "url",
    "colour",
    "author_name",
    "author_icon_url",
    "author_url",
    "image_url",
    "thumbnail_url",
    "footer_text",
    "footer_icon_url",
    "timestamp",
)

SETTINGS_DEFAULTS: Dict[str, Any] = {
    "hide_claim_button": False,
    "disable_open_command": False,
    "context_menu_permission_level": 0,
    "context_menu_add_sender": True,
    "context_menu_panel": None,
    "store_transcripts": True,
    "use_threads": False,
    "thread_archive_duration": 10080,
    "ticket_notification_channel": None,
    "overflow_enabled": False,
    "overflow_category_id": None,
}

_BOOL_SETTINGS = {
    "hide_claim_button",
    "disable_open_command",
    "context_menu_add_sender",
    "store_transcripts",
    "use_threads",
    "overflow_enabled",
}


def _placeholders(ids: List[int]) -> str:
    return ",".join("?" for _ in ids)


class DBManager:
    def __init__(self, db_path: str, init_schema: bool = False):
        self.path = db_path
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        self.conn.execute("PRAGMA foreign_keys = ON;")
        self.conn.execute("PRAGMA journal_mode = DELETE;")
        self.conn.execute("PRAGMA synchronous = FULL;")
        self.conn.execute("PRAGMA busy_timeout = 5000;")
        self.lock = threading.RLock()
        if init_schema:
            self._init_schema()

    def close(self) -> None:
        with self.lock:
            self.conn.close()

    def _init_schema(self):
        """
        Creates every table the dashboard reads or writes. Guild-level settings
        live in one narrow table per setting, keyed by guild id.
        """
        statements = [
            """
            CREATE TABLE IF NOT EXISTS app_config(
                key           TEXT PRIMARY KEY,
                value         TEXT NOT NULL DEFAULT '',
                last_updated  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS settings(
                guild_id                       INTEGER PRIMARY KEY,
                hide_claim_button              INTEGER NOT NULL DEFAULT 0,
                disable_open_command           INTEGER NOT NULL DEFAULT 0,
                context_menu_permission_level  INTEGER NOT NULL DEFAULT 0,
                context_menu_add_sender        INTEGER NOT NULL DEFAULT 1,
                context_menu_panel             INTEGER,
                store_transcripts              INTEGER NOT NULL DEFAULT 1,
                use_threads                    INTEGER NOT NULL DEFAULT 0,
                thread_archive_duration        INTEGER NOT NULL DEFAULT 10080,
                ticket_notification_channel    INTEGER,
                overflow_enabled               INTEGER NOT NULL DEFAULT 0,
                overflow_category_id           INTEGER
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS claim_settings(
                guild_id          INTEGER PRIMARY KEY,
                support_can_view  INTEGER NOT NULL DEFAULT 1,
                support_can_type  INTEGER NOT NULL DEFAULT 1
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS auto_close(
                guild_id                        INTEGER PRIMARY KEY,
                enabled                         INTEGER NOT NULL DEFAULT 0,
                since_open_with_no_response_ms  INTEGER,
                since_last_message_ms           INTEGER,
                on_user_leave                   INTEGER
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS ticket_permissions(
                guild_id       INTEGER PRIMARY KEY,
                attach_files   INTEGER NOT NULL DEFAULT 1,
                embed_links    INTEGER NOT NULL DEFAULT 1,
                add_reactions  INTEGER NOT NULL DEFAULT 1
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS custom_colours(
                guild_id     INTEGER NOT NULL,
                colour_id    INTEGER NOT NULL,
                colour_code  INTEGER NOT NULL,
                PRIMARY KEY (guild_id, colour_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS welcome_messages(
                guild_id  INTEGER PRIMARY KEY,
                message   TEXT NOT NULL DEFAULT ''
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS ticket_limit(
                guild_id  INTEGER PRIMARY KEY,
                "limit"   INTEGER NOT NULL DEFAULT 0
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS channel_category(
                guild_id     INTEGER PRIMARY KEY,
                category_id  INTEGER NOT NULL
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS archive_channel(
                guild_id    INTEGER PRIMARY KEY,
                channel_id  INTEGER
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS users_can_close(
                guild_id         INTEGER PRIMARY KEY,
                users_can_close  INTEGER NOT NULL DEFAULT 1
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS naming_scheme(
                guild_id       INTEGER PRIMARY KEY,
                naming_scheme  TEXT NOT NULL DEFAULT 'id'
                               CHECK (naming_scheme IN ('id','username'))
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS close_confirmation(
                guild_id  INTEGER PRIMARY KEY,
                confirm   INTEGER NOT NULL DEFAULT 1
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS feedback_enabled(
                guild_id          INTEGER PRIMARY KEY,
                feedback_enabled  INTEGER NOT NULL DEFAULT 1
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS active_language(
                guild_id  INTEGER PRIMARY KEY,
                language  TEXT NOT NULL DEFAULT ''
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS embeds(
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id         INTEGER NOT NULL,
                title            TEXT,
                description      TEXT,
                url              TEXT,
                colour           INTEGER NOT NULL DEFAULT 0,
                author_name      TEXT,
                author_icon_url  TEXT,
                author_url       TEXT,
                image_url        TEXT,
                thumbnail_url    TEXT,
                footer_text      TEXT,
                footer_icon_url  TEXT,
                timestamp        TEXT
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS embed_fields(
                field_id  INTEGER PRIMARY KEY AUTOINCREMENT,
                embed_id  INTEGER NOT NULL REFERENCES embeds(id) ON DELETE CASCADE,
                name      TEXT NOT NULL,
                value     TEXT NOT NULL,
                inline    INTEGER NOT NULL DEFAULT 0
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS forms(
                form_id    INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id   INTEGER NOT NULL,
                title      TEXT NOT NULL,
                custom_id  TEXT NOT NULL
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS form_input(
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                form_id      INTEGER NOT NULL REFERENCES forms(form_id) ON DELETE CASCADE,
                position     INTEGER NOT NULL,
                custom_id    TEXT NOT NULL,
                style        INTEGER NOT NULL DEFAULT 1,
                label        TEXT NOT NULL,
                placeholder  TEXT,
                required     INTEGER NOT NULL DEFAULT 1,
                min_length   INTEGER,
                max_length   INTEGER
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS panels(
                panel_id           INTEGER PRIMARY KEY AUTOINCREMENT,
                message_id         INTEGER NOT NULL,
                channel_id         INTEGER NOT NULL,
                guild_id           INTEGER NOT NULL,
                title              TEXT NOT NULL,
                content            TEXT NOT NULL,
                colour             INTEGER NOT NULL DEFAULT 0,
                target_category    INTEGER NOT NULL DEFAULT 0,
                emoji_name         TEXT,
                emoji_id           INTEGER,
                welcome_message    INTEGER REFERENCES embeds(id) ON DELETE SET NULL,
                with_default_team  INTEGER NOT NULL DEFAULT 1,
                custom_id          TEXT NOT NULL,
                image_url          TEXT,
                thumbnail_url      TEXT,
                button_style       INTEGER NOT NULL DEFAULT 1,
                button_label       TEXT NOT NULL DEFAULT '',
                form_id            INTEGER REFERENCES forms(form_id) ON DELETE SET NULL,
                naming_scheme      TEXT,
                force_disabled     INTEGER NOT NULL DEFAULT 0,
                disabled           INTEGER NOT NULL DEFAULT 0
            );
            """,
            "CREATE INDEX IF NOT EXISTS ix_panels_guild ON panels(guild_id);",
            """
            CREATE TABLE IF NOT EXISTS panel_user_mention(
                panel_id             INTEGER PRIMARY KEY REFERENCES panels(panel_id) ON DELETE CASCADE,
                should_mention_user  INTEGER NOT NULL DEFAULT 0
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS panel_role_mentions(
                panel_id  INTEGER NOT NULL REFERENCES panels(panel_id) ON DELETE CASCADE,
                role_id   INTEGER NOT NULL,
                PRIMARY KEY (panel_id, role_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS panel_access_control_rules(
                panel_id  INTEGER NOT NULL REFERENCES panels(panel_id) ON DELETE CASCADE,
                role_id   INTEGER NOT NULL,
                position  INTEGER NOT NULL,
                "action"  TEXT NOT NULL CHECK ("action" IN ('allow','deny')),
                PRIMARY KEY (panel_id, role_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS support_team(
                id            INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id      INTEGER NOT NULL,
                name          TEXT NOT NULL,
                on_call_role  INTEGER,
                UNIQUE (guild_id, name)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS support_team_members(
                team_id  INTEGER NOT NULL REFERENCES support_team(id) ON DELETE CASCADE,
                user_id  INTEGER NOT NULL,
                PRIMARY KEY (team_id, user_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS support_team_roles(
                team_id  INTEGER NOT NULL REFERENCES support_team(id) ON DELETE CASCADE,
                role_id  INTEGER NOT NULL,
                PRIMARY KEY (team_id, role_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS panel_teams(
                panel_id  INTEGER NOT NULL REFERENCES panels(panel_id) ON DELETE CASCADE,
                team_id   INTEGER NOT NULL REFERENCES support_team(id) ON DELETE CASCADE,
                PRIMARY KEY (panel_id, team_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS multi_panels(
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                message_id   INTEGER NOT NULL,
                channel_id   INTEGER NOT NULL,
                guild_id     INTEGER NOT NULL,
                title        TEXT NOT NULL,
                content      TEXT NOT NULL,
                colour       INTEGER NOT NULL DEFAULT 0,
                select_menu  INTEGER NOT NULL DEFAULT 0
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS multi_panel_targets(
                multi_panel_id  INTEGER NOT NULL REFERENCES multi_panels(id) ON DELETE CASCADE,
                panel_id        INTEGER NOT NULL REFERENCES panels(panel_id) ON DELETE CASCADE,
                PRIMARY KEY (multi_panel_id, panel_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS tickets(
                id          INTEGER NOT NULL,
                guild_id    INTEGER NOT NULL,
                channel_id  INTEGER,
                user_id     INTEGER NOT NULL,
                open        INTEGER NOT NULL DEFAULT 1,
                open_time   TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                panel_id    INTEGER,
                PRIMARY KEY (id, guild_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS service_ratings(
                guild_id   INTEGER NOT NULL,
                ticket_id  INTEGER NOT NULL,
                rating     INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
                PRIMARY KEY (guild_id, ticket_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS close_reason(
                guild_id      INTEGER NOT NULL,
                ticket_id     INTEGER NOT NULL,
                close_reason  TEXT,
                closed_by     INTEGER,
                PRIMARY KEY (guild_id, ticket_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS tags(
                guild_id                INTEGER NOT NULL,
                tag_id                  TEXT NOT NULL,
                "trigger"               TEXT NOT NULL,
                content                 TEXT,
                embed_id                INTEGER REFERENCES embeds(id) ON DELETE SET NULL,
                application_command_id  INTEGER,
                PRIMARY KEY (guild_id, tag_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS guild_blacklisted_users(
                guild_id  INTEGER NOT NULL,
                user_id   INTEGER NOT NULL,
                PRIMARY KEY (guild_id, user_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS guild_blacklisted_roles(
                guild_id  INTEGER NOT NULL,
                role_id   INTEGER NOT NULL,
                PRIMARY KEY (guild_id, role_id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS premium_tiers(
                user_id  INTEGER PRIMARY KEY,
                tier     INTEGER NOT NULL DEFAULT -1
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS whitelabel(
                user_id  INTEGER PRIMARY KEY,
                bot_id   INTEGER NOT NULL UNIQUE
            );
            """,
        ]
        with self.lock, self.conn:
            for stmt in statements:
                self.conn.execute(stmt)

    # ------------------------------------------------------------------
    # low-level helpers
    # ------------------------------------------------------------------

    def _rows(self, sql: str, params: Iterable[Any] = ()) -> List[Dict[str, Any]]:
        with self.lock:
            rows = self.conn.execute(sql, tuple(params)).fetchall()
        return [{k: r[k] for k in r.keys()} for r in rows]

    def _row(self, sql: str, params: Iterable[Any] = ()) -> Optional[Dict[str, Any]]:
        with self.lock:
            row = self.conn.execute(sql, tuple(params)).fetchone()
        return {k: row[k] for k in row.keys()} if row else None

    def _scalar(self, sql: str, params: Iterable[Any] = (), default: Any = None):
        with self.lock:
            row = self.conn.execute(sql, tuple(params)).fetchone()
        return row[0] if row and row[0] is not None else default

    def _ids(self, sql: str, params: Iterable[Any] = ()) -> List[int]:
        with self.lock:
            rows = self.conn.execute(sql, tuple(params)).fetchall()
        return [int(r[0]) for r in rows]

    def _write(self, sql: str, params: Iterable[Any] = ()) -> int:
        with self.lock, self.conn:
            cur = self.conn.execute(sql, tuple(params))
            return cur.lastrowid

    def _get_guild_value(self, table: str, column: str, guild_id: int, default: Any):
        return self._scalar(
            f'SELECT "{column}" FROM {table} WHERE guild_id = ?',
            (int(guild_id),),
            default,
        )

    # ------------------------------------------------------------------
    # app config
    # ------------------------------------------------------------------

    def get_config(self, key: str, default: Optional[str] = "") -> Optional[str]:
        row = self._row("SELECT value FROM app_config WHERE key=?", (key,))
        return row["value"] if row else default

    def get_all_config(self) -> dict[str, str]:
        return {
            r["key"]: r["value"] for r in self._rows("SELECT key, value FROM app_config")
        }

    # ------------------------------------------------------------------
    # guild settings
    # ------------------------------------------------------------------

    def get_settings(self, guild_id: int) -> Dict[str, Any]:
        """
        Returns the main settings row, or the defaults when the guild has never
        saved settings.
        """
        row = self._row("SELECT * FROM settings WHERE guild_id = ?", (int(guild_id),))
        out = dict(SETTINGS_DEFAULTS)
        if row:
            row.pop("guild_id", None)
            out.update(row)
        for k in _BOOL_SETTINGS:
            out[k] = bool(out[k])
        return out

    def get_claim_settings(self, guild_id: int) -> Dict[str, bool]:
        row = self._row(
            "SELECT support_can_view, support_can_type FROM claim_settings WHERE guild_id = ?",
            (int(guild_id),),
        )
        if not row:
            return {"support_can_view": True, "support_can_type": True}
        return {k: bool(v) for k, v in row.items()}

    def get_auto_close(self, guild_id: int) -> Dict[str, Any]:
        """
        Durations come back as timedeltas (stored as milliseconds); unset
        values stay None.
        """
        row = self._row("SELECT * FROM auto_close WHERE guild_id = ?", (int(guild_id),))
        if not row:
            return {
                "enabled": False,
                "since_open_with_no_response": None,
                "since_last_message": None,
                "on_user_leave": None,
            }

        def _td(ms):
            return timedelta(milliseconds=ms) if ms is not None else None

        return {
            "enabled": bool(row["enabled"]),
            "since_open_with_no_response": _td(row["since_open_with_no_response_ms"]),
            "since_last_message": _td(row["since_last_message_ms"]),
            "on_user_leave": (
                bool(row["on_user_leave"]) if row["on_user_leave"] is not None else None
            ),
        }

    def get_ticket_permissions(self, guild_id: int) -> Dict[str, bool]:
        row = self._row(
            "SELECT attach_files, embed_links, add_reactions FROM ticket_permissions "
            "WHERE guild_id = ?",
            (int(guild_id),),
        )
        if not row:
            return {"attach_files": True, "embed_links": True, "add_reactions": True}
        return {k: bool(v) for k, v in row.items()}

    def get_custom_colours(self, guild_id: int) -> Dict[int, int]:
        return {
            int(r["colour_id"]): int(r["colour_code"])
            for r in self._rows(
                "SELECT colour_id, colour_code FROM custom_colours WHERE guild_id = ? "
                "ORDER BY colour_id",
                (int(guild_id),),
            )
        }

    def get_welcome_message(self, guild_id: int) -> str:
        return self._get_guild_value("welcome_messages", "message", guild_id, "")

    def get_ticket_limit(self, guild_id: int) -> int:
        return int(self._get_guild_value("ticket_limit", "limit", guild_id, 0))

    def get_channel_category(self, guild_id: int) -> int:
        return int(self._get_guild_value("channel_category", "category_id", guild_id, 0))

    def get_archive_channel(self, guild_id: int) -> Optional[int]:
        v = self._get_guild_value("archive_channel", "channel_id", guild_id, None)
        return int(v) if v is not None else None

    def get_users_can_close(self, guild_id: int) -> bool:
        return bool(self._get_guild_value("users_can_close", "users_can_close", guild_id, 1))

    def get_naming_scheme(self, guild_id: int) -> str:
        return self._get_guild_value("naming_scheme", "naming_scheme", guild_id, "id")

    def get_close_confirmation(self, guild_id: int) -> bool:
        return bool(self._get_guild_value("close_confirmation", "confirm", guild_id, 1))

    def get_feedback_enabled(self, guild_id: int) -> bool:
        return bool(
            self._get_guild_value("feedback_enabled", "feedback_enabled", guild_id, 1)
        )

    def get_active_language(self, guild_id: int) -> str:
        return self._get_guild_value("active_language", "language", guild_id, "")

    # ------------------------------------------------------------------
    # embeds
    # ------------------------------------------------------------------

    def get_embed(self, embed_id: int) -> Optional[Dict[str, Any]]:
        return self._row("SELECT * FROM embeds WHERE id = ?", (int(embed_id),))

    def get_embed_fields(self, embed_id: int) -> List[Dict[str, Any]]:
        rows = self._rows(
            "SELECT field_id, embed_id, name, value, inline FROM embed_fields "
            "WHERE embed_id = ? ORDER BY field_id",
            (int(embed_id),),
        )
        for r in rows:
            r["inline"] = bool(r["inline"])
        return rows

    def get_embed_fields_for_guild_panels(
        self, guild_id: int
    ) -> Dict[int, List[Dict[str, Any]]]:
        """
        Every field of every welcome-message embed referenced by the guild's
        panels, grouped by embed id.
        """
        rows = self._rows(
            """
            SELECT f.field_id, f.embed_id, f.name, f.value, f.inline
            FROM embed_fields f
            JOIN panels p ON p.welcome_message = f.embed_id
            WHERE p.guild_id = ?
            GROUP BY f.field_id
            ORDER BY f.embed_id, f.field_id
            """,
            (int(guild_id),),
        )
        out: Dict[int, List[Dict[str, Any]]] = {}
        for r in rows:
            r["inline"] = bool(r["inline"])
            out.setdefault(int(r["embed_id"]), []).append(r)
        return out

    # ------------------------------------------------------------------
    # panels
    # ------------------------------------------------------------------

    def update_panel(self, panel: Dict[str, Any]) -> None:
        cols = [c for c in PANEL_COLUMNS if c in panel and c != "panel_id"]
        self._write(
            f"UPDATE panels SET {', '.join(c + ' = ?' for c in cols)} WHERE panel_id = ?",
            (*[panel[c] for c in cols], int(panel["panel_id"])),
        )

    @staticmethod
    def _panel_row(row: Dict[str, Any]) -> Dict[str, Any]:
        for k in ("with_default_team", "force_disabled", "disabled"):
            row[k] = bool(row[k])
        return row

    def get_panel(self, panel_id: int) -> Optional[Dict[str, Any]]:
        row = self._row("SELECT * FROM panels WHERE panel_id = ?", (int(panel_id),))
        return self._panel_row(row) if row else None

    def get_panels_with_welcome_message(self, guild_id: int) -> List[Dict[str, Any]]:
        """
        Panel rows for the guild, each with a "welcome_embed" key holding the
        joined embed row (or None when the panel has no welcome message).
        """
        embed_cols = ", ".join(f"e.{c} AS embed_{c}" for c in EMBED_COLUMNS)
        rows = self._rows(
            f"""
            SELECT p.*, {embed_cols}
            FROM panels p
            LEFT JOIN embeds e ON e.id = p.welcome_message
            WHERE p.guild_id = ?
            ORDER BY p.panel_id
            """,
            (int(guild_id),),
        )
        out = []
        for r in rows:
            embed = {c: r.pop(f"embed_{c}") for c in EMBED_COLUMNS}
            r["welcome_embed"] = embed if embed["id"] is not None else None
            out.append(self._panel_row(r))
        return out

    def get_panel_acl_rules_for_guild(
        self, guild_id: int
    ) -> Dict[int, List[Dict[str, Any]]]:
        rows = self._rows(
            """
            SELECT r.panel_id, r.role_id, r."action"
            FROM panel_access_control_rules r
            JOIN panels p ON p.panel_id = r.panel_id
            WHERE p.guild_id = ?
            ORDER BY r.panel_id, r.position
            """,
            (int(guild_id),),
        )
        out: Dict[int, List[Dict[str, Any]]] = {}
        for r in rows:
            out.setdefault(int(r.pop("panel_id")), []).append(r)
        return out

    def should_mention_user(self, panel_id: int) -> bool:
        return bool(
            self._scalar(
                "SELECT should_mention_user FROM panel_user_mention WHERE panel_id = ?",
                (int(panel_id),),
                0,
            )
        )

    def get_panel_role_mentions(self, panel_id: int) -> List[int]:
        return self._ids(
            "SELECT role_id FROM panel_role_mentions WHERE panel_id = ? ORDER BY role_id",
            (int(panel_id),),
        )

    def get_panel_team_ids(self, panel_id: int) -> List[int]:
        return self._ids(
            "SELECT team_id FROM panel_teams WHERE panel_id = ? ORDER BY team_id",
            (int(panel_id),),
        )

    def replace_panel_links(
        self,
        panel_id: int,
        *,
        role_ids: List[int],
        mention_user: bool,
        team_ids: List[int],
    ) -> None:
        """
        Swap a panel's role mentions, opener-mention flag and team links in a
        single transaction.
        """
        pid = int(panel_id)
        with self.lock, self.conn:
            self.conn.execute("DELETE FROM panel_role_mentions WHERE panel_id = ?", (pid,))
            self.conn.executemany(
                "INSERT OR IGNORE INTO panel_role_mentions(panel_id, role_id) VALUES(?, ?)",
                [(pid, int(r)) for r in role_ids],
            )
            self.conn.execute(
                "INSERT OR REPLACE INTO panel_user_mention(panel_id, should_mention_user) "
                "VALUES(?, ?)",
                (pid, int(mention_user)),
            )
            self.conn.execute("DELETE FROM panel_teams WHERE panel_id = ?", (pid,))
            self.conn.executemany(
                "INSERT OR IGNORE INTO panel_teams(panel_id, team_id) VALUES(?, ?)",
                [(pid, int(t)) for t in team_ids],
            )

    # ------------------------------------------------------------------
    # multi-panels
    # ------------------------------------------------------------------

    def get_multi_panels(self, guild_id: int) -> List[Dict[str, Any]]:
        rows = self._rows(
            "SELECT * FROM multi_panels WHERE guild_id = ? ORDER BY id", (int(guild_id),)
        )
        for r in rows:
            r["select_menu"] = bool(r["select_menu"])
        return rows

    def get_multi_panel_panel_ids(self, multi_panel_id: int) -> List[int]:
        return self._ids(
            "SELECT panel_id FROM multi_panel_targets WHERE multi_panel_id = ? ORDER BY panel_id",
            (int(multi_panel_id),),
        )

    def get_multi_panel_panels(self, multi_panel_id: int) -> List[Dict[str, Any]]:
        rows = self._rows(
            """
            SELECT p.* FROM panels p
            JOIN multi_panel_targets t ON t.panel_id = p.panel_id
            WHERE t.multi_panel_id = ?
            ORDER BY p.panel_id
            """,
            (int(multi_panel_id),),
        )
        return [self._panel_row(r) for r in rows]

    def get_multi_panels_for_panel(self, panel_id: int) -> List[int]:
        return self._ids(
            "SELECT multi_panel_id FROM multi_panel_targets WHERE panel_id = ? "
            "ORDER BY multi_panel_id",
            (int(panel_id),),
        )

    # ------------------------------------------------------------------
    # tickets
    # ------------------------------------------------------------------

    @staticmethod
    def _ticket_row(row: Dict[str, Any]) -> Dict[str, Any]:
        row["open"] = bool(row["open"])
        return row

    def get_tickets(self, guild_id: int) -> List[Dict[str, Any]]:
        return [
            self._ticket_row(r)
            for r in self._rows(
                "SELECT * FROM tickets WHERE guild_id = ? ORDER BY id", (int(guild_id),)
            )
        ]

    def get_ticket(self, ticket_id: int, guild_id: int) -> Optional[Dict[str, Any]]:
        row = self._row(
            "SELECT * FROM tickets WHERE id = ? AND guild_id = ?",
            (int(ticket_id), int(guild_id)),
        )
        return self._ticket_row(row) if row else None

    def get_service_ratings(self, guild_id: int, ticket_ids: List[int]) -> Dict[int, int]:
        if not ticket_ids:
            return {}
        ids = [int(t) for t in ticket_ids]
        rows = self._rows(
            f"SELECT ticket_id, rating FROM service_ratings "
            f"WHERE guild_id = ? AND ticket_id IN ({_placeholders(ids)})",
            (int(guild_id), *ids),
        )
        return {int(r["ticket_id"]): int(r["rating"]) for r in rows}

    def get_close_metadata(
        self, guild_id: int, ticket_ids: List[int]
    ) -> Dict[int, Dict[str, Any]]:
        if not ticket_ids:
            return {}
        ids = [int(t) for t in ticket_ids]
        rows = self._rows(
            f"SELECT ticket_id, close_reason, closed_by FROM close_reason "
            f"WHERE guild_id = ? AND ticket_id IN ({_placeholders(ids)})",
            (int(guild_id), *ids),
        )
        return {
            int(r["ticket_id"]): {"reason": r["close_reason"], "closed_by": r["closed_by"]}
            for r in rows
        }

    # ------------------------------------------------------------------
    # tags
    # ------------------------------------------------------------------

    def get_tags(self, guild_id: int) -> List[Dict[str, Any]]:
        return self._rows(
            "SELECT * FROM tags WHERE guild_id = ? ORDER BY tag_id", (int(guild_id),)
        )

    # ------------------------------------------------------------------
    # blacklist
    # ------------------------------------------------------------------

    def get_blacklisted_users(
        self, guild_id: int, limit: int = 100000, offset: int = 0
    ) -> List[int]:
        return self._ids(
            "SELECT user_id FROM guild_blacklisted_users WHERE guild_id = ? "
            "ORDER BY user_id LIMIT ? OFFSET ?",
            (int(guild_id), int(limit), int(offset)),
        )

    def get_blacklisted_roles(self, guild_id: int) -> List[int]:
        return self._ids(
            "SELECT role_id FROM guild_blacklisted_roles WHERE guild_id = ? ORDER BY role_id",
            (int(guild_id),),
        )

    # ------------------------------------------------------------------
    # forms
    # ------------------------------------------------------------------

    def get_forms(self, guild_id: int) -> List[Dict[str, Any]]:
        return self._rows(
            "SELECT * FROM forms WHERE guild_id = ? ORDER BY form_id", (int(guild_id),)
        )

    def get_form_inputs_for_guild(self, guild_id: int) -> Dict[int, List[Dict[str, Any]]]:
        rows = self._rows(
            """
            SELECT i.* FROM form_input i
            JOIN forms f ON f.form_id = i.form_id
            WHERE f.guild_id = ?
            ORDER BY i.form_id, i.position, i.id
            """,
            (int(guild_id),),
        )
        out: Dict[int, List[Dict[str, Any]]] = {}
        for r in rows:
            r["required"] = bool(r["required"])
            out.setdefault(int(r["form_id"]), []).append(r)
        return out

    # ------------------------------------------------------------------
    # support teams
    # ------------------------------------------------------------------

    def get_support_teams(self, guild_id: int) -> List[Dict[str, Any]]:
        return self._rows(
            "SELECT * FROM support_team WHERE guild_id = ? ORDER BY id", (int(guild_id),)
        )

    def get_support_team(self, team_id: int) -> Optional[Dict[str, Any]]:
        return self._row("SELECT * FROM support_team WHERE id = ?", (int(team_id),))

    def get_team_members(self, team_id: int) -> List[int]:
        return self._ids(
            "SELECT user_id FROM support_team_members WHERE team_id = ? ORDER BY user_id",
            (int(team_id),),
        )

    def get_team_roles(self, team_id: int) -> List[int]:
        return self._ids(
            "SELECT role_id FROM support_team_roles WHERE team_id = ? ORDER BY role_id",
            (int(team_id),),
        )

    # ------------------------------------------------------------------
    # premium / whitelabel
    # ------------------------------------------------------------------

    def get_premium_tier(self, user_id: int) -> int:
        return int(
            self._scalar(
                "SELECT tier FROM premium_tiers WHERE user_id = ?", (int(user_id),), -1
            )
        )

    def get_whitelabel_bot_id(self, user_id: int) -> Optional[int]:
        v = self._scalar("SELECT bot_id FROM whitelabel WHERE user_id = ?", (int(user_id),))
        return int(v) if v is not None else None
