# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations

import secrets
from pathlib import Path
from typing import Optional, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from admin.logging_setup import LOGGER
from common.common_helpers import parse_snowflake

SESSION_COOKIE_NAME = "dashboard_session"
SESSION_MAX_AGE = 60 * 60 * 12
SESSION_SALT = "dashboard-session"

OPEN_PATHS = ("/health",)


def _client_ip(request: Request) -> str:
    """
    Best-effort client IP for logging, aware of reverse proxies / Cloudflare.
    """
    hdrs = request.headers

    cf_ip = hdrs.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()

    real_ip = hdrs.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    xff = hdrs.get("x-forwarded-for")
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first

    if request.client:
        return request.client.host

    return "unknown"


def load_or_create_secret_key(
    data_dir: Path,
    secret_env: str,
    filename: str = "secret.key",
) -> str:
    """
    Load a stable secret key for signing session tokens.

    Priority:
      1) SECRET_KEY env
      2) <DATA_DIR>/secret.key (auto-persisted)
      3) freshly generated (non-persisted if write fails)
    """
    if secret_env:
        return secret_env

    secret_file = data_dir / filename

    if secret_file.exists():
        try:
            key = secret_file.read_text(encoding="utf-8").strip()
            if key:
                return key
        except OSError:
            LOGGER.warning(
                "Failed reading %s; regenerating", secret_file, exc_info=True
            )

    key = secrets.token_urlsafe(32)
    try:
        secret_file.write_text(key, encoding="utf-8")
    except OSError:
        LOGGER.warning(
            "Failed writing %s; key will rotate on restart", secret_file, exc_info=True
        )
    return key


def make_signer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=SESSION_SALT)


def issue_session_token(signer: URLSafeTimedSerializer, user_id: int) -> str:
    return signer.dumps({"user_id": str(int(user_id))})


def decode_session(
    signer: URLSafeTimedSerializer, token: str | None
) -> Optional[Dict]:
    """
    Return session payload if token is valid & not expired, else None.
    """
    if not token:
        return None
    try:
        return signer.loads(token, max_age=SESSION_MAX_AGE)
    except (BadSignature, SignatureExpired):
        return None


def _token_from_request(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE_NAME)


class SessionGuardMiddleware(BaseHTTPMiddleware):
    """
    Every request outside OPEN_PATHS needs a valid signed session token,
    either as the session cookie or an Authorization: Bearer header.
    The caller's user id ends up on request.state.user_id.
    """

    def __init__(self, app, signer: URLSafeTimedSerializer):
        super().__init__(app)
        self.signer = signer

    async def dispatch(self, request: Request, call_next):
        path = request.url.path or "/"
        if path.startswith(OPEN_PATHS):
            return await call_next(request)

        sess = decode_session(self.signer, _token_from_request(request))
        user_id = parse_snowflake((sess or {}).get("user_id"))
        if user_id is None:
            LOGGER.info(
                "Rejected unauthenticated %s %s from %s",
                request.method,
                path,
                _client_ip(request),
            )
            return JSONResponse(
                {"success": False, "error": "Unauthorized"},
                status_code=status.HTTP_401_UNAUTHORIZED,
            )

        request.state.user_id = user_id
        return await call_next(request)


def init_auth(app: FastAPI, secret_key: str) -> URLSafeTimedSerializer:
    """
    Set up the session signer and install SessionGuardMiddleware.
    """
    signer = make_signer(secret_key)
    app.state.signer = signer
    app.add_middleware(SessionGuardMiddleware, signer=signer)
    return signer
