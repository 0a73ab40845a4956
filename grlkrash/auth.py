"""
SessionMint - bearer tokens for the governance API
==================================================
Tokens are macaroons bound to one user by a first-party caveat
(`user = <id>`). Each session also lives in SQLite so it can expire or be
revoked server-side.
"""

import logging
import secrets
import sqlite3
import time
from pathlib import Path

from pymacaroons import Macaroon, Verifier

from . import config
from .errors import AuthError

logger = logging.getLogger("Auth")

DEFAULT_TTL = 24 * 60 * 60
EXPIRED_GRACE = 24 * 60 * 60


def _identifier(macaroon):
    m_id = macaroon.identifier
    if isinstance(m_id, bytes):
        m_id = m_id.decode("utf-8")
    return m_id


class SessionMint:
    def __init__(self, secret=None, location=None, db_path=None, clock=time.time):
        self.secret = secret or config.TOKEN_SECRET
        if not self.secret:
            logger.warning("⚠️ TOKEN_SECRET not set; sessions will not survive a restart")
            self.secret = secrets.token_hex(32)
        self.location = location or config.TOKEN_LOCATION
        self.db_path = Path(db_path or Path(config.BRAIN_DIR) / "sessions.db")
        self.clock = clock
        self._init_db()

    def _get_db(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._get_db() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    expires_at REAL NOT NULL,
                    revoked BOOLEAN DEFAULT 0
                )
            """)
            conn.commit()

    def create_session(self, user_id, ttl_seconds=DEFAULT_TTL):
        """Mint a token for `user_id`. Returns (token, expires_at)."""
        session_id = f"sess_{secrets.token_hex(16)}"
        expires_at = self.clock() + ttl_seconds

        m = Macaroon(location=self.location, identifier=session_id, key=self.secret)
        m.add_first_party_caveat(f"user = {user_id}")

        with self._get_db() as conn:
            conn.execute(
                "INSERT INTO sessions (id, user_id, expires_at, revoked) VALUES (?, ?, ?, 0)",
                (session_id, user_id, expires_at),
            )
            conn.commit()

        logger.info(f"🎫 Session minted for {user_id}")
        return m.serialize(), expires_at

    def _load(self, token_str):
        try:
            m = Macaroon.deserialize(token_str)
        except Exception as e:
            raise AuthError(f"Malformed token: {e}") from e

        with self._get_db() as conn:
            row = conn.execute(
                "SELECT user_id, expires_at, revoked FROM sessions WHERE id = ?",
                (_identifier(m),),
            ).fetchone()
        if row is None:
            raise AuthError("Session not found")

        v = Verifier()
        v.satisfy_exact(f"user = {row['user_id']}")
        try:
            v.verify(m, self.secret)
        except Exception as e:
            raise AuthError("Invalid signature") from e
        return m, row

    def verify(self, token_str):
        """Returns the user id the token was minted for."""
        _, row = self._load(token_str)
        if row["revoked"]:
            raise AuthError("Session revoked")
        if row["expires_at"] <= self.clock():
            raise AuthError("Session expired")
        return row["user_id"]

    def revoke(self, token_str):
        m, _ = self._load(token_str)
        with self._get_db() as conn:
            conn.execute("UPDATE sessions SET revoked = 1 WHERE id = ?", (_identifier(m),))
            conn.commit()

    def cleanup_expired(self):
        cutoff = self.clock() - EXPIRED_GRACE
        with self._get_db() as conn:
            deleted = conn.execute("DELETE FROM sessions WHERE expires_at < ?", (cutoff,)).rowcount
            conn.commit()
        if deleted:
            logger.info(f"🧹 Removed {deleted} expired sessions")
        return deleted
