"""Token service: the write and read paths for per-project tokens.

Each project has at most one token row. ``upsert_token`` replaces it in a
single transaction, creating the project on the fly if the name is new.
"""

import logging
import sqlite3

from tokenvault.exceptions import TokenNotFoundError, ValidationError
from tokenvault.models.token import DEFAULT_TOKEN_TYPE, Token
from tokenvault.services.database import Database
from tokenvault.utils import normalize_project_name
from tokenvault.utils.dates import parse_timestamp, to_iso, utc_now

logger = logging.getLogger(__name__)

_TOKEN_SELECT = """
    SELECT t.id, t.project_id, t.token_value, t.token_type, t.expires_at,
           t.created_at, t.updated_at, p.name AS project_name
    FROM tokens t
    INNER JOIN projects p ON t.project_id = p.id
"""


def row_to_token(row: sqlite3.Row) -> Token:
    """Convert a joined tokens row to a Token model."""
    return Token(
        id=row["id"],
        project_id=row["project_id"],
        project_name=row["project_name"],
        token_value=row["token_value"],
        token_type=row["token_type"],
        expires_at=parse_timestamp(row["expires_at"]),
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


class TokenService:
    """Service for token operations."""

    def __init__(self, db: Database) -> None:
        """Initialize the token service.

        Args:
            db: The shared database.
        """
        self.db = db

    def upsert_token(self, project_name: str, token_value: str) -> tuple[int, int]:
        """Store a token as the current token of a project.

        Creates the project with port 0 if no project has this name
        (ignoring case), deletes any previous token of the project and
        inserts the new one, all in one transaction.

        Args:
            project_name: Name of the owning project.
            token_value: Opaque token string.

        Returns:
            Tuple of (project id, new token id).

        Raises:
            ValidationError: If the project name or token is empty.
            StoreError: If the database fails; nothing is changed.
        """
        name = normalize_project_name(project_name or "")
        if not name:
            raise ValidationError("Project name cannot be empty")
        if not token_value:
            raise ValidationError("Token cannot be empty")

        now = to_iso(utc_now())

        with self.db.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO projects (name, port, created_at, updated_at) "
                "VALUES (?, 0, ?, ?)",
                (name, now, now),
            )
            project_id = conn.execute(
                "SELECT id FROM projects WHERE name = ?", (name,)
            ).fetchone()["id"]

            replaced = conn.execute(
                "DELETE FROM tokens WHERE project_id = ?", (project_id,)
            ).rowcount

            cursor = conn.execute(
                "INSERT INTO tokens (project_id, token_value, token_type, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (project_id, token_value, DEFAULT_TOKEN_TYPE, now, now),
            )
            token_id = cursor.lastrowid

        logger.info(
            "Stored token for %s (project %d, replaced %d)", name, project_id, replaced
        )
        return project_id, token_id  # type: ignore[return-value]

    def latest_token(self, project_name: str) -> Token | None:
        """Get the current token of a project.

        Args:
            project_name: Project name, matched ignoring case.

        Returns:
            The token, or None if the project has no token or does not exist.
        """
        row = self.db.fetchone(
            _TOKEN_SELECT + " WHERE p.name = ? ORDER BY t.updated_at DESC, t.id DESC LIMIT 1",
            (normalize_project_name(project_name or ""),),
        )
        return row_to_token(row) if row else None

    def get(self, token_id: int) -> Token:
        """Get a token by id.

        Raises:
            TokenNotFoundError: If no token has that id.
        """
        row = self.db.fetchone(_TOKEN_SELECT + " WHERE t.id = ?", (token_id,))
        if row is None:
            raise TokenNotFoundError(token_id)
        return row_to_token(row)

    def list_tokens(self) -> list[Token]:
        """List every stored token, most recently updated first."""
        rows = self.db.fetchall(_TOKEN_SELECT + " ORDER BY t.updated_at DESC, t.id DESC")
        return [row_to_token(row) for row in rows]

    def list_by_project(self, project_id: int) -> list[Token]:
        """List the tokens of one project (at most one in practice)."""
        rows = self.db.fetchall(
            _TOKEN_SELECT + " WHERE t.project_id = ? ORDER BY t.updated_at DESC, t.id DESC",
            (project_id,),
        )
        return [row_to_token(row) for row in rows]

    def delete(self, token_id: int) -> None:
        """Delete a token by id.

        Raises:
            TokenNotFoundError: If no token has that id.
        """
        if self.db.execute("DELETE FROM tokens WHERE id = ?", (token_id,)) == 0:
            raise TokenNotFoundError(token_id)
        logger.info("Deleted token %d", token_id)

    def delete_by_project(self, project_id: int) -> int:
        """Delete the token(s) of a project, keeping the project.

        Returns:
            Number of rows deleted.
        """
        return self.db.execute("DELETE FROM tokens WHERE project_id = ?", (project_id,))
