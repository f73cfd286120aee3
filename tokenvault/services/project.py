"""Project service for operations on the projects table."""

import logging
import sqlite3

from tokenvault.exceptions import ProjectExistsError, ProjectNotFoundError, ValidationError
from tokenvault.models.project import Project
from tokenvault.services.database import Database
from tokenvault.utils import normalize_project_name
from tokenvault.utils.dates import parse_timestamp, to_iso, utc_now

logger = logging.getLogger(__name__)

_PROJECT_COLUMNS = "id, name, port, api_base_url, description, created_at, updated_at"


def row_to_project(row: sqlite3.Row) -> Project:
    """Convert a projects row to a Project model.

    Args:
        row: Row selected with the standard project columns.

    Returns:
        Project instance.
    """
    return Project(
        id=row["id"],
        name=row["name"],
        port=row["port"],
        api_base_url=row["api_base_url"],
        description=row["description"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


class ProjectService:
    """Service for project operations."""

    def __init__(self, db: Database) -> None:
        """Initialize the project service.

        Args:
            db: The shared database.
        """
        self.db = db

    def list_projects(self) -> list[Project]:
        """List all projects.

        Returns:
            Projects sorted by name, ascending.
        """
        rows = self.db.fetchall(
            f"SELECT {_PROJECT_COLUMNS} FROM projects ORDER BY name"
        )
        return [row_to_project(row) for row in rows]

    def find_by_name(self, name: str) -> Project | None:
        """Find a project by name, ignoring case.

        Args:
            name: Project name.

        Returns:
            The project, or None if no project has that name.
        """
        row = self.db.fetchone(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE name = ?",
            (normalize_project_name(name),),
        )
        return row_to_project(row) if row else None

    def find_by_port(self, port: int) -> Project | None:
        """Find the first project registered on a local port.

        Args:
            port: Port number.

        Returns:
            The project, or None.
        """
        row = self.db.fetchone(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE port = ? ORDER BY id LIMIT 1",
            (port,),
        )
        return row_to_project(row) if row else None

    def get(self, project_id: int) -> Project:
        """Get a project by id.

        Args:
            project_id: Row id.

        Returns:
            The project.

        Raises:
            ProjectNotFoundError: If no project has that id.
        """
        row = self.db.fetchone(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?",
            (project_id,),
        )
        if row is None:
            raise ProjectNotFoundError(project_id)
        return row_to_project(row)

    def create(
        self,
        name: str,
        port: int = 0,
        api_base_url: str | None = None,
        description: str | None = None,
    ) -> Project:
        """Create a new project.

        Args:
            name: Unique project name.
            port: Local port of the backend, 0 if unknown.
            api_base_url: Optional base URL for API requests.
            description: Optional description.

        Returns:
            The created project.

        Raises:
            ValidationError: If the name is empty or the port is negative.
            ProjectExistsError: If the name is taken (ignoring case).
        """
        name = self._validate(name, port)
        now = to_iso(utc_now())

        with self.db.transaction() as conn:
            existing = conn.execute(
                "SELECT id FROM projects WHERE name = ?", (name,)
            ).fetchone()
            if existing is not None:
                raise ProjectExistsError(name)
            cursor = conn.execute(
                "INSERT INTO projects (name, port, api_base_url, description, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (name, port, api_base_url, description, now, now),
            )
            project_id = cursor.lastrowid

        logger.info("Created project %s (port %d)", name, port)
        return self.get(project_id)  # type: ignore[arg-type]

    def update(self, project: Project) -> Project:
        """Save changes to an existing project.

        Args:
            project: Project with the id of the row to update.

        Returns:
            The updated project.

        Raises:
            ProjectNotFoundError: If the id does not exist.
            ProjectExistsError: If the new name collides with another project.
        """
        name = self._validate(project.name, project.port)

        with self.db.transaction() as conn:
            clash = conn.execute(
                "SELECT id FROM projects WHERE name = ? AND id != ?",
                (name, project.id),
            ).fetchone()
            if clash is not None:
                raise ProjectExistsError(name)
            cursor = conn.execute(
                "UPDATE projects SET name = ?, port = ?, api_base_url = ?, description = ?, "
                "updated_at = ? WHERE id = ?",
                (
                    name,
                    project.port,
                    project.api_base_url,
                    project.description,
                    to_iso(utc_now()),
                    project.id,
                ),
            )
            if cursor.rowcount == 0:
                raise ProjectNotFoundError(project.id)

        return self.get(project.id)

    def create_or_update(
        self,
        name: str,
        port: int = 0,
        api_base_url: str | None = None,
        description: str | None = None,
    ) -> Project:
        """Register a project, updating its metadata if it already exists.

        Args:
            name: Project name (matched ignoring case).
            port: Local port of the backend.
            api_base_url: Optional base URL for API requests.
            description: Optional description.

        Returns:
            The created or updated project.
        """
        existing = self.find_by_name(name)
        if existing is None:
            return self.create(name, port, api_base_url, description)

        existing.port = port
        existing.api_base_url = api_base_url
        existing.description = description
        return self.update(existing)

    def delete(self, project_id: int) -> None:
        """Delete a project and, through the foreign key, its token.

        Args:
            project_id: Row id.

        Raises:
            ProjectNotFoundError: If no project has that id.
        """
        if self.db.execute("DELETE FROM projects WHERE id = ?", (project_id,)) == 0:
            raise ProjectNotFoundError(project_id)
        logger.info("Deleted project %d", project_id)

    @staticmethod
    def _validate(name: str, port: int) -> str:
        name = normalize_project_name(name or "")
        if not name:
            raise ValidationError("Project name cannot be empty")
        if port < 0 or port > 65535:
            raise ValidationError(f"Invalid port: {port}")
        return name
