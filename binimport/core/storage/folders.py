"""Project folders: the destination containers programs are saved into."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from typing import TYPE_CHECKING

from binimport.core.exceptions import DuplicateFileError, InvalidNameError
from binimport.core.models import ProjectFile, join_path
from binimport.core.monitor import DUMMY_MONITOR, TaskMonitor

if TYPE_CHECKING:
    from binimport.core.program import Program
    from binimport.core.storage.repository import ProjectRepository

ROOT_PATH = "/"

_MAX_NAME_LENGTH = 255


class FolderStorage:
    """Storage operations for folders."""

    def __init__(self, get_connection: Callable[[], sqlite3.Connection]) -> None:
        self._get_connection = get_connection

    def insert(self, path: str) -> None:
        """Insert a folder if it does not exist yet."""
        conn = self._get_connection()
        conn.execute("INSERT OR IGNORE INTO folders (path) VALUES (?)", (path,))
        conn.commit()

    def exists(self, path: str) -> bool:
        conn = self._get_connection()
        cursor = conn.execute("SELECT 1 FROM folders WHERE path = ?", (path,))
        return cursor.fetchone() is not None

    def children(self, path: str) -> list[str]:
        """Get the paths of the direct sub-folders of `path`."""
        conn = self._get_connection()
        prefix = path.rstrip("/") + "/"
        cursor = conn.execute(
            "SELECT path FROM folders WHERE path LIKE ? AND path != ? ORDER BY path",
            (prefix + "%", ROOT_PATH),
        )
        return [row["path"] for row in cursor.fetchall() if "/" not in row["path"][len(prefix) :]]

    def clear(self) -> None:
        """Delete every folder except the root."""
        conn = self._get_connection()
        conn.execute("DELETE FROM folders WHERE path != ?", (ROOT_PATH,))
        conn.commit()


class ProjectFolder:
    """A folder in a project, able to store programs."""

    def __init__(self, repository: ProjectRepository, path: str) -> None:
        self._repo = repository
        self.path = path

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rpartition("/")[2]

    def create_file(
        self, name: str, program: Program, monitor: TaskMonitor = DUMMY_MONITOR
    ) -> ProjectFile:
        """Save `program` in this folder as `name`.

        Raises:
            InvalidNameError: the name cannot be used for a project file
            DuplicateFileError: a file with that name already exists here
            CancelledError: the monitor was cancelled
        """
        validate_name(name)
        monitor.check_cancelled()
        if self._repo.programs.get(self.path, name) is not None:
            raise DuplicateFileError(f"File '{join_path(self.path, name)}' already exists")
        try:
            self._repo.programs.insert(self.path, name, program)
        except sqlite3.IntegrityError as e:
            raise DuplicateFileError(f"File '{join_path(self.path, name)}' already exists") from e

        record = self._repo.programs.get(self.path, name)
        stored = self._repo.programs.load(record)  # type: ignore[arg-type]
        program.bind_domain_file(stored)
        return stored

    def create_folder(self, name: str) -> ProjectFolder:
        """Create (or get) a direct sub-folder."""
        validate_name(name)
        path = join_path(self.path, name)
        self._repo.folders.insert(path)
        return ProjectFolder(self._repo, path)

    def create_folder_path(self, path: str) -> ProjectFolder:
        """Create (as needed) every folder along `path` below this one."""
        return self._repo.create_folder_path(self, path)

    def get_file(self, name: str) -> ProjectFile | None:
        record = self._repo.programs.get(self.path, name)
        if record is None:
            return None
        return self._repo.programs.load(record)

    def files(self) -> list[ProjectFile]:
        return self._repo.list_files(self.path)

    def folders(self) -> list[ProjectFolder]:
        return [ProjectFolder(self._repo, p) for p in self._repo.folders.children(self.path)]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProjectFolder):
            return NotImplemented
        return self._repo is other._repo and self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"ProjectFolder({self.path!r})"


def validate_name(name: str) -> None:
    """Check that `name` can be used for a project file or folder."""
    if not name or not name.strip():
        raise InvalidNameError("Name must not be empty")
    if len(name) > _MAX_NAME_LENGTH:
        raise InvalidNameError(f"Name exceeds {_MAX_NAME_LENGTH} characters: '{name[:32]}...'")
    if name.startswith("."):
        raise InvalidNameError(f"Name must not start with '.': '{name}'")
    if "/" in name or "\\" in name:
        raise InvalidNameError(f"Name must not contain path separators: '{name}'")
    if any(ord(ch) < 0x20 or ch == "\x7f" for ch in name):
        raise InvalidNameError(f"Name contains control characters: {name!r}")
