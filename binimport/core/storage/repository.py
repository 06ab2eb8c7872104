"""Repository that coordinates all project storage operations."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from binimport.core.exceptions import ProjectFileNotFoundError
from binimport.core.models import ProjectFile
from binimport.core.storage.folders import ROOT_PATH, FolderStorage, ProjectFolder
from binimport.core.storage.programs import ProgramStorage

_SCHEMA = """
CREATE TABLE IF NOT EXISTS folders (
    path TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS programs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    folder TEXT NOT NULL,
    name TEXT NOT NULL,
    language_id TEXT NOT NULL,
    compiler_spec_id TEXT NOT NULL,
    image_base TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (folder, name),
    FOREIGN KEY (folder) REFERENCES folders(path)
);

CREATE TABLE IF NOT EXISTS properties (
    program_id INTEGER NOT NULL,
    key TEXT NOT NULL,
    value TEXT,
    PRIMARY KEY (program_id, key),
    FOREIGN KEY (program_id) REFERENCES programs(id)
);

CREATE TABLE IF NOT EXISTS blocks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    program_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    start TEXT NOT NULL,
    length INTEGER NOT NULL,
    initialized INTEGER DEFAULT 0,
    mode TEXT DEFAULT 'rw',
    overlay INTEGER DEFAULT 0,
    data BLOB,
    FOREIGN KEY (program_id) REFERENCES programs(id)
);

CREATE TABLE IF NOT EXISTS symbols (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    program_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    address TEXT NOT NULL,
    is_primary INTEGER DEFAULT 0,
    is_pinned INTEGER DEFAULT 0,
    is_entry INTEGER DEFAULT 0,
    FOREIGN KEY (program_id) REFERENCES programs(id)
);

CREATE TABLE IF NOT EXISTS functions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    program_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    entry TEXT NOT NULL,
    body_start TEXT NOT NULL,
    body_end TEXT NOT NULL,
    FOREIGN KEY (program_id) REFERENCES programs(id)
);

CREATE INDEX IF NOT EXISTS idx_programs_folder ON programs(folder);
CREATE INDEX IF NOT EXISTS idx_blocks_program ON blocks(program_id);
CREATE INDEX IF NOT EXISTS idx_symbols_program ON symbols(program_id);
CREATE INDEX IF NOT EXISTS idx_functions_program ON functions(program_id);

INSERT OR IGNORE INTO folders (path) VALUES ('/');
"""


class ProjectRepository:
    """Facade that coordinates folder and program storage for one project."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

        self.folders = FolderStorage(self._get_connection)
        self.programs = ProgramStorage(self._get_connection)

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create a database connection."""
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        return self._conn

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> ProjectRepository:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    @property
    def root_folder(self) -> ProjectFolder:
        return ProjectFolder(self, ROOT_PATH)

    def get_folder(self, path: str) -> ProjectFolder | None:
        """Get an existing folder, or None."""
        path = _normalize(path)
        if not self.folders.exists(path):
            return None
        return ProjectFolder(self, path)

    def create_folder_path(self, folder: ProjectFolder, path: str) -> ProjectFolder:
        """Create (as needed) every folder along `path` below `folder`."""
        current = folder
        for part in path.strip("/").split("/"):
            if part:
                current = current.create_folder(part)
        return current

    def list_files(self, folder: str | None = None) -> list[ProjectFile]:
        """List stored programs, optionally restricted to one folder."""
        folder = _normalize(folder) if folder is not None else None
        return [self.programs.load(record) for record in self.programs.list_rows(folder)]

    def open_file(self, path: str) -> ProjectFile:
        """Get a stored program by its project path (e.g. `/firmware/boot.bin`)."""
        path = _normalize(path)
        folder, _, name = path.rpartition("/")
        record = self.programs.get(folder or ROOT_PATH, name)
        if record is None:
            raise ProjectFileNotFoundError(f"No program stored at '{path}'")
        return self.programs.load(record)

    def get_stats(self) -> dict[str, int | datetime | None]:
        """Get project statistics."""
        conn = self._get_connection()

        folder_count = conn.execute("SELECT COUNT(*) FROM folders").fetchone()[0]
        program_count = conn.execute("SELECT COUNT(*) FROM programs").fetchone()[0]
        block_count = conn.execute("SELECT COUNT(*) FROM blocks").fetchone()[0]
        symbol_count = conn.execute("SELECT COUNT(*) FROM symbols").fetchone()[0]

        last_row = conn.execute("SELECT MAX(created_at) FROM programs").fetchone()[0]
        last_imported = datetime.fromisoformat(last_row) if last_row else None

        return {
            "folders": folder_count,
            "programs": program_count,
            "blocks": block_count,
            "symbols": symbol_count,
            "last_imported": last_imported,
        }

    def clear(self) -> None:
        """Clear all data from the project."""
        self.programs.clear()
        self.folders.clear()


def _normalize(path: str) -> str:
    return "/" + path.strip().strip("/")


def get_default_db_path(project_root: Path) -> Path:
    """Get the default database path for a project."""
    return project_root / ".binimport" / "project.db"
