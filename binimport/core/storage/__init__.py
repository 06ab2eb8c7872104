"""
Storage layer: SQLite projects that imported programs are saved into.

This module provides the destination containers the loader writes to:

Components:
    - ProjectRepository: Main facade that coordinates all storage
    - ProjectFolder: A folder handle; create_file() saves a program
    - FolderStorage: CRUD operations for the folders table
    - ProgramStorage: CRUD operations for programs and their contents

Database Schema:
    folders: path, created_at
    programs: id, folder, name, language_id, compiler_spec_id, image_base, created_at
    properties: program_id, key, value
    blocks: program_id, name, start, length, initialized, mode, overlay, data
    symbols: program_id, name, address, is_primary, is_pinned, is_entry
    functions: program_id, name, entry, body_start, body_end

The database is stored at .binimport/project.db relative to the project root.
"""

from binimport.core.storage.folders import FolderStorage, ProjectFolder, validate_name
from binimport.core.storage.programs import ProgramStorage
from binimport.core.storage.repository import ProjectRepository, get_default_db_path

__all__ = [
    "ProjectRepository",
    "ProjectFolder",
    "FolderStorage",
    "ProgramStorage",
    "validate_name",
    "get_default_db_path",
]
