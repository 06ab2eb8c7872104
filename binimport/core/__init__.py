"""
Core module: program model, load steps, and storage.

This module provides the format-independent half of every loader:

Models (models.py, program.py):
    - Address/AddressSpace/AddressFactory: Addressing within a processor
    - Language/CompilerSpec/LoadSpec: What a program is loaded as
    - Program: Memory blocks, symbols, functions and properties

Load steps:
    - identity.py: Program creation, provenance properties, hashes
    - memory.py: Language-defined default memory blocks
    - labels.py: Processor labels and function markers
    - naming.py: Saving under a unique name
    - loader.py: Loader, which runs the steps around an extractor

Exceptions (exceptions.py):
    - BinImportError: Base exception for all binimport errors
    - InvalidInputError, MemoryAccessError: Rejected program changes
    - CancelledError: Operation cancelled through its TaskMonitor

Storage (storage/):
    - ProjectRepository: Facade for all database operations
    - Uses SQLite for persistence in .binimport/project.db
"""

from binimport.core.exceptions import (
    BinImportError,
    CancelledError,
    InvalidInputError,
    MemoryAccessError,
)
from binimport.core.loader import Loader
from binimport.core.messages import MessageLog
from binimport.core.models import Address, AddressSpace, Language, LoadSpec, Option
from binimport.core.monitor import TaskMonitor
from binimport.core.program import Program
from binimport.core.storage import ProjectRepository, get_default_db_path

__all__ = [
    # Models
    "Address",
    "AddressSpace",
    "Language",
    "LoadSpec",
    "Option",
    "Program",
    # Loading
    "Loader",
    "MessageLog",
    "TaskMonitor",
    # Exceptions
    "BinImportError",
    "CancelledError",
    "InvalidInputError",
    "MemoryAccessError",
    # Storage
    "ProjectRepository",
    "get_default_db_path",
]
