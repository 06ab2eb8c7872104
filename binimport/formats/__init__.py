"""
Format extractors: the format-specific half of a loader.

An extractor turns a byte source into candidate programs; the Loader
wraps it with the format-independent steps (processor labels, saving
under a unique name, release on failure).

Components:
    - ProgramExtractor: Protocol defining the extractor interface
    - RawBinaryExtractor: Maps a file's bytes unchanged at a base address

Adding a new format:
    1. Create an extractor class implementing the ProgramExtractor protocol
    2. Implement extract() to build programs with create_program()
    3. Implement merge_into() to add bytes to an existing program
    4. Register it in EXTRACTORS so the CLI and MCP server can find it
"""

from binimport.formats.base import ProgramExtractor
from binimport.formats.raw import RawBinaryExtractor

EXTRACTORS: dict[str, type] = {
    "raw": RawBinaryExtractor,
}

__all__ = [
    "EXTRACTORS",
    "ProgramExtractor",
    "RawBinaryExtractor",
]
