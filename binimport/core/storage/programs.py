"""Program storage operations."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from typing import TYPE_CHECKING

from binimport.core.models import ProjectFile, StoredBlock, StoredFunction, StoredSymbol

if TYPE_CHECKING:
    from binimport.core.program import Program


class ProgramStorage:
    """Storage operations for saved programs and their contents."""

    def __init__(self, get_connection: Callable[[], sqlite3.Connection]) -> None:
        self._get_connection = get_connection

    def insert(self, folder: str, name: str, program: Program) -> int:
        """Save a program and everything it owns in one database transaction.

        Returns the new program ID. Raises sqlite3.IntegrityError when the
        folder already holds `name`.
        """
        conn = self._get_connection()
        symbol_table = program.symbol_table
        with conn:
            cursor = conn.execute(
                """
                INSERT INTO programs (folder, name, language_id, compiler_spec_id, image_base)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    folder,
                    name,
                    program.language.language_id,
                    program.compiler_spec.compiler_spec_id,
                    str(program.image_base),
                ),
            )
            program_id: int = cursor.lastrowid  # type: ignore[assignment]
            conn.executemany(
                "INSERT INTO properties (program_id, key, value) VALUES (?, ?, ?)",
                [(program_id, key, value) for key, value in program.properties.items()],
            )
            conn.executemany(
                """
                INSERT INTO blocks (program_id, name, start, length, initialized, mode,
                                    overlay, data)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        program_id,
                        block.name,
                        str(block.start),
                        block.length,
                        int(block.initialized),
                        block.mode,
                        int(block.overlay),
                        bytes(block.data) if block.data is not None else None,
                    )
                    for block in program.memory.blocks
                ],
            )
            conn.executemany(
                """
                INSERT INTO symbols (program_id, name, address, is_primary, is_pinned, is_entry)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        program_id,
                        symbol.name,
                        str(symbol.address),
                        int(symbol.primary),
                        int(symbol.pinned),
                        int(symbol_table.is_external_entry_point(symbol.address)),
                    )
                    for symbol in symbol_table.symbols
                ],
            )
            conn.executemany(
                """
                INSERT INTO functions (program_id, name, entry, body_start, body_end)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (program_id, f.name, str(f.entry), str(f.body_start), str(f.body_end))
                    for f in program.function_manager.functions
                ],
            )
        return program_id

    def get(self, folder: str, name: str) -> sqlite3.Row | None:
        """Get the programs row for `folder`/`name`, or None."""
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT * FROM programs WHERE folder = ? AND name = ?", (folder, name)
        )
        return cursor.fetchone()  # type: ignore[no-any-return]

    def list_rows(self, folder: str | None = None) -> list[sqlite3.Row]:
        """Get programs rows, optionally restricted to one folder."""
        conn = self._get_connection()
        if folder is not None:
            cursor = conn.execute(
                "SELECT * FROM programs WHERE folder = ? ORDER BY name", (folder,)
            )
        else:
            cursor = conn.execute("SELECT * FROM programs ORDER BY folder, name")
        return cursor.fetchall()

    def load(self, row: sqlite3.Row) -> ProjectFile:
        """Build a ProjectFile, with its contents, from a programs row."""
        conn = self._get_connection()
        record = ProjectFile.from_row(row)
        program_id = record.id

        cursor = conn.execute(
            "SELECT key, value FROM properties WHERE program_id = ? ORDER BY key", (program_id,)
        )
        record.properties = {r["key"]: r["value"] for r in cursor.fetchall()}

        cursor = conn.execute(
            "SELECT * FROM blocks WHERE program_id = ? ORDER BY id", (program_id,)
        )
        record.blocks = [StoredBlock.from_row(r) for r in cursor.fetchall()]

        cursor = conn.execute(
            "SELECT * FROM symbols WHERE program_id = ? ORDER BY id", (program_id,)
        )
        record.symbols = [StoredSymbol.from_row(r) for r in cursor.fetchall()]

        cursor = conn.execute(
            "SELECT * FROM functions WHERE program_id = ? ORDER BY id", (program_id,)
        )
        record.functions = [StoredFunction.from_row(r) for r in cursor.fetchall()]
        return record

    def get_block_data(self, program_id: int, block_name: str) -> bytes | None:
        """Get the stored bytes of an initialized block."""
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT data FROM blocks WHERE program_id = ? AND name = ?", (program_id, block_name)
        )
        row = cursor.fetchone()
        return None if row is None else row["data"]

    def clear(self) -> None:
        """Delete all programs and their contents."""
        conn = self._get_connection()
        with conn:
            conn.execute("DELETE FROM functions")
            conn.execute("DELETE FROM symbols")
            conn.execute("DELETE FROM blocks")
            conn.execute("DELETE FROM properties")
            conn.execute("DELETE FROM programs")
