"""Scoped transactions and event gating for programs."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from binimport.core.program import Program


class Transaction:
    """Handle for an open program transaction.

    `commit` decides how the transaction ends; the body may change it.
    """

    def __init__(self, program: Program, description: str, commit: bool) -> None:
        self.program = program
        self.description = description
        self.commit = commit
        self.id: int | None = None

    def __repr__(self) -> str:
        return f"Transaction({self.description!r}, commit={self.commit})"


@contextmanager
def transaction(program: Program, description: str, commit: bool = True) -> Iterator[Transaction]:
    """Run the body inside a program transaction.

    The transaction is ended on every exit path, including exceptions and
    cancellation, with whatever `Transaction.commit` holds at that point.

    Usage:
        with transaction(program, "Create default blocks"):
            ...

        with transaction(program, "Loading", commit=False) as tx:
            tx.commit = do_work()
    """
    tx = Transaction(program, description, commit)
    tx.id = program.start_transaction(description)
    try:
        yield tx
    finally:
        program.end_transaction(tx.id, tx.commit)


@contextmanager
def events_disabled(program: Program) -> Iterator[Program]:
    """Suppress change events for the body, re-enabling them on every exit path."""
    program.set_events_enabled(False)
    try:
        yield program
    finally:
        program.set_events_enabled(True)
