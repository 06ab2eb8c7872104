"""The structured program under construction.

A Program owns its memory blocks, symbol table, function table and a property
bag. Every structural change must happen inside a transaction; ending the
outermost transaction without commit restores the state captured when it
started. Change notifications are delivered to listeners on commit, unless
events are disabled, in which case a single "restored" record is delivered
once events are turned back on.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from binimport.core.exceptions import (
    BinImportError,
    DuplicateNameError,
    InvalidInputError,
    InvalidNameError,
    MemoryConflictError,
    NoTransactionError,
    OverlappingFunctionError,
    OwnershipError,
)
from binimport.core.models import Address, AddressFactory, CompilerSpec, Language

if TYPE_CHECKING:
    from binimport.core.models import ProjectFile

logger = logging.getLogger(__name__)

ChangeListener = Callable[["ChangeRecord"], None]

_MAX_LABEL_LENGTH = 2000

EXECUTABLE_PATH = "Executable Location"
EXECUTABLE_FORMAT = "Executable Format"
EXECUTABLE_MD5 = "Executable MD5"
EXECUTABLE_SHA256 = "Executable SHA256"
SOURCE_LOCATOR = "Source Locator"


@dataclass(frozen=True)
class ChangeRecord:
    """A change notification delivered to program listeners."""

    kind: str
    detail: Any = None


@dataclass
class MemoryBlock:
    """A contiguous range of program memory."""

    name: str
    start: Address
    length: int
    initialized: bool = False
    mode: str = "rw"
    overlay: bool = False
    data: bytearray | None = None

    @property
    def end(self) -> Address:
        return self.start.add(self.length - 1)

    def contains(self, address: Address) -> bool:
        return (
            address.space == self.start.space
            and self.start.offset <= address.offset <= self.end.offset
        )

    def __str__(self) -> str:
        return f"{self.name} [{self.start} - {self.end}]"


@dataclass
class Symbol:
    """A label in the program's global namespace."""

    name: str
    address: Address
    source: str = "imported"
    primary: bool = False
    pinned: bool = False


@dataclass
class Function:
    """A function with an entry point and a contiguous body."""

    name: str
    entry: Address
    body_start: Address
    body_end: Address

    def overlaps(self, start: Address, end: Address) -> bool:
        return (
            start.space == self.body_start.space
            and start.offset <= self.body_end.offset
            and self.body_start.offset <= end.offset
        )


@dataclass
class _State:
    blocks: list[MemoryBlock] = field(default_factory=list)
    overlay_spaces: list[str] = field(default_factory=list)
    symbols: list[Symbol] = field(default_factory=list)
    entry_points: list[Address] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    image_base: Address | None = None
    analyzed: bool = False


class Memory:
    """Memory block operations for a program."""

    def __init__(self, program: Program) -> None:
        self._program = program

    @property
    def blocks(self) -> list[MemoryBlock]:
        return list(self._program._state.blocks)

    def create_block(
        self,
        name: str,
        start: Address,
        length: int,
        data: bytes | None = None,
        initialized: bool | None = None,
        mode: str = "rw",
        overlay: bool = False,
    ) -> MemoryBlock:
        """Create a block at `start`.

        Raises:
            InvalidNameError: name is empty
            InvalidInputError: length is not positive or data is too long
            AddressOverflowError: the block runs past the end of its space
            MemoryConflictError: the block overlaps an existing block
        """
        self._program._check_transaction()
        if not name:
            raise InvalidNameError("Memory block name must not be empty")
        if length <= 0:
            raise InvalidInputError(f"Invalid memory block length: {length}")
        if data is not None and len(data) > length:
            raise InvalidInputError(f"Block data ({len(data)} bytes) exceeds length {length}")
        if initialized is None:
            initialized = data is not None

        end = start.add(length - 1)
        if overlay:
            factory = self._program.address_factory
            space = factory.add_overlay_space(name, start.space)
            self._program._state.overlay_spaces.append(name)
            start = Address(space, start.offset)
        else:
            for block in self._program._state.blocks:
                if block.start.space != start.space:
                    continue
                if start.offset <= block.end.offset and block.start.offset <= end.offset:
                    raise MemoryConflictError(
                        f"Part of range ({start}, {end}) already exists in memory: {block.name}"
                    )

        content: bytearray | None = None
        if initialized:
            content = bytearray(length)
            if data:
                content[: len(data)] = data
        block = MemoryBlock(name, start, length, initialized, mode, overlay, content)
        self._program._state.blocks.append(block)
        self._program._changed("block_added", block.name)
        return block

    def get_block(self, name: str) -> MemoryBlock | None:
        for block in self._program._state.blocks:
            if block.name == name:
                return block
        return None

    def block_at(self, address: Address) -> MemoryBlock | None:
        for block in self._program._state.blocks:
            if block.contains(address):
                return block
        return None

    def get_bytes(self, address: Address, count: int) -> bytes:
        """Read initialized bytes starting at `address`."""
        block = self.block_at(address)
        if block is None or block.data is None:
            raise InvalidInputError(f"No initialized memory at {address}")
        index = address.offset - block.start.offset
        return bytes(block.data[index : index + count])

    @property
    def size(self) -> int:
        return sum(block.length for block in self._program._state.blocks)


class SymbolTable:
    """Label operations for a program."""

    def __init__(self, program: Program) -> None:
        self._program = program

    @property
    def symbols(self) -> list[Symbol]:
        return list(self._program._state.symbols)

    @property
    def entry_points(self) -> list[Address]:
        return list(self._program._state.entry_points)

    def create_label(self, address: Address, name: str, source: str = "imported") -> Symbol:
        """Create a label, returning the existing one if it is already there.

        Raises:
            InvalidNameError: the name is empty, contains whitespace or is too long
            DuplicateNameError: the name is already used at another address
        """
        self._program._check_transaction()
        _validate_label_name(name)

        for symbol in self._program._state.symbols:
            if symbol.name != name:
                continue
            if symbol.address == address:
                return symbol
            raise DuplicateNameError(f"A symbol named '{name}' already exists at {symbol.address}")

        symbol = Symbol(name, address, source, primary=self.get_primary_symbol(address) is None)
        self._program._state.symbols.append(symbol)
        self._program._changed("symbol_added", name)
        return symbol

    def set_primary(self, symbol: Symbol) -> None:
        self._program._check_transaction()
        for other in self.get_symbols(symbol.address):
            other.primary = other is symbol
        self._program._changed("symbol_changed", symbol.name)

    def set_pinned(self, symbol: Symbol, pinned: bool) -> None:
        self._program._check_transaction()
        symbol.pinned = pinned
        self._program._changed("symbol_changed", symbol.name)

    def add_external_entry_point(self, address: Address) -> None:
        self._program._check_transaction()
        if address not in self._program._state.entry_points:
            self._program._state.entry_points.append(address)
            self._program._changed("entry_point_added", str(address))

    def is_external_entry_point(self, address: Address) -> bool:
        return address in self._program._state.entry_points

    def get_primary_symbol(self, address: Address) -> Symbol | None:
        for symbol in self._program._state.symbols:
            if symbol.address == address and symbol.primary:
                return symbol
        return None

    def get_symbols(self, address: Address) -> list[Symbol]:
        return [s for s in self._program._state.symbols if s.address == address]

    def get_symbol(self, name: str) -> Symbol | None:
        for symbol in self._program._state.symbols:
            if symbol.name == name:
                return symbol
        return None


class FunctionManager:
    """Function operations for a program."""

    def __init__(self, program: Program) -> None:
        self._program = program

    @property
    def functions(self) -> list[Function]:
        return list(self._program._state.functions)

    def create_function(
        self, name: str | None, entry: Address, body: tuple[Address, Address]
    ) -> Function:
        """Create a function whose body spans `body` (inclusive).

        Raises:
            InvalidInputError: bad name, or entry outside the body
            OverlappingFunctionError: body overlaps an existing function
        """
        self._program._check_transaction()
        start, end = body
        if name is None:
            name = f"FUN_{entry.offset:08x}"
        _validate_label_name(name)
        if start.space != entry.space or not start.offset <= entry.offset <= end.offset:
            raise InvalidInputError(f"Entry point {entry} is outside the function body")
        for function in self._program._state.functions:
            if function.overlaps(start, end):
                raise OverlappingFunctionError(
                    f"Function body at {start} overlaps function '{function.name}'"
                )
        function = Function(name, entry, start, end)
        self._program._state.functions.append(function)
        self._program._changed("function_added", name)
        return function

    def get_function_at(self, entry: Address) -> Function | None:
        for function in self._program._state.functions:
            if function.entry == entry:
                return function
        return None


class Program:
    """An addressable program built from a byte source."""

    def __init__(
        self,
        name: str,
        language: Language,
        compiler_spec: CompilerSpec,
        consumer: object,
    ) -> None:
        self._name = name
        self.language = language
        self.compiler_spec = compiler_spec
        self.address_factory: AddressFactory = language.address_factory()
        self.domain_file: ProjectFile | None = None

        self._state = _State()
        self._consumers: list[object] = [consumer]
        self._listeners: list[ChangeListener] = []
        self._events_enabled = True
        self._suppressed_changes = False

        self._tx_counter = 0
        self._tx_stack: list[tuple[int, str]] = []
        self._tx_aborted = False
        self._tx_snapshot: _State | None = None
        self._pending: list[ChangeRecord] = []
        self.transaction_log: list[tuple[str, bool]] = []

        self.memory = Memory(self)
        self.symbol_table = SymbolTable(self)
        self.function_manager = FunctionManager(self)

    @property
    def name(self) -> str:
        return self._name

    def bind_domain_file(self, domain_file: ProjectFile) -> None:
        """Record where this program was saved; its name follows the file."""
        self.domain_file = domain_file
        self._name = domain_file.name

    # Consumers

    @property
    def consumers(self) -> list[object]:
        return list(self._consumers)

    @property
    def is_closed(self) -> bool:
        return not self._consumers

    def is_used_by(self, consumer: object) -> bool:
        return any(owner is consumer for owner in self._consumers)

    def add_consumer(self, consumer: object) -> None:
        if self.is_closed:
            raise BinImportError(f"Program '{self._name}' is closed")
        self._consumers.append(consumer)

    def release(self, consumer: object) -> None:
        """Drop `consumer`'s ownership; the last release closes the program."""
        for i, owner in enumerate(self._consumers):
            if owner is consumer:
                del self._consumers[i]
                break
        else:
            raise OwnershipError(f"{consumer!r} is not a consumer of program '{self._name}'")
        if self.is_closed:
            self._listeners.clear()
            logger.debug("Program %r closed", self._name)

    # Events

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        self._listeners.remove(listener)

    @property
    def events_enabled(self) -> bool:
        return self._events_enabled

    def set_events_enabled(self, enabled: bool) -> None:
        if enabled == self._events_enabled:
            return
        self._events_enabled = enabled
        if enabled and self._suppressed_changes:
            self._suppressed_changes = False
            self._deliver([ChangeRecord("restored")])

    def _changed(self, kind: str, detail: Any = None) -> None:
        self._pending.append(ChangeRecord(kind, detail))

    def _deliver(self, records: list[ChangeRecord]) -> None:
        for record in records:
            for listener in list(self._listeners):
                listener(record)

    # Transactions

    @property
    def in_transaction(self) -> bool:
        return bool(self._tx_stack)

    def start_transaction(self, description: str) -> int:
        if self.is_closed:
            raise BinImportError(f"Program '{self._name}' is closed")
        if not self._tx_stack:
            self._tx_snapshot = self._snapshot()
            self._tx_aborted = False
            self._pending = []
        self._tx_counter += 1
        self._tx_stack.append((self._tx_counter, description))
        return self._tx_counter

    def end_transaction(self, tx_id: int, commit: bool) -> None:
        """End the innermost transaction; the outermost one commits or rolls back."""
        if not self._tx_stack or self._tx_stack[-1][0] != tx_id:
            raise BinImportError(f"Transaction {tx_id} is not the innermost open transaction")
        _, description = self._tx_stack.pop()
        if not commit:
            self._tx_aborted = True
        if self._tx_stack:
            return

        committed = not self._tx_aborted
        self.transaction_log.append((description, committed))
        pending, self._pending = self._pending, []
        if committed:
            if self._events_enabled:
                self._deliver(pending)
            elif pending:
                self._suppressed_changes = True
        else:
            self._restore(self._tx_snapshot)
            logger.debug("Rolled back transaction %r on %r", description, self._name)
        self._tx_snapshot = None

    def _snapshot(self) -> _State:
        # Block bytes are never written after creation, so snapshots share them.
        memo: dict[int, Any] = {
            id(block.data): block.data for block in self._state.blocks if block.data is not None
        }
        return copy.deepcopy(self._state, memo)

    def _restore(self, snapshot: _State | None) -> None:
        if snapshot is None:
            return
        for name in self._state.overlay_spaces:
            if name not in snapshot.overlay_spaces:
                self.address_factory.remove_overlay_space(name)
        self._state = snapshot

    def _check_transaction(self) -> None:
        if not self._tx_stack:
            raise NoTransactionError(f"Program '{self._name}' changed outside a transaction")

    # Properties

    @property
    def properties(self) -> dict[str, str]:
        return dict(self._state.properties)

    def get_property(self, key: str) -> str | None:
        return self._state.properties.get(key)

    def set_property(self, key: str, value: str) -> None:
        self._check_transaction()
        self._state.properties[key] = value
        self._changed("property_changed", key)

    def set_executable_path(self, path: str | None) -> None:
        if path is not None:
            self.set_property(EXECUTABLE_PATH, path)

    def set_executable_format(self, label: str) -> None:
        self.set_property(EXECUTABLE_FORMAT, label)

    def set_executable_md5(self, md5: str) -> None:
        self.set_property(EXECUTABLE_MD5, md5)

    def set_executable_sha256(self, sha256: str) -> None:
        self.set_property(EXECUTABLE_SHA256, sha256)

    @property
    def executable_path(self) -> str | None:
        return self.get_property(EXECUTABLE_PATH)

    @property
    def executable_format(self) -> str | None:
        return self.get_property(EXECUTABLE_FORMAT)

    @property
    def executable_md5(self) -> str | None:
        return self.get_property(EXECUTABLE_MD5)

    @property
    def executable_sha256(self) -> str | None:
        return self.get_property(EXECUTABLE_SHA256)

    @property
    def image_base(self) -> Address:
        if self._state.image_base is None:
            return self.address_factory.default_address(0)
        return self._state.image_base

    def set_image_base(self, address: Address) -> None:
        self._check_transaction()
        self._state.image_base = address
        self._changed("image_base_changed", str(address))

    @property
    def analyzed(self) -> bool:
        return self._state.analyzed

    def set_analyzed(self, analyzed: bool) -> None:
        self._check_transaction()
        self._state.analyzed = analyzed
        self._changed("analyzed_changed", analyzed)

    def __repr__(self) -> str:
        return (
            f"Program(name={self._name!r}, language={self.language.language_id!r}, "
            f"blocks={len(self._state.blocks)}, symbols={len(self._state.symbols)})"
        )


def _validate_label_name(name: str) -> None:
    if not name:
        raise InvalidNameError("Symbol name must not be empty")
    if len(name) > _MAX_LABEL_LENGTH:
        raise InvalidNameError(f"Symbol name exceeds {_MAX_LABEL_LENGTH} characters")
    if any(ch.isspace() for ch in name):
        raise InvalidNameError(f"Symbol name contains whitespace: '{name}'")
