"""Data models for binimport."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from binimport.core.exceptions import AddressOverflowError, InvalidAddressError

if TYPE_CHECKING:
    from binimport.core.program import MemoryBlock, Program
    from binimport.core.storage.folders import ProjectFolder


class SpaceKind(Enum):
    """Kinds of address spaces a processor can declare."""

    RAM = "ram"
    REGISTER = "register"
    OTHER = "other"
    OVERLAY = "overlay"


@dataclass(frozen=True, order=True)
class AddressSpace:
    """A named, fixed-width address space."""

    name: str
    size: int = 32
    kind: SpaceKind = field(default=SpaceKind.RAM, compare=False)
    segmented: bool = field(default=False, compare=False)

    @property
    def is_memory(self) -> bool:
        return self.kind in (SpaceKind.RAM, SpaceKind.OVERLAY)

    @property
    def max_offset(self) -> int:
        return (1 << self.size) - 1

    def address(self, offset: int) -> Address:
        """Create an address in this space, validating the offset."""
        if offset < 0 or offset > self.max_offset:
            raise InvalidAddressError(f"Offset {offset:#x} is outside space '{self.name}'")
        return Address(self, offset)


@dataclass(frozen=True, order=True)
class Address:
    """An offset within an address space."""

    space: AddressSpace
    offset: int

    @property
    def is_memory_address(self) -> bool:
        return self.space.is_memory

    def add(self, displacement: int) -> Address:
        """Return the address `displacement` bytes further on."""
        offset = self.offset + displacement
        if offset < 0 or offset > self.space.max_offset:
            raise AddressOverflowError(
                f"{self} + {displacement:#x} overflows space '{self.space.name}'"
            )
        return replace(self, offset=offset)

    def __str__(self) -> str:
        width = max(self.space.size // 4, 1)
        return f"{self.space.name}:{self.offset:0{width}x}"


@dataclass(frozen=True, order=True)
class SegmentedAddress(Address):
    """A real-mode style address carrying its segment."""

    segment: int = 0

    def __str__(self) -> str:
        return f"{self.segment:04x}:{self.offset - (self.segment << 4):04x}"


class AddressFactory:
    """Resolves address strings against a program's address spaces."""

    def __init__(self, spaces: list[AddressSpace], default_space: AddressSpace) -> None:
        self._spaces: dict[str, AddressSpace] = {space.name: space for space in spaces}
        self._spaces.setdefault(default_space.name, default_space)
        self.default_space = default_space

    @property
    def spaces(self) -> list[AddressSpace]:
        return list(self._spaces.values())

    def get_address_space(self, name: str) -> AddressSpace | None:
        return self._spaces.get(name)

    def add_overlay_space(self, name: str, base: AddressSpace) -> AddressSpace:
        """Register a new overlay space shadowing `base`."""
        if name in self._spaces:
            raise InvalidAddressError(f"Address space '{name}' already exists")
        space = AddressSpace(name, base.size, SpaceKind.OVERLAY)
        self._spaces[name] = space
        return space

    def remove_overlay_space(self, name: str) -> None:
        space = self._spaces.get(name)
        if space is not None and space.kind is SpaceKind.OVERLAY:
            del self._spaces[name]

    def default_address(self, offset: int) -> Address:
        return self.default_space.address(offset)

    def get_address(self, text: str) -> Address:
        """Parse `space:offset`, `segment:offset` or a bare offset.

        Offsets are hexadecimal, with or without a `0x` prefix.
        """
        text = text.strip()
        space = self.default_space
        offset_text = text
        if ":" in text:
            prefix, offset_text = text.split(":", 1)
            named = self._spaces.get(prefix)
            if named is not None:
                space = named
            elif space.segmented:
                segment = _parse_hex(prefix, text)
                flat = (segment << 4) + _parse_hex(offset_text, text)
                if flat > space.max_offset:
                    raise InvalidAddressError(f"Address '{text}' is outside '{space.name}'")
                return SegmentedAddress(space, flat, segment)
            else:
                raise InvalidAddressError(f"Unknown address space in '{text}'")
        return space.address(_parse_hex(offset_text, text))


def _parse_hex(value: str, original: str) -> int:
    value = value.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    try:
        return int(value, 16)
    except ValueError:
        raise InvalidAddressError(f"Malformed address '{original}'") from None


@dataclass(frozen=True)
class Register:
    """A processor register and where it lives."""

    name: str
    address: Address
    size: int = 4


@dataclass(frozen=True)
class AddressLabelInfo:
    """A label the processor description places at a fixed address."""

    label: str
    address: Address
    is_entry: bool = False
    is_primary: bool = False


@dataclass(frozen=True)
class MemoryBlockDefinition:
    """A memory block the processor description asks every program to have."""

    name: str
    address: str
    length: int
    initialized: bool = False
    mode: str = "rw"
    overlay: bool = False

    def create_block(self, program: Program) -> MemoryBlock:
        """Create this block in `program` (requires an open transaction)."""
        start = program.address_factory.get_address(self.address)
        return program.memory.create_block(
            self.name,
            start,
            self.length,
            initialized=self.initialized,
            mode=self.mode,
            overlay=self.overlay,
        )

    def __str__(self) -> str:
        return f"{self.name} @ {self.address}, length=0x{self.length:x}"


@dataclass(frozen=True)
class CompilerSpec:
    """A calling-convention / compiler model for a language."""

    compiler_spec_id: str


@dataclass
class Language:
    """A processor definition, consumed read-only by the loader."""

    language_id: str
    address_spaces: list[AddressSpace]
    default_space: AddressSpace
    registers: list[Register] = field(default_factory=list)
    default_memory_blocks: list[MemoryBlockDefinition] = field(default_factory=list)
    default_symbols: list[AddressLabelInfo] = field(default_factory=list)
    compiler_specs: list[CompilerSpec] = field(
        default_factory=lambda: [CompilerSpec("default")]
    )
    description: str = ""

    def address_factory(self) -> AddressFactory:
        """Create a fresh address factory for a new program."""
        return AddressFactory(list(self.address_spaces), self.default_space)

    def get_compiler_spec(self, compiler_spec_id: str) -> CompilerSpec | None:
        for spec in self.compiler_specs:
            if spec.compiler_spec_id == compiler_spec_id:
                return spec
        return None

    @property
    def default_compiler_spec(self) -> CompilerSpec:
        return self.compiler_specs[0]


@dataclass(frozen=True)
class LoadSpec:
    """Resolved language and compiler pairing for a load."""

    language: Language | None
    compiler_spec: CompilerSpec | None
    loader_name: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.language is not None and self.compiler_spec is not None


@dataclass
class Option:
    """A named load option."""

    name: str
    value: Any
    value_type: type | None = None
    arg: str | None = None

    def __post_init__(self) -> None:
        if self.value_type is None:
            self.value_type = type(self.value)


@dataclass
class LoadedProgram:
    """A program paired with where it should be saved (None: keep in memory)."""

    program: Program
    destination_folder: ProjectFolder | None = None


@dataclass
class StoredBlock:
    """A memory block as saved in a project."""

    name: str
    start: str
    length: int
    initialized: bool
    mode: str
    overlay: bool

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> StoredBlock:
        return cls(
            name=row["name"],
            start=row["start"],
            length=row["length"],
            initialized=bool(row["initialized"]),
            mode=row["mode"],
            overlay=bool(row["overlay"]),
        )


@dataclass
class StoredSymbol:
    """A label as saved in a project."""

    name: str
    address: str
    is_primary: bool
    is_pinned: bool
    is_entry: bool

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> StoredSymbol:
        return cls(
            name=row["name"],
            address=row["address"],
            is_primary=bool(row["is_primary"]),
            is_pinned=bool(row["is_pinned"]),
            is_entry=bool(row["is_entry"]),
        )


@dataclass
class StoredFunction:
    """A function as saved in a project."""

    name: str
    entry: str
    body_start: str
    body_end: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> StoredFunction:
        return cls(
            name=row["name"],
            entry=row["entry"],
            body_start=row["body_start"],
            body_end=row["body_end"],
        )


@dataclass
class ProjectFile:
    """A program saved in a project folder."""

    id: int
    folder: str
    name: str
    language_id: str
    compiler_spec_id: str
    image_base: str | None
    created_at: datetime
    properties: dict[str, str] = field(default_factory=dict)
    blocks: list[StoredBlock] = field(default_factory=list)
    symbols: list[StoredSymbol] = field(default_factory=list)
    functions: list[StoredFunction] = field(default_factory=list)

    @property
    def path(self) -> str:
        return join_path(self.folder, self.name)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ProjectFile:
        """Create a ProjectFile from a programs row (details are filled in separately)."""
        return cls(
            id=row["id"],
            folder=row["folder"],
            name=row["name"],
            language_id=row["language_id"],
            compiler_spec_id=row["compiler_spec_id"],
            image_base=row["image_base"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


def join_path(folder: str, name: str) -> str:
    """Join a project folder path and a child name."""
    return f"{folder.rstrip('/')}/{name}"
