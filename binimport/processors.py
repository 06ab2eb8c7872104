"""Processor definitions: the languages programs can be loaded with.

A language is described by a plain dict (or a JSON file of the same shape):

    {
        "id": "TOY:LE:32:default",
        "description": "...",
        "spaces": [{"name": "ram", "size": 32, "kind": "ram", "default": true}, ...],
        "registers": [{"name": "r0", "address": "register:0", "size": 4}, ...],
        "memory_blocks": [{"name": "IO", "address": "ram:ffff0000", "length": "0x100"}, ...],
        "symbols": [{"label": "_reset", "address": "ram:0", "entry": true}, ...],
        "compilers": ["default", ...]
    }

Addresses use the `space:offset` form with hexadecimal offsets.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from binimport.core.exceptions import InvalidAddressError, LanguageNotFoundError
from binimport.core.models import (
    AddressLabelInfo,
    AddressSpace,
    CompilerSpec,
    Language,
    LoadSpec,
    MemoryBlockDefinition,
    Register,
    SpaceKind,
)

_BUILTIN_LANGUAGES: list[dict[str, Any]] = [
    {
        "id": "TOY:LE:32:default",
        "description": "Toy 32-bit little-endian microcontroller with memory-mapped I/O",
        "spaces": [
            {"name": "ram", "size": 32, "kind": "ram", "default": True},
            {"name": "register", "size": 16, "kind": "register"},
        ],
        "registers": [
            {"name": "r0", "address": "register:0000", "size": 4},
            {"name": "r1", "address": "register:0004", "size": 4},
            {"name": "sp", "address": "register:0008", "size": 4},
            {"name": "pc", "address": "register:000c", "size": 4},
            {"name": "UART_DATA", "address": "ram:ffff0000", "size": 4},
            {"name": "UART_STATUS", "address": "ram:ffff0004", "size": 4},
            {"name": "TIMER_CTRL", "address": "ram:ffff0010", "size": 4},
        ],
        "memory_blocks": [
            {"name": "IO", "address": "ram:ffff0000", "length": "0x100", "mode": "rwv"},
            {"name": "SRAM", "address": "ram:20000000", "length": "0x1000"},
        ],
        "symbols": [
            {"label": "_reset", "address": "ram:00000000", "entry": True, "primary": True},
            {"label": "_nmi", "address": "ram:00000004", "entry": True},
            {"label": "SRAM_BASE", "address": "ram:20000000"},
        ],
        "compilers": ["default", "gcc"],
    },
    {
        "id": "x86:LE:16:Real Mode",
        "description": "Intel x86 real mode with segmented addressing",
        "spaces": [
            {"name": "ram", "size": 20, "kind": "ram", "segmented": True, "default": True},
            {"name": "register", "size": 16, "kind": "register"},
        ],
        "registers": [
            {"name": "AX", "address": "register:0000", "size": 2},
            {"name": "BX", "address": "register:0002", "size": 2},
            {"name": "CX", "address": "register:0004", "size": 2},
            {"name": "DX", "address": "register:0006", "size": 2},
            {"name": "CS", "address": "register:0020", "size": 2},
            {"name": "DS", "address": "register:0022", "size": 2},
        ],
        "memory_blocks": [
            {"name": "BDA", "address": "0040:0000", "length": "0x100"},
        ],
        "symbols": [
            {"label": "BIOS_DATA_AREA", "address": "0040:0000"},
        ],
        "compilers": ["default"],
    },
]


class LanguageService:
    """Registry of the languages available for loading."""

    def __init__(self, languages: list[Language] | None = None) -> None:
        self._languages: dict[str, Language] = {}
        for language in languages or []:
            self.register(language)

    def register(self, language: Language) -> None:
        self._languages[language.language_id] = language

    def languages(self) -> list[Language]:
        return sorted(self._languages.values(), key=lambda lang: lang.language_id)

    def get_language(self, language_id: str) -> Language:
        """Get a language by ID.

        Raises:
            LanguageNotFoundError: no language is registered under that ID
        """
        language = self._languages.get(language_id)
        if language is None:
            raise LanguageNotFoundError(f"Language '{language_id}' not found")
        return language

    def get_load_spec(self, language_id: str, compiler_spec_id: str | None = None) -> LoadSpec:
        """Resolve a load spec; an unknown compiler leaves it incomplete."""
        language = self.get_language(language_id)
        if compiler_spec_id is None:
            compiler_spec: CompilerSpec | None = language.default_compiler_spec
        else:
            compiler_spec = language.get_compiler_spec(compiler_spec_id)
        return LoadSpec(language, compiler_spec)


def language_from_dict(data: dict[str, Any]) -> Language:
    """Build a Language from its dict description."""
    spaces = [
        AddressSpace(
            name=s["name"],
            size=int(s.get("size", 32)),
            kind=SpaceKind(s.get("kind", "ram")),
            segmented=bool(s.get("segmented", False)),
        )
        for s in data["spaces"]
    ]
    defaults = [space for space, s in zip(spaces, data["spaces"]) if s.get("default")]
    default_space = defaults[0] if defaults else spaces[0]

    language = Language(
        language_id=data["id"],
        address_spaces=spaces,
        default_space=default_space,
        description=data.get("description", ""),
        compiler_specs=[CompilerSpec(c) for c in data.get("compilers", ["default"])],
    )
    factory = language.address_factory()
    language.registers = [
        Register(r["name"], factory.get_address(r["address"]), int(r.get("size", 4)))
        for r in data.get("registers", [])
    ]
    language.default_memory_blocks = [_block_definition(b) for b in data.get("memory_blocks", [])]
    language.default_symbols = [
        AddressLabelInfo(
            label=s["label"],
            address=factory.get_address(s["address"]),
            is_entry=bool(s.get("entry", False)),
            is_primary=bool(s.get("primary", False)),
        )
        for s in data.get("symbols", [])
    ]
    return language


def load_language_file(path: Path) -> Language:
    """Read a JSON processor description.

    Raises:
        ValueError: the file is not valid JSON, misses required keys or
            declares an unnamed or empty memory block
        InvalidAddressError: an address in the file cannot be resolved
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return language_from_dict(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid processor description {path}: {e}") from e
    except KeyError as e:
        raise ValueError(f"Processor description {path} is missing {e}") from e


def default_language_service() -> LanguageService:
    """A language service holding the built-in languages."""
    return LanguageService([language_from_dict(data) for data in _BUILTIN_LANGUAGES])


def _block_definition(data: dict[str, Any]) -> MemoryBlockDefinition:
    name = data["name"]
    length = _parse_int(data["length"])
    if not name:
        raise ValueError("Memory block definition has an empty name")
    if length <= 0:
        raise ValueError(f"Memory block '{name}' has non-positive length {data['length']}")
    return MemoryBlockDefinition(
        name=name,
        address=data["address"],
        length=length,
        initialized=bool(data.get("initialized", False)),
        mode=data.get("mode", "rw"),
        overlay=bool(data.get("overlay", False)),
    )


def _parse_int(value: int | str) -> int:
    if isinstance(value, int):
        return value
    try:
        return int(value, 0)
    except ValueError:
        raise InvalidAddressError(f"Malformed length '{value}'") from None
