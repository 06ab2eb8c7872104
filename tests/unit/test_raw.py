"""Tests for the raw binary extractor."""

import pytest

from binimport.core.loader import Loader
from binimport.core.messages import MessageLog
from binimport.core.models import LoadSpec, Option
from binimport.core.options import parse_option_args
from binimport.core.program import Program
from binimport.core.source import ByteSource
from binimport.formats.raw import OVERLAY_OPTION_NAME, RawBinaryExtractor
from binimport.processors import default_language_service

DATA = bytes(range(64))


@pytest.fixture
def loader() -> Loader:
    """A loader around the raw extractor."""
    return Loader(RawBinaryExtractor())


@pytest.fixture
def load_spec() -> LoadSpec:
    """The built-in 32-bit language with its default compiler."""
    return default_language_service().get_load_spec("TOY:LE:32:default")


def load(loader: Loader, load_spec: LoadSpec, args: list[str], data: bytes = DATA):
    log = MessageLog()
    options = parse_option_args(args, loader.default_options())
    programs = loader.load(
        ByteSource.from_bytes(data), "raw", None, load_spec, options, log, object()
    )
    return programs, log


class TestExtract:
    """Tests for loading raw bytes."""

    def test_bytes_mapped_at_base(self, loader: Loader, load_spec: LoadSpec) -> None:
        """Test that all bytes land in one initialized block at the base address."""
        (program,), log = load(loader, load_spec, ["baseAddr=ram:8000"])

        base = program.address_factory.default_address(0x8000)
        block = program.memory.get_block("ram")
        assert block is not None
        assert block.start == base
        assert block.length == len(DATA)
        assert program.memory.get_bytes(base, len(DATA)) == DATA
        assert program.image_base == base
        assert program.executable_format == "Raw Binary"
        assert not log.has_messages

    def test_base_is_entry_function(self, loader: Loader, load_spec: LoadSpec) -> None:
        """Test that the base address becomes an entry point with a function."""
        (program,), _ = load(loader, load_spec, ["baseAddr=1000"])

        base = program.address_factory.default_address(0x1000)
        assert program.symbol_table.is_external_entry_point(base)
        assert program.function_manager.get_function_at(base) is not None

    def test_default_blocks_created(self, loader: Loader, load_spec: LoadSpec) -> None:
        """Test that the language's default blocks are created alongside the data."""
        (program,), _ = load(loader, load_spec, [])

        assert sorted(b.name for b in program.memory.blocks) == ["IO", "SRAM", "ram"]

    def test_block_name_option(self, loader: Loader, load_spec: LoadSpec) -> None:
        """Test naming the data block."""
        (program,), _ = load(loader, load_spec, ["blockName=flash"])

        assert program.memory.get_block("flash") is not None

    def test_labels_not_applied_by_default(self, loader: Loader, load_spec: LoadSpec) -> None:
        """Test that raw loads only get register labels unless asked for more."""
        (plain,), _ = load(loader, load_spec, [])
        (labeled,), _ = load(loader, load_spec, ["applyLabels=true"])

        assert plain.symbol_table.get_symbol("UART_DATA") is not None
        assert plain.symbol_table.get_symbol("_reset") is None
        assert labeled.symbol_table.get_symbol("_reset") is not None

    def test_conflict_with_default_block_is_logged(
        self, loader: Loader, load_spec: LoadSpec
    ) -> None:
        """Test that data overlapping a default block is logged and the program still loads."""
        (program,), log = load(loader, load_spec, ["baseAddr=20000000"])

        assert program.memory.get_block("ram") is None
        assert program.symbol_table.entry_points == []
        assert log.messages[0].startswith("Failed to add 0x40 bytes at ram:20000000")

    def test_empty_source(self, loader: Loader, load_spec: LoadSpec) -> None:
        """Test that an empty source loads a program without a data block."""
        (program,), log = load(loader, load_spec, [], data=b"")

        assert program.memory.get_block("ram") is None
        assert log.messages == ["No bytes to load from <memory>"]

    def test_validate_options(self, loader: Loader) -> None:
        """Test that mistyped extractor options are rejected."""
        assert loader.validate_options(loader.default_options()) is None
        assert loader.validate_options([Option(OVERLAY_OPTION_NAME, "yes")]) == (
            f"Invalid type for option: {OVERLAY_OPTION_NAME} - {str}"
        )


class TestMergeInto:
    """Tests for adding raw bytes to an existing program."""

    @pytest.fixture
    def program(self, loader: Loader, load_spec: LoadSpec) -> Program:
        """A program already holding DATA at address 0."""
        (program,), _ = load(loader, load_spec, [])
        return program

    def test_overlay(self, loader: Loader, load_spec: LoadSpec, program: Program) -> None:
        """Test that overlay data shares addresses with existing blocks."""
        options = parse_option_args(["overlay=true"], loader.default_options())

        merged = loader.load_into(
            ByteSource.from_bytes(b"\xff" * 8), load_spec, options, MessageLog(), program
        )

        assert merged
        block = program.memory.get_block("ov1")
        assert block is not None and block.overlay
        assert program.transaction_log[-1] == ("Loading - Raw Binary", True)

    def test_new_region(self, loader: Loader, load_spec: LoadSpec, program: Program) -> None:
        """Test adding bytes to free addresses."""
        options = parse_option_args(
            ["baseAddr=4000", "blockName=extra"], loader.default_options()
        )

        assert loader.load_into(
            ByteSource.from_bytes(b"\x01\x02"), load_spec, options, MessageLog(), program
        )
        assert program.memory.get_bytes(program.address_factory.default_address(0x4000), 2) == (
            b"\x01\x02"
        )

    def test_conflict_rolls_back(
        self, loader: Loader, load_spec: LoadSpec, program: Program
    ) -> None:
        """Test that overlapping data is logged and nothing changes."""
        blocks_before = [b.name for b in program.memory.blocks]
        log = MessageLog()

        merged = loader.load_into(
            ByteSource.from_bytes(b"\xff" * 8), load_spec, loader.default_options(), log, program
        )

        assert not merged
        assert [b.name for b in program.memory.blocks] == blocks_before
        assert log.messages[0].startswith("Failed to add 0x8 bytes at ram:00000000")
        assert program.transaction_log[-1] == ("Loading - Raw Binary", False)

    def test_other_language_rejected(self, loader: Loader, program: Program) -> None:
        """Test that bytes for a different language are not merged."""
        other = default_language_service().get_load_spec("x86:LE:16:Real Mode")
        log = MessageLog()

        assert not loader.load_into(
            ByteSource.from_bytes(DATA), other, loader.default_options(), log, program
        )
        assert log.has_messages
