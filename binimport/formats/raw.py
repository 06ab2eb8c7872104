"""Raw binary extractor: loads a file's bytes as one block at a base address."""

from __future__ import annotations

import logging

from binimport.core.exceptions import InvalidInputError, MemoryAccessError
from binimport.core.identity import create_program
from binimport.core.labels import mark_as_function
from binimport.core.memory import create_default_memory_blocks, generate_block_name
from binimport.core.messages import MessageLog
from binimport.core.models import Address, LoadedProgram, LoadSpec, Option
from binimport.core.monitor import TaskMonitor
from binimport.core.options import (
    COMMAND_LINE_ARG_PREFIX,
    get_boolean_option_value,
    get_option,
)
from binimport.core.program import Program
from binimport.core.source import ByteSource
from binimport.core.storage.folders import ProjectFolder
from binimport.core.transaction import transaction

logger = logging.getLogger(__name__)

BASE_ADDRESS_OPTION_NAME = "Base Address"
BLOCK_NAME_OPTION_NAME = "Block Name"
OVERLAY_OPTION_NAME = "Overlay"


class RawBinaryExtractor:
    """Maps the whole source into memory unchanged."""

    name = "Raw Binary"
    override_main_program_name = True
    apply_labels_by_default = False

    def default_options(self) -> list[Option]:
        return [
            Option(BASE_ADDRESS_OPTION_NAME, "0", str, COMMAND_LINE_ARG_PREFIX + "-baseAddr"),
            Option(BLOCK_NAME_OPTION_NAME, "", str, COMMAND_LINE_ARG_PREFIX + "-blockName"),
            Option(OVERLAY_OPTION_NAME, False, bool, COMMAND_LINE_ARG_PREFIX + "-overlay"),
        ]

    def validate_options(self, options: list[Option]) -> str | None:
        for option in options:
            if option.name in (BASE_ADDRESS_OPTION_NAME, BLOCK_NAME_OPTION_NAME):
                if not isinstance(option.value, str):
                    return f"Invalid type for option: {option.name} - {option.value_type}"
            elif option.name == OVERLAY_OPTION_NAME and not isinstance(option.value, bool):
                return f"Invalid type for option: {option.name} - {option.value_type}"
        return None

    def extract(
        self,
        source: ByteSource,
        name: str,
        folder: ProjectFolder | None,
        load_spec: LoadSpec,
        options: list[Option],
        log: MessageLog,
        consumer: object,
        monitor: TaskMonitor,
    ) -> list[LoadedProgram]:
        """Create one program holding every byte of `source` at the base address.

        Raises:
            InvalidAddressError: the "Base Address" option cannot be resolved
        """
        language = load_spec.language
        compiler_spec = load_spec.compiler_spec
        if language is None or compiler_spec is None:
            return []

        base_text = _string_option(BASE_ADDRESS_OPTION_NAME, options, "0")
        base = language.address_factory().get_address(base_text)
        program = create_program(source, name, base, self.name, language, compiler_spec, consumer)
        success = False
        try:
            create_default_memory_blocks(program, language, log)
            monitor.check_cancelled()
            monitor.set_message(f"Reading {source.length} bytes")
            with transaction(program, f"Import {self.name}"):
                block_name = _string_option(BLOCK_NAME_OPTION_NAME, options, "")
                if _add_bytes(program, source, base, block_name, False, log):
                    program.symbol_table.add_external_entry_point(base)
                    mark_as_function(program, None, base)
            success = True
        finally:
            if not success:
                program.release(consumer)
        return [LoadedProgram(program, folder)]

    def merge_into(
        self,
        source: ByteSource,
        load_spec: LoadSpec,
        options: list[Option],
        log: MessageLog,
        program: Program,
        monitor: TaskMonitor,
    ) -> bool:
        """Add `source` as a new block; an overlay when the "Overlay" option is set."""
        language = load_spec.language
        if language is None or language.language_id != program.language.language_id:
            log.append_msg(
                f"Cannot add {self.name} data for a different language to '{program.name}'"
            )
            return False

        monitor.check_cancelled()
        try:
            base = program.address_factory.get_address(
                _string_option(BASE_ADDRESS_OPTION_NAME, options, "0")
            )
        except MemoryAccessError as e:
            log.append_msg(f"Invalid base address: {e}")
            return False

        overlay = get_boolean_option_value(OVERLAY_OPTION_NAME, options, False)
        block_name = _string_option(BLOCK_NAME_OPTION_NAME, options, "")
        return _add_bytes(program, source, base, block_name, overlay, log)


def _add_bytes(
    program: Program,
    source: ByteSource,
    base: Address,
    block_name: str,
    overlay: bool,
    log: MessageLog,
) -> bool:
    data = source.read_all()
    if not data:
        log.append_msg(f"No bytes to load from {source.absolute_path or '<memory>'}")
        return False
    if not block_name:
        block_name = generate_block_name(program, overlay, base.space)
    try:
        block = program.memory.create_block(block_name, base, len(data), data, overlay=overlay)
    except (MemoryAccessError, InvalidInputError) as e:
        log.append_msg(f"Failed to add {len(data):#x} bytes at {base}: {e}")
        return False
    logger.debug("Added block %s to %r", block, program.name)
    return True


def _string_option(name: str, options: list[Option] | None, default: str) -> str:
    option = get_option(name, options)
    if option is not None and isinstance(option.value, str) and option.value.strip():
        return option.value.strip()
    return default
