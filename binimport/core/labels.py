"""Processor-defined labels and function markers."""

from __future__ import annotations

import logging

from binimport.core.exceptions import InvalidInputError, OverlappingFunctionError
from binimport.core.models import Address, Option
from binimport.core.options import (
    ANCHOR_LABELS_OPTION_NAME,
    APPLY_LABELS_OPTION_NAME,
    get_boolean_option_value,
)
from binimport.core.program import Program
from binimport.core.transaction import transaction

logger = logging.getLogger(__name__)


def apply_processor_labels(options: list[Option] | None, program: Program) -> None:
    """Label memory-mapped registers and, optionally, the language's default symbols.

    Register labels are always created and pinned: low-level references may
    point at them whatever the options say. Default symbols follow the
    "apply" option and are pinned only when the "anchor" option is set.
    Name collisions are skipped. The analyzed flag is cleared so analysis
    runs again.
    """
    with transaction(program, "Finalize load"):
        language = program.language
        for register in language.registers:
            if register.address.is_memory_address:
                create_symbol(program, register.name, register.address, False, True, True)

        if get_boolean_option_value(APPLY_LABELS_OPTION_NAME, options, True):
            anchor = get_boolean_option_value(ANCHOR_LABELS_OPTION_NAME, options, True)
            for info in language.default_symbols:
                create_symbol(
                    program, info.label, info.address, info.is_entry, info.is_primary, anchor
                )

        program.set_analyzed(False)


def create_symbol(
    program: Program,
    name: str,
    address: Address,
    is_entry: bool,
    is_primary: bool,
    anchor: bool,
) -> None:
    """Create one label; invalid or colliding names are skipped."""
    symbol_table = program.symbol_table
    try:
        symbol = symbol_table.create_label(address, name)
        if is_entry:
            symbol_table.add_external_entry_point(address)
        if is_primary:
            symbol_table.set_primary(symbol)
        if anchor:
            symbol_table.set_pinned(symbol, True)
    except InvalidInputError as e:
        logger.debug("Skipped label %r at %s: %s", name, address, e)


def mark_as_function(program: Program, name: str | None, address: Address) -> None:
    """Mark `address` as a function with a one-byte body.

    Analysis later disassembles from here and fixes the body, which keeps
    disassembly out of the loaders.
    """
    functions = program.function_manager
    if functions.get_function_at(address) is not None:
        return
    try:
        functions.create_function(name, address, (address, address))
    except (InvalidInputError, OverlappingFunctionError) as e:
        logger.debug("Could not mark %s as a function: %s", address, e)
