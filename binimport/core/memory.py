"""Default memory blocks declared by a processor."""

from __future__ import annotations

import logging
import time

from binimport.core.exceptions import (
    AddressOverflowError,
    InvalidAddressError,
    InvalidInputError,
    MemoryConflictError,
)
from binimport.core.messages import MessageLog
from binimport.core.models import AddressSpace, Language
from binimport.core.program import Program
from binimport.core.transaction import transaction

logger = logging.getLogger(__name__)

_MAX_OVERLAY_NAMES = 1000


def create_default_memory_blocks(program: Program, language: Language, log: MessageLog) -> None:
    """Create every block the language declares.

    Each definition is tried on its own: a rejected definition is logged and
    skipped, and the transaction still commits.
    """
    with transaction(program, "Create default blocks"):
        for block_def in language.default_memory_blocks:
            try:
                block_def.create_block(program)
            except MemoryConflictError:
                log.append_msg(
                    f"Failed to add language defined memory block due to conflict: {block_def}"
                )
            except AddressOverflowError as e:
                log.append_msg(
                    f"Failed to add language defined memory block due to address error {block_def}"
                )
                log.append_msg(f" >> {e}")
            except InvalidAddressError as e:
                log.append_msg(
                    "Failed to add language defined memory block due to invalid address: "
                    f"{block_def}"
                )
                log.append_msg(f" >> Processor specification error (pspec): {e}")
            except InvalidInputError as e:
                log.append_msg(f"Failed to add language defined memory block: {block_def}")
                log.append_msg(f" >> {e}")
            else:
                logger.debug("Created default block %s in %r", block_def.name, program.name)


def generate_block_name(program: Program, is_overlay: bool, space: AddressSpace) -> str:
    """Name a new block: the space name, or the first unused `ovN` for overlays."""
    if not is_overlay:
        return space.name
    factory = program.address_factory
    for count in range(1, _MAX_OVERLAY_NAMES):
        name = f"ov{count}"
        if factory.get_address_space(name) is None:
            return name
    return f"ov{int(time.time() * 1000)}"
