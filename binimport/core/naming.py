"""Saving programs into project folders under a unique name."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from binimport.core.exceptions import CancelledError, DuplicateFileError
from binimport.core.messages import MessageLog
from binimport.core.monitor import TaskMonitor
from binimport.core.program import Program

if TYPE_CHECKING:
    from binimport.core.storage.folders import ProjectFolder

logger = logging.getLogger(__name__)


def create_program_file(
    program: Program,
    folder: ProjectFolder,
    name: str,
    log: MessageLog,
    monitor: TaskMonitor,
) -> bool:
    """Save `program` in `folder` as `name`, or `name0`, `name1`, ... on collision.

    Returns False after logging if saving fails for any reason other than a
    name collision. Cancellation is checked before each attempt.

    Raises:
        CancelledError: the monitor was cancelled
    """
    unique_name = name
    index = 0
    while True:
        monitor.check_cancelled()
        try:
            folder.create_file(unique_name, program, monitor)
            return True
        except DuplicateFileError:
            unique_name = f"{name}{index}"
            index += 1
        except CancelledError:
            raise
        except Exception as e:
            logger.exception("Failed to create program file: %s", unique_name)
            log.append_msg(f"Unexpected exception creating file: {unique_name}")
            log.append_exception(e)
            return False
