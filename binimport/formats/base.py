"""Protocol for format extractors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from binimport.core.messages import MessageLog
    from binimport.core.models import LoadedProgram, LoadSpec, Option
    from binimport.core.monitor import TaskMonitor
    from binimport.core.program import Program
    from binimport.core.source import ByteSource
    from binimport.core.storage.folders import ProjectFolder


class ProgramExtractor(Protocol):
    """Format-specific half of a loader.

    Optional members the loader looks up when present:
        override_main_program_name: bool (default True)
        apply_labels_by_default: bool (default False)
        default_options() -> list[Option]
        validate_options(options) -> str | None
        post_load_fixups(loaded, options, log, monitor) -> None
    """

    name: str

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
        """Build the candidate programs for `source`; element 0 is the primary one."""
        ...

    def merge_into(
        self,
        source: ByteSource,
        load_spec: LoadSpec,
        options: list[Option],
        log: MessageLog,
        program: Program,
        monitor: TaskMonitor,
    ) -> bool:
        """Add the bytes of `source` to an existing program. Runs inside a transaction."""
        ...
