"""Loader that coordinates extraction, labeling and persistence."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from binimport.core.labels import apply_processor_labels
from binimport.core.messages import MessageLog
from binimport.core.models import LoadedProgram, LoadSpec, Option
from binimport.core.monitor import DUMMY_MONITOR, TaskMonitor
from binimport.core.naming import create_program_file
from binimport.core.options import get_default_options, validate_options
from binimport.core.program import Program
from binimport.core.source import ByteSource
from binimport.core.storage.folders import ProjectFolder
from binimport.core.transaction import events_disabled, transaction

if TYPE_CHECKING:
    from binimport.formats.base import ProgramExtractor

logger = logging.getLogger(__name__)


class Loader:
    """Turns a byte source into saved programs using an injected extractor."""

    def __init__(self, extractor: ProgramExtractor) -> None:
        """Initialize with the format extractor that builds the programs."""
        self._extractor = extractor

    @property
    def name(self) -> str:
        return self._extractor.name

    @property
    def override_main_program_name(self) -> bool:
        return bool(getattr(self._extractor, "override_main_program_name", True))

    @property
    def apply_labels_by_default(self) -> bool:
        return bool(getattr(self._extractor, "apply_labels_by_default", False))

    def default_options(self) -> list[Option]:
        """The processor label options plus any the extractor declares."""
        options = get_default_options(self.apply_labels_by_default)
        extra = getattr(self._extractor, "default_options", None)
        if extra is not None:
            options.extend(extra())
        return options

    def validate_options(self, options: list[Option] | None) -> str | None:
        """Return an error message if the options cannot be used, else None."""
        error = validate_options(options)
        if error is None:
            extra = getattr(self._extractor, "validate_options", None)
            if extra is not None:
                error = extra(options or [])
        return error

    def load(
        self,
        source: ByteSource,
        name: str,
        folder: ProjectFolder | None,
        load_spec: LoadSpec,
        options: list[Option],
        log: MessageLog,
        consumer: object,
        monitor: TaskMonitor = DUMMY_MONITOR,
    ) -> list[Program]:
        """Load `source` as one or more programs.

        The primary program (element 0 from the extractor) is saved as
        `name` unless the extractor keeps its own names, in which case
        everything goes into a `name` sub-folder. Programs whose save fails
        are released and left out of the result; the message log says why.
        Any other failure, including cancellation, releases every program
        and propagates.

        Args:
            source: Bytes to load
            name: Name for the primary program
            folder: Where to save programs; None keeps them in memory only
            load_spec: Language and compiler to load with
            options: Load options
            log: Receives diagnostics
            consumer: Owner of the returned programs
            monitor: Cancellation and progress

        Returns:
            The loaded programs, owned by `consumer` (empty for an
            incomplete load spec)
        """
        logger.debug("%s: validating load of %r", self.name, name)
        results: list[Program] = []
        if not load_spec.is_complete:
            return results

        if not self.override_main_program_name and folder is not None:
            folder = folder.create_folder_path(name)

        logger.debug("%s: extracting", self.name)
        loaded = self._extractor.extract(
            source, name, folder, load_spec, options, log, consumer, monitor
        )

        success = False
        try:
            monitor.check_cancelled()
            primary = loaded[0].program if loaded else None
            monitor.set_maximum(len(loaded))
            for i, loaded_program in enumerate(loaded):
                monitor.check_cancelled()
                program = loaded_program.program

                logger.debug("%s: labeling %r", self.name, program.name)
                apply_processor_labels(options, program)
                program.set_events_enabled(True)

                if loaded_program.destination_folder is None:
                    results.append(program)
                    monitor.set_progress(i + 1)
                    continue

                file_name = program.name
                if self.override_main_program_name and program is primary:
                    file_name = name

                logger.debug("%s: persisting %r", self.name, file_name)
                monitor.set_message(f"Saving {file_name}")
                if create_program_file(
                    program, loaded_program.destination_folder, file_name, log, monitor
                ):
                    results.append(program)
                else:
                    logger.warning("Could not save %r; see the message log", file_name)
                    program.release(consumer)
                monitor.set_progress(i + 1)

            logger.debug("%s: post-load fixups", self.name)
            self._post_load_fixups(loaded, options, log, monitor)
            success = True
        finally:
            if not success:
                logger.debug("%s: aborted, releasing %d program(s)", self.name, len(loaded))
                self.release(loaded, consumer)

        logger.debug("%s: done, %d program(s) loaded", self.name, len(results))
        return results

    def load_into(
        self,
        source: ByteSource,
        load_spec: LoadSpec,
        options: list[Option],
        log: MessageLog,
        program: Program,
        monitor: TaskMonitor = DUMMY_MONITOR,
    ) -> bool:
        """Add `source` to an existing program in a single transaction.

        The transaction commits only if the extractor reports success.
        """
        if not load_spec.is_complete:
            return False

        with events_disabled(program), transaction(
            program, f"Loading - {self.name}", commit=False
        ) as tx:
            tx.commit = self._extractor.merge_into(
                source, load_spec, options, log, program, monitor
            )
            return tx.commit

    def release(self, loaded: list[LoadedProgram], consumer: object) -> None:
        """Release `consumer` from every program it still holds in `loaded`."""
        for loaded_program in loaded:
            program = loaded_program.program
            if program.is_used_by(consumer):
                program.release(consumer)

    def _post_load_fixups(
        self,
        loaded: list[LoadedProgram],
        options: list[Option],
        log: MessageLog,
        monitor: TaskMonitor,
    ) -> None:
        fixups = getattr(self._extractor, "post_load_fixups", None)
        if fixups is not None:
            fixups(loaded, options, log, monitor)
