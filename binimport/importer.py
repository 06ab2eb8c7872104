"""Importer that resolves a load request and runs it against a project."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from binimport.core.loader import Loader
from binimport.core.messages import MessageLog
from binimport.core.models import ProjectFile
from binimport.core.monitor import DUMMY_MONITOR, TaskMonitor
from binimport.core.options import parse_option_args
from binimport.core.program import Program
from binimport.core.source import ByteSource
from binimport.core.storage import ProjectRepository
from binimport.formats import EXTRACTORS
from binimport.processors import LanguageService, default_language_service, load_language_file

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "TOY:LE:32:default"


@dataclass
class ImportResult:
    """Outcome of an import: the loaded programs and what the loader had to say."""

    programs: list[Program] = field(default_factory=list)
    log: MessageLog = field(default_factory=MessageLog)
    error: str | None = None
    consumer: object = field(default_factory=object)

    def release(self) -> None:
        """Release every program this import still holds."""
        for program in self.programs:
            if program.is_used_by(self.consumer):
                program.release(self.consumer)


class Importer:
    """Resolves languages, extractors and options, then runs a Loader."""

    def __init__(
        self,
        repo: ProjectRepository | None,
        languages: LanguageService | None = None,
    ) -> None:
        """Initialize with the project to save into (None: keep programs in memory)."""
        self._repo = repo
        self._languages = languages or default_language_service()

    @property
    def languages(self) -> LanguageService:
        return self._languages

    def add_language_file(self, path: Path) -> None:
        self._languages.register(load_language_file(path))

    def import_file(
        self,
        file: Path,
        language_id: str = DEFAULT_LANGUAGE,
        compiler_spec_id: str | None = None,
        name: str | None = None,
        folder: str = "/",
        option_args: list[str] | None = None,
        format_name: str = "raw",
        monitor: TaskMonitor = DUMMY_MONITOR,
    ) -> ImportResult:
        """Load `file` and save the resulting programs under `folder`.

        Args:
            file: File to load
            language_id: Processor language to load with
            compiler_spec_id: Compiler spec (default: the language's first)
            name: Name for the primary program (default: the file name)
            folder: Project folder path to save into
            option_args: `KEY=VALUE` option overrides
            format_name: Extractor to use (see binimport.formats.EXTRACTORS)
            monitor: Cancellation and progress

        Returns:
            ImportResult; `error` is set when the options were rejected

        Raises:
            LanguageNotFoundError: unknown language
            OptionError: malformed or unknown option override
            KeyError: unknown format
        """
        result = ImportResult()
        extractor = EXTRACTORS[format_name]()
        loader = Loader(extractor)

        options = parse_option_args(option_args or [], loader.default_options())
        result.error = loader.validate_options(options)
        if result.error is not None:
            return result

        load_spec = self._languages.get_load_spec(language_id, compiler_spec_id)
        if not load_spec.is_complete:
            result.log.append_msg(
                f"Language '{language_id}' has no compiler spec '{compiler_spec_id}'"
            )
            return result

        destination = None
        if self._repo is not None:
            destination = self._repo.root_folder.create_folder_path(folder)

        source = ByteSource.from_path(file)
        logger.debug("Importing %s as %s with %s", file, language_id, loader.name)
        result.programs = loader.load(
            source,
            name or file.name,
            destination,
            load_spec,
            options,
            result.log,
            result.consumer,
            monitor,
        )
        return result


def program_to_dict(program: Program) -> dict[str, Any]:
    """Convert a loaded Program to a JSON-serializable dict."""
    return {
        "name": program.name,
        "path": program.domain_file.path if program.domain_file else None,
        "language": program.language.language_id,
        "compiler": program.compiler_spec.compiler_spec_id,
        "image_base": str(program.image_base),
        "md5": program.executable_md5,
        "sha256": program.executable_sha256,
        "blocks": [str(block) for block in program.memory.blocks],
        "symbols": len(program.symbol_table.symbols),
        "functions": len(program.function_manager.functions),
    }


def project_file_to_dict(stored: ProjectFile, details: bool = False) -> dict[str, Any]:
    """Convert a stored ProjectFile to a JSON-serializable dict."""
    result: dict[str, Any] = {
        "path": stored.path,
        "language": stored.language_id,
        "compiler": stored.compiler_spec_id,
        "image_base": stored.image_base,
        "created_at": str(stored.created_at),
    }
    if details:
        result["properties"] = stored.properties
        result["blocks"] = [
            {
                "name": b.name,
                "start": b.start,
                "length": b.length,
                "initialized": b.initialized,
                "mode": b.mode,
                "overlay": b.overlay,
            }
            for b in stored.blocks
        ]
        result["symbols"] = [
            {
                "name": s.name,
                "address": s.address,
                "primary": s.is_primary,
                "pinned": s.is_pinned,
                "entry": s.is_entry,
            }
            for s in stored.symbols
        ]
        result["functions"] = [
            {"name": f.name, "entry": f.entry, "body": [f.body_start, f.body_end]}
            for f in stored.functions
        ]
    return result
