"""Integration tests for loading files into a project."""

import hashlib
import json
import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from binimport.cli import app
from binimport.core.exceptions import LanguageNotFoundError, OptionError
from binimport.core.source import ContentLocator
from binimport.core.storage import ProjectRepository, get_default_db_path
from binimport.importer import Importer

FIRMWARE = bytes(range(256)) * 4


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def firmware(temp_dir: Path) -> Path:
    """Create a small firmware image."""
    path = temp_dir / "firmware.bin"
    path.write_bytes(FIRMWARE)
    return path


@pytest.fixture
def repository(temp_dir: Path):
    """Create a repository for testing."""
    with ProjectRepository(get_default_db_path(temp_dir)) as repo:
        yield repo


@pytest.fixture
def runner() -> CliRunner:
    """A CLI runner."""
    return CliRunner()


class TestImporter:
    """Tests for loading through the Importer into SQLite."""

    def test_load_and_reopen(self, repository: ProjectRepository, firmware: Path) -> None:
        """Test that a loaded program can be reopened with its identity intact."""
        result = Importer(repository).import_file(firmware, option_args=["baseAddr=1000"])
        try:
            assert result.error is None
            assert [p.name for p in result.programs] == ["firmware.bin"]
        finally:
            result.release()

        stored = repository.open_file("/firmware.bin")
        md5 = hashlib.md5(FIRMWARE).hexdigest()
        assert stored.properties["Executable MD5"] == md5
        assert stored.properties["Executable SHA256"] == hashlib.sha256(FIRMWARE).hexdigest()
        assert stored.properties["Executable Format"] == "Raw Binary"
        assert stored.properties["Executable Location"] == str(firmware.resolve())
        locator = ContentLocator.parse(stored.properties["Source Locator"])
        assert locator.md5 == md5
        assert locator.path == firmware.resolve().as_posix()
        assert stored.image_base == "ram:00001000"

        blocks = {b.name: b for b in stored.blocks}
        assert set(blocks) == {"IO", "SRAM", "ram"}
        assert blocks["ram"].start == "ram:00001000"
        assert blocks["ram"].length == len(FIRMWARE)
        assert repository.programs.get_block_data(stored.id, "ram") == FIRMWARE

        symbols = {s.name: s for s in stored.symbols}
        assert symbols["UART_DATA"].is_pinned
        assert [f.entry for f in stored.functions] == ["ram:00001000"]

    def test_repeated_load_gets_unique_names(
        self, repository: ProjectRepository, firmware: Path
    ) -> None:
        """Test that loading the same file twice stores firmware.bin and firmware.bin0."""
        importer = Importer(repository)

        for _ in range(2):
            importer.import_file(firmware).release()

        assert [f.name for f in repository.list_files()] == ["firmware.bin", "firmware.bin0"]

    def test_load_into_folder_with_name(
        self, repository: ProjectRepository, firmware: Path
    ) -> None:
        """Test choosing the folder and program name."""
        result = Importer(repository).import_file(firmware, name="boot", folder="images/v1")
        result.release()

        assert [f.path for f in repository.list_files()] == ["/images/v1/boot"]

    def test_anchor_option(self, repository: ProjectRepository, firmware: Path) -> None:
        """Test that unanchored default symbols are saved unpinned."""
        Importer(repository).import_file(
            firmware, option_args=["applyLabels=true", "anchorLabels=false"]
        ).release()

        symbols = {s.name: s for s in repository.open_file("/firmware.bin").symbols}
        assert not symbols["_reset"].is_pinned
        assert symbols["_reset"].is_entry
        assert symbols["UART_STATUS"].is_pinned

    def test_unknown_compiler_loads_nothing(
        self, repository: ProjectRepository, firmware: Path
    ) -> None:
        """Test that an incomplete load spec reports and persists nothing."""
        result = Importer(repository).import_file(firmware, compiler_spec_id="msvc")

        assert result.programs == []
        assert result.log.has_messages
        assert repository.list_files() == []

    def test_segmented_language(self, repository: ProjectRepository, firmware: Path) -> None:
        """Test loading at a segmented base address."""
        result = Importer(repository).import_file(
            firmware, language_id="x86:LE:16:Real Mode", option_args=["baseAddr=1000:0000"]
        )
        result.release()

        stored = repository.open_file("/firmware.bin")
        assert stored.language_id == "x86:LE:16:Real Mode"
        assert [b.start for b in stored.blocks if b.name == "ram"] == ["1000:0000"]
        assert stored.image_base == "ram:00000"

    def test_language_file(
        self, repository: ProjectRepository, firmware: Path, temp_dir: Path
    ) -> None:
        """Test loading with a processor described in a JSON file."""
        description = temp_dir / "cpu.json"
        description.write_text(
            json.dumps(
                {
                    "id": "CPU:BE:16:default",
                    "spaces": [{"name": "code", "size": 16, "default": True}],
                    "symbols": [{"label": "start", "address": "code:0000", "entry": True}],
                }
            )
        )
        importer = Importer(repository)
        importer.add_language_file(description)

        importer.import_file(
            firmware, language_id="CPU:BE:16:default", option_args=["applyLabels=true"]
        ).release()

        stored = repository.open_file("/firmware.bin")
        assert stored.image_base == "code:0000"
        assert [s.name for s in stored.symbols] == ["start"]

    def test_bad_requests(self, repository: ProjectRepository, firmware: Path) -> None:
        """Test that unknown languages and options raise."""
        importer = Importer(repository)

        with pytest.raises(LanguageNotFoundError):
            importer.import_file(firmware, language_id="Z80:LE:16:default")
        with pytest.raises(OptionError):
            importer.import_file(firmware, option_args=["colour=blue"])

    def test_in_memory_import(self, firmware: Path) -> None:
        """Test that an importer without a project keeps programs in memory."""
        result = Importer(None).import_file(firmware)

        assert len(result.programs) == 1
        assert result.programs[0].domain_file is None
        result.release()
        assert result.programs[0].is_closed


class TestCli:
    """Tests for the command line."""

    def test_load_json(self, runner: CliRunner, firmware: Path, temp_dir: Path) -> None:
        """Test loading a file and reading the JSON summary."""
        result = runner.invoke(
            app, ["load", str(firmware), "--project", str(temp_dir), "--json"]
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["programs"][0]["path"] == "/firmware.bin"
        assert payload["programs"][0]["md5"] == hashlib.md5(FIRMWARE).hexdigest()
        assert payload["messages"] == []

    def test_load_text(self, runner: CliRunner, firmware: Path, temp_dir: Path) -> None:
        """Test the human-readable load summary."""
        result = runner.invoke(
            app, ["load", str(firmware), "-p", str(temp_dir), "-o", "baseAddr=20000000"]
        )

        assert result.exit_code == 0, result.output
        assert "Loaded" in result.output
        assert "Failed to add" in result.output

    def test_invalid_option_exits(self, runner: CliRunner, firmware: Path, temp_dir: Path) -> None:
        """Test that a malformed option exits with status 1 before loading."""
        result = runner.invoke(
            app, ["load", str(firmware), "-p", str(temp_dir), "-o", "applyLabels=maybe"]
        )

        assert result.exit_code == 1
        assert "expects a boolean" in result.output
        assert not get_default_db_path(temp_dir).exists()

    def test_no_save(self, runner: CliRunner, firmware: Path, temp_dir: Path) -> None:
        """Test that --no-save loads without creating a project."""
        result = runner.invoke(
            app, ["load", str(firmware), "-p", str(temp_dir), "--no-save", "--json"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["programs"][0]["path"] is None
        assert not get_default_db_path(temp_dir).exists()

    def test_programs_info_stats(self, runner: CliRunner, firmware: Path, temp_dir: Path) -> None:
        """Test the query commands after a load."""
        project = ["--project", str(temp_dir)]
        runner.invoke(app, ["load", str(firmware), "--folder", "images", *project])

        programs = runner.invoke(app, ["programs", "--json", *project])
        assert programs.exit_code == 0, programs.output
        assert [p["path"] for p in json.loads(programs.output)] == ["/images/firmware.bin"]

        info = runner.invoke(app, ["info", "/images/firmware.bin", "--json", *project])
        assert info.exit_code == 0, info.output
        details = json.loads(info.output)
        assert {b["name"] for b in details["blocks"]} == {"IO", "SRAM", "ram"}
        assert details["properties"]["Executable Format"] == "Raw Binary"

        stats = runner.invoke(app, ["stats", "--json", *project])
        assert stats.exit_code == 0, stats.output
        assert json.loads(stats.output)["programs"] == 1

    def test_info_missing(self, runner: CliRunner, temp_dir: Path) -> None:
        """Test that info on an unknown path exits with status 1."""
        result = runner.invoke(app, ["info", "/nope", "--project", str(temp_dir)])

        assert result.exit_code == 1
        assert "No program stored" in result.output

    def test_languages(self, runner: CliRunner) -> None:
        """Test listing the built-in languages."""
        result = runner.invoke(app, ["languages", "--json"])

        assert result.exit_code == 0, result.output
        ids = [lang["id"] for lang in json.loads(result.output)]
        assert "TOY:LE:32:default" in ids
