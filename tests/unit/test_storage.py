"""Tests for project storage."""

import tempfile
from pathlib import Path

import pytest

from binimport.core.models import Language
from binimport.core.program import Program
from binimport.core.storage import ProjectRepository, get_default_db_path
from binimport.core.transaction import transaction
from binimport.processors import default_language_service


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def repository(temp_dir: Path):
    """Create a project repository for testing."""
    with ProjectRepository(get_default_db_path(temp_dir)) as repo:
        yield repo


@pytest.fixture
def language() -> Language:
    """The built-in 32-bit test language."""
    return default_language_service().get_language("TOY:LE:32:default")


@pytest.fixture
def program(language: Language) -> Program:
    """A program with a block, two labels, an entry point and a function."""
    program = Program("fw", language, language.default_compiler_spec, object())
    start = program.address_factory.default_address(0x1000)
    with transaction(program, "populate"):
        program.set_property("Executable MD5", "abc")
        program.set_image_base(start)
        program.memory.create_block("ram", start, 4, b"\xde\xad\xbe\xef")
        program.memory.create_block("bss", start.add(0x100), 0x10)
        symbol = program.symbol_table.create_label(start, "entry")
        program.symbol_table.set_pinned(symbol, True)
        program.symbol_table.create_label(start.add(2), "middle")
        program.symbol_table.add_external_entry_point(start)
        program.function_manager.create_function(None, start, (start, start))
    return program


class TestDefaultPath:
    """Tests for the default database location."""

    def test_default_db_path(self, temp_dir: Path) -> None:
        """Test that projects live in .binimport/project.db."""
        assert get_default_db_path(temp_dir) == temp_dir / ".binimport" / "project.db"

    def test_database_created_lazily(self, temp_dir: Path) -> None:
        """Test that the database file only appears once the project is used."""
        db_path = get_default_db_path(temp_dir)
        repo = ProjectRepository(db_path)
        assert not db_path.exists()

        repo.get_stats()
        repo.close()

        assert db_path.exists()


class TestFolders:
    """Tests for project folders."""

    def test_root_folder(self, repository: ProjectRepository) -> None:
        """Test that the root folder always exists."""
        assert repository.get_folder("/") == repository.root_folder
        assert repository.root_folder.name == ""

    def test_create_folder_path(self, repository: ProjectRepository) -> None:
        """Test creating nested folders in one call."""
        folder = repository.root_folder.create_folder_path("firmware/boot")

        assert folder.path == "/firmware/boot"
        assert folder.name == "boot"
        assert repository.get_folder("/firmware") is not None
        assert [f.path for f in repository.root_folder.folders()] == ["/firmware"]

    def test_create_folder_is_idempotent(self, repository: ProjectRepository) -> None:
        """Test that creating an existing folder returns it."""
        first = repository.root_folder.create_folder("images")
        second = repository.root_folder.create_folder("images")

        assert first == second
        assert len(repository.root_folder.folders()) == 1

    def test_missing_folder(self, repository: ProjectRepository) -> None:
        """Test that unknown folders are None."""
        assert repository.get_folder("/nope") is None


class TestPrograms:
    """Tests for saved programs."""

    def test_round_trip(self, repository: ProjectRepository, program: Program) -> None:
        """Test that a saved program keeps its identity, blocks, symbols and functions."""
        folder = repository.root_folder.create_folder("images")

        stored = folder.create_file("boot.bin", program)

        assert program.domain_file == stored
        assert program.name == "boot.bin"

        reopened = repository.open_file("/images/boot.bin")
        assert reopened.path == "/images/boot.bin"
        assert reopened.language_id == "TOY:LE:32:default"
        assert reopened.compiler_spec_id == "default"
        assert reopened.image_base == "ram:00001000"
        assert reopened.properties == {"Executable MD5": "abc"}
        assert [(b.name, b.start, b.length, b.initialized) for b in reopened.blocks] == [
            ("ram", "ram:00001000", 4, True),
            ("bss", "ram:00001100", 0x10, False),
        ]
        assert [(s.name, s.is_primary, s.is_pinned, s.is_entry) for s in reopened.symbols] == [
            ("entry", True, True, True),
            ("middle", True, False, False),
        ]
        assert [(f.name, f.entry) for f in reopened.functions] == [
            ("FUN_00001000", "ram:00001000")
        ]

    def test_block_bytes_stored(self, repository: ProjectRepository, program: Program) -> None:
        """Test that initialized block bytes are saved and uninitialized ones are not."""
        stored = repository.root_folder.create_file("fw", program)

        assert repository.programs.get_block_data(stored.id, "ram") == b"\xde\xad\xbe\xef"
        assert repository.programs.get_block_data(stored.id, "bss") is None

    def test_get_file(self, repository: ProjectRepository, program: Program) -> None:
        """Test looking up a file in its folder."""
        folder = repository.root_folder
        folder.create_file("fw", program)

        assert folder.get_file("fw") is not None
        assert folder.get_file("other") is None

    def test_list_files_by_folder(
        self, repository: ProjectRepository, language: Language
    ) -> None:
        """Test listing everything versus one folder."""
        root = repository.root_folder
        sub = root.create_folder("sub")
        root.create_file("a", Program("a", language, language.default_compiler_spec, self))
        sub.create_file("b", Program("b", language, language.default_compiler_spec, self))

        assert [f.path for f in repository.list_files()] == ["/a", "/sub/b"]
        assert [f.path for f in repository.list_files("/sub")] == ["/sub/b"]

    def test_stats_and_clear(self, repository: ProjectRepository, program: Program) -> None:
        """Test project statistics before and after clearing."""
        repository.root_folder.create_folder("images").create_file("fw", program)

        stats = repository.get_stats()
        assert stats["folders"] == 2
        assert stats["programs"] == 1
        assert stats["blocks"] == 2
        assert stats["symbols"] == 2
        assert stats["last_imported"] is not None

        repository.clear()

        stats = repository.get_stats()
        assert stats["folders"] == 1
        assert stats["programs"] == 0
        assert stats["last_imported"] is None
