"""
binimport: Load raw binaries into structured, addressable programs.

binimport turns a byte source into a program with memory blocks, labels
and provenance properties, and saves it into a project, enabling you to:
- Load files with a processor description (language + compiler)
- Keep every saved program under a unique name in its folder
- Add more bytes to an existing program in a single transaction

Usage:
    from binimport.core import Loader, MessageLog, ProjectRepository, get_default_db_path
    from binimport.core.source import ByteSource
    from binimport.formats import RawBinaryExtractor
    from binimport.processors import default_language_service

    load_spec = default_language_service().get_load_spec("TOY:LE:32:default")
    loader = Loader(RawBinaryExtractor())
    with ProjectRepository(get_default_db_path(Path("."))) as repo:
        programs = loader.load(
            ByteSource.from_path(Path("firmware.bin")), "firmware", repo.root_folder,
            load_spec, loader.default_options(), MessageLog(), consumer=owner,
        )
"""

__version__ = "0.1.0"
