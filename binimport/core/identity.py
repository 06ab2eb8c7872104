"""Program identity: names, provenance properties and content hashes."""

from __future__ import annotations

import hashlib
import logging

from binimport.core.models import Address, CompilerSpec, Language, SegmentedAddress
from binimport.core.program import SOURCE_LOCATOR, Program
from binimport.core.source import ByteSource
from binimport.core.transaction import transaction

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def compute_md5(source: ByteSource) -> str:
    """Compute the MD5 of the whole source, streamed from offset 0."""
    return _compute_hash(source, hashlib.md5())


def compute_sha256(source: ByteSource) -> str:
    """Compute the SHA-256 of the whole source, streamed from offset 0."""
    return _compute_hash(source, hashlib.sha256())


def _compute_hash(source: ByteSource, digest: hashlib._Hash) -> str:
    with source.open(0) as stream:
        for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def program_name_from_source(source: ByteSource, fallback_name: str) -> str:
    """Use the locator's name when the source has one, else `fallback_name`."""
    if source.locator is not None:
        return source.locator.declared_name
    return fallback_name


def set_program_properties(
    program: Program, source: ByteSource, format_label: str | None
) -> None:
    """Set executable path, format, MD5, SHA-256 and source locator properties.

    Must be called with a transaction open on `program`. An MD5 carried by the
    locator is trusted; otherwise it is computed and written back into the
    stored locator. SHA-256 is always computed.
    """
    program.set_executable_path(source.absolute_path)
    if format_label is not None:
        program.set_executable_format(format_label)

    locator = source.locator
    if locator is not None and locator.md5 is not None:
        md5 = locator.md5
    else:
        md5 = compute_md5(source)
    if locator is not None:
        if locator.md5 is None:
            locator = locator.with_md5(md5)
        program.set_property(SOURCE_LOCATOR, str(locator))
    program.set_executable_md5(md5)
    program.set_executable_sha256(compute_sha256(source))


def should_set_image_base(program: Program, image_base: Address | None) -> bool:
    """Only flat addresses in the program's default space are applied."""
    if image_base is None or isinstance(image_base, SegmentedAddress):
        return False
    return image_base.space == program.address_factory.default_space


def create_program(
    source: ByteSource,
    fallback_name: str,
    image_base: Address | None,
    format_label: str | None,
    language: Language,
    compiler_spec: CompilerSpec,
    consumer: object,
) -> Program:
    """Create a program for `source`, owned by `consumer`.

    The program is returned with events disabled; whoever finishes
    constructing it re-enables them.
    """
    name = program_name_from_source(source, fallback_name)
    program = Program(name, language, compiler_spec, consumer)
    program.set_events_enabled(False)
    with transaction(program, "Set program properties"):
        set_program_properties(program, source, format_label)
        if should_set_image_base(program, image_base):
            program.set_image_base(image_base)  # type: ignore[arg-type]
        else:
            logger.debug("Image base %s not applied to %r", image_base, name)
    return program
