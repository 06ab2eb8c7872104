"""binimport custom exceptions."""


class BinImportError(Exception):
    """Base exception for binimport errors."""


class CancelledError(BinImportError):
    """The operation was cancelled through its task monitor."""


class InvalidInputError(BinImportError):
    """A value supplied to a program mutation was rejected."""


class InvalidNameError(InvalidInputError):
    """A symbol or project file name is not acceptable."""


class DuplicateNameError(InvalidInputError):
    """A symbol with the same name already exists elsewhere in its namespace."""


class DuplicateFileError(BinImportError):
    """A project file with the requested name already exists in the folder."""


class MemoryAccessError(BinImportError):
    """Base class for memory block creation failures."""


class MemoryConflictError(MemoryAccessError):
    """A new block overlaps an existing block."""


class AddressOverflowError(MemoryAccessError):
    """An address computation ran past the end of its address space."""


class InvalidAddressError(MemoryAccessError):
    """An address string could not be resolved."""


class OverlappingFunctionError(BinImportError):
    """A function body overlaps an existing function."""


class NoTransactionError(BinImportError):
    """A program was mutated outside an open transaction."""


class OwnershipError(BinImportError):
    """A consumer released a program it does not own."""


class LanguageNotFoundError(BinImportError):
    """Requested processor language is not registered."""


class OptionError(BinImportError):
    """A load option could not be parsed."""


class ProjectFileNotFoundError(BinImportError):
    """No program is stored at the requested project path."""
