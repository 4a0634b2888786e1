"""Error taxonomy shared by every pipeline stage."""


class DataError(Exception):
    """Base class for all conversion errors."""


class DataIOError(DataError):
    """Reading or writing a file failed."""


class SerializationError(DataError):
    pass


class DeserializationError(DataError):
    pass


class CompressionError(DataError):
    pass


class DecompressionError(DataError):
    pass


class ValidationError(DataError):
    """Input rejected before it was parsed (bad size, short key, ...)."""


class MissingFileError(DataError, FileNotFoundError):
    pass


class InvalidFormatError(DataError):
    """Input parsed but does not have the expected shape."""


class IntegrityCheckError(DataError):
    """Written artifacts are not internally consistent."""
