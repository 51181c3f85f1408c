class MzPsmError(Exception):
    """Base class for errors raised by this package."""


class FileAccessError(MzPsmError, IOError):
    """The backing store of a spectral file is missing, corrupt or unreadable.

    Only operations on that one file are affected.
    """

    def __init__(self, path, message=None):
        self.path = path
        if message is None:
            message = f"Could not access spectral file {path!r}"
        super().__init__(message)


class OutOfRangeError(MzPsmError, IndexError):
    """A spectrum number outside of ``[first, last]`` was requested."""

    def __init__(self, spectrum_number: int, first: int, last: int):
        self.spectrum_number = spectrum_number
        self.first = first
        self.last = last
        super().__init__(
            f"Spectrum number {spectrum_number} is outside of the valid range [{first}, {last}]")


class ModificationParseError(MzPsmError, ValueError):
    """A modification token in a search result record could not be parsed."""

    def __init__(self, token: str, message=None):
        self.token = token
        if message is None:
            message = f"Could not parse the residue position for the modification {token!r}"
        super().__init__(message)
