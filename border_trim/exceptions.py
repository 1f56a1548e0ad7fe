class InvalidInputError(ValueError):
    """Raised for malformed pixel buffers, dimensions or tolerances."""


class ImageDecodeError(InvalidInputError):
    """Raised when bytes or a file cannot be decoded into pixels."""
