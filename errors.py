"""
Error kinds raised by the HCS evaluation pipeline.
Every one of them is terminal for the current run.
"""


class HCSError(Exception):
    """Base class for failures shown verbatim to the operator."""


class ValidationError(HCSError):
    """Required fields are missing or not numeric."""


class ParseError(HCSError):
    """A supplied file cannot be decoded as tabular data."""


class AnchorNotFoundError(HCSError):
    """The temperature column holds no numeric value to synchronize on."""


class ReadError(HCSError):
    """The underlying file read failed."""
