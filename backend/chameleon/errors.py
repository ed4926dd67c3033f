"""Exceptions raised by the history, storage, shell and engine layers.

A missing output file is routine and never raises; only failures the caller
has to react to are represented here.
"""


class ChameleonError(Exception):
    """Base class for every error raised by this package."""


class StorageError(ChameleonError):
    """The durable record store rejected a read or write.

    The failed transaction has been rolled back before this is raised.
    """


class ConversionError(ChameleonError):
    """An external conversion engine failed or could not be started."""


class FileShellError(ChameleonError):
    """The OS shell could not be asked to open or reveal a file."""
