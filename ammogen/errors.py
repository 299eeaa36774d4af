"""Error types shared by the reader, sampling and sink stages."""


class ProcError(Exception):
    """Base class for every failure that aborts an ammo generation run."""


class ProcIOError(ProcError):
    """A source could not be read or a sink could not be written.

    The underlying ``OSError`` is kept as ``__cause__``.
    """

    def __str__(self) -> str:
        return f"IO error: {super().__str__()}"


class LogicError(ProcError):
    """The run cannot produce the requested result (e.g. too few input lines)."""

    def __str__(self) -> str:
        return f"Logic error: {super().__str__()}"
