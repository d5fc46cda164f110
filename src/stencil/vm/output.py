"""Output sink with a capture stack.

Rendering appends text fragments to the innermost buffer and joins once at
the end. Macros, set blocks, filter blocks, ``super()`` and
recursive ``loop()`` calls open a capture so their output can be turned
into a value instead.
"""

from __future__ import annotations


class Output:
    """Append-only text buffer stack for one render."""

    __slots__ = ("_buffers",)

    def __init__(self) -> None:
        self._buffers: list[list[str]] = [[]]

    def write(self, text: str) -> None:
        if text:
            self._buffers[-1].append(text)

    def begin_capture(self) -> None:
        self._buffers.append([])

    def end_capture(self) -> str:
        if len(self._buffers) == 1:
            raise RuntimeError("end_capture() without a matching begin_capture()")
        return "".join(self._buffers.pop())

    @property
    def depth(self) -> int:
        """Number of open captures."""
        return len(self._buffers) - 1

    def result(self) -> str:
        return "".join(self._buffers[0])
