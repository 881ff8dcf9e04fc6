from __future__ import annotations

from typing import List


class LineBuffer:
    """Reassemble newline-delimited text that arrives in arbitrary chunks.

    ``feed`` emits every complete line and keeps the unterminated tail as
    carry-over; ``flush`` releases the tail once the stream has ended.
    Blank lines are never emitted.
    """

    def __init__(self) -> None:
        self._carry = ""

    @property
    def pending(self) -> str:
        return self._carry

    def feed(self, text: str) -> List[str]:
        if not text:
            return []
        lines = (self._carry + text).split("\n")
        self._carry = lines.pop()
        return [line for line in lines if line.strip()]

    def flush(self) -> List[str]:
        tail, self._carry = self._carry, ""
        return [tail] if tail.strip() else []
