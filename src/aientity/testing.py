from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass(slots=True)
class StaticInvoker:
    """Deterministic invoker for local demos/tests.

    Replies are handed out in order; once exhausted the last reply is
    repeated.  Every call is recorded in ``calls`` as ``(text, many)``.
    """

    replies: Sequence[str]
    calls: list[tuple[str, bool]] = field(default_factory=list)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def invoke(self, user_text: str, *, many: bool = False) -> str:
        self.calls.append((user_text, many))
        if not self.replies:
            return ""
        position = min(len(self.calls), len(self.replies)) - 1
        return self.replies[position]

    def close(self) -> None:
        return None
