"""Message log returned to callers of a load."""

from __future__ import annotations


class MessageLog:
    """Ordered, append-only diagnostics for a load. Never raises."""

    def __init__(self) -> None:
        self._messages: list[str] = []

    def append_msg(self, message: str) -> None:
        self._messages.append(str(message))

    def append_exception(self, error: BaseException) -> None:
        """Record an exception and every exception in its cause chain."""
        seen: set[int] = set()
        current: BaseException | None = error
        prefix = ""
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            detail = str(current)
            text = f"{type(current).__name__}: {detail}" if detail else type(current).__name__
            self._messages.append(f"{prefix}{text}")
            prefix = "Caused by: "
            current = current.__cause__ or current.__context__

    def copy_from(self, other: MessageLog) -> None:
        self._messages.extend(other.messages)

    @property
    def messages(self) -> list[str]:
        return list(self._messages)

    @property
    def has_messages(self) -> bool:
        return bool(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __str__(self) -> str:
        return "\n".join(self._messages)

    def __repr__(self) -> str:
        return f"MessageLog(messages={len(self._messages)})"
