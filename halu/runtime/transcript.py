from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Literal, Optional

Role = Literal["system", "user", "assistant", "tool_result"]

SYSTEM = "system"
USER = "user"
ASSISTANT = "assistant"
TOOL_RESULT = "tool_result"


@dataclass(frozen=True)
class Turn:
    role: Role
    content: str
    tool_name: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "Turn":
        return cls(SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Turn":
        return cls(ASSISTANT, content)

    @classmethod
    def tool_result(cls, content: str, *, tool_name: Optional[str] = None) -> "Turn":
        return cls(TOOL_RESULT, content, tool_name=tool_name)


@dataclass
class Transcript:
    """Append-only conversation history.

    A system turn may only open the transcript, and tool-result turns must
    directly follow the assistant turn that requested them (or another
    tool-result turn from the same batch).
    """

    _turns: list[Turn] = field(default_factory=list)

    def append(self, turn: Turn) -> None:
        if turn.role == SYSTEM and self._turns:
            raise ValueError("system turn must be the first turn")
        if turn.role == TOOL_RESULT:
            last = self._turns[-1].role if self._turns else None
            if last not in (ASSISTANT, TOOL_RESULT):
                raise ValueError("tool-result turn must follow an assistant turn")
        self._turns.append(turn)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def roles(self) -> list[str]:
        return [turn.role for turn in self._turns]

    def to_messages(self, *, tool_result_role: str = SYSTEM) -> list[dict]:
        """Serialize to role/content pairs for the model transport.

        Chat endpoints have no text-protocol tool role, so tool results are
        sent under ``tool_result_role``.
        """
        messages: list[dict] = []
        for turn in self._turns:
            role = tool_result_role if turn.role == TOOL_RESULT else turn.role
            messages.append({"role": role, "content": turn.content})
        return messages

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))


__all__ = ["Role", "Turn", "Transcript", "SYSTEM", "USER", "ASSISTANT", "TOOL_RESULT"]
