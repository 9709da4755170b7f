from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from toolchat import system_prompt


class Mode(str, Enum):
    NORMAL = "normal"
    RESEARCH = "research"
    CODE = "code"
    BRAINSTORM = "brainstorm"

    @classmethod
    def parse(cls, value: str | None) -> Mode:
        """Resolve a client-supplied mode string; unknown or missing values are ``normal``."""
        if not value:
            return cls.NORMAL
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.NORMAL


@dataclass(frozen=True)
class ModeProfile:
    groups: tuple[str, ...]
    prompt: str

    def system_prompt(self, override: str | None = None) -> str:
        if override:
            return override
        if self.prompt:
            return self.prompt
        return system_prompt.general_prompt()


_PROFILES: dict[Mode, ModeProfile] = {
    # Empty prompt means the general prompt stamped with the current date.
    Mode.NORMAL: ModeProfile(groups=(), prompt=""),
    Mode.RESEARCH: ModeProfile(groups=("url", "web_search"), prompt=system_prompt.RESEARCH_PROMPT),
    Mode.CODE: ModeProfile(groups=("filesystem", "git", "code"), prompt=system_prompt.CODE_PROMPT),
    Mode.BRAINSTORM: ModeProfile(groups=("thinking", "brainstorm"), prompt=system_prompt.BRAINSTORM_PROMPT),
}


def profile_for(mode: Mode) -> ModeProfile:
    return _PROFILES[mode]


def available_modes() -> list[str]:
    return [m.value for m in Mode]
