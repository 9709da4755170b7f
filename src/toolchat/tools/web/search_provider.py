from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    description: str = ""

    def render(self, index: int) -> list[str]:
        lines = [f"{index}. {self.title or self.url}", f"   {self.url}"]
        if self.description:
            lines.append(f"   {self.description}")
        return lines


@runtime_checkable
class SearchProvider(Protocol):
    @property
    def provider_name(self) -> str: ...

    async def search(self, query: str, count: int) -> list[SearchResult]:
        """Results for ``query``, at most ``count`` of them. HTTP failures propagate as httpx errors."""
        ...
