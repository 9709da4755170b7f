import httpx
from loguru import logger

from toolchat.tools.web.search_provider import SearchResult

_BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
_TIMEOUT_SECONDS = 30


class BraveSearchProvider:
    def __init__(self, api_key: str, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._api_key = api_key
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "Brave"

    async def search(self, query: str, count: int) -> list[SearchResult]:
        headers = {
            "X-Subscription-Token": self._api_key,
            "Accept": "application/json",
        }
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS, transport=self._transport) as client:
            response = await client.get(_BRAVE_SEARCH_URL, headers=headers, params={"q": query, "count": count})
        response.raise_for_status()

        raw_results = response.json().get("web", {}).get("results", [])
        logger.debug(f"Brave search: query={query!r}, results={len(raw_results)}")
        return [
            SearchResult(
                title=r.get("title", "(no title)"),
                url=r.get("url", ""),
                description=r.get("description", ""),
            )
            for r in raw_results
        ]
