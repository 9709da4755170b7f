from typing import Any

import httpx

from toolchat.tools.web.search_provider import SearchProvider

_DEFAULT_COUNT = 5
_MAX_QUERY_CHARS = 400


class WebSearchTool:
    def __init__(self, provider: SearchProvider) -> None:
        self._provider = provider

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return (
            "Search the web and return results with titles, URLs and descriptions. "
            "Use web_fetch afterwards to read a result in full."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": f"Search query (max {_MAX_QUERY_CHARS} characters)",
                },
                "count": {
                    "type": "integer",
                    "description": "Number of results to return (1-20, default 5)",
                },
            },
            "required": ["query"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        query = str(tool_input.get("query", "")).strip()[:_MAX_QUERY_CHARS]
        if not query:
            return "Error: query must not be empty"
        count = max(1, min(20, int(tool_input.get("count", _DEFAULT_COUNT))))

        try:
            results = await self._provider.search(query, count)
        except httpx.TimeoutException:
            return "Error: Search request timed out"
        except httpx.HTTPStatusError as ex:
            return f"Error: HTTP {ex.response.status_code} from {self._provider.provider_name} search"
        except httpx.HTTPError as ex:
            return f"Error: {ex}"

        if not results:
            return f"No results found for: {query}"

        lines = [f'Search: "{query}"', f"Results: {len(results)}", ""]
        for i, result in enumerate(results, 1):
            lines.extend(result.render(i))
            lines.append("")
        return "\n".join(lines).rstrip()
