import json
from typing import Any
from urllib.parse import urlparse

import httpx

from toolchat.tools.html_utilities import html_to_text, page_title, parse_html

DEFAULT_MAX_CHARS = 50_000
MAX_RESPONSE_BYTES = 2_000_000
TIMEOUT_SECONDS = 30
MAX_REDIRECTS = 5

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


def too_large_message(size: int) -> str:
    return f"Response too large ({size:,} bytes, max {MAX_RESPONSE_BYTES:,} bytes)"


def truncation_notice(max_chars: int) -> str:
    return f"[Content truncated at {max_chars:,} characters]"


def http_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers=DEFAULT_HEADERS,
        timeout=TIMEOUT_SECONDS,
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
        transport=transport,
    )


class WebFetchTool:
    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    @property
    def name(self) -> str:
        return "web_fetch"

    @property
    def description(self) -> str:
        return (
            "Fetch a URL and return its content as readable text. "
            "HTML pages are converted to plain text with links preserved, "
            "JSON is pretty-printed. GET requests only."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "The HTTP or HTTPS URL to fetch",
                },
                "maxChars": {
                    "type": "integer",
                    "description": "Maximum characters of content to return (default 50000)",
                },
            },
            "required": ["url"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        url: str = tool_input["url"]
        max_chars = int(tool_input.get("maxChars", DEFAULT_MAX_CHARS))

        if urlparse(url).scheme not in ("http", "https"):
            return "Error: URL must use http or https scheme"

        try:
            async with http_client(self._transport) as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            return f"Error: Request timed out after {TIMEOUT_SECONDS} seconds"
        except httpx.TooManyRedirects:
            return f"Error: Too many redirects (max {MAX_REDIRECTS})"
        except httpx.HTTPError as ex:
            return f"Error: {ex}"

        if response.status_code >= 400:
            return f"Error: HTTP {response.status_code} fetching {url}"

        if len(response.content) > MAX_RESPONSE_BYTES:
            return f"Error: {too_large_message(len(response.content))}"

        content_type = response.headers.get("content-type", "")
        title = ""
        if "text/html" in content_type or "application/xhtml" in content_type:
            soup = parse_html(response.text)
            title = page_title(soup)
            content = html_to_text(soup)
        elif "application/json" in content_type:
            try:
                content = json.dumps(response.json(), indent=2)
            except ValueError:
                content = response.text
        else:
            content = response.text

        original_length = len(content)
        truncated = original_length > max_chars
        if truncated:
            content = content[:max_chars]

        parts = [f"URL: {url}"]
        final_url = str(response.url)
        if final_url != url:
            parts.append(f"Final URL: {final_url}")
        parts.append(f"Status: {response.status_code}")
        parts.append(f"Content-Type: {content_type}")
        if title:
            parts.append(f"Title: {title}")
        if truncated:
            parts.append(f"Length: {max_chars:,} chars (truncated from {original_length:,})")
        else:
            parts.append(f"Length: {original_length:,} chars")
        parts.extend(["", "--- Content ---", "", content])
        if truncated:
            parts.extend(["", truncation_notice(max_chars)])
        return "\n".join(parts)
