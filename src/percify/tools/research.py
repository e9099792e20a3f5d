"""Web research tool that extracts a text snippet from a documentation page."""

import logging
import re
from typing import Any

import httpx

from .base import Tool, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_URL = "https://developers.cloudflare.com/agents/"
SNIPPET_MAX_CHARS = 500

_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def extract_snippet(html: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    """Strip markup from an HTML page and return its leading text.

    Args:
        html: The raw page.
        max_chars: Number of characters to keep before the ellipsis.

    Returns:
        The first max_chars characters of visible text followed by "...".
    """
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text[:max_chars] + "..."


def fallback_snippet(query: str) -> str:
    """Canned snippet used when the source cannot be fetched."""
    return (
        f'Research on "{query}" completed. Cloudflare Agents SDK enables '
        "building AI-powered applications with persistent state, real-time "
        "communication, and tool integration capabilities."
    )


class ResearchWebTool(Tool):
    """Tool for looking up a snippet from a fixed documentation source.

    Any failure (timeout, transport error, non-2xx status) degrades to a
    fallback snippet so the conversation never stalls on the source.
    """

    def __init__(
        self,
        source_url: str = DEFAULT_SOURCE_URL,
        timeout: float = 10.0,
        max_chars: int = SNIPPET_MAX_CHARS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the research tool.

        Args:
            source_url: Page fetched for every query.
            timeout: Request timeout in seconds.
            max_chars: Snippet length before the ellipsis.
            transport: Optional httpx transport, used by tests.
        """
        self._source_url = source_url
        self._timeout = timeout
        self._max_chars = max_chars
        self._transport = transport

    @property
    def name(self) -> str:
        return "research_web"

    @property
    def description(self) -> str:
        return (
            "Research information from the web. Use this when the user asks to "
            "research, look up, or find information about something, including "
            "questions about Cloudflare, Workers, or the Agents SDK."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The research query or topic to look up",
                },
            },
            "required": ["query"],
        }

    async def research(self, query: str) -> dict[str, Any]:
        """Fetch the source and return {query, snippet, sourceUrl, fallback}."""
        logger.info(f"Executing research for: {query}")

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(self._source_url)
                response.raise_for_status()
                snippet = extract_snippet(response.text, self._max_chars)
        except httpx.HTTPError as e:
            logger.error(f"Research error: {e}")
            return {
                "query": query,
                "snippet": fallback_snippet(query),
                "sourceUrl": self._source_url,
                "fallback": True,
            }

        logger.info("Research complete")
        return {
            "query": query,
            "snippet": snippet,
            "sourceUrl": self._source_url,
            "fallback": False,
        }

    async def execute(self, query: str = "", **kwargs: Any) -> ToolResult:
        """Run the research and format the snippet for the model."""
        if not query.strip():
            return ToolResult.failure("'query' is required")

        result = await self.research(query)
        output = (
            f'Research completed for: "{query}"\n\n'
            f"{result['snippet']}\n\n"
            f"Source: {result['sourceUrl']}"
        )
        return ToolResult(success=True, output=output, metadata=result)
