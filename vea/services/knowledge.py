"""Retrieval augmentation from the company knowledge base.

The utterance is expanded with domain synonyms, embedded with OpenAI and
matched against a Pinecone index. Retrieval is optional: when it is not
configured or fails, the conversation continues with the plain prompt.
"""

import os
from dataclasses import dataclass, field
from typing import Any

import httpx
from openai import APIError, APIStatusError, APITimeoutError, AsyncOpenAI

from vea.errors import ConfigurationError, ProviderError, ProviderTimeoutError, VEAError
from vea.utils.logging import get_logger

logger = get_logger(__name__)

# First matching keyword wins
QUERY_EXPANSIONS: dict[str, str] = {
    "deposit": "deposits payments received money incoming transactions bank deposits account",
    "deposits": "deposits payments received money incoming transactions bank deposits account",
    "revenue": "revenue income sales earnings monthly totals invoices paid financial",
    "invoice": "invoice invoices billing amount due payment status paid unpaid overdue",
    "invoices": "invoice invoices billing amount due payment status paid unpaid overdue",
    "payment": "payment payments received deposits transactions money cash",
    "payments": "payment payments received deposits transactions money cash",
    "overdue": "overdue unpaid past due outstanding balance payment pending late",
    "outstanding": "outstanding unpaid overdue balance accounts receivable pending",
    "customer": "customer client account contact information address notes history",
    "customers": "customers clients accounts contacts information addresses",
    "client": "client customer account contact information address notes",
    "account": "account customer client profile contact information",
    "project": "project status milestones timeline team budget tasks deliverables",
    "projects": "projects status milestones timelines teams budgets tasks",
    "task": "task assignment work item to-do responsibility project due date",
    "tasks": "tasks assignments work items to-do responsibilities projects due dates",
    "ticket": "ticket issue request status resolution notes service field",
    "tickets": "tickets issues requests status resolutions service field",
    "employee": "employee team member staff role department schedule assignments",
    "employees": "employees team members staff roles departments schedules",
    "team": "team employees members staff roles departments assignments",
}


@dataclass
class KnowledgeBaseConfig:
    """Knowledge base configuration."""

    openai_api_key: str | None = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    pinecone_api_key: str | None = field(default_factory=lambda: os.getenv("PINECONE_API_KEY"))
    pinecone_host: str | None = field(default_factory=lambda: os.getenv("PINECONE_HOST"))
    namespace: str = field(default_factory=lambda: os.getenv("PINECONE_NAMESPACE", "sql_knowledge"))
    embedding_model: str = "text-embedding-3-small"
    top_k: int = 12
    request_timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.openai_api_key and self.pinecone_api_key and self.pinecone_host)


@dataclass
class KnowledgeChunk:
    """One retrieved passage."""

    id: str
    score: float
    content: str
    source: str


def expand_query(query: str) -> str:
    """Append the synonym expansion of the first matching keyword."""
    lowered = query.lower()
    for keyword, expansion in QUERY_EXPANSIONS.items():
        if keyword in lowered:
            return f"{query} {expansion}"
    return query


def format_context(chunks: list[KnowledgeChunk]) -> str:
    """Render retrieved chunks as a markdown block grouped by source."""
    if not chunks:
        return ""

    grouped: dict[str, list[str]] = {}
    for chunk in chunks:
        grouped.setdefault(chunk.source, []).append(chunk.content)

    lines = ["## 📊 RETRIEVED DATA FROM KNOWLEDGE BASE", ""]
    for source, contents in grouped.items():
        lines.append(f"### Source: {source}")
        for content in contents:
            lines.extend([content, ""])
    return "\n".join(lines)


class KnowledgeBase:
    """Semantic search over the company knowledge base."""

    def __init__(self, config: KnowledgeBaseConfig | None = None, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize knowledge base.

        Args:
            config: Knowledge base configuration
            transport: Optional httpx transport for both providers (used by tests)
        """
        self.config = config or KnowledgeBaseConfig()
        self._transport = transport
        self._openai: AsyncOpenAI | None = None

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    @property
    def openai(self) -> AsyncOpenAI:
        """Lazily built OpenAI client.

        Raises:
            ConfigurationError: If no OpenAI API key is configured
        """
        if not self.config.openai_api_key:
            raise ConfigurationError("OpenAI API key not configured. Add OPENAI_API_KEY to your .env file.")
        if self._openai is None:
            self._openai = AsyncOpenAI(
                api_key=self.config.openai_api_key,
                timeout=self.config.request_timeout,
                max_retries=0,
                http_client=httpx.AsyncClient(transport=self._transport) if self._transport else None,
            )
        return self._openai

    async def embed(self, text: str) -> list[float]:
        """Embed text with the configured OpenAI model."""
        try:
            response = await self.openai.embeddings.create(
                model=self.config.embedding_model,
                input=text,
                encoding_format="float",
            )
        except APITimeoutError as e:
            raise ProviderTimeoutError("Embedding request timed out") from e
        except APIStatusError as e:
            raise ProviderError(f"API Error: {e.status_code}", status_code=e.status_code) from e
        except APIError as e:
            raise ProviderError(f"Embedding request failed: {e}") from e

        data = getattr(response, "data", None)
        if not data or not isinstance(getattr(data[0], "embedding", None), list):
            raise ProviderError("Malformed embedding response")
        return data[0].embedding

    async def _query_index(self, vector: list[float]) -> list[dict[str, Any]]:
        """Query the Pinecone index and return its matches.

        Raises:
            ProviderError: On transport errors, non-2xx responses or an unexpected payload shape
            ProviderTimeoutError: If the request times out
        """
        url = f"{self.config.pinecone_host.rstrip('/')}/query"
        body = {
            "vector": vector,
            "topK": self.config.top_k,
            "includeMetadata": True,
            "namespace": self.config.namespace,
        }

        async with httpx.AsyncClient(timeout=self.config.request_timeout, transport=self._transport) as client:
            try:
                resp = await client.post(url, headers={"Api-Key": self.config.pinecone_api_key}, json=body)
            except httpx.TimeoutException as e:
                raise ProviderTimeoutError(f"Knowledge base request timed out: {url}") from e
            except httpx.HTTPError as e:
                raise ProviderError(f"Knowledge base connection failed: {e}") from e

        if resp.is_error:
            raise ProviderError(f"API Error: {resp.status_code}", status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as e:
            raise ProviderError("Malformed response from knowledge base") from e

        if not isinstance(payload, dict):
            raise ProviderError("Malformed response from knowledge base")

        matches = payload.get("matches") or []
        if not isinstance(matches, list) or not all(isinstance(m, dict) for m in matches):
            raise ProviderError("Malformed response from knowledge base")
        return matches

    async def search(self, query: str) -> list[KnowledgeChunk]:
        """Return the passages most similar to a query.

        Raises:
            ConfigurationError, ProviderError, ProviderTimeoutError
        """
        if not self.is_configured:
            raise ConfigurationError("Knowledge base not configured")

        expanded = expand_query(query)
        logger.debug(f"Expanded knowledge base query: {expanded}")
        vector = await self.embed(expanded)

        chunks = []
        for match in await self._query_index(vector):
            metadata = match.get("metadata") or {}
            if not isinstance(metadata, dict):
                raise ProviderError("Malformed response from knowledge base")
            content = metadata.get("pageContent") or metadata.get("text") or metadata.get("content")
            if not isinstance(content, str) or not content:
                continue
            chunks.append(
                KnowledgeChunk(
                    id=str(match.get("id", "")),
                    score=match.get("score", 0.0),
                    content=content,
                    source=str(metadata.get("table") or metadata.get("source") or "General"),
                )
            )

        logger.info(f"Knowledge base returned {len(chunks)} relevant chunk(s)")
        return chunks

    async def retrieve_context(self, query: str) -> str:
        """Formatted context for a query, or an empty string.

        Never raises; retrieval failures fall back to no context.
        """
        if not self.is_configured:
            return ""

        try:
            chunks = await self.search(query)
        except VEAError as e:
            logger.warning(f"Knowledge base retrieval failed, continuing without context: {e}")
            return ""

        return format_context(chunks)
