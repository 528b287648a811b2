"""Tests for knowledge base retrieval."""

import json

import httpx
import pytest

from vea.errors import ConfigurationError, ProviderError
from vea.services.knowledge import (
    KnowledgeBase,
    KnowledgeBaseConfig,
    KnowledgeChunk,
    expand_query,
    format_context,
)

EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"

CONFIG = KnowledgeBaseConfig(
    openai_api_key="sk-test",
    pinecone_api_key="pc-test",
    pinecone_host="https://index.pinecone.test/",
)

_MISSING = object()


class RetrievalStub:
    def __init__(self, matches=None, query_status: int = 200, query_payload=_MISSING, embed_status: int = 200):
        self.matches = matches or []
        self.query_status = query_status
        self.query_payload = {"matches": self.matches} if query_payload is _MISSING else query_payload
        self.embed_status = embed_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == EMBEDDINGS_URL:
            if self.embed_status != 200:
                return httpx.Response(self.embed_status, json={"error": {"message": "invalid api key"}})
            return httpx.Response(
                200,
                json={
                    "object": "list",
                    "data": [{"object": "embedding", "index": 0, "embedding": [0.1, 0.2, 0.3]}],
                    "model": "text-embedding-3-small",
                    "usage": {"prompt_tokens": 5, "total_tokens": 5},
                },
            )
        if request.url.path == "/query":
            return httpx.Response(self.query_status, json=self.query_payload)
        return httpx.Response(404)


class TestExpandQuery:
    """Tests for synonym expansion."""

    def test_first_keyword_wins(self):
        expanded = expand_query("Show overdue invoices")
        assert expanded.startswith("Show overdue invoices invoice invoices billing")

    def test_case_insensitive(self):
        assert expand_query("REVENUE last month").endswith("invoices paid financial")

    def test_unknown_query_unchanged(self):
        assert expand_query("hello there") == "hello there"


class TestFormatContext:
    """Tests for context rendering."""

    def test_empty(self):
        assert format_context([]) == ""

    def test_grouped_by_source(self):
        chunks = [
            KnowledgeChunk("1", 0.9, "Invoice INV-1 is overdue", "invoices"),
            KnowledgeChunk("2", 0.8, "Acme Corp is in Austin", "customers"),
            KnowledgeChunk("3", 0.7, "Invoice INV-2 is paid", "invoices"),
        ]

        context = format_context(chunks)

        assert context.startswith("## 📊 RETRIEVED DATA FROM KNOWLEDGE BASE")
        assert context.count("### Source: invoices") == 1
        assert context.index("INV-2") < context.index("### Source: customers")


class TestKnowledgeBase:
    """Tests for semantic search."""

    @pytest.mark.asyncio
    async def test_search(self):
        stub = RetrievalStub(
            matches=[
                {"id": "a", "score": 0.91, "metadata": {"pageContent": "Deposit of $500", "table": "deposits"}},
                {"id": "b", "score": 0.85, "metadata": {"text": "Customer note"}},
                {"id": "c", "score": 0.80, "metadata": {}},
            ]
        )
        knowledge_base = KnowledgeBase(CONFIG, transport=httpx.MockTransport(stub))

        chunks = await knowledge_base.search("recent deposits")

        assert [c.id for c in chunks] == ["a", "b"]
        assert chunks[0].source == "deposits"
        assert chunks[1].source == "General"

        embed_body = json.loads(stub.requests[0].content)
        assert embed_body["model"] == "text-embedding-3-small"
        assert embed_body["input"].startswith("recent deposits deposits payments received")
        assert stub.requests[0].headers["Authorization"] == "Bearer sk-test"

        query = stub.requests[1]
        assert str(query.url) == "https://index.pinecone.test/query"
        assert query.headers["Api-Key"] == "pc-test"
        assert json.loads(query.content) == {
            "vector": [0.1, 0.2, 0.3],
            "topK": 12,
            "includeMetadata": True,
            "namespace": "sql_knowledge",
        }

    @pytest.mark.asyncio
    async def test_search_requires_configuration(self):
        knowledge_base = KnowledgeBase(KnowledgeBaseConfig(openai_api_key=None, pinecone_api_key=None))

        with pytest.raises(ConfigurationError):
            await knowledge_base.search("anything")

    @pytest.mark.asyncio
    async def test_retrieve_context_unconfigured(self):
        stub = RetrievalStub()
        knowledge_base = KnowledgeBase(
            KnowledgeBaseConfig(openai_api_key=None, pinecone_api_key=None, pinecone_host=None),
            transport=httpx.MockTransport(stub),
        )

        assert await knowledge_base.retrieve_context("revenue") == ""
        assert stub.requests == []

    @pytest.mark.asyncio
    async def test_retrieve_context_swallows_provider_errors(self):
        """A failing index leaves the turn without context."""
        knowledge_base = KnowledgeBase(CONFIG, transport=httpx.MockTransport(RetrievalStub(query_status=503)))

        assert await knowledge_base.retrieve_context("revenue") == ""

    @pytest.mark.asyncio
    async def test_retrieve_context_formats_chunks(self):
        stub = RetrievalStub(matches=[{"id": "a", "score": 0.9, "metadata": {"content": "Q3 revenue was $52k"}}])
        knowledge_base = KnowledgeBase(CONFIG, transport=httpx.MockTransport(stub))

        context = await knowledge_base.retrieve_context("revenue")

        assert "### Source: General" in context
        assert "Q3 revenue was $52k" in context

    @pytest.mark.asyncio
    async def test_embedding_errors_are_provider_errors(self):
        knowledge_base = KnowledgeBase(CONFIG, transport=httpx.MockTransport(RetrievalStub(embed_status=401)))

        with pytest.raises(ProviderError, match="API Error: 401"):
            await knowledge_base.search("revenue")


class TestMalformedIndexResponses:
    """Tests for index payloads of the wrong shape."""

    @pytest.mark.parametrize(
        "payload",
        [
            ["not", "an", "object"],
            {"matches": "nothing"},
            {"matches": ["a", "b"]},
            {"matches": [{"id": "a", "metadata": "flat string"}]},
        ],
    )
    @pytest.mark.asyncio
    async def test_search_raises_provider_error(self, payload):
        knowledge_base = KnowledgeBase(CONFIG, transport=httpx.MockTransport(RetrievalStub(query_payload=payload)))

        with pytest.raises(ProviderError, match="Malformed response from knowledge base"):
            await knowledge_base.search("revenue")

    @pytest.mark.asyncio
    async def test_retrieve_context_falls_back_to_no_context(self):
        """A malformed index answer never fails the turn."""
        stub = RetrievalStub(query_payload=[{"matches": []}])
        knowledge_base = KnowledgeBase(CONFIG, transport=httpx.MockTransport(stub))

        assert await knowledge_base.retrieve_context("revenue") == ""
        assert len(stub.requests) == 2
