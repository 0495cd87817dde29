"""
Relevance selection: query truncation, similarity ranking across one or more
stores, and greedy packing of full document bodies under a token budget.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from ..core.tokens import TokenCounter
from ..util.logging import logger
from ..vector.index import IEmbeddingStore, IEnumerableEmbeddingStore, IVectorSearchStore, rank_by_similarity
from ..vector.types import Embedding, ScoredEmbedding

DEFAULT_MAX_INPUT_TOKENS = 8000
DEFAULT_MAX_TOTAL_TOKENS = 20000
DEFAULT_MAX_CANDIDATES = 100


@dataclass
class RelevanceSource:
    """Everything the selector needs from one store.

    Each source embeds the query with its own generator, since stores may
    use models of different dimensions.
    """

    name: Optional[str]
    embedding_store: IEmbeddingStore
    embed_query: Callable[[str], Awaitable[Embedding]]
    get_text: Callable[[str], Awaitable[Optional[str]]]


@dataclass
class RelevantItem:
    """A ranked candidate tagged with the source it came from."""

    scored: ScoredEmbedding
    source: RelevanceSource

    @property
    def key(self) -> str:
        return self.scored.key

    @property
    def similarity(self) -> float:
        return self.scored.similarity

    @property
    def store_name(self) -> Optional[str]:
        return self.source.name


def render_document(key: str, text: str, store_name: Optional[str] = None) -> str:
    """Labeled block for one packed document."""
    view = f"File path: {key}\nFile content:\n{text}"
    if store_name is not None:
        view = f"Store: {store_name}\n{view}"
    return view


class RelevanceSelector:
    """Ranks stored documents against a query and packs the best under a token cap."""

    def __init__(
        self,
        token_counter: TokenCounter,
        max_input_tokens: int = DEFAULT_MAX_INPUT_TOKENS,
        max_total_tokens: int = DEFAULT_MAX_TOTAL_TOKENS,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ):
        """
        Args:
            token_counter: Shared token counter
            max_input_tokens: Queries longer than this are cut from the front
            max_total_tokens: Cap on the rendered documents returned together
            max_candidates: Results requested from stores that can only be
                searched, not enumerated
        """
        if max_input_tokens <= 0 or max_total_tokens <= 0:
            raise ValueError("Token budgets must be positive")
        if max_candidates <= 0:
            raise ValueError("max_candidates must be positive")

        self.token_counter = token_counter
        self.max_input_tokens = max_input_tokens
        self.max_total_tokens = max_total_tokens
        self.max_candidates = max_candidates

    def truncate_query(self, query: str, max_tokens: Optional[int] = None) -> str:
        """
        Cut characters from the front of query until it fits in max_tokens.

        The tail is kept: in chat-style queries the most recent text matters
        most. Each round estimates the new length from the token ratio and
        re-measures; the length strictly decreases, so this terminates.
        """
        max_tokens = max_tokens or self.max_input_tokens
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")

        tokens = self.token_counter.count_tokens(query)
        while tokens > max_tokens:
            new_length = int(len(query) / (tokens / max_tokens))
            query = query[len(query) - new_length:] if new_length > 0 else ""
            tokens = self.token_counter.count_tokens(query)
        return query

    async def rank(self, query_embedding: Sequence[float], source: RelevanceSource) -> List[RelevantItem]:
        """
        Score the records of one source against query_embedding, best first.

        Enumerable stores are ranked exhaustively. Search-only stores are
        asked for their top ``max_candidates`` hits.
        """
        store = source.embedding_store
        if isinstance(store, IEnumerableEmbeddingStore):
            records = [record async for record in store.iter_all()]
            scored = rank_by_similarity(records, query_embedding)
        elif isinstance(store, IVectorSearchStore):
            scored = await store.search_similar(query_embedding, top_k=self.max_candidates, min_similarity=-1.0)
        else:
            logger.warning(f"Store '{source.name}' can neither be enumerated nor searched; skipping")
            scored = []

        return [RelevantItem(scored=s, source=source) for s in scored]

    async def rank_query(self, query: str, source: RelevanceSource) -> List[RelevantItem]:
        """Embed query with the source's own generator, then rank."""
        query_embedding = await source.embed_query(query)
        items = await self.rank(query_embedding, source)
        logger.log_search(source.name, query, len(items))
        return items

    async def rank_all(self, query: str, source: RelevanceSource,
                       other_sources: Iterable[RelevanceSource] = ()) -> List[RelevantItem]:
        """
        Rank the primary source and every other source, merged into one
        descending order. On equal similarity the primary source comes first,
        then other sources in the order given.
        """
        query = self.truncate_query(query)

        merged = await self.rank_query(query, source)
        for other in other_sources:
            merged.extend(await self.rank_query(query, other))

        merged.sort(key=lambda item: item.similarity, reverse=True)
        return merged

    async def take_top(self, candidates: Iterable[RelevantItem], max_tokens: Optional[int] = None) -> List[str]:
        """
        Greedily pack rendered candidates in order until the budget is hit.

        Packing stops at the first candidate that would overflow; smaller,
        less relevant candidates after it are never substituted in.
        Candidates whose text is gone are skipped.
        """
        max_tokens = max_tokens or self.max_total_tokens

        selected = []
        current_token_count = 0
        stop_reason = "exhausted"

        for candidate in candidates:
            text = await candidate.source.get_text(candidate.key)
            if text is None:
                logger.debug(f"No text for '{candidate.key[:50]}' in store '{candidate.store_name}'; skipping")
                continue

            document_view = render_document(candidate.key, text, candidate.store_name)
            document_token_count = self.token_counter.count_tokens(document_view)

            if current_token_count + document_token_count > max_tokens:
                stop_reason = "budget"
                break

            selected.append(document_view)
            current_token_count += document_token_count

        logger.log_packing(len(selected), current_token_count, max_tokens, stop_reason)
        return selected

    async def get_relevant_documents(self, query: str, source: RelevanceSource,
                                     other_sources: Iterable[RelevanceSource] = ()) -> List[str]:
        """Rank across all sources and pack the result into the token budget."""
        candidates = await self.rank_all(query, source, other_sources)
        return await self.take_top(candidates)

    async def get_relevant_documents_as_string(self, query: str, source: RelevanceSource,
                                               other_sources: Iterable[RelevanceSource] = ()) -> str:
        documents = await self.get_relevant_documents(query, source, other_sources)
        return "\n\n".join(documents)
