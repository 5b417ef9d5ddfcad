"""
Condition catalog stores.

The catalog is the small, curated knowledge base the analysis is grounded
in. Two implementations share one async interface:

- InMemoryConditionCatalog: BM25 index over name, symptoms and description
- ArangoConditionCatalog: ArangoSearch view ranked with BM25()
"""

import asyncio
import re
from collections.abc import Iterable
from typing import Protocol

from arango.database import StandardDatabase
from arango.exceptions import ArangoError
from rank_bm25 import BM25Okapi

from config.logging_config import get_logger
from database.database import (
    CONDITIONS_COLLECTION,
    CONDITIONS_VIEW,
    TEXT_ANALYZER,
    query_documents,
    strip_system_fields,
)
from models.models import MatchCandidate, MedicalCondition
from services.errors import CatalogUnavailableError

logger = get_logger(__name__)

# Common English words a text index ignores
STOPWORDS = frozenset({
    "a", "about", "after", "all", "also", "am", "an", "and", "any", "are", "as",
    "at", "be", "been", "before", "being", "but", "by", "can", "could", "did",
    "do", "does", "doing", "for", "from", "had", "has", "have", "having", "he",
    "her", "him", "his", "how", "i", "if", "in", "into", "is", "it", "its",
    "just", "me", "more", "my", "no", "not", "now", "of", "on", "or", "our",
    "out", "over", "she", "so", "some", "such", "than", "that", "the", "their",
    "them", "then", "there", "these", "they", "this", "those", "to", "too",
    "up", "very", "was", "we", "were", "what", "when", "which", "while", "who",
    "why", "will", "with", "would", "you", "your",
})


def tokenize(text: str) -> list[str]:
    """Lowercase, split on non-alphanumerics, drop stopwords and 1-char tokens."""
    tokens = re.findall(r"\b[a-z0-9]+\b", text.lower())
    return [t for t in tokens if len(t) > 1 and t not in STOPWORDS]


class ConditionCatalog(Protocol):
    """Read-mostly store of curated medical conditions."""

    async def find_by_relevance(self, query: str, limit: int) -> list[MatchCandidate]:
        """Return up to ``limit`` conditions, most relevant first."""
        ...

    async def find_all(self) -> list[MedicalCondition]:
        """Return every condition in catalog order."""
        ...

    async def count(self) -> int:
        ...

    async def insert_many(self, conditions: Iterable[MedicalCondition]) -> int:
        """Store new conditions and return how many were inserted."""
        ...


class InMemoryConditionCatalog:
    """
    Process-local catalog with a BM25 relevance index.

    The index is rebuilt whenever conditions are inserted, which only
    happens during seeding.
    """

    # Weight for name vs symptoms/description in BM25
    NAME_WEIGHT = 2

    def __init__(self, conditions: Iterable[MedicalCondition] = ()):
        self._conditions: list[MedicalCondition] = []
        self._vocabularies: list[set[str]] = []
        self._bm25: BM25Okapi | None = None
        self._add(conditions)

    def _add(self, conditions: Iterable[MedicalCondition]) -> int:
        known = {c.name.lower() for c in self._conditions}
        added = 0
        for condition in conditions:
            key = condition.name.lower()
            if key in known:
                logger.warning("Duplicate condition skipped", condition=condition.name)
                continue
            known.add(key)
            self._conditions.append(condition)
            added += 1
        if added:
            self._build_index()
        return added

    def _build_index(self) -> None:
        corpus = [
            tokenize(c.name) * self.NAME_WEIGHT
            + tokenize(" ".join(c.symptoms))
            + tokenize(c.description)
            for c in self._conditions
        ]
        self._vocabularies = [set(doc) for doc in corpus]
        self._bm25 = BM25Okapi(corpus)
        logger.debug("Built BM25 index", corpus_size=len(corpus))

    async def find_by_relevance(self, query: str, limit: int) -> list[MatchCandidate]:
        query_tokens = tokenize(query)
        if self._bm25 is None or not query_tokens:
            return []

        # Okapi IDF is zero for a term found in exactly half the corpus, so
        # membership is decided by token overlap and BM25 only orders.
        wanted = set(query_tokens)
        scores = self._bm25.get_scores(query_tokens)
        ranked = sorted(
            (
                (float(scores[idx]), idx)
                for idx, vocabulary in enumerate(self._vocabularies)
                if vocabulary & wanted
            ),
            key=lambda pair: (-pair[0], pair[1]),
        )
        return [
            MatchCandidate(condition=self._conditions[idx], score=score)
            for score, idx in ranked[:limit]
        ]

    async def find_all(self) -> list[MedicalCondition]:
        return list(self._conditions)

    async def count(self) -> int:
        return len(self._conditions)

    async def insert_many(self, conditions: Iterable[MedicalCondition]) -> int:
        return self._add(conditions)


class ArangoConditionCatalog:
    """
    Catalog stored in ArangoDB.

    Relevance queries run against an ArangoSearch view using the English
    text analyzer and are ranked with BM25. python-arango is synchronous,
    so every call runs in a worker thread.
    """

    RELEVANCE_AQL = f"""
        FOR doc IN {CONDITIONS_VIEW}
            SEARCH ANALYZER(
                doc.condition IN TOKENS(@query, "{TEXT_ANALYZER}")
                OR doc.symptoms IN TOKENS(@query, "{TEXT_ANALYZER}")
                OR doc.description IN TOKENS(@query, "{TEXT_ANALYZER}"),
                "{TEXT_ANALYZER}"
            )
            LET score = BM25(doc)
            SORT score DESC
            LIMIT @limit
            RETURN {{doc: doc, score: score}}
    """

    ALL_AQL = f"""
        FOR doc IN {CONDITIONS_COLLECTION}
            SORT TO_NUMBER(doc._key), doc._key
            RETURN doc
    """

    def __init__(self, db: StandardDatabase):
        self.db = db

    async def find_by_relevance(self, query: str, limit: int) -> list[MatchCandidate]:
        try:
            rows = await asyncio.to_thread(
                query_documents, self.db, self.RELEVANCE_AQL, {"query": query, "limit": limit}
            )
        except ArangoError as e:
            raise CatalogUnavailableError(f"Relevance search failed: {e}") from e

        return [
            MatchCandidate(
                condition=MedicalCondition.model_validate(strip_system_fields(row["doc"])),
                score=float(row["score"]),
            )
            for row in rows
        ]

    async def find_all(self) -> list[MedicalCondition]:
        try:
            rows = await asyncio.to_thread(query_documents, self.db, self.ALL_AQL)
        except ArangoError as e:
            raise CatalogUnavailableError(f"Catalog read failed: {e}") from e
        return [MedicalCondition.model_validate(strip_system_fields(row)) for row in rows]

    async def count(self) -> int:
        try:
            return await asyncio.to_thread(self.db.collection(CONDITIONS_COLLECTION).count)
        except ArangoError as e:
            raise CatalogUnavailableError(f"Catalog count failed: {e}") from e

    async def insert_many(self, conditions: Iterable[MedicalCondition]) -> int:
        documents = [c.to_document() for c in conditions]
        if not documents:
            return 0
        collection = self.db.collection(CONDITIONS_COLLECTION)
        try:
            results = await asyncio.to_thread(collection.insert_many, documents)
        except ArangoError as e:
            raise CatalogUnavailableError(f"Catalog insert failed: {e}") from e

        # insert_many reports per-document failures in place of metadata
        failures = [r for r in results if isinstance(r, Exception)]
        for failure in failures:
            logger.warning("Condition insert failed", error=str(failure))
        return len(documents) - len(failures)
