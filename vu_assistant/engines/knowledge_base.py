"""
Knowledge Base Engine - Victoria University Q&A catalog and keyword scorer

The catalog is loaded once at startup and never mutated afterwards.
Scoring is a pure function of (query, catalog):

  +15  question contains the full query
  +10  answer contains the full query
   +8  query contains the record category
   +6  per keyword contained in the query
   +4  per tag contained in the query
  per query word (len > 2):
   +2  question contains the word
   +1  answer contains the word
   +2  any keyword contains the word (once per word)
  +10  contact/location query against a contact or campus record
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from vu_assistant.utils.logging_utils import get_logger

logger = get_logger()

QUESTION_MATCH_POINTS = 15
ANSWER_MATCH_POINTS = 10
CATEGORY_MATCH_POINTS = 8
KEYWORD_MATCH_POINTS = 6
TAG_MATCH_POINTS = 4
WORD_IN_QUESTION_POINTS = 2
WORD_IN_ANSWER_POINTS = 1
WORD_IN_KEYWORDS_POINTS = 2
CONTACT_BOOST_POINTS = 10

MIN_WORD_LENGTH = 3
DEFAULT_MATCH_LIMIT = 5

CONTACT_QUERY_TERMS = ("contact", "phone", "address", "location")
CONTACT_CATEGORIES = ("contact", "campus-locations")

QUICK_FACTS = [
    "VU is ranked in the top 2% of universities worldwide (THE 2025)",
    "Main phone: +61 3 9919 6100",
    "Emergency/Security: +61 3 9919 6666 (24/7)",
    "VU Sydney: Ground Floor, 160-166 Sussex Street, Sydney NSW 2000",
    "Sydney phone: +61 2 8265 3222",
    "International application fee: AUD $75",
    "VU Block Model®: Study one subject at a time in 4-week blocks",
    "Students from 100+ countries worldwide",
    "64% acceptance rate (moderately competitive)",
    "Multiple intakes: February, July, November + monthly starts",
    "Automatic scholarship assessment for international students",
    "4,000+ industry partnerships for work placements",
    "#1 in Victoria for Teaching Quality (QILT 2023)",
    "240,000+ alumni including 30,000 working overseas",
]


@dataclass(frozen=True)
class KnowledgeRecord:
    id: str
    category: str
    question: str
    answer: str
    keywords: Tuple[str, ...] = field(default_factory=tuple)
    tags: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeRecord":
        return cls(
            id=str(data["id"]),
            category=str(data["category"]),
            question=str(data["question"]),
            answer=str(data["answer"]),
            keywords=tuple(str(k) for k in data.get("keywords") or []),
            tags=tuple(str(t) for t in data.get("tags") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "question": self.question,
            "answer": self.answer,
            "keywords": list(self.keywords),
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class ScoredMatch:
    record: KnowledgeRecord
    score: int


class KnowledgeCatalog:
    """Ordered, read-only collection of knowledge records."""

    def __init__(self, records: Iterable[KnowledgeRecord]):
        self._records: Tuple[KnowledgeRecord, ...] = tuple(records)
        self._by_id: Dict[str, KnowledgeRecord] = {}
        for record in self._records:
            if record.id in self._by_id:
                raise ValueError(f"Duplicate knowledge record id: {record.id}")
            self._by_id[record.id] = record

    def __iter__(self):
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> Tuple[KnowledgeRecord, ...]:
        return self._records

    def get(self, record_id: str) -> Optional[KnowledgeRecord]:
        return self._by_id.get(record_id)

    def by_category(self, category: str) -> List[KnowledgeRecord]:
        return [record for record in self._records if record.category == category]

    def categories(self) -> List[Tuple[str, int]]:
        counts: Dict[str, int] = {}
        for record in self._records:
            counts[record.category] = counts.get(record.category, 0) + 1
        return list(counts.items())

    def related(self, record_id: str, limit: int = 3) -> List[ScoredMatch]:
        """Rank other records by shared category, keywords and tags."""
        current = self.get(record_id)
        if current is None:
            return []

        current_keywords = {k.lower() for k in current.keywords}
        current_tags = {t.lower() for t in current.tags}

        scored: List[ScoredMatch] = []
        for record in self._records:
            if record.id == record_id:
                continue
            score = 0
            if record.category == current.category:
                score += 10
            score += 3 * sum(1 for k in record.keywords if k.lower() in current_keywords)
            score += 2 * sum(1 for t in record.tags if t.lower() in current_tags)
            if score > 0:
                scored.append(ScoredMatch(record=record, score=score))

        scored.sort(key=lambda match: match.score, reverse=True)
        return scored[:limit]


def load_catalog(path: str) -> KnowledgeCatalog:
    """
    Load a catalog from a JSON document of the form {"entries": [...]}.

    Each entry needs id, category, question and answer; keywords and tags
    are optional.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    entries = data.get("entries", []) if isinstance(data, dict) else []
    if not isinstance(entries, list):
        raise ValueError(f"'entries' is not a list in {path}")

    catalog = KnowledgeCatalog(KnowledgeRecord.from_dict(entry) for entry in entries)
    logger.info(f"[KnowledgeBase] Loaded {len(catalog)} knowledge records from {path}")
    return catalog


class KnowledgeScorer:
    """Keyword scorer over an injected catalog. Safe to share across requests."""

    def __init__(self, catalog: KnowledgeCatalog, limit: int = DEFAULT_MATCH_LIMIT):
        self.catalog = catalog
        self.limit = limit

    @staticmethod
    def _query_words(lowered_query: str) -> List[str]:
        return [word for word in lowered_query.split() if len(word) >= MIN_WORD_LENGTH]

    def _score(self, lowered_query: str, words: List[str], record: KnowledgeRecord) -> int:
        question = record.question.lower()
        answer = record.answer.lower()
        category = record.category.lower()
        keywords = [k.lower() for k in record.keywords]
        tags = [t.lower() for t in record.tags]

        score = 0
        if lowered_query in question:
            score += QUESTION_MATCH_POINTS
        if lowered_query in answer:
            score += ANSWER_MATCH_POINTS
        if category in lowered_query:
            score += CATEGORY_MATCH_POINTS

        score += KEYWORD_MATCH_POINTS * sum(1 for k in keywords if k in lowered_query)
        score += TAG_MATCH_POINTS * sum(1 for t in tags if t in lowered_query)

        for word in words:
            if word in question:
                score += WORD_IN_QUESTION_POINTS
            if word in answer:
                score += WORD_IN_ANSWER_POINTS
            if any(word in k for k in keywords):
                score += WORD_IN_KEYWORDS_POINTS

        if record.category in CONTACT_CATEGORIES and any(
            term in lowered_query for term in CONTACT_QUERY_TERMS
        ):
            score += CONTACT_BOOST_POINTS

        return score

    def score(self, query: str, record: KnowledgeRecord) -> int:
        """Score a single record; empty or blank queries score 0."""
        if not query or not query.strip():
            return 0
        lowered = query.lower()
        return self._score(lowered, self._query_words(lowered), record)

    def rank(self, query: str) -> List[ScoredMatch]:
        if not query or not query.strip():
            return []

        lowered = query.lower()
        words = self._query_words(lowered)
        matches = []
        for record in self.catalog:
            score = self._score(lowered, words, record)
            if score > 0:
                matches.append(ScoredMatch(record=record, score=score))

        # sort() is stable: equal scores keep catalog order
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches[: self.limit]

    def search(self, query: str) -> List[KnowledgeRecord]:
        return [match.record for match in self.rank(query)]
