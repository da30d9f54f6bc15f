"""Public, read-only access to the VU knowledge base."""
from fastapi import APIRouter, Depends

from vu_assistant.api.dependencies import get_responder
from vu_assistant.engines.chat_engine import ChatResponder
from vu_assistant.utils.logging_utils import get_logger
from vu_assistant.utils.response_utils import (
    error_response,
    not_found_response,
    success_response,
    validation_error_response,
)

logger = get_logger()
router = APIRouter()


def _match_payload(match) -> dict:
    payload = match.record.to_dict()
    payload["score"] = match.score
    return payload


@router.get("/search")
async def search_knowledge(q: str = "", responder: ChatResponder = Depends(get_responder)):
    query = q.strip()
    if not query:
        return validation_error_response("Search query is required")

    try:
        matches = responder.scorer.rank(query)
        return success_response(
            f"Found {len(matches)} matching entries",
            {"query": query, "results": [_match_payload(m) for m in matches]},
        )
    except Exception:
        logger.exception("Knowledge search error")
        return error_response("Failed to search knowledge base", 500)


@router.get("/categories")
async def list_categories(responder: ChatResponder = Depends(get_responder)):
    categories = [
        {"category": name, "count": count}
        for name, count in responder.scorer.catalog.categories()
    ]
    return success_response("Categories retrieved successfully", {"categories": categories})


@router.get("/{record_id}/related")
async def related_entries(record_id: str, responder: ChatResponder = Depends(get_responder)):
    catalog = responder.scorer.catalog
    record = catalog.get(record_id)
    if record is None:
        return not_found_response("Knowledge entry not found")

    related = catalog.related(record_id)
    return success_response(
        "Related entries retrieved successfully",
        {"entry": record.to_dict(), "related": [_match_payload(m) for m in related]},
    )
