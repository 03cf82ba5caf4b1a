# File: api/routers/llm.py
from fastapi import APIRouter, HTTPException
import logging

from api.models.paper_models import ExplainRequest, PaperTextRequest, ReviewRequest
from services.llm_service import LLMGenerationError, LLMJSONParseError
from services.paper_llm_service import explain_paper, extract_paper_fields, review_paper, summarize_paper

router = APIRouter()
logger = logging.getLogger(__name__)


def _llm_failure(e: Exception, action: str) -> HTTPException:
    if isinstance(e, (LLMGenerationError, LLMJSONParseError)):
        logger.warning(f"{action} failed: {e}")
        return HTTPException(status_code=502, detail=f"{action} failed")
    logger.error(f"Error in {action.lower()} endpoint", exc_info=True)
    return HTTPException(status_code=500, detail="Internal server error")


@router.post("/summarize")
def summarize(payload: PaperTextRequest):
    try:
        return {"summary": summarize_paper(payload.title, payload.abstract)}
    except Exception as e:
        raise _llm_failure(e, "Summary")


@router.post("/explain")
def explain(payload: ExplainRequest):
    try:
        text = explain_paper(payload.title, payload.abstract, payload.level, payload.readme)
        return {"level": payload.level, "explanation": text}
    except Exception as e:
        raise _llm_failure(e, "Explanation")


@router.post("/extract")
def extract(payload: PaperTextRequest):
    try:
        return extract_paper_fields(payload.title, payload.abstract).model_dump()
    except Exception as e:
        raise _llm_failure(e, "Extraction")


@router.post("/review")
def review(payload: ReviewRequest):
    try:
        return review_paper(payload.title, payload.abstract, payload.readme).model_dump()
    except Exception as e:
        raise _llm_failure(e, "Review")
