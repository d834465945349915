"""Product URL parsing routes."""

from dataclasses import asdict
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from pocket_pause.api.deps import get_parser, get_rules_store
from pocket_pause.ingest.parser import ProductParser
from pocket_pause.ingest.rules_store import FeedbackData, ParsingRulesStore

router = APIRouter(prefix="/parse", tags=["parse"])


class ParseRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=4096)


class ParseResponse(BaseModel):
    success: bool
    data: dict[str, Any]
    method: str
    confidence: float
    error: Optional[str] = None
    url: Optional[str] = None
    screenshot_url: Optional[str] = None
    parse_time_ms: Optional[float] = None


class FeedbackRequest(BaseModel):
    url: str
    user_correction: dict[str, Any] = Field(default_factory=dict)
    original_parsed: dict[str, Any] = Field(default_factory=dict)


@router.post("", response_model=ParseResponse)
async def parse_url(request: ParseRequest, parser: ProductParser = Depends(get_parser)):
    """Parse a product URL through the full pipeline."""
    result = await parser.parse_smart(request.url)
    payload = asdict(result)
    payload["data"] = result.data.to_dict()
    return payload


@router.post("/product")
async def parse_product(request: ParseRequest, parser: ProductParser = Depends(get_parser)):
    """Product fields only."""
    info = await parser.parse(request.url)
    return info.to_dict()


@router.get("/metrics")
async def parse_metrics(parser: ProductParser = Depends(get_parser)):
    return parser.get_metrics()


@router.delete("/cache")
async def clear_cache(parser: ProductParser = Depends(get_parser)):
    """Drop every cached parse result."""
    parser.clear_cache()
    return {"status": "cleared"}


@router.post("/feedback")
async def submit_feedback(
    request: FeedbackRequest,
    store: ParsingRulesStore = Depends(get_rules_store),
):
    """Record a user correction; the domain's rule is adjusted."""
    rule = store.add_feedback(
        FeedbackData(
            url=request.url,
            user_correction=request.user_correction,
            original_parsed=request.original_parsed,
        )
    )
    return {"status": "recorded", "rule": rule.to_dict() if rule else None}


@router.get("/rules", response_model=List[dict[str, Any]])
async def list_rules(store: ParsingRulesStore = Depends(get_rules_store)):
    return [rule.to_dict() for rule in store.get_all_rules()]
