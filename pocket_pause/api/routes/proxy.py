"""Remote fetch backend served through Firecrawl.

Implements the crawl/extract/screenshot contract that the parser's
remote client speaks, so a single deployment can point
``remote_backend_url`` at itself.
"""

import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from pocket_pause.api.deps import get_firecrawl_client
from pocket_pause.ingest.fetchers.firecrawl import FirecrawlClient, FirecrawlError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proxy", tags=["proxy"])


class FetchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., min_length=1)
    mode: Literal["crawl", "extract", "screenshot"] = "crawl"
    extraction_schema: Optional[dict[str, Any]] = Field(default=None, alias="schema")
    prompt: Optional[str] = None
    options: Optional[dict[str, Any]] = None


@router.post("/fetch")
async def fetch(request: FetchRequest, client: FirecrawlClient = Depends(get_firecrawl_client)):
    """Fetch a page in the requested mode."""
    if not client.configured:
        raise HTTPException(status_code=503, detail="Firecrawl API key not configured")

    try:
        return await client.handle(
            request.url,
            mode=request.mode,
            schema=request.extraction_schema,
            prompt=request.prompt,
            options=request.options,
        )
    except FirecrawlError as e:
        logger.warning(f"Proxy {request.mode} failed for {request.url}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
