"""FastAPI dependencies."""

from fastapi import Depends, Request

from pocket_pause.ingest.fetchers.firecrawl import FirecrawlClient
from pocket_pause.ingest.parser import ProductParser, get_default_parser
from pocket_pause.ingest.rules_store import ParsingRulesStore
from pocket_pause.notify.queue import NotificationQueue


def get_parser(request: Request) -> ProductParser:
    """Parser built at startup, or the process default."""
    parser = getattr(request.app.state, "parser", None)
    return parser if parser is not None else get_default_parser()


def get_rules_store(parser: ProductParser = Depends(get_parser)) -> ParsingRulesStore:
    return parser.rules_store


def get_firecrawl_client(request: Request) -> FirecrawlClient:
    client = getattr(request.app.state, "firecrawl", None)
    if client is None:
        client = FirecrawlClient()
        request.app.state.firecrawl = client
    return client


def get_queue(request: Request) -> NotificationQueue:
    queue = getattr(request.app.state, "queue", None)
    if queue is None:
        from pocket_pause.db.session import AsyncSessionLocal

        queue = NotificationQueue(AsyncSessionLocal)
        request.app.state.queue = queue
    return queue
