"""Tests for the HTTP API."""

import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from pocket_pause.api.deps import get_firecrawl_client, get_parser, get_queue
from pocket_pause.db.models import Base
from pocket_pause.ingest.cache import ParseCache
from pocket_pause.ingest.fetchers.firecrawl import FirecrawlClient
from pocket_pause.ingest.fetchers.remote import RemoteExtractClient
from pocket_pause.ingest.parser import ProductParser
from pocket_pause.ingest.rules_store import ParsingRulesStore
from pocket_pause.main import app
from pocket_pause.notify.queue import NotificationQueue


def _backend(request: httpx.Request) -> httpx.Response:
    payload = json.loads(request.content)
    if payload["mode"] == "extract":
        return httpx.Response(200, json={
            "success": True,
            "extracted": {"itemName": "Standing Desk", "price": "399.00", "currency": "USD",
                          "imageUrl": "https://cdn.test/desk.jpg"},
        })
    return httpx.Response(200, json={"success": False, "error": "unavailable"})


@pytest.fixture
def parser():
    return ProductParser(
        remote_client=RemoteExtractClient("http://backend.test", timeout=1, transport=httpx.MockTransport(_backend)),
        rules_store=ParsingRulesStore(),
        cache=ParseCache(),
    )


@pytest.fixture
def queue(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    return NotificationQueue(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))


@pytest.fixture
def client(parser, queue):
    """Test client with parser and queue overrides."""
    app.dependency_overrides[get_parser] = lambda: parser
    app.dependency_overrides[get_queue] = lambda: queue
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_parse_endpoint(client):
    response = client.post("/parse", json={"url": "https://www.walmart.com/ip/standing-desk/123"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["method"] == "remote-extract"
    assert body["data"]["item_name"] == "Standing Desk"
    assert body["data"]["store_name"] == "Walmart"


def test_parse_invalid_url_is_not_an_http_error(client):
    response = client.post("/parse", json={"url": "definitely not a url"})

    assert response.status_code == 200
    assert response.json()["method"] == "invalid-url"


def test_parse_product_metrics_and_cache(client):
    url = "https://www.walmart.com/ip/standing-desk/123"
    product = client.post("/parse/product", json={"url": url}).json()
    assert product["price"] == "399.00"

    client.post("/parse/product", json={"url": url})
    metrics = client.get("/parse/metrics").json()
    assert metrics["total_parses"] == 2
    assert metrics["cache_hits"] == 1

    assert client.delete("/parse/cache").json() == {"status": "cleared"}


def test_feedback_adjusts_rule(client):
    response = client.post("/parse/feedback", json={
        "url": "https://www.walmart.com/ip/standing-desk/123",
        "user_correction": {"price": "379.00"},
    })

    assert response.status_code == 200
    assert response.json()["rule"]["confidence"] == pytest.approx(0.7)

    rules = client.get("/parse/rules").json()
    assert {r["domain"] for r in rules} >= {"amazon.com", "walmart.com"}


def test_presets(client):
    presets = client.get("/notifications/presets").json()
    assert presets["work_focus"]["notification_batch_window"] == 120


def test_preview_with_preset(client):
    response = client.post("/notifications/preview", json={
        "item_ready_time": "2026-03-10T23:30:00",
        "now": "2026-03-10T12:00:00",
        "preset": "default",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["scheduled_for"] == "2026-03-11T08:00:00"
    assert body["ready_time_in_quiet_hours"] is True


def test_preview_unknown_preset(client):
    response = client.post("/notifications/preview", json={
        "item_ready_time": "2026-03-10T10:00:00",
        "preset": "night_owl",
    })
    assert response.status_code == 404


def test_preview_rejects_bad_settings(client):
    response = client.post("/notifications/preview", json={
        "item_ready_time": "2026-03-10T10:00:00",
        "settings": {"quiet_hours_start": "9pm"},
    })
    assert response.status_code == 422


def test_queue_and_cancel(client):
    response = client.post("/notifications/queue", json={
        "user_id": "user-1",
        "item_id": "item-7",
        "item_title": "Standing Desk",
        "store_name": "Walmart",
        "item_ready_time": "2099-01-05T15:00:00",
        "settings": {"notification_schedule_type": "custom_time", "notification_time_preference": "20:00"},
    })

    assert response.status_code == 201
    body = response.json()
    assert body["scheduled_for"] == "2099-01-05T20:00:00"
    assert body["body"] == "Standing Desk from Walmart is ready for review."
    assert body["status"] == "pending"

    cancelled = client.delete("/notifications/queue/user-1/item-7").json()
    assert cancelled == {"cancelled": 1}


def test_proxy_without_api_key(client):
    app.dependency_overrides[get_firecrawl_client] = lambda: FirecrawlClient(api_key="")
    response = client.post("/proxy/fetch", json={"url": "https://shop.test/x"})
    assert response.status_code == 503


def test_proxy_maps_firecrawl_errors(client):
    transport = httpx.MockTransport(lambda r: httpx.Response(500, json={"success": False, "error": "upstream"}))
    firecrawl = FirecrawlClient(api_key="fc-key", base_url="https://api.firecrawl.test/v1", transport=transport)
    app.dependency_overrides[get_firecrawl_client] = lambda: firecrawl

    response = client.post("/proxy/fetch", json={"url": "https://shop.test/x", "mode": "crawl"})

    assert response.status_code == 502
    assert response.json()["detail"] == "upstream"
