import logging
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from dex_metrics.main import app
from dex_metrics.pipeline.config.settings import WETH_ADDRESS
from dex_metrics.pipeline.engine import MetricsEngine
from dex_metrics.storage.db import get_db
from dex_metrics.storage.writer import upsert_block_output
from dex_metrics.utils.shortname import ShortNameFilter

TKN_POOL = "ee" * 20


@pytest.fixture
def client(db, blocks, minimum_eth_locked):
    engine = MetricsEngine(minimum_eth_locked=minimum_eth_locked)
    for output in engine.process_blocks(blocks):
        upsert_block_output(db, output)

    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root_reports_last_block(client):
    response = client.get("/api/")
    assert response.status_code == 200
    assert response.json()["last_block"] == 101


def test_factory(client):
    body = client.get("/api/factory").json()
    assert body["pool_count"] == "2"
    assert body["tx_count"] == "3"
    assert Decimal(body["total_value_locked_eth"]) == Decimal(150)
    assert Decimal(body["eth_price_usd"]) == Decimal(4096)


def test_token(client):
    response = client.get("/api/tokens/0x" + WETH_ADDRESS.upper())
    assert response.status_code == 200
    body = response.json()
    assert body["address"] == WETH_ADDRESS
    assert Decimal(body["derived_eth"]) == Decimal(1)
    assert Decimal(body["total_value_locked"]) == Decimal(201)


def test_pool(client):
    body = client.get(f"/api/pools/{TKN_POOL}").json()
    assert body["pool"]["fee_tier"] == "3000"
    assert body["pool"]["token1"]["symbol"] == "TKN"
    assert Decimal(body["total_value_locked_usd"]) == Decimal(614400)
    assert body["liquidity"] == str(10 ** 18)


@pytest.mark.parametrize("path", ["/api/tokens/" + "12" * 20, "/api/pools/" + "12" * 20])
def test_unknown_entities_are_404(client, path):
    assert client.get(path).status_code == 404


def test_short_logger_names():
    record = logging.LogRecord("dex_metrics.pipeline.handlers.totals", logging.INFO, __file__, 1, "msg", None, None)
    assert ShortNameFilter().filter(record)
    assert record.shortname == "pipeline.handlers.totals"
