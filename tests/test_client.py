import asyncio

import httpx
import yaml

from chartfeed.cache import QueryCache
from chartfeed.client import MarketDataClient
from chartfeed.config import CacheConfig, ClientSettings, HttpConfig, api_base, load_config
from chartfeed.dispatcher import RequestDispatcher


def _client(handler, ttl=30.0):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    dispatcher = RequestDispatcher("http://test/api", client=http)
    return MarketDataClient(QueryCache(dispatcher, ttl=ttl), dispatcher=dispatcher)


def test_chart_data_uses_default_panes():
    urls = []

    def handler(request):
        urls.append(request.url)
        return httpx.Response(200, json={"data": []})

    async def _main():
        async with _client(handler) as client:
            await client.get_chart_data("BTC", "1h")
            await client.get_chart_data("BTC", "1h", pane2="Funding")

    asyncio.run(_main())
    assert urls[0].path == "/api/chart-data"
    assert dict(urls[0].params) == {
        "symbol": "BTC",
        "timeframe": "1h",
        "pane1": "CurrentPrice",
        "pane2": "AllExchangesVolume",
    }
    assert urls[1].params["pane2"] == "Funding"


def test_endpoints_are_deduplicated_through_cache():
    hits = {}

    def handler(request):
        hits[request.url.path] = hits.get(request.url.path, 0) + 1
        payloads = {
            "/api/symbols": ["BTC", "ETH"],
            "/api/features": {"panes": ["CurrentPrice"]},
            "/api/health": {"status": "ok"},
        }
        return httpx.Response(200, json=payloads[request.url.path])

    async def _main():
        client = _client(handler)
        symbols = await asyncio.gather(client.get_symbols(), client.get_symbols())
        features = await client.get_features()
        health = await client.get_health()
        await client.get_health()
        client.invalidate("/health")
        await client.get_health()
        return symbols, features, health

    symbols, features, health = asyncio.run(_main())
    assert symbols == [["BTC", "ETH"], ["BTC", "ETH"]]
    assert features == {"panes": ["CurrentPrice"]}
    assert health == {"status": "ok"}
    assert hits == {"/api/symbols": 1, "/api/features": 1, "/api/health": 2}


def test_api_base_strips_trailing_slash():
    settings = ClientSettings(http=HttpConfig(base_url="http://example.test/api/"))
    assert api_base(settings) == "http://example.test/api"


def test_load_config_overlays_yaml(tmp_path):
    cfg = tmp_path / "chartfeed.yaml"
    cfg.write_text(yaml.safe_dump({"cache": {"ttl_seconds": 5}, "chart": {"default_pane1": "Candles"}}))
    settings = load_config(str(cfg))
    assert settings.cache.ttl_seconds == 5
    assert settings.chart.default_pane1 == "Candles"
    assert settings.chart.default_pane2 == "AllExchangesVolume"
    assert load_config(str(tmp_path / "missing.yaml")).cache.ttl_seconds == 30.0


def test_sweeper_reclaims_expired_entries():
    settings = ClientSettings(cache=CacheConfig(ttl_seconds=0.01, sweep_interval_seconds=0.01))
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])))
    dispatcher = RequestDispatcher("http://test/api", client=http)
    client = MarketDataClient(QueryCache(dispatcher, ttl=0.01), settings=settings, dispatcher=dispatcher)

    async def _main():
        async with client:
            await client.get_symbols()
            assert len(client.cache) == 1
            await asyncio.sleep(0.08)
            return len(client.cache)

    assert asyncio.run(_main()) == 0


def test_close_waits_for_sweeper_to_stop():
    settings = ClientSettings(cache=CacheConfig(sweep_interval_seconds=10))
    client = MarketDataClient(QueryCache(RequestDispatcher("http://test/api"), ttl=1), settings=settings)

    async def _main():
        async with client:
            sweeper = client._sweeper
            assert sweeper is not None and not sweeper.done()
        return sweeper

    sweeper = asyncio.run(_main())
    assert sweeper.cancelled()
    assert client._sweeper is None
