"""
tests/test_sources/test_datagov.py — Unit tests for DataGovSource.

HTTP is mocked with respx; the fixture JSON mirrors the data.gov.in
resource API response shape.
"""

from __future__ import annotations

import httpx
import pytest
import respx

from nrega_shared.errors import UpstreamRateLimited, UpstreamUnavailable
from nrega_pipeline.sources.datagov import DataGovSource, RecordFilters


@pytest.fixture
def source(test_settings) -> DataGovSource:
    return DataGovSource(settings=test_settings)


# ---------------------------------------------------------------------------
# fetch_records()
# ---------------------------------------------------------------------------

class TestFetchRecords:
    @pytest.mark.asyncio
    async def test_returns_raw_records(self, source, api_url, datagov_payload):
        with respx.mock() as router:
            router.get(api_url).mock(return_value=httpx.Response(200, json=datagov_payload))
            records = await source.fetch_records(limit=1000)

        assert len(records) == 6
        assert records[0]["district_name"] == "AGRA"

    @pytest.mark.asyncio
    async def test_sends_key_format_paging_and_filters(self, source, api_url, datagov_payload):
        with respx.mock() as router:
            route = router.get(api_url).mock(return_value=httpx.Response(200, json=datagov_payload))
            await source.fetch_records(
                RecordFilters(state_name="Uttar Pradesh", district_name="Agra", financial_year="2024-2025"),
                limit=100,
                offset=200,
            )

        params = route.calls[0].request.url.params
        assert params["api-key"] == "test-key"
        assert params["format"] == "json"
        assert params["limit"] == "100"
        assert params["offset"] == "200"
        assert params["filters[state_name]"] == "Uttar Pradesh"
        assert params["filters[district_name]"] == "Agra"
        assert params["filters[fin_year]"] == "2024-2025"

    @pytest.mark.asyncio
    async def test_omits_unset_filters(self, source, api_url, datagov_payload):
        with respx.mock() as router:
            route = router.get(api_url).mock(return_value=httpx.Response(200, json=datagov_payload))
            await source.fetch_records(RecordFilters(state_name="Bihar"))

        params = route.calls[0].request.url.params
        assert "filters[district_name]" not in params
        assert "filters[fin_year]" not in params
        assert params["limit"] == str(source._settings.upstream_page_limit)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"records": []}, {"total": 0}, {"records": None}, []])
    async def test_empty_or_absent_records(self, source, api_url, payload):
        with respx.mock() as router:
            router.get(api_url).mock(return_value=httpx.Response(200, json=payload))
            assert await source.fetch_records() == []

    @pytest.mark.asyncio
    async def test_404_is_not_found_not_error(self, source, api_url):
        with respx.mock() as router:
            router.get(api_url).mock(return_value=httpx.Response(404))
            assert await source.fetch_records() == []

    @pytest.mark.asyncio
    async def test_429_raises_rate_limited(self, source, api_url):
        with respx.mock() as router:
            router.get(api_url).mock(return_value=httpx.Response(429))
            with pytest.raises(UpstreamRateLimited) as exc_info:
                await source.fetch_records()
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 403, 500, 502, 503])
    async def test_other_errors_raise_unavailable_without_retry(self, source, api_url, status):
        with respx.mock() as router:
            route = router.get(api_url).mock(return_value=httpx.Response(status))
            with pytest.raises(UpstreamUnavailable) as exc_info:
                await source.fetch_records()

        assert exc_info.value.status_code == status
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_raises_unavailable(self, source, api_url):
        with respx.mock() as router:
            router.get(api_url).mock(side_effect=httpx.ReadTimeout("slow"))
            with pytest.raises(UpstreamUnavailable):
                await source.fetch_records()

    @pytest.mark.asyncio
    async def test_connection_error_raises_unavailable(self, source, api_url):
        with respx.mock() as router:
            router.get(api_url).mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(UpstreamUnavailable):
                await source.fetch_records()

    @pytest.mark.asyncio
    async def test_invalid_json_raises_unavailable(self, source, api_url):
        with respx.mock() as router:
            router.get(api_url).mock(return_value=httpx.Response(200, text="<html>maintenance</html>"))
            with pytest.raises(UpstreamUnavailable):
                await source.fetch_records()

    @pytest.mark.asyncio
    async def test_uses_injected_client(self, test_settings, datagov_payload, api_url):
        with respx.mock() as router:
            router.get(api_url).mock(return_value=httpx.Response(200, json=datagov_payload))
            async with httpx.AsyncClient() as client:
                source = DataGovSource(settings=test_settings, client=client)
                records = await source.fetch_records()
        assert len(records) == 6


def test_base_url_trailing_slash_stripped(test_settings, api_url):
    source = DataGovSource(settings=test_settings.model_copy(update={"data_gov_api_url": api_url + "/"}))
    assert source.base_url == api_url
