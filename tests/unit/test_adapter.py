"""
Unit tests for the config-driven source adapter
"""

import json
from datetime import date

import httpx
import pytest

from core.config import settings
from core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    RecordTransformError,
    ResourceNotFoundError,
    ResponseFormatError,
    TransientFetchError,
    UpstreamRejectedError,
)
from ingestion.sources.adapter import GenericSourceAdapter, build_adapter
from ingestion.sources.catalog import (
    EU_FUNDING_PORTAL, GRANTS_GOV, NIH_REPORTER, NY_STATE, SAM_GOV,
    SOURCE_CATALOG, get_source_config, list_source_names,
)
from models.base import CategoryType, GrantStatus, KeywordSource, LocationType
from schemas.normalized import PageParams


def make_adapter(config, handler, **kwargs) -> GenericSourceAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GenericSourceAdapter(config, client=client, max_retries=3, retry_delay=0, **kwargs)


@pytest.fixture
def grants_gov_record():
    return {
        "id": "355001",
        "number": "HHS-2025-ACF-001",
        "title": "Community Services Block Grant",
        "agency": "Administration for Children and Families",
        "agencyCode": "HHS-ACF",
        "openDate": "03/15/2024",
        "closeDate": "05/30/2099",
        "oppStatus": "posted",
        "docType": "synopsis",
        "cfdaList": ["93.569"],
        "fundingCategories": ["Community Development"],
        "eligibilities": [{"description": "Nonprofits"}, {"description": "State governments"}],
        "officeContactEmail": "grants@acf.hhs.gov",
    }


class TestCatalog:
    def test_every_source_builds_an_adapter(self):
        for name in SOURCE_CATALOG:
            adapter = build_adapter(name)
            assert adapter.source_id == name
            assert adapter.page_size >= 1

    def test_unknown_source(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_source_config("no_such_registry")
        assert "grants_gov" in exc_info.value.context["known_sources"]

    def test_names_ordered_by_priority(self):
        names = list_source_names()
        priorities = [SOURCE_CATALOG[name].priority for name in names]

        assert priorities == sorted(priorities, reverse=True)
        assert names[0] == "grants_gov"


class TestBuildRequest:
    """Test request rendering per pagination idiom"""

    def test_post_offset_request(self):
        adapter = GenericSourceAdapter(GRANTS_GOV)
        url, query, body, headers = adapter.build_request(PageParams(offset=200, page_size=100))

        assert url == GRANTS_GOV.endpoint
        assert query == {}
        assert body["startRecordNum"] == 200
        assert body["rows"] == 100
        assert body["oppStatuses"] == "forecasted|posted"
        assert headers["Content-Type"] == "application/json"

    def test_get_page_request_with_query_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "EU_FUNDING_API_KEY", None)
        adapter = GenericSourceAdapter(EU_FUNDING_PORTAL)

        url, query, body, headers = adapter.build_request(PageParams(page=3))

        assert body is None
        assert query["pageNumber"] == 3
        assert query["pageSize"] == 50
        assert query["apiKey"] == "SEDIA"

    def test_partition_rendered_into_nested_body(self):
        adapter = GenericSourceAdapter(NIH_REPORTER)
        _, _, body, _ = adapter.build_request(PageParams(offset=0, partition="2025"))

        assert body["criteria"]["fiscal_years"] == [2025]
        assert body["criteria"]["exclude_subprojects"] is True
        assert body["limit"] == 500

    def test_year_partitions_start_with_current_year(self):
        adapter = GenericSourceAdapter(NIH_REPORTER)
        year = date.today().year

        assert adapter.partitions({}) == [str(year), str(year - 1)]

    def test_partition_in_endpoint(self):
        adapter = GenericSourceAdapter(NY_STATE)
        url, query, _, _ = adapter.build_request(PageParams(offset=500, partition="j5ab-5nj2"))

        assert url == "https://data.ny.gov/resource/j5ab-5nj2.json"
        assert query["$offset"] == 500

        with pytest.raises(ConfigurationError):
            adapter.build_request(PageParams())

    def test_missing_credential(self, monkeypatch):
        monkeypatch.setattr(settings, "SAM_GOV_API_KEY", None)
        adapter = GenericSourceAdapter(SAM_GOV)

        with pytest.raises(ConfigurationError):
            adapter.build_request(PageParams())

    def test_date_window_and_filters(self, monkeypatch):
        monkeypatch.setattr(settings, "SAM_GOV_API_KEY", "secret")
        adapter = GenericSourceAdapter(SAM_GOV)

        _, query, _, _ = adapter.build_request(PageParams(filters={"ptype": "o"}))

        assert query["api_key"] == "secret"
        assert query["postedTo"] == date.today().strftime("%m/%d/%Y")
        assert "postedFrom" in query
        assert query["ptype"] == "o"


class TestFetch:
    """Test HTTP failure classification and retry"""

    @pytest.mark.asyncio
    async def test_returns_record_list(self, grants_gov_record):
        def handler(request):
            assert json.loads(request.content)["startRecordNum"] == 0
            return httpx.Response(200, json={"data": {"oppHits": [grants_gov_record]}})

        adapter = make_adapter(GRANTS_GOV, handler)
        records = await adapter.fetch(PageParams())

        assert records == [grants_gov_record]

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, grants_gov_record):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"data": {"oppHits": [grants_gov_record]}})

        adapter = make_adapter(GRANTS_GOV, handler)
        records = await adapter.fetch(PageParams())

        assert len(calls) == 3
        assert len(records) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="boom")

        adapter = make_adapter(GRANTS_GOV, handler)

        with pytest.raises(TransientFetchError) as exc_info:
            await adapter.fetch(PageParams())

        assert len(calls) == 3
        assert exc_info.value.context["status_code"] == 500

    @pytest.mark.asyncio
    async def test_throttling_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "0"})
            return httpx.Response(200, json={"data": {"oppHits": []}})

        adapter = make_adapter(GRANTS_GOV, handler)

        assert await adapter.fetch(PageParams()) == []
        assert len(calls) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, ResourceNotFoundError),
        (400, UpstreamRejectedError),
    ])
    async def test_client_errors_are_not_retried(self, status, error):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(status, text="no")

        adapter = make_adapter(GRANTS_GOV, handler)

        with pytest.raises(error):
            await adapter.fetch(PageParams())
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_network_errors_become_transient(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        adapter = make_adapter(GRANTS_GOV, handler)

        with pytest.raises(TransientFetchError):
            await adapter.fetch(PageParams())

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        adapter = make_adapter(GRANTS_GOV, lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(ResponseFormatError):
            await adapter.fetch(PageParams())

    @pytest.mark.asyncio
    async def test_unexpected_record_container(self):
        adapter = make_adapter(GRANTS_GOV, lambda request: httpx.Response(200, json={"data": {"oppHits": "x"}}))

        with pytest.raises(ResponseFormatError):
            await adapter.fetch(PageParams())

    @pytest.mark.asyncio
    async def test_partition_annotated_on_records(self):
        adapter = make_adapter(
            NY_STATE,
            lambda request: httpx.Response(200, json=[{"recipient_name": "Town of Colonie"}])
        )

        records = await adapter.fetch(PageParams(partition="j5ab-5nj2"))

        assert records[0]["_partition"] == "j5ab-5nj2"


class TestTransform:
    """Test raw record -> normalized bundle"""

    def test_grants_gov_record(self, grants_gov_record):
        bundle = GenericSourceAdapter(GRANTS_GOV).transform(grants_gov_record)
        grant = bundle.grant

        assert bundle.natural_key == ("grants_gov", "355001")
        assert grant.title == "Community Services Block Grant"
        assert grant.status == GrantStatus.OPEN.value
        assert grant.funding_organization_code == "HHS-ACF"
        assert grant.posted_date == date(2024, 3, 15)
        assert grant.application_deadline == date(2099, 5, 30)
        assert grant.activity_code == "93.569"
        assert grant.currency == "USD"
        assert grant.source_url == "https://www.grants.gov/search-results-detail/355001"
        assert grant.raw_data == grants_gov_record

        categories = {(c.category_type, c.category_name, c.category_code) for c in bundle.categories}
        assert (CategoryType.THEME.value, "Community Development", None) in categories
        assert (CategoryType.CFDA.value, "CFDA 93.569", "93.569") in categories

        assert [e.eligibility_value for e in bundle.eligibility] == ["Nonprofits", "State governments"]
        assert bundle.contacts[0].email == "grants@acf.hhs.gov"
        assert all(k.keyword_source == KeywordSource.EXTRACTED.value for k in bundle.keywords)

    def test_eu_record_status_map_constants_and_budget(self):
        record = {
            "metadata": {
                "identifier": ["HORIZON-CL5-2025-01"],
                "title": ["Clean energy transition"],
                "status": ["31094502"],
                "deadlineDate": ["2025-09-17T17:00:00.000+02:00"],
                "budgetOverview": [json.dumps({
                    "budgetTopicActionMap": {"t": [{"budgetYearMap": {"2025": 4000000, "2026": 1000000}}]}
                })],
                "keywords": ["energy", "climate"],
            }
        }

        grant = GenericSourceAdapter(EU_FUNDING_PORTAL).transform(record).grant

        assert grant.source_native_id == "HORIZON-CL5-2025-01"
        assert grant.status == GrantStatus.OPEN.value
        assert grant.currency == "EUR"
        assert grant.funding_organization_name == "European Commission"
        assert grant.total_funding_available == pytest.approx(5_000_000)
        assert grant.funding_amount_max == pytest.approx(5_000_000)
        assert grant.application_deadline == date(2025, 9, 17)

    def test_templates_and_locations(self):
        record = {
            "_partition": "j5ab-5nj2",
            "recipient_name": "Town of Colonie",
            "fiscal_year_end_date": "2023-03-31",
            "authority_name": "Dormitory Authority",
            "grant_amount": "1,500.00",
            "recipient_city": "Albany",
        }

        bundle = GenericSourceAdapter(NY_STATE).transform(record)

        assert bundle.grant.source_native_id == "j5ab-5nj2_Town of Colonie_2023-03-31"
        assert bundle.grant.title == "Dormitory Authority Grant to Town of Colonie"
        assert bundle.grant.status == GrantStatus.AWARDED.value
        assert bundle.grant.funding_amount_min == pytest.approx(1500.0)
        assert bundle.grant.funding_amount_max == pytest.approx(1500.0)

        location = bundle.locations[0]
        assert location.location_type == LocationType.TARGET.value
        assert (location.country_code, location.region, location.city) == ("US", "NY", "Albany")

        api_keywords = [k.keyword for k in bundle.keywords if k.keyword_source == KeywordSource.API_PROVIDED.value]
        assert api_keywords == ["New York State"]

    def test_non_grant_records_are_skipped(self):
        assert GenericSourceAdapter(NY_STATE).transform({"_partition": "x", "fiscal_year": "2023"}) is None

        notice = {"noticeId": "abc", "type": "o", "title": "Grant support services"}
        assert GenericSourceAdapter(SAM_GOV).transform(notice) is None

    def test_missing_native_id(self, grants_gov_record):
        del grants_gov_record["id"]
        del grants_gov_record["number"]

        with pytest.raises(RecordTransformError):
            GenericSourceAdapter(GRANTS_GOV).transform(grants_gov_record)

    def test_validation_errors_are_reported_per_field(self, grants_gov_record):
        grants_gov_record["title"] = "   "

        with pytest.raises(RecordTransformError) as exc_info:
            GenericSourceAdapter(GRANTS_GOV).transform(grants_gov_record)

        assert exc_info.value.context["source_native_id"] == "355001"
        assert any(error.startswith("title") for error in exc_info.value.context["field_errors"])

    def test_non_dict_record(self):
        with pytest.raises(RecordTransformError):
            GenericSourceAdapter(GRANTS_GOV).transform(["not", "a", "record"])
