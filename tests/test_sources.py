"""
Tests for the job source adapters.

These tests use mocked HTTP transports to verify parsing logic
without requiring network access.
"""

import asyncio
import json
from datetime import datetime

import httpx
import pytest

from harvester.exceptions import SourceFetchError
from harvester.sources.remoteok import RemoteOKAdapter
from harvester.sources.remotive import RemotiveAdapter


# Sample RemoteOK API response; the first element is the legal notice
SAMPLE_REMOTEOK_RESPONSE = [
    {"legal": "API Terms of Service: please link back to RemoteOK."},
    {
        "id": "1001",
        "slug": "remote-senior-go-engineer-acme-1001",
        "position": "Senior Go Engineer",
        "company": "Acme",
        "location": "Worldwide",
        "description": "Build APIs in Go.",
        "date": "2024-01-15T12:00:00+00:00",
        "tags": ["golang", "backend", "full-time"],
        "url": "https://remoteok.com/remote-jobs/1001",
    },
    {
        "id": "1002",
        "slug": "remote-react-developer-widgets-1002",
        "position": "React Developer",
        "company": "Widgets",
        "location": "",
        "description": "",
        "date": "not a date",
        "tags": ["react", "contract"],
    },
]

# Sample Remotive API response
SAMPLE_REMOTIVE_RESPONSE = {
    "job-count": 2,
    "jobs": [
        {
            "id": 2001,
            "url": "https://remotive.com/remote-jobs/software-dev/backend-engineer-2001",
            "title": "Backend Engineer",
            "company_name": "Cloudy",
            "category": "Software Development",
            "job_type": "full_time",
            "publication_date": "2024-01-14T10:00:00",
            "candidate_required_location": "USA Only",
            "salary": "$120k - $150k",
            "description": "<p>Python and Go.</p>",
        },
        {
            "id": 2002,
            "url": "https://remotive.com/remote-jobs/design/product-designer-2002",
            "title": "Product Designer",
            "company_name": "Studio",
            "category": "",
            "job_type": "freelance",
            "publication_date": "",
            "candidate_required_location": None,
            "salary": "",
            "description": None,
        },
    ],
}


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def json_handler(payload, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return handler


class TestRemoteOKAdapter:
    """Tests for the RemoteOK adapter."""

    def test_parse_response(self):
        adapter = RemoteOKAdapter(client=mock_client(json_handler(SAMPLE_REMOTEOK_RESPONSE)))

        jobs = asyncio.run(adapter.fetch_jobs())

        assert len(jobs) == 2

        job = jobs[0]
        assert job.title == "Senior Go Engineer"
        assert job.company == "Acme"
        assert job.location == "Worldwide"
        assert job.url == "https://remoteok.com/remote-jobs/1001"
        assert job.source == "RemoteOK"
        assert job.job_category == "Backend Development"
        assert job.job_type == "full-time"
        assert job.salary == "unknown"
        assert job.posted_date.year == 2024

    def test_placeholders_and_fallbacks(self):
        adapter = RemoteOKAdapter(client=mock_client(json_handler(SAMPLE_REMOTEOK_RESPONSE)))

        job = asyncio.run(adapter.fetch_jobs())[1]

        assert job.url == "https://remoteok.com/remote-jobs/remote-react-developer-widgets-1002"
        assert job.location == "Remote"
        assert job.description == "unknown"
        assert job.posted_date is None
        assert job.job_category == "Frontend Development"
        assert job.job_type == "contract"

    def test_missing_title_and_company_get_placeholder(self):
        payload = [{"id": "1003", "slug": "remote-mystery-1003", "position": "", "tags": []}]
        adapter = RemoteOKAdapter(client=mock_client(json_handler(payload)))

        job = asyncio.run(adapter.fetch_jobs())[0]

        assert job.title == "unknown"
        assert job.company == "unknown"
        assert job.to_row()["title"] == "unknown"

    def test_category_inference(self):
        assert RemoteOKAdapter.get_job_category(["golang", "devops"]) == "DevOps"
        assert RemoteOKAdapter.get_job_category(["Python"]) == "Backend Development"
        assert RemoteOKAdapter.get_job_category(["rust"]) == "Technology"
        assert RemoteOKAdapter.get_job_category([]) == "Technology"

    def test_job_type_inference(self):
        assert RemoteOKAdapter.get_job_type(["Internship"]) == "internship"
        assert RemoteOKAdapter.get_job_type(["part-time"]) == "part-time"
        assert RemoteOKAdapter.get_job_type(["golang"]) == "full-time"

    def test_http_error(self):
        adapter = RemoteOKAdapter(client=mock_client(json_handler({}, status_code=500)))

        with pytest.raises(SourceFetchError) as exc_info:
            asyncio.run(adapter.fetch_jobs())

        assert "API returned status 500" in str(exc_info.value)
        assert exc_info.value.source == "RemoteOK"

    def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>down for maintenance</html>")

        adapter = RemoteOKAdapter(client=mock_client(handler))

        with pytest.raises(SourceFetchError):
            asyncio.run(adapter.fetch_jobs())

    def test_unexpected_shape(self):
        adapter = RemoteOKAdapter(client=mock_client(json_handler({"jobs": []})))

        with pytest.raises(SourceFetchError):
            asyncio.run(adapter.fetch_jobs())

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = RemoteOKAdapter(client=mock_client(handler))

        with pytest.raises(SourceFetchError):
            asyncio.run(adapter.fetch_jobs())

    def test_declared_limits(self):
        adapter = RemoteOKAdapter()
        assert adapter.name == "RemoteOK"
        assert adapter.rate_limit_per_minute == 60
        assert adapter.supports_search


class TestRemotiveAdapter:
    """Tests for the Remotive adapter."""

    def test_parse_response(self):
        seen = []
        adapter = RemotiveAdapter(client=mock_client(json_handler(SAMPLE_REMOTIVE_RESPONSE, seen=seen)))

        jobs = asyncio.run(adapter.fetch_jobs())

        assert len(jobs) == 2
        assert "category" not in seen[0].url.params

        job = jobs[0]
        assert job.title == "Backend Engineer"
        assert job.company == "Cloudy"
        assert job.location == "USA Only"
        assert job.salary == "$120k - $150k"
        assert job.job_category == "Software Development"
        assert job.job_type == "full-time"
        assert job.posted_date == datetime(2024, 1, 14, 10, 0, 0)
        assert job.source == "Remotive"

    def test_missing_fields(self):
        adapter = RemotiveAdapter(client=mock_client(json_handler(SAMPLE_REMOTIVE_RESPONSE)))

        job = asyncio.run(adapter.fetch_jobs())[1]

        assert job.location == "Remote"
        assert job.salary == "unknown"
        assert job.description == "unknown"
        assert job.posted_date is None
        assert job.job_category == "Design"
        assert job.job_type == "freelance"

    def test_categories_fetched_separately(self):
        seen = []
        adapter = RemotiveAdapter(
            client=mock_client(json_handler(SAMPLE_REMOTIVE_RESPONSE, seen=seen)),
            categories=["Software-Dev", "devops"],
        )

        jobs = asyncio.run(adapter.fetch_jobs())

        assert [r.url.params["category"] for r in seen] == ["software-dev", "devops"]
        assert len(jobs) == 4

    def test_category_error_names_category(self):
        adapter = RemotiveAdapter(
            client=mock_client(json_handler({}, status_code=503)),
            categories=["data"],
        )

        with pytest.raises(SourceFetchError) as exc_info:
            asyncio.run(adapter.fetch_jobs())

        assert "503" in str(exc_info.value)
        assert "data" in str(exc_info.value)

    def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"not json")

        adapter = RemotiveAdapter(client=mock_client(handler))

        with pytest.raises(SourceFetchError):
            asyncio.run(adapter.fetch_jobs())

    def test_parse_date_formats(self):
        assert RemotiveAdapter.parse_date("2024-01-14") == datetime(2024, 1, 14)
        assert RemotiveAdapter.parse_date("2024-01-14T10:00:00Z") == datetime(2024, 1, 14, 10, 0, 0)
        assert RemotiveAdapter.parse_date("") is None

        before = datetime.utcnow()
        assert RemotiveAdapter.parse_date("yesterday") >= before

    def test_category_from_title(self):
        assert RemotiveAdapter.get_job_category("", "Senior React Developer") == "Frontend Development"
        assert RemotiveAdapter.get_job_category("", "Data Analyst") == "Data Science"
        assert RemotiveAdapter.get_job_category("", "Accountant") == "Technology"
        assert RemotiveAdapter.get_job_category("customer-support", "Agent") == "Customer Support"

    def test_job_type_mapping(self):
        assert RemotiveAdapter.get_job_type("part_time") == "part-time"
        assert RemotiveAdapter.get_job_type("Contract") == "contract"
        assert RemotiveAdapter.get_job_type("") == "full-time"
        assert RemotiveAdapter.get_job_type("other") == "full-time"

    def test_owned_client_closed(self):
        adapter = RemotiveAdapter()

        async def scenario():
            client = adapter.client
            await adapter.aclose()
            return client

        client = asyncio.run(scenario())
        assert client.is_closed

    def test_injected_client_left_open(self):
        client = mock_client(json_handler(SAMPLE_REMOTIVE_RESPONSE))
        adapter = RemotiveAdapter(client=client)

        asyncio.run(adapter.aclose())
        assert not client.is_closed


def test_sample_payloads_are_json():
    # Guard against typos in the fixtures above
    json.dumps(SAMPLE_REMOTEOK_RESPONSE)
    json.dumps(SAMPLE_REMOTIVE_RESPONSE)
