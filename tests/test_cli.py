"""
Tests for the ingestion CLI helpers and commands.
"""

import argparse
import asyncio
import json

import pytest

from harvester.config import Settings
from harvester.exceptions import SourceFetchError
from harvester.models.domain import JobRecord, SourceConfig
from harvester.services.ingestion.registry import SourceRegistry
from harvester.sources import JobSourceAdapter, RemoteOKAdapter, RemotiveAdapter
from scripts import ingest


class CannedSource(JobSourceAdapter):
    """Source returning fixed jobs or raising a fixed error."""

    def __init__(self, name, jobs=None, error=None):
        super().__init__()
        self._name = name
        self._jobs = jobs or []
        self._error = error
        self.closed = False

    @property
    def name(self):
        return self._name

    @property
    def base_url(self):
        return f"https://{self._name.lower()}.example.com"

    @property
    def rate_limit_per_minute(self):
        return 30

    async def fetch_jobs(self):
        if self._error is not None:
            raise self._error
        return list(self._jobs)

    async def aclose(self):
        self.closed = True


def make_job(title):
    return JobRecord(title=title, company="Acme", source="Canned")


def default_registry():
    return ingest.build_registry(Settings(_env_file=None))


class TestSelectSources:

    def test_no_name_means_all_enabled(self):
        assert ingest.select_sources(default_registry()) is None

    def test_unknown_name_raises(self):
        with pytest.raises(ValueError):
            ingest.select_sources(default_registry(), "nowhere")

    def test_name_is_case_insensitive(self):
        registry = default_registry()

        selected = ingest.select_sources(registry, "remoteok")

        assert list(selected) == ["RemoteOK"]
        assert selected["RemoteOK"] is registry.sources()["RemoteOK"]

    def test_category_builds_fresh_adapter(self):
        registry = SourceRegistry()
        registered = RemotiveAdapter(categories=["design"])
        registry.register(registered, SourceConfig(search_terms=["design"]))

        selected = ingest.select_sources(registry, "remotive", "devops", timeout=5.0)
        first = selected["Remotive"]
        again = ingest.select_sources(registry, "remotive", "data")["Remotive"]

        assert first is not registered
        assert first.categories == ["devops"]
        assert again.categories == ["data"]
        assert registered.categories == ["design"]
        assert registry.sources()["Remotive"] is registered

    def test_category_ignored_for_other_sources(self):
        registry = default_registry()

        selected = ingest.select_sources(registry, "RemoteOK", "devops")

        assert selected["RemoteOK"] is registry.sources()["RemoteOK"]

    def test_close_unregistered_only_closes_run_adapters(self):
        registry = SourceRegistry()
        registered = CannedSource("Remotive")
        registry.register(registered, SourceConfig())
        ad_hoc = CannedSource("Remotive")

        asyncio.run(ingest.close_unregistered(registry, {"Remotive": ad_hoc}))
        asyncio.run(ingest.close_unregistered(registry, None))

        assert ad_hoc.closed
        assert not registered.closed


class TestDescribeSources:

    def test_lists_configuration(self):
        registry = SourceRegistry()
        registry.register(RemoteOKAdapter(), SourceConfig(rate_limit=45, search_terms=["golang"]))
        registry.register(RemotiveAdapter(), SourceConfig(enabled=False, rate_limit=100))

        described = ingest.describe_sources(registry)

        assert [s["name"] for s in described] == ["RemoteOK", "Remotive"]
        assert described[0]["enabled"] is True
        assert described[0]["rate_limit"] == 45
        assert described[0]["search_terms"] == ["golang"]
        assert described[1]["enabled"] is False
        assert described[1]["url"] == RemotiveAdapter.BASE_URL
        assert described[1]["supports_search"] is True
        json.dumps(described)

    def test_sources_command_prints_json(self, monkeypatch, capsys):
        monkeypatch.setattr(ingest, "get_settings", lambda: Settings(_env_file=None))

        code = asyncio.run(ingest.cmd_sources(argparse.Namespace(output="json")))

        assert code == 0
        names = [s["name"] for s in json.loads(capsys.readouterr().out)]
        assert names == ["RemoteOK", "Remotive"]


class TestFetchSourceOnce:

    def test_success(self):
        source = CannedSource("Canned", jobs=[make_job("Go Engineer"), make_job("SRE")])

        result = asyncio.run(ingest.fetch_source_once(source))

        assert result.success
        assert result.source == "Canned"
        assert len(result.jobs) == 2
        assert result.duration >= 0

    def test_error_is_captured(self):
        source = CannedSource("Broken", error=SourceFetchError("Broken", "HTTP 503"))

        result = asyncio.run(ingest.fetch_source_once(source))

        assert not result.success
        assert isinstance(result.error, SourceFetchError)
        assert "✗ Broken" in str(result)


class TestTestCommand:

    def install(self, monkeypatch, sources):
        monkeypatch.setattr(ingest, "get_settings", lambda: Settings(_env_file=None))
        monkeypatch.setattr(
            ingest, "create_sources", lambda settings: [(s, SourceConfig()) for s in sources]
        )

    def test_reports_each_source(self, monkeypatch, capsys):
        good = CannedSource("Good", jobs=[make_job("Go Engineer")])
        bad = CannedSource("Bad", error=SourceFetchError("Bad", "timeout"))
        self.install(monkeypatch, [good, bad])

        code = asyncio.run(ingest.cmd_test(
            argparse.Namespace(source=None, category=None, output="json")
        ))

        assert code == 1
        results = {r["source"]: r for r in json.loads(capsys.readouterr().out)}
        assert results["Good"]["passed"] is True
        assert results["Good"]["jobs"] == 1
        assert results["Bad"]["passed"] is False
        assert "timeout" in results["Bad"]["error"]
        assert good.closed and bad.closed

    def test_single_source_succeeds(self, monkeypatch, capsys):
        good = CannedSource("Good", jobs=[make_job("Go Engineer")])
        bad = CannedSource("Bad", error=SourceFetchError("Bad", "timeout"))
        self.install(monkeypatch, [good, bad])

        code = asyncio.run(ingest.cmd_test(
            argparse.Namespace(source="good", category=None, output="console")
        ))

        out = capsys.readouterr().out
        assert code == 0
        assert "✓ Good: jobs=1" in out
        assert "Bad" not in out

    def test_unknown_source(self, monkeypatch, capsys):
        self.install(monkeypatch, [CannedSource("Good")])

        code = asyncio.run(ingest.cmd_test(
            argparse.Namespace(source="nowhere", category=None, output="console")
        ))

        assert code == 1
        assert "Unknown source" in capsys.readouterr().out
