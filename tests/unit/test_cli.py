"""
Command line interface tests.
"""

import pytest
import json
import logging
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from feedenricher.cli import cli
from feedenricher.models import EnrichedRecord
from feedenricher.processing.pipeline import ItemOutcome, PipelineResult
from feedenricher.utils.exceptions import FeedFetchError


@pytest.fixture
def runner():
    yield CliRunner()
    # The group callback attaches handlers bound to the runner's streams
    logging.getLogger("feedenricher").handlers.clear()


def make_result():
    return PipelineResult(
        feed_url="https://example.com/feed.xml",
        feed_title="Example",
        records=[
            EnrichedRecord(id="abc", feed_url="https://example.com/feed.xml", item_body="<b>hi</b>"),
        ],
        outcomes=[ItemOutcome.NO_LINK],
        processing_time_seconds=0.1,
    )


class TestCLI:

    def test_sanitize_from_stdin(self, runner):
        result = runner.invoke(cli, ["sanitize"], input="<b>hi</b><script>alert(1)</script>")

        assert result.exit_code == 0
        assert result.output.strip() == "<b>hi</b>"

    def test_check_config(self, runner):
        result = runner.invoke(cli, ["check-config"])

        assert result.exit_code == 0

    def test_parse_json_output(self, runner):
        with patch(
            "feedenricher.cli.EnrichmentPipeline.run_detailed",
            new_callable=AsyncMock,
            return_value=make_result(),
        ) as mock_run:
            result = runner.invoke(cli, ["parse", "https://example.com/feed.xml", "--json", "--concurrency", "2"])

        assert result.exit_code == 0
        mock_run.assert_awaited_once_with("https://example.com/feed.xml")

        payload = json.loads(result.output[result.output.index("["):])
        assert payload[0]["id"] == "abc"
        assert payload[0]["itemBody"] == "<b>hi</b>"

    def test_parse_feed_error_exits_non_zero(self, runner):
        with patch(
            "feedenricher.cli.EnrichmentPipeline.run_detailed",
            new_callable=AsyncMock,
            side_effect=FeedFetchError("HTTP 404", feed_url="https://example.com/feed.xml"),
        ):
            result = runner.invoke(cli, ["parse", "https://example.com/feed.xml"])

        assert result.exit_code == 1

    def test_parse_unexpected_error_is_reported(self, runner):
        with patch(
            "feedenricher.cli.EnrichmentPipeline.run_detailed",
            new_callable=AsyncMock,
            side_effect=ConnectionResetError("peer reset"),
        ):
            result = runner.invoke(cli, ["parse", "https://example.com/feed.xml"])

        assert result.exit_code == 1
        assert "Network connection failed" in result.output

    def test_parse_table_summary(self, runner):
        with patch(
            "feedenricher.cli.EnrichmentPipeline.run_detailed",
            new_callable=AsyncMock,
            return_value=make_result(),
        ):
            result = runner.invoke(cli, ["parse", "https://example.com/feed.xml"])

        assert result.exit_code == 0
        assert "No link: 1" in result.output
        assert "Success rate: 0.0%" in result.output
        assert "Throughput: 10.0 items/s" in result.output
