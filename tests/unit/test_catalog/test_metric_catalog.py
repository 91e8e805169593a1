"""Unit tests for the metric catalog."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from metricfeed.catalog.models import MetricDescriptor, MetricUnit, SamplingInterval
from metricfeed.catalog.registry import (
    BUILTIN_METRICS,
    DEFAULT_METRIC_ID,
    CatalogError,
    MetricCatalog,
)


class TestSamplingInterval:
    """Tests for sampling intervals and point budgets."""

    def test_point_budgets(self) -> None:
        """Test 24h point budgets per interval."""
        assert SamplingInterval.TEN_MINUTES.point_budget == 144
        assert SamplingInterval.ONE_HOUR.point_budget == 24

    def test_wire_values(self) -> None:
        """Test the `i` parameter values."""
        assert SamplingInterval.TEN_MINUTES.value == "10m"
        assert SamplingInterval.ONE_HOUR.value == "1h"


class TestMetricDescriptor:
    """Tests for MetricDescriptor."""

    def test_defaults_to_hourly(self) -> None:
        """Test the default sampling interval."""
        descriptor = MetricDescriptor(id="x/y", name="X", short_name="X")

        assert descriptor.sampling_interval == SamplingInterval.ONE_HOUR
        assert descriptor.point_budget == 24
        assert descriptor.api_path == "/v1/metrics/x/y"

    def test_accepts_interval_alias(self) -> None:
        """Test that `interval` populates the sampling interval."""
        descriptor = MetricDescriptor.model_validate(
            {"id": "x/y", "name": "X", "short_name": "X", "interval": "10m"}
        )

        assert descriptor.sampling_interval == SamplingInterval.TEN_MINUTES

    def test_rejects_unknown_interval(self) -> None:
        """Test that unsupported intervals are rejected."""
        with pytest.raises(ValidationError):
            MetricDescriptor.model_validate(
                {"id": "x/y", "name": "X", "short_name": "X", "interval": "24h"}
            )


class TestMetricCatalog:
    """Tests for MetricCatalog lookups."""

    @pytest.fixture
    def catalog(self) -> MetricCatalog:
        """Built-in catalog."""
        return MetricCatalog()

    def test_builtin_contents(self, catalog: MetricCatalog) -> None:
        """Test that the built-in metrics are registered."""
        assert len(catalog) == len(BUILTIN_METRICS)
        assert DEFAULT_METRIC_ID in catalog
        assert "market/price_usd_close" in catalog

    def test_lookup(self, catalog: MetricCatalog) -> None:
        """Test lookup of a known metric."""
        descriptor = catalog.lookup("market/price_usd_close")

        assert descriptor is not None
        assert descriptor.unit == MetricUnit.USD
        assert descriptor.sampling_interval == SamplingInterval.TEN_MINUTES

    def test_lookup_unknown(self, catalog: MetricCatalog) -> None:
        """Test lookup of an unknown metric."""
        assert catalog.lookup("does/not_exist") is None

    def test_unknown_metric_falls_back_to_hourly(self, catalog: MetricCatalog) -> None:
        """Test interval and budget fallback for unknown ids."""
        interval = catalog.sampling_interval_for("does/not_exist")

        assert interval == SamplingInterval.ONE_HOUR
        assert catalog.point_budget_for("does/not_exist") == 24

    def test_point_budget_for_known(self, catalog: MetricCatalog) -> None:
        """Test budget lookup for known ids."""
        assert catalog.point_budget_for("market/marketcap_usd") == 144
        assert catalog.point_budget_for("market/mvrv") == 24

    def test_later_duplicates_win(self) -> None:
        """Test that a duplicate id replaces the earlier descriptor."""
        catalog = MetricCatalog(
            [
                MetricDescriptor(id="a/b", name="First", short_name="1"),
                MetricDescriptor(id="a/b", name="Second", short_name="2"),
            ]
        )

        assert len(catalog) == 1
        descriptor = catalog.lookup("a/b")
        assert descriptor is not None
        assert descriptor.name == "Second"


class TestCatalogFromYaml:
    """Tests for loading a catalog file."""

    def test_loads_metrics(self, tmp_path: Path) -> None:
        """Test loading a valid file."""
        path = tmp_path / "metrics.yaml"
        path.write_text(
            """
metrics:
  - id: market/price_usd_close
    name: Price
    short_name: Price
    unit: usd
    interval: 10m
  - id: eth/gas_price_mean
    name: Mean Gas Price
    short_name: Gas
"""
        )

        catalog = MetricCatalog.from_yaml(path)

        assert len(catalog) == 2
        assert catalog.point_budget_for("market/price_usd_close") == 144
        assert catalog.point_budget_for("eth/gas_price_mean") == 24

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test that an empty file gives an empty catalog."""
        path = tmp_path / "metrics.yaml"
        path.write_text("")

        assert len(MetricCatalog.from_yaml(path)) == 0

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises CatalogError."""
        with pytest.raises(CatalogError):
            MetricCatalog.from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that unparseable YAML raises CatalogError."""
        path = tmp_path / "metrics.yaml"
        path.write_text("metrics: [unclosed")

        with pytest.raises(CatalogError):
            MetricCatalog.from_yaml(path)

    def test_invalid_schema(self, tmp_path: Path) -> None:
        """Test that schema violations raise CatalogError with the path."""
        path = tmp_path / "metrics.yaml"
        path.write_text("metrics:\n  - id: x/y\n    interval: 5m\n")

        with pytest.raises(CatalogError) as exc_info:
            MetricCatalog.from_yaml(path)

        assert exc_info.value.path == path
