"""Tests for loader config files."""

import tempfile
from pathlib import Path

import pytest

from modelshift.core.loader_config import (
    GENERIC_SECTION,
    qualified_name,
    read_config_file,
    resolve_config,
)
from tests.sample_models import Product


class ProductLoader:
    pass


def _write(text: str) -> Path:
    path = Path(tempfile.mktemp(suffix=".yaml"))
    path.write_text(text)
    return path


class TestReadConfigFile:
    def test_reads_mapping(self):
        path = _write("LoadSession:\n  strict: true\n")
        assert read_config_file(path) == {"LoadSession": {"strict": True}}
        path.unlink()

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            read_config_file("/nonexistent/loader.yaml")

    def test_non_mapping_raises(self):
        path = _write("- just\n- a list\n")
        with pytest.raises(ValueError, match="expected a YAML mapping"):
            read_config_file(path)
        path.unlink()


class TestResolveConfig:
    def test_qualified_name(self):
        assert qualified_name(Product) == "tests.sample_models.Product"

    def test_target_section(self):
        data = {
            qualified_name(Product): {
                "defaults": {"status": "draft"},
                "overrides": {"currency": "EUR"},
            },
        }
        config = resolve_config(data, Product, ProductLoader)
        assert config.defaults == {"status": "draft"}
        assert config.overrides == {"currency": "EUR"}
        assert config.options == {}

    def test_loader_section_wins_over_generic(self):
        data = {
            GENERIC_SECTION: {"strict": False, "verbose": True},
            qualified_name(ProductLoader): {"strict": True},
        }
        config = resolve_config(data, Product, ProductLoader)
        assert config.options == {"strict": True, "verbose": True}

    def test_unrelated_sections_ignored(self):
        data = {"shop.models.Order": {"defaults": {"status": "open"}}}
        config = resolve_config(data, Product, ProductLoader)
        assert config.defaults == {}
        assert config.options == {}

    def test_empty_section_allowed(self):
        config = resolve_config({GENERIC_SECTION: None}, Product, ProductLoader)
        assert config.options == {}

    def test_non_mapping_section_raises(self):
        with pytest.raises(ValueError, match="must be a mapping"):
            resolve_config({GENERIC_SECTION: ["strict"]}, Product, ProductLoader)
