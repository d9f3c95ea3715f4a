"""Tests for the Header Mapper."""

from unittest.mock import MagicMock

import pytest

from modelshift.core.errors import MappingDefinitionError, MissingMandatoryError
from modelshift.core.header_mapper import map_headers, match_header
from modelshift.core.models import LoadOptions
from modelshift.core.operator_registry import OperatorRegistry
from tests.sample_models import Product


@pytest.fixture
def registry():
    return OperatorRegistry(Product)


class TestMatchHeader:
    def test_plain_operator(self, registry):
        assert match_header("Price", registry).name == "price"

    def test_lookup_key_in_header(self, registry):
        descriptor = match_header("category:title", registry)
        assert descriptor.name == "category"
        assert descriptor.default_lookup_key == "title"

    def test_lookup_key_and_fixed_value(self, registry):
        descriptor = match_header("colours:colour:red", registry)
        assert descriptor.default_lookup_key == "colour"
        assert descriptor.fixed_lookup_value == "red"

    def test_header_binding_leaves_registry_untouched(self, registry):
        match_header("supplier:name", registry)
        assert registry.get("supplier").default_lookup_key is None

    def test_suffix_on_attribute_does_not_map(self, registry):
        assert match_header("price:usd", registry) is None


class TestMapHeaders:
    def test_ordered_mappings(self, registry):
        result = map_headers(["Name", "Price", "SKU"], registry)
        assert [m.header for m in result.mappings] == ["Name", "Price", "SKU"]
        assert result.operator_names == ["name", "price", "sku"]
        assert all(m.mapped for m in result.mappings)
        assert result.unmapped_headers == []

    def test_idempotent(self, registry):
        headers = ["Name", "category:title", "Barcode"]
        first = map_headers(headers, registry)
        second = map_headers(headers, registry)
        assert first.mappings == second.mappings
        assert first.unmapped_headers == second.unmapped_headers

    def test_blank_and_none_headers_skipped(self, registry):
        result = map_headers(["Name", None, "  "], registry)
        assert result.operator_names == ["name"]
        assert result.unmapped_headers == []

    def test_non_strict_reports_unmapped(self, registry):
        result = map_headers(["Name", "Barcode"], registry)
        assert result.unmapped_headers == ["Barcode"]
        assert result.for_header("Barcode") is None

    def test_strict_raises_on_unmapped(self, registry):
        with pytest.raises(MappingDefinitionError) as exc_info:
            map_headers(["Name", "Barcode"], registry, LoadOptions(strict=True))
        assert exc_info.value.unmapped == ["Barcode"]

    def test_ignored_headers_skipped(self, registry):
        options = LoadOptions(strict=True, ignore=["barcode"])
        result = map_headers(["Name", "Barcode"], registry, options)
        assert result.unmapped_headers == []
        assert result.operator_names == ["name"]

    def test_force_inclusion_carries_unmapped_header(self, registry):
        options = LoadOptions(strict=True, force_inclusion=["Barcode"])
        result = map_headers(["Name", "Barcode", "Notes"], registry, LoadOptions(force_inclusion=["Barcode"]))
        barcode = result.for_header("Barcode")
        assert barcode is not None
        assert barcode.mapped is False
        assert result.for_header("Notes") is None

        # Force-included headers do not trip strict mode
        result = map_headers(["Name", "Barcode"], registry, options)
        assert result.unmapped_headers == ["Barcode"]

    def test_include_all(self, registry):
        options = LoadOptions(strict=True, include_all=True)
        result = map_headers(["Name", "Barcode", "Notes"], registry, options)
        assert [m.header for m in result.mappings] == ["Name", "Barcode", "Notes"]

    def test_mandatory_missing(self, registry):
        options = LoadOptions(mandatory=["sku"])
        with pytest.raises(MissingMandatoryError) as exc_info:
            map_headers(["Name", "Price"], registry, options)
        assert exc_info.value.missing == ["sku"]

    def test_mandatory_present(self, registry):
        options = LoadOptions(mandatory=["sku"])
        result = map_headers(["Name", "SKU"], registry, options)
        assert result.missing_operators == []

    def test_mandatory_names_canonicalised(self, registry):
        options = LoadOptions(mandatory=["SKU"])
        result = map_headers(["sku"], registry, options)
        assert result.operator_names == ["sku"]

    def test_ignored_mandatory_header_is_missing(self, registry):
        options = LoadOptions(mandatory=["sku"], ignore=["SKU"])
        with pytest.raises(MissingMandatoryError):
            map_headers(["Name", "SKU"], registry, options)

    def test_registry_failure_wrapped(self):
        broken = MagicMock()
        broken.model = Product
        broken.find.side_effect = RuntimeError("dictionary exploded")
        with pytest.raises(MappingDefinitionError, match="Failed to map header row"):
            map_headers(["Name"], broken)
