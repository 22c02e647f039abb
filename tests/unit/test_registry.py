"""Unit tests for the known export types registry."""

import pytest

from conftest import CATALOG_PRODUCT, product_definition
from export_service.errors import UnknownExportType
from export_service.registry import KnownExportTypesRegistry, short_type_name


class TestKnownExportTypesRegistry:
    """Tests for KnownExportTypesRegistry."""

    def setup_method(self):
        self.registry = KnownExportTypesRegistry()

    def test_resolve_returns_registered_definition(self):
        definition = product_definition()
        self.registry.register(definition)
        assert self.registry.resolve(CATALOG_PRODUCT) is definition

    def test_register_same_name_last_write_wins(self):
        first = product_definition(required_permission="first")
        second = product_definition(required_permission="second")
        self.registry.register(first)
        self.registry.register(second)

        assert self.registry.resolve(CATALOG_PRODUCT) is second
        assert len(self.registry) == 1

    def test_resolve_unknown_type_raises(self):
        with pytest.raises(UnknownExportType) as exc_info:
            self.registry.resolve("Catalog.Missing")
        assert exc_info.value.status_code == 400

    def test_list_registered_keeps_insertion_order(self):
        self.registry.register(product_definition(name="Orders.Order"))
        self.registry.register(product_definition(name="Catalog.Category"))
        self.registry.register(product_definition(name="Orders.Order", required_permission="x"))

        names = [definition.name for definition in self.registry.list_registered()]
        assert names == ["Orders.Order", "Catalog.Category"]

    def test_definition_is_immutable(self):
        definition = product_definition()
        with pytest.raises(Exception):
            definition.name = "Other"

    def test_info_hides_runtime_hooks(self):
        info = product_definition().info()
        dumped = info.model_dump()
        assert dumped["name"] == CATALOG_PRODUCT
        assert dumped["title"] == "Product"
        assert "data_source_factory" not in dumped


@pytest.mark.parametrize(
    "type_name, expected",
    [
        ("Catalog.Product", "Product"),
        ("VirtoCommerce.Catalog.Product", "Product"),
        ("Product", "Product"),
        (".Product", ".Product"),
    ],
)
def test_short_type_name(type_name, expected):
    assert short_type_name(type_name) == expected
