"""Tests for layer size limits."""

import pytest

from wave_cli.config import ONE_MIB
from wave_cli.core.exceptions import BudgetExceededError, ValidationError
from wave_cli.packing.budget import (
    AGGREGATE_LIMIT,
    CONFIG_LAYER_LIMIT,
    CONTEXT_LAYER_LIMIT,
    LayerSet,
    check_aggregate,
    check_layer,
)
from wave_cli.packing.packer import PackedLayer, pack_layer


def inline_layer(size: int, source: str = "/tmp/layer") -> PackedLayer:
    return PackedLayer(
        location="data:AAAA",
        digest=f"sha256:{size:064x}",
        compressed_size=size,
        source=source,
    )


def external_layer(size: int) -> PackedLayer:
    return PackedLayer.external(
        "https://storage.test/layer.tar.gz", f"sha256:{size:064x}", size
    )


class TestLimits:
    def test_reference_limits(self):
        assert CONTEXT_LAYER_LIMIT == 5 * ONE_MIB
        assert CONFIG_LAYER_LIMIT == ONE_MIB
        assert AGGREGATE_LIMIT == 10 * ONE_MIB


class TestCheckLayer:
    """Test the single layer limit."""

    def test_layer_exactly_at_limit_passes(self):
        layer = inline_layer(CONFIG_LAYER_LIMIT)

        assert check_layer(layer, CONFIG_LAYER_LIMIT) is layer

    def test_layer_one_byte_over_limit_fails(self):
        layer = inline_layer(CONFIG_LAYER_LIMIT + 1, source="/work/layer1")

        with pytest.raises(BudgetExceededError) as exc_info:
            check_layer(layer, CONFIG_LAYER_LIMIT)

        error = exc_info.value
        assert error.limit == CONFIG_LAYER_LIMIT
        assert error.actual == CONFIG_LAYER_LIMIT + 1
        assert error.offending_path == "/work/layer1"
        assert "/work/layer1" in str(error)

    def test_budget_error_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            check_layer(inline_layer(11), 10)

    def test_packed_directory_against_tiny_limit(self, context_dir):
        layer = pack_layer(context_dir)

        with pytest.raises(BudgetExceededError) as exc_info:
            check_layer(layer, layer.compressed_size - 1)

        assert exc_info.value.actual == layer.compressed_size
        assert exc_info.value.offending_path == str(context_dir)


class TestCheckAggregate:
    """Test the limit on all inline layers of one request."""

    def test_total_just_under_limit_passes(self):
        layers = [inline_layer(ONE_MIB)] * 9 + [inline_layer(ONE_MIB - 1)]

        assert check_aggregate(layers, AGGREGATE_LIMIT) == AGGREGATE_LIMIT - 1

    def test_total_at_limit_fails(self):
        layers = [inline_layer(ONE_MIB)] * 10

        with pytest.raises(BudgetExceededError) as exc_info:
            check_aggregate(layers, AGGREGATE_LIMIT)

        assert exc_info.value.limit == AGGREGATE_LIMIT
        assert exc_info.value.actual == AGGREGATE_LIMIT

    def test_external_layers_are_not_counted(self):
        layers = [inline_layer(ONE_MIB), external_layer(50 * ONE_MIB)]

        assert check_aggregate(layers, AGGREGATE_LIMIT) == ONE_MIB

    def test_empty_set_passes(self):
        assert check_aggregate([], AGGREGATE_LIMIT) == 0


class TestLayerSet:
    """Test the ordered layer collection."""

    def test_keeps_insertion_order(self):
        first, second, third = inline_layer(1), inline_layer(2), inline_layer(3)
        layers = LayerSet([first])

        layers.add(second, CONFIG_LAYER_LIMIT)
        layers.add(third, CONFIG_LAYER_LIMIT)

        assert list(layers) == [first, second, third]
        assert len(layers) == 3

    def test_add_checks_the_single_layer(self):
        layers = LayerSet()

        with pytest.raises(BudgetExceededError):
            layers.add(inline_layer(CONFIG_LAYER_LIMIT + 1), CONFIG_LAYER_LIMIT)

        assert not layers

    def test_crossing_the_aggregate_fails_with_valid_layers(self):
        layers = LayerSet()
        for _ in range(9):
            layers.add(inline_layer(ONE_MIB), CONFIG_LAYER_LIMIT)
        layers.add(inline_layer(ONE_MIB - 1), CONFIG_LAYER_LIMIT)
        assert layers.check(AGGREGATE_LIMIT) == AGGREGATE_LIMIT - 1

        layers.add(inline_layer(1), CONFIG_LAYER_LIMIT)

        with pytest.raises(BudgetExceededError):
            layers.check(AGGREGATE_LIMIT)

    def test_inline_size(self):
        layers = LayerSet([inline_layer(10), external_layer(1000), inline_layer(5)])

        assert layers.inline_size == 15
