"""Build context and layer packing."""

from .budget import (
    AGGREGATE_LIMIT,
    CONFIG_LAYER_LIMIT,
    CONTEXT_LAYER_LIMIT,
    LayerSet,
    check_aggregate,
    check_layer,
)
from .ignore import IgnoreFilter, compile_patterns, load_ignore_file
from .packer import PackedLayer, pack_layer

__all__ = [
    "AGGREGATE_LIMIT",
    "CONFIG_LAYER_LIMIT",
    "CONTEXT_LAYER_LIMIT",
    "IgnoreFilter",
    "LayerSet",
    "PackedLayer",
    "check_aggregate",
    "check_layer",
    "compile_patterns",
    "load_ignore_file",
    "pack_layer",
]
