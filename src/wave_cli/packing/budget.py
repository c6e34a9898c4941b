"""Size limits for packed layers."""

import logging
from typing import Iterable, Iterator, List

from ..config import ONE_MIB
from ..core.exceptions import BudgetExceededError
from .packer import PackedLayer

log = logging.getLogger(__name__)

CONTEXT_LAYER_LIMIT = 5 * ONE_MIB
CONFIG_LAYER_LIMIT = ONE_MIB
AGGREGATE_LIMIT = 10 * ONE_MIB


def check_layer(layer: PackedLayer, max_bytes: int) -> PackedLayer:
    """
    Check a single layer against its size limit.

    A layer exactly at the limit is accepted.

    Args:
        layer: Packed layer to check
        max_bytes: Maximum compressed size in bytes

    Returns:
        The same layer, for chaining

    Raises:
        BudgetExceededError: If the compressed size is over the limit
    """
    if layer.compressed_size > max_bytes:
        raise BudgetExceededError(
            limit=max_bytes, actual=layer.compressed_size, offending_path=layer.source
        )
    return layer


def check_aggregate(layers: Iterable[PackedLayer], max_bytes: int) -> int:
    """
    Check the total compressed size of the inline layers.

    Layers referencing external storage do not count. The total must stay
    strictly under the limit.

    Args:
        layers: Layers submitted in one request
        max_bytes: Aggregate limit in bytes

    Returns:
        Total compressed size of the inline layers

    Raises:
        BudgetExceededError: If the inline total reaches the limit
    """
    total = sum(layer.compressed_size for layer in layers if layer.is_inline)
    if total >= max_bytes:
        raise BudgetExceededError(limit=max_bytes, actual=total)
    return total


class LayerSet:
    """Ordered layers of one request; insertion order is the stacking order."""

    def __init__(self, layers: Iterable[PackedLayer] = ()):
        self._layers: List[PackedLayer] = list(layers)

    def add(self, layer: PackedLayer, max_bytes: int) -> PackedLayer:
        """Check the layer against its own limit, then append it."""
        check_layer(layer, max_bytes)
        self._layers.append(layer)
        log.debug(f"Added layer {layer.digest} ({layer.compressed_size} bytes)")
        return layer

    def check(self, max_bytes: int = AGGREGATE_LIMIT) -> int:
        return check_aggregate(self._layers, max_bytes)

    @property
    def inline_size(self) -> int:
        return sum(layer.compressed_size for layer in self._layers if layer.is_inline)

    def __iter__(self) -> Iterator[PackedLayer]:
        return iter(tuple(self._layers))

    def __len__(self) -> int:
        return len(self._layers)

    def __bool__(self) -> bool:
        return bool(self._layers)
