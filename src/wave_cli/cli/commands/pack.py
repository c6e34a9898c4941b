"""Local packing diagnostic: shows what a directory packs into."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ...core.exceptions import WaveError
from ...packing.budget import check_layer
from ...packing.ignore import load_ignore_file
from ...packing.packer import PackedLayer, pack_layer
from ..utils.output import OutputFormat, console, dump_output, print_error, print_result


def layer_summary(layer: PackedLayer) -> dict:
    return {
        "path": layer.source,
        "digest": layer.digest,
        "tarDigest": layer.tar_digest,
        "uncompressedSize": layer.uncompressed_size,
        "compressedSize": layer.compressed_size,
    }


def pack_command(
    directory: str,
    preserve_timestamps: bool = False,
    max_size: Optional[int] = None,
    output: Optional[OutputFormat] = None,
):
    """Pack a directory with its ignore file and report sizes and digests."""
    try:
        root = Path(directory)
        layer = pack_layer(root, load_ignore_file(root), preserve_timestamps)
        if max_size is not None:
            check_layer(layer, max_size)
    except WaveError as e:
        print_error(e)
        raise typer.Exit(1)

    summary = layer_summary(layer)
    if output is not None:
        print_result(dump_output(summary, output))
        return

    table = Table(title="Packed layer", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in summary.items():
        table.add_row(key, str(value))
    console.print(table)
