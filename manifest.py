import json
import pathlib
from typing import Any, Dict, List, Optional

import pandas as pd

MANIFEST_NAME = "list.json"


def _is_id(stem: str) -> bool:
    # "007" is not the file name of id 7
    return stem.isascii() and stem.isdigit() and stem == str(int(stem))


def build_manifest(
    output_folder: pathlib.Path, prefix: Optional[str] = None
) -> List[Dict[str, Any]]:
    """List the numerically named PNG files in the output folder.

    Args:
        output_folder: Folder holding ``{id}.png`` files
        prefix: Path prefix the viewer uses to fetch images, defaults to the
            output folder name

    Returns:
        ``[{"id": ..., "path": ...}]`` sorted by id, one entry per id
    """
    output_folder = pathlib.Path(output_folder)
    if prefix is None:
        prefix = output_folder.name

    rows = [
        {"id": int(path.stem), "path": f"{prefix}/{path.name}"}
        for path in output_folder.iterdir()
        if path.is_file() and path.suffix.lower() == ".png" and _is_id(path.stem)
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows, columns=["id", "path"])
    df = df.sort_values(["id", "path"], kind="stable").drop_duplicates(subset="id")

    return [
        {"id": int(row.id), "path": str(row.path)}
        for row in df.itertuples(index=False)
    ]


def write_manifest(
    output_folder: pathlib.Path, prefix: Optional[str] = None
) -> pathlib.Path:
    """Write ``list.json`` for the gallery viewer and return its path."""
    output_folder = pathlib.Path(output_folder)
    manifest = build_manifest(output_folder, prefix)

    manifest_path = output_folder / MANIFEST_NAME
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)

    return manifest_path
