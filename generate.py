import json
import pathlib
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import pandas as pd
import typer
from progressbar import progressbar

from manifest import write_manifest
from spritesheet import Gotchi, generate_spritesheet, load_config, load_gotchis

# Path constants
BASE_PATH = pathlib.Path(".")
CONFIG_PATH = pathlib.Path("config.json")
OUTPUT_PATH = pathlib.Path("website") / "spritesheets"
FAILED_LOG_PATH = pathlib.Path("failed_gotchis.json")
MISSING_LOG_PATH = pathlib.Path("missing_layers.json")

DEFAULT_BATCH_SIZE = 10

app = typer.Typer(
    name="generate-spritesheets",
    help="Composite gotchi spritesheets from trait layers.",
    add_completion=False,
)


def parse_ids(ids: Optional[str]) -> Optional[List[int]]:
    """Parse a comma-separated id list, ignoring entries that are not integers."""
    if ids is None:
        return None
    parsed = []
    for part in ids.split(","):
        try:
            parsed.append(int(part.strip()))
        except ValueError:
            continue
    return parsed


def select_gotchis(
    gotchis: List[Gotchi],
    ids: Optional[List[int]] = None,
    start: int = 0,
    limit: Optional[int] = None,
) -> List[Gotchi]:
    """Filter by ids, skip the first ``start`` gotchis, then keep ``limit``."""
    if ids is not None:
        wanted = set(ids)
        gotchis = [gotchi for gotchi in gotchis if gotchi.id in wanted]
        print(f"Filtering to {len(gotchis)} specific gotchis")

    if start > 0:
        gotchis = gotchis[start:]
        print(f"Starting from index {start}")

    if limit:
        gotchis = gotchis[:limit]
        print(f"Limiting to {len(gotchis)} gotchis")

    return gotchis


def process_gotchi(
    gotchi: Gotchi,
    config: dict,
    base_path: pathlib.Path,
    output_folder: pathlib.Path,
    verbose: bool = False,
) -> Dict[str, Any]:
    """Render one gotchi, turning any unexpected exception into a failure."""
    try:
        result = generate_spritesheet(
            gotchi, config, base_path, output_folder, verbose=verbose
        )
    except Exception as e:
        print(f"  ✗ Error processing gotchi {gotchi.id}: {e}")
        return {
            "success": False,
            "gotchi": gotchi,
            "error": f"Unexpected error: {e}",
            "details": {},
        }

    payload = result.to_dict()
    if not result.success:
        print(f"  ✗ Failed gotchi {gotchi.id}: {result.error}")
        return {
            "success": False,
            "gotchi": gotchi,
            "error": result.error or "Unknown error",
            "details": payload["details"],
        }

    if verbose:
        print(
            f"  ✓ Completed gotchi {gotchi.id} - "
            f"Layers: {', '.join(result.layers_used)}"
        )
    return {"success": True, "gotchi": gotchi, "details": payload["details"]}


def process_batches(
    gotchis: List[Gotchi],
    config: dict,
    base_path: pathlib.Path,
    output_folder: pathlib.Path,
    batch_size: int = DEFAULT_BATCH_SIZE,
    verbose: bool = False,
) -> List[Dict[str, Any]]:
    """Render gotchis in batches of ``batch_size`` running in parallel.

    Returns:
        One outcome dict per gotchi, in input order
    """
    batch_size = max(1, batch_size)
    total_batches = (len(gotchis) + batch_size - 1) // batch_size
    batch_starts = range(0, len(gotchis), batch_size)
    if not verbose:
        batch_starts = progressbar(batch_starts)

    outcomes = []
    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for i in batch_starts:
            batch = gotchis[i : i + batch_size]
            batch_num = i // batch_size + 1
            if verbose:
                print(
                    f"\nProcessing batch {batch_num}/{total_batches} "
                    f"({len(batch)} gotchis)..."
                )

            batch_outcomes = list(
                executor.map(
                    lambda gotchi: process_gotchi(
                        gotchi, config, base_path, output_folder, verbose
                    ),
                    batch,
                )
            )
            outcomes.extend(batch_outcomes)

            if verbose:
                succeeded = sum(1 for outcome in batch_outcomes if outcome["success"])
                print(
                    f"Batch {batch_num} complete: {succeeded} succeeded, "
                    f"{len(batch_outcomes) - succeeded} failed"
                )

    return outcomes


def collect_failures(outcomes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "id": outcome["gotchi"].id,
            "attributes": outcome["gotchi"].to_dict()["attributes"],
            "error": outcome["error"],
            "details": outcome.get("details") or {},
        }
        for outcome in outcomes
        if not outcome["success"]
    ]


def summarize_missing_layers(
    outcomes: List[Dict[str, Any]]
) -> Optional[Dict[str, Any]]:
    """Group missing images across gotchis, most frequently missing first.

    Returns:
        Missing layer log, or None when nothing was missing
    """
    detailed = [
        {
            "gotchiId": outcome["gotchi"].id,
            "missingLayer": missing,
            "attributes": outcome["gotchi"].to_dict()["attributes"],
        }
        for outcome in outcomes
        for missing in (outcome.get("details") or {}).get("missingImages", [])
    ]
    if not detailed:
        return None

    df = pd.DataFrame(
        [(item["missingLayer"], item["gotchiId"]) for item in detailed],
        columns=["layer", "gotchiId"],
    )
    grouped = (
        df.groupby("layer", sort=False)["gotchiId"]
        .agg(count="size", gotchiIds=list)
        .sort_values("count", ascending=False, kind="stable")
    )

    summary = [
        {
            "layer": str(layer),
            "count": int(row["count"]),
            "gotchiIds": [int(gotchi_id) for gotchi_id in row["gotchiIds"]],
        }
        for layer, row in grouped.iterrows()
    ]

    return {
        "totalMissing": len(detailed),
        "uniqueMissingLayers": len(summary),
        "summary": summary,
        "detailed": detailed,
    }


def write_json(path: pathlib.Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


@app.command()
def main(
    input_json: pathlib.Path = typer.Argument(..., help="JSON array of gotchis"),
    config_path: pathlib.Path = typer.Option(
        CONFIG_PATH, "--config", help="Layer rules configuration"
    ),
    output_folder: pathlib.Path = typer.Option(
        OUTPUT_PATH, "--output", help="Folder to write spritesheets into"
    ),
    base_path: pathlib.Path = typer.Option(
        BASE_PATH, "--base-path", help="Folder holding 'Trait Files/Sprites'"
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", help="Process only the first n gotchis"
    ),
    ids: Optional[str] = typer.Option(
        None, "--ids", help="Process only these comma-separated ids"
    ),
    start: int = typer.Option(0, "--start", help="Start from the gotchi at index n"),
    batch: int = typer.Option(
        DEFAULT_BATCH_SIZE, "--batch", help="Number of gotchis processed in parallel"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", help="Show detailed layer information"
    ),
    failed_log: pathlib.Path = typer.Option(
        FAILED_LOG_PATH, "--failed-log", help="Where to log failed gotchis"
    ),
    missing_log: pathlib.Path = typer.Option(
        MISSING_LOG_PATH, "--missing-log", help="Where to log missing layers"
    ),
) -> None:
    """Generate one spritesheet per gotchi and a list.json manifest."""
    if not input_json.exists():
        print(f"Error: Input file '{input_json}' not found")
        raise typer.Exit(1)
    if not config_path.exists():
        print(f"Error: Config file '{config_path}' not found")
        raise typer.Exit(1)

    output_folder.mkdir(parents=True, exist_ok=True)

    try:
        print(f"Loading configuration from {config_path}...")
        config = load_config(config_path)
        id_key = (config.get("settings") or {}).get("id_key") or "id"

        print(f"Loading gotchis from {input_json}...")
        gotchis, rejected = load_gotchis(input_json, id_key=id_key)
    except ValueError as e:
        print(f"Error: {e}")
        raise typer.Exit(1)

    for record in rejected:
        print(
            f"  ✗ Skipping gotchi record at index {record['index']}: "
            f"{record['error']}"
        )

    gotchis = select_gotchis(gotchis, parse_ids(ids), start, limit)

    print(f"Processing {len(gotchis)} gotchis in batches of {batch}...")
    print("-" * 50)

    outcomes = process_batches(
        gotchis, config, base_path, output_folder, batch_size=batch, verbose=verbose
    )
    success_count = sum(1 for outcome in outcomes if outcome["success"])

    print("\n" + "=" * 50)
    print("Processing complete!")
    print(f"Successfully generated: {success_count} spritesheets")
    print(f"Failed: {len(outcomes) - success_count + len(rejected)}")
    print(f"Output saved to: {output_folder}/")

    failures = [{**record, "details": {}} for record in rejected]
    failures.extend(collect_failures(outcomes))
    if failures:
        write_json(failed_log, failures)
        print(f"\nFailed gotchis logged to: {failed_log}")
        print("Failed IDs:", ", ".join(str(failure["id"]) for failure in failures))

    missing = summarize_missing_layers(outcomes)
    if missing is not None:
        write_json(missing_log, missing)
        print(f"\nMissing layers logged to: {missing_log}")
        print(f"Total missing layer instances: {missing['totalMissing']}")
        print(f"Unique missing layers: {missing['uniqueMissingLayers']}")
        print("\nTop missing layers:")
        for item in missing["summary"][:5]:
            print(f"  - {item['layer']} ({item['count']} gotchis)")

    try:
        manifest_path = write_manifest(output_folder)
        print(f"\nSprite list written to: {manifest_path}")
    except OSError as e:
        print(f"\nWarning: Failed to write sprite list: {e}")


if __name__ == "__main__":
    app()
