"""Run one Outlook node operation over a batch of items from the command line."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

from dotenv import load_dotenv

# Ensure project root is on sys.path when running as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from outlook_node.config import Settings
from outlook_node.graph_client import GraphClient
from outlook_node.models import BinaryData, Item
from outlook_node.node import RESOURCE_OPERATIONS, OutlookNode

load_dotenv()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Call Microsoft Outlook through Microsoft Graph.")
    parser.add_argument("--resource", choices=sorted(RESOURCE_OPERATIONS))
    parser.add_argument("--operation", help="Operation valid for the chosen resource")
    parser.add_argument(
        "--params",
        type=Path,
        help="JSON file with one parameter object, or a list with one object per item",
    )
    parser.add_argument(
        "--items",
        type=Path,
        help="JSON file with a list of {json, binary: {name: path}} items (default: one empty item)",
    )
    parser.add_argument(
        "--continue-on-fail",
        action="store_true",
        default=None,
        help="Record per-item failures instead of aborting (overrides CONTINUE_ON_FAIL)",
    )
    parser.add_argument("--output-dir", type=Path, help="Directory that receives downloaded binaries")
    parser.add_argument("--list-categories", action="store_true", help="Print master categories and exit")
    return parser


def load_items(path: Path | None) -> list[Item]:
    if path is None:
        return [Item()]
    raw_items = json.loads(path.read_text())
    items: list[Item] = []
    for raw in raw_items:
        binary = {}
        for name, file_path in (raw.get("binary") or {}).items():
            source = (path.parent / file_path).resolve()
            binary[name] = BinaryData.prepare(source.read_bytes(), source.name)
        items.append(Item(json=raw.get("json") or {}, binary=binary))
    return items


def dump_items(items: list[Item], output_dir: Path | None) -> list[dict]:
    dumped = []
    for position, item in enumerate(items):
        binary = {}
        for name, data in item.binary.items():
            entry = {"fileName": data.file_name, "mimeType": data.mime_type, "size": data.size}
            if output_dir is not None:
                output_dir.mkdir(parents=True, exist_ok=True)
                target = output_dir / f"{position}_{name}_{data.file_name or 'data'}"
                target.write_bytes(data.data)
                entry["path"] = str(target)
            binary[name] = entry
        dumped.append({"json": item.json, "binary": binary, "pairedItem": item.paired_item})
    return dumped


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    settings = Settings()
    configure_logging(settings.log_level)

    continue_on_fail = settings.continue_on_fail if args.continue_on_fail is None else args.continue_on_fail
    node = OutlookNode(GraphClient(settings), continue_on_fail=continue_on_fail)

    if args.list_categories:
        print(json.dumps(node.list_categories(), indent=2))
        return

    if not args.resource or not args.operation:
        parser.error("--resource and --operation are required unless --list-categories is given")
    if args.operation not in RESOURCE_OPERATIONS[args.resource]:
        parser.error(f"operation must be one of {', '.join(RESOURCE_OPERATIONS[args.resource])}")

    parameters = json.loads(args.params.read_text()) if args.params else {}
    items = load_items(args.items)
    results = node.execute(args.resource, args.operation, items, parameters)

    failed = sum(1 for item in results if "error" in item.json)
    logging.info("Run complete: input=%s output=%s failed=%s", len(items), len(results), failed)
    print(json.dumps(dump_items(results, args.output_dir), indent=2, default=str))


if __name__ == "__main__":
    main()
