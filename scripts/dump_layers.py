#!/usr/bin/env python3
"""Fetch every COtrip feed once and dump the normalized layers.

Useful to eyeball what the parsers keep and drop for each feed.

Usage
-----
Set environment variables and run::

    export COTRIP_API_KEY="XXXX-XXXX-XXXX-XXXX"
    python scripts/dump_layers.py

Options::

    --layer KEY          Only print this layer (repeatable)
    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
    --limit N            Print at most N entities per layer (default 5)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pycotrip import CotripConfig, LayerController, LayerKey  # noqa: E402

# ── helpers ──────────────────────────────────────────────────


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _describe(entity: Any) -> str:
    data = entity.model_dump(exclude={"raw_data"})
    if "coordinate" in data:
        coord = data["coordinate"]
        where = f"({coord['latitude']:.5f}, {coord['longitude']:.5f})"
    else:
        where = f"{len(data['coordinates'])} vertices"
    label = data.get("title") or data.get("route_name") or ""
    subtitle = data.get("subtitle")
    return f"{data['id']:<28} {where:<26} {label}" + (f" [{subtitle}]" if subtitle else "")


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Dump normalized COtrip layers for debugging / development.",
    )
    parser.add_argument(
        "--layer",
        action="append",
        choices=[key.value for key in LayerKey],
        help="Only print this layer (default: all layers)",
    )
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--limit", type=int, default=5, help="Entities printed per layer in text mode")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    layers = [LayerKey(value) for value in args.layer] if args.layer else list(LayerKey)
    config = CotripConfig.from_env(default_layers=[key.value for key in LayerKey])

    controller = LayerController(config)
    try:
        await controller.start(auto_refresh=False)
    finally:
        await controller.stop()

    cache = controller.cache
    result: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "base_url": config.base_url,
        "last_updated": controller.last_updated,
        "error": controller.error,
        "feed_errors": {key.value: reason for key, reason in controller.feed_errors.items()},
        "layers": {
            key.value: [entity.model_dump(by_alias=True, mode="json") for entity in cache.entities(key)]
            for key in layers
        },
    }

    if args.json_mode or args.output:
        payload = json.dumps(result, indent=2, default=str, ensure_ascii=False)
        if args.output:
            Path(args.output).write_text(payload, encoding="utf-8")
            print(f"JSON written to {args.output}", file=sys.stderr)
        else:
            print(payload)
        return

    out: list[str] = [_section("pycotrip dump_layers")]
    out.append(f"  time      : {result['timestamp']}")
    out.append(f"  base_url  : {config.base_url}")
    if result["error"]:
        out.append(f"  error     : {result['error']}")
    for key in layers:
        entities = cache.entities(key)
        out.append(_section(f"{key.value} ({len(entities)})"))
        reason = controller.feed_errors.get(key)
        if reason:
            out.append(f"  feed failed: {reason}")
        for entity in entities[: args.limit]:
            out.append(f"  {_describe(entity)}")
        if len(entities) > args.limit:
            out.append(f"  … {len(entities) - args.limit} more")
    print("\n".join(out))


if __name__ == "__main__":
    asyncio.run(main())
