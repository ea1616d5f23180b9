# main.py
"""
Entry Point: Asset Lot Grouping

Purpose
-------
Run the lot pipeline end-to-end and emit a JSON report:
  1) Load run inputs (--config JSON, or images given on the command line).
  2) Resolve images → analyze with the selected grouping strategy →
     deduplicate → assemble.
  3) Write the assembled report (plus dedup summary and combined views).

Provider selection is configuration-driven:
  - --provider, else APPRAISAL_VISION_PROVIDER (default "mock").
  - The OpenAI provider needs OPENAI_API_KEY.

Usage
-----
    python main.py --mode per_item photos/desk_1.jpg photos/desk_2.jpg
    python main.py --config data/sample/lots.json --out lots.json --provider openai
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from appraisal.core.errors import LotAnalysisFailed
from appraisal.inputs.inputs import InputsLoader, RunInputs
from appraisal.orchestrators.lot_pipeline import LotPipeline
from appraisal.tools.vision import get_provider


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for configurable runs."""
    p = argparse.ArgumentParser(description="Asset lot grouping and deduplication")
    p.add_argument("images", nargs="*", help="Image URLs or paths, in order (overrides config).")
    p.add_argument("--config", type=str, default=None, help="Path to JSON run inputs.")
    p.add_argument("--out", type=str, default=None, help="Output JSON path (overrides config).")
    p.add_argument(
        "--mode",
        type=str,
        default=None,
        help="Grouping mode: single_lot, per_item, per_photo, catalogue, combined (overrides config).",
    )
    p.add_argument("--language", type=str, default=None, help="Output language: en, fr, es.")
    p.add_argument("--currency", type=str, default=None, help="Currency code for estimated values.")
    p.add_argument(
        "--provider",
        type=str,
        default=None,
        choices=["mock", "openai"],
        help='Vision provider (overrides APPRAISAL_VISION_PROVIDER).',
    )
    p.add_argument("--workers", type=int, default=None, help="Parallel per_item calls (overrides APPRAISAL_PER_ITEM_WORKERS).")
    return p.parse_args(argv)


def build_inputs(args: argparse.Namespace) -> RunInputs:
    loader = InputsLoader()
    cfg = loader.load(args.config) if args.config else loader.load_json("{}")
    return loader.with_overrides(
        cfg,
        images=args.images or None,
        grouping_mode=args.mode,
        language=args.language,
        currency=args.currency,
        out=args.out,
    )


def main(argv: list[str] | None = None) -> int:
    """Run the pipeline and write the JSON report. Returns a process exit code."""
    args = parse_args(argv)
    cfg = build_inputs(args)

    pipeline = LotPipeline(get_provider(args.provider), max_workers=args.workers)
    try:
        result = pipeline.run(
            cfg.images,
            cfg.grouping_mode,
            cfg.language,
            cfg.currency,
            metadata=cfg.metadata,
            catalogue_lots=cfg.catalogue_lots,
            combined_modes=cfg.combined_modes or None,
        )
    except LotAnalysisFailed as e:
        print(f"Error: {e} ({e.cause})")
        return 2

    payload = result.model_dump(mode="json", exclude={"image_set"})
    out_path = Path(cfg.out)
    if out_path.parent and not out_path.parent.exists():
        out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    print(result.summary())
    for w in result.warnings:
        print(f"  warning: {w}")
    print(f"Report written to {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
