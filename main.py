# main.py
"""CLI entry point for the coherence engine."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from models import GenerationMode
from orchestration.cli_runner import RunOptions, run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a long outline or document in coherent stages."
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in GenerationMode],
        default=GenerationMode.OUTLINE.value,
        help="Kind of output to produce",
    )
    prompt_group = parser.add_mutually_exclusive_group(required=True)
    prompt_group.add_argument("--prompt", help="Prompt text")
    prompt_group.add_argument("--prompt-file", type=Path, help="Read the prompt from a file")
    parser.add_argument("--input-file", type=Path, default=None, help="Source text to ground on")
    parser.add_argument("--job-id", type=int, default=1, help="Identifier echoed in events")
    parser.add_argument("--output", type=Path, default=None, help="Write the result here")
    parser.add_argument("--json", action="store_true", help="Print events as JSON lines")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use the offline echo backend instead of the configured API",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse command-line arguments and run one job."""
    args = build_parser().parse_args(argv)
    if args.prompt_file is not None:
        prompt = args.prompt_file.read_text(encoding="utf-8")
    else:
        prompt = args.prompt
    input_text = ""
    if args.input_file is not None:
        input_text = args.input_file.read_text(encoding="utf-8")
    options = RunOptions(
        mode=GenerationMode(args.mode),
        prompt=prompt,
        input_text=input_text,
        job_id=args.job_id,
        output_path=args.output,
        as_json=args.json,
        dry_run=args.dry_run,
    )
    return run(options)


if __name__ == "__main__":
    sys.exit(main())
