# orchestration/cli_runner.py
"""Command-line runner for the coherence engine."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import structlog
from core.llm_interface import EchoBackend, GenerationBackend, OpenAICompatibleBackend
from ui.rich_display import JobProgressDisplay
from utils.logging import setup_logging

from models import CompleteEvent, ErrorEvent, GenerationMode
from orchestration.coherence_engine import CoherenceEngine

logger = structlog.get_logger(__name__)


@dataclass
class RunOptions:
    mode: GenerationMode
    prompt: str
    input_text: str = ""
    job_id: int = 1
    output_path: Path | None = None
    as_json: bool = False
    dry_run: bool = False
    show_progress: bool = True


async def run_job(
    options: RunOptions,
    backend: GenerationBackend,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Stream one job to the terminal. Returns the process exit code."""
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr
    engine = CoherenceEngine(backend)
    display = JobProgressDisplay(
        options.job_id,
        options.mode.value,
        enabled=options.show_progress and not options.as_json,
    )
    exit_code = 1
    with display:
        async for event in engine.process_large_document(
            options.job_id, options.mode, options.prompt, options.input_text
        ):
            display.update(event)
            if options.as_json:
                stdout.write(event.model_dump_json() + "\n")
                stdout.flush()
            if isinstance(event, CompleteEvent):
                exit_code = 0
                if options.output_path is not None:
                    options.output_path.write_text(event.output + "\n", encoding="utf-8")
                    logger.info(
                        "Wrote output.",
                        path=str(options.output_path),
                        words=event.words,
                    )
                elif not options.as_json:
                    stdout.write(event.output + "\n")
            elif isinstance(event, ErrorEvent) and not options.as_json:
                stderr.write(f"Error ({event.error_kind}): {event.message}\n")
                for failure in event.failures:
                    stderr.write(f"  {failure}\n")
    return exit_code


async def _run(
    options: RunOptions,
    backend: EchoBackend | OpenAICompatibleBackend | None = None,
) -> int:
    if backend is None:
        backend = EchoBackend() if options.dry_run else OpenAICompatibleBackend()
    try:
        exit_code = await run_job(options, backend)
        logger.info(
            "Backend totals.",
            requests=backend.request_count,
            usage=backend.usage.get_if_used(),
        )
        return exit_code
    finally:
        if isinstance(backend, OpenAICompatibleBackend):
            await backend.aclose()


def run(options: RunOptions) -> int:
    """Configure logging and run a single job to completion."""
    setup_logging(use_rich=not options.as_json)
    try:
        return asyncio.run(_run(options))
    except KeyboardInterrupt:
        logger.info("Coherence engine shutting down due to KeyboardInterrupt...")
        return 130
