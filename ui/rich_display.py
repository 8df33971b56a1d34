# ui/rich_display.py
"""Rich live panel showing a job's progress."""

from __future__ import annotations

import time

from config import settings
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from models import CompleteEvent, ErrorEvent, GenerationEvent, ProgressEvent


class JobProgressDisplay:
    """Live panel that follows one job's event stream."""

    def __init__(
        self,
        job_id: int,
        mode: str,
        total_units: int | None = None,
        enabled: bool | None = None,
        console: Console | None = None,
    ) -> None:
        self.job_id = job_id
        self.total_units = total_units
        self.units_done = 0
        self.gaps = 0
        self.words = 0
        self.run_start_time = 0.0
        self.enabled = settings.ENABLE_RICH_PROGRESS if enabled is None else enabled
        self.status_text_job: Text = Text(f"Job {job_id} ({mode})")
        self.status_text_units: Text = Text("Units: 0")
        self.status_text_current: Text = Text("Current Step: Planning...")
        self.status_text_words: Text = Text("Words Generated: 0")
        self.status_text_elapsed_time: Text = Text("Elapsed Time: 00:00:00")
        self.live: Live | None = None
        if self.enabled:
            self.live = Live(
                Panel(
                    Group(
                        self.status_text_job,
                        self.status_text_units,
                        self.status_text_current,
                        self.status_text_words,
                        self.status_text_elapsed_time,
                    ),
                    title="Coherence Engine Progress",
                    border_style="blue",
                    expand=True,
                ),
                console=console or Console(stderr=True),
                refresh_per_second=4,
                transient=False,
            )

    def __enter__(self) -> JobProgressDisplay:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> None:
        self.run_start_time = time.time()
        if self.live:
            self.live.start()

    def stop(self) -> None:
        if self.live and self.live.is_started:
            self.live.stop()

    def update(self, event: GenerationEvent) -> None:
        """Fold one engine event into the panel."""
        if isinstance(event, ProgressEvent):
            self.units_done += 1
            self.words += event.words
            if event.gap:
                self.gaps += 1
                step = f"Unit {event.unit_index + 1} left as a gap: {event.title}"
            else:
                step = f"Finished unit {event.unit_index + 1}: {event.title}"
            self.status_text_current.plain = f"Current Step: {step}"
        elif isinstance(event, CompleteEvent):
            self.total_units = event.unit_count
            self.words = event.words
            self.status_text_current.plain = "Current Step: Complete"
        elif isinstance(event, ErrorEvent):
            self.status_text_current.plain = f"Current Step: Failed ({event.error_kind})"

        total = f"/{self.total_units}" if self.total_units else ""
        gaps = f" ({self.gaps} gap(s))" if self.gaps else ""
        self.status_text_units.plain = f"Units: {self.units_done}{total}{gaps}"
        self.status_text_words.plain = f"Words Generated: {self.words:,}"
        elapsed_seconds = time.time() - self.run_start_time if self.run_start_time else 0
        self.status_text_elapsed_time.plain = (
            f"Elapsed Time: {time.strftime('%H:%M:%S', time.gmtime(elapsed_seconds))}"
        )
