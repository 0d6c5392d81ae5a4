"""
Interactive review of failed snapshots

When a comparison fails and a received image was stored, the user is
asked (twice, each question bounded by a timeout) whether to view the diff
and whether to promote the received image to the new baseline.

A timeout counts as "no". Every prompt is stopped once its race is decided
so no stdin listener outlives it.
"""

import asyncio
import json
import logging
import os
import platform
import shutil
import subprocess
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Protocol, TextIO

from rich.console import Console
from rich.markup import escape

from image_snapshot.core.paths import ArtifactStorage
from image_snapshot.snapshot.models import ReviewOutcome

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_TIMEOUT = 60.0

NOTIFICATION_TITLE = "Snapshot test failed!"


class PromptAnswer(str, Enum):
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    TIMED_OUT = "timed_out"


class Prompt(Protocol):
    """A cancellable yes/no question"""

    async def run(self) -> bool: ...

    def stop(self) -> None: ...


def parse_answer(raw: str) -> bool:
    return raw.strip().lower() in ("y", "yes")


class ConfirmPrompt:
    """
    Yes/no prompt reading a single line from stdin.

    The answer is read through the event loop's reader callbacks, so the
    prompt can be abandoned at any time; ``stop()`` unregisters the reader
    and cancels the pending answer. Anything but "y"/"yes" is a no.
    """

    def __init__(
        self,
        message: str,
        console: Console | None = None,
        stream: TextIO | None = None,
    ):
        self.message = message
        self.console = console or Console(stderr=True)
        self.stream = stream or sys.stdin
        self._loop: asyncio.AbstractEventLoop | None = None
        self._answer: asyncio.Future[bool] | None = None
        self._fd: int | None = None

    async def run(self) -> bool:
        self._loop = asyncio.get_running_loop()
        self._answer = self._loop.create_future()
        self._fd = self.stream.fileno()

        self.console.print(
            f"[bold cyan]?[/bold cyan] {escape(self.message)} [dim](y/N)[/dim] ",
            end="",
        )
        self._loop.add_reader(self._fd, self._on_readable)
        try:
            return await self._answer
        finally:
            self.stop()

    def _on_readable(self) -> None:
        if self._fd is None:
            return
        data = os.read(self._fd, 1024)
        if self._answer is not None and not self._answer.done():
            self._answer.set_result(parse_answer(data.decode(errors="replace")))

    def stop(self) -> None:
        if self._fd is not None and self._loop is not None:
            self._loop.remove_reader(self._fd)
            self._fd = None
        if self._answer is not None and not self._answer.done():
            self._answer.cancel()


async def race_prompt(prompt: Prompt, timeout: float) -> PromptAnswer:
    """
    Race a prompt against a timer; the first to finish wins.

    The prompt is stopped whichever side wins.

    Args:
        prompt: Prompt to run
        timeout: Seconds to wait for an answer

    Returns:
        PromptAnswer (a timeout is reported separately from a "no")
    """
    try:
        confirmed = await asyncio.wait_for(prompt.run(), timeout)
    except asyncio.TimeoutError:
        logger.info(f"No answer within {timeout:.0f}s, treating as declined")
        return PromptAnswer.TIMED_OUT
    finally:
        prompt.stop()
    return PromptAnswer.CONFIRMED if confirmed else PromptAnswer.DECLINED


def notify_failure(title: str, message: str) -> None:
    """
    Send a desktop notification (best effort, never blocks).

    Args:
        title: Notification title
        message: Notification body
    """
    system = platform.system()
    if system == "Linux" and shutil.which("notify-send"):
        cmd = ["notify-send", title, message]
    elif system == "Darwin":
        script = (
            f"display notification {json.dumps(message)} "
            f"with title {json.dumps(title)} sound name \"default\""
        )
        cmd = ["osascript", "-e", script]
    else:
        logger.debug(f"Desktop notifications not supported on {system}")
        return

    subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


def open_in_viewer(path: Path) -> None:
    """Open a file with the platform's default viewer (best effort)"""
    system = platform.system()
    if system == "Windows":
        os.startfile(str(path))  # type: ignore[attr-defined]
        return
    opener = "open" if system == "Darwin" else "xdg-open"
    subprocess.Popen([opener, str(path)], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


def _best_effort(action: Callable[..., Any], *args: Any) -> None:
    try:
        action(*args)
    except Exception as e:
        logger.debug(f"Best-effort action {getattr(action, '__name__', action)} failed: {e}")


class ReviewWorkflow:
    """
    Two-step interactive review: view the diff, then update the baseline.

    Example:
        workflow = ReviewWorkflow(timeout=60)
        outcome = await workflow.run("header-snap", "TestHeader::test_logo", storage)
        if outcome is ReviewOutcome.UPDATED:
            ...
    """

    def __init__(
        self,
        prompt_factory: Callable[[str], Prompt] = ConfirmPrompt,
        notifier: Callable[[str, str], None] = notify_failure,
        opener: Callable[[Path], None] = open_in_viewer,
        timeout: float = DEFAULT_PROMPT_TIMEOUT,
        console: Console | None = None,
    ):
        self.prompt_factory = prompt_factory
        self.notifier = notifier
        self.opener = opener
        self.timeout = timeout
        self.console = console or Console(stderr=True)

    async def run(
        self,
        identifier: str,
        test_name: str,
        storage: ArtifactStorage,
    ) -> ReviewOutcome:
        """
        Run the review loop for one failed snapshot.

        Args:
            identifier: Snapshot identifier
            test_name: Test name shown to the user
            storage: Artifact layout holding the received and diff images

        Returns:
            ReviewOutcome; UPDATED means the baseline was replaced
        """
        _best_effort(self.notifier, NOTIFICATION_TITLE, f"Received diff for {test_name}")
        self.console.print(f"\n[black on cyan]Received difference for {escape(test_name)}[/]")

        view = await race_prompt(
            self.prompt_factory("Do you want to view the diff in your browser?"),
            self.timeout,
        )
        if view is PromptAnswer.CONFIRMED:
            _best_effort(self.opener, storage.diff_path(identifier))

        update = await race_prompt(
            self.prompt_factory(f"Do you want to update {identifier}?"),
            self.timeout,
        )
        logger.debug(f"Review of '{identifier}': view={view.value}, update={update.value}")

        if update is PromptAnswer.CONFIRMED:
            try:
                storage.promote(identifier)
            except OSError as e:
                logger.error(f"Could not update baseline for '{identifier}': {e}")
                update = PromptAnswer.DECLINED
            else:
                return ReviewOutcome.UPDATED
        if view is PromptAnswer.CONFIRMED:
            return ReviewOutcome.VIEWED_ONLY
        if update is PromptAnswer.TIMED_OUT:
            return ReviewOutcome.TIMED_OUT
        return ReviewOutcome.DECLINED
