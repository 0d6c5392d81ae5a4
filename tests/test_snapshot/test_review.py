"""
Tests for the interactive review workflow

Tests prompt races, timeouts, prompt release and baseline promotion.
"""

import asyncio
import io
import os
import sys
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from image_snapshot.core.paths import ArtifactStorage
from image_snapshot.snapshot.models import ReviewOutcome
from image_snapshot.snapshot.review import (
    ConfirmPrompt,
    PromptAnswer,
    ReviewWorkflow,
    parse_answer,
    race_prompt,
)

SHORT_TIMEOUT = 0.05


class FakePrompt:
    """Prompt answering immediately, or never when answer is None"""

    def __init__(self, message: str, answer: bool | None):
        self.message = message
        self.answer = answer
        self.stopped = False

    async def run(self) -> bool:
        if self.answer is None:
            await asyncio.Event().wait()
        return self.answer

    def stop(self) -> None:
        self.stopped = True


class ScriptedPrompts:
    """Prompt factory handing out answers in order"""

    def __init__(self, *answers: bool | None):
        self.answers = list(answers)
        self.prompts: list[FakePrompt] = []

    def __call__(self, message: str) -> FakePrompt:
        prompt = FakePrompt(message, self.answers.pop(0))
        self.prompts.append(prompt)
        return prompt


@pytest.fixture
def storage(tmp_path):
    storage = ArtifactStorage.for_test(tmp_path / "test_home.py", "TestHeader")
    storage.write(storage.baseline_path("logo"), b"baseline")
    storage.write(storage.received_path("logo"), b"received")
    storage.write(storage.diff_path("logo"), b"diff")
    return storage


def _workflow(prompts, notifier=None, opener=None) -> ReviewWorkflow:
    return ReviewWorkflow(
        prompt_factory=prompts,
        notifier=notifier or MagicMock(),
        opener=opener or MagicMock(),
        timeout=SHORT_TIMEOUT,
        console=Console(file=io.StringIO()),
    )


class TestRacePrompt:
    """Test racing a prompt against its timer"""

    @pytest.mark.parametrize(
        "answer,expected",
        [(True, PromptAnswer.CONFIRMED), (False, PromptAnswer.DECLINED), (None, PromptAnswer.TIMED_OUT)],
    )
    def test_answers_and_prompt_is_stopped(self, answer, expected):
        prompt = FakePrompt("Continue?", answer)

        result = asyncio.run(race_prompt(prompt, SHORT_TIMEOUT))

        assert result is expected
        assert prompt.stopped is True

    def test_parse_answer(self):
        assert parse_answer("y\n") is True
        assert parse_answer(" YES ") is True
        assert parse_answer("n") is False
        assert parse_answer("") is False


class TestReviewWorkflow:
    """Test the view/update review sequence"""

    def test_update_confirmed_promotes_received(self, storage):
        """Test that confirming the update replaces the baseline"""
        prompts = ScriptedPrompts(False, True)

        outcome = asyncio.run(_workflow(prompts).run("logo", "TestHeader::test_logo", storage))

        assert outcome is ReviewOutcome.UPDATED
        assert storage.read(storage.baseline_path("logo")) == b"received"
        assert not storage.exists(storage.received_path("logo"))
        assert all(p.stopped for p in prompts.prompts)

    def test_both_prompts_time_out(self, storage):
        """Test that timeouts leave every file untouched"""
        prompts = ScriptedPrompts(None, None)
        opener = MagicMock()

        outcome = asyncio.run(
            _workflow(prompts, opener=opener).run("logo", "TestHeader::test_logo", storage)
        )

        assert outcome is ReviewOutcome.TIMED_OUT
        assert storage.read(storage.baseline_path("logo")) == b"baseline"
        assert storage.read(storage.received_path("logo")) == b"received"
        assert [p.stopped for p in prompts.prompts] == [True, True]
        opener.assert_not_called()

    def test_view_confirmed_update_declined(self, storage):
        prompts = ScriptedPrompts(True, False)
        opener = MagicMock()

        outcome = asyncio.run(
            _workflow(prompts, opener=opener).run("logo", "TestHeader::test_logo", storage)
        )

        assert outcome is ReviewOutcome.VIEWED_ONLY
        opener.assert_called_once_with(storage.diff_path("logo"))
        assert storage.read(storage.baseline_path("logo")) == b"baseline"

    def test_declined(self, storage):
        outcome = asyncio.run(
            _workflow(ScriptedPrompts(False, False)).run("logo", "TestHeader::test_logo", storage)
        )

        assert outcome is ReviewOutcome.DECLINED

    def test_prompt_messages(self, storage):
        prompts = ScriptedPrompts(False, False)

        asyncio.run(_workflow(prompts).run("logo", "TestHeader::test_logo", storage))

        assert prompts.prompts[0].message == "Do you want to view the diff in your browser?"
        assert prompts.prompts[1].message == "Do you want to update logo?"

    def test_notification_sent(self, storage):
        notifier = MagicMock()

        asyncio.run(
            _workflow(ScriptedPrompts(False, False), notifier=notifier).run(
                "logo", "TestHeader::test_logo", storage
            )
        )

        notifier.assert_called_once_with(
            "Snapshot test failed!", "Received diff for TestHeader::test_logo"
        )

    def test_best_effort_failures_are_swallowed(self, storage):
        """Test that notifier and viewer failures never affect the outcome"""
        notifier = MagicMock(side_effect=OSError("no notification daemon"))
        opener = MagicMock(side_effect=OSError("no viewer"))

        outcome = asyncio.run(
            _workflow(ScriptedPrompts(True, True), notifier=notifier, opener=opener).run(
                "logo", "TestHeader::test_logo", storage
            )
        )

        assert outcome is ReviewOutcome.UPDATED

    def test_vanished_received_image_counts_as_declined(self, storage):
        """Test that a failed promotion leaves the baseline and reports no update"""
        storage.remove(storage.received_path("logo"))

        outcome = asyncio.run(
            _workflow(ScriptedPrompts(False, True)).run("logo", "TestHeader::test_logo", storage)
        )

        assert outcome is ReviewOutcome.DECLINED
        assert storage.read(storage.baseline_path("logo")) == b"baseline"

    def test_failed_promotion_after_viewing(self, storage):
        storage.remove(storage.received_path("logo"))

        outcome = asyncio.run(
            _workflow(ScriptedPrompts(True, True)).run("logo", "TestHeader::test_logo", storage)
        )

        assert outcome is ReviewOutcome.VIEWED_ONLY


@pytest.mark.skipif(sys.platform == "win32", reason="Selector loop reader callbacks need POSIX pipes")
class TestConfirmPrompt:
    """Test the stdin prompt against a pipe"""

    def _prompt(self, read_fd: int) -> ConfirmPrompt:
        stream = os.fdopen(read_fd, "r")
        return ConfirmPrompt("Update?", console=Console(file=io.StringIO()), stream=stream)

    def test_reads_answer(self):
        read_fd, write_fd = os.pipe()
        prompt = self._prompt(read_fd)
        os.write(write_fd, b"y\n")

        try:
            answer = asyncio.run(race_prompt(prompt, 1.0))
        finally:
            os.close(write_fd)
            prompt.stream.close()

        assert answer is PromptAnswer.CONFIRMED

    def test_timeout_releases_reader(self):
        """Test that a timed out prompt unregisters its stdin listener"""
        read_fd, write_fd = os.pipe()
        prompt = self._prompt(read_fd)

        try:
            answer = asyncio.run(race_prompt(prompt, SHORT_TIMEOUT))
        finally:
            os.close(write_fd)
            prompt.stream.close()

        assert answer is PromptAnswer.TIMED_OUT
        assert prompt._fd is None

    def test_stop_is_idempotent(self):
        read_fd, write_fd = os.pipe()
        prompt = self._prompt(read_fd)

        prompt.stop()
        prompt.stop()

        os.close(write_fd)
        prompt.stream.close()
