"""
Comparison invoker

Runs the comparison engine either in the test process or in a child
Python process. Both modes return the same results; the child process
keeps image decoding state isolated from test runners that parallelize.
Waiting on the child suspends the caller, so other tasks on the event
loop keep running.
"""

import asyncio
import logging
import sys

from pydantic import ValidationError

from image_snapshot.core.exceptions import ComparisonEngineError
from image_snapshot.snapshot.models import ComparisonResult, comparison_result_adapter
from image_snapshot.visual_testing.comparison import ComparisonRequest, diff_image_to_snapshot

logger = logging.getLogger(__name__)

WORKER_MODULE = "image_snapshot.visual_testing.worker"


def run_in_process(request: ComparisonRequest) -> ComparisonResult:
    """Run the engine in the current process"""
    try:
        return diff_image_to_snapshot(request)
    except ComparisonEngineError:
        raise
    except OSError as e:
        raise ComparisonEngineError(f"Comparison of '{request.snapshot_identifier}' failed: {e}") from e


async def run_in_subprocess(request: ComparisonRequest) -> ComparisonResult:
    """
    Run the engine in a child Python process.

    The request is sent as JSON on stdin and the result read as JSON from
    stdout. The child's lifetime bounds this call.

    Raises:
        ComparisonEngineError: If the child fails or returns garbage
    """
    logger.debug(f"Running comparison worker for '{request.snapshot_identifier}'")

    try:
        process = await asyncio.create_subprocess_exec(
            sys.executable, "-m", WORKER_MODULE,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ComparisonEngineError(f"Could not start comparison worker: {e}") from e

    stdout, stderr = await process.communicate(request.model_dump_json().encode("utf-8"))

    if process.returncode != 0:
        detail = stderr.decode(errors="replace").strip() or "no output"
        raise ComparisonEngineError(
            f"Comparison worker exited with code {process.returncode}: {detail}"
        )

    try:
        return comparison_result_adapter.validate_json(stdout)
    except ValidationError as e:
        raise ComparisonEngineError(f"Comparison worker returned an invalid result: {e}") from e


async def invoke_comparison(request: ComparisonRequest, in_process: bool = False) -> ComparisonResult:
    """
    Compare a received image against its baseline.

    Args:
        request: Comparison request
        in_process: Run in the current process instead of a child process

    Returns:
        ComparisonResult
    """
    if in_process:
        return run_in_process(request)
    return await run_in_subprocess(request)
