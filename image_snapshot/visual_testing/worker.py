"""
Comparison worker process

Reads a ComparisonRequest as JSON from stdin, runs the engine and writes
the ComparisonResult as JSON to stdout.

Usage:
    python -m image_snapshot.visual_testing.worker < request.json
"""

import logging
import sys

from image_snapshot.core.exceptions import SnapshotError
from image_snapshot.snapshot.models import comparison_result_adapter
from image_snapshot.visual_testing.comparison import ComparisonRequest, diff_image_to_snapshot

logger = logging.getLogger(__name__)


def main() -> int:
    logging.basicConfig(
        level=logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    request = ComparisonRequest.model_validate_json(sys.stdin.read())
    try:
        result = diff_image_to_snapshot(request)
    except (SnapshotError, OSError) as e:
        logger.error(str(e))
        return 1

    sys.stdout.write(comparison_result_adapter.dump_json(result).decode("utf-8"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
