"""
Artifact storage for snapshot images.

Resolves the three directory roles used by a snapshot comparison:

- baselines:  <test dir>/__image_snapshots__/<file-slug>/<describe-slug>/<id>.png
- received:   <test dir>/__received_snapshots__/<file-slug>/<describe-slug>/<id><postfix>.png
- diffs:      <test dir>/__diff_output__/<file-slug>/<describe-slug>/<id>-diff.png

The file slug keeps same-named tests of sibling modules apart; the describe
slug is omitted for module-level tests. Custom directories passed in the
comparison config replace the defaults (without any namespace).

Concurrent test processes share these directories; a single identifier's
baseline is assumed to be owned by the test that resolved it for the
duration of a promotion.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

SNAPSHOTS_DIR = "__image_snapshots__"
RECEIVED_DIR = "__received_snapshots__"
DIFF_DIR = "__diff_output__"

DEFAULT_RECEIVED_POSTFIX = "-received"

# Runs of letters (any script) or of digits
_TOKEN_RE = re.compile(r"[^\W\d_]+|\d+")


def _split_case(token: str) -> list[str]:
    """Split a run of letters on lower-to-upper and acronym boundaries"""
    words = []
    start = 0
    for i in range(1, len(token)):
        prev, cur = token[i - 1], token[i]
        following = token[i + 1] if i + 1 < len(token) else ""
        if (prev.islower() and cur.isupper()) or (
            prev.isupper() and cur.isupper() and following.islower()
        ):
            words.append(token[start:i])
            start = i
    words.append(token[start:])
    return words


def kebab_case(value: str) -> str:
    """
    Slugify a string into lower-case words joined by dashes.

    Example:
        >>> kebab_case("test_home.py-TestHeader::test_logo[dark]-1")
        'test-home-py-test-header-test-logo-dark-1'
    """
    words = []
    for token in _TOKEN_RE.findall(value):
        words.extend(_split_case(token))
    return "-".join(word.lower() for word in words)


@dataclass(frozen=True)
class ArtifactStorage:
    """Directory layout for one test's snapshot artifacts"""

    snapshots_dir: Path
    received_dir: Path
    diff_dir: Path
    received_postfix: str = DEFAULT_RECEIVED_POSTFIX

    @classmethod
    def for_test(
        cls,
        test_path: Path | str,
        describe_name: str = "",
        custom_snapshots_dir: Path | str | None = None,
        custom_received_dir: Path | str | None = None,
        custom_diff_dir: Path | str | None = None,
        received_postfix: str = DEFAULT_RECEIVED_POSTFIX,
    ) -> "ArtifactStorage":
        """
        Resolve the storage layout for a test file.

        Args:
            test_path: Path of the test module
            describe_name: Enclosing class/group name, used as a sub-directory
                below the test module's own sub-directory
            custom_snapshots_dir: Override for the baseline directory
            custom_received_dir: Override for the received-image directory
            custom_diff_dir: Override for the diff-image directory
            received_postfix: Suffix appended to received file names

        Returns:
            ArtifactStorage with absolute directory paths
        """
        test_path = Path(test_path).resolve()
        namespace = [kebab_case(test_path.stem), kebab_case(describe_name)]
        namespace = [part for part in namespace if part]

        def _role(custom: Path | str | None, default: str) -> Path:
            if custom:
                return Path(custom)
            return test_path.parent.joinpath(default, *namespace)

        return cls(
            snapshots_dir=_role(custom_snapshots_dir, SNAPSHOTS_DIR),
            received_dir=_role(custom_received_dir, RECEIVED_DIR),
            diff_dir=_role(custom_diff_dir, DIFF_DIR),
            received_postfix=received_postfix,
        )

    def baseline_path(self, identifier: str) -> Path:
        return self.snapshots_dir / f"{identifier}.png"

    def received_path(self, identifier: str) -> Path:
        return self.received_dir / f"{identifier}{self.received_postfix}.png"

    def diff_path(self, identifier: str) -> Path:
        return self.diff_dir / f"{identifier}-diff.png"

    @staticmethod
    def exists(path: Path) -> bool:
        return path.is_file()

    @staticmethod
    def read(path: Path) -> bytes:
        return path.read_bytes()

    @staticmethod
    def write(path: Path, data: bytes) -> None:
        """Write bytes, creating parent directories as needed"""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    @staticmethod
    def remove(path: Path) -> None:
        path.unlink(missing_ok=True)

    def promote(self, identifier: str) -> Path:
        """
        Move the received image onto the baseline path.

        Uses an atomic rename so the baseline is either fully replaced or
        left untouched.

        Args:
            identifier: Snapshot identifier

        Returns:
            Path to the replaced baseline
        """
        source = self.received_path(identifier)
        target = self.baseline_path(identifier)
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(source, target)
        logger.info(f"Promoted received image to baseline: {target}")
        return target
