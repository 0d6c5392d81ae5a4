"""
Snapshot identifier resolution

Derives the stable name a baseline/received/diff triple is stored under
from the test identity, the per-test invocation counter, retries and an
optional user override.
"""

import logging
import threading
from pathlib import Path

from image_snapshot.core.exceptions import ConfigurationError
from image_snapshot.core.paths import kebab_case
from image_snapshot.snapshot.models import IdentifierFactory

logger = logging.getLogger(__name__)

# pytest node ids separate classes and test functions with "::"
TEST_NAME_DELIMITER = "::"

_RETRY_HINT = "Pass custom_snapshot_identifier that differs for every retry attempt"


class RetryLedger:
    """
    Per-process count of attempts for each snapshot identifier.

    Only consulted while retries are active. Owned by the test session so
    independent scenarios can use independent ledgers.
    """

    def __init__(self):
        self._attempts: dict[str, int] = {}
        self._lock = threading.Lock()

    def increment(self, identifier: str) -> int:
        """Record one more attempt and return the new attempt count"""
        with self._lock:
            attempts = self._attempts.get(identifier, 0) + 1
            self._attempts[identifier] = attempts
            return attempts

    def get(self, identifier: str) -> int:
        with self._lock:
            return self._attempts.get(identifier, 0)

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)


def split_test_name(current_test_name: str) -> tuple[str, str]:
    """
    Split a hierarchical test name into its group and leaf title.

    Every segment but the last forms the describe name, so nested classes
    keep their full path.

    Example:
        >>> split_test_name("TestHeader::TestDark::test_logo")
        ('TestHeader::TestDark', 'test_logo')
        >>> split_test_name("test_logo")
        ('', 'test_logo')
    """
    describe_name, _, leaf_title = current_test_name.rpartition(TEST_NAME_DELIMITER)
    return describe_name, leaf_title


def invocation_key(test_path: Path | str, current_test_name: str) -> str:
    """Session-unique key of a test: its module path plus its hierarchical name"""
    return f"{Path(test_path).resolve()}{TEST_NAME_DELIMITER}{current_test_name}"


def default_identifier(test_path: Path | str, current_test_name: str, counter: int) -> str:
    return kebab_case(f"{Path(test_path).name}-{current_test_name}-{counter}")


def resolve_identifier(
    test_path: Path | str,
    current_test_name: str,
    counter: int,
    retry_times: int = 0,
    custom_identifier: str | IdentifierFactory | None = None,
    ledger: RetryLedger | None = None,
) -> str:
    """
    Resolve the snapshot identifier for one matcher invocation.

    Args:
        test_path: Path of the test module
        current_test_name: Hierarchical test name (``Class::test``)
        counter: Invocation counter of this test (1 for the first assertion)
        retry_times: Number of retries configured for the session
        custom_identifier: Literal identifier or factory callable
        ledger: Retry ledger updated when retries are active

    Returns:
        The snapshot identifier

    Raises:
        ConfigurationError: If retries are active without a unique identifier
    """
    fallback = default_identifier(test_path, current_test_name, counter)

    if callable(custom_identifier):
        custom = custom_identifier(
            test_path=test_path,
            current_test_name=current_test_name,
            counter=counter,
            default_identifier=fallback,
        )
        if retry_times and not custom:
            raise ConfigurationError(
                "A unique custom_snapshot_identifier must be set when retries are used",
                recovery_hint=_RETRY_HINT,
            )
        identifier = custom or fallback
    elif custom_identifier:
        identifier = custom_identifier
    else:
        if retry_times:
            raise ConfigurationError(
                "A unique custom_snapshot_identifier must be set when retries are used",
                recovery_hint=_RETRY_HINT,
            )
        _, leaf_title = split_test_name(current_test_name)
        identifier = f"{kebab_case(leaf_title)}-snap"
        if counter > 1:
            identifier = f"{identifier}-{counter}"

    if retry_times and ledger is not None:
        attempt = ledger.increment(identifier)
        logger.debug(f"Snapshot '{identifier}' attempt {attempt} of {retry_times + 1}")

    return identifier
