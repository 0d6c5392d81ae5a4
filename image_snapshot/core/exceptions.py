"""
Base exception hierarchy

Provides a consistent exception structure for snapshot matching
with clear error messages and recovery hints.

Only misuse is raised to the caller. Ordinary mismatches and missing
baselines are reported as failing verdicts instead.
"""


class SnapshotError(Exception):
    """
    Base exception for all image snapshot errors

    Attributes:
        message: Error message
        component: Component that raised the error
        recovery_hint: Optional hint for recovery
    """

    def __init__(self, message: str, component: str = "", recovery_hint: str = ""):
        self.component = component
        self.recovery_hint = recovery_hint
        super().__init__(message)

    def __str__(self) -> str:
        msg = super().__str__()
        if self.component:
            msg = f"[{self.component}] {msg}"
        if self.recovery_hint:
            msg += f"\nRecovery: {self.recovery_hint}"
        return msg


class ConfigurationError(SnapshotError):
    """Matcher misuse detected before any comparison work"""

    def __init__(self, message: str, recovery_hint: str = ""):
        super().__init__(message, component="Configuration", recovery_hint=recovery_hint)


class ComparisonEngineError(SnapshotError):
    """The image comparison engine crashed (distinct from a pixel mismatch)"""

    def __init__(self, message: str, recovery_hint: str = ""):
        super().__init__(
            message,
            component="ComparisonEngine",
            recovery_hint=recovery_hint or "Check that both images are valid PNG files",
        )
