from typing import TYPE_CHECKING, Literal, Optional, Protocol

if TYPE_CHECKING:
    from pytest_xmlrunlistener.properties import DeviceProperties  # pragma: no cover
    from pytest_xmlrunlistener.results import (  # pragma: no cover
        RunRecord,
        TestIdentity,
    )


class RunListener(Protocol):
    """Methods defined in order of execution."""

    def run_started(self, suite_name: Optional[str] = None) -> None:
        pass  # pragma: no cover

    def test_started(self, identity: "TestIdentity") -> None:
        pass  # pragma: no cover

    def test_failure(
        self,
        identity: "TestIdentity",
        exception_type: str,
        message: Optional[str],
        stack_trace: str,
    ) -> None:
        pass  # pragma: no cover

    def test_assumption_failure(self, identity: "TestIdentity") -> None:
        pass  # pragma: no cover

    def test_ignored(self, identity: "TestIdentity") -> None:
        pass  # pragma: no cover

    def test_finished(self, identity: "TestIdentity") -> None:
        pass  # pragma: no cover

    def run_finished(self) -> None:
        pass  # pragma: no cover

    @property
    def record(self) -> "RunRecord":
        pass  # pragma: no cover


class DevicePropertyProvider(Protocol):
    def __call__(self) -> "DeviceProperties":
        pass  # pragma: no cover


class ReportPublisher(Protocol):
    def publish_report(self, report: bytes) -> int:
        pass  # pragma: no cover


OutcomeKind = Literal["passed", "failed", "assumption_failed", "ignored"]
