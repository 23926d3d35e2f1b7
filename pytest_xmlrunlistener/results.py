import logging
import threading
from datetime import datetime, timedelta
from typing import Annotated, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from pytest_xmlrunlistener.exceptions import PreconditionViolation
from pytest_xmlrunlistener.properties import host_device_properties
from pytest_xmlrunlistener.types import DevicePropertyProvider, OutcomeKind

logger = logging.getLogger(__name__)


class TestIdentity(BaseModel):
    __test__ = False

    model_config = ConfigDict(frozen=True)

    class_name: str
    name: str

    def __str__(self) -> str:
        return f"{self.class_name}::{self.name}"


class Passed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["passed"] = "passed"


class Failed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["failed"] = "failed"
    exception_type: str = ""
    message: Optional[str] = None
    stack_trace: str = ""


class AssumptionFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["assumption_failed"] = "assumption_failed"


class Ignored(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ignored"] = "ignored"


TestOutcome = Annotated[
    Union[Passed, Failed, AssumptionFailed, Ignored],
    Field(discriminator="kind"),
]


class TestRecord(BaseModel):
    __test__ = False

    identity: TestIdentity
    outcome: TestOutcome = Field(default_factory=Passed)
    started_at: datetime
    elapsed_millis: int = Field(default=0, ge=0)


class RunRecord(BaseModel):
    suite_name: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None
    records: List[TestRecord] = Field(default_factory=list)
    properties: Dict[str, str] = Field(default_factory=dict)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    def with_outcome(self, kind: OutcomeKind) -> List[TestRecord]:
        return [record for record in self.records if record.outcome.kind == kind]

    @property
    def tests_count(self) -> int:
        return len(self.records)

    @property
    def failures_count(self) -> int:
        return len(self.with_outcome("failed")) + len(
            self.with_outcome("assumption_failed")
        )

    @property
    def ignored_count(self) -> int:
        return len(self.with_outcome("ignored"))

    @property
    def elapsed_millis(self) -> int:
        if self.finished_at is None:
            return 0
        return _millis_between(self.started_at, self.finished_at)

    def start_time_as_iso(self) -> str:
        return self.started_at.isoformat(timespec="seconds")


def _millis_between(start: datetime, end: datetime) -> int:
    return max(0, (end - start) // timedelta(milliseconds=1))


class TestRunResult:
    """Collects the events of a single test run.

    Methods defined in order of execution. The finalized ``RunRecord`` is
    available through ``record`` once ``run_finished`` was called.
    """

    __test__ = False

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        property_provider: DevicePropertyProvider = host_device_properties,
    ) -> None:
        self.clock = clock
        self.property_provider = property_provider
        self._run: Optional[RunRecord] = None
        self._index: Dict[TestIdentity, TestRecord] = {}
        self._lock = threading.Lock()

    def _active_run(self) -> RunRecord:
        if self._run is None:
            raise PreconditionViolation("test run has not been started")
        if self._run.finished:
            raise PreconditionViolation("test run has already finished")
        return self._run

    def _add_record(self, run: RunRecord, record: TestRecord) -> None:
        previous = self._index.get(record.identity)
        if previous is None:
            run.records.append(record)
        else:
            # Keep first-seen position
            run.records[run.records.index(previous)] = record
        self._index[record.identity] = record

    def _get_or_create(self, identity: TestIdentity, event: str) -> TestRecord:
        run = self._active_run()
        record = self._index.get(identity)
        if record is None:
            if event != "test_ignored":
                logger.warning(
                    "%s for a test that was never started: %s", event, identity
                )
            record = TestRecord(identity=identity, started_at=self.clock())
            self._add_record(run, record)
        return record

    def run_started(self, suite_name: Optional[str] = None) -> None:
        with self._lock:
            if self._run is not None:
                raise PreconditionViolation("test run has already been started")
            self._run = RunRecord(
                suite_name=suite_name or None,
                started_at=self.clock(),
                properties=self.property_provider().as_properties(),
            )

    def test_started(self, identity: TestIdentity) -> None:
        with self._lock:
            run = self._active_run()
            if identity in self._index:
                logger.warning("Test started twice, overwriting: %s", identity)
            record = TestRecord(identity=identity, started_at=self.clock())
            self._add_record(run, record)

    def test_failure(
        self,
        identity: TestIdentity,
        exception_type: str,
        message: Optional[str],
        stack_trace: str,
    ) -> None:
        with self._lock:
            record = self._get_or_create(identity, "test_failure")
            record.outcome = Failed(
                exception_type=exception_type or "",
                message=message or None,
                stack_trace=stack_trace or "",
            )

    def test_assumption_failure(self, identity: TestIdentity) -> None:
        with self._lock:
            record = self._get_or_create(identity, "test_assumption_failure")
            record.outcome = AssumptionFailed()

    def test_ignored(self, identity: TestIdentity) -> None:
        with self._lock:
            record = self._get_or_create(identity, "test_ignored")
            record.outcome = Ignored()

    def test_finished(self, identity: TestIdentity) -> None:
        with self._lock:
            self._active_run()
            record = self._index.get(identity)
            if record is None:
                logger.warning("test_finished for an unknown test: %s", identity)
                return
            record.elapsed_millis = _millis_between(record.started_at, self.clock())

    def run_finished(self) -> None:
        with self._lock:
            run = self._active_run()
            run.finished_at = self.clock()

    @property
    def record(self) -> RunRecord:
        if self._run is None or not self._run.finished:
            raise PreconditionViolation("test run has not finished yet")
        return self._run

    @property
    def suite_name(self) -> Optional[str]:
        return self.record.suite_name

    @property
    def all_tests(self) -> List[TestRecord]:
        return list(self.record.records)

    @property
    def failed_tests(self) -> List[TestRecord]:
        return self.record.with_outcome("failed")

    @property
    def assumption_failed_tests(self) -> List[TestRecord]:
        return self.record.with_outcome("assumption_failed")

    @property
    def ignored_tests(self) -> List[TestRecord]:
        return self.record.with_outcome("ignored")

    @property
    def elapsed_millis(self) -> int:
        return self.record.elapsed_millis

    def start_time_as_iso(self) -> str:
        return self.record.start_time_as_iso()
