import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Generator, Optional, Set, Tuple

import pytest
from _pytest.config.exceptions import UsageError

from pytest_xmlrunlistener.api import APIReportPublisher
from pytest_xmlrunlistener.output import DEFAULT_FILE_NAME, resolve_output_file
from pytest_xmlrunlistener.report import write_xml_report
from pytest_xmlrunlistener.results import TestIdentity, TestRunResult
from pytest_xmlrunlistener.types import ReportPublisher, RunListener

if TYPE_CHECKING:
    from _pytest.config import Config, PytestPluginManager  # pragma: no cover
    from _pytest.config.argparsing import Parser  # pragma: no cover
    from _pytest.nodes import Item  # pragma: no cover
    from _pytest.reports import TestReport  # pragma: no cover
    from _pytest.runner import CallInfo  # pragma: no cover
    from _pytest.terminal import TerminalReporter  # pragma: no cover
    from pytest import Session  # pragma: no cover

logger = logging.getLogger(__name__)

ATTRIBUTE_EXCEPTION_TYPE = "xmlrun_exception_type"
ATTRIBUTE_EXCEPTION_MESSAGE = "xmlrun_exception_message"


def pytest_addoption(parser: "Parser", pluginmanager: "PytestPluginManager") -> None:
    group = parser.getgroup("xmlrunlistener", "JUnit XML run report")
    group.addoption(
        "--xmlrun-enabled",
        dest="xmlrunenabled",
        action="store_true",
        help="write a JUnit XML report of the test run; pytest.skip() called inside "
        "a test body is reported as an assumption failure and counts as a failure",
    )
    group.addoption(
        "--xmlrun-result-file",
        dest="xmlrunresultfile",
        default="",
        help=f"preferred report location (default: <rootdir>/{DEFAULT_FILE_NAME})",
    )
    group.addoption(
        "--xmlrun-suite-name",
        dest="xmlrunsuitename",
        default="",
        help="test suite name (default: name of the rootdir)",
    )
    group.addoption(
        "--xmlrun-upload-url",
        dest="xmlrunuploadurl",
        default="",
        help="upload the finished report to this url",
    )
    group.addoption(
        "--xmlrun-upload-token",
        dest="xmlrunuploadtoken",
        default="",
        help="auth token for the report upload",
    )


def pytest_configure(config: "Config") -> None:
    if not config.option.xmlrunenabled:
        return

    if bool(config.option.xmlrunuploadurl) != bool(config.option.xmlrunuploadtoken):
        raise UsageError(
            "--xmlrun-upload-url and --xmlrun-upload-token should be used together"
        )

    # Only collect results and write the report from the main node
    if hasattr(config, "workerinput"):
        return

    output_file = get_output_file(config)
    xml_run_plugin = XmlRunListenerPlugin(
        config=config,
        listener=TestRunResult(),
        output_file=output_file,
        publisher=get_publisher(config),
    )
    config.pluginmanager.register(xml_run_plugin, "xml_run_listener_plugin")
    config.pluginmanager.register(ReportSummaryPlugin(), "xml_run_summary_plugin")


def get_output_file(config: "Config") -> Path:
    return resolve_output_file(
        config.option.xmlrunresultfile,
        fallback_files=(
            config.rootpath / DEFAULT_FILE_NAME,
            Path(tempfile.gettempdir()) / DEFAULT_FILE_NAME,
        ),
    )


def get_publisher(config: "Config") -> Optional[APIReportPublisher]:
    if not config.option.xmlrunuploadurl:
        return None
    return APIReportPublisher(
        url=config.option.xmlrunuploadurl,
        auth_token=config.option.xmlrunuploadtoken,
    )


def identity_from_nodeid(nodeid: str) -> TestIdentity:
    """Map a pytest node id onto a JUnit class name and test name.

    ``tests/test_a.py::TestCls::test_b[x]`` becomes class name
    ``tests.test_a.TestCls`` and name ``test_b[x]``.
    """
    base, bracket, params = nodeid.partition("[")
    path, *names = base.split("::")
    module = path[:-3] if path.endswith(".py") else path
    module = module.replace("\\", "/").replace("/", ".")
    if not names:
        return TestIdentity(class_name=module, name=nodeid)
    return TestIdentity(
        class_name=".".join([module, *names[:-1]]),
        name=names[-1] + bracket + params,
    )


def exception_details(report: "TestReport") -> Tuple[str, Optional[str]]:
    exception_type = getattr(report, ATTRIBUTE_EXCEPTION_TYPE, None)
    if exception_type is not None:
        return exception_type, getattr(report, ATTRIBUTE_EXCEPTION_MESSAGE, None)
    reprcrash = getattr(report.longrepr, "reprcrash", None)
    if reprcrash is None:
        return "", None
    return "", reprcrash.message


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(
    item: "Item", call: "CallInfo[None]"
) -> Generator[None, None, None]:
    report: "TestReport" = (yield).get_result()

    # Runs on xdist workers as well, the attributes travel with the report
    if not item.config.option.xmlrunenabled or call.excinfo is None:
        return
    exc_type = call.excinfo.type
    if exc_type.__module__ == "builtins":
        type_name = exc_type.__qualname__
    else:
        type_name = f"{exc_type.__module__}.{exc_type.__qualname__}"
    setattr(report, ATTRIBUTE_EXCEPTION_TYPE, type_name)
    setattr(report, ATTRIBUTE_EXCEPTION_MESSAGE, str(call.excinfo.value))


class XmlRunListenerPlugin:
    def __init__(
        self,
        config: "Config",
        listener: RunListener,
        output_file: Path,
        publisher: Optional[ReportPublisher] = None,
    ) -> None:
        self.config = config
        self.listener = listener
        self.output_file = output_file
        self.publisher = publisher
        self.failed_nodeids: Set[str] = set()
        logger.debug("XML run report will be written to %s", output_file)

    def store_stats(self) -> None:
        record = self.listener.record
        self.config.xml_run_report_stats = {
            "path": str(self.output_file),
            "tests": record.tests_count,
            "failures": record.failures_count,
            "skipped": record.ignored_count,
        }

    def write_report(self) -> None:
        with open(self.output_file, "wb") as sink:
            write_xml_report(self.listener.record, sink)
        if self.publisher is not None:
            report_id = self.publisher.publish_report(self.output_file.read_bytes())
            self.config.xml_run_report_id = report_id

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtestloop(self, session: "Session") -> Generator[None, None, None]:
        config = session.config
        suite_name = config.option.xmlrunsuitename or config.rootpath.name
        self.listener.run_started(suite_name=suite_name)

        yield

        self.listener.run_finished()
        self.write_report()
        self.store_stats()

    def pytest_runtest_logstart(self, nodeid: str) -> None:
        self.listener.test_started(identity_from_nodeid(nodeid))

    def pytest_runtest_logreport(self, report: "TestReport") -> None:
        identity = identity_from_nodeid(report.nodeid)
        if report.failed:
            # First failed phase wins
            if report.nodeid in self.failed_nodeids:
                logger.debug("%s failed again during %s", identity, report.when)
                return
            self.failed_nodeids.add(report.nodeid)
            exception_type, message = exception_details(report)
            self.listener.test_failure(
                identity,
                exception_type=exception_type,
                message=message,
                stack_trace=report.longreprtext,
            )
        elif report.skipped:
            # pytest.skip() inside the test body aborts it like a failed assumption
            if report.when == "call" and not hasattr(report, "wasxfail"):
                self.listener.test_assumption_failure(identity)
            else:
                self.listener.test_ignored(identity)

    def pytest_runtest_logfinish(self, nodeid: str) -> None:
        self.failed_nodeids.discard(nodeid)
        self.listener.test_finished(identity_from_nodeid(nodeid))


class ReportSummaryPlugin:
    def pytest_terminal_summary(self, terminalreporter: "TerminalReporter") -> None:
        config = terminalreporter.config
        stats = getattr(config, "xml_run_report_stats", None)
        if stats is None:
            return
        terminalreporter.write_sep("-", f"generated xml run report: {stats['path']}")
        terminalreporter.write_line(
            "tests: {tests}, failures: {failures}, skipped: {skipped}".format(**stats)
        )
        report_id = getattr(config, "xml_run_report_id", None)
        if report_id is not None:
            terminalreporter.write_line(f"Report uploaded, Report ID: {report_id}")
