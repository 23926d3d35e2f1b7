import io
import xml.etree.ElementTree as ET
from typing import BinaryIO

from _pytest.junitxml import bin_xml_escape

from pytest_xmlrunlistener.exceptions import PreconditionViolation
from pytest_xmlrunlistener.properties import PROPERTY_NAMES
from pytest_xmlrunlistener.results import Failed, RunRecord, TestRecord

ENCODING_UTF_8 = "utf-8"

TAG_SUITE = "testsuite"
TAG_PROPERTIES = "properties"
TAG_PROPERTY = "property"
TAG_CASE = "testcase"
TAG_FAILURE = "failure"
TAG_SKIPPED = "skipped"

ATTRIBUTE_CLASS = "classname"
ATTRIBUTE_ERRORS = "errors"
ATTRIBUTE_FAILURES = "failures"
ATTRIBUTE_MESSAGE = "message"
ATTRIBUTE_NAME = "name"
ATTRIBUTE_SKIPPED = "skipped"
ATTRIBUTE_TESTS = "tests"
ATTRIBUTE_TIME = "time"
ATTRIBUTE_TIMESTAMP = "timestamp"
ATTRIBUTE_TYPE = "type"
ATTRIBUTE_VALUE = "value"


def sanitize(text: str) -> str:
    """Returns the text in a format that is safe for use in an XML document.

    NUL becomes the literal ``<\\0>``, any other character XML 1.0 forbids is
    replaced by its ``#xNN`` code.
    """
    return bin_xml_escape(text.replace("\0", "<\\0>"))


def format_seconds(millis: int) -> str:
    return str(millis / 1000)


def build_suite_element(run: RunRecord) -> ET.Element:
    suite = ET.Element(TAG_SUITE)
    if run.suite_name:
        suite.set(ATTRIBUTE_NAME, sanitize(run.suite_name))
    suite.set(ATTRIBUTE_TESTS, str(run.tests_count))
    suite.set(ATTRIBUTE_FAILURES, str(run.failures_count))
    # legacy, errors are reported as failures
    suite.set(ATTRIBUTE_ERRORS, "0")
    suite.set(ATTRIBUTE_SKIPPED, str(run.ignored_count))
    suite.set(ATTRIBUTE_TIME, format_seconds(run.elapsed_millis))
    suite.set(ATTRIBUTE_TIMESTAMP, run.start_time_as_iso())

    properties = ET.SubElement(suite, TAG_PROPERTIES)
    for name in PROPERTY_NAMES:
        ET.SubElement(
            properties,
            TAG_PROPERTY,
            {ATTRIBUTE_NAME: name, ATTRIBUTE_VALUE: run.properties.get(name, "")},
        )

    for record in run.records:
        suite.append(build_case_element(record))
    return suite


def build_case_element(record: TestRecord) -> ET.Element:
    case = ET.Element(
        TAG_CASE,
        {
            ATTRIBUTE_NAME: sanitize(record.identity.name),
            ATTRIBUTE_CLASS: sanitize(record.identity.class_name),
            ATTRIBUTE_TIME: format_seconds(record.elapsed_millis),
        },
    )
    outcome = record.outcome
    if isinstance(outcome, Failed):
        failure = ET.SubElement(case, TAG_FAILURE)
        if outcome.exception_type:
            failure.set(ATTRIBUTE_TYPE, sanitize(outcome.exception_type))
        if outcome.message:
            failure.set(ATTRIBUTE_MESSAGE, sanitize(outcome.message))
        failure.text = sanitize(outcome.stack_trace)
    elif outcome.kind in ("assumption_failed", "ignored"):
        ET.SubElement(case, TAG_SKIPPED)
    return case


def write_xml_report(run: RunRecord, sink: BinaryIO) -> None:
    """Serialize a finished run as a JUnit XML document into ``sink``.

    The sink is flushed but left open. Write errors propagate as ``OSError``
    and may leave a truncated document behind.
    """
    if not run.finished:
        raise PreconditionViolation("cannot report a test run that has not finished")
    tree = ET.ElementTree(build_suite_element(run))
    ET.indent(tree, space="  ")
    tree.write(sink, encoding=ENCODING_UTF_8, xml_declaration=True)
    sink.write(b"\n")
    sink.flush()


def render_xml_report(run: RunRecord) -> bytes:
    buffer = io.BytesIO()
    write_xml_report(run, buffer)
    return buffer.getvalue()
