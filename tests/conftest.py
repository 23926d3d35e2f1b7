from datetime import datetime, timedelta
from typing import Dict

import pytest

from pytest_xmlrunlistener.properties import DeviceProperties
from pytest_xmlrunlistener.results import TestIdentity, TestRunResult

pytest_plugins = ["pytester"]


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += timedelta(milliseconds=millis)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0))


@pytest.fixture
def device_properties() -> DeviceProperties:
    return DeviceProperties(manufacturer="Acme", model="Rocket 3", api_level="34")


@pytest.fixture
def collector(clock, device_properties) -> TestRunResult:
    return TestRunResult(clock=clock, property_provider=lambda: device_properties)


@pytest.fixture
def identities() -> Dict[str, TestIdentity]:
    return {
        "T1": TestIdentity(class_name="com.example.CalcTest", name="addsNumbers"),
        "T2": TestIdentity(class_name="com.example.CalcTest", name="dividesNumbers"),
        "T3": TestIdentity(class_name="com.example.OtherTest", name="notYet"),
    }


@pytest.fixture
def finished_scenario(collector, clock, identities) -> TestRunResult:
    t1, t2, t3 = identities["T1"], identities["T2"], identities["T3"]
    collector.run_started("com.example.Suite")

    collector.test_started(t1)
    clock.advance(120)
    collector.test_finished(t1)

    collector.test_started(t2)
    clock.advance(35)
    collector.test_failure(
        t2,
        exception_type="AssertionError",
        message="expected 1 got 2",
        stack_trace="at ...\n",
    )
    collector.test_finished(t2)

    collector.test_ignored(t3)

    clock.advance(45)
    collector.run_finished()
    return collector


@pytest.fixture
def auth_token() -> str:
    return "ABCDEF"


@pytest.fixture
def expected_headers(auth_token) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {auth_token}",
        "Content-Type": "application/xml; charset=utf-8",
    }


@pytest.fixture
def testmodule(pytester):
    return pytester.makepyfile(
        test_sample="""
    import pytest


    def test_passes():
        assert 1 + 1 == 2


    def test_fails():
        raise AssertionError("expected 1 got 2")


    @pytest.mark.skip("Skipped!")
    def test_ignored():
        pass


    def test_assumption():
        pytest.skip("not on this platform")


    @pytest.mark.xfail(reason="known bug")
    def test_expected_failure():
        assert False


    class TestGroup:
        def test_method(self):
            pass


    @pytest.mark.parametrize("value", (1, 2))
    def test_param(value):
        assert value


    @pytest.fixture
    def error_at_setup():
        raise RuntimeError("broken fixture")


    def test_error_at_setup(error_at_setup):
        pass
    """
    )


@pytest.fixture
def upload_api(httpserver, expected_headers):
    httpserver.expect_oneshot_request(
        "/reports/", headers=expected_headers, method="POST"
    ).respond_with_json({"report_id": 7})
