"""Tests for local dispatch."""

import anyio
import pytest
from jsontalk.dispatcher import Dispatcher, Service
from jsontalk.errors import MethodNotFoundError
from jsontalk.messages import UNKNOWN_ERROR, Request


class Greeter:
    def hello(self, name):
        return f"hello {name}"

    def _secret(self):
        return "hidden"

    greeting = "not callable"


def make_dispatcher():
    calc = Service()

    @calc.method()
    def add(a, b):
        return a + b

    @calc.method("slow_add")
    async def add_later(a, b):
        await anyio.sleep(0)
        return a + b

    @calc.method()
    def nothing():
        return None

    @calc.method()
    def explode():
        raise ValueError("error message")

    @calc.method()
    def explode_quietly():
        raise ValueError()

    return Dispatcher({"calc": calc, "greeter": Greeter(), "plain": {"id": lambda x: x}})


class TestService:
    def test_decorator_registers_by_name(self):
        svc = Service()

        @svc.method()
        def ping():
            return "pong"

        assert list(svc) == ["ping"]
        assert svc["ping"] is ping
        assert len(svc) == 1

    def test_decorator_custom_name(self):
        svc = Service()

        @svc.method("other")
        def ping():
            return "pong"

        assert "other" in svc
        assert "ping" not in svc


class TestLookup:
    def test_mapping_service(self):
        assert make_dispatcher().lookup("plain", "id")(5) == 5

    def test_object_service(self):
        assert make_dispatcher().lookup("greeter", "hello")("bob") == "hello bob"

    def test_private_attributes_not_published(self):
        with pytest.raises(MethodNotFoundError):
            make_dispatcher().lookup("greeter", "_secret")

    def test_non_callable_attribute_not_published(self):
        assert not make_dispatcher().is_published("greeter", "greeting")

    def test_missing_service(self):
        with pytest.raises(MethodNotFoundError, match="Service not found: nope") as exc_info:
            make_dispatcher().lookup("nope", "x")
        assert exc_info.value.service == "nope"

    def test_missing_method(self):
        with pytest.raises(MethodNotFoundError, match=r"Method not found: calc\.mul"):
            make_dispatcher().lookup("calc", "mul")

    def test_services(self):
        assert make_dispatcher().services == ["calc", "greeter", "plain"]


class TestHandle:
    @pytest.mark.anyio
    async def test_sync_result(self):
        response, error = await make_dispatcher().handle(Request("calc", "add", [2, 3], id=1))
        assert error is None
        assert response.to_dict() == {"id": 1, "result": 5}

    @pytest.mark.anyio
    async def test_async_result(self):
        response, _ = await make_dispatcher().handle(Request("calc", "slow_add", [2, 3], id=1))
        assert response.result == 5

    @pytest.mark.anyio
    async def test_none_result_omitted(self):
        response, _ = await make_dispatcher().handle(Request("calc", "nothing", [], id=9))
        assert response.to_dict() == {"id": 9}

    @pytest.mark.anyio
    async def test_failure_captured(self):
        response, error = await make_dispatcher().handle(Request("calc", "explode", [], id=2))
        assert response.error is error
        assert error.message == "error message"
        assert "ValueError" in error.stack

    @pytest.mark.anyio
    async def test_failure_without_message(self):
        response, _ = await make_dispatcher().handle(Request("calc", "explode_quietly", [], id=2))
        assert response.error.message == UNKNOWN_ERROR

    @pytest.mark.anyio
    async def test_method_not_found_becomes_error_response(self):
        response, _ = await make_dispatcher().handle(Request("calc", "mul", [1], id=3))
        assert response.error.message == "Method not found: calc.mul"

    @pytest.mark.anyio
    async def test_wrong_arity_becomes_error_response(self):
        response, _ = await make_dispatcher().handle(Request("calc", "add", [1], id=3))
        assert "argument" in response.error.message

    @pytest.mark.anyio
    async def test_notification_has_no_response(self):
        response, error = await make_dispatcher().handle(Request("calc", "add", [1, 2]))
        assert response is None
        assert error is None

    @pytest.mark.anyio
    async def test_failed_notification_reports_error_only(self):
        response, error = await make_dispatcher().handle(Request("calc", "explode", []))
        assert response is None
        assert error.message == "error message"
