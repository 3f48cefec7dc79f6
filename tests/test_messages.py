"""Tests for the jsontalk wire-format models."""

import pytest
from jsontalk.messages import (
    UNKNOWN_ERROR,
    ErrorInfo,
    MessageKind,
    Request,
    Response,
    parse_message,
)


class TestRequest:
    def test_to_dict(self):
        req = Request(service="calc", method="add", params=[1, 2], id=7)
        assert req.to_dict() == {"id": 7, "service": "calc", "method": "add", "params": [1, 2]}

    def test_to_dict_without_id(self):
        d = Request(service="calc", method="add", params=[1]).to_dict()
        assert "id" not in d
        assert d["params"] == [1]

    def test_expects_response(self):
        assert Request("s", "m", id=0).expects_response
        assert not Request("s", "m").expects_response

    def test_from_dict_valid(self):
        raw = {"id": 3, "service": "s", "method": "m", "params": [{"a": [1, None]}, True]}
        req = Request.from_dict(raw)
        assert req.id == 3
        assert req.params == [{"a": [1, None]}, True]

    def test_from_dict_default_params(self):
        req = Request.from_dict({"service": "s", "method": "m"})
        assert req.params == []
        assert req.id is None

    def test_from_dict_missing_service(self):
        with pytest.raises(ValueError, match="service"):
            Request.from_dict({"method": "m", "params": []})

    def test_from_dict_missing_method(self):
        with pytest.raises(ValueError, match="method"):
            Request.from_dict({"service": "s", "params": []})

    def test_from_dict_bad_params(self):
        with pytest.raises(ValueError, match="params"):
            Request.from_dict({"service": "s", "method": "m", "params": {"a": 1}})

    @pytest.mark.parametrize("bad_id", ["1", 1.5, True])
    def test_from_dict_bad_id(self, bad_id):
        with pytest.raises(ValueError, match="id"):
            Request.from_dict({"id": bad_id, "service": "s", "method": "m", "params": []})

    def test_from_dict_not_dict(self):
        with pytest.raises(ValueError, match="JSON object"):
            Request.from_dict("hello")  # type: ignore


class TestResponse:
    def test_success(self):
        d = Response.success(1, {"value": 42}).to_dict()
        assert d == {"id": 1, "result": {"value": 42}}

    def test_success_without_value_omits_result(self):
        assert Response.success(1).to_dict() == {"id": 1}

    def test_falsy_result_is_kept(self):
        assert Response.success(1, 0).to_dict() == {"id": 1, "result": 0}
        assert Response.success(1, False).to_dict() == {"id": 1, "result": False}

    def test_fail(self):
        d = Response.fail(2, ErrorInfo("boom", "trace")).to_dict()
        assert d == {"id": 2, "error": {"message": "boom", "stack": "trace"}}
        assert "result" not in d

    def test_from_dict_error(self):
        resp = Response.from_dict({"id": 4, "error": {"message": "nope"}})
        assert resp.error == ErrorInfo("nope")
        assert resp.result is None

    def test_from_dict_missing_id(self):
        with pytest.raises(ValueError, match="id"):
            Response.from_dict({"result": 1})

    def test_from_dict_bad_error(self):
        with pytest.raises(ValueError, match="error.message"):
            Response.from_dict({"id": 1, "error": {"stack": "x"}})


class TestErrorInfo:
    def test_to_dict_without_stack(self):
        assert ErrorInfo("oops").to_dict() == {"message": "oops"}

    def test_from_exception(self):
        try:
            raise KeyError("missing")
        except KeyError as exc:
            info = ErrorInfo.from_exception(exc)
        assert info.message == "'missing'"
        assert "KeyError" in info.stack
        assert "test_from_exception" in info.stack

    def test_from_exception_without_message(self):
        info = ErrorInfo.from_exception(RuntimeError())
        assert info.message == UNKNOWN_ERROR


class TestParseMessage:
    def test_service_marks_request(self):
        msg = parse_message({"service": "s", "method": "m", "params": []})
        assert isinstance(msg, Request)
        assert msg.kind is MessageKind.REQUEST

    def test_no_service_marks_response(self):
        msg = parse_message({"id": 1, "result": "x"})
        assert isinstance(msg, Response)
        assert msg.kind is MessageKind.RESPONSE

    def test_tagged_message_passes_through(self):
        req = Request("s", "m")
        assert parse_message(req) is req

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_message([1, 2, 3])
