"""
Unit tests for the hello and error handlers.
"""

import logging

import pytest

from helloserver.handlers import (
    handle_hello,
    handle_method_not_allowed,
    handle_not_found,
    handle_server_error,
)
from helloserver.http.response import HTTPResponse


class TestHelloHandler:
    """Tests for handle_hello()."""

    def test_hello_world(self, make_request, sink: HTTPResponse):
        """Test GET /hello writes 200 Hello world."""
        handle_hello(make_request("GET", "/hello"), sink)

        assert sink.ended
        assert sink.status == 200
        assert sink.text == "Hello world"
        assert sink.get_header("Content-Type") == "text/plain; charset=utf-8"
        assert sink.get_header("Connection") == "keep-alive"

    def test_ignores_query_and_headers(self, make_request):
        """Test the response does not depend on the query or headers."""
        plain, fancy = HTTPResponse(), HTTPResponse()

        handle_hello(make_request("GET", "/hello"), plain)
        handle_hello(make_request("GET", "/hello?x=1", {"Accept": "application/json"}), fancy)

        assert plain.to_bytes() == fancy.to_bytes()


class TestNotFoundHandler:
    """Tests for handle_not_found()."""

    def test_not_found(self, make_request, sink: HTTPResponse):
        """Test the 404 response."""
        handle_not_found(make_request("GET", "/missing"), sink)

        assert sink.status == 404
        assert sink.text == "Not Found"
        assert sink.get_header("Allow") is None

    def test_logs_warning(self, make_request, sink: HTTPResponse, caplog):
        """Test a 404 is logged as a warning."""
        with caplog.at_level(logging.WARNING, logger="helloserver"):
            handle_not_found(make_request("DELETE", "/missing"), sink)

        assert "/missing" in caplog.text


class TestMethodNotAllowedHandler:
    """Tests for handle_method_not_allowed()."""

    def test_single_method(self, make_request, sink: HTTPResponse):
        """Test a 405 lists the single allowed method."""
        handle_method_not_allowed(make_request("POST", "/hello"), sink, ["GET"])

        assert sink.status == 405
        assert sink.text == "Method Not Allowed"
        assert sink.get_header("Allow") == "GET"

    def test_several_methods_are_comma_joined(self, make_request, sink: HTTPResponse):
        """Test several allowed methods are comma separated."""
        handle_method_not_allowed(make_request("PUT", "/hello"), sink, ["GET", "HEAD"])
        assert sink.get_header("Allow") == "GET, HEAD"

    @pytest.mark.parametrize("allowed", [None, [], (), "GET", ["GET", ""], [None], [1, 2]])
    def test_invalid_list_defaults_to_get(self, make_request, sink: HTTPResponse, allowed):
        """Test an unusable allowed list falls back to GET."""
        handle_method_not_allowed(make_request("POST", "/hello"), sink, allowed)

        assert sink.status == 405
        assert sink.get_header("Allow") == "GET"

    def test_missing_argument_defaults_to_get(self, make_request, sink: HTTPResponse):
        """Test omitting the allowed list gives GET."""
        handle_method_not_allowed(make_request("POST", "/hello"), sink)
        assert sink.get_header("Allow") == "GET"

    def test_keeps_default_headers(self, make_request, sink: HTTPResponse):
        """Test a 405 still carries the default headers."""
        handle_method_not_allowed(make_request("POST", "/hello"), sink, ["GET"])

        assert sink.get_header("Content-Type") == "text/plain; charset=utf-8"
        assert sink.get_header("Connection") == "keep-alive"


class TestServerErrorHandler:
    """Tests for handle_server_error()."""

    def test_generic_body(self, make_request, sink: HTTPResponse):
        """Test a 500 body never changes with the error."""
        handle_server_error(make_request(), sink, ValueError("db password is hunter2"))

        assert sink.status == 500
        assert sink.text == "Internal Server Error"
        assert b"hunter2" not in sink.to_bytes()

    def test_error_detail_goes_to_log(self, make_request, sink: HTTPResponse, caplog):
        """Test the error detail is logged, not sent."""
        try:
            raise KeyError("secret-key")
        except KeyError as e:
            error = e

        with caplog.at_level(logging.ERROR, logger="helloserver"):
            handle_server_error(make_request(), sink, error)

        assert "secret-key" in caplog.text
        assert any(record.exc_info for record in caplog.records)

    def test_without_error(self, make_request, sink: HTTPResponse):
        """Test a 500 can be written without an error object."""
        handle_server_error(make_request(), sink)

        assert sink.status == 500
        assert sink.text == "Internal Server Error"

    def test_incomplete_request(self, sink: HTTPResponse):
        """Test a request without method or target still gets a 500."""
        handle_server_error(object(), sink, RuntimeError("boom"))

        assert sink.status == 500

    def test_already_ended_sink_is_left_alone(self, make_request, sink: HTTPResponse):
        """Test an ended sink is not overwritten."""
        handle_hello(make_request(), sink)
        handle_server_error(make_request(), sink, RuntimeError("late"))

        assert sink.status == 200
        assert sink.text == "Hello world"
