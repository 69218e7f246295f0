"""Tests for request templates."""

from urllib.parse import unquote

import pytest
from hypothesis import given
from hypothesis import strategies as st

from wirestub.error import ContractError
from wirestub.http import HttpMethod
from wirestub.template import RequestTemplate, expressions


class TestRequestLine:
    """Tests for parsing request lines."""

    def test_method_and_path(self) -> None:
        """Test the method and URI are split off the request line."""
        template = RequestTemplate.from_request_line("GET /orders/{id}")
        assert template.method is HttpMethod.GET
        assert template.uri == "/orders/{id}"
        assert template.decode_slash
        assert not template.resolved

    def test_query_templates(self) -> None:
        """Test query pairs become value templates."""
        template = RequestTemplate.from_request_line("get /orders?limit={limit}&sort=asc")
        assert template.method is HttpMethod.GET
        assert template.queries == {"limit": ["{limit}"], "sort": ["asc"]}

    def test_unknown_method(self) -> None:
        """Test an unknown method is a contract error."""
        with pytest.raises(ContractError, match="HTTP method"):
            RequestTemplate.from_request_line("FETCH /orders")

    def test_variables(self) -> None:
        """Test variables are collected from path, query and headers."""
        template = RequestTemplate.from_request_line("GET /a/{x}?q={y}")
        template.header("X-Trace", "{z}")
        assert template.variables() == {"x", "y", "z"}

    def test_expressions(self) -> None:
        """Test expression names are stripped."""
        assert expressions("/a/{x}/{ y }") == ["x", "y"]


class TestResolve:
    """Tests for expression expansion."""

    def test_path_values_are_percent_encoded(self) -> None:
        """Test path values are encoded but slashes are kept by default."""
        template = RequestTemplate.from_request_line("GET /orders/{id}")
        resolved = template.resolve({"id": "a b/c"})
        assert resolved.uri == "/orders/a%20b/c"
        assert resolved.resolved

    def test_slashes_kept_in_nested_paths(self) -> None:
        """Test a value holding a path expands into several segments."""
        template = RequestTemplate.from_request_line("GET /repos/{path}")
        assert template.resolve({"path": "a/b"}).uri == "/repos/a/b"

    def test_slashes_encoded_without_decode_slash(self) -> None:
        """Test decode_slash=False encodes slashes as %2F."""
        template = RequestTemplate.from_request_line("GET /repos/{path}", decode_slash=False)
        resolved = template.resolve({"path": "a/b c"})
        assert resolved.uri == "/repos/a%2Fb%20c"
        assert not resolved.decode_slash

    def test_resolve_returns_copy(self) -> None:
        """Test resolving leaves the parsed template untouched."""
        template = RequestTemplate.from_request_line("GET /orders/{id}")
        template.resolve({"id": 1})
        assert template.uri == "/orders/{id}"
        assert not template.resolved

    def test_unresolved_query_is_dropped(self) -> None:
        """Test a query expression without a value drops its parameter."""
        template = RequestTemplate.from_request_line("GET /orders?limit={limit}&sort=asc")
        resolved = template.resolve({})
        assert resolved.queries == {"sort": ["asc"]}

    def test_list_values_repeat_query(self) -> None:
        """Test list values repeat the query parameter."""
        template = RequestTemplate.from_request_line("GET /orders?flavor={flavors}")
        resolved = template.resolve({"flavors": ["vanilla", "mint"]})
        assert resolved.url("http://h") == "http://h/orders?flavor=vanilla&flavor=mint"

    def test_booleans_are_lowercase(self) -> None:
        """Test booleans expand as true/false."""
        template = RequestTemplate.from_request_line("GET /orders?paid={paid}")
        assert template.resolve({"paid": True}).queries == {"paid": ["true"]}

    def test_header_expressions(self) -> None:
        """Test header expressions expand and unresolved headers are dropped."""
        template = RequestTemplate.from_request_line("GET /orders")
        template.header("Authorization", "Bearer {token}")
        template.header("X-Optional", "{missing}")
        resolved = template.resolve({"token": "abc"})
        assert resolved.headers == {"Authorization": ["Bearer abc"]}


class TestRequest:
    """Tests for building the final request."""

    def test_base_url_is_prefixed(self) -> None:
        """Test relative URIs are joined to the base URL."""
        template = RequestTemplate.from_request_line("GET /orders").resolve({})
        request = template.request("http://icecream.test/")
        assert request.url == "http://icecream.test/orders"
        assert str(request) == "GET http://icecream.test/orders"

    def test_absolute_uri_is_kept(self) -> None:
        """Test absolute URIs ignore the base URL."""
        template = RequestTemplate.from_request_line("GET https://other.test/x").resolve({})
        assert template.request("http://icecream.test").url == "https://other.test/x"

    def test_query_values_are_encoded(self) -> None:
        """Test query values are percent-encoded."""
        template = RequestTemplate.from_request_line("GET /search?q={q}")
        request = template.resolve({"q": "a&b c"}).request("http://h")
        assert request.url == "http://h/search?q=a%26b%20c"

    def test_unresolved_template_fails(self) -> None:
        """Test an unresolved template cannot become a request."""
        template = RequestTemplate.from_request_line("GET /orders")
        with pytest.raises(ContractError, match="resolved"):
            template.request("http://h")

    def test_header_and_query_removal(self) -> None:
        """Test interceptors can remove headers and query parameters."""
        template = RequestTemplate.from_request_line("GET /orders?x=1").resolve({})
        template.header("X-A", "1").header("X-A")
        template.query("x")
        assert template.headers == {}
        assert template.request("http://h").url == "http://h/orders"

    @given(st.text(min_size=1, max_size=30))
    def test_encoded_slash_stays_in_one_segment(self, value: str) -> None:
        """Without decode_slash any value stays inside one path segment."""
        template = RequestTemplate.from_request_line("GET /items/{v}/tail", decode_slash=False)
        segments = template.resolve({"v": value}).uri.split("/")
        assert segments[:2] == ["", "items"]
        assert segments[-1] == "tail"
        assert len(segments) == 4

    @given(st.text(min_size=1, max_size=30))
    def test_decoded_uri_matches_value(self, value: str) -> None:
        """With decode_slash the expanded path decodes back to the value."""
        template = RequestTemplate.from_request_line("GET /items/{v}/tail")
        assert unquote(template.resolve({"v": value}).uri) == f"/items/{value}/tail"
