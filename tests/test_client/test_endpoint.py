"""Tests for Endpoint request building and canonical request keys."""

from __future__ import annotations

import base64
import json

import pytest
from pydantic import BaseModel

from apiflight.client.endpoint import Endpoint, local_timezone_name
from apiflight.exceptions import EncodingError, MalformedRequestError
from apiflight.models import HTTPMethod


class Album(BaseModel):
    title: str
    year: int


def _make_endpoint(**kwargs) -> Endpoint:
    kwargs.setdefault("timezone", "UTC")
    return Endpoint("https://api.example.com/albums", **kwargs)


# ------------------------------------------------------------------ #
# Construction
# ------------------------------------------------------------------ #


class TestConstruction:
    def test_defaults(self) -> None:
        endpoint = Endpoint("https://api.example.com/albums")
        assert endpoint.method is HTTPMethod.GET
        assert endpoint.headers == {}
        assert endpoint.query_parameters is None
        assert endpoint.interceptors == ()

    def test_method_string_is_normalised(self) -> None:
        assert _make_endpoint(method="patch").method is HTTPMethod.PATCH

    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(MalformedRequestError, match="FETCH"):
            _make_endpoint(method="FETCH")

    def test_headers_are_copied(self) -> None:
        headers = {"X-Trace": "1"}
        endpoint = _make_endpoint(headers=headers)
        headers["X-Trace"] = "2"
        assert endpoint.headers == {"X-Trace": "1"}


# ------------------------------------------------------------------ #
# Derived copies
# ------------------------------------------------------------------ #


class TestDerivedCopies:
    def test_with_header_leaves_original_untouched(self) -> None:
        original = _make_endpoint()
        updated = original.with_header("Authorization", "Bearer t")
        assert updated.headers == {"Authorization": "Bearer t"}
        assert original.headers == {}

    def test_with_query_parameter_appends(self) -> None:
        original = _make_endpoint(query_parameters=[("limit", "20")])
        updated = original.with_query_parameter("cursor", "c1")
        assert updated.query_parameters == (("limit", "20"), ("cursor", "c1"))
        assert original.query_parameters == (("limit", "20"),)

    def test_replace(self) -> None:
        endpoint = _make_endpoint().replace(method="DELETE")
        assert endpoint.method is HTTPMethod.DELETE


# ------------------------------------------------------------------ #
# URL resolution
# ------------------------------------------------------------------ #


class TestResolveUrl:
    def test_query_parameters_keep_order(self) -> None:
        endpoint = _make_endpoint(query_parameters=[("b", "2"), ("a", "1")])
        assert str(endpoint.resolve_url()) == "https://api.example.com/albums?b=2&a=1"

    def test_existing_query_kept_without_parameters(self) -> None:
        endpoint = Endpoint("https://api.example.com/albums?limit=5")
        assert endpoint.resolve_url().params["limit"] == "5"

    def test_parameters_replace_existing_query(self) -> None:
        endpoint = Endpoint(
            "https://api.example.com/albums?limit=5", query_parameters=[("page", "2")]
        )
        url = endpoint.resolve_url()
        assert "limit" not in url.params
        assert url.params["page"] == "2"

    def test_empty_parameter_list_clears_query(self) -> None:
        endpoint = Endpoint("https://api.example.com/albums?limit=5", query_parameters=[])
        assert str(endpoint.resolve_url()) == "https://api.example.com/albums"

    def test_values_are_percent_encoded(self) -> None:
        endpoint = _make_endpoint(query_parameters=[("q", "a b&c")])
        assert endpoint.resolve_url().params["q"] == "a b&c"
        assert "a b&c" not in str(endpoint.resolve_url())

    def test_relative_url_rejected(self) -> None:
        with pytest.raises(MalformedRequestError):
            Endpoint("albums").resolve_url()


# ------------------------------------------------------------------ #
# Headers and body
# ------------------------------------------------------------------ #


class TestHeadersAndBody:
    def test_default_headers_come_first(self) -> None:
        endpoint = _make_endpoint(headers={"X-Trace": "abc"})
        assert endpoint.header_items() == [
            ("Content-Type", "application/json"),
            ("Timezone", "UTC"),
            ("X-Trace", "abc"),
        ]

    def test_caller_header_duplicates_default(self) -> None:
        endpoint = _make_endpoint(headers={"Content-Type": "text/plain"})

        request = endpoint.build()

        assert request.headers.get_list("Content-Type") == ["application/json", "text/plain"]
        assert "Content-Type=application/json&Content-Type=text/plain" in endpoint.request_key

    def test_timezone_defaults_to_local_zone(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TZ", "Europe/Berlin")
        endpoint = Endpoint("https://api.example.com/albums")
        assert ("Timezone", "Europe/Berlin") in endpoint.header_items()

    def test_no_body(self) -> None:
        assert _make_endpoint().encode_body() is None

    def test_body_parameters_encoded_as_json(self) -> None:
        endpoint = _make_endpoint(body_parameters={"title": "Blue"})
        assert json.loads(endpoint.encode_body()) == {"title": "Blue"}

    def test_typed_body_overrides_body_parameters(self) -> None:
        endpoint = _make_endpoint(
            body=Album(title="Blue", year=1971), body_parameters={"ignored": True}
        )
        assert json.loads(endpoint.encode_body()) == {"title": "Blue", "year": 1971}

    def test_unencodable_body_parameters(self) -> None:
        endpoint = _make_endpoint(body_parameters={"when": object()})
        with pytest.raises(EncodingError):
            endpoint.encode_body()

    def test_build(self) -> None:
        request = _make_endpoint(method="POST", body_parameters={"a": 1}).build()
        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Timezone"] == "UTC"
        assert json.loads(request.content) == {"a": 1}


# ------------------------------------------------------------------ #
# Canonical request key
# ------------------------------------------------------------------ #


class TestRequestKey:
    def test_format(self) -> None:
        key = _make_endpoint(body_parameters={"a": 1}).request_key
        body = base64.b64encode(b'{"a": 1}').decode("ascii")
        assert key == (
            "GET|https://api.example.com/albums|"
            f"Content-Type=application/json&Timezone=UTC|{body}"
        )

    def test_header_order_does_not_matter(self) -> None:
        first = _make_endpoint(headers={"A": "1", "B": "2"})
        second = _make_endpoint(headers={"B": "2", "A": "1"})
        assert first.request_key == second.request_key

    def test_differs_by_method_query_and_body(self) -> None:
        base = _make_endpoint()
        keys = {
            base.request_key,
            base.replace(method="POST").request_key,
            base.with_query_parameter("page", "2").request_key,
            base.replace(body_parameters={"a": 1}).request_key,
        }
        assert len(keys) == 4

    def test_none_for_malformed_request(self) -> None:
        assert Endpoint("not a url").request_key is None


class TestLocalTimezoneName:
    def test_uses_tz_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TZ", "America/Chicago")
        assert local_timezone_name() == "America/Chicago"

    def test_ignores_tz_file_reference(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TZ", ":/etc/localtime")
        assert not local_timezone_name().startswith(":")
