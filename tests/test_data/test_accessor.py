"""Tests for accessors and page merging."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import pytest
from pydantic import BaseModel

from apiflight.client.endpoint import Endpoint
from apiflight.data.accessor import Accessor, merge_page, page_items
from apiflight.exceptions import DecodeError


class Page(BaseModel):
    items: list[int]
    next_cursor: Optional[str] = None


@dataclass
class DataPage:
    items: list[str] = field(default_factory=list)
    total: int = 0


class PlainPage:
    def __init__(self, items, cursor):
        self.items = items
        self.cursor = cursor


class TestAccessor:
    def test_post_actions_become_tuple(self) -> None:
        action = lambda service: None  # noqa: E731
        accessor = Accessor(Endpoint("https://api.example.com/a"), post_actions=[action])
        assert accessor.post_actions == (action,)

    def test_with_endpoint_keeps_metadata(self) -> None:
        accessor = Accessor(Endpoint("https://api.example.com/a"), cache_id="a")
        other = accessor.with_endpoint(Endpoint("https://api.example.com/b"))
        assert other.cache_id == "a"
        assert other.endpoint.url == "https://api.example.com/b"
        assert accessor.endpoint.url == "https://api.example.com/a"


class TestMergePage:
    def test_pydantic(self) -> None:
        merged = merge_page(Page(items=[1, 2], next_cursor="c1"), Page(items=[3], next_cursor="c2"))
        assert merged == Page(items=[1, 2, 3], next_cursor="c2")

    def test_mapping(self) -> None:
        merged = merge_page({"items": ["a"], "cursor": "c1"}, {"items": ["b"], "cursor": None})
        assert merged == {"items": ["a", "b"], "cursor": None}

    def test_dataclass(self) -> None:
        merged = merge_page(DataPage(["a"], 1), DataPage(["b"], 2))
        assert merged == DataPage(["a", "b"], 2)

    def test_plain_object(self) -> None:
        page = PlainPage([2], "next")
        merged = merge_page(PlainPage([1], "first"), page)
        assert merged.items == [1, 2]
        assert merged.cursor == "next"
        assert page.items == [2]

    def test_empty_page(self) -> None:
        assert merge_page({"items": [1]}, {"items": []}) == {"items": [1]}

    def test_value_without_items(self) -> None:
        with pytest.raises(DecodeError):
            merge_page({"items": [1]}, {"results": [2]})

    def test_string_items_rejected(self) -> None:
        with pytest.raises(DecodeError):
            page_items({"items": "abc"})
