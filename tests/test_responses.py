from __future__ import annotations

import pytest

from vault_pilot.responses import count_items, describe_response, extract_items


@pytest.mark.parametrize(
    "response, expected",
    [
        ([1, 2, 3], [1, 2, 3]),
        ({"data": [1, 2]}, [1, 2]),
        ({"name": "vault"}, []),
        ({"data": "not a list"}, []),
        (None, []),
    ],
)
def test_extract_items_handles_every_shape(response, expected):
    assert extract_items(response) == expected


def test_extract_items_with_custom_key():
    assert extract_items({"userBalances": [{"a": 1}]}, key="userBalances") == [{"a": 1}]


def test_count_items_is_none_for_bare_objects():
    assert count_items({"name": "vault"}) is None
    assert count_items([]) == 0
    assert count_items({"data": [1]}) == 1


def test_describe_response():
    assert describe_response([1, 2]) == "Returned 2 items"
    assert describe_response({"data": []}) == "Returned 0 items"
    assert (
        describe_response({"a": 1, "b": 2, "c": 3, "d": 4, "e": 5, "f": 6})
        == "Response has 6 properties: a, b, c, d, e..."
    )
    assert describe_response({"a": 1}) == "Response has 1 properties: a"
