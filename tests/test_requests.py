from __future__ import annotations

import pytest

from ember.exceptions import BadRequestError
from ember.requests import Request
from ember.responses import EmptyResponse, JSONResponse, apply_default_security_headers


def test_query_map_decodes_options_and_keeps_repeated_keys() -> None:
    request = Request(method="get", path="/api/Posts", query_string='tag=a&tag=b&title=x&%24options=%7B%22limit%22%3A2%7D')

    assert request.method == "GET"
    assert request.query_map() == {"tag": ["a", "b"], "title": "x", "$options": {"limit": 2}}


def test_query_map_rejects_invalid_options() -> None:
    request = Request(method="GET", path="/", query_string="%24options=%7Bnope")

    with pytest.raises(BadRequestError):
        request.query_map()


def test_query_map_is_a_fresh_copy() -> None:
    request = Request(method="GET", path="/", query_string="a=1")

    request.query_map().pop("a")

    assert request.query_map() == {"a": "1"}


@pytest.mark.asyncio
async def test_json_and_form_bodies() -> None:
    json_request = Request(method="POST", path="/", headers={"Content-Type": "application/json"}, body=b'{"a": 1}')
    form_request = Request(
        method="POST", path="/", headers={"content-type": "application/x-www-form-urlencoded"}, body=b"a=1&b=2"
    )
    empty = Request(method="POST", path="/")

    assert await json_request.json() == {"a": 1}
    assert await form_request.json() == {"a": "1", "b": "2"}
    assert await empty.json() is None


def test_cookies_are_parsed_leniently() -> None:
    assert Request(method="GET", path="/", headers={"cookie": "sid=abc; theme=dark"}).cookies == {
        "sid": "abc",
        "theme": "dark",
    }


def test_json_responses_redact_credentials() -> None:
    response = JSONResponse({"id": "u1", "password": "hash", "accessToken": "t", "posts": [{"password": "x"}]})

    assert response.json() == {"id": "u1", "posts": [{}]}
    assert response.header("Content-Type") == "application/json"


def test_security_headers_do_not_override_existing_values() -> None:
    response = apply_default_security_headers(EmptyResponse().with_headers((("x-frame-options", "SAMEORIGIN"),)))

    assert response.header("x-frame-options") == "SAMEORIGIN"
    assert response.header("x-content-type-options") == "nosniff"
    assert response.status == 404


@pytest.mark.asyncio
async def test_undecodable_form_body_is_bad_request() -> None:
    request = Request(
        method="POST",
        path="/",
        headers={"content-type": "application/x-www-form-urlencoded"},
        body=b"email=\xff\xfe&password=x",
    )

    with pytest.raises(BadRequestError) as excinfo:
        await request.json()
    assert excinfo.value.message == "Malformed form body"
