from __future__ import annotations

import pytest

from ember.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BadRequestError,
    HTTPError,
    NotFoundError,
    error_status,
    unauthenticated_error,
)
from ember.http import Status, normalize_verb, reason_phrase
from ember.responses import JSONResponse
from ember.serialization import json_decode, json_encode


def test_unauthenticated_error_depends_on_authenticator_presence() -> None:
    assert isinstance(unauthenticated_error(None), AuthenticationError)
    assert unauthenticated_error(None).status == 401
    assert isinstance(unauthenticated_error({"id": "u1"}), AuthorizationError)
    assert unauthenticated_error({"id": "u1"}).message == "Forbidden"


def test_error_defaults_and_envelope() -> None:
    assert BadRequestError().message == "Bad Request"
    assert NotFoundError().status == 404
    assert HTTPError("Gone", status=410).to_response_body() == b'{"error":"Gone"}'


def test_error_status_honours_status_attributes() -> None:
    class Teapot(Exception):
        status = 418

    class Weird(Exception):
        status = "nope"

    assert error_status(Teapot()) == 418
    assert error_status(Weird()) == 500
    assert error_status(ValueError()) == 500


def test_verbs_and_reasons() -> None:
    assert normalize_verb(" put ") == "PUT"
    assert reason_phrase(Status.UNAUTHORIZED) == "Unauthorized"
    with pytest.raises(ValueError):
        normalize_verb("BREW")


def test_json_responses_redact_credentials_but_plain_encoding_keeps_them() -> None:
    record = {"id": "u1", "email": "ada@example.com", "password": "hash", "accessToken": "tok"}

    assert JSONResponse([record]).json() == [{"id": "u1", "email": "ada@example.com"}]
    assert json_decode(json_encode(record)) == record
