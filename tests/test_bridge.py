from __future__ import annotations

import pytest

from ember.bridge import MODELS_SCRIPT_PATH, generate_models_js
from ember.testing import TestClient
from tests.support import build_app, build_models


def test_generated_client_declares_a_service_per_model() -> None:
    source = generate_models_js(build_models(), "blog")

    assert "angular.module('blog')" in source
    assert "function FireModelUser($http, $q)" in source
    assert "this.endpoint = '/api/Users';" in source
    assert "this.endpoint = '/api/Categories';" not in source
    assert "this.Post = new FireModelPost($http, $q);" in source
    assert "FireModelCollection.prototype.getApps" in source


def test_only_authenticators_get_authorize_and_me() -> None:
    source = generate_models_js(build_models())

    assert "FireModelUser.prototype.authorize" in source
    assert "FireModelUser.prototype.getMe" in source
    assert "FireModelPost.prototype.authorize" not in source


def test_custom_api_prefix() -> None:
    source = generate_models_js(build_models(), api_prefix=("v1", "api"))

    assert "this.endpoint = '/v1/api/Posts';" in source


@pytest.mark.asyncio
async def test_application_serves_generated_client() -> None:
    async with TestClient(build_app()) as client:
        response = await client.get(MODELS_SCRIPT_PATH)

    assert response.status == 200
    assert response.header("content-type").startswith("application/javascript")
    assert b"FireModels" in response.body


@pytest.mark.asyncio
async def test_generated_client_is_rendered_once_at_startup(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []
    original = generate_models_js

    def counting(*args, **kwargs):
        calls.append("render")
        return original(*args, **kwargs)

    monkeypatch.setattr("ember.application.generate_models_js", counting)
    async with TestClient(build_app()) as client:
        first = await client.get(MODELS_SCRIPT_PATH)
        second = await client.get(MODELS_SCRIPT_PATH)

    assert calls == ["render"]
    assert first.body == second.body
