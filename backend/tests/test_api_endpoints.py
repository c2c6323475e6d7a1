from __future__ import annotations

import pytest

from tenxcards.config import Settings
from tenxcards.error_catalog import ai_errors
from tenxcards.main import create_app
from tenxcards.problem_details import PROBLEM_MEDIA_TYPE, REQUEST_ID_HEADER

SOURCE_TEXT = "Rivers carry sediment from mountains to the sea. " * 25


class _FailingGenerator:
    name = "openrouter"

    async def generate(self, source_text: str, model: str):
        raise ai_errors.creators.RateLimited("Rate limit exceeded")


def _save(client, auth_headers, *cards, **extra):
    body = {"flashcards": list(cards), **extra}
    return client.post("/api/flashcards", json=body, headers=auth_headers)


def test_health_check(client) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers[REQUEST_ID_HEADER]


def test_flashcards_require_authentication(client) -> None:
    missing = client.get("/api/flashcards")
    invalid = client.get("/api/flashcards", headers={"Authorization": "Bearer bogus"})

    assert missing.status_code == 401
    assert missing.headers["content-type"].startswith(PROBLEM_MEDIA_TYPE)
    assert invalid.status_code == 401
    assert invalid.json()["code"] == "auth/unauthorized"


def test_session_cookie_authenticates_too(client, fake_db) -> None:
    client.cookies.set("sb-access-token", "user-token")

    response = client.get("/api/flashcards")

    assert response.status_code == 200
    assert fake_db.scoped_token == "user-token"


def test_flashcard_crud_round_trip(client, auth_headers) -> None:
    created = _save(client, auth_headers, {"front": "What is H2O?", "back": "Water", "source": "manual"})
    assert created.status_code == 201
    assert created.json()["data"]["saved_count"] == 1
    flashcard_id = created.json()["data"]["flashcards"][0]["id"]

    fetched = client.get(f"/api/flashcards/{flashcard_id}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["data"]["front"] == "What is H2O?"

    patched = client.patch(f"/api/flashcards/{flashcard_id}", json={"back": "Dihydrogen monoxide"}, headers=auth_headers)
    assert patched.status_code == 200
    assert patched.json()["data"]["back"] == "Dihydrogen monoxide"

    listed = client.get("/api/flashcards?search=h2o&per_page=10", headers=auth_headers)
    assert listed.json()["data"]["pagination"]["total"] == 1

    deleted = client.delete(f"/api/flashcards/{flashcard_id}", headers=auth_headers)
    assert deleted.status_code == 200
    assert deleted.json()["data"] == {"id": flashcard_id, "message": "Flashcard successfully deleted"}

    gone = client.get(f"/api/flashcards/{flashcard_id}", headers=auth_headers)
    assert gone.status_code == 404
    assert gone.json()["code"] == "flashcard/not-found"
    assert gone.json()["instance"] == f"/api/flashcards/{flashcard_id}"


def test_flashcards_of_other_users_are_not_visible(client, fake_db, other_user_id, auth_headers) -> None:
    foreign = fake_db.add_row(
        "flashcards",
        {"user_id": other_user_id, "front": "Q", "back": "A", "source": "manual", "generation_id": None},
    )

    response = client.get(f"/api/flashcards/{foreign['id']}", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.parametrize("bad_id", ["abc", "0", "-3", "1.5"])
def test_flashcard_ids_must_be_positive_integers(client, auth_headers, bad_id) -> None:
    response = client.get(f"/api/flashcards/{bad_id}", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "flashcard/validation-failed"
    assert list(response.json()["meta"]["fieldErrors"]) == ["flashcard_id"]


def test_invalid_flashcard_payloads_are_rejected(client, auth_headers) -> None:
    empty = _save(client, auth_headers)
    too_long = _save(client, auth_headers, {"front": "x" * 201, "back": "A", "source": "manual"})
    bad_source = _save(client, auth_headers, {"front": "Q", "back": "A", "source": "robot"})

    assert empty.status_code == 400
    assert "flashcards" in empty.json()["meta"]["fieldErrors"]
    assert "flashcards.0.front" in too_long.json()["meta"]["fieldErrors"]
    assert "flashcards.0.source" in bad_source.json()["meta"]["fieldErrors"]


def test_list_query_is_validated(client, auth_headers) -> None:
    response = client.get("/api/flashcards?per_page=500&sort=random", headers=auth_headers)

    assert response.status_code == 400
    assert set(response.json()["meta"]["fieldErrors"]) == {"per_page", "sort"}


def test_flashcards_feature_flag(make_client, auth_headers) -> None:
    client = make_client(DISABLED_FEATURES="flashcards")

    response = client.get("/api/flashcards", headers=auth_headers)

    assert response.status_code == 503
    assert response.json()["code"] == "system/feature-disabled"


def test_collections_endpoints(client, auth_headers) -> None:
    created = client.post("/api/collections", json={"name": "Geography"}, headers=auth_headers)
    assert created.status_code == 201
    collection_id = created.json()["data"]["id"]
    assert created.headers["location"] == f"/api/collections/{collection_id}"

    saved = _save(
        client,
        auth_headers,
        {"front": "Longest river?", "back": "Nile", "source": "manual"},
        collection_id=collection_id,
    )
    assert saved.json()["data"]["collection_id"] == collection_id

    renamed = client.patch(f"/api/collections/{collection_id}", json={"name": "World geography"}, headers=auth_headers)
    assert renamed.json()["data"]["name"] == "World geography"

    listed = client.get("/api/collections", headers=auth_headers)
    assert [item["name"] for item in listed.json()["data"]["collections"]] == ["World geography"]

    deleted = client.delete(f"/api/collections/{collection_id}", headers=auth_headers)
    assert deleted.json()["data"]["message"] == "Collection successfully deleted"

    cards = client.get("/api/flashcards", headers=auth_headers).json()["data"]["flashcards"]
    assert [card["collection_id"] for card in cards] == [None]


def test_collection_names_are_validated(client, auth_headers) -> None:
    response = client.post("/api/collections", json={"name": "   "}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "flashcard/validation-failed"


def test_generation_returns_candidates(client, fake_db, auth_headers) -> None:
    response = client.post("/api/generations", json={"source_text": SOURCE_TEXT}, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "completed"
    assert data["model"] == "gpt-4o-mini"
    assert data["generated_count"] == len(data["flashcards_candidates"]) > 0
    assert fake_db.row("generations", data["generation_id"])["status"] == "completed"


def test_generation_input_is_validated(client, auth_headers) -> None:
    short = client.post("/api/generations", json={"source_text": "too short"}, headers=auth_headers)
    bad_model = client.post(
        "/api/generations",
        json={"source_text": SOURCE_TEXT, "model": "gpt-9"},
        headers=auth_headers,
    )

    assert short.status_code == 400
    assert short.json()["code"] == "generation/validation-failed"
    assert list(short.json()["meta"]["fieldErrors"]) == ["source_text"]
    assert list(bad_model.json()["meta"]["fieldErrors"]) == ["model"]


def test_generations_are_rate_limited_per_user(make_client, auth_headers) -> None:
    client = make_client(GENERATION_LIMIT_PER_MINUTE=1)

    first = client.post("/api/generations", json={"source_text": SOURCE_TEXT}, headers=auth_headers)
    second = client.post("/api/generations", json={"source_text": SOURCE_TEXT}, headers=auth_headers)
    other_user = client.post(
        "/api/generations",
        json={"source_text": SOURCE_TEXT},
        headers={"Authorization": "Bearer other-token"},
    )

    assert first.status_code == 201
    assert second.status_code == 429
    assert second.json()["code"] == "generation/rate-limited"
    assert "retry_after" in second.json()["meta"]
    assert other_user.status_code == 201


def test_provider_failures_are_generation_problems(make_client, fake_db, auth_headers) -> None:
    client = make_client(generator=_FailingGenerator())

    response = client.post("/api/generations", json={"source_text": SOURCE_TEXT}, headers=auth_headers)

    assert response.status_code == 429
    assert response.json()["code"] == "generation/rate-limited"
    assert fake_db.rows("generations")[0]["status"] == "failed"
    assert fake_db.rows("generation_error_logs")[0]["error_code"] == "ai/rate-limited"


def test_mock_fallback_covers_provider_failures(make_client, auth_headers) -> None:
    client = make_client(generator=_FailingGenerator(), GENERATION_MOCK_FALLBACK=True)

    response = client.post("/api/generations", json={"source_text": SOURCE_TEXT}, headers=auth_headers)

    assert response.status_code == 201


def test_generations_feature_flag(make_client, auth_headers) -> None:
    client = make_client(DISABLED_FEATURES="generations")

    response = client.post("/api/generations", json={"source_text": SOURCE_TEXT}, headers=auth_headers)

    assert response.status_code == 503
    assert response.json()["meta"] == {"feature": "generations"}


def test_insecure_production_settings_are_refused() -> None:
    config = Settings(_env_file=None, ENV="production", AUTH_COOKIE_SECURE=False, ALLOWED_ORIGINS="https://10xcards.dev")

    with pytest.raises(RuntimeError, match="AUTH_COOKIE_SECURE"):
        create_app(config)
