from __future__ import annotations

import json

from tenxcards.responses import created_response, error_response, no_content_response, success_response


def _body(response) -> dict:
    return json.loads(response.body)


def test_success_response_wraps_data_in_envelope() -> None:
    response = success_response({"id": 1})

    payload = _body(response)
    assert response.status_code == 200
    assert response.media_type == "application/json"
    assert payload["data"] == {"id": 1}
    assert payload["meta"]["status"] == "success"
    assert payload["meta"]["timestamp"]


def test_caller_headers_cannot_replace_content_type() -> None:
    response = success_response({}, headers={"Content-Type": "text/plain", "X-Extra": "1"})

    assert response.headers["content-type"] == "application/json"
    assert response.headers["x-extra"] == "1"


def test_created_response_sets_location() -> None:
    response = created_response({"id": 5}, location="/api/collections/5")

    assert response.status_code == 201
    assert response.headers["location"] == "/api/collections/5"
    assert _body(response)["data"] == {"id": 5}


def test_no_content_response_has_empty_body() -> None:
    response = no_content_response(headers={"content-type": "application/json"})

    assert response.status_code == 204
    assert response.body == b""
    assert "content-type" not in response.headers


def test_error_response_envelope() -> None:
    response = error_response(
        "flashcard/not-found",
        "Flashcard 1 not found",
        404,
        details={"flashcardId": 1},
        instance="/api/flashcards/1",
        trace_id="abc",
    )

    payload = _body(response)
    assert response.status_code == 404
    assert payload["error"] == {
        "code": "flashcard/not-found",
        "message": "Flashcard 1 not found",
        "details": {"flashcardId": 1},
        "httpStatus": 404,
        "instance": "/api/flashcards/1",
        "hint": None,
        "docs": None,
        "traceId": "abc",
    }
    assert payload["meta"]["status"] == "error"
