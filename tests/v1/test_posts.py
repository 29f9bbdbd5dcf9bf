# mypy: ignore-errors
"""Tests for the post endpoints."""

from __future__ import annotations

import pytest
from fastapi import HTTPException, status

from grove.api.v1.dependencies import raise_for_publishing_error
from grove.core.settings import settings
from grove.services.publishing import (
    InvalidInput,
    NotFound,
    NotPermitted,
    QuotaExceeded,
    StorageUnavailable,
)

ROOT = settings.root_post_id


def _create(client, parent_id, headers, content="Hello\n\nbody", rights="all"):
    return client.post(
        f"/api/v1/posts/{parent_id}/children",
        json={"content": content, "children_rights": rights},
        headers=headers,
    )


def test_create_child(client, test_account, auth_token) -> None:
    response = _create(client, ROOT, auth_token, content="Hello, Grove!\n\nFirst post.")
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["parent_id"] == ROOT
    assert body["title"] == "Hello, Grove!"
    assert body["url"].endswith("_hello_grove")
    assert body["children_rights"] == "all"


def test_create_child_requires_session(client) -> None:
    response = client.post(f"/api/v1/posts/{ROOT}/children", json={"content": "Anonymous"})
    assert response.status_code in {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}


def test_create_child_of_missing_post(client, auth_token) -> None:
    assert _create(client, "missing", auth_token).status_code == status.HTTP_404_NOT_FOUND


def test_children_rights_are_enforced(client, auth_token, other_auth_token) -> None:
    closed = _create(client, ROOT, auth_token, rights="none").json()
    assert _create(client, closed["id"], auth_token).status_code == status.HTTP_403_FORBIDDEN

    own = _create(client, ROOT, auth_token, rights="itself").json()
    assert _create(client, own["id"], auth_token).status_code == status.HTTP_201_CREATED
    assert _create(client, own["id"], other_auth_token).status_code == status.HTTP_403_FORBIDDEN


def test_read_post_by_id_and_url(client, auth_token) -> None:
    created = _create(client, ROOT, auth_token, content="Readable title").json()

    by_id = client.get(f"/api/v1/posts/{created['id']}")
    by_url = client.get(f"/api/v1/posts/{created['url']}")
    assert by_id.status_code == by_url.status_code == status.HTTP_200_OK
    assert by_id.json()["post"] == by_url.json()["post"]
    assert by_id.json()["editable"] is False

    assert client.get(f"/api/v1/posts/{created['id']}", headers=auth_token).json()["editable"] is True
    assert client.get("/api/v1/posts/nothing-here").status_code == status.HTTP_404_NOT_FOUND


def test_read_post_pages_children(client, test_account, auth_token, other_auth_token) -> None:
    parent = _create(client, ROOT, auth_token, content="Parent").json()
    first = _create(client, parent["id"], auth_token, content="First").json()
    second = _create(client, parent["id"], auth_token, content="Second").json()
    client.post(f"/api/v1/posts/{first['id']}/reward", json={"amount": 1}, headers=other_auth_token)

    ranked = client.get(f"/api/v1/posts/{parent['id']}").json()
    assert [child["id"] for child in ranked["children"]] == [first["id"], second["id"]]
    assert ranked["children_count"] == 2
    assert ranked["children"][0]["reward"] == 1

    newest = client.get(f"/api/v1/posts/{parent['id']}", params={"order": "new", "count": 1}).json()
    assert [child["id"] for child in newest["children"]] == [second["id"]]

    response = client.get(f"/api/v1/posts/{parent['id']}", params={"start": -1})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_edit_post(client, auth_token) -> None:
    created = _create(client, ROOT, auth_token, content="Draft").json()

    response = client.put(
        f"/api/v1/posts/{created['id']}",
        json={"secret": "alice:correct horse", "content": "Final", "children_rights": "itself"},
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["content"] == "Final"
    assert response.json()["url"] == created["url"]

    response = client.put(
        f"/api/v1/posts/{created['id']}",
        json={"secret": "bob:battery staple", "content": "Mine now", "children_rights": "all"},
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.put(
        "/api/v1/posts/missing",
        json={"secret": "alice:correct horse", "content": "x", "children_rights": "all"},
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_vote_and_withdraw(client, test_account, auth_token) -> None:
    response = client.post(f"/api/v1/posts/{ROOT}/reward", json={"amount": 1}, headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"post_id": ROOT, "post_reward": 1, "viewer_vote": 1, "gave_reward": 1}

    viewed = client.get(f"/api/v1/posts/{ROOT}", headers=auth_token).json()
    assert viewed["post"]["viewer_vote"] == 1

    response = client.post(f"/api/v1/posts/{ROOT}/reward", json={"amount": 0}, headers=auth_token)
    assert response.json() == {"post_id": ROOT, "post_reward": 0, "viewer_vote": 0, "gave_reward": 0}


def test_self_removal_is_owner_only(client, auth_token, other_auth_token) -> None:
    created = _create(client, ROOT, auth_token).json()

    response = client.post(f"/api/v1/posts/{created['id']}/reward", json={"amount": -100}, headers=other_auth_token)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(f"/api/v1/posts/{created['id']}/reward", json={"amount": -100}, headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["post_reward"] == -100
    assert response.json()["gave_reward"] == 0


def test_vote_quota(client, auth_token, other_auth_token) -> None:
    targets = [_create(client, ROOT, other_auth_token, content=f"Post {i}").json() for i in range(11)]
    for target in targets[:10]:
        response = client.post(f"/api/v1/posts/{target['id']}/reward", json={"amount": -1}, headers=auth_token)
        assert response.status_code == status.HTTP_200_OK

    response = client.post(f"/api/v1/posts/{targets[10]['id']}/reward", json={"amount": -1}, headers=auth_token)
    assert response.status_code == status.HTTP_409_CONFLICT


def test_vote_rejects_unknown_amount(client, auth_token) -> None:
    response = client.post(f"/api/v1/posts/{ROOT}/reward", json={"amount": 2}, headers=auth_token)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_vote_on_missing_post(client, auth_token) -> None:
    response = client.post("/api/v1/posts/missing/reward", json={"amount": 1}, headers=auth_token)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_storage_failure_is_service_unavailable(client, backend, auth_token) -> None:
    backend.failing.add(("children",))
    response = _create(client, ROOT, auth_token)
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (InvalidInput("bad"), status.HTTP_400_BAD_REQUEST),
        (NotPermitted("no"), status.HTTP_403_FORBIDDEN),
        (NotFound("gone"), status.HTTP_404_NOT_FOUND),
        (QuotaExceeded("full"), status.HTTP_409_CONFLICT),
        (StorageUnavailable({"x": "down"}), status.HTTP_503_SERVICE_UNAVAILABLE),
    ],
)
def test_publishing_errors_map_to_status_codes(error, expected) -> None:
    with pytest.raises(HTTPException) as excinfo:
        raise_for_publishing_error(error)
    assert excinfo.value.status_code == expected
