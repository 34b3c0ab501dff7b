import uuid

import pytest
from httpx import AsyncClient
from jose import JWTError

from fakes import make_token
from shared.auth.config import AuthSettings
from shared.auth.dependencies import decode_token, payload_to_user
from shared.constants import Role
from shared.middleware import REQUEST_ID_HEADER


def test_payload_to_user() -> None:
    user_id = uuid.uuid4()
    user = payload_to_user(
        {"sub": str(user_id), "email": "a@example.com", "roles": ["creator"]},
    )
    assert user.id == user_id
    assert user.email == "a@example.com"
    assert user.roles == [Role.CREATOR]


def test_payload_without_subject() -> None:
    with pytest.raises(ValueError):
        payload_to_user({"email": "a@example.com"})


def test_decode_round_trip() -> None:
    user_id = uuid.uuid4()
    payload = decode_token(make_token(user_id), AuthSettings())
    assert payload["sub"] == str(user_id)


def test_decode_rejects_wrong_issuer() -> None:
    with pytest.raises(JWTError):
        decode_token(make_token(uuid.uuid4(), iss="elsewhere"), AuthSettings())


@pytest.mark.asyncio
async def test_request_id_is_echoed(async_client: AsyncClient) -> None:
    response = await async_client.get("/health", headers={REQUEST_ID_HEADER: "abc123"})
    assert response.headers[REQUEST_ID_HEADER] == "abc123"


@pytest.mark.asyncio
async def test_request_id_is_minted(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert len(response.headers[REQUEST_ID_HEADER]) == 32


def test_video_dependencies_export_only_required_guard() -> None:
    from app.video import dependencies

    assert "get_current_user_required" in dependencies.__all__
    assert not hasattr(dependencies, "get_current_user_optional")
