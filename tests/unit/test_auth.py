"""
Tests for bearer token authentication.
"""
import pytest
from httpx import AsyncClient

from app.core.exceptions import AuthenticationError
from app.core.security import validate_access_token


OTHER_USER_ID = "22222222-2222-4222-8222-222222222222"


class TestValidateAccessToken:
    """Supabase access token validation"""

    def test_valid_token(self, make_token, test_user_id):
        claims = validate_access_token(make_token())
        assert claims["sub"] == test_user_id

    def test_expired_token(self, make_token):
        with pytest.raises(AuthenticationError) as exc:
            validate_access_token(make_token(expires_in=-60))
        assert exc.value.message == "Token expired"

    def test_wrong_audience(self, make_token):
        with pytest.raises(AuthenticationError) as exc:
            validate_access_token(make_token(aud="anon"))
        assert exc.value.message == "Invalid token"

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            validate_access_token("not-a-jwt")

    def test_missing_subject(self, make_token):
        with pytest.raises(AuthenticationError):
            validate_access_token(make_token(sub=""))


class TestProtectedEndpoints:
    """Every user-data endpoint requires a valid bearer token"""

    @pytest.mark.asyncio
    async def test_no_token(self, client: AsyncClient):
        response = await client.get("/circles/joined")

        assert response.status_code == 401
        assert response.json()["message"] == "Authentication required"

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, make_token):
        response = await client.get(
            "/circles/joined", headers={"Authorization": f"Bearer {make_token(expires_in=-60)}"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_scheme(self, client: AsyncClient, make_token):
        response = await client.get("/circles/joined", headers={"Authorization": f"Token {make_token()}"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_queries_run_as_caller(self, client: AsyncClient, make_token, mock_database):
        response = await client.get(
            "/circles/joined", headers={"Authorization": f"Bearer {make_token(OTHER_USER_ID)}"}
        )

        assert response.status_code == 200
        assert mock_database.impersonated == [OTHER_USER_ID]

    @pytest.mark.asyncio
    async def test_health_is_public(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
