"""Unit tests for JWTSigner and TokenService (sessions, rotation, revocation)."""

from datetime import timedelta

import jwt
import pytest
from bson import ObjectId
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from config import JWTSettings
from errors import AuthenticationError
from schemas.models.user import UserDoc
from services.token_service import JWTSigner, TokenService
from shared.crypto import hash_token
from shared.datetime_utils import utcnow


@pytest.fixture
def user_id(users_repo):
    doc = UserDoc(
        full_name="Jane Doe",
        email="jane@example.com",
        phone_number="+15550102030",
        password_hash="h",
    ).to_mongo()
    doc["_id"] = ObjectId()
    users_repo.docs[doc["_id"]] = doc
    return doc["_id"]


@pytest.fixture
def tokens(users_repo, jwt_settings):
    # Real clock: PyJWT checks exp/iat against the system time
    return TokenService(users_repo, JWTSigner(jwt_settings), jwt_settings, max_active_sessions=3)


def _rsa_pair() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private, public


# ── JWTSigner ─────────────────────────────────────────────────────────────────


class TestJWTSigner:
    def test_hs256_roundtrip(self, jwt_settings):
        signer = JWTSigner(jwt_settings)
        now = int(utcnow().timestamp())
        token = signer.sign({"sub": "u1", "iat": now, "exp": now + 60})
        claims = signer.verify(token)
        assert claims["sub"] == "u1"
        assert claims["iss"] == "ebanking"
        assert claims["aud"] == "ebanking.api"
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_rs256_when_keys_configured(self):
        private, public = _rsa_pair()
        settings = JWTSettings(jwt_private_key=private, jwt_public_key=public, jwt_secret="")
        signer = JWTSigner(settings)
        now = int(utcnow().timestamp())
        token = signer.sign({"sub": "u1", "iat": now, "exp": now + 60})
        assert jwt.get_unverified_header(token)["alg"] == "RS256"
        assert signer.verify(token)["sub"] == "u1"

    def test_requires_some_key(self):
        with pytest.raises(RuntimeError):
            JWTSigner(JWTSettings(jwt_secret="", jwt_private_key="", jwt_public_key=""))

    def test_wrong_audience_rejected(self, jwt_settings):
        now = int(utcnow().timestamp())
        token = jwt.encode(
            {"sub": "u1", "iat": now, "exp": now + 60, "iss": "ebanking", "aud": "someone-else"},
            jwt_settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            JWTSigner(jwt_settings).verify(token)


# ── Access tokens ─────────────────────────────────────────────────────────────


class TestAccessTokens:
    def test_claims(self, tokens, user_id):
        claims = tokens.verify_access(tokens.create_access_token(user_id))
        assert claims["sub"] == str(user_id)
        assert claims["type"] == "access"
        assert claims["amr"] == ["pwd"]
        assert claims["exp"] - claims["iat"] == 900
        assert claims["jti"]

    def test_expired_token(self, users_repo, jwt_settings, user_id):
        past = TokenService(
            users_repo, JWTSigner(jwt_settings), jwt_settings,
            clock=lambda: utcnow() - timedelta(hours=1),
        )
        token = past.create_access_token(user_id)
        with pytest.raises(AuthenticationError, match="expired"):
            past.verify_access(token)

    def test_foreign_signature_rejected(self, tokens, user_id):
        token = tokens.create_access_token(user_id)
        claims = jwt.decode(token, options={"verify_signature": False})
        forged = jwt.encode(claims, "another-secret-that-is-long-enough-for-hs256", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            tokens.verify_access(forged)

    def test_non_access_type_rejected(self, jwt_settings, tokens):
        signer = JWTSigner(jwt_settings)
        now = int(utcnow().timestamp())
        token = signer.sign({"sub": "u1", "iat": now, "exp": now + 60, "type": "refresh"})
        with pytest.raises(AuthenticationError):
            tokens.verify_access(token)

    def test_garbage(self, tokens):
        with pytest.raises(AuthenticationError):
            tokens.verify_access("not.a.jwt")


# ── Sessions ──────────────────────────────────────────────────────────────────


class TestSessions:
    async def test_issue_session_persists_digest_only(self, tokens, users_repo, user_id):
        session = await tokens.issue_session(user_id)
        stored = users_repo.docs[user_id]["active_refresh_tokens"]
        assert stored == [hash_token(session.refresh_token)]
        assert session.token_type == "bearer"
        assert session.expires_in == 900
        assert tokens.verify_access(session.access_token)["sub"] == str(user_id)

    async def test_active_set_is_capped(self, tokens, users_repo, user_id):
        sessions = [await tokens.issue_session(user_id) for _ in range(4)]
        stored = users_repo.docs[user_id]["active_refresh_tokens"]
        assert len(stored) == 3
        assert hash_token(sessions[0].refresh_token) not in stored

    async def test_rotate_swaps_refresh_token(self, tokens, users_repo, user_id):
        first = await tokens.issue_session(user_id)
        user, second = await tokens.rotate(first.refresh_token)

        assert user.id == user_id
        stored = users_repo.docs[user_id]["active_refresh_tokens"]
        assert hash_token(first.refresh_token) not in stored
        assert hash_token(second.refresh_token) in stored

    async def test_rotated_token_cannot_be_reused(self, tokens, user_id):
        first = await tokens.issue_session(user_id)
        await tokens.rotate(first.refresh_token)
        with pytest.raises(AuthenticationError):
            await tokens.rotate(first.refresh_token)

    @pytest.mark.parametrize("token", ["", "unknown-token"])
    async def test_rotate_unknown(self, tokens, token):
        with pytest.raises(AuthenticationError):
            await tokens.rotate(token)

    async def test_revoke_is_idempotent(self, tokens, users_repo, user_id):
        session = await tokens.issue_session(user_id)
        assert await tokens.revoke(user_id, session.refresh_token) is True
        assert await tokens.revoke(user_id, session.refresh_token) is False
        assert users_repo.docs[user_id]["active_refresh_tokens"] == []

    async def test_revoke_leaves_other_sessions(self, tokens, users_repo, user_id):
        a = await tokens.issue_session(user_id)
        b = await tokens.issue_session(user_id)
        await tokens.revoke(str(user_id), a.refresh_token)
        assert users_repo.docs[user_id]["active_refresh_tokens"] == [hash_token(b.refresh_token)]

    async def test_revoke_all(self, tokens, users_repo, user_id):
        for _ in range(2):
            await tokens.issue_session(user_id)
        await tokens.revoke_all(user_id)
        assert users_repo.docs[user_id]["active_refresh_tokens"] == []
