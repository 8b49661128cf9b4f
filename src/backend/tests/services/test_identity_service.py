"""
Tests for the identity and credential service.
"""

from datetime import timedelta

import pytest

from core.exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    BusinessRuleViolation,
    NotFound,
    ValidationError,
)
from core.security import create_access_token
from models.user import UserRole
from services.identity_service import IdentityService, require_admin


class TestRegistration:
    async def test_register_hashes_password(self, db, clock) -> None:
        user = await IdentityService(db, clock=clock).register("alice", "secret123", email="Alice@Example.com")

        assert user.role == UserRole.USER.value
        assert user.hashed_password != "secret123"
        assert user.email == "alice@example.com"
        assert user.is_active

    async def test_duplicate_username(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)
        await identity.register("alice", "secret123")

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await identity.register("alice", "another1")
        assert exc_info.value.error_code == "USERNAME_TAKEN"

    async def test_duplicate_email(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)
        await identity.register("alice", "secret123", email="team@example.com")

        with pytest.raises(BusinessRuleViolation):
            await identity.register("bob", "secret123", email="TEAM@example.com")

    async def test_short_password(self, db, clock) -> None:
        with pytest.raises(ValidationError):
            await IdentityService(db, clock=clock).register("alice", "12345")


class TestAuthentication:
    async def test_login_round_trip(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)
        registered = await identity.register("alice", "secret123")

        user, token = await identity.authenticate("alice", "secret123")

        assert user.id == registered.id
        assert user.last_login_at is not None
        assert await identity.resolve_user(token) == (registered.id, UserRole.USER)

    @pytest.mark.parametrize("username,password", [("alice", "wrong-pass"), ("nobody", "secret123")])
    async def test_bad_credentials(self, db, clock, username: str, password: str) -> None:
        identity = IdentityService(db, clock=clock)
        await identity.register("alice", "secret123")

        with pytest.raises(AuthenticationRequired):
            await identity.authenticate(username, password)

    async def test_inactive_user_cannot_log_in(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)
        user = await identity.register("alice", "secret123")
        await identity.set_active(user.id, False)

        with pytest.raises(AuthenticationRequired):
            await identity.authenticate("alice", "secret123")


class TestResolveUser:
    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    async def test_garbage_tokens(self, db, clock, token) -> None:
        with pytest.raises(AuthenticationRequired):
            await IdentityService(db, clock=clock).resolve_user(token)

    async def test_expired_token(self, db, clock) -> None:
        user = await IdentityService(db, clock=clock).register("alice", "secret123")
        token = create_access_token(user.id, user.role, expires_delta=timedelta(seconds=-5))

        with pytest.raises(AuthenticationRequired):
            await IdentityService(db, clock=clock).resolve_user(token)

    async def test_token_for_unknown_user(self, db, clock) -> None:
        token = create_access_token("ghost", UserRole.ADMIN.value)

        with pytest.raises(AuthenticationRequired):
            await IdentityService(db, clock=clock).resolve_user(token)

    async def test_deactivation_invalidates_existing_tokens(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)
        user = await identity.register("alice", "secret123")
        token = identity.issue_token(user)
        await identity.set_active(user.id, False)

        with pytest.raises(AuthenticationRequired):
            await identity.resolve_user(token)

    async def test_role_comes_from_the_stored_user(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)
        user = await identity.register("alice", "secret123")
        forged = create_access_token(user.id, UserRole.ADMIN.value)

        assert await identity.resolve_user(forged) == (user.id, UserRole.USER)


@pytest.mark.unit
class TestRequireAdmin:
    def test_admin_passes(self) -> None:
        require_admin(UserRole.ADMIN)
        require_admin("ADMIN")

    def test_user_is_denied(self) -> None:
        with pytest.raises(AuthorizationDenied):
            require_admin(UserRole.USER)


class TestBootstrapAdmin:
    async def test_ensure_admin_is_idempotent(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)

        first = await identity.ensure_admin("root", "rootpass")
        second = await identity.ensure_admin("root", "ignored")

        assert first.id == second.id
        assert first.role == UserRole.ADMIN.value


class TestChangeRole:
    async def test_promotion_applies_to_existing_tokens(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)
        user = await identity.register("alice", "secret123")
        token = identity.issue_token(user)

        promoted = await identity.change_role(user.id, UserRole.ADMIN)

        assert promoted.role == UserRole.ADMIN.value
        assert await identity.resolve_user(token) == (user.id, UserRole.ADMIN)

    async def test_demotion(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)
        admin = await identity.register("root", "rootpass", role=UserRole.ADMIN)

        demoted = await identity.change_role(admin.id, "USER")

        assert demoted.role == UserRole.USER.value

    async def test_unknown_user(self, db, clock) -> None:
        with pytest.raises(NotFound):
            await IdentityService(db, clock=clock).change_role("ghost", UserRole.ADMIN)

    async def test_unknown_role(self, db, clock) -> None:
        identity = IdentityService(db, clock=clock)
        user = await identity.register("alice", "secret123")

        with pytest.raises(ValidationError):
            await identity.change_role(user.id, "SUPERUSER")
