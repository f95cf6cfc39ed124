"""Tests for the data models, error classification and form validators."""

import pytest
from pydantic import ValidationError

from paperdraft.models.auth_models import AuthErrorCode, AuthResult, ControllerState, RemoteError
from paperdraft.models.enums import AuthEvent
from paperdraft.models.profile import Profile, ProfileUpdate
from paperdraft.services.auth_service import AuthService

from conftest import make_identity, profile_row


class TestRemoteError:

    @pytest.mark.parametrize(
        ("message", "code", "expected"),
        [
            ("Invalid login credentials", None, AuthErrorCode.INVALID_CREDENTIALS),
            ("User already registered", None, AuthErrorCode.EMAIL_ALREADY_EXISTS),
            ("Email not confirmed", None, AuthErrorCode.EMAIL_NOT_CONFIRMED),
            ("Password should be at least 6 characters", "weak_password", AuthErrorCode.VALIDATION_ERROR),
            ("Session from session_id claim in JWT does not exist", "session_not_found", AuthErrorCode.SESSION_ERROR),
            ("Something odd", None, AuthErrorCode.UNKNOWN_ERROR),
        ],
    )
    def test_classify(self, message, code, expected):
        assert RemoteError(message=message, code=code).classify() == expected

    def test_network_errors_classify_as_network(self):
        error = RemoteError(message="Invalid login credentials", is_network=True)
        assert error.classify() == AuthErrorCode.NETWORK_ERROR

    def test_from_exception_reads_provider_attributes(self):
        class FakeAuthApiError(Exception):
            def __init__(self):
                super().__init__("Invalid login credentials")
                self.message = "Invalid login credentials"
                self.status = 400
                self.code = "invalid_credentials"

        error = RemoteError.from_exception(FakeAuthApiError())
        assert error.message == "Invalid login credentials"
        assert error.status == 400
        assert error.code == "invalid_credentials"
        assert error.is_network is False

    def test_from_exception_plain(self):
        error = RemoteError.from_exception(ConnectionError("refused"))
        assert error.message == "refused"
        assert error.status is None
        assert error.is_network is True

    def test_from_exception_without_message_uses_fallback(self):
        assert RemoteError.from_exception(RuntimeError()).message == "Unexpected error"


class TestControllerState:

    def test_initial_is_loading(self):
        assert ControllerState.initial().loading is True

    def test_unauthenticated_is_settled_and_empty(self):
        state = ControllerState.unauthenticated()
        assert state.loading is False
        assert state.is_authenticated is False
        assert state.error is None

    def test_is_authenticated(self):
        state = ControllerState(
            identity=make_identity(),
            profile=Profile.model_validate(profile_row()),
        )
        assert state.is_authenticated


class TestProfileModels:

    def test_secret_is_hidden_in_repr(self):
        profile = Profile.model_validate({**profile_row(), "grok_api_key": "xai-supersecret"})
        assert "xai-supersecret" not in repr(profile)
        assert profile.has_api_key

    def test_empty_secret_is_not_a_key(self):
        profile = Profile.model_validate({**profile_row(), "grok_api_key": ""})
        assert profile.has_api_key is False

    def test_update_drops_blank_secret(self):
        update = ProfileUpdate.model_validate({"full_name": "Ada", "grok_api_key": "  "})
        assert update.grok_api_key is None
        assert update.to_row() == {"full_name": "Ada"}
        assert update.changed_fields() == ["full_name"]

    def test_update_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            ProfileUpdate.model_validate({"email": "x@y.com"})


class TestAuthEvent:

    def test_parse_known_event(self):
        assert AuthEvent.parse("TOKEN_REFRESHED") is AuthEvent.TOKEN_REFRESHED
        assert AuthEvent.TOKEN_REFRESHED == "TOKEN_REFRESHED"

    def test_parse_unknown_event(self):
        assert AuthEvent.parse("SOMETHING_NEW") is None


class TestAuthResult:

    def test_ok_and_fail(self):
        assert AuthResult.ok() == AuthResult(success=True)
        failed = AuthResult.fail("nope")
        assert failed.success is False
        assert failed.error == "nope"
        assert failed.error_code == AuthErrorCode.UNKNOWN_ERROR


class TestFormValidation:

    def test_normalize_email(self):
        assert AuthService.normalize_email("  Ada@Example.COM ") == "ada@example.com"

    @pytest.mark.parametrize("email", ["a@b.com", "first.last@uni.ac.uk"])
    def test_valid_email(self, email):
        assert AuthService.validate_email(email).is_valid

    @pytest.mark.parametrize("email", ["", "   ", "no-at-sign", "a@b", "a b@c.com"])
    def test_invalid_email(self, email):
        assert not AuthService.validate_email(email).is_valid

    def test_password_policy(self):
        assert AuthService.validate_password("secret1").is_valid
        short = AuthService.validate_password("abc")
        assert not short.is_valid
        assert short.error_message == "Password must be at least 6 characters"
        assert AuthService.validate_password("").error_message == "Password is required"

    def test_sign_in_form_collects_field_errors(self):
        result = AuthService.validate_sign_in("bad", "")
        assert not result.is_valid
        assert set(result.field_errors) == {"email", "password"}

    def test_sign_up_password_mismatch(self):
        result = AuthService.validate_sign_up("a@b.com", "secret1", "secret2", "Ada")
        assert not result.is_valid
        assert result.field_errors == {"confirm_password": "Passwords do not match"}

    def test_sign_up_requires_name(self):
        result = AuthService.validate_sign_up("a@b.com", "secret1", "secret1", " ")
        assert result.field_errors == {"full_name": "Full name is required"}

    def test_sign_up_valid(self):
        assert AuthService.validate_sign_up("a@b.com", "secret1", "secret1", "Ada").is_valid

    def test_profile_form(self):
        assert AuthService.validate_profile_form("Ada").is_valid
        assert AuthService.validate_profile_form("Ada", "xai-1234567890").is_valid
        assert "full_name" in AuthService.validate_profile_form("A").field_errors
        assert "grok_api_key" in AuthService.validate_profile_form("Ada", "short").field_errors

    def test_build_profile_update_only_includes_changes(self):
        current = Profile.model_validate(profile_row(full_name="Ada"))

        assert AuthService.build_profile_update(current, "Ada", "") is None

        update = AuthService.build_profile_update(current, "Ada Lovelace", "  ")
        assert update.to_row() == {"full_name": "Ada Lovelace"}

        update = AuthService.build_profile_update(current, "Ada", "xai-1234567890")
        assert update.to_row() == {"grok_api_key": "xai-1234567890"}

    def test_build_profile_update_without_profile(self):
        update = AuthService.build_profile_update(None, "Ada")
        assert update.full_name == "Ada"
