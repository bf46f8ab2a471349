from unittest.mock import MagicMock, patch

import pytest
from webauthn.helpers.exceptions import InvalidAuthenticationResponse

from itemvault.errors import AuthenticationFailure, PasskeyNotRegistered, PasskeyVerificationFailed, ValidationFailure
from itemvault.models.user import User
from itemvault.services.passkey_service import PasskeyService, decode_b64url, encode_b64url
from tests.conftest import assertion_json

CRED_ID = encode_b64url(b"credential-id")
PUBLIC_KEY = encode_b64url(b"public-key")
CHALLENGE = b"challenge-bytes-0123456789abcdef"


def _user(**overrides) -> User:
    data = {"id": 1, "username": "alice", "password_hash": "h"}
    data.update(overrides)
    return User(**data)


def _passkey_user(**overrides) -> User:
    return _user(passkey_credential_id=CRED_ID, passkey_public_key=PUBLIC_KEY, passkey_sign_count=3, **overrides)


class TestBase64Url:
    @pytest.mark.parametrize("data", [b"", b"\x00", b"\xff\xfe\xfd", b"credential-id-with-length-31!!"])
    def test_round_trip(self, data):
        assert decode_b64url(encode_b64url(data)) == data

    def test_unpadded_url_alphabet(self):
        encoded = encode_b64url(b"\xfb\xff")
        assert "=" not in encoded
        assert "+" not in encoded and "/" not in encoded


@patch("itemvault.services.passkey_service.webauthn")
class TestPasskeyRegistration:
    def setup_method(self):
        self.repo = MagicMock()
        self.service = PasskeyService(self.repo, rp_id="localhost", rp_name="Item Vault", origin="http://localhost:3000")

    def test_start_stores_challenge(self, mock_webauthn):
        mock_webauthn.generate_registration_options.return_value = MagicMock(challenge=CHALLENGE)
        mock_webauthn.options_to_json.return_value = '{"challenge": "abc", "rp": {"id": "localhost"}}'

        result = self.service.start_registration(_user())

        assert result == {"challenge": "abc", "rp": {"id": "localhost"}}
        self.repo.update_challenge.assert_called_once_with(1, encode_b64url(CHALLENGE))
        kwargs = mock_webauthn.generate_registration_options.call_args.kwargs
        assert kwargs["rp_id"] == "localhost"
        assert kwargs["user_name"] == "alice"
        assert kwargs["user_id"] == b"1"
        assert kwargs["exclude_credentials"] == []

    def test_start_excludes_existing_credential(self, mock_webauthn):
        mock_webauthn.generate_registration_options.return_value = MagicMock(challenge=CHALLENGE)
        mock_webauthn.options_to_json.return_value = "{}"

        self.service.start_registration(_passkey_user())

        excluded = mock_webauthn.generate_registration_options.call_args.kwargs["exclude_credentials"]
        assert [d.id for d in excluded] == [b"credential-id"]

    def test_finish_without_challenge(self, mock_webauthn):
        with pytest.raises(ValidationFailure):
            self.service.finish_registration(_user(), {"id": "x"})
        mock_webauthn.verify_registration_response.assert_not_called()
        self.repo.update_passkey.assert_not_called()

    def test_finish_success(self, mock_webauthn):
        mock_webauthn.verify_registration_response.return_value = MagicMock(
            credential_id=b"new-cred", credential_public_key=b"new-key", sign_count=0
        )
        user = _user(current_challenge=encode_b64url(CHALLENGE))

        self.service.finish_registration(user, {"id": "x"})

        kwargs = mock_webauthn.verify_registration_response.call_args.kwargs
        assert kwargs["expected_challenge"] == CHALLENGE
        assert kwargs["expected_origin"] == "http://localhost:3000"
        assert kwargs["require_user_verification"] is True
        self.repo.update_challenge.assert_called_once_with(1, None)
        self.repo.update_passkey.assert_called_once_with(1, encode_b64url(b"new-cred"), encode_b64url(b"new-key"), 0)

    def test_finish_failure_clears_challenge(self, mock_webauthn):
        mock_webauthn.verify_registration_response.side_effect = Exception("bad attestation")
        user = _user(current_challenge=encode_b64url(CHALLENGE))

        with pytest.raises(PasskeyVerificationFailed):
            self.service.finish_registration(user, {"id": "x"})

        self.repo.update_challenge.assert_called_once_with(1, None)
        self.repo.update_passkey.assert_not_called()


@patch("itemvault.services.passkey_service.webauthn")
class TestPasskeyAuthentication:
    def setup_method(self):
        self.repo = MagicMock()
        self.service = PasskeyService(self.repo, rp_id="localhost", rp_name="Item Vault", origin="http://localhost:3000")

    def test_start_unknown_user(self, mock_webauthn):
        self.repo.get_by_username.return_value = None
        with pytest.raises(PasskeyNotRegistered):
            self.service.start_authentication("ghost")
        mock_webauthn.generate_authentication_options.assert_not_called()
        self.repo.update_challenge.assert_not_called()

    def test_start_user_without_passkey(self, mock_webauthn):
        self.repo.get_by_username.return_value = _user()
        with pytest.raises(PasskeyNotRegistered):
            self.service.start_authentication("alice")
        self.repo.update_challenge.assert_not_called()

    def test_start_allows_only_stored_credential(self, mock_webauthn):
        self.repo.get_by_username.return_value = _passkey_user()
        mock_webauthn.generate_authentication_options.return_value = MagicMock(challenge=CHALLENGE)
        mock_webauthn.options_to_json.return_value = '{"challenge": "abc"}'

        result = self.service.start_authentication("alice")

        assert result == {"challenge": "abc"}
        allowed = mock_webauthn.generate_authentication_options.call_args.kwargs["allow_credentials"]
        assert [d.id for d in allowed] == [b"credential-id"]
        self.repo.update_challenge.assert_called_once_with(1, encode_b64url(CHALLENGE))

    def test_second_start_overwrites_challenge(self, mock_webauthn):
        self.repo.get_by_username.return_value = _passkey_user()
        mock_webauthn.generate_authentication_options.side_effect = [
            MagicMock(challenge=b"first"),
            MagicMock(challenge=b"second"),
        ]
        mock_webauthn.options_to_json.return_value = "{}"

        self.service.start_authentication("alice")
        self.service.start_authentication("alice")

        assert self.repo.update_challenge.call_args_list[-1].args == (1, encode_b64url(b"second"))

    def test_finish_unknown_user(self, mock_webauthn):
        self.repo.get_by_username.return_value = None
        with pytest.raises(AuthenticationFailure):
            self.service.finish_authentication("ghost", assertion_json())

    def test_finish_without_challenge(self, mock_webauthn):
        self.repo.get_by_username.return_value = _passkey_user()
        with pytest.raises(AuthenticationFailure):
            self.service.finish_authentication("alice", assertion_json())
        mock_webauthn.verify_authentication_response.assert_not_called()

    def test_finish_with_unknown_credential(self, mock_webauthn):
        self.repo.get_by_username.return_value = _passkey_user(current_challenge=encode_b64url(CHALLENGE))
        self.repo.get_by_credential_id.return_value = None
        with pytest.raises(AuthenticationFailure):
            self.service.finish_authentication("alice", assertion_json(encode_b64url(b"someone-else")))
        self.repo.get_by_credential_id.assert_called_once_with(encode_b64url(b"someone-else"))
        mock_webauthn.verify_authentication_response.assert_not_called()
        self.repo.update_challenge.assert_called_once_with(1, None)

    def test_finish_with_credential_of_another_account(self, mock_webauthn):
        self.repo.get_by_username.return_value = _passkey_user(current_challenge=encode_b64url(CHALLENGE))
        other_id = encode_b64url(b"bob-credential")
        self.repo.get_by_credential_id.return_value = User(
            id=2, username="bob", passkey_credential_id=other_id, passkey_public_key=PUBLIC_KEY
        )
        with pytest.raises(AuthenticationFailure):
            self.service.finish_authentication("alice", assertion_json(other_id))
        mock_webauthn.verify_authentication_response.assert_not_called()
        self.repo.update_passkey.assert_not_called()

    def test_finish_success_updates_sign_count(self, mock_webauthn):
        user = _passkey_user(current_challenge=encode_b64url(CHALLENGE))
        self.repo.get_by_username.return_value = user
        self.repo.get_by_credential_id.return_value = _passkey_user()
        mock_webauthn.verify_authentication_response.return_value = MagicMock(new_sign_count=4)

        result = self.service.finish_authentication("alice", assertion_json())

        assert result.passkey_sign_count == 4
        assert result.current_challenge is None
        self.repo.get_by_credential_id.assert_called_once_with(CRED_ID)
        kwargs = mock_webauthn.verify_authentication_response.call_args.kwargs
        assert kwargs["credential"].id == CRED_ID
        assert kwargs["expected_challenge"] == CHALLENGE
        assert kwargs["credential_public_key"] == b"public-key"
        assert kwargs["credential_current_sign_count"] == 3
        self.repo.update_passkey.assert_called_once_with(1, CRED_ID, PUBLIC_KEY, 4)

    def test_finish_verification_failure(self, mock_webauthn):
        self.repo.get_by_username.return_value = _passkey_user(current_challenge=encode_b64url(CHALLENGE))
        self.repo.get_by_credential_id.return_value = _passkey_user()
        mock_webauthn.verify_authentication_response.side_effect = InvalidAuthenticationResponse("bad signature")

        with pytest.raises(AuthenticationFailure):
            self.service.finish_authentication("alice", assertion_json())

        self.repo.update_challenge.assert_called_once_with(1, None)
        self.repo.update_passkey.assert_not_called()

    @pytest.mark.parametrize(
        "credential",
        [
            {"id": CRED_ID},
            {"id": CRED_ID, "rawId": CRED_ID, "type": "public-key", "response": {}},
            assertion_json(client_data=encode_b64url(b"{}")),
            assertion_json(client_data=encode_b64url(b"not json")),
            assertion_json(client_data="!!!"),
            {**assertion_json(), "type": "password"},
        ],
    )
    def test_finish_malformed_assertion(self, mock_webauthn, credential):
        self.repo.get_by_username.return_value = _passkey_user(current_challenge=encode_b64url(CHALLENGE))
        self.repo.get_by_credential_id.return_value = _passkey_user()

        with pytest.raises(ValidationFailure):
            self.service.finish_authentication("alice", credential)

        mock_webauthn.verify_authentication_response.assert_not_called()
        self.repo.update_challenge.assert_called_once_with(1, None)
