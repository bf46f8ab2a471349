"""WebAuthn registration and authentication ceremonies.

Each ceremony is two requests: ``start_*`` generates options and stores the
challenge on the user record (overwriting any earlier one), ``finish_*``
verifies the browser's response against that challenge. Challenges are
single-use: the finish step clears them whether verification succeeds or not.

Credential ids, public keys and challenges are stored as unpadded base64url.
Assertions are parsed before verification; a structurally broken one is a
validation failure, not an authentication failure.
"""

from __future__ import annotations

import json
import logging

import webauthn
from webauthn.helpers import (
    base64url_to_bytes,
    bytes_to_base64url,
    parse_authentication_credential_json,
    parse_client_data_json,
)
from webauthn.helpers.exceptions import InvalidAuthenticationResponse, InvalidJSONStructure
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticationCredential,
    AuthenticatorSelectionCriteria,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from itemvault.errors import (
    AuthenticationFailure,
    PasskeyNotRegistered,
    PasskeyVerificationFailed,
    ValidationFailure,
)
from itemvault.models.user import User
from itemvault.repositories.base import UserRepository

logger = logging.getLogger(__name__)


def encode_b64url(data: bytes) -> str:
    return bytes_to_base64url(data)


def decode_b64url(value: str) -> bytes:
    return base64url_to_bytes(value)


class PasskeyService:
    def __init__(self, repo: UserRepository, rp_id: str, rp_name: str, origin: str) -> None:
        self.repo = repo
        self.rp_id = rp_id
        self.rp_name = rp_name
        self.origin = origin

    # --- Registration ---

    def start_registration(self, user: User) -> dict:
        exclude_credentials = []
        if user.has_passkey:
            exclude_credentials.append(PublicKeyCredentialDescriptor(id=decode_b64url(user.passkey_credential_id)))

        options = webauthn.generate_registration_options(
            rp_id=self.rp_id,
            rp_name=self.rp_name,
            user_id=str(user.id).encode(),
            user_name=user.username,
            user_display_name=user.username,
            attestation=AttestationConveyancePreference.NONE,
            exclude_credentials=exclude_credentials,
            authenticator_selection=AuthenticatorSelectionCriteria(
                resident_key=ResidentKeyRequirement.REQUIRED,
                user_verification=UserVerificationRequirement.REQUIRED,
            ),
        )

        self.repo.update_challenge(user.id, encode_b64url(options.challenge))
        logger.info("Passkey registration started for user=%s", user.username)
        return json.loads(webauthn.options_to_json(options))

    def finish_registration(self, user: User, credential: dict) -> None:
        if not user.current_challenge:
            logger.warning("Passkey registration finish without challenge for user=%s", user.username)
            raise ValidationFailure("No passkey registration in progress")

        expected_challenge = decode_b64url(user.current_challenge)
        self.repo.update_challenge(user.id, None)

        try:
            verification = webauthn.verify_registration_response(
                credential=credential,
                expected_challenge=expected_challenge,
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                require_user_verification=True,
            )
        except Exception as e:
            logger.warning("Passkey registration failed for user=%s: %s", user.username, e)
            raise PasskeyVerificationFailed() from None

        self.repo.update_passkey(
            user.id,
            encode_b64url(verification.credential_id),
            encode_b64url(verification.credential_public_key),
            verification.sign_count,
        )
        logger.info("Passkey registered for user=%s", user.username)

    # --- Authentication ---

    def start_authentication(self, username: str) -> dict:
        user = self.repo.get_by_username(username)
        if user is None or not user.has_passkey:
            logger.info("Passkey login requested for user=%s without a registered passkey", username)
            raise PasskeyNotRegistered()

        options = webauthn.generate_authentication_options(
            rp_id=self.rp_id,
            allow_credentials=[PublicKeyCredentialDescriptor(id=decode_b64url(user.passkey_credential_id))],
            user_verification=UserVerificationRequirement.REQUIRED,
        )

        self.repo.update_challenge(user.id, encode_b64url(options.challenge))
        logger.info("Passkey authentication started for user=%s", username)
        return json.loads(webauthn.options_to_json(options))

    def _parse_assertion(self, username: str, credential: dict) -> AuthenticationCredential:
        """Structural checks on the browser's assertion before any crypto runs."""
        try:
            parsed = parse_authentication_credential_json(credential)
            parse_client_data_json(parsed.response.client_data_json)
        except (InvalidJSONStructure, InvalidAuthenticationResponse, ValueError) as e:
            logger.warning("Malformed passkey assertion for user=%s: %s", username, e)
            raise ValidationFailure("Malformed passkey response") from None
        return parsed

    def finish_authentication(self, username: str, credential: dict) -> User:
        user = self.repo.get_by_username(username)
        if user is None:
            logger.warning("Passkey login finish for unknown user=%s", username)
            raise AuthenticationFailure("Invalid passkey")
        if not user.has_passkey or not user.current_challenge:
            logger.warning("Passkey login finish without pending challenge for user=%s", username)
            raise AuthenticationFailure("Invalid passkey")

        expected_challenge = decode_b64url(user.current_challenge)
        self.repo.update_challenge(user.id, None)

        assertion = self._parse_assertion(username, credential)

        # A credential id belongs to exactly one account.
        owner = self.repo.get_by_credential_id(assertion.id)
        if owner is None or owner.id != user.id:
            logger.warning("Passkey login with foreign credential for user=%s", username)
            raise AuthenticationFailure("Invalid passkey")

        try:
            verification = webauthn.verify_authentication_response(
                credential=assertion,
                expected_challenge=expected_challenge,
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                credential_public_key=decode_b64url(owner.passkey_public_key),
                credential_current_sign_count=owner.passkey_sign_count,
                require_user_verification=True,
            )
        except Exception as e:
            logger.warning("Passkey authentication failed for user=%s: %s", username, e)
            raise AuthenticationFailure("Invalid passkey") from None

        self.repo.update_passkey(
            user.id,
            user.passkey_credential_id,
            user.passkey_public_key,
            verification.new_sign_count,
        )
        user.passkey_sign_count = verification.new_sign_count
        user.current_challenge = None
        logger.info("Passkey authentication verified for user=%s", username)
        return user
