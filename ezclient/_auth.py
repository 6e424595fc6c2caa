"""Auth and profile sub-client.

This module provides AuthClient for login/logout, password recovery and
the caller's own profile (/auth/*, /common/get-profile, ...).

This is an internal module. Import from `ezclient` instead.
"""

import logging
from typing import Any, Literal

from ezclient._base import AsyncBaseClient, require
from ezclient.exceptions import MalformedResponseError, ValidationError
from ezclient.models import LoginResult, UserProfile

logger = logging.getLogger(__name__)

Role = Literal["general_contractor", "subcontractor", "affiliate"]


class AuthClient(AsyncBaseClient):
    """Client for authentication and profile endpoints.

    A successful ``login`` stores the token in the shared session; every
    other sub-client then authenticates with it. ``logout`` always ends the
    local session, even when the backend call fails.

    Example:
        async with AsyncEZClient() as client:
            await client.auth.login("gc@example.com", "secret")
            profile = await client.auth.get_profile()
            await client.auth.logout()
    """

    async def login(self, email: str, password: str) -> LoginResult:
        """Log in and store the issued token in the session.

        Args:
            email: Account email.
            password: Account password.

        Returns:
            The token and user profile.

        Raises:
            ValidationError: If email or password is blank.
            APIError: If the backend rejects the credentials.
        """
        require(email, "email")
        require(password, "password")

        envelope = await self._post(
            "/auth/login",
            json={"email": email, "password": password},
            auth=False,
        )
        if not isinstance(envelope.data, dict) or "token" not in envelope.data:
            raise MalformedResponseError(
                message="Login response did not include a token.",
                status_code=200,
            )
        result = LoginResult.model_validate(envelope.data)
        self._http.session.login(
            token=result.token,
            role=result.user.role,
            email=email,
            user_id=result.user.id,
        )
        return result

    async def logout(self) -> None:
        """Log out on the backend and clear the local session."""
        try:
            await self._post("/auth/logout")
        finally:
            self._http.session.clear()

    async def register(
        self,
        role: Role,
        name: str,
        email: str,
        password: str,
        password_confirmation: str,
        **fields: Any,
    ) -> dict[str, Any]:
        """Create an account.

        Args:
            role: Account role.
            name: Display name.
            email: Account email.
            password: Password.
            password_confirmation: Must equal ``password``.
            **fields: Role-specific fields (company_name, phone, zip, ...).

        Returns:
            The backend's ``data`` payload.

        Raises:
            ValidationError: If a required field is blank or the passwords differ.
        """
        require(name, "name")
        require(email, "email")
        require(password, "password")
        if password != password_confirmation:
            raise ValidationError("Passwords do not match", field="password_confirmation")

        body = {
            "role": role,
            "name": name,
            "email": email,
            "password": password,
            "password_confirmation": password_confirmation,
            **fields,
        }
        envelope = await self._post("/auth/register", json=body, auth=False)
        return envelope.data or {}

    async def verify_otp(self, email: str, otp: str) -> None:
        """Verify the one-time code sent by email."""
        require(otp, "otp", "Verification code is required")
        await self._post("/auth/verify-otp", json={"email": email, "otp": otp}, auth=False)

    async def forgot_password(self, email: str) -> str | None:
        """Request a password reset code.

        Returns:
            The backend's confirmation message, if any.
        """
        require(email, "email")
        envelope = await self._post("/auth/forgot-password", json={"email": email}, auth=False)
        return envelope.text

    async def reset_password(
        self,
        email: str,
        otp: str,
        password: str,
        password_confirmation: str,
    ) -> None:
        """Set a new password using the emailed code."""
        require(password, "password")
        if password != password_confirmation:
            raise ValidationError("Passwords do not match", field="password_confirmation")
        await self._post(
            "/auth/reset-password",
            json={
                "email": email,
                "otp": otp,
                "password": password,
                "password_confirmation": password_confirmation,
            },
            auth=False,
        )

    async def get_profile(self) -> UserProfile:
        """Fetch the logged-in user's profile."""
        envelope = await self._get("/common/get-profile")
        data = envelope.data
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        return UserProfile.model_validate(data)

    async def update_profile(self, **fields: Any) -> UserProfile:
        """Update profile fields and return the stored profile."""
        envelope = await self._post("/common/update-profile", json=fields)
        return UserProfile.model_validate(envelope.data)

    async def update_profile_image(self, image: Any) -> UserProfile | None:
        """Upload a new profile picture.

        Args:
            image: A file object or a (filename, file, content_type) tuple.

        Returns:
            The updated profile when the backend echoes it, else None.

        Raises:
            ValidationError: If no image is given.
        """
        require(image, "profile_image", "Choose an image to upload")
        envelope = await self._post("/common/profile/update-image", files=[("profile_image", image)])
        data = envelope.data
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        if not isinstance(data, dict) or "id" not in data:
            return None
        return UserProfile.model_validate(data)

    async def change_password(
        self,
        current_password: str,
        new_password: str,
        new_password_confirmation: str,
    ) -> None:
        """Change the password of the logged-in user."""
        require(current_password, "current_password")
        require(new_password, "new_password")
        if new_password != new_password_confirmation:
            raise ValidationError("Passwords do not match", field="new_password_confirmation")
        await self._post(
            "/common/change-password",
            json={
                "current_password": current_password,
                "new_password": new_password,
                "new_password_confirmation": new_password_confirmation,
            },
        )
