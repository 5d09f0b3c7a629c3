"""Microsoft account login over HTTP.

Implements the network side of the launcher login:

1. Device Authorization Grant (:rfc:`8628`) against the Microsoft
   identity platform -- :meth:`MicrosoftAuthClient.request_device_code`
   and one token poll per call to :meth:`MicrosoftAuthClient.poll_token`.
2. The Xbox Live chain that turns a Microsoft access token into a game
   session: XBL user token, then XSTS token, then ``login_with_xbox``,
   then the game profile.

Polling cadence is not handled here; the caller decides when to poll.

See Also:
    :class:`~launchauth.bridge.launcher.LauncherBridge` which combines
    this client with the account store.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError as ModelValidationError

from launchauth.exceptions import AuthError, ConfigError, TransportError, device_flow_error
from launchauth.models import Account, AccountType, AuthSettings, DeviceAuthorizationChallenge

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"

# XSTS rejects some accounts with a numeric XErr code in a 401 body.
_XSTS_ERRORS: dict[int, str] = {
    2148916233: "This Microsoft account has no Xbox profile. Sign in at xbox.com once, then retry.",
    2148916235: "Xbox Live is not available in this account's country or region.",
    2148916236: "This account needs adult verification on xbox.com.",
    2148916237: "This account needs adult verification on xbox.com.",
    2148916238: "This is a child account. An adult must add it to a Microsoft family first.",
}

ProgressCallback = Callable[[str], None]


class MicrosoftAuthClient:
    """Async client for the Microsoft device flow and the Xbox Live chain.

    Args:
        settings: Endpoint URLs and the Azure client registration.
        client: Shared :class:`httpx.AsyncClient`. The caller owns its
            lifetime.

    Example::

        async with httpx.AsyncClient() as http:
            ms = MicrosoftAuthClient(settings, http)
            challenge = await ms.request_device_code()
    """

    def __init__(self, settings: AuthSettings, client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = client

    @property
    def settings(self) -> AuthSettings:
        return self._settings

    # ------------------------------------------------------------------ #
    # Device Authorization Grant
    # ------------------------------------------------------------------ #

    async def request_device_code(self) -> DeviceAuthorizationChallenge:
        """POST to the device authorization endpoint.

        Returns:
            The issued :class:`~launchauth.models.DeviceAuthorizationChallenge`.

        Raises:
            ConfigError: If no client ID is configured.
            AuthError: On HTTP errors or if the response is incomplete.
            TransportError: If the endpoint cannot be reached.
        """
        data: dict[str, str] = {"client_id": self._client_id()}
        if self._settings.scopes:
            data["scope"] = " ".join(self._settings.scopes)

        response = await self._send("POST", self._settings.device_authorization_url, data=data)
        result = self._json(response, "Device authorization request")

        if "device_code" not in result:
            raise AuthError("Device authorization response missing 'device_code'")
        if "user_code" not in result:
            raise AuthError("Device authorization response missing 'user_code'")
        try:
            return DeviceAuthorizationChallenge.model_validate(result)
        except ModelValidationError as exc:
            raise AuthError(f"Invalid device authorization response: {exc}") from exc

    async def poll_token(self, device_code: str) -> dict[str, Any]:
        """Make a single token request for *device_code*.

        Returns:
            The token response containing ``access_token`` and usually
            ``refresh_token``.

        Raises:
            DeviceFlowError: When the endpoint answers with an :rfc:`8628`
                error code (pending, slow down, expired, denied, ...).
            AuthError: On an unexpected response.
            TransportError: If the endpoint cannot be reached.
        """
        data = {
            "grant_type": DEVICE_CODE_GRANT,
            "device_code": device_code,
            "client_id": self._client_id(),
        }
        response = await self._send("POST", self._settings.token_url, data=data)
        try:
            token_data: dict[str, Any] = response.json()
        except ValueError:
            raise AuthError(
                f"Token endpoint returned invalid JSON (status {response.status_code})"
            ) from None

        if response.status_code == 200 and "access_token" in token_data:
            return token_data

        error = token_data.get("error")
        if error:
            raise device_flow_error(error, _first_line(token_data.get("error_description")))
        raise AuthError(f"Unexpected token response (status {response.status_code})")

    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        """Exchange a refresh token for a new Microsoft access token.

        Raises:
            AuthError: If the refresh is rejected or ``access_token`` is missing.
            TransportError: If the endpoint cannot be reached.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._client_id(),
        }
        if self._settings.scopes:
            data["scope"] = " ".join(self._settings.scopes)

        response = await self._send("POST", self._settings.token_url, data=data)
        token_data = self._json(response, "Token refresh")
        if "access_token" not in token_data:
            raise AuthError("Token refresh response missing 'access_token' field")
        return token_data

    # ------------------------------------------------------------------ #
    # Xbox Live chain
    # ------------------------------------------------------------------ #

    async def login_game(
        self,
        token_data: dict[str, Any],
        progress: Optional[ProgressCallback] = None,
    ) -> Account:
        """Turn a Microsoft token response into a game account.

        Args:
            token_data: Response from :meth:`poll_token` or :meth:`refresh`.
            progress: Called with a status line before each step.

        Returns:
            A :class:`~launchauth.models.Account` of type ``microsoft``.

        Raises:
            AuthError: If any step is rejected, the Xbox user hashes
                disagree, or the account does not own the game.
            TransportError: If an endpoint cannot be reached.
        """
        report = progress or (lambda message: None)

        report("Authenticating with Xbox Live...")
        response = await self._send(
            "POST",
            self._settings.xbox_auth_url,
            json={
                "Properties": {
                    "AuthMethod": "RPS",
                    "SiteName": "user.auth.xboxlive.com",
                    "RpsTicket": f"d={token_data['access_token']}",
                },
                "RelyingParty": "http://auth.xboxlive.com",
                "TokenType": "JWT",
            },
        )
        xbl = self._json(response, "Xbox Live authentication")
        xbl_token, user_hash = _xbox_token(xbl)

        report("Requesting XSTS token...")
        response = await self._send(
            "POST",
            self._settings.xsts_auth_url,
            json={
                "Properties": {"SandboxId": "RETAIL", "UserTokens": [xbl_token]},
                "RelyingParty": "rp://api.minecraftservices.com/",
                "TokenType": "JWT",
            },
        )
        if response.status_code == 401:
            raise AuthError(_xsts_error_message(response))
        xsts = self._json(response, "XSTS authorization")
        xsts_token, xsts_hash = _xbox_token(xsts)
        if xsts_hash != user_hash:
            raise AuthError("Inconsistent Xbox user hash")

        report("Logging in to Minecraft services...")
        response = await self._send(
            "POST",
            self._settings.minecraft_login_url,
            json={"identityToken": f"XBL3.0 x={user_hash};{xsts_token}"},
        )
        session = self._json(response, "Minecraft login")
        game_token = session.get("access_token")
        if not game_token:
            raise AuthError("Minecraft login response missing 'access_token'")

        report("Fetching Minecraft profile...")
        response = await self._send(
            "GET",
            self._settings.minecraft_profile_url,
            headers={"Authorization": f"Bearer {game_token}"},
        )
        if response.status_code == 404:
            raise AuthError("This account does not own Minecraft")
        profile = self._json(response, "Profile request")
        if "name" not in profile or "id" not in profile:
            raise AuthError(profile.get("errorMessage", "Profile response missing 'name' or 'id'"))

        expires_at = None
        if session.get("expires_in") is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(session["expires_in"]))

        return Account(
            type=AccountType.MICROSOFT,
            username=profile["name"],
            uuid=profile["id"],
            access_token=game_token,
            refresh_token=token_data.get("refresh_token"),
            expires_at=expires_at,
        )

    # ------------------------------------------------------------------ #
    # HTTP helpers
    # ------------------------------------------------------------------ #

    def _client_id(self) -> str:
        if not self._settings.client_id:
            raise ConfigError(
                "No Microsoft client ID configured. Set LAUNCHAUTH_CLIENT_ID or run "
                "'launchauth config set auth.client_id <id>'"
            )
        return self._settings.client_id

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping network failures to :class:`TransportError`."""
        headers = {"Accept": "application/json", **kwargs.pop("headers", {})}
        try:
            return await self._client.request(
                method, url, headers=headers, timeout=self._settings.timeout, **kwargs
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

    @staticmethod
    def _json(response: httpx.Response, what: str) -> dict[str, Any]:
        """Check the status of *response* and return its JSON object body."""
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AuthError(
                f"{what} failed with status {exc.response.status_code}: {exc.response.text}"
            ) from exc
        try:
            result = response.json()
        except ValueError:
            raise AuthError(f"{what} returned invalid JSON") from None
        if not isinstance(result, dict):
            raise AuthError(f"{what} returned an unexpected payload")
        return result


def _xbox_token(payload: dict[str, Any]) -> tuple[str, str]:
    """Extract ``(Token, uhs)`` from an Xbox Live token response."""
    try:
        return payload["Token"], payload["DisplayClaims"]["xui"][0]["uhs"]
    except (KeyError, IndexError, TypeError):
        raise AuthError("Xbox Live response missing token or user hash") from None


def _xsts_error_message(response: httpx.Response) -> str:
    try:
        code = int(response.json().get("XErr", 0))
    except (ValueError, TypeError, AttributeError):
        code = 0
    return _XSTS_ERRORS.get(code, f"XSTS authorization was denied (XErr {code})")


def _first_line(text: Optional[str]) -> Optional[str]:
    # Microsoft appends trace and correlation IDs on following lines.
    if not text:
        return None
    return text.strip().splitlines()[0]
