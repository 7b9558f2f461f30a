class HubSpotSyncError(Exception):
    """Base exception for HubSpot sync errors."""

    pass


class ConfigurationError(HubSpotSyncError):
    """Missing or invalid configuration."""

    pass


class AuthError(HubSpotSyncError):
    """OAuth flow or token lifecycle failure."""

    pass


class NotConnectedError(AuthError):
    """No usable access or refresh token is stored."""

    pass


class StateMismatchError(AuthError):
    """Callback state is absent or differs from the issued one."""

    pass


class MissingVerifierError(AuthError):
    """Callback received while no PKCE session is active."""

    pass


class TokenRequestError(AuthError):
    """Token endpoint answered with a non-2xx status."""

    def __init__(self, body: bytes, status_code: int | None = None):
        super().__init__(
            f"Token request failed ({status_code}): {body[:500]!r}"
        )
        self.body = body
        self.status_code = status_code


class HttpError(HubSpotSyncError):
    """HubSpot API answered with a non-2xx status."""

    def __init__(self, body: bytes, status_code: int | None = None):
        super().__init__(f"API error {status_code}: {body[:500]!r}")
        self.body = body
        self.status_code = status_code


class DecodeError(HubSpotSyncError):
    """Response body is not JSON or has an unexpected shape."""

    pass
