"""OAuth 2.0 authorization code flow with PKCE for HubSpot."""

import asyncio
import base64
import hashlib
import logging
import secrets
import string
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, quote, urlencode, urlsplit

import httpx

from .config import (
    CONNECT_TIMEOUT,
    OAUTH_STATE_LENGTH,
    PKCE_VERIFIER_LENGTH,
    REQUEST_TIMEOUT,
    TOKEN_EXPIRY_SKEW,
    OAuthConfig,
)
from .exceptions import (
    AuthError,
    DecodeError,
    MissingVerifierError,
    NotConnectedError,
    StateMismatchError,
    TokenRequestError,
)
from .models import AuthorizationRequest, OAuthTokenRecord, PKCESession, TokenResponse
from .token_store import TokenStore

logger = logging.getLogger(__name__)

# RFC 7636 unreserved characters
_URL_SAFE_ALPHABET = string.ascii_letters + string.digits + "-._~"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def random_url_safe_string(length: int) -> str:
    return "".join(secrets.choice(_URL_SAFE_ALPHABET) for _ in range(length))


def pkce_challenge(verifier: str) -> str:
    """S256 code challenge: unpadded base64url of sha256(verifier)."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def _first(query: dict[str, list[str]], name: str) -> str | None:
    values = query.get(name)
    return values[0] if values else None


class OAuthSession:
    """Obtains and keeps fresh a bearer token for the HubSpot API.

    Connection status is derived from the token store: connected iff an
    access token or a refresh token is stored. It is recomputed on
    construction and after every token mutation.
    """

    def __init__(
        self,
        config: OAuthConfig,
        token_store: TokenStore,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._config = config
        self._tokens = token_store
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT),
        )
        self._clock = clock or _utcnow
        self._pkce: PKCESession | None = None
        self._refresh_lock = asyncio.Lock()
        self._connected = False
        self.last_authorize_url = ""
        self.refresh_connection_state()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def pending_session(self) -> PKCESession | None:
        return self._pkce

    def refresh_connection_state(self) -> bool:
        """Re-read persisted tokens and recompute connection status."""
        self._connected = self._tokens.has_credentials
        return self._connected

    def begin_authorization(self) -> AuthorizationRequest:
        """Start a new attempt, replacing any earlier PKCE session.

        Opening the returned URL in a user agent is up to the caller.
        """
        verifier = random_url_safe_string(PKCE_VERIFIER_LENGTH)
        state = random_url_safe_string(OAUTH_STATE_LENGTH)
        self._pkce = PKCESession(code_verifier=verifier, expected_state=state)

        params = {
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._config.scopes),
            "state": state,
            "code_challenge": pkce_challenge(verifier),
            "code_challenge_method": "S256",
        }
        url = f"{self._config.authorize_url}?{urlencode(params, quote_via=quote)}"
        self.last_authorize_url = url
        logger.info("HubSpot authorize URL: %s", url)
        return AuthorizationRequest(url=url, state=state)

    async def handle_callback(self, url: str) -> bool:
        """
        Complete the flow from the app callback redirect.

        Returns False for URLs that are not the app callback target; those
        leave the pending session untouched. Any callback that does match
        consumes the session, whatever the outcome.

        Raises:
            MissingVerifierError: no authorization attempt is pending
            StateMismatchError: state is absent or differs from the issued one
            AuthError: the redirect carries no authorization code
            TokenRequestError: the token endpoint rejected the exchange
        """
        parsed = urlsplit(url)
        if (
            parsed.scheme != self._config.callback_scheme
            or parsed.hostname != self._config.callback_host
        ):
            logger.debug("Ignoring non-callback URL %s://%s", parsed.scheme, parsed.hostname)
            return False

        session, self._pkce = self._pkce, None
        if session is None:
            raise MissingVerifierError("No PKCE session is active")

        query = parse_qs(parsed.query)
        state = _first(query, "state")
        code = _first(query, "code")

        if not state or not secrets.compare_digest(
            state.encode("utf-8"), session.expected_state.encode("utf-8")
        ):
            logger.warning("HubSpot OAuth callback state missing or mismatched")
            raise StateMismatchError("OAuth state missing or mismatched")
        if not code:
            raise AuthError("OAuth callback is missing the authorization code")

        await self.exchange_code(code, session.code_verifier)
        return True

    async def exchange_code(self, code: str, verifier: str) -> OAuthTokenRecord:
        """Exchange an authorization code plus PKCE verifier for tokens."""
        record = await self._token_request(
            {
                "grant_type": "authorization_code",
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "redirect_uri": self._config.redirect_uri,
                "code": code,
                "code_verifier": verifier,
            }
        )
        logger.info("HubSpot authorization code exchanged")
        return record

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokenRecord:
        record = await self._token_request(
            {
                "grant_type": "refresh_token",
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "refresh_token": refresh_token,
            }
        )
        logger.info("HubSpot access token refreshed")
        return record

    async def ensure_access_token(self) -> str:
        """
        Return a usable access token, refreshing it when close to expiry.

        Refresh is single-flight: concurrent callers wait on the same lock and
        re-check expiry before refreshing again.
        """
        token = self._fresh_access_token()
        if token:
            return token

        async with self._refresh_lock:
            token = self._fresh_access_token()
            if token:
                return token

            refresh_token = self._tokens.refresh_token
            if not refresh_token:
                self.refresh_connection_state()
                raise NotConnectedError("No refresh token stored")

            await self.refresh_tokens(refresh_token)

            access_token = self._tokens.access_token
            if not access_token:
                raise NotConnectedError("Refresh did not yield an access token")
            return access_token

    def disconnect(self) -> None:
        """Forget all stored tokens. No network call is made."""
        self._tokens.clear()
        self._connected = False
        logger.info("HubSpot disconnected")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _fresh_access_token(self) -> str | None:
        access_token = self._tokens.access_token
        expires_at = self._tokens.expires_at
        if not access_token or expires_at is None:
            return None
        if expires_at > self._clock() + timedelta(seconds=TOKEN_EXPIRY_SKEW):
            return access_token
        return None

    async def _token_request(self, form: dict[str, str]) -> OAuthTokenRecord:
        response = await self._client.post(
            self._config.token_url,
            data=form,
            headers={"Accept": "application/json"},
        )
        if not response.is_success:
            logger.error(
                "HubSpot token request (%s) failed: %d",
                form["grant_type"],
                response.status_code,
            )
            raise TokenRequestError(response.content, response.status_code)

        try:
            token = TokenResponse.model_validate(response.json())
        except ValueError as e:
            raise DecodeError(f"Malformed token response: {e}") from e
        if not token.access_token and form["grant_type"] == "authorization_code":
            raise DecodeError("Token response carried no access token")

        record = self._tokens.save(token, now=self._clock())
        self.refresh_connection_state()
        return record
