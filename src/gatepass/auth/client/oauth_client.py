"""Interactive OAuth 2.0 login orchestration.

Coordinates PKCE generation, the local callback listener, the manual
fallback, state validation and the token exchange for one login attempt.
The access token is checked and then dropped; nothing is persisted.
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from collections.abc import Awaitable, Callable, Mapping

from gatepass.auth.client.models.errors import (
    AuthOutcome,
    ConfigurationError,
    OAuth2Error,
    StateValidationError,
)
from gatepass.auth.client.models.flow import (
    CallbackResult,
    FlowState,
    build_authorization_url,
)
from gatepass.auth.client.models.security import PKCEParameters
from gatepass.auth.client.models.tokens import TokenRequest
from gatepass.auth.client.primitives.handoff import Handoff, HandoffClosedError
from gatepass.auth.client.primitives.pkce import PKCEManager
from gatepass.auth.client.services.callback import CallbackListener
from gatepass.auth.client.services.manual import ManualCapture, Prompt, TerminalPrompt
from gatepass.auth.client.services.tokens import OAuth2TokenManager
from gatepass.config import AuthSettings, auth_bypass_enabled

logger = logging.getLogger(__name__)

BrowserOpener = Callable[[str], object]


class OAuth2LoginFlow:
    """Runs one interactive authorization code + PKCE login.

    Each call to ``login()`` or ``login_manual()`` is a fresh attempt with
    its own PKCE material, handoff and listener. There is no retry loop:
    callers re-invoke to try again.

    One instance runs one attempt at a time; ``state`` belongs to that
    attempt. Starting a second attempt while one is running raises
    ``RuntimeError``.
    """

    def __init__(
        self,
        settings: AuthSettings,
        *,
        token_manager: OAuth2TokenManager | None = None,
        prompt: Prompt | None = None,
        browser_opener: BrowserOpener | None = None,
        pkce_manager: PKCEManager | None = None,
    ):
        """Initialize the login flow.

        Args:
            settings: Client and provider settings
            token_manager: Token exchange service; an httpx-backed one by default
            prompt: Interactive input/output; the terminal by default
            browser_opener: Callable that opens a URL; ``webbrowser.open`` by default
            pkce_manager: PKCE generator
        """
        self.settings = settings
        self.prompt = prompt or TerminalPrompt()
        self.manual_capture = ManualCapture(self.prompt)
        self.browser_opener = browser_opener or webbrowser.open

        self._owns_token_manager = token_manager is None
        self.token_manager = token_manager or OAuth2TokenManager()
        self._pkce_manager = pkce_manager or PKCEManager()
        self.state = FlowState.INIT
        self._attempt_running = False

    async def login(self) -> AuthOutcome:
        """Automatic login: callback listener first, manual capture on failure."""
        return await self._run(self._acquire_via_callback)

    async def login_manual(self) -> AuthOutcome:
        """Manual login: print the URL and read the pasted code."""
        return await self._run(self._acquire_manually)

    async def close(self) -> None:
        if self._owns_token_manager:
            await self.token_manager.close()

    async def _run(
        self,
        acquire: Callable[[str, PKCEParameters], Awaitable[CallbackResult]],
    ) -> AuthOutcome:
        if self._attempt_running:
            raise RuntimeError("A login attempt is already running on this flow")

        self._attempt_running = True
        try:
            return await self._attempt(acquire)
        finally:
            self._attempt_running = False

    async def _attempt(
        self,
        acquire: Callable[[str, PKCEParameters], Awaitable[CallbackResult]],
    ) -> AuthOutcome:
        self._transition(FlowState.INIT)

        try:
            pkce = self._pkce_manager.generate_parameters()
            auth_url = build_authorization_url(
                self.settings.authorize_url,
                self.settings.client_id,
                self.settings.redirect_uri,
                self.settings.scopes,
                pkce,
            )

            callback = await acquire(auth_url, pkce)

            self._transition(FlowState.VALIDATING)
            if callback.state != pkce.state:
                raise StateValidationError("State mismatch in OAuth callback")

            self._transition(FlowState.EXCHANGING)
            token_request = TokenRequest(
                token_endpoint=self.settings.token_url,
                code=callback.code,
                redirect_uri=self.settings.redirect_uri,
                client_id=self.settings.client_id,
                code_verifier=pkce.code_verifier,
                client_secret=self.settings.client_secret_value,
            )
            # The token is only checked for presence, then dropped
            await self.token_manager.exchange_code_for_token(
                token_request, scopes=self.settings.scopes
            )

        except OAuth2Error as e:
            self._transition(FlowState.FAILED)
            logger.error(f"Login failed ({e.kind.value}): {e}")
            return AuthOutcome.failure(e)

        self._transition(FlowState.SUCCEEDED)
        self.prompt.write("Login successful (token validated, not persisted)")
        return AuthOutcome.success()

    async def _acquire_via_callback(
        self, auth_url: str, pkce: PKCEParameters
    ) -> CallbackResult:
        handoff: Handoff[CallbackResult] = Handoff()
        listener = CallbackListener(self.settings.listen_addr, pkce.state, handoff)
        callback: CallbackResult | None = None
        timeout = self.settings.callback_timeout

        async with listener:
            self._present_url("Open this URL in your browser to continue:", auth_url)

            self._transition(FlowState.AWAITING_CALLBACK)
            try:
                callback = await handoff.wait(timeout)
            except HandoffClosedError:
                logger.info("Did not capture OAuth callback automatically")
            except asyncio.TimeoutError:
                logger.info(f"OAuth callback timed out after {timeout:g}s")

        # The listener may accept a callback while it is shutting down
        late_callback = handoff.take()
        if callback is None and late_callback is not None:
            logger.info("OAuth callback arrived while the listener was stopping")
            callback = late_callback

        if callback is not None:
            self._transition(FlowState.AUTHENTICATING)
            return callback

        self._transition(FlowState.MANUAL_FALLBACK)
        return await self.manual_capture.capture(pkce.state)

    async def _acquire_manually(
        self, auth_url: str, pkce: PKCEParameters
    ) -> CallbackResult:
        self._present_url("Manual authentication selected. Open this URL:", auth_url)
        self._transition(FlowState.MANUAL_FALLBACK)
        return await self.manual_capture.capture(pkce.state)

    def _present_url(self, heading: str, auth_url: str) -> None:
        self.prompt.write(f"\n{heading}\n  {auth_url}\n")

        if not self.settings.open_browser:
            return

        # Opening a browser is best effort only
        try:
            opened = self.browser_opener(auth_url)
        except Exception as e:
            logger.info(f"Could not open browser automatically: {e}")
            return
        if opened is False:
            logger.info("Could not open browser automatically")

    def _transition(self, new_state: FlowState) -> None:
        logger.debug(f"Login flow: {self.state.value} -> {new_state.value}")
        self.state = new_state


async def ensure_authenticated(
    settings: AuthSettings | None = None,
    *,
    manual: bool = False,
    environ: Mapping[str, str] | None = None,
    token_manager: OAuth2TokenManager | None = None,
    prompt: Prompt | None = None,
    browser_opener: BrowserOpener | None = None,
) -> AuthOutcome:
    """Authenticate the current invocation.

    Honours ``GATEPASS_AUTH_BYPASS=1`` before anything else, then loads
    settings from the environment unless given, and runs one login attempt.
    """
    if auth_bypass_enabled(environ):
        logger.warning("Authentication bypass enabled; skipping login")
        return AuthOutcome.bypass()

    if settings is None:
        try:
            settings = AuthSettings.from_env(environ)
        except ConfigurationError as e:
            logger.error(f"Login failed ({e.kind.value}): {e}")
            return AuthOutcome.failure(e)

    flow = OAuth2LoginFlow(
        settings,
        token_manager=token_manager,
        prompt=prompt,
        browser_opener=browser_opener,
    )
    try:
        return await (flow.login_manual() if manual else flow.login())
    finally:
        await flow.close()
