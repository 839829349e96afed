"""
Client-side login flow: password check, emailed code, then the real sign-in.

    IDLE -> CREDENTIAL_CHECK -> AWAITING_OTP <-> VERIFYING -> AUTHENTICATED
                     |                |              |
                     v                +--- cancel ---+--> IDLE
                   FAILED

Network calls happen outside the lock. Each call captures the generation it
was started in; ``cancel`` bumps the generation, so a response that arrives
after a cancel is dropped instead of being applied.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass, field
from enum import Enum

from login_flow.identity import CredentialCheck, IdentityError, SIGNED_IN
from utils.errors import Internal, InvalidCredentials, OtpError

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
RESEND_COOLDOWN_SECONDS = 60


class LoginState(str, Enum):
    IDLE = "idle"
    CREDENTIAL_CHECK = "credential_check"
    AWAITING_OTP = "awaiting_otp"
    VERIFYING = "verifying"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


CHALLENGE_STATES = frozenset({LoginState.CREDENTIAL_CHECK, LoginState.AWAITING_OTP, LoginState.VERIFYING})


@dataclass
class PendingLogin:
    """Credentials held between a good password and a confirmed code. Never persisted."""
    email: str
    password: str = field(repr=False)


class LoginOrchestrator:

    def __init__(self, identity, otp_client, clock=time.monotonic, resend_cooldown: int = RESEND_COOLDOWN_SECONDS):
        self.identity = identity
        self.otp_client = otp_client
        self.credential_check = CredentialCheck(identity)
        self.clock = clock
        self.resend_cooldown = resend_cooldown

        self.state = LoginState.IDLE
        self.message = None
        self.attempts_left = None
        self.code = ""
        self.user = None

        self._pending = None
        self._busy = False
        self._generation = 0
        self._resend_ready_at = None
        self._lock = threading.RLock()
        self._listeners = []

    # -- observation -------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending_email(self):
        return self._pending.email if self._pending else None

    def subscribe(self, listener):
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _set_state(self, state: LoginState, message=None):
        self.state = state
        self.message = message
        for listener in list(self._listeners):
            listener(state)

    def _fail(self, message: str):
        self._set_state(LoginState.FAILED, message)

    def _sign_out_quietly(self):
        try:
            self.identity.sign_out()
        except IdentityError:
            logger.warning("Sign-out after abandoned login did not complete", exc_info=True)

    def resend_available_in(self) -> int:
        """Seconds until resend is allowed; 0 when it is."""
        if self._resend_ready_at is None:
            return 0
        return max(0, math.ceil(self._resend_ready_at - self.clock()))

    # -- transitions -------------------------------------------------------

    def submit(self, email: str, password: str) -> LoginState:
        with self._lock:
            if self._busy or self.state not in (LoginState.IDLE, LoginState.FAILED):
                return self.state
            self._busy = True
            generation = self._generation
            self.attempts_left = None
            self._set_state(LoginState.CREDENTIAL_CHECK)

        try:
            ok = self.credential_check.check(email, password)
        except IdentityError:
            logger.warning("Credential check could not complete", exc_info=True)
            self._sign_out_quietly()
            ok = False

        with self._lock:
            if generation != self._generation:
                return self.state
            if not ok:
                self._busy = False
                self._fail(InvalidCredentials.message)
                return self.state
            self._pending = PendingLogin(email=email, password=password)

        self._send_code(generation, email, resend=False)
        return self.state

    def _send_code(self, generation: int, email: str, resend: bool) -> bool:
        error = None
        try:
            self.otp_client.send(email)
        except OtpError as exc:
            error = exc
        except Exception:
            # anything else must still release the flow
            logger.exception("OTP send failed unexpectedly")
            error = Internal()

        with self._lock:
            if generation != self._generation:
                return False
            self._busy = False

            if error is None:
                self._resend_ready_at = self.clock() + self.resend_cooldown
                self.code = ""
                self.attempts_left = None
                note = "A new verification code has been sent." if resend else \
                    "Please check your email for the verification code."
                self._set_state(LoginState.AWAITING_OTP, note)
                return True

            if resend:
                self._set_state(LoginState.AWAITING_OTP, error.message)
            else:
                self._pending = None
                self._fail(error.message)
            return False

    def enter_code(self, digits: str) -> LoginState:
        """Update the typed code; a complete 6-digit code is submitted at once."""
        with self._lock:
            if self.state != LoginState.AWAITING_OTP:
                return self.state
            self.code = "".join(ch for ch in str(digits) if ch.isdigit())[:OTP_LENGTH]
            complete = len(self.code) == OTP_LENGTH
        if complete:
            return self.verify()
        return self.state

    def verify(self) -> LoginState:
        with self._lock:
            if (self._busy or self.state != LoginState.AWAITING_OTP
                    or self._pending is None or len(self.code) != OTP_LENGTH):
                return self.state
            self._busy = True
            generation = self._generation
            pending = self._pending
            code = self.code
            self._set_state(LoginState.VERIFYING)

        error = None
        try:
            self.otp_client.verify(pending.email, code)
        except OtpError as exc:
            error = exc
        except Exception:
            logger.exception("OTP verify failed unexpectedly")
            error = Internal()

        with self._lock:
            if generation != self._generation:
                return self.state
            if error is not None:
                self._busy = False
                self.code = ""
                self.attempts_left = getattr(error, "attempts_left", None)
                self._set_state(LoginState.AWAITING_OTP, error.message)
                return self.state

        try:
            user = self.identity.password_sign_in(pending.email, pending.password)
        except IdentityError:
            logger.warning("Final sign-in after verified OTP failed", exc_info=True)
            user = None

        stale = False
        with self._lock:
            if generation != self._generation:
                stale = True
            else:
                self._busy = False
                self._pending = None
                self.code = ""
                self._resend_ready_at = None
                if user is not None:
                    self.user = user
                    self._set_state(LoginState.AUTHENTICATED, "You have successfully logged in.")
                else:
                    self._fail("Login failed. Please try again.")

        if stale and user is not None:
            # cancelled while the real session was being opened
            self._sign_out_quietly()
        return self.state

    def resend(self) -> bool:
        with self._lock:
            if (self._busy or self.state != LoginState.AWAITING_OTP
                    or self._pending is None or self.resend_available_in() > 0):
                return False
            self._busy = True
            generation = self._generation
            email = self._pending.email
        return self._send_code(generation, email, resend=True)

    def cancel(self) -> LoginState:
        with self._lock:
            if self.state not in CHALLENGE_STATES:
                return self.state
            self._generation += 1
            self._busy = False
            self._pending = None
            self.code = ""
            self.attempts_left = None
            self._resend_ready_at = None
            self._set_state(LoginState.IDLE)

        self._sign_out_quietly()
        return self.state

    def dismiss(self) -> LoginState:
        """Acknowledge a failure and return to the sign-in form."""
        with self._lock:
            if self.state == LoginState.FAILED:
                self._set_state(LoginState.IDLE)
            return self.state


class AuthPresenceGate:
    """
    The "already signed in, go home" reaction, gated on the login flow.

    Sign-in events are ignored while a challenge is running, which covers the
    short-lived credential-check session and the final sign-in. The callback fires once
    the orchestrator itself reaches AUTHENTICATED.
    """

    def __init__(self, orchestrator: LoginOrchestrator, identity, on_signed_in):
        self.orchestrator = orchestrator
        self.identity = identity
        self.on_signed_in = on_signed_in
        self._unsubscribers = [
            identity.on_auth_state_change(self._on_auth_event),
            orchestrator.subscribe(self._on_state),
        ]

    def _on_auth_event(self, event, user):
        if event == SIGNED_IN and self.orchestrator.state in (LoginState.IDLE, LoginState.FAILED):
            self.on_signed_in(user)

    def _on_state(self, state):
        if state == LoginState.AUTHENTICATED:
            self.on_signed_in(self.orchestrator.user)

    def check_existing_session(self) -> bool:
        """On page load: redirect if a session already exists and no challenge is running."""
        if self.orchestrator.state in CHALLENGE_STATES:
            return False
        try:
            user = self.identity.get_current_user()
        except IdentityError:
            logger.warning("Could not read current user", exc_info=True)
            return False
        if user is None:
            return False
        self.on_signed_in(user)
        return True

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []


def request_password_reset(otp_client, email: str, send_reset_email) -> bool:
    """
    Forgot-password pre-check: only ask the identity provider for a reset
    email when an account exists. Returns whether one was requested.
    """
    if not otp_client.check_user(email):
        return False
    send_reset_email(email)
    return True
