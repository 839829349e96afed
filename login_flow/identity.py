import logging

from login_flow.transport import TransportError

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


class IdentityError(Exception):
    pass


class IdentityClient:
    """
    Adapter over the identity provider's password grant, sign-out and
    current-user lookup. Auth state changes are published to listeners as
    ``(event, user)``.
    """

    def __init__(self, transport, prefix: str = "/auth"):
        self.transport = transport
        self.prefix = prefix
        self._listeners = []

    def on_auth_state_change(self, listener):
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _emit(self, event: str, user=None):
        for listener in list(self._listeners):
            listener(event, user)

    def password_sign_in(self, email: str, password: str) -> dict:
        try:
            status, body = self.transport.post_json(
                f"{self.prefix}/login", {"email": email, "password": password}
            )
        except TransportError as exc:
            raise IdentityError("Sign-in unavailable") from exc

        if status != 200 or not isinstance(body, dict):
            raise IdentityError("Invalid credentials")

        user = body.get("user") or {"email": email}
        self._emit(SIGNED_IN, user)
        return user

    def sign_out(self) -> None:
        try:
            self.transport.post_json(f"{self.prefix}/logout", {})
        except TransportError as exc:
            raise IdentityError("Sign-out failed") from exc
        self._emit(SIGNED_OUT)

    def get_current_user(self):
        try:
            status, body = self.transport.get_json(f"{self.prefix}/me")
        except TransportError as exc:
            raise IdentityError("User lookup failed") from exc
        if status == 200 and isinstance(body, dict):
            return body
        return None


class CredentialCheck:
    """Checks a password without leaving a session behind."""

    def __init__(self, identity: IdentityClient):
        self.identity = identity

    def check(self, email: str, password: str) -> bool:
        try:
            self.identity.password_sign_in(email, password)
        except IdentityError:
            return False
        # the real session is only opened after the emailed code is confirmed
        self.identity.sign_out()
        return True
