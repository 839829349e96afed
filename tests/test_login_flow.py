import pytest

from login_flow import (
    AuthPresenceGate,
    IdentityClient,
    LoginOrchestrator,
    LoginState,
    OtpClient,
    PendingLogin,
    request_password_reset,
)
from login_flow.identity import CredentialCheck
from login_flow.otp_client import error_from_response
from login_flow.transport import TransportError, TransportTimeout
from tests.conftest import USER_EMAIL, USER_PASSWORD
from utils.errors import DeliveryFailed, Internal, InvalidCode, InvalidCredentials


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def identity(transport):
    return IdentityClient(transport)


@pytest.fixture
def otp_client(transport):
    return OtpClient(transport)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def flow(identity, otp_client, clock):
    return LoginOrchestrator(identity, otp_client, clock=clock)


def test_wrong_then_right_code_ends_authenticated(flow, identity, user, sent_codes):
    assert flow.submit(USER_EMAIL, USER_PASSWORD) == LoginState.AWAITING_OTP
    # the credential check must not leave a session behind
    assert identity.get_current_user() is None
    assert flow.pending_email == USER_EMAIL

    assert flow.enter_code("000000") == LoginState.AWAITING_OTP
    assert flow.attempts_left == 4
    assert flow.message == "Invalid OTP. Please try again."
    assert flow.code == ""

    code = sent_codes[-1][1]
    assert flow.enter_code(code) == LoginState.AUTHENTICATED
    assert flow.pending_email is None
    assert identity.get_current_user()["email"] == USER_EMAIL


def test_partial_code_is_not_submitted(flow, user, sent_codes):
    flow.submit(USER_EMAIL, USER_PASSWORD)
    assert flow.enter_code("12345") == LoginState.AWAITING_OTP
    assert flow.code == "12345"
    assert flow.verify() == LoginState.AWAITING_OTP
    assert flow.attempts_left is None


def test_bad_password_and_unknown_user_fail_identically(flow, user, sent_codes):
    assert flow.submit(USER_EMAIL, "wrong-password") == LoginState.FAILED
    wrong_message = flow.message
    flow.dismiss()

    assert flow.submit("ghost@b.com", "wrong-password") == LoginState.FAILED
    assert flow.message == wrong_message == InvalidCredentials.message
    assert sent_codes == []
    assert flow.pending_email is None


def test_send_failure_fails_and_clears_pending(flow, otp_client, user, sent_codes):
    for _ in range(3):
        otp_client.send(USER_EMAIL)

    assert flow.submit(USER_EMAIL, USER_PASSWORD) == LoginState.FAILED
    assert flow.message.startswith("Too many OTP requests")
    assert flow.pending_email is None


def test_cancel_returns_to_idle_without_session(flow, identity, user, sent_codes):
    flow.submit(USER_EMAIL, USER_PASSWORD)

    assert flow.cancel() == LoginState.IDLE
    assert flow.pending_email is None
    assert flow.resend() is False
    assert identity.get_current_user() is None


def test_late_verify_response_after_cancel_is_ignored(identity, transport, clock, user, sent_codes):
    class CancelDuringVerify(OtpClient):
        orchestrator = None

        def verify(self, email, code):
            self.orchestrator.cancel()
            return super().verify(email, code)

    otp_client = CancelDuringVerify(transport)
    flow = LoginOrchestrator(identity, otp_client, clock=clock)
    otp_client.orchestrator = flow

    flow.submit(USER_EMAIL, USER_PASSWORD)
    code = sent_codes[-1][1]

    assert flow.enter_code(code) == LoginState.IDLE
    assert flow.user is None
    assert identity.get_current_user() is None


def test_resend_waits_for_cooldown(flow, clock, user, sent_codes):
    flow.submit(USER_EMAIL, USER_PASSWORD)
    assert flow.resend_available_in() == 60
    assert flow.resend() is False

    clock.now += 59.5
    assert flow.resend_available_in() == 1
    assert flow.resend() is False

    clock.now += 1
    assert flow.resend() is True
    assert len(sent_codes) == 2
    assert flow.resend_available_in() == 60

    assert flow.enter_code(sent_codes[-1][1]) == LoginState.AUTHENTICATED


def test_resend_failure_keeps_challenge_open(flow, clock, user, sent_codes):
    flow.submit(USER_EMAIL, USER_PASSWORD)
    clock.now += 61
    flow.resend()
    clock.now += 61
    flow.resend()
    clock.now += 61

    assert flow.resend() is False
    assert flow.state == LoginState.AWAITING_OTP
    assert flow.message.startswith("Too many OTP requests")
    assert flow.pending_email == USER_EMAIL


def test_duplicate_submit_while_sending_is_ignored(identity, transport, clock, user, sent_codes):
    class ReentrantSend(OtpClient):
        orchestrator = None
        nested = []

        def send(self, email):
            self.nested.append(self.orchestrator.submit(email, USER_PASSWORD))
            return super().send(email)

    otp_client = ReentrantSend(transport)
    flow = LoginOrchestrator(identity, otp_client, clock=clock)
    otp_client.orchestrator = flow

    assert flow.submit(USER_EMAIL, USER_PASSWORD) == LoginState.AWAITING_OTP
    assert otp_client.nested == [LoginState.CREDENTIAL_CHECK]
    assert len(sent_codes) == 1


def test_presence_gate_holds_redirect_during_challenge(flow, identity, user, sent_codes):
    redirects = []
    gate = AuthPresenceGate(flow, identity, redirects.append)

    flow.submit(USER_EMAIL, USER_PASSWORD)
    assert redirects == []

    flow.enter_code(sent_codes[-1][1])
    assert len(redirects) == 1
    assert redirects[0]["email"] == USER_EMAIL

    gate.close()


def test_presence_gate_ignores_sign_in_after_authenticated(flow, identity, user, sent_codes):
    redirects = []
    AuthPresenceGate(flow, identity, redirects.append)

    flow.submit(USER_EMAIL, USER_PASSWORD)
    flow.enter_code(sent_codes[-1][1])
    assert len(redirects) == 1

    identity.password_sign_in(USER_EMAIL, USER_PASSWORD)
    assert len(redirects) == 1


def test_presence_gate_redirects_existing_session(flow, identity, user):
    redirects = []
    gate = AuthPresenceGate(flow, identity, redirects.append)

    assert gate.check_existing_session() is False
    identity.password_sign_in(USER_EMAIL, USER_PASSWORD)
    assert len(redirects) == 1
    assert gate.check_existing_session() is True
    assert len(redirects) == 2


def test_credential_check_leaves_no_session(identity, user):
    checker = CredentialCheck(identity)
    assert checker.check(USER_EMAIL, USER_PASSWORD) is True
    assert identity.get_current_user() is None
    assert checker.check(USER_EMAIL, "wrong-password") is False


def test_pending_login_repr_hides_password():
    pending = PendingLogin(email=USER_EMAIL, password="hunter22")
    assert "hunter22" not in repr(pending)


def test_request_password_reset(otp_client, user):
    requested = []
    assert request_password_reset(otp_client, USER_EMAIL, requested.append) is True
    assert request_password_reset(otp_client, "ghost@b.com", requested.append) is False
    assert requested == [USER_EMAIL]


class BrokenTransport:
    def __init__(self, exc):
        self.exc = exc

    def post_json(self, path, payload=None):
        raise self.exc

    def get_json(self, path):
        raise self.exc


def test_timeouts_map_to_taxonomy():
    client = OtpClient(BrokenTransport(TransportTimeout("slow")))
    with pytest.raises(DeliveryFailed):
        client.send(USER_EMAIL)
    with pytest.raises(Internal):
        client.verify(USER_EMAIL, "123456")
    assert client.check_user(USER_EMAIL) is False


def test_network_errors_map_to_internal():
    client = OtpClient(BrokenTransport(TransportError("down")))
    with pytest.raises(Internal):
        client.send(USER_EMAIL)


def test_verify_transport_failure_returns_to_awaiting(identity, transport, clock, user, sent_codes):
    class FlakyVerify(OtpClient):
        def verify(self, email, code):
            raise Internal()

    flow = LoginOrchestrator(identity, FlakyVerify(transport), clock=clock)
    flow.submit(USER_EMAIL, USER_PASSWORD)

    assert flow.enter_code("123456") == LoginState.AWAITING_OTP
    assert flow.message == Internal.message
    assert not flow.busy


def test_unreadable_error_numbers_become_internal():
    assert isinstance(error_from_response(429, {"code": "rate_limited", "retryAfter": "soon"}), Internal)
    assert isinstance(error_from_response(400, {"code": "invalid_code", "attemptsLeft": [1]}), Internal)
    err = error_from_response(400, {"code": "invalid_code", "attemptsLeft": "3"})
    assert isinstance(err, InvalidCode)
    assert err.attempts_left == 3


class GarbledOtpTransport:
    """Passes /auth calls through, answers /otp with an unreadable rate-limit body."""

    def __init__(self, inner):
        self.inner = inner

    def post_json(self, path, payload=None):
        if path == "/otp":
            return 429, {"code": "rate_limited", "retryAfter": "soon"}
        return self.inner.post_json(path, payload)

    def get_json(self, path):
        return self.inner.get_json(path)


def test_garbled_send_error_fails_and_releases_flow(transport, clock, user):
    garbled = GarbledOtpTransport(transport)
    flow = LoginOrchestrator(IdentityClient(garbled), OtpClient(garbled), clock=clock)

    assert flow.submit(USER_EMAIL, USER_PASSWORD) == LoginState.FAILED
    assert flow.message == Internal.message
    assert not flow.busy
    assert flow.pending_email is None

    flow.dismiss()
    assert flow.submit(USER_EMAIL, USER_PASSWORD) == LoginState.FAILED


def test_unexpected_verify_error_returns_to_awaiting(identity, transport, clock, user, sent_codes):
    class BrokenVerify(OtpClient):
        def verify(self, email, code):
            raise RuntimeError("decoder blew up")

    flow = LoginOrchestrator(identity, BrokenVerify(transport), clock=clock)
    flow.submit(USER_EMAIL, USER_PASSWORD)

    assert flow.enter_code("123456") == LoginState.AWAITING_OTP
    assert flow.message == Internal.message
    assert not flow.busy
