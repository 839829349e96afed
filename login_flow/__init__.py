from .transport import HttpTransport, TransportError, TransportTimeout
from .otp_client import OtpClient
from .identity import IdentityClient, IdentityError, CredentialCheck, SIGNED_IN, SIGNED_OUT
from .orchestrator import (
    LoginOrchestrator,
    LoginState,
    PendingLogin,
    AuthPresenceGate,
    request_password_reset,
)
