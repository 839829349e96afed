import requests

DEFAULT_TIMEOUT_SECONDS = 15


class TransportError(Exception):
    """Network failure or an unreadable response body."""


class TransportTimeout(TransportError):
    pass


class HttpTransport:
    """
    JSON over HTTP with a cookie-keeping ``requests.Session``.

    The session's cookie jar plays the part of the browser: the identity
    provider's session cookie lives there between calls.
    """

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT_SECONDS, session=None, headers=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if headers:
            self.session.headers.update(headers)

    def post_json(self, path: str, payload=None):
        return self._request("POST", path, json=payload or {})

    def get_json(self, path: str):
        return self._request("GET", path)

    def _request(self, method: str, path: str, **kwargs):
        try:
            resp = self.session.request(method, self.base_url + path, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            raise TransportTimeout(f"{method} {path} timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise TransportError(f"{method} {path} failed: {exc.__class__.__name__}") from exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise TransportError(f"{method} {path} returned a non-JSON body") from exc
        return resp.status_code, body
