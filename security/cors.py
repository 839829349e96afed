import re
from flask import request, current_app

ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type"


def is_origin_allowed(origin: str) -> bool:
    if not origin:
        return False
    if origin in current_app.config.get("CORS_ALLOWED_ORIGINS", []):
        return True
    return any(re.match(p, origin) for p in current_app.config.get("CORS_ALLOWED_ORIGIN_PATTERNS", []))


def apply_cors_headers(resp):
    """Echo the Origin back only for allow-listed origins; others get no ACAO header."""
    origin = request.headers.get("Origin", "")
    resp.headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
    resp.headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
    if is_origin_allowed(origin):
        resp.headers["Access-Control-Allow-Origin"] = origin
        resp.headers["Vary"] = "Origin"
    return resp
