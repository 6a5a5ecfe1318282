"""Log hygiene: redact API keys and elide inline image payloads."""

from __future__ import annotations

import logging
import re
import traceback
from urllib.parse import parse_qsl, quote_plus, urlsplit, urlunsplit

import httpx

SENSITIVE_QUERY_KEYS = frozenset({"key", "apikey", "api-key", "token", "access-token", "secret", "password"})
_SENSITIVE_KEY_PATTERN = r"(?:apikey|api_key|token|access_token|key|secret|password)"
_URL_PATTERN = re.compile(r"(?i)https?://[^\s\"'<>]+")
_JSON_SECRET_PATTERN = re.compile(rf"(?i)(\"{_SENSITIVE_KEY_PATTERN}\"[ \t]*:[ \t]*\")([^\"]*)(\")")
_KV_SECRET_PATTERN = re.compile(rf"(?i)(\b{_SENSITIVE_KEY_PATTERN}\b[ \t]*[=:][ \t]*)([^&\s,;\"'<>]+)")
_BEARER_PATTERN = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._~+\-/]+=*")
_DATA_URI_PATTERN = re.compile(r"data:([\w/+.-]+);base64,([A-Za-z0-9+/=]{64,})")

_FILTER_LOGGERS = ("", "uvicorn", "uvicorn.error", "uvicorn.access", "httpx", "httpcore", "grimoire")
_HTTP_LOGGER = logging.getLogger("grimoire.http")


def redact_url(url: str) -> str:
    """Mask sensitive query-param values in a URL, keeping host and path visible."""
    if not url or "?" not in url:
        return url
    try:
        parsed = urlsplit(url)
    except ValueError:
        return url

    pairs = parse_qsl(parsed.query, keep_blank_values=True)
    if not any(key.strip().lower().replace("_", "-") in SENSITIVE_QUERY_KEYS for key, _ in pairs):
        return url

    query = "&".join(
        f"{quote_plus(key)}=***"
        if key.strip().lower().replace("_", "-") in SENSITIVE_QUERY_KEYS
        else f"{quote_plus(key)}={quote_plus(value)}"
        for key, value in pairs
    )
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, query, parsed.fragment))


def _elide_data_uri(match: re.Match) -> str:
    return f"data:{match.group(1)};base64,<{len(match.group(2))} chars>"


def redact_text(value: str | None) -> str | None:
    """Redact secrets and shorten base64 image payloads in arbitrary log text."""
    if value is None:
        return None
    text = _DATA_URI_PATTERN.sub(_elide_data_uri, str(value))
    text = _URL_PATTERN.sub(lambda match: redact_url(match.group(0)), text)
    text = _JSON_SECRET_PATTERN.sub(r"\1***\3", text)
    text = _KV_SECRET_PATTERN.sub(r"\1***", text)
    return _BEARER_PATTERN.sub("Bearer ***", text)


class SecretRedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            message = str(record.msg)

        record.msg = redact_text(message) or ""
        record.args = ()
        if record.exc_info:
            record.exc_text = redact_text("".join(traceback.format_exception(*record.exc_info)))
        return True


def install_log_redaction() -> None:
    """Attach the redaction filter process-wide and quiet raw httpx request lines."""
    redaction_filter = SecretRedactionFilter()
    for logger_name in _FILTER_LOGGERS:
        target = logging.getLogger(logger_name)
        for item in (target, *target.handlers):
            if not any(isinstance(existing, SecretRedactionFilter) for existing in item.filters):
                item.addFilter(redaction_filter)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def _log_http_request(request: httpx.Request) -> None:
    _HTTP_LOGGER.debug("HTTP request method=%s url=%s", request.method, redact_url(str(request.url)))


async def _log_http_response(response: httpx.Response) -> None:
    request = response.request
    _HTTP_LOGGER.info(
        "HTTP response method=%s url=%s status=%d",
        request.method,
        redact_url(str(request.url)),
        response.status_code,
    )


def httpx_event_hooks() -> dict[str, list]:
    return {
        "request": [_log_http_request],
        "response": [_log_http_response],
    }
