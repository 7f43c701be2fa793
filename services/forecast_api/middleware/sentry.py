"""
Sentry instrumentation for the forecast API and the refresh job.

The OpenWeatherMap key travels as the `appid` query parameter, so it can show
up in httpx breadcrumbs and in captured request URLs. before_send masks it
along with the usual sensitive headers.
"""

import re
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from services.forecast_api.config import settings

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie", "x-api-key"}
SENSITIVE_PARAMS = ("appid",)

_PARAM_RE = re.compile(r"(?P<key>(?:%s)=)[^&\s]*" % "|".join(SENSITIVE_PARAMS), re.IGNORECASE)

FILTERED = "[FILTERED]"


def _mask_params(value: Any) -> Any:
    if isinstance(value, str):
        return _PARAM_RE.sub(lambda m: m.group("key") + FILTERED, value)
    return value


def _mask_headers(headers: Any) -> None:
    if isinstance(headers, dict):
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = FILTERED


def _strip_sensitive_data(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """before_send hook: mask credential headers and the provider API key."""
    if "breadcrumbs" in event:
        for breadcrumb in event["breadcrumbs"].get("values", []):
            data = breadcrumb.get("data", {})
            if isinstance(data, dict):
                _mask_headers(data.get("headers", {}))
                for key in ("url", "http.query"):
                    if key in data:
                        data[key] = _mask_params(data[key])
            if "message" in breadcrumb:
                breadcrumb["message"] = _mask_params(breadcrumb["message"])

    request = event.get("request", {})
    if isinstance(request, dict):
        _mask_headers(request.get("headers", {}))
        for key in ("url", "query_string"):
            if key in request:
                request[key] = _mask_params(request[key])
    return event


def setup_sentry() -> None:
    if not settings.sentry_dsn:
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        before_send=_strip_sensitive_data,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        send_default_pii=False,
    )
