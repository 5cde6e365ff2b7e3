"""
JSON-over-HTTP helper used by the inference client.

Requests are retried on transient statuses and transport errors with a
jittered linear backoff. Callers always get ``(status, payload)`` back;
exhausted transport failures are reported as status 599.
"""
from __future__ import annotations

import random
import time
from typing import Any, Dict, Optional, Tuple

import requests
from loguru import logger

from strategy_lab.settings import HttpSettings, get_http_settings

RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})
NETWORK_FAILURE_STATUS = 599
JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


def compute_backoff_delay(
    attempt: int, backoff: float, retry_after: Optional[str]
) -> float:
    """Seconds to wait before retry ``attempt + 1``; a positive Retry-After wins."""
    if retry_after:
        try:
            hinted = float(retry_after)
        except ValueError:
            hinted = 0.0
        if hinted > 0:
            return hinted
    return max(0.1, backoff * (attempt + 1) * random.uniform(0.85, 1.15))


def _decode(resp: Any, url: str) -> Dict[str, Any]:
    try:
        return resp.json()
    except ValueError:
        logger.debug("[http] non-JSON body from {}: {}", url, (resp.text or "")[:400])
        return {}


def _log_attempt(
    level: str,
    method: str,
    url: str,
    status: int,
    attempt: int,
    total: int,
    started: float,
    note: str,
) -> None:
    logger.log(
        level,
        "[http] method={} url={} status={} latency_ms={:.1f} attempt={}/{} {}",
        method,
        url,
        status,
        (time.perf_counter() - started) * 1000.0,
        attempt + 1,
        total,
        note,
    )


def request_json(
    method: str,
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    json: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
    backoff: Optional[float] = None,
    session: Optional[requests.Session] = None,
    settings: Optional[HttpSettings] = None,
) -> Tuple[int, Dict[str, Any]]:
    """
    Send one request expecting a JSON answer; returns ``(status, payload)``.

    Non-JSON bodies decode to ``{}``. Unset ``timeout``, ``retries`` and
    ``backoff`` come from ``HttpSettings``.
    """
    cfg = settings or get_http_settings()
    timeout = cfg.timeout if timeout is None else timeout
    retries = cfg.retries if retries is None else retries
    backoff = cfg.backoff if backoff is None else backoff

    verb = method.upper()
    send_headers = {"User-Agent": cfg.user_agent, **(headers or {})}
    client = session or requests
    total = retries + 1

    for attempt in range(total):
        final = attempt == retries
        started = time.perf_counter()
        try:
            resp = client.request(
                method=verb,
                url=url,
                params=params or {},
                headers=send_headers,
                json=json,
                timeout=timeout,
            )
        except requests.RequestException as exc:
            _log_attempt(
                "WARNING", verb, url, NETWORK_FAILURE_STATUS, attempt, total, started,
                f"error={exc}",
            )
            if final:
                logger.error("[http] {} {} gave up after {} attempts: {}", verb, url, total, exc)
                break
            time.sleep(compute_backoff_delay(attempt, backoff, None))
            continue

        status = resp.status_code
        if 200 <= status < 300:
            _log_attempt("DEBUG", verb, url, status, attempt, total, started, "ok")
            return status, _decode(resp, url)

        if status in RETRYABLE_STATUS and not final:
            delay = compute_backoff_delay(attempt, backoff, resp.headers.get("Retry-After"))
            _log_attempt(
                "WARNING", verb, url, status, attempt, total, started, f"retry in {delay:.2f}s"
            )
            time.sleep(delay)
            continue

        _log_attempt("WARNING", verb, url, status, attempt, total, started, "non-2xx")
        return status, _decode(resp, url)

    return NETWORK_FAILURE_STATUS, {}


def http_post_json(
    url: str,
    json_body: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    *,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
    backoff: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> Tuple[int, Dict[str, Any]]:
    return request_json(
        "POST",
        url,
        headers={**JSON_HEADERS, **(headers or {})},
        json=json_body or {},
        timeout=timeout,
        retries=retries,
        backoff=backoff,
        session=session,
    )


__all__ = ["request_json", "http_post_json", "compute_backoff_delay"]
