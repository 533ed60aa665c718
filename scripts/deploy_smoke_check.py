"""Post-deploy smoke checks executed from the app container."""

from __future__ import annotations

import json
import os
import urllib.error
import urllib.request

BASE_URL = os.environ.get("SMOKE_BASE_URL", "http://localhost:8000")
API_PREFIX = "/api/v1"


def request(
    path: str,
    *,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    expected: int = 200,
) -> bytes:
    req_headers = {"Accept": "application/json"}
    if headers:
        req_headers.update(headers)

    request_obj = urllib.request.Request(f"{BASE_URL}{path}", method=method, headers=req_headers)
    try:
        with urllib.request.urlopen(request_obj, timeout=30) as response:
            content = response.read()
            status = response.getcode()
    except urllib.error.HTTPError as exc:  # pragma: no cover - runtime smoke script
        if exc.code == expected:
            return exc.read()
        body_text = exc.read().decode("utf-8", errors="ignore")
        raise RuntimeError(f"{method} {path} -> {exc.code}: {body_text}") from exc

    if status != expected:
        raise RuntimeError(f"{method} {path} -> {status}, expected {expected}")
    return content


def main() -> None:
    for endpoint in ["/health", "/ready", "/docs", "/metrics"]:
        request(endpoint, expected=200)

    availability = json.loads(request(f"{API_PREFIX}/sessions").decode("utf-8"))
    if not availability["sessions"]:
        raise RuntimeError("Session catalog is empty")

    request(f"{API_PREFIX}/bookings", expected=401)
    request(f"{API_PREFIX}/instructor/sessions", expected=403)

    instructor_key = os.environ.get("INSTRUCTOR_ACCESS_KEY")
    if instructor_key:
        request(
            f"{API_PREFIX}/instructor/sessions",
            headers={"X-Instructor-Key": instructor_key},
            expected=200,
        )

    print("Smoke checks passed.")


if __name__ == "__main__":
    main()
