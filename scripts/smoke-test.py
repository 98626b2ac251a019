#!/usr/bin/env python3
"""
Smoke test for ALTCHA server deployments.

Runs against a live server using only the standard library, so it can be
executed from any deploy host without installing the project.

Flow (default):
1. Health check
2. Challenge issuance (field shapes)
3. Solve + verify (brute force, like the browser widget)
4. Tampered signature is rejected
5. Malformed payload is rejected

Usage:
    ./scripts/smoke-test.py https://captcha.example.com
    ./scripts/smoke-test.py https://captcha.example.com --health-only
"""

import argparse
import base64
import hashlib
import json
import random
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
MAX_BACKOFF_SECONDS = 4.0
BODY_PREVIEW_BYTES = 200

HASHLIB_NAMES = {"SHA-1": "sha1", "SHA-256": "sha256", "SHA-512": "sha512"}
EXPECTED_SECURITY_HEADERS = ("X-Content-Type-Options", "X-Frame-Options")


class ApiError(RuntimeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


def _preview_bytes(value: bytes, limit: int = BODY_PREVIEW_BYTES) -> bytes:
    return value[:limit]


def _is_retryable_status(status_code: int) -> bool:
    return status_code in {408, 425, 429, 502, 503, 504, 522, 524}


@dataclass
class HttpClient:
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    def request(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, Any] | None = None,
    ) -> tuple[int, dict[str, str], bytes]:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"} if data is not None else {}
        body = json.dumps(data).encode() if data is not None else None

        max_attempts = max(1, self.retries + 1)
        for attempt in range(1, max_attempts + 1):
            request = Request(url, data=body, headers=headers, method=method)
            try:
                with urlopen(request, timeout=self.timeout_seconds) as response:
                    return response.getcode(), dict(response.headers.items()), response.read()
            except HTTPError as e:
                error_body = e.read() if e.fp else b""
                if attempt < max_attempts and _is_retryable_status(e.code):
                    self._sleep_backoff(attempt)
                    continue
                return e.code, dict(e.headers.items()) if e.headers else {}, error_body
            except (URLError, TimeoutError) as e:
                if attempt < max_attempts:
                    self._sleep_backoff(attempt)
                    continue
                raise RuntimeError(f"Network error after {attempt} attempts: {e}") from e
        raise RuntimeError(f"No response from {method} {path}")

    def json(self, method: str, path: str, *, data: dict[str, Any] | None = None):
        status, headers, body = self.request(method, path, data=data)
        try:
            parsed = json.loads(body.decode())
        except json.JSONDecodeError as e:
            raise RuntimeError(
                f"Invalid JSON response from {method} {path}: preview={_preview_bytes(body)!r}"
            ) from e
        return status, headers, parsed

    def _sleep_backoff(self, attempt: int) -> None:
        base = self.retry_backoff_seconds * (2 ** (attempt - 1))
        jitter = random.random() * self.retry_backoff_seconds
        time.sleep(min(MAX_BACKOFF_SECONDS, base + jitter))


def solve_challenge(challenge: dict[str, Any]) -> int:
    """Find the number whose salted hash equals the challenge."""
    hash_name = HASHLIB_NAMES[challenge["algorithm"]]
    salt = challenge["salt"]
    target = challenge["challenge"]
    max_number = int(challenge.get("maxnumber", 1_000_000))

    start_time = time.time()
    for number in range(max_number + 1):
        if hashlib.new(hash_name, f"{salt}{number}".encode()).hexdigest() == target:
            elapsed = max(time.time() - start_time, 1e-6)
            log(f"Solved: number={number} ({elapsed:.2f}s, {number / elapsed:.0f} H/s)")
            return number
    raise RuntimeError(f"No solution found up to maxnumber={max_number}")


def encode_payload(challenge: dict[str, Any], number: int, **overrides: Any) -> str:
    data = {
        "algorithm": challenge["algorithm"],
        "challenge": challenge["challenge"],
        "number": number,
        "salt": challenge["salt"],
        "signature": challenge["signature"],
    }
    if challenge.get("expires"):
        data["expires"] = challenge["expires"]
    data.update(overrides)
    return base64.b64encode(json.dumps(data).encode()).decode()


@dataclass
class SmokeContext:
    client: HttpClient
    max_health_attempts: int

    challenge: dict[str, Any] | None = None
    number: int | None = None

    def require_challenge(self) -> dict[str, Any]:
        if self.challenge is None:
            raise RuntimeError("Missing challenge (step ordering bug)")
        return self.challenge

    def require_number(self) -> int:
        if self.number is None:
            raise RuntimeError("Missing solved number (step ordering bug)")
        return self.number


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], None]


@dataclass(frozen=True)
class StepResult:
    name: str
    status: str  # passed|failed
    seconds: float
    detail: str | None = None


def _print_summary(results: list[StepResult], total_seconds: float) -> None:
    log("Summary:")
    for result in results:
        suffix = f" - {result.detail}" if result.detail else ""
        log(f"  {result.status.upper():7} {result.name} ({result.seconds:.2f}s){suffix}")
    log(f"Total: {total_seconds:.2f}s")


def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    results: list[StepResult] = []
    overall_start = time.time()

    for step in steps:
        log(f"STEP: {step.name}")
        start = time.time()
        try:
            step.run(ctx)
        except Exception as e:
            results.append(StepResult(step.name, "failed", time.time() - start, str(e)))
            _print_summary(results, time.time() - overall_start)
            return False

        elapsed = time.time() - start
        results.append(StepResult(step.name, "passed", elapsed))
        log(f"OK: {step.name} ({elapsed:.2f}s)")

    _print_summary(results, time.time() - overall_start)
    return True


def step_health(ctx: SmokeContext) -> None:
    for attempt in range(1, ctx.max_health_attempts + 1):
        try:
            status, headers, data = ctx.client.json("GET", "/health")
        except RuntimeError:
            status, headers, data = 0, {}, {}
        if status == 200 and data.get("status") == "ok":
            log(f"Health check passed (attempt {attempt}, version {data.get('version')})")
            present = {name.lower() for name in headers}
            missing = [h for h in EXPECTED_SECURITY_HEADERS if h.lower() not in present]
            if missing:
                raise RuntimeError(f"Missing security headers: {missing}")
            return
        if attempt < ctx.max_health_attempts:
            time.sleep(2.0)
    raise RuntimeError("Health check failed")


def step_challenge(ctx: SmokeContext) -> None:
    status, _, data = ctx.client.json("POST", "/api/challenge")
    if status != 200:
        raise ApiError(status, json.dumps(data))
    for field in ("algorithm", "challenge", "salt", "signature"):
        if not data.get(field):
            raise RuntimeError(f"Challenge missing field {field!r}")
    if data["algorithm"] not in HASHLIB_NAMES:
        raise RuntimeError(f"Unexpected algorithm {data['algorithm']!r}")
    ctx.challenge = data


def step_solve_and_verify(ctx: SmokeContext) -> None:
    challenge = ctx.require_challenge()
    ctx.number = solve_challenge(challenge)
    status, _, data = ctx.client.json(
        "POST", "/api/verify", data={"payload": encode_payload(challenge, ctx.number)}
    )
    if status != 200 or data.get("verified") is not True:
        raise ApiError(status, json.dumps(data))


def step_tampered_rejected(ctx: SmokeContext) -> None:
    challenge = ctx.require_challenge()
    signature = challenge["signature"]
    forged = ("1" if signature[0] == "0" else "0") + signature[1:]
    status, _, data = ctx.client.json(
        "POST",
        "/api/verify",
        data={"payload": encode_payload(challenge, ctx.require_number(), signature=forged)},
    )
    if status != 400 or data.get("verified") is not False:
        raise RuntimeError(f"Tampered payload was not rejected: {status} {data}")


def step_malformed_rejected(ctx: SmokeContext) -> None:
    status, _, data = ctx.client.json("POST", "/api/verify", data={"payload": "not-a-payload"})
    if status != 400 or data.get("verified") is not False:
        raise RuntimeError(f"Malformed payload was not rejected: {status} {data}")


def main() -> int:
    parser = argparse.ArgumentParser(description="ALTCHA server smoke test")
    parser.add_argument("base_url", help="Base URL (e.g., https://captcha.example.com)")
    parser.add_argument(
        "--health-only",
        action="store_true",
        help="Only run health check, skip full flow",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help=f"HTTP timeout seconds (default: {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        help=f"Retries for transient failures (default: {DEFAULT_RETRIES})",
    )
    parser.add_argument(
        "--max-health-attempts",
        type=int,
        default=30,
        help="Max health check attempts (default: 30)",
    )
    args = parser.parse_args()

    try:
        client = HttpClient(
            base_url=args.base_url.rstrip("/"),
            timeout_seconds=args.timeout,
            retries=args.retries,
        )
        ctx = SmokeContext(client=client, max_health_attempts=args.max_health_attempts)

        steps = [Step("health", step_health)]
        if args.health_only:
            log("Health-only mode: skipping full flow")
        else:
            steps.extend(
                [
                    Step("challenge", step_challenge),
                    Step("solve and verify", step_solve_and_verify),
                    Step("tampered signature rejected", step_tampered_rejected),
                    Step("malformed payload rejected", step_malformed_rejected),
                ]
            )

        return 0 if run_steps(ctx, steps) else 1
    except Exception as e:
        log(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
