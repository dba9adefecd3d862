"""Concurrent redemption load test for the scavenger kiosk.

Points at a running kiosk, seeds checkpoints and teams, then has many
threads submit every code for every team at once. Passes when each
(team, checkpoint) pair was awarded exactly once and every team's final
total equals the sum of the seeded points.
"""

from __future__ import annotations

import argparse
import base64
import http.cookiejar
import json
import re
import statistics
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
_CSRF_META_RE = re.compile(r'<meta name="csrf-token" content="([^"]+)"')
_OPENER = urllib.request.build_opener(urllib.request.HTTPCookieProcessor(http.cookiejar.CookieJar()))
_CSRF = {}


def _headers(password: str | None) -> dict:
    headers = {"User-Agent": "kiosk-load-test/1.0"}
    if password:
        token = base64.b64encode(f"admin:{password}".encode("utf-8")).decode("ascii")
        headers["Authorization"] = f"Basic {token}"
    return headers


def _fetch_csrf(base_url: str, password: str | None = None) -> None:
    """Load the admin page once so admin POSTs carry its session cookie and token."""
    req = urllib.request.Request(f"{base_url}/admin", headers=_headers(password))
    with _OPENER.open(req, timeout=6.0) as resp:
        match = _CSRF_META_RE.search(resp.read().decode("utf-8", "replace"))
    _CSRF["token"] = match.group(1) if match else ""


def _request(base_url: str, path: str, body=None, password: str | None = None, timeout: float = 6.0):
    headers = _headers(password)
    data = None
    if body is not None:
        data = json.dumps(body).encode("utf-8")
        headers["Content-Type"] = "application/json"
    if path.startswith("/api/admin/") and _CSRF.get("token"):
        headers["X-CSRFToken"] = _CSRF["token"]
    req = urllib.request.Request(f"{base_url}{path}", data=data, headers=headers)
    try:
        with _OPENER.open(req, timeout=timeout) as resp:
            return int(resp.status), json.loads(resp.read() or b"{}")
    except urllib.error.HTTPError as exc:
        try:
            payload = json.loads(exc.read() or b"{}")
        except ValueError:
            payload = {}
        return int(exc.code), payload


def _seed(base_url: str, password: str, checkpoints: int, teams: int) -> tuple[list[dict], list[str]]:
    try:
        _fetch_csrf(base_url)
        status, _ = _request(base_url, "/api/admin/setup", {"pass": password})
        if status != 200:
            raise RuntimeError(f"admin setup failed with {status}")
    except urllib.error.HTTPError as exc:
        # Already configured: the admin page now wants the password
        if exc.code != 401:
            raise
        _fetch_csrf(base_url, password)

    items = [
        {"id": "", "name": f"Load Station {i}", "token_text": f"LOAD-{i:03d}", "points": 5 + i}
        for i in range(1, checkpoints + 1)
    ]
    status, payload = _request(base_url, "/api/admin/checkpoints", {"items": items}, password=password)
    if status != 200 or payload.get("count") != checkpoints:
        raise RuntimeError(f"checkpoint seed failed: {status} {payload}")

    team_ids = []
    run_tag = int(time.time())
    for i in range(1, teams + 1):
        status, payload = _request(base_url, "/api/register", {"team_name": f"Load {run_tag}-{i}", "pin": "1234"})
        if status != 200:
            raise RuntimeError(f"team registration failed: {status} {payload}")
        team_ids.append(payload["team_id"])
    return items, team_ids


@dataclass
class Stats:
    latencies: list[float] = field(default_factory=list)
    awarded: dict[tuple[str, str], int] = field(default_factory=dict)
    duplicates: int = 0
    errors: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def add(self, latency: float, team_id: str, code: str, status: int, payload: dict) -> None:
        with self.lock:
            self.latencies.append(latency)
            if status != 200:
                self.errors += 1
            elif payload.get("duplicate"):
                self.duplicates += 1
            else:
                key = (team_id, code)
                self.awarded[key] = self.awarded.get(key, 0) + 1


def _worker(base_url: str, team_id: str, codes: list[str], stats: Stats, timeout: float) -> None:
    for code in codes:
        start = time.perf_counter()
        try:
            status, payload = _request(base_url, "/api/team/submit_code",
                                       {"team_id": team_id, "token": code.lower()}, timeout=timeout)
        except (urllib.error.URLError, OSError):
            status, payload = 0, {}
        stats.add((time.perf_counter() - start) * 1000.0, team_id, code, status, payload)


def _run(base_url: str, items: list[dict], team_ids: list[str], threads_per_team: int, timeout: float) -> dict:
    stats = Stats()
    codes = [item["token_text"] for item in items]
    workers = [
        threading.Thread(target=_worker, args=(base_url, team_id, codes, stats, timeout))
        for team_id in team_ids
        for _ in range(threads_per_team)
    ]
    start = time.time()
    for thread in workers:
        thread.start()
    for thread in workers:
        thread.join()
    elapsed = max(0.001, time.time() - start)

    expected_total = sum(item["points"] for item in items)
    _, board = _request(base_url, "/api/leaderboard")
    wrong_totals = [t for t in board.get("teams", []) if t["name"].startswith("Load ") and t["points"] != expected_total]
    over_awarded = [list(key) for key, count in stats.awarded.items() if count != 1]
    missing = len(team_ids) * len(codes) - len(stats.awarded)

    return {
        "duration_seconds": elapsed,
        "requests": len(stats.latencies),
        "duplicates": stats.duplicates,
        "errors": stats.errors,
        "latency_ms": {
            "mean": statistics.fmean(stats.latencies) if stats.latencies else 0.0,
            "max": max(stats.latencies) if stats.latencies else 0.0,
        },
        "over_awarded": over_awarded,
        "missing_awards": missing,
        "wrong_totals": wrong_totals,
        "passed": not over_awarded and missing == 0 and not wrong_totals and stats.errors == 0,
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Hammer a running kiosk with concurrent redemptions.")
    parser.add_argument("--base-url", default="http://127.0.0.1:5000", help="Kiosk URL (default: http://127.0.0.1:5000).")
    parser.add_argument("--password", default="loadtest1", help="Admin password to bootstrap or authenticate with.")
    parser.add_argument("--checkpoints", type=int, default=10)
    parser.add_argument("--teams", type=int, default=10)
    parser.add_argument("--threads-per-team", type=int, default=4)
    parser.add_argument("--timeout", type=float, default=6.0, help="Per-request timeout seconds (default: 6).")
    parser.add_argument(
        "--output",
        default=str(PROJECT_ROOT / "instance" / "load_test_report.json"),
        help="Path for JSON report output.",
    )
    args = parser.parse_args()

    items, team_ids = _seed(args.base_url, args.password, args.checkpoints, args.teams)
    report = _run(args.base_url, items, team_ids, args.threads_per_team, args.timeout)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(report, indent=2), encoding="utf-8")

    print(json.dumps(report, indent=2))
    print(f"\nReport written to: {output_path}")
    return 0 if report["passed"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
