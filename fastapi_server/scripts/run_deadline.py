"""
Deadline runner - meant to be called by cron shortly after Saturday 1 PM Eastern.

Fills in auto-picks for every member of a series who missed the deadline and,
given a results file, posts the week's outcomes:

    {"week": 13, "outcomes": {"kc": "win", "lv": "loss", "dal": "tie"}}

It talks to a running API as the series admin (X-User-Id).
"""
import json
import os
import time
from pathlib import Path
from typing import Dict, Optional

import requests

DEFAULT_API_URL = os.getenv("SURVIVOR_API_URL", "http://localhost:8000")


class PoolClient:
    def __init__(self, admin_user_id: str, base_url: str = DEFAULT_API_URL):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.session.headers["X-User-Id"] = admin_user_id

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Dict[str, object]:
        url = f"{self.base_url}{path}"
        delay_seconds = 2
        max_attempts = 5
        for attempt in range(1, max_attempts + 1):
            try:
                response = self.session.request(method, url, json=payload, timeout=30)
            except requests.ConnectionError as e:
                print(f"Connection failed for {path}: {e}. Sleeping {delay_seconds}s ({attempt}/{max_attempts})")
                time.sleep(delay_seconds)
                delay_seconds = min(delay_seconds * 2, 60)
                continue
            if response.status_code >= 500 and attempt < max_attempts:
                print(f"Server error {response.status_code} for {path}. Sleeping {delay_seconds}s ({attempt}/{max_attempts})")
                time.sleep(delay_seconds)
                delay_seconds = min(delay_seconds * 2, 60)
                continue
            response.raise_for_status()
            return response.json()

        raise RuntimeError(f"Retries exhausted for {method} {path}")

    def get_deadline(self, series_id: str) -> Dict[str, object]:
        return self._request("GET", f"/api/series/{series_id}/deadline")

    def run_auto_picks(self, series_id: str, week: Optional[int] = None) -> Dict[str, object]:
        return self._request("POST", f"/api/series/{series_id}/auto-picks", {"week": week})

    def post_results(self, series_id: str, week: int, outcomes: Dict[str, str]) -> list:
        return self._request("POST", f"/api/series/{series_id}/results", {"week": week, "outcomes": outcomes})


def run(series_id: str, admin_user_id: str, results_file: Optional[Path] = None, base_url: str = DEFAULT_API_URL) -> None:
    client = PoolClient(admin_user_id, base_url)

    deadline = client.get_deadline(series_id)
    week = deadline["week"]
    if deadline["deadline_passed"]:
        summary = client.run_auto_picks(series_id, week)
        for entry in summary["auto_picks"]:
            print(f"Auto-picked {entry['team_id'].upper()} for {entry['user_name'] or entry['member_id']}")
        for failure in summary["failures"]:
            print(f"Auto-pick FAILED for {failure['user_name'] or failure['member_id']}: {failure['detail']}")
        print(f"Week {week}: {len(summary['auto_picks'])} auto-pick(s), {len(summary['failures'])} failure(s)")
    else:
        print(f"Week {week} deadline is {deadline['deadline']}, nothing to auto-pick yet")

    if results_file:
        with open(results_file) as f:
            results = json.load(f)
        members = client.post_results(series_id, results["week"], results["outcomes"])
        alive = sum(1 for m in members if not m["is_eliminated"])
        print(f"Posted week {results['week']} results: {alive}/{len(members)} still alive")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run auto-picks and post results for a survivor series")
    parser.add_argument("series_id")
    parser.add_argument("--admin-user-id", required=True, help="User id of a series admin")
    parser.add_argument("--results", type=Path, default=None, help="JSON file with week outcomes")
    parser.add_argument("--api-url", default=DEFAULT_API_URL)
    args = parser.parse_args()

    run(args.series_id, args.admin_user_id, args.results, args.api_url)
