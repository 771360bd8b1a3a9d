import argparse
import json
from datetime import datetime, timezone

import requests

_PATHS = (
    "/ping",
    "/health",
    "/health/ready",
    "/api/summary/week",
    "/api/summary/cadence",
    "/openapi.json",
)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check(base_url: str, path: str, timeout: float) -> dict:
    url = f"{base_url}{path}"
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        return {"path": path, "status_code": None, "ok": False, "error": str(exc)}
    return {
        "path": path,
        "status_code": response.status_code,
        "ok": response.status_code < 400,
        "request_id": response.headers.get("X-Request-ID"),
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="GroomBook post-deploy smoke test")
    parser.add_argument("--base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--timeout", type=float, default=10.0)
    args = parser.parse_args()

    base_url = args.base_url.rstrip("/")
    results = [_check(base_url, path, args.timeout) for path in _PATHS]
    ok = all(item["ok"] for item in results)
    report = {
        "checked_at": _utc_now_iso(),
        "base_url": base_url,
        "ok": ok,
        "results": results,
    }
    print(json.dumps(report, ensure_ascii=True))
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
