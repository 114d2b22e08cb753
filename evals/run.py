from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

import httpx

from evals.metrics import (
    EvalResult,
    check_attachment_bounds,
    check_grounding_no_invented_amounts,
    check_parsed_fields,
    check_response_type,
    check_results_match_filters,
)


DEFAULT_CASES = Path(__file__).resolve().parent / "cases.json"


def _load_json(path: str | Path) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


async def run_case(client: httpx.AsyncClient, case: dict[str, Any]) -> EvalResult:
    name = case["name"]
    expect = case.get("expect") or {}
    failures: list[str] = []

    try:
        r = await client.post("/ai/search", json={"query": case["query"]})
    except httpx.TimeoutException:
        return EvalResult(case_name=name, passed=False, failures=["search_timeout"])
    except httpx.TransportError:
        return EvalResult(case_name=name, passed=False, failures=["search_transport_error"])
    if r.status_code != 200:
        return EvalResult(case_name=name, passed=False, failures=[f"search_http_{r.status_code}"])

    data = r.json()
    failures += check_response_type(data, expect.get("type"))
    failures += check_parsed_fields(data, expect.get("parsed"))
    failures += check_attachment_bounds(data)
    failures += check_results_match_filters(data)
    failures += check_grounding_no_invented_amounts(data)

    message = data.get("message") or ""
    for s in expect.get("contains") or []:
        if s.lower() not in message.lower():
            failures.append(f"assert_contains_missing:{s}")

    return EvalResult(case_name=name, passed=(len(failures) == 0), failures=failures)


def _client(base_url: str, in_process: bool) -> httpx.AsyncClient:
    if in_process:
        # Drive the app without a running server; still needs DATABASE_URL for the listings.
        from services.api.app.main import app

        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://eval", timeout=30.0)
    return httpx.AsyncClient(base_url=base_url, timeout=30.0)


async def amain() -> int:
    p = argparse.ArgumentParser()
    p.add_argument("--base-url", default="http://localhost:8000")
    p.add_argument("--cases", default=str(DEFAULT_CASES))
    p.add_argument("--out", required=True)
    p.add_argument("--in-process", action="store_true", help="Call the API app in-process instead of over HTTP.")
    args = p.parse_args()

    cases = _load_json(args.cases)

    results: list[dict[str, Any]] = []
    passed = 0
    async with _client(args.base_url, args.in_process) as client:
        for case in cases:
            res = await run_case(client, case)
            results.append({"name": res.case_name, "passed": res.passed, "failures": res.failures})
            passed += 1 if res.passed else 0

    out = {"total": len(results), "passed": passed, "results": results}
    Path(args.out).write_text(json.dumps(out, indent=2), encoding="utf-8")
    print(json.dumps(out, indent=2))
    return 0 if passed == len(results) else 1


def main() -> None:
    import asyncio

    raise SystemExit(asyncio.run(amain()))


if __name__ == "__main__":
    main()
