import argparse
import datetime as dt
import json
from typing import Any, Dict, List, Optional

from gradeloop.config import load_config
from gradeloop.core.tool_catalog import tool_categories
from gradeloop.infra.storage import GradeStore


def jaccard_similarity(a: str, b: str) -> float:
    sa = set(a.lower().split()) if a else set()
    sb = set(b.lower().split()) if b else set()
    if not sa and not sb:
        return 1.0
    if not sa or not sb:
        return 0.0
    return len(sa & sb) / len(sa | sb)


def format_ts(ts: Optional[float]) -> str:
    if not ts:
        return "UNKNOWN_TIME"
    return dt.datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def tool_sequence_diff(old: List[str], new: List[str]) -> Dict[str, Any]:
    """Where two tool sequences first diverge, plus per-tool call-count deltas."""
    first_divergence = None
    for i, (a, b) in enumerate(zip(old, new)):
        if a != b:
            first_divergence = i
            break
    if first_divergence is None and len(old) != len(new):
        first_divergence = min(len(old), len(new))

    counts: Dict[str, int] = {}
    for name in old:
        counts[name] = counts.get(name, 0) - 1
    for name in new:
        counts[name] = counts.get(name, 0) + 1

    return {
        "identical": old == new,
        "first_divergence": first_divergence,
        "count_delta": {k: v for k, v in sorted(counts.items()) if v},
    }


def cmd_list(store: GradeStore, limit: int) -> int:
    for r in store.list_runs(limit=limit):
        ok = "OK" if r["success"] else "FAIL"
        tokens = r.get("total_tokens") or 0
        cost = r.get("total_cost") or 0.0
        print(f"{format_ts(r.get('created_ts'))} | {ok} | {r['task']} | iter={r['iterations']} | tok={tokens} | ${cost:.4f}")
        print(f"  {r['run_id']}")
        if r.get("error"):
            print(f"  error: {r['error'][:120]}")
        print()
    return 0


def cmd_show(store: GradeStore, run_id: str) -> int:
    run = store.load_run(run_id)
    if not run:
        print("Run not found")
        return 2
    print(json.dumps(run, indent=2, ensure_ascii=False))
    return 0


def cmd_compare(store: GradeStore, old_id: str, new_id: str) -> int:
    old_run = store.load_run(old_id)
    new_run = store.load_run(new_id)
    if not old_run or not new_run:
        print("Run not found")
        return 2

    if old_run["task"] != new_run["task"]:
        print("WARNING: tasks differ between runs.")
    if old_run["user_message"] != new_run["user_message"]:
        print("WARNING: user messages differ between runs.")

    old_tokens = old_run.get("total_tokens") or 0
    new_tokens = new_run.get("total_tokens") or 0
    old_cost = old_run.get("total_cost") or 0.0
    new_cost = new_run.get("total_cost") or 0.0

    print("Success:", old_run["success"], "->", new_run["success"])
    print("Iterations:", old_run["iterations"], "->", new_run["iterations"])
    print("Tokens:", old_tokens, "->", new_tokens, "Δ", new_tokens - old_tokens)
    print("Cost:", old_cost, "->", new_cost, "Δ", new_cost - old_cost)
    print("Tools:", json.dumps(tool_sequence_diff(old_run["tools_used"], new_run["tools_used"])))
    print(
        "Result similarity (Jaccard):",
        round(jaccard_similarity(old_run.get("result") or "", new_run.get("result") or ""), 3),
    )
    return 0


def cmd_catalog(as_json: bool) -> int:
    categories = tool_categories()
    if as_json:
        payload = {
            category: [t.to_openai_tool()["function"] for t in tools]
            for category, tools in categories.items()
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    for category, tools in categories.items():
        print(f"[{category}]")
        for t in tools:
            required = t.input_shape.required_names()
            args = ", ".join(required) if required else "-"
            print(f"  {t.name}({args})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser()
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_list = sub.add_parser("list")
    p_list.add_argument("--limit", type=int, default=20)

    p_show = sub.add_parser("show")
    p_show.add_argument("run_id")

    p_cmp = sub.add_parser("compare")
    p_cmp.add_argument("old_run_id")
    p_cmp.add_argument("new_run_id")

    p_cat = sub.add_parser("catalog")
    p_cat.add_argument("--json", action="store_true")

    args = parser.parse_args(argv)

    if args.cmd == "catalog":
        return cmd_catalog(args.json)

    store = GradeStore(load_config().db_path)
    if args.cmd == "list":
        return cmd_list(store, args.limit)
    if args.cmd == "show":
        return cmd_show(store, args.run_id)
    return cmd_compare(store, args.old_run_id, args.new_run_id)


if __name__ == "__main__":
    raise SystemExit(main())
