#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# --- ensure repo root on sys.path ---
THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from logging_setup import setup_logging
from massaction.applier import describe_step
from massaction.errors import MassActionError, StoreError
from massaction.index import build_index
from massaction.run_batch import prepare_batch, run_batch
from massaction.section_filter import SectionFilter, SectionFilterHook
from stores.canvas_store import CanvasStore
from stores.deletion import InMemoryDeletionQueue
from stores.json_store import JsonFileStore
from utils.api import CanvasAPI
from utils.config import Settings
from utils.fs import atomic_write, json_dumps_stable


def build_filters(
    veto: List[int],
    *,
    no_keep_original: bool = False,
    no_create_section: bool = False,
) -> List[SectionFilter]:
    """Section filters assembled from command-line switches."""
    filters: List[SectionFilter] = []
    if veto:
        def _veto(hook: SectionFilterHook) -> SectionFilterHook:
            for n in veto:
                hook = hook.remove_section(n)
            return hook
        filters.append(_veto)

    # both switches only mean something when copying into another course
    if no_keep_original:
        def _no_keep(hook: SectionFilterHook) -> SectionFilterHook:
            return hook.disable_keep_original_section() if hook.is_another_course else hook
        filters.append(_no_keep)
    if no_create_section:
        def _no_create(hook: SectionFilterHook) -> SectionFilterHook:
            return hook.disable_create_new_section() if hook.is_another_course else hook
        filters.append(_no_create)
    return filters


def _read_payload(args: argparse.Namespace) -> str:
    if args.payload_file:
        return Path(args.payload_file).read_text(encoding="utf-8")
    return args.payload or ""


def _open_store(args: argparse.Namespace, settings: Settings):
    store_path = args.store_json or settings.store_path
    if store_path:
        return JsonFileStore.load(Path(store_path))
    if settings.has_canvas:
        return CanvasStore(CanvasAPI.from_settings(settings))
    return None


def _error_summary(e: Exception) -> Dict[str, Any]:
    if isinstance(e, MassActionError):
        return e.to_dict()
    return {"error": type(e).__name__, "message": str(e)}


def _write_summary(path: Optional[Path], summary: Dict[str, Any]) -> None:
    if path:
        atomic_write(path, json_dumps_stable(summary))


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Apply one bulk action to selected course items.")
    ap.add_argument("--course-id", required=True, type=int, help="Course holding the selected items")
    src = ap.add_mutually_exclusive_group()
    src.add_argument("--payload", default=None,
                     help='JSON payload, e.g. \'{"action": "move-to", "itemIds": [1, 2], "target": 3}\'')
    src.add_argument("--payload-file", type=Path, default=None, help="Read the JSON payload from this file")
    ap.add_argument("--store-json", type=Path, default=None,
                    help="Course snapshot file (default: $MASSACTION_STORE; Canvas when CANVAS_URL/CANVAS_TOKEN are set)")
    ap.add_argument("--veto-section", type=int, action="append", default=[],
                    help="Section number that may not be used as a target (repeatable)")
    ap.add_argument("--no-keep-original-section", action="store_true",
                    help="When duplicating to another course, forbid keeping the original section numbers")
    ap.add_argument("--no-create-section", action="store_true",
                    help="When duplicating to another course, forbid creating a new section")
    ap.add_argument("--dry-run", action="store_true", help="Print the plan; write nothing.")
    ap.add_argument("--drain-deletions", action="store_true",
                    help="Purge deleted items right after the batch instead of leaving them flagged.")
    ap.add_argument("--list-items", action="store_true", help="Print item ids and names in section order and exit.")
    ap.add_argument("--summary-json", type=Path, default=None,
                    help="If provided, write a JSON summary of the run here.")
    ap.add_argument("-v", "--verbose", action="count", default=0)

    args = ap.parse_args(argv)
    if not args.list_items and not (args.payload or args.payload_file):
        ap.error("--payload or --payload-file is required unless --list-items is given")

    setup_logging(verbosity=args.verbose or 1)
    settings = Settings.from_env()

    try:
        store = _open_store(args, settings)
    except StoreError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    if store is None:
        ap.error("no store: pass --store-json or set CANVAS_URL and CANVAS_TOKEN")

    if args.list_items:
        try:
            names = build_index(store, args.course_id).item_names()
        except StoreError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        for item_id, name in names:
            print(f"{item_id}\t{name}")
        return 0

    filters = build_filters(
        args.veto_section,
        no_keep_original=args.no_keep_original_section,
        no_create_section=args.no_create_section,
    )
    payload = _read_payload(args)
    summary: Dict[str, Any] = {"course_id": args.course_id, "dry_run": bool(args.dry_run)}

    if args.dry_run:
        try:
            prepared = prepare_batch(payload, store=store, course_id=args.course_id, filters=filters)
        except (MassActionError, StoreError) as e:
            summary["error"] = _error_summary(e)
            _write_summary(args.summary_json, summary)
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        plan = prepared.plan
        print(f"DRY-RUN: {plan.action} on {len(plan.item_ids)} item(s), {len(plan.steps)} step(s)")
        for n, step in enumerate(plan.steps, start=1):
            print(f" {n:>3}. {describe_step(step)}")
        if prepared.selection.dropped:
            print(f"dropped ids: {list(prepared.selection.dropped)}")
        summary["plan"] = {"action": plan.action, "item_ids": list(plan.item_ids), "steps": len(plan.steps)}
        _write_summary(args.summary_json, summary)
        return 0

    queue = InMemoryDeletionQueue()
    rc = 0
    try:
        result = run_batch(payload, store=store, course_id=args.course_id, filters=filters, deletion_queue=queue)
        summary["result"] = result.to_dict()
        if args.drain_deletions and len(queue):
            summary["deletions"] = queue.drain(store)
    except (MassActionError, StoreError) as e:
        summary["error"] = _error_summary(e)
        print(f"ERROR: {e}", file=sys.stderr)
        rc = 1
    finally:
        # applied steps persist even when the batch aborted
        if isinstance(store, JsonFileStore):
            store.save()

    _write_summary(args.summary_json, summary)
    if rc == 0:
        print(json.dumps(summary["result"], indent=2))
    return rc


if __name__ == "__main__":
    sys.exit(main())
