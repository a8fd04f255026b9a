"""Operator command line for the VideoArchive catalog."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence

from catalog.config_store import config_as_dict
from catalog.context import ArchiveContext, open_context, resolve_startup_options
from catalog.errors import CatalogError
from catalog.exporter import EXPORT_FORMATS, build_failure_report, export_entries
from catalog.schema import schema_version
from catalog.types import ScopeMode
from core.logging_utils import configure_logging
from core.paths import ensure_working_dir_structure, get_exports_dir, resolve_working_dir
from core.settings import load_settings

LOGGER = logging.getLogger("videoarchive.cli")

EXIT_OK = 0
EXIT_ERROR = 2


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _cmd_init(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    return {"db_path": str(ctx.options.db_path), "schema_version": schema_version(ctx.handle)}


def _cmd_stats(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    return ctx.catalog.compute_statistics().as_dict()


def _cmd_failed(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    return build_failure_report(ctx.catalog, max_retry_count=args.max_retry)


def _cmd_scope_add(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    scope = ctx.scopes.add_scope(
        args.mode,
        args.container_url,
        args.library or "",
        args.folder or "",
        recursive=not args.no_recursive,
        display_name=args.name,
        enabled=not args.disabled,
    )
    return scope.as_dict()


def _cmd_scope_list(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    return {"results": [scope.as_dict() for scope in ctx.scopes.list_scopes(enabled_only=args.enabled_only)]}


def _cmd_scope_remove(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    removed = ctx.scopes.remove_scope(args.scope_id, cascade=args.cascade)
    return {"scope_id": args.scope_id, "cascade": bool(args.cascade), "entries_removed": removed}


def _cmd_scope_enable(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    return ctx.scopes.enable_scope(args.scope_id).as_dict()


def _cmd_scope_disable(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    return ctx.scopes.disable_scope(args.scope_id).as_dict()


def _cmd_scope_refresh(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    if args.scope_id is None:
        scopes = ctx.scopes.refresh_all_stats()
    else:
        scopes = [ctx.scopes.refresh_scope_stats(args.scope_id)]
    return {"results": [scope.as_dict() for scope in scopes]}


def _cmd_prune(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    if args.log_days is None and args.audit_days is None:
        return ctx.prune()
    logs_days = ctx.options.retention_days if args.log_days is None else args.log_days
    audit_days = ctx.options.audit_retention_days if args.audit_days is None else args.audit_days
    return {
        "logs": ctx.logger.prune_old_entries(logs_days),
        "audit": ctx.audit.prune(audit_days),
    }


def _cmd_resume(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    return {"reset": ctx.catalog.reset_interrupted()}


def _cmd_config_show(ctx: ArchiveContext, args: argparse.Namespace) -> Dict[str, Any]:
    return config_as_dict(ctx.config())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and maintain the VideoArchive catalog.")
    parser.add_argument("--db", default=None, help="Catalog database path (default from settings.json)")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the catalog database and schema")
    sub.add_parser("stats", help="Print catalog statistics")

    failed = sub.add_parser("failed", help="Print the failure report")
    failed.add_argument("--max-retry", type=int, default=None, help="Only entries with retry_count <= N")

    scope_add = sub.add_parser("scope-add", help="Register a scan scope")
    scope_add.add_argument("mode", choices=[mode.value for mode in ScopeMode], type=_scope_mode)
    scope_add.add_argument("container_url")
    scope_add.add_argument("--library", default="")
    scope_add.add_argument("--folder", default="")
    scope_add.add_argument("--name", default=None, help="Display name")
    scope_add.add_argument("--no-recursive", action="store_true")
    scope_add.add_argument("--disabled", action="store_true")

    scope_list = sub.add_parser("scope-list", help="List scan scopes")
    scope_list.add_argument("--enabled-only", action="store_true")

    scope_remove = sub.add_parser("scope-remove", help="Remove a scan scope")
    scope_remove.add_argument("scope_id", type=int)
    scope_remove.add_argument("--cascade", action="store_true", help="Also delete the scope's catalog entries")

    for name, help_text in (("scope-enable", "Enable a scan scope"), ("scope-disable", "Disable a scan scope")):
        toggle = sub.add_parser(name, help=help_text)
        toggle.add_argument("scope_id", type=int)

    scope_refresh = sub.add_parser("scope-refresh", help="Recompute cached scope totals")
    scope_refresh.add_argument("scope_id", type=int, nargs="?", default=None)

    prune = sub.add_parser("prune", help="Delete log and audit rows past retention")
    prune.add_argument("--log-days", type=int, default=None)
    prune.add_argument("--audit-days", type=int, default=None)

    sub.add_parser("resume", help="Return interrupted entries to Cataloged")

    export = sub.add_parser("export", help="Export catalog entries and the failure report")
    export.add_argument("--format", choices=list(EXPORT_FORMATS), default="jsonl")
    export.add_argument("--status", default=None, help="Only export entries with this status")
    export.add_argument("--out", default=None, help="Export directory (default: <working_dir>/exports)")

    sub.add_parser("config-show", help="Print the stored operational configuration")
    return parser


def _scope_mode(value: str) -> str:
    for mode in ScopeMode:
        if mode.value.lower() == value.strip().lower():
            return mode.value
    return value


_COMMANDS: Dict[str, Callable[[ArchiveContext, argparse.Namespace], Any]] = {
    "init": _cmd_init,
    "stats": _cmd_stats,
    "failed": _cmd_failed,
    "scope-add": _cmd_scope_add,
    "scope-list": _cmd_scope_list,
    "scope-remove": _cmd_scope_remove,
    "scope-enable": _cmd_scope_enable,
    "scope-disable": _cmd_scope_disable,
    "scope-refresh": _cmd_scope_refresh,
    "prune": _cmd_prune,
    "resume": _cmd_resume,
    "config-show": _cmd_config_show,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    working_dir = resolve_working_dir()
    ensure_working_dir_structure(working_dir)
    settings = load_settings(working_dir)
    if args.db:
        settings["catalog_db"] = args.db
    logging_cfg = dict(settings.get("logging") or {})
    if args.log_level:
        logging_cfg["level"] = args.log_level
        settings["logging"] = logging_cfg
    configure_logging(
        working_dir,
        level=str(logging_cfg.get("level", "INFO")),
        console=bool(logging_cfg.get("console", True)),
        json_file=bool(logging_cfg.get("json_file", True)),
    )

    try:
        with open_context(resolve_startup_options(settings, working_dir)) as ctx:
            if args.command == "export":
                out_dir = Path(args.out).expanduser() if args.out else get_exports_dir(working_dir)
                paths = export_entries(ctx.catalog, out_dir, format=args.format, status=args.status)
                result: Any = {"paths": [str(path) for path in paths]}
            else:
                result = _COMMANDS[args.command](ctx, args)
    except (CatalogError, ValueError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        _emit({"error": str(exc)})
        return EXIT_ERROR
    _emit(result)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
