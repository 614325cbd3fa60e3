"""CLI entrypoint for offline atlas maintenance and the HTTP API."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from constellate.config import ConstellateConfig, load_effective_config
from constellate.logging_utils import configure_logging
from constellate.models import Connection, Point, star_id_for_date
from constellate.pipeline import ConstellationEngine
from constellate.reporting import write_report_bundle
from constellate.storage import SQLiteStorage
from constellate.visibility import DatePredicate, window_from_config

logger = logging.getLogger(__name__)


def _load_json_object(path: str | None) -> dict[str, Any]:
    if not path:
        return {}
    raw = json.loads(Path(path).read_text())
    if not isinstance(raw, dict):
        raise ValueError(f"JSON at {path} must be an object keyed by date")
    return raw


def _load_yaml_dict(path: str | None) -> dict | None:
    if not path:
        return None
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def _load_config(args: argparse.Namespace) -> ConstellateConfig:
    return load_effective_config(
        project_path=args.project_path,
        user_defaults=_load_yaml_dict(args.user_config),
        system_defaults=_load_yaml_dict(args.system_config),
        runtime_override=_load_yaml_dict(args.runtime_override),
    )


def _open_storage(args: argparse.Namespace, config: ConstellateConfig) -> SQLiteStorage:
    if config.storage.backend != "sqlite":
        raise ValueError(f"Unsupported storage backend: {config.storage.backend}")
    return SQLiteStorage(args.db_path or config.storage.sqlite_path)


def _visibility(args: argparse.Namespace) -> DatePredicate | None:
    return window_from_config(getattr(args, "window_days", None))


def _add_common_config_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--project-path", default=".", help="Directory holding .constellate.yaml")
    cmd.add_argument("--user-config", help="Optional user defaults YAML")
    cmd.add_argument("--system-config", help="Optional system defaults YAML")
    cmd.add_argument("--runtime-override", help="Optional runtime override YAML")
    cmd.add_argument("--db-path", help="SQLite path (overrides storage.sqlite_path)")
    cmd.add_argument("--user", default="local", help="Atlas owner id")


def _add_window_flag(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument(
        "--window-days",
        type=int,
        help="Only cluster/render stars dated within the last N days (defaults to visibility.window_days)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Constellate atlas engine")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Merge a score-history snapshot into the atlas and recluster")
    build.add_argument("--scores", required=True, help="JSON object: date -> seven mood scores")
    build.add_argument("--journals", help="Optional JSON object: date -> journal text")
    build.add_argument("--keywords", help="Optional JSON object: date -> keyword list")
    build.add_argument("--identity-hint", help="Optional writer profile passed to the namer")
    build.add_argument("--output-dir", help="Also write a report bundle to this directory")
    _add_common_config_flags(build)
    _add_window_flag(build)

    merge = sub.add_parser("merge", help="Upsert one day's star")
    merge.add_argument("--date", required=True, help="Day to merge (YYYY-MM-DD)")
    merge.add_argument("--x", type=float, help="Explicit x position (skips projection)")
    merge.add_argument("--y", type=float, help="Explicit y position (skips projection)")
    merge.add_argument("--scores", help="JSON file with this day's mood scores")
    merge.add_argument("--content-length", type=int, help="Character length of the journal entry")
    merge.add_argument("--keyword", action="append", default=[], help="Keyword tag (repeatable)")
    merge.add_argument("--connect", action="append", default=[], help="Star id or date to connect to (repeatable)")
    _add_common_config_flags(merge)

    delete = sub.add_parser("delete", help="Remove a star, its edges and any constellation it leaves too small")
    target = delete.add_mutually_exclusive_group(required=True)
    target.add_argument("--star-id", help="Star id, e.g. star-2024-01-01")
    target.add_argument("--date", help="Day whose star should be removed")
    _add_common_config_flags(delete)

    recluster = sub.add_parser("recluster", help="Re-derive constellations and names from stored stars")
    recluster.add_argument("--journals", help="Optional JSON object: date -> journal text (naming snippets)")
    recluster.add_argument("--identity-hint", help="Optional writer profile passed to the namer")
    _add_common_config_flags(recluster)
    _add_window_flag(recluster)

    render = sub.add_parser("render", help="Write atlas, display layout and markdown report")
    render.add_argument("--output-dir", default="./constellate-out", help="Output directory")
    _add_common_config_flags(render)
    _add_window_flag(render)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind host")
    serve.add_argument("--port", type=int, default=8000, help="Bind port")
    _add_common_config_flags(serve)

    return parser


def _connection_target(value: str) -> str:
    return value if value.startswith("star-") else star_id_for_date(value)


def _run_build(args: argparse.Namespace) -> int:
    config = _load_config(args)
    storage = _open_storage(args, config)
    engine = ConstellationEngine(config)
    journals = _load_json_object(args.journals)

    store = storage.load_atlas(args.user)
    cache = storage.load_identity_cache(args.user)
    engine.build_from_history(
        store,
        _load_json_object(args.scores),
        journal_contents=journals,
        keywords_by_date=_load_json_object(args.keywords),
    )
    report = engine.recluster(
        store,
        cache,
        visible=_visibility(args),
        journal_contents=journals,
        identity_hint=args.identity_hint,
    )
    storage.save_atlas(args.user, store)
    storage.save_identity_cache(args.user, cache)

    if args.output_dir:
        view = engine.render_view(store, visible=_visibility(args))
        write_report_bundle(store, view, args.output_dir, report)
    logger.info("Build complete: stars=%s constellations=%s", report.star_count, len(report.clusters))
    return 0


def _run_merge(args: argparse.Namespace) -> int:
    config = _load_config(args)
    storage = _open_storage(args, config)
    store = storage.load_atlas(args.user)
    star_id = star_id_for_date(args.date)
    connections = [Connection(source=star_id, target=_connection_target(value)) for value in args.connect]

    if (args.x is None) != (args.y is None):
        raise ValueError("--x and --y must be given together")
    if args.x is not None:
        star = store.merge_star(
            args.date,
            Point(x=args.x, y=args.y),
            args.keyword,
            connections,
            args.content_length,
            projection=config.projection,
        )
    else:
        scores = json.loads(Path(args.scores).read_text()) if args.scores else None
        star = ConstellationEngine(config).ingest_day(
            store,
            args.date,
            scores,
            content_length=args.content_length,
            keywords=args.keyword,
            connections=connections,
        )

    storage.save_atlas(args.user, store)
    logger.info("Merged %s at (%.1f, %.1f) size=%.2f", star.id, star.x, star.y, star.size)
    return 0


def _run_delete(args: argparse.Namespace) -> int:
    config = _load_config(args)
    storage = _open_storage(args, config)
    store = storage.load_atlas(args.user)
    star_id = args.star_id or star_id_for_date(args.date)

    if not store.delete_star(star_id):
        logger.info("No star %s; nothing to delete", star_id)
        return 0
    storage.save_atlas(args.user, store)
    logger.info("Deleted %s; constellations remaining=%s", star_id, len(store.clusters))
    return 0


def _run_recluster(args: argparse.Namespace) -> int:
    config = _load_config(args)
    storage = _open_storage(args, config)
    store = storage.load_atlas(args.user)
    cache = storage.load_identity_cache(args.user)

    report = ConstellationEngine(config).recluster(
        store,
        cache,
        visible=_visibility(args),
        journal_contents=_load_json_object(args.journals),
        identity_hint=args.identity_hint,
    )
    storage.save_atlas(args.user, store)
    storage.save_identity_cache(args.user, cache)
    print(report.model_dump_json(indent=2, by_alias=True))
    return 0


def _run_render(args: argparse.Namespace) -> int:
    config = _load_config(args)
    storage = _open_storage(args, config)
    store = storage.load_atlas(args.user)
    view = ConstellationEngine(config).render_view(store, visible=_visibility(args))
    write_report_bundle(store, view, args.output_dir)
    logger.info("Render complete: stars=%s output=%s", len(view.stars), args.output_dir)
    return 0


def _run_serve(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if args.db_path:
        config = config.model_copy(update={"storage": config.storage.model_copy(update={"sqlite_path": args.db_path})})

    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - dependency/runtime
        raise RuntimeError("Missing optional API dependencies. Install with: pip install 'constellate[ui]'") from exc

    from constellate.webapp import create_app

    logger.info("Starting API on http://%s:%s", args.host, args.port)
    uvicorn.run(create_app(config), host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "build":
        return _run_build(args)
    if args.command == "merge":
        return _run_merge(args)
    if args.command == "delete":
        return _run_delete(args)
    if args.command == "recluster":
        return _run_recluster(args)
    if args.command == "render":
        return _run_render(args)
    if args.command == "serve":
        return _run_serve(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
