#!/usr/bin/env python3
"""
Sprintboard command line

Commands:
  init                Create tables, default config and the default project
  sprints             List sprints (optionally by project / status)
  recompute           Re-derive a sprint's progress columns from its tasks
  insights            Print velocity, capacity and risk for a project
  serve               Run the HTTP API with uvicorn
"""
from __future__ import annotations

import argparse
import asyncio
import os

from .db import ensure_schema, get_conn
from .logs import ensure_log_schema
from .services.config_svc import ensure_default_config, get_config
from .services.wiring import get_tracker


def cmd_init(args):
    ensure_schema()
    ensure_log_schema()
    ensure_default_config()
    project_id = get_config()["default_project_id"]
    with get_conn() as conn:
        conn.execute(
            "INSERT INTO projects(id, name) VALUES (?, ?) ON CONFLICT(id) DO NOTHING",
            (project_id, args.project_name),
        )
        conn.commit()
    print(f"Initialized. default project: {project_id}")


def cmd_sprints(args):
    statuses = [s.strip() for s in args.status.split(",")] if args.status else None
    rows = asyncio.run(get_tracker().sprints.list_sprints(args.project, statuses))
    if not rows:
        print("(empty)")
        return
    for r in rows:
        print(f"{r['id']:>4}  {r['status']:<10} {r.get('start_date') or '-':<10} -> "
              f"{r.get('end_date') or '-':<10}  {r['progress']:>6.2f}%  {r['name']}")


def cmd_recompute(args):
    agg = asyncio.run(get_tracker().sprints.recompute_progress(args.sprint))
    if agg is None:
        raise SystemExit(f"recompute failed for sprint {args.sprint}")
    print(f"sprint {args.sprint}: {agg['tasks_completed']}/{agg['tasks_total']} tasks, "
          f"{agg['progress']:.2f}%, {agg['story_points']} points")


def cmd_insights(args):
    out = asyncio.run(get_tracker().sprints.insights(args.project))
    for k, v in out.items():
        print(f"{k}: {v}")


def cmd_serve(args):
    import uvicorn

    uvicorn.run("sprintboard.api:app", host=args.host, port=args.port, reload=args.reload)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Sprintboard data layer (SQLite)")
    parser.add_argument("--config", default=None, help="path to config.yaml")
    sub = parser.add_subparsers()

    p_init = sub.add_parser("init", help="create tables and seed defaults")
    p_init.add_argument("--project-name", default="Demo Project")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("sprints", help="list sprints")
    p_list.add_argument("--project", required=False)
    p_list.add_argument("--status", required=False, help="comma separated")
    p_list.set_defaults(func=cmd_sprints)

    p_rec = sub.add_parser("recompute", help="recompute sprint progress")
    p_rec.add_argument("--sprint", required=True, type=int)
    p_rec.set_defaults(func=cmd_recompute)

    p_ins = sub.add_parser("insights", help="velocity heuristics")
    p_ins.add_argument("--project", required=False)
    p_ins.set_defaults(func=cmd_insights)

    p_srv = sub.add_parser("serve", help="run the API")
    p_srv.add_argument("--host", default="127.0.0.1")
    p_srv.add_argument("--port", default=8000, type=int)
    p_srv.add_argument("--reload", action="store_true")
    p_srv.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)
    if args.config:
        os.environ["SPRINTBOARD_CONFIG"] = args.config
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
