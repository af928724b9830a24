#!/usr/bin/env python3
"""
Task Board Server
-----------------
Serves the board page and a JSON API over the task store. Tasks live either
as issues on the issue tracker (backend: github) or in a local SQLite file
(backend: local).

Usage:
    export TASKBOARD_TOKEN=...
    python board_server.py --config config.yaml

API:
    GET    /                          → board page (HTML)
    GET    /api/board                 → { tasks, counts, stats, backend }
    POST   /api/tasks                 → create; returns { task, patches }
    PUT    /api/tasks/<id>            → partial update; returns { task, status_changed, patches }
    POST   /api/tasks/<id>/move       → { status }; same response as PUT
    DELETE /api/tasks/<id>            → returns { task, patches }
    POST   /api/refresh               → reload everything from the backend
    GET    /api/tasks/<id>/activity   → comments + events
    POST   /api/tasks/<id>/comments   → { body }
    GET    /api/tips                  → { tips, archived }
    POST   /api/tips                  → create a tip
    PUT    /api/tips/<id>             → partial update of a tip
    POST   /api/tips/<id>/convert     → tip → task; tip is archived
    DELETE /api/tips/<id>             → tombstone a tip
    POST   /api/auth                  → { token }; replace an expired credential

Mutating endpoints return the view patches for the change, so the page can
update the affected cards without reloading.
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from flask import Flask, jsonify, request

from pkg.taskboard.activity import add_comment, build_feed
from pkg.taskboard.backends import IssueBackend, LocalBackend
from pkg.taskboard.config import BoardConfig
from pkg.taskboard.errors import (
    AuthExpired,
    ConfigError,
    MutationInFlight,
    NotFound,
    RemoteRejected,
    Unauthenticated,
)
from pkg.taskboard.github import GitHubIssues
from pkg.taskboard.local import LocalStorage
from pkg.taskboard.render import patch_to_dict, render_board
from pkg.taskboard.store import TaskStore
from pkg.taskboard.sync import BoardView, column_counts
from pkg.taskboard.tips import TipStore

logger = logging.getLogger("board_server")


# ── Wiring ───────────────────────────────────────────────────────────────────

def build_board(cfg: BoardConfig):
    """
    Build (store, view, tips, client) for the configured backend.

    Raises Unauthenticated when the github backend has no token.
    """
    client = None
    tips = None
    if cfg.backend == "github":
        client = GitHubIssues(
            cfg.owner,
            cfg.repo,
            cfg.resolve_token(),
            api_url=cfg.api_url,
            per_page=cfg.per_page,
            timeout=cfg.timeout,
        )
        backend = IssueBackend(client, tip_label=cfg.tip_label)
        tips = TipStore(client, tip_label=cfg.tip_label)
    else:
        backend = LocalBackend(LocalStorage(cfg.db_path, key=cfg.storage_key))

    store = TaskStore(backend)
    view = BoardView()
    store.subscribe(view.on_change)
    return store, view, tips, client


def create_app(
    store: TaskStore,
    view: BoardView,
    tips: Optional[TipStore] = None,
    client: Optional[GitHubIssues] = None,
    title: str = "Task Board",
) -> Flask:
    app = Flask(__name__)

    def patches():
        return [patch_to_dict(p) for p in view.drain()]

    @app.before_request
    def start_patch_log():
        # Drop patches left on this thread by startup or an earlier request
        view.drain()

    def body():
        data = request.get_json(force=True, silent=True)
        return data if isinstance(data, dict) else {}

    def issue_number(task_id: str) -> Optional[int]:
        task = store.get(task_id)
        return task.number if task else None

    # ── Errors ───────────────────────────────────────────────────────────────

    @app.errorhandler(AuthExpired)
    def auth_expired(e):
        return jsonify({"error": str(e), "status": e.status, "reauth": True}), 401

    @app.errorhandler(Unauthenticated)
    def unauthenticated(e):
        return jsonify({"error": str(e), "reauth": True}), 401

    @app.errorhandler(RemoteRejected)
    def remote_rejected(e):
        return jsonify({"error": str(e), "status": e.status}), 502

    @app.errorhandler(MutationInFlight)
    def in_flight(e):
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(NotFound)
    def not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(ValueError)
    def invalid(e):
        return jsonify({"error": str(e)}), 400

    # ── Board ────────────────────────────────────────────────────────────────

    @app.route("/")
    def index():
        return render_board(view, title=title)

    @app.route("/api/board")
    def api_board():
        tasks = store.list()
        return jsonify({
            "tasks": [t.to_dict() for t in tasks],
            "counts": {s.value: n for s, n in column_counts(tasks).items()},
            "stats": store.stats(),
            "backend": "github" if client else "local",
        })

    @app.route("/api/refresh", methods=["POST"])
    def api_refresh():
        tasks = store.refresh_all()
        return jsonify({"tasks": [t.to_dict() for t in tasks], "patches": patches()})

    # ── Tasks ────────────────────────────────────────────────────────────────

    @app.route("/api/tasks", methods=["POST"])
    def api_create_task():
        task = store.create(body())
        return jsonify({"task": task.to_dict(), "patches": patches()}), 201

    def _update(task_id, changes):
        try:
            result = store.update(task_id, changes)
        except NotFound:
            # Stale card on the page; nothing to change
            logger.debug(f"Update of unknown task {task_id} ignored")
            return jsonify({"task": None, "status_changed": False, "patches": []})
        return jsonify({
            "task": result.task.to_dict(),
            "status_changed": result.status_changed,
            "patches": patches(),
        })

    @app.route("/api/tasks/<task_id>", methods=["PUT"])
    def api_update_task(task_id):
        return _update(task_id, body())

    @app.route("/api/tasks/<task_id>/move", methods=["POST"])
    def api_move_task(task_id):
        status = body().get("status", "")
        if not status:
            return jsonify({"error": "status is required"}), 400
        return _update(task_id, {"status": status})

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    def api_delete_task(task_id):
        task = store.delete(task_id)
        return jsonify({"task": task.to_dict() if task else None, "patches": patches()})

    @app.route("/api/tasks/<task_id>/activity")
    def api_activity(task_id):
        number = issue_number(task_id)
        if client is None or number is None:
            return jsonify({"error": "No issue tracker activity for this task"}), 404
        return jsonify({"activity": [e.to_dict() for e in build_feed(client, number)]})

    @app.route("/api/tasks/<task_id>/comments", methods=["POST"])
    def api_comment(task_id):
        number = issue_number(task_id)
        if client is None or number is None:
            return jsonify({"error": "Comments need the issue tracker"}), 404
        entry = add_comment(client, number, body().get("body", ""))
        return jsonify({"comment": entry.to_dict()}), 201

    # ── Tips ─────────────────────────────────────────────────────────────────

    def _tips() -> TipStore:
        if tips is None:
            raise NotFound("tips")
        return tips

    @app.route("/api/tips", methods=["GET"])
    def api_tips():
        store_ = _tips()
        return jsonify({
            "tips": [t.to_dict() for t in store_.list()],
            "archived": [t.to_dict() for t in store_.archived()],
        })

    @app.route("/api/tips", methods=["POST"])
    def api_create_tip():
        data = body()
        tip = _tips().create(
            data.get("title", ""),
            description=data.get("description", ""),
            complexity=data.get("complexity"),
            references=data.get("references"),
        )
        return jsonify({"tip": tip.to_dict()}), 201

    @app.route("/api/tips/<tip_id>", methods=["PUT"])
    def api_update_tip(tip_id):
        store_ = _tips()
        try:
            tip = store_.update(tip_id, body())
        except NotFound:
            logger.debug(f"Update of unknown tip {tip_id} ignored")
            return jsonify({"tip": None})
        return jsonify({"tip": tip.to_dict()})

    @app.route("/api/tips/<tip_id>/convert", methods=["POST"])
    def api_convert_tip(tip_id):
        store_ = _tips()
        try:
            task, tip = store_.convert_to_task(tip_id, store, body())
        except NotFound:
            logger.debug(f"Conversion of unknown tip {tip_id} ignored")
            return jsonify({"task": None, "tip": None, "patches": []})
        return jsonify({"task": task.to_dict(), "tip": tip.to_dict(), "patches": patches()}), 201

    @app.route("/api/tips/<tip_id>", methods=["DELETE"])
    def api_delete_tip(tip_id):
        tip = _tips().delete(tip_id)
        return jsonify({"tip": tip.to_dict() if tip else None})

    # ── Auth / health ────────────────────────────────────────────────────────

    @app.route("/api/auth", methods=["POST"])
    def api_auth():
        if client is None:
            return jsonify({"error": "The local board has no credential"}), 400
        client.set_token(body().get("token", "").strip())
        tasks = store.refresh_all()
        if tips is not None:
            tips.refresh_all()
        return jsonify({"tasks": [t.to_dict() for t in tasks], "patches": patches()})

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "backend": "github" if client else "local",
            "authenticated": client.authenticated if client else True,
            "tasks": len(store.list()),
        })

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Task Board Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--config", help="Path to config.yaml (overrides TASKBOARD_CONFIG)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [taskboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        cfg = BoardConfig.load(args.config)
    except ConfigError as e:
        logger.error(str(e))
        return 2

    while True:
        try:
            store, view, tips, client = build_board(cfg)
            store.refresh_all()
            if tips is not None:
                tips.refresh_all()
            break
        except (Unauthenticated, AuthExpired) as e:
            if not sys.stdin.isatty():
                logger.error(str(e))
                return 1
            logger.warning(str(e))
            cfg.token = getpass.getpass("Access token: ").strip() or None
        except RemoteRejected as e:
            logger.error(f"Initial load failed: {e}")
            return 1

    app = create_app(store, view, tips=tips, client=client, title=cfg.title)
    logger.info(f"Serving {cfg.backend} board on http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=False, threaded=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
