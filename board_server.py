#!/usr/bin/env python3
"""
Taskboard Server
----------------
JSON API over one local workspace: board and list views, task and subtask
mutations, drag moves, recent notifications.

Usage:
    python board_server.py
    python board_server.py --config ./config.yaml --port 3000

API:
    GET    /api/board?view=board|list&q=  → rendered view of the current board
    GET    /api/boards                    → boards of the signed-in user
    POST   /api/boards                    → { name, description? }
    POST   /api/boards/<id>/select
    POST   /api/tasks                     → { title, column_id?, description?, due_date?, tags? }
    PUT    /api/tasks/<id>                → any of title, description, due_date, tags, completed
    DELETE /api/tasks/<id>
    POST   /api/tasks/<id>/move           → { column_id }
    POST   /api/tasks/<id>/subtasks       → { title }
    PUT    /api/subtasks/<id>             → { completed }
    DELETE /api/subtasks/<id>
    GET    /api/notifications
    POST   /api/logout
    GET    /health

Mutating routes require an X-API-Key header equal to TASKBOARD_API_SECRET.
"""

import argparse
import hmac
import logging
import os
import sys
from collections import deque
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request

from taskboard.auth import LocalAuthProvider
from taskboard.config import Config, build_store
from taskboard.drag import DragError
from taskboard.mutators import ValidationError
from taskboard.quickadd import QuickAddForm
from taskboard.schema import User, parse_bool, parse_datetime
from taskboard.workspace import Workspace

logger = logging.getLogger("board_server")

app = Flask(__name__)

# Last notifications, newest last; the server is the presentation layer here
RECENT_NOTIFICATIONS: deque = deque(maxlen=50)

_workspace: Optional[Workspace] = None


# ── Auth ─────────────────────────────────────────────────────────────────────


def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    async def decorated(*args, **kwargs):
        secret = os.environ.get("TASKBOARD_API_SECRET", "")
        if not secret:
            return jsonify({"error": "TASKBOARD_API_SECRET not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return await f(*args, **kwargs)
    return decorated


# ── Workspace ────────────────────────────────────────────────────────────────


def set_workspace(workspace: Optional[Workspace]) -> None:
    """Install the workspace the routes operate on."""
    global _workspace
    _workspace = workspace
    if workspace is not None:
        workspace.notifications.subscribe(RECENT_NOTIFICATIONS.append)


async def build_workspace(cfg: Config) -> Workspace:
    """Workspace for the configured local user, signed in and loaded."""
    auth = LocalAuthProvider()
    workspace = Workspace(
        build_store(cfg),
        auth,
        default_board_name=cfg.default_board_name,
        default_board_description=cfg.default_board_description,
        default_columns=cfg.default_columns,
    )
    auth.sign_in(User(cfg.local_user_id, cfg.local_user_email, cfg.local_user_name))
    await workspace.handle_auth_state(auth.state)
    return workspace


async def get_workspace() -> Workspace:
    if _workspace is None:
        set_workspace(await build_workspace(Config.load(os.environ.get("TASKBOARD_CONFIG"))))
    return _workspace


def _signed_in(workspace: Workspace):
    if workspace.user is None:
        return jsonify({"error": "Not signed in"}), 401
    return None


# ── Routes ───────────────────────────────────────────────────────────────────


@app.route("/api/board")
async def api_board():
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    view = request.args.get("view", "board")
    query = request.args.get("q", "")
    try:
        rendered = ws.render(view, query=query)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    board = ws.current_board
    rendered["board"] = board.to_record() if board else None
    return jsonify(rendered)


@app.route("/api/boards", methods=["GET"])
async def api_boards():
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    current = ws.current_board.id if ws.current_board else None
    return jsonify({
        "boards": [b.to_record() for b in ws.boards],
        "current": current,
    })


@app.route("/api/boards", methods=["POST"])
@require_api_key
async def api_create_board():
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    data = request.get_json(force=True, silent=True) or {}
    try:
        board = await ws.create_board(data.get("name", ""), data.get("description", ""))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    if board is None:
        return jsonify({"error": "Failed to create board"}), 502
    return jsonify({"board": board.to_record()}), 201


@app.route("/api/boards/<board_id>/select", methods=["POST"])
@require_api_key
async def api_select_board(board_id):
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    if not any(b.id == board_id for b in ws.boards):
        return jsonify({"error": "Board not found"}), 404
    loaded = await ws.select_board(board_id)
    return jsonify({"board_id": board_id, "loaded": loaded})


@app.route("/api/tasks", methods=["POST"])
@require_api_key
async def api_create_task():
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    data = request.get_json(force=True, silent=True) or {}
    title = (data.get("title") or "").strip()
    if not title:
        return jsonify({"error": "title is required"}), 400
    try:
        due_date = parse_datetime(data.get("due_date"))
    except ValueError:
        return jsonify({"error": "due_date must be ISO-8601"}), 400

    form = QuickAddForm(
        column_id=data.get("column_id"),
        description=data.get("description", ""),
        due_date=due_date,
    )
    form.set_title(title)
    for tag in data.get("tags") or []:
        form.add_tag(str(tag))
    task = await form.submit(ws.mutators)
    if task is None:
        return jsonify({"error": "Failed to create task"}), 502
    return jsonify({"task": task.to_dict(), "id": task.id}), 201


@app.route("/api/tasks/<task_id>", methods=["PUT"])
@require_api_key
async def api_update_task(task_id):
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    if ws.cache.get_task(task_id) is None:
        return jsonify({"error": "Task not found"}), 404
    data = request.get_json(force=True, silent=True) or {}
    try:
        ok = await ws.mutators.update_task(task_id, **data)
    except (ValidationError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    if not ok:
        return jsonify({"error": "Failed to save changes"}), 502
    task = ws.cache.get_task(task_id)
    return jsonify({"task": task.to_dict() if task else None})


@app.route("/api/tasks/<task_id>", methods=["DELETE"])
@require_api_key
async def api_delete_task(task_id):
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    if ws.cache.get_task(task_id) is None:
        return jsonify({"error": "Task not found"}), 404
    if not await ws.mutators.delete_task(task_id):
        return jsonify({"error": "Failed to delete task"}), 502
    return jsonify({"deleted": task_id})


@app.route("/api/tasks/<task_id>/move", methods=["POST"])
@require_api_key
async def api_move_task(task_id):
    """Drag-and-drop as a single request: start, hover target, drop."""
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    if ws.cache.get_task(task_id) is None:
        return jsonify({"error": "Task not found"}), 404
    data = request.get_json(force=True, silent=True) or {}
    target = data.get("column_id") or data.get("over_id")
    if not target:
        return jsonify({"error": "column_id is required"}), 400
    try:
        ws.drag.drag_start(task_id)
    except DragError as e:
        return jsonify({"error": str(e)}), 409
    ws.drag.drag_over(target)
    moved = await ws.drag.drag_end(target)
    task = ws.cache.get_task(task_id)
    return jsonify({"moved": moved, "task": task.to_dict() if task else None})


@app.route("/api/tasks/<task_id>/subtasks", methods=["POST"])
@require_api_key
async def api_create_subtask(task_id):
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    if ws.cache.get_task(task_id) is None:
        return jsonify({"error": "Task not found"}), 404
    data = request.get_json(force=True, silent=True) or {}
    try:
        subtask = await ws.mutators.create_subtask(task_id, data.get("title", ""))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    if subtask is None:
        return jsonify({"error": "Failed to create subtask"}), 502
    return jsonify({"subtask": subtask.to_dict()}), 201


@app.route("/api/subtasks/<subtask_id>", methods=["PUT"])
@require_api_key
async def api_toggle_subtask(subtask_id):
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    if ws.cache.get_subtask(subtask_id) is None:
        return jsonify({"error": "Subtask not found"}), 404
    data = request.get_json(force=True, silent=True) or {}
    if "completed" not in data:
        return jsonify({"error": "completed is required"}), 400
    if not await ws.mutators.toggle_subtask(subtask_id, parse_bool(data["completed"])):
        return jsonify({"error": "Failed to update subtask"}), 502
    subtask = ws.cache.get_subtask(subtask_id)
    return jsonify({"subtask": subtask.to_dict() if subtask else None})


@app.route("/api/subtasks/<subtask_id>", methods=["DELETE"])
@require_api_key
async def api_delete_subtask(subtask_id):
    ws = await get_workspace()
    denied = _signed_in(ws)
    if denied:
        return denied
    if ws.cache.get_subtask(subtask_id) is None:
        return jsonify({"error": "Subtask not found"}), 404
    if not await ws.mutators.delete_subtask(subtask_id):
        return jsonify({"error": "Failed to delete subtask"}), 502
    return jsonify({"deleted": subtask_id})


@app.route("/api/notifications")
async def api_notifications():
    return jsonify({"notifications": [n.to_dict() for n in RECENT_NOTIFICATIONS]})


@app.route("/api/logout", methods=["POST"])
@require_api_key
async def api_logout():
    ws = await get_workspace()
    ws.sign_out()
    await ws.handle_auth_state(ws.auth.state)
    return jsonify({"signed_in": ws.user is not None})


@app.route("/health")
async def health():
    ws = await get_workspace()
    return jsonify({
        "status": "ok",
        "user": ws.user.id if ws.user else None,
        "board": ws.current_board.id if ws.current_board else None,
    })


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import asyncio

    parser = argparse.ArgumentParser(description="Taskboard Server")
    parser.add_argument("--host", help="Bind address (overrides config)")
    parser.add_argument("--port", type=int, help="Port (overrides config)")
    parser.add_argument("--config", help="Path to config.yaml (overrides TASKBOARD_CONFIG)")
    args = parser.parse_args()

    cfg = Config.load(args.config)
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [taskboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    set_workspace(asyncio.run(build_workspace(cfg)))
    host = args.host or cfg.server_host
    port = args.port or cfg.server_port
    logger.info(f"Serving {cfg.store_backend} store on http://{host}:{port}")

    # One worker thread: the board cache is only touched from one request at a time
    app.run(host=host, port=port, debug=False, threaded=False)
