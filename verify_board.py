#!/usr/bin/env python3
"""
Quick verification that the board core works end-to-end against SQLite.
"""
import asyncio
import logging
import sys

from taskboard.auth import LocalAuthProvider
from taskboard.schema import User
from taskboard.store import SQLiteStore
from taskboard.workspace import Workspace

DB_PATH = "/tmp/taskboard_verify.db"


async def run() -> bool:
    print("=" * 60)
    print("Taskboard Core Verification")
    print("=" * 60)

    print("\n[1/6] Creating SQLite store...")
    store = SQLiteStore(DB_PATH)
    print("✅ Store created")

    print("\n[2/6] Signing in and provisioning the default board...")
    auth = LocalAuthProvider()
    ws = Workspace(store, auth)
    auth.sign_in(User("verify-user", "verify@example.com", "Verify"))
    await ws.handle_auth_state(auth.state)
    if ws.current_board is None:
        print("❌ No board loaded")
        return False
    columns = ws.cache.columns
    print(f"✅ Board {ws.current_board.name} with columns: {[c.name for c in columns]}")

    print("\n[3/6] Creating a task with tags...")
    task = await ws.mutators.create_task(
        "Deploy staging", description="Smoke test", tags=["ops", "deploy"]
    )
    if task is None:
        print("❌ Task creation failed")
        return False
    print(f"✅ Task {task.id} at position {task.position} in {task.column_id}")

    print("\n[4/6] Adding a subtask...")
    subtask = await ws.mutators.create_subtask(task.id, "Write tests")
    done, total = ws.cache.subtask_progress(task.id)
    print(f"✅ Subtask {subtask.id if subtask else '?'} ({done}/{total})")

    print("\n[5/6] Dragging the task to the last column...")
    target = columns[-1].id
    ws.drag.drag_start(task.id)
    ws.drag.drag_over(target)
    moved = await ws.drag.drag_end(target)
    final = ws.cache.get_task(task.id)
    print(f"{'✅' if moved and final.column_id == target else '❌'} Task now in {final.column_id}")

    print("\n[6/6] Rendering the list view...")
    for row in ws.render("list")["rows"]:
        progress = row["subtask_progress"]
        print(f"   {row['title']:<24} {row['status']:<12} {progress['completed']}/{progress['total']}")

    print("\n" + "=" * 60)
    print("✅ ALL CHECKS PASSED")
    print("=" * 60)
    print(f"Test database: {DB_PATH}")
    return True


def main():
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [taskboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    sys.exit(0 if asyncio.run(run()) else 1)


if __name__ == "__main__":
    main()
