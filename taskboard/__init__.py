# Board synchronization core: board state, reconciliation, drag moves, mutations
#
# Components:
#   schema.py     - Data model (Board, Column, Task, Subtask, Notification)
#   store.py      - Remote store contract (SQLite and HTTP backends)
#   cache.py      - In-memory board state and read-only snapshots
#   loader.py     - Reconciliation loader (wholesale re-fetch)
#   drag.py       - Drag/reorder controller with optimistic moves
#   mutators.py   - Task and subtask create/update/delete
#   events.py     - Notification channel
#   auth.py       - Authentication provider
#   workspace.py  - Per-user session wiring everything together
#   views.py      - Board and list renderers
#   quickadd.py   - Quick-add form with due-date detection
#   config.py     - YAML configuration
