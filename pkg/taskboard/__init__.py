# Task board: issue-tracker backed kanban with an offline variant
#
# Components:
#   schema.py   - Data model (Task, Tip, IssueRecord, TaskStatus, Assignee, Priority)
#   errors.py   - Error taxonomy (Unauthenticated, RemoteRejected, AuthExpired, ...)
#   codec.py    - Label/body codec between tasks/tips and issues
#   github.py   - Issue tracker REST client (requests)
#   local.py    - Offline single-key SQLite persistence
#   backends.py - Issue-backed and offline backends for the task store
#   store.py    - Task store: authoritative in-memory collection
#   sync.py     - View sync: patch planning and the board view model
#   render.py   - Card and board HTML
#   tips.py     - Tip backlog (ideas that convert into tasks)
#   activity.py - Comment + event activity feed
#   config.py   - YAML configuration
