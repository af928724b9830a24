"""
HTML for the board page and for single cards.

Cards are keyed by data-task-id and columns by data-status, which is what
the page script uses to apply patches without reloading.
"""
from datetime import date
from html import escape
from typing import Any, Dict, Optional

from .schema import Assignee, Task, TaskStatus
from .sync import APPEND, REPLACE, BoardView, Patch

ASSIGNEE_NAMES = {
    Assignee.SAM: "Sam",
    Assignee.MILO: "Milo 🦊",
}

COLUMN_TITLES = {
    TaskStatus.TODO: "To Do",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.DONE: "Done",
}

SOON_DAYS = 2


def due_class(due_date: str, today: Optional[date] = None) -> str:
    """Urgency class for a due date: overdue before today, soon within two days."""
    try:
        due = date.fromisoformat(due_date)
    except ValueError:
        return ""
    days = (due - (today or date.today())).days
    if days < 0:
        return "overdue"
    if days <= SOON_DAYS:
        return "soon"
    return ""


def render_due_date(due_date: str, today: Optional[date] = None) -> str:
    try:
        due = date.fromisoformat(due_date)
        label = f"{due.strftime('%b')} {due.day}"
    except ValueError:
        label = due_date
    css = f"due-date {due_class(due_date, today)}".strip()
    return f'<span class="{css}">📅 {escape(label)}</span>'


def render_assignee(assignee: Assignee) -> str:
    name = ASSIGNEE_NAMES.get(assignee, assignee.value)
    return f'<span class="assignee-badge {assignee.value}">{escape(name)}</span>'


def render_card(task: Task, today: Optional[date] = None) -> str:
    parts = [f"<h4>{escape(task.title)}</h4>"]
    if task.description:
        parts.append(f"<p>{escape(task.description)}</p>")
    meta = []
    if task.assignee != Assignee.NONE:
        meta.append(render_assignee(task.assignee))
    if task.due_date:
        meta.append(render_due_date(task.due_date, today))
    parts.append(f'<div class="task-meta">{"".join(meta)}</div>')
    return (
        f'<div class="task-card priority-{task.priority.value}" draggable="true" '
        f'data-task-id="{escape(task.id)}">{"".join(parts)}</div>'
    )


def patch_to_dict(patch: Patch, today: Optional[date] = None) -> Dict[str, Any]:
    """Patch as JSON for the page script, with card HTML for append/replace."""
    data = patch.to_dict()
    if patch.op in (APPEND, REPLACE) and patch.task is not None:
        data["html"] = render_card(patch.task, today)
    return data


def render_column(view: BoardView, status: TaskStatus, today: Optional[date] = None) -> str:
    cards = "".join(render_card(t, today) for t in view.column(status))
    return (
        f'<section class="column" data-status="{status.value}">'
        f'<header><h3>{COLUMN_TITLES[status]}</h3>'
        f'<span class="task-count">{view.counts[status]}</span>'
        f'<button class="add-task-btn" data-status="{status.value}">+</button></header>'
        f'<div class="tasks" data-status="{status.value}">{cards}</div>'
        f'</section>'
    )


PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: system-ui, sans-serif; background: #f4f5f7; margin: 0; }}
main {{ display: flex; gap: 16px; padding: 16px; }}
.column {{ flex: 1; background: #ebecf0; border-radius: 8px; padding: 8px; }}
.column header {{ display: flex; align-items: center; gap: 8px; }}
.tasks {{ min-height: 80px; }}
.tasks.drag-over {{ background: #dfe1e6; }}
.task-card {{ background: #fff; border-radius: 6px; padding: 8px; margin: 8px 0; cursor: grab; }}
.task-card.priority-high {{ border-left: 4px solid #e5484d; }}
.task-card.priority-medium {{ border-left: 4px solid #f5a524; }}
.task-card.priority-low {{ border-left: 4px solid #30a46c; }}
.due-date.overdue {{ color: #e5484d; }}
.due-date.soon {{ color: #f5a524; }}
.assignee-badge {{ margin-right: 8px; }}
</style>
</head>
<body>
<main>{columns}</main>
<script>
function applyPatches(patches) {{
  for (const p of patches) {{
    const col = document.querySelector(`.tasks[data-status="${{p.column}}"]`);
    const card = p.task_id && document.querySelector(`.task-card[data-task-id="${{p.task_id}}"]`);
    if (p.op === "append") col.insertAdjacentHTML("beforeend", p.html);
    else if (p.op === "replace" && card) card.outerHTML = p.html;
    else if (p.op === "remove" && card) card.remove();
    else if (p.op === "clear") col.innerHTML = "";
    else if (p.op === "count")
      document.querySelector(`.column[data-status="${{p.column}}"] .task-count`).textContent = p.count;
  }}
}}
async function send(method, url, body) {{
  const resp = await fetch(url, {{method, headers: {{"Content-Type": "application/json"}},
                                  body: body ? JSON.stringify(body) : undefined}});
  const data = await resp.json();
  if (!resp.ok) {{ alert(data.error || resp.status); return; }}
  applyPatches(data.patches || []);
}}
document.addEventListener("dragstart", e => {{
  const card = e.target.closest(".task-card");
  if (card) e.dataTransfer.setData("text/plain", card.dataset.taskId);
}});
document.querySelectorAll(".tasks").forEach(zone => {{
  zone.addEventListener("dragover", e => {{ e.preventDefault(); zone.classList.add("drag-over"); }});
  zone.addEventListener("dragleave", () => zone.classList.remove("drag-over"));
  zone.addEventListener("drop", e => {{
    e.preventDefault();
    zone.classList.remove("drag-over");
    const id = e.dataTransfer.getData("text/plain");
    if (id) send("POST", `/api/tasks/${{id}}/move`, {{status: zone.dataset.status}});
  }});
}});
document.querySelectorAll(".add-task-btn").forEach(btn => {{
  btn.addEventListener("click", () => {{
    const title = prompt("New task");
    if (title) send("POST", "/api/tasks", {{title, status: btn.dataset.status}});
  }});
}});
</script>
</body>
</html>
"""


def render_board(view: BoardView, title: str = "Task Board", today: Optional[date] = None) -> str:
    columns = "".join(render_column(view, status, today) for status in TaskStatus)
    return PAGE.format(title=escape(title), columns=columns)
