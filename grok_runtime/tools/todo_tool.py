from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from grok_runtime.agent.messages import ToolResult

STATUSES = ("pending", "in_progress", "completed")
PRIORITIES = ("high", "medium", "low")
STATUS_MARKERS = {"completed": "[x]", "in_progress": "[~]", "pending": "[ ]"}


@dataclass(slots=True)
class TodoItem:
    id: str
    content: str
    status: str = "pending"
    priority: str = "medium"


class TodoTool:
    def __init__(self) -> None:
        self.items: list[TodoItem] = []

    async def create_todo_list(self, todos: list[dict[str, Any]]) -> ToolResult:
        if not isinstance(todos, list):
            return ToolResult(success=False, error="todos must be an array")
        items: list[TodoItem] = []
        for raw in todos:
            item, error = _parse_item(raw)
            if error:
                return ToolResult(success=False, error=error)
            items.append(item)
        seen: set[str] = set()
        for item in items:
            if item.id in seen:
                return ToolResult(success=False, error=f"Duplicate todo id: {item.id}")
            seen.add(item.id)
        self.items = items
        return ToolResult(success=True, output=self.render())

    async def update_todo_list(self, updates: list[dict[str, Any]]) -> ToolResult:
        if not isinstance(updates, list):
            return ToolResult(success=False, error="updates must be an array")
        by_id = {item.id: item for item in self.items}
        for update in updates:
            if not isinstance(update, dict) or "id" not in update:
                return ToolResult(success=False, error="Each update needs an id")
            item = by_id.get(str(update["id"]))
            if item is None:
                return ToolResult(success=False, error=f"Todo item not found: {update['id']}")
            status = update.get("status", item.status)
            priority = update.get("priority", item.priority)
            if status not in STATUSES:
                return ToolResult(success=False, error=f"Invalid status: {status}")
            if priority not in PRIORITIES:
                return ToolResult(success=False, error=f"Invalid priority: {priority}")
            item.status = status
            item.priority = priority
            item.content = str(update.get("content", item.content))
        return ToolResult(success=True, output=self.render())

    def render(self) -> str:
        if not self.items:
            return "No todos"
        lines = [
            f"{STATUS_MARKERS[item.status]} {item.content}" + (f" ({item.priority})" if item.priority != "medium" else "")
            for item in self.items
        ]
        done = sum(1 for item in self.items if item.status == "completed")
        lines.append(f"\n{done}/{len(self.items)} completed")
        return "\n".join(lines)


def _parse_item(raw: Any) -> tuple[TodoItem | None, str | None]:
    if not isinstance(raw, dict):
        return None, "Each todo must be an object"
    if not raw.get("id") or not raw.get("content"):
        return None, "Each todo needs an id and content"
    status = raw.get("status", "pending")
    priority = raw.get("priority", "medium")
    if status not in STATUSES:
        return None, f"Invalid status: {status}"
    if priority not in PRIORITIES:
        return None, f"Invalid priority: {priority}"
    return TodoItem(id=str(raw["id"]), content=str(raw["content"]), status=status, priority=priority), None
