"""Task module: project tasks, assignees, kanban board and my-tasks."""
