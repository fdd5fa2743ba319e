"""
Important tasks tracker backed by the ``important_tasks`` table.
Completing or deleting a task only flips ``is_completed``; rows are never removed.
"""
from typing import Dict, List

from store.supabase_client import SupabaseClient
from utils.logger import get_logger

TASK_FIELDS = (
    "title",
    "van_number",
    "customer_name",
    "issue",
    "warranty_handled_by",
    "assigned_to",
    "due_date",
)


class TaskStore:
    """CRUD for important tasks, run as the signed-in user."""

    def __init__(self, client: SupabaseClient, table: str = None):
        import config
        self.client = client
        self.table = table or config.TASKS_TABLE
        self.logger = get_logger()

    def list_open(self) -> List[Dict]:
        """Tasks not yet completed, soonest due first."""
        tasks = self.client.select(
            self.table,
            filters={"is_completed": "eq.false"},
            order="due_date.asc",
        )
        self.logger.info(f"Fetched {len(tasks)} open tasks", "Tasks")
        return tasks

    def create(self, values: Dict) -> Dict:
        row = {field: values.get(field) for field in TASK_FIELDS}
        row["is_completed"] = False
        created = self.client.insert(self.table, [row])
        if not created:
            raise ValueError("Task insert returned no row")
        self.logger.info(f"Created task {created[0].get('id')}", "Tasks")
        return created[0]

    def update(self, task_id: str, values: Dict) -> List[Dict]:
        """Apply a partial update; returns the updated rows (empty if no such id)."""
        return self.client.update(self.table, values, filters={"id": f"eq.{task_id}"})

    def soft_delete(self, task_id: str) -> List[Dict]:
        rows = self.update(task_id, {"is_completed": True})
        self.logger.info(f"Marked task {task_id} completed", "Tasks")
        return rows
