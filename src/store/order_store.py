"""
Upholstery orders and saved presets.

Order rows are written in snake_case; the form sends camelCase, which the
request models translate before anything reaches this module.
"""
from datetime import date, datetime
from typing import Dict, List

from store.supabase_client import SupabaseClient
from utils.logger import get_logger


def stamp_order_date(order_date: date, now: datetime = None) -> str:
    """Combine the chosen order date with the current time of day (ISO 8601)."""
    now = now or datetime.now()
    return datetime.combine(order_date, now.time().replace(microsecond=0)).isoformat()


class OrderStore:

    def __init__(self, client: SupabaseClient, orders_table: str = None,
                 presets_table: str = None):
        import config
        self.client = client
        self.orders_table = orders_table or config.ORDERS_TABLE
        self.presets_table = presets_table or config.PRESETS_TABLE
        self.logger = get_logger()

    def submit_order(self, order: Dict) -> Dict:
        """Insert an order. ``order_date`` may be a date; it gets the time of submission."""
        row = dict(order)
        row.pop("preset_name", None)
        if isinstance(row.get("order_date"), date) and not isinstance(row["order_date"], datetime):
            row["order_date"] = stamp_order_date(row["order_date"])

        created = self.client.insert(self.orders_table, [row])
        self.logger.info(f"Order submitted for van {row.get('van_number')}", "Orders")
        return created[0] if created else row

    def list_presets(self) -> List[Dict]:
        """Saved presets, newest first."""
        return self.client.select(self.presets_table, order="created_at.desc")

    def save_preset(self, preset: Dict, user_id: str = None) -> Dict:
        row = dict(preset)
        if isinstance(row.get("order_date"), date):
            row["order_date"] = row["order_date"].isoformat()
        row.setdefault("base", "")
        row.setdefault("other", "")
        if user_id:
            row["user_id"] = user_id

        created = self.client.insert(self.presets_table, [row])
        self.logger.info(f"Preset saved: {row.get('preset_name')}", "Orders")
        return created[0] if created else row

    def delete_preset(self, preset_id: str) -> List[Dict]:
        return self.client.delete(self.presets_table, filters={"id": f"eq.{preset_id}"})
