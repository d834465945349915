"""Message text for item-ready push notifications."""

from typing import Any, Optional

ITEM_READY_TITLE = "Space brings clarity. Your item is ready for review."


def format_item_ready_notification(
    item_id: str,
    item_title: str,
    store_name: Optional[str] = None,
) -> dict[str, Any]:
    """
    Title, body and data for one paused item coming due.

    Args:
        item_id: Paused item id, carried in the data for deep-linking
        item_title: Item name shown to the user
        store_name: Optional store, appended as "from <store>"

    Returns:
        Dict with ``title``, ``body`` and ``data`` keys
    """
    source = f" from {store_name}" if store_name else ""
    return {
        "title": ITEM_READY_TITLE,
        "body": f"{item_title}{source} is ready for review.",
        "data": {"type": "item_ready", "itemId": item_id},
    }
