from . import friends, messages, notifications, posts, saved_items, style_combos, users

__all__ = [
    "friends",
    "messages",
    "notifications",
    "posts",
    "saved_items",
    "style_combos",
    "users",
]
