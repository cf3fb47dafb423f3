from . import ai, auth, friends, messages, notifications, posts, saved_items, style_combos, users

all_routers = [
    auth.router,
    users.router,
    posts.router,
    friends.router,
    messages.router,
    notifications.router,
    style_combos.router,
    saved_items.router,
    ai.router,
]
