import io
import json
import os

from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from glamscan import models
from glamscan.config import settings

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def upload(client: TestClient, filename="look.png", content=PNG_BYTES, content_type="image/png", **form):
    return client.post(
        "/_api/posts/create",
        files={"image": (filename, io.BytesIO(content), content_type)},
        data=form,
    )


# --- Create ---

def test_create_post_stores_image(client: TestClient, make_user, login_as):
    user = make_user(display_name="Poster")
    login_as(user)
    tags = [{"id": "t1", "name": "Denim Jacket", "price": 59.99, "x": 40, "y": 55}]

    response = upload(client, caption="  Friday fit  ", productTags=json.dumps(tags))

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["caption"] == "Friday fit"
    assert data["authorId"] == user.id
    assert data["authorDisplayName"] == "Poster"
    assert data["productTags"][0]["name"] == "Denim Jacket"
    assert data["upvotes"] == 0 and data["downvotes"] == 0
    assert data["imageUrl"].startswith(settings.MEDIA_BASE_URL)
    stored = os.path.join(settings.MEDIA_DIR, data["imageUrl"].rsplit("/", 1)[-1])
    assert os.path.exists(stored)


def test_create_post_requires_login(client: TestClient):
    assert upload(client).status_code == status.HTTP_401_UNAUTHORIZED


def test_create_post_rejects_bad_uploads(client: TestClient, make_user, login_as):
    login_as(make_user())

    response = upload(client, filename="doc.gif", content_type="image/gif")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "not allowed" in response.json()["detail"]

    response = upload(client, filename="notes.txt", content_type="image/png")
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = upload(client, content=b"\x00" * (settings.MAX_IMAGE_SIZE + 1))
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "exceeds maximum" in response.json()["detail"]


def test_create_post_size_limit_is_exact(client: TestClient, make_user, login_as, monkeypatch):
    monkeypatch.setattr(settings, "MAX_IMAGE_SIZE", len(PNG_BYTES))
    login_as(make_user())

    at_limit = upload(client)
    assert at_limit.status_code == status.HTTP_201_CREATED
    stored = os.path.join(settings.MEDIA_DIR, at_limit.json()["imageUrl"].rsplit("/", 1)[-1])
    assert os.path.getsize(stored) == len(PNG_BYTES)

    assert upload(client, content=PNG_BYTES + b"\x00").status_code == status.HTTP_400_BAD_REQUEST


def test_create_post_rejects_bad_product_tags(client: TestClient, make_user, login_as):
    login_as(make_user())
    response = upload(client, productTags="[{not json")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Invalid product tags JSON format"

    response = upload(client, productTags=json.dumps([{"id": "t", "name": "Hat", "x": 150, "y": 10}]))
    assert response.json()["detail"] == "Invalid product tags JSON format"


# --- Feed & detail ---

def test_feed_pagination_newest_first(client: TestClient, make_user, make_post):
    author = make_user()
    posts = [make_post(author, caption=f"look {i}") for i in range(5)]

    first = client.get("/_api/posts/feed", params={"limit": 2}).json()
    assert [p["id"] for p in first["posts"]] == [posts[4].id, posts[3].id]
    assert first["nextCursor"] == posts[3].id
    assert first["posts"][0]["currentUserVote"] is None

    second = client.get("/_api/posts/feed", params={"limit": 2, "cursor": first["nextCursor"]}).json()
    assert [p["id"] for p in second["posts"]] == [posts[2].id, posts[1].id]

    last = client.get("/_api/posts/feed", params={"limit": 2, "cursor": posts[1].id}).json()
    assert [p["id"] for p in last["posts"]] == [posts[0].id]
    assert last["nextCursor"] is None


def test_post_detail(client: TestClient, make_user, make_post, login_as):
    author = make_user(display_name="Author")
    post = make_post(author)
    login_as(author)
    client.post("/_api/posts/vote", json={"postId": post.id, "voteType": "upvote"})

    response = client.post("/_api/post/detail", json={"postId": post.id})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["upvotes"] == 1
    assert response.json()["currentUserVote"] == "upvote"

    missing = client.post("/_api/post/detail", json={"postId": 9999})
    assert missing.status_code == status.HTTP_404_NOT_FOUND


# --- Votes ---

def test_vote_toggle_and_switch(client: TestClient, make_user, make_post, login_as, db_session_for_tests: Session):
    post = make_post(make_user())
    voter = make_user()
    login_as(voter)

    def vote(vote_type):
        return client.post("/_api/posts/vote", json={"postId": post.id, "voteType": vote_type}).json()

    assert vote("upvote") == {"postId": post.id, "upvotes": 1, "downvotes": 0}
    assert vote("downvote") == {"postId": post.id, "upvotes": 0, "downvotes": 1}
    assert vote("downvote") == {"postId": post.id, "upvotes": 0, "downvotes": 0}
    assert vote("upvote") == {"postId": post.id, "upvotes": 1, "downvotes": 0}

    rows = db_session_for_tests.query(models.Vote).filter(models.Vote.post_id == post.id, models.Vote.user_id == voter.id).count()
    assert rows == 1


def test_votes_from_several_users_and_viewer_vote_in_feed(client: TestClient, make_user, make_post, login_as):
    post = make_post(make_user())
    for vote_type in ("upvote", "upvote", "downvote"):
        login_as(make_user())
        client.post("/_api/posts/vote", json={"postId": post.id, "voteType": vote_type})

    feed = client.get("/_api/posts/feed").json()
    assert feed["posts"][0]["upvotes"] == 2
    assert feed["posts"][0]["downvotes"] == 1
    assert feed["posts"][0]["currentUserVote"] == "downvote"


def test_vote_on_missing_post(client: TestClient, make_user, login_as):
    login_as(make_user())
    response = client.post("/_api/posts/vote", json={"postId": 424242, "voteType": "upvote"})
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_vote_rejects_unknown_type(client: TestClient, make_user, make_post, login_as):
    post = make_post(make_user())
    login_as(make_user())
    response = client.post("/_api/posts/vote", json={"postId": post.id, "voteType": "meh"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


# --- Comments ---

def test_comment_thread_and_reply_count(client: TestClient, make_user, make_post, login_as, db_session_for_tests: Session):
    author = make_user(display_name="Author")
    post = make_post(author)
    commenter = make_user(display_name="Commenter")

    login_as(commenter)
    root = client.post("/_api/posts/comments", json={"postId": post.id, "content": "Love the jacket"})
    assert root.status_code == status.HTTP_201_CREATED
    root_id = root.json()["id"]
    assert root.json()["postId"] == post.id

    login_as(author)
    reply = client.post("/_api/posts/comments", json={"postId": post.id, "content": "Thanks!", "parentId": root_id})
    assert reply.status_code == status.HTTP_201_CREATED

    thread = client.get("/_api/posts/comments", params={"postId": post.id}).json()["comments"]
    assert len(thread) == 1
    assert thread[0]["replyCount"] == 1
    assert thread[0]["authorDisplayName"] == "Commenter"
    assert [r["content"] for r in thread[0]["replies"]] == ["Thanks!"]

    notifications = db_session_for_tests.query(models.Notification).order_by(models.Notification.id).all()
    assert [(n.user_id, n.type) for n in notifications] == [(author.id, "post_comment"), (commenter.id, "comment_reply")]


def test_comment_validation(client: TestClient, make_user, make_post, login_as):
    author = make_user()
    post = make_post(author)
    other_post = make_post(author)
    login_as(author)

    assert client.post("/_api/posts/comments", json={"postId": 9999, "content": "hi"}).status_code == status.HTTP_404_NOT_FOUND

    response = client.post("/_api/posts/comments", json={"postId": post.id, "content": " \x01 "})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Content cannot be empty"

    response = client.post("/_api/posts/comments", json={"postId": post.id, "content": "x" * 1001})
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = client.post("/_api/posts/comments", json={"postId": post.id, "content": "hi", "parentId": 777})
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Parent comment not found"

    elsewhere = client.post("/_api/posts/comments", json={"postId": other_post.id, "content": "elsewhere"}).json()
    response = client.post("/_api/posts/comments", json={"postId": post.id, "content": "hi", "parentId": elsewhere["id"]})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Parent comment does not belong to this post"
