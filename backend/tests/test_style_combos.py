from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from glamscan import models
from glamscan.config import settings

from conftest import combo_payload


# --- Create ---

def test_create_combo_persists_items_in_order(client: TestClient, make_user, login_as, db_session_for_tests: Session):
    login_as(make_user())
    response = client.post("/_api/style-combos/create", json=combo_payload(items=3))

    assert response.status_code == status.HTTP_201_CREATED
    combo_id = response.json()["styleComboId"]
    assert response.json()["success"] is True

    db_combo = db_session_for_tests.query(models.StyleCombo).filter(models.StyleCombo.id == combo_id).one()
    assert db_combo.title == "Summer Brunch"
    assert db_combo.is_sponsored is False
    assert [(item.name, item.item_order) for item in db_combo.items] == [("Item 1", 1), ("Item 2", 2), ("Item 3", 3)]


def test_create_combo_keeps_explicit_item_order(client: TestClient, make_user, login_as):
    login_as(make_user())
    payload = combo_payload(items=2)
    payload["items"][0]["itemOrder"] = 7
    payload["items"][1]["itemOrder"] = 3
    combo_id = client.post("/_api/style-combos/create", json=payload).json()["styleComboId"]

    items = client.post("/_api/style-combos/detail", json={"id": combo_id}).json()["styleCombo"]["items"]
    assert [(item["name"], item["itemOrder"]) for item in items] == [("Item 2", 3), ("Item 1", 7)]


def test_create_combo_tags_amazon_links(client: TestClient, make_user, login_as, monkeypatch, db_session_for_tests: Session):
    monkeypatch.setattr(settings, "AMAZON_ASSOCIATE_TAG", "glamscan-20")
    login_as(make_user())
    payload = combo_payload(items=1)
    payload["items"].append({
        "name": "Boutique Scarf",
        "price": 15,
        "imageUrl": "https://images.example.com/scarf.jpg",
        "affiliateUrl": "https://shop.example.com/scarf",
    })

    combo_id = client.post("/_api/style-combos/create", json=payload).json()["styleComboId"]

    db_combo = db_session_for_tests.query(models.StyleCombo).filter(models.StyleCombo.id == combo_id).one()
    assert db_combo.shop_url == "https://www.amazon.com/s?k=linen+outfit&tag=glamscan-20"
    assert db_combo.items[0].affiliate_url == "https://www.amazon.com/dp/B001?tag=glamscan-20"
    assert db_combo.items[1].affiliate_url == "https://shop.example.com/scarf"


def test_create_combo_non_admin_restrictions(client: TestClient, make_user, login_as):
    login_as(make_user())

    payload = combo_payload(items=2)
    del payload["items"][1]["affiliateUrl"]
    response = client.post("/_api/style-combos/create", json=payload)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Non-admin users must provide affiliate URLs for all items."

    response = client.post("/_api/style-combos/create", json=combo_payload(isSponsored=True))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Only admins can create sponsored style combos."


def test_admin_may_create_sponsored_combo_without_links(client: TestClient, make_user, login_as, db_session_for_tests: Session):
    login_as(make_user(role="admin"))
    payload = combo_payload(items=1, isSponsored=True)
    del payload["items"][0]["affiliateUrl"]

    response = client.post("/_api/style-combos/create", json=payload)

    assert response.status_code == status.HTTP_201_CREATED
    db_combo = db_session_for_tests.query(models.StyleCombo).one()
    assert db_combo.is_sponsored is True
    assert db_combo.items[0].affiliate_url is None


def test_create_combo_validation(client: TestClient, make_user, login_as):
    login_as(make_user())

    assert client.post("/_api/style-combos/create", json=combo_payload(title="   ")).status_code == status.HTTP_400_BAD_REQUEST
    assert client.post("/_api/style-combos/create", json=combo_payload(description="  ")).status_code == status.HTTP_400_BAD_REQUEST
    assert client.post("/_api/style-combos/create", json=combo_payload(items=0)).status_code == status.HTTP_400_BAD_REQUEST
    assert client.post("/_api/style-combos/create", json=combo_payload(items=11)).status_code == status.HTTP_400_BAD_REQUEST
    assert client.post("/_api/style-combos/create", json=combo_payload(totalPrice=0)).status_code == status.HTTP_400_BAD_REQUEST
    assert client.post("/_api/style-combos/create", json=combo_payload(season="monsoon")).status_code == status.HTTP_400_BAD_REQUEST
    assert client.post("/_api/style-combos/create", json=combo_payload(shopUrl="not a url")).status_code == status.HTTP_400_BAD_REQUEST


def test_create_combo_requires_login(client: TestClient):
    assert client.post("/_api/style-combos/create", json=combo_payload()).status_code == status.HTTP_401_UNAUTHORIZED


# --- Read ---

def test_detail_returns_combo_and_404s(client: TestClient, make_combo):
    combo = make_combo(title="Date Night", items=2, occasion="date")

    response = client.post("/_api/style-combos/detail", json={"id": combo.id})
    assert response.status_code == status.HTTP_200_OK
    detail = response.json()["styleCombo"]
    assert detail["title"] == "Date Night"
    assert detail["occasion"] == "date"
    assert detail["totalPrice"] == 120.5
    assert [item["name"] for item in detail["items"]] == ["Item 1", "Item 2"]

    missing = client.post("/_api/style-combos/detail", json={"id": combo.id + 100})
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["detail"] == "Style combo not found"


def test_list_filters_search_and_pagination(client: TestClient, make_combo):
    make_combo(title="Winter Layers", season="winter", style="classic")
    make_combo(title="Beach Day", season="summer", style="bohemian", description="Breezy kaftan for the coast")
    newest = make_combo(title="Office Ready", season="fall", occasion="business", style="classic")

    everything = client.get("/_api/style-combos/list").json()
    assert everything["totalCount"] == 3
    assert everything["page"] == 1 and everything["pageSize"] == 20
    assert everything["styleCombos"][0]["id"] == newest.id
    entry = everything["styleCombos"][0]
    assert "isSponsored" not in entry
    assert "id" not in entry["items"][0]

    classic = client.get("/_api/style-combos/list", params={"style": "classic"}).json()
    assert sorted(c["title"] for c in classic["styleCombos"]) == ["Office Ready", "Winter Layers"]

    by_description = client.get("/_api/style-combos/list", params={"search": "KAFTAN"}).json()
    assert [c["title"] for c in by_description["styleCombos"]] == ["Beach Day"]

    page_two = client.get("/_api/style-combos/list", params={"page": 2, "pageSize": 2}).json()
    assert page_two["totalCount"] == 3
    assert len(page_two["styleCombos"]) == 1

    assert client.get("/_api/style-combos/list", params={"season": "monsoon"}).status_code == status.HTTP_400_BAD_REQUEST


def test_list_search_treats_wildcards_literally(client: TestClient, make_combo):
    make_combo(title="50% Off Linen")
    make_combo(title="Denim Days")

    percent = client.get("/_api/style-combos/list", params={"search": "%"}).json()
    assert [c["title"] for c in percent["styleCombos"]] == ["50% Off Linen"]

    underscore = client.get("/_api/style-combos/list", params={"search": "_"}).json()
    assert underscore["totalCount"] == 0


def test_list_retags_links_with_current_tag(client: TestClient, make_combo, monkeypatch):
    make_combo(items=1)
    monkeypatch.setattr(settings, "AMAZON_ASSOCIATE_TAG", "later-21")

    entry = client.get("/_api/style-combos/list").json()["styleCombos"][0]

    assert entry["shopUrl"].endswith("tag=later-21")
    assert entry["items"][0]["affiliateUrl"] == "https://www.amazon.com/dp/B001?tag=later-21"


# --- Admin update / delete ---

def test_update_requires_admin(client: TestClient, make_user, login_as, make_combo):
    combo = make_combo()
    login_as(make_user())
    response = client.post("/_api/style-combos/update", json=combo_payload(id=combo.id))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Admin access required"


def test_admin_update_replaces_items(client: TestClient, make_user, login_as, make_combo, db_session_for_tests: Session):
    combo = make_combo(items=3)
    login_as(make_user(role="admin"))

    response = client.post("/_api/style-combos/update", json=combo_payload(title="Reworked", items=1, id=combo.id))

    assert response.json() == {"success": True, "styleComboId": combo.id}
    db_session_for_tests.expire_all()
    db_combo = db_session_for_tests.query(models.StyleCombo).filter(models.StyleCombo.id == combo.id).one()
    assert db_combo.title == "Reworked"
    assert [item.name for item in db_combo.items] == ["Item 1"]
    assert db_session_for_tests.query(models.StyleComboItem).count() == 1

    missing = client.post("/_api/style-combos/update", json=combo_payload(id=combo.id + 50))
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["detail"] == f"Style combo with ID {combo.id + 50} not found."


def test_admin_delete_removes_items_and_bookmarks(client: TestClient, make_user, login_as, make_combo, db_session_for_tests: Session):
    combo = make_combo(items=2)
    fan = make_user()
    login_as(fan)
    client.post("/_api/saved-items/toggle", json={"itemId": combo.id, "itemType": "style_combo"})

    login_as(make_user(role="admin"))
    response = client.post("/_api/style-combos/delete", json={"id": combo.id})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["message"] == f"Style combo with ID {combo.id} deleted successfully."
    assert db_session_for_tests.query(models.StyleCombo).count() == 0
    assert db_session_for_tests.query(models.StyleComboItem).count() == 0
    assert db_session_for_tests.query(models.SavedItem).count() == 0

    again = client.post("/_api/style-combos/delete", json={"id": combo.id})
    assert again.status_code == status.HTTP_404_NOT_FOUND


# --- Generate links ---

def test_generate_links_warns_without_affiliate_tag(client: TestClient):
    response = client.post(
        "/_api/style-combos/generate-links",
        json={"description": "Cream knit sweater with wide-leg trousers", "title": "Cozy Neutrals"},
    )

    assert response.status_code == status.HTTP_200_OK
    assert "X-Affiliate-Warning" in response.headers
    links = response.json()
    assert len(links) == 3
    assert links[0]["name"] == "Cozy Neutrals Top"
    assert links[0]["affiliateUrl"].startswith("https://www.amazon.com/s?k=")


def test_generate_links_tags_results(client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "AMAZON_ASSOCIATE_TAG", "glamscan-20")
    response = client.post(
        "/_api/style-combos/generate-links",
        json={"description": "Black leather jacket over a white tee"},
    )

    assert "X-Affiliate-Warning" not in response.headers
    assert all(link["affiliateUrl"].endswith("tag=glamscan-20") for link in response.json())


def test_generate_links_validates_description(client: TestClient):
    response = client.post("/_api/style-combos/generate-links", json={"description": "short"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
