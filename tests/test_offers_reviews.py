from datetime import datetime

from bson import ObjectId

from conftest import BASE_TIME

OFFER_BODY = {
    "title": "Festive Sale",
    "description": "Twenty percent off on festive wear",
    "discountType": "percentage",
    "discountValue": 20,
    "startDate": "2026-10-01T00:00:00Z",
    "endDate": "2026-10-31T23:59:59Z",
}

REVIEW_BODY = {"customerName": "Priya", "rating": 5, "reviewText": "Beautiful fabric and quick delivery!"}


# Reviews

def test_review_rating_out_of_range_is_rejected(client, admin_headers, mongo):
    res = client.post("/api/reviews", json={**REVIEW_BODY, "rating": 6}, headers=admin_headers)
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Validation error"
    assert body["error"][0]["field"] == "rating"
    assert mongo["review"].count_documents({}) == 0


def test_review_text_too_short(client, admin_headers, mongo):
    res = client.post("/api/reviews", json={**REVIEW_BODY, "reviewText": "Nice"}, headers=admin_headers)
    assert res.status_code == 400
    assert mongo["review"].count_documents({}) == 0


def test_create_review_requires_auth(client, mongo):
    assert client.post("/api/reviews", json=REVIEW_BODY).status_code == 401
    assert mongo["review"].count_documents({}) == 0


def test_create_and_list_reviews(client, admin_headers, mongo):
    res = client.post("/api/reviews", json=REVIEW_BODY, headers=admin_headers)
    assert res.status_code == 201
    assert res.json()["data"]["isActive"] is True
    mongo["review"].insert_one({**REVIEW_BODY, "isActive": False, "createdAt": BASE_TIME})

    data = client.get("/api/reviews").json()["data"]
    assert [r["customerName"] for r in data["reviews"]] == ["Priya"]
    assert data["pagination"] == {"total": 1, "page": 1, "limit": 10, "pages": 1}


def test_review_pagination(client, mongo):
    for i in range(7):
        mongo["review"].insert_one({**REVIEW_BODY, "customerName": f"C{i}", "isActive": True, "createdAt": datetime(2026, 1, i + 1)})
    data = client.get("/api/reviews?limit=3&page=3").json()["data"]
    assert [r["customerName"] for r in data["reviews"]] == ["C0"]
    assert data["pagination"]["pages"] == 3


def test_toggle_review_visibility(client, admin_headers, mongo):
    review_id = mongo["review"].insert_one({**REVIEW_BODY, "isActive": True, "createdAt": BASE_TIME}).inserted_id
    res = client.put(f"/api/reviews/{review_id}", json={"isActive": False}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["rating"] == 5
    assert client.get("/api/reviews").json()["data"]["reviews"] == []
    assert client.get(f"/api/reviews/{review_id}").status_code == 404

    client.put(f"/api/reviews/{review_id}", json={"isActive": True}, headers=admin_headers)
    assert client.get(f"/api/reviews/{review_id}").status_code == 200


def test_update_review_rating_validated(client, admin_headers, mongo):
    review_id = mongo["review"].insert_one({**REVIEW_BODY, "isActive": True, "createdAt": BASE_TIME}).inserted_id
    res = client.put(f"/api/reviews/{review_id}", json={"rating": 0}, headers=admin_headers)
    assert res.status_code == 400
    assert mongo["review"].find_one({"_id": review_id})["rating"] == 5


def test_delete_review(client, admin_headers, mongo):
    review_id = mongo["review"].insert_one({**REVIEW_BODY, "isActive": True, "createdAt": BASE_TIME}).inserted_id
    assert client.delete(f"/api/reviews/{review_id}", headers=admin_headers).status_code == 200
    assert mongo["review"].count_documents({}) == 0
    res = client.delete(f"/api/reviews/{review_id}", headers=admin_headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Review not found"


# Offers

def test_offer_window_must_be_ordered(client, admin_headers, mongo):
    body = {**OFFER_BODY, "startDate": "2026-11-01T00:00:00Z", "endDate": "2026-10-01T00:00:00Z"}
    res = client.post("/api/offers", json=body, headers=admin_headers)
    assert res.status_code == 400
    assert mongo["offer"].count_documents({}) == 0


def test_offer_discount_type_enum(client, admin_headers):
    res = client.post("/api/offers", json={**OFFER_BODY, "discountType": "bogo"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"][0]["field"] == "discountType"


def test_create_offer_populates_references(client, admin_headers, make_category, make_product):
    cat = make_category(name="Sarees")
    product = make_product(name="Silk Saree", price=4500.0, category=cat["_id"])
    body = {
        **OFFER_BODY,
        "applicableProducts": [str(product["_id"]), str(ObjectId())],
        "applicableCategories": [str(cat["_id"])],
    }
    res = client.post("/api/offers", json=body, headers=admin_headers)
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert data["applicableProducts"] == [{"id": str(product["_id"]), "name": "Silk Saree", "price": 4500.0}]
    assert data["applicableCategories"] == [{"id": str(cat["_id"]), "name": "Sarees"}]


def test_list_offers_only_active(client, admin_headers, mongo):
    client.post("/api/offers", json=OFFER_BODY, headers=admin_headers)
    client.post("/api/offers", json={**OFFER_BODY, "title": "Old Sale", "isActive": False}, headers=admin_headers)
    titles = [o["title"] for o in client.get("/api/offers").json()["data"]]
    assert titles == ["Festive Sale"]
    assert mongo["offer"].count_documents({}) == 2


def test_update_offer_checks_stored_window(client, admin_headers):
    offer_id = client.post("/api/offers", json=OFFER_BODY, headers=admin_headers).json()["data"]["id"]
    res = client.put(f"/api/offers/{offer_id}", json={"endDate": "2026-09-01T00:00:00Z"}, headers=admin_headers)
    assert res.status_code == 400
    res = client.put(f"/api/offers/{offer_id}", json={"endDate": "2026-12-31T00:00:00Z", "discountValue": 30}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["discountValue"] == 30


def test_delete_offer_requires_auth(client, admin_headers, mongo):
    offer_id = client.post("/api/offers", json=OFFER_BODY, headers=admin_headers).json()["data"]["id"]
    assert client.delete(f"/api/offers/{offer_id}").status_code == 401
    assert client.delete(f"/api/offers/{offer_id}", headers=admin_headers).status_code == 200
    assert mongo["offer"].count_documents({}) == 0


# Contact

def test_contact_message_is_stored(client, mongo):
    body = {"name": "Asha", "email": "asha@example.com", "phone": "+91 98765 43210", "message": "Is the blue kurti in stock?"}
    res = client.post("/api/contact", json=body)
    assert res.status_code == 201
    stored = mongo["contactmessage"].find_one({})
    assert stored["email"] == "asha@example.com"
    assert stored["phone"] == "+91 98765 43210"


def test_contact_message_validation(client, mongo):
    res = client.post("/api/contact", json={"name": "A", "email": "nope", "message": "short"})
    assert res.status_code == 400
    assert {e["field"] for e in res.json()["error"]} == {"name", "email", "message"}
    assert mongo["contactmessage"].count_documents({}) == 0
