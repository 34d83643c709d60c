from conftest import auth


def test_catalog_scenario(client, register, create_product):
    _, token = register("Tigist", "w@x.com", role="wholesaler",
                        business_info={"business_name": "Tigist Grains"})
    create_product(token)

    body = client.get("/api/products").json()
    rice = next(p for p in body["data"]["products"] if p["name"] == "Rice")
    assert rice["wholesaler"]["name"] == "Tigist"
    assert rice["wholesaler"]["business_name"] == "Tigist Grains"
    assert rice["available_quantity"] == 100
    assert body["data"]["pagination"]["total"] == 1


def test_only_wholesalers_create_products(client, register):
    _, token = register("Kebede", "k@x.com")
    r = client.post("/api/products", json={"name": "Rice"}, headers=auth(token))
    assert r.status_code == 403
    assert client.post("/api/products", json={"name": "Rice"}).status_code == 401


def test_create_product_reports_every_failure(client, register):
    _, token = register("Tigist", "w@x.com", role="wholesaler")
    r = client.post("/api/products", json={"name": "R", "price": -3, "unit": "bag"}, headers=auth(token))
    assert r.status_code == 400
    assert {e["field"] for e in r.json()["errors"]} == {
        "name", "description", "category", "price", "unit", "available_quantity",
    }


def test_filters_and_search(client, register, create_product):
    _, token = register("Tigist", "w@x.com", role="wholesaler")
    create_product(token)
    create_product(token, name="Mango", category="fruits", description="Sweet mangoes from Arba Minch")

    names = lambda r: [p["name"] for p in r.json()["data"]["products"]]
    assert names(client.get("/api/products?category=fruits")) == ["Mango"]
    assert names(client.get("/api/products?search=ric")) == ["Rice"]


def test_owner_updates_and_deactivates(client, register, create_product, admin_token):
    _, owner = register("Tigist", "w@x.com", role="wholesaler")
    _, rival = register("Dawit", "d@x.com", role="wholesaler")
    pid = create_product(owner)

    assert client.put(f"/api/products/{pid}", json={"price": 550}, headers=auth(rival)).status_code == 403
    r = client.put(f"/api/products/{pid}", json={"price": 550}, headers=auth(owner))
    assert r.status_code == 200
    assert r.json()["data"]["product"]["price"] == 550

    r = client.put(f"/api/products/{pid}", json={"available_quantity": 120}, headers=auth(admin_token))
    assert r.status_code == 200

    r = client.put(f"/api/products/{pid}", json={"wholesaler": "5f1d7f0e8e8b8b8b8b8b8b8b"}, headers=auth(owner))
    assert r.status_code == 400

    assert client.delete(f"/api/products/{pid}", headers=auth(owner)).status_code == 200
    assert client.get("/api/products").json()["data"]["products"] == []
    product = client.get(f"/api/products/{pid}").json()["data"]["product"]
    assert product["is_active"] is False

    mine = client.get("/api/products/my/products", headers=auth(owner)).json()["data"]["products"]
    assert [p["id"] for p in mine] == [pid]


def test_unknown_product(client):
    assert client.get("/api/products/5f1d7f0e8e8b8b8b8b8b8b8b").status_code == 404
    assert client.get("/api/products/nonsense").status_code == 404


def test_location_is_checked_on_create_and_update(client, register, create_product):
    _, token = register("Tigist", "w@x.com", role="wholesaler")
    r = client.post("/api/products", json={
        "name": "Rice", "description": "Long grain white rice from Fogera", "category": "grains",
        "price": 500, "unit": "kg", "available_quantity": 100, "location": {"city": 5},
    }, headers=auth(token))
    assert r.status_code == 400
    assert {e["field"] for e in r.json()["errors"]} == {"location.city"}

    pid = create_product(token, location={"region": "Amhara"})
    r = client.put(f"/api/products/{pid}", json={"location": {"junk": [1, 2], "city": 5}}, headers=auth(token))
    assert r.status_code == 400
    assert {e["field"] for e in r.json()["errors"]} == {"location.junk", "location.city"}

    r = client.put(f"/api/products/{pid}", json={"location": {"city": "Adama"}}, headers=auth(token))
    assert r.status_code == 200
    assert r.json()["data"]["product"]["location"] == {"region": None, "city": "Adama"}
