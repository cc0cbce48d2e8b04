from __future__ import annotations

import io

from meatcuts.data_ingestion.export import EXPORT_COLUMNS

NEW_CUT = {
    "name": "Flank Steak",
    "chineseName": "腹脇肉",
    "part": "Flank",
    "lean": True,
    "priceDisplay": "$12 – $14",
    "imageReference": "flank",
    "cookingMethods": ["Grill", "Stir-fry"],
    "recommendedDishes": ["Fajitas"],
}


# ── Public endpoints ─────────────────────────────────────────────────────


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_metadata(client, catalog):
    body = client.get("/api/metadata").json()
    assert body["totalMeatCuts"] == 2
    assert body["lastUpdate"] is not None
    assert body["lastCsvExport"] is None
    assert body["version"]


def test_search_scenario(client, catalog):
    body = client.get("/api/meat-cuts/search", params={"q": "chuck"}).json()
    assert [r["name"] for r in body["results"]] == ["Arm Chuck Roast"]
    assert body["total"] == 1
    assert body["priceRange"] == {"min": 6, "max": 15}

    body = client.get("/api/meat-cuts/search", params={"priceMin": 10}).json()
    assert [r["name"] for r in body["results"]] == ["Short Rib"]
    result = body["results"][0]
    assert result["chineseName"] == "牛小排"
    assert result["priceRange"]["display"] == "$10 – $15"
    assert result["imageUrl"] is None


def test_search_combined_filters(client, catalog):
    params = {"cookingMethod": "Braise", "lean": "false", "part": "Plate"}
    body = client.get("/api/meat-cuts/search", params=params).json()
    assert [r["slug"] for r in body["results"]] == ["short-rib"]


def test_search_rejects_inverted_price_bounds(client, catalog):
    resp = client.get("/api/meat-cuts/search", params={"priceMin": 10, "priceMax": 5})
    assert resp.status_code == 422


def test_filter_options(client, catalog):
    body = client.get("/api/filters/options").json()
    assert body["parts"] == ["Chuck", "Plate"]
    assert body["cookingMethods"] == ["Braise", "Grill", "Roast"]
    assert body["priceRange"] == {"min": 6, "max": 15}


def test_get_by_slug(client, catalog):
    body = client.get("/api/meat-cuts/arm-chuck-roast").json()
    assert body["name"] == "Arm Chuck Roast"
    assert body["cookingMethods"] == ["Braise", "Roast"]
    assert body["shareUrl"].endswith("/meat/arm-chuck-roast")


def test_get_by_slug_not_found(client, catalog):
    resp = client.get("/api/meat-cuts/does-not-exist")
    assert resp.status_code == 404
    assert "does-not-exist" in resp.json()["detail"]


def test_image_redirect(admin_client, catalog, store):
    chuck, _ = catalog
    assert admin_client.get("/api/meat-cuts/arm-chuck-roast/image", follow_redirects=False).status_code == 404

    admin_client.put(f"/api/admin/meat-cuts/{chuck.id}", json={"imageAssetId": "img-1"})
    resp = admin_client.get("/api/meat-cuts/arm-chuck-roast/image", follow_redirects=False)
    assert resp.status_code == 307
    assert resp.headers["location"] == store.url_for("img-1")


# ── Admin CRUD ───────────────────────────────────────────────────────────


def test_create_and_list(admin_client, catalog):
    resp = admin_client.post("/api/admin/meat-cuts", json=NEW_CUT)
    assert resp.status_code == 201
    created = resp.json()
    assert created["slug"] == "flank-steak"
    assert created["priceRange"] == {"min": 12, "max": 14, "mean": 13, "display": "$12 – $14"}
    assert created["cookingMethods"] == ["Grill", "Stir-fry"]

    page = admin_client.get("/api/admin/meat-cuts", params={"page": 1, "limit": 2}).json()
    assert page["total"] == 3
    assert [m["name"] for m in page["meatCuts"]] == ["Arm Chuck Roast", "Flank Steak"]


def test_create_rejects_bad_price(admin_client):
    resp = admin_client.post("/api/admin/meat-cuts", json={**NEW_CUT, "priceDisplay": "$14 – $12"})
    assert resp.status_code == 400
    assert "greater than" in resp.json()["detail"]


def test_create_requires_a_price(admin_client):
    body = {k: v for k, v in NEW_CUT.items() if k != "priceDisplay"}
    assert admin_client.post("/api/admin/meat-cuts", json=body).status_code == 422


def test_update_rename_moves_slug(admin_client, catalog):
    chuck, _ = catalog
    resp = admin_client.put(f"/api/admin/meat-cuts/{chuck.id}", json={"name": "Chuck Roast"})
    assert resp.status_code == 200
    assert resp.json()["slug"] == "chuck-roast"
    assert admin_client.get("/api/meat-cuts/arm-chuck-roast").status_code == 404


def test_update_missing_item(admin_client):
    assert admin_client.put("/api/admin/meat-cuts/999", json={"name": "x"}).status_code == 404


def test_delete_and_bulk_delete(admin_client, catalog):
    chuck, rib = catalog
    assert admin_client.delete(f"/api/admin/meat-cuts/{chuck.id}").status_code == 200
    assert admin_client.get(f"/api/admin/meat-cuts/{chuck.id}").status_code == 404

    body = admin_client.post("/api/admin/meat-cuts/bulk-delete", json={"ids": [rib.id, chuck.id]}).json()
    assert body["succeeded"] == 1
    assert body["failed"] == 1
    assert body["deletedIds"] == [rib.id]


def test_bulk_delete_requires_ids(admin_client):
    assert admin_client.post("/api/admin/meat-cuts/bulk-delete", json={"ids": []}).status_code == 422


def test_upload_image(admin_client, catalog, store):
    chuck, _ = catalog
    files = {"image": ("chuck.jpg", b"jpeg-bytes", "image/jpeg")}
    resp = admin_client.post(f"/api/admin/meat-cuts/{chuck.id}/image", files=files)
    assert resp.status_code == 200
    asset_id = resp.json()["imageAssetId"]
    assert store.assets[asset_id][2] == b"jpeg-bytes"


def test_upload_rejects_non_images(admin_client, catalog):
    chuck, _ = catalog
    files = {"image": ("notes.txt", b"hello", "text/plain")}
    assert admin_client.post(f"/api/admin/meat-cuts/{chuck.id}/image", files=files).status_code == 400


def test_asset_store_outage_maps_to_503(admin_client, catalog, store):
    chuck, _ = catalog
    store.fail_uploads.add("chuck.jpg")
    files = {"image": ("chuck.jpg", b"jpeg-bytes", "image/jpeg")}
    assert admin_client.post(f"/api/admin/meat-cuts/{chuck.id}/image", files=files).status_code == 503


def test_tags(admin_client, catalog):
    body = admin_client.get("/api/admin/tags").json()
    assert body == {
        "parts": ["Chuck", "Plate"],
        "cookingMethods": ["Braise", "Grill", "Roast"],
        "recommendedDishes": ["Galbi", "Pot Roast"],
    }


# ── CSV and reconciliation ──────────────────────────────────────────────


def test_export_csv(admin_client, catalog):
    resp = admin_client.get("/api/admin/export/csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="meat_cuts_export_' in resp.headers["content-disposition"]
    lines = resp.text.splitlines()
    assert lines[0] == ",".join(EXPORT_COLUMNS)
    assert len(lines) == 3
    assert admin_client.get("/api/metadata").json()["lastCsvExport"] is not None


def test_import_csv(admin_client):
    content = (
        "Name,Chinese Name,Part,Lean,Approx. Price,image reference\n"
        "Brisket,牛胸肉,Brisket,No,$8 – $11,brisket\n"
        "Broken,壞,Brisket,No,cheap,broken\n"
    ).encode("utf-8")
    files = {"file": ("cuts.csv", io.BytesIO(content), "text/csv")}

    body = admin_client.post("/api/admin/import/csv", files=files).json()

    assert body["succeeded"] == 1
    assert body["failed"] == 1
    assert body["errors"][0]["row"] == 3
    assert admin_client.get("/api/meat-cuts/brisket").status_code == 200


def test_match_assets_and_sync_status(admin_client, catalog, store):
    chuck, rib = catalog
    asset_id = store.add("arm_chuck_roast.jpg")

    report = admin_client.post("/api/admin/assets/match").json()
    assert [m["id"] for m in report["matched"]] == [chuck.id]
    assert [u["id"] for u in report["unmatched"]] == [rib.id]

    status = admin_client.get("/api/admin/sync/status").json()
    assert status["imagesSynced"] is True
    assert status["withRemoteAsset"] == 1

    del store.assets[asset_id]
    status = admin_client.get("/api/admin/sync/status").json()
    assert status["imagesSynced"] is False
    assert status["danglingReferences"] == [{"id": chuck.id, "name": "Arm Chuck Roast", "assetId": asset_id}]
    assert status["warnings"]
