import pytest

from meatcuts.catalog import repository
from meatcuts.catalog.models import MeatCutUpdate
from meatcuts.db import metadata
from meatcuts.errors import InvalidInputError, NotFoundError


def test_create_derives_price_and_slug(session, make_cut):
    item = repository.create_item(session, make_cut())
    assert item.slug == "arm-chuck-roast"
    assert (item.price_min, item.price_max, item.price_mean) == (6, 9, 7.5)
    assert item.price_display == "$6 – $9"
    assert metadata.read(session, metadata.LAST_CATALOG_UPDATE) is not None


def test_create_formats_display_from_numbers(session, make_cut):
    item = repository.create_item(session, make_cut(price_display=None, price_min=4, price_max=7.5))
    assert item.price_display == "$4 – $7.5"


def test_create_rejects_display_that_disagrees_with_numbers(session, make_cut):
    for display in ("Market price", "$100 – $200"):
        with pytest.raises(InvalidInputError, match="does not match"):
            repository.create_item(session, make_cut(price_display=display, price_min=5, price_max=7))
    assert repository.count_items(session) == 0


def test_create_keeps_matching_custom_display(session, make_cut):
    item = repository.create_item(session, make_cut(price_display="$5-$7", price_min=5, price_max=7))
    assert (item.price_min, item.price_max, item.price_display) == (5, 7, "$5-$7")


def test_duplicate_names_get_distinct_slugs(session, make_cut):
    slugs = [repository.create_item(session, make_cut("Short Rib")).slug for _ in range(3)]
    assert slugs == ["short-rib", "short-rib-1", "short-rib-2"]


def test_create_rejects_inverted_price(session, make_cut):
    with pytest.raises(InvalidInputError):
        repository.create_item(session, make_cut(price_display="$9 – $6"))
    assert repository.count_items(session) == 0


def test_create_with_asset_id_pairs_url(session, store, make_cut):
    item = repository.create_item(session, make_cut(image_asset_id="abc"), store)
    assert item.image_asset_id == "abc"
    assert item.image_url == "https://assets.test/abc"


def test_get_by_slug_missing_raises(session):
    with pytest.raises(NotFoundError):
        repository.get_item_by_slug(session, "nope")


def test_rename_reassigns_slug(session, catalog):
    chuck, _ = catalog
    updated = repository.update_item(session, chuck.id, MeatCutUpdate(name="Short Rib"))
    assert updated.slug == "short-rib-1"


def test_update_without_rename_keeps_slug(session, catalog):
    chuck, _ = catalog
    updated = repository.update_item(
        session, chuck.id, MeatCutUpdate(name="Arm Chuck Roast", price_display="$7 – $10")
    )
    assert updated.slug == "arm-chuck-roast"
    assert (updated.price_min, updated.price_max) == (7, 10)


def test_update_replaces_tags(session, catalog):
    chuck, _ = catalog
    updated = repository.update_item(session, chuck.id, MeatCutUpdate(cooking_methods=["Smoke"]))
    assert [m.name for m in updated.cooking_methods] == ["Smoke"]
    assert [d.name for d in updated.recommended_dishes] == ["Pot Roast"]


def test_update_rejects_price_min_above_existing_max(session, catalog):
    chuck, _ = catalog
    with pytest.raises(InvalidInputError):
        repository.update_item(session, chuck.id, MeatCutUpdate(price_min=20))


def test_update_price_numbers_rederive_display(session, catalog):
    chuck, _ = catalog
    updated = repository.update_item(session, chuck.id, MeatCutUpdate(price_min=7))
    assert (updated.price_min, updated.price_max, updated.price_display) == (7, 9, "$7 – $9")

    with pytest.raises(InvalidInputError):
        repository.update_item(session, chuck.id, MeatCutUpdate(price_min=5, price_max=7, price_display="$100 – $200"))


def test_update_can_unlink_image(session, store, catalog):
    chuck, _ = catalog
    repository.update_item(session, chuck.id, MeatCutUpdate(image_asset_id="x1"), store)
    updated = repository.update_item(session, chuck.id, MeatCutUpdate(image_asset_id=None), store)
    assert updated.image_asset_id is None
    assert updated.image_url is None


def test_delete_removes_remote_image(session, store, catalog):
    chuck, _ = catalog
    asset_id = store.add("arm_chuck_roast.jpg")
    repository.update_item(session, chuck.id, MeatCutUpdate(image_asset_id=asset_id), store)

    repository.delete_item(session, chuck.id, store)

    assert asset_id not in store.assets
    with pytest.raises(NotFoundError):
        repository.get_item(session, chuck.id)


def test_delete_survives_remote_failure(session, store, catalog):
    chuck, _ = catalog
    repository.update_item(session, chuck.id, MeatCutUpdate(image_asset_id="gone"), store)
    store.fail_deletes = True

    repository.delete_item(session, chuck.id, store)

    assert repository.count_items(session) == 1


def test_bulk_delete_reports_missing_ids(session, catalog):
    chuck, rib = catalog
    summary = repository.bulk_delete(session, [chuck.id, 999, rib.id])
    assert summary.succeeded == 2
    assert summary.failed == 1
    assert summary.errors[0].id == 999
    assert summary.deleted_ids == [chuck.id, rib.id]
    assert repository.count_items(session) == 0


def test_attach_image_uploads_then_updates_in_place(session, store, catalog):
    chuck, _ = catalog
    first = repository.attach_image(session, store, chuck.id, b"v1")
    asset_id = first.image_asset_id
    assert store.calls == [("upload", "arm_chuck_roast.jpg")]

    second = repository.attach_image(session, store, chuck.id, b"v2", "image/png")
    assert second.image_asset_id == asset_id
    assert store.assets[asset_id][2] == b"v2"
    assert store.calls[-1] == ("update", asset_id)


def test_list_items_orders_by_name_and_pages(session, catalog):
    names = [item.name for item in repository.list_items(session)]
    assert names == ["Arm Chuck Roast", "Short Rib"]
    assert [item.name for item in repository.list_items(session, limit=1, offset=1)] == ["Short Rib"]
