# tests/test_favorites.py
import pytest

from sitemarket import services
from sitemarket.errors import NotFound
from conftest import auth_header, claims_for, make_listing


def test_toggle_twice_returns_to_empty(db, seller, buyer):
    listing = make_listing(db, seller)
    claims = claims_for(buyer)
    assert services.toggle_favorite(db, claims, listing.id) == [listing.id]
    assert services.toggle_favorite(db, claims, listing.id) == []


def test_toggle_keeps_other_favorites(db, seller, buyer):
    a = make_listing(db, seller, url="https://a.example")
    b = make_listing(db, seller, url="https://b.example")
    claims = claims_for(buyer)
    services.toggle_favorite(db, claims, a.id)
    assert services.toggle_favorite(db, claims, b.id) == [a.id, b.id]
    assert services.toggle_favorite(db, claims, a.id) == [b.id]


def test_toggle_unknown_listing(db, buyer):
    with pytest.raises(NotFound):
        services.toggle_favorite(db, claims_for(buyer), 123)


def test_favorite_routes(client, db, seller, buyer):
    listing = make_listing(db, seller, url="https://fav.example")
    resp = client.post(f"/favorites/{listing.id}", headers=auth_header(buyer))
    assert resp.status_code == 200
    assert resp.json() == {"favorites": [listing.id]}

    favs = client.get("/favorites", headers=auth_header(buyer)).json()
    assert [f["url"] for f in favs] == ["https://fav.example"]
    assert favs[0]["owner"] == "seller"
    assert "salesCount" in favs[0]

    client.post(f"/favorites/{listing.id}", headers=auth_header(buyer))
    assert client.get("/favorites", headers=auth_header(buyer)).json() == []


def test_deleted_listing_leaves_favorites(db, seller, buyer):
    listing = make_listing(db, seller)
    services.toggle_favorite(db, claims_for(buyer), listing.id)
    db.delete(listing)
    db.commit()
    assert services.list_favorites(db, claims_for(buyer)) == []
