# tests/test_scripts.py
from datetime import datetime, timedelta, timezone

import manage_roles
from sitemarket.scheduler import scheduler, sweep_stale_checkouts
from conftest import make_listing, make_purchase, make_user


def test_promote_script(db, capsys):
    user = make_user(db, "frank")
    assert manage_roles.promote("frank@example.com") is True
    db.refresh(user)
    assert user.role == "admin"
    assert manage_roles.promote("frank") is True
    assert "already an admin" in capsys.readouterr().out
    assert manage_roles.promote("ghost") is False


def test_sweep_job_registered_and_cancels_stale(db, seller, buyer):
    assert scheduler.get_job("sweep_stale_checkouts") is not None
    listing = make_listing(db, seller)
    tx = make_purchase(db, buyer, listing)
    tx.created_at = datetime.now(timezone.utc) - timedelta(days=3)
    db.commit()
    assert sweep_stale_checkouts() == 1
    db.refresh(tx)
    assert tx.status == "cancelled"
