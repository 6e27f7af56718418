from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import (
    DuplicateEmailError,
    InvalidStatusError,
    InvalidUrlFormatError,
    NotFoundError,
    NotVerifiedError,
    PostUrlInUseError,
    ValidationError,
)
from app.models.waitlist_entry import EntryStatus, WaitlistEntry
from app.services.waitlist_service import is_approved, is_verified, normalize_roles, normalize_x_handle, to_safe_dict


def _submit(service, name="Ada Lovelace", email="ada@example.com", **kwargs):
    kwargs.setdefault("roles", ["developer"])
    return service.submit(name=name, email=email, **kwargs)


def _verified(service, outbox, email="ada@example.com", **kwargs):
    created = _submit(service, email=email, **kwargs)
    service.verify_by_token(outbox.token_for(email))
    return created["id"]


def test_submit_normalizes_fields(waitlist_service, db_session):
    _submit(
        waitlist_service,
        name="  Ada Lovelace  ",
        email="  Ada@Example.com ",
        roles=["developer", "investor", "developer"],
        x_handle="@Ada_L",
        note="   ",
    )
    entry = db_session.query(WaitlistEntry).one()
    assert entry.name == "Ada Lovelace"
    assert entry.email == "ada@example.com"
    assert entry.roles == ["developer", "investor"]
    assert entry.x_handle == "ada_l"
    assert entry.note is None


def test_submit_duplicate_email_any_case(waitlist_service, outbox):
    _submit(waitlist_service, email="john@example.com")
    with pytest.raises(DuplicateEmailError):
        _submit(waitlist_service, email="JOHN@EXAMPLE.COM")
    assert len(outbox) == 1


def test_submit_validation_happens_before_insert(waitlist_service, db_session):
    with pytest.raises(ValidationError):
        _submit(waitlist_service, roles=["wizard"])
    assert db_session.query(WaitlistEntry).count() == 0


def test_normalizers():
    assert normalize_x_handle(None) is None
    assert normalize_x_handle("@Name_1") == "name_1"
    with pytest.raises(ValidationError):
        normalize_x_handle("has space")
    with pytest.raises(ValidationError) as exc:
        normalize_roles([])
    assert exc.value.message == "At least one role must be selected"


def test_verify_is_idempotent_and_token_is_single_use(waitlist_service, outbox):
    created = _submit(waitlist_service)
    token = outbox.token_for("ada@example.com")

    first = waitlist_service.verify_by_token(token)
    second = waitlist_service.verify_by_token(token)

    assert first == {"already_verified": False, "email": "ada@example.com", "id": created["id"]}
    assert second["already_verified"] is True
    assert waitlist_service.store.find_by_token(token) is None


def test_safe_dict_omits_token(waitlist_service, db_session):
    _submit(waitlist_service, wallet_address="0x3333333333333333333333333333333333333333")
    data = to_safe_dict(db_session.query(WaitlistEntry).one())
    assert "verificationToken" not in data
    assert "consumedTokenDigest" not in data
    assert data["walletAddress"] == "0x3333333333333333333333333333333333333333"
    assert data["status"] == "pending"
    assert data["createdAt"].endswith("+00:00")


def test_record_post_url_rules(waitlist_service, outbox):
    unverified = _submit(waitlist_service, email="new@example.com")["id"]
    ada = _verified(waitlist_service, outbox)
    bob = _verified(waitlist_service, outbox, email="bob@example.com", name="Bob")

    with pytest.raises(InvalidUrlFormatError):
        waitlist_service.record_post_url(ada, "https://x.com/ada/posts/1")
    with pytest.raises(NotVerifiedError):
        waitlist_service.record_post_url(unverified, "https://x.com/new/status/1")
    with pytest.raises(NotFoundError):
        waitlist_service.record_post_url("6f1c2b1e-4a7d-4a62-9a55-0c1a1f1b2c3d", "https://x.com/a/status/1")

    entry = waitlist_service.record_post_url(ada, "https://twitter.com/ada/status/42/photo/1")
    assert entry.posted is True
    assert entry.post_url == "https://twitter.com/ada/status/42"

    with pytest.raises(PostUrlInUseError):
        waitlist_service.record_post_url(bob, "https://twitter.com/ada/status/42?ref=copy")

    # Replacing one's own post frees the old URL
    waitlist_service.record_post_url(ada, "https://x.com/ada/status/43")
    assert waitlist_service.record_post_url(bob, "https://twitter.com/ada/status/42").post_url == (
        "https://twitter.com/ada/status/42"
    )


def test_list_for_admin_orders_newest_first(waitlist_service, db_session):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for i, name in enumerate(["First", "Second", "Third"]):
        db_session.add(WaitlistEntry(
            name=name,
            email=f"{name.lower()}@example.com",
            roles=["other"],
            created_at=base + timedelta(minutes=i),
        ))
    db_session.commit()

    page = waitlist_service.list_for_admin(page=1, page_size=2)
    assert [e["name"] for e in page["entries"]] == ["Third", "Second"]
    assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    page_two = waitlist_service.list_for_admin(page=2, page_size=2)
    assert [e["name"] for e in page_two["entries"]] == ["First"]


def test_list_for_admin_search_is_literal(waitlist_service):
    _submit(waitlist_service, name="Ada Lovelace", email="ada@example.com")
    _submit(waitlist_service, name="Grace_Hopper", email="grace@example.com")

    assert waitlist_service.list_for_admin(search="%")["pagination"]["total"] == 0
    assert [e["name"] for e in waitlist_service.list_for_admin(search="_")["entries"]] == ["Grace_Hopper"]
    assert waitlist_service.list_for_admin(search="LOVELACE")["pagination"]["total"] == 1
    assert waitlist_service.list_for_admin(search="grace@")["pagination"]["total"] == 1


def test_list_for_admin_rejects_bad_paging(waitlist_service):
    with pytest.raises(ValidationError):
        waitlist_service.list_for_admin(page=0)
    with pytest.raises(InvalidStatusError):
        waitlist_service.list_for_admin(status="archived")


def test_set_status_and_remove(waitlist_service):
    entry_id = _submit(waitlist_service)["id"]

    assert waitlist_service.set_status(entry_id, "rejected").status == EntryStatus.REJECTED
    with pytest.raises(InvalidStatusError):
        waitlist_service.set_status(entry_id, "archived")

    waitlist_service.remove(entry_id)
    with pytest.raises(NotFoundError):
        waitlist_service.remove(entry_id)
    with pytest.raises(NotFoundError):
        waitlist_service.set_status(entry_id, "approved")


def test_resend_verification_sends_synchronously(waitlist_service, email_service, outbox):
    entry_id = _submit(waitlist_service)["id"]
    receipt = waitlist_service.resend_verification(entry_id)
    assert receipt == {"id": "email_1"}
    assert email_service.sent[0]["token"] == outbox.token_for("ada@example.com")


def test_statistics_are_consistent(waitlist_service, outbox):
    _verified(waitlist_service, outbox)
    bob = _submit(waitlist_service, email="bob@example.com")["id"]
    _submit(waitlist_service, email="cy@example.com")
    waitlist_service.set_status(bob, "rejected")

    stats = waitlist_service.statistics()
    assert stats == {"total": 3, "verified": 1, "unverified": 2, "pending": 1, "approved": 1, "rejected": 1}
    assert stats["verified"] + stats["unverified"] == stats["total"]
    assert stats["pending"] + stats["approved"] + stats["rejected"] == stats["total"]


def test_export_csv_rows(waitlist_service, outbox):
    _verified(waitlist_service, outbox, roles=["developer", "content_creator"])
    content = waitlist_service.export_csv().decode("utf-8")
    header, row = content.strip().split("\n")
    assert header == '"Name","Email","Wallet Address","Roles","Status","Email Verified","Created At"'
    assert row.startswith('"Ada Lovelace","ada@example.com","N/A","developer;content_creator","approved","true","')


def test_export_csv_empty(waitlist_service):
    assert waitlist_service.export_csv().decode("utf-8").count("\n") == 1


def test_record_helpers_and_lookups(waitlist_service, outbox):
    _verified(waitlist_service, outbox)
    _submit(waitlist_service, email="bob@example.com")
    store = waitlist_service.store

    ada = store.find_by_email(" ADA@example.com")
    bob = store.find_by_email("bob@example.com")
    assert is_verified(ada) and is_approved(ada)
    assert not is_verified(bob) and not is_approved(bob)
    assert store.find_by_email("nobody@example.com") is None

    assert store.count_grouped_by("email_verified") == {True: 1, False: 1}
    assert store.count_grouped_by("posted") == {False: 2}
    with pytest.raises(ValueError):
        store.count_grouped_by("name")
