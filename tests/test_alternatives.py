import pytest
from sqlalchemy.exc import IntegrityError

from identitygate.errors import AltNameConflict
from identitygate.models import IdentityAlternative
from identitygate.services import alternatives
from identitygate.services import identity as identity_service


def test_alt_lifecycle_scenario(identity_db):
    assert identity_service.ensure_exist("U1")
    assert identity_service.create_alt("U1") is None

    assert identity_service.add_limit("U1", 1)
    assert identity_service.get_limit("U1") == 2
    assert identity_service.create_alt("U1") == "U1-1"

    assert identity_service.rename_alt("U1", "U1-1", "Shadow") is True
    assert identity_service.get_alt_uuid_by_name("U1", "Shadow") == "U1-1"

    assert identity_service.rename_alt("U1", "U1-0", "Shadow") is False
    assert identity_service.get_alt_name("U1", "U1-0") is None

    assert identity_service.switch_active_alt("U1", "U1-1") is True
    assert identity_service.get_active_alt("U1") == "U1-1"


def test_create_alt_never_exceeds_limit(identity_db):
    assert identity_service.ensure_exist("U1")
    assert identity_service.add_limit("U1", 3)

    results = [identity_service.create_alt("U1") for _ in range(10)]

    assert [r for r in results if r] == ["U1-1", "U1-2", "U1-3"]
    assert results[3:] == [None] * 7
    assert identity_service.get_alt_count("U1") == identity_service.get_limit("U1") == 4


def test_create_alt_on_unseen_identity_allocates_primary(identity_db):
    assert identity_service.create_alt("N") == "N-0"
    assert identity_service.get_active_alt("N") is None
    assert identity_service.create_alt("N") is None


def test_list_alts_labels_and_resolution(identity_db):
    assert identity_service.ensure_exist("N")
    assert identity_service.add_limit("N", 2)
    assert identity_service.create_alt("N") == "N-1"
    assert identity_service.create_alt("N") == "N-2"
    assert identity_service.rename_alt("N", "N-2", "Scout")

    assert identity_service.list_alts("N") == ["N-0", "N-1", "Scout"]

    assert identity_service.resolve_alt("N", "Scout") == "N-2"
    assert identity_service.resolve_alt("N", "N-1") == "N-1"
    assert identity_service.resolve_alt("N", "Missing") is None


def test_resolve_alt_ignores_other_identities(identity_db):
    assert identity_service.ensure_exist("A")
    assert identity_service.ensure_exist("B")

    assert identity_service.resolve_alt("A", "B-0") is None


def test_list_alts_empty_for_unknown_identity(identity_db):
    assert identity_service.list_alts("nobody") == []


def test_rename_clear_and_repeat(identity_db):
    assert identity_service.ensure_exist("U1")

    assert identity_service.rename_alt("U1", "U1-0", "Main") is True
    assert identity_service.rename_alt("U1", "U1-0", "Main") is True
    assert identity_service.rename_alt("U1", "U1-0", None) is True
    assert identity_service.get_alt_name("U1", "U1-0") is None
    assert identity_service.list_alts("U1") == ["U1-0"]


def test_rename_rejects_foreign_alt_and_empty_name(identity_db):
    assert identity_service.ensure_exist("A")
    assert identity_service.ensure_exist("B")
    assert identity_service.rename_alt("B", "B-0", "Bee")

    assert identity_service.rename_alt("A", "B-0", "Mine") is False
    assert identity_service.rename_alt("A", "A-0", "") is False
    assert identity_service.get_alt_name("B", "B-0") == "Bee"
    assert identity_service.get_alt_name("A", "A-0") is None


def test_same_name_allowed_for_different_identities(identity_db):
    assert identity_service.ensure_exist("A")
    assert identity_service.ensure_exist("B")

    assert identity_service.rename_alt("A", "A-0", "Main") is True
    assert identity_service.rename_alt("B", "B-0", "Main") is True


def test_set_alt_name_raises_conflict(identity_db, db_session):
    assert identity_service.ensure_exist("U1")
    assert identity_service.add_limit("U1", 1)
    assert identity_service.create_alt("U1") == "U1-1"
    assert identity_service.rename_alt("U1", "U1-1", "Shadow")

    with pytest.raises(AltNameConflict) as excinfo:
        alternatives.set_alt_name(db_session, "U1", "U1-0", "Shadow")

    assert excinfo.value.error_type == "conflict"
    assert excinfo.value.data == {"alt_id": "U1-1"}


def test_unique_index_backstops_name_precheck(identity_db, monkeypatch):
    assert identity_service.ensure_exist("U1")
    assert identity_service.add_limit("U1", 1)
    assert identity_service.create_alt("U1") == "U1-1"
    assert identity_service.rename_alt("U1", "U1-1", "Shadow")

    # Simulate a concurrent writer winning the name after the pre-check
    monkeypatch.setattr(alternatives, "_alt_id_by_name", lambda *args, **kwargs: None)

    assert identity_service.rename_alt("U1", "U1-0", "Shadow") is False
    assert identity_service.get_alt_name("U1", "U1-0") is None
    assert identity_service.get_alt_name("U1", "U1-1") == "Shadow"


def test_ownership_checks(identity_db):
    assert identity_service.ensure_exist("A")
    assert identity_service.ensure_exist("B")

    assert identity_service.is_owned_by("A", "A-0") is True
    assert identity_service.is_owned_by("A", "B-0") is False
    assert identity_service.is_owned_by("A", "A-9") is False


def test_index_collision_after_external_delete(identity_db, db_session):
    assert identity_service.ensure_exist("R")
    assert identity_service.add_limit("R", 2)
    assert identity_service.create_alt("R") == "R-1"
    assert identity_service.create_alt("R") == "R-2"

    db_session.query(IdentityAlternative).filter(
        IdentityAlternative.alt_id == "R-1"
    ).delete(synchronize_session=False)
    db_session.commit()

    # The next index is the count (2), which is still taken by R-2
    assert identity_service.create_alt("R") is None
    assert identity_service.get_alt_count("R") == 2
    assert identity_service.list_alts("R") == ["R-0", "R-2"]


def test_rename_rejects_sibling_alt_id(identity_db, db_session):
    assert identity_service.ensure_exist("U1")
    assert identity_service.add_limit("U1", 1)
    assert identity_service.create_alt("U1") == "U1-1"

    assert identity_service.rename_alt("U1", "U1-1", "U1-0") is False
    assert identity_service.get_alt_name("U1", "U1-1") is None
    assert identity_service.list_alts("U1") == ["U1-0", "U1-1"]
    assert identity_service.resolve_alt("U1", "U1-0") == "U1-0"

    with pytest.raises(AltNameConflict) as excinfo:
        alternatives.set_alt_name(db_session, "U1", "U1-1", "U1-0")
    assert excinfo.value.data == {"alt_id": "U1-0"}


def test_rename_to_own_or_foreign_alt_id_allowed(identity_db):
    assert identity_service.ensure_exist("A")
    assert identity_service.ensure_exist("B")

    assert identity_service.rename_alt("A", "A-0", "A-0") is True
    assert identity_service.rename_alt("A", "A-0", "B-0") is True
    assert identity_service.resolve_alt("A", "B-0") == "A-0"
    assert identity_service.resolve_alt("B", "B-0") == "B-0"


def test_unique_index_conflict_surfaces_as_name_conflict(identity_db, db_session, monkeypatch):
    assert identity_service.ensure_exist("U1")
    assert identity_service.add_limit("U1", 1)
    assert identity_service.create_alt("U1") == "U1-1"
    assert identity_service.rename_alt("U1", "U1-1", "Shadow")

    monkeypatch.setattr(alternatives, "_alt_id_by_name", lambda *args, **kwargs: None)

    with pytest.raises(AltNameConflict) as excinfo:
        alternatives.set_alt_name(db_session, "U1", "U1-0", "Shadow")

    assert isinstance(excinfo.value.__cause__, IntegrityError)
