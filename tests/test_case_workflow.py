"""
Case workflow tests: creation, patch (incl. closing invariant), close.
"""

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    StaleVersionError,
    StoreFailure,
    ValidationError,
)
from app.models import db
from app.models.case import Case
from app.models.client import Client, Site
from app.models.review import ReviewItem
from app.services import case_service
from app.services.case_service import close_case, create_case, patch_case


def _case_payload(site, **overrides):
    payload = {
        "title": "Interphone muet",
        "client_id": site.client_id,
        "site_id": site.id,
        "created_by_id": "U-office",
    }
    payload.update(overrides)
    return payload


class TestCreateCase:
    def test_opens_case(self, client_site):
        case = create_case(_case_payload(client_site, priority="URGENT"))

        assert case.status == "OPEN"
        assert case.priority == "URGENT"
        assert case.closed_at is None
        assert case.version == 1

    def test_site_must_belong_to_client(self, client_site):
        other = Client(name="Autre syndic")
        db.session.add(other)
        db.session.commit()

        with pytest.raises(ValidationError) as exc:
            create_case(_case_payload(client_site, client_id=other.id))
        assert "site_id" in exc.value.details

    def test_unknown_client(self, client_site):
        with pytest.raises(NotFoundError):
            create_case(_case_payload(client_site, client_id="ghost"))

    def test_drive_folder_url_validated(self, client_site):
        with pytest.raises(ValidationError) as exc:
            create_case(_case_payload(client_site, drive_folder_url="ftp://nas/dossiers"))
        assert "drive_folder_url" in exc.value.details
        assert Case.query.count() == 0

    def test_title_too_short(self, client_site):
        with pytest.raises(ValidationError) as exc:
            create_case(_case_payload(client_site, title="ab"))
        assert "title" in exc.value.details


class TestPatchCase:
    def test_plain_field_update(self, case):
        patch_case(case.id, {"description": "Bouton d'appel HS", "priority": "URGENT"})

        assert case.description == "Bouton d'appel HS"
        assert case.priority == "URGENT"
        assert case.status == "OPEN"

    def test_created_by_update(self, case):
        patch_case(case.id, {"created_by_id": "U9"})

        assert db.session.get(Case, case.id).created_by_id == "U9"

    def test_created_by_cannot_be_blanked(self, case):
        with pytest.raises(ValidationError) as exc:
            patch_case(case.id, {"created_by_id": "  "})
        assert "created_by_id" in exc.value.details
        assert db.session.get(Case, case.id).created_by_id == "U-office"

    def test_drive_folder_url_must_be_a_url(self, case):
        with pytest.raises(ValidationError) as exc:
            patch_case(case.id, {"drive_folder_url": "dossier partagé"})
        assert "drive_folder_url" in exc.value.details

        patch_case(case.id, {"drive_folder_url": "https://drive.example.com/d/42"})
        assert case.drive_folder_url == "https://drive.example.com/d/42"

    def test_valid_status_change(self, case):
        patch_case(case.id, {"status": "WAITING_PARTS"})

        assert case.status == "WAITING_PARTS"

    def test_invalid_status_change(self, case):
        case.status = "WAITING_CLIENT"
        db.session.commit()

        with pytest.raises(InvalidTransitionError):
            patch_case(case.id, {"status": "COMPLETED"})
        assert db.session.get(Case, case.id).status == "WAITING_CLIENT"

    def test_closing_via_patch_requires_closer(self, case):
        with pytest.raises(ValidationError) as exc:
            patch_case(case.id, {"status": "CLOSED"})
        assert "closed_by_id" in exc.value.details

    def test_closing_via_patch_defaults_closed_at(self, case):
        patch_case(case.id, {"status": "CLOSED", "closed_by_id": "U1"})

        assert case.status == "CLOSED"
        assert case.closed_by_id == "U1"
        assert case.closed_at is not None

    def test_reopen_clears_closing_fields(self, case):
        close_case(case.id, {"closed_by_id": "U1"})

        patch_case(case.id, {"status": "OPEN"})

        assert case.status == "OPEN"
        assert case.closed_at is None
        assert case.closed_by_id is None

    def test_closing_fields_without_closed_status(self, case):
        with pytest.raises(ValidationError):
            patch_case(case.id, {"closed_by_id": "U1"})

    def test_move_to_another_site_of_same_client(self, case, client_site):
        site_b = Site(
            client_id=client_site.client_id, label="Bâtiment B",
            address_line1="14 rue des Lilas", postal_code="69003", city="Lyon",
        )
        db.session.add(site_b)
        db.session.commit()

        patch_case(case.id, {"site_id": site_b.id})

        assert case.site_id == site_b.id

    def test_stale_expected_version(self, case):
        patch_case(case.id, {"description": "v2"})

        with pytest.raises(StaleVersionError) as exc:
            patch_case(case.id, {"description": "v3", "expected_version": 1})
        assert exc.value.expected == 1
        assert db.session.get(Case, case.id).description == "v2"


class TestCloseCase:
    def test_close_queues_report_review(self, case):
        close_case(case.id, {"closed_by_id": "U1", "note": "Client satisfait"})

        assert case.status == "CLOSED"
        assert case.closed_by_id == "U1"
        assert case.closed_at is not None
        items = ReviewItem.query.filter_by(reference_id=case.id).all()
        assert len(items) == 1
        assert items[0].queue == "REPORT"
        assert items[0].reference_type == "case"
        assert items[0].notes == "Client satisfait"
        assert items[0].resolved_at is None
        assert items[0].label == "Clôture du dossier Portail bloqué"

    def test_closing_twice_refused(self, case):
        close_case(case.id, {"closed_by_id": "U1"})

        with pytest.raises(InvalidTransitionError):
            close_case(case.id, {"closed_by_id": "U1"})
        assert ReviewItem.query.count() == 1

    def test_closed_by_required(self, case):
        with pytest.raises(ValidationError):
            close_case(case.id, {})

    def test_review_failure_keeps_case_open(self, case, monkeypatch):
        def _fail(*args, **kwargs):
            raise OperationalError("INSERT INTO review_items", {}, Exception("disk full"))

        monkeypatch.setattr(case_service, "create_review_item", _fail)

        with pytest.raises(StoreFailure):
            close_case(case.id, {"closed_by_id": "U1"})

        reloaded = db.session.get(Case, case.id)
        assert reloaded.status == "OPEN"
        assert reloaded.closed_at is None
        assert reloaded.closed_by_id is None
        assert ReviewItem.query.count() == 0
