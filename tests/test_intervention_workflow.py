"""
Intervention workflow tests (service layer).

Covers:
    - creation with / without a technician, ASTREINTE review item
    - assignment log rows (status_from = previous status, actor = assigner)
    - full lifecycle: assign → REPORT_PENDING → COMPLETED with review items
    - one log row per assign/transition call, in call order
    - idempotency keys: replayed calls write nothing
    - optimistic version check
    - atomicity: a store failure mid-action leaves no partial writes
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    StaleVersionError,
    StoreFailure,
    ValidationError,
)
from app.models import db
from app.models.audit import InterventionLog
from app.models.intervention import Intervention
from app.models.review import ReviewItem
from app.services import intervention_service
from app.services.intervention_service import (
    assign_intervention,
    create_intervention,
    list_logs,
    transition_intervention,
)
from app.services.review_queue import ReviewReference, create_review_item


def _logs(intervention_id):
    return InterventionLog.query.filter_by(intervention_id=intervention_id).order_by(InterventionLog.id).all()


def _open_items(reference_id, queue=None):
    q = ReviewItem.query.filter(ReviewItem.reference_id == reference_id, ReviewItem.resolved_at.is_(None))
    if queue:
        q = q.filter(ReviewItem.queue == queue)
    return q.all()


def _store_failure(*args, **kwargs):
    raise OperationalError("INSERT INTO review_items", {}, Exception("disk I/O error"))


# ═════════════════════════════════════════════════════════════════════════════
# Creation
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateIntervention:
    def test_without_technician_is_pending_with_no_logs(self, case):
        intervention = create_intervention(case.id, {"title": "Visite", "type": "STANDARD"})

        assert intervention.status == "PENDING_ASSIGNMENT"
        assert intervention.technician_id is None
        assert intervention.version == 1
        assert _logs(intervention.id) == []

    def test_with_technician_is_assigned_with_initial_log(self, case):
        intervention = create_intervention(
            case.id, {"title": "Visite", "type": "URGENT", "technician_id": "T1"},
        )

        assert intervention.status == "ASSIGNED"
        logs = _logs(intervention.id)
        assert len(logs) == 1
        assert logs[0].status_from == "PENDING_ASSIGNMENT"
        assert logs[0].status_to == "ASSIGNED"
        assert logs[0].created_by_id == "T1"
        assert logs[0].note == "Assignation initiale"

    def test_blank_technician_stays_pending(self, case):
        intervention = create_intervention(
            case.id, {"title": "Visite", "type": "STANDARD", "technician_id": "   "},
        )

        assert intervention.status == "PENDING_ASSIGNMENT"
        assert intervention.technician_id is None
        assert _logs(intervention.id) == []

    def test_astreinte_queues_review_item(self, case):
        intervention = create_intervention(case.id, {"title": "Appel de nuit", "type": "ASTREINTE"})

        items = _open_items(intervention.id, queue="ASTREINTE")
        assert len(items) == 1
        assert items[0].reference_type == "intervention"
        assert "Appel de nuit" in items[0].label

    def test_missing_case_raises_not_found(self, client_site):
        with pytest.raises(NotFoundError):
            create_intervention("no-such-case", {"title": "Visite", "type": "STANDARD"})
        assert Intervention.query.count() == 0

    def test_validation_collects_field_errors(self, case):
        with pytest.raises(ValidationError) as exc:
            create_intervention(case.id, {"title": "ab", "type": "NOPE"})
        assert set(exc.value.details) == {"title", "type"}

    def test_schedule_end_before_start_rejected(self, case):
        with pytest.raises(ValidationError) as exc:
            create_intervention(case.id, {
                "title": "Visite",
                "type": "STANDARD",
                "scheduled_start": "2026-03-02T10:00:00Z",
                "scheduled_end": "2026-03-02T09:00:00Z",
            })
        assert "scheduled_end" in exc.value.details

    def test_closed_case_rejects_new_interventions(self, case):
        case.status = "CLOSED"
        case.closed_by_id = "U1"
        case.closed_at = datetime.now(timezone.utc)
        db.session.commit()

        with pytest.raises(ConflictError):
            create_intervention(case.id, {"title": "Visite", "type": "STANDARD"})


# ═════════════════════════════════════════════════════════════════════════════
# Lifecycle scenarios
# ═════════════════════════════════════════════════════════════════════════════


class TestLifecycle:
    def test_assign_from_pending(self, case):
        intervention = create_intervention(case.id, {"title": "Visite", "type": "STANDARD"})

        intervention = assign_intervention(
            intervention.id, {"technician_id": "T1", "assigned_by_id": "U1"},
        )

        assert intervention.status == "ASSIGNED"
        assert intervention.technician_id == "T1"
        logs = _logs(intervention.id)
        assert len(logs) == 1
        assert (logs[0].status_from, logs[0].status_to) == ("PENDING_ASSIGNMENT", "ASSIGNED")
        assert logs[0].created_by_id == "U1"
        assert logs[0].note == "Assignation"

    def test_reassign_records_actual_previous_status(self, make_intervention):
        intervention = make_intervention(status="EN_ROUTE", technician_id="T1")

        assign_intervention(intervention.id, {"technician_id": "T2", "assigned_by_id": "U1"})

        log = _logs(intervention.id)[-1]
        assert log.status_from == "EN_ROUTE"
        assert intervention.technician_id == "T2"

    def test_report_pending_then_completed(self, make_intervention):
        intervention = make_intervention(status="ASSIGNED", technician_id="T1")

        transition_intervention(intervention.id, {"status": "REPORT_PENDING", "user_id": "U2"})

        assert intervention.status == "REPORT_PENDING"
        report_items = _open_items(intervention.id, queue="REPORT")
        assert len(report_items) == 1
        report_item_id = report_items[0].id

        transition_intervention(intervention.id, {"status": "COMPLETED", "user_id": "U2"})

        assert intervention.status == "COMPLETED"
        assert intervention.actual_end is not None
        item = db.session.get(ReviewItem, report_item_id)
        assert item.resolved_at is not None
        assert item.notes == "Intervention terminée"
        assert _open_items(intervention.id) == []

    def test_transition_log_records_target_only(self, make_intervention):
        intervention = make_intervention(status="ASSIGNED")

        transition_intervention(intervention.id, {"status": "EN_ROUTE", "user_id": "T1", "note": "Parti"})

        log = _logs(intervention.id)[-1]
        assert log.status_from is None
        assert log.status_to == "EN_ROUTE"
        assert log.note == "Parti"

    def test_on_site_stamps_actual_start_from_timestamp(self, make_intervention):
        intervention = make_intervention(status="EN_ROUTE")

        transition_intervention(intervention.id, {
            "status": "ON_SITE", "user_id": "T1", "timestamp": "2026-03-02T08:15:00Z",
        })

        assert intervention.actual_start.replace(tzinfo=None) == datetime(2026, 3, 2, 8, 15)

    def test_returning_on_site_keeps_first_arrival(self, make_intervention):
        intervention = make_intervention(status="EN_ROUTE")
        transition_intervention(intervention.id, {
            "status": "ON_SITE", "user_id": "T1", "timestamp": "2026-03-02T08:15:00Z",
        })
        transition_intervention(intervention.id, {"status": "EN_ROUTE", "user_id": "T1"})
        transition_intervention(intervention.id, {
            "status": "ON_SITE", "user_id": "T1", "timestamp": "2026-03-02T11:00:00Z",
        })

        assert intervention.actual_start.replace(tzinfo=None) == datetime(2026, 3, 2, 8, 15)

    def test_completed_resolves_items_from_every_queue(self, make_intervention):
        intervention = make_intervention(status="ON_SITE", type="ASTREINTE")
        create_review_item("ASTREINTE", ReviewReference.intervention(intervention.id), "Astreinte")
        create_review_item("REPORT", ReviewReference.intervention(intervention.id), "Rapport")
        db.session.commit()

        transition_intervention(intervention.id, {"status": "COMPLETED", "user_id": "U2"})

        assert _open_items(intervention.id) == []

    def test_invalid_transition_writes_nothing(self, make_intervention):
        intervention = make_intervention(status="COMPLETED")

        with pytest.raises(InvalidTransitionError) as exc:
            transition_intervention(intervention.id, {"status": "ON_SITE", "user_id": "T1"})

        assert exc.value.current == "COMPLETED"
        assert exc.value.target == "ON_SITE"
        assert db.session.get(Intervention, intervention.id).status == "COMPLETED"
        assert _logs(intervention.id) == []

    def test_assign_refused_once_on_site(self, make_intervention):
        intervention = make_intervention(status="ON_SITE")

        with pytest.raises(InvalidTransitionError):
            assign_intervention(intervention.id, {"technician_id": "T2", "assigned_by_id": "U1"})

    def test_assigned_requires_technician(self, make_intervention):
        intervention = make_intervention(status="PENDING_ASSIGNMENT")

        with pytest.raises(ValidationError):
            transition_intervention(intervention.id, {"status": "ASSIGNED", "user_id": "U1"})

    def test_permissive_mode_accepts_any_pair(self, make_intervention, permissive):
        intervention = make_intervention(status="COMPLETED")

        transition_intervention(intervention.id, {"status": "ON_SITE", "user_id": "T1"})

        assert intervention.status == "ON_SITE"
        assert len(_logs(intervention.id)) == 1


# ═════════════════════════════════════════════════════════════════════════════
# Audit trail
# ═════════════════════════════════════════════════════════════════════════════


class TestLogCompleteness:
    def test_one_row_per_call_in_call_order(self, case):
        intervention = create_intervention(case.id, {"title": "Visite", "type": "STANDARD"})
        calls = [
            ("assign", {"technician_id": "T1", "assigned_by_id": "U1"}),
            ("transition", {"status": "EN_ROUTE", "user_id": "T1"}),
            ("transition", {"status": "ON_SITE", "user_id": "T1"}),
            ("transition", {"status": "EN_ROUTE", "user_id": "T1"}),
            ("transition", {"status": "ON_SITE", "user_id": "T1"}),
            ("transition", {"status": "REPORT_PENDING", "user_id": "T1"}),
            ("transition", {"status": "COMPLETED", "user_id": "U2"}),
        ]
        for kind, payload in calls:
            fn = assign_intervention if kind == "assign" else transition_intervention
            fn(intervention.id, payload)

        logs = list_logs(intervention.id)
        assert len(logs) == len(calls)
        assert [log.status_to for log in logs] == [
            "ASSIGNED", "EN_ROUTE", "ON_SITE", "EN_ROUTE", "ON_SITE", "REPORT_PENDING", "COMPLETED",
        ]
        assert [log.id for log in logs] == sorted(log.id for log in logs)

    def test_repeated_call_without_key_duplicates_row(self, make_intervention):
        intervention = make_intervention(status="PENDING_ASSIGNMENT")
        payload = {"technician_id": "T1", "assigned_by_id": "U1"}

        assign_intervention(intervention.id, payload)
        assign_intervention(intervention.id, payload)

        assert len(_logs(intervention.id)) == 2

    def test_list_logs_unknown_intervention(self):
        with pytest.raises(NotFoundError):
            list_logs("missing")


class TestIdempotency:
    def test_replayed_transition_writes_nothing(self, make_intervention):
        intervention = make_intervention(status="ASSIGNED")
        payload = {"status": "REPORT_PENDING", "user_id": "T1", "idempotency_key": "tx-42"}

        first = transition_intervention(intervention.id, payload)
        version = first.version
        second = transition_intervention(intervention.id, payload)

        assert second.id == intervention.id
        assert second.version == version
        assert len(_logs(intervention.id)) == 1
        assert len(_open_items(intervention.id, queue="REPORT")) == 1

    def test_replayed_assign_writes_nothing(self, make_intervention):
        intervention = make_intervention(status="PENDING_ASSIGNMENT")
        payload = {"technician_id": "T1", "assigned_by_id": "U1", "idempotency_key": "assign-1"}

        assign_intervention(intervention.id, payload)
        assign_intervention(intervention.id, payload)

        assert len(_logs(intervention.id)) == 1

    def test_key_reused_on_another_intervention_conflicts(self, make_intervention):
        first = make_intervention(status="ASSIGNED")
        other = make_intervention(status="ASSIGNED", title="Autre visite")

        transition_intervention(first.id, {"status": "EN_ROUTE", "user_id": "T1", "idempotency_key": "k"})

        with pytest.raises(ConflictError):
            transition_intervention(other.id, {"status": "EN_ROUTE", "user_id": "T1", "idempotency_key": "k"})
        assert db.session.get(Intervention, other.id).status == "ASSIGNED"


class TestOptimisticVersion:
    def test_version_increments_on_each_write(self, make_intervention):
        intervention = make_intervention(status="ASSIGNED")
        assert intervention.version == 1

        transition_intervention(intervention.id, {"status": "EN_ROUTE", "user_id": "T1"})

        assert intervention.version == 2

    def test_stale_expected_version_rejected(self, make_intervention):
        intervention = make_intervention(status="ASSIGNED")
        transition_intervention(intervention.id, {"status": "EN_ROUTE", "user_id": "T1"})

        with pytest.raises(StaleVersionError) as exc:
            transition_intervention(intervention.id, {
                "status": "ON_SITE", "user_id": "T1", "expected_version": 1,
            })

        assert exc.value.expected == 1
        assert exc.value.actual == 2
        assert db.session.get(Intervention, intervention.id).status == "EN_ROUTE"
        assert len(_logs(intervention.id)) == 1


# ═════════════════════════════════════════════════════════════════════════════
# Atomicity
# ═════════════════════════════════════════════════════════════════════════════


class TestAtomicity:
    def test_report_pending_failure_rolls_back_status_and_log(self, make_intervention, monkeypatch):
        intervention = make_intervention(status="ON_SITE")
        intervention_id = intervention.id
        monkeypatch.setattr(intervention_service, "create_review_item", _store_failure)

        with pytest.raises(StoreFailure):
            transition_intervention(intervention_id, {"status": "REPORT_PENDING", "user_id": "T1"})

        reloaded = db.session.get(Intervention, intervention_id)
        assert reloaded.status == "ON_SITE"
        assert reloaded.version == 1
        assert _logs(intervention_id) == []
        assert ReviewItem.query.count() == 0

    def test_completed_failure_keeps_report_item_open(self, make_intervention, monkeypatch):
        intervention = make_intervention(status="ASSIGNED")
        transition_intervention(intervention.id, {"status": "REPORT_PENDING", "user_id": "T1"})
        monkeypatch.setattr(intervention_service, "resolve_open_items_for", _store_failure)

        with pytest.raises(StoreFailure):
            transition_intervention(intervention.id, {"status": "COMPLETED", "user_id": "U2"})

        reloaded = db.session.get(Intervention, intervention.id)
        assert reloaded.status == "REPORT_PENDING"
        assert reloaded.actual_end is None
        assert len(_logs(intervention.id)) == 1
        assert len(_open_items(intervention.id, queue="REPORT")) == 1

    def test_creation_failure_leaves_no_intervention(self, case, monkeypatch):
        monkeypatch.setattr(intervention_service, "create_review_item", _store_failure)

        with pytest.raises(StoreFailure):
            create_intervention(case.id, {"title": "Nuit", "type": "ASTREINTE", "technician_id": "T1"})

        assert Intervention.query.count() == 0
        assert InterventionLog.query.count() == 0


# ═════════════════════════════════════════════════════════════════════════════
# Field captures
# ═════════════════════════════════════════════════════════════════════════════


class TestFieldCaptures:
    def test_add_media_defaults_to_photo(self, make_intervention):
        intervention = make_intervention(status="ON_SITE")

        media = intervention_service.add_media(intervention.id, {"url": "https://drive.example/p1.jpg"})

        assert media.media_type == "PHOTO"
        assert intervention.media == [media]

    def test_add_media_rejects_non_url(self, make_intervention):
        intervention = make_intervention(status="ON_SITE")

        with pytest.raises(ValidationError) as exc:
            intervention_service.add_media(intervention.id, {"url": "photo.jpg"})
        assert "url" in exc.value.details

    def test_quote_request_queues_quote_review(self, make_intervention):
        intervention = make_intervention(status="ON_SITE")

        request = intervention_service.create_quote_request(
            intervention.id, {"description": "Remplacer la carte électronique"},
        )

        assert request.status == "REQUESTED"
        items = _open_items(request.id, queue="QUOTE")
        assert len(items) == 1
        assert items[0].reference_type == "quote_request"

    def test_quote_request_description_too_short(self, make_intervention):
        intervention = make_intervention(status="ON_SITE")

        with pytest.raises(ValidationError):
            intervention_service.create_quote_request(intervention.id, {"description": "abc"})

    def test_device_proposal_defaults_to_case_site(self, make_intervention, client_site):
        intervention = make_intervention(status="ON_SITE")

        proposal = intervention_service.create_device_proposal(
            intervention.id, {"label": "Motorisation", "brand": "Came", "gps_latitude": 45.75},
        )

        assert proposal.site_id == client_site.id
        assert proposal.status == "PENDING_VALIDATION"
        assert proposal.gps_latitude == 45.75
        items = _open_items(proposal.id, queue="DEVICE_VALIDATION")
        assert len(items) == 1
        assert items[0].reference_type == "device_proposal"

    def test_device_proposal_unknown_predecessor(self, make_intervention):
        intervention = make_intervention(status="ON_SITE")

        with pytest.raises(NotFoundError):
            intervention_service.create_device_proposal(
                intervention.id, {"label": "Motorisation", "previous_device_id": "nope"},
            )
        assert ReviewItem.query.count() == 0
