from datetime import date, time

import pytest

from chamberbox.core.errors import BookingUnavailableError, InvalidTransitionError
from chamberbox.models.patient import Patient
from chamberbox.models.queue import QueueSession, SessionStatus, TokenStatus
from chamberbox.services.queue_service import QueueService

from .conftest import create_chamber, create_doctor, login

SESSION_DATE = date(2026, 10, 18)


@pytest.fixture
def setup(db_session):
    doctor = create_doctor(db_session)
    chamber = create_chamber(db_session, doctor)
    patients = []
    for i in range(4):
        patient = Patient(doctor_id=doctor.id, name=f"Patient {i + 1}", phone=f"0171100000{i}")
        db_session.add(patient)
        patients.append(patient)
    db_session.commit()

    service = QueueService(db_session)
    session = service.create_session(doctor.id, {
        "chamber_id": chamber.id,
        "session_date": SESSION_DATE,
        "start_time": time(9, 0),
        "end_time": time(12, 0),
        "max_patients": 3,
    })
    return service, doctor, chamber, session, patients


class TestTokenNumbering:

    def test_numbers_are_sequential(self, setup):
        service, _, _, session, patients = setup
        tokens = [service.add_token(session, p.id) for p in patients[:3]]

        assert [t.token_number for t in tokens] == [1, 2, 3]
        assert tokens[0].serial_number == "20261018-1"
        assert tokens[2].serial_number == "20261018-3"
        assert tokens[0].status == TokenStatus.WAITING

    def test_numbering_is_per_session(self, setup, db_session):
        service, doctor, chamber, session, patients = setup
        evening = service.create_session(doctor.id, {
            "chamber_id": chamber.id,
            "session_date": SESSION_DATE,
            "start_time": time(17, 0),
            "end_time": time(20, 0),
        })

        service.add_token(session, patients[0].id)
        service.add_token(session, patients[1].id)
        first_evening = service.add_token(evening, patients[2].id)

        assert first_evening.token_number == 1

    def test_cancelled_numbers_are_not_reused(self, setup):
        service, doctor, _, session, patients = setup
        first = service.add_token(session, patients[0].id)
        second = service.add_token(session, patients[1].id)
        service.update_token_status(doctor.id, second.id, TokenStatus.CANCELLED)

        third = service.add_token(session, patients[2].id)
        assert third.token_number == 3
        assert first.token_number == 1


class TestTokenTransitions:

    def test_waiting_cannot_complete(self, setup):
        service, doctor, _, session, patients = setup
        token = service.add_token(session, patients[0].id)

        with pytest.raises(InvalidTransitionError):
            service.update_token_status(doctor.id, token.id, TokenStatus.COMPLETED)

    def test_terminal_states(self, setup):
        service, doctor, _, session, patients = setup
        token = service.add_token(session, patients[0].id)
        service.update_token_status(doctor.id, token.id, TokenStatus.CANCELLED)

        with pytest.raises(InvalidTransitionError):
            service.update_token_status(doctor.id, token.id, TokenStatus.WAITING)

    def test_calling_a_token_starts_the_session(self, setup, db_session):
        service, doctor, _, session, patients = setup
        token = service.add_token(session, patients[0].id)

        token = service.update_token_status(doctor.id, token.id, TokenStatus.CURRENT)

        assert token.called_at is not None
        db_session.refresh(session)
        assert session.current_token == 1
        assert session.status == SessionStatus.RUNNING

    def test_completion_stamps_time(self, setup):
        service, doctor, _, session, patients = setup
        token = service.add_token(session, patients[0].id)
        service.update_token_status(doctor.id, token.id, TokenStatus.CURRENT)

        token = service.update_token_status(doctor.id, token.id, TokenStatus.COMPLETED)
        assert token.completed_at is not None

    def test_calling_out_of_order_completes_previous(self, setup, db_session):
        service, doctor, _, session, patients = setup
        first = service.add_token(session, patients[0].id)
        second = service.add_token(session, patients[1].id)
        service.update_token_status(doctor.id, first.id, TokenStatus.CURRENT)

        service.update_token_status(doctor.id, second.id, TokenStatus.CURRENT)

        db_session.expire_all()
        statuses = [t.status for t in service.list_tokens(doctor.id, session.id)]
        assert statuses == [TokenStatus.COMPLETED, TokenStatus.CURRENT]
        assert service.get_token(doctor.id, first.id).completed_at is not None
        assert service.get_session(doctor.id, session.id).current_token == 2


class TestCallNext:

    def test_walks_the_queue(self, setup, db_session):
        service, doctor, _, session, patients = setup
        first, second, third = [service.add_token(session, p.id) for p in patients[:3]]

        called = service.call_next(doctor.id, session.id)
        assert called.id == first.id
        assert called.status == TokenStatus.CURRENT

        called = service.call_next(doctor.id, session.id)
        assert called.id == second.id
        db_session.refresh(first)
        assert first.status == TokenStatus.COMPLETED

        service.update_token_status(doctor.id, third.id, TokenStatus.CANCELLED)
        assert service.call_next(doctor.id, session.id) is None

        db_session.refresh(second)
        db_session.refresh(session)
        assert second.status == TokenStatus.COMPLETED
        assert session.current_token == 2
        assert session.status == SessionStatus.RUNNING

    def test_patients_ahead(self, setup):
        service, doctor, _, session, patients = setup
        tokens = [service.add_token(session, p.id) for p in patients[:3]]

        assert service.patients_ahead(tokens[2]) == 2
        service.update_token_status(doctor.id, tokens[0].id, TokenStatus.CANCELLED)
        assert service.patients_ahead(tokens[2]) == 1


class TestBookingRules:

    def test_capacity(self, setup):
        service, doctor, _, session, patients = setup
        tokens = [service.add_token(session, p.id) for p in patients[:3]]

        with pytest.raises(BookingUnavailableError):
            service.add_token(session, patients[3].id)

        service.update_token_status(doctor.id, tokens[0].id, TokenStatus.CANCELLED)
        assert service.add_token(session, patients[3].id).token_number == 4

    def test_closed_session(self, setup):
        service, doctor, _, session, patients = setup
        service.update_session_status(doctor.id, session.id, SessionStatus.CLOSED)

        with pytest.raises(BookingUnavailableError):
            service.add_token(session, patients[0].id)

    def test_booking_switched_off(self, setup):
        service, doctor, _, session, patients = setup
        service.set_booking_open(doctor.id, session.id, False)

        with pytest.raises(BookingUnavailableError):
            service.add_token(session, patients[0].id)

    def test_delete_session_removes_tokens(self, setup, db_session):
        service, doctor, _, session, patients = setup
        service.add_token(session, patients[0].id)

        service.delete_session(doctor.id, session.id)
        assert db_session.query(QueueSession).count() == 0


class TestQueueApi:

    @pytest.fixture
    def api(self, client, setup):
        _, doctor, _, session, patients = setup
        return client, login(client, "doctor@example.com"), session, patients

    def test_client_supplied_number_ignored(self, api):
        client, headers, session, patients = api
        response = client.post(
            f"/api/v1/queue/sessions/{session.id}/tokens",
            headers=headers,
            json={"patient_id": patients[0].id, "token_number": 99},
        )
        assert response.status_code == 201
        assert response.json()["token_number"] == 1

    def test_invalid_transition_conflict(self, api):
        client, headers, session, patients = api
        token = client.post(
            f"/api/v1/queue/sessions/{session.id}/tokens",
            headers=headers,
            json={"patient_id": patients[0].id},
        ).json()

        response = client.patch(
            f"/api/v1/queue/tokens/{token['id']}/status",
            headers=headers,
            json={"status": "completed"},
        )
        assert response.status_code == 409

    def test_call_next_endpoint(self, api):
        client, headers, session, patients = api
        client.post(
            f"/api/v1/queue/sessions/{session.id}/tokens",
            headers=headers,
            json={"patient_id": patients[0].id},
        )

        response = client.post(f"/api/v1/queue/sessions/{session.id}/call-next", headers=headers)
        assert response.status_code == 200
        assert response.json()["token"]["status"] == "current"

        response = client.post(f"/api/v1/queue/sessions/{session.id}/call-next", headers=headers)
        assert response.json() == {"message": "No patients waiting", "token": None}

    def test_list_sessions_with_counts(self, api):
        client, headers, session, patients = api
        client.post(
            f"/api/v1/queue/sessions/{session.id}/tokens",
            headers=headers,
            json={"patient_id": patients[0].id},
        )

        response = client.get(
            "/api/v1/sessions", headers=headers, params={"session_date": SESSION_DATE.isoformat()}
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["token_count"] == 1
        assert data[0]["is_custom"] is True

    def test_custom_session_rejects_bad_times(self, api):
        client, headers, session, _ = api
        response = client.post("/api/v1/sessions", headers=headers, json={
            "chamber_id": session.chamber_id,
            "session_date": SESSION_DATE.isoformat(),
            "start_time": "14:00",
            "end_time": "13:00",
        })
        assert response.status_code == 422

    def test_duplicate_session_conflict(self, api):
        client, headers, session, _ = api
        response = client.post("/api/v1/sessions", headers=headers, json={
            "chamber_id": session.chamber_id,
            "session_date": SESSION_DATE.isoformat(),
            "start_time": "09:00",
            "end_time": "11:00",
        })
        assert response.status_code == 409
        assert response.json()["detail"] == "This record already exists."
