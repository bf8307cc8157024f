import pytest
from httpx import ASGITransport, AsyncClient

from clinic_scheduler.core.cache import ViewCache
from clinic_scheduler.core.security import create_access_token
from clinic_scheduler.main import app

pytestmark = pytest.mark.anyio

API = "/api/v1"
WEEKDAY_HOURS = {
    "name": "Dra. Ana Souza",
    "available_from_weekday": 1,
    "available_to_weekday": 5,
    "available_from_time": "8:00",
    "available_to_time": "17:00",
    "appointment_price_in_cents": 15000,
}


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(7, clinic_id=1)}"}


@pytest.fixture
async def client(session_maker):
    app.state.session_maker = session_maker
    app.state.view_cache = ViewCache()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def seeded(client, auth_headers) -> dict[str, int]:
    practitioner = await client.post(f"{API}/practitioners", json=WEEKDAY_HOURS, headers=auth_headers)
    patient = await client.post(f"{API}/patients", json={"name": "João Lima"}, headers=auth_headers)
    assert practitioner.status_code == 201
    assert patient.status_code == 201
    return {"practitioner_id": practitioner.json()["id"], "patient_id": patient.json()["id"]}


async def _slots(client, headers, practitioner_id: int, day: str, **params) -> list[dict]:
    response = await client.get(
        f"{API}/slots/available",
        params={"practitioner_id": practitioner_id, "date": day, **params},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()["slots"]


async def test_health(client) -> None:
    response = await client.get("/health")

    assert response.json() == {"status": "ok"}


async def test_requests_without_token_are_rejected(client) -> None:
    response = await client.get(f"{API}/slots/available", params={"practitioner_id": 1, "date": "2026-01-07"})

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_garbage_token_is_rejected(client) -> None:
    response = await client.get(
        f"{API}/appointments", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401


async def test_practitioner_times_are_normalized(client, auth_headers, seeded) -> None:
    response = await client.get(f"{API}/practitioners/{seeded['practitioner_id']}", headers=auth_headers)

    body = response.json()
    assert body["available_from_time"] == "08:00:00"
    assert body["clinic_id"] == 1


async def test_booking_lifecycle(client, auth_headers, seeded) -> None:
    pid = seeded["practitioner_id"]
    booking = {**seeded, "scheduled_at": "2026-01-07T10:00:00"}

    created = await client.post(f"{API}/appointments", json=booking, headers=auth_headers)
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "pending"
    assert body["scheduled_at"] == "2026-01-07T13:00:00Z"
    assert body["civil_time"] == "10:00:00"
    assert body["appointment_price_in_cents"] == 15000
    appointment_id = body["id"]

    slots = await _slots(client, auth_headers, pid, "2026-01-07")
    assert [s["value"] for s in slots if not s["available"]] == ["10:00:00"]
    assert slots[0] == {"value": "08:00:00", "label": "08:00", "available": True}

    duplicate = await client.post(f"{API}/appointments", json=booking, headers=auth_headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "Horário indisponível para este médico"

    canceled = await client.post(f"{API}/appointments/{appointment_id}/cancel", headers=auth_headers)
    assert canceled.status_code == 200
    assert canceled.json()["success"] is True

    slots = await _slots(client, auth_headers, pid, "2026-01-07")
    assert all(s["available"] for s in slots)

    again = await client.post(f"{API}/appointments/{appointment_id}/cancel", headers=auth_headers)
    assert again.status_code == 409
    assert again.json() == {"success": False, "message": "Agendamento já está cancelado", "error": "invalid_transition"}

    deleted = await client.delete(f"{API}/appointments/{appointment_id}", headers=auth_headers)
    assert deleted.status_code == 200
    assert deleted.json()["message"] == "Agendamento excluído permanentemente!"

    gone = await client.delete(f"{API}/appointments/{appointment_id}", headers=auth_headers)
    assert gone.status_code == 404
    assert gone.json()["message"] == "Agendamento não encontrado"


async def test_saturday_has_no_slots(client, auth_headers, seeded) -> None:
    assert await _slots(client, auth_headers, seeded["practitioner_id"], "2026-01-10") == []


async def test_unknown_practitioner_is_404(client, auth_headers) -> None:
    response = await client.get(
        f"{API}/slots/available", params={"practitioner_id": 999, "date": "2026-01-07"}, headers=auth_headers
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Médico não encontrado"


async def test_unconfigured_practitioner_is_422(client, auth_headers) -> None:
    created = await client.post(f"{API}/practitioners", json={"name": "Dr. Sem Horário"}, headers=auth_headers)

    response = await client.get(
        f"{API}/slots/available",
        params={"practitioner_id": created.json()["id"], "date": "2026-01-07"},
        headers=auth_headers,
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "Horários de disponibilidade do médico não configurados"


async def test_price_lookup(client, auth_headers, seeded) -> None:
    response = await client.get(f"{API}/practitioners/{seeded['practitioner_id']}/price", headers=auth_headers)

    assert response.json() == {"practitioner_id": seeded["practitioner_id"], "appointment_price_in_cents": 15000}


async def test_edit_of_confirmed_booking_is_refused(client, auth_headers, seeded) -> None:
    created = await client.post(
        f"{API}/appointments", json={**seeded, "scheduled_at": "2026-01-07T09:00:00"}, headers=auth_headers
    )
    appointment_id = created.json()["id"]
    await client.post(f"{API}/appointments/{appointment_id}/confirm", headers=auth_headers)

    response = await client.patch(
        f"{API}/appointments/{appointment_id}", json={"appointment_price_in_cents": 1}, headers=auth_headers
    )

    assert response.status_code == 409
    assert response.json()["message"] == "Não é possível editar um agendamento confirmado"


async def test_edit_view_keeps_current_slot_available(client, auth_headers, seeded) -> None:
    created = await client.post(
        f"{API}/appointments", json={**seeded, "scheduled_at": "2026-01-07T09:00:00"}, headers=auth_headers
    )
    appointment_id = created.json()["id"]

    slots = await _slots(
        client, auth_headers, seeded["practitioner_id"], "2026-01-07", edited_appointment_id=appointment_id
    )
    moved = await client.patch(
        f"{API}/appointments/{appointment_id}",
        json={"scheduled_at": "2026-01-07T15:00:00"},
        headers=auth_headers,
    )
    listed = await client.get(
        f"{API}/appointments", params={"practitioner_id": seeded["practitioner_id"]}, headers=auth_headers
    )

    assert all(s["available"] for s in slots)
    assert moved.json()["message"] == "Agendamento editado com sucesso!"
    assert [a["civil_time"] for a in listed.json()] == ["15:00:00"]


async def test_list_filters_by_status(client, auth_headers, seeded) -> None:
    for hour in ("09", "10"):
        await client.post(
            f"{API}/appointments", json={**seeded, "scheduled_at": f"2026-01-07T{hour}:00:00"}, headers=auth_headers
        )

    listed = await client.get(f"{API}/appointments", params={"status": "canceled"}, headers=auth_headers)

    assert listed.status_code == 200
    assert listed.json() == []


async def test_echoing_returned_instant_keeps_the_booking_in_place(client, auth_headers, seeded) -> None:
    created = await client.post(
        f"{API}/appointments", json={**seeded, "scheduled_at": "2026-01-07T10:00:00"}, headers=auth_headers
    )
    before = created.json()

    edited = await client.patch(
        f"{API}/appointments/{before['id']}",
        json={"scheduled_at": before["scheduled_at"], "appointment_price_in_cents": 12000},
        headers=auth_headers,
    )
    after = (await client.get(f"{API}/appointments/{before['id']}", headers=auth_headers)).json()

    assert edited.json()["success"] is True
    assert after["scheduled_at"] == before["scheduled_at"]
    assert after["civil_time"] == "10:00:00"
    assert after["appointment_price_in_cents"] == 12000


async def test_other_clinic_cannot_touch_bookings(client, auth_headers, seeded) -> None:
    created = await client.post(
        f"{API}/appointments", json={**seeded, "scheduled_at": "2026-01-07T10:00:00"}, headers=auth_headers
    )
    appointment_id = created.json()["id"]
    outsider = {"Authorization": f"Bearer {create_access_token(8, clinic_id=2)}"}

    read = await client.get(f"{API}/appointments/{appointment_id}", headers=outsider)
    canceled = await client.post(f"{API}/appointments/{appointment_id}/cancel", headers=outsider)
    slots = await client.get(
        f"{API}/slots/available",
        params={"practitioner_id": seeded["practitioner_id"], "date": "2026-01-07"},
        headers=outsider,
    )
    practitioner = await client.put(
        f"{API}/practitioners/{seeded['practitioner_id']}", json=WEEKDAY_HOURS, headers=outsider
    )
    listed = await client.get(f"{API}/appointments", headers=outsider)
    own = await client.get(f"{API}/appointments/{appointment_id}", headers=auth_headers)

    assert read.status_code == 404
    assert canceled.status_code == 404
    assert slots.status_code == 404
    assert practitioner.status_code == 404
    assert listed.json() == []
    assert own.json()["status"] == "pending"


async def test_practitioners_are_listed_by_name_per_clinic(client, auth_headers, seeded) -> None:
    await client.post(f"{API}/practitioners", json={**WEEKDAY_HOURS, "name": "Dr. Bruno Alves"}, headers=auth_headers)
    outsider = {"Authorization": f"Bearer {create_access_token(8, clinic_id=2)}"}
    await client.post(f"{API}/practitioners", json={**WEEKDAY_HOURS, "name": "Dr. Carlos"}, headers=outsider)

    response = await client.get(f"{API}/practitioners", headers=auth_headers)

    assert [p["name"] for p in response.json()] == ["Dr. Bruno Alves", "Dra. Ana Souza"]


async def test_deleting_practitioner_removes_bookings(client, auth_headers, seeded) -> None:
    pid = seeded["practitioner_id"]
    for hour in ("09", "10"):
        await client.post(
            f"{API}/appointments", json={**seeded, "scheduled_at": f"2026-01-07T{hour}:00:00"}, headers=auth_headers
        )
    await _slots(client, auth_headers, pid, "2026-01-07")

    deleted = await client.delete(f"{API}/practitioners/{pid}", headers=auth_headers)
    slots = await client.get(
        f"{API}/slots/available", params={"practitioner_id": pid, "date": "2026-01-07"}, headers=auth_headers
    )
    listed = await client.get(f"{API}/appointments", headers=auth_headers)

    assert deleted.json() == {"success": True, "deleted_appointments": 2}
    assert slots.status_code == 404
    assert listed.json() == []


async def test_patient_cpf_is_unique_per_clinic(client, auth_headers) -> None:
    patient = {"name": "Paula Reis", "cpf": "123.456.789-00"}
    outsider = {"Authorization": f"Bearer {create_access_token(8, clinic_id=2)}"}

    first = await client.post(f"{API}/patients", json=patient, headers=auth_headers)
    duplicate = await client.post(f"{API}/patients", json={**patient, "name": "Outra"}, headers=auth_headers)
    elsewhere = await client.post(f"{API}/patients", json=patient, headers=outsider)

    assert first.status_code == 201
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "Já existe um paciente cadastrado com este CPF nesta clínica."
    assert elsewhere.status_code == 201


async def test_patient_update(client, auth_headers) -> None:
    created = await client.post(f"{API}/patients", json={"name": "Paula Reis"}, headers=auth_headers)
    other = await client.post(f"{API}/patients", json={"name": "Rui", "cpf": "111"}, headers=auth_headers)
    patient_id = created.json()["id"]

    updated = await client.put(
        f"{API}/patients/{patient_id}",
        json={"name": "Paula Reis Lima", "phone_number": "11 99999-0000"},
        headers=auth_headers,
    )
    clash = await client.put(f"{API}/patients/{patient_id}", json={"name": "Paula", "cpf": "111"}, headers=auth_headers)
    listed = await client.get(f"{API}/patients", headers=auth_headers)

    assert other.status_code == 201
    assert updated.json()["name"] == "Paula Reis Lima"
    assert clash.status_code == 409
    assert [p["name"] for p in listed.json()] == ["Paula Reis Lima", "Rui"]
