"""
tests/test_patients.py -- Integration tests for /patient routes.

Covers:
  - create: requester becomes coordinator, blank names rejected
  - read: coordinator and carers may read, outsiders get 401
  - update/delete: coordinator only; non-owner 401, unknown id 400
  - delete cascades to the patient's shifts
"""

from __future__ import annotations

from care.models import Shift


def _create(api, headers, first="Ida", last="Moss"):
    return api.client.post("/patient", json={"firstName": first, "lastName": last}, headers=headers)


def test_create_patient(api):
    uid, headers = api.make_user("p-create@example.com")
    resp = _create(api, headers)
    assert resp.status_code == 201
    data = resp.json()
    assert data["firstName"] == "Ida"
    assert data["coordinator"] == uid
    assert data["carers"] == []


def test_create_patient_requires_session(api):
    resp = api.client.post("/patient", json={"firstName": "Ida", "lastName": "Moss"})
    assert resp.status_code == 401


def test_create_patient_blank_name(api):
    _, headers = api.make_user("p-blank@example.com")
    resp = _create(api, headers, first="")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Please fill out all fields"


def test_list_patients_by_membership(api):
    _, coord_h = api.make_user("p-list-coord@example.com")
    carer_id, carer_h = api.make_user("p-list-carer@example.com")
    _, other_h = api.make_user("p-list-other@example.com")
    pid = _create(api, coord_h).json()["id"]
    api.care.add_carer(pid, carer_id)

    assert [p["id"] for p in api.client.get("/patient", headers=coord_h).json()] == [pid]
    assert [p["id"] for p in api.client.get("/patient", headers=carer_h).json()] == [pid]
    assert api.client.get("/patient", headers=other_h).json() == []


def test_get_patient_detail_expands_roster(api):
    coord_id, coord_h = api.make_user("p-get-coord@example.com", first_name="Cora")
    carer_id, carer_h = api.make_user("p-get-carer@example.com", first_name="Cal", last_name="Dunn")
    pid = _create(api, coord_h).json()["id"]
    api.care.add_carer(pid, carer_id)

    for headers in (coord_h, carer_h):
        resp = api.client.get(f"/patient/{pid}", headers=headers)
        assert resp.status_code == 200
        patient = resp.json()["patient"]
        assert patient["coordinator"]["id"] == coord_id
        assert patient["coordinator"]["firstName"] == "Cora"
        assert patient["carers"] == [
            {"id": carer_id, "firstName": "Cal", "lastName": "Dunn", "email": "p-get-carer@example.com"}
        ]
        assert resp.json()["shifts"] == []


def test_get_patient_outsider_unauthorized(api):
    _, coord_h = api.make_user("p-out-coord@example.com")
    _, other_h = api.make_user("p-out-other@example.com")
    pid = _create(api, coord_h).json()["id"]
    resp = api.client.get(f"/patient/{pid}", headers=other_h)
    assert resp.status_code == 401
    assert resp.json()["message"] == "User is not authorized"


def test_get_patient_not_found(api):
    _, headers = api.make_user("p-404@example.com")
    resp = api.client.get("/patient/99999", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Patient not found"


def test_update_patient_by_coordinator(api):
    _, headers = api.make_user("p-upd@example.com")
    pid = _create(api, headers).json()["id"]
    resp = api.client.put(f"/patient/{pid}", json={"lastName": "Moss-Hart"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["firstName"] == "Ida"
    assert resp.json()["lastName"] == "Moss-Hart"


def test_update_patient_carer_unauthorized(api):
    _, coord_h = api.make_user("p-upd-coord@example.com")
    carer_id, carer_h = api.make_user("p-upd-carer@example.com")
    pid = _create(api, coord_h).json()["id"]
    api.care.add_carer(pid, carer_id)
    resp = api.client.put(f"/patient/{pid}", json={"firstName": "X"}, headers=carer_h)
    assert resp.status_code == 401
    assert api.care.get_patient(pid).first_name == "Ida"


def test_update_patient_not_found(api):
    _, headers = api.make_user("p-upd-404@example.com")
    resp = api.client.put("/patient/99999", json={"firstName": "X"}, headers=headers)
    assert resp.status_code == 400


def test_delete_patient_non_owner_unauthorized(api):
    _, coord_h = api.make_user("p-del-coord@example.com")
    _, other_h = api.make_user("p-del-other@example.com")
    pid = _create(api, coord_h).json()["id"]
    resp = api.client.delete(f"/patient/{pid}", headers=other_h)
    assert resp.status_code == 401
    assert api.care.get_patient(pid) is not None


def test_delete_patient_cascades_shifts(api):
    coord_id, coord_h = api.make_user("p-del-cascade@example.com")
    carer_id, _ = api.make_user("p-del-cascade-carer@example.com")
    pid = _create(api, coord_h).json()["id"]
    api.care.add_carer(pid, carer_id)
    sid = api.care.create_shift(
        Shift(
            patient_id=pid,
            coordinator_id=coord_id,
            carer_id=carer_id,
            start_time="2023-03-02T09:00:00+00:00",
            end_time="2023-03-02T17:00:00+00:00",
        )
    )

    resp = api.client.delete(f"/patient/{pid}", headers=coord_h)
    assert resp.status_code == 200
    assert resp.json()["message"] == f"Deleted patient {pid}"
    assert api.care.get_patient(pid) is None
    assert api.care.get_shift(sid) is None
    assert api.client.delete(f"/patient/{pid}", headers=coord_h).status_code == 400
