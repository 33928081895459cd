from healthdiary.models import HealthRecord, SymptomRecord

from tests.conftest import log_symptom, log_medication


def test_symptom_record_references_only_a_symptom(client, db, user, templates):
    record = log_symptom(client, user, templates["headache"], "2024-03-05T10:00:00", weight=4)

    assert record["type"] == "symptom"
    assert record["symptomId"] == templates["headache"]
    assert record["medicationId"] is None
    assert record["symptom"] == {"name": "Headache"}
    assert record["weight"] == 4
    assert record["userId"] == user["id"]

    stored = db.query(HealthRecord).filter(HealthRecord.id == record["id"]).one()
    assert isinstance(stored, SymptomRecord)


def test_medication_record_references_only_a_medication(client, user, templates):
    record = log_medication(client, user, templates["ibuprofen"], "2024-03-05T08:00:00", dosage="400mg", quantity=2)

    assert record["type"] == "medication"
    assert record["medicationId"] == templates["ibuprofen"]
    assert record["symptomId"] is None
    assert record["dosage"] == "400mg"
    assert record["quantity"] == 2


def test_severity_out_of_range_is_400(client, user, templates):
    response = client.post("/api/healthRecords/symptoms", headers=user["headers"], json={
        "recordDate": "2024-03-05T10:00:00",
        "weight": 9,
        "symptomId": templates["headache"],
    })

    assert response.status_code == 400


def test_unknown_catalog_entry_is_400(client, user, templates):
    response = client.post("/api/healthRecords/symptoms", headers=user["headers"], json={
        "recordDate": "2024-03-05T10:00:00",
        "symptomId": "missing",
    })

    assert response.status_code == 400


def test_logging_against_another_users_custom_entry_is_forbidden(client, user, other_user):
    custom = client.post("/api/symptom", headers=other_user["headers"], json={"name": "Private"}).json()

    response = client.post("/api/healthRecords/symptoms", headers=user["headers"], json={
        "recordDate": "2024-03-05T10:00:00",
        "symptomId": custom["id"],
    })

    assert response.status_code == 403


def test_declared_user_must_match_token(client, user, other_user, templates):
    response = client.post("/api/healthRecords/symptoms", headers=other_user["headers"], json={
        "recordDate": "2024-03-05T10:00:00",
        "symptomId": templates["headache"],
        "userId": user["id"],
    })

    assert response.status_code == 403


def test_timezone_aware_dates_are_stored_as_utc(client, user, templates):
    record = log_symptom(client, user, templates["headache"], "2024-03-05T10:00:00+03:00")

    assert record["recordDate"] == "2024-03-05T07:00:00"


def test_partial_update_keeps_other_fields(client, user, templates):
    record = log_symptom(client, user, templates["headache"], "2024-03-05T10:00:00", weight=2)

    response = client.put(f"/api/healthRecords/{record['id']}", headers=user["headers"], json={"notes": "after run"})

    assert response.status_code == 200
    updated = response.json()
    assert updated["notes"] == "after run"
    assert updated["weight"] == 2
    assert updated["recordDate"] == "2024-03-05T10:00:00"


def test_update_with_fields_of_the_other_variant_is_400(client, user, templates):
    record = log_symptom(client, user, templates["headache"], "2024-03-05T10:00:00")

    response = client.put(f"/api/healthRecords/{record['id']}", headers=user["headers"], json={"dosage": "1g"})

    assert response.status_code == 400
    assert "dosage" in response.json()["message"]


def test_listing_by_user_and_by_date(client, user, templates):
    log_symptom(client, user, templates["headache"], "2024-03-05T10:00:00")
    log_medication(client, user, templates["ibuprofen"], "2024-03-05T23:59:00")
    log_symptom(client, user, templates["nausea"], "2024-03-06T00:00:00")

    all_records = client.get(f"/api/healthRecords/user/{user['id']}", headers=user["headers"]).json()
    assert len(all_records) == 3
    assert client.get("/api/healthRecords", headers=user["headers"]).json() == all_records

    day = client.get(f"/api/healthRecords/user/{user['id']}/date/2024-03-05", headers=user["headers"])
    assert day.status_code == 200
    assert [r["type"] for r in day.json()] == ["symptom", "medication"]

    empty = client.get(f"/api/healthRecords/user/{user['id']}/date/2024-01-01", headers=user["headers"])
    assert empty.status_code == 404


def test_records_of_another_user_are_forbidden(client, user, other_user, templates):
    record = log_symptom(client, user, templates["headache"], "2024-03-05T10:00:00")
    url = f"/api/healthRecords/{record['id']}"

    assert client.get(url, headers=other_user["headers"]).status_code == 403
    assert client.put(url, headers=other_user["headers"], json={"notes": "x"}).status_code == 403
    assert client.delete(url, headers=other_user["headers"]).status_code == 403
    assert client.get(f"/api/healthRecords/user/{user['id']}", headers=other_user["headers"]).status_code == 403
    assert client.get("/api/healthRecords", headers=other_user["headers"]).json() == []


def test_delete(client, user, templates):
    record = log_symptom(client, user, templates["headache"], "2024-03-05T10:00:00")
    url = f"/api/healthRecords/{record['id']}"

    assert client.delete(url, headers=user["headers"]).status_code == 200
    assert client.get(url, headers=user["headers"]).status_code == 404


def test_explicit_null_clears_optional_fields(client, user, templates):
    record = log_medication(client, user, templates["ibuprofen"], "2024-03-05T08:00:00", dosage="400mg")
    url = f"/api/healthRecords/{record['id']}"
    client.put(url, headers=user["headers"], json={"notes": "with food"})

    response = client.put(url, headers=user["headers"], json={"notes": None, "dosage": None})

    assert response.status_code == 200
    assert response.json()["notes"] is None
    assert response.json()["dosage"] is None
    assert response.json()["quantity"] == 1


def test_record_date_cannot_be_cleared(client, user, templates):
    record = log_symptom(client, user, templates["headache"], "2024-03-05T10:00:00")

    response = client.put(f"/api/healthRecords/{record['id']}", headers=user["headers"], json={"recordDate": None})

    assert response.status_code == 400
