# tests/test_api.py
import datetime


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    data = r.json()
    assert data["message"] == "FTL Engine Ready!"
    assert data["rules_loaded"] == 3
    assert data["rules_invalid"] == 0


def test_fdp_endpoint(client):
    r = client.post("/fdp", json={"report_time": "20:00", "sectors": 1})
    assert r.status_code == 200
    data = r.json()
    assert data["max_fdp_minutes"] == 660
    assert data["end_of_duty"] == "07:00 (+1)"
    assert data["wocl_encroachment"] is True


def test_fdp_unacclimatized(client):
    r = client.post("/fdp", json={"report_time": "07:00", "sectors": 1, "acclimatization": "unacclimatized"})
    assert r.json()["max_fdp_minutes"] == 780


def test_fdp_bad_input_is_422(client):
    r = client.post("/fdp", json={"report_time": "31:00", "sectors": 1})
    assert r.status_code == 422
    assert r.json()["detail"] == "Invalid report time format. Please use HH:MM."


def test_fdp_remaining(client):
    r = client.post("/fdp/remaining", json={"report_time": "07:00", "sectors": 1, "elapsed_minutes": 800})
    assert r.status_code == 200
    assert r.json()["status"] == "danger"


def test_fdp_table(client):
    data = client.get("/fdp/table").json()
    assert data["table"]["0700-1159"]["1-2"] == 840
    assert len(data["time_ranges"]) == 6


def test_rest_endpoints(client):
    r = client.post("/rest", json={"duty_end_time": "22:00", "preceding_duty_hours": 12, "timezones_crossed": 3})
    assert r.status_code == 200
    assert r.json()["min_rest_minutes"] == 780

    r = client.post("/rest", json={"duty_end_time": "22:00", "preceding_duty_hours": 30})
    assert r.status_code == 422

    r = client.post("/rest/compliance", json={"proposed_rest_minutes": 540, "preceding_duty_minutes": 600})
    assert r.status_code == 200
    assert r.json()["compliant"] is False

    r = client.get("/rest/consecutive/7")
    assert r.json()["needs_time_off"] is True
    assert client.get("/rest/consecutive/-1").status_code == 422


def test_record_crud(client):
    today = datetime.date.today().isoformat()
    r = client.post("/records", json={"date": today, "report_time": "07:00", "release_time": "15:00",
                                      "flight_time": 5, "sectors": 2})
    assert r.status_code == 201
    rec = r.json()
    assert rec["duty_minutes"] == 480

    listed = client.get("/records").json()
    assert [x["id"] for x in listed] == [rec["id"]]
    assert len(client.get("/records", params={"days": 7}).json()) == 1

    r = client.patch(f"/records/{rec['id']}", json={"release_time": "16:00"})
    assert r.status_code == 200
    assert r.json()["duty_minutes"] == 540

    assert client.get("/records/stats").json()["duty_7_day"] == 540

    assert client.patch("/records/duty_nope", json={"notes": "x"}).status_code == 404
    assert client.delete(f"/records/{rec['id']}").json() == {"deleted": rec["id"]}
    assert client.delete(f"/records/{rec['id']}").status_code == 404
    assert client.delete("/records").json() == {"cleared": 0}


def test_record_validation(client):
    r = client.post("/records", json={"date": "2025-06-14", "report_time": "7:00am", "release_time": "15:00"})
    assert r.status_code == 422


def test_preferences(client):
    assert client.get("/preferences").json()["default_sectors"] == 2
    r = client.put("/preferences", json={"default_sectors": 3})
    assert r.status_code == 200
    assert r.json()["default_sectors"] == 3
    assert client.put("/preferences", json={"default_sectors": 99}).status_code == 422


def test_export_import(client):
    client.post("/records", json={"date": "2025-06-14", "report_time": "07:00", "release_time": "15:00"})
    exported = client.get("/export").json()
    assert exported["version"] == "1.0"
    assert len(exported["records"]) == 1

    client.delete("/records")
    r = client.post("/import", json=exported)
    assert r.status_code == 200
    assert r.json()["records_imported"] == 1
    assert len(client.get("/records").json()) == 1


def test_duty_flow(client):
    assert client.get("/duty").json() == {"on_duty": False, "session": None}
    assert client.get("/duty/countdown").status_code == 409

    start = (datetime.datetime.now() - datetime.timedelta(hours=2)).replace(second=0, microsecond=0)
    r = client.post("/duty/start", json={"sectors": 1, "start_time": start.isoformat()})
    assert r.status_code == 200
    assert r.json()["report_time"] == start.strftime("%H:%M")

    assert client.post("/duty/start", json={"sectors": 1}).status_code == 409
    assert client.get("/duty").json()["on_duty"] is True

    countdown = client.get("/duty/countdown").json()
    assert countdown["elapsed_minutes"] >= 120
    assert countdown["status"] == "OK"

    r = client.post("/duty/sectors", json={"sectors": 11})
    assert r.status_code == 422

    report = client.get("/compliance").json()
    assert report["current_fdp"]["current"] >= 120

    r = client.post("/duty/end", json={"release_time": start.strftime("%H:%M"), "flight_time": 1, "log_duty": False})
    assert r.status_code == 200
    assert r.json()["record"] is None
    assert client.post("/duty/cancel").status_code == 409


def test_compliance_and_availability(client):
    today = datetime.date.today().isoformat()
    client.post("/records", json={"date": today, "report_time": "06:00", "release_time": "20:00", "flight_time": 9})
    report = client.get("/compliance").json()
    assert report["duty_7_day"]["current"] == 840
    assert report["all_compliant"] is True
    assert report["current_fdp"] is None

    r = client.get("/compliance", params={"flight_minutes": 500})
    assert r.json()["current_flight_time"]["compliant"] is False

    avail = client.get("/availability").json()
    assert avail["limiting_factor"] == "7-Day Duty"
    assert avail["max_additional_minutes"] == 3600 - 840


def test_limits(client):
    data = client.get("/limits").json()
    assert data["cumulative"]["danger_threshold"] == 0.95
    assert data["rest"]["standard_min_minutes"] == 600


def test_duty_start_unacclimatized(client):
    r = client.post("/duty/start", json={"report_time": "07:00", "sectors": 1, "acclimatized": "unacclimatized",
                                         "start_time": "2025-06-15T07:00:00"})
    assert r.status_code == 200
    assert r.json()["acclimatized"] is False
    r = client.post("/duty/sectors", json={"sectors": 2})
    assert r.json()["max_fdp_minutes"] == 780
