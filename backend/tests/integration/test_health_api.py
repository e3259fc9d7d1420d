from __future__ import annotations

from tests.helpers.http import build_url


def test_health_reports_database(client) -> None:
    resp = client.get(build_url("/health"))

    assert resp.status_code == 200
    body = resp.get_json()
    assert (body["status"], body["db"]) == ("ok", "ok")


def test_unknown_route_is_a_problem(client) -> None:
    resp = client.get(build_url("/nope"))

    assert resp.status_code == 404
    assert resp.get_json()["code"] == "not_found"


def test_health_degrades_when_the_database_is_down(client, monkeypatch) -> None:
    monkeypatch.setattr("licensegate.api.v1.health.ping_database", lambda: False)

    resp = client.get(build_url("/health"))

    assert resp.status_code == 503
    assert resp.get_json()["db"] == "fail"
