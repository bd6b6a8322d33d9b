import uuid

from sqlalchemy import func, select

from conftest import add_mapping, make_connection, session_headers
from opsboard.core.time import today_in_tz
from opsboard.models.metric_values import MetricValue
from opsboard.models.raw_events import RawEvent
from opsboard.models.source_runs import SourceRun

EVENT = {"event_type": "invoice.paid", "data": {"amount": 420, "date": "2026-10-01"}}


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_health(client):
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


# -----------------------------------------------------------------------------
# webhook ingest
# -----------------------------------------------------------------------------

def test_webhook_with_token(client, db, tenant, webhook, revenue_mapping_doc):
    conn, token = webhook
    add_mapping(db, tenant, conn, revenue_mapping_doc)

    r = client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token))

    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["normalizedCount"] == 1
    assert body["duplicate"] is False
    assert uuid.UUID(body["rawEventId"])


def test_webhook_duplicate_delivery(client, db, webhook):
    _, token = webhook

    first = client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token)).json()
    second = client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token))

    assert second.status_code == 200
    assert second.json()["duplicate"] is True
    assert second.json()["rawEventId"] == first["rawEventId"]
    assert _count(db, RawEvent) == 1


def test_webhook_without_mapping_still_accepted(client, db, webhook):
    _, token = webhook
    r = client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token))

    assert r.status_code == 200
    assert r.json()["normalizedCount"] == 0
    assert _count(db, MetricValue) == 0


def test_webhook_with_session_and_connection(client, tenant, webhook):
    conn, _ = webhook
    r = client.post(
        f"/v1/ingest/webhook?connection={conn.id}",
        json=EVENT,
        headers=session_headers(tenant),
    )
    assert r.status_code == 200


def test_webhook_rejects_bad_credentials(client, tenant, webhook):
    conn, _ = webhook

    assert client.post("/v1/ingest/webhook", json=EVENT).status_code == 401
    assert client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer("nope")).status_code == 401

    r = client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer("nope"))
    assert r.json() == {"ok": False, "error": "Invalid token"}

    viewer = client.post(
        f"/v1/ingest/webhook?connection={conn.id}", json=EVENT, headers=session_headers(tenant, role="VIEWER")
    )
    assert viewer.status_code == 403

    missing = client.post(
        f"/v1/ingest/webhook?connection={uuid.uuid4()}", json=EVENT, headers=session_headers(tenant)
    )
    assert missing.status_code == 404


def test_demo_tenant_is_read_only(client, db, demo_tenant):
    _, token = make_connection(db, demo_tenant)

    r = client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token))

    assert r.status_code == 403
    assert r.json()["code"] == "DEMO_READ_ONLY"
    assert _count(db, SourceRun) == 0
    assert _count(db, RawEvent) == 0


def test_malformed_body_with_bad_token_is_401(client, db, webhook):
    r = client.post(
        "/v1/ingest/webhook",
        content=b"{not json",
        headers={**_bearer("nope"), "Content-Type": "application/json"},
    )
    assert r.status_code == 401
    assert _count(db, SourceRun) == 0


def test_malformed_body_is_recorded_as_empty_event(client, db, webhook):
    _, token = webhook
    r = client.post(
        "/v1/ingest/webhook",
        content=b"{not json",
        headers={**_bearer(token), "Content-Type": "application/json"},
    )

    assert r.status_code == 200
    raw = db.get(RawEvent, uuid.UUID(r.json()["rawEventId"]))
    assert raw.payload == {"event_type": "metric", "occurred_on": None, "data": {}}


def test_lone_surrogate_in_body_is_accepted(client, db, webhook):
    _, token = webhook
    r = client.post(
        "/v1/ingest/webhook",
        content=b'{"data": {"note": "\\ud800"}}',
        headers={**_bearer(token), "Content-Type": "application/json"},
    )

    assert r.status_code == 200
    run = db.get(SourceRun, uuid.UUID(r.json()["runId"]))
    assert run.status == "success"


# -----------------------------------------------------------------------------
# connections / mappings / csv
# -----------------------------------------------------------------------------

def test_create_connection_and_use_token(client, tenant):
    r = client.post("/v1/connections", json={"type": "webhook", "name": "Stripe"}, headers=session_headers(tenant))
    assert r.status_code == 200
    body = r.json()
    token = body["token"]
    assert body["connection"]["token_prefix"] == token[:6]

    assert client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token)).status_code == 200

    regen = client.post(
        f"/v1/connections/{body['connection']['id']}/regenerate-token", headers=session_headers(tenant)
    ).json()
    assert regen["token"] != token
    assert client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token)).status_code == 401
    assert client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(regen["token"])).status_code == 200


def test_create_connection_validation(client, tenant, demo_tenant):
    assert client.post("/v1/connections", json={"type": "ftp", "name": "x"}, headers=session_headers(tenant)).status_code == 400
    assert client.post("/v1/connections", json={"type": "csv", "name": " "}, headers=session_headers(tenant)).status_code == 400
    assert client.post("/v1/connections", json={"type": "csv", "name": "x"}).status_code == 401

    demo = client.post("/v1/connections", json={"type": "csv", "name": "x"}, headers=session_headers(demo_tenant))
    assert demo.status_code == 403
    assert demo.json()["code"] == "DEMO_READ_ONLY"


def test_save_and_test_mapping(client, tenant, webhook, revenue_mapping_doc):
    conn, token = webhook
    headers = session_headers(tenant)

    missing = client.post("/v1/mappings/test", json={"source_connection_id": str(conn.id)}, headers=headers)
    assert missing.status_code == 404

    client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token))
    client.post("/v1/ingest/webhook", json={"data": {"amount": "n/a"}}, headers=_bearer(token))

    saved = client.post(
        "/v1/mappings",
        json={"source_connection_id": str(conn.id), "mapping": revenue_mapping_doc},
        headers=headers,
    )
    assert saved.status_code == 200
    assert saved.json()["field_mapping"]["mapping"]["metric_key"] == "revenue_mtd"

    preview = client.post("/v1/mappings/test", json={"source_connection_id": str(conn.id)}, headers=headers)
    assert preview.status_code == 200
    body = preview.json()
    assert body["nullCount"] == 1
    assert len(body["preview"]) == 1
    assert body["preview"][0]["normalized"]["value_num"] == 420.0


def test_save_invalid_mapping_is_400(client, tenant, webhook):
    conn, _ = webhook
    r = client.post(
        "/v1/mappings",
        json={"source_connection_id": str(conn.id), "mapping": {"version": 1, "metric_key": "x"}},
        headers=session_headers(tenant),
    )
    assert r.status_code == 400


def test_csv_import(client, db, tenant):
    conn, _ = make_connection(db, tenant, type="csv")
    add_mapping(
        db,
        tenant,
        conn,
        {"version": 1, "metric_key": "pipeline_30", "occurred_on": {"mode": "today"}, "value_num": {"field": "amount"}},
    )

    r = client.post(
        f"/v1/ingest/csv?connection={conn.id}",
        content="amount\n10\n20\nx\n".encode("utf-8"),
        headers={**session_headers(tenant), "Content-Type": "text/csv"},
    )

    assert r.status_code == 200
    body = r.json()
    assert (body["rows_in"], body["rows_valid"], body["rows_invalid"]) == (3, 2, 1)


def test_csv_import_errors(client, tenant, webhook):
    conn, _ = webhook
    headers = {**session_headers(tenant), "Content-Type": "text/csv"}

    assert client.post("/v1/ingest/csv", content=b"a\n1\n", headers=headers).status_code == 400
    assert client.post(f"/v1/ingest/csv?connection={conn.id}", content=b"", headers=headers).status_code == 400
    assert client.post(f"/v1/ingest/csv?connection={conn.id}", content=b"a\n1\n", headers=headers).status_code == 400


# -----------------------------------------------------------------------------
# runs / kpis
# -----------------------------------------------------------------------------

def test_list_runs(client, tenant, webhook):
    _, token = webhook
    client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token))
    client.post("/v1/ingest/webhook", json=EVENT, headers=_bearer(token))

    r = client.get("/v1/runs", headers=session_headers(tenant, role="VIEWER"))

    assert r.status_code == 200
    runs = r.json()["runs"]
    assert len(runs) == 2
    assert {run["status"] for run in runs} == {"success"}
    assert sorted(run["rows_duplicate"] for run in runs) == [0, 1]
    assert client.get("/v1/runs").status_code == 401


def test_kpis_prefer_ingested_values(client, db, tenant):
    db.add(
        MetricValue(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            metric_key="revenue_mtd",
            value_num=150.0,
            occurred_on=today_in_tz("UTC"),
            source="test",
        )
    )
    db.commit()

    r = client.get("/v1/kpis?preset=LAST_30", headers=session_headers(tenant, role="VIEWER"))

    assert r.status_code == 200
    body = r.json()
    assert body["kpis"]["revenue_mtd"] == 150.0
    assert body["kpis"]["churn_risk"] == 0
    assert body["window"]["preset"] == "LAST_30"


def test_kpis_bad_params(client, tenant):
    headers = session_headers(tenant)
    assert client.get("/v1/kpis?start=yesterday", headers=headers).status_code == 400
    assert client.get("/v1/kpis?scope=abc", headers=headers).status_code == 400
    assert client.get("/v1/kpis").status_code == 401


def test_mapping_fields_from_newest_event(client, tenant, webhook):
    conn, token = webhook
    headers = session_headers(tenant)

    empty = client.get(f"/v1/mappings/fields?connection={conn.id}", headers=headers)
    assert empty.status_code == 200
    assert empty.json() == {"ok": True, "fields": []}

    client.post("/v1/ingest/webhook", json={"data": {"old": 1}}, headers=_bearer(token))
    client.post("/v1/ingest/webhook", json={"data": {"date": "2026-10-01", "amount": 5, "customer": "x"}}, headers=_bearer(token))

    r = client.get(f"/v1/mappings/fields?connection={conn.id}", headers=headers)
    assert r.json()["fields"] == ["amount", "customer", "date"]

    assert client.get("/v1/mappings/fields", headers=headers).status_code == 400
    assert client.get(f"/v1/mappings/fields?connection={uuid.uuid4()}", headers=headers).status_code == 404
    assert client.get(f"/v1/mappings/fields?connection={conn.id}").status_code == 401
    assert (
        client.get(f"/v1/mappings/fields?connection={conn.id}", headers=session_headers(tenant, role="VIEWER")).status_code
        == 403
    )
