import copy
import random
import uuid

import pytest

from opsboard.ingest.fingerprint import canonical_json, compute_dedupe_hash, sha256_hex

TENANT = uuid.UUID("11111111-1111-1111-1111-111111111111")
CONN = uuid.UUID("22222222-2222-2222-2222-222222222222")


def _payload():
    return {
        "event_type": "metric",
        "occurred_on": "2026-10-01",
        "data": {"amount": 1250.5, "date": "2026-10-01", "tags": ["a", "b"], "meta": {"x": 1, "y": None}},
    }


def test_sha256_hex_known_value():
    assert sha256_hex("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_same_input_same_hash():
    assert compute_dedupe_hash(TENANT, CONN, "metric", _payload()) == compute_dedupe_hash(
        TENANT, CONN, "metric", _payload()
    )


def test_key_order_does_not_matter():
    a = {"data": {"b": 2, "a": 1, "nested": {"z": 1, "y": 2}}, "event_type": "metric", "occurred_on": None}
    b = {"occurred_on": None, "event_type": "metric", "data": {"nested": {"y": 2, "z": 1}, "a": 1, "b": 2}}
    assert canonical_json(a) == canonical_json(b)
    assert compute_dedupe_hash(TENANT, CONN, "metric", a) == compute_dedupe_hash(TENANT, CONN, "metric", b)


def test_uuid_and_string_ids_hash_the_same():
    assert compute_dedupe_hash(TENANT, CONN, "metric", _payload()) == compute_dedupe_hash(
        str(TENANT), str(CONN), "metric", _payload()
    )


@pytest.mark.parametrize(
    "tenant,conn,event_type",
    [
        (uuid.UUID("33333333-3333-3333-3333-333333333333"), CONN, "metric"),
        (TENANT, uuid.UUID("44444444-4444-4444-4444-444444444444"), "metric"),
        (TENANT, None, "metric"),
        (TENANT, CONN, "invoice.paid"),
    ],
)
def test_scope_and_event_type_are_part_of_the_hash(tenant, conn, event_type):
    assert compute_dedupe_hash(tenant, conn, event_type, _payload()) != compute_dedupe_hash(
        TENANT, CONN, "metric", _payload()
    )


def _mutate(payload: dict, rng: random.Random) -> dict:
    out = copy.deepcopy(payload)
    data = out["data"]
    choice = rng.randrange(5)
    if choice == 0:
        data["amount"] = data["amount"] + rng.choice([0.01, 1, -1, 1000])
    elif choice == 1:
        data["date"] = f"2026-{rng.randint(1, 9):02d}-{rng.randint(1, 28):02d}"
    elif choice == 2:
        data["tags"] = data["tags"] + [str(rng.random())]
    elif choice == 3:
        data["meta"]["y"] = rng.randint(0, 10**9)
    else:
        data[f"extra_{rng.randint(0, 10**6)}"] = rng.random()
    return out


def test_randomized_mutations_change_the_hash():
    rng = random.Random(20261019)
    base = _payload()
    base_hash = compute_dedupe_hash(TENANT, CONN, "metric", base)

    hashes_by_payload = {canonical_json(base): base_hash}
    for _ in range(300):
        mutated = _mutate(base, rng)
        h = compute_dedupe_hash(TENANT, CONN, "metric", mutated)
        assert h != base_hash
        hashes_by_payload[canonical_json(mutated)] = h

    # one hash per distinct payload, no collisions between mutations either
    assert len(set(hashes_by_payload.values())) == len(hashes_by_payload)


def test_lone_surrogate_is_hashable():
    # json.loads('"\\ud800"') yields a lone surrogate, which plain utf-8 can't encode
    payload = {"event_type": "metric", "occurred_on": None, "data": {"note": "\ud800"}}

    h = compute_dedupe_hash(TENANT, CONN, "metric", payload)

    assert h == compute_dedupe_hash(TENANT, CONN, "metric", payload)
    assert h != compute_dedupe_hash(TENANT, CONN, "metric", {**payload, "data": {"note": "\ud801"}})
