import json
from datetime import date

import pytest
from sqlalchemy import func, select

from kiosk_pop.config import settings
from kiosk_pop.db.models import Asset, Kiosk, Play, PlayDaily
from kiosk_pop.pop.normalization import as_utc, isoformat_utc
from kiosk_pop.pop.parsing import BatchParseError
from kiosk_pop.pop.types import PayloadFormat
from kiosk_pop.services.ingestion import (
    IngestionConfig,
    IngestionConfigurationError,
    ProofOfPlayImporter,
    get_ingestion_config,
)

CSV_BATCH = (
    "Device Name,Device ID,Asset Name,Campaign,Start Time,Duration\n"
    "Lobby,dev-1,Summer Sale,Summer,2024-01-01T10:00:00Z,15\n"
    "Lobby,dev-1, summer   sale ,Summer,2024-01-01T11:00:00Z,15\n"
    "Food Court,,Winter Promo,,2024-01-02T09:30:00Z,30\n"
)

ROWS = [
    {"Device Name": "Lobby", "Device ID": "dev-1", "Asset Name": "Summer Sale", "Start Time": "2024-01-01T10:00:00Z"},
    {"Device Name": "Food Court", "Device ID": "", "Asset Name": "Winter Promo", "Start Time": "2024-01-02T09:30:00Z"},
]


def _config(**overrides) -> IngestionConfig:
    values = {"provider": "optisigns", "default_duration_seconds": 15, "refresh_rollup": True, "notify": False}
    values.update(overrides)
    return IngestionConfig(**values)


def _importer(db_session, org_id, **overrides) -> ProofOfPlayImporter:
    return ProofOfPlayImporter(db_session, org_id=org_id, config=_config(**overrides))


def _play_count(db_session) -> int:
    return db_session.scalar(select(func.count(Play.id)))


def _as_csv(rows) -> str:
    headers = list(rows[0].keys())
    lines = [",".join(headers)] + [",".join(row[h] for h in headers) for row in rows]
    return "\n".join(lines)


def _as_html(rows) -> str:
    headers = list(rows[0].keys())
    head = "".join(f"<th>{h}</th>" for h in headers)
    body = "".join("<tr>" + "".join(f"<td>{row[h]}</td>" for h in headers) + "</tr>" for row in rows)
    return f"<html><body><table><tr>{head}</tr>{body}</table></body></html>"


def _play_identities(db_session):
    rows = db_session.execute(
        select(Kiosk.external_id, Kiosk.name, Asset.asset_key, Play.played_at)
        .join(Kiosk, Kiosk.id == Play.kiosk_id)
        .join(Asset, Asset.id == Play.asset_id)
        .order_by(Play.played_at)
    ).all()
    return [(external_id, name, key, as_utc(played_at)) for external_id, name, key, played_at in rows]


def test_import_csv_counts_and_last_played_at(db_session, org_id):
    result = _importer(db_session, org_id).import_payload(CSV_BATCH.encode(), "text/csv")

    assert result.format == PayloadFormat.csv
    assert (result.parsed, result.inserted, result.dropped) == (3, 3, 0)
    assert result.last_played_at_iso == "2024-01-02T09:30:00Z"
    assert _play_count(db_session) == 3
    assert db_session.scalar(select(func.count(Asset.id))) == 2


def test_reimport_is_idempotent(db_session, org_id):
    first = _importer(db_session, org_id).import_payload(CSV_BATCH, "text/csv")
    count_after_first = _play_count(db_session)
    second = _importer(db_session, org_id).import_payload(CSV_BATCH, "text/csv")

    assert second.inserted == first.inserted == 3
    assert _play_count(db_session) == count_after_first == 3


def test_drop_accounting_holds_for_mixed_batch(db_session, org_id):
    body = json.dumps(
        {
            "records": [
                {"deviceId": "dev-1", "assetName": "Ad", "startTime": "2024-01-01T10:00:00Z"},
                {"assetName": "No Device", "startTime": "2024-01-01T10:00:00Z"},
                {"deviceId": "dev-1", "startTime": "2024-01-01T10:00:00Z"},
                {"deviceId": "dev-1", "assetName": "Ad"},
                {"deviceId": "dev-1", "assetName": "Ad", "startTime": "not a timestamp"},
                "garbage",
            ]
        }
    )
    result = _importer(db_session, org_id).import_payload(body, "application/json")

    assert result.parsed == 6
    assert result.inserted + result.dropped == result.parsed
    assert result.inserted == 1
    assert result.drop_reasons == {"validation": 5}
    assert _play_count(db_session) == 1


def test_row_missing_device_identity_never_reaches_storage(db_session, org_id):
    body = "Device Name,Device ID,Asset Name,Start Time\n,,Summer Sale,2024-01-01T10:00:00Z\n"
    result = _importer(db_session, org_id).import_payload(body, "text/csv")

    assert (result.inserted, result.dropped) == (0, 1)
    assert _play_count(db_session) == 0
    assert db_session.scalar(select(func.count(Asset.id))) == 0
    assert result.last_played_at is None


def test_unparseable_timestamp_drops_only_its_row(db_session, org_id):
    body = (
        "Device ID,Asset Name,Start Time\n"
        "dev-1,Ad,2024-01-01T10:00:00Z\n"
        "dev-1,Ad,32/13/2024 99:99\n"
        "dev-2,Ad,2024-01-01T11:00:00Z\n"
    )
    result = _importer(db_session, org_id).import_payload(body, "text/csv")

    assert (result.inserted, result.dropped) == (2, 1)
    assert result.drop_reasons == {"validation": 1}
    assert _play_count(db_session) == 2


def test_write_failure_rolls_back_only_its_row(db_session, org_id, monkeypatch):
    importer = _importer(db_session, org_id)
    original_write = importer.writer.write

    def _write(record, entities, now=None):
        if record.device_id == "dev-2":
            raise RuntimeError("storage unavailable")
        return original_write(record, entities, now=now)

    monkeypatch.setattr(importer.writer, "write", _write)
    body = (
        "Device ID,Asset Name,Start Time\n"
        "dev-1,Ad,2024-01-01T10:00:00Z\n"
        "dev-2,Ad,2024-01-01T10:30:00Z\n"
        "dev-3,Ad,2024-01-01T11:00:00Z\n"
    )
    result = importer.import_payload(body, "text/csv")

    assert (result.inserted, result.dropped) == (2, 1)
    assert result.drop_reasons == {"write": 1}
    assert _play_count(db_session) == 2
    assert db_session.scalar(select(func.count(Kiosk.id)).where(Kiosk.external_id == "dev-2")) == 0


@pytest.mark.parametrize("fmt", ["csv", "html", "json"])
def test_formats_produce_identical_plays(db_session, org_id, fmt):
    bodies = {
        "csv": _as_csv(ROWS),
        "html": _as_html(ROWS),
        "json": json.dumps({"records": ROWS}),
    }
    result = _importer(db_session, org_id).import_payload(bodies[fmt])

    assert result.format == PayloadFormat(fmt)
    identities = _play_identities(db_session)
    assert [row[:3] for row in identities] == [
        ("dev-1", "Lobby", "summer sale|-|-"),
        (None, "Food Court", "winter promo|-|-"),
    ]
    assert [isoformat_utc(row[3]) for row in identities] == [
        "2024-01-01T10:00:00Z",
        "2024-01-02T09:30:00Z",
    ]


def test_duration_only_row_derives_end_from_duration(db_session, org_id):
    body = json.dumps(
        {"records": [{"deviceId": "dev-1", "assetName": "Ad", "startTime": "2024-01-01T10:00:00Z", "durationSeconds": 30}]}
    )
    _importer(db_session, org_id).import_payload(body, "application/json")

    play = db_session.scalars(select(Play)).one()
    assert isoformat_utc(play.ended_at) == "2024-01-01T10:00:30Z"
    assert play.duration_sec == 30


def test_duration_only_rows_each_become_a_play(db_session, org_id):
    row = {"deviceId": "dev-1", "assetName": "Ad", "durationSeconds": 15}
    body = json.dumps({"records": [row, row]})
    result = _importer(db_session, org_id).import_payload(body, "application/json")

    assert result.inserted == 2
    assert _play_count(db_session) == 2
    played = sorted(as_utc(value) for value in db_session.scalars(select(Play.played_at)))
    assert played[0] < played[1]


def test_naive_timestamps_use_report_timezone(db_session, org_id):
    body = "Device ID,Asset Name,Start Time,Report TZ\ndev-1,Ad,2024-01-01 10:00:00,America/New_York\n"
    result = _importer(db_session, org_id).import_payload(body, "text/csv")

    assert result.last_played_at_iso == "2024-01-01T15:00:00Z"


def test_import_refreshes_daily_rollup(db_session, org_id):
    _importer(db_session, org_id).import_payload(CSV_BATCH, "text/csv")

    rows = db_session.scalars(select(PlayDaily).order_by(PlayDaily.day)).all()
    assert [(row.day, row.play_count, row.total_duration_sec) for row in rows] == [
        (date(2024, 1, 1), 2, 30),
        (date(2024, 1, 2), 1, 30),
    ]


def test_rollup_refresh_can_be_disabled(db_session, org_id):
    calls = []
    importer = ProofOfPlayImporter(
        db_session,
        org_id=org_id,
        config=_config(refresh_rollup=False),
        refresher=lambda session: calls.append(session) or True,
    )
    importer.import_payload(CSV_BATCH, "text/csv")

    assert calls == []


def test_rollup_failure_does_not_fail_the_batch(db_session, org_id, monkeypatch):
    from kiosk_pop.db.repositories import plays as plays_module

    def _boom(self):
        raise RuntimeError("rollup unavailable")

    monkeypatch.setattr(plays_module.PlaysRepository, "rebuild_daily_rollup", _boom)
    result = _importer(db_session, org_id).import_payload(CSV_BATCH, "text/csv")

    assert result.inserted == 3
    assert _play_count(db_session) == 3


def test_parse_failure_raises_without_writing(db_session, org_id):
    with pytest.raises(BatchParseError):
        _importer(db_session, org_id).import_payload('{"rows": []}', "application/json")

    assert _play_count(db_session) == 0


def test_ingestion_config_validates_values():
    with pytest.raises(IngestionConfigurationError):
        IngestionConfig(provider="  ")
    with pytest.raises(IngestionConfigurationError):
        IngestionConfig(provider="optisigns", default_duration_seconds=0)


def test_get_ingestion_config_reads_current_settings(monkeypatch):
    monkeypatch.setattr(settings, "POP_PROVIDER_TAG", "screenly")
    monkeypatch.setattr(settings, "POP_DEFAULT_DURATION_SECONDS", 20)

    config = get_ingestion_config()

    assert config.provider == "screenly"
    assert config.default_duration_seconds == 20
