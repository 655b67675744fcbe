import logging

import pytest

from kiosk_pop.pop.extraction import extract_record, normalize_header, parse_duration
from kiosk_pop.pop.types import RowValidationError


def test_normalize_header_tolerates_case_spacing_and_slashes():
    assert normalize_header("  Device   Name / ID ") == "device name/id"
    assert normalize_header("DEVICE ID/UUID") == "device id/uuid"


def test_extract_record_uses_first_non_empty_alias():
    record = extract_record(
        {
            "Device Name": "",
            "Screen Name": "Lobby",
            "Screen UUID": "uuid-1",
            "Media": "Summer Sale",
            "Playlist": "Summer",
            "Start Time UTC": "2024-01-01T10:00:00Z",
            "End Time": "2024-01-01T10:00:15Z",
            "Event ID": "evt-1",
            "Provider Asset ID": "pa-9",
            "Report TZ": "America/New_York",
        }
    )

    assert record.device_name == "Lobby"
    assert record.device_id == "uuid-1"
    assert record.asset_name == "Summer Sale"
    assert record.campaign_name == "Summer"
    assert record.start_time == "2024-01-01T10:00:00Z"
    assert record.end_time == "2024-01-01T10:00:15Z"
    assert record.provider_event_id == "evt-1"
    assert record.provider_asset_id == "pa-9"
    assert record.report_timezone == "America/New_York"


def test_extract_record_matches_spaced_slash_headers():
    record = extract_record({"Device Name / ID": "Kiosk 7", "Asset": "Ad", "Start": "2024-01-01T10:00:00Z"})

    assert record.device_name == "Kiosk 7"
    assert record.device_id == "Kiosk 7"


def test_extract_record_accepts_canonical_json_names():
    record = extract_record({"deviceId": "dev-1", "assetName": "Ad", "durationSeconds": 30})

    assert record.device_id == "dev-1"
    assert record.kiosk_name == "dev-1"
    assert record.duration_seconds == 30
    assert record.start_time is None


def test_extract_record_duration_strips_units():
    record = extract_record({"Device": "K", "Asset": "A", "Duration": "15 sec"})

    assert record.duration_seconds == 15


def test_extract_record_duration_seconds_column():
    record = extract_record({"Device": "K", "Asset": "A", "Duration (sec)": "12.7"})

    assert record.duration_seconds == 12


@pytest.mark.parametrize(
    "row",
    [
        {"Asset Name": "Ad", "Start Time": "2024-01-01T10:00:00Z"},
        {"Device Name": "K", "Start Time": "2024-01-01T10:00:00Z"},
        {"Device Name": "K", "Asset Name": "Ad"},
        {},
    ],
)
def test_extract_record_rejects_rows_missing_required_fields(row):
    with pytest.raises(RowValidationError):
        extract_record(row)


def test_parse_duration_reads_colon_values_digit_wise_and_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="kiosk_pop.pop.extraction"):
        assert parse_duration("00:01:30") == 130

    assert any("Colon-delimited" in message for message in caplog.messages)


def test_parse_duration_without_digits_is_none():
    assert parse_duration("n/a") is None
    assert parse_duration("") is None


def test_extract_record_out_of_range_duration_seconds_is_ignored():
    record = extract_record(
        {"Device": "K", "Asset": "A", "Start Time": "2024-01-01T10:00:00Z", "Duration (sec)": "1e400"}
    )

    assert record.duration_seconds is None
