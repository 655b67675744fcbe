from datetime import date, datetime, timezone

import pytest

from kiosk_pop.db.models import Asset, Campaign, Kiosk, Play
from kiosk_pop.services.reporting import CSV_HEADERS, ProofOfPlayReportService, ReportFilters


@pytest.fixture()
def seeded(db_session, org_id, other_org_id):
    lobby = Kiosk(org_id=org_id, provider="optisigns", external_id="dev-1", name="Lobby, East", tags="vip")
    court = Kiosk(org_id=org_id, provider="optisigns", name="Food Court", timezone="America/New_York")
    summer = Asset(org_id=org_id, asset_name='Summer "Mega" Sale', asset_key="summer|-|-")
    winter = Asset(org_id=org_id, asset_name="Winter Promo", asset_key="winter|-|-", tags="seasonal")
    campaign = Campaign(org_id=org_id, name="Summer", owner_user_id="acct-1")
    foreign_kiosk = Kiosk(org_id=other_org_id, provider="optisigns", name="Elsewhere")
    foreign_asset = Asset(org_id=other_org_id, asset_name="Other", asset_key="other|-|-")
    db_session.add_all([lobby, court, summer, winter, campaign, foreign_kiosk, foreign_asset])
    db_session.flush()

    def _play(org, kiosk, asset, played_at, duration, campaign_id=None):
        return Play(
            org_id=org,
            kiosk_id=kiosk.id,
            asset_id=asset.id,
            campaign_id=campaign_id,
            played_at=played_at,
            duration_sec=duration,
        )

    db_session.add_all(
        [
            _play(org_id, lobby, summer, datetime(2024, 1, 1, 10, tzinfo=timezone.utc), 10, campaign.id),
            _play(org_id, lobby, winter, datetime(2024, 1, 2, 23, 59, tzinfo=timezone.utc), 20),
            _play(org_id, court, summer, datetime(2024, 1, 3, 8, tzinfo=timezone.utc), 30, campaign.id),
            _play(other_org_id, foreign_kiosk, foreign_asset, datetime(2024, 1, 1, 12, tzinfo=timezone.utc), 99),
        ]
    )
    db_session.commit()
    return {"lobby": lobby, "court": court, "summer": summer, "winter": winter, "campaign": campaign}


def _service(db_session, org_id):
    return ProofOfPlayReportService(db_session, org_id=org_id, default_duration_seconds=15)


def test_summary_aggregates_filtered_plays(db_session, org_id, seeded):
    summary = _service(db_session, org_id).summarize()

    assert summary.total_plays == 3
    assert summary.unique_screens == 2
    assert summary.unique_assets == 2
    assert summary.total_duration_seconds == 60
    assert summary.average_duration_seconds == 20
    assert (summary.date_range_start, summary.date_range_end) == ("2024-01-01", "2024-01-03")


def test_summary_of_empty_set(db_session, org_id):
    summary = _service(db_session, org_id).summarize()

    assert summary.total_plays == 0
    assert summary.average_duration_seconds == 0
    assert (summary.date_range_start, summary.date_range_end) == ("", "")


def test_query_returns_newest_first_with_record_fields(db_session, org_id, seeded):
    records = _service(db_session, org_id).query()

    assert [record.start_time_utc for record in records] == [
        "2024-01-03T08:00:00Z",
        "2024-01-02T23:59:00Z",
        "2024-01-01T10:00:00Z",
    ]
    newest = records[0]
    assert newest.report_date_utc == "2024-01-03"
    assert newest.account_id == "acct-1"
    assert newest.screen_uuid == seeded["court"].id
    assert newest.device_local_time == "2024-01-03T03:00:00-05:00"
    oldest = records[-1]
    assert oldest.screen_uuid == "dev-1"
    assert oldest.screen_tags == "vip"
    assert oldest.device_local_time == "2024-01-01T10:00:00Z"


def test_end_date_includes_the_whole_day(db_session, org_id, seeded):
    records = _service(db_session, org_id).query(ReportFilters(start_date=date(2024, 1, 2), end_date=date(2024, 1, 2)))

    assert [record.start_time_utc for record in records] == ["2024-01-02T23:59:00Z"]


def test_filters_by_campaign_screen_asset_and_account(db_session, org_id, seeded):
    service = _service(db_session, org_id)

    assert len(service.query(ReportFilters(campaign_id=seeded["campaign"].id))) == 2
    assert len(service.query(ReportFilters(screen_id="dev-1"))) == 2
    assert len(service.query(ReportFilters(screen_id=seeded["court"].id))) == 1
    assert len(service.query(ReportFilters(asset_id=seeded["winter"].id))) == 1
    assert len(service.query(ReportFilters(account_id="acct-1"))) == 2
    assert service.query(ReportFilters(account_id="nobody")) == []


def test_missing_duration_uses_default(db_session, org_id, seeded):
    db_session.add(
        Play(
            org_id=org_id,
            kiosk_id=seeded["lobby"].id,
            asset_id=seeded["summer"].id,
            played_at=datetime(2024, 1, 5, tzinfo=timezone.utc),
        )
    )
    db_session.commit()

    records = _service(db_session, org_id).query(ReportFilters(start_date=date(2024, 1, 5)))

    assert [record.duration for record in records] == [15]


def test_export_csv_has_eleven_columns_and_quotes_text(db_session, org_id, seeded):
    csv_text = _service(db_session, org_id).export_csv()
    lines = csv_text.split("\n")

    assert lines[0] == ",".join(CSV_HEADERS)
    assert len(lines[0].split(",")) == 11
    assert len(lines) == 4
    oldest = lines[-1]
    assert oldest.startswith("2024-01-01,acct-1,dev-1,")
    assert '"Lobby, East"' in oldest
    assert '"vip"' in oldest
    assert '"Summer ""Mega"" Sale"' in oldest
    assert oldest.endswith(",2024-01-01T10:00:00Z,2024-01-01T10:00:00Z,10")


def test_export_csv_with_no_matches_is_header_only(db_session, org_id, seeded):
    csv_text = _service(db_session, org_id).export_csv(ReportFilters(start_date=date(2030, 1, 1)))

    assert csv_text == ",".join(CSV_HEADERS)


def test_filter_option_lists(db_session, org_id, seeded):
    service = _service(db_session, org_id)

    assert service.available_campaigns() == [{"id": seeded["campaign"].id, "name": "Summer", "accountId": "acct-1"}]
    assert service.available_campaigns("someone-else") == []
    assert [screen["name"] for screen in service.available_screens()] == ["Food Court", "Lobby, East"]
    assert [asset["name"] for asset in service.available_assets()] == ['Summer "Mega" Sale', "Winter Promo"]
