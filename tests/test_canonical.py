import json
from datetime import datetime, timezone

import pytest

from deal_collection.data_models.models import RawCandidate, row_model_headers
from deal_collection.exceptions import DatasetError, MissingInputError
from deal_collection.pipeline import stages
from venue_store.canonical import load_venues, match_venue, merge_rows, save_venues
from venue_store.tables import write_table

NOW = datetime(2024, 5, 7, 12, 0, tzinfo=timezone.utc)

VENUES = [
    {
        "venue_name": "Test Tavern",
        "address": {"street": "100 Main St", "city": "Charlotte", "region": "NC"},
        "contact": {"website": "https://tavern.test"},
        "deals": [],
        "curated_by": "hand",
    },
    {
        "venue_name": "Test Tavern",
        "address": {"street": "9 Elm St"},
        "deals": [],
    },
    {"venue_name": "The Corner Pub", "notes": "closed Mondays"},
]

def reviewed_row(**overrides):
    row = dict(
        venue_name="Test Tavern", street_hint="100 Main", title="Happy Hour", weekday="Tuesday",
        start_time="17:00", end_time="19:00", price="5.00", currency="USD",
        category="drinks;happy_hour", confidence="high",
        source_snippet="Happy Hour Tuesday 5-7 $5 beers", source_url="https://tavern.test/",
        scrape_allowed="true",
    )
    row.update(overrides)
    return RawCandidate(**row)

def test_load_venues_errors(tmp_path, write_dataset):
    with pytest.raises(MissingInputError):
        load_venues(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding='utf-8')
    with pytest.raises(DatasetError):
        load_venues(bad)

    with pytest.raises(DatasetError):
        load_venues(write_dataset({"venues": []}, name="object.json"))

def test_load_fills_defaults_and_keeps_unknown_keys(tmp_path, write_dataset):
    path = write_dataset(VENUES)
    venues = load_venues(path)

    assert venues[2].notes == ["closed Mondays"]
    assert venues[2].contact.website == ""

    save_venues(path, venues)
    data = json.loads(path.read_text(encoding='utf-8'))
    assert data[0]["curated_by"] == "hand"
    assert path.read_text(encoding='utf-8').endswith("]\n")
    assert [p.name for p in tmp_path.iterdir()] == ["deals.json"]

def test_match_venue_uses_name_then_street_hint(write_dataset):
    venues = load_venues(write_dataset(VENUES))

    assert match_venue(venues, "test tavern", "elm").address.street == "9 Elm St"
    assert match_venue(venues, "Test Tavern").address.street == "100 Main St"
    assert match_venue(venues, "corner").venue_name == "The Corner Pub"
    assert match_venue(venues, "Nowhere Bar") is None

def test_merge_attaches_deal_and_stamps_verification(write_dataset):
    venues = load_venues(write_dataset(VENUES))
    report = merge_rows(venues, [reviewed_row()], now=NOW)

    assert (report.merged, report.added) == (1, 1)
    [deal] = venues[0].deals
    assert deal.title == "Happy Hour"
    assert deal.price == 5.0
    assert venues[0].last_verified_at == "2024-05-07T12:00:00Z"
    assert venues[1].deals == []

def test_merge_requires_provenance(write_dataset):
    venues = load_venues(write_dataset(VENUES))
    report = merge_rows(venues, [reviewed_row(source_url=""), reviewed_row(source_snippet="")], now=NOW)

    assert venues[0].deals == []
    assert len(report.skipped) == 2
    assert report.merged == 0

def test_merge_reports_unmatched_venues(write_dataset):
    venues = load_venues(write_dataset(VENUES))
    report = merge_rows(venues, [reviewed_row(venue_name="Ghost Bar", street_hint="")], now=NOW)
    assert report.unmatched == ["Ghost Bar"]

def test_merge_keeps_existing_deal_on_repeat(write_dataset):
    venues = load_venues(write_dataset(VENUES))
    merge_rows(venues, [reviewed_row(description="curated by hand")], now=NOW)
    report = merge_rows(venues, [reviewed_row(description="scraped again")], now=NOW)

    assert report.added == 0
    assert [d.description for d in venues[0].deals] == ["curated by hand"]

def test_merge_stage_is_idempotent(tmp_path, write_dataset):
    dataset = write_dataset(VENUES)
    reviewed = tmp_path / "reviewed.csv"
    write_table(reviewed, [reviewed_row(), reviewed_row(title="Taco Tuesday", category="tacos")],
                row_model_headers(RawCandidate))

    first = stages.merge([reviewed], dataset, now=NOW)
    after_first = dataset.read_text(encoding='utf-8')
    second = stages.merge([reviewed], dataset, now=NOW)

    assert first.added == 2
    assert second.added == 0
    assert dataset.read_text(encoding='utf-8') == after_first

def test_merge_stage_missing_input(tmp_path, write_dataset):
    with pytest.raises(MissingInputError):
        stages.merge([tmp_path / "nope.csv"], write_dataset(VENUES))

def curated_tavern():
    return {
        "venue_name": "Test Tavern",
        "address": {"street": "100 Main St"},
        "deals": [
            {"title": "Happy Hour", "weekday": "Weekdays", "start_time": "4pm", "end_time": "7pm",
             "price": "$5 wells", "source_url": "https://tavern.test/", "source_snippet": "Weekdays 4-7"},
            {"title": "Happy Hour", "weekday": "Weekends", "start_time": "2pm", "end_time": "5pm",
             "source_url": "https://tavern.test/", "source_snippet": "Weekends 2-5"},
        ],
    }

def test_merge_keeps_curated_deals_with_free_form_values(write_dataset):
    dataset = write_dataset([curated_tavern()])
    venues = load_venues(dataset)

    report = merge_rows(venues, [reviewed_row(title="Trivia", source_url="https://tavern.test/events")], now=NOW)
    save_venues(dataset, venues)

    assert report.added == 1
    [venue] = json.loads(dataset.read_text(encoding='utf-8'))
    assert len(venue["deals"]) == 3
    first, second = venue["deals"][:2]
    assert (first["weekday"], first["start_time"], first["end_time"], first["price"]) == ("Weekdays", "4pm", "7pm", "$5 wells")
    assert (second["weekday"], second["start_time"], second["end_time"]) == ("Weekends", "2pm", "5pm")

def test_save_does_not_add_keys_to_curated_records(write_dataset):
    record = {"venue_name": "Quiet Bar", "deals": [{"title": "Brunch", "source_url": "https://q.test", "source_snippet": "Brunch"}]}
    dataset = write_dataset([record])

    save_venues(dataset, load_venues(dataset))

    assert json.loads(dataset.read_text(encoding='utf-8')) == [record]

def test_blank_coordinates_load_as_unset(write_dataset):
    venues = load_venues(write_dataset([
        {"venue_name": "A Bar", "address": {"lat": "", "lng": " "}},
        {"venue_name": "B Bar"},
    ]))

    assert [v.venue_name for v in venues] == ["A Bar", "B Bar"]
    assert venues[0].address.lat is None and venues[0].address.lng is None

def test_invalid_venue_is_skipped_but_kept_on_save(write_dataset):
    broken = {"venue_name": "Broken Bar", "address": {"lat": "north-ish"}, "deals": "see menu"}
    dataset = write_dataset([broken, {"venue_name": "Broken Bar Annex"}])
    venues = load_venues(dataset)

    assert venues[0].is_unvalidated
    assert match_venue(venues, "Broken Bar").venue_name == "Broken Bar Annex"

    save_venues(dataset, venues)
    assert json.loads(dataset.read_text(encoding='utf-8'))[0] == broken
