import json
from datetime import datetime, timezone

from conftest import robots_response
from deal_collection.data_models.models import MissingVenueRow, row_model_headers
from deal_collection.pipeline import stages
from venue_store.tables import read_table, write_table

NOW = datetime(2024, 5, 7, 12, 0, tzinfo=timezone.utc)

TAVERN = {
    "venue_name": "Test Tavern",
    "address": {"street": "100 Main St", "city": "Charlotte", "region": "NC"},
    "contact": {"website": "https://tavern.test"},
    "deals": [],
    "last_verified_at": "2020-01-01T00:00:00Z",
}

def test_homepage_pass_end_to_end(tmp_path, config, make_fetcher, write_dataset):
    dataset = write_dataset([TAVERN])
    fetcher = make_fetcher({
        "https://tavern.test/robots.txt": robots_response("User-agent: *\nAllow: /"),
        "https://tavern.test": "<html><body><p>Happy Hour Tuesday 5-7 $5 beers</p></body></html>",
    })
    data = tmp_path / "data"

    assert stages.make_targets(dataset, data / "targets.csv", config) == 1
    stages.check_robots(data / "targets.csv", data / "targets_checked.csv", None, config, fetcher=fetcher)
    scraped = stages.scrape_sites(data / "targets_checked.csv", data / "scraped_deals.csv",
                                  data / "scraped_deals.log", config, fetcher=fetcher)
    reviewed = stages.review(data / "scraped_deals.csv", data / "scraped_deals_reviewed.csv", cap=5)
    report = stages.merge([data / "scraped_deals_reviewed.csv"], dataset, now=NOW)

    assert (scraped, reviewed, report.added) == (1, 1, 1)
    raw = read_table(data / "scraped_deals.csv")[0]
    assert (raw["venue_name"], raw["street_hint"], raw["scrape_allowed"]) == ("Test Tavern", "100 Main St", "true")
    assert "FOUND 1: Test Tavern" in (data / "scraped_deals.log").read_text(encoding='utf-8')

    [venue] = json.loads(dataset.read_text(encoding='utf-8'))
    [deal] = venue["deals"]
    assert venue["last_verified_at"] == "2024-05-07T12:00:00Z"
    assert deal["title"] == "Happy Hour"
    assert deal["weekday"] == "Tuesday"
    assert (deal["start_time"], deal["end_time"]) == ("17:00", "19:00")
    assert (deal["price"], deal["currency"]) == (5.0, "USD")
    assert deal["category"] == ["drinks", "happy_hour"]
    assert deal["confidence"] == "high"
    assert deal["source_url"] == "https://tavern.test"
    assert deal["source_snippet"] == "Happy Hour Tuesday 5-7 $5 beers"

def test_backfill_pass_with_discovered_links(tmp_path, config, make_fetcher):
    homepage = '<a href="/events">Events</a><a href="/about">About</a>'
    events = """
    <p>Industry Night every Monday 9pm-11pm with $3 drafts</p>
    <script type="application/ld+json">
      {"@type": "Event", "name": "Trivia Night", "description": "Team trivia",
       "startDate": "2024-05-08T19:00:00", "endDate": "2024-05-08T21:00:00"}
    </script>
    """
    fetcher = make_fetcher({
        "https://quiet.test/": homepage,
        "https://quiet.test/events": events,
    })
    report = tmp_path / "missing.csv"
    write_table(report, [
        MissingVenueRow(venue_name="Quiet Bar", website="https://quiet.test/", scrape_allowed="true"),
        MissingVenueRow(venue_name="Closed Bar", website="https://closed.test/", scrape_allowed="false"),
    ], row_model_headers(MissingVenueRow))

    links_path = tmp_path / "discovered_links.csv"
    log_path = tmp_path / "discovered_links.log"
    stages.discover_links(report, links_path, log_path, config, fetcher=fetcher)

    links = read_table(links_path)
    assert links[0] == {"venue_name": "Quiet Bar", "base_url": "https://quiet.test/", "url": "https://quiet.test/events"}
    assert {row["venue_name"] for row in links} == {"Quiet Bar"}
    assert not any("closed.test" in url for url in fetcher.session.requested)
    assert "→ Quiet Bar" in log_path.read_text(encoding='utf-8')

    deals_path = tmp_path / "discovered_deals.csv"
    written = stages.scrape_discovered(links_path, deals_path, None, config, fetcher=fetcher)
    rows = read_table(deals_path)
    assert written == len(rows) == 2
    titles = {row["title"] for row in rows}
    assert titles == {"Industry Night", "Trivia Night"}
    trivia = next(row for row in rows if row["title"] == "Trivia Night")
    assert (trivia["weekday"], trivia["start_time"], trivia["end_time"]) == ("Wednesday", "19:00", "21:00")

    again = stages.scrape_discovered(links_path, deals_path, None, config, fetcher=fetcher, resume=True)
    assert again == 0
    assert len(read_table(deals_path)) == 2

    reviewed = tmp_path / "discovered_deals_reviewed.csv"
    assert stages.review(deals_path, reviewed, cap=6) == 1
    assert read_table(reviewed)[0]["title"] == "Industry Night"
