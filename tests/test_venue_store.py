import json

from deal_collection.data_models.models import CrawlTarget, Venue
from deal_collection.pipeline import stages
from venue_store.coverage import build_missing_report
from venue_store.tables import read_table
from venue_store.targets import build_targets, is_chain, normalize_name, split_chains

def venue(name, website="", street="", deals=None):
    return Venue(venue_name=name, address={"street": street}, contact={"website": website}, deals=deals or [])

def test_build_targets():
    targets = build_targets([
        venue("Zeke's Bar", "https://zekes.test/home", "1 A St"),
        venue("Alpha Cafe"),
    ])

    assert [t.venue_name for t in targets] == ["Alpha Cafe", "Zeke's Bar"]
    zeke = targets[1]
    assert zeke.robots_url == "https://zekes.test/robots.txt"
    assert zeke.city == "Charlotte" and zeke.region == "NC"
    assert zeke.scrape_allowed == ""
    assert zeke.google_maps.startswith("https://www.google.com/maps/search/?api=1&query=Zeke%27s+Bar+1+A+St")
    assert targets[0].robots_url == ""

def test_chain_detection():
    assert normalize_name("Moe's Southwest Grill") == "moe s southwest grill"
    assert is_chain(venue("Taco Bell #123"))
    assert is_chain(venue("Moe's Southwest Grill"))
    assert is_chain(venue("Coffee Stop", "https://www.starbucks.com/store/1"))
    assert not is_chain(venue("Local Taco Shop", "https://localtaco.test"))

def test_split_chains_preserves_order():
    kept, removed = split_chains([venue("A Bar"), venue("Subway"), venue("B Bar")])
    assert [v.venue_name for v in kept] == ["A Bar", "B Bar"]
    assert [v.venue_name for v in removed] == ["Subway"]

def test_filter_chains_stage(tmp_path, write_dataset):
    dataset = write_dataset([{"venue_name": "A Bar"}, {"venue_name": "Wingstop"}])
    kept, removed = stages.filter_chains(dataset, tmp_path / "clean.json", tmp_path / "removed.json")

    assert (kept, removed) == (["A Bar"], ["Wingstop"])
    assert json.loads((tmp_path / "removed.json").read_text())[0]["venue_name"] == "Wingstop"

def test_missing_report_lists_only_venues_without_deals():
    venues = [
        venue("Has Deals", deals=[{"title": "Happy Hour", "source_url": "https://a.test", "source_snippet": "x"}]),
        venue("No Deals", street="5 Oak St"),
        venue("Own Site", website="https://own.test"),
    ]
    targets = [
        CrawlTarget(venue_name="no deals", website="https://nodeals.test", scrape_allowed="TRUE",
                    search_query="No Deals 5 Oak St Charlotte NC menu"),
    ]
    rows = build_missing_report(venues, targets)

    assert [r.venue_name for r in rows] == ["No Deals", "Own Site"]
    assert rows[0].website == "https://nodeals.test"
    assert rows[0].scrape_allowed == "true"
    assert rows[0].search_query == "No Deals 5 Oak St Charlotte NC menu"
    assert rows[1].website == "https://own.test"
    assert rows[1].scrape_allowed == ""
    assert rows[1].search_query.startswith("Own Site  Charlotte NC")

def test_report_missing_stage_without_targets(tmp_path, write_dataset, config):
    dataset = write_dataset([{"venue_name": "Quiet Bar"}])
    output = tmp_path / "missing.csv"

    assert stages.report_missing(dataset, tmp_path / "absent.csv", output, config) == 1
    assert read_table(output)[0]["venue_name"] == "Quiet Bar"

def test_unvalidated_venues_are_left_out_of_targets_and_report():
    venues = [Venue.unvalidated({"venue_name": "Broken Bar", "deals": "n/a"}), venue("Quiet Bar")]

    assert [t.venue_name for t in build_targets(venues)] == ["Quiet Bar"]
    assert [r.venue_name for r in build_missing_report(venues, [])] == ["Quiet Bar"]
