import json

from bs4 import BeautifulSoup

from conftest import FakeResponse
from deal_collection.crawling.content_extractor import (
    ContentExtractor, extract_structured_items, find_candidate_blocks,
)

def ld_json(data):
    return f'<script type="application/ld+json">{json.dumps(data)}</script>'

def test_candidate_blocks_are_keyword_matched_and_deduplicated():
    html = """
    <div><p>Happy Hour Tuesday 5-7 $5 beers</p></div>
    <p>Short deal</p>
    <p>Welcome to our restaurant, come visit us</p>
    <li>Taco Tuesday $2 tacos all night long</li>
    """
    blocks = find_candidate_blocks(BeautifulSoup(html, 'html.parser'))
    assert blocks == ["Happy Hour Tuesday 5-7 $5 beers", "Taco Tuesday $2 tacos all night long"]

def test_candidate_blocks_respect_max_blocks():
    html = "".join(f"<p>Daily specials number {i} all week</p>" for i in range(10))
    assert len(find_candidate_blocks(BeautifulSoup(html, 'html.parser'), max_blocks=4)) == 4

def test_script_text_is_not_a_block(make_fetcher):
    html = '<script>var promo = "happy hour specials all week long";</script><p>Brunch every Sunday from 10am-2pm</p>'
    page = ContentExtractor(make_fetcher()).extract_html(html, "https://bar.test/")
    assert page.blocks == ["Brunch every Sunday from 10am-2pm"]

def test_event_json_ld():
    html = ld_json({
        "@context": "https://schema.org",
        "@type": "Event",
        "name": "Trivia Night",
        "description": "Weekly trivia with $5 pitchers",
        "startDate": "2024-05-07T19:00:00-04:00",
        "endDate": "2024-05-07T21:00:00-04:00",
        "offers": {"price": "5", "priceCurrency": "USD"},
    })
    [item] = extract_structured_items(BeautifulSoup(html, 'html.parser'))

    assert item.kind == "event"
    assert item.title == "Trivia Night"
    assert item.text == "Trivia Night - Weekly trivia with $5 pitchers"
    assert item.weekday == "Tuesday"
    assert (item.start_time, item.end_time) == ("19:00", "21:00")
    assert item.price == 5.0
    assert item.currency == "USD"

def test_date_only_event_has_weekday_but_no_times():
    html = ld_json({"@type": "Event", "name": "Wing Night", "startDate": "2024-05-08"})
    [item] = extract_structured_items(BeautifulSoup(html, 'html.parser'))
    assert item.weekday == "Wednesday"
    assert item.start_time == "" and item.end_time == ""

def test_graph_offers_and_malformed_blocks():
    html = (
        '<script type="application/ld+json">{not json</script>'
        + ld_json({"@graph": [{"@type": ["Offer"], "name": "Wing Wednesday", "price": "0.75"}]})
    )
    [item] = extract_structured_items(BeautifulSoup(html, 'html.parser'))
    assert item.kind == "offer"
    assert item.title == "Wing Wednesday"
    assert item.price == 0.75
    assert item.currency == "USD"

def test_extract_reports_unfetched_pages(make_fetcher):
    fetcher = make_fetcher({"https://bar.test/menu.pdf": FakeResponse("%PDF", content_type="application/pdf")})
    extractor = ContentExtractor(fetcher)

    assert not extractor.extract("https://bar.test/menu.pdf").fetched
    missing = extractor.extract("https://bar.test/nowhere")
    assert not missing.fetched
    assert missing.blocks == [] and missing.structured == []

def test_structured_pass_can_be_disabled(make_fetcher):
    html = ld_json({"@type": "Event", "name": "Trivia", "startDate": "2024-05-07T19:00:00"})
    page = ContentExtractor(make_fetcher()).extract_html(html, "https://bar.test/", include_structured=False)
    assert page.structured == []

def test_space_separated_timestamps_keep_their_time():
    html = ld_json({"@type": "Event", "name": "Trivia Night",
                    "startDate": "2024-05-07 19:00", "endDate": "2024-05-07 21:30"})
    [item] = extract_structured_items(BeautifulSoup(html, 'html.parser'))
    assert item.weekday == "Tuesday"
    assert (item.start_time, item.end_time) == ("19:00", "21:30")
