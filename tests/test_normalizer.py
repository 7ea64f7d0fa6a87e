from cara.services.normalizer import (
    SHORTEN_SUFFIX,
    Empty,
    Structured,
    Unstructured,
    extract_news_items,
    extract_search_result,
    parse_search_text,
    shorten,
)


def _long_sentences(n, extra=""):
    return [f"Sentence number {i} explains the local noise ordinance{extra}" for i in range(n)]


def test_shorten_returns_short_text_unchanged():
    text = "Tenants must receive notice. " * 17  # 493 chars
    assert len(text) < 500
    assert shorten(text) == text


def test_shorten_bullets_each_surviving_sentence_in_order():
    parts = _long_sentences(5) + ["Ok"] + _long_sentences(5)
    text = ". ".join(parts) + "."
    assert 500 <= len(text)

    out = shorten(text)

    kept = [p for p in parts if len(p) > 10]
    kept[-1] = kept[-1] + "."
    assert out == "\n".join(f"• {p}" for p in kept)
    assert all(line.startswith("• ") for line in out.splitlines())


def test_shorten_leaves_existing_bullets_and_truncates_long_text():
    text = "\n".join(f"- Provision {i} covers a specific duty of landlords." for i in range(40))
    assert len(text) > 1000

    out = shorten(text)

    assert out.endswith(SHORTEN_SUFFIX)
    body = out[: -len(SHORTEN_SUFFIX)]
    assert len(body) <= 1000
    assert body.endswith(".")
    assert text.startswith(body)


def test_shorten_never_truncates_bulleted_output():
    # Citations keep an inner dot after the sentence split
    parts = [f"Claims under 42 U.S.C. section 1983 number {i} require state action by the defendant" for i in range(15)]
    text = ". ".join(parts) + "."
    assert len(text) > 1000

    out = shorten(text)

    assert SHORTEN_SUFFIX not in out
    assert all(line.startswith("• ") for line in out.splitlines())
    assert out.splitlines()[0] == "• Claims under 42 U.S.C"


def test_shorten_truncates_long_text_with_few_sentences():
    text = ". ".join("Landlord duties " + "include upkeep " * 30 for _ in range(3)) + "."
    assert len(text) > 1000

    out = shorten(text)

    assert out.endswith(SHORTEN_SUFFIX)
    body = out[: -len(SHORTEN_SUFFIX)]
    assert len(body) <= 1000
    assert body.endswith(".")
    assert text.startswith(body)


def test_shorten_keeps_long_bulleted_text_without_full_stop():
    text = ". ".join(_long_sentences(25)) + " and nothing else"
    out = shorten(text)
    assert len(out) > 1000
    assert not out.endswith(SHORTEN_SUFFIX)
    assert all(line.startswith("• ") for line in out.splitlines())


def test_search_result_from_labelled_sections():
    raw = "Title: Noise Ordinance\n\nSummary: Restricts noise after 10pm.\n\nContent: Applies to all residents."
    result = extract_search_result(raw, "noise", None)
    assert result["title"] == "Noise Ordinance"
    assert result["summary"] == "Restricts noise after 10pm."
    assert result["content"]
    assert result["category"] == "Legal Information"
    assert result["id"].isdigit()


def test_search_result_uses_json_object_as_is():
    raw = 'Here is the result: {"title": "Clean Air Act", "custom": 1} Hope it helps.'
    assert extract_search_result(raw, "air", "Environmental") == {"title": "Clean Air Act", "custom": 1}


def test_search_result_bad_json_falls_through_to_text():
    raw = "Title: Lease Law\n\nSummary: Covers {leases} here.\n\nReferences: Civil Code 1940"
    parsed = parse_search_text(raw)
    assert isinstance(parsed, Unstructured)
    assert parsed.title == "Lease Law"
    assert parsed.summary == "Covers {leases} here."


def test_search_result_defaults_without_summary():
    raw = "Fair Housing Act\n\nProhibits discrimination in the sale or rental of housing."
    result = extract_search_result(raw, "fair housing", "Housing")
    assert result["title"] == "Fair Housing Act"
    assert result["category"] == "Housing"
    assert result["summary"] == raw[:150] + "..."
    assert result["content"] == "Prohibits discrimination in the sale or rental of housing."


def test_search_title_skips_bullet_sections_and_strips_label():
    raw = "- a stray bullet\n\nLaw: Clean Water Act\n\nRegulates discharges."
    assert parse_search_text(raw).title == "Clean Water Act"


def test_parse_search_text_variants():
    assert isinstance(parse_search_text("   \n"), Empty)
    assert isinstance(parse_search_text('{"a": 1}'), Structured)
    result = extract_search_result("", "tenant rights")
    assert result["title"] == "tenant rights"


def test_news_items_in_input_order_with_dates():
    raw = (
        "New Data Privacy Act Passed (March 2024)\n"
        "The legislature passed a sweeping privacy law.\n\n"
        "Supreme Court Rules on Free Speech\n"
        "Date: January 15, 2024\n"
        "The court issued a landmark ruling."
    )
    items = extract_news_items(raw, "Privacy")
    assert [i.title for i in items] == ["New Data Privacy Act Passed", "Supreme Court Rules on Free Speech"]
    assert items[0].date == "March 2024"
    assert items[0].summary == "The legislature passed a sweeping privacy law."
    assert items[1].date == "January 15, 2024"
    assert items[1].summary == "The court issued a landmark ruling."
    assert items[0].id.endswith("0") and items[1].id.endswith("1")
    assert items[0].id[:-1] == items[1].id[:-1]


def test_news_numeric_date_and_defaults():
    items = extract_news_items("Tenant Protection Update 03/15/2024\n\nA headline with no details")
    assert items[0].title == "Tenant Protection Update"
    assert items[0].date == "03/15/2024"
    assert items[1].date == "Recent"
    assert items[1].summary == "No additional details available."


def test_news_fallback_item_when_nothing_qualifies():
    raw = "Nothing.\n\nNo news."
    items = extract_news_items(raw)
    assert len(items) == 1
    assert items[0].title == "Recent Legal Updates"
    assert items[0].summary == raw
    assert items[0].date == "Recent"
    assert extract_news_items("", "Criminal Law")[0].title == "Recent Criminal Law Updates"
