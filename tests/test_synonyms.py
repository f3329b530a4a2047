"""
Tests for synonym table construction and query expansion
"""
from modern_search.core.schemas import SynonymEntry
from modern_search.retrieval.synonyms import (
    SynonymExpander,
    build_synonym_table,
    expand_synonyms,
    format_synonyms,
    strip_structured_query,
)


def _expander(*entries):
    return SynonymExpander.from_entries(list(entries))


def test_one_way_table_maps_term_only():
    table = build_synonym_table([SynonymEntry(term="Report", synonyms=" Summary, review ")])

    assert dict(table) == {"report": ("summary", "review")}


def test_two_way_table_maps_every_synonym_back():
    table = build_synonym_table(
        [SynonymEntry(term="car", synonyms="automobile,vehicle", two_ways=True)]
    )

    assert table["car"] == ("automobile", "vehicle")
    assert table["automobile"] == ("vehicle", "car")
    assert table["vehicle"] == ("automobile", "car")


def test_table_skips_blank_synonyms_and_terms():
    table = build_synonym_table(
        [
            SynonymEntry(term="report", synonyms='summary,, "review" '),
            SynonymEntry(term="  ", synonyms="ignored"),
        ]
    )

    assert dict(table) == {"report": ("summary", "review")}


def test_query_without_synonym_terms_is_unchanged():
    expander = _expander(SynonymEntry(term="report", synonyms="summary"))

    assert expander.expand("annual budget") == "annual budget"


def test_empty_table_returns_query_as_is():
    assert SynonymExpander().expand("quarterly report") == "quarterly report"
    assert expand_synonyms("quarterly report", None) == "quarterly report"


def test_free_text_term_is_expanded():
    expander = _expander(SynonymEntry(term="report", synonyms="summary,review"))

    assert expander.expand("quarterly report") == 'quarterly ("report" OR "summary" OR "review")'


def test_lookup_is_case_insensitive_and_keeps_typed_case():
    expander = _expander(SynonymEntry(term="report", synonyms="summary"))

    assert expander.expand("Report") == '("Report" OR "summary")'


def test_two_way_synonym_expands_to_term_and_others():
    expander = _expander(SynonymEntry(term="car", synonyms="automobile,vehicle", two_ways=True))

    assert expander.expand("vehicle") == '("vehicle" OR "automobile" OR "car")'


def test_property_restriction_is_not_expanded():
    expander = _expander(SynonymEntry(term="report", synonyms="summary"))

    query = 'title:"annual report" budget'
    assert expander.expand(query) == query


def test_exclusion_is_not_expanded():
    expander = _expander(SynonymEntry(term="report", synonyms="summary"))

    assert expander.expand("-report budget") == "-report budget"


def test_boolean_operators_are_preserved():
    expander = _expander(
        SynonymEntry(term="dogs", synonyms="puppies"),
        SynonymEntry(term="or", synonyms="gold"),
    )

    assert expander.expand("cats AND dogs") == 'cats AND ("dogs" OR "puppies")'
    assert expander.expand("cats OR dogs") == 'cats OR ("dogs" OR "puppies")'


def test_quoted_phrase_matches_multi_word_term():
    expander = _expander(SynonymEntry(term="annual report", synonyms="yearly report"))

    assert expander.expand('"annual report" budget') == '("annual report" OR "yearly report") budget'


def test_parenthesized_group_is_not_expanded():
    expander = _expander(SynonymEntry(term="report", synonyms="summary"))

    query = "(report OR memo)"
    assert expander.expand(query) == query


def test_strip_structured_query_removes_restrictions_and_operators():
    stripped = strip_structured_query('FileType:docx cats AND -dogs Author:"John Doe"')

    assert stripped.split() == ["cats"]


def test_format_synonyms_quotes_and_skips_empty():
    assert format_synonyms(["summary", "", ' "big data" ']) == '"summary" OR "big data"'


def test_term_inside_quoted_property_restriction_is_skipped_for_free_text():
    expander = _expander(SynonymEntry(term="report", synonyms="summary"))

    assert (
        expander.expand('title:"annual report" report')
        == 'title:"annual report" ("report" OR "summary")'
    )


def test_term_inside_property_restriction_is_skipped_for_free_text():
    expander = _expander(SynonymEntry(term="report", synonyms="summary"))

    assert expander.expand("FileType:report report") == 'FileType:report ("report" OR "summary")'


def test_repeated_term_is_not_expanded_inside_a_previous_expansion():
    expander = _expander(SynonymEntry(term="report", synonyms="summary"))

    assert (
        expander.expand("report report")
        == '("report" OR "summary") ("report" OR "summary")'
    )
