from dataclasses import FrozenInstanceError
from datetime import timezone

import pytest
from pydantic import ValidationError

from app.categories import CATEGORIES, CATEGORY_NAMES, CategoryDefinition, load_categories
from app.scoring import analyze, score_category, severity_for_ratio

SAMPLES = [
    "",
    "   \n\t ",
    "This is a perfectly normal and friendly message about technology.",
    "Click here now! Limited time offer! Buy now and get rich quick! Act fast!",
    "I hate dealing with slow internet connections and buggy software.",
    "You stupid idiot loser, shut up or die. That is a threat.",
    "KILL MURDER ATTACK WEAPON BOMB TERROR HURT HARM",
    "Congratulations winner! Free money, click here, buy now, act fast, limited time.",
    "explicit nsfw xxx adult content",
]

TEN_KEYWORDS = CategoryDefinition(
    name="Test",
    description="ten keyword category",
    keywords=tuple(f"kw{i}x" for i in range(10)),
)


def _verdict(result, name):
    return next(c for c in result.categories if c.name == name)


def test_category_table_shape():
    assert CATEGORY_NAMES == ("Hate Speech", "Spam", "Inappropriate Content", "Violence", "Harassment")
    assert [len(c.keywords) for c in CATEGORIES] == [7, 7, 4, 8, 6]
    assert all(k == k.lower() for c in CATEGORIES for k in c.keywords)


def test_load_categories_rejects_missing_file(tmp_path):
    with pytest.raises(RuntimeError, match="Missing category config"):
        load_categories(tmp_path / "nope.json")


def test_load_categories_rejects_string_keywords(tmp_path):
    path = tmp_path / "categories.json"
    path.write_text('{"CATEGORIES": [{"name": "Spam", "description": "", "keywords": "click here"}]}', encoding="utf-8")
    with pytest.raises(RuntimeError, match="must be a list"):
        load_categories(path)


def test_load_categories_rejects_empty_keywords(tmp_path):
    path = tmp_path / "categories.json"
    path.write_text('{"CATEGORIES": [{"name": "Empty", "description": "", "keywords": []}]}', encoding="utf-8")
    with pytest.raises(RuntimeError, match="no keywords"):
        load_categories(path)


@pytest.mark.parametrize("text", SAMPLES)
def test_scores_and_labels_in_range(text):
    result = analyze(text)
    assert [c.name for c in result.categories] == list(CATEGORY_NAMES)
    for verdict in result.categories:
        assert 0.0 <= verdict.confidence <= 100.0
        assert verdict.severity in {"safe", "warning", "violation"}
        assert verdict.detected == (verdict.severity != "safe")
    assert result.overall_score == max(c.confidence for c in result.categories)
    assert result.overall_severity == severity_for_ratio(max(c.match_ratio for c in result.categories))


@pytest.mark.parametrize("text", SAMPLES)
def test_analyze_is_idempotent(text):
    first = analyze(text)
    second = analyze(text)
    assert first.overall_score == second.overall_score
    assert first.overall_severity == second.overall_severity
    assert [(c.confidence, c.detected, c.severity) for c in first.categories] == [
        (c.confidence, c.detected, c.severity) for c in second.categories
    ]


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_empty_text_is_safe(text):
    result = analyze(text)
    assert result.text == text
    assert result.overall_score == 0
    assert result.overall_severity == "safe"
    assert all(c.match_ratio == 0 and not c.detected for c in result.categories)


def test_normal_message_is_safe():
    result = analyze("This is a perfectly normal and friendly message about technology.")
    assert result.overall_score == 0
    assert result.overall_severity == "safe"


def test_spam_message_is_warning():
    result = analyze("Click here now! Limited time offer! Buy now and get rich quick! Act fast!")
    spam = _verdict(result, "Spam")
    assert spam.matched_keywords == ("click here", "buy now", "limited time", "act fast")
    assert spam.match_ratio == pytest.approx(4 / 7)
    assert spam.confidence == pytest.approx(57.142857, rel=1e-6)
    assert spam.severity == "warning"
    assert spam.detected is True
    assert result.overall_score == spam.confidence
    assert result.overall_severity == "warning"


def test_single_hate_keyword_stays_safe():
    result = analyze("I hate dealing with slow internet connections and buggy software.")
    hate = _verdict(result, "Hate Speech")
    assert hate.matched_keywords == ("hate",)
    assert hate.confidence == pytest.approx(14.285714, rel=1e-6)
    assert hate.severity == "safe"
    assert hate.detected is False
    assert result.overall_severity == "safe"


def test_full_match_is_violation():
    result = analyze("KILL MURDER ATTACK WEAPON BOMB TERROR HURT HARM")
    violence = _verdict(result, "Violence")
    assert violence.confidence == 100.0
    assert violence.severity == "violation"
    assert result.overall_score == 100.0
    assert result.overall_severity == "violation"


def test_repeated_keyword_counts_once():
    once = analyze("spam winner")
    many = analyze("winner winner winner winner")
    assert _verdict(once, "Spam").confidence == _verdict(many, "Spam").confidence


def test_substring_matches_inside_unrelated_words():
    result = analyze("I am on a diet")
    harassment = _verdict(result, "Harassment")
    assert harassment.matched_keywords == ("die",)


@pytest.mark.parametrize(
    "ratio, expected",
    [
        (0.0, "safe"),
        (0.3, "safe"),
        (0.3000001, "warning"),
        (0.6, "warning"),
        (0.6000001, "violation"),
        (1.0, "violation"),
    ],
)
def test_severity_thresholds(ratio, expected):
    assert severity_for_ratio(ratio) == expected


def test_ratio_exactly_at_warning_cutoff_is_safe():
    text = "kw0x kw1x kw2x"
    verdict = score_category(text, TEN_KEYWORDS)
    assert verdict.match_ratio == 0.3
    assert verdict.severity == "safe"
    assert verdict.detected is False

    result = analyze(text, categories=(TEN_KEYWORDS,))
    assert result.overall_severity == "safe"
    assert result.overall_score == pytest.approx(30.0)


def test_ratio_exactly_at_violation_cutoff_is_warning():
    result = analyze(" ".join(f"kw{i}x" for i in range(6)), categories=(TEN_KEYWORDS,))
    verdict = result.categories[0]
    assert verdict.match_ratio == 0.6
    assert verdict.severity == "warning"
    assert verdict.detected is True
    assert result.overall_severity == "warning"


def test_overall_follows_worst_category():
    text = "click here, buy now, limited time, act fast, free money. You idiot."
    result = analyze(text)
    assert _verdict(result, "Spam").severity == "violation"
    assert _verdict(result, "Harassment").severity == "safe"
    assert result.overall_score == _verdict(result, "Spam").confidence
    assert result.overall_severity == "violation"


def test_empty_category_table():
    result = analyze("anything", categories=())
    assert result.categories == ()
    assert result.overall_score == 0.0
    assert result.overall_severity == "safe"


def test_result_metadata():
    result = analyze("hello")
    assert result.timestamp.tzinfo == timezone.utc
    assert result.processing_time_ms >= 0


def test_result_is_immutable():
    result = analyze("hello")
    with pytest.raises(ValidationError):
        result.overall_score = 99.0
    with pytest.raises(ValidationError):
        result.categories[0].severity = "violation"


def test_category_definition_is_immutable():
    with pytest.raises(FrozenInstanceError):
        CATEGORIES[0].keywords = ("anything",)
