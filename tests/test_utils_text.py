from rules_qa.utils.text import fold_accents, tokenize, truncate


def test_fold_accents_lowercases_and_drops_marks() -> None:
    assert fold_accents("Durée de l'Exclusion, PÉNALTY") == "duree de l'exclusion, penalty"


def test_fold_accents_is_noop_for_empty_input() -> None:
    assert fold_accents("") == ""


def test_tokenize_strips_elisions_and_stopwords() -> None:
    assert tokenize("Quelle est la durée d'une exclusion ?") == ["duree", "exclusion"]


def test_tokenize_can_keep_stopwords() -> None:
    assert tokenize("le gardien", keep_stopwords=True) == ["le", "gardien"]


def test_tokenize_splits_article_numbers() -> None:
    assert tokenize("Article 20.15") == ["article", "20", "15"]


def test_truncate_appends_ellipsis_only_when_needed() -> None:
    assert truncate("abcdef", 3) == "abc…"
    assert truncate("abc", 3) == "abc"
    assert truncate("abcdef", 0) == "abcdef"
