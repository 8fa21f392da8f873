import pytest

from answer_cache.services.normalization import normalize_question, sanitize_base64


def test_case_and_punctuation_are_ignored():
    assert normalize_question("What is dharma?") == "what is dharma"
    assert normalize_question("  WHAT   is, dharma!!  ") == "what is dharma"


def test_none_and_empty_give_empty_string():
    assert normalize_question(None) == ""
    assert normalize_question("") == ""
    assert normalize_question("?!...") == ""


def test_symbols_become_spaces():
    assert normalize_question("bhakti+moksha=$peace") == "bhakti moksha peace"


def test_compatibility_forms_are_folded():
    # Fullwidth letters and the "ﬁ" ligature
    assert normalize_question("ＷＨＯ is ﬁrst") == "who is first"


def test_indic_sentence_marks_split_words():
    assert normalize_question("ભક્તિ શું છે।મોક્ષ॥") == "ભક્તિ શું છે મોક્ષ"


def test_gujarati_letters_survive():
    assert normalize_question("વચનામૃત શું છે?") == "વચનામૃત શું છે"


@pytest.mark.parametrize(
    "text",
    [
        "What is dharma?",
        "  Who   is Swaminarayan??  ",
        "ＦＵＬＬＷＩＤＴＨ — text…",
        "વચનામૃત ગઢડા પ્રથમ ૧૦ શું કહે છે?",
        "ભક્તિ।મોક્ષ॥",
        "Tabs\tand\nnewlines",
        "ΑΣ ΣΟΦΟΣ",
        "",
    ],
)
def test_normalize_is_idempotent(text):
    once = normalize_question(text)
    assert normalize_question(once) == once


def test_sanitize_base64_strips_data_uri_and_junk():
    assert sanitize_base64("data:audio/wav;base64,QUJD") == "QUJD"
    assert sanitize_base64(" QU\nJD \n") == "QUJD"


def test_sanitize_base64_restores_padding():
    assert sanitize_base64("QUI") == "QUI="
    assert sanitize_base64("QQ") == "QQ=="
    assert sanitize_base64(None) == ""


def test_byte_order_mark_is_whitespace():
    assert normalize_question("\ufeffWhat is dharma?") == "what is dharma"
    assert normalize_question("what\ufeff\ufeffis dharma\ufeff") == "what is dharma"


def test_control_separators_are_not_whitespace():
    # U+001F and U+0085 stay inside the word
    assert normalize_question("dharma\x1fbhakti") == "dharma\x1fbhakti"
    assert normalize_question("dharma\x85bhakti") == "dharma\x85bhakti"
