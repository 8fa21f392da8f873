import re
import unicodedata

# Danda, double danda and Gujarati signs that should split words like punctuation
_SCRIPT_MARKS = re.compile(r"[\u0964\u0965\u0A83\u0ABD\u0AE0\u0AE1\u0AF0\u0AF1]")

# Tabs, line breaks, Unicode spaces and U+FEFF. U+001C-U+001F and U+0085 are not separators here
_WHITESPACE = re.compile(r"[\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]+")

_BASE64_JUNK = re.compile(r"[^A-Za-z0-9+/=]")


def normalize_question(text: str | None) -> str:
    """
    Canonical form of a question, used only for comparison.

    NFKC -> script marks to space -> punctuation/symbols to space
    -> collapse whitespace -> lower-case.
    """
    if text is None:
        return ""

    s = unicodedata.normalize("NFKC", str(text))
    s = _SCRIPT_MARKS.sub(" ", s)
    s = "".join(
        " " if unicodedata.category(ch)[0] in ("P", "S") else ch
        for ch in s
    )
    return _WHITESPACE.sub(" ", s).strip(" ").lower()


def sanitize_base64(b64: str | None) -> str:
    """
    Cleans a stored base64 payload:
    - drops a data URI prefix (data:audio/wav;base64,...)
    - drops anything outside the base64 alphabet
    - restores missing padding
    """
    s = str(b64 or "").strip()
    if s.startswith("data:"):
        comma_idx = s.find(",")
        if comma_idx >= 0:
            s = s[comma_idx + 1:]

    s = _BASE64_JUNK.sub("", s)

    mod = len(s) % 4
    if mod == 2:
        s += "=="
    elif mod == 3:
        s += "="
    return s
