from .normalization import normalize_question


def calculate_similarity(str1: str | None, str2: str | None) -> float:
    """
    Similarity between two questions, 0.0 to 1.0.

    Word overlap (Jaccard) combined with either a substring bonus or
    a positional character overlap. Not an edit distance: the 0.8
    history threshold was tuned against exactly this formula.
    """
    s1 = normalize_question(str1)
    s2 = normalize_question(str2)

    # Exact match
    if s1 == s2:
        return 1.0

    # Normalized text is single-space separated
    words1 = {w for w in s1.split(" ") if w}
    words2 = {w for w in s2.split(" ") if w}
    if not words1 or not words2:
        return 0.0

    intersection = len(words1 & words2)
    union = len(words1 | words2)
    word_similarity = intersection / union

    if len(s1) > len(s2):
        longer, shorter = s1, s2
    else:
        longer, shorter = s2, s1

    # Same question with an added clause
    if shorter in longer:
        substring_similarity = len(shorter) / len(longer)
        return max(word_similarity, substring_similarity * 0.9)

    min_len = min(len(s1), len(s2))
    max_len = max(len(s1), len(s2))
    matching_chars = sum(1 for i in range(min_len) if s1[i] == s2[i])
    char_similarity = matching_chars / max_len

    # Combine word similarity (70%) and character similarity (30%)
    return (word_similarity * 0.7) + (char_similarity * 0.3)
