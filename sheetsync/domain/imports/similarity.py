"""
String similarity used by header mapping and duplicate detection.

Jaro-Winkler rewards strings that share a prefix, which suits spreadsheet
headers ("trackingNumber" vs "tracking_no") better than plain edit distance.
"""

WINKLER_PREFIX_CAP = 4
WINKLER_SCALING = 0.1


def jaro_winkler(a: str, b: str) -> float:
    """
    Jaro-Winkler similarity of two strings in [0, 1].

    Inputs are lower-cased and trimmed first. Two empty strings score 1.0;
    an empty string against a non-empty one scores 0.0.
    """
    a = (a or "").strip().lower()
    b = (b or "").strip().lower()
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    # Greedy matching is order-sensitive; fix the order so the score is symmetric.
    if a > b:
        a, b = b, a

    match_distance = max(0, max(len(a), len(b)) // 2 - 1)
    a_matches = [False] * len(a)
    b_matches = [False] * len(b)

    matches = 0
    for i, char in enumerate(a):
        start = max(0, i - match_distance)
        end = min(i + match_distance + 1, len(b))
        for j in range(start, end):
            if b_matches[j] or b[j] != char:
                continue
            a_matches[i] = True
            b_matches[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i, char in enumerate(a):
        if not a_matches[i]:
            continue
        while not b_matches[k]:
            k += 1
        if char != b[k]:
            transpositions += 1
        k += 1

    jaro = (
        matches / len(a)
        + matches / len(b)
        + (matches - transpositions / 2) / matches
    ) / 3

    prefix = 0
    for char_a, char_b in zip(a[:WINKLER_PREFIX_CAP], b[:WINKLER_PREFIX_CAP]):
        if char_a != char_b:
            break
        prefix += 1

    return jaro + prefix * WINKLER_SCALING * (1 - jaro)
