"""Similarity metrics and collection scanning."""
import math

from sklearn.feature_extraction.text import CountVectorizer
from sklearn.metrics.pairwise import cosine_similarity
import Levenshtein
from tqdm import tqdm

from preprocessor import normalize_text, tokenize, generate_ngrams, clean_code, item_text

# Cosine and Jaccard carry 55% so paraphrases still score high
DEFAULT_WEIGHTS = {
    'jaccard': 0.25,
    'cosine': 0.30,
    'ngram': 0.20,
    'character': 0.15,
    'lcs': 0.10,
}
DEFAULT_THRESHOLD = 30
NGRAM_SIZE = 3
MAX_COMMON_PHRASES = 10


class ScanCancelled(Exception):
    """Raised when a scan is stopped through its should_stop callback."""


def _to_percent(value):
    # Half-up rounding, Python's round() would round half to even
    return min(100, max(0, int(math.floor(value * 100 + 0.5))))


def _check_weights(weights):
    if weights is None:
        return DEFAULT_WEIGHTS
    if set(weights) != set(DEFAULT_WEIGHTS):
        raise ValueError(
            f"weights must have exactly the keys {sorted(DEFAULT_WEIGHTS)}, got {sorted(weights)}")
    return weights


def jaccard_similarity(tokens1, tokens2):
    """
    Size of the intersection over size of the union of the two token sets.
    """
    set1 = set(tokens1)
    set2 = set(tokens2)

    union = len(set1 | set2)
    if union == 0:
        return 0.0

    return len(set1 & set2) / union


def cosine_similarity_tf(tokens1, tokens2):
    """
    Calculates Cosine similarity of the term-frequency vectors using CountVectorizer.
    Tokens are passed through as-is, duplicates counted.
    """
    try:
        vectorizer = CountVectorizer(analyzer=lambda tokens: tokens).fit_transform([tokens1, tokens2])
    except ValueError:
        # Empty vocabulary
        return 0.0

    # An all-zero row gives 0 after sklearn's normalization
    score = float(cosine_similarity(vectorizer)[0][1])
    return min(1.0, max(0.0, score))


def ngram_similarity(tokens1, tokens2, n=NGRAM_SIZE):
    """
    Jaccard similarity over word n-grams.
    0 when either side is too short to form a single n-gram.
    """
    if len(tokens1) < n or len(tokens2) < n:
        return 0.0

    return jaccard_similarity(generate_ngrams(tokens1, n), generate_ngrams(tokens2, n))


def character_similarity(text1, text2):
    """
    1 - Levenshtein distance / length of the longer string.
    """
    max_len = max(len(text1), len(text2))
    if max_len == 0:
        return 0.0

    return 1 - Levenshtein.distance(text1, text2) / max_len


def longest_common_subsequence(text1, text2):
    """
    Length of the longest common character subsequence.
    Keeps one row of the DP table, sized on the shorter string.
    """
    if len(text2) > len(text1):
        text1, text2 = text2, text1

    previous = [0] * (len(text2) + 1)
    for ch1 in text1:
        current = [0]
        for j, ch2 in enumerate(text2, 1):
            if ch1 == ch2:
                current.append(previous[j - 1] + 1)
            else:
                current.append(max(previous[j], current[j - 1]))
        previous = current

    return previous[-1]


def lcs_similarity(text1, text2):
    max_len = max(len(text1), len(text2))
    if max_len == 0:
        return 0.0

    return longest_common_subsequence(text1, text2) / max_len


def calculate_metrics(text1, text2, max_text_length=None):
    """
    Returns the five raw metric values (0..1) for two texts.
    max_text_length truncates the normalized strings fed to the
    character and LCS metrics, which are quadratic in text length.
    """
    # Fixed argument order so floating point sums do not depend on call order
    if text2 < text1:
        text1, text2 = text2, text1

    norm1 = normalize_text(text1)
    norm2 = normalize_text(text2)
    tokens1 = tokenize(text1)
    tokens2 = tokenize(text2)

    if max_text_length is not None:
        norm1 = norm1[:max_text_length]
        norm2 = norm2[:max_text_length]

    return {
        'jaccard': jaccard_similarity(tokens1, tokens2),
        'cosine': cosine_similarity_tf(tokens1, tokens2),
        'ngram': ngram_similarity(tokens1, tokens2),
        'character': character_similarity(norm1, norm2),
        'lcs': lcs_similarity(norm1, norm2),
    }


def combine_metrics(metrics, weights=None):
    """
    Weighted sum of the metric values, as a 0-100 score.
    """
    weights = _check_weights(weights)
    return _to_percent(sum(metrics[name] * weight for name, weight in weights.items()))


def calculate_similarity(text1, text2, weights=None, max_text_length=None):
    """
    Similarity score of two texts, an integer from 0 to 100.
    """
    weights = _check_weights(weights)

    if not text1 or not text2:
        return 0
    if text1 == text2:
        return 100
    if normalize_text(text1) == normalize_text(text2):
        return 100

    if not tokenize(text1) or not tokenize(text2):
        return 0

    return combine_metrics(calculate_metrics(text1, text2, max_text_length), weights)


def calculate_detailed_similarity(text1, text2, weights=None, max_text_length=None):
    """
    Overall score plus the per-metric breakdown, each on a 0-100 scale.
    """
    if not text1 or not text2:
        return {
            'overall': 0,
            'breakdown': {name: 0 for name in DEFAULT_WEIGHTS},
        }

    metrics = calculate_metrics(text1, text2, max_text_length)
    return {
        'overall': calculate_similarity(text1, text2, weights, max_text_length),
        'breakdown': {name: _to_percent(metrics[name]) for name in DEFAULT_WEIGHTS},
    }


def compare_code(code1, code2, language="javascript", weights=None, max_text_length=None):
    """
    Similarity of two code snippets with comments removed.
    """
    return calculate_similarity(
        clean_code(code1, language), clean_code(code2, language), weights, max_text_length)


def extract_common_phrases(text1, text2, min_length=5):
    """
    Word phrases (min_length words down to 3) found in both texts.
    Longer phrases come first; at most MAX_COMMON_PHRASES are returned.
    """
    words1 = tokenize(text1)
    words2 = tokenize(text2)
    common_phrases = []

    for length in range(min_length, 2, -1):
        phrases2 = set(generate_ngrams(words2, length))
        for phrase in generate_ngrams(words1, length):
            if phrase in phrases2 and phrase not in common_phrases:
                common_phrases.append(phrase)

    return common_phrases[:MAX_COMMON_PHRASES]


def find_similar_items(target_text, items, threshold=DEFAULT_THRESHOLD, weights=None,
                       max_text_length=None, strip_code_comments=False, should_stop=None):
    """
    Compares target_text with every item and returns copies of the items
    scoring at least threshold, each with a 'similarity' key, highest first.
    The caller leaves the target itself out of items.
    """
    weights = _check_weights(weights)
    results = []

    for item in items:
        if should_stop is not None and should_stop():
            raise ScanCancelled("similar item search cancelled")

        similarity = calculate_similarity(
            target_text, item_text(item, strip_code_comments), weights, max_text_length)

        if similarity >= threshold:
            match = dict(item)
            match['similarity'] = similarity
            results.append(match)

    # sort is stable, equal scores keep item order
    results.sort(key=lambda x: x['similarity'], reverse=True)
    return results


def find_similar_to_item(target_item, items, threshold=DEFAULT_THRESHOLD, **kwargs):
    """
    find_similar_items for an item of the collection itself, skipping it.
    """
    others = [item for item in items if item.get('id') != target_item.get('id')]
    return find_similar_items(
        item_text(target_item, kwargs.get('strip_code_comments', False)), others, threshold, **kwargs)


def find_all_similar_pairs(items, threshold=DEFAULT_THRESHOLD, weights=None, max_text_length=None,
                           strip_code_comments=False, should_stop=None, progress=False):
    """
    Compares every unordered pair of items once.
    Returns the pairs scoring at least threshold, highest first.
    """
    if not isinstance(items, list):
        raise TypeError(f"items must be a list, got {type(items).__name__}")

    weights = _check_weights(weights)
    texts = [item_text(item, strip_code_comments) for item in items]
    pairs = []

    for i in tqdm(range(len(items)), desc="Comparing items", unit="item", disable=not progress):
        if should_stop is not None and should_stop():
            raise ScanCancelled(f"pairwise scan cancelled after {i} of {len(items)} items")

        for j in range(i + 1, len(items)):
            similarity = calculate_similarity(texts[i], texts[j], weights, max_text_length)

            if similarity >= threshold:
                pairs.append({
                    'item1': items[i],
                    'item2': items[j],
                    'similarity': similarity,
                })

    pairs.sort(key=lambda x: x['similarity'], reverse=True)
    return pairs
