import os, sys
sys.path.append(os.path.join(os.path.dirname(__file__), 'src'))
import threading

import pytest

from detector import (jaccard_similarity, cosine_similarity_tf, ngram_similarity,
                      character_similarity, longest_common_subsequence, lcs_similarity,
                      calculate_similarity, calculate_detailed_similarity, compare_code,
                      extract_common_phrases, find_similar_items, find_similar_to_item,
                      find_all_similar_pairs, ScanCancelled)

FOX = "The quick brown fox jumps over the lazy dog"
FAST_FOX = "A fast brown fox leaps over a sleepy dog"
COOKING = "completely unrelated content about cooking recipes"
PHYSICS = "quantum physics lecture notes on entanglement"

SAMPLES = [
    FOX,
    FAST_FOX,
    COOKING,
    PHYSICS,
    "hi there",
    "hi there now",
    "Write a detailed summary of the quarterly sales report",
    "",
]


def make_item(item_id, text, **extra):
    item = {'id': item_id, 'text': text, 'title': item_id, 'type': 'prompt',
            'created_by': 'u1', 'created_at': None, 'tags': []}
    item.update(extra)
    return item


def test_jaccard_similarity():
    assert jaccard_similarity(["a", "b", "b"], ["b", "c"]) == pytest.approx(1 / 3)
    assert jaccard_similarity([], []) == 0


def test_cosine_similarity_counts_duplicates():
    assert cosine_similarity_tf(["apple", "pear"], ["pear", "apple"]) == pytest.approx(1.0)
    # (2, 1) . (1, 0) / (sqrt(5) * 1)
    assert cosine_similarity_tf(["apple", "apple", "pear"], ["apple"]) == pytest.approx(2 / 5 ** 0.5)
    assert cosine_similarity_tf(["apple"], ["pear"]) == 0
    assert cosine_similarity_tf([], ["pear"]) == 0
    assert cosine_similarity_tf([], []) == 0


def test_ngram_similarity_short_input():
    assert ngram_similarity(["there"], ["there", "now"]) == 0
    assert ngram_similarity(["one", "two", "three"], ["one", "two", "three"]) == 1


def test_character_similarity():
    assert character_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)
    assert character_similarity("", "") == 0


def test_longest_common_subsequence():
    assert longest_common_subsequence("abcbdab", "bdcaba") == 4
    assert longest_common_subsequence("bdcaba", "abcbdab") == 4
    assert longest_common_subsequence("", "abc") == 0
    assert lcs_similarity("hi there", "hi there now") == pytest.approx(8 / 12)


def test_identical_texts_score_100():
    assert calculate_similarity("The quick brown fox jumps", "The quick brown fox jumps") == 100
    assert calculate_similarity("a", "a") == 100
    assert calculate_similarity("Hello, World!", "hello world") == 100


def test_empty_texts_score_0():
    assert calculate_similarity("", "") == 0
    assert calculate_similarity("", "anything") == 0
    assert calculate_similarity(None, "anything") == 0
    # No token longer than 2 characters
    assert calculate_similarity("to be", "is it") == 0


def test_paraphrase_scores_mid_range():
    paraphrase = calculate_similarity(FOX, FAST_FOX)
    unrelated = calculate_similarity(COOKING, PHYSICS)

    assert unrelated < 15
    assert unrelated < paraphrase < 100
    assert 30 <= paraphrase <= 55


def test_short_texts_do_not_crash():
    detailed = calculate_detailed_similarity("hi there", "hi there now")

    assert detailed['breakdown'] == {
        'jaccard': 50,
        'cosine': 71,
        'ngram': 0,
        'character': 67,
        'lcs': 67,
    }
    assert detailed['overall'] == 50
    assert calculate_similarity("hi there", "hi there now") == 50


@pytest.mark.parametrize("text1", SAMPLES)
@pytest.mark.parametrize("text2", SAMPLES)
def test_similarity_is_symmetric_and_bounded(text1, text2):
    score = calculate_similarity(text1, text2)

    assert score == calculate_similarity(text2, text1)
    assert 0 <= score <= 100
    assert isinstance(score, int)


def test_similarity_is_repeatable():
    scores = {calculate_similarity(FOX, FAST_FOX) for _ in range(5)}
    assert len(scores) == 1


def test_custom_weights():
    weights = {'jaccard': 1.0, 'cosine': 0.0, 'ngram': 0.0, 'character': 0.0, 'lcs': 0.0}
    # {brown, fox, over, dog} shared out of 11 distinct tokens
    assert calculate_similarity(FOX, FAST_FOX, weights=weights) == 36


def test_invalid_weights():
    with pytest.raises(ValueError):
        calculate_similarity(FOX, FAST_FOX, weights={'jaccard': 1.0})


def test_max_text_length():
    assert calculate_similarity(FOX, FAST_FOX, max_text_length=None) == calculate_similarity(FOX, FAST_FOX)
    assert 0 <= calculate_similarity(FOX, FAST_FOX, max_text_length=10) <= 100


def test_detailed_similarity_matches_overall():
    detailed = calculate_detailed_similarity(FOX, FAST_FOX)

    assert detailed['overall'] == calculate_similarity(FOX, FAST_FOX)
    assert set(detailed['breakdown']) == {'jaccard', 'cosine', 'ngram', 'character', 'lcs'}
    assert detailed['breakdown']['jaccard'] == 36
    assert detailed['breakdown']['ngram'] == 0
    assert all(0 <= value <= 100 for value in detailed['breakdown'].values())


def test_detailed_similarity_empty():
    detailed = calculate_detailed_similarity("", FOX)
    assert detailed['overall'] == 0
    assert set(detailed['breakdown'].values()) == {0}


def test_compare_code_ignores_comments():
    code1 = "// add two numbers\nfunction add(a, b) {\n  return a + b;\n}"
    code2 = "/* sums values */ function add(a, b) { return a + b; }"
    assert compare_code(code1, code2) == 100

    py1 = "def area(radius):\n    # circle\n    return 3.14 * radius * radius"
    py2 = "def area(radius):\n    return 3.14 * radius * radius  # pi r squared"
    assert compare_code(py1, py2, language="python") == 100


def test_extract_common_phrases():
    phrases = extract_common_phrases("the quick brown fox jumps over", "the quick brown fox runs under")

    assert "the quick brown" in phrases
    assert phrases == ["the quick brown fox", "the quick brown", "quick brown fox"]


def test_extract_common_phrases_capped():
    text = " ".join(f"word{i}" for i in range(40))
    phrases = extract_common_phrases(text, text)

    assert len(phrases) == 10
    assert all(len(phrase.split()) == 5 for phrase in phrases)


def test_extract_common_phrases_nothing_shared():
    assert extract_common_phrases(COOKING, PHYSICS) == []
    assert extract_common_phrases("", PHYSICS) == []


def test_find_all_similar_pairs():
    item_a = make_item('a', "Write a detailed summary of the quarterly sales report for the marketing team")
    item_b = make_item('b', "Write a detailed summary of the quarterly sales report for the finance team")
    item_c = make_item('c', PHYSICS)

    pairs = find_all_similar_pairs([item_a, item_b, item_c], 30)

    assert len(pairs) == 1
    assert pairs[0]['item1'] is item_a
    assert pairs[0]['item2'] is item_b
    assert pairs[0]['similarity'] >= 70


def test_find_all_similar_pairs_sorted_and_stable():
    items = [
        make_item('1', FOX),
        make_item('2', FOX),
        make_item('3', FAST_FOX),
        make_item('4', FOX),
    ]

    pairs = find_all_similar_pairs(items, 0)
    scores = [pair['similarity'] for pair in pairs]

    assert len(pairs) == 6
    assert scores == sorted(scores, reverse=True)
    # The three identical pairs keep their generation order
    assert [(p['item1']['id'], p['item2']['id']) for p in pairs[:3]] == [('1', '2'), ('1', '4'), ('2', '4')]


def test_threshold_monotonicity():
    items = [make_item(str(i), text) for i, text in enumerate(SAMPLES)]

    def pair_ids(threshold):
        return {(p['item1']['id'], p['item2']['id']) for p in find_all_similar_pairs(items, threshold)}

    assert pair_ids(10) >= pair_ids(30) >= pair_ids(50) >= pair_ids(90)


def test_find_all_similar_pairs_cancelled():
    items = [make_item('1', FOX), make_item('2', FAST_FOX)]
    stop = threading.Event()
    stop.set()

    with pytest.raises(ScanCancelled):
        find_all_similar_pairs(items, should_stop=stop.is_set)


def test_find_all_similar_pairs_requires_list():
    with pytest.raises(TypeError):
        find_all_similar_pairs(make_item('1', FOX))


def test_find_all_similar_pairs_strips_code_comments():
    item_a = make_item('a', "x = compute(total)  # running total\ny = x * rate", language='python')
    item_b = make_item('b', "x = compute(total)  # different note entirely\ny = x * rate", language='python')

    assert find_all_similar_pairs([item_a, item_b], strip_code_comments=True)[0]['similarity'] == 100
    assert find_all_similar_pairs([item_a, item_b], 0)[0]['similarity'] < 100


def test_find_similar_items():
    corpus = [make_item('1', COOKING), make_item('2', FAST_FOX), make_item('3', FOX)]

    matches = find_similar_items(FOX, corpus, 30)

    assert [match['id'] for match in matches] == ['3', '2']
    assert matches[0]['similarity'] == 100
    assert matches[0]['title'] == '3'
    # Inputs are not mutated
    assert 'similarity' not in corpus[2]


def test_find_similar_to_item_excludes_target():
    target = make_item('1', FOX)
    corpus = [target, make_item('2', FOX), make_item('3', PHYSICS)]

    matches = find_similar_to_item(target, corpus)

    assert [match['id'] for match in matches] == ['2']


def test_find_similar_items_cancelled():
    with pytest.raises(ScanCancelled):
        find_similar_items(FOX, [make_item('1', FOX)], should_stop=lambda: True)
