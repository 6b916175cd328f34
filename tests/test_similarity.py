from chapterscout_app.search.similarity import best_similarity, title_similarity


def test_exact_match_ignores_case_and_whitespace():
    assert title_similarity("One Piece", "one piece") == 100
    assert title_similarity("  Solo Leveling ", "solo leveling") == 100


def test_identical_titles_score_100():
    for title in ("Berserk", "The Beginning After the End", "Omniscient Reader"):
        assert title_similarity(title, title) == 100


def test_containment_scores_90():
    assert title_similarity("Solo Leveling", "Solo Leveling: Ragnarok") == 90
    assert title_similarity("Solo Leveling: Ragnarok", "Solo Leveling") == 90


def test_token_overlap_with_length_bonus():
    # tokens: {tower, god} vs {god, high, school}; "tower" has no partner
    # 1 / 3 * 100 + max(0, 20 - |12 - 15|) = 33.33 + 17
    score = title_similarity("tower of god", "god high school")
    assert 50.3 < score < 50.4


def test_score_is_clamped_to_100():
    assert title_similarity("blossoming blade return", "return blossoming blade") == 100


def test_no_shared_tokens_scores_only_length_bonus():
    assert title_similarity("Naruto", "Bleach") == 20
    assert title_similarity("Vinland Saga", "Monster Hunter") == 18


def test_degenerate_inputs_score_zero():
    assert title_similarity("", "") == 0
    assert title_similarity("", "Naruto") == 0
    assert title_similarity("a b", "c d") == 0


def test_best_similarity_takes_max_over_known_titles():
    known = ["Na Honjaman Level Up", "Solo Leveling"]
    assert best_similarity(known, "solo leveling") == 100
    assert best_similarity([], "Solo Leveling") == 0
