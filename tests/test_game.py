import random
import threading
from collections import Counter

import pytest
from termo.config import DEFAULT_MAX_ATTEMPTS, MAX_GUESS_LENGTH, TOKEN_MAX_AGE
from termo.game import (
    ROUNDS, InvalidGuessError, Round, RoundOverError, compare_guess, create_round,
    is_valid_guess, issue_token, normalize, prune_rounds, round_public_state, share_text,
    verify_token,
)

C, P, A = "correct", "present", "absent"


def statuses(feedback):
    return [fb.status for fb in feedback]


def letters(feedback):
    return [fb.letter for fb in feedback]


# --- golden comparisons (duplicates, variable lengths) ---
@pytest.mark.parametrize("guess,target,expected", [
    ("PAPER", "APPLE", [P, P, C, P, A]),
    ("ADELE", "ADELE", [C, C, C, C, C]),
    ("CHER", "ADELE", [A, A, C, A, A]),
    ("AB", "ABCDE", [C, C, A, A, A]),
    ("LLLL", "LULU", [C, A, C, A]),
    ("EEEEE", "ADELE", [A, A, C, A, C]),
    ("ELLE", "LEEL", [P, P, P, P]),
    ("ADELES", "ADELE", [C, C, C, C, C]),
    ("SIA", "ABBA", [A, A, P, A]),
    ("THE WHO", "THE KILLERS", [C, C, C, C, A, A, A, A, A, A, A]),
])
def test_compare_golden(guess, target, expected):
    assert statuses(compare_guess(guess, target)) == expected


def test_compare_letters_follow_guess_and_pad_to_target():
    fb = compare_guess("CHER", "ADELE")
    assert letters(fb) == ["C", "H", "E", "R", ""]


def test_compare_truncates_long_guess():
    fb = compare_guess("QUEENS", "QUEEN")
    assert len(fb) == 5
    assert letters(fb) == list("QUEEN")


def test_compare_empty_inputs():
    assert compare_guess("ABC", "") == []
    fb = compare_guess("", "ADELE")
    assert statuses(fb) == [A] * 5
    assert letters(fb) == [""] * 5


def test_compare_whitespace_is_a_letter():
    # spaces are compared like any other character
    assert statuses(compare_guess("A B", "AB ")) == [C, P, P]


def test_compare_self_match_and_determinism():
    for target in ["ADELE", "THE BEATLES", "GUNS N' ROSES", "X"]:
        first = compare_guess(target, target)
        assert statuses(first) == [C] * len(target)
        assert letters(first) == list(target)
        assert compare_guess(target, target) == first


def test_compare_never_double_counts():
    rng = random.Random(1234)
    alphabet = "AB E"
    for _ in range(300):
        target = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 8)))
        guess = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 10)))
        fb = compare_guess(guess, target)
        assert len(fb) == len(target)
        hits = Counter(f.letter for f in fb if f.status != A)
        available = Counter(target)
        for letter, n in hits.items():
            assert n <= available[letter]


# --- validation & normalization ---
@pytest.mark.parametrize("text,expected", [
    ("", False),
    ("A", True),
    ("A" * 60, True),
    ("A" * 61, False),
    ("A" * 60 + "   ", True),
    (" " + "A" * 60, False),
    ("   ", False),
    ("AC/DC", False),
    ("GUNS N' ROSES", True),
    ("the beatles", True),
    ("EARTH, WIND & FIRE", True),
    ("JAY-Z (LIVE)", True),
    ("WHAM!", False),
    ("SIGUR RÓS", False),
    ("MAROON 5", False),
    ("BLINK?", False),
    ("ß", False),
    ("ﬁ", False),
    ("ı", False),
    ("ß" * 31, False),
])
def test_is_valid_guess(text, expected):
    assert is_valid_guess(text) is expected


def test_is_valid_guess_rejects_non_strings():
    assert is_valid_guess(None) is False


def test_normalize():
    assert normalize("  the beatles  ") == "THE BEATLES"
    assert normalize(normalize("  the beatles  ")) == normalize("  the beatles  ")
    assert normalize("") == ""


# --- rounds ---
def test_round_win_on_second_guess():
    rnd = Round(round_id="R1", target="ADELE", max_attempts=6)
    rnd.submit_guess("CHER")
    assert rnd.status == "playing"
    attempt = rnd.submit_guess("adele")
    assert rnd.status == "won"
    assert rnd.attempts_used == 2
    assert attempt.guess == "ADELE"
    assert statuses(attempt.feedback) == [C] * 5


def test_round_target_is_normalized():
    rnd = Round(round_id="R2", target="  Bruno Mars ")
    assert rnd.target == "BRUNO MARS"
    rnd.submit_guess(" bruno mars")
    assert rnd.status == "won"


def test_round_lost_after_max_attempts():
    rnd = Round(round_id="R3", target="QUEEN", max_attempts=3)
    for guess in ["ABBA", "TOTO", "HEART"]:
        rnd.submit_guess(guess)
    assert rnd.status == "lost"
    assert rnd.attempts_used == 3
    with pytest.raises(RoundOverError):
        rnd.submit_guess("QUEEN")
    assert rnd.attempts_used == 3


def test_round_invalid_guess_records_nothing():
    rnd = Round(round_id="R4", target="ACDC")
    with pytest.raises(InvalidGuessError):
        rnd.submit_guess("AC/DC")
    with pytest.raises(ValueError):
        rnd.submit_guess("")
    assert rnd.attempts == []
    assert rnd.status == "playing"


def test_round_default_attempt_budget():
    assert Round(round_id="R5", target="SIA").max_attempts == DEFAULT_MAX_ATTEMPTS == 6


def test_share_text_artist_round():
    rnd = Round(round_id="R6", target="ADELE")
    rnd.submit_guess("CHER")
    rnd.submit_guess("ADELE")
    assert share_text(rnd) == "🎵 Termo Musical 2/6\n\n⬜⬜🟩⬜⬜\n🟩🟩🟩🟩🟩\n"


def test_share_text_lost_song_round():
    rnd = Round(round_id="R7", target="HELLO", mode="song", artist="Adele", max_attempts=1)
    rnd.submit_guess("HELP")
    assert rnd.status == "lost"
    assert share_text(rnd) == "🎵 Termo Musical - Modo Música X/1\n🎤 Artista: Adele\n\n🟩🟩🟩⬜⬜\n"


def test_create_round_registers_and_signs():
    rnd, token = create_round("Coldplay", max_attempts=4, source="daily")
    assert ROUNDS[rnd.round_id] is rnd
    assert rnd.max_attempts == 4
    assert verify_token(token, rnd.round_id)
    assert not verify_token(token, "SOMEOTHER")
    assert not verify_token("garbage", rnd.round_id)


@pytest.mark.parametrize("max_attempts", [None, 0, 11, "6"])
def test_create_round_falls_back_to_default_attempts(max_attempts):
    rnd, _ = create_round("Coldplay", max_attempts=max_attempts)
    assert rnd.max_attempts == DEFAULT_MAX_ATTEMPTS


def test_create_round_rejects_blank_target():
    with pytest.raises(ValueError):
        create_round("   ")


def test_public_state_hides_answer_until_over():
    rnd = Round(round_id="R8", target="SIA", max_attempts=1)
    assert round_public_state(rnd)["answer"] is None
    rnd.submit_guess("ABBA")
    state = round_public_state(rnd)
    assert state["answer"] == "SIA"
    assert state["target_length"] == 3
    assert state["attempts"][0]["guess"] == "ABBA"


def test_issue_token_is_stable_per_round():
    assert verify_token(issue_token("ABCDEFGH"), "ABCDEFGH")


def test_case_folding_cannot_stretch_a_guess():
    rnd = Round(round_id="R9", target="ADELE")
    with pytest.raises(InvalidGuessError):
        rnd.submit_guess("ß" * 31)
    rnd.submit_guess("a" * MAX_GUESS_LENGTH)
    assert all(len(a.guess) <= MAX_GUESS_LENGTH for a in rnd.attempts)


def test_expired_rounds_are_pruned():
    old, _ = create_round("Queen")
    fresh, _ = create_round("Abba")
    old.created_at -= TOKEN_MAX_AGE + 1

    assert prune_rounds() >= 1
    assert old.round_id not in ROUNDS
    assert ROUNDS[fresh.round_id] is fresh


def test_create_round_prunes_registry():
    old, _ = create_round("Queen")
    old.created_at -= TOKEN_MAX_AGE + 1
    create_round("Abba")
    assert old.round_id not in ROUNDS


def test_prune_rounds_with_explicit_clock():
    rnd, _ = create_round("Toto")
    prune_rounds(now=rnd.created_at + TOKEN_MAX_AGE)
    assert rnd.round_id in ROUNDS
    prune_rounds(now=rnd.created_at + TOKEN_MAX_AGE + 1)
    assert rnd.round_id not in ROUNDS


def test_concurrent_guesses_respect_attempt_budget():
    rnd = Round(round_id="R10", target="QUEEN", max_attempts=3)
    start = threading.Barrier(12)
    outcomes = []

    def play():
        start.wait()
        try:
            rnd.submit_guess("ABBA")
            outcomes.append("ok")
        except RoundOverError:
            outcomes.append("over")

    threads = [threading.Thread(target=play) for _ in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert rnd.attempts_used == 3
    assert rnd.status == "lost"
    assert outcomes.count("ok") == 3
    assert outcomes.count("over") == 9
