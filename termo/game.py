# Core game logic for Termo Musical and in-memory round management.
# Implements Wordle-style marking over variable-length targets:
# - Feedback is always sized to the target; guess characters past the target
#   are ignored and target slots past the guess stay empty and 'absent'.
# - Two-pass algorithm: first mark exact positions, then let each remaining
#   guess letter claim the earliest unclaimed target slot with the same letter.
# - A round is won when the normalized guess equals the normalized target and
#   lost once the attempt budget is spent.

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging
import re
import secrets
import threading
import time
from itsdangerous import TimestampSigner, BadSignature
from .config import DEFAULT_MAX_ATTEMPTS, MAX_GUESS_LENGTH, SECRET_KEY, TOKEN_MAX_AGE
from .models import GuessAttempt, LetterFeedback

logger = logging.getLogger(__name__)

_signer = TimestampSigner(SECRET_KEY)

# Letters, whitespace and the punctuation found in most artist/song names.
_ALLOWED = re.compile(r"[A-Za-z\s&'(),-]+")

_EMOJI = {"correct": "🟩", "present": "🟨", "absent": "⬜"}


class InvalidGuessError(ValueError):
    pass


class RoundOverError(ValueError):
    pass


def normalize(text: str) -> str:
    return text.upper().strip()


def is_valid_guess(text: str) -> bool:
    """
    True when `text` may be submitted as a guess.

    Trailing whitespace does not count towards the length, which must be
    between 1 and MAX_GUESS_LENGTH. Every character must be an ASCII letter
    (either case, checked before any case folding), whitespace or one of & ' ( ) , -
    """
    if not isinstance(text, str):
        return False
    length = len(text.rstrip())
    if length < 1 or length > MAX_GUESS_LENGTH:
        return False
    return _ALLOWED.fullmatch(text) is not None


def compare_guess(guess: str, target: str) -> List[LetterFeedback]:
    """
    Compare an already normalized guess against an already normalized target.

    Examples:
      compare_guess("PAPER", "APPLE") -> present, present, correct, present, absent
      compare_guess("AB", "ABCDE")    -> correct, correct, absent, absent, absent
    """
    n = len(target)
    letters = [guess[i] if i < len(guess) else "" for i in range(n)]
    statuses = ["absent"] * n
    consumed = [False] * n

    # First pass: exact positions
    for i in range(n):
        if letters[i] and letters[i] == target[i]:
            statuses[i] = "correct"
            consumed[i] = True

    # Second pass: earliest unclaimed occurrence elsewhere in the target
    for i in range(min(n, len(guess))):
        if statuses[i] == "correct":
            continue
        for j in range(n):
            if not consumed[j] and target[j] == letters[i]:
                statuses[i] = "present"
                consumed[j] = True
                break

    return [LetterFeedback(letter=letters[i], status=statuses[i]) for i in range(n)]


@dataclass
class Round:
    round_id: str
    target: str
    mode: str = "artist"
    source: str = "practice"
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    hints: List[str] = field(default_factory=list)
    image: Optional[str] = None
    preview: Optional[str] = None
    artist: Optional[str] = None
    attempts: List[GuessAttempt] = field(default_factory=list)
    status: str = "playing"  # "playing"|"won"|"lost"
    created_at: float = field(default_factory=time.time)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self):
        self.target = normalize(self.target)

    @property
    def attempts_used(self) -> int:
        return len(self.attempts)

    @property
    def over(self) -> bool:
        return self.status != "playing"

    def submit_guess(self, raw_guess: str) -> GuessAttempt:
        with self._lock:
            return self._submit(raw_guess)

    def _submit(self, raw_guess: str) -> GuessAttempt:
        if self.over:
            raise RoundOverError("Round already over.")
        if not is_valid_guess(raw_guess):
            raise InvalidGuessError(
                f"Invalid guess: use letters, spaces and & ' ( ) , - only "
                f"(1-{MAX_GUESS_LENGTH} characters)."
            )

        guess = normalize(raw_guess)
        attempt = GuessAttempt(guess=guess, feedback=compare_guess(guess, self.target))
        self.attempts.append(attempt)

        if guess == self.target:
            self.status = "won"
        elif self.attempts_used >= self.max_attempts:
            self.status = "lost"

        if self.over:
            logger.info(f"Round {self.round_id} {self.status} after {self.attempts_used} attempt(s)")
        return attempt


def share_text(rnd: Round) -> str:
    result = f"{rnd.attempts_used}/{rnd.max_attempts}" if rnd.status == "won" else f"X/{rnd.max_attempts}"
    if rnd.mode == "song":
        text = f"🎵 Termo Musical - Modo Música {result}\n"
        text += f"🎤 Artista: {rnd.artist}\n\n"
    else:
        text = f"🎵 Termo Musical {result}\n\n"
    for attempt in rnd.attempts:
        text += "".join(_EMOJI[fb.status] for fb in attempt.feedback) + "\n"
    return text


# In-memory round registry.
ROUNDS: Dict[str, Round] = {}


def new_round_id() -> str:
    alphabet = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    return "".join(secrets.choice(alphabet) for _ in range(8))


def prune_rounds(now: Optional[float] = None) -> int:
    """Drop rounds whose tokens can no longer be verified. Returns how many went."""
    now = time.time() if now is None else now
    expired = [rid for rid, rnd in list(ROUNDS.items()) if now - rnd.created_at > TOKEN_MAX_AGE]
    for rid in expired:
        ROUNDS.pop(rid, None)
    if expired:
        logger.debug(f"Pruned {len(expired)} expired round(s)")
    return len(expired)


def create_round(target: str, max_attempts: Optional[int] = None, **details) -> Tuple[Round, str]:
    if not normalize(target):
        raise ValueError("Round target is empty.")
    prune_rounds()
    rid = new_round_id()
    ma = max_attempts if (isinstance(max_attempts, int) and 1 <= max_attempts <= 10) else DEFAULT_MAX_ATTEMPTS
    rnd = Round(round_id=rid, target=target, max_attempts=ma, **details)
    ROUNDS[rid] = rnd
    logger.debug(f"Created round {rid} ({rnd.mode}/{rnd.source}, {len(rnd.target)} chars)")
    return rnd, issue_token(rid)


def issue_token(round_id: str) -> str:
    return _signer.sign(round_id.encode()).decode()


def verify_token(token: str, round_id: str) -> bool:
    try:
        data = _signer.unsign(token, max_age=TOKEN_MAX_AGE).decode()
        return data == round_id
    except BadSignature:
        return False


def round_public_state(rnd: Round) -> dict:
    return {
        "round_id": rnd.round_id,
        "mode": rnd.mode,
        "source": rnd.source,
        "status": rnd.status,
        "max_attempts": rnd.max_attempts,
        "target_length": len(rnd.target),
        "attempts": [a.model_dump() for a in rnd.attempts],
        "hints": list(rnd.hints),
        "answer": rnd.target if rnd.over else None,
    }
