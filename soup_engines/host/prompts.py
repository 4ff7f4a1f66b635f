"""Prompt text for the riddle host."""
from __future__ import annotations

HOST_SYSTEM_PROMPT = (
    "You are the host of a lateral-thinking riddle game (\"turtle soup\"). "
    "You know the hidden truth of the riddle; the players only know the opening. "
    "Players ask yes/no questions to reconstruct the truth. "
    "Answer every question with exactly one of: yes, no, irrelevant, indeterminate. "
    "You may add one short hint after the token when it helps the players without "
    "revealing the truth. Never state the truth outright unless the players have "
    "already described it. When the players have solved the riddle, congratulate them "
    "and reveal the full story."
)

CANONICAL_ANSWERS = ("yes", "no", "irrelevant", "indeterminate")


def build_context_message(truth: str, opening: str) -> str:
    return "\n".join(
        [
            "Below are the TRUTH and the OPENING of this riddle (only you can see them, the players cannot):",
            "",
            f"[TRUTH]:\n{truth}",
            "",
            f"[OPENING]:\n{opening}",
            "",
            "The conversation so far follows (if any):",
        ]
    )


def build_question_directive(question: str) -> str:
    return (
        f"The players' new question or request is: {question}\n"
        f"Answer with exactly one of {', '.join(CANONICAL_ANSWERS)}, "
        "optionally followed by one brief hint."
    )


def build_progress_directive() -> str:
    return (
        "The players ask how close they are to the truth. "
        "Reply with exactly one line of the form `Progress: N%` where N is an integer "
        "from 0 to 100 estimating how much of the truth they have uncovered. "
        "Output nothing else."
    )
