"""Character-level comparison of a typed answer against the correct answer.

The alignment comes from a Longest Common Subsequence table. When two moves
are equally good during backtracking, the missing (insert) character is
emitted first, which keeps the output stable for a given pair of strings.
"""
import html
from typing import List

from .models import DiffKind, DiffSegment

CSS_CLASSES = {
    DiffKind.EQUAL: "sr-typein-correct",
    DiffKind.INSERT: "sr-typein-missing",
    DiffKind.DELETE: "sr-typein-incorrect",
}


def _lcs_table(user: str, correct: str) -> List[List[int]]:
    m, n = len(user), len(correct)
    table = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        for j in range(1, n + 1):
            if user[i - 1] == correct[j - 1]:
                table[i][j] = table[i - 1][j - 1] + 1
            else:
                table[i][j] = max(table[i - 1][j], table[i][j - 1])
    return table


def compute_diff(user_answer: str, correct_answer: str, case_sensitive: bool = False) -> List[DiffSegment]:
    """Aligns `user_answer` with `correct_answer`.

    Matching uses the case-folded strings unless `case_sensitive` is set;
    the emitted text always comes from the original strings. Equal runs carry
    the correct answer's characters.
    """
    compare_user = user_answer if case_sensitive else user_answer.lower()
    compare_correct = correct_answer if case_sensitive else correct_answer.lower()

    if compare_user == compare_correct:
        return [DiffSegment(kind=DiffKind.EQUAL, text=correct_answer)]

    # lower() can change length for a few characters (e.g. "İ"), fall back to
    # per-character folding so indices stay aligned with the originals
    if len(compare_user) != len(user_answer) or len(compare_correct) != len(correct_answer):
        compare_user = [c if case_sensitive else c.lower() for c in user_answer]
        compare_correct = [c if case_sensitive else c.lower() for c in correct_answer]

    table = _lcs_table(compare_user, compare_correct)

    steps = []
    i, j = len(user_answer), len(correct_answer)
    while i > 0 or j > 0:
        if i > 0 and j > 0 and compare_user[i - 1] == compare_correct[j - 1]:
            steps.append((DiffKind.EQUAL, correct_answer[j - 1]))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or table[i][j - 1] >= table[i - 1][j]):
            steps.append((DiffKind.INSERT, correct_answer[j - 1]))
            j -= 1
        else:
            steps.append((DiffKind.DELETE, user_answer[i - 1]))
            i -= 1
    steps.reverse()

    segments: List[DiffSegment] = []
    for kind, char in steps:
        if segments and segments[-1].kind == kind:
            segments[-1].text += char
        else:
            segments.append(DiffSegment(kind=kind, text=char))
    return segments


def is_answer_correct(user_answer: str, correct_answer: str, case_sensitive: bool = False) -> bool:
    """Exact match after trimming, optionally ignoring case."""
    if case_sensitive:
        return user_answer.strip() == correct_answer.strip()
    return user_answer.strip().lower() == correct_answer.strip().lower()


def changed_characters(segments: List[DiffSegment]) -> int:
    return sum(len(s.text) for s in segments if s.kind != DiffKind.EQUAL)


def edit_distance(segments: List[DiffSegment]) -> int:
    """Number of edits shown by the diff.

    A run of deletions next to a run of insertions reads as substitutions,
    so each change block costs the longer of its two sides.
    """
    distance = 0
    deleted = inserted = 0
    for segment in segments + [DiffSegment(kind=DiffKind.EQUAL, text="")]:
        if segment.kind == DiffKind.DELETE:
            deleted += len(segment.text)
        elif segment.kind == DiffKind.INSERT:
            inserted += len(segment.text)
        else:
            distance += max(deleted, inserted)
            deleted = inserted = 0
    return distance


def render_diff_html(segments: List[DiffSegment]) -> str:
    return "".join(
        f'<span class="{CSS_CLASSES[s.kind]}">{html.escape(s.text, quote=False)}</span>'
        for s in segments
    )
