"""
assessment_scorer.py - Grading rules shared by evaluate and finish

Provides:
- sanitize_question_type(raw) - Collapse raw bank types into "mcq" / "text"
- evaluate_text_answer(answer, spec) - Fuzzy grading of free-text answers
- score_response(question, options, text_spec, answer, skipped) - One answer → ledger fields
"""

import math
import logging
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)

MCQ_TYPES = {"mcq", "image_mcq", "multiple_choice"}
TEXT_TYPES = {
    "text",
    "image_text",
    "short_text",
    "fill_blank",
    "fill-in-the-blank",
    "fill-in-the-blanks",
    "fill_in_blank",
    "fill_in_the_blanks",
}


def sanitize_question_type(raw_type: Optional[str]) -> Optional[str]:
    """Return "mcq", "text", or None for types the runner cannot present."""
    normalized = (raw_type or "").strip().lower()
    if normalized in MCQ_TYPES:
        return "mcq"
    if normalized in TEXT_TYPES:
        return "text"
    return None


def evaluate_text_answer(answer: Optional[str], spec: Optional[Dict[str, Any]]) -> bool:
    """Grade a free-text answer against its TextAnswerSpec.

    exact_match compares the whole string. Otherwise the answer is accepted
    when it contains the correct answer or any alternate, or when it hits at
    least half of the keywords (rounded up).
    """
    if not spec or not answer:
        return False
    correct_answer = spec.get("correct_answer") or ""
    if not correct_answer:
        return False

    case_sensitive = bool(spec.get("case_sensitive"))

    def norm(value: str) -> str:
        return value if case_sensitive else value.lower()

    user_answer = norm(answer)
    expected = norm(correct_answer)

    if spec.get("exact_match"):
        return user_answer == expected

    if expected in user_answer:
        return True

    for alternate in spec.get("alternate_answers") or []:
        if alternate and norm(str(alternate)) in user_answer:
            return True

    keywords = [str(k) for k in (spec.get("keywords") or []) if k]
    if not keywords:
        return False
    matched = sum(1 for k in keywords if norm(k) in user_answer)
    return matched >= math.ceil(len(keywords) / 2)


def _option_index(answer: Any) -> Optional[int]:
    if isinstance(answer, bool):
        return None
    if isinstance(answer, int):
        return answer
    if isinstance(answer, str) and answer.strip().lstrip("-").isdigit():
        return int(answer.strip())
    return None


def score_response(
    question: Optional[Dict[str, Any]],
    options: Optional[List[Dict[str, Any]]],
    text_spec: Optional[Dict[str, Any]],
    answer: Any,
    skipped: bool,
) -> Dict[str, Any]:
    """Score one answer.

    Returns {"answer_text", "correct", "module_id", "subject_id"}. An unknown
    question is never correct and has no module.
    """
    if question is None:
        return {"answer_text": None, "correct": False, "module_id": None, "subject_id": None}

    result: Dict[str, Any] = {
        "answer_text": None,
        "correct": False,
        "module_id": question.get("module_id"),
        "subject_id": question.get("subject_id"),
    }
    if skipped:
        return result

    qtype = sanitize_question_type(question.get("question_type"))
    if qtype == "mcq":
        ordered = sorted(options or [], key=lambda o: (o.get("order_index") or 0, o.get("id") or 0))
        index = _option_index(answer)
        if index is not None and 0 <= index < len(ordered):
            chosen = ordered[index]
            result["answer_text"] = chosen.get("option_text")
            result["correct"] = bool(chosen.get("is_correct"))
    elif qtype == "text":
        text = "" if answer is None else str(answer).strip()
        result["answer_text"] = text or None
        result["correct"] = evaluate_text_answer(text, text_spec)
    else:
        logger.warning(f"Scoring question {question.get('id')} of unsupported type {question.get('question_type')}")

    if not result["answer_text"]:
        result["correct"] = False
    return result
