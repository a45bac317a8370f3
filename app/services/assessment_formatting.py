"""
Assessment response formatting

Turns stored responses into display text for the completion screen, the
summary endpoint, report prompts and PDFs. Selected options are stored as
option ids; older rows stored list positions, so lookups fall back to the
option's index in sort order.
"""

from typing import Any, Iterable, Optional

from ..models_assessment import AssessmentQuestion, AssessmentResponse

NO_RESPONSE = "No response provided"
NO_SELECTION = "No selection made"


def coerce_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def build_option_lookup(question: AssessmentQuestion) -> tuple[dict[int, str], dict[int, str]]:
    """(by_id, by_index) option text maps for a question"""
    by_id: dict[int, str] = {}
    by_index: dict[int, str] = {}
    for index, option in enumerate(question.options or []):
        if option.id is not None:
            by_id[option.id] = option.option_text
        by_index[index] = option.option_text
    return by_id, by_index


def resolve_selected_options(
    selected: Optional[Iterable[Any]],
    by_id: dict[int, str],
    by_index: dict[int, str],
    allow_index_fallback: bool = True,
) -> tuple[list[str], list[int]]:
    """Resolve selected option ids to text; returns (texts, missing_ids)"""
    texts: list[str] = []
    missing: list[int] = []
    for raw in selected or []:
        option_id = coerce_int(raw)
        if option_id is None:
            continue
        if option_id in by_id:
            texts.append(by_id[option_id])
        elif allow_index_fallback and option_id in by_index:
            texts.append(by_index[option_id])
        else:
            missing.append(option_id)
    return texts, missing


def format_response(question: AssessmentQuestion, response: Optional[AssessmentResponse]) -> dict:
    """
    Display text for one answer.

    Returns a dict with primaryText, and optionally secondaryText (rating
    label) and missingOptionIds (selected ids that no longer exist).
    """
    if response is None:
        return {"primaryText": NO_RESPONSE}

    if response.response_text:
        return {"primaryText": response.response_text}

    if response.rating_value is not None:
        result = {"primaryText": str(response.rating_value)}
        labels = question.rating_labels
        if isinstance(labels, list):
            index = response.rating_value - (question.rating_min or 0)
            if 0 <= index < len(labels) and labels[index]:
                result["secondaryText"] = labels[index]
        return result

    if response.selected_options:
        by_id, by_index = build_option_lookup(question)
        texts, missing = resolve_selected_options(response.selected_options, by_id, by_index)
        result = {"primaryText": ", ".join(texts) if texts else NO_SELECTION}
        if missing:
            result["missingOptionIds"] = missing
        return result

    return {"primaryText": NO_RESPONSE}


def display_text(question: AssessmentQuestion, response: Optional[AssessmentResponse]) -> str:
    """Single-line answer text, e.g. '3 (Moderately)'"""
    formatted = format_response(question, response)
    if formatted.get("secondaryText"):
        return f"{formatted['primaryText']} ({formatted['secondaryText']})"
    return formatted["primaryText"]


def format_assignment_text(sections, responses_by_question: dict[int, AssessmentResponse]) -> str:
    """Plain-text questionnaire dump, section by section, used for report prompts"""
    blocks = []
    for section in sections:
        lines = [f"## {section.title}"]
        if section.report_mapping:
            lines.append(f"(Report section: {section.report_mapping})")
        for question in section.questions:
            answer = display_text(question, responses_by_question.get(question.id))
            lines.append(f"Q: {question.question_text}\nA: {answer}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
