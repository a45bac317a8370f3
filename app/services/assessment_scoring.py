"""Assessment scoring: per-response scores, section subtotals and the assignment total"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models_assessment import AssessmentAssignment, AssessmentQuestion, AssessmentResponse
from .assessment_formatting import coerce_int

logger = logging.getLogger(__name__)


def score_response(question: AssessmentQuestion, response: AssessmentResponse) -> Optional[float]:
    """
    Score of one answer: the summed option_value of the selected options
    (resolved by id, else by index in sort order), or the rating value.
    """
    if response.selected_options:
        options = list(question.options or [])
        by_id = {option.id: option for option in options}
        total = 0.0
        matched = False
        for raw in response.selected_options:
            option_id = coerce_int(raw)
            if option_id is None:
                continue
            option = by_id.get(option_id)
            if option is None and 0 <= option_id < len(options):
                option = options[option_id]
            if option is not None and option.option_value is not None:
                total += option.option_value
                matched = True
        return total if matched else None

    if response.rating_value is not None:
        return float(response.rating_value)

    return None


def counts_toward_total(question: AssessmentQuestion) -> bool:
    return bool(question.contributes_to_score or (question.section and question.section.is_scoring))


def calculate_scores(assignment: AssessmentAssignment, persist: bool = True) -> dict:
    """
    Recompute the score of every response and the assignment total.
    With persist, score_value and total_score are written onto the ORM
    objects and the caller commits. Without it nothing is modified.

    Returns:
        {"totalScore": float | None, "sectionScores": [{"sectionId", "title", "score"}]}
    """
    section_totals: dict[int, float] = {}
    total = 0.0
    scored_any = False

    for response in assignment.responses:
        question = response.question
        if question is None:
            continue
        score = score_response(question, response)
        if persist:
            response.score_value = score
        if score is None or not counts_toward_total(question):
            continue
        total += score
        scored_any = True
        section_totals[question.section_id] = section_totals.get(question.section_id, 0.0) + score

    total_score = total if scored_any else None
    if persist:
        assignment.total_score = total_score

    section_scores = [
        {"sectionId": section.id, "title": section.title, "score": section_totals[section.id]}
        for section in (assignment.template.sections if assignment.template else [])
        if section.id in section_totals
    ]
    return {"totalScore": total_score, "sectionScores": section_scores}


def recalculate_all(db: Session, assignment_id: Optional[int] = None) -> int:
    """Recalculate stored scores for one assignment or all of them. Returns assignments processed."""
    query = db.query(AssessmentAssignment)
    if assignment_id is not None:
        query = query.filter(AssessmentAssignment.id == assignment_id)

    count = 0
    for assignment in query.all():
        result = calculate_scores(assignment)
        logger.info(f"✅ Assignment {assignment.id}: total score {result['totalScore']}")
        count += 1
    db.commit()
    return count
