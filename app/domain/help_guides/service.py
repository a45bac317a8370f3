"""
Help guide service

Guides with no practice are global and visible to everyone; practices may
add their own. The ask endpoint is a rule-based navigation assistant: it
scores each guide's keyword phrases against the question's tokens.
"""

import logging
import re
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from ...models import User
from ...models_help import HelpGuide
from ...shared.validators import slugify
from ...utils.sanitization import sanitize_rich_text, strip_control_chars
from .schemas import HelpGuideCreate, HelpGuideResponse, HelpGuideUpdate

logger = logging.getLogger(__name__)

FILLER_WORDS = {"how", "do", "i", "can", "where", "what", "is", "the", "a", "an", "to", "for", "my", "me", "you", "your"}
MIN_ASK_SCORE = 0.3
FALLBACK_ANSWER = (
    "I'm not sure how to help with that specific question. Could you try asking:\n\n"
    "- How do I add a client?\n"
    "- How do I schedule an appointment?\n"
    "- How do I create a task?\n"
    "- How do I add library content?\n"
    "- How do I write a session note?\n\n"
    "Or ask about navigating to a specific section of the app."
)

PAGE_SUGGESTIONS = {
    "dashboard": [
        "How do I add a new client?",
        "How do I schedule an appointment?",
        "How do I create a task?",
    ],
    "clients": [
        "How do I add a new client?",
        "How do I view a client's sessions?",
        "How do I edit client information?",
    ],
    "scheduling": [
        "How do I schedule an appointment?",
        "How do I change calendar views?",
        "How do I cancel an appointment?",
    ],
    "library": [
        "How do I add library content?",
        "How do I connect library entries?",
    ],
    "tasks": [
        "How do I create a task?",
        "How do I filter tasks?",
        "How do I mark a task complete?",
    ],
    "billing": [
        "How do I add a service?",
        "How do I track payments?",
        "How do I add a room?",
    ],
    "assessments": [
        "How do I create an assessment?",
        "How do I assign an assessment to a client?",
    ],
}


def tokenize_question(question: str) -> list[str]:
    normalized = re.sub(r"[?!.,]", "", question.lower().strip())
    return [word for word in normalized.split() if len(word) > 1 and word not in FILLER_WORDS]


def score_keywords(question_tokens: list[str], keywords: list[str]) -> tuple[float, int]:
    """
    Best (score, specificity) over a guide's keyword phrases.

    score = 0.5 * completeness (share of phrase tokens in the question)
          + 0.4 * coverage (share of question tokens explained by the phrase)
          + 0.1 * specificity (phrase length, capped at 5 tokens)
    """
    best_score, best_length = 0.0, 0
    question_set = set(question_tokens)
    for phrase in keywords or []:
        phrase_tokens = [t for t in str(phrase).lower().split() if len(t) > 1]
        if not phrase_tokens:
            continue
        phrase_set = set(phrase_tokens)
        completeness = sum(1 for t in phrase_tokens if t in question_set) / len(phrase_tokens)
        coverage = (
            sum(1 for t in question_tokens if t in phrase_set) / len(question_tokens) if question_tokens else 0.0
        )
        specificity = len(phrase_tokens)
        score = completeness * 0.5 + coverage * 0.4 + min(specificity / 5, 1) * 0.1
        if score > best_score or (score == best_score and specificity > best_length):
            best_score, best_length = score, specificity
    return best_score, best_length


def search_rank(guide: HelpGuide, term: str) -> int:
    """3 for a title hit, 2 for a keyword hit, 1 for a content hit, 0 otherwise"""
    if term in guide.title.lower():
        return 3
    if any(term in str(keyword).lower() for keyword in guide.search_keywords or []):
        return 2
    if term in (guide.content or "").lower():
        return 1
    return 0


class HelpGuideService:
    def __init__(self, db: Session):
        self.db = db

    def _visible(self, user: User) -> Query:
        return self.db.query(HelpGuide).filter(
            HelpGuide.is_active.is_(True),
            or_(HelpGuide.practice_id.is_(None), HelpGuide.practice_id == user.practice_id),
        )

    def list_guides(self, user: User, category: Optional[str] = None) -> list[HelpGuide]:
        query = self._visible(user)
        if category:
            query = query.filter(HelpGuide.category == category)
        return query.order_by(HelpGuide.category.asc(), HelpGuide.sort_order.asc(), HelpGuide.title.asc()).all()

    def search(self, user: User, q: str) -> list[HelpGuide]:
        term = (q or "").strip().lower()
        if not term:
            return []
        ranked = [(search_rank(guide, term), guide) for guide in self._visible(user).all()]
        ranked = [item for item in ranked if item[0] > 0]
        ranked.sort(key=lambda item: (-item[0], item[1].sort_order or 0, item[1].title))
        return [guide for _, guide in ranked]

    def get_by_slug(self, slug: str, user: User) -> HelpGuide:
        guide = self._visible(user).filter(HelpGuide.slug == slug).first()
        if not guide:
            raise HTTPException(status_code=404, detail="Help guide not found")
        guide.view_count = (guide.view_count or 0) + 1
        self.db.commit()
        self.db.refresh(guide)
        return guide

    def mark_helpful(self, guide_id: int, user: User) -> HelpGuide:
        guide = self._visible(user).filter(HelpGuide.id == guide_id).first()
        if not guide:
            raise HTTPException(status_code=404, detail="Help guide not found")
        guide.helpful_count = (guide.helpful_count or 0) + 1
        self.db.commit()
        self.db.refresh(guide)
        return guide

    def ask(self, question: str, user: User) -> dict:
        tokens = tokenize_question(question)
        scored = []
        for guide in self._visible(user).all():
            score, length = score_keywords(tokens, guide.search_keywords or [guide.title])
            if score > MIN_ASK_SCORE:
                scored.append((score, length, guide))

        if not scored:
            logger.info(f"❓ No help guide matched question: {question[:80]}")
            return {"answer": FALLBACK_ANSWER, "guide": None, "score": 0.0}

        scored.sort(key=lambda item: (-round(item[0], 2), -item[1]))
        score, _, guide = scored[0]
        return {
            "answer": guide.content,
            "guide": HelpGuideResponse.model_validate(guide),
            "score": round(score, 3),
        }

    @staticmethod
    def suggestions(page: Optional[str]) -> list[str]:
        return PAGE_SUGGESTIONS.get(page or "", PAGE_SUGGESTIONS["dashboard"])

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def create_guide(self, data: HelpGuideCreate, user: User) -> HelpGuide:
        slug = slugify(data.slug or data.title)
        if self.db.query(HelpGuide.id).filter(HelpGuide.slug == slug).first():
            raise HTTPException(status_code=409, detail=f"A help guide with slug '{slug}' already exists")
        guide = HelpGuide(
            practice_id=user.practice_id,
            title=strip_control_chars(data.title),
            slug=slug,
            content=sanitize_rich_text(data.content),
            category=data.category,
            search_keywords=[k.strip().lower() for k in data.search_keywords if k.strip()],
            sort_order=data.sort_order,
        )
        self.db.add(guide)
        self.db.commit()
        self.db.refresh(guide)
        logger.info(f"✅ Created help guide {guide.id} '{guide.slug}'")
        return guide

    def update_guide(self, guide_id: int, data: HelpGuideUpdate, user: User) -> HelpGuide:
        guide = self._get_own(guide_id, user)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if "content" in updates:
            updates["content"] = sanitize_rich_text(updates["content"])
        if "title" in updates:
            updates["title"] = strip_control_chars(updates["title"])
        if "search_keywords" in updates:
            updates["search_keywords"] = [k.strip().lower() for k in updates["search_keywords"] if k.strip()]
        for key, value in updates.items():
            setattr(guide, key, value)
        self.db.commit()
        self.db.refresh(guide)
        return guide

    def delete_guide(self, guide_id: int, user: User) -> dict:
        guide = self._get_own(guide_id, user)
        guide.is_active = False
        self.db.commit()
        logger.info(f"🗑️ Deactivated help guide {guide.id}")
        return {"message": "Help guide deleted"}

    def _get_own(self, guide_id: int, user: User) -> HelpGuide:
        guide = self.db.query(HelpGuide).filter(HelpGuide.id == guide_id).first()
        if not guide or (guide.practice_id is not None and guide.practice_id != user.practice_id):
            raise HTTPException(status_code=404, detail="Help guide not found")
        if guide.practice_id is None:
            raise HTTPException(status_code=403, detail="Built-in help guides cannot be changed")
        return guide
