"""
AI Service - clinical documentation drafts through the OpenAI API

Generated text is always a draft: callers store it as generated/draft content
and a clinician reviews it before anything is finalized.
"""

import logging
from typing import Optional

from openai import OpenAI

from ..config import OPENAI_API_KEY, OPENAI_MODEL, OPENAI_TIMEOUT

logger = logging.getLogger(__name__)


class AIServiceUnavailable(Exception):
    """OPENAI_API_KEY is not configured"""


class AIServiceError(Exception):
    """The upstream model call failed"""


CLINICAL_TEMPLATES: dict[str, dict] = {
    "cognitive_behavioral": {
        "name": "Cognitive Behavioral Therapy (CBT)",
        "description": "Focus on thought patterns, cognitive restructuring, and behavioral interventions",
        "guidance": {
            "session_focus": "Explored cognitive patterns related to [presenting concern]. Identified negative thought cycles and worked on cognitive restructuring techniques.",
            "symptoms": "Client presented with [specific symptoms]. Noted [behavioral/emotional indicators]. Assessed cognitive distortions including [types].",
            "intervention": "Applied CBT techniques including [specific interventions]. Practiced thought challenging and behavioral activation strategies.",
            "progress": "Client demonstrated improved awareness of [cognitive patterns]. Progress toward goals shows [specific improvements].",
            "recommendations": "Continue CBT approach focusing on [specific areas]. Homework: [specific assignments]. Next session focus: [topics].",
        },
    },
    "trauma_focused": {
        "name": "Trauma-Focused Therapy",
        "description": "Specialized approach for trauma processing and PTSD treatment",
        "guidance": {
            "session_focus": "Addressed trauma-related triggers and coping mechanisms. Focused on safety, stabilization, and processing.",
            "symptoms": "Trauma symptoms included [specific presentations]. Assessed for hypervigilance, dissociation, and avoidance behaviors.",
            "intervention": "Utilized trauma-informed interventions including [EMDR/CPT/PE]. Implemented grounding and stabilization techniques.",
            "progress": "Client shows decreased trauma reactivity in [areas]. Improved coping strategies for [triggers].",
            "recommendations": "Continue trauma-focused work with emphasis on [phase of treatment]. Safety planning and coping skill reinforcement.",
        },
    },
    "mindfulness_based": {
        "name": "Mindfulness-Based Therapy",
        "description": "Integration of mindfulness practices with therapeutic interventions",
        "guidance": {
            "session_focus": "Practiced mindfulness techniques and present-moment awareness. Explored relationship between thoughts, emotions, and sensations.",
            "symptoms": "Client reported [emotional/physical symptoms]. Noted patterns of rumination, anxiety, or emotional dysregulation.",
            "intervention": "Guided mindfulness meditation and body awareness exercises. Taught [specific mindfulness techniques].",
            "progress": "Increased mindfulness skills and emotional regulation. Client reports better ability to [specific improvements].",
            "recommendations": "Continue daily mindfulness practice. Home practice: [specific exercises]. Integration of mindfulness in daily activities.",
        },
    },
    "solution_focused": {
        "name": "Solution-Focused Brief Therapy",
        "description": "Goal-oriented approach focusing on solutions and client strengths",
        "guidance": {
            "session_focus": "Explored client strengths and previous successful coping strategies. Identified solution-focused goals and desired outcomes.",
            "symptoms": "Client described [challenges] while acknowledging [existing strengths and resources].",
            "intervention": "Used scaling questions, miracle question, and exception-finding techniques. Highlighted client competencies.",
            "progress": "Client identified [specific solutions] and demonstrated [strengths]. Movement toward preferred future noted.",
            "recommendations": "Build on identified solutions and strengths. Focus on [specific goals]. Continue solution-building approach.",
        },
    },
    "psychodynamic": {
        "name": "Psychodynamic Therapy",
        "description": "Insight-oriented exploration of unconscious patterns and relationships",
        "guidance": {
            "session_focus": "Explored unconscious patterns and their impact on current relationships. Examined transference and defense mechanisms.",
            "symptoms": "Client presented with [symptoms] connected to [underlying dynamics]. Noted defense mechanisms and relational patterns.",
            "intervention": "Used interpretation, clarification, and insight-oriented interventions. Explored childhood experiences and their current impact.",
            "progress": "Increased insight into [patterns/relationships]. Client demonstrates greater self-awareness regarding [areas].",
            "recommendations": "Continue insight-oriented work. Focus on [specific dynamics]. Process emerging material in next sessions.",
        },
    },
}

SESSION_FIELD_LABELS = {
    "session_focus": "Session Focus",
    "symptoms": "Presented Symptoms",
    "short_term_goals": "Treatment Goals",
    "intervention": "Interventions Applied",
    "progress": "Progress Assessment",
    "remarks": "Clinical Observations",
    "recommendations": "Treatment Recommendations",
}

CLINICIAN_SYSTEM_PROMPT = """You are a licensed clinical psychologist assistant. Write in third-person clinical narrative suitable for formal medical records.

Requirements:
- Professional clinical language and objective observations
- Flowing paragraphs, no bullet points
- Do not invent facts that are not present in the session data"""


def get_templates() -> list[dict]:
    """Clinical templates as a list for the frontend picker"""
    return [
        {"id": template_id, "name": t["name"], "description": t["description"], "fields": list(t["guidance"])}
        for template_id, t in CLINICAL_TEMPLATES.items()
    ]


def _session_data_lines(data: dict) -> str:
    lines = []
    for field, label in SESSION_FIELD_LABELS.items():
        if data.get(field):
            lines.append(f"{label}: {data[field]}")
    if data.get("mood_before") is not None and data.get("mood_after") is not None:
        lines.append(f"Mood Assessment: Before {data['mood_before']}/10, After {data['mood_after']}/10")
    return "\n".join(lines) or "No structured session data recorded."


class AIService:
    """Thin wrapper around the OpenAI chat completions API"""

    def __init__(self, client: Optional[OpenAI] = None):
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(OPENAI_API_KEY) or self._client is not None

    @property
    def model(self) -> str:
        return OPENAI_MODEL

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not OPENAI_API_KEY:
                raise AIServiceUnavailable("AI service not configured")
            self._client = OpenAI(api_key=OPENAI_API_KEY, timeout=OPENAI_TIMEOUT)
        return self._client

    def _complete(self, system_prompt: str, user_prompt: str, temperature: float = 0.6, max_tokens: int = 1500) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=OPENAI_MODEL,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            logger.error(f"❌ OpenAI request failed: {e}")
            raise AIServiceError(f"AI content generation failed: {e}") from e

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise AIServiceError("AI returned an empty response")
        return content

    # ------------------------------------------------------------------
    # Session notes
    # ------------------------------------------------------------------

    def generate_session_note(
        self,
        note_data: dict,
        template_id: Optional[str] = None,
        custom_prompt: Optional[str] = None,
    ) -> str:
        """Clinical narrative for one session from its structured fields"""
        system_prompt = CLINICIAN_SYSTEM_PROMPT
        template = CLINICAL_TEMPLATES.get(template_id) if template_id else None
        if template:
            guidance = "\n".join(f"- {field}: {text}" for field, text in template["guidance"].items())
            system_prompt += f"\n\nApproach: {template['name']} ({template['description']}).\nStyle guidance:\n{guidance}"
        if custom_prompt:
            system_prompt += f"\n\nAdditional instructions: {custom_prompt}"

        user_prompt = (
            f"Generate session notes for {note_data.get('client_name') or 'the client'} "
            f"from a {note_data.get('session_type') or 'therapy'} session on {note_data.get('session_date') or 'the recorded date'}.\n\n"
            f"Session Data:\n{_session_data_lines(note_data)}"
        )
        logger.info(f"🤖 Generating session note with {OPENAI_MODEL} (template: {template_id or 'none'})")
        return self._complete(system_prompt, user_prompt, temperature=0.7, max_tokens=2000)

    def generate_from_template(self, template_id: str, session_data: dict, field: Optional[str] = None) -> str:
        """
        Fill a clinical template with session context.

        With field set, only that field's guidance is completed; otherwise a
        full note is written in the template's approach.

        Raises:
            ValueError: Unknown template or field
        """
        template = CLINICAL_TEMPLATES.get(template_id)
        if not template:
            raise ValueError(f"Template '{template_id}' not found")

        if field is None:
            return self.generate_session_note(session_data, template_id=template_id)

        base = template["guidance"].get(field)
        if not base:
            raise ValueError(f"Template field '{field}' not found in {template_id}")

        system_prompt = (
            f"You are a clinical psychology assistant specializing in {template['name']}. "
            "Replace bracketed placeholders in the base template with specific, relevant content from the context. "
            "Keep the structure and tone of the template and use professional clinical language.\n\n"
            f"Template approach: {template['description']}\nBase template: {base}"
        )
        user_prompt = (
            f"Context:\n{_session_data_lines(session_data)}\n\n"
            "Return only the completed text with placeholders filled in."
        )
        return self._complete(system_prompt, user_prompt, temperature=0.7, max_tokens=300)

    def generate_clinical_report(self, client_name: str, notes: list[dict]) -> str:
        """Longitudinal summary across a client's finalized session notes"""
        sessions = "\n\n".join(
            f"Session {i} ({note.get('session_date') or 'undated'}):\n{note.get('content') or _session_data_lines(note)}"
            for i, note in enumerate(notes, start=1)
        )
        user_prompt = (
            f"Write a formal clinical progress report for {client_name} covering {len(notes)} session(s). "
            "Summarize presenting concerns, interventions, progress toward goals, risk considerations and recommendations.\n\n"
            f"{sessions}"
        )
        logger.info(f"🤖 Generating clinical report across {len(notes)} session note(s)")
        return self._complete(CLINICIAN_SYSTEM_PROMPT, user_prompt, temperature=0.6, max_tokens=2500)

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    def generate_assessment_report(
        self,
        client_name: str,
        template_name: str,
        formatted_responses: str,
        section_prompts: Optional[list[str]] = None,
        total_score: Optional[float] = None,
    ) -> str:
        """Narrative assessment report from the formatted questionnaire answers"""
        system_prompt = (
            CLINICIAN_SYSTEM_PROMPT
            + "\n\nYou are writing a psychological assessment report. Organize it under clear headings "
            "(Reason for Assessment, Background, Assessment Results, Clinical Impressions, Recommendations)."
        )
        if section_prompts:
            system_prompt += "\n\nSection-specific instructions:\n" + "\n".join(f"- {p}" for p in section_prompts)

        score_line = f"\nTotal score: {total_score:g}" if total_score is not None else ""
        user_prompt = (
            f"Assessment: {template_name}\nClient: {client_name}{score_line}\n\n"
            f"Responses:\n{formatted_responses}"
        )
        logger.info(f"🤖 Generating assessment report for template '{template_name}'")
        return self._complete(system_prompt, user_prompt, temperature=0.5, max_tokens=3000)
