"""Projection between the flat authoring draft and the nested wire document.

``to_wire`` reshapes each module for the remote store: assessments become an
embedded ``quizzes`` array with explicitly ordered questions, sections become
an ordered ``sections`` array with a uniform ``{title, type, order, content,
duration}`` shape, and module durations switch from hours to minutes.
``from_wire`` undoes all of it. Both directions push every id-bearing field
through the object id helpers.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import (
    Assessment,
    JourneyDraft,
    MultipleCorrectQuestion,
    Question,
    Section,
    TrainingModule,
    TrueFalseQuestion,
    VideoSection,
)
from .object_ids import normalize_tree, sanitize_tree, to_wire_tree

MINUTES_PER_HOUR = 60
TRUE_FALSE_OPTIONS = ["True", "False"]


def hours_to_minutes(hours: float) -> float | int:
    minutes = hours * MINUTES_PER_HOUR
    return int(minutes) if float(minutes).is_integer() else minutes


def minutes_to_hours(minutes: Any) -> float:
    if minutes is None:
        return 0.0
    return float(minutes) / MINUTES_PER_HOUR


def _with_id(document: Dict[str, Any], value: Optional[str], key: str = "id") -> Dict[str, Any]:
    if value:
        return {key: value, **document}
    return document


# ----------------------------------------------------------------------
# Draft -> wire
# ----------------------------------------------------------------------


def _section_to_wire(section: Section, order: int) -> Dict[str, Any]:
    content = section.content
    return _with_id(
        {
            "title": section.title,
            "type": section.type,
            "order": order,
            "content": {
                "text": getattr(content, "text", ""),
                "file": content.file.to_tree() if getattr(content, "file", None) else None,
                "youtubeUrl": content.youtube_url if isinstance(section, VideoSection) else None,
                "keyPoints": list(content.key_points),
            },
            "duration": section.estimated_duration,
        },
        section.id,
    )


def _question_to_wire(question: Question, order: int) -> Dict[str, Any]:
    if isinstance(question, TrueFalseQuestion):
        options = list(TRUE_FALSE_OPTIONS)
        correct: Any = question.correct_answer
    elif isinstance(question, MultipleCorrectQuestion):
        options = list(question.options)
        correct = list(question.correct_answer)
    else:
        options = list(question.options)
        correct = question.correct_answer
    return _with_id(
        {
            "question": question.text,
            "type": question.type,
            "options": options,
            "correctAnswer": correct,
            "explanation": question.explanation,
            "points": question.points,
            "orderIndex": order,
        },
        question.id,
    )


def _quiz_to_wire(assessment: Assessment) -> Dict[str, Any]:
    return _with_id(
        {
            "title": assessment.title,
            "description": assessment.description,
            "type": assessment.type,
            "passingScore": assessment.passing_score,
            "timeLimit": assessment.time_limit,
            "maxAttempts": assessment.max_attempts,
            "questions": [
                _question_to_wire(question, index)
                for index, question in enumerate(assessment.questions)
            ],
        },
        assessment.id,
    )


def _module_to_wire(module: TrainingModule) -> Dict[str, Any]:
    return _with_id(
        {
            "title": module.title,
            "description": module.description,
            "duration": hours_to_minutes(module.duration),
            "difficulty": module.difficulty,
            "learningObjectives": list(module.learning_objectives),
            "prerequisites": list(module.prerequisites),
            "topics": list(module.topics),
            "sections": [
                _section_to_wire(section, index) for index, section in enumerate(module.sections)
            ],
            "quizzes": [_quiz_to_wire(assessment) for assessment in module.assessments],
        },
        module.id,
    )


def to_wire(draft: JourneyDraft, *, organization_id: Optional[str] = None) -> Dict[str, Any]:
    """Build the remote document for ``draft``.

    The journey's headline fields are repeated at the top level where the
    remote store indexes them; the full authoring state rides along so the
    document can hydrate a draft again.
    """
    tree = draft.to_tree()
    journey = draft.journey
    document: Dict[str, Any] = {
        "title": journey.display_title if journey else "",
        "description": journey.description if journey else "",
        "industry": journey.industry if journey else None,
        "vision": journey.vision if journey else None,
        "status": "draft",
        "companyId": organization_id,
        "gigId": draft.selected_gig_id,
        "journey": tree["journey"],
        "company": tree["company"],
        "methodology": tree["methodology"],
        "uploads": tree["uploads"],
        "currentStep": draft.current_step,
        "lastSaved": tree["lastSaved"],
        "modules": [_module_to_wire(module) for module in draft.modules],
    }
    return to_wire_tree(_with_id(document, draft.draft_id, key="_id"))


def to_launch_wire(
    draft: JourneyDraft,
    *,
    organization_id: Optional[str],
    enrolled_rep_ids: Sequence[str],
    launch_settings: Dict[str, Any],
    rehearsal_data: Dict[str, Any],
) -> Dict[str, Any]:
    journey_document = to_wire(draft, organization_id=organization_id)
    journey_document.pop("_id", None)
    journey_document.update(
        {
            "status": "active",
            "draftId": draft.draft_id,
            "launchSettings": launch_settings,
            "rehearsalData": rehearsal_data,
        }
    )
    return to_wire_tree(
        {
            "journey": journey_document,
            "enrolledRepIds": list(enrolled_rep_ids),
        }
    )


# ----------------------------------------------------------------------
# Wire -> draft
# ----------------------------------------------------------------------


def _ordered(entries: Iterable[Any], order_key: str) -> List[Dict[str, Any]]:
    indexed = [
        (entry.get(order_key) if isinstance(entry.get(order_key), int) else position, position, entry)
        for position, entry in enumerate(entries)
        if isinstance(entry, dict)
    ]
    return [entry for _, _, entry in sorted(indexed, key=lambda item: (item[0], item[1]))]


def _section_from_wire(section: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": section.get("id") or section.get("_id"),
        "title": section.get("title") or "",
        "type": section.get("type") or "document",
        "estimatedDuration": section.get("duration", section.get("estimatedDuration", 10)),
        "content": section.get("content") or {},
    }


def _question_from_wire(question: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": question.get("id") or question.get("_id"),
        "text": question.get("question") or question.get("text") or "",
        "type": question.get("type") or "multiple-choice",
        "options": question.get("options") or [],
        "correctAnswer": question.get("correctAnswer"),
        "explanation": question.get("explanation") or "",
        "points": question.get("points", 1),
    }


def _quiz_from_wire(quiz: Dict[str, Any]) -> Dict[str, Any]:
    restored = {
        "id": quiz.get("id") or quiz.get("_id"),
        "title": quiz.get("title") or "",
        "description": quiz.get("description") or "",
        "type": quiz.get("type") or "quiz",
        "timeLimit": quiz.get("timeLimit"),
        "questions": [
            _question_from_wire(question)
            for question in _ordered(quiz.get("questions") or [], "orderIndex")
        ],
    }
    for key in ("passingScore", "maxAttempts"):
        if quiz.get(key) is not None:
            restored[key] = quiz[key]
    return restored


def _module_from_wire(module: Dict[str, Any]) -> Dict[str, Any]:
    quizzes = module.get("quizzes")
    if quizzes is None:
        quizzes = module.get("assessments") or []
    return {
        "id": module.get("id") or module.get("_id"),
        "title": module.get("title") or "",
        "description": module.get("description") or "",
        "duration": minutes_to_hours(module.get("duration")),
        "difficulty": module.get("difficulty") or "beginner",
        "learningObjectives": module.get("learningObjectives") or [],
        "prerequisites": module.get("prerequisites") or [],
        "topics": module.get("topics") or [],
        "sections": [
            _section_from_wire(section)
            for section in _ordered(module.get("sections") or [], "order")
        ],
        "assessments": [_quiz_from_wire(quiz) for quiz in quizzes if isinstance(quiz, dict)],
    }


def _journey_from_flat(document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    title = document.get("title")
    name = document.get("name") or title
    if not name:
        return None
    return {
        "id": document.get("_id") or document.get("id"),
        "name": name,
        "title": title,
        "description": document.get("description") or "",
        "industry": document.get("industry"),
        "vision": document.get("vision"),
        "status": document.get("status") or "draft",
        "targetRoles": document.get("targetRoles") or [],
        "estimatedDuration": document.get("estimatedDuration"),
    }


def from_wire(document: Dict[str, Any]) -> JourneyDraft:
    """Hydrate a draft from a remote document.

    Documents written by :func:`to_wire` carry the nested ``journey``; older
    documents only have the flat headline fields, which are folded back into
    a journey. Stale ids are dropped.
    """
    tree = normalize_tree(document)
    restored: Dict[str, Any] = {
        "company": tree.get("company"),
        "journey": tree.get("journey") or _journey_from_flat(tree),
        "methodology": tree.get("methodology"),
        "uploads": tree.get("uploads") or [],
        "modules": [
            _module_from_wire(module) for module in tree.get("modules") or [] if isinstance(module, dict)
        ],
        "currentStep": tree.get("currentStep") or 0,
        "selectedGigId": tree.get("gigId"),
        "draftId": tree.get("_id") or tree.get("id"),
    }
    if tree.get("lastSaved"):
        restored["lastSaved"] = tree["lastSaved"]
    return JourneyDraft.model_validate(sanitize_tree(restored))


__all__ = [
    "MINUTES_PER_HOUR",
    "from_wire",
    "hours_to_minutes",
    "minutes_to_hours",
    "to_launch_wire",
    "to_wire",
]
