from __future__ import annotations

from exam_core import prompts
from exam_core.types import Subject, TaskKind


def test_every_task_has_a_template():
    templates = {task: prompts.lookup(task) for task in TaskKind}
    assert len(set(templates.values())) == len(TaskKind)


def test_json_templates_document_their_fields():
    quick = prompts.lookup(TaskKind.QUICK_ANSWER)
    assert '"finalAnswer"' in quick and '"calculatorSteps"' in quick

    quiz = prompts.lookup(TaskKind.PRACTICE_QUIZ)
    for field_name in ('"quizzes"', '"question"', '"options"', '"answer"', '"explanation"'):
        assert field_name in quiz
    assert "easy" in quiz and "hard" in quiz


def test_lookup_accepts_enum_value():
    assert prompts.lookup("DetailedGuide") == prompts.DETAILED_GUIDE


def test_render_task_prompt_includes_subject_and_problem():
    out = prompts.render_task_prompt(Subject.PHYSICS, "Solve it", "v = s / t")
    assert out == "Subject: Physics. Task: Solve it. Problem: v = s / t"


def test_summary_prompt_embeds_content():
    out = prompts.render_summary_prompt("x = 5")
    assert out.endswith("x = 5")
    assert "read aloud" in out
