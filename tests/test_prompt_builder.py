from config.constants import NO_MATCHING_CONDITIONS
from models.models import MatchCandidate
from services.prompt_builder import build_analysis_prompt, build_question_prompt


def test_question_prompt_embeds_symptom():
    prompt = build_question_prompt("persistent cough")
    assert '"persistent cough"' in prompt
    assert "Generate 3 essential clarifying questions" in prompt
    assert '{"questions": ["question 1", "question 2", "question 3"]}' in prompt


def test_analysis_prompt_lists_candidates_in_order(seed_conditions):
    candidates = [MatchCandidate(condition=c) for c in seed_conditions[:2]]
    prompt = build_analysis_prompt("runny nose for three days", candidates)

    assert "[PATIENT SYMPTOMS]\nrunny nose for three days" in prompt
    assert prompt.index("[Condition 1]\nName: Common Cold") < prompt.index(
        "[Condition 2]\nName: Influenza (Flu)"
    )
    assert "Severity: low" in prompt
    assert "Source: CDC - Centers for Disease Control and Prevention" in prompt
    assert NO_MATCHING_CONDITIONS not in prompt


def test_analysis_prompt_marks_empty_knowledge_base():
    prompt = build_analysis_prompt("strange tingling", [])
    assert f"[MEDICAL KNOWLEDGE BASE]\n{NO_MATCHING_CONDITIONS}" in prompt
    assert "[Condition" not in prompt


def test_prompts_are_deterministic(seed_conditions):
    candidates = [MatchCandidate(condition=seed_conditions[2])]
    assert build_analysis_prompt("x" * 20, candidates) == build_analysis_prompt("x" * 20, candidates)
