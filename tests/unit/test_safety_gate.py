"""Tests for bloomworks.core.safety_gate — moderation screening."""

from __future__ import annotations

from bloomworks.core.prompt_composer import Prompt
from bloomworks.core.safety_gate import SafetyGate
from tests.fakes import FakeModeration


def _prompt(theme, body="A rose of spun glass", source="generated"):
    return Prompt(body=theme.attach_anchor(body), style_anchor=theme.style_anchor, source=source)


class TestIsFlagged:
    """Test SafetyGate.is_flagged()."""

    def test_flagged_text(self):
        gate = SafetyGate(FakeModeration(flag_words=("gore",)))
        assert gate.is_flagged("so much gore") is True
        assert gate.is_flagged("a quiet pond") is False

    def test_classifier_failure_fails_open(self, caplog):
        gate = SafetyGate(FakeModeration(error=RuntimeError("503 Service Unavailable")))
        assert gate.is_flagged("anything") is False
        assert "Moderation check failed" in caplog.text

    def test_disabled_gate_never_calls(self):
        moderation = FakeModeration(flag_words=("gore",))
        gate = SafetyGate(moderation, enabled=False)
        assert gate.is_flagged("gore") is False
        assert moderation.calls == []

    def test_no_classifier_disables_gate(self):
        assert SafetyGate(None).enabled is False


class TestCheckInput:
    """Input screening only runs for themes that ask for it."""

    def test_flower_screens_input(self, flower):
        moderation = FakeModeration(flag_words=("gore",))
        assert SafetyGate(moderation).check_input("gore", flower) is True
        assert moderation.calls == ["gore"]

    def test_bird_skips_input(self, bird):
        moderation = FakeModeration(flag_words=("gore",))
        assert SafetyGate(moderation).check_input("gore", bird) is False
        assert moderation.calls == []


class TestCheckPrompt:
    """Composed-prompt screening."""

    def test_clean_prompt_passes_through(self, bird):
        prompt = _prompt(bird)
        assert SafetyGate(FakeModeration()).check_prompt(prompt, bird) is prompt

    def test_flagged_prompt_replaced_by_safe_prompt(self, bird):
        gate = SafetyGate(FakeModeration(flag_words=("spun glass",)))
        result = gate.check_prompt(_prompt(bird), bird)
        assert result.source == "fallback"
        assert result.body == bird.safe_prompt
        assert bird.style_anchor in result.body

    def test_fish_skips_prompt_screening(self, fish):
        moderation = FakeModeration(flag_words=("spun glass",))
        prompt = _prompt(fish)
        assert SafetyGate(moderation).check_prompt(prompt, fish) is prompt
        assert moderation.calls == []

    def test_fallback_prompt_not_rescreened(self, flower):
        moderation = FakeModeration()
        prompt = _prompt(flower, source="fallback")
        SafetyGate(moderation).check_prompt(prompt, flower)
        assert moderation.calls == []
