# tests/test_coherence_tracker.py
import config
from document_generation import coherence_tracker
from document_generation.plan_builder import build_plan
from models import CoherenceState, PlanUnit, UnitPosition


def _chunk(n: int) -> str:
    return (
        f"Part {n} opens with the Assembly debating reform number {n}. "
        f"Delegate Number{n} argued with Jacques Necker about the Estates General. "
        f"The debate closed without agreement on point {n}.\n\n"
        f"Later, the Committee of Public Safety reviewed measure {n} in Paris."
    )


def test_initialize_is_empty():
    state = coherence_tracker.initialize("document", "Write about reform", "")
    assert state == CoherenceState()


def test_update_returns_new_state():
    state = coherence_tracker.initialize("outline", "prompt")
    updated = coherence_tracker.update(state, _chunk(1))
    assert state.accumulated_output == ()
    assert updated.accumulated_output == (_chunk(1),)
    assert "[1]" in updated.running_summary
    assert "Jacques Necker" in updated.entities
    assert updated.key_points


def test_key_points_come_from_opening_chunk_only():
    state = coherence_tracker.update(CoherenceState(), _chunk(1))
    later = coherence_tracker.update(state, _chunk(2))
    assert later.key_points == state.key_points
    assert "Part 1 opens" in later.key_points[0]


def test_entities_are_not_duplicated():
    state = CoherenceState()
    for n in range(1, 4):
        state = coherence_tracker.update(state, _chunk(n))
    lowered = [e.lower() for e in state.entities]
    assert len(lowered) == len(set(lowered))
    assert lowered.count("jacques necker") == 1


def test_context_for_is_pure():
    state = coherence_tracker.update(CoherenceState(), _chunk(1))
    unit = PlanUnit(index=1, title="Part 2 of 3", instructions="Continue.")
    first = coherence_tracker.context_for(state, unit)
    second = coherence_tracker.context_for(state, unit)
    assert first == second
    assert "Part 2 of 3" in first
    assert "Jacques Necker" in first


def test_key_points_only_shown_to_final_unit():
    state = coherence_tracker.update(CoherenceState(), _chunk(1))
    middle = PlanUnit(index=1, title="Middle", instructions="Go on.")
    final = PlanUnit(
        index=2, title="End", instructions="Close.", position=UnitPosition.FINAL
    )
    assert "REFER BACK" not in coherence_tracker.context_for(state, middle)
    assert "REFER BACK" in coherence_tracker.context_for(state, final)


def test_context_stays_bounded_over_fifty_units():
    source = "\n\n".join(" ".join(["word"] * 700) for _ in range(100))
    units = build_plan("document", "Rewrite this book", source)
    assert len(units) == 50

    state = coherence_tracker.initialize("document", "Rewrite this book", source)
    ceiling = coherence_tracker.context_ceiling()
    for unit in units:
        context = coherence_tracker.context_for(state, unit)
        assert len(context) <= ceiling
        assert unit.title in context
        state = coherence_tracker.update(state, _chunk(unit.index + 1))

    assert len(state.accumulated_output) == 50
    assert len(state.running_summary) <= config.settings.SUMMARY_MAX_CHARS
    assert len(state.entities) <= config.settings.MAX_TRACKED_ENTITIES


def test_summary_keeps_anchor_when_trimmed(monkeypatch):
    monkeypatch.setattr(config.settings, "SUMMARY_MAX_CHARS", 400)
    state = CoherenceState()
    for n in range(1, 20):
        state = coherence_tracker.update(state, _chunk(n))
    summary = state.running_summary
    assert len(summary) <= 400
    assert summary.startswith("[1] ")
    assert "[...]" in summary
    assert "[19]" in summary
