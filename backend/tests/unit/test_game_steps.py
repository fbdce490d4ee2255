from ember.domain.game import models, steps


def test_every_step_has_successors():
    for step in models.GAME_STEPS:
        assert steps.next_steps(step)


def test_reveal_branches_to_next_question_or_summary():
    assert steps.next_steps("Reveal") == ("Question", "Summary")
    assert steps.next_steps("Summary") == ("CategorySelection", "Lobby")


def test_listed_transitions():
    assert steps.is_listed_transition("Lobby", "CategorySelection")
    assert steps.is_listed_transition("Question", "Question")
    assert not steps.is_listed_transition("Lobby", "Reveal")
    assert steps.next_steps("Unknown") == ()
