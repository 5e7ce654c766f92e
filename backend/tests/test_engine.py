import random
from datetime import date
from types import SimpleNamespace

import pytest

from chronoquiz.services.quiz import (
    Expired,
    InsufficientEvents,
    NoSession,
    NotAuthenticated,
    QuizEngine,
    QuizRules,
    QuizSession,
    Step,
    StepMismatch,
    TopicMismatch,
    UserMismatch,
)
from chronoquiz.services.quiz.engine import phase_questions
from chronoquiz.services.quiz.questions import EventSnapshot, Phase1Questions
from chronoquiz.services.quiz.scoring import names_in_order
from chronoquiz.services.quiz.session import TopicSnapshot


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, minutes):
        self.now += minutes * 60


class FakeScoreStore:
    def __init__(self, points=()):
        self.scores = [SimpleNamespace(points=p) for p in sorted(points, reverse=True)]
        self.created = []

    def get_scores_by_topic(self, topic_id):
        return list(self.scores)

    def create_score(self, topic_id, user_id, points, date):
        self.created.append((topic_id, user_id, points, date))


def _topic(n=8, topic_id=1):
    return TopicSnapshot(
        topic_id=topic_id,
        name='Schweiz',
        events=[
            EventSnapshot(i + 1, f'Event {i}', 1800 + 5 * i, date(1800 + 5 * i, 6, 1))
            for i in range(n)
        ],
    )


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    return FakeScoreStore([90, 80, 80, 70])


@pytest.fixture()
def engine(clock, store):
    seeds = iter(range(1000))
    return QuizEngine(QuizRules(), store=store, clock=clock, rng_factory=lambda: random.Random(next(seeds)))


def _play_through(engine, topic, user_id=7):
    """Run all six transitions with perfect answers; returns every record seen."""
    tid = topic.topic_id
    records = [engine.start(topic, user_id)]
    r = records[-1]
    records.append(engine.submit_phase1(r, tid, [q.event_year for q in r.questions.questions], user_id))
    records.append(engine.prepare_phase2(records[-1], tid, user_id))
    r = records[-1]
    records.append(engine.submit_phase2(r, tid, [q.event_year for q in r.questions.questions], user_id))
    records.append(engine.prepare_phase3(records[-1], tid, user_id))
    r = records[-1]
    records.append(engine.submit_phase3(r, tid, names_in_order(r.questions), user_id))
    return records


def test_steps_increase_by_exactly_one(engine):
    records = _play_through(engine, _topic())
    assert [r.step for r in records] == list(Step)


def test_perfect_run_points_and_score_write(engine, store):
    topic = _topic()
    final = _play_through(engine, topic)[-1]
    assert final.points == 3 * 3 + 4 * 8 + 8 * 5
    assert final.correct_guesses == 3 + 4 + 8
    assert len(store.created) == 1
    topic_id, user_id, points, _ = store.created[0]
    assert (topic_id, user_id, points) == (1, 7, final.points)


def test_percentile_ranks_against_scores_before_this_attempt(engine, store):
    final = _play_through(engine, _topic())[-1]
    # 81 points beats 80, 80 and 70 but not 90; the new score itself is not counted
    assert final.percentile == 75


def test_points_never_decrease(engine):
    records = _play_through(engine, _topic())
    points = [r.points for r in records]
    assert points == sorted(points)


def test_start_requires_enough_events(engine):
    with pytest.raises(InsufficientEvents) as info:
        engine.start(_topic(n=6))
    assert info.value.shortfall == 1
    assert '1 fehlen' in info.value.message


def test_start_with_exactly_the_minimum(engine):
    record = engine.start(_topic(n=7))
    record = engine.submit_phase1(record, 1, [])
    record = engine.prepare_phase2(record, 1)
    assert len(record.questions.questions) == 4


def test_phase1_and_phase2_draw_disjoint_events(engine):
    topic = _topic()
    start = engine.start(topic)
    assert sorted(e.event_id for e in start.topic.events) == [e.event_id for e in topic.events]
    p1_names = {q.event_name for q in start.questions.questions}
    record = engine.submit_phase1(start, 1, [])
    record = engine.prepare_phase2(record, 1)
    p2_names = {q.event_name for q in record.questions.questions}
    assert not p1_names & p2_names
    assert [q.event_name for q in record.questions.questions] == [e.name for e in start.topic.events[3:7]]


def test_phase3_uses_all_events(engine):
    records = _play_through(engine, _topic())
    assert len(records[4].questions.questions) == 8


def test_missing_record(engine):
    with pytest.raises(NoSession):
        engine.submit_phase1(None, 1, [])


def test_topic_switch_is_rejected(engine):
    record = engine.start(_topic())
    with pytest.raises(TopicMismatch):
        engine.submit_phase1(record, 2, [])


@pytest.mark.parametrize('transition', ['prepare_phase2', 'prepare_phase3'])
def test_skipping_a_phase_is_rejected(engine, transition):
    record = engine.start(_topic())
    with pytest.raises(StepMismatch):
        getattr(engine, transition)(record, 1)


def test_repeating_a_submit_is_rejected_and_leaves_record_untouched(engine):
    record = engine.start(_topic())
    submitted = engine.submit_phase1(record, 1, [q.event_year for q in record.questions.questions])
    before = submitted.to_dict()
    with pytest.raises(StepMismatch):
        engine.submit_phase1(submitted, 1, [])
    assert submitted.to_dict() == before


def test_transitions_do_not_mutate_their_input(engine):
    record = engine.start(_topic())
    before = record.to_dict()
    engine.submit_phase1(record, 1, [q.event_year for q in record.questions.questions])
    assert record.to_dict() == before


def test_submit_after_expiry(engine, clock):
    record = engine.start(_topic())
    record = engine.submit_phase1(record, 1, [])
    record = engine.prepare_phase2(record, 1)
    clock.advance(21)
    with pytest.raises(Expired) as info:
        engine.submit_phase2(record, 1, [])
    assert '20 Minuten' in info.value.message
    assert info.value.phase == 2


def test_submit_just_inside_expiry(engine, clock):
    record = engine.start(_topic())
    clock.advance(20)
    assert engine.submit_phase1(record, 1, []).step == Step.SUBMITTED_1


def test_each_step_resets_the_timer(engine, clock):
    record = engine.start(_topic())
    clock.advance(15)
    record = engine.submit_phase1(record, 1, [])
    clock.advance(15)
    record = engine.prepare_phase2(record, 1)
    assert record.timestamp == clock.now


def test_final_submit_needs_a_user(engine, store):
    records = _play_through(engine, _topic())
    with pytest.raises(NotAuthenticated):
        engine.submit_phase3(records[4], 1, [], user_id=None)
    assert len(store.created) == 1


def test_another_user_cannot_continue_the_quiz(engine):
    record = engine.start(_topic(), user_id=7)
    assert record.user_id == 7
    with pytest.raises(UserMismatch) as info:
        engine.submit_phase1(record, 1, [], user_id=8)
    assert 'anderen Benutzer' in info.value.message
    with pytest.raises(UserMismatch):
        engine.show_phase(record, 1, 1, user_id=8)
    assert engine.show_phase(record, 1, 1, user_id=7) is record


def test_another_user_cannot_finish_the_quiz(engine, store):
    records = _play_through(engine, _topic())
    store.created.clear()
    with pytest.raises(UserMismatch):
        engine.submit_phase3(records[4], 1, names_in_order(records[4].questions), user_id=8)
    assert store.created == []


def test_final_submit_hands_the_finished_record_to_claim(engine, store):
    records = _play_through(engine, _topic())
    store.created.clear()
    claimed = []

    def claim(finished):
        claimed.append(finished)
        return True

    final = engine.submit_phase3(records[4], 1, names_in_order(records[4].questions), 7, claim=claim)
    assert claimed == [final]
    assert final.step == Step.SUBMITTED_3
    assert final.percentile == 75
    assert len(store.created) == 1


def test_lost_claim_writes_no_score(engine, store):
    records = _play_through(engine, _topic())
    store.created.clear()
    with pytest.raises(StepMismatch) as info:
        engine.submit_phase3(
            records[4], 1, names_in_order(records[4].questions), 7, claim=lambda finished: False
        )
    assert info.value.phase == 3
    assert store.created == []


def test_show_and_review_are_read_only(engine):
    record = engine.start(_topic())
    assert engine.show_phase(record, 1, 1) is record
    with pytest.raises(StepMismatch):
        engine.review_phase(record, 1, 1)
    submitted = engine.submit_phase1(record, 1, [])
    assert engine.review_phase(submitted, 1, 1) is submitted
    with pytest.raises(StepMismatch):
        engine.show_phase(submitted, 1, 1)


def test_summary(engine):
    final = _play_through(engine, _topic())[-1]
    summary = engine.summary(final, 1, user_id=7)
    assert summary.points == final.points
    assert summary.correct_guesses == 15
    assert summary.questions_count == 3 + 4 + 8
    assert summary.potential_points == 9 + 32 + 40
    assert summary.percentile == 75
    assert summary.to_dict()['has_comparison'] is True


def test_summary_without_history(clock):
    engine = QuizEngine(QuizRules(), store=FakeScoreStore(), clock=clock)
    final = _play_through(engine, _topic())[-1]
    summary = engine.summary(final, 1, user_id=7)
    assert summary.percentile is None
    assert summary.to_dict()['has_comparison'] is False


def test_summary_before_finishing(engine):
    record = engine.start(_topic())
    with pytest.raises(StepMismatch):
        engine.summary(record, 1)


def test_record_round_trips_through_dict(engine):
    records = _play_through(engine, _topic())
    for record in records:
        assert QuizSession.from_dict(record.to_dict()) == record


def test_question_set_must_match_step(engine):
    record = engine.start(_topic())
    with pytest.raises(ValueError):
        QuizSession(topic=record.topic, step=Step.PREPARED_2, questions=Phase1Questions(), timestamp=0.0)


def test_phase_questions_follows_step(engine):
    record = engine.start(_topic())
    assert phase_questions(record) is record.questions.questions


def test_rules_reject_impossible_distractor_config():
    with pytest.raises(ValueError):
        QuizRules(p1_choices=4, p1_choices_max_diff=1)


def test_rules_from_config():
    rules = QuizRules.from_config({'QUIZ_P1_QUESTIONS': '2', 'QUIZ_EXPIRY_MIN': 5})
    assert rules.p1_questions == 2
    assert rules.expiry_sec == 300
    assert rules.min_events == 6
