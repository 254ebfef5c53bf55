import pytest

from symptomshare.models.symptom import Solution, SolutionVote, SymptomStatus, VoteType
from symptomshare.services import community as svc


def _report(db, user_id="u1", title="Cough", description="Dry cough at night", keywords=("cough",)):
    return svc.create_symptom(db, user_id, title, description, list(keywords))


def test_create_strips_and_defaults_to_open(db):
    r = _report(db, title="  Cough  ", description="  Dry cough  ")
    assert r.title == "Cough"
    assert r.description == "Dry cough"
    assert r.status == SymptomStatus.OPEN
    assert r.symptoms_keywords == ["cough"]
    assert r.created_at is not None


def test_candidate_pool_excludes_target(db):
    a = _report(db)
    b = _report(db, title="Rash")
    pool = svc.candidate_pool(db, a.id)
    assert [r.id for r in pool] == [b.id]


def test_list_rejects_unknown_feed(db):
    with pytest.raises(ValueError):
        svc.list_symptoms(db, "trending")


def test_resolve_rules(db):
    r = _report(db)
    with pytest.raises(svc.NotOwner):
        svc.resolve_symptom(db, r.id, "someone-else", solution_text="x")
    with pytest.raises(ValueError):
        svc.resolve_symptom(db, r.id, "u1", solution_text="")

    resolved = svc.resolve_symptom(db, r.id, "u1", solution_text="  Honey tea  ")
    assert resolved.status == SymptomStatus.RESOLVED
    assert [s.solution_text for s in resolved.solutions] == ["Honey tea"]

    with pytest.raises(svc.InvalidStatusTransition):
        svc.resolve_symptom(db, r.id, "u1", see_specialist=True)


def test_missing_records_raise_lookup_errors(db):
    with pytest.raises(svc.SymptomNotFound):
        svc.get_symptom(db, "missing")
    with pytest.raises(svc.SolutionNotFound):
        svc.vote_tally(db, "missing")


def test_vote_toggle_cycle(db):
    r = _report(db)
    sol = svc.resolve_symptom(db, r.id, "u1", solution_text="Rest").solutions[0]

    vote = svc.cast_vote(db, sol.id, "voter", VoteType.LIKE)
    assert vote.vote_type == VoteType.LIKE
    vote = svc.cast_vote(db, sol.id, "voter", VoteType.DISLIKE)
    assert vote.vote_type == VoteType.DISLIKE
    assert db.query(SolutionVote).count() == 1
    assert svc.cast_vote(db, sol.id, "voter", VoteType.DISLIKE) is None
    assert svc.vote_tally(db, sol.id, "voter") == {
        "solution_id": sol.id, "likes": 0, "dislikes": 0, "user_vote": None,
    }


def test_delete_removes_dependents(db):
    r = _report(db)
    sol = svc.resolve_symptom(db, r.id, "u1", solution_text="Rest").solutions[0]
    svc.cast_vote(db, sol.id, "voter", VoteType.LIKE)

    with pytest.raises(svc.NotOwner):
        svc.delete_symptom(db, r.id, "voter")
    svc.delete_symptom(db, r.id, "u1")
    assert db.query(Solution).count() == 0
    assert db.query(SolutionVote).count() == 0
