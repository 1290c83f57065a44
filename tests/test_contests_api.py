"""
Contest lifecycle through the HTTP API.
"""
from datetime import timedelta

from app.models import AnswerActivity, Contest, Notification, Participation, Question
from tests.conftest import (
    auth_headers,
    end_contest,
    make_contest,
    make_participation,
    make_question,
    make_user,
    record_answer,
    utcnow,
)

API = "/api/v1/contests"


def contest_payload(question_ids, **overrides):
    now = utcnow()
    payload = {
        "title": "Spring Contest",
        "startTime": (now - timedelta(minutes=5)).isoformat(),
        "endTime": (now + timedelta(hours=1)).isoformat(),
        "questionIds": question_ids,
    }
    payload.update(overrides)
    return payload


class TestCreateContest:
    def test_staff_creates_contest_and_locks_questions(self, client, db, moderator, student):
        q1 = make_question(db, "Q1")
        q2 = make_question(db, "Q2")

        response = client.post(API, json=contest_payload([q1.id, q2.id]), headers=auth_headers(moderator))

        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Spring Contest"
        assert body["questionCount"] == 2
        assert body["negativeMarkingValue"] == 0.25
        assert body["negativeMarkingRatio"] == "1/4"
        assert body["contestCode"] is None
        assert body["status"] == "live"

        db.expire_all()
        assert db.get(Question, q1.id).visibility is False
        assert db.get(Question, q2.id).visibility is False
        announced = db.query(Notification).filter(Notification.type == "CONTEST_ANNOUNCED").all()
        assert {n.user_id for n in announced} == {moderator.id, student.id}

    def test_join_code_is_generated(self, client, db, moderator):
        q1 = make_question(db)

        response = client.post(
            API, json=contest_payload([q1.id], requiresCode=True), headers=auth_headers(moderator)
        )

        code = response.json()["contestCode"]
        assert response.status_code == 201
        assert len(code) == 6
        assert code.isalnum() and code == code.upper()

    def test_end_must_follow_start(self, client, db, moderator):
        q1 = make_question(db)
        now = utcnow()
        payload = contest_payload([q1.id], startTime=now.isoformat(), endTime=now.isoformat())

        response = client.post(API, json=payload, headers=auth_headers(moderator))

        assert response.status_code == 422

    def test_unknown_question(self, client, db, moderator):
        response = client.post(API, json=contest_payload([404]), headers=auth_headers(moderator))

        assert response.status_code == 404
        assert "404" in response.json()["detail"]

    def test_students_cannot_create(self, client, db, student):
        q1 = make_question(db)

        response = client.post(API, json=contest_payload([q1.id]), headers=auth_headers(student))

        assert response.status_code == 403

    def test_requires_authentication(self, client):
        assert client.get(API).status_code == 401


class TestManageContest:
    def test_update_replaces_question_set(self, client, db, moderator):
        q1, q2, q3 = make_question(db, "Q1"), make_question(db, "Q2"), make_question(db, "Q3")
        contest = make_contest(db, [q1, q2])

        response = client.put(
            f"{API}/{contest.id}",
            json={"questionIds": [q2.id, q3.id], "title": "Renamed"},
            headers=auth_headers(moderator),
        )

        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"
        db.expire_all()
        assert db.get(Question, q1.id).visibility is True
        assert db.get(Question, q2.id).visibility is False
        assert db.get(Question, q3.id).visibility is False

    def test_update_rejects_inverted_window(self, client, db, moderator):
        contest = make_contest(db, [make_question(db)])
        before = (utcnow() - timedelta(days=3)).isoformat()

        response = client.put(f"{API}/{contest.id}", json={"endTime": before}, headers=auth_headers(moderator))

        assert response.status_code == 400

    def test_admin_extends_contest_and_participants_are_notified(self, client, db, admin, student):
        contest = make_contest(db, [make_question(db)])
        make_participation(db, student, contest)
        old_end = contest.end_time

        response = client.post(
            f"{API}/{contest.id}/extend", json={"extensionMinutes": 30}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        db.expire_all()
        assert db.get(Contest, contest.id).end_time - old_end == timedelta(minutes=30)
        notice = db.query(Notification).filter(Notification.type == "CONTEST_EXTENDED").one()
        assert notice.user_id == student.id

    def test_only_admins_extend(self, client, db, moderator):
        contest = make_contest(db, [make_question(db)])

        response = client.post(
            f"{API}/{contest.id}/extend", json={"extensionMinutes": 30}, headers=auth_headers(moderator)
        )

        assert response.status_code == 403

    def test_delete_removes_dependents_and_unlocks_questions(self, client, db, moderator, student):
        question = make_question(db, visibility=False)
        contest = make_contest(db, [question])
        make_participation(db, student, contest, submitted=utcnow())
        record_answer(db, student, contest, question, "4")

        response = client.delete(f"{API}/{contest.id}", headers=auth_headers(moderator))

        assert response.status_code == 200
        db.expire_all()
        assert db.query(Contest).count() == 0
        assert db.query(Participation).count() == 0
        assert db.query(AnswerActivity).count() == 0
        assert db.get(Question, question.id).visibility is True

    def test_bulk_delete_skips_unknown_ids(self, client, db, moderator):
        first = make_contest(db, [make_question(db)])
        second = make_contest(db, [make_question(db)])

        response = client.post(
            f"{API}/bulk-delete",
            json={"contestIds": [first.id, second.id, 999]},
            headers=auth_headers(moderator),
        )

        assert response.status_code == 200
        assert response.json()["deletedCount"] == 2
        db.expire_all()
        assert db.query(Contest).count() == 0

    def test_missing_contest(self, client, moderator):
        response = client.get(f"{API}/12345", headers=auth_headers(moderator))

        assert response.status_code == 404
        assert response.json() == {"detail": "Contest not found."}


class TestParticipation:
    def test_join_returns_questions_without_answer_key(self, client, db, student):
        contest = make_contest(db, [make_question(db)])

        response = client.post(f"{API}/{contest.id}/join", headers=auth_headers(student))

        assert response.status_code == 200
        body = response.json()
        assert body["participation"]["contestId"] == contest.id
        assert body["participation"]["violations"] == 0
        question = body["contest"]["questions"][0]
        assert question["options"] == ["3", "4", "5", "6"]
        assert "correctAnswers" not in question

    def test_joining_twice_reuses_participation(self, client, db, student):
        contest = make_contest(db, [make_question(db)])

        first = client.post(f"{API}/{contest.id}/join", headers=auth_headers(student)).json()
        second = client.post(f"{API}/{contest.id}/join", headers=auth_headers(student)).json()

        assert first["participation"]["id"] == second["participation"]["id"]
        assert db.query(Participation).count() == 1

    def test_cannot_join_before_start(self, client, db, student):
        now = utcnow()
        contest = make_contest(db, [make_question(db)], start=now + timedelta(hours=1), end=now + timedelta(hours=2))

        response = client.post(f"{API}/{contest.id}/join", headers=auth_headers(student))

        assert response.status_code == 400

    def test_questions_hidden_until_start(self, client, db, student):
        now = utcnow()
        contest = make_contest(db, [make_question(db)], start=now + timedelta(hours=1), end=now + timedelta(hours=2))

        response = client.get(f"{API}/{contest.id}/questions", headers=auth_headers(student))

        assert response.status_code == 403

    def test_join_by_code(self, client, db, student):
        contest = make_contest(db, [make_question(db)], requires_code=True, contest_code="ABC123")

        response = client.post(f"{API}/join-by-code", json={"contestCode": "abc123"}, headers=auth_headers(student))
        assert response.status_code == 200
        assert response.json()["contest"]["id"] == contest.id

        again = client.post(f"{API}/join-by-code", json={"contestCode": "ABC123"}, headers=auth_headers(student))
        assert again.status_code == 409

    def test_join_by_unknown_code(self, client, db, student):
        response = client.post(f"{API}/join-by-code", json={"contestCode": "NOPE00"}, headers=auth_headers(student))

        assert response.status_code == 404
        assert response.json()["detail"] == "Invalid contest code."

    def test_join_by_code_requires_live_contest(self, client, db, student):
        now = utcnow()
        make_contest(
            db,
            [make_question(db)],
            start=now + timedelta(hours=1),
            end=now + timedelta(hours=2),
            requires_code=True,
            contest_code="LATER1",
        )

        response = client.post(f"{API}/join-by-code", json={"contestCode": "LATER1"}, headers=auth_headers(student))

        assert response.status_code == 400

    def test_second_violation_requests_auto_submit(self, client, db, student):
        contest = make_contest(db, [make_question(db)])
        make_participation(db, student, contest)
        url = f"{API}/{contest.id}/violations"

        first = client.post(url, json={"violationType": "tab_switch"}, headers=auth_headers(student))
        second = client.post(url, json={"violationType": "fullscreen_exit"}, headers=auth_headers(student))

        assert first.json() == {"violations": 1, "shouldAutoSubmit": False}
        assert second.json() == {"violations": 2, "shouldAutoSubmit": True}

    def test_violation_without_participation(self, client, db, student):
        contest = make_contest(db, [make_question(db)])

        response = client.post(
            f"{API}/{contest.id}/violations", json={"violationType": "tab_switch"}, headers=auth_headers(student)
        )

        assert response.status_code == 404

    def test_my_participations(self, client, db, student):
        contest = make_contest(db, [make_question(db)], title="Mine")
        make_participation(db, student, contest)

        response = client.get(f"{API}/me/participations", headers=auth_headers(student))

        assert response.status_code == 200
        assert [p["contestTitle"] for p in response.json()] == ["Mine"]


class TestSubmission:
    def _negative_marking_contest(self, db):
        q1 = make_question(db, "Capital of France?", correct="Paris", options=["Paris", "Rome", "Oslo", "Bern"])
        q2 = make_question(db, "2 + 2 = ?", correct="4")
        return make_contest(db, [q1, q2], has_negative_marking=True, negative_marking_value=0.25), q1, q2

    def test_submission_scores_with_negative_marking(self, client, db, student):
        contest, q1, q2 = self._negative_marking_contest(db)
        client.post(f"{API}/{contest.id}/join", headers=auth_headers(student))

        response = client.post(
            f"{API}/{contest.id}/submit",
            json={"answers": [
                {"questionId": q1.id, "selectedOption": " Paris "},
                {"questionId": q2.id, "selectedOption": "5"},
            ]},
            headers=auth_headers(student),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 0.75
        assert body["correct"] == 1
        assert body["total"] == 2
        assert body["attempted"] == 2
        assert body["negativeMarks"] == 0.25
        assert body["hasNegativeMarking"] is True
        assert body["negativeMarkingValue"] == 0.25
        assert body["negativeMarkingRatio"] == "1/4"
        assert body["percentage"] == 38
        assert body["results"]["finalScore"] == 0.75
        assert [r["isCorrect"] for r in body["questionResults"]] == [True, False]

        db.expire_all()
        participation = db.query(Participation).one()
        assert participation.submitted_at is not None
        assert participation.end_time is not None
        assert db.query(AnswerActivity).count() == 2
        # 38% is below the high-score threshold
        assert db.query(Notification).filter(Notification.type == "HIGH_SCORE").count() == 0

    def test_empty_submission_lists_every_question(self, client, db, student):
        contest, _, _ = self._negative_marking_contest(db)
        make_participation(db, student, contest)

        body = client.post(f"{API}/{contest.id}/submit", json={"answers": []}, headers=auth_headers(student)).json()

        assert body["score"] == 0
        assert body["attempted"] == 0
        assert len(body["questionResults"]) == 2
        assert all(not r["isAttempted"] for r in body["questionResults"])

    def test_high_score_creates_notification(self, client, db, student):
        contest, q1, q2 = self._negative_marking_contest(db)
        make_participation(db, student, contest)

        client.post(
            f"{API}/{contest.id}/submit",
            json={"answers": [
                {"questionId": q1.id, "selectedOption": "Paris"},
                {"questionId": q2.id, "selectedOption": "4"},
            ]},
            headers=auth_headers(student),
        )

        notice = db.query(Notification).filter(Notification.type == "HIGH_SCORE").one()
        assert notice.user_id == student.id
        assert notice.data["percentage"] == 100

    def test_auto_submit_records_violation(self, client, db, student):
        contest, q1, _ = self._negative_marking_contest(db)
        make_participation(db, student, contest, violations=1)

        body = client.post(
            f"{API}/{contest.id}/submit",
            json={"answers": [], "autoSubmitted": True, "violationType": "tab_switch"},
            headers=auth_headers(student),
        ).json()

        assert body["autoSubmitted"] is True
        assert body["violations"] == 2

    def test_submit_without_joining(self, client, db, student):
        contest, _, _ = self._negative_marking_contest(db)

        response = client.post(f"{API}/{contest.id}/submit", json={"answers": []}, headers=auth_headers(student))

        assert response.status_code == 404


class TestResults:
    def test_result_hidden_until_contest_ends(self, client, db, student):
        contest = make_contest(db, [make_question(db)])
        make_participation(db, student, contest)

        response = client.get(f"{API}/{contest.id}/result", headers=auth_headers(student))

        assert response.status_code == 403
        body = response.json()
        assert body["detail"] == "Results not available yet"
        assert body["timeUntilEnd"] > 0
        assert "contestEndTime" in body

    def test_result_uses_latest_submission(self, client, db, student):
        question = make_question(db)
        contest = make_contest(db, [question])
        client.post(f"{API}/{contest.id}/join", headers=auth_headers(student))
        submit = f"{API}/{contest.id}/submit"
        client.post(submit, json={"answers": [{"questionId": question.id, "selectedOption": "3"}]}, headers=auth_headers(student))
        client.post(submit, json={"answers": [{"questionId": question.id, "selectedOption": "4"}]}, headers=auth_headers(student))
        end_contest(db, contest)

        response = client.get(f"{API}/{contest.id}/result", headers=auth_headers(student))

        assert response.status_code == 200
        body = response.json()
        assert body["hasParticipated"] is True
        assert body["correct"] == 1
        assert body["finalScore"] == 1
        assert body["percentage"] == 100
        assert body["totalMaxMarks"] == 1

    def test_resubmission_clears_answers_left_out(self, client, db, student):
        q1 = make_question(db, "Q1")
        q2 = make_question(db, "Q2")
        contest = make_contest(db, [q1, q2])
        client.post(f"{API}/{contest.id}/join", headers=auth_headers(student))
        submit = f"{API}/{contest.id}/submit"
        client.post(
            submit,
            json={"answers": [
                {"questionId": q1.id, "selectedOption": "4"},
                {"questionId": q2.id, "selectedOption": "4"},
            ]},
            headers=auth_headers(student),
        )
        resubmitted = client.post(
            submit, json={"answers": [{"questionId": q2.id, "selectedOption": "4"}]}, headers=auth_headers(student)
        ).json()
        end_contest(db, contest)

        result = client.get(f"{API}/{contest.id}/result", headers=auth_headers(student)).json()
        board = client.get(f"{API}/{contest.id}/leaderboard", headers=auth_headers(student)).json()["leaderboard"]

        assert resubmitted["correct"] == 1
        assert result["correct"] == 1
        assert board[0]["correct"] == 1
        assert result["attempted"] == 1

    def test_result_flags_auto_submit_after_repeated_violations(self, client, db, student):
        contest = make_contest(db, [make_question(db)])
        make_participation(db, student, contest, violations=2)
        end_contest(db, contest)

        body = client.get(f"{API}/{contest.id}/result", headers=auth_headers(student)).json()

        assert body["violations"] == 2
        assert body["autoSubmitted"] is True

    def test_result_for_non_participant(self, client, db, student):
        contest = make_contest(db, [make_question(db)])
        end_contest(db, contest)

        body = client.get(f"{API}/{contest.id}/result", headers=auth_headers(student)).json()

        assert body["hasParticipated"] is False
        assert body["finalScore"] == 0
        assert body["timeTaken"] == 0
        assert len(body["questionResults"]) == 1

    def test_leaderboard_breaks_ties_by_submission_time(self, client, db, student, other_student):
        questions = [make_question(db, f"Q{i}") for i in range(10)]
        contest = make_contest(db, questions)
        carol = make_user(db, "carol@example.com", full_name="Carol")
        now = utcnow()
        scored = [
            (other_student, 10, now - timedelta(minutes=10)),
            (student, 10, now - timedelta(minutes=20)),
            (carol, 8, now - timedelta(minutes=30)),
        ]
        for user, correct_count, submitted in scored:
            make_participation(db, user, contest, start=now - timedelta(minutes=40), end=submitted, submitted=submitted)
            for index, question in enumerate(questions):
                record_answer(db, user, contest, question, "4" if index < correct_count else "3", at=submitted)

        response = client.get(f"{API}/{contest.id}/leaderboard", headers=auth_headers(student))

        assert response.status_code == 200
        board = response.json()["leaderboard"]
        assert [(e["userName"], e["rank"]) for e in board] == [("Alice", 1), ("Bob", 2), ("Carol", 3)]
        assert board[0]["timeTaken"] == 20
        assert board[2]["accuracy"] == 80

    def test_stats_with_no_participants(self, client, db, moderator):
        contest = make_contest(db, [make_question(db), make_question(db)])

        response = client.get(f"{API}/{contest.id}/stats", headers=auth_headers(moderator))

        assert response.status_code == 200
        body = response.json()
        assert body["average"] == 0
        assert body["averagePercentage"] == 0
        assert body["totalParticipants"] == 0
        assert all(q["notAttempted"] == 0 for q in body["questionStats"])

    def test_stats_require_staff(self, client, db, student):
        contest = make_contest(db, [make_question(db)])

        assert client.get(f"{API}/{contest.id}/stats", headers=auth_headers(student)).status_code == 403

    def test_all_contest_stats(self, client, db, moderator, student):
        question = make_question(db)
        contest = make_contest(db, [question], title="Overview")
        make_participation(db, student, contest, submitted=utcnow())
        record_answer(db, student, contest, question, "4")

        body = client.get(f"{API}/stats/all", headers=auth_headers(moderator)).json()

        row = body["contestStats"][0]
        assert row["contestTitle"] == "Overview"
        assert row["totalParticipants"] == 1
        assert row["averageScore"] == 1
        assert row["status"] == "live"

    def test_analysis(self, client, db, moderator, student):
        question = make_question(db)
        contest = make_contest(db, [question])
        make_participation(db, student, contest, submitted=utcnow())
        record_answer(db, student, contest, question, "5")

        body = client.get(f"{API}/{contest.id}/analysis", headers=auth_headers(moderator)).json()

        counts = body["questionAnalysis"][0]["optionCounts"]
        assert counts == {"3": 0, "4": 0, "5": 1, "6": 0, "notAttempted": 0}
        assert body["performanceMetrics"]["completedParticipants"] == 1

    def test_participant_detail(self, client, db, moderator, student):
        question = make_question(db)
        contest = make_contest(db, [question])
        participation = make_participation(db, student, contest, submitted=utcnow())
        record_answer(db, student, contest, question, "4")

        listing = client.get(f"{API}/{contest.id}/participants", headers=auth_headers(moderator)).json()
        detail = client.get(
            f"{API}/{contest.id}/participants/{participation.id}", headers=auth_headers(moderator)
        ).json()

        assert listing["participants"][0]["participationId"] == participation.id
        assert detail["participant"]["rank"] == 1
        assert detail["participant"]["userEmail"] == "alice@example.com"
        assert detail["questions"][0]["isCorrect"] is True

    def test_unknown_participant(self, client, db, moderator):
        contest = make_contest(db, [make_question(db)])

        response = client.get(f"{API}/{contest.id}/participants/999", headers=auth_headers(moderator))

        assert response.status_code == 404
