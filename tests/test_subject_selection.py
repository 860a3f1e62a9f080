"""Tests for subject selection, the fast-track skip and the student assessment wrapper."""

import pytest

from app.db import curriculum
from app.db import module_status as status_store
from app.errors import InvalidRequestError, NotFoundError
from app.services import student_assessment
from app.services import subject_selection as ss

from helpers import create_course, create_fixtures, module_leaves, run_with_db


class TestSanitize:

    def test_sanitize_subject_ids(self):
        assert ss.sanitize_subject_ids(["3", 3, "x", -1, 0, True, None, " 5 "]) == [3, 5]
        assert ss.sanitize_subject_ids(None) == []


class TestSubjectSelection:

    def test_available_subjects_grouped_by_course(self):
        async def scenario(db):
            fx = await create_fixtures(db)
            return fx, await ss.get_available_subjects(db, fx["user_id"])

        fx, available = run_with_db(scenario)
        assert [c["id"] for c in available["courses"]] == [fx["course_id"]]
        assert [s["id"] for s in available["courses"][0]["subjects"]] == [fx["subject_id"]]
        assert [s["id"] for s in available["subjects"]] == [fx["subject_id"]]

    def test_select_opens_an_assessment(self):
        async def scenario(db):
            fx = await create_fixtures(db)
            result = await ss.save_selected_subjects(db, fx["user_id"], [str(fx["subject_id"])])
            profile = await curriculum.get_user(db, fx["user_id"])
            return fx, result, profile

        fx, result, profile = run_with_db(scenario)
        assert result["selected_subjects"] == [fx["subject_id"]]
        assert result["assessment_id"]
        assert result["question_count"] == 10
        assert result["auto_fast_tracked"] is False
        assert "fast_track" not in result
        assert profile["subject_selection_completed"] is True

    def test_subjects_without_questions_fast_track(self):
        async def scenario(db):
            fx = await create_fixtures(db)
            course = await create_course(db, title="Empty", subjects=(("Nothing yet", ("Placeholder",)),))
            empty_subject = course["subjects"][0]["id"]
            result = await ss.save_selected_subjects(db, fx["user_id"], [empty_subject])
            selected = await ss.get_selected_subjects(db, fx["user_id"])
            profile = await curriculum.get_user(db, fx["user_id"])
            statuses = await status_store.get_module_statuses(db, fx["user_id"])
            return fx, empty_subject, result, selected, profile, statuses

        fx, empty_subject, result, selected, profile, statuses = run_with_db(scenario)
        assert result["question_count"] == 0
        assert result["auto_fast_tracked"] is True
        assert result["fast_track"]["reason"] == ss.NO_QUESTIONS_REASON
        assert result["fast_track"]["modules_seeded"] == 2
        assert selected["selected_subjects"] == [empty_subject]
        assert profile["onboarding_completed"] is True
        assert {s["status"] for s in statuses} == {"mandatory"}

    def test_skip_clears_selection_and_returns_path(self):
        async def scenario(db):
            fx = await create_fixtures(db)
            await ss.save_selected_subjects(db, fx["user_id"], [fx["subject_id"]])
            result = await ss.skip_subject_selection(db, fx["user_id"], "beginner")
            selected = await ss.get_selected_subjects(db, fx["user_id"])
            return fx, result, selected

        fx, result, selected = run_with_db(scenario)
        assert result["success"] is True
        assert result["skipped"] is True
        assert result["reason"] == "beginner"
        assert result["modules_seeded"] == 2
        assert selected["selected_subjects"] == []
        leaves = module_leaves(result["learning_path"])
        assert all(m["is_mandatory"] for ms in leaves.values() for m in ms)

    def test_skip_without_templates_has_no_path(self):
        async def scenario(db):
            fx = await create_fixtures(db)
            await db.execute("DELETE FROM learning_path_steps")
            await db.execute("DELETE FROM learning_paths")
            await db.commit()
            return await ss.skip_subject_selection(db, fx["user_id"])

        result = run_with_db(scenario)
        assert result["success"] is True
        assert result["learning_path"] is None


class TestStudentAssessment:

    def test_available_counts_completed_attempts(self):
        async def scenario(db):
            fx = await create_fixtures(db)
            started = await student_assessment.start_assessment(db, fx["user_id"])
            await student_assessment.finish(db, fx["user_id"], started["assessment"]["id"], [])
            return started, await student_assessment.get_available_assessments(db, fx["user_id"])

        started, available = run_with_db(scenario)
        assert started["success"] is True
        assert len(started["questions"]) == 10
        assert available[0]["id"] == "default-assessment"
        assert available[0]["student_info"] == {"total_attempts": 1, "can_retake": True}

    def test_finish_envelope(self):
        async def scenario(db):
            fx = await create_fixtures(db)
            started = await student_assessment.start_assessment(db, fx["user_id"])
            qid = fx["questions"][fx["module_a"]][0]
            return await student_assessment.finish(
                db, fx["user_id"], started["assessment"]["id"],
                [{"q_index": 0, "question_id": qid, "answer": 0, "skipped": False}],
            )

        result = run_with_db(scenario)
        assert result["success"] is True
        assert result["redirectTo"] == "/learning-path"
        assert result["result"]["score"] == 100

    def test_validation_errors(self):
        async def scenario(db):
            fx = await create_fixtures(db)
            with pytest.raises(InvalidRequestError):
                await student_assessment.finish(db, fx["user_id"], None, [])
            with pytest.raises(InvalidRequestError):
                await student_assessment.finish(db, fx["user_id"], 1, None)
            with pytest.raises(InvalidRequestError):
                await student_assessment.evaluate(db, None, "x")
            with pytest.raises(NotFoundError):
                await student_assessment.get_status(db, fx["user_id"])

        run_with_db(scenario)

    def test_status_returns_latest(self):
        async def scenario(db):
            fx = await create_fixtures(db)
            await student_assessment.start_assessment(db, fx["user_id"])
            second = await student_assessment.start_assessment(db, fx["user_id"])
            return second, await student_assessment.get_status(db, fx["user_id"])

        second, status = run_with_db(scenario)
        assert status["assessment"]["id"] == second["assessment"]["id"]
