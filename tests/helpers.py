"""
helpers.py - Shared database setup and fixtures for the test suite

Tests are plain pytest functions; async code runs through asyncio.run on a
fresh in-memory database per test (see run_with_db).
"""

import asyncio
import json

import aiosqlite

from app.db.database import SCHEMA_PATH


async def setup_test_db(path: str = ":memory:") -> aiosqlite.Connection:
    """Initialize a database with the full schema."""
    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row
    await db.executescript(SCHEMA_PATH.read_text())
    await db.commit()
    return db


def run_with_db(scenario):
    """Run `await scenario(db)` against a fresh in-memory database."""
    async def _main():
        db = await setup_test_db()
        try:
            return await scenario(db)
        finally:
            await db.close()
    return asyncio.run(_main())


async def create_user(db, name="Test Student", email="student@test.com", **profile):
    cursor = await db.execute(
        """INSERT INTO users (name, email, role, career_goals, focus_areas)
           VALUES (?, ?, 'student', ?, ?)""",
        (
            name,
            email,
            json.dumps(profile.get("career_goals", [])),
            json.dumps(profile.get("focus_areas", [])),
        )
    )
    await db.commit()
    return cursor.lastrowid


async def create_course(db, title="Data Analytics", subjects=(("Statistics", ("Mean and median", "Variance")),)):
    """Create a course with subjects and modules.

    Returns {"course_id", "subjects": [{"id", "modules": [module ids]}]}.
    """
    cursor = await db.execute("INSERT INTO courses (title) VALUES (?)", (title,))
    course_id = cursor.lastrowid
    created = []
    for s_index, (subject_title, module_titles) in enumerate(subjects):
        cursor = await db.execute(
            "INSERT INTO subjects (course_id, title, order_index) VALUES (?, ?, ?)",
            (course_id, subject_title, s_index)
        )
        subject_id = cursor.lastrowid
        module_ids = []
        for m_index, module_title in enumerate(module_titles):
            cursor = await db.execute(
                "INSERT INTO modules (subject_id, title, order_index) VALUES (?, ?, ?)",
                (subject_id, module_title, m_index)
            )
            module_ids.append(cursor.lastrowid)
        created.append({"id": subject_id, "modules": module_ids})
    await db.commit()
    return {"course_id": course_id, "subjects": created}


async def assign_course(db, user_id, course_id):
    await db.execute(
        "INSERT INTO user_course_assignments (user_id, course_id) VALUES (?, ?)",
        (user_id, course_id)
    )
    await db.commit()


async def add_mcq_question(db, module_id, text="Pick one", options=("right", "wrong", "also wrong"), correct=0,
                           question_type="mcq", image_url=None):
    cursor = await db.execute(
        """INSERT INTO assessment_questions (module_id, question_type, question_text, question_image_url)
           VALUES (?, ?, ?, ?)""",
        (module_id, question_type, text, image_url)
    )
    question_id = cursor.lastrowid
    for index, option in enumerate(options):
        await db.execute(
            """INSERT INTO assessment_question_options (question_id, option_text, is_correct, order_index)
               VALUES (?, ?, ?, ?)""",
            (question_id, option, int(index == correct), index)
        )
    await db.commit()
    return question_id


async def add_text_question(db, module_id, correct_answer, text="Explain", question_type="text",
                            keywords=None, alternates=None, exact_match=False):
    cursor = await db.execute(
        "INSERT INTO assessment_questions (module_id, question_type, question_text) VALUES (?, ?, ?)",
        (module_id, question_type, text)
    )
    question_id = cursor.lastrowid
    await db.execute(
        """INSERT INTO assessment_text_answers
           (question_id, correct_answer, exact_match, alternate_answers, keywords)
           VALUES (?, ?, ?, ?, ?)""",
        (question_id, correct_answer, int(exact_match), json.dumps(alternates or []), json.dumps(keywords or []))
    )
    await db.commit()
    return question_id


async def create_template_path(db, title="Data Analyst Path", career_goal="data_analyst"):
    """A template path with one course-structure step and one plain step."""
    cursor = await db.execute(
        """INSERT INTO learning_paths (title, description, career_goal, difficulty_level)
           VALUES (?, ?, ?, 'beginner')""",
        (title, f"{title} template", career_goal)
    )
    path_id = cursor.lastrowid
    await db.execute(
        """INSERT INTO learning_path_steps (learning_path_id, title, step_type, order_index, resources)
           VALUES (?, 'Core curriculum', 'course', 0, ?)""",
        (path_id, json.dumps({"kind": "course"}))
    )
    await db.execute(
        """INSERT INTO learning_path_steps (learning_path_id, title, step_type, order_index)
           VALUES (?, 'Capstone project', 'project', 1)""",
        (path_id,)
    )
    await db.commit()
    return path_id


async def create_fixtures(db):
    """One user assigned to a course with subject S holding modules A and B,
    five mcq questions per module and a data-analyst template path.
    """
    user_id = await create_user(db)
    course = await create_course(db, subjects=(("Statistics", ("Module A", "Module B")),))
    await assign_course(db, user_id, course["course_id"])
    subject = course["subjects"][0]
    module_a, module_b = subject["modules"]

    questions = {module_a: [], module_b: []}
    for module_id in (module_a, module_b):
        for i in range(5):
            questions[module_id].append(await add_mcq_question(db, module_id, text=f"Q{i} of {module_id}"))

    path_id = await create_template_path(db)
    return {
        "user_id": user_id,
        "course_id": course["course_id"],
        "subject_id": subject["id"],
        "module_a": module_a,
        "module_b": module_b,
        "questions": questions,
        "path_id": path_id,
    }


def module_leaves(learning_path):
    """All module leaves embedded in a personalized path's steps, keyed by module id."""
    leaves = {}
    for step in learning_path.get("steps") or []:
        resources = step.get("resources")
        if not isinstance(resources, dict):
            continue
        structure = resources.get("course_structure") or {}
        for course in structure.get("courses") or []:
            for subject in course.get("subjects") or []:
                for module in subject.get("modules") or []:
                    leaves.setdefault(module["id"], []).append(module)
    return leaves
