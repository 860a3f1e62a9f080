"""
course_structure.py - Course → subject → module tree transforms

Every function here returns new dicts/lists and leaves its inputs untouched.
A personalized learning path embeds the tree in
steps[].resources.course_structure = {"courses": [{..., "subjects": [{..., "modules": [...]}]}]}.
"""

import re
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Iterable, List, Mapping, Optional

from app.config import settings

logger = logging.getLogger(__name__)

ModulesBySubject = Dict[Any, List[Dict[str, Any]]]

_MODULE_SLUG_RE = re.compile(r"module-([a-z0-9-]+)")


def module_key(module: Mapping[str, Any]) -> Optional[str]:
    """Identity used for de-duplication: id, then module_id, then slug."""
    for field in ("id", "module_id", "moduleId", "slug"):
        value = module.get(field)
        if value not in (None, ""):
            return str(value)
    return None


def _structure_of(step: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    resources = step.get("resources")
    if not isinstance(resources, dict):
        return None
    structure = resources.get("course_structure")
    if isinstance(structure, dict) and isinstance(structure.get("courses"), list):
        return structure
    return None


def _iter_modules(structure: Mapping[str, Any]):
    for course in structure.get("courses") or []:
        for subject in course.get("subjects") or []:
            for module in subject.get("modules") or []:
                yield course, subject, module


def merge_modules_by_subject(*maps: Mapping[Any, List[Dict[str, Any]]]) -> ModulesBySubject:
    """Union of module maps. Earlier maps win on duplicates; order is first-seen."""
    merged: ModulesBySubject = {}
    seen: Dict[Any, set] = {}
    for index, modules_by_subject in enumerate(maps):
        for subject_id, modules in (modules_by_subject or {}).items():
            if index > 0 and not modules:
                continue
            bucket = merged.setdefault(subject_id, [])
            keys = seen.setdefault(subject_id, set())
            for module in modules or []:
                key = module_key(module)
                if key is None:
                    # keyless modules are only carried over from the base map
                    if index == 0:
                        bucket.append(dict(module))
                    continue
                if key in keys:
                    continue
                keys.add(key)
                bucket.append(dict(module))
    return merged


def extract_modules_by_subject(learning_path: Optional[Mapping[str, Any]]) -> ModulesBySubject:
    """Collect the modules already embedded in a path's steps, grouped by subject."""
    modules_map: ModulesBySubject = {}
    if not learning_path or not learning_path.get("steps"):
        return modules_map

    seen = set()
    for step in learning_path["steps"]:
        structure = _structure_of(step)
        if structure is None:
            continue
        for course in structure["courses"]:
            for subject in course.get("subjects") or []:
                subject_id = subject.get("id") or subject.get("subject_id")
                modules = subject.get("modules") or []
                if not subject_id or not modules:
                    continue
                bucket = modules_map.setdefault(subject_id, [])
                for module in modules:
                    module_id = module.get("id") or module.get("module_id")
                    if module_id:
                        if (subject_id, module_id) in seen:
                            continue
                        seen.add((subject_id, module_id))
                    bucket.append(dict(module))
    return modules_map


def build_course_structure(
    subjects: Iterable[Dict[str, Any]],
    courses: Iterable[Dict[str, Any]],
    modules_by_subject: Mapping[Any, List[Dict[str, Any]]],
) -> Dict[str, Any]:
    """Nest modules under their subjects and subjects under their courses."""
    if not modules_by_subject:
        return {"courses": [], "error": "No modules available for course structure"}

    subject_rows = [s for s in subjects if s.get("id") in modules_by_subject]
    course_ids = {s.get("course_id") for s in subject_rows if s.get("course_id") is not None}
    if not course_ids:
        logger.warning("No courses found for the subjects in the course structure")
        return {"courses": []}

    ordered_subjects = sorted(subject_rows, key=lambda s: (s.get("order_index") or 0, s.get("id") or 0))
    tree = []
    for course in courses:
        if course.get("id") not in course_ids:
            continue
        tree.append({
            **course,
            "subjects": [
                {**subject, "modules": [dict(m) for m in modules_by_subject.get(subject["id"], [])]}
                for subject in ordered_subjects
                if subject.get("course_id") == course.get("id")
            ],
        })
    return {"courses": tree}


def is_module_mandatory(
    module_id: Any,
    assigned_ids: Iterable[Any],
    scores: Mapping[Any, int],
) -> bool:
    if module_id not in set(assigned_ids):
        return True
    score = scores.get(module_id)
    if score is None:
        return True
    return score < settings.optional_module_threshold


def personalize_course_structure(
    structure: Optional[Dict[str, Any]],
    assigned_ids: Iterable[Any],
    scores: Mapping[Any, int],
) -> Optional[Dict[str, Any]]:
    """Tag every module leaf with its mandatory/optional status for one user."""
    if not structure or not isinstance(structure.get("courses"), list):
        return structure

    assigned = set(assigned_ids)
    now = datetime.now(timezone.utc).isoformat()

    def personalize(module: Dict[str, Any]) -> Dict[str, Any]:
        module_id = module.get("id")
        is_assigned = module_id in assigned
        mandatory = is_module_mandatory(module_id, assigned, scores)
        status = "mandatory" if mandatory else "optional"
        score = scores.get(module_id)
        return {
            **module,
            "is_mandatory": mandatory,
            "status": status,
            "assessment_score": score,
            "is_assigned": is_assigned,
            "user_module_status": {
                "status": status,
                "correctness_percentage": score or 0,
                "last_updated": now,
                "is_assigned": is_assigned,
            },
        }

    courses = []
    for course in structure["courses"]:
        if not course.get("subjects"):
            courses.append(dict(course))
            continue
        subjects = []
        for subject in course["subjects"]:
            if subject.get("modules") is None:
                subjects.append(dict(subject))
            else:
                subjects.append({**subject, "modules": [personalize(m) for m in subject["modules"]]})
        courses.append({**course, "subjects": subjects})
    return {**structure, "courses": courses}


def extract_module_id_from_step(step: Mapping[str, Any]) -> Optional[Any]:
    resources = step.get("resources")
    if isinstance(resources, dict) and resources.get("module_id"):
        return resources["module_id"]
    text = f"{step.get('title') or ''} {step.get('description') or ''}".lower()
    match = _MODULE_SLUG_RE.search(text)
    if match:
        return f"module-{match.group(1)}"
    return None


def personalize_steps(
    steps: Optional[List[Dict[str, Any]]],
    structure: Dict[str, Any],
    assigned_ids: Iterable[Any],
    scores: Mapping[Any, int],
) -> List[Dict[str, Any]]:
    """Attach the personalized tree to every step with object resources.

    Steps without object resources fall back to step-level gating through
    the module id they reference.
    """
    assigned = set(assigned_ids)
    result = []
    for step in steps or []:
        if isinstance(step.get("resources"), dict):
            result.append({**step, "resources": {**step["resources"], "course_structure": structure}})
            continue
        module_id = extract_module_id_from_step(step)
        is_required = step.get("is_required")
        if module_id:
            is_required = is_module_mandatory(module_id, assigned, scores)
        result.append({**step, "is_required": is_required})
    return result


def apply_course_structure_to_steps(
    steps: Optional[List[Dict[str, Any]]],
    structure: Optional[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Swap in a new tree, but only on steps that already carry one."""
    if not isinstance(steps, list) or not structure:
        return steps or []
    return [
        {**step, "resources": {**step["resources"], "course_structure": structure}}
        if _structure_of(step) is not None else step
        for step in steps
    ]


def analyze_module_distribution(learning_path: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Module counts of a personalized path, by status and by course title."""
    total = mandatory = optional = 0
    by_course: Dict[str, int] = {}

    for step in (learning_path or {}).get("steps") or []:
        structure = _structure_of(step)
        if structure is None:
            continue
        for course in structure["courses"]:
            title = course.get("title") or "Unknown Course"
            by_course.setdefault(title, 0)
            for subject in course.get("subjects") or []:
                for module in subject.get("modules") or []:
                    total += 1
                    by_course[title] += 1
                    if module.get("is_mandatory") is True or module.get("status") == "mandatory":
                        mandatory += 1
                    elif module.get("is_mandatory") is False or module.get("status") == "optional":
                        optional += 1

    return {
        "total_modules": total,
        "mandatory_modules": mandatory,
        "optional_modules": optional,
        "modules_by_course": by_course,
    }


def has_empty_modules(learning_path: Optional[Mapping[str, Any]]) -> bool:
    """True when a stored path needs regenerating: no steps, or a subject with no modules."""
    if not learning_path or not learning_path.get("steps"):
        return True
    for step in learning_path["steps"]:
        structure = _structure_of(step)
        if structure is None:
            continue
        for course in structure["courses"]:
            for subject in course.get("subjects") or []:
                modules = subject.get("modules")
                if modules is not None and len(modules) == 0:
                    logger.info(f"Found empty modules in subject: {subject.get('title')}")
                    return True
    return False


def collect_modules(structure: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Flat list of module leaves in tree order."""
    return [module for _, _, module in _iter_modules(structure)]
