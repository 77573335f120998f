"""
Pytest configuration to ensure the application package (assessment_engine/) is importable.

This adjusts sys.path so `from assessment_engine.api.main import app` works when
tests run from the container root without an installed package. It also provides
a small seeded catalog shared by the service, store and API tests.
"""
import sys
from pathlib import Path

import pytest

# Compute the backend root that contains the 'assessment_engine' directory
BACKEND_ROOT = Path(__file__).resolve().parents[1]

# Prepend backend root to sys.path if not already present
backend_root_str = str(BACKEND_ROOT)
if backend_root_str not in sys.path:
    sys.path.insert(0, backend_root_str)

from assessment_engine.core.config import reset_settings_cache  # noqa: E402
from assessment_engine.db.memory import MemoryAssessmentStore  # noqa: E402
from assessment_engine.db.store import reset_store_cache  # noqa: E402
from assessment_engine.models.domain import (  # noqa: E402
    Competency,
    Role,
    RoleType,
    SubCompetency,
    Subject,
)


def make_catalog():
    """Two competencies with three sub-competencies in total.

    `sub-arch` only has legacy criteria, the others are keyed by level.
    """
    role = Role(id="role-eng", name="Engineer", type=RoleType.IC)
    competencies = [
        Competency(id="comp-delivery", title="Delivery", code="2", order_index=2),
        Competency(id="comp-craft", title="Craft", code="1", order_index=1),
    ]
    subs = [
        SubCompetency(
            id="sub-testing",
            competency_id="comp-craft",
            title="Testing",
            code="1.2",
            order_index=2,
            level_criteria={
                "p2_developing": ["Writes unit tests", "Can debug flaky tests", "Understands mocking"],
                "p3_career": ["Designs test strategy", "Can mentor on testing", "Understands contract tests"],
            },
        ),
        SubCompetency(
            id="sub-code",
            competency_id="comp-craft",
            title="Code Quality",
            code="1.1",
            order_index=1,
            level_criteria={
                "p2_developing": ["Follows style guide", "Consistently writes readable code"],
                "p3_career": ["Sets style guide", "Reviews for readability"],
            },
        ),
        SubCompetency(
            id="sub-arch",
            competency_id="comp-delivery",
            title="Planning",
            code="2.1",
            order_index=1,
            intermediate_level=["Estimates own tasks", "Flags risks early"],
            senior_level=["Estimates team work", "Manages risks"],
        ),
    ]
    return role, competencies, subs


def make_subject(subject_id="member-1", level="p2_developing", name="Alex", **kwargs):
    return Subject(id=subject_id, name=name, current_level_key=level, role_type=RoleType.IC, **kwargs)


async def seed_store(store, subjects=()):
    role, competencies, subs = make_catalog()
    await store.add_role(role)
    for comp in competencies:
        await store.add_competency(comp)
    for sub in subs:
        await store.add_sub_competency(sub)
    for subject in subjects:
        await store.add_subject(subject)
    return competencies, subs


@pytest.fixture(autouse=True)
def _fresh_caches():
    """Settings and the store singleton are re-read per test."""
    reset_settings_cache()
    reset_store_cache()
    yield
    reset_settings_cache()
    reset_store_cache()


@pytest.fixture
def memory_store():
    return MemoryAssessmentStore()


@pytest.fixture
def catalog():
    return make_catalog()
