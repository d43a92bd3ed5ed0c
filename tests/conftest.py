"""Shared fixtures for hireflow tests."""

from __future__ import annotations

import pytest

from hireflow.actions import ActionServices, build_registry
from hireflow.collaborators import (
    InMemoryChatNotifier,
    InMemoryCrmSync,
    InMemoryEntityStore,
    InMemoryMailer,
)
from hireflow.executor import WorkflowExecutor
from hireflow.persistence import InMemoryExecutionStore

TENANT = "acme"


@pytest.fixture
def tenant() -> str:
    return TENANT


@pytest.fixture
def entities() -> InMemoryEntityStore:
    store = InMemoryEntityStore()
    store.add_candidate(
        TENANT,
        {
            "id": "c1",
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "status": "assessment_completed",
            "hiPeopleScore": 85,
            "job_id": "j1",
        },
    )
    store.add_job(TENANT, {"id": "j1", "title": "Staff Engineer"})
    store.add_interview(
        TENANT,
        {"id": "i1", "candidate_id": "c1", "job_id": "j1", "scheduledDate": "2026-11-02 10:00"},
    )
    return store


@pytest.fixture
def mailer() -> InMemoryMailer:
    return InMemoryMailer()


@pytest.fixture
def chat() -> InMemoryChatNotifier:
    return InMemoryChatNotifier()


@pytest.fixture
def crm() -> InMemoryCrmSync:
    return InMemoryCrmSync()


@pytest.fixture
def services(entities, mailer, chat, crm) -> ActionServices:
    return ActionServices(entities=entities, mailer=mailer, chat=chat, crm=crm)


@pytest.fixture
def registry(services):
    return build_registry(services)


@pytest.fixture
def store() -> InMemoryExecutionStore:
    return InMemoryExecutionStore()


@pytest.fixture
def executor(store, registry) -> WorkflowExecutor:
    return WorkflowExecutor(store, registry)


@pytest.fixture
def context() -> dict:
    return {
        "candidate": {
            "id": "c1",
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "hiPeopleScore": 85,
        },
        "job": {"id": "j1", "title": "Staff Engineer"},
        "user": {"id": "u1", "fullName": "Grace Hopper"},
    }
