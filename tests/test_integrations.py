# Userup Python SDK
# File: tests/test_integrations.py
# Version: v1

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from userup.config import UserupConfig
from userup.errors import RemoteError, ValidationError
from userup.integrations import IntegrationsClient
from userup.mock import MockUserService
from userup.models import Integration, Job, JobStatus


def _client() -> IntegrationsClient:
    return IntegrationsClient(config=UserupConfig(), transport=MockUserService())


@pytest.mark.asyncio
async def test_integration_lifecycle() -> None:
    client = _client()
    added = await client.add_integration(
        Integration(name="crm-sync", schedule="@daily", settings={"batch": 50})
    )
    assert added.id > 0
    assert added.settings == {"batch": 50}

    added.enabled = True
    updated = await client.update_integration(added)
    assert updated.enabled is True
    assert (await client.get_integration("crm-sync")).enabled is True

    assert [i.name for i in await client.list_integrations()] == ["crm-sync"]

    await client.remove_integration("crm-sync")
    assert await client.list_integrations() == []
    with pytest.raises(RemoteError) as exc_info:
        await client.get_integration("crm-sync")
    assert exc_info.value.code == "not_found"
    assert exc_info.value.key == "crm-sync"


@pytest.mark.asyncio
async def test_job_updates_and_history() -> None:
    client = _client()
    await client.add_integration(Integration(name="nightly"))

    started = datetime(2024, 5, 1, 2, 0, tzinfo=timezone.utc)
    await client.job_update(Job(integration_name="nightly", started=started, status=JobStatus.RUNNING))

    history = await client.get_job_history("nightly")
    assert len(history) == 1
    assert history[0].status is JobStatus.RUNNING
    assert history[0].started == started

    finished = Job(
        integration_name="nightly",
        id=history[0].id,
        started=started,
        ended=datetime(2024, 5, 1, 2, 5, tzinfo=timezone.utc),
        status=JobStatus.SUCCEEDED,
    )
    await client.job_update(finished)
    history = await client.get_job_history("nightly")
    assert [j.status for j in history] == [JobStatus.SUCCEEDED]


@pytest.mark.asyncio
async def test_integration_validation() -> None:
    client = _client()
    with pytest.raises(ValidationError):
        await client.add_integration(Integration(name=""))
    with pytest.raises(ValidationError):
        await client.get_job_history("")
    with pytest.raises(RemoteError):
        await client.job_update(Job(integration_name="missing"))
