# Userup Python SDK
# File: integrations.py
# Version: v2

"""Client for the ``userapi.Integrations`` service (integrations and jobs)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, List, Optional

from .client import ServiceClient, _require_key, _response_list, _response_object
from .models import Integration, Job
from .rpc import INTEGRATIONS_SERVICE
from .wire import integration_from_wire, integration_to_wire, job_from_wire, job_to_wire


@dataclass
class IntegrationsClient(ServiceClient):
    service: ClassVar[str] = INTEGRATIONS_SERVICE

    async def add_integration(
        self, integration: Integration, *, timeout: Optional[float] = None
    ) -> Integration:
        _require_key(integration.name, "integration.name")
        resp = await self._invoke(
            "AddIntegration",
            {"integration": integration_to_wire(integration)},
            key=integration.name,
            timeout=timeout,
        )
        return self._decode(
            "AddIntegration",
            integration.name,
            integration_from_wire,
            _response_object(resp, "integration", "AddIntegration"),
        )

    async def get_integration(self, name: str, *, timeout: Optional[float] = None) -> Integration:
        _require_key(name, "name")
        resp = await self._invoke("GetIntegration", {"name": name}, key=name, timeout=timeout)
        return self._decode(
            "GetIntegration",
            name,
            integration_from_wire,
            _response_object(resp, "integration", "GetIntegration"),
        )

    async def update_integration(
        self, integration: Integration, *, timeout: Optional[float] = None
    ) -> Integration:
        _require_key(integration.name, "integration.name")
        resp = await self._invoke(
            "UpdateIntegration",
            {"integration": integration_to_wire(integration)},
            key=integration.name,
            timeout=timeout,
        )
        return self._decode(
            "UpdateIntegration",
            integration.name,
            integration_from_wire,
            _response_object(resp, "integration", "UpdateIntegration"),
        )

    async def remove_integration(self, name: str, *, timeout: Optional[float] = None) -> None:
        _require_key(name, "name")
        await self._invoke("RemoveIntegration", {"name": name}, key=name, timeout=timeout)

    async def list_integrations(self, *, timeout: Optional[float] = None) -> List[Integration]:
        resp = await self._invoke("ListIntegrations", {}, timeout=timeout)
        return [
            self._decode("ListIntegrations", None, integration_from_wire, i)
            for i in _response_list(resp, "integrations")
        ]

    async def job_update(self, job: Job, *, timeout: Optional[float] = None) -> None:
        """Report the state of a job run."""
        _require_key(job.integration_name, "job.integration_name")
        await self._invoke(
            "JobUpdate", {"job": job_to_wire(job)}, key=job.integration_name, timeout=timeout
        )

    async def get_job_history(
        self, integration_name: str, *, timeout: Optional[float] = None
    ) -> List[Job]:
        _require_key(integration_name, "integration_name")
        resp = await self._invoke(
            "GetJobHistory",
            {"integration_name": integration_name},
            key=integration_name,
            timeout=timeout,
        )
        return [
            self._decode("GetJobHistory", integration_name, job_from_wire, j)
            for j in _response_list(resp, "job_history")
        ]
