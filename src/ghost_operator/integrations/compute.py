"""
Compute platform integrations.

A ``ComputeTarget`` lists services, reports their status and performs the
restart, scale and resume operations the strategy engine chooses. Two
implementations are provided:

- ``RenderComputeTarget``: the Render REST API, via ``requests``
- ``SimulatedComputeTarget``: in-memory services with scriptable health

Example:
    >>> compute = RenderComputeTarget(api_key=os.environ["RENDER_API_KEY"])
    >>> services = await compute.list_services()
    >>> ok = await compute.restart(services[0].id)
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Any, Deque, Dict, Iterable, List, Optional, Set, Tuple

import requests

from ..constants import DEFAULT_HTTP_TIMEOUT_SECONDS, DEFAULT_RENDER_BASE_URL
from ..exceptions import ComputeTargetError
from ..models import ServiceInfo
from ..retry import retry_async

logger = logging.getLogger(__name__)


class ComputeTarget(ABC):
    """Contract for a platform hosting the services being remediated."""

    @abstractmethod
    async def list_services(self) -> List[ServiceInfo]:
        """All services visible to this account."""

    @abstractmethod
    async def get_status(self, service_id: str) -> Optional[str]:
        """Current status of one service, ``None`` if unknown."""

    @abstractmethod
    async def restart(self, service_id: str) -> bool:
        """Restart a service. Returns True when the platform accepted it."""

    @abstractmethod
    async def scale(self, service_id: str, num_instances: int) -> bool:
        """Change a service's instance count."""

    @abstractmethod
    async def resume(self, service_id: str) -> bool:
        """Resume a suspended service."""


def _service_status(payload: Dict[str, Any]) -> str:
    return 'suspended' if payload.get('suspended') == 'suspended' else 'active'


class RenderComputeTarget(ComputeTarget):
    """
    Render REST API client.

    Restart triggers a new deploy, scale patches ``numInstances`` and resume
    posts to the resume endpoint. Connection errors and timeouts are retried
    with exponential backoff; an error status raises ``ComputeTargetError``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_RENDER_BASE_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key}',
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        })

    def _send(self, method: str, path: str, **kwargs) -> Any:
        response = self.session.request(
            method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs
        )
        if response.status_code >= 400:
            raise ComputeTargetError(
                f"{method} {path} returned HTTP {response.status_code}"
            )
        return response.json() if response.content else None

    @retry_async()
    async def _request(self, method: str, path: str, **kwargs) -> Any:
        return await asyncio.to_thread(self._send, method, path, **kwargs)

    async def list_services(self) -> List[ServiceInfo]:
        data = await self._request('GET', '/services', params={'limit': 20})

        services = []
        for item in data or []:
            svc = item.get('service', item)
            details = svc.get('serviceDetails') or {}
            services.append(ServiceInfo(
                id=svc['id'],
                name=svc['name'],
                type=svc.get('type'),
                status=_service_status(svc),
                url=details.get('url') or svc.get('url'),
            ))

        logger.debug(f"Render reported {len(services)} service(s)")
        return services

    async def get_status(self, service_id: str) -> Optional[str]:
        data = await self._request('GET', f'/services/{service_id}')
        return _service_status(data) if data else None

    async def restart(self, service_id: str) -> bool:
        await self._request('POST', f'/services/{service_id}/deploys')
        logger.info(f"Restarted service {service_id}")
        return True

    async def scale(self, service_id: str, num_instances: int) -> bool:
        await self._request(
            'PATCH',
            f'/services/{service_id}',
            json={'serviceDetails': {'numInstances': num_instances}},
        )
        logger.info(f"Scaled service {service_id} to {num_instances} instances")
        return True

    async def resume(self, service_id: str) -> bool:
        await self._request('POST', f'/services/{service_id}/resume')
        logger.info(f"Resumed service {service_id}")
        return True


class SimulatedComputeTarget(ComputeTarget):
    """
    In-memory compute target.

    Each operation records a call and then applies the next scripted status
    for the affected service; with nothing scripted the service becomes
    ``active``. Operations listed in ``failing`` return False and leave the
    service untouched.

    Example:
        >>> compute = SimulatedComputeTarget([
        ...     ServiceInfo(id="srv-1", name="ghost-api", status="suspended"),
        ... ])
        >>> compute.script("ghost-api", "suspended")  # first action does not help
    """

    def __init__(
        self,
        services: Iterable[ServiceInfo] = (),
        failing: Iterable[str] = (),
    ):
        self._services: Dict[str, ServiceInfo] = {s.id: s.model_copy() for s in services}
        self._scripts: Dict[str, Deque[str]] = defaultdict(deque)
        self.failing: Set[str] = set(failing)
        self.calls: List[Tuple[str, str, Optional[int]]] = []
        self.instances: Dict[str, int] = {}

    def add_service(self, service: ServiceInfo) -> None:
        self._services[service.id] = service.model_copy()

    def set_status(self, name: str, status: str) -> None:
        for service in self._services.values():
            if service.name == name:
                service.status = status

    def script(self, name: str, *statuses: str) -> None:
        """Queue the statuses successive actions on ``name`` leave behind."""
        self._scripts[name].extend(statuses)

    async def list_services(self) -> List[ServiceInfo]:
        return [s.model_copy() for s in self._services.values()]

    async def get_status(self, service_id: str) -> Optional[str]:
        service = self._services.get(service_id)
        return service.status if service else None

    def _apply(self, operation: str, service_id: str, arg: Optional[int] = None) -> bool:
        self.calls.append((operation, service_id, arg))

        service = self._services.get(service_id)
        if service is None:
            raise ComputeTargetError(f"Unknown service {service_id}")
        if operation in self.failing:
            logger.info(f"Simulated {operation} of {service.name} failed")
            return False

        script = self._scripts.get(service.name)
        service.status = script.popleft() if script else 'active'
        logger.info(f"Simulated {operation} of {service.name}, status now {service.status}")
        return True

    async def restart(self, service_id: str) -> bool:
        return self._apply('restart', service_id)

    async def scale(self, service_id: str, num_instances: int) -> bool:
        ok = self._apply('scale', service_id, num_instances)
        if ok:
            self.instances[service_id] = num_instances
        return ok

    async def resume(self, service_id: str) -> bool:
        return self._apply('resume', service_id)
