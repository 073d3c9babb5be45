"""
Contrat d'écriture utilisé par le board admin, et ses deux implémentations:
- LocalAdminApi: appelle directement jobs.services (même process que l'API)
- AdminApiClient: client httpx de l'API admin (cookie admin_session)
Toutes les méthodes retournent un MutationResult, jamais d'exception réseau.
"""
import logging
from typing import Optional

from django.conf import settings
import httpx

from jobs.services import mutations
from jobs.services.mutations import CODE_STORE, MutationResult
from jobs.services.queries import fetch_admin_jobs

from .store import FetchResult
from .store_http import USER_AGENT

logger = logging.getLogger(__name__)


class BaseAdminApi:
    def list_jobs(self) -> FetchResult:
        raise NotImplementedError

    def create_job(self, values: dict) -> MutationResult:
        raise NotImplementedError

    def update_status(self, job_id: str, status: str) -> MutationResult:
        raise NotImplementedError

    def update_progress(self, job_id: str, pieces_completed: int, total_pieces: int) -> MutationResult:
        raise NotImplementedError

    def update_details(self, job_id: str, values: dict) -> MutationResult:
        raise NotImplementedError

    def delete_job(self, job_id: str) -> MutationResult:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class LocalAdminApi(BaseAdminApi):
    def list_jobs(self) -> FetchResult:
        result = fetch_admin_jobs()
        return FetchResult(jobs=result.jobs, error=result.error, fetched_at=result.fetched_at)

    def create_job(self, values):
        return mutations.create_job(values)

    def update_status(self, job_id, status):
        return mutations.update_status(job_id, status)

    def update_progress(self, job_id, pieces_completed, total_pieces):
        return mutations.update_progress(job_id, pieces_completed, total_pieces)

    def update_details(self, job_id, values):
        return mutations.update_details(job_id, values)

    def delete_job(self, job_id):
        return mutations.delete_job(job_id)


class AdminApiClient(BaseAdminApi):
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        cfg = settings.SVB_DISPLAY
        self._client = httpx.Client(
            base_url=base_url or cfg["API_BASE_URL"],
            timeout=timeout_s if timeout_s is not None else cfg["HTTP_TIMEOUT_S"],
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=transport,
        )

    def login(self, username: str, password: str) -> MutationResult:
        """Ouvre la session admin; le cookie est conservé par le client httpx."""
        return self._call("POST", "auth/login", json={"username": username, "password": password})

    def logout(self) -> MutationResult:
        return self._call("POST", "auth/logout")

    def list_jobs(self) -> FetchResult:
        result = self._call("GET", "admin/jobs/")
        if not result.ok:
            return FetchResult(error=result.error)
        return FetchResult(jobs=list(result.data))

    def create_job(self, values):
        return self._call("POST", "admin/jobs/", json=values)

    def update_status(self, job_id, status):
        return self._call("POST", f"admin/jobs/{job_id}/status/", json={"status": status})

    def update_progress(self, job_id, pieces_completed, total_pieces):
        return self._call(
            "POST", f"admin/jobs/{job_id}/progress/",
            json={"pieces_completed": pieces_completed, "total_pieces": total_pieces},
        )

    def update_details(self, job_id, values):
        return self._call("PATCH", f"admin/jobs/{job_id}/", json=values)

    def delete_job(self, job_id):
        result = self._call("DELETE", f"admin/jobs/{job_id}/")
        if result.ok:
            return MutationResult(data={"id": str(job_id)})
        return result

    def close(self) -> None:
        self._client.close()

    def _call(self, method: str, path: str, json=None) -> MutationResult:
        try:
            resp = self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning("Admin API %s %s failed: %s", method, path, e)
            return MutationResult(error="Unable to reach the server", code=CODE_STORE)

        if resp.status_code == 204 or not resp.content:
            body = None
        else:
            try:
                body = resp.json()
            except ValueError:
                body = None

        if resp.is_success:
            return MutationResult(data=body)

        error = (body or {}).get("error") if isinstance(body, dict) else None
        if error:
            return MutationResult(
                error=error.get("message") or f"HTTP {resp.status_code}",
                code=error.get("code") or CODE_STORE,
            )
        return MutationResult(error=f"HTTP {resp.status_code}", code=CODE_STORE)
