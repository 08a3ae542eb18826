"""
API Client for the Lead Intake Service

Handles all HTTP requests to the FastAPI backend.
"""
import requests
from typing import Optional, List, Dict, Any

from config.settings import settings
from src.leadintake.client.poller import JobPoller


class UploadsAPIClient:
    """Client for the upload and maintenance endpoints."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None):
        """
        Initialize API client.

        Args:
            base_url: Base URL for API endpoints (default: settings.api_base_url)
            timeout: Request timeout in seconds
        """
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.api_timeout_seconds
        self.session = requests.Session()

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Make a request to the API.

        Raises:
            requests.HTTPError: If request fails
        """
        url = f"{self.base_url}{endpoint}"
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        response.raise_for_status()
        return response.json()

    def health_check(self) -> Dict[str, Any]:
        return self._request("GET", "/health")

    def validate_csv(self, csv_text: str, city: Optional[str] = None, state: Optional[str] = None) -> Dict[str, Any]:
        """
        Check pasted CSV text before uploading it.

        Returns:
            ``{"valid": bool, "errors": [...], "detection": {...}}``
        """
        return self._request(
            "POST",
            "/api/v1/uploads/validate",
            json={"csv_text": csv_text, "city": city, "state": state},
        )

    def create_upload(
        self,
        user_id: str,
        filename: str,
        content: bytes,
        city: Optional[str] = None,
        state: Optional[str] = None,
        county: Optional[str] = None,
        auto_split: bool = True,
    ) -> Dict[str, Any]:
        """
        Upload a CSV file.

        Returns:
            ``{"job": {...}, "action": "process" | "split", "detection": {...}}``
        """
        data = {"user_id": user_id, "auto_split": str(auto_split).lower()}
        for key, value in (("city", city), ("state", state), ("county", county)):
            if value:
                data[key] = value

        return self._request(
            "POST",
            "/api/v1/uploads",
            data=data,
            files={"file": (filename, content, "text/csv")},
        )

    def get_job(self, job_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/v1/uploads/{job_id}")

    def list_jobs(self, user_id: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        params = {"limit": limit}
        if user_id:
            params["user_id"] = user_id
        return self._request("GET", "/api/v1/uploads", params=params)

    def reprocess(self, job_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/api/v1/uploads/{job_id}/reprocess")

    def delete(self, job_id: int) -> Dict[str, Any]:
        return self._request("DELETE", f"/api/v1/uploads/{job_id}")

    def backfill(
        self,
        batch_size: int = 100,
        start_offset: int = 0,
        city_filter: Optional[str] = None,
        state_filter: Optional[str] = None,
        dry_run: bool = False,
    ) -> Dict[str, Any]:
        """
        Run one aggregate backfill batch.

        Returns:
            Batch result; ``nextOffset`` is present while properties remain
        """
        payload = {
            "batchSize": batch_size,
            "startOffset": start_offset,
            "dryRun": dry_run,
        }
        if city_filter:
            payload["cityFilter"] = city_filter
        if state_filter:
            payload["stateFilter"] = state_filter
        return self._request("POST", "/api/v1/maintenance/backfill-aggregates", json=payload)

    def run_job_monitor(self) -> Dict[str, Any]:
        return self._request("POST", "/api/v1/maintenance/job-monitor")

    def poller(self, job_id: int, **kwargs) -> JobPoller:
        """Poller bound to one job; call ``notify()`` on it to wake early."""
        return JobPoller(lambda: self.get_job(job_id), **kwargs)

    def wait_for_job(
        self,
        job_id: int,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Block until a job is COMPLETE or FAILED.

        Returns:
            Terminal job record
        """
        if timeout is None:
            timeout = settings.poll_timeout_seconds
        return self.poller(job_id, interval=interval, timeout=timeout).run()
