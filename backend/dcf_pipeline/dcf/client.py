"""HTTP client for the data collection service (DCF).

Two endpoints are used:

- ``GET {base}/datasets?senderDatasetId=FR1704`` lists the datasets of a
  report as JSON items ``{datasetId, senderDatasetId, status}``; without
  the parameter it lists every dataset of the account;
- ``GET {base}/datasets/{datasetId}/file`` returns a dataset as XML.

Requests are not retried: a version that cannot be fetched aborts the
operation that needed it.
"""

import logging
from pathlib import Path
from typing import Any

import httpx

from dcf_pipeline.amend.exceptions import DownloadError
from dcf_pipeline.dcf.datasets import (
    DatasetDescriptor,
    downloadable_datasets,
    filter_by_sender_id,
    sort_ascending,
)

logger = logging.getLogger(__name__)


class DCFClient:
    """Lists and downloads report versions from the DCF.

    Implements the DatasetSource protocol used by the version replayer.
    """

    def __init__(
        self,
        base_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        download_dir: Path | str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the DCF client.

        Args:
            base_url: Service root URL. Defaults to settings.dcf_base_url.
            username: Basic auth user. Defaults to settings.dcf_username.
            password: Basic auth password. Defaults to settings.dcf_password.
            download_dir: Where dataset files are saved. Defaults to
                settings.download_dir.
            timeout: HTTP request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        from dcf_app.config import settings

        self.base_url = (base_url or settings.dcf_base_url).rstrip("/")
        self.username = username if username is not None else settings.dcf_username
        if password is None and settings.dcf_password is not None:
            password = settings.dcf_password.get_secret_value()
        self.password = password
        self.download_dir = Path(download_dir or settings.download_dir)
        self.timeout = timeout if timeout is not None else settings.dcf_timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        auth = None
        if self.username:
            auth = httpx.BasicAuth(self.username, self.password or "")
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            auth=auth,
            transport=self.transport,
        )

    async def _fetch_datasets(
        self, params: dict[str, str], label: str
    ) -> list[DatasetDescriptor]:
        try:
            async with self._client() as client:
                response = await client.get("/datasets", params=params)
                response.raise_for_status()
                items: list[dict[str, Any]] = response.json()
        except httpx.HTTPError as e:
            raise DownloadError(f"Cannot list datasets of {label}: {e}") from e
        except ValueError as e:
            raise DownloadError(f"Invalid dataset list for {label}: {e}") from e
        return [DatasetDescriptor.from_api_response(item) for item in items]

    async def list_versions(self, sender_dataset_id: str) -> list[DatasetDescriptor]:
        """List the upstream versions of a report.

        Args:
            sender_dataset_id: Report sender id without version ("FR1704").

        Returns:
            Descriptors of the report's versions, as returned by the DCF.

        Raises:
            DownloadError: If the request fails or returns an error status.
        """
        datasets = await self._fetch_datasets(
            {"senderDatasetId": sender_dataset_id}, sender_dataset_id
        )
        # The service matches sender ids by prefix; keep this report only
        versions = filter_by_sender_id(datasets, sender_dataset_id)
        logger.info(f"Found {len(versions)} versions of report {sender_dataset_id}")
        return versions

    async def list_available(self) -> list[DatasetDescriptor]:
        """List the reports of the account that can be imported.

        Returns:
            The newest downloadable version of each report.

        Raises:
            DownloadError: If the request fails or returns an error status.
        """
        available = downloadable_datasets(await self._fetch_datasets({}, "account"))
        logger.info(f"Found {len(available)} reports available for import")
        return sort_ascending(available)

    async def download(self, descriptor: DatasetDescriptor) -> Path:
        """Download one dataset version to the download directory.

        Returns:
            Path of the saved XML file.

        Raises:
            DownloadError: If the request fails, returns an error status or
                an empty body, or the file cannot be written.
        """
        dataset_id = descriptor.dataset_id
        if not dataset_id:
            raise DownloadError(
                f"Dataset {descriptor.sender_id} has no DCF id", dataset_id=None
            )

        logger.info(f"Downloading dataset {dataset_id} ({descriptor.sender_id})")
        try:
            async with self._client() as client:
                response = await client.get(f"/datasets/{dataset_id}/file")
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise DownloadError(
                f"Cannot download dataset {dataset_id}: {e}", dataset_id=dataset_id
            ) from e

        if not response.content:
            raise DownloadError(
                f"Dataset {dataset_id} file is empty", dataset_id=dataset_id
            )

        path = self.download_dir / f"{descriptor.sender_id}_{dataset_id}.xml"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(response.content)
        except OSError as e:
            raise DownloadError(
                f"Cannot save dataset {dataset_id} to {path}: {e}",
                dataset_id=dataset_id,
            ) from e

        logger.debug(f"Saved dataset {dataset_id} to {path}")
        return path
