"""Tests for the DCF HTTP client."""

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from dcf_app.models.enums import DatasetStatus
from dcf_pipeline.amend.exceptions import DownloadError
from dcf_pipeline.dcf.client import DCFClient
from dcf_pipeline.dcf.datasets import DatasetDescriptor

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

DATASET_LIST = [
    {"datasetId": "11", "senderDatasetId": "FR1704", "status": "ACCEPTED DWH"},
    {"datasetId": "12", "senderDatasetId": "FR1704.01", "status": "VALID"},
    {"datasetId": "99", "senderDatasetId": "FR17045", "status": "VALID"},
]


def _make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    download_dir: Path | None = None,
    username: str | None = None,
) -> DCFClient:
    return DCFClient(
        base_url="https://dcf.test/api",
        username=username,
        password="secret" if username else None,
        download_dir=download_dir or Path("data/dcf"),
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def _make_descriptor(dataset_id: str = "12") -> DatasetDescriptor:
    return DatasetDescriptor(
        dataset_id=dataset_id, sender_id="FR1704.01", status=DatasetStatus.VALID
    )


# ---------------------------------------------------------------------------
# list_versions
# ---------------------------------------------------------------------------


class TestListVersions:
    @pytest.mark.asyncio
    async def test_returns_descriptors_of_report(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=DATASET_LIST)

        versions = await _make_client(handler).list_versions("FR1704")

        assert [v.sender_id for v in versions] == ["FR1704", "FR1704.01"]
        assert versions[0].status == DatasetStatus.ACCEPTED_DWH
        assert requests[0].url.path == "/api/datasets"
        assert requests[0].url.params["senderDatasetId"] == "FR1704"

    @pytest.mark.asyncio
    async def test_sends_basic_auth(self) -> None:
        headers: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers.get("Authorization", ""))
            return httpx.Response(200, json=[])

        await _make_client(handler, username="user").list_versions("FR1704")

        assert headers[0].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_http_error_maps_to_download_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="server error")

        with pytest.raises(DownloadError):
            await _make_client(handler).list_versions("FR1704")

    @pytest.mark.asyncio
    async def test_transport_error_maps_to_download_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DownloadError):
            await _make_client(handler).list_versions("FR1704")

    @pytest.mark.asyncio
    async def test_invalid_json_maps_to_download_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="not json")

        with pytest.raises(DownloadError):
            await _make_client(handler).list_versions("FR1704")


# ---------------------------------------------------------------------------
# download
# ---------------------------------------------------------------------------


class TestDownload:
    @pytest.mark.asyncio
    async def test_saves_file(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/datasets/12/file"
            return httpx.Response(200, content=b"<message/>")

        path = await _make_client(handler, tmp_path).download(_make_descriptor())

        assert path.parent == tmp_path
        assert path.read_bytes() == b"<message/>"

    @pytest.mark.asyncio
    async def test_not_found_maps_to_download_error(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        with pytest.raises(DownloadError) as exc_info:
            await _make_client(handler, tmp_path).download(_make_descriptor())

        assert exc_info.value.dataset_id == "12"

    @pytest.mark.asyncio
    async def test_empty_body_is_an_error(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"")

        with pytest.raises(DownloadError):
            await _make_client(handler, tmp_path).download(_make_descriptor())

    @pytest.mark.asyncio
    async def test_missing_dataset_id(self, tmp_path: Path) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, content=b"<message/>")

        with pytest.raises(DownloadError):
            await _make_client(handler, tmp_path).download(_make_descriptor(""))

        assert calls == []

    @pytest.mark.asyncio
    async def test_no_retry(self, tmp_path: Path) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        with pytest.raises(DownloadError):
            await _make_client(handler, tmp_path).download(_make_descriptor())

        assert len(calls) == 1


# ---------------------------------------------------------------------------
# list_available
# ---------------------------------------------------------------------------


class TestListAvailable:
    @pytest.mark.asyncio
    async def test_newest_downloadable_version_per_report(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json=[
                    {"datasetId": "11", "senderDatasetId": "FR1704", "status": "ACCEPTED DWH"},
                    {"datasetId": "12", "senderDatasetId": "FR1704.01", "status": "VALID"},
                    {"datasetId": "13", "senderDatasetId": "FR1704.02", "status": "DELETED"},
                    {"datasetId": "21", "senderDatasetId": "IT1705", "status": "REJECTED"},
                    {"datasetId": "31", "senderDatasetId": "draft-report", "status": "VALID"},
                ],
            )

        available = await _make_client(handler).list_available()

        assert [(d.sender_id, d.dataset_id) for d in available] == [("FR1704.01", "12")]
        assert "senderDatasetId" not in requests[0].url.params

    @pytest.mark.asyncio
    async def test_http_error_maps_to_download_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401)

        with pytest.raises(DownloadError):
            await _make_client(handler).list_available()
