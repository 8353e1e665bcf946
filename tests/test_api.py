"""Tests for the HTTP ingress routes."""

import time

import pytest
from fastapi.testclient import TestClient

from fakes import BlockingRenderService, Pipeline
from qa_pipeline.config import Settings
from qa_pipeline.main import Services, create_app
from qa_pipeline.storage.artifacts import LocalArtifactStore


def _app(pipeline: Pipeline, artifacts=None):
    return create_app(
        services_factory=lambda cfg: Services(scheduler=pipeline.scheduler, artifacts=artifacts),
        cfg=Settings(),
    )


@pytest.fixture()
def report_store(tmp_path) -> LocalArtifactStore:
    return LocalArtifactStore(str(tmp_path / "reports"), "http://testserver")


@pytest.fixture()
def client(report_store):
    # Jobs never leave the render stage, so every assertion sees a stable queue
    pipeline = Pipeline(render=BlockingRenderService())
    with TestClient(_app(pipeline, report_store)) as c:
        yield c


class TestJobsApi:
    def test_submit_job(self, client, job_input):
        response = client.post("/api/v1/jobs", json=job_input)

        assert response.status_code == 200
        body = response.json()
        assert body["job"]["article_id"] == "A1"
        assert body["job"]["status"] == "pending"
        assert body["queue_status"]["total"] == 1

    def test_duplicate_submit_returns_same_job(self, client, job_input):
        first = client.post("/api/v1/jobs", json=job_input).json()["job"]["id"]
        second = client.post("/api/v1/jobs", json=job_input).json()["job"]["id"]

        assert first == second
        assert client.get("/api/v1/jobs").json()["total_jobs"] == 1

    @pytest.mark.parametrize(
        "payload",
        [
            {"articleId": "A1"},
            {"productName": "Chair"},
            {"articleId": "  ", "productName": "Chair"},
        ],
    )
    def test_invalid_submit_is_rejected(self, client, payload):
        response = client.post("/api/v1/jobs", json=payload)

        assert response.status_code == 400
        assert "Invalid job input" in response.json()["detail"]
        assert client.get("/api/v1/jobs").json()["total_jobs"] == 0

    def test_get_job_by_id(self, client, job_input):
        job_id = client.post("/api/v1/jobs", json=job_input).json()["job"]["id"]

        response = client.get(f"/api/v1/jobs/{job_id}")

        assert response.status_code == 200
        job = response.json()["job"]
        assert job["id"] == job_id
        assert job["references"] == ["https://ref.test/ref1.jpg"]
        assert job["processing_logs"][0] == "Job created for article A1"

    def test_unknown_job_is_404(self, client):
        assert client.get("/api/v1/jobs/nope").status_code == 404
        assert client.get("/api/v1/jobs", params={"job_id": "nope"}).status_code == 404
        assert client.get("/api/v1/jobs", params={"article_id": "nope"}).status_code == 404

    def test_lookup_by_query(self, client, job_input):
        job_id = client.post("/api/v1/jobs", json=job_input).json()["job"]["id"]

        assert client.get("/api/v1/jobs", params={"job_id": job_id}).json()["job"]["id"] == job_id
        assert client.get("/api/v1/jobs", params={"article_id": "A1"}).json()["job"]["id"] == job_id

    def test_list_newest_first_with_limit(self, client):
        for article in ("A", "B", "C"):
            client.post("/api/v1/jobs", json={"articleId": article, "productName": article})

        body = client.get("/api/v1/jobs", params={"limit": 2}).json()

        assert [j["article_id"] for j in body["jobs"]] == ["C", "B"]
        assert body["total_jobs"] == 2
        assert body["queue_status"]["total"] == 3

    def test_limit_out_of_range(self, client):
        assert client.get("/api/v1/jobs", params={"limit": 0}).status_code == 422
        assert client.get("/api/v1/jobs", params={"limit": 501}).status_code == 422


class TestStatusChangeApi:
    def test_delivered_status_starts_qa(self, client):
        response = client.post("/api/v1/status-change", json={
            "articleId": "A7",
            "productName": "Sofa",
            "status": "Delivered by Artist",
            "oldStatus": "In Progress",
            "references": ["https://ref.test/a.jpg", "https://ref.test/b.jpg"],
            "sheetId": "sheet-1",
            "rowIndex": 12,
        })

        body = response.json()
        assert response.status_code == 200
        assert body["should_start_qa"] is True
        assert body["reference_count"] == 2
        assert body["queue_job"]["status"] == "pending"

        job = client.get(f"/api/v1/jobs/{body['queue_job']['id']}").json()["job"]
        assert job["sheet_id"] == "sheet-1"
        assert job["row_index"] == 12

    def test_other_status_is_only_recorded(self, client):
        body = client.post("/api/v1/status-change", json={
            "articleId": "A7", "status": "In Progress",
        }).json()

        assert body["should_start_qa"] is False
        assert body["queue_job"] is None
        assert client.get("/api/v1/jobs").json()["total_jobs"] == 0

    def test_rejected_admission_is_reported(self, client):
        body = client.post("/api/v1/status-change", json={
            "articleId": " ", "status": "delivered",
        }).json()

        assert body["status"] == "success"
        assert body["queue_job"] is None
        assert "Invalid job input" in body["admission_error"]

    def test_recent_changes_newest_first(self, client):
        for i, ts in enumerate(("2024-01-01T00:00:00Z", "2024-06-01T00:00:00Z")):
            client.post("/api/v1/status-change", json={
                "articleId": f"A{i}", "status": "Modelling", "timestamp": ts,
            })

        body = client.get("/api/v1/status-change").json()
        assert body["recent_changes_count"] == 2
        assert [c["article_id"] for c in body["recent_changes"]] == ["A1", "A0"]

        since = client.get("/api/v1/status-change", params={"since": "2024-03-01T00:00:00"}).json()
        assert [c["article_id"] for c in since["recent_changes"]] == ["A1"]

        limited = client.get("/api/v1/status-change", params={"limit": 1}).json()
        assert len(limited["recent_changes"]) == 1
        assert limited["has_more"] is True


class TestHealthAndReports:
    @pytest.mark.parametrize("path", ["/health", "/api/v1/health"])
    def test_health(self, client, path):
        body = client.get(path).json()

        assert body["status"] == "healthy"
        assert body["queue_status"]["total"] == 0

    def test_report_download(self, client, report_store):
        path = report_store.get_path("qa-report-A1-abcd1234.pdf")
        with open(path, "wb") as f:
            f.write(b"%PDF-1.4 test")

        response = client.get("/api/v1/reports/qa-report-A1-abcd1234.pdf")

        assert response.status_code == 200
        assert response.content == b"%PDF-1.4 test"
        assert response.headers["content-type"] == "application/pdf"

    def test_missing_report_is_404(self, client):
        assert client.get("/api/v1/reports/missing.pdf").status_code == 404


def test_routes_unavailable_before_startup():
    app = _app(Pipeline())
    client = TestClient(app)

    assert client.get("/api/v1/jobs").status_code == 503
    assert client.get("/health").json()["status"] == "starting"


def test_remote_artifacts_are_not_served_locally():
    with TestClient(_app(Pipeline())) as client:
        assert client.get("/api/v1/reports/any.pdf").status_code == 404


def test_job_runs_to_completion():
    pipeline = Pipeline()
    with TestClient(_app(pipeline)) as client:
        job_id = client.post("/api/v1/jobs", json={
            "articleId": "A1",
            "productName": "Chair",
            "references": ["https://ref.test/ref1.jpg"],
            "sheetId": "sheet-1",
            "rowIndex": 3,
        }).json()["job"]["id"]

        deadline = time.monotonic() + 5
        job = None
        while time.monotonic() < deadline:
            job = client.get(f"/api/v1/jobs/{job_id}").json()["job"]
            if job["status"] == "completed":
                break
            time.sleep(0.02)

    assert job["status"] == "completed"
    assert len(job["images"]) == 5
    assert job["analysis"]["verdict"] == "Approved"
    assert job["report_url"].startswith("https://reports.test/qa-report-A1-")
    assert pipeline.publisher.published == [job_id]
