"""
API tests for upload, page info, merge and download endpoints.
"""
import asyncio

import pytest
from fastapi import HTTPException

from pdf_composer.web_api import storage

from conftest import build_pdf, page_labels


def upload(client, content: bytes, filename="sample.pdf",
           content_type="application/pdf"):
  return client.post("/api/upload",
                     files={"pdf": (filename, content, content_type)})


def test_health_check(client):
  response = client.get("/api/health")
  assert response.status_code == 200
  payload = response.json()
  assert payload["status"] == "OK"
  assert "version" in payload
  assert "timestamp" in payload
  assert payload["uptime_seconds"] >= 0


def test_upload_returns_page_count_and_thumbnails(client, sample_pdf):
  response = upload(client, sample_pdf)

  assert response.status_code == 200
  payload = response.json()
  assert payload["success"] is True
  assert payload["pageCount"] == 4
  assert payload["filename"] == "sample.pdf"
  assert payload["fileId"].endswith("sample.pdf")
  assert [t["page"] for t in payload["thumbnails"]] == [0, 1, 2, 3]
  assert payload["thumbnails"][0]["buffer"].startswith("data:image/png;base64,")


def test_upload_is_written_off_the_event_loop(client, sample_pdf, monkeypatch):
  writes = []
  original = storage.write_upload

  def recording_write(file_id, data):
    try:
      asyncio.get_running_loop()
      writes.append("event loop")
    except RuntimeError:
      writes.append("worker thread")
    return original(file_id, data)

  monkeypatch.setattr(storage, "write_upload", recording_write)
  response = upload(client, sample_pdf)

  assert response.status_code == 200
  assert writes == ["worker thread"]
  assert (storage.get_upload_dir() / response.json()["fileId"]).read_bytes() == sample_pdf


def test_upload_limits_thumbnails(client, monkeypatch):
  monkeypatch.setenv("PDF_COMPOSER_MAX_THUMBNAIL_PAGES", "2")
  response = upload(client, build_pdf(5))

  assert response.status_code == 200
  assert response.json()["pageCount"] == 5
  assert len(response.json()["thumbnails"]) == 2


def test_upload_rejects_non_pdf_type(client):
  response = upload(client, b"hello", filename="notes.txt",
                    content_type="text/plain")
  assert response.status_code == 415


def test_upload_rejects_missing_file(client):
  response = client.post("/api/upload")
  assert response.status_code == 400


def test_upload_rejects_corrupt_pdf(client):
  response = upload(client, b"%PDF-1.4 this is not really a pdf")
  assert response.status_code == 400


def test_upload_rejects_oversize_file(client, monkeypatch):
  monkeypatch.setenv("PDF_COMPOSER_MAX_UPLOAD_MB", "1")
  response = upload(client, b"0" * (1024 * 1024 + 1))
  assert response.status_code == 413


def test_pdf_info_and_thumbnails(client, sample_pdf):
  file_id = upload(client, sample_pdf).json()["fileId"]

  info = client.get(f"/api/pdf/{file_id}/info")
  assert info.status_code == 200
  assert info.json() == {"pageCount": 4, "filename": file_id}

  thumbnails = client.get(f"/api/pdf/{file_id}/thumbnails")
  assert thumbnails.status_code == 200
  assert len(thumbnails.json()["thumbnails"]) == 4


def test_pdf_info_unknown_file(client):
  assert client.get("/api/pdf/missing.pdf/info").status_code == 404
  assert client.get("/api/pdf/missing.pdf/thumbnails").status_code == 404


def test_compose_and_download(client, sample_pdf):
  file_id = upload(client, sample_pdf).json()["fileId"]

  response = client.post("/api/compose",
                         json={
                           "fileId": file_id,
                           "selectedPages": [2, 0],
                           "coverPage": 3,
                           "coverPlacement": "bottom",
                           "exportFormat": "pdf",
                         })
  assert response.status_code == 200
  payload = response.json()
  assert payload["success"] is True
  assert payload["downloadUrl"] == f"/api/download/{payload['filename']}"

  download = client.get(payload["downloadUrl"])
  assert download.status_code == 200
  assert download.headers["content-type"] == "application/pdf"
  assert page_labels(download.content) == ["Page 1", "Page 3", "Page 4"]


@pytest.mark.parametrize("body, status", [
  ({"fileId": "x.pdf", "selectedPages": []}, 400),
  ({"fileId": "missing.pdf", "selectedPages": [0]}, 404),
])
def test_compose_rejects_bad_requests(client, body, status):
  assert client.post("/api/compose", json=body).status_code == status


def test_compose_rejects_unsupported_format(client, sample_pdf):
  file_id = upload(client, sample_pdf).json()["fileId"]
  response = client.post("/api/compose",
                         json={
                           "fileId": file_id,
                           "selectedPages": [0],
                           "exportFormat": "docx",
                         })
  assert response.status_code == 400


def test_compose_reports_merge_failure(client, tmp_path):
  upload_dir = tmp_path / "uploads"
  (upload_dir / "broken.pdf").write_bytes(b"garbage")

  response = client.post("/api/compose",
                         json={"fileId": "broken.pdf", "selectedPages": [0]})
  assert response.status_code == 500


def test_download_missing_file(client):
  assert client.get("/api/download/nothing-here.pdf").status_code == 404


def test_metrics_count_artifacts(client, sample_pdf):
  upload(client, sample_pdf)

  metrics = client.get("/api/metrics").json()
  assert metrics["artifacts"]["upload"] >= 1
  assert metrics["requests_total"] >= 1


def test_sanitize_uploaded_filename_strips_paths():
  assert storage.sanitize_uploaded_filename("../../etc/pass wd.pdf") == "pass_wd.pdf"
  with pytest.raises(HTTPException):
    storage.sanitize_uploaded_filename("..")


def test_resolve_output_refuses_traversal(tmp_path, monkeypatch):
  output_dir = tmp_path / "output"
  output_dir.mkdir()
  (tmp_path / "secret.txt").write_text("secret")
  monkeypatch.setenv("PDF_COMPOSER_OUTPUT_DIR", str(output_dir))

  with pytest.raises(HTTPException) as excinfo:
    storage.resolve_output("../secret.txt")
  assert excinfo.value.status_code == 404
