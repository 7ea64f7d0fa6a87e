import asyncio
import threading
from pathlib import Path

from fastapi.testclient import TestClient

from cara.app import app
from cara.ids import new_id

client = TestClient(app)

LEASE_TEXT = b"RESIDENTIAL LEASE AGREEMENT\nThe tenant shall pay rent on the first day of each month.\n"


def _upload(headers, **form):
    files = {"file": ("lease.txt", LEASE_TEXT, "text/plain")}
    return client.post("/v1/documents", files=files, data=form, headers=headers)


def test_document_lifecycle(llm):
    headers = {"X-User-Id": new_id()}
    r = _upload(headers, description="My lease", tags='["lease", "housing"]')
    assert r.status_code == 201
    doc = r.json()["document"]
    assert doc["title"] == "lease"
    assert doc["tags"] == ["lease", "housing"]
    assert doc["file_type"] == "text/plain"
    assert doc["file_size"] == len(LEASE_TEXT)
    assert Path(doc["file_path"]).read_bytes() == LEASE_TEXT
    doc_id = doc["id"]
    assert client.get(f"/v1/documents/{doc_id}", headers=headers).json()["document"] == doc

    listing = client.get("/v1/documents", headers=headers).json()
    assert listing["results"] == 1
    assert listing["documents"][0]["id"] == doc_id

    r = client.patch(f"/v1/documents/{doc_id}", json={"title": "Apartment lease", "is_public": True}, headers=headers)
    assert r.status_code == 200
    assert r.json()["document"]["title"] == "Apartment lease"
    assert r.json()["document"]["is_public"] is True
    assert r.json()["document"]["description"] == "My lease"

    llm.reply = "This lease sets a monthly rent obligation."
    r = client.post(f"/v1/documents/{doc_id}/analyze", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"ok": True, "documentId": doc_id, "analysis": "This lease sets a monthly rent obligation."}
    sent = llm.calls[-1]
    assert sent["max_tokens"] == 2500
    assert "RESIDENTIAL LEASE AGREEMENT" in sent["messages"][1]["content"]

    stored = client.get(f"/v1/documents/{doc_id}", headers=headers).json()["document"]
    assert stored["ai_analysis"]["analysis"] == "This lease sets a monthly rent obligation."

    assert client.delete(f"/v1/documents/{doc_id}", headers=headers).status_code == 204
    assert not Path(doc["file_path"]).exists()
    assert client.get(f"/v1/documents/{doc_id}", headers=headers).status_code == 404


def test_documents_are_scoped_to_owner():
    doc_id = _upload({"X-User-Id": new_id()}).json()["document"]["id"]
    other = {"X-User-Id": new_id()}
    assert client.get(f"/v1/documents/{doc_id}", headers=other).status_code == 404
    assert client.delete(f"/v1/documents/{doc_id}", headers=other).status_code == 404
    assert client.get("/v1/documents", headers=other).json()["results"] == 0


def test_malformed_document_id_is_rejected():
    r = client.get("/v1/documents/not-a-real-id")
    assert r.status_code == 400
    assert r.json()["ok"] is False


def test_upload_validation():
    headers = {"X-User-Id": new_id()}
    files = {"file": ("run.sh", b"echo hi", "application/x-sh")}
    assert client.post("/v1/documents", files=files, headers=headers).status_code == 400
    assert _upload(headers, tags="not json").status_code == 400

    doc_id = _upload(headers).json()["document"]["id"]
    assert client.patch(f"/v1/documents/{doc_id}", json={"title": ""}, headers=headers).status_code == 400


def test_analyze_missing_file_is_not_found():
    headers = {"X-User-Id": new_id()}
    doc = _upload(headers).json()["document"]
    Path(doc["file_path"]).unlink()
    r = client.post(f"/v1/documents/{doc['id']}/analyze", headers=headers)
    assert r.status_code == 404
    assert r.json()["error"] == "Document file not found"


def test_analysis_storage_runs_off_the_event_loop(tmp_path, monkeypatch):
    from cara import db
    from cara.services import documents as documents_svc
    from cara.state import State
    from conftest import FakeLLM

    owner = new_id()
    path = tmp_path / "will.txt"
    path.write_text("LAST WILL AND TESTAMENT")
    doc = db.insert_document(owner, "will", str(path), "text/plain", path.stat().st_size)

    threads = []
    real_set = db.set_document_analysis

    def recording_set(*args):
        threads.append(threading.get_ident())
        real_set(*args)

    monkeypatch.setattr(db, "set_document_analysis", recording_set)
    state = State(completion=FakeLLM("A simple will.").client(), uploads_dir=tmp_path)

    async def run():
        result = await documents_svc.analyze_document(state, owner, doc["id"])
        return threading.get_ident(), result

    loop_thread, result = asyncio.run(run())
    assert result["analysis"] == "A simple will."
    assert threads and loop_thread not in threads
    assert db.get_document(doc["id"], owner)["ai_analysis"]["analysis"] == "A simple will."
