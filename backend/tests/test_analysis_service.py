import io
from unittest.mock import MagicMock, patch

import pytest
import requests

from apksure import analysis_service
from apksure.analysis_service import AnalysisServiceError, fetch_result, submit_apk


def _response(status_code=200, json_data=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.text = text
    if isinstance(json_data, Exception):
        resp.json.side_effect = json_data
    else:
        resp.json.return_value = json_data
    return resp


@pytest.fixture(autouse=True)
def service_urls(monkeypatch):
    monkeypatch.setattr("apksure.config.ANALYSIS_UPLOAD_URL", "https://analysis.test/upload")
    monkeypatch.setattr("apksure.config.ANALYSIS_RESULT_URL", "https://analysis.test/result")


@patch.object(analysis_service.requests, "post")
def test_submit_sends_apk_field(mock_post):
    mock_post.return_value = _response(json_data={"jobid": "abc"})

    jobid = submit_apk("app.apk", io.BytesIO(b"PK"))

    assert jobid == "abc"
    url = mock_post.call_args[0][0]
    files = mock_post.call_args[1]["files"]
    assert url == "https://analysis.test/upload"
    assert files["apk"][0] == "app.apk"
    assert "timeout" in mock_post.call_args[1]


@patch.object(analysis_service.requests, "post")
def test_submit_non_2xx_raises(mock_post):
    mock_post.return_value = _response(status_code=503, text="busy")

    with pytest.raises(AnalysisServiceError) as exc:
        submit_apk("app.apk", io.BytesIO(b"PK"))
    assert exc.value.status_code == 503


@patch.object(analysis_service.requests, "post")
def test_submit_network_error_raises(mock_post):
    mock_post.side_effect = requests.ConnectionError("refused")

    with pytest.raises(AnalysisServiceError):
        submit_apk("app.apk", io.BytesIO(b"PK"))


@patch.object(analysis_service.requests, "post")
def test_submit_without_jobid_raises(mock_post):
    mock_post.return_value = _response(json_data={"status": "queued"})

    with pytest.raises(AnalysisServiceError):
        submit_apk("app.apk", io.BytesIO(b"PK"))


@patch.object(analysis_service.requests, "get")
def test_fetch_joins_jobid_onto_result_url(mock_get):
    mock_get.return_value = _response(json_data={"status": "pending"})

    assert fetch_result("job-9") == {"status": "pending"}
    assert mock_get.call_args[0][0] == "https://analysis.test/result/job-9"


@patch.object(analysis_service.requests, "get")
def test_fetch_non_2xx_raises(mock_get):
    mock_get.return_value = _response(status_code=404)

    with pytest.raises(AnalysisServiceError) as exc:
        fetch_result("job-9")
    assert exc.value.status_code == 404


@patch.object(analysis_service.requests, "get")
def test_fetch_invalid_json_raises(mock_get):
    mock_get.return_value = _response(json_data=ValueError("not json"))

    with pytest.raises(AnalysisServiceError):
        fetch_result("job-9")


@patch.object(analysis_service.requests, "get")
def test_fetch_timeout_raises(mock_get):
    mock_get.side_effect = requests.Timeout("slow")

    with pytest.raises(AnalysisServiceError):
        fetch_result("job-9")
