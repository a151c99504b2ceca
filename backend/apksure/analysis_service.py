# apksure/analysis_service.py

import logging
from typing import IO, Any, Dict, Optional

import requests

from . import config


class AnalysisServiceError(Exception):
    """The external analysis service was unreachable or answered non-2xx."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _result_url(jobid: str) -> str:
    base = config.ANALYSIS_RESULT_URL
    if not base.endswith("/"):
        base += "/"
    return f"{base}{jobid}"


def submit_apk(filename: str, stream: IO[bytes]) -> str:
    """
    Forward an APK to the analysis service as multipart field 'apk'.
    Returns the job id issued by the service.
    """
    files = {"apk": (filename, stream, "application/vnd.android.package-archive")}

    try:
        logging.info(f"Submitting {filename} to analysis service (timeout={config.ANALYSIS_TIMEOUT}s)")
        resp = requests.post(config.ANALYSIS_UPLOAD_URL, files=files, timeout=config.ANALYSIS_TIMEOUT)
    except requests.RequestException as e:
        logging.error(f"Upload to analysis service failed: {e}")
        raise AnalysisServiceError("Failed to upload APK.") from e

    if not resp.ok:
        logging.error(f"Analysis service upload error: {resp.status_code} - {resp.text[:200]}")
        raise AnalysisServiceError("Failed to upload APK.", status_code=resp.status_code)

    try:
        jobid = resp.json()["jobid"]
    except (ValueError, KeyError, TypeError) as e:
        raise AnalysisServiceError("Analysis service returned no job id.") from e

    logging.info(f"Analysis job created: {jobid}")
    return str(jobid)


def fetch_result(jobid: str) -> Dict[str, Any]:
    url = _result_url(jobid)

    try:
        resp = requests.get(url, timeout=config.ANALYSIS_TIMEOUT)
    except requests.RequestException as e:
        logging.error(f"Result fetch for {jobid} failed: {e}")
        raise AnalysisServiceError("Failed to fetch analysis result.") from e

    if not resp.ok:
        logging.error(f"Analysis service result error for {jobid}: {resp.status_code}")
        raise AnalysisServiceError("Failed to fetch analysis result.", status_code=resp.status_code)

    try:
        data = resp.json()
    except ValueError as e:
        raise AnalysisServiceError("Analysis service returned invalid JSON.") from e

    logging.info(f"Job {jobid} status: {data.get('status') if isinstance(data, dict) else 'unknown'}")
    return data
