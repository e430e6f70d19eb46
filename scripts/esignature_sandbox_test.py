import argparse
import asyncio
import base64
import json
import logging
import os
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import httpx
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent / "esignature"
load_dotenv(BASE_DIR / ".env")

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("esignature_sandbox_test")

TERMINAL_STATES = {"DONE", "ERROR", "CANCELLED"}
WAIT_VALIDATION = "WAIT_VALIDATION"

# One page PDF with the text "OpenAPI Test"
SAMPLE_PDF = (
    b"%PDF-1.4\n1 0 obj\n<<\n/Type /Catalog\n/Pages 2 0 R\n>>\nendobj\n"
    b"2 0 obj\n<<\n/Type /Pages\n/Kids [3 0 R]\n/Count 1\n/MediaBox [0 0 612 792]\n>>\nendobj\n"
    b"3 0 obj\n<<\n/Type /Page\n/Parent 2 0 R\n/Contents 4 0 R\n/Resources\n<<\n/Font <</F1 \n"
    b"<<\n/Type /Font\n/Subtype /Type1\n/BaseFont /Helvetica\n>>\n>>\n>>\n>>\nendobj\n"
    b"4 0 obj\n<<\n/Length 44\n>>\nstream\nBT\n/F1 12 Tf\n100 700 Td\n(OpenAPI Test) Tj\nET\n"
    b"endstream\nendobj\ntrailer\n<<\n/Size 5\n/Root 1 0 R\n>>\n%%EOF"
)

@dataclass
class SandboxConfig:
    token: str
    api_key: str
    domain: str
    signer_email: str
    cert_username: str
    cert_password: str
    callback_url: str
    pdf_path: str
    signature_type: str
    poll_interval: float

    @property
    def api_base(self) -> str:
        return f"https://{self.domain}"

    @classmethod
    def from_env(cls) -> "SandboxConfig":
        return cls(
            token=os.getenv("OPENAPI_TOKEN", ""),
            api_key=os.getenv("OPENAPI_API_KEY", ""),
            domain=os.getenv("OPENAPI_DOMAIN", "test.esignature.openapi.com"),
            signer_email=os.getenv("SIGNER_EMAIL", ""),
            cert_username=os.getenv("CERT_USERNAME", "openapiSandboxUsername"),
            cert_password=os.getenv("CERT_PASSWORD", "openapiSandboxPassword"),
            callback_url=os.getenv("CALLBACK_PUBLIC_URL", ""),
            pdf_path=os.getenv("PDF_PATH", ""),
            signature_type=os.getenv("SIGNATURE_TYPE", "EU-QES_automatic"),
            poll_interval=int(os.getenv("POLL_INTERVAL_MS", "5000")) / 1000,
        )

@dataclass
class RunResult:
    signature_id: str
    created_at: datetime
    ended_at: Optional[datetime] = None
    final_state: str = ""
    wait_validation_seconds: float = 0.0
    callback_seconds: Optional[float] = None
    error: Optional[str] = None
    state_history: List[dict] = field(default_factory=list)

    @property
    def total_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.created_at).total_seconds()

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def load_pdf(config: SandboxConfig) -> bytes:
    if config.pdf_path:
        path = Path(config.pdf_path)
        if not path.is_absolute():
            path = BASE_DIR / path
        if path.exists():
            logger.info(f"Using PDF from: {path}")
            return path.read_bytes()
        logger.warning(f"PDF not found at {path}, using sample PDF")
    return SAMPLE_PDF

def build_request(config: SandboxConfig, pdf: bytes) -> dict:
    document = {"sourceType": "base64", "payload": base64.b64encode(pdf).decode("ascii")}
    if config.signature_type == "EU-SES":
        body = {
            "inputDocuments": [document],
            "signers": [{
                "name": "Test",
                "surname": "User",
                "email": config.signer_email,
                "authentication": ["email"],
                "signatures": [{"page": 1, "x": "350", "y": "700"}],
            }],
            "options": {"timezone": "UTC"},
        }
    else:
        # certificate based, no signer interaction
        body = {
            "title": "Aufmaß - Test Kunde",
            "signatureType": "pades",
            "certificateUsername": config.cert_username,
            "certificatePassword": config.cert_password,
            "inputDocuments": [document],
            "options": {
                "withSignatureField": True,
                "page": -1,
                "signerImage": {
                    "signerName": "Test Kunde",
                    "reason": "Abnahme Unterschrift",
                    "location": "Deutschland",
                    "imageVisible": True,
                    "width": 200,
                    "height": 60,
                },
            },
        }
    if config.callback_url:
        body["callback"] = {"url": config.callback_url}
    return body

async def create_signature(client: httpx.AsyncClient, config: SandboxConfig) -> str:
    body = build_request(config, load_pdf(config))
    logger.info(f"Creating signature with type: {config.signature_type}")
    response = await client.post(f"/{config.signature_type}", json=body)
    response.raise_for_status()

    payload = response.json()
    data = payload.get("data") or payload
    signature_id = data.get("id")
    if not signature_id:
        raise RuntimeError(f"No signature ID in response: {json.dumps(payload)}")
    logger.info(f"Signature created with ID: {signature_id}")
    return signature_id

async def poll_signature(client: httpx.AsyncClient, config: SandboxConfig, result: RunResult) -> None:
    """
    Poll the signature detail until it reaches a terminal state and measure
    how long it stayed in WAIT_VALIDATION.
    """
    current = ""
    wait_start = wait_end = None
    while True:
        try:
            response = await client.get(f"/signatures/{result.signature_id}/detail")
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Poll error: {e}")
            result.final_state = "POLL_ERROR"
            result.error = str(e)
            result.ended_at = utcnow()
            break

        detail = response.json()
        detail = detail.get("data") or detail
        now = utcnow()
        state = detail.get("state") or detail.get("status") or "UNKNOWN"
        result.state_history.append({
            "timestamp": now.isoformat(),
            "state": state,
            "errorNumber": detail.get("errorNumber"),
            "errorMessage": detail.get("errorMessage"),
        })

        if state != current:
            logger.info(f"State changed: {current or 'INITIAL'} -> {state}")
            if state == WAIT_VALIDATION:
                wait_start = now
            elif current == WAIT_VALIDATION:
                wait_end = now
            current = state

        if state in TERMINAL_STATES:
            result.final_state = state
            result.ended_at = now
            if state == "ERROR":
                result.error = detail.get("errorMessage") or f"Error {detail.get('errorNumber')}"
            break

        logger.info(f"State: {state}, elapsed: {(now - result.created_at).total_seconds():.0f}s")
        await asyncio.sleep(config.poll_interval)

    if wait_start:
        result.wait_validation_seconds = ((wait_end or result.ended_at) - wait_start).total_seconds()

async def fetch_callback_time(config: SandboxConfig, result: RunResult) -> None:
    if not config.callback_url:
        return
    url = httpx.URL(config.callback_url).join("/api/openapi/esignature/callback-log")
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(url, params={"signatureId": result.signature_id})
        if response.status_code != 200:
            return
        for entry in response.json().get("logs", []):
            if entry.get("signatureId") == result.signature_id:
                received = datetime.fromisoformat(entry["receivedAt"].replace("Z", "+00:00"))
                result.callback_seconds = (received - result.created_at).total_seconds()
                return
    except httpx.HTTPError as e:
        logger.warning(f"Could not read callback log: {e}")

async def run_once(config: SandboxConfig, run: int) -> RunResult:
    headers = {"Authorization": f"Bearer {config.token}", "Accept": "application/json"}
    async with httpx.AsyncClient(base_url=config.api_base, headers=headers, timeout=30) as client:
        try:
            signature_id = await create_signature(client, config)
        except (httpx.HTTPError, RuntimeError) as e:
            logger.error(f"Run {run}: failed to create signature: {e}")
            return RunResult(signature_id="", created_at=utcnow(), ended_at=utcnow(),
                             final_state="CREATE_ERROR", error=str(e))

        result = RunResult(signature_id=signature_id, created_at=utcnow())
        await poll_signature(client, config, result)

    await fetch_callback_time(config, result)
    return result

def write_report(results: List[RunResult]) -> Path:
    reports_dir = BASE_DIR / "reports"
    reports_dir.mkdir(parents=True, exist_ok=True)
    path = reports_dir / f"report-{utcnow().strftime('%Y%m%dT%H%M%S')}.json"
    report = [
        {
            "signatureId": r.signature_id,
            "finalState": r.final_state,
            "totalSeconds": r.total_seconds,
            "waitValidationSeconds": r.wait_validation_seconds,
            "callbackSeconds": r.callback_seconds,
            "error": r.error,
            "stateHistory": r.state_history,
        }
        for r in results
    ]
    path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    return path

def summarize(results: List[RunResult]) -> None:
    done = [r for r in results if r.final_state == "DONE"]
    logger.info(f"Runs: {len(results)}, successful: {len(done)}")
    if not done:
        return
    waits = [r.wait_validation_seconds for r in done]
    totals = [r.total_seconds for r in done]
    logger.info(f"WAIT_VALIDATION: min {min(waits):.1f}s, max {max(waits):.1f}s, mean {statistics.mean(waits):.1f}s")
    logger.info(f"Total: min {min(totals):.1f}s, max {max(totals):.1f}s, mean {statistics.mean(totals):.1f}s")

async def main(runs: int):
    config = SandboxConfig.from_env()
    if not config.token:
        logger.error("OPENAPI_TOKEN is not set")
        return 1

    results = []
    for run in range(1, runs + 1):
        logger.info(f"=== Run {run}/{runs} ===")
        results.append(await run_once(config, run))

    summarize(results)
    logger.info(f"Report written to {write_report(results)}")
    return 0 if all(r.final_state == "DONE" for r in results) else 1

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Measure signing latency against the e-signature sandbox")
    parser.add_argument("--runs", type=int, default=int(os.getenv("NUM_RUNS", "1")), help="Number of signatures")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(max(args.runs, 1))))
