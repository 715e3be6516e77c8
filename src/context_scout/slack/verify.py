import hmac
import hashlib
import time
from typing import Optional, Union
from fastapi import Request, HTTPException
from ..log import get_logger

logger = get_logger("slack_verify")

MAX_TIMESTAMP_AGE = 60 * 5


def compute_signature(signing_secret: str, timestamp: str, body: str) -> str:
    sig_basestring = f"v0:{timestamp}:{body}".encode('utf-8')
    return "v0=" + hmac.new(
        signing_secret.encode('utf-8'),
        sig_basestring,
        hashlib.sha256
    ).hexdigest()


def verify(
    signing_secret: str,
    timestamp: Optional[str],
    raw_body: Union[str, bytes],
    signature: Optional[str],
    now: Optional[float] = None,
) -> bool:
    """
    Checks a Slack request signature.
    Returns False for a missing/stale timestamp or a mismatching signature; never raises.
    """
    if not timestamp or not signature:
        return False

    # 1. Timestamp freshness (replay attack prevention)
    try:
        ts = int(timestamp)
    except ValueError:
        logger.warning(f"Non-numeric Slack timestamp: {timestamp!r}")
        return False

    current = time.time() if now is None else now
    if abs(current - ts) > MAX_TIMESTAMP_AGE:
        logger.warning("Request timestamp too old")
        return False

    # 2. Compute our own signature
    if isinstance(raw_body, bytes):
        try:
            raw_body = raw_body.decode('utf-8')
        except UnicodeDecodeError:
            return False

    expected = compute_signature(signing_secret, timestamp, raw_body)

    # 3. Compare
    return hmac.compare_digest(expected.encode('utf-8'), signature.encode('utf-8'))


def make_signature_dependency(signing_secret: str):
    """
    Builds a FastAPI dependency that verifies the X-Slack-Signature header.
    Raises HTTPException if invalid.
    """
    async def verify_slack_signature(request: Request):
        timestamp = request.headers.get("X-Slack-Request-Timestamp")
        signature = request.headers.get("X-Slack-Signature")

        if not timestamp or not signature:
            raise HTTPException(status_code=400, detail="Missing Slack headers")

        body = await request.body()
        if not verify(signing_secret, timestamp, body, signature):
            raise HTTPException(status_code=401, detail="Invalid Slack signature")

    return verify_slack_signature
