import logging
from dataclasses import dataclass, field

import requests

from application.errors import (
    ConfigurationError,
    PolicyRejection,
    UpstreamFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)

VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
SUPPORTED_VERSIONS = ("v2", "v3")
SCORE_THRESHOLD = 0.5  # fixed, v3 only


@dataclass
class VerificationRequest:
    token: str
    version: str


@dataclass
class VerificationResult:
    success: bool
    score: float | None = None
    error_codes: list = field(default_factory=list)
    hostname: str | None = None
    action: str | None = None
    challenge_ts: str | None = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_json(cls, data):
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        score = data.get("score")
        if score is not None:
            if isinstance(score, bool):
                raise ValueError(f"unusable score {score!r}")
            try:
                score = float(score)
            except (TypeError, ValueError):
                raise ValueError(f"unusable score {score!r}")

        codes = data.get("error-codes") or []
        if isinstance(codes, str):
            codes = [codes]

        return cls(
            success=data.get("success") is True,
            score=score,
            error_codes=list(codes),
            hostname=data.get("hostname"),
            action=data.get("action"),
            challenge_ts=data.get("challenge_ts"),
            raw=data,
        )


def mask_token(token: str | None) -> str:
    """First 10 characters only, enough to trace a request in the logs."""
    if not isinstance(token, str) or not token:
        return ""
    return token[:10] + "..."


def parse_verification_request(payload) -> VerificationRequest:
    payload = payload or {}
    token = payload.get("token")
    version = payload.get("version")

    errors = {}
    if not isinstance(token, str) or not token.strip():
        errors["token"] = "The token field is required."
    if not isinstance(version, str) or not version.strip():
        errors["version"] = "The version field is required."
    elif version.strip() not in SUPPORTED_VERSIONS:
        errors["version"] = f"The version must be one of: {', '.join(SUPPORTED_VERSIONS)}."

    if errors:
        raise ValidationError("The given data was invalid.", errors=errors)

    return VerificationRequest(token=token.strip(), version=version.strip())


def select_secret(version: str, secrets: dict) -> str:
    secret = (secrets or {}).get(version)
    if not secret:
        logger.error("[reCAPTCHA] no secret configured for %s", version)
        raise ConfigurationError()
    return secret


def fetch_verification(token: str, secret: str, remote_ip: str | None = None,
                       url: str = VERIFY_URL, timeout: float = 5) -> VerificationResult:
    """POST the token to the verification API and parse what comes back.

    Any transport problem or unusable body raises UpstreamFailure; the caller never
    sees the underlying requests exception.
    """
    data = {"secret": secret, "response": token}
    if remote_ip:
        data["remoteip"] = remote_ip

    try:
        r = requests.post(url, data=data, timeout=timeout)
        r.raise_for_status()
        body = r.json()
    except requests.RequestException as e:
        logger.error("[reCAPTCHA] Exception: %s", e)
        raise UpstreamFailure() from e
    except ValueError as e:
        # non-JSON body
        logger.error("[reCAPTCHA] Exception: invalid JSON from verification API: %s", e)
        raise UpstreamFailure() from e

    logger.info("[reCAPTCHA] verify response %s", body)
    try:
        return VerificationResult.from_json(body)
    except ValueError as e:
        logger.error("[reCAPTCHA] Exception: malformed verification response: %s", e)
        raise UpstreamFailure() from e


def evaluate(result: VerificationResult, version: str) -> dict:
    """Apply the pass/fail policy and return the success body, or raise PolicyRejection."""
    if not result.success:
        logger.warning("[reCAPTCHA] Verification failed %s", result.raw)
        raise PolicyRejection("Verification failed", error_codes=result.error_codes or None)

    if version == "v3" and result.score is not None and result.score < SCORE_THRESHOLD:
        logger.warning("[reCAPTCHA] Low score %s", result.score)
        raise PolicyRejection("Low score", score=result.score)

    body = {"success": True, "message": "Verified"}
    if result.score is not None:
        body["score"] = result.score
    return body


def verify_request(payload, secrets: dict, remote_ip: str | None = None,
                   url: str = VERIFY_URL, timeout: float = 5) -> dict:
    """Validate, verify upstream and decide. Raises an ApiError subclass on any failure."""
    payload = payload or {}
    logger.info("[reCAPTCHA] verify request version=%s token=%s",
                payload.get("version"), mask_token(payload.get("token")))

    req = parse_verification_request(payload)

    secret = select_secret(req.version, secrets)
    result = fetch_verification(req.token, secret, remote_ip=remote_ip, url=url, timeout=timeout)
    return evaluate(result, req.version)
