import pytest

from application.captcha_utils import (
    VerificationResult,
    evaluate,
    mask_token,
    parse_verification_request,
    select_secret,
)
from application.errors import ConfigurationError, PolicyRejection, ValidationError


def test_mask_token_keeps_first_ten_characters():
    assert mask_token("abcdefghijklmnop") == "abcdefghij..."
    assert mask_token("") == ""
    assert mask_token(None) == ""
    assert mask_token(12345) == ""


def test_parse_request_strips_values():
    req = parse_verification_request({"token": " tok ", "version": "v3 "})
    assert req.token == "tok"
    assert req.version == "v3"


def test_parse_request_rejects_non_string_token():
    with pytest.raises(ValidationError) as exc:
        parse_verification_request({"token": 123, "version": "v2"})
    assert "token" in exc.value.extra["errors"]


def test_select_secret_uses_version_map():
    secrets = {"v2": "two", "v3": "three"}
    assert select_secret("v2", secrets) == "two"
    assert select_secret("v3", secrets) == "three"


def test_select_secret_missing_raises():
    with pytest.raises(ConfigurationError):
        select_secret("v2", {"v2": None, "v3": "three"})


def test_result_from_json_reads_upstream_fields():
    result = VerificationResult.from_json({
        "success": True,
        "score": 0.7,
        "action": "login",
        "hostname": "example.com",
        "challenge_ts": "2024-01-01T00:00:00Z",
    })
    assert result.success is True
    assert result.score == 0.7
    assert result.action == "login"
    assert result.hostname == "example.com"
    assert result.error_codes == []


def test_result_success_must_be_literal_true():
    assert VerificationResult.from_json({"success": "true"}).success is False


def test_result_single_error_code_string_becomes_list():
    result = VerificationResult.from_json({"success": False, "error-codes": "invalid-input-response"})
    assert result.error_codes == ["invalid-input-response"]


def test_evaluate_v3_without_score_passes():
    body = evaluate(VerificationResult(success=True), "v3")
    assert body == {"success": True, "message": "Verified"}


def test_evaluate_low_score_raises_policy_rejection():
    with pytest.raises(PolicyRejection) as exc:
        evaluate(VerificationResult(success=True, score=0.49), "v3")
    assert exc.value.to_dict() == {"success": False, "message": "Low score", "score": 0.49}
    assert exc.value.status_code == 403
