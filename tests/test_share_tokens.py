from app.core.logging import redact_token
from app.services.share_tokens import generate_share_token, is_well_formed_token


def test_generated_tokens_are_url_safe_and_distinct():
    tokens = {generate_share_token() for _ in range(500)}

    assert len(tokens) == 500
    assert all(is_well_formed_token(token) for token in tokens)
    assert all(len(token) == 43 for token in tokens)


def test_malformed_tokens_are_rejected_without_lookup():
    assert not is_well_formed_token("")
    assert not is_well_formed_token("abc123")
    assert not is_well_formed_token("../../etc/passwd")
    assert not is_well_formed_token("A" * 42 + "=")
    assert not is_well_formed_token("A" * 44)


def test_redact_token_keeps_only_a_prefix():
    token = generate_share_token()

    redacted = redact_token(token)

    assert redacted.startswith(token[:8])
    assert token not in redacted
    assert redact_token("") == "<redacted>"
