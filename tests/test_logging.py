from coldstock.logging_config import is_sensitive_field, redact_sensitive


def test_sensitive_fields():
    assert is_sensitive_field("new_password")
    assert is_sensitive_field("Authorization")
    assert not is_sensitive_field("product_id")


def test_redact_sensitive_masks_secrets_only():
    event = {"event": "login", "email": "a@b.dev", "refresh_token": "abc"}

    redacted = redact_sensitive(None, "info", event)

    assert redacted == {
        "event": "login",
        "email": "a@b.dev",
        "refresh_token": "[REDACTED]",
    }
