"""Log redaction: credentials and presigned query strings never reach logs."""
from catalog_media.core.logging_redaction import redact_for_log, redact_url


def test_sensitive_keys_are_redacted():
    out = redact_for_log({"key": "videos/a.mp4", "signedUrl": "https://s/a?X-Amz-Signature=abc", "token": "t"})
    assert out == {"key": "videos/a.mp4", "signedUrl": "[REDACTED]", "token": "[REDACTED]"}


def test_presigned_query_is_stripped():
    url = "https://s3.eu-central-003.backblazeb2.com/b/videos/a.mp4?X-Amz-Algorithm=AWS4&X-Amz-Signature=abc"
    assert redact_url(url) == "https://s3.eu-central-003.backblazeb2.com/b/videos/a.mp4?[REDACTED]"
    local = "http://localhost:8000/api/videos/local/videos/a.mp4?expires=1&token=deadbeef"
    assert "deadbeef" not in redact_url(local)


def test_plain_values_untouched():
    assert redact_url("https://cdn.test/red.png") == "https://cdn.test/red.png"
    assert redact_for_log(["ok", 3, None]) == ["ok", 3, None]
    assert redact_for_log("Bearer abc") == "[REDACTED]"
