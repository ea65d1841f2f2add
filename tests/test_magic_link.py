from app.services.magic_link import build_magic_link, issue_token, verify_token


def test_token_round_trip_normalizes_email():
    token = issue_token("  Alice@Example.COM ")
    assert verify_token(token) == "alice@example.com"


def test_tokens_are_unique():
    assert issue_token("a@example.com") != issue_token("a@example.com")


def test_tampered_token_is_rejected():
    token = issue_token("a@example.com")
    assert verify_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB")) is None
    assert verify_token("garbage") is None


def test_expired_token_is_rejected():
    token = issue_token("a@example.com")
    assert verify_token(token, max_age=-1) is None


def test_magic_link_points_to_verify():
    link = build_magic_link("abc.def")
    assert link.endswith("/auth/verify?token=abc.def")
