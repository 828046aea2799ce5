"""Tests for masking sensitive request data."""

from rideway.utils.sanitize import MASK, sanitize_data


def test_masks_sensitive_keys_at_any_depth():
    data = {
        "url": "https://hooks.example.com/x",
        "headers": {"Authorization": "Bearer abc", "Content-Type": "application/json"},
        "config": {"accessToken": "t0k3n", "apiKey": "k2", "nested": [{"api_key": "k"}, {"name": "ok"}]},
        "password": "hunter2",
    }

    result = sanitize_data(data)

    assert result["url"] == "https://hooks.example.com/x"
    assert result["headers"] == {"Authorization": MASK, "Content-Type": "application/json"}
    assert result["config"]["accessToken"] == MASK
    assert result["config"]["apiKey"] == MASK
    assert result["config"]["nested"] == [{"api_key": MASK}, {"name": "ok"}]
    assert result["password"] == MASK


def test_input_is_not_modified():
    data = {"secret": "s", "inner": {"token": "t"}}
    sanitize_data(data)
    assert data == {"secret": "s", "inner": {"token": "t"}}


def test_scalars_pass_through():
    assert sanitize_data("plain") == "plain"
    assert sanitize_data(42) == 42
    assert sanitize_data(None) is None
