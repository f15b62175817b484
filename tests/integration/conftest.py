"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures that ensure
proper test isolation for API endpoint tests.
"""

import json

import pytest


@pytest.fixture(autouse=True)
def clean_session_dir(test_settings):
    """Ensure sessions directory is clean before and after each test.

    Args:
        test_settings: The test settings fixture from parent conftest
    """
    sessions_dir = test_settings.resolved_sessions_dir

    if sessions_dir.exists():
        for session_file in sessions_dir.glob("*.json"):
            session_file.unlink()

    yield

    if sessions_dir.exists():
        for session_file in sessions_dir.glob("*.json"):
            session_file.unlink()


@pytest.fixture
def parse_sse():
    """Parse an SSE response body into a list of {"event", "data"} dicts."""

    def _parse(text: str) -> list[dict]:
        events = []
        normalized_text = text.replace("\r\n", "\n")
        for block in normalized_text.strip().split("\n\n"):
            if not block.strip():
                continue
            event_type = None
            event_data = None
            for part in block.split("\n"):
                if part.startswith("event:"):
                    event_type = part.split(":", 1)[1].strip()
                elif part.startswith("data:"):
                    event_data = part.split(":", 1)[1].strip()
            if event_type and event_data:
                events.append({"event": event_type, "data": json.loads(event_data)})
        return events

    return _parse
