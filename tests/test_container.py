"""Tests for container wiring."""

import asyncio

from consistency_tracker.containers import build_container


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)
    assert container.sessions is not None
    assert container.day_completion_service.bus is container.bus
    asyncio.run(container.close_resources())


def test_settings_defaults(settings) -> None:
    assert settings.default_timezone == "UTC"
    assert settings.openai_store is False
    assert settings.listen_events is True


def test_build_container_listens_per_settings(settings) -> None:
    listening = build_container(settings)
    quiet = build_container(settings.model_copy(update={"listen_events": False}))

    assert listening.sessions.listen is True
    assert quiet.sessions.listen is False
    asyncio.run(listening.close_resources())
    asyncio.run(quiet.close_resources())
