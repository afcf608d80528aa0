# tests/test_autosave.py

from __future__ import annotations

import asyncio

import pytest

from dispatch.client.autosave import UNTITLED, Debouncer, NoteAutoSaver
from dispatch.client.notify import Notifier

from .fakes import FakeApiClient, api_failure, make_note


@pytest.mark.asyncio
async def test_debouncer_runs_only_the_last_trigger() -> None:
    ran = []

    async def action(value):
        ran.append(value)

    debouncer = Debouncer(0.01, action)
    for value in (1, 2, 3):
        debouncer.trigger(value)
    assert debouncer.pending

    await asyncio.sleep(0.05)
    await debouncer.wait()
    assert ran == [3]
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_rapid_edits_produce_one_save_with_latest_content() -> None:
    note = make_note("Draft")
    client = FakeApiClient(notes=[note])
    saver = NoteAutoSaver(client, note, Notifier(), delay=10)

    saver.edit("Draft", "a")
    saver.edit("Draft", "ab")
    saver.edit("Draft v2", "abc")
    assert saver.dirty
    assert client.count("update_note") == 0

    await saver.flush()
    assert client.calls == [("update_note", note.id, {"title": "Draft v2", "content": "abc"})]
    assert saver.saved
    assert saver.saves == 1
    assert not saver.dirty
    assert saver.note.content == "abc"


@pytest.mark.asyncio
async def test_blank_title_saves_as_untitled() -> None:
    note = make_note("Draft")
    client = FakeApiClient(notes=[note])
    saver = NoteAutoSaver(client, note, Notifier(), delay=10)

    saver.edit("   ", "body")
    await saver.flush()
    assert saver.note.title == UNTITLED == "Untitled Note"


@pytest.mark.asyncio
async def test_failed_save_notifies_and_stays_unsaved() -> None:
    note = make_note("Draft")
    client = FakeApiClient(notes=[note])
    client.fail_updates = api_failure()
    notifier = Notifier()
    saver = NoteAutoSaver(client, note, notifier, delay=10)

    saver.edit("Draft", "lost?")
    await saver.flush()
    assert not saver.saved
    assert not saver.saving
    assert notifier.messages("error") == ["Failed to save note"]


@pytest.mark.asyncio
async def test_cancel_drops_pending_save() -> None:
    note = make_note("Draft")
    client = FakeApiClient(notes=[note])
    saver = NoteAutoSaver(client, note, Notifier(), delay=0.01)

    saver.edit("Draft", "x")
    saver.cancel()
    await asyncio.sleep(0.03)
    await saver.wait()
    assert client.count("update_note") == 0


def test_notifier_expiry() -> None:
    notifier = Notifier(ttl=4.0)
    first = notifier.success("Task moved")
    notifier.error("Failed to move task")
    assert notifier.latest.kind == "error"
    assert len(notifier.active(now=first.at + 1)) == 2
    assert notifier.active(now=first.at + 100) == []
