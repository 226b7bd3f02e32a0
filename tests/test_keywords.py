import asyncio

import pytest

from gbasic.basic_keywords import sanitize_url_for_collection
from gbasic.basic_runtime import BotHost, ScriptRunner


class SlowHost(BotHost):
    """Blocks resolve_kb until released, to exercise interleaving and cancellation."""

    def __init__(self):
        super().__init__(known_kbs=["docs", "faq"])
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def resolve_kb(self, session, name):
        self.entered.set()
        await self.release.wait()
        return await super().resolve_kb(session, name)


@pytest.mark.parametrize("url, expected", [
    ("https://docs.example.com/path", "docs_example_com_path"),
    ("http://test.site:8080", "test_site_8080"),
    ("HTTPS://Example.com/", "example_com"),
])
def test_sanitize_url_for_collection(url, expected):
    assert sanitize_url_for_collection(url) == expected


@pytest.mark.asyncio
async def test_use_and_clear_kb():
    runner = ScriptRunner()
    session = runner.new_session()
    res = await runner.handle_script('USE_KB "docs"\nUSE_KB "faq"\nUSE_KB "docs"', session)
    assert res.status == "success", res.error_message
    assert session.kbs == ("docs", "faq")

    res = await runner.handle_script('CLEAR_KB "docs"', session)
    assert res.value is True
    assert session.kbs == ("faq",)

    res = await runner.handle_script("CLEAR_KB", session)
    assert res.status == "success"
    assert session.kbs == ()


@pytest.mark.asyncio
async def test_unknown_kb_is_a_keyword_error():
    runner = ScriptRunner(host=BotHost(known_kbs=["docs"]))
    session = runner.new_session()
    res = await runner.handle_script('USE_KB "nope"', session)
    assert res.status == "error"
    assert "Knowledge base not found: nope" in res.error_message
    assert session.kbs == ()

    res = await runner.handle_script('ON ERROR RESUME NEXT\nUSE_KB "nope"\nUSE_KB "docs"\nERR', session)
    assert res.value == 5
    assert session.kbs == ("docs",)


@pytest.mark.asyncio
async def test_use_kb_argument_checks():
    runner = ScriptRunner()
    res = await runner.handle_script("USE_KB 42")
    assert res.error_number == 13
    res = await runner.handle_script('USE_KB "  "')
    assert res.error_number == 5


@pytest.mark.asyncio
async def test_use_website_and_clear():
    runner = ScriptRunner()
    session = runner.new_session()
    res = await runner.handle_script('USE_WEBSITE "https://docs.example.com/path"', session)
    assert res.value == "docs_example_com_path"
    assert session.websites == (("https://docs.example.com/path", "docs_example_com_path"),)

    res = await runner.handle_script('USE_WEBSITE "ftp://files.example.com"', session)
    assert res.status == "error"
    assert "http(s) URL" in res.error_message

    await runner.handle_script("CLEAR_WEBSITES", session)
    assert session.websites == ()


@pytest.mark.asyncio
async def test_talk_and_hear():
    host = BotHost()
    runner = ScriptRunner(host=host)
    session = runner.new_session("s1")
    host.queue_input("s1", "Ada")
    src = 'TALK "What is your name?"\nHEAR name\nTALK "Hello, " + name'
    res = await runner.handle_script(src, session)
    assert res.status == "success", res.error_message
    stdout = [e["message"] for e in res.side_effects if e["topics"] == ["stdout"]]
    assert stdout == ["What is your name?", "Hello, Ada"]
    assert session.variables["name"] == "Ada"


@pytest.mark.asyncio
async def test_hear_truncates_long_input():
    host = BotHost()
    runner = ScriptRunner(host=host)
    runner.config.max_input_length = 3
    session = runner.new_session("s")
    host.queue_input("s", "abcdef")
    res = await runner.handle_script("HEAR x\nx", session)
    assert res.value == "abc"


@pytest.mark.asyncio
async def test_talk_calls_host():
    seen = []

    class RecordingHost(BotHost):
        async def talk(self, session, text):
            seen.append((session.session_id, text))

    runner = ScriptRunner(host=RecordingHost())
    await runner.handle_script('TALK #{a: 1}', runner.new_session("r"))
    assert seen == [("r", '{"a": 1}')]


@pytest.mark.asyncio
async def test_sessions_do_not_share_error_state():
    host = SlowHost()
    runner = ScriptRunner(host=host)
    resuming = runner.new_session("a")
    strict = runner.new_session("b")

    src_a = 'ON ERROR RESUME NEXT\nUSE_KB "docs"\nTHROW "a failed"\nERR'
    src_b = 'USE_KB "docs"\nTHROW "b failed"\nERR'
    task_a = asyncio.create_task(runner.handle_script(src_a, resuming))
    task_b = asyncio.create_task(runner.handle_script(src_b, strict))
    await host.entered.wait()
    host.release.set()
    res_a, res_b = await asyncio.gather(task_a, task_b)

    assert res_a.status == "success"
    assert res_a.value == 1
    assert resuming.errors.get_last_error() == "a failed"
    assert res_b.status == "error"
    assert "b failed" in res_b.error_message
    assert strict.errors.get_last_error() is None
    assert strict.errors.is_error_resume_next_active() is False


@pytest.mark.asyncio
async def test_cancelled_use_kb_leaves_selection_unchanged():
    host = SlowHost()
    runner = ScriptRunner(host=host)
    session = runner.new_session()
    session.kbs = ("faq",)

    task = runner.start('USE_KB "docs"', session)
    await host.entered.wait()
    assert host.cancel_tasks() == 1
    with pytest.raises(asyncio.CancelledError):
        await task
    assert session.kbs == ("faq",)
    assert session.errors.get_last_error() is None


@pytest.mark.asyncio
async def test_cancellation_is_not_resumed():
    host = SlowHost()
    runner = ScriptRunner(host=host)
    session = runner.new_session()
    task = runner.start('ON ERROR RESUME NEXT\nUSE_KB "docs"\nafter = 1', session)
    await host.entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert "after" not in session.variables
    assert session.errors.get_error_number() == 0
