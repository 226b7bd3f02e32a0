import asyncio
import logging

import pytest

from gbasic.basic_error_context import ErrorContext, ErrorState
from gbasic.basic_errors import KeywordError, ScriptRuntimeError, ERR_DIVISION_BY_ZERO


def test_defaults():
    ctx = ErrorContext()
    assert ctx.is_error_resume_next_active() is False
    assert ctx.get_last_error() is None
    assert ctx.get_error_number() == 0


def test_handle_error_raises_when_resume_is_off():
    ctx = ErrorContext()
    err = KeywordError("boom", 42)
    with pytest.raises(KeywordError) as excinfo:
        ctx.handle_error(err)
    assert excinfo.value is err
    assert ctx.get_last_error() is None


def test_handle_error_records_when_resume_is_on(caplog):
    ctx = ErrorContext()
    ctx.set_error_resume_next(True)
    with caplog.at_level(logging.DEBUG, logger="gbasic.basic_error_context"):
        assert ctx.handle_error(ScriptRuntimeError("Division by zero", ERR_DIVISION_BY_ZERO)) is None
    assert ctx.get_last_error() == "Division by zero"
    assert ctx.get_error_number() == 11
    assert "resumed after error 11" in caplog.text


def test_foreign_exceptions_are_wrapped():
    ctx = ErrorContext()
    with pytest.raises(KeywordError) as excinfo:
        ctx.handle_error(ValueError("bad"))
    assert excinfo.value.message == "bad"
    assert excinfo.value.number == 1


def test_clear_keeps_resume_flag():
    ctx = ErrorContext()
    ctx.set_error_resume_next(True)
    ctx.set_last_error("x", 7)
    ctx.clear_last_error()
    assert ctx.get_last_error() is None
    assert ctx.get_error_number() == 0
    assert ctx.is_error_resume_next_active() is True


def test_as_value():
    ctx = ErrorContext()
    assert ctx.as_value() == {"error": False, "message": "", "number": 0}
    ctx.set_last_error("nope", 5)
    assert ctx.as_value() == {"error": True, "message": "nope", "number": 5}


def test_contexts_do_not_share_state():
    a, b = ErrorContext(), ErrorContext()
    a.set_error_resume_next(True)
    a.set_last_error("only a")
    assert b.is_error_resume_next_active() is False
    assert b.get_last_error() is None


def test_explicit_state_object():
    state = ErrorState(resume_next=True)
    ctx = ErrorContext(state)
    ctx.handle_error(KeywordError("x"))
    assert state.last_error == ("x", 1)


@pytest.mark.asyncio
async def test_concurrent_sessions_are_isolated():
    async def session(ctx: ErrorContext, resume: bool, message: str):
        ctx.set_error_resume_next(resume)
        await asyncio.sleep(0)
        try:
            ctx.handle_error(KeywordError(message))
        except KeywordError:
            return "raised"
        return ctx.get_last_error()

    a, b = ErrorContext(), ErrorContext()
    results = await asyncio.gather(session(a, True, "from a"), session(b, False, "from b"))
    assert results == ["from a", "raised"]
    assert b.get_last_error() is None
