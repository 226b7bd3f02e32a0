"""
Handlers for the builtin statement forms and the default syntax registry.

Handlers take `(args, session)`: `args` holds one entry per placeholder of
the rule. Session state (knowledge bases, websites) is only replaced after
every awaited host call has returned, so a cancelled call leaves the
session as it was.
"""
import logging
import re
from typing import Any, List, Sequence, Tuple
from urllib.parse import urlsplit

from gbasic import basic_http
from gbasic.basic_errors import KeywordError, ScriptExit, ERR_INVALID_CALL, ERR_TYPE_MISMATCH
from gbasic.basic_printer import display
from gbasic.basic_syntax import SyntaxRegistry, Handler, EXPR, IDENT
from gbasic.basic_values import type_name

logger = logging.getLogger(__name__)

_COLLECTION_RE = re.compile(r"[^a-z0-9]+")


def sanitize_url_for_collection(url: str) -> str:
    """Collection name for a website, e.g. https://docs.example.com/path -> docs_example_com_path."""
    text = url.strip().lower()
    if "://" in text:
        text = text.split("://", 1)[1]
    return _COLLECTION_RE.sub("_", text).strip("_")


def _name_arg(value: Any, keyword: str) -> str:
    if not isinstance(value, str):
        raise KeywordError(f"{keyword} expects a string, got {type_name(value)}", ERR_TYPE_MISMATCH)
    name = value.strip()
    if not name:
        raise KeywordError(f"{keyword} expects a non-empty name", ERR_INVALID_CALL)
    return name


# --- knowledge bases ---

async def use_kb(args: List[Any], session) -> None:
    name = _name_arg(args[0], "USE_KB")
    if not await session.host.resolve_kb(session, name):
        raise KeywordError(f"Knowledge base not found: {name}", ERR_INVALID_CALL)
    if name not in session.kbs:
        session.kbs = session.kbs + (name,)
    logger.debug("session %s uses kb %s", session.session_id, name)


def clear_kb(args: List[Any], session) -> bool:
    name = _name_arg(args[0], "CLEAR_KB")
    if name not in session.kbs:
        return False
    session.kbs = tuple(kb for kb in session.kbs if kb != name)
    return True


def clear_all_kbs(args: List[Any], session) -> None:
    session.kbs = ()


# --- websites ---

async def use_website(args: List[Any], session) -> str:
    url = _name_arg(args[0], "USE_WEBSITE")
    parts = urlsplit(url)
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise KeywordError(f"USE_WEBSITE expects an http(s) URL, got {url!r}", ERR_INVALID_CALL)
    collection = await session.host.register_website(session, url)
    if all(u != url for u, _ in session.websites):
        session.websites = session.websites + ((url, collection),)
    return collection


def clear_websites(args: List[Any], session) -> None:
    session.websites = ()


# --- conversation ---

async def talk(args: List[Any], session) -> None:
    text = display(args[0])
    session.emit("stdout", text)
    await session.host.talk(session, text)


async def hear(args: List[Any], session) -> str:
    name = args[0]
    text = await session.host.hear(session)
    text = "" if text is None else str(text)
    limit = session.config.max_input_length
    if limit and len(text) > limit:
        text = text[:limit]
    session.variables[name] = text
    return text


# --- HTTP ---

async def get_url(args: List[Any], session) -> Any:
    url = _name_arg(args[0], "GET")
    return await basic_http.http_get(url, session.config.http_config())


async def post_url(args: List[Any], session) -> Any:
    url = _name_arg(args[0], "POST")
    return await basic_http.http_post(url, args[1], session.config.http_config())


# --- errors and flow ---

def on_error_resume_next(args: List[Any], session) -> None:
    session.errors.set_error_resume_next(True)


def on_error_goto_0(args: List[Any], session) -> None:
    session.errors.set_error_resume_next(False)


def clear_error(args: List[Any], session) -> None:
    session.errors.clear_last_error()


def throw(args: List[Any], session) -> None:
    """THROW "message" or THROW #{message: "...", number: 42}."""
    value = args[0]
    if isinstance(value, dict):
        number = value.get("number")
        if not isinstance(number, int) or isinstance(number, bool):
            number = None
        raise KeywordError(display(value.get("message", "")), number)
    raise KeywordError(display(value))


def end(args: List[Any], session) -> None:
    raise ScriptExit()


def default_rules() -> List[Tuple[Sequence[str], Handler]]:
    return [
        (["USE_KB", EXPR], use_kb),
        (["CLEAR_KB", EXPR], clear_kb),
        (["CLEAR_KB"], clear_all_kbs),
        (["USE_WEBSITE", EXPR], use_website),
        (["CLEAR_WEBSITES"], clear_websites),
        (["TALK", EXPR], talk),
        (["HEAR", IDENT], hear),
        (["GET", EXPR], get_url),
        (["POST", EXPR, "BODY", EXPR], post_url),
        (["ON", "ERROR", "RESUME", "NEXT"], on_error_resume_next),
        (["ON", "ERROR", "GOTO", "0"], on_error_goto_0),
        (["CLEAR_ERROR"], clear_error),
        (["THROW", EXPR], throw),
        (["END"], end),
    ]


def build_default_registry(extra_rules=None) -> SyntaxRegistry:
    """A frozen registry holding the builtin forms plus `extra_rules`."""
    registry = SyntaxRegistry()
    registry.register_all(default_rules())
    if extra_rules:
        registry.register_all(extra_rules)
    registry.freeze()
    return registry
