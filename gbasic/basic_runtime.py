"""
Sessions, the host interface and the ScriptRunner that ties preprocessing,
parsing and evaluation together.
"""
import asyncio
import hashlib
import logging
import uuid
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from gbasic.basic_config import RuntimeConfig
from gbasic.basic_datatypes import Program
from gbasic.basic_error_context import ErrorContext
from gbasic.basic_errors import (
    BasicError, PreprocessError, ScriptSyntaxError, ScriptExit, ERR_GENERIC, source_context
)
from gbasic.basic_interpreter import Evaluator
from gbasic.basic_keywords import build_default_registry, sanitize_url_for_collection
from gbasic.basic_parser import Parser
from gbasic.basic_preprocessor import desugar
from gbasic.basic_stdlib import build_function_table
from gbasic.basic_syntax import SyntaxRegistry

logger = logging.getLogger(__name__)


class BotHost:
    """The application side of a conversation: channels, knowledge bases, websites.

    Subclass and override the async hooks. The defaults keep everything in
    memory, which is what the REPL and the tests use.
    """

    def __init__(self, known_kbs: Optional[Iterable[str]] = None):
        self.active_tasks: set = set()
        # None accepts every knowledge base name
        self.known_kbs = None if known_kbs is None else set(known_kbs)
        self.inputs: Dict[str, Deque[str]] = {}

    async def talk(self, session: 'Session', text: str):
        """Deliver a TALK message. The message is already recorded as a stdout side effect."""
        return None

    async def hear(self, session: 'Session') -> str:
        queue = self.inputs.get(session.session_id)
        return queue.popleft() if queue else ""

    async def resolve_kb(self, session: 'Session', name: str) -> bool:
        return self.known_kbs is None or name in self.known_kbs

    async def register_website(self, session: 'Session', url: str) -> str:
        """Index a website for the session and return its collection name."""
        return sanitize_url_for_collection(url)

    def queue_input(self, session_id: str, *texts: str):
        self.inputs.setdefault(session_id, deque()).extend(texts)

    def cancel_tasks(self) -> int:
        count = len(self.active_tasks)
        for task in list(self.active_tasks):
            task.cancel()
        self.active_tasks.clear()
        return count

    def _register_task(self, task: asyncio.Task):
        self.active_tasks.add(task)
        # Remove as soon as the task completes
        task.add_done_callback(lambda t: self.active_tasks.discard(t))


@dataclass
class Session:
    """All state owned by one conversation. Nothing here is shared between sessions."""
    host: BotHost
    config: RuntimeConfig = field(default_factory=RuntimeConfig)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    variables: Dict[str, Any] = field(default_factory=dict)
    errors: Optional[ErrorContext] = field(default_factory=ErrorContext)
    kbs: Tuple[str, ...] = ()
    # (url, collection) pairs
    websites: Tuple[Tuple[str, str], ...] = ()
    side_effects: List[Dict] = field(default_factory=list)
    closed: bool = False

    def emit(self, topic: str, message: Any):
        self.side_effects.append({'topics': [topic], 'message': message})

    def close(self):
        """End the session; its error state is discarded."""
        self.closed = True
        self.errors = None


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_number: int = 0
    error_token: Optional[Dict] = None
    error_context: str = ""
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            col_info = f", col {col}" if col is not None else ""
            msg = f"Error on line {line}{col_info}: {msg}"
        if self.error_context:
            msg = f"{msg}\n{self.error_context}"
        return msg


class ScriptRunner:
    """Preprocesses, parses and executes scripts on behalf of sessions."""

    def __init__(self, host: Optional[BotHost] = None, config: Optional[RuntimeConfig] = None,
                 registry: Optional[SyntaxRegistry] = None,
                 extra_rules: Optional[Sequence[Tuple[Sequence[str], Any]]] = None):
        self.host = host or BotHost()
        self.config = config or RuntimeConfig()
        if registry is None:
            registry = build_default_registry(extra_rules)
        elif extra_rules:
            registry.register_all(extra_rules)
        registry.freeze()
        self.registry = registry
        self.functions = build_function_table()
        self._programs: 'OrderedDict[str, Program]' = OrderedDict()

    def new_session(self, session_id: Optional[str] = None) -> Session:
        session = Session(host=self.host, config=self.config)
        if session_id is not None:
            session.session_id = session_id
        return session

    def compile(self, source: str) -> Program:
        """Desugar and parse `source`. Results are cached by content hash."""
        key = hashlib.sha256(source.encode("utf-8")).hexdigest()
        program = self._programs.get(key)
        if program is not None:
            self._programs.move_to_end(key)
            return program
        program = Parser(self.registry).parse(desugar(source))
        self._programs[key] = program
        while len(self._programs) > max(self.config.preprocess_cache_size, 0):
            self._programs.popitem(last=False)
        return program

    def start(self, source: str, session: Session) -> asyncio.Task:
        """Run a script as a task the host can cancel."""
        task = asyncio.create_task(self.handle_script(source, session))
        self.host._register_task(task)
        return task

    async def handle_script(self, source: str, session: Optional[Session] = None) -> ExecutionResult:
        """The main entry point to execute a script."""
        session = session or self.new_session()
        if session.closed:
            raise ValueError(f"session {session.session_id} is closed")
        mark = len(session.side_effects)

        try:
            program = self.compile(source)
        except PreprocessError as e:
            return self._error_result(session, mark, f"PreprocessError: {e.message}", e, e.context)
        except ScriptSyntaxError as e:
            return self._error_result(session, mark, f"SyntaxError: {e.message}", e,
                                      source_context(source, e.line))

        evaluator = Evaluator(self.functions)
        try:
            value = await evaluator.run(program, session)
        except ScriptExit as e:
            value = e.value
        except BasicError as e:
            return self._error_result(session, mark, f"Error {e.number}: {e.message}", e,
                                      source_context(source, e.line))
        except Exception as e:
            logger.exception("internal error in session %s", session.session_id)
            node = evaluator.current_node
            token = node.loc if node is not None else None
            msg = f"InternalError: {type(e).__name__}: {e}"
            session.emit('stderr', msg)
            return ExecutionResult(status='error', error_message=msg, error_number=ERR_GENERIC,
                                   error_token=token, side_effects=session.side_effects[mark:])
        return ExecutionResult(status='success', value=value, side_effects=session.side_effects[mark:])

    def _error_result(self, session: Session, mark: int, msg: str, error: BasicError, context: str) -> ExecutionResult:
        session.emit('stderr', msg)
        token = {'line': error.line, 'col': error.col} if error.line is not None else None
        return ExecutionResult(
            status='error',
            error_message=msg,
            error_number=error.number,
            error_token=token,
            error_context=context,
            side_effects=session.side_effects[mark:],
        )
