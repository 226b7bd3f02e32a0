"""A BASIC dialect for scripting conversational bots."""

from gbasic.basic_config import RuntimeConfig, load_config, configure_logging
from gbasic.basic_error_context import ErrorContext
from gbasic.basic_errors import (
    BasicError, PreprocessError, SyntaxRegistrationError, ScriptSyntaxError,
    KeywordError, ScriptRuntimeError, ScriptExit
)
from gbasic.basic_preprocessor import desugar, switch_match
from gbasic.basic_runtime import BotHost, Session, ExecutionResult, ScriptRunner
from gbasic.basic_syntax import SyntaxRegistry, SyntaxRule

__all__ = [
    "RuntimeConfig", "load_config", "configure_logging",
    "ErrorContext",
    "BasicError", "PreprocessError", "SyntaxRegistrationError", "ScriptSyntaxError",
    "KeywordError", "ScriptRuntimeError", "ScriptExit",
    "desugar", "switch_match",
    "BotHost", "Session", "ExecutionResult", "ScriptRunner",
    "SyntaxRegistry", "SyntaxRule",
]
