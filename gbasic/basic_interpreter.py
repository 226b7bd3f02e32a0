"""
The script interpreter: an async Evaluator that walks a parsed Program
against one Session.

Every statement runs under the session's ErrorContext. When ON ERROR RESUME
NEXT is active a failing statement records its error and execution moves on
to the next statement; otherwise the error propagates to the runner.
"""
import inspect
import logging
import math
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from gbasic.basic_datatypes import (
    Node, Literal, Var, ArrayLit, MapLit, Unary, Binary, Member, Index, Call,
    CustomSyntax, Let, Assign, ExprStmt, Block, If, Program
)
from gbasic.basic_errors import (
    BasicError, KeywordError, ScriptRuntimeError, ScriptExit,
    ERR_INVALID_CALL, ERR_OVERFLOW, ERR_SUBSCRIPT, ERR_DIVISION_BY_ZERO,
    ERR_TYPE_MISMATCH, ERR_UNKNOWN_FUNCTION, ERR_UNDEFINED_VARIABLE
)
from gbasic.basic_printer import display
from gbasic.basic_syntax import EXPR
from gbasic.basic_values import (
    INT64_MIN, INT64_MAX, clone_value, is_number, is_truthy, switch_match, type_name
)

if TYPE_CHECKING:
    from gbasic.basic_runtime import Session

logger = logging.getLogger(__name__)

# Read-only pseudo properties of arrays and strings
_LENGTH_PROPERTIES = ("count", "length", "len")


def _type_mismatch(message: str) -> ScriptRuntimeError:
    return ScriptRuntimeError(f"Type mismatch: {message}", ERR_TYPE_MISMATCH)


def _check_int(value: int) -> int:
    if isinstance(value, int) and not INT64_MIN <= value <= INT64_MAX:
        raise ScriptRuntimeError("Overflow", ERR_OVERFLOW)
    return value


class Evaluator:
    """Executes parsed scripts. One Evaluator serves one script run."""

    def __init__(self, functions: Optional[Dict[str, Callable]] = None):
        # Builtin functions keyed by upper-cased name
        self.functions: Dict[str, Callable] = functions or {}
        self.current_node: Optional[Node] = None
        self._wants_session: Dict[str, bool] = {}

    async def run(self, program: Program, session: 'Session') -> Any:
        """Run every top-level statement; the value of the last one is the result."""
        return await self._run_statements(program.statements, session)

    async def _run_statements(self, statements: List[Node], session: 'Session') -> Any:
        result = None
        for stmt in statements:
            result = await self.exec_statement(stmt, session)
        return result

    async def exec_statement(self, stmt: Node, session: 'Session') -> Any:
        """Execute one statement, routing script errors through the session's ErrorContext."""
        self.current_node = stmt
        try:
            return await self._exec(stmt, session)
        except BasicError as e:
            if e.line is None:
                node = self.current_node or stmt
                e.line, e.col = node.line, node.col
            # Raises again unless ON ERROR RESUME NEXT is active
            return session.errors.handle_error(e)

    async def _exec(self, stmt: Node, session: 'Session') -> Any:
        match stmt:
            case Let(name=name, expr=expr):
                session.variables[name] = clone_value(await self.eval(expr, session))
                return None
            case Assign(target=target, expr=expr):
                value = clone_value(await self.eval(expr, session))
                await self._assign(target, value, session)
                return None
            case ExprStmt(expr=expr):
                return await self.eval(expr, session)
            case Block(statements=statements):
                return await self._run_statements(statements, session)
            case If(branches=branches, otherwise=otherwise):
                for cond, body in branches:
                    if is_truthy(await self.eval(cond, session)):
                        return await self._run_statements(body.statements, session)
                if otherwise is not None:
                    return await self._run_statements(otherwise.statements, session)
                return None
            case _:
                return await self.eval(stmt, session)

    # --- expressions ---

    async def eval(self, node: Node, session: 'Session') -> Any:
        self.current_node = node
        match node:
            case Literal(value=value):
                return value
            case Var(name=name):
                return self._lookup(name, session)
            case ArrayLit(items=items):
                return [await self.eval(item, session) for item in items]
            case MapLit(entries=entries):
                out = {}
                for key, expr in entries:
                    out[key] = await self.eval(expr, session)
                return out
            case Unary(op=op, operand=operand):
                value = await self.eval(operand, session)
                self.current_node = node
                return self._unary(op, value)
            case Binary():
                return await self._binary(node, session)
            case Member(target=target, name=name):
                value = await self.eval(target, session)
                self.current_node = node
                return self._get_member(value, name)
            case Index(target=target, index=index):
                container = await self.eval(target, session)
                key = await self.eval(index, session)
                self.current_node = node
                return self._get_index(container, key)
            case Call():
                return await self._call(node, session)
            case CustomSyntax():
                return await self._custom(node, session)
        raise ScriptRuntimeError(f"Cannot evaluate {type(node).__name__}")

    def _lookup(self, name: str, session: 'Session') -> Any:
        if name in session.variables:
            return session.variables[name]
        if name.upper() == "ERR":
            return session.errors.get_error_number()
        raise ScriptRuntimeError(f"Variable not found: {name}", ERR_UNDEFINED_VARIABLE)

    def _unary(self, op: str, value: Any) -> Any:
        if op == "!":
            return not is_truthy(value)
        if not is_number(value):
            raise _type_mismatch(f"cannot negate {type_name(value)}")
        return _check_int(-value)

    async def _binary(self, node: Binary, session: 'Session') -> Any:
        op = node.op
        left = await self.eval(node.left, session)
        if op == "&&":
            return is_truthy(left) and is_truthy(await self.eval(node.right, session))
        if op == "||":
            return is_truthy(left) or is_truthy(await self.eval(node.right, session))
        right = await self.eval(node.right, session)
        self.current_node = node
        match op:
            case "==":
                return switch_match(left, right)
            case "!=":
                return not switch_match(left, right)
            case "+":
                return self._add(left, right)
            case "-" | "*" | "/" | "%":
                return self._arith(op, left, right)
            case "<" | "<=" | ">" | ">=":
                return self._compare(op, left, right)
        raise ScriptRuntimeError(f"Unknown operator {op}")

    def _add(self, a: Any, b: Any) -> Any:
        if is_number(a) and is_number(b):
            return _check_int(a + b)
        if isinstance(a, str) or isinstance(b, str):
            return display(a) + display(b)
        if isinstance(a, list) and isinstance(b, list):
            return a + b
        raise _type_mismatch(f"cannot add {type_name(a)} and {type_name(b)}")

    def _arith(self, op: str, a: Any, b: Any) -> Any:
        if not (is_number(a) and is_number(b)):
            raise _type_mismatch(f"'{op}' needs numbers, got {type_name(a)} and {type_name(b)}")
        match op:
            case "-":
                return _check_int(a - b)
            case "*":
                return _check_int(a * b)
            case "/":
                if b == 0:
                    raise ScriptRuntimeError("Division by zero", ERR_DIVISION_BY_ZERO)
                if isinstance(a, int) and isinstance(b, int) and a % b == 0:
                    return _check_int(a // b)
                return a / b
            case "%":
                if b == 0:
                    raise ScriptRuntimeError("Division by zero", ERR_DIVISION_BY_ZERO)
                if isinstance(a, int) and isinstance(b, int):
                    # Remainder takes the sign of the dividend
                    r = abs(a) % abs(b)
                    return -r if a < 0 else r
                return math.fmod(a, b)

    def _compare(self, op: str, a: Any, b: Any) -> bool:
        comparable = (is_number(a) and is_number(b)) or (isinstance(a, str) and isinstance(b, str))
        if not comparable:
            raise _type_mismatch(f"cannot compare {type_name(a)} with {type_name(b)}")
        match op:
            case "<":
                return a < b
            case "<=":
                return a <= b
            case ">":
                return a > b
            case ">=":
                return a >= b

    # --- containers ---

    def _get_member(self, value: Any, name: str) -> Any:
        match value:
            case dict():
                return value.get(name)
            case list() | str() if name.lower() in _LENGTH_PROPERTIES:
                return len(value)
            case None:
                raise ScriptRuntimeError(f"Cannot read property '{name}' of null", ERR_UNDEFINED_VARIABLE)
        raise _type_mismatch(f"{type_name(value)} has no property '{name}'")

    def _get_index(self, container: Any, key: Any) -> Any:
        match container:
            case list() | str():
                if not isinstance(key, int) or isinstance(key, bool):
                    raise _type_mismatch(f"index must be an integer, got {type_name(key)}")
                if not 0 <= key < len(container):
                    raise ScriptRuntimeError(f"Subscript out of range: {key}", ERR_SUBSCRIPT)
                return container[key]
            case dict():
                if not isinstance(key, str):
                    raise _type_mismatch(f"map key must be a string, got {type_name(key)}")
                return container.get(key)
            case None:
                raise ScriptRuntimeError("Cannot index null", ERR_UNDEFINED_VARIABLE)
        raise _type_mismatch(f"{type_name(container)} cannot be indexed")

    def _set_index(self, container: Any, key: Any, value: Any):
        match container:
            case list():
                if not isinstance(key, int) or isinstance(key, bool):
                    raise _type_mismatch(f"index must be an integer, got {type_name(key)}")
                if not 0 <= key < len(container):
                    raise ScriptRuntimeError(f"Subscript out of range: {key}", ERR_SUBSCRIPT)
                container[key] = value
            case dict():
                if not isinstance(key, str):
                    raise _type_mismatch(f"map key must be a string, got {type_name(key)}")
                container[key] = value
            case _:
                raise _type_mismatch(f"cannot assign into {type_name(container)}")

    async def _container(self, node: Node, session: 'Session') -> Any:
        """The live container `node` denotes; missing or null maps are created on the way."""
        match node:
            case Var(name=name):
                current = session.variables.get(name)
                if current is None:
                    current = session.variables[name] = {}
                return current
            case Member(target=target, name=name):
                parent = await self._container(target, session)
                if not isinstance(parent, dict):
                    raise _type_mismatch(f"cannot set property '{name}' on {type_name(parent)}")
                current = parent.get(name)
                if current is None:
                    current = parent[name] = {}
                return current
            case Index(target=target, index=index):
                parent = await self._container(target, session)
                key = await self.eval(index, session)
                current = self._get_index(parent, key)
                if current is None:
                    current = {}
                    self._set_index(parent, key, current)
                return current
        raise ScriptRuntimeError("Invalid assignment target", ERR_INVALID_CALL)

    async def _assign(self, target: Node, value: Any, session: 'Session'):
        match target:
            case Var(name=name):
                session.variables[name] = value
            case Member(target=inner, name=name):
                container = await self._container(inner, session)
                if not isinstance(container, dict):
                    raise _type_mismatch(f"cannot set property '{name}' on {type_name(container)}")
                container[name] = value
            case Index(target=inner, index=index):
                container = await self._container(inner, session)
                key = await self.eval(index, session)
                self._set_index(container, key, value)
            case _:
                raise ScriptRuntimeError("Invalid assignment target", ERR_INVALID_CALL)

    # --- calls ---

    async def _call(self, node: Call, session: 'Session') -> Any:
        name = node.name.upper()
        func = self.functions.get(name)
        if func is None:
            raise ScriptRuntimeError(f"Unknown function {node.name}", ERR_UNKNOWN_FUNCTION)
        args = [await self.eval(arg, session) for arg in node.args]
        self.current_node = node
        kwargs = {"session": session} if self._takes_session(name, func) else {}
        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except (BasicError, ScriptExit):
            raise
        except TypeError as e:
            raise ScriptRuntimeError(f"Invalid arguments to {name}: {e}", ERR_INVALID_CALL) from e
        except ValueError as e:
            raise ScriptRuntimeError(f"{name}: {e}", ERR_INVALID_CALL) from e
        except ZeroDivisionError as e:
            raise ScriptRuntimeError(f"{name}: Division by zero", ERR_DIVISION_BY_ZERO) from e
        except OverflowError as e:
            raise ScriptRuntimeError(f"{name}: Overflow", ERR_OVERFLOW) from e
        except Exception as e:
            logger.debug("builtin %s failed", name, exc_info=True)
            raise KeywordError(f"{name}: {e}") from e
        if isinstance(result, complex):
            raise ScriptRuntimeError(f"{name}: result is not a real number", ERR_INVALID_CALL)
        return _check_int(result)

    def _takes_session(self, name: str, func: Callable) -> bool:
        wants = self._wants_session.get(name)
        if wants is None:
            try:
                params = inspect.signature(func).parameters
            except (TypeError, ValueError):
                params = {}
            wants = self._wants_session[name] = "session" in params
        return wants

    async def _custom(self, node: CustomSyntax, session: 'Session') -> Any:
        args = []
        for placeholder, arg in zip(node.rule.placeholders, node.args):
            args.append(await self.eval(arg, session) if placeholder == EXPR else arg)
        self.current_node = node
        try:
            return await node.rule.invoke(args, session)
        except (BasicError, ScriptExit):
            raise
        except Exception as e:
            logger.debug("handler for %s failed", node.rule, exc_info=True)
            raise KeywordError(f"{node.keyword}: {e}") from e
