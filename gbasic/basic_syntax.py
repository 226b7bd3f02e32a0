"""
Registry of custom statement forms (`USE_KB <expr>`, `CLEAR_WEBSITES`, ...).

A rule is a sequence of tokens: literal keywords and placeholders. `$expr$`
consumes one expression and `$ident$` one bare identifier. Rules live in a
prefix tree keyed by their (upper-cased) literals, which the parser walks
with one token of lookahead. A rule is rejected when it would make that
walk ambiguous; every other rule still registers.
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from gbasic.basic_errors import SyntaxRegistrationError

logger = logging.getLogger(__name__)

EXPR = "$expr$"
IDENT = "$ident$"
PLACEHOLDERS = (EXPR, IDENT)

Handler = Callable[[List[Any], Any], Any]


@dataclass(frozen=True)
class SyntaxRule:
    tokens: Tuple[str, ...]
    handler: Handler = field(compare=False, repr=False)

    @property
    def keyword(self) -> str:
        return self.tokens[0]

    @property
    def placeholders(self) -> Tuple[str, ...]:
        return tuple(t for t in self.tokens if t in PLACEHOLDERS)

    @property
    def is_literal_only(self) -> bool:
        return not self.placeholders

    async def invoke(self, args: List[Any], session: Any) -> Any:
        """Call the handler; coroutine handlers are awaited."""
        result = self.handler(args, session)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __str__(self) -> str:
        return " ".join(self.tokens)


class RuleNode:
    """One position in the prefix tree."""
    __slots__ = ("literals", "placeholder", "child", "rule")

    def __init__(self):
        self.literals: Dict[str, 'RuleNode'] = {}
        self.placeholder: Optional[str] = None
        self.child: Optional['RuleNode'] = None
        self.rule: Optional[SyntaxRule] = None

    def rules(self) -> Iterable[SyntaxRule]:
        if self.rule is not None:
            yield self.rule
        for node in self.literals.values():
            yield from node.rules()
        if self.child is not None:
            yield from self.child.rules()


def normalize_tokens(tokens: Sequence[str]) -> Tuple[str, ...]:
    """Validate a rule's token list and upper-case its literals."""
    if isinstance(tokens, str) or not tokens:
        raise SyntaxRegistrationError("a syntax rule needs at least one token", tokens)
    out = []
    for tok in tokens:
        if not isinstance(tok, str) or not tok.strip() or any(c.isspace() for c in tok):
            raise SyntaxRegistrationError(f"invalid token {tok!r}", tokens)
        if tok.startswith("$") and tok.endswith("$") and len(tok) > 1:
            if tok not in PLACEHOLDERS:
                raise SyntaxRegistrationError(f"unknown placeholder {tok!r}", tokens)
            if out and out[-1] in PLACEHOLDERS:
                raise SyntaxRegistrationError("adjacent placeholders cannot be told apart", tokens)
            out.append(tok)
        else:
            out.append(tok.upper())
    if out[0] in PLACEHOLDERS:
        raise SyntaxRegistrationError("a syntax rule must start with a keyword", tokens)
    return tuple(out)


class SyntaxRegistry:
    """Keyword-prefix dispatch table consulted by the statement parser."""

    def __init__(self):
        self._roots: Dict[str, RuleNode] = {}
        self._rules: List[SyntaxRule] = []
        self._frozen = False
        # (shorter literal-only rule, longer rule) pairs told apart only by end of statement
        self.flagged: List[Tuple[SyntaxRule, SyntaxRule]] = []

    # --- registration ---

    def register(self, tokens: Sequence[str], handler: Handler) -> SyntaxRule:
        if self._frozen:
            raise SyntaxRegistrationError("the syntax registry is frozen", tokens)
        if not callable(handler):
            raise SyntaxRegistrationError("handler must be callable", tokens)
        normalized = normalize_tokens(tokens)
        self._check_conflicts(normalized)
        rule = SyntaxRule(normalized, handler)
        self._insert(rule)
        self._rules.append(rule)
        logger.debug("registered syntax %s", rule)
        return rule

    def register_all(self, rules: Iterable[Tuple[Sequence[str], Handler]]) -> List[SyntaxRegistrationError]:
        """Register many rules; rejected ones are reported and skipped."""
        errors = []
        for tokens, handler in rules:
            try:
                self.register(tokens, handler)
            except SyntaxRegistrationError as e:
                logger.warning("rejected syntax %s: %s", " ".join(map(str, tokens or [])), e.message)
                errors.append(e)
        return errors

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_conflicts(self, tokens: Tuple[str, ...]):
        node = self._roots.get(tokens[0])
        if node is None:
            return
        for position, tok in enumerate(tokens[1:], start=1):
            if tok in PLACEHOLDERS:
                if node.literals:
                    other = next(iter(node.literals))
                    raise SyntaxRegistrationError(
                        f"{tok} at position {position} conflicts with keyword {other!r}", tokens)
                if node.placeholder is not None and node.placeholder != tok:
                    raise SyntaxRegistrationError(
                        f"{tok} at position {position} conflicts with {node.placeholder}", tokens)
                if node.child is None:
                    return
                node = node.child
            else:
                if node.placeholder is not None:
                    raise SyntaxRegistrationError(
                        f"keyword {tok!r} at position {position} conflicts with {node.placeholder}", tokens)
                nxt = node.literals.get(tok)
                if nxt is None:
                    return
                node = nxt
        if node.rule is not None:
            raise SyntaxRegistrationError(f"duplicate syntax {' '.join(tokens)}", tokens)

    def _insert(self, rule: SyntaxRule):
        node = self._roots.setdefault(rule.keyword, RuleNode())
        for tok in rule.tokens[1:]:
            if node.rule is not None and node.rule.is_literal_only:
                self._flag(node.rule, rule)
            if tok in PLACEHOLDERS:
                node.placeholder = tok
                if node.child is None:
                    node.child = RuleNode()
                node = node.child
            else:
                node = node.literals.setdefault(tok, RuleNode())
        node.rule = rule
        if rule.is_literal_only:
            for longer in list(node.rules()):
                if longer is not rule:
                    self._flag(rule, longer)

    def _flag(self, shorter: SyntaxRule, longer: SyntaxRule):
        self.flagged.append((shorter, longer))
        logger.info("syntax %s is a prefix of %s; resolved by end of statement", shorter, longer)

    # --- lookup ---

    def lookup(self, word: str) -> Optional[RuleNode]:
        """The prefix-tree root for a leading keyword, or None."""
        return self._roots.get(word.upper())

    def is_keyword(self, word: str) -> bool:
        return word.upper() in self._roots

    @property
    def rules(self) -> List[SyntaxRule]:
        return list(self._rules)

    def __contains__(self, tokens) -> bool:
        try:
            wanted = normalize_tokens(tokens)
        except SyntaxRegistrationError:
            return False
        return any(r.tokens == wanted for r in self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"<SyntaxRegistry rules={len(self._rules)} frozen={self._frozen}>"
