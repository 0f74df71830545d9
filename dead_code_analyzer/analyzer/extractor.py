"""Entity model and declaration scanning for Dart sources."""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .lexer import (
    DART_KEYWORDS,
    LIFECYCLE_METHODS,
    MaskedSource,
    has_entry_point_marker,
    strip_comment_prefix,
)

logger = logging.getLogger(__name__)


class EntityCategory(str, Enum):
    """Kind of declaration an Entity was collected from."""

    CLASS = "class"
    ABSTRACT_CLASS = "abstract_class"
    SEALED_CLASS = "sealed_class"
    BASE_CLASS = "base_class"
    FINAL_CLASS = "final_class"
    INTERFACE_CLASS = "interface_class"
    MIXIN = "mixin"
    MIXIN_CLASS = "mixin_class"
    ENUM = "enum"
    NAMED_EXTENSION = "named_extension"
    ANONYMOUS_EXTENSION = "anonymous_extension"
    TYPEDEF = "typedef"
    STATE_CLASS = "state_class"
    STATELESS_WIDGET = "stateless_widget"
    STATEFUL_WIDGET = "stateful_widget"
    FUNCTION = "function"
    CONSTRUCTOR = "constructor"

    @property
    def is_function(self) -> bool:
        return self in (EntityCategory.FUNCTION, EntityCategory.CONSTRUCTOR)


@dataclass
class Entity:
    """A declared type or function tracked for usage during one run."""
    name: str
    category: EntityCategory
    file_path: str  # Absolute path of the declaring file
    line: int  # 1-based
    offset: int  # Byte offset of the declaration from the start of the file
    commented_out: bool = False
    is_entry_point: bool = False
    is_lifecycle_member: bool = False
    enclosing_class: str = ""
    is_static: bool = False
    is_constructor: bool = False
    has_empty_body: bool = False
    is_override: bool = False
    is_abstract: bool = False
    internal_usage_count: int = 0
    external_usages: Dict[str, int] = field(default_factory=dict)
    key: str = ""  # Disambiguated table key, assigned by EntityTable

    @property
    def is_function(self) -> bool:
        return self.category.is_function

    @property
    def total_external_usages(self) -> int:
        return sum(self.external_usages.values())

    @property
    def total_usages(self) -> int:
        return self.internal_usage_count + self.total_external_usages

    @property
    def qualified_name(self) -> str:
        """``Class.member`` for members, the bare name otherwise."""
        if self.enclosing_class and not self.is_constructor:
            return f"{self.enclosing_class}.{self.name}"
        return self.name

    def to_dict(self) -> dict:
        """Serializable record for reporters."""
        return {
            'key': self.key,
            'name': self.name,
            'category': self.category.value,
            'file_path': self.file_path,
            'line': self.line,
            'offset': self.offset,
            'commented_out': self.commented_out,
            'is_entry_point': self.is_entry_point,
            'is_lifecycle_member': self.is_lifecycle_member,
            'enclosing_class': self.enclosing_class,
            'is_static': self.is_static,
            'is_constructor': self.is_constructor,
            'has_empty_body': self.has_empty_body,
            'is_override': self.is_override,
            'is_abstract': self.is_abstract,
            'internal_usage_count': self.internal_usage_count,
            'external_usages': dict(sorted(self.external_usages.items())),
            'total_external_usages': self.total_external_usages,
            'total_usages': self.total_usages,
        }


@dataclass
class ClassFrame:
    """One open type body on the collector's class stack."""
    name: str
    category: EntityCategory
    open_depth: int  # Brace depth just outside the body
    opened: bool = False


@dataclass
class ScanState:
    """Per-file scan state threaded through the collector's line loop."""
    class_stack: List[ClassFrame] = field(default_factory=list)
    brace_depth: int = 0

    @property
    def current_frame(self) -> Optional[ClassFrame]:
        return self.class_stack[-1] if self.class_stack else None

    @property
    def inside_state_class(self) -> bool:
        frame = self.current_frame
        return frame is not None and frame.opened and frame.category == EntityCategory.STATE_CLASS

    @property
    def at_declaration_level(self) -> bool:
        """True at top level or directly inside an open type body."""
        frame = self.current_frame
        if frame is None or not frame.opened:
            return self.brace_depth == (frame.open_depth if frame else 0)
        return self.brace_depth == frame.open_depth + 1

    def enter_class(self, name: str, category: EntityCategory) -> None:
        self.class_stack.append(ClassFrame(name, category, self.brace_depth))

    def consume_braces(self, masked_line: str) -> None:
        """Update depth from one comment/string-free line, closing finished bodies."""
        for char in masked_line:
            frame = self.current_frame
            if char == '{':
                self.brace_depth += 1
                if frame is not None and not frame.opened and self.brace_depth == frame.open_depth + 1:
                    frame.opened = True
            elif char == '}':
                self.brace_depth = max(0, self.brace_depth - 1)
                if frame is not None and frame.opened and self.brace_depth <= frame.open_depth:
                    self.class_stack.pop()
            elif char == ';':
                # Bodiless declaration, e.g. `class A = B with M;`
                if frame is not None and not frame.opened and self.brace_depth == frame.open_depth:
                    self.class_stack.pop()


_ID = r'[A-Za-z_$][\w$]*'
_PREFIX = r'^(?:/\*+\s*|//+\s*|\*+\s*)?(?:@[\w$.]+(?:\([^)]*\))?\s+)*'

# Ordered: most specific first, the first match wins
_DECLARATION_PATTERNS = [
    (re.compile(_PREFIX + rf'(?:(?:abstract|base)\s+)*mixin\s+class\s+(?P<name>{_ID})'), EntityCategory.MIXIN_CLASS),
    (re.compile(_PREFIX + rf'(?P<mods>(?:(?:sealed|abstract|base|final|interface)\s+)*)class\s+(?P<name>{_ID})'), EntityCategory.CLASS),
    (re.compile(_PREFIX + rf'enum\s+(?P<name>{_ID})'), EntityCategory.ENUM),
    (re.compile(_PREFIX + rf'(?:base\s+)?mixin\s+(?P<name>{_ID})'), EntityCategory.MIXIN),
    (re.compile(_PREFIX + r'extension\s+on\s+(?P<target>[^{]+?)\s*(?:\{|$)'), EntityCategory.ANONYMOUS_EXTENSION),
    (re.compile(_PREFIX + rf'extension\s+(?P<name>{_ID})(?:\s*<[^>]*>)?\s+on\b'), EntityCategory.NAMED_EXTENSION),
    (re.compile(_PREFIX + rf'typedef\s+(?:.*?\s)?(?P<name>{_ID})\s*(?:<[^=()]*>)?\s*[=(]'), EntityCategory.TYPEDEF),
]

_MODIFIER_CATEGORIES = [
    ('sealed', EntityCategory.SEALED_CLASS),
    ('base', EntityCategory.BASE_CLASS),
    ('final', EntityCategory.FINAL_CLASS),
    ('interface', EntityCategory.INTERFACE_CLASS),
    ('abstract', EntityCategory.ABSTRACT_CLASS),
]

_STATE_BASE = re.compile(r'\bextends\s+State\s*<')
_STATELESS_BASE = re.compile(r'\bextends\s+StatelessWidget\b')
_STATEFUL_BASE = re.compile(r'\bextends\s+StatefulWidget\b')

_BODY_CATEGORIES = {
    EntityCategory.CLASS, EntityCategory.ABSTRACT_CLASS, EntityCategory.SEALED_CLASS,
    EntityCategory.BASE_CLASS, EntityCategory.FINAL_CLASS, EntityCategory.INTERFACE_CLASS,
    EntityCategory.MIXIN, EntityCategory.MIXIN_CLASS, EntityCategory.ENUM,
    EntityCategory.NAMED_EXTENSION, EntityCategory.ANONYMOUS_EXTENSION,
    EntityCategory.STATE_CLASS, EntityCategory.STATELESS_WIDGET, EntityCategory.STATEFUL_WIDGET,
}

_FUNCTION_CANDIDATE = re.compile(
    rf'(?<![\w$])(?P<name>{_ID})(?:\.(?P<ctor>{_ID}))?\s*(?:<[^()]*>)?\s*\('
)

# What may precede a function name: annotations, modifiers, one return type
_DECLARATION_PREFIX = re.compile(
    r'^\s*(?:@[\w$.]+(?:\([^)]*\))?\s+)*'
    r'(?P<mods>(?:(?:external|static|factory|const|abstract|covariant|late|final)\s+)*)'
    r'(?:(?P<type>[\w$.]+(?:<[\w$\s,<>?.()]*>)?\??)\s+)?'
    r'(?:(?:get|set)\s+)?$'
)

_STATEMENT_WORDS = frozenset({
    'return', 'throw', 'await', 'yield', 'new', 'else', 'case', 'in', 'is',
    'as', 'if', 'for', 'while', 'do', 'switch', 'try', 'catch', 'var', 'assert',
    'default', 'print',
})

_ASYNC_MARKER = re.compile(r'^(?:async\*|async|sync\*)\s*')

# Lines examined after the signature opens when the parameter list wraps
_SIGNATURE_LOOKAHEAD = 12


@dataclass
class _Signature:
    name: str
    column: int
    is_constructor: bool
    has_empty_body: bool
    is_abstract: bool


class EntityCollector:
    """Scan a Dart file line by line and collect type and function declarations."""

    def __init__(self, include_functions: bool = False):
        """Initialize collector.

        Args:
            include_functions: Also collect functions, methods and constructors
        """
        self.include_functions = include_functions

    def collect(self, file_path: str, text: str) -> List[Entity]:
        """Collect all declarations in one file.

        Args:
            file_path: Absolute path recorded on every entity
            text: Full file contents

        Returns:
            Entities in source order (possibly empty)
        """
        source = MaskedSource.from_text(text)
        state = ScanState()
        entities: List[Entity] = []

        for index, raw_line in enumerate(source.lines):
            if source.starts_in_string[index]:
                state.consume_braces(source.masked[index])
                continue

            commented = source.is_commented(index)
            declared_type = self._match_type_declaration(file_path, source, index, commented)

            if declared_type is not None:
                entities.append(declared_type)
                if not commented and declared_type.category in _BODY_CATEGORIES:
                    state.enter_class(declared_type.name, declared_type.category)
            elif self.include_functions:
                function = self._match_function(file_path, source, index, commented, state)
                if function is not None:
                    entities.append(function)

            state.consume_braces(source.masked[index])

        logger.debug("Collected %d entities from %s", len(entities), file_path)
        return entities

    def _match_type_declaration(self, file_path: str, source: MaskedSource, index: int,
                                commented: bool) -> Optional[Entity]:
        raw_line = source.lines[index]
        trimmed = raw_line.strip()
        if not commented and not source.masked[index].strip():
            return None

        for pattern, category in _DECLARATION_PATTERNS:
            match = pattern.match(trimmed)
            if not match:
                continue

            if category == EntityCategory.ANONYMOUS_EXTENSION:
                target = re.sub(r'[<>,\s]', '', match.group('target'))
                if not target:
                    return None
                name = f"ExtensionOn {target}"
            else:
                name = match.group('name')
                if name in DART_KEYWORDS:
                    logger.debug("Rejected keyword %r as declaration name in %s:%d", name, file_path, index + 1)
                    return None

            if category == EntityCategory.CLASS:
                category = self._class_category(match.group('mods'), trimmed)

            column = len(raw_line) - len(raw_line.lstrip())
            return Entity(
                name=name,
                category=category,
                file_path=file_path,
                line=index + 1,
                offset=source.offset_of(index, column),
                commented_out=commented,
                is_entry_point=not commented and has_entry_point_marker(source.lines, index),
            )
        return None

    @staticmethod
    def _class_category(modifiers: str, declaration: str) -> EntityCategory:
        words = set(modifiers.split())
        for modifier, category in _MODIFIER_CATEGORIES:
            if modifier in words:
                return category
        if _STATE_BASE.search(declaration):
            return EntityCategory.STATE_CLASS
        if _STATELESS_BASE.search(declaration):
            return EntityCategory.STATELESS_WIDGET
        if _STATEFUL_BASE.search(declaration):
            return EntityCategory.STATEFUL_WIDGET
        return EntityCategory.CLASS

    def _match_function(self, file_path: str, source: MaskedSource, index: int,
                        commented: bool, state: ScanState) -> Optional[Entity]:
        frame = state.current_frame
        if commented:
            text = strip_comment_prefix(source.lines[index])
            enclosing = frame.name if frame is not None else ""
        else:
            if not state.at_declaration_level:
                return None
            text = source.masked[index]
            enclosing = frame.name if frame is not None and frame.opened else ""

        signature = self._parse_signature(text, source, index, commented, enclosing)
        if signature is None:
            return None

        if commented:
            column = max(source.lines[index].find(signature.name.split('.')[0]), 0)
        else:
            column = signature.column

        is_override = self._has_override(source, index, text)
        is_entry_point = not commented and (
            has_entry_point_marker(source.lines, index)
            or (signature.name == 'main' and not enclosing)
        )

        return Entity(
            name=signature.name,
            category=EntityCategory.CONSTRUCTOR if signature.is_constructor else EntityCategory.FUNCTION,
            file_path=file_path,
            line=index + 1,
            offset=source.offset_of(index, column),
            commented_out=commented,
            is_entry_point=is_entry_point,
            is_lifecycle_member=signature.name in LIFECYCLE_METHODS and state.inside_state_class,
            enclosing_class=enclosing,
            is_static=text.lstrip().startswith('static '),
            is_constructor=signature.is_constructor,
            has_empty_body=signature.has_empty_body,
            is_override=is_override,
            is_abstract=signature.is_abstract,
        )

    def _parse_signature(self, text: str, source: MaskedSource, index: int,
                         commented: bool, enclosing: str) -> Optional[_Signature]:
        """Recognise ``[modifiers] [Type] name(params) body`` starting on ``text``."""
        match = _FUNCTION_CANDIDATE.search(text)
        if match is None:
            return None

        preceding = text[:match.start()]
        if preceding.rstrip().endswith(('.', ':', '=')):
            return None
        prefix = _DECLARATION_PREFIX.match(preceding)
        if prefix is None:
            return None

        return_type = prefix.group('type')
        modifiers = set(prefix.group('mods').split())
        if return_type in _STATEMENT_WORDS:
            return None

        name = match.group('name')
        named_ctor = match.group('ctor')
        if name in DART_KEYWORDS or name in _STATEMENT_WORDS:
            return None

        is_constructor = bool(enclosing) and name == enclosing and return_type is None
        if named_ctor and not is_constructor:
            return None
        if 'factory' in modifiers and not is_constructor:
            return None

        tail = self._after_parameters(text, match.end() - 1, source, index, commented)
        if tail is None:
            return None
        tail = _ASYNC_MARKER.sub('', tail.lstrip())

        if tail.startswith('{'):
            has_empty_body = self._brace_body_is_empty(tail[1:], source, index, commented)
            is_abstract = False
        elif tail.startswith('=>'):
            has_empty_body = False
            is_abstract = False
        elif tail.startswith(';'):
            # `foo(x);` without a return type is a call, not an abstract member
            if return_type is None and not is_constructor and 'external' not in modifiers:
                return None
            has_empty_body = True
            is_abstract = not is_constructor and 'external' not in modifiers
        elif tail.startswith(':') and is_constructor:
            initializers = tail[1:]
            brace, semicolon = initializers.find('{'), initializers.find(';')
            has_empty_body = semicolon != -1 and (brace == -1 or semicolon < brace)
            is_abstract = False
        elif tail.startswith('=') and is_constructor and 'factory' in modifiers:
            has_empty_body = True
            is_abstract = False
        else:
            return None

        full_name = f"{name}.{named_ctor}" if named_ctor else name
        return _Signature(full_name, match.start('name'), is_constructor, has_empty_body, is_abstract)

    @staticmethod
    def _after_parameters(text: str, open_paren: int, source: MaskedSource, index: int,
                          commented: bool) -> Optional[str]:
        """Return the text following the parameter list's closing parenthesis."""
        balance = 0
        segment = text[open_paren:]
        next_index = index + 1
        while True:
            for position, char in enumerate(segment):
                if char == '(':
                    balance += 1
                elif char == ')':
                    balance -= 1
                    if balance == 0:
                        rest = segment[position + 1:]
                        # Body marker may sit on the following line
                        while not rest.strip() and not commented and next_index < len(source.masked) \
                                and next_index <= index + _SIGNATURE_LOOKAHEAD:
                            rest = source.masked[next_index]
                            next_index += 1
                        return rest
            if commented or next_index >= len(source.masked) or next_index > index + _SIGNATURE_LOOKAHEAD:
                return None
            segment = source.masked[next_index]
            next_index += 1

    @staticmethod
    def _brace_body_is_empty(after_brace: str, source: MaskedSource, index: int, commented: bool) -> bool:
        remaining = after_brace.strip()
        if remaining:
            return remaining.startswith('}')
        if commented:
            return False
        for next_index in range(index + 1, len(source.masked)):
            remaining = source.masked[next_index].strip()
            if remaining:
                return remaining.startswith('}')
        return False

    @staticmethod
    def _has_override(source: MaskedSource, index: int, text: str) -> bool:
        if '@override' in text:
            return True
        checked = 0
        j = index - 1
        while j >= 0 and checked < 3:
            stripped = strip_comment_prefix(source.lines[j]).strip()
            j -= 1
            if not stripped:
                continue
            checked += 1
            if stripped.startswith('@override'):
                return True
            if not stripped.startswith('@'):
                return False
        return False
