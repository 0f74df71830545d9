"""Lexical utilities for regex-based Dart scanning.

Masks comments and string literals out of source lines (keeping column
positions intact), walks a project for Dart files and holds the keyword
and framework tables shared by the collector and the resolver.
"""
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DART_FILE_SUFFIX = ".dart"

DART_KEYWORDS = frozenset({
    'abstract', 'as', 'assert', 'async', 'await', 'break', 'case', 'catch',
    'class', 'const', 'continue', 'default', 'deferred', 'do', 'dynamic',
    'else', 'enum', 'export', 'extends', 'external', 'factory', 'false',
    'final', 'finally', 'for', 'Function', 'get', 'hide', 'if', 'implements',
    'import', 'in', 'interface', 'is', 'late', 'library', 'mixin', 'new',
    'null', 'on', 'operator', 'part', 'required', 'rethrow', 'return',
    'sealed', 'set', 'show', 'static', 'super', 'switch', 'sync', 'this',
    'throw', 'true', 'try', 'typedef', 'var', 'void', 'while', 'with', 'yield',
})

# Methods invoked by the Flutter/Dart runtime rather than by user code
LIFECYCLE_METHODS = frozenset({
    # Core Dart
    'print', 'debugPrint', 'main', 'runApp', 'runZoned', 'toString',
    'hashCode', 'noSuchMethod',
    # Widget / State lifecycle
    'build', 'createElement', 'canUpdate', 'createState', 'initState',
    'didChangeDependencies', 'didUpdateWidget', 'reassemble', 'deactivate',
    'activate', 'dispose',
    # Render objects
    'createRenderObject', 'updateRenderObject', 'didUnmountRenderObject',
    'performLayout', 'performResize', 'paint', 'hitTest', 'hitTestSelf',
    'hitTestChildren', 'applyPaintTransform', 'getTransformTo',
    'getDistanceToActualBaseline', 'computeMinIntrinsicWidth',
    'computeMaxIntrinsicWidth', 'computeMinIntrinsicHeight',
    'computeMaxIntrinsicHeight', 'performCommit', 'adoptChild', 'dropChild',
    'visitChildren', 'redepthChildren', 'attach', 'detach', 'showOnScreen',
    'describeSemanticsConfiguration', 'assembleSemanticsNode', 'clearSemantics',
    # Inherited widgets
    'updateShouldNotify',
    # Animation and stream listeners
    'addListener', 'removeListener', 'addStatusListener', 'removeStatusListener',
    'onListen', 'onPause', 'onResume', 'onCancel',
    # Elements
    'mount', 'updateSlotForChild', 'attachRenderObject', 'detachRenderObject',
    'unmount', 'performRebuild', 'debugVisitOnstageChildren',
    'debugDescribeChildren',
    # Tickers
    'start', 'shouldScheduleTick', 'unscheduleTick',
    # App lifecycle and binding observers
    'didChangeAppLifecycleState', 'didHaveMemoryPressure', 'didChangeLocales',
    'didChangeTextScaleFactor', 'didChangePlatformBrightness',
    'didChangeAccessibilityFeatures', 'didChangeMetrics', 'didRequestAppExit',
    'didPopRoute', 'didPushRoute', 'didPushRouteInformation',
    # Hero, routes, painters
    'createRectTween', 'flightShuttleBuilder', 'placeholderBuilder',
    'buildPage', 'buildTransitions', 'canTransitionFrom', 'canTransitionTo',
    'shouldRepaint', 'shouldRebuildSemantics', 'semanticsBuilder',
    # Slivers
    'childMainAxisPosition', 'childCrossAxisPosition', 'childScrollOffset',
    'calculatePaintOffset', 'calculateCacheOffset', 'childExistingScrollOffset',
    'updateOutOfBandData', 'updateParentData',
    # Platform channels
    'setMethodCallHandler',
})

ENTRY_POINT_PRAGMA = re.compile(
    r"""^\s*@pragma\s*\(\s*['"]"""
    r"(vm:entry-point|vm:external-name|vm:prefer-inline|vm:exact-result-type|"
    r"vm:never-inline|vm:non-nullable-by-default|flutter:keep-to-string|"
    r"flutter:keep-to-string-in-subtypes)"
    r"""['"]\s*(?:,\s*[^)]+)?\s*\)\s*$"""
)

IDENTIFIER = re.compile(r'(?<![\w$])[A-Za-z_$][\w$]*')

_COMMENT_PREFIX = re.compile(r'^\s*(?:/\*+|//+|\*+)\s*')


@dataclass
class LexerState:
    """Lexical context carried from one line to the next."""

    block_comment_depth: int = 0
    string_delimiter: Optional[str] = None
    raw_string: bool = False

    @property
    def in_block_comment(self) -> bool:
        return self.block_comment_depth > 0

    @property
    def in_string(self) -> bool:
        return self.string_delimiter is not None


def mask_line(line: str, state: LexerState) -> str:
    """Blank out comments and string literals in one line.

    The returned text has the same length as ``line`` so column positions
    stay valid. ``state`` is updated in place for unterminated block comments
    (which nest in Dart) and triple-quoted strings.
    """
    chars = list(line)
    length = len(line)
    i = 0

    def blank(start: int, end: int) -> None:
        for j in range(start, min(end, length)):
            chars[j] = ' '

    while i < length:
        if state.block_comment_depth:
            if line.startswith('*/', i):
                state.block_comment_depth -= 1
                blank(i, i + 2)
                i += 2
            elif line.startswith('/*', i):
                state.block_comment_depth += 1
                blank(i, i + 2)
                i += 2
            else:
                blank(i, i + 1)
                i += 1
            continue

        if state.string_delimiter:
            delimiter = state.string_delimiter
            if not state.raw_string and line[i] == '\\':
                blank(i, i + 2)
                i += 2
            elif line.startswith(delimiter, i):
                blank(i, i + len(delimiter))
                i += len(delimiter)
                state.string_delimiter = None
                state.raw_string = False
            else:
                blank(i, i + 1)
                i += 1
            continue

        char = line[i]
        if line.startswith('//', i):
            blank(i, length)
            break
        if line.startswith('/*', i):
            state.block_comment_depth = 1
            blank(i, i + 2)
            i += 2
            continue
        if char in ('"', "'"):
            delimiter = char * 3 if line.startswith(char * 3, i) else char
            prefix_start = i
            if i > 0 and line[i - 1] in 'rR' and (i < 2 or not (line[i - 2].isalnum() or line[i - 2] in '_$')):
                state.raw_string = True
                prefix_start = i - 1
            state.string_delimiter = delimiter
            blank(prefix_start, i + len(delimiter))
            i += len(delimiter)
            continue
        i += 1

    # Only triple-quoted strings may span lines
    if state.string_delimiter and len(state.string_delimiter) == 1:
        state.string_delimiter = None
        state.raw_string = False

    return ''.join(chars)


@dataclass
class MaskedSource:
    """A file split into raw lines with a comment/string-free twin per line."""

    lines: List[str]
    masked: List[str]
    starts_in_comment: List[bool]
    starts_in_string: List[bool]
    line_offsets: List[int] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str) -> "MaskedSource":
        state = LexerState()
        lines, masked, in_comment, in_string, offsets = [], [], [], [], []
        offset = 0
        for raw in text.split('\n'):
            line = raw.rstrip('\r')
            offsets.append(offset)
            offset += len(raw.encode('utf-8')) + 1
            in_comment.append(state.in_block_comment)
            in_string.append(state.in_string)
            masked.append(mask_line(line, state))
            lines.append(line)
        return cls(lines, masked, in_comment, in_string, offsets)

    def is_commented(self, index: int) -> bool:
        """True when line ``index`` is a comment line or begins inside a block comment."""
        return self.starts_in_comment[index] or is_comment_text(self.lines[index])

    def offset_of(self, index: int, column: int) -> int:
        """Byte offset of ``column`` on line ``index`` from the start of the file."""
        return self.line_offsets[index] + len(self.lines[index][:column].encode('utf-8'))


def is_comment_text(line: str) -> bool:
    stripped = line.lstrip()
    return stripped.startswith(('//', '/*', '*'))


def strip_comment_prefix(line: str) -> str:
    """Remove a leading ``//``, ``/*`` or ``*`` marker so commented code can be matched."""
    return _COMMENT_PREFIX.sub('', line, count=1)


def has_entry_point_marker(lines: List[str], index: int, window: int = 5) -> bool:
    """Check the non-blank lines above ``index`` for a native entry-point pragma.

    Annotation and comment lines are skipped over; the first ordinary code
    line ends the search.
    """
    checked = 0
    j = index - 1
    while j >= 0 and checked < window:
        stripped = lines[j].strip()
        j -= 1
        if not stripped:
            continue
        checked += 1
        if ENTRY_POINT_PRAGMA.match(stripped):
            return True
        if stripped.startswith(('@', '//', '/*', '*')):
            continue
        return False
    return False


def discover_dart_files(project_root: Path, excluded_dirs: Iterable[str]) -> List[Path]:
    """Recursively find .dart files under ``project_root``.

    Args:
        project_root: Root directory to walk
        excluded_dirs: Directory names that are never entered

    Returns:
        Absolute file paths in sorted order
    """
    excluded = set(excluded_dirs)
    files = []
    for file_path in project_root.rglob(f"*{DART_FILE_SUFFIX}"):
        relative_parts = file_path.relative_to(project_root).parts[:-1]
        if any(part in excluded for part in relative_parts):
            continue
        if file_path.is_file():
            files.append(file_path.resolve())
    files.sort()
    logger.debug("Discovered %d Dart files under %s", len(files), project_root)
    return files
