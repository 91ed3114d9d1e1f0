"""
=============================================================================
TEMPLATE ENGINE
=============================================================================

A very small embedded-Python template language, just enough to render the
directory listing page.

=============================================================================
SYNTAX
=============================================================================

    literal text          copied to the output as-is
    <%= expression %>     evaluated, converted with str(), appended
    <% statement %>       executed; produces no output by itself

Statements that end with ":" open a block, <% end %> closes it, and
else/elif/except/finally continue it:

    <ul>
    <% for f in files: %>
      <li><a href="<%= f.url %>"><%= escape(f.name) %></a></li>
    <% end %>
    </ul>

    <% if not files: %>empty<% else: %><%= len(files) %> entries<% end %>

Every key of the data mapping is a plain variable inside the template.
The output so far is the list "out", so a statement can write directly
with <% out.append("...") %>.

=============================================================================
HOW IT WORKS
=============================================================================

    template text
        │  tokenize()
        ▼
    [Segment(LITERAL, "<ul>\\n"), Segment(CODE, " for f in files: "), ...]
        │  compile_template()
        ▼
    out.append('<ul>\\n')
    for f in files:
        out.append('\\n  <li><a href="')
        out.append(str((f.url)))
        ...
        │  exec(code, {**helpers, **data, "out": []})
        ▼
    "".join(out)

Templates are code. They run with the full privileges of the server and
must never come from a request or any other untrusted source.

=============================================================================
"""

import html
import logging
import re
import textwrap
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, NamedTuple, Optional


logger = logging.getLogger(__name__)


OUTPUT_VAR = "out"


class TemplateRenderError(Exception):
    """
    Raised when a template cannot be compiled or fails while running.

    The original exception (SyntaxError, NameError, ...) is chained as
    __cause__.
    """


class SegmentKind(Enum):
    LITERAL = "literal"
    CODE = "code"
    EXPRESSION = "expression"


class Segment(NamedTuple):
    kind: SegmentKind
    text: str


TAG_PATTERN = re.compile(r"<%(=?)(.*?)%>", re.DOTALL)

# statements that close the current block before opening the next one
CONTINUATION_KEYWORDS = ("else", "elif", "except", "finally")
END_KEYWORD = "end"


def tokenize(template: str) -> List[Segment]:
    """
    Split template text into literal, code and expression segments.

    Raises:
        TemplateRenderError: On an unclosed or nested "<%".
    """
    segments: List[Segment] = []
    position = 0

    for match in TAG_PATTERN.finditer(template):
        literal = template[position:match.start()]
        if literal:
            segments.append(Segment(SegmentKind.LITERAL, literal))

        is_expression, body = match.groups()
        if "<%" in body:
            raise TemplateRenderError(f"Nested '<%' inside tag at offset {match.start()}")

        kind = SegmentKind.EXPRESSION if is_expression else SegmentKind.CODE
        segments.append(Segment(kind, body))
        position = match.end()

    tail = template[position:]
    if "<%" in tail:
        offset = position + tail.index("<%")
        raise TemplateRenderError(f"Unclosed '<%' at offset {offset}")
    if tail:
        segments.append(Segment(SegmentKind.LITERAL, tail))

    return segments


def _leading_keyword(statement: str) -> str:
    match = re.match(r"[A-Za-z_]+", statement)
    return match.group(0) if match else ""


def generate_source(segments: List[Segment]) -> str:
    """
    Translate segments into Python source appending to OUTPUT_VAR.

    Raises:
        TemplateRenderError: On unbalanced blocks or empty expressions.
    """
    lines: List[str] = []
    depth = 0
    empty_block = False

    def emit(line: str):
        nonlocal empty_block
        lines.append("    " * depth + line)
        empty_block = False

    def close_block(what: str):
        nonlocal depth
        if depth == 0:
            raise TemplateRenderError(f"{what} without an open block")
        if empty_block:
            emit("pass")
        depth -= 1

    for segment in segments:
        if segment.kind is SegmentKind.LITERAL:
            emit(f"{OUTPUT_VAR}.append({segment.text!r})")

        elif segment.kind is SegmentKind.EXPRESSION:
            expression = segment.text.strip()
            if not expression:
                raise TemplateRenderError("Empty <%= %> expression")
            # parentheses let the expression span lines and end in a comment
            emit(f"{OUTPUT_VAR}.append(str(({expression}\n)))")

        else:
            statement = segment.text.strip()
            if not statement:
                continue

            if statement == END_KEYWORD:
                close_block("<% end %>")
                continue

            if _leading_keyword(statement) in CONTINUATION_KEYWORDS:
                close_block(f"'{statement}'")

            code_lines = [line for line in textwrap.dedent(segment.text).splitlines() if line.strip()]
            code_lines[0] = code_lines[0].lstrip()
            for line in code_lines:
                emit(line.rstrip())

            if code_lines[-1].rstrip().endswith(":"):
                depth += 1
                empty_block = True

    if depth != 0:
        raise TemplateRenderError(f"{depth} block(s) not closed with <% end %>")

    return "\n".join(lines)


class TemplateEngine:
    """
    Renders templates against a data mapping.

    Args:
        helpers: Names made available to every template (defaults to
                 ``escape``, i.e. html.escape). Data keys take precedence.
    """

    DEFAULT_HELPERS: Dict[str, Any] = {"escape": html.escape}

    def __init__(self, helpers: Optional[Mapping[str, Any]] = None):
        self.helpers = dict(self.DEFAULT_HELPERS if helpers is None else helpers)

    def compile(self, template: str, name: str = "<template>"):
        """Compile template text into a code object."""
        source = generate_source(tokenize(template))
        try:
            return compile(source, name, "exec")
        except SyntaxError as e:
            raise TemplateRenderError(
                f"Invalid template syntax in {name}: {e.msg} (generated line {e.lineno})"
            ) from e

    def render(self, template: str, data: Optional[Mapping[str, Any]] = None,
               name: str = "<template>") -> str:
        """
        Render template text with data.

            >>> TemplateEngine().render("literal<%= a+b %>literal2", {"a": 1, "b": 2})
            'literal3literal2'

        Raises:
            TemplateRenderError: On syntax errors or exceptions raised by
                                 template code.
        """
        code = self.compile(template, name)

        namespace: Dict[str, Any] = dict(self.helpers)
        namespace.update(data or {})
        output: List[Any] = []
        namespace[OUTPUT_VAR] = output

        try:
            exec(code, namespace)
        except Exception as e:
            raise TemplateRenderError(
                f"Error rendering {name}: {type(e).__name__}: {e}"
            ) from e

        return "".join(map(str, output))

    def render_file(self, path: str | Path, data: Optional[Mapping[str, Any]] = None) -> str:
        """Read a UTF-8 template file and render it."""
        path = Path(path)
        return self.render(path.read_text(encoding="utf-8"), data, name=str(path))


_default_engine = TemplateEngine()


def render(template: str, data: Optional[Mapping[str, Any]] = None) -> str:
    """Render with the default engine."""
    return _default_engine.render(template, data)


def render_file(path: str | Path, data: Optional[Mapping[str, Any]] = None) -> str:
    """Render a template file with the default engine."""
    return _default_engine.render_file(path, data)
