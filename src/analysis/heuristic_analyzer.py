# src/analysis/heuristic_analyzer.py - v1
"""Lightweight default code analyzer.

Python is parsed with the stdlib ast module. Other supported languages
are counted with regexes per language family after stripping comments
and string literals; unbalanced brackets count as a syntax error.
"""

from __future__ import annotations

import ast
import logging
import re

from codexplain.analysis.base_analyzer import BaseCodeAnalyzer
from codexplain.core.errors import AnalysisFailed
from codexplain.core.models import CodeAnalysis

logger = logging.getLogger(__name__)

_C_FAMILY = frozenset({
    "javascript", "typescript", "java", "c", "cpp", "c++", "csharp", "c#",
    "go", "rust", "kotlin", "swift", "php", "scala", "dart",
})
_LANGUAGE_ALIASES = {
    "py": "python", "js": "javascript", "ts": "typescript", "jsx": "javascript",
    "tsx": "typescript", "cs": "csharp", "rs": "rust", "kt": "kotlin",
    "golang": "go", "c++": "cpp", "c#": "csharp", "rb": "ruby",
}

_COMMENT_RE = re.compile(r"//[^\n]*|/\*.*?\*/", re.DOTALL)
_HASH_COMMENT_RE = re.compile(r"#[^\n]*")
_STRING_RE = re.compile(r'"(?:\\.|[^"\\\n])*"|\'(?:\\.|[^\'\\\n])*\'|`[^`]*`')

_C_CONTROL_RE = re.compile(r"\b(if|for|foreach|while|switch|case|catch|match|select)\b")
_C_CLASS_RE = re.compile(r"\b(class|struct|interface|enum|trait|impl)\s+\w+")
_C_FUNCTION_RE = re.compile(
    r"\bfunction\s*\w*\s*\("          # js/php
    r"|\bfunc\s+(\(\w+\s+\*?\w+\)\s*)?\w+\s*\("   # go
    r"|\bfn\s+\w+"                    # rust
    r"|\bfun\s+\w+"                   # kotlin
    r"|=>"                            # arrow functions / lambdas
    r"|^\s*(?:(?:public|private|protected|static|final|virtual|override|async|inline)\s+)*"
    r"(?!(?:else|return|new|throw)\b)[\w<>\[\],:*&]+\s+"
    r"(?!(?:if|for|while|switch|catch)\b)\w+\s*\([^;{}]*\)\s*(?:const\s*)?\{",
    re.MULTILINE,
)
_RUBY_CONTROL_RE = re.compile(r"^\s*(if|unless|while|until|for|case|begin)\b|\.each\b", re.MULTILINE)
_RUBY_FUNCTION_RE = re.compile(r"^\s*def\s+", re.MULTILINE)
_RUBY_CLASS_RE = re.compile(r"^\s*(class|module)\s+\w+", re.MULTILINE)

_PY_CONTROL = (ast.If, ast.For, ast.AsyncFor, ast.While, ast.Try, ast.IfExp)
_PY_MATCH = getattr(ast, "Match", None)

_BRACKETS = {")": "(", "]": "[", "}": "{"}

SUPPORTED_LANGUAGES = frozenset({"python", "ruby"} | _C_FAMILY)


def canonical_language(language: str) -> str:
    lang = language.strip().lower()
    return _LANGUAGE_ALIASES.get(lang, lang)


class HeuristicAnalyzer(BaseCodeAnalyzer):
    """Counts lines, functions, classes and branches."""

    @property
    def supported_languages(self) -> frozenset[str]:
        return SUPPORTED_LANGUAGES

    async def analyze(self, code: str, language: str) -> CodeAnalysis:
        lang = canonical_language(language)
        if not code.strip():
            raise AnalysisFailed("Nothing to explain: the selection is empty")
        if lang not in SUPPORTED_LANGUAGES:
            raise AnalysisFailed(
                f"Unsupported language: {language!r}",
                details={"language": language},
            )

        text = code.replace("\r\n", "\n").replace("\r", "\n")
        if lang == "python":
            functions, classes, control = self._count_python(text)
        elif lang == "ruby":
            functions, classes, control = self._count_ruby(text)
        else:
            functions, classes, control = self._count_c_family(text)

        line_count = len(text.splitlines())
        analysis = CodeAnalysis(
            language=lang,
            line_count=line_count,
            function_count=functions,
            class_count=classes,
            control_flow_count=control,
            complexity=float(1 + control),
            summary=(
                f"{line_count} lines, {functions} functions, "
                f"{classes} classes, {control} branches"
            ),
            structure={"functions": functions, "classes": classes, "branches": control},
        )
        logger.debug("Analyzed %s snippet: %s", lang, analysis.summary)
        return analysis

    @staticmethod
    def _count_python(text: str) -> tuple[int, int, int]:
        try:
            tree = ast.parse(text)
        except SyntaxError as e:
            raise AnalysisFailed(
                f"Syntax error at line {e.lineno}: {e.msg}",
                details={"language": "python", "line": e.lineno},
            ) from e

        functions = classes = control = 0
        for node in ast.walk(tree):
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)):
                functions += 1
            elif isinstance(node, ast.ClassDef):
                classes += 1
            elif isinstance(node, _PY_CONTROL) or (
                _PY_MATCH is not None and isinstance(node, _PY_MATCH)
            ):
                control += 1
            elif isinstance(node, ast.comprehension) and node.ifs:
                control += 1
        return functions, classes, control

    @staticmethod
    def _count_ruby(text: str) -> tuple[int, int, int]:
        stripped = _STRING_RE.sub('""', _HASH_COMMENT_RE.sub("", text))
        return (
            len(_RUBY_FUNCTION_RE.findall(stripped)),
            len(_RUBY_CLASS_RE.findall(stripped)),
            len(_RUBY_CONTROL_RE.findall(stripped)),
        )

    @staticmethod
    def _count_c_family(text: str) -> tuple[int, int, int]:
        stripped = _STRING_RE.sub('""', _COMMENT_RE.sub("", text))
        _check_brackets(stripped)
        return (
            len(_C_FUNCTION_RE.findall(stripped)),
            len(_C_CLASS_RE.findall(stripped)),
            len(_C_CONTROL_RE.findall(stripped)),
        )


def _check_brackets(text: str) -> None:
    """Raise AnalysisFailed on unbalanced (), [] or {}."""
    stack: list[tuple[str, int]] = []
    for lineno, line in enumerate(text.split("\n"), start=1):
        for ch in line:
            if ch in "([{":
                stack.append((ch, lineno))
            elif ch in _BRACKETS:
                if not stack or stack[-1][0] != _BRACKETS[ch]:
                    raise AnalysisFailed(
                        f"Unbalanced {ch!r} at line {lineno}",
                        details={"line": lineno},
                    )
                stack.pop()
    if stack:
        ch, lineno = stack[-1]
        raise AnalysisFailed(
            f"Unclosed {ch!r} opened at line {lineno}",
            details={"line": lineno},
        )
