"""Select plugin files with glob patterns.

Patterns are relative to the plugin directory and may use ``{{ name }}``,
which is substituted before globbing. On top of ``pathlib`` glob syntax
(``*``, ``?``, ``[...]`` and ``**``) patterns support ``{a,b}`` alternation
and ``!pattern`` negation, which removes matching paths from the result.

Matches within a pattern are sorted lexicographically; across patterns they
keep pattern order. The result is deterministic for a given file tree.
"""

from fnmatch import fnmatchcase
from pathlib import Path

from jinja2 import TemplateError

from sheaf.errors import MatchError
from sheaf.templates import render_string


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternation, including nested groups.

    Unbalanced braces and groups without a comma are kept literally.

    >>> expand_braces("*.{zsh,sh}")
    ['*.zsh', '*.sh']
    """
    depth = 0
    start = None
    commas: list[int] = []
    for i, char in enumerate(pattern):
        if char == "{":
            if depth == 0:
                start = i
                commas = []
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start is not None:
                if not commas:
                    # "{x}" is literal, keep scanning after it
                    head = pattern[: i + 1]
                    return [head + rest for rest in expand_braces(pattern[i + 1 :])]
                prefix, suffix = pattern[:start], pattern[i + 1 :]
                bounds = [start, *commas, i]
                options = [pattern[a + 1 : b] for a, b in zip(bounds, bounds[1:])]
                expanded = []
                for option in options:
                    expanded.extend(expand_braces(prefix + option + suffix))
                return expanded
        elif char == "," and depth == 1:
            commas.append(i)
    return [pattern]


def _render(pattern: str, name: str, plugin: str) -> str:
    try:
        return render_string(pattern, {"name": name})
    except TemplateError as e:
        raise MatchError(plugin, f"failed to render pattern `{pattern}`: {e}") from e


def _glob(directory: Path, pattern: str, plugin: str) -> list[Path]:
    matches: dict[Path, None] = {}
    for expanded in expand_braces(pattern):
        try:
            found = sorted(directory.glob(expanded))
        except (ValueError, NotImplementedError) as e:
            raise MatchError(plugin, f"invalid pattern `{pattern}`: {e}") from e
        for path in found:
            if path.is_symlink() and not path.exists():
                raise MatchError(plugin, f"`{path}` is a broken symlink")
            matches.setdefault(path, None)
    return sorted(matches)


def _is_excluded(path: Path, directory: Path, negations: list[str]) -> bool:
    relative = path.relative_to(directory).as_posix()
    return any(fnmatchcase(relative, neg) or fnmatchcase(path.name, neg) for neg in negations)


def _split(patterns: list[str], name: str, plugin: str) -> tuple[list[str], list[str]]:
    positives: list[str] = []
    negations: list[str] = []
    for raw in patterns:
        pattern = _render(raw, name, plugin)
        if pattern.startswith("!"):
            negations.extend(expand_braces(pattern[1:]))
        else:
            positives.append(pattern)
    return positives, negations


def match_files(
    directory: Path,
    plugin: str,
    use: list[str] | None,
    global_match: list[str],
) -> list[Path]:
    """Select the files for a plugin.

    Args:
        directory: The plugin directory patterns are relative to.
        plugin: The plugin name, bound to ``{{ name }}`` in patterns.
        use: Explicit per-plugin patterns. Every pattern contributes and
            matches are unioned in first-seen order.
        global_match: Fallback patterns used when ``use`` is None. The first
            pattern with at least one match wins.

    Returns:
        Absolute paths of the selected files.

    Raises:
        MatchError: If no file matches, or a pattern is invalid.
    """
    if use is not None:
        positives, negations = _split(use, plugin, plugin)
        selected: dict[Path, None] = {}
        for pattern in positives:
            for path in _glob(directory, pattern, plugin):
                if not _is_excluded(path, directory, negations):
                    selected.setdefault(path, None)
        files = list(selected)
        tried = use
    else:
        positives, negations = _split(global_match, plugin, plugin)
        files = []
        for pattern in positives:
            files = [p for p in _glob(directory, pattern, plugin) if not _is_excluded(p, directory, negations)]
            if files:
                break
        tried = global_match

    if not files:
        listed = ", ".join(f"`{p}`" for p in tried) or "none"
        raise MatchError(plugin, f"no files matched in `{directory}` (patterns: {listed})")
    return files
