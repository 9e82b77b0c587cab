"""Glob matchers for the ``ignoreFiles`` configuration list.

Patterns are matched against the whole archive-relative POSIX path:
``*`` and ``?`` stay within one path segment, ``**`` crosses segments,
``[abc]`` is a character class and ``{a,b}`` an alternation.
"""

import re
from pathlib import PurePosixPath


def glob_to_regex(pattern: str) -> str:
    """Translate a glob pattern into an anchored regular expression."""
    out = []
    i = 0
    in_group = False
    n = len(pattern)

    while i < n:
        c = pattern[i]
        if c == '*':
            if i + 1 < n and pattern[i + 1] == '*':
                out.append('.*')
                i += 2
                continue
            out.append('[^/]*')
        elif c == '?':
            out.append('[^/]')
        elif c == '[':
            end = pattern.find(']', i + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1:end]
                if body.startswith('!'):
                    body = '^' + body[1:]
                out.append(f"[{body.replace(chr(92), chr(92) * 2)}]")
                i = end
        elif c == '{' and not in_group:
            in_group = True
            out.append('(?:')
        elif c == '}' and in_group:
            in_group = False
            out.append(')')
        elif c == ',' and in_group:
            out.append('|')
        elif c == '\\' and i + 1 < n:
            i += 1
            out.append(re.escape(pattern[i]))
        else:
            out.append(re.escape(c))
        i += 1

    if in_group:
        raise ValueError(f"Unclosed '{{' in glob pattern: {pattern}")
    return ''.join(out) + r'\Z'


class PathMatcher:
    """Matches archive-relative paths against one glob pattern."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        self._regex = re.compile(glob_to_regex(pattern))

    def matches(self, path) -> bool:
        # Trailing slash of directory entries must not defeat the match
        posix = str(PurePosixPath(str(path).replace('\\', '/')))
        return self._regex.match(posix) is not None

    def __repr__(self):
        return f"PathMatcher({self.pattern!r})"


def compile_path_matchers(patterns):
    """Build matchers for every non-empty pattern, in order."""
    return [PathMatcher(p) for p in patterns if p]


def matches_any(matchers, path) -> bool:
    return any(m.matches(path) for m in matchers)
