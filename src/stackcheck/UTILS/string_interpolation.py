"""
Utilities for string interpolation using environment variables.
"""
import re
from typing import Any, Dict, Optional, Set
from ..errors import InterpolationError

# $$ | ${VAR[op | $VAR; the word after op runs to the matching '}' and may nest ${...}
_PATTERN = re.compile(
    r'\$(?:(?P<escaped>\$)'
    r'|\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?P<op>:?[-+?])?'
    r'|(?P<named>[A-Za-z_][A-Za-z0-9_]*))'
)

def _closing_brace(template: str, start: int) -> int:
    """
    Finds the '}' that closes a ${...} whose body starts at ``start``.

    :return: Its index, or -1 when the braces are not balanced.
    """
    depth = 0
    i = start
    while i < len(template):
        if template.startswith('$$', i):
            i += 2
            continue
        if template.startswith('${', i):
            depth += 1
            i += 2
            continue
        if template[i] == '}':
            if depth == 0:
                return i
            depth -= 1
        i += 1
    return -1

class EnvironmentInterpolator:
    """
    Utility for interpolating environment variables in strings.
    Supports $VAR, ${VAR}, ${VAR:-default}, ${VAR-default}, ${VAR:+value}, ${VAR+value},
    ${VAR:?error}, ${VAR?error} and the $$ escape. Defaults may themselves hold
    ${...} expressions, e.g. ${A:-${B:-x}}.
    """
    @classmethod
    def interpolate(cls, template: str, context: Dict[str, str], strict: bool = False,
                    missing: Optional[Set[str]] = None) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        :param template: The string containing placeholders.
        :param context: The environment variables context.
        :param strict: Raise instead of substituting an empty string for unset variables.
        :param missing: If given, collects the names of unset variables that were substituted.
        :return: The interpolated string.
        :raises InterpolationError: For ${VAR?err} on an unset variable, an unterminated
            ${VAR:-...} expression, or any unset variable when strict.
        """
        def expand(word):
            return cls.interpolate(word, context, strict=strict, missing=missing)

        def substitute(var_name, op, word):
            value = context.get(var_name)
            is_set = value is not None
            # The ':' forms treat an empty value like an unset one
            usable = bool(value) if op and op.startswith(':') else is_set

            if op in (':-', '-'):
                return value if usable else expand(word)
            if op in (':+', '+'):
                return expand(word) if usable else ''
            if op in (':?', '?'):
                if not usable:
                    raise InterpolationError(
                        var_name, f"{var_name}: {expand(word) or 'required variable is not set'}")
                return value

            if is_set:
                return value
            if strict:
                raise InterpolationError(var_name)
            if missing is not None:
                missing.add(var_name)
            return ''

        result = []
        pos = 0
        while True:
            match = _PATTERN.search(template, pos)
            if not match:
                result.append(template[pos:])
                break
            result.append(template[pos:match.start()])

            if match.group('escaped'):
                result.append('$')
                pos = match.end()
                continue
            if match.group('named'):
                result.append(substitute(match.group('named'), None, ''))
                pos = match.end()
                continue

            var_name = match.group('braced')
            op = match.group('op')
            if not op:
                if template.startswith('}', match.end()):
                    result.append(substitute(var_name, None, ''))
                    pos = match.end() + 1
                else:
                    # Not an expression, e.g. ${VAR.x}; kept as written
                    result.append('$')
                    pos = match.start() + 1
                continue

            end = _closing_brace(template, match.end())
            if end < 0:
                raise InterpolationError(
                    var_name, f"Invalid interpolation format: unterminated '${{{var_name}{op}' in {template!r}")
            result.append(substitute(var_name, op, template[match.end():end]))
            pos = end + 1

        return ''.join(result)

    @classmethod
    def interpolate_data(cls, data: Any, context: Dict[str, str], strict: bool = False,
                         missing: Optional[Set[str]] = None) -> Any:
        """
        Interpolates every string value found in nested lists and mappings.
        Mapping keys are left untouched.
        """
        if isinstance(data, str):
            return cls.interpolate(data, context, strict=strict, missing=missing)
        if isinstance(data, dict):
            return {k: cls.interpolate_data(v, context, strict, missing) for k, v in data.items()}
        if isinstance(data, list):
            return [cls.interpolate_data(v, context, strict, missing) for v in data]
        return data
