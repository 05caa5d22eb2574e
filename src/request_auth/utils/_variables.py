import re
from collections.abc import Callable, Mapping

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def resolve_variables(
    value: str, variables: Mapping[str, str], keep_unresolved: bool = True
) -> str:
    """Substitute ``{{name}}`` placeholders with values from ``variables``."""

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)

        if name in variables:
            return variables[name]

        return match.group(0) if keep_unresolved else ""

    return VARIABLE_PATTERN.sub(_replace, value)


def make_variable_resolver(
    variables: Mapping[str, str], keep_unresolved: bool = True
) -> Callable[[str], str]:
    return lambda value: resolve_variables(value, variables, keep_unresolved)
