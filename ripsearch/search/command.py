"""Translate search parameters into a ripgrep argument vector."""

from ripsearch.dependencies import InvalidParametersError
from ripsearch.search.models import SearchParameters


def build_command(parameters: SearchParameters, executable: str | None = None) -> list[str]:
    """Build the ripgrep invocation for a parameter snapshot.

    Flags are emitted in a fixed order and the vector always ends with
    the query and the root path. The result is meant for a process
    launcher that takes an argument list; it is never joined into a
    shell string.

    Args:
        parameters: Search configuration to run
        executable: Optional program path to place first in the vector

    Returns:
        Argument list, e.g. ['--json', '-i', '-F', '-g', '*.py', '--', 'foo', '/src']

    Raises:
        InvalidParametersError: If the query is blank

    Examples:
        >>> build_command(SearchParameters(query="foo", root_path="/src"))
        ['--json', '-F', '--', 'foo', '/src']
    """
    if not parameters.has_query:
        raise InvalidParametersError("Search query must not be blank")

    args: list[str] = [executable] if executable else []
    args.append("--json")
    if parameters.case_insensitive:
        args.append("-i")
    if parameters.include_hidden:
        args.append("-uuu")
    if not parameters.regex_mode:
        args.append("-F")
    for pattern in parameters.globs:
        args.extend(["-g", pattern])
    # "--" keeps a query that starts with a dash from being read as a flag
    args.extend(["--", parameters.query, parameters.root_path])
    return args
