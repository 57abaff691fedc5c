"""Resolution of dotted variable paths used by ``!if``.

An environment is either a mapping or a callable taking a name. Values
that are themselves mappings or callables are nested environments, so
``!if (jdk.version.modern) {`` looks up ``jdk``, then ``version``, then
``modern``.
"""

from typing import Any, Callable, Mapping, Sequence, Union

Environment = Union[Mapping[str, Any], Callable[[str], Any]]


def empty_environment(name: str) -> Any:
    return None


def lookup(env: Environment, name: str) -> Any:
    """Look up one name in an environment."""
    if isinstance(env, Mapping):
        return env.get(name)
    return env(name)


def is_environment(value: Any) -> bool:
    return isinstance(value, Mapping) or callable(value)


def resolve(env: Environment, variables: Sequence[str]) -> bool:
    """Evaluate a path of names as a condition.

    The literal paths ``true`` and ``false`` evaluate to themselves. A
    missing value, or a path that runs through something other than an
    environment, is false. The final value is true if it is ``True`` or
    its text is ``true`` in any case.
    """
    if list(variables) == ["true"]:
        return True
    if list(variables) == ["false"]:
        return False
    value: Any = env
    for name in variables:
        if value is None or not is_environment(value):
            return False
        value = lookup(value, name)
    if value is True:
        return True
    if value is None or value is False:
        return False
    return str(value).lower() == "true"


def from_pairs(pairs: Sequence[Sequence[str]]) -> Mapping[str, Any]:
    """Build a nested environment from ``(dotted.name, value)`` pairs.

    ``("jdk.modern", "true")`` becomes ``{"jdk": {"modern": "true"}}``.
    """
    root: dict = {}
    for name, value in pairs:
        parts = name.split(".")
        node = root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
    return root
