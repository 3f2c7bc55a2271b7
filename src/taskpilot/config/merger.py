"""
Merging of layered configuration dictionaries.

Later layers (project file, environment) override earlier ones. A key
prefixed with ``+`` or ``-`` extends or shrinks a list from an earlier
layer instead of replacing it, e.g. in a project file::

    task:
      +approval_required_tools: [read_file]
      -approval_required_tools: [execute_command]
"""

from typing import Any


def _extend(current: Any, items: list[Any]) -> list[Any]:
    if not isinstance(current, list):
        return list(items)
    return current + [item for item in items if item not in current]


def _shrink(current: Any, items: list[Any]) -> Any:
    if not isinstance(current, list):
        return current
    return [item for item in current if item not in items]


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Merge ``override`` into a copy of ``base``.

    Nested mappings merge key by key, a ``None`` value deletes the key,
    and any other value replaces the earlier one.

    Returns:
        The merged dictionary. Neither argument is modified.
    """
    merged = dict(base)

    for key, value in override.items():
        if key[:1] in ("+", "-") and isinstance(value, list):
            name = key[1:]
            if key[0] == "+":
                merged[name] = _extend(merged.get(name), value)
            elif name in merged:
                merged[name] = _shrink(merged[name], value)
        elif value is None:
            merged.pop(key, None)
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value

    return merged


def set_nested_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    """
    Set ``value`` at a dot-separated path (``task.ask_timeout``), creating
    intermediate mappings as needed.

    Returns:
        The modified configuration dictionary.
    """
    *parents, leaf = key_path.split(".")
    current = config
    for key in parents:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[leaf] = value
    return config
