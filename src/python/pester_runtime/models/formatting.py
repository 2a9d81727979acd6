"""Short string forms of tree items, as printed in the console."""

import inspect
import os
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .block import Block
    from .container import Container
    from .run import Run
    from .test import Test

_RESULT_MARKERS = {
    "Passed": "[+]",
    "Failed": "[-]",
    "Skipped": "[!]",
    "Inconclusive": "[?]",
    "NotRun": "[ ]",
}


def result_to_string(result: Any) -> str:
    value = getattr(result, "value", result)
    return _RESULT_MARKERS.get(value, "[ERR]")


def declaration_site(fn: Callable[..., Any] | None) -> tuple[str | None, int]:
    """Return the (file, first line) where a callable was defined, if known."""
    if fn is None:
        return None, 0
    try:
        file = inspect.getsourcefile(fn)
    except TypeError:
        return None, 0
    code = getattr(fn, "__code__", None)
    line = code.co_firstlineno if code is not None else 0
    return file, line


def callable_to_string(fn: Callable[..., Any]) -> str:
    return f"{getattr(fn, '__module__', '?')}.{getattr(fn, '__qualname__', repr(fn))}"


def to_plain(value: Any) -> Any:
    """
    Turn configuration values into data YAML and JSON can hold.

    Callables become their dotted names and paths become strings. The result
    is for display and files only; it does not load back into callables.
    """
    if isinstance(value, Mapping):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, os.PathLike):
        return os.fspath(value)
    if callable(value):
        return callable_to_string(value)
    return str(value)


def container_item_to_string(container_type: Any, item: Any) -> str:
    kind = getattr(container_type, "value", container_type)
    if kind == "File":
        return os.fspath(item) if isinstance(item, os.PathLike) else str(item)
    if kind == "ScriptBlock":
        path = "<ScriptBlock>"
        file, line = declaration_site(item) if callable(item) else (None, 0)
        if file:
            path += f":{file}:{line}"
        return path
    return f"<{kind}>"


def format_test(test: "Test") -> str:
    return f"{result_to_string(test.result)} {test.expanded_name or test.name}"


def format_block(block: "Block") -> str:
    return f"{result_to_string(block.result)} {block.name}"


def format_container(container: "Container") -> str:
    return (
        f"{result_to_string(container.result)} "
        f"{container_item_to_string(container.type, container.item)}"
    )


def format_run(run: "Run") -> str:
    return f"{result_to_string(run.result)} Pester"
