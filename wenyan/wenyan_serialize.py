from __future__ import annotations

import json
from dataclasses import fields
from typing import Any, List

import yaml

from wenyan.wenyan_ast import Token, TokenType, Node, NodeType, FunctionCall, NODE_CLASSES


# --------------------------
# Helpers
# --------------------------

def tokens_to_data(tokens: List[Token]) -> List[dict]:
    return [t.to_dict() for t in tokens]


def tokens_from_data(data: List[dict]) -> List[Token]:
    return [Token(TokenType(d["kind"]), d["text"], d["line"], d["column"]) for d in data]


def ast_to_data(node: Any) -> Any:
    """
    Convert an AST (or any part of one) into JSON-compatible data.
    Every node becomes a mapping with a 'type' key followed by its fields in
    declaration order. Call arguments become an ordered list of
    {'name', 'value'} pairs.
    """
    match node:
        case Node():
            data = {"type": node.type.value}
            for f in fields(node):
                value = getattr(node, f.name)
                if isinstance(node, FunctionCall) and f.name == "arguments":
                    data[f.name] = [{"name": k, "value": ast_to_data(v)} for k, v in value.items()]
                else:
                    data[f.name] = ast_to_data(value)
            return data
        case list():
            return [ast_to_data(x) for x in node]
        case _:
            return node


def ast_from_data(data: Any) -> Any:
    """Rebuild AST nodes from data produced by ast_to_data."""
    match data:
        case {"type": str() as type_name, **rest}:
            try:
                cls = NODE_CLASSES[NodeType(type_name)]
            except ValueError:
                raise ValueError(f"Unknown AST node type: {type_name!r}") from None
            kwargs = {}
            for key, value in rest.items():
                if cls is FunctionCall and key == "arguments":
                    kwargs[key] = {a["name"]: ast_from_data(a["value"]) for a in value}
                else:
                    kwargs[key] = ast_from_data(value)
            return cls(**kwargs)
        case list():
            return [ast_from_data(x) for x in data]
        case _:
            return data


def _to_builtin(obj: Any) -> Any:
    if isinstance(obj, Token):
        return obj.to_dict()
    if isinstance(obj, Node):
        return ast_to_data(obj)
    if isinstance(obj, list):
        return [_to_builtin(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _to_builtin(v) for k, v in obj.items()}
    return obj


# --------------------------
# Public API
# --------------------------

def serialize(value: Any, *, fmt: str = 'json', pretty: bool = True) -> str:
    """
    Convert tokens, AST nodes or plain data into a textual representation.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = _to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def deserialize(text: str, *, fmt: str = 'json') -> Any:
    """Parse text written by serialize back into plain data."""
    f = (fmt or '').lower()
    if f == 'json':
        return json.loads(text)
    if f == 'yaml':
        return yaml.safe_load(text)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "tokens_to_data",
    "tokens_from_data",
    "ast_to_data",
    "ast_from_data",
    "serialize",
    "deserialize",
]
