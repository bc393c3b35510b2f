"""JavaScript front end: esprima parses, :func:`~jsdeob.nodes.from_dict` converts.

esprima's ``toDict()`` output is plain ESTree, so the same conversion serves
JSON documents produced by other parsers (acorn, babel with ``estree``).
"""

from __future__ import annotations

import json
import logging

import esprima

from .exceptions import JSSyntaxError
from .nodes import Node, from_dict

LOG = logging.getLogger(__name__)


def parse(source: str) -> Node:
    """Parse script ``source`` into a :class:`~jsdeob.nodes.Program`.

    Malformed input raises :class:`~jsdeob.exceptions.JSSyntaxError`.  Syntax
    esprima accepts but the node model does not cover (arrow functions,
    template literals, regular expressions, labels) raises
    :class:`~jsdeob.exceptions.UnsupportedConstruct`.
    """

    try:
        tree = esprima.parseScript(source)
    except esprima.Error as exc:
        # esprima formats messages as "Line N: description"
        message = str(exc).split(": ", 1)[-1]
        raise JSSyntaxError(message, exc.lineNumber or 0, exc.column or 0) from exc
    return from_dict(tree.toDict())


def load_program(source: str, *, as_json: bool = False) -> Node:
    """Turn JavaScript source, or an ESTree JSON document when ``as_json``, into a tree."""

    if as_json:
        LOG.debug("loading ESTree JSON (%d bytes)", len(source))
        return from_dict(json.loads(source))
    return parse(source)


__all__ = ["parse", "load_program"]
