"""
Tokenization of free-text command fields (command, entrypoint, healthcheck test).
"""
import json
import re
from typing import List

# A token is a run of quoted sections and unquoted non-space characters.
_TOKEN = re.compile(r'''(?:"[^"]*"|'[^']*'|[^\s"'])+''')
_QUOTED = re.compile(r'"([^"]*)"' + r"|'([^']*)'")

def _unquote(match) -> str:
    """
    Internal replacement function for re.sub.
    """
    return match.group(1) if match.group(1) is not None else match.group(2)

def tokenize_command(text: str) -> List[str]:
    """
    Splits a command line typed by the user into an argument list.

    Exec form (a JSON array such as ``["python", "app.py"]``) is parsed
    directly. Otherwise the text is split on whitespace, keeping single or
    double quoted substrings together and stripping their quotes. Unbalanced
    quotes never raise: the text is then split on whitespace only.

    :param text: The raw text from the form field.
    :return: The argument list, empty for blank input.
    """
    if not text or not text.strip():
        return []

    stripped = text.strip()
    if stripped.startswith('[') and stripped.endswith(']'):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            # Not valid JSON, treat as shell form
            parsed = None
        if isinstance(parsed, list):
            return [item if isinstance(item, str) else json.dumps(item) for item in parsed]

    tokens = []
    position = 0
    for match in _TOKEN.finditer(stripped):
        if stripped[position:match.start()].strip():
            # A stray quote was skipped over
            return stripped.split()
        tokens.append(_QUOTED.sub(_unquote, match.group(0)))
        position = match.end()

    if stripped[position:].strip():
        return stripped.split()
    return tokens
