"""
YAML loading rules for Compose files.
"""
import re
import yaml
from typing import Any

INT_TAG = 'tag:yaml.org,2002:int'
FLOAT_TAG = 'tag:yaml.org,2002:float'

class ComposeLoader(yaml.SafeLoader):
    """
    Safe loader without YAML 1.1 base-60 numbers.

    ``2222:22`` and ``21:21`` stay strings, as Compose reads them, instead
    of becoming the integers 133342 and 1281.
    """

ComposeLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in (INT_TAG, FLOAT_TAG)]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

ComposeLoader.add_implicit_resolver(
    INT_TAG,
    re.compile(r'''^(?:[-+]?0b[0-1_]+
                    |[-+]?0[0-7_]+
                    |[-+]?(?:0|[1-9][0-9_]*)
                    |[-+]?0x[0-9a-fA-F_]+)$''', re.X),
    list('-+0123456789'))

ComposeLoader.add_implicit_resolver(
    FLOAT_TAG,
    re.compile(r'''^(?:[-+]?(?:[0-9][0-9_]*)\.[0-9_]*(?:[eE][-+][0-9]+)?
                    |\.[0-9_]+(?:[eE][-+][0-9]+)?
                    |[-+]?\.(?:inf|Inf|INF)
                    |\.(?:nan|NaN|NAN))$''', re.X),
    list('-+0123456789.'))

def load_compose(content: str) -> Any:
    """
    Parses Compose YAML text with the safe loader.

    :param content: The YAML text.
    :return: The loaded structure, None for an empty document.
    :raises yaml.YAMLError: If the text is not valid YAML.
    """
    return yaml.load(content, Loader=ComposeLoader)
