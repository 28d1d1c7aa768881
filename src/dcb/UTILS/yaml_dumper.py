"""
YAML emission rules for Compose files.
"""
import yaml
from typing import Any

class FlowList(list):
    """
    A list rendered inline as ``["a", "b"]``.
    Compose exec-form keys (command, entrypoint, healthcheck test) use it.
    """

class QuotedString(str):
    """
    A string that is always rendered double-quoted, e.g. ``user: "1000:1000"``.
    """

class ComposeDumper(yaml.SafeDumper):
    """
    Safe dumper that indents block sequences under their parent key.
    """
    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)

def _represent_flow_list(dumper: ComposeDumper, data: FlowList):
    items = [yaml.ScalarNode('tag:yaml.org,2002:str', str(item), style='"') for item in data]
    return yaml.SequenceNode('tag:yaml.org,2002:seq', items, flow_style=True)

def _represent_quoted_string(dumper: ComposeDumper, data: QuotedString):
    return dumper.represent_scalar('tag:yaml.org,2002:str', str(data), style='"')

ComposeDumper.add_representer(FlowList, _represent_flow_list)
ComposeDumper.add_representer(QuotedString, _represent_quoted_string)

def dump_compose(data: Any) -> str:
    """
    Serializes a nested dict/list/scalar structure to Compose YAML text.

    :param data: The structure to serialize. Key order is preserved.
    :return: The YAML text, or an empty string for an empty structure.
    """
    if not data:
        return ""
    return yaml.dump(
        data,
        Dumper=ComposeDumper,
        default_flow_style=False,
        sort_keys=False,
        indent=2,
        width=float("inf"),
        allow_unicode=True,
    )
