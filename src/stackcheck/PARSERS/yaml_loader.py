"""
A YAML loader tuned for deployment descriptors.

PyYAML follows YAML 1.1, which reads ``8080:8080`` as a base-60 integer and
silently keeps the last of two identical mapping keys. Neither is acceptable
for a descriptor, so this loader drops the base-60 integer form and rejects
duplicate keys.
"""
import re
from typing import Any, Dict, List, Optional

import yaml
from yaml.constructor import ConstructorError
from yaml.nodes import MappingNode, ScalarNode

from ..errors import DuplicateNameError

_INT_TAG = 'tag:yaml.org,2002:int'
_MERGE_TAG = 'tag:yaml.org,2002:merge'

# PyYAML's int resolver minus the sexagesimal alternative
_INT_RE = re.compile(r'''^(?:[-+]?0b[0-1_]+
    |[-+]?0[0-7_]+
    |[-+]?(?:0|[1-9][0-9_]*)
    |[-+]?0x[0-9a-fA-F_]+)$''', re.X)


class ComposeLoader(yaml.SafeLoader):
    """
    Safe loader without base-60 integers that refuses duplicate mapping keys.
    """

    def construct_mapping(self, node, deep=False):
        if isinstance(node, MappingNode):
            seen = {}
            for key_node, _ in node.value:
                if key_node.tag == _MERGE_TAG:
                    continue
                key = self.construct_object(key_node, deep=deep)
                try:
                    duplicate = key in seen
                except TypeError:
                    # unhashable keys are reported by the base class
                    continue
                if duplicate:
                    raise ConstructorError(
                        "while constructing a mapping", node.start_mark,
                        f"found duplicate key {key!r}", key_node.start_mark)
                seen[key] = key_node
        return super().construct_mapping(node, deep=deep)


ComposeLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _INT_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ComposeLoader.add_implicit_resolver(_INT_TAG, _INT_RE, list('-+0123456789'))


def _top_level_entry(root: MappingNode, name: str) -> Optional[MappingNode]:
    for key_node, value_node in root.value:
        if isinstance(key_node, ScalarNode) and key_node.value == name and isinstance(value_node, MappingNode):
            return value_node
    return None


def _check_unique_names(root: Any):
    """
    Raises DuplicateNameError for a service or volume name declared twice.
    Checked on the node tree so the error names the entity instead of a bare key.
    """
    if not isinstance(root, MappingNode):
        return
    for section, kind in (('services', 'service'), ('volumes', 'volume')):
        mapping = _top_level_entry(root, section)
        if mapping is None:
            continue
        seen: List[str] = []
        for key_node, _ in mapping.value:
            if not isinstance(key_node, ScalarNode) or key_node.tag == _MERGE_TAG:
                continue
            if key_node.value in seen:
                raise DuplicateNameError(kind, key_node.value, line=key_node.start_mark.line + 1)
            seen.append(key_node.value)


def load_yaml(content: str) -> Optional[Dict[str, Any]]:
    """
    Loads descriptor text.

    :param content: YAML text.
    :return: The loaded document, or None for an empty one.
    :raises DuplicateNameError: If a service or volume name repeats.
    :raises yaml.YAMLError: On any other YAML problem.
    """
    loader = ComposeLoader(content)
    try:
        node = loader.get_single_node()
        if node is None:
            return None
        _check_unique_names(node)
        return loader.construct_document(node)
    finally:
        loader.dispose()


def dump_yaml(data: Dict[str, Any]) -> str:
    """
    Dumps compose data keeping key order. Empty volume declarations are written as ``~``.
    """
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
