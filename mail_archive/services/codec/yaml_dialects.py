"""Strict and legacy YAML loaders for archive frontmatter.

The strict dialect is plain YAML with no explicit tags at all. The legacy
dialect accepts the tagged values older exports produced (local tags such as
``!Date``, ``!!set`` literals, ``!!python/tuple`` sequences, timestamps) and
unwraps them into plain scalars, sequences and mappings.
"""

from datetime import date, datetime

import yaml
from frontmatter.default_handlers import YAMLHandler

from mail_archive.errors import FrontmatterParseError


class StrictLoader(yaml.SafeLoader):
    """SafeLoader that refuses any explicit tag."""

    def fetch_tag(self):
        mark = self.get_mark()
        raise yaml.constructor.ConstructorError(
            None, None, "explicit tags are not allowed in archive frontmatter", mark
        )


class LegacyLoader(yaml.SafeLoader):
    """SafeLoader that unwraps unknown and non-portable tags."""


def _construct_untagged(loader: yaml.SafeLoader, node: yaml.Node):
    """Construct a node as if its tag had been omitted."""
    if isinstance(node, yaml.ScalarNode):
        tag = loader.resolve(yaml.ScalarNode, node.value, (node.style is None, False))
        plain = yaml.ScalarNode(tag, node.value, node.start_mark, node.end_mark, node.style)
        return loader.construct_object(plain, deep=True)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_mapping(node, deep=True)


def _construct_set(loader: yaml.SafeLoader, node: yaml.Node):
    if isinstance(node, yaml.MappingNode):
        values = list(loader.construct_mapping(node, deep=True).keys())
    else:
        values = _construct_untagged(loader, node)
        if not isinstance(values, list):
            values = [values]
    return sorted(values, key=str)


def _construct_binary(loader: yaml.SafeLoader, node: yaml.Node):
    return loader.construct_yaml_binary(node).decode("utf-8", errors="replace")


LegacyLoader.add_constructor(None, _construct_untagged)
LegacyLoader.add_constructor("tag:yaml.org,2002:set", _construct_set)
LegacyLoader.add_constructor("tag:yaml.org,2002:binary", _construct_binary)
LegacyLoader.add_constructor("tag:yaml.org,2002:omap", _construct_untagged)
LegacyLoader.add_constructor("tag:yaml.org,2002:pairs", _construct_untagged)


class StrictYAMLHandler(YAMLHandler):
    """Frontmatter handler bound to the strict loader and dumper."""

    def load(self, fm: str, **kwargs):
        kwargs.setdefault("Loader", StrictLoader)
        return yaml.load(fm, **kwargs)

    def export(self, metadata: dict, **kwargs) -> str:
        kwargs.setdefault("Dumper", yaml.SafeDumper)
        kwargs.setdefault("sort_keys", False)
        kwargs.setdefault("width", 4096)
        return super().export(metadata, **kwargs)


class LegacyYAMLHandler(StrictYAMLHandler):
    """Frontmatter handler that reads the legacy tagged dialect."""

    def load(self, fm: str, **kwargs):
        kwargs.setdefault("Loader", LegacyLoader)
        return yaml.load(fm, **kwargs)


def normalize_value(value):
    """Reduce a loaded value to strict YAML types (str, int, float, bool, None, list, dict)."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted((normalize_value(v) for v in value), key=str)
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): normalize_value(v) for k, v in value.items()}
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def load_mapping(handler: YAMLHandler, fm_text: str) -> dict:
    """
    Load a frontmatter block and check it is a string-keyed mapping.

    Raises:
        FrontmatterParseError: If the YAML fails to load or is not a mapping
    """
    try:
        data = handler.load(fm_text)
    except yaml.YAMLError as e:
        raise FrontmatterParseError(f"Unparsable frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterParseError(f"Frontmatter must be a mapping, got {type(data).__name__}")
    for key in data:
        if not isinstance(key, str):
            raise FrontmatterParseError(f"Frontmatter key must be a string: {key!r}")
    return data
