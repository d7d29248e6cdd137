from __future__ import annotations

import yaml

from .model import WorkspaceConfig

# Long command chains stay on one line.
LINE_WIDTH = 1 << 16


class _IndentedDumper(yaml.SafeDumper):
    """Indent block sequences under their parent key."""

    def increase_indent(self, flow: bool = False, indentless: bool = False):
        return super().increase_indent(flow, False)


def dump_config(config: WorkspaceConfig) -> str:
    return yaml.dump(
        config.dump(),
        Dumper=_IndentedDumper,
        default_flow_style=False,
        sort_keys=False,
        indent=2,
        width=LINE_WIDTH,
        allow_unicode=True,
    )
