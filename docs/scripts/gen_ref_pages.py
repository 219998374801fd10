"""Auto-generate API reference pages from perpetual.__all__.

Each public symbol is mapped to a reference page based on its source module.
When a new symbol is exported from __init__.py, it appears automatically in
the correct reference doc on the next mkdocs build.
"""

from __future__ import annotations

import types
from collections import defaultdict

import mkdocs_gen_files

import perpetual

MODULE_TO_PAGE: dict[str, tuple[str, str]] = {
    "perpetual.system": ("reference/system.md", "ActorSystem"),
    "perpetual.server": ("reference/server.md", "PerpetualServer"),
    "perpetual.client": ("reference/client.md", "PerpetualRef"),
    "perpetual.invocation": ("reference/invocation.md", "Invocation"),
    "perpetual.ref": ("reference/addressing.md", "Addressing"),
    "perpetual.address": ("reference/addressing.md", "Addressing"),
    "perpetual.registry": ("reference/addressing.md", "Addressing"),
    "perpetual.mailbox": ("reference/mailbox.md", "Mailbox"),
    "perpetual.supervision": ("reference/supervision.md", "Supervision"),
    "perpetual.events": ("reference/events.md", "Events"),
    "perpetual.errors": ("reference/errors.md", "Errors"),
    "perpetual.config": ("reference/config.md", "Configuration"),
}

pages: dict[str, list[str]] = defaultdict(list)
titles: dict[str, str] = {}

for name in perpetual.__all__:
    obj = getattr(perpetual, name)

    if isinstance(obj, types.ModuleType):
        continue

    # type aliases and registry instances carry no useful __module__
    module = getattr(obj, "__module__", None)
    if module is None or not module.startswith("perpetual"):
        continue

    page_info = None
    parts = module.split(".")
    while parts and page_info is None:
        page_info = MODULE_TO_PAGE.get(".".join(parts))
        parts.pop()
    if page_info is None:
        msg = f"perpetual.__all__ exports '{name}' from unmapped module '{module}'"
        raise ValueError(msg)

    page_path, title = page_info
    pages[page_path].append(name)
    titles[page_path] = title

for page_path, symbols in sorted(pages.items()):
    title = titles[page_path]
    with mkdocs_gen_files.open(page_path, "w") as f:
        f.write(f"# {title}\n")
        for sym in symbols:
            f.write(f"\n::: perpetual.{sym}\n")
