"""Core package for the local-first abbey writing tool.

The editor surface talks to :class:`abbey.workspace.Workspace`, which keeps
the composition registry, the autosave scheduler, flow sessions and the
on-disk store in step.
"""

__all__: list[str] = []
