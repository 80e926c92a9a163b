"""Rendering helpers for the derived Markdown exports."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from jinja2 import BaseLoader, Environment

from .models import Composition, Flow, FlowDocument, Project

_COMPOSITION_TEMPLATE = """# {{ composition.title }}

{{ composition.content }}
{% if composition.notes %}

---

## Notes

{% for note in composition.notes %}
- {{ note.content }}
{% endfor %}
{% endif %}
"""

_PROJECT_TEMPLATE = """# {{ project.title }}

{% if project.description %}
*{{ project.description }}*

{% endif %}
---

{% for composition in compositions %}
## {{ composition.title }}

{{ composition.content }}

---

{% endfor %}
"""

_JOURNAL_HEADER = "# Flow Journal\n\nA collection of free-writing sessions.\n"

_JOURNAL_ENTRY_TEMPLATE = """

---

## {{ flow.created_at | stamp }} ({{ flow.duration_minutes }} min, {{ flow.word_count }} words)

{{ flow.content }}
"""

_FLOW_DOCUMENT_TEMPLATE = """# Flow Journal

*Total sessions: {{ document.session_count }} | Total words: {{ document.total_word_count }} | Total time: {{ document.total_time_seconds | duration }}*

---

{% for flow in document.flows %}
## {{ flow.created_at | longdate }}

*{{ flow.duration_minutes }} minutes | {{ flow.word_count }} words*

{{ flow.content }}

---

{% endfor %}
"""


def format_duration(seconds: int) -> str:
    """Render a second count as ``"1h 5m"`` or ``"12m"``."""

    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _stamp(moment: datetime) -> str:
    return moment.astimezone().strftime("%Y-%m-%d %H:%M")


def _longdate(moment: datetime) -> str:
    return moment.astimezone().strftime("%B %d, %Y at %H:%M")


class MarkdownRenderer:
    """Render compositions, projects and flows into Markdown strings."""

    def __init__(self) -> None:
        env = Environment(loader=BaseLoader(), autoescape=False, trim_blocks=True, lstrip_blocks=True)
        env.filters["stamp"] = _stamp
        env.filters["longdate"] = _longdate
        env.filters["duration"] = format_duration
        self._composition = env.from_string(_COMPOSITION_TEMPLATE)
        self._project = env.from_string(_PROJECT_TEMPLATE)
        self._journal_entry = env.from_string(_JOURNAL_ENTRY_TEMPLATE)
        self._flow_document = env.from_string(_FLOW_DOCUMENT_TEMPLATE)

    def render_composition(self, composition: Composition) -> str:
        return self._composition.render(composition=composition).rstrip() + "\n"

    def render_project(self, project: Project, compositions: Iterable[Composition]) -> str:
        """Render ``project`` with ``compositions`` in project order; unknown ids are skipped."""
        by_id = {composition.id: composition for composition in compositions}
        ordered = [by_id[cid] for cid in project.composition_ids if cid in by_id]
        return self._project.render(project=project, compositions=ordered).rstrip() + "\n"

    def journal_header(self) -> str:
        return _JOURNAL_HEADER

    def render_journal_entry(self, flow: Flow) -> str:
        # jinja drops the template's final newline
        return self._journal_entry.render(flow=flow) + "\n"

    def render_flow_document(self, document: FlowDocument) -> str:
        return self._flow_document.render(document=document).rstrip() + "\n"


__all__ = ["MarkdownRenderer", "format_duration"]
