"""Perforce spec forms (``p4 client -o``, ``p4 change -o``).

Perforce exchanges clients and changelists as text forms: ``Field:<tab>value``
for single-line fields, and ``Field:`` followed by tab-indented lines for
multi-line ones (``View``, ``Description``, ...). Comment lines start with
``#`` and fields are separated by blank lines.

This module parses such forms into an ordered ``Form``, writes them back,
and builds the three forms the pipeline submits:

- the workspace spec for a task (template view, current client options,
  mappings enabled or disabled by the enable-in-views patterns)
- the temporary spec used by the already-integrated check (a single
  mapping of the check's target into the client root)
- a new changelist carrying the generated description

Example:
    >>> form = Form.parse(client_spec_text)
    >>> form.get("Client")
    'merge-ws'
    >>> form.lines("View")
    ['//depot/main/... //merge-ws/main/...']
"""

import re
from collections.abc import Iterable

MULTILINE_FIELDS = frozenset({"View", "Description", "AltRoots", "ChangeView", "Files", "Jobs"})

_FIELD_RE = re.compile(r"^(?P<name>[A-Za-z][A-Za-z0-9]*):[ \t]*(?P<value>.*)$")


class Form:
    """An ordered Perforce spec form.

    Field values are stored as lists of lines; single-line fields hold one
    element. Field order is preserved across parse and format.
    """

    def __init__(self, fields: dict[str, list[str]] | None = None) -> None:
        self._fields: dict[str, list[str]] = {k: list(v) for k, v in (fields or {}).items()}

    @classmethod
    def parse(cls, text: str) -> "Form":
        """Parse the output of a ``p4 <spec> -o`` command.

        Comment lines and blank separator lines are dropped. Continuation
        lines lose exactly one leading tab.
        """
        fields: dict[str, list[str]] = {}
        current: str | None = None
        for raw in text.splitlines():
            if raw.startswith("#"):
                continue
            if raw.startswith("\t") and current is not None:
                fields[current].append(raw[1:])
                continue
            if not raw.strip():
                continue
            match = _FIELD_RE.match(raw)
            if match is None:
                continue
            current = match.group("name")
            value = match.group("value").strip()
            fields[current] = [value] if value else []
        return cls(fields)

    def format(self) -> str:
        """Render the form in the syntax ``p4 <spec> -i`` accepts."""
        chunks = []
        for name, lines in self._fields.items():
            if name in MULTILINE_FIELDS or len(lines) > 1:
                body = "".join(f"\t{line}\n" for line in lines)
                chunks.append(f"{name}:\n{body}")
            else:
                value = lines[0] if lines else ""
                chunks.append(f"{name}:\t{value}\n")
        return "\n".join(chunks)

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return a single-line field value."""
        lines = self._fields.get(name)
        if not lines:
            return default
        return lines[0]

    def lines(self, name: str) -> list[str]:
        return list(self._fields.get(name, []))

    def copy(self) -> "Form":
        return Form(self._fields)

    def set(self, name: str, value: str | Iterable[str]) -> None:
        """Set a field, keeping its position if it already exists."""
        self._fields[name] = [value] if isinstance(value, str) else list(value)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Form):
            return NotImplemented
        return self._fields == other._fields

    def __repr__(self) -> str:
        return f"Form({self._fields!r})"


def toggle_view_mappings(view: Iterable[str], patterns: Iterable[re.Pattern[str]]) -> list[str]:
    """Enable the view mappings matching any pattern and disable the rest.

    A mapping is disabled by a leading ``-`` (an exclusion mapping). The
    patterns are matched against the mapping without that prefix.
    """
    patterns = list(patterns)
    result = []
    for line in view:
        mapping = line[1:] if line.startswith("-") else line
        if any(p.search(mapping) for p in patterns):
            result.append(mapping)
        else:
            result.append(f"-{mapping}")
    return result


def build_workspace_spec(current: Form, template: Form, patterns: Iterable[re.Pattern[str]]) -> Form:
    """Build the client spec used for one integration task.

    Everything comes from the template-derived spec (``p4 client -o -t``)
    except ``Options`` and ``SubmitOptions``, which keep the workspace's
    current values.
    """
    spec = template.copy()
    for name in ("Options", "SubmitOptions"):
        if name in current:
            spec.set(name, current.lines(name))
    spec.set("View", toggle_view_mappings(template.lines("View"), patterns))
    return spec


def build_check_spec(current: Form, target: str) -> Form:
    """Map only ``target`` into the client root, for an integration preview."""
    client = current.get("Client")
    if not client:
        raise ValueError("Client spec has no Client field")
    spec = current.copy()
    spec.set("View", [f"{target} //{client}/..."])
    return spec


def build_change_form(template: Form, description: str) -> Form:
    """Build a new changelist form from ``p4 change -o`` output.

    Only ``Client`` and ``User`` are carried over; the default file list is
    dropped so the change starts empty.
    """
    form = Form()
    form.set("Change", "new")
    for name in ("Client", "User"):
        value = template.get(name)
        if value:
            form.set(name, value)
    form.set("Description", description.splitlines() or [""])
    return form
