"""
Change description generation.

The description of every integration change lists the changes being
integrated, as reported by ``p4 interchanges -l``, between a header and a
footer that record the commands used::

    Latest changes: <title>

    $ p4 interchanges -l <source> <target>

    <interchanges entries>

    $ p4 integrate <source> <target>

When a branch is integrated further down a chain, the interchanges output
for the next hop contains the changes we submitted earlier, each carrying
our header and footer. Those entries are flattened: the header and footer
are dropped and the nested entries are unindented one level, so repeated
integrations do not accumulate decoration and indentation.

All functions here are pure; the same interchanges output always yields the
same description.
"""

import re

GENERATED_MARKER = "Latest changes:"

SCAN_LIMIT_BODY = "Failed to generate detailed description.\n'maxscanrows' limit reached."

_ENTRY_SPLIT_RE = re.compile(r"(?:^|\n)(?=Change \d+ )")
_GENERATED_RE = re.compile(r"\n\tLatest changes:")
_HEADER_RE = re.compile(
    r"^Change \d+ on [^\n]*\n"
    r"(?:[ \t]*\n)*"
    r"Latest changes:[^\n]*\n"
    r"(?:[ \t]*\n)*"
    r"\$ p4 interchanges [^\n]*\n?"
    r"(?:[ \t]*\n)*"
)
_FOOTER_RE = re.compile(r"(?:\n[ \t]*)*\n\$ p4 integrate [^\n]*(?:\n[ \t]*)*$")
# Server-side form trigger leftovers: the default description placeholder,
# an optional blank line and an empty "RQ:" tag line.
_TEMPLATE_NOISE_RE = re.compile(
    r"^[ \t]*<?enter description here>?[ \t]*\n(?:[ \t]*\n)?[ \t]*RQ:[ \t]*(?:\n|$)",
    re.MULTILINE,
)


def split_entries(output: str) -> list[str]:
    """Split ``p4 interchanges -l`` output into one string per change."""
    return [entry for entry in _ENTRY_SPLIT_RE.split(output) if entry.strip()]


def flatten_entry(entry: str) -> str:
    """Normalize one interchanges entry.

    Entries generated by this tool are unindented and stripped of their
    header and footer. Others are returned unchanged apart from trailing
    whitespace.
    """
    if not _GENERATED_RE.search(entry):
        return entry.rstrip()
    unindented = entry.replace("\n\t", "\n")
    unindented = _HEADER_RE.sub("", unindented, count=1)
    unindented = _FOOTER_RE.sub("", unindented.rstrip() + "\n")
    return unindented.rstrip()


def format_interchanges(output: str) -> str:
    """Turn raw interchanges output into the description body."""
    cleaned = _TEMPLATE_NOISE_RE.sub("", output)
    entries = [flatten_entry(entry) for entry in split_entries(cleaned)]
    return "\n\n".join(entry for entry in entries if entry)


def build_description(title: str, source: str, target: str, body: str) -> str:
    """Assemble the full change description around a formatted body."""
    lines = [
        f"{GENERATED_MARKER} {title}",
        "",
        f"$ p4 interchanges -l {source} {target}",
        "",
    ]
    if body:
        lines.extend(body.splitlines())
        lines.append("")
    lines.append(f"$ p4 integrate {source} {target}")
    return "\n".join(lines)
