"""
Markdown-subset rendering for generated lesson plans.

Two independent paths:
  render_blocks()     line-based, for the on-screen view
  markdown_to_html()  block-based, for Word export and rich clipboard copy
They accept overlapping but different syntax; keep them separate.
"""

import re

BOLD_SPLIT = re.compile(r"(\*\*.*?\*\*)")
SUB_HEADER = re.compile(r"^\d+\.")
ORDERED_ITEM = re.compile(r"^\d+\. ")


# ── Screen view ─────────────────────────────────────────────

def inline_runs(text):
    """Split text into plain and bold runs, keeping the original order."""
    runs = []
    for part in BOLD_SPLIT.split(text):
        if not part:
            continue
        if len(part) >= 4 and part.startswith("**") and part.endswith("**"):
            runs.append({"text": part[2:-2], "bold": True})
        else:
            runs.append({"text": part, "bold": False})
    return runs


def render_line(line):
    if line.strip() == "":
        return {"kind": "break"}

    # Headers must be fully wrapped in ** (e.g. **I. MỤC TIÊU** or **1. Tên mục**)
    if len(line) >= 4 and line.startswith("**") and line.endswith("**"):
        content = line[2:-2]
        if SUB_HEADER.match(content):
            return {"kind": "sub_header", "text": content}
        return {"kind": "section_header", "text": content}

    if line.startswith("* "):
        return {"kind": "list_item", "runs": inline_runs(line[2:])}

    return {"kind": "paragraph", "runs": inline_runs(line)}


def render_blocks(markdown):
    """Convert lesson plan text into display blocks, one per input line."""
    if not markdown:
        return []
    return [render_line(line) for line in markdown.split("\n")]


# ── Export HTML ─────────────────────────────────────────────

def _convert_block(block):
    block = block.strip()
    if not block:
        return ""

    if block.startswith("# "):
        return f"<h1>{block[2:]}</h1>"
    if block.startswith("## "):
        return f"<h2>{block[3:]}</h2>"
    if block.startswith("### "):
        return f"<h3>{block[4:]}</h3>"

    lines = block.split("\n")
    if all(line.startswith(("* ", "- ")) for line in lines):
        items = "".join(f"<li>{line[2:]}</li>" for line in lines)
        return f"<ul>{items}</ul>"
    if all(ORDERED_ITEM.match(line) for line in lines):
        items = "".join(f"<li>{ORDERED_ITEM.sub('', line, count=1)}</li>" for line in lines)
        return f"<ol>{items}</ol>"

    return "<p>" + block.replace("\n", "<br />") + "</p>"


def markdown_to_html(markdown):
    """
    Convert markdown to a basic HTML string, block by block (blocks are
    separated by blank lines). Inline bold and italic are applied afterwards
    across the assembled HTML. No escaping is done.
    """
    if not markdown:
        return ""

    html = "".join(_convert_block(b) for b in re.split(r"\n\s*\n", markdown))

    html = re.sub(r"\*\*(.*?)\*\*", r"<b>\1</b>", html)
    html = re.sub(r"\*(.*?)\*", r"<i>\1</i>", html)
    return html
