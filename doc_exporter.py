"""
doc_exporter.py
Word-compatible export: the lesson plan HTML wrapped in a small styled
document, served as application/msword with a UTF-8 byte-order mark.
"""

import re
from io import BytesIO

from markdown_renderer import markdown_to_html

DOC_MIMETYPE = "application/msword"
DEFAULT_FILENAME = "Giao-an-5512.doc"
WORKSHEET_FILENAME = "Phieu-hoc-tap.doc"

DOC_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="UTF-8">
    <style>
      body {{ font-family: 'Times New Roman', Times, serif; font-size: 12pt; }}
      h1 {{ font-size: 16pt; font-weight: bold; }}
      h2 {{ font-size: 14pt; font-weight: bold; }}
      h3 {{ font-size: 12pt; font-weight: bold; }}
      ul, ol {{ margin: 0; padding-left: 40px; }}
      p {{ margin: 0; }}
    </style>
  </head>
  <body>
    {body}
  </body>
</html>
"""


def build_doc_html(content):
    return DOC_TEMPLATE.format(body=markdown_to_html(content))


def build_doc(content):
    """
    Build the .doc artifact for a markdown string.
    Returns a BytesIO positioned at the start; the caller owns closing it.
    """
    buf = BytesIO()
    buf.write(("\ufeff" + build_doc_html(content)).encode("utf-8"))
    buf.seek(0)
    return buf


def safe_filename(filename, default=DEFAULT_FILENAME):
    """Keep the caller's name (Vietnamese included) but drop paths and control chars."""
    name = (filename or "").replace("\\", "/").split("/")[-1]
    name = re.sub(r'[\x00-\x1f\x7f"<>:|?*]', "", name).strip().strip(".")
    if not name:
        return default
    if name.lower().endswith(".doc"):
        name = name[:-4]
    return name[:116] + ".doc"
