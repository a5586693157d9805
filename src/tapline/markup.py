"""Default HTML markup renderer.

Turns MarkupArgs into a document. Styles, scripts, metas and links can be
plain strings (a URL, or a name for metas) or mappings of attributes.
A ``content`` key on a style or script is rendered inline.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from jinja2 import BaseLoader, Environment, select_autoescape
from markupsafe import Markup, escape

if TYPE_CHECKING:
    from .assets import MarkupArgs

_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8" />
{%- for meta in metas %}
<meta{{ meta | attrs(False) }} />
{%- endfor %}
{%- if title %}
<title>{{ title }}</title>
{%- endif %}
{%- for link in links %}
<link{{ link | attrs }} />
{%- endfor %}
{%- for style in styles %}
{%- if style.content %}
<style{{ style | attrs }}>{{ style.content | safe }}</style>
{%- else %}
<link rel="stylesheet"{{ style | attrs }} />
{%- endif %}
{%- endfor %}
{%- for script in head_scripts %}
<script{{ script | attrs }}>{{ (script.content or "") | safe }}</script>
{%- endfor %}
</head>
<body>
<div id="root"></div>
{%- for script in scripts %}
<script{{ script | attrs }}>{{ (script.content or "") | safe }}</script>
{%- endfor %}
</body>
</html>
"""


def _attrs(item: Mapping[str, Any], inline: bool = True) -> Markup:
    parts = []
    for key, value in item.items():
        if (inline and key == "content") or value is None or value is False:
            continue
        if value is True:
            parts.append(f" {escape(key)}")
        else:
            parts.append(f' {escape(key)}="{escape(value)}"')
    return Markup("".join(parts))


_env = Environment(loader=BaseLoader(), autoescape=select_autoescape(default=True))
_env.filters["attrs"] = _attrs
_template = _env.from_string(_TEMPLATE)


def _normalize(item: Any, key: str) -> dict[str, Any]:
    if isinstance(item, str):
        return {key: item}
    if isinstance(item, Mapping):
        return dict(item)
    raise TypeError(f"Expected a string or a mapping, got {type(item).__name__}")


def _scripts(items: Any, esm: bool) -> list[dict[str, Any]]:
    scripts = []
    for item in items:
        attrs = _normalize(item, "src")
        if esm and "type" not in attrs:
            attrs = {"type": "module", **attrs}
        scripts.append(attrs)
    return scripts


def get_markup(args: "MarkupArgs") -> str:
    """Render a full HTML document for ``args``."""
    return _template.render(
        title=args.title,
        metas=[_normalize(m, "name") for m in args.metas],
        links=[_normalize(link, "href") for link in args.links],
        styles=[_normalize(s, "href") for s in args.styles],
        head_scripts=_scripts(args.head_scripts, args.esm_script),
        scripts=_scripts(args.scripts, args.esm_script),
    )
