"""
Markup generation from a layout plan.

Renders a ``LayoutPlan`` into one self-contained HTML document: a fixed
preamble, a single ``<style>`` block, the sections in ascending ``order`` and a
small fixed ``<script>``. Output is a pure function of its inputs, so the same
plan always yields byte-identical markup.
"""

import html
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from page_plunder.codegen.stylesheet import PAGE_SCRIPT, build_stylesheet
from page_plunder.models import (
    ElementType,
    LayoutConfig,
    LayoutElement,
    LayoutPlan,
    LayoutSection,
    SectionType,
)

DEFAULT_TITLE = "Plundered Page"

SECTION_TAGS = {
    SectionType.HEADER: "header",
    SectionType.FOOTER: "footer",
    SectionType.CONTENT: "main",
}

# Plan field -> CSS property for the section container
LAYOUT_PROPERTIES: Tuple[Tuple[str, str], ...] = (
    ("display", "display"),
    ("direction", "flex-direction"),
    ("justify", "justify-content"),
    ("align", "align-items"),
    ("gap", "gap"),
    ("grid_template", "grid-template-columns"),
    ("max_width", "max-width"),
    ("padding", "padding"),
    ("margin", "margin"),
)

CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
DEFAULT_HEADING_TAG = "h2"


def escape(value: Optional[str]) -> str:
    """HTML-escape text or attribute content (``& < > " '``)."""
    return html.escape(value or "", quote=True)


def css_property(name: str) -> str:
    """Convert ``camelCase`` property names to ``kebab-case``."""
    return CAMEL_BOUNDARY.sub(r"\1-\2", name).lower()


def style_attribute(styles: Optional[Dict[str, str]]) -> str:
    """
    Flatten a style map into a ``style`` attribute.

    Pairs keep the map's iteration order; empty values are dropped.

    Args:
        styles: CSS property -> value.

    Returns:
        `` style="..."`` or an empty string.
    """
    declarations = [
        f"{css_property(prop)}: {value}"
        for prop, value in (styles or {}).items()
        if value
    ]
    if not declarations:
        return ""
    return f' style="{escape("; ".join(declarations))}"'


def layout_styles(layout: LayoutConfig) -> Dict[str, str]:
    """Section layout as CSS declarations for its inner container."""
    styles: Dict[str, str] = {}
    for field_name, prop in LAYOUT_PROPERTIES:
        value = getattr(layout, field_name)
        if value:
            styles[prop] = value
    return styles


class HTMLGenerator:
    """Converts a layout plan into a single HTML file."""

    def generate_element(self, element: LayoutElement, depth: int = 0) -> str:
        """
        Generate markup for one element; the tag follows from ``element.type``.

        Args:
            element: Element to render.
            depth: Nesting depth, used for indentation only.

        Returns:
            Markup string.
        """
        indent = "  " * depth
        style_attr = style_attribute(element.styles)
        content = escape(element.content)

        if element.type == ElementType.HEADING:
            tag = (element.tag or "").strip().lower()
            if tag not in HEADING_TAGS:
                tag = DEFAULT_HEADING_TAG
            return f"{indent}<{tag}{style_attr}>{content}</{tag}>"

        if element.type == ElementType.PARAGRAPH:
            return f"{indent}<p{style_attr}>{content}</p>"

        if element.type == ElementType.IMAGE:
            alt_attr = f' alt="{escape(element.alt)}"' if element.alt else ""
            return f'{indent}<img src="{escape(element.src)}"{alt_attr}{style_attr} loading="lazy">'

        if element.type in (ElementType.BUTTON, ElementType.LINK):
            class_attr = ' class="btn btn-primary"' if element.type == ElementType.BUTTON else ""
            href = escape(element.href or "#")
            return f'{indent}<a href="{href}"{class_attr}{style_attr}>{content}</a>'

        if element.type == ElementType.LIST:
            items = self._generate_children(element, depth)
            return f"{indent}<ul{style_attr}>\n{items}\n{indent}</ul>"

        if element.type == ElementType.LIST_ITEM:
            return f"{indent}<li{style_attr}>{content}</li>"

        if element.type == ElementType.CARD:
            data_attr = self._data_attributes(element.data_attributes)
            inner = self._generate_children(element, depth)
            return f'{indent}<div class="offer"{data_attr}{style_attr}>\n{inner}\n{indent}</div>'

        if element.type == ElementType.CONTAINER:
            inner = self._generate_children(element, depth)
            return f"{indent}<div{style_attr}>\n{inner}\n{indent}</div>"

        if element.type == ElementType.DIVIDER:
            return f"{indent}<hr{style_attr}>"

        return f"{indent}<span{style_attr}>{content}</span>"

    def generate_section(self, section: LayoutSection) -> str:
        """Generate the markup of one section with its centering container."""
        tag = SECTION_TAGS.get(section.type, "section")
        section_type = section.type.value

        data_attr = ""
        if section.type == SectionType.OFFER_CARD:
            data_attr = f' data-offer-id="{escape(section.id)}"'

        children = "\n".join(self.generate_element(child, 2) for child in section.children)
        container_style = style_attribute(layout_styles(section.layout))

        return (
            f'  <{tag} id="{escape(section.id)}" class="{escape(section_type)}"'
            f"{data_attr}{style_attribute(section.styles)}>\n"
            f'    <div class="container"{container_style}>\n'
            f"{children}\n"
            f"    </div>\n"
            f"  </{tag}>"
        )

    def generate(
        self,
        plan: LayoutPlan,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """
        Generate the complete HTML document.

        Args:
            plan: Layout plan to render.
            title: Original page title.
            description: Original meta description.

        Returns:
            HTML document as a string.
        """
        css = build_stylesheet(plan)
        sections_html = "\n\n".join(
            self.generate_section(section) for section in plan.ordered_sections()
        )

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="description" content="{escape(description)}">
  <title>{escape(title or DEFAULT_TITLE)}</title>
  <style>
{css}
  </style>
</head>
<body>

{sections_html}

  <script>
{PAGE_SCRIPT}
  </script>
</body>
</html>
"""

    def generate_and_save(
        self,
        plan: LayoutPlan,
        output_path: Union[str, Path],
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Tuple[str, Path]:
        """
        Generate the document and write it to disk.

        Returns:
            Tuple of (html, path).
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        document = self.generate(plan, title, description)
        output_path.write_text(document, encoding="utf-8")
        return document, output_path

    def _generate_children(self, element: LayoutElement, depth: int) -> str:
        children: List[LayoutElement] = element.children or []
        return "\n".join(self.generate_element(child, depth + 1) for child in children)

    @staticmethod
    def _data_attributes(data_attributes: Optional[Dict[str, str]]) -> str:
        if not data_attributes:
            return ""
        return "".join(
            f' data-{escape(css_property(key))}="{escape(value)}"'
            for key, value in data_attributes.items()
        )
