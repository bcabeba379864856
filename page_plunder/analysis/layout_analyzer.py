"""
Deterministic layout analysis of a rendered page.

Turns the raw body markup and computed style snapshots collected by the
renderer into a ``LayoutPlan``: structural sections, their content elements,
typography, colors and body-level defaults. Parsing runs over a BeautifulSoup
document tree; classification follows a fixed, ordered keyword rule set so the
same page always yields the same plan.
"""

import itertools
import posixpath
import re
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment, NavigableString, PageElement, Tag

from page_plunder.analysis.colors import (
    BLACK,
    WHITE,
    first_matching,
    most_common_color,
    normalize_colors,
    rgb_to_hex,
)
from page_plunder.models import (
    ColorPalette,
    ColorScheme,
    ComputedStyleEntry,
    ElementType,
    GlobalStyles,
    ImageInfo,
    LayoutConfig,
    LayoutElement,
    LayoutPlan,
    LayoutSection,
    PageContent,
    SectionType,
    TypographyPlan,
)

SYSTEM_FONT_STACK = '-apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif'

BLOCK_TAGS = ("header", "section", "main", "footer", "article", "div")
LANDMARK_TAGS = ("header", "section", "main", "footer", "article")
WRAPPER_TAGS = ("div", "main")
HEADING_PATTERN = re.compile(r"^h[1-6]$")

MIN_BLOCK_LENGTH = 50
MIN_PARAGRAPH_LENGTH = 10
CTA_CLASS_KEYWORDS = ("btn", "button", "cta")
OFFER_CLASS_KEYWORDS = ("offer", "card")

# Ordered: the first matching rule decides the section type.
SECTION_RULES: Sequence[Tuple[SectionType, Tuple[str, ...], Optional[str]]] = (
    (SectionType.HEADER, ("header",), "<header"),
    (SectionType.FOOTER, ("footer",), "<footer"),
    (SectionType.HERO, ("hero", "banner"), None),
    (SectionType.OFFER_LIST, OFFER_CLASS_KEYWORDS, None),
    (SectionType.CTA, ("cta", "action"), None),
    (SectionType.FEATURES, ("feature",), None),
    (SectionType.TESTIMONIALS, ("testimonial", "review"), None),
)

# Computed style property -> emitted CSS property
ELEMENT_STYLE_PROPERTIES = (
    ("fontSize", "font-size"),
    ("fontWeight", "font-weight"),
    ("fontFamily", "font-family"),
    ("color", "color"),
    ("backgroundColor", "background-color"),
    ("padding", "padding"),
    ("margin", "margin"),
    ("borderRadius", "border-radius"),
    ("textAlign", "text-align"),
    ("lineHeight", "line-height"),
)
COLOR_PROPERTIES = ("color", "backgroundColor")

# Typography level -> tag whose computed style feeds it
TYPOGRAPHY_SOURCES = (
    ("h1", "h1"),
    ("h2", "h2"),
    ("h3", "h3"),
    ("h4", "h4"),
    ("body", "p"),
    ("small", "small"),
)

SELECTOR_TAG_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]*")
PX_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)px$")

StyleMap = Dict[str, ComputedStyleEntry]


def selector_tag(selector: str) -> str:
    """Tag part of a renderer selector such as ``h1#title.big[3]``."""
    match = SELECTOR_TAG_PATTERN.match(selector.strip())
    return match.group(0).lower() if match else ""


def parse_spacing(value: Optional[str]) -> str:
    """Convert pixel spacing to rem; other units pass through."""
    if not value:
        return "0"
    match = PX_PATTERN.match(value.strip())
    if match:
        return f"{float(match.group(1)) / 16:.2f}rem"
    return value


def extract_layout_config(styles: Dict[str, str]) -> LayoutConfig:
    """
    Derive a section layout from a computed style snapshot.

    Args:
        styles: camelCase computed properties of the block element.

    Returns:
        LayoutConfig; ``display: block`` when nothing better is known.
    """
    config = LayoutConfig(display="block")

    display = styles.get("display", "block")
    if display == "flex":
        config.display = "flex"
        config.direction = "column" if styles.get("flexDirection") == "column" else "row"
        config.justify = styles.get("justifyContent") or "flex-start"
        config.align = styles.get("alignItems") or "stretch"
        config.gap = parse_spacing(styles.get("gap"))
    elif display == "grid":
        config.display = "grid"
        config.grid_template = styles.get("gridTemplateColumns") or "auto"
        config.gap = parse_spacing(styles.get("gap"))

    if styles.get("maxWidth"):
        config.max_width = styles["maxWidth"]
    if styles.get("padding"):
        config.padding = styles["padding"]
    if styles.get("margin"):
        config.margin = styles["margin"]

    return config


def offer_layout() -> LayoutConfig:
    """Fixed vertical stack used for offer/card sections."""
    return LayoutConfig(
        display="flex",
        direction="column",
        gap="1.5rem",
        max_width="800px",
        padding="1rem",
    )


def _url_path(src: str) -> str:
    path = urlparse(src.strip()).path
    if not path:
        return ""
    return posixpath.normpath("/" + path.lstrip("/"))


def build_image_index(images: Iterable[ImageInfo]) -> Dict[str, str]:
    """
    Map image sources to the data URLs captured by the renderer.

    The renderer reports resolved absolute URLs while the body markup keeps
    the authored (often relative) ``src``, so each data URL is indexed under
    both the full URL and its path.
    """
    index: Dict[str, str] = {}
    for image in images:
        if not image.data_url:
            continue
        index.setdefault(image.src, image.data_url)
        path = _url_path(image.src)
        if path:
            index.setdefault(path, image.data_url)
    return index


def embedded_src(src: str, image_index: Dict[str, str]) -> str:
    """Data URL for ``src`` when the renderer captured one, else ``src`` unchanged."""
    if not src or src.startswith("data:") or not image_index:
        return src
    if src in image_index:
        return image_index[src]

    path = _url_path(src)
    if not path:
        return src
    if path in image_index:
        return image_index[path]

    parsed = urlparse(src)
    if not parsed.scheme and not parsed.netloc and not parsed.path.startswith("/"):
        # Relative to a page directory we no longer know; match on the tail
        for key, data_url in image_index.items():
            if key.startswith("/") and key.endswith(path):
                return data_url
    return src


class _IdAllocator:
    """Plan-wide element id source; ids depend on scan position only."""

    def __init__(self):
        self._counter: Iterator[int] = itertools.count()

    def next(self, prefix: str) -> str:
        return f"{prefix}-{next(self._counter)}"


class LayoutAnalyzer:
    """Builds a LayoutPlan from raw page content."""

    def analyze(self, page_content: PageContent) -> LayoutPlan:
        """
        Analyze the page and produce a structured layout plan.

        Missing or malformed input degrades to fixed defaults per field; this
        method does not raise on bad page content.

        Args:
            page_content: Content extracted by the renderer.

        Returns:
            LayoutPlan for the page.
        """
        computed_styles = page_content.computed_styles or {}
        image_index = build_image_index(page_content.images)

        return LayoutPlan(
            sections=self.build_sections(page_content.body_html or "", computed_styles, image_index),
            global_styles=self.build_global_styles(page_content),
            typography=self.build_typography(computed_styles),
            color_scheme=self.build_color_scheme(page_content.colors),
        )

    # ------------------------------------------------------------------
    # Plan-level styling
    # ------------------------------------------------------------------

    def build_global_styles(self, page_content: PageContent) -> GlobalStyles:
        """Body defaults from the dominant colors and the first detected font."""
        colors = page_content.colors
        fonts = [font for font in page_content.fonts if font and font.strip()]

        font_family = SYSTEM_FONT_STACK
        if fonts:
            font_family = f"{fonts[0].strip()}, {SYSTEM_FONT_STACK}"

        return GlobalStyles(
            body_background=most_common_color(colors.background, WHITE),
            body_color=most_common_color(colors.text, "#333333"),
            font_family=font_family,
            line_height="1.6",
            max_width="1200px",
        )

    def build_typography(self, computed_styles: StyleMap) -> TypographyPlan:
        """Default typography, overridden by the first matching snapshot per level."""
        plan = TypographyPlan.defaults()
        levels = plan.levels()

        for level_name, tag in TYPOGRAPHY_SOURCES:
            entry = self._first_entry_for_tag(tag, computed_styles)
            if entry is None:
                continue
            level = levels[level_name]
            styles = entry.styles
            if styles.get("fontSize"):
                level.font_size = styles["fontSize"]
            if styles.get("fontWeight"):
                level.font_weight = styles["fontWeight"]
            if styles.get("lineHeight"):
                level.line_height = styles["lineHeight"]

        return plan

    def build_color_scheme(self, colors: ColorPalette) -> ColorScheme:
        """Map sampled colors onto the eight named roles."""
        accents = normalize_colors(colors.accent)

        def is_light_text_candidate(color: str) -> bool:
            return any(digit in color for digit in "678")

        return ColorScheme(
            primary=accents[0] if len(accents) > 0 else "#007bff",
            secondary=accents[1] if len(accents) > 1 else "#6c757d",
            accent=accents[2] if len(accents) > 2 else "#ffc107",
            background=first_matching(colors.background, lambda c: c not in (WHITE, BLACK), WHITE),
            surface=first_matching(colors.background, lambda c: c != WHITE, "#f8f9fa"),
            text=first_matching(colors.text, lambda c: c != WHITE, "#212529"),
            text_muted=first_matching(colors.text, is_light_text_candidate, "#6c757d"),
            border="#dee2e6",
        )

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def build_sections(
        self,
        body_html: str,
        computed_styles: StyleMap,
        image_index: Optional[Dict[str, str]] = None,
    ) -> List[LayoutSection]:
        """
        Segment the body into sections.

        Args:
            body_html: Inner markup of the page body.
            computed_styles: Renderer style snapshots keyed by selector.
            image_index: Image source -> data URL, from ``build_image_index``.

        Returns:
            Sections with ascending ``order``; a single ``content`` section
            when no structural block survives.
        """
        soup = BeautifulSoup(body_html, "html.parser")
        ids = _IdAllocator()
        sections: List[LayoutSection] = []

        for block in self.find_blocks(soup):
            inner_html = block.decode_contents()
            if len(inner_html) < MIN_BLOCK_LENGTH:
                continue

            classes = self._class_string(block)
            elements = self.extract_elements(block, computed_styles, ids, image_index)
            if not elements:
                continue

            order = len(sections)
            section_type = self.classify_section(inner_html, classes)
            section = LayoutSection(
                id=block.get("id") or f"section-{order}",
                type=section_type,
                order=order,
                layout=extract_layout_config(self._block_styles(block, classes, computed_styles)),
                children=elements,
                styles={"padding": "2rem 1rem"},
            )

            lowered = classes.lower()
            if section_type == SectionType.OFFER_LIST or any(k in lowered for k in OFFER_CLASS_KEYWORDS):
                section.layout = offer_layout()

            sections.append(section)

        if not sections:
            sections.append(LayoutSection(
                id="main-content",
                type=SectionType.CONTENT,
                order=0,
                layout=LayoutConfig(display="block", max_width="1200px", padding="2rem 1rem"),
                children=self.extract_elements(soup, computed_styles, ids, image_index),
                styles={},
            ))

        return sections

    def find_blocks(self, root: Union[BeautifulSoup, Tag]) -> List[Tag]:
        """
        Outermost structural blocks in document order.

        Page wrappers (see ``_is_wrapper``) are descended into; their loose
        content between structural children becomes a block of its own.
        """
        blocks: List[Tag] = []
        for child in root.children:
            if not isinstance(child, Tag):
                continue
            if child.name in BLOCK_TAGS:
                blocks.extend(self._expand_block(child))
            else:
                blocks.extend(self.find_blocks(child))
        return blocks

    def classify_section(self, inner_html: str, classes: str) -> SectionType:
        """First matching keyword rule wins; ``content`` otherwise."""
        lower_classes = classes.lower()
        lower_html = inner_html.lower()

        for section_type, keywords, markup_marker in SECTION_RULES:
            if any(keyword in lower_classes for keyword in keywords):
                return section_type
            if markup_marker and markup_marker in lower_html:
                return section_type

        return SectionType.CONTENT

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def extract_elements(
        self,
        root: Union[BeautifulSoup, Tag],
        computed_styles: StyleMap,
        ids: Optional[_IdAllocator] = None,
        image_index: Optional[Dict[str, str]] = None,
    ) -> List[LayoutElement]:
        """
        Flat list of content elements: headings, paragraphs, images, then CTAs.

        Args:
            root: Block (or whole document) to scan.
            computed_styles: Renderer style snapshots keyed by selector.
            ids: Plan-wide id allocator.
            image_index: Image source -> data URL; matching images are inlined.

        Returns:
            Extracted elements in scan order.
        """
        ids = ids or _IdAllocator()
        image_index = image_index or {}
        elements: List[LayoutElement] = []

        for heading in root.find_all(HEADING_PATTERN):
            content = self._text(heading)
            if not content:
                continue
            tag = heading.name.lower()
            elements.append(LayoutElement(
                id=ids.next(tag),
                type=ElementType.HEADING,
                tag=tag,
                content=content,
                styles=self.lookup_element_styles(tag, self._class_string(heading), computed_styles),
            ))

        for paragraph in root.find_all("p"):
            content = self._text(paragraph)
            if len(content) <= MIN_PARAGRAPH_LENGTH:
                continue
            elements.append(LayoutElement(
                id=ids.next("p"),
                type=ElementType.PARAGRAPH,
                tag="p",
                content=content,
                styles=self.lookup_element_styles("p", self._class_string(paragraph), computed_styles),
            ))

        for image in root.find_all("img", src=True):
            elements.append(LayoutElement(
                id=ids.next("img"),
                type=ElementType.IMAGE,
                tag="img",
                src=embedded_src(image.get("src", ""), image_index),
                alt=image.get("alt", ""),
                styles={},
            ))

        for control in root.find_all(["button", "a"]):
            classes = self._class_string(control)
            content = self._text(control)
            if not content or not any(keyword in classes for keyword in CTA_CLASS_KEYWORDS):
                continue
            elements.append(LayoutElement(
                id=ids.next("btn"),
                type=ElementType.BUTTON,
                tag="a",
                content=content,
                href=control.get("href") or "#",
                styles=self.lookup_element_styles("button", classes, computed_styles),
            ))

        return elements

    def lookup_element_styles(self, tag: str, classes: str, computed_styles: StyleMap) -> Dict[str, str]:
        """
        Styles of the first snapshot whose tag equals ``tag`` or whose
        selector contains the element's class string.
        """
        for selector, entry in computed_styles.items():
            if selector_tag(selector) == tag or (classes and classes in selector):
                return self._element_styles(entry.styles)
        return {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _element_styles(self, styles: Dict[str, str]) -> Dict[str, str]:
        result: Dict[str, str] = {}
        for source, css_property in ELEMENT_STYLE_PROPERTIES:
            value = styles.get(source)
            if not value:
                continue
            result[css_property] = rgb_to_hex(value) if source in COLOR_PROPERTIES else value
        return result

    def _block_styles(self, block: Tag, classes: str, computed_styles: StyleMap) -> Dict[str, str]:
        """Snapshot of the block itself, matched on tag plus id or class chain."""
        block_id = block.get("id")
        class_chain = "." + ".".join(classes.split()) if classes else ""
        if not block_id and not class_chain:
            return {}

        for selector, entry in computed_styles.items():
            if selector_tag(selector) != block.name:
                continue
            if block_id and f"#{block_id}" in selector:
                return entry.styles
            if class_chain and class_chain in selector:
                return entry.styles
        return {}

    def _first_entry_for_tag(self, tag: str, computed_styles: StyleMap) -> Optional[ComputedStyleEntry]:
        for selector, entry in computed_styles.items():
            if selector_tag(selector) == tag:
                return entry
        return None

    def _expand_block(self, block: Tag) -> List[Tag]:
        if not self._is_wrapper(block):
            return [block]

        blocks: List[Tag] = []
        loose: List[PageElement] = []
        for child in block.children:
            if isinstance(child, Tag) and (child.name in BLOCK_TAGS or child.find(list(BLOCK_TAGS)) is not None):
                if loose:
                    blocks.append(self._loose_block(loose))
                    loose = []
                if child.name in BLOCK_TAGS:
                    blocks.extend(self._expand_block(child))
                else:
                    blocks.extend(self.find_blocks(child))
            elif self._is_loose(child):
                loose.append(child)
        if loose:
            blocks.append(self._loose_block(loose))
        return blocks

    def _is_wrapper(self, block: Tag) -> bool:
        """
        A ``div``/``main`` is a page wrapper when two or more of its direct
        children are landmarks, or when a single landmark child is all it holds.
        """
        if block.name not in WRAPPER_TAGS:
            return False
        landmarks = block.find_all(list(LANDMARK_TAGS), recursive=False)
        if len(landmarks) >= 2:
            return True
        return len(landmarks) == 1 and not any(self._is_loose(child) for child in block.children)

    @staticmethod
    def _is_loose(node: PageElement) -> bool:
        """Content that belongs to no landmark child."""
        if isinstance(node, Comment):
            return False
        if isinstance(node, NavigableString):
            return bool(node.strip())
        return isinstance(node, Tag) and node.name not in LANDMARK_TAGS

    @staticmethod
    def _loose_block(nodes: List[PageElement]) -> Tag:
        markup = "".join(str(node) for node in nodes)
        return BeautifulSoup(f"<div>{markup}</div>", "html.parser").div

    @staticmethod
    def _class_string(element: Tag) -> str:
        classes = element.get("class") or []
        if isinstance(classes, str):
            return classes
        return " ".join(classes)

    @staticmethod
    def _text(element: Tag) -> str:
        return " ".join(element.get_text().split())
