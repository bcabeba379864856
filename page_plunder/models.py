"""
Data models and schemas for the page plunder pipeline.

The Layout Model (``LayoutPlan`` and its sections/elements) is the single
value exchanged between analysis, code generation and refinement. The
remaining models describe what the renderer hands over, what the scorer
reports and what the refinement loop emits.
"""

import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class DeviceType(str, Enum):
    """Device viewport types."""
    DESKTOP = "desktop"
    MOBILE = "mobile"


class ViewportConfig(BaseModel):
    """Viewport configuration for a specific device type."""
    device_type: DeviceType
    width: int
    height: int

    @classmethod
    def desktop(cls, height: int = 900) -> "ViewportConfig":
        return cls(device_type=DeviceType.DESKTOP, width=1440, height=height)

    @classmethod
    def mobile(cls, height: int = 844) -> "ViewportConfig":
        return cls(device_type=DeviceType.MOBILE, width=390, height=height)


# ============================================
# Renderer-side models
# ============================================

class BoundingBox(BaseModel):
    """Bounding box coordinates."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class ComputedStyleEntry(BaseModel):
    """Computed style snapshot of one element, keyed by camelCase CSS property."""
    styles: Dict[str, str] = Field(default_factory=dict)
    bounding_box: BoundingBox = Field(default_factory=BoundingBox, alias="boundingBox")

    class Config:
        populate_by_name = True


class ImageInfo(BaseModel):
    """An image found on the rendered page."""
    src: str
    alt: str = ""
    width: int = 0
    height: int = 0
    data_url: Optional[str] = Field(default=None, alias="dataUrl")

    class Config:
        populate_by_name = True


class ColorPalette(BaseModel):
    """Raw color samples collected from the rendered page."""
    background: List[str] = Field(default_factory=list)
    text: List[str] = Field(default_factory=list)
    accent: List[str] = Field(default_factory=list)


class PageContent(BaseModel):
    """Raw content extracted from a rendered page."""
    title: str = ""
    meta_description: str = Field(default="", alias="metaDescription")
    body_html: str = Field(default="", alias="bodyHtml")
    computed_styles: Dict[str, ComputedStyleEntry] = Field(default_factory=dict, alias="computedStyles")
    images: List[ImageInfo] = Field(default_factory=list)
    fonts: List[str] = Field(default_factory=list)
    colors: ColorPalette = Field(default_factory=ColorPalette)

    class Config:
        populate_by_name = True


class ScreenshotPair(BaseModel):
    """Desktop and mobile screenshots of the same page."""
    desktop: Path
    mobile: Path

    def get(self, device_type: DeviceType) -> Path:
        """Get screenshot for specific device type."""
        if device_type == DeviceType.DESKTOP:
            return self.desktop
        elif device_type == DeviceType.MOBILE:
            return self.mobile
        else:
            raise ValueError(f"Unknown device type: {device_type}")

    class Config:
        arbitrary_types_allowed = True


class RenderResult(BaseModel):
    """Outcome of rendering a source URL."""
    success: bool
    error: Optional[str] = None
    screenshots: Optional[ScreenshotPair] = None
    page_title: str = ""
    page_content: PageContent = Field(default_factory=PageContent)

    @classmethod
    def failure(cls, error: str) -> "RenderResult":
        return cls(success=False, error=error)


# ============================================
# Layout Model
# ============================================

class SectionType(str, Enum):
    """Top-level structural region types."""
    HEADER = "header"
    HERO = "hero"
    CONTENT = "content"
    OFFER_LIST = "offer-list"
    OFFER_CARD = "offer-card"
    FEATURES = "features"
    TESTIMONIALS = "testimonials"
    CTA = "cta"
    FOOTER = "footer"
    GENERIC = "generic"


class ElementType(str, Enum):
    """Content node types inside a section."""
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    IMAGE = "image"
    BUTTON = "button"
    LINK = "link"
    LIST = "list"
    LIST_ITEM = "list-item"
    CARD = "card"
    DIVIDER = "divider"
    CONTAINER = "container"
    TEXT = "text"


class LayoutConfig(BaseModel):
    """Display mode plus the knobs relevant to it."""
    display: str = "block"  # flex | grid | block
    direction: Optional[str] = None  # row | column
    justify: Optional[str] = None
    align: Optional[str] = None
    gap: Optional[str] = None
    grid_template: Optional[str] = Field(default=None, alias="gridTemplate")
    max_width: Optional[str] = Field(default=None, alias="maxWidth")
    padding: Optional[str] = None
    margin: Optional[str] = None

    class Config:
        populate_by_name = True


class LayoutElement(BaseModel):
    """A leaf or recursive content node inside a section."""
    id: str
    type: ElementType = ElementType.TEXT
    tag: str = "span"
    content: Optional[str] = None
    src: Optional[str] = None
    alt: Optional[str] = None
    href: Optional[str] = None
    children: Optional[List["LayoutElement"]] = None
    styles: Dict[str, str] = Field(default_factory=dict)
    data_attributes: Optional[Dict[str, str]] = Field(default=None, alias="dataAttributes")

    class Config:
        populate_by_name = True


class LayoutSection(BaseModel):
    """A top-level structural region of the page."""
    id: str
    type: SectionType = SectionType.CONTENT
    order: int
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    children: List[LayoutElement] = Field(default_factory=list)
    styles: Dict[str, str] = Field(default_factory=dict)


class GlobalStyles(BaseModel):
    """Body-level defaults."""
    body_background: str = Field(default="#ffffff", alias="bodyBackground")
    body_color: str = Field(default="#333333", alias="bodyColor")
    font_family: str = Field(
        default='-apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif',
        alias="fontFamily",
    )
    line_height: str = Field(default="1.6", alias="lineHeight")
    max_width: str = Field(default="1200px", alias="maxWidth")

    class Config:
        populate_by_name = True


class TypographyLevel(BaseModel):
    """Size, weight and rhythm of one typographic level."""
    font_size: str = Field(alias="fontSize")
    font_weight: str = Field(alias="fontWeight")
    line_height: str = Field(alias="lineHeight")
    margin_bottom: str = Field(alias="marginBottom")

    class Config:
        populate_by_name = True


class TypographyPlan(BaseModel):
    """Named typographic levels."""
    base_size: str = Field(default="16px", alias="baseSize")
    scale: float = 1.25
    h1: TypographyLevel
    h2: TypographyLevel
    h3: TypographyLevel
    h4: TypographyLevel
    body: TypographyLevel
    small: TypographyLevel

    class Config:
        populate_by_name = True

    @classmethod
    def defaults(cls) -> "TypographyPlan":
        """Fixed typography used when the page gives no better hint."""
        return cls(
            h1=TypographyLevel(font_size="2.5rem", font_weight="700", line_height="1.2", margin_bottom="1rem"),
            h2=TypographyLevel(font_size="2rem", font_weight="600", line_height="1.3", margin_bottom="0.75rem"),
            h3=TypographyLevel(font_size="1.5rem", font_weight="600", line_height="1.4", margin_bottom="0.5rem"),
            h4=TypographyLevel(font_size="1.25rem", font_weight="500", line_height="1.4", margin_bottom="0.5rem"),
            body=TypographyLevel(font_size="1rem", font_weight="400", line_height="1.6", margin_bottom="1rem"),
            small=TypographyLevel(font_size="0.875rem", font_weight="400", line_height="1.5", margin_bottom="0.5rem"),
        )

    def levels(self) -> Dict[str, TypographyLevel]:
        """Levels keyed by name, in a fixed order."""
        return {
            "h1": self.h1,
            "h2": self.h2,
            "h3": self.h3,
            "h4": self.h4,
            "body": self.body,
            "small": self.small,
        }


class ColorScheme(BaseModel):
    """Eight named color roles, all normalized hex strings."""
    primary: str = "#007bff"
    secondary: str = "#6c757d"
    accent: str = "#ffc107"
    background: str = "#ffffff"
    surface: str = "#f8f9fa"
    text: str = "#212529"
    text_muted: str = Field(default="#6c757d", alias="textMuted")
    border: str = "#dee2e6"

    class Config:
        populate_by_name = True


class PlanViewports(BaseModel):
    """The two fixed viewport rectangles of a plan."""
    desktop: ViewportConfig = Field(default_factory=ViewportConfig.desktop)
    mobile: ViewportConfig = Field(default_factory=ViewportConfig.mobile)


class LayoutPlan(BaseModel):
    """Structured description of the page to generate."""
    viewport: PlanViewports = Field(default_factory=PlanViewports)
    sections: List[LayoutSection] = Field(default_factory=list)
    global_styles: GlobalStyles = Field(default_factory=GlobalStyles, alias="globalStyles")
    typography: TypographyPlan = Field(default_factory=TypographyPlan.defaults)
    color_scheme: ColorScheme = Field(default_factory=ColorScheme, alias="colorScheme")

    class Config:
        populate_by_name = True

    def ordered_sections(self) -> List[LayoutSection]:
        """Sections in render order."""
        return sorted(self.sections, key=lambda section: section.order)

    def to_json(self) -> str:
        """Serialize for inspection files."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


# ============================================
# Scoring and refinement models
# ============================================

class DiffResult(BaseModel):
    """Mismatch of a generated document against the reference screenshots."""
    success: bool = True
    desktop_mismatch: float  # Percentage 0-100
    mobile_mismatch: float  # Percentage 0-100
    desktop_diff_image: Optional[Path] = None
    mobile_diff_image: Optional[Path] = None
    passes_threshold: bool = False
    error: Optional[str] = None

    class Config:
        arbitrary_types_allowed = True

    @classmethod
    def worst_case(cls, error: Optional[str] = None) -> "DiffResult":
        """Score reported when rendering or comparison failed."""
        return cls(
            success=False,
            desktop_mismatch=100.0,
            mobile_mismatch=100.0,
            passes_threshold=False,
            error=error,
        )

    @property
    def total_mismatch(self) -> float:
        return self.desktop_mismatch + self.mobile_mismatch


class IterationResult(BaseModel):
    """Scores recorded for one refinement iteration."""
    iteration: int
    desktop_mismatch: float
    mobile_mismatch: float
    passes_threshold: bool = False
    adjustments: List[str] = Field(default_factory=list)


class BestCandidate(BaseModel):
    """Lowest-summed-mismatch document seen so far."""
    iteration: int
    html: str
    desktop_mismatch: float
    mobile_mismatch: float

    class Config:
        frozen = True

    @property
    def total_mismatch(self) -> float:
        return self.desktop_mismatch + self.mobile_mismatch


class RefinementStatus(str, Enum):
    """Terminal states of the refinement loop."""
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


class RefinementResult(BaseModel):
    """Final artifact of one refinement run."""
    status: RefinementStatus
    best_html: str
    best_iteration: int
    desktop_mismatch: float
    mobile_mismatch: float
    history: List[IterationResult] = Field(default_factory=list)
    final_plan: Optional[LayoutPlan] = None


class RefinementConfig(BaseModel):
    """Tunable constants of the refinement loop; defaults are the contract values."""
    desktop_threshold: float = 6.0
    mobile_threshold: float = 8.0
    max_iterations: int = 3
    desktop_viewport: ViewportConfig = Field(default_factory=ViewportConfig.desktop)
    mobile_viewport: ViewportConfig = Field(default_factory=ViewportConfig.mobile)
    pixel_threshold: float = 0.1
    include_aa: bool = False
    output_dir: Path = Path("outputs")
    render_wait_ms: int = 1000
    headless: bool = True

    class Config:
        arbitrary_types_allowed = True

    @classmethod
    def from_env(cls, **overrides: Any) -> "RefinementConfig":
        """
        Build a config from environment variables (``.env`` is honoured).

        Args:
            **overrides: Explicit values that win over the environment.

        Returns:
            RefinementConfig instance.
        """
        load_dotenv()

        values: Dict[str, Any] = {}
        env_map = {
            "desktop_threshold": ("PLUNDER_DESKTOP_THRESHOLD", float),
            "mobile_threshold": ("PLUNDER_MOBILE_THRESHOLD", float),
            "max_iterations": ("PLUNDER_MAX_ITERATIONS", int),
            "pixel_threshold": ("PLUNDER_PIXEL_THRESHOLD", float),
            "render_wait_ms": ("PLUNDER_RENDER_WAIT_MS", int),
            "output_dir": ("PLUNDER_OUTPUT_DIR", Path),
        }
        for field_name, (env_name, cast) in env_map.items():
            raw = os.getenv(env_name)
            if raw:
                values[field_name] = cast(raw)

        headless = os.getenv("PLUNDER_HEADLESS")
        if headless:
            values["headless"] = headless.lower() != "false"

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


# ============================================
# Job models
# ============================================

class JobStatus(str, Enum):
    """Lifecycle of a plunder job."""
    PENDING = "pending"
    RENDERING = "rendering"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    TESTING = "testing"
    REFINING = "refining"
    COMPLETED = "completed"
    FAILED = "failed"


class JobRecord(BaseModel):
    """State of one job as seen by the orchestration layer."""
    id: str
    url: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    html_path: Optional[Path] = None
    result: Optional[RefinementResult] = None
    iterations: List[IterationResult] = Field(default_factory=list)

    class Config:
        arbitrary_types_allowed = True


LayoutElement.model_rebuild()
