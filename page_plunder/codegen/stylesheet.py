"""
Stylesheet and script emitted into every generated document.

Only the ``:root`` custom-property block depends on the layout plan; the base
stylesheet and the script are fixed text so the generated page stays easy to
edit by hand. Layout uses flexbox and grid only.
"""

from typing import List

from page_plunder.models import LayoutPlan

SPACING_SCALE = (
    ("xs", "0.25rem"),
    ("sm", "0.5rem"),
    ("md", "1rem"),
    ("lg", "1.5rem"),
    ("xl", "2rem"),
    ("2xl", "3rem"),
)


def build_custom_properties(plan: LayoutPlan) -> str:
    """
    Render the ``:root`` block declaring every plan-derived value.

    Args:
        plan: Layout plan to read colors, typography and globals from.

    Returns:
        CSS text of the ``:root`` rule.
    """
    colors = plan.color_scheme
    globals_ = plan.global_styles
    typography = plan.typography

    lines: List[str] = [":root {", "  /* Colors */"]
    lines.extend([
        f"  --color-primary: {colors.primary};",
        f"  --color-secondary: {colors.secondary};",
        f"  --color-accent: {colors.accent};",
        f"  --color-background: {colors.background};",
        f"  --color-surface: {colors.surface};",
        f"  --color-text: {colors.text};",
        f"  --color-text-muted: {colors.text_muted};",
        f"  --color-border: {colors.border};",
        f"  --body-background: {globals_.body_background};",
        f"  --body-color: {globals_.body_color};",
        "",
        "  /* Typography */",
        f"  --font-family: {globals_.font_family};",
        f"  --font-size-base: {typography.base_size};",
        f"  --line-height-base: {globals_.line_height};",
    ])

    for name, level in typography.levels().items():
        lines.extend([
            f"  --{name}-font-size: {level.font_size};",
            f"  --{name}-font-weight: {level.font_weight};",
            f"  --{name}-line-height: {level.line_height};",
            f"  --{name}-margin-bottom: {level.margin_bottom};",
        ])

    lines.extend(["", "  /* Spacing */"])
    lines.extend(f"  --spacing-{name}: {value};" for name, value in SPACING_SCALE)

    lines.extend([
        "",
        "  /* Layout */",
        f"  --max-width: {globals_.max_width};",
        "  --border-radius: 8px;",
        "}",
    ])
    return "\n".join(lines)


BASE_STYLESHEET = """
/* Reset & base */
*, *::before, *::after {
  box-sizing: border-box;
  margin: 0;
  padding: 0;
}

html {
  font-size: 16px;
  scroll-behavior: smooth;
}

body {
  font-family: var(--font-family);
  font-size: var(--font-size-base);
  line-height: var(--line-height-base);
  color: var(--body-color);
  background-color: var(--body-background);
  -webkit-font-smoothing: antialiased;
  -moz-osx-font-smoothing: grayscale;
}

img {
  max-width: 100%;
  height: auto;
  display: block;
}

a {
  color: var(--color-primary);
  text-decoration: none;
}

a:hover {
  text-decoration: underline;
}

/* Typography */
h1, h2, h3, h4 {
  color: var(--color-text);
}

h1 {
  font-size: var(--h1-font-size);
  font-weight: var(--h1-font-weight);
  line-height: var(--h1-line-height);
  margin-bottom: var(--h1-margin-bottom);
}

h2 {
  font-size: var(--h2-font-size);
  font-weight: var(--h2-font-weight);
  line-height: var(--h2-line-height);
  margin-bottom: var(--h2-margin-bottom);
}

h3 {
  font-size: var(--h3-font-size);
  font-weight: var(--h3-font-weight);
  line-height: var(--h3-line-height);
  margin-bottom: var(--h3-margin-bottom);
}

h4 {
  font-size: var(--h4-font-size);
  font-weight: var(--h4-font-weight);
  line-height: var(--h4-line-height);
  margin-bottom: var(--h4-margin-bottom);
}

p {
  font-size: var(--body-font-size);
  font-weight: var(--body-font-weight);
  line-height: var(--body-line-height);
  margin-bottom: var(--body-margin-bottom);
  color: var(--color-text);
}

small, .text-small {
  font-size: var(--small-font-size);
  line-height: var(--small-line-height);
}

.text-muted {
  color: var(--color-text-muted);
}

/* Layout */
.container {
  width: 100%;
  max-width: var(--max-width);
  margin: 0 auto;
  padding: 0 var(--spacing-md);
}

.header {
  background-color: var(--color-surface);
  padding: var(--spacing-md) var(--spacing-lg);
  border-bottom: 1px solid var(--color-border);
}

.header .container {
  display: flex;
  justify-content: space-between;
  align-items: center;
}

.hero {
  padding: var(--spacing-2xl) var(--spacing-md);
  text-align: center;
  background-color: var(--color-surface);
}

.hero h1 {
  max-width: 800px;
  margin: 0 auto var(--spacing-lg);
}

.hero p {
  max-width: 600px;
  margin: 0 auto var(--spacing-xl);
  color: var(--color-text-muted);
}

.content {
  display: block;
  padding: var(--spacing-xl) var(--spacing-md);
}

.content .container {
  max-width: 800px;
}

.features .container,
.testimonials .container {
  display: grid;
  grid-template-columns: repeat(auto-fit, minmax(240px, 1fr));
  gap: var(--spacing-lg);
}

/* Offers */
.offer-list,
.offer-card {
  padding: var(--spacing-xl) var(--spacing-md);
}

.offer-list .container {
  display: flex;
  flex-direction: column;
  gap: var(--spacing-lg);
  max-width: 800px;
}

.offer {
  display: flex;
  flex-direction: column;
  gap: var(--spacing-sm);
  background-color: var(--color-surface);
  border: 1px solid var(--color-border);
  border-radius: var(--border-radius);
  padding: var(--spacing-lg);
  transition: box-shadow 0.2s ease;
}

.offer:hover {
  box-shadow: 0 4px 12px rgba(0, 0, 0, 0.1);
}

.offer ul {
  list-style: none;
}

.offer li::before {
  content: "\\2713";
  margin-right: var(--spacing-sm);
  color: var(--color-primary);
  font-weight: 600;
}

/* Buttons */
.btn {
  display: inline-flex;
  align-items: center;
  justify-content: center;
  padding: var(--spacing-sm) var(--spacing-lg);
  font-size: 1rem;
  font-weight: 600;
  border: none;
  border-radius: var(--border-radius);
  cursor: pointer;
  transition: background-color 0.2s ease;
  text-decoration: none;
}

.btn-primary {
  background-color: var(--color-primary);
  color: #ffffff;
}

.btn-primary:hover {
  background-color: var(--color-secondary);
  text-decoration: none;
}

/* Call to action */
.cta {
  padding: var(--spacing-2xl) var(--spacing-md);
  background-color: var(--color-primary);
  color: #ffffff;
  text-align: center;
}

.cta h2,
.cta p {
  color: #ffffff;
}

.cta .btn-primary {
  background-color: #ffffff;
  color: var(--color-primary);
}

/* Footer */
.footer {
  padding: var(--spacing-xl) var(--spacing-md);
  background-color: var(--color-surface);
  border-top: 1px solid var(--color-border);
  text-align: center;
  color: var(--color-text-muted);
  font-size: var(--small-font-size);
}

.footer a {
  color: var(--color-text-muted);
}

/* Responsive */
@media (max-width: 768px) {
  :root {
    --font-size-base: 15px;
  }

  h1 {
    font-size: calc(var(--h1-font-size) * 0.75);
  }

  h2 {
    font-size: calc(var(--h2-font-size) * 0.8);
  }

  h3 {
    font-size: calc(var(--h3-font-size) * 0.85);
  }

  .header .container {
    flex-direction: column;
    gap: var(--spacing-md);
  }

  .features .container,
  .testimonials .container {
    grid-template-columns: 1fr;
  }
}

@media (max-width: 480px) {
  .offer {
    padding: var(--spacing-md);
  }
}
""".strip()


PAGE_SCRIPT = """
(function() {
  'use strict';

  // Smooth scroll for in-page anchors
  document.querySelectorAll('a[href^="#"]').forEach(function(anchor) {
    anchor.addEventListener('click', function(e) {
      var targetId = this.getAttribute('href');
      if (targetId === '#') return;
      var target = document.querySelector(targetId);
      if (target) {
        e.preventDefault();
        target.scrollIntoView({ behavior: 'smooth' });
      }
    });
  });

  function markLoaded() {
    document.body.classList.add('loaded');
  }

  if (document.readyState === 'loading') {
    document.addEventListener('DOMContentLoaded', markLoaded);
  } else {
    markLoaded();
  }
})();
""".strip()


def build_stylesheet(plan: LayoutPlan) -> str:
    """Full ``<style>`` body: plan custom properties followed by the base sheet."""
    return build_custom_properties(plan) + "\n\n" + BASE_STYLESHEET
