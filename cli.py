#!/usr/bin/env python3
"""
Command-line interface for the page plunder pipeline.
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from page_plunder.analysis.layout_analyzer import LayoutAnalyzer
from page_plunder.codegen.html_generator import HTMLGenerator
from page_plunder.evaluation.visual_diff import VisualDiffScorer
from page_plunder.models import (
    JobStatus,
    LayoutPlan,
    PageContent,
    RefinementConfig,
    ScreenshotPair,
)
from page_plunder.pipeline.plunder import PlunderPipeline
from page_plunder.rendering.browser_renderer import BrowserRenderer
from page_plunder.utils.run_logger import get_logger

# Load environment variables
load_dotenv()

PAGE_CONTENT_FILE = "page-content.json"


def build_config(args) -> RefinementConfig:
    """Environment config with CLI flags on top."""
    return RefinementConfig.from_env(
        output_dir=Path(args.output) if getattr(args, "output", None) else None,
        max_iterations=getattr(args, "max_iterations", None),
        desktop_threshold=getattr(args, "desktop_threshold", None),
        mobile_threshold=getattr(args, "mobile_threshold", None),
        render_wait_ms=getattr(args, "wait", None),
        headless=False if getattr(args, "headed", False) else None,
    )


def build_renderer(config: RefinementConfig) -> BrowserRenderer:
    return BrowserRenderer(
        headless=config.headless,
        desktop_viewport=config.desktop_viewport,
        mobile_viewport=config.mobile_viewport,
        wait_time=config.render_wait_ms,
    )


def cmd_plunder(args):
    """Plunder one or more URLs end to end."""
    print("🏴‍☠️ Plundering pages...")

    config = build_config(args)
    get_logger().configure(level=args.log_level, log_dir=config.output_dir)

    print(f"💾 Output: {config.output_dir}")
    print(f"🎯 Budgets: desktop {config.desktop_threshold}% | mobile {config.mobile_threshold}%")
    print(f"🔄 Max iterations: {config.max_iterations}")

    pipeline = PlunderPipeline(config=config, renderer=build_renderer(config))
    if len(args.urls) == 1:
        jobs = [pipeline.run(args.urls[0])]
    else:
        jobs = pipeline.run_many(args.urls, max_workers=args.workers)

    print("\n" + "=" * 60)
    print("📊 Results")
    print("=" * 60)

    failed = 0
    for job in jobs:
        if job.status == JobStatus.COMPLETED:
            result = job.result
            print(f"✅ {job.url} [{job.id}] {result.status.value}")
            print(f"   🖥️  Desktop: {result.desktop_mismatch:.2f}%")
            print(f"   📱 Mobile: {result.mobile_mismatch:.2f}%")
            print(f"   🏆 Best iteration: {result.best_iteration} of {len(result.history)}")
            print(f"   📄 HTML: {job.html_path}")
        else:
            failed += 1
            print(f"❌ {job.url} [{job.id}] failed: {job.error}")

    return 1 if failed else 0


def cmd_render(args):
    """Render a URL and save its screenshots and extracted content."""
    print("📸 Rendering page...")

    config = build_config(args)
    output_dir = Path(args.output)

    print(f"🌐 URL: {args.url}")
    print(f"💾 Output: {output_dir}")

    renderer = build_renderer(config)
    result = renderer.render_url(args.url, output_dir)
    if not result.success:
        print(f"❌ Render failed: {result.error}")
        return 1

    content_path = output_dir / PAGE_CONTENT_FILE
    content_path.write_text(
        result.page_content.model_dump_json(by_alias=True, indent=2),
        encoding="utf-8",
    )

    print(f"✅ Rendered: {result.page_title or '(untitled)'}")
    print(f"   🖥️  Desktop: {result.screenshots.desktop}")
    print(f"   📱 Mobile: {result.screenshots.mobile}")
    print(f"   📄 Content: {content_path}")

    return 0


def cmd_analyze(args):
    """Build a layout plan from saved page content."""
    print("🔍 Analyzing page content...")

    content_path = Path(args.content)
    if not content_path.exists():
        print(f"❌ Error: Page content not found: {content_path}")
        return 1

    page_content = PageContent.model_validate_json(content_path.read_text(encoding="utf-8"))
    plan = LayoutAnalyzer().analyze(page_content)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(plan.to_json(), encoding="utf-8")

    print(f"✅ {len(plan.sections)} sections")
    for section in plan.ordered_sections():
        print(f"   [{section.order}] {section.type.value} #{section.id} ({len(section.children)} elements)")
    print(f"📄 Plan: {output_path}")

    return 0


def cmd_generate(args):
    """Generate HTML from a saved layout plan."""
    print("🛠️  Generating HTML...")

    plan_path = Path(args.plan)
    if not plan_path.exists():
        print(f"❌ Error: Layout plan not found: {plan_path}")
        return 1

    plan = LayoutPlan.model_validate_json(plan_path.read_text(encoding="utf-8"))
    _, html_path = HTMLGenerator().generate_and_save(
        plan,
        args.output,
        title=args.title,
        description=args.description,
    )

    print(f"✅ HTML generated: {html_path}")
    return 0


def cmd_score(args):
    """Score an HTML file against reference screenshots."""
    print("📊 Scoring HTML...")

    html_path = Path(args.html)
    desktop_path = Path(args.desktop)
    mobile_path = Path(args.mobile)
    for label, path in (("HTML", html_path), ("Desktop reference", desktop_path), ("Mobile reference", mobile_path)):
        if not path.exists():
            print(f"❌ Error: {label} not found: {path}")
            return 1

    config = build_config(args)
    scorer = VisualDiffScorer(build_renderer(config), config=config)
    diff = scorer.score(
        ScreenshotPair(desktop=desktop_path, mobile=mobile_path),
        html_path.read_text(encoding="utf-8"),
        Path(args.output),
    )

    if not diff.success:
        print(f"❌ Scoring failed: {diff.error}")
        return 1

    verdict = "✅ within budget" if diff.passes_threshold else "❌ over budget"
    print(f"   🖥️  Desktop: {diff.desktop_mismatch:.2f}% (budget {config.desktop_threshold}%)")
    print(f"   📱 Mobile: {diff.mobile_mismatch:.2f}% (budget {config.mobile_threshold}%)")
    print(f"   {verdict}")
    print(f"   🖼️  Diffs: {diff.desktop_diff_image}, {diff.mobile_diff_image}")

    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Page Plunder: rebuild web pages as editable HTML",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Plunder command
    plunder_parser = subparsers.add_parser("plunder", help="Render, rebuild and refine pages")
    plunder_parser.add_argument("urls", nargs="+", help="Page URL(s)")
    plunder_parser.add_argument("--output", "-o", help="Output directory (default: PLUNDER_OUTPUT_DIR or outputs)")
    plunder_parser.add_argument("--max-iterations", type=int, help="Maximum refinement iterations")
    plunder_parser.add_argument("--desktop-threshold", type=float, help="Desktop mismatch budget (%%)")
    plunder_parser.add_argument("--mobile-threshold", type=float, help="Mobile mismatch budget (%%)")
    plunder_parser.add_argument("--workers", type=int, default=4, help="Concurrent jobs for several URLs")
    plunder_parser.add_argument("--wait", "-w", type=int, help="Render settle time (ms)")
    plunder_parser.add_argument("--headed", action="store_true", help="Run browser in headed mode")
    plunder_parser.add_argument("--log-level", choices=["NONE", "INFO", "DEBUG", "TRACE"], help="Log level")

    # Render command
    render_parser = subparsers.add_parser("render", help="Render a URL to screenshots and page content")
    render_parser.add_argument("url", help="Page URL")
    render_parser.add_argument("--output", "-o", required=True, help="Output directory")
    render_parser.add_argument("--wait", "-w", type=int, help="Render settle time (ms)")
    render_parser.add_argument("--headed", action="store_true", help="Run browser in headed mode")

    # Analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Build a layout plan from page content")
    analyze_parser.add_argument("--content", "-c", required=True, help=f"Path to {PAGE_CONTENT_FILE}")
    analyze_parser.add_argument("--output", "-o", default="layout-plan.json", help="Output path for the plan")

    # Generate command
    gen_parser = subparsers.add_parser("generate", help="Generate HTML from a layout plan")
    gen_parser.add_argument("--plan", "-p", required=True, help="Path to layout-plan.json")
    gen_parser.add_argument("--output", "-o", default="plundered-page.html", help="Output HTML path")
    gen_parser.add_argument("--title", help="Document title")
    gen_parser.add_argument("--description", help="Meta description")

    # Score command
    score_parser = subparsers.add_parser("score", help="Score HTML against reference screenshots")
    score_parser.add_argument("--html", required=True, help="Path to HTML file")
    score_parser.add_argument("--desktop", "-d", required=True, help="Desktop reference screenshot")
    score_parser.add_argument("--mobile", "-m", required=True, help="Mobile reference screenshot")
    score_parser.add_argument("--output", "-o", required=True, help="Directory for screenshots and diffs")
    score_parser.add_argument("--desktop-threshold", type=float, help="Desktop mismatch budget (%%)")
    score_parser.add_argument("--mobile-threshold", type=float, help="Mobile mismatch budget (%%)")
    score_parser.add_argument("--wait", "-w", type=int, help="Render settle time (ms)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "plunder":
            return cmd_plunder(args)
        elif args.command == "render":
            return cmd_render(args)
        elif args.command == "analyze":
            return cmd_analyze(args)
        elif args.command == "generate":
            return cmd_generate(args)
        elif args.command == "score":
            return cmd_score(args)
    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user")
        return 130
    except Exception as e:
        print(f"\n❌ Error: {str(e)}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
