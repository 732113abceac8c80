from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable, Literal

from autoheal.core.metadata import LedgerEntry

Confidence = Literal["high", "medium", "low"]

# Suffixes that test authors commonly leave on deliberately broken selectors.
_FIX_SUFFIXES = ("-broken-2", "-broken", "-wrong", "-invalid", "-error", "-adaptive", "-test")
_HIGH_CONFIDENCE = ("-broken", "-wrong", "-invalid", "-error")
_MEDIUM_CONFIDENCE = ("-test", "1", "2", "3")

_SELENIUM_MISSING = re.compile(r'Unable to locate element: \{.*?"selector"\s*:\s*"((?:[^"\\]|\\.)*)"')
_WAIT_TIMEOUT = re.compile(r"Timed out after [\d.]+s waiting for (['\"])(.+?)\1")
_TEST_LOCATION = re.compile(r"(?P<file>[\w./\\-]*test[\w./\\-]*\.py)[:\",\s]+(?:line\s+)?(?P<line>\d+)")


@dataclass(slots=True)
class Recommendation:
    file: str
    line: int
    broken_selector: str
    suggested_fix: str
    confidence: Confidence
    context: str


@dataclass(slots=True)
class HealingReport:
    timestamp: str
    total_tests: int
    failed_selectors: int
    recommendations: list[Recommendation] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)

    def to_payload(self) -> dict:
        return asdict(self)


def suggest_fix(broken_selector: str) -> str:
    """Guesses a repaired selector without a model, from common test-artifact suffixes."""

    for suffix in _FIX_SUFFIXES:
        if suffix in broken_selector:
            return broken_selector.replace(suffix, "", 1)
    stripped = re.sub(r"\d+$", "", broken_selector)
    if stripped and stripped != broken_selector:
        return stripped
    if broken_selector.startswith("#"):
        return f'[data-testid="{broken_selector[1:]}"]'
    return broken_selector


def guess_confidence(broken_selector: str) -> Confidence:
    if any(marker in broken_selector for marker in _HIGH_CONFIDENCE):
        return "high"
    if any(marker in broken_selector for marker in _MEDIUM_CONFIDENCE):
        return "medium"
    return "low"


def parse_locator_failures(output: str) -> list[Recommendation]:
    """Finds selectors that failed to resolve in test-runner output."""

    lines = output.splitlines()
    found: list[Recommendation] = []
    for index, line in enumerate(lines):
        match = _SELENIUM_MISSING.search(line)
        if match:
            selector = match.group(1).replace('\\"', '"')
            context = "Element not found"
        else:
            match = _WAIT_TIMEOUT.search(line)
            if not match:
                continue
            selector = match.group(2)
            context = "Timeout waiting for element"
        file, line_number = _nearest_test_location(lines, index)
        found.append(
            Recommendation(
                file=file,
                line=line_number,
                broken_selector=selector,
                suggested_fix=suggest_fix(selector),
                confidence=guess_confidence(selector),
                context=context,
            )
        )
    return found


def build_report(
    entries: Iterable[LedgerEntry],
    parsed: Iterable[Recommendation] = (),
    total_tests: int = 0,
) -> HealingReport:
    entries = list(entries)
    candidates = [_recommendation_for(entry) for entry in entries]
    attempted = {entry.original_selector for entry in entries}
    parsed_only = [item for item in parsed if item.broken_selector not in attempted]
    candidates.extend(parsed_only)

    recommendations: list[Recommendation] = []
    seen: set[str] = set()
    for candidate in candidates:
        if candidate.broken_selector in seen:
            continue
        seen.add(candidate.broken_selector)
        recommendations.append(candidate)

    healed = sum(1 for entry in entries if entry.status == "healed")
    return HealingReport(
        timestamp=datetime.now(UTC).isoformat(),
        total_tests=total_tests,
        failed_selectors=len(recommendations),
        recommendations=recommendations,
        stats={
            "healed": healed,
            "failed": len(entries) - healed,
            "skipped": len({item.broken_selector for item in parsed_only}),
        },
    )


def write_reports(report: HealingReport, output_dir: str | Path) -> tuple[Path, Path]:
    root = Path(output_dir)
    root.mkdir(parents=True, exist_ok=True)
    json_path = root / "selector-recommendations.json"
    json_path.write_text(json.dumps(report.to_payload(), indent=2), encoding="utf-8")
    markdown_path = root / "healing-report.md"
    markdown_path.write_text(render_markdown(report), encoding="utf-8")
    return json_path, markdown_path


def render_markdown(report: HealingReport) -> str:
    sections = [
        "# Auto-Healer Report",
        "",
        f"Generated: {report.timestamp}",
        "",
        "## Summary",
        f"- Total failed selectors: {report.failed_selectors}",
        f"- Healed: {report.stats.get('healed', 0)}",
        f"- Failed: {report.stats.get('failed', 0)}",
        f"- Not attempted: {report.stats.get('skipped', 0)}",
        "",
        "## Recommendations",
        "",
    ]
    if not report.recommendations:
        sections.append("No selectors needed healing.")
        sections.append("")
    for index, item in enumerate(report.recommendations, start=1):
        sections.extend(
            [
                f"### {index}. {item.file}:{item.line}",
                "",
                f"**Broken Selector:** `{item.broken_selector}`",
                f"**Suggested Fix:** `{item.suggested_fix}`",
                f"**Confidence:** {item.confidence}",
                f"**Context:** {item.context}",
                "",
            ]
        )
    sections.extend(
        [
            "## How to Apply Fixes",
            "",
            "Replace the broken selectors in your test files with the suggested fixes above.",
            "",
        ]
    )
    return "\n".join(sections)


def _recommendation_for(entry: LedgerEntry) -> Recommendation:
    healed = entry.status == "healed"
    return Recommendation(
        file=entry.file,
        line=entry.line,
        broken_selector=entry.original_selector,
        suggested_fix=entry.new_selector or suggest_fix(entry.original_selector),
        confidence="high" if healed else "medium",
        context="Successfully healed by AI" if healed else "Failed to heal with AI",
    )


def _nearest_test_location(lines: list[str], index: int, window: int = 10) -> tuple[str, int]:
    start = max(index - window, 0)
    # Closest location above the error line wins.
    before = reversed(lines[start : index + 1])
    after = lines[index + 1 : index + window + 1]
    for candidate in (*before, *after):
        match = _TEST_LOCATION.search(candidate)
        if match:
            return match.group("file"), int(match.group("line"))
    return "unknown", 0
