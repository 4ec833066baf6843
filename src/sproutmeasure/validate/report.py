"""
Quality report generation for Sprout Measure.

Summarizes skipped images and seeds, and data-quality counters, next to the
results CSV.
"""

import os
from collections import Counter

from sproutmeasure.io.save_artifacts import ensure_dir, save_json
from sproutmeasure.models import IssueKind
from sproutmeasure.tracer import get_tracer, trace


def quality_summary(report):
    """Counters describing a batch report."""
    kinds = Counter(issue.kind.value for issue in report.issues)
    return {
        "images_total": report.images_total,
        "images_processed": report.images_processed,
        "images_skipped": len(report.skipped_images),
        "seeds_measured": len(report.rows),
        "seeds_skipped": sum(
            1 for i in report.issues
            if i.seed_index is not None and i.kind == IssueKind.PRIMITIVE_FAILURE
        ),
        "seeds_without_protrusions": sum(1 for r in report.rows if r.num_protrusions == 0),
        "unassigned_endpoints": report.unassigned_endpoint_count,
        "interrupted": report.interrupted,
        "issues_by_kind": dict(sorted(kinds.items())),
    }


@trace(label="generate_report")
def generate_report(report, out_dir, report_name="quality_report.json", summary_name="quality_summary.txt"):
    """
    Write the quality report files.

    Creates:
    - quality_report.json: counters and every issue
    - quality_summary.txt: human-readable summary
    """
    tracer = get_tracer()
    summary = quality_summary(report)

    report_path = os.path.join(out_dir, report_name)
    save_json({
        "summary": summary,
        "issues": [issue.model_dump(mode="json") for issue in report.issues],
    }, report_path)

    lines = ["Sprout Measure Quality Report", "=" * 40, ""]
    lines.append(f"Images processed: {summary['images_processed']} of {summary['images_total']}")
    lines.append(f"Seeds measured: {summary['seeds_measured']}")
    lines.append(f"Seeds without protrusions: {summary['seeds_without_protrusions']}")
    lines.append(f"Unassigned endpoints: {summary['unassigned_endpoints']}")
    if report.interrupted:
        lines.append("Batch was interrupted; rows of the unfinished image were discarded.")
    lines.append("")

    if report.issues:
        lines.append("ISSUES:")
        lines.append("-" * 40)
        for issue in report.issues:
            lines.append(format_issue(issue))

    summary_path = os.path.join(out_dir, summary_name)
    ensure_dir(os.path.dirname(summary_path))
    with open(summary_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")

    tracer.event(f"Report saved: {len(report.issues)} issues")
    return report_path, summary_path


def format_issue(issue):
    """Format a single issue for display."""
    where = issue.filename or "-"
    if issue.seed_index is not None:
        where += f" seed {issue.seed_index}"
    return f"[{issue.kind.value}] {where}: {issue.message}"
