"""
Main pipeline orchestrator for Sprout Measure.

Per image: threshold the segmentation, extract seeds, then for every seed
decompose -> label protrusions -> analyze skeleton -> match endpoints ->
aggregate. Failures are isolated per seed and per image; rows already
computed are never lost.
"""

import os
from concurrent.futures import ProcessPoolExecutor
from typing import List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict

from sproutmeasure.config import load_config, validate_config
from sproutmeasure.errors import InputShapeError, PrimitiveFailure
from sproutmeasure.io.load_image import find_image_pairs, load_pair, read_unchanged, to_display_rgb
from sproutmeasure.io.save_artifacts import DebugArtifactWriter, ensure_dir, write_results_csv
from sproutmeasure.masks.decompose import Decomposition, decompose
from sproutmeasure.masks.primitives import distance_transform, threshold_probability
from sproutmeasure.masks.protrusions import label_protrusions, protrusions_to_mask
from sproutmeasure.masks.seeds import extract_seeds
from sproutmeasure.measure.aggregate import aggregate_seed, results_table, sort_rows
from sproutmeasure.measure.endpoints import EndpointMatch, match_endpoints
from sproutmeasure.models import BatchReport, ImageResult, IssueKind, ProcessingIssue, Region, SeedStatistics
from sproutmeasure.skeleton.analyze import SkeletonResult, analyze_skeleton
from sproutmeasure.tracer import get_tracer, trace
from sproutmeasure.validate.report import generate_report


class SeedMeasurement(BaseModel):
    """Statistics row of a seed together with the intermediate results."""
    row: SeedStatistics
    decomposition: Decomposition
    protrusions: List[Region]
    protrusion_mask: np.ndarray
    skeleton: SkeletonResult
    match: EndpointMatch

    model_config = ConfigDict(arbitrary_types_allowed=True)


def measure_seed(seed, image_shape, filename, config, image_index=0, seed_index=0):
    """
    Measure one seed.

    Raises PrimitiveFailure when an image primitive fails; the caller skips
    the seed.
    """
    tracer = get_tracer()
    prot_cfg = config.protrusion

    with tracer.span(f"seed_{seed_index}", module="pipeline", seed=seed):
        decomposition = decompose(seed, image_shape, prot_cfg.open_radius, prot_cfg.dilate_radius)
        protrusions = label_protrusions(decomposition.protrusion_mask, prot_cfg.min_protrusion_size)

        # small pieces are dropped before skeletonizing so they count nowhere
        kept_mask = protrusions_to_mask(protrusions, decomposition.shape)
        skeleton = analyze_skeleton(kept_mask)

        distance_field = distance_transform(decomposition.core_mask)
        match = match_endpoints(skeleton.endpoints, distance_field, protrusions)

        row = aggregate_seed(
            filename,
            decomposition.core_area,
            protrusions,
            skeleton,
            match,
            image_index=image_index,
            seed_index=seed_index,
            seed_area=seed.area,
        )

    return SeedMeasurement(
        row=row,
        decomposition=decomposition,
        protrusions=protrusions,
        protrusion_mask=kept_mask,
        skeleton=skeleton,
        match=match,
    )


def _measure_seed_job(args):
    """Worker entry point for the process pool (must be top-level)."""
    return measure_seed(*args)


def _seed_issue(filename, seed_index, error):
    return ProcessingIssue(
        kind=IssueKind.PRIMITIVE_FAILURE,
        filename=filename,
        seed_index=seed_index,
        message=str(error),
    )


def _measure_seeds(seeds, image_shape, filename, config, image_index):
    """
    Measure all seeds of an image, in seed order.

    Yields (seed_index, measurement or None, issue or None).
    """
    jobs = [(seed, image_shape, filename, config, image_index, j) for j, seed in enumerate(seeds)]
    workers = min(config.batch.workers, len(jobs))

    if workers <= 1:
        for job in jobs:
            seed_index = job[-1]
            try:
                yield seed_index, measure_seed(*job), None
            except PrimitiveFailure as e:
                yield seed_index, None, _seed_issue(filename, seed_index, e)
        return

    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures = [(job[-1], executor.submit(_measure_seed_job, job)) for job in jobs]
        for seed_index, future in futures:
            try:
                yield seed_index, future.result(), None
            except PrimitiveFailure as e:
                yield seed_index, None, _seed_issue(filename, seed_index, e)


@trace(label="measure_mask")
def measure_mask(mask, filename, config, image_index=0, raw=None, debug_writer=None):
    """
    Measure every seed of a binary mask.

    Returns an ImageResult with one row per successfully measured seed.
    Seed extraction failures propagate; per-seed failures become issues.
    """
    tracer = get_tracer()
    result = ImageResult(filename=filename, image_index=image_index)

    seeds = extract_seeds(mask, config.seed.min_seed_size, config.seed.exclude_border)
    result.num_seeds = len(seeds)

    base_rgb = None
    if debug_writer and debug_writer.enabled:
        base_rgb = to_display_rgb(raw if raw is not None else mask)

    for seed_index, measurement, issue in _measure_seeds(seeds, mask.shape, filename, config, image_index):
        if issue is not None:
            tracer.event(f"Seed {seed_index} skipped: {issue.message}", level="ERROR")
            result.issues.append(issue)
            continue

        row = measurement.row
        result.rows.append(row)

        if row.unassigned_endpoints:
            result.issues.append(ProcessingIssue(
                kind=IssueKind.UNASSIGNED_ENDPOINTS,
                filename=filename,
                seed_index=seed_index,
                message=f"{row.unassigned_endpoints} skeleton endpoint(s) outside every protrusion",
            ))

        if base_rgb is not None:
            debug_writer.save_seed(
                seed_index,
                base_rgb,
                measurement.decomposition,
                measurement.protrusion_mask,
                measurement.skeleton.skeleton,
                measurement.match.max_endpoints,
                row=row,
            )

    result.rows = sort_rows(result.rows)
    tracer.event(f"{filename}: {len(result.rows)} of {len(seeds)} seeds measured")
    return result


def process_pair(pair, config, image_index=0, out_dir=None):
    """
    Load, threshold and measure one raw/probability image pair.

    Image-level problems (missing or unreadable files, mismatched sizes,
    failing primitives before seed processing) become issues of an otherwise
    empty ImageResult.
    """
    tracer = get_tracer()
    filename = pair.filename
    result = ImageResult(filename=filename, image_index=image_index)

    def skip(kind, message):
        tracer.event(f"Skipping {filename}: {message}", level="ERROR")
        result.issues.append(ProcessingIssue(kind=kind, filename=filename, message=message))
        return result

    if pair.probability_path is None:
        return skip(IssueKind.MISSING_PROBABILITY, "no matching probability image")

    try:
        raw, probability = load_pair(pair)
    except InputShapeError as e:
        return skip(IssueKind.INPUT_SHAPE, str(e))
    except (FileNotFoundError, ValueError) as e:
        return skip(IssueKind.LOAD_FAILURE, str(e))

    debug_writer = DebugArtifactWriter(
        out_dir, filename,
        enabled=config.debug.enabled,
        max_edge=config.debug.max_edge_scale,
    ) if (config.debug.enabled and out_dir) else None

    try:
        mask = threshold_probability(
            probability,
            cutoff=config.input.probability_threshold,
            channel=config.input.probability_channel,
        )
        return measure_mask(mask, filename, config, image_index=image_index, raw=raw, debug_writer=debug_writer)
    except PrimitiveFailure as e:
        return skip(IssueKind.PRIMITIVE_FAILURE, str(e))


def write_outputs(report, out_dir, config):
    """Write the results CSV and the quality report of a batch."""
    ensure_dir(out_dir)
    csv_path = os.path.join(out_dir, config.output.results_name)
    write_results_csv(results_table(report.rows), csv_path)
    generate_report(report, out_dir, config.output.report_name, config.output.summary_name)
    return csv_path


@trace(label="run_batch")
def run_batch(image_dir, probability_dir, out_dir, config=None, config_path=None, debug=None):
    """
    Run the measurement over every image pair of two directories.

    Images are processed one at a time. A KeyboardInterrupt stops the batch
    between images: rows of completed images are kept and written, the
    image in flight is dropped.

    Returns the BatchReport.
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)
    if debug is not None:
        config.debug.enabled = debug
    validate_config(config)

    pairs = find_image_pairs(
        image_dir, probability_dir,
        image_ext=config.input.image_ext,
        probability_match=config.input.probability_match,
    )
    report = BatchReport(images_total=len(pairs))

    for idx, pair in enumerate(pairs):
        tracer.event(f"Processing image {idx + 1} of {len(pairs)}: {pair.filename}")
        try:
            with tracer.span(f"image_{idx}", module="pipeline", filename=pair.filename):
                image_result = process_pair(pair, config, image_index=idx, out_dir=out_dir)
        except KeyboardInterrupt:
            tracer.event(f"Interrupted during {pair.filename}, its rows are discarded", level="WARN")
            report.interrupted = True
            break

        report.rows.extend(image_result.rows)
        report.issues.extend(image_result.issues)
        report.images_processed += 1

    report.rows = sort_rows(report.rows)
    write_outputs(report, out_dir, config)

    tracer.event(f"Batch complete: {report.images_processed} images, {len(report.rows)} seeds")
    return report


@trace(label="run_mask_file")
def run_mask_file(mask_path, out_dir, config=None, raw_path: Optional[str] = None):
    """
    Measure a single segmentation file (optionally with its raw image).

    Returns the BatchReport for this one image.
    """
    if config is None:
        config = load_config()
    validate_config(config)

    filename = os.path.basename(raw_path or mask_path)
    report = BatchReport(images_total=1)

    try:
        mask_img = read_unchanged(mask_path)
        raw = read_unchanged(raw_path) if raw_path else None
        if raw is not None and raw.shape[:2] != mask_img.shape[:2]:
            raise InputShapeError(raw.shape[:2], mask_img.shape[:2], filename)

        mask = threshold_probability(
            mask_img,
            cutoff=config.input.probability_threshold,
            channel=config.input.probability_channel,
        )
        debug_writer = DebugArtifactWriter(
            out_dir, filename, enabled=config.debug.enabled, max_edge=config.debug.max_edge_scale,
        ) if config.debug.enabled else None
        result = measure_mask(mask, filename, config, raw=raw, debug_writer=debug_writer)
    except InputShapeError as e:
        result = ImageResult(filename=filename, issues=[
            ProcessingIssue(kind=IssueKind.INPUT_SHAPE, filename=filename, message=str(e)),
        ])
    except PrimitiveFailure as e:
        result = ImageResult(filename=filename, issues=[
            ProcessingIssue(kind=IssueKind.PRIMITIVE_FAILURE, filename=filename, message=str(e)),
        ])

    report.rows.extend(result.rows)
    report.issues.extend(result.issues)
    report.images_processed = 1
    write_outputs(report, out_dir, config)
    return report
