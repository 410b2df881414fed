"""Command line interface for colortree."""
import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np
from PIL import Image
from skimage.color import label2rgb

from colortree.cluster import Clusters
from colortree.image import load_image
from colortree.runner import Runner
from colortree.types import (
    ClusteringError,
    Color,
    ColorSpace,
    KeyingAction,
    RunnerConfig,
    StepStatus,
)

logger = logging.getLogger(__name__)

_KEYING = {
    'keep': KeyingAction.KEEP,
    'discard': KeyingAction.DISCARD,
    'background': KeyingAction.BACKGROUND,
}

_COLOR_SPACES = {
    'rgb': ColorSpace.RGB,
    'oklab': ColorSpace.OKLAB,
}


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    defaults = RunnerConfig()
    parser = argparse.ArgumentParser(
        prog='colortree',
        description='Segment a raster image into a hierarchy of color clusters'
    )

    parser.add_argument('input', type=str, help='Input image path')

    parser.add_argument(
        '--diagonal',
        action='store_true',
        help='Grow clusters over 8-connectivity instead of 4'
    )
    parser.add_argument(
        '--depth',
        type=int,
        default=defaults.hierarchical,
        help='Maximum refinement depth (0 disables deepening)'
    )
    parser.add_argument(
        '--batch-size',
        type=int,
        default=defaults.batch_size,
        help=f'Pixel visits per step (default: {defaults.batch_size})'
    )
    parser.add_argument(
        '--min-area',
        type=int,
        default=defaults.good_min_area,
        help=f'Exclusive lower area bound for deepening (default: {defaults.good_min_area})'
    )
    parser.add_argument(
        '--max-area',
        type=int,
        default=defaults.good_max_area,
        help=f'Exclusive upper area bound for deepening (default: {defaults.good_max_area})'
    )
    parser.add_argument(
        '--shift',
        type=int,
        default=defaults.same_color_shift,
        help=f'Same-color quantization shift in bits (default: {defaults.same_color_shift})'
    )
    parser.add_argument(
        '--tolerance',
        type=int,
        default=defaults.same_color_tolerance,
        help=f'Same-color tolerance after quantization (default: {defaults.same_color_tolerance})'
    )
    parser.add_argument(
        '--deepen-diff',
        type=int,
        default=defaults.deepen_diff,
        help=f'Color difference needed to deepen (default: {defaults.deepen_diff})'
    )
    parser.add_argument(
        '--hollow-neighbours',
        type=int,
        default=defaults.hollow_neighbours,
        help=f'Max neighbour count of a hollow cluster (default: {defaults.hollow_neighbours})'
    )
    parser.add_argument(
        '--key-color',
        type=str,
        default=defaults.key_color.to_hex(),
        help='Key color as RRGGBB'
    )
    parser.add_argument(
        '--keying',
        choices=sorted(_KEYING),
        default='keep',
        help='Key color treatment (default: keep)'
    )
    parser.add_argument(
        '--color-space',
        choices=sorted(_COLOR_SPACES),
        default='rgb',
        help='Metric for the deepening threshold (default: rgb)'
    )
    parser.add_argument(
        '--json',
        type=str,
        default=None,
        help='Write a cluster summary as JSON'
    )
    parser.add_argument(
        '--preview',
        type=str,
        default=None,
        help='Write a PNG coloring each leaf cluster with its mean color'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Verbose logging'
    )

    return parser


def config_from_args(parsed_args) -> RunnerConfig:
    return RunnerConfig(
        diagonal=parsed_args.diagonal,
        hierarchical=parsed_args.depth,
        batch_size=parsed_args.batch_size,
        good_min_area=parsed_args.min_area,
        good_max_area=parsed_args.max_area,
        same_color_shift=parsed_args.shift,
        same_color_tolerance=parsed_args.tolerance,
        deepen_diff=parsed_args.deepen_diff,
        hollow_neighbours=parsed_args.hollow_neighbours,
        key_color=Color.from_hex(parsed_args.key_color),
        keying_action=_KEYING[parsed_args.keying],
        color_space=_COLOR_SPACES[parsed_args.color_space],
    )


def summarize(clusters: Clusters) -> dict:
    """JSON-serializable description of a clustering result."""
    return {
        'width': clusters.width,
        'height': clusters.height,
        'roots': list(clusters.roots),
        'output': list(clusters.output),
        'background': clusters.background,
        'clusters': [
            {
                'id': c.id,
                'area': c.area,
                'perimeter': c.perimeter,
                'color': c.color.to_hex(),
                'parent': c.parent,
                'children': list(c.children),
                'depth': c.depth,
                'hollow': c.hollow,
                'keyed': c.keyed,
            }
            for c in clusters.values()
        ],
    }


def render_preview(clusters: Clusters) -> np.ndarray:
    """(H, W, 3) uint8 image painting each leaf with its mean color."""
    labels = clusters.label_map()
    if labels.size == 0:
        return np.zeros((clusters.height, clusters.width, 3), dtype=np.uint8)
    palette = np.zeros((int(labels.max()) + 1, 3), dtype=np.float64)
    for cid in clusters.leaves:
        palette[cid] = np.array(clusters[cid].color) / 255.0
    # label2rgb treats label 0 as background unless told otherwise
    painted = label2rgb(labels, colors=palette[np.unique(labels)], bg_label=-1)
    return (np.clip(painted, 0.0, 1.0) * 255).round().astype(np.uint8)


def main(args=None):
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s'
    )

    input_path = Path(parsed_args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    try:
        config = config_from_args(parsed_args)
        image = load_image(input_path)
        handle = Runner(config, image).start()
    except (ClusteringError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info(f"Clustering {input_path} ({image.width}x{image.height})")
    last = -1
    while handle.step() is StepStatus.PENDING:
        if handle.progress // 10 != last // 10:
            last = handle.progress
            logger.info(f"  {last}%")
    clusters = handle.result()

    print(f"Clusters: {len(clusters)} ({len(clusters.leaves)} leaves, "
          f"{sum(1 for c in clusters.values() if c.hollow)} hollow)")

    if parsed_args.json:
        with open(parsed_args.json, 'w') as f:
            json.dump(summarize(clusters), f, indent=2)
        print(f"Summary written to {parsed_args.json}")

    if parsed_args.preview:
        Image.fromarray(render_preview(clusters)).save(parsed_args.preview)
        print(f"Preview written to {parsed_args.preview}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
