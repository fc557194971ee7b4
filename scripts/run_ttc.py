#!/usr/bin/env python3
"""
Camera/LiDAR time-to-collision over a KITTI raw drive.

For every pair of consecutive frames:
1. Load image, LiDAR scan and detection boxes
2. Crop the scan to the ego lane ahead
3. Detect and match keypoints (OpenCV)
4. Match boxes, cluster points and matches, estimate both TTCs
5. Print one line per matched box pair

Usage:
    # Whole drive with default config
    python scripts/run_ttc.py --data-dir data/2011_09_26_drive_0001_sync

    # Frame range, different keypoint detector
    python scripts/run_ttc.py --data-dir ... --start 0 --end 20 --detector AKAZE

    # Custom config, results written as YAML
    python scripts/run_ttc.py --data-dir ... --config configs/custom.yaml --output ttc.yaml
"""

import argparse
import sys
from pathlib import Path

import yaml
from tqdm import tqdm

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.data.kitti_loader import KITTISequenceLoader
from src.fusion import TTCPipeline, crop_lidar_points
from src.perception2d import KeypointMatcher
from src.utils.config_loader import get_nested, load_config
from src.utils.logger import setup_logger_from_config


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Camera/LiDAR TTC estimation")
    parser.add_argument(
        "--data-dir",
        type=str,
        required=True,
        help="KITTI raw drive directory (contains image_02/ and velodyne_points/)",
    )
    parser.add_argument(
        "--detections",
        type=str,
        default=None,
        help="Detection file (default: <data-dir>/detections.yaml)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Config file merged over configs/default.yaml",
    )
    parser.add_argument("--start", type=int, default=0, help="First frame index")
    parser.add_argument("--end", type=int, default=None, help="Last frame index (exclusive)")
    parser.add_argument("--detector", type=str, default=None, help="Keypoint detector override")
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write per-pair results to this YAML file",
    )
    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_args()

    overrides = {}
    if args.detector:
        overrides["keypoints"] = {"detector": args.detector}
    config = load_config(args.config, overrides=overrides)

    logger = setup_logger_from_config(config)

    data_dir = Path(args.data_dir)
    if not data_dir.exists():
        logger.error(f"Data directory not found: {data_dir}")
        return 1

    loader = KITTISequenceLoader(data_dir, detections_file=args.detections)
    calib = loader.load_calib()
    logger.info(f"Loaded {len(loader)} frames from {data_dir}, {calib}")

    pipeline = TTCPipeline.from_config(config, calib)
    matcher = KeypointMatcher(
        detector_type=get_nested(config, "keypoints.detector", "ORB"),
        matcher_type=get_nested(config, "keypoints.matcher", "BF"),
        selector_type=get_nested(config, "keypoints.selector", "KNN"),
        ratio=get_nested(config, "keypoints.ratio", 0.8),
        max_keypoints=get_nested(config, "keypoints.max_keypoints", 2000),
    )
    crop = get_nested(config, "lidar.crop", {}) or {}

    end = len(loader) if args.end is None else min(args.end, len(loader))
    indices = range(args.start, end)
    if len(indices) < 2:
        logger.error(f"Need at least two frames, got range [{args.start}, {end})")
        return 1

    previous_frame = None
    previous_descriptors = None
    all_results = []

    for index in tqdm(indices, desc="Frames"):
        frame = loader.load_frame(index)
        frame.points = crop_lidar_points(frame.points, **crop)
        frame.keypoints, descriptors = matcher.detect(loader.load_image(frame.frame_id))

        if previous_frame is not None:
            matches = matcher.match(previous_descriptors, descriptors)
            results = pipeline.process(
                previous_frame, frame, matches, cluster_previous=(index == args.start + 1)
            )

            for result in results:
                print(
                    f"{frame.frame_id}  box {result.previous_box_id:>2} -> "
                    f"{result.current_box_id:>2}  votes={result.votes:<4} "
                    f"TTC lidar={result.ttc_lidar:7.2f}s  camera={result.ttc_camera:7.2f}s"
                )
                all_results.append({"frame_id": frame.frame_id, **result.to_dict()})

        previous_frame = frame
        previous_descriptors = descriptors

    logger.info(f"Processed {len(indices) - 1} frame pairs, {len(all_results)} box pairs")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            yaml.safe_dump(all_results, f, sort_keys=False)
        logger.info(f"Results saved to {output_path}")

    return 0


if __name__ == "__main__":
    exit(main())
