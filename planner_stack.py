"""
Highway path planner entry point.
Loads the configuration and waypoint map, then serves the simulator bridge.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import yaml

# Add paths
sys.path.insert(0, str(Path(__file__).parent))

from bridge.server import create_app, run_server
from control.velocity_ramp import VelocityRampConfig
from data.recorder import CycleRecorder
from mapping.waypoint_map import DEFAULT_MAX_S, MapLoadError, load_waypoint_map_file
from trajectory.models.path_planner import PathPlanner, PlannerConfig, PlannerPolicy

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> Path:
    """Log to stderr and tmp/logs/planner_stack.log."""
    log_dir = Path(__file__).parent / 'tmp' / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / 'planner_stack.log'

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(str(log_file))
        ]
    )
    return log_file


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from YAML file or use defaults."""
    if config_path is None:
        config_path = Path(__file__).parent / "config" / "planner_config.yaml"
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from {config_path}")
        return config
    else:
        logger.warning(f"Config file not found at {config_path}, using defaults")
        return {}


def resolve_path(path: str) -> Path:
    """Resolve relative config paths against the project root."""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return Path(__file__).parent / candidate


def build_planner(config: dict, waypoint_map) -> PathPlanner:
    trajectory_cfg = config.get('trajectory', {}) or {}
    speed_cfg = config.get('speed', {}) or {}
    return PathPlanner(
        waypoint_map,
        config=PlannerConfig.from_dict(trajectory_cfg),
        ramp_config=VelocityRampConfig.from_dict(speed_cfg),
    )


def build_policy(config: dict, planner: PathPlanner) -> PlannerPolicy:
    policy_cfg = config.get('policy', {}) or {}
    return PlannerPolicy(
        target_lane=int(policy_cfg.get('target_lane', 1)),
        speed_ceiling=float(policy_cfg.get('speed_ceiling', planner.ramp.config.speed_ceiling)),
    )


def build_recorder_factory(config: dict, planner: PathPlanner, record: bool,
                           recording_dir: Optional[str] = None):
    recording_cfg = config.get('recording', {}) or {}
    if not record:
        return None
    output_dir = resolve_path(recording_dir or recording_cfg.get('output_dir', 'data/recordings'))
    flush_every = int(recording_cfg.get('flush_every', 50))
    anchor_count = 2 + len(planner.config.forward_offsets)

    def factory(session_id: str) -> CycleRecorder:
        recorder = CycleRecorder(
            str(output_dir),
            recording_name=f"recording_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{session_id}",
            flush_every=flush_every,
            anchor_count=anchor_count,
        )
        logger.info(f"Recording session {session_id} to {recorder.output_file}")
        return recorder

    return factory


def main(argv=None) -> int:
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Run Highway Path Planner')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to configuration YAML file (default: config/planner_config.yaml)')
    parser.add_argument('--map', dest='map_file', type=str, default=None,
                        help='Waypoint map file (overrides map.file)')
    parser.add_argument('--host', type=str, default=None,
                        help='Bind address (overrides bridge.host)')
    parser.add_argument('--port', type=int, default=None,
                        help='Listen port (overrides bridge.port)')
    parser.add_argument('--lane', type=int, default=None,
                        help='Target lane (overrides policy.target_lane)')
    parser.add_argument('--record', action='store_true', default=None,
                        help='Record planning cycles to HDF5')
    parser.add_argument('--no-record', dest='record', action='store_false',
                        help='Disable recording')
    parser.add_argument('--recording_dir', type=str, default=None,
                        help='Directory for recordings')
    parser.add_argument('--debug', action='store_true',
                        help='Log every planning cycle')

    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.debug else logging.INFO)
    config = load_config(args.config)

    map_cfg = config.get('map', {}) or {}
    map_file = resolve_path(args.map_file or map_cfg.get('file', 'data/highway_map.csv'))
    try:
        waypoint_map = load_waypoint_map_file(map_file, max_s=float(map_cfg.get('max_s', DEFAULT_MAX_S)))
    except MapLoadError as e:
        logger.error(f"Cannot start planner: {e}")
        return 1

    planner = build_planner(config, waypoint_map)
    policy = build_policy(config, planner)
    if args.lane is not None:
        policy = PlannerPolicy(target_lane=args.lane, speed_ceiling=policy.speed_ceiling)

    recording_cfg = config.get('recording', {}) or {}
    record = bool(recording_cfg.get('enabled', False)) if args.record is None else args.record
    recorder_factory = build_recorder_factory(config, planner, record, args.recording_dir)

    bridge_cfg = config.get('bridge', {}) or {}
    host = args.host or bridge_cfg.get('host', '0.0.0.0')
    port = args.port or int(bridge_cfg.get('port', 4567))

    app = create_app(waypoint_map, planner=planner, policy=policy, recorder_factory=recorder_factory)
    run_server(app, host=host, port=port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
