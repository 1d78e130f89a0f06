"""
Data recorder for the path planner.
Records every completed planning cycle (pose, anchors, speed, trajectory) to HDF5.
"""

import h5py
import numpy as np
import json
import time
import threading
import queue
import logging
from pathlib import Path
from typing import Optional, List
from datetime import datetime

from .formats.data_format import CycleRecord

logger = logging.getLogger(__name__)

CYCLE_GAP_WARN_SECONDS = 0.2

MODE_CODES = {"bootstrapping": 0, "tracking": 1}

SCALAR_FIELDS = {
    "timestamps": ("timestamp", np.float64),
    "cycle": ("cycle", np.int64),
    "pose/x": ("pose_x", np.float64),
    "pose/y": ("pose_y", np.float64),
    "pose/s": ("pose_s", np.float64),
    "pose/d": ("pose_d", np.float64),
    "pose/yaw": ("pose_yaw", np.float64),
    "pose/speed": ("pose_speed", np.float64),
    "planner/commanded_speed": ("commanded_speed", np.float64),
    "planner/retained": ("retained", np.int32),
    "planner/generated": ("generated", np.int32),
    "planner/x_step": ("x_step", np.float64),
    "planner/reference_x": ("reference_x", np.float64),
    "planner/reference_y": ("reference_y", np.float64),
    "planner/reference_heading": ("reference_heading", np.float64),
}


class CycleRecorder:
    """Records planning cycles to HDF5 format."""

    def __init__(self, output_dir: str, recording_name: Optional[str] = None,
                 flush_every: int = 50, anchor_count: int = 5):
        """
        Initialize cycle recorder.

        Args:
            output_dir: Directory to save recordings
            recording_name: Name for this recording (default: timestamp)
            flush_every: Number of buffered cycles that triggers a write
            anchor_count: Anchors per cycle (2 history + forward offsets)
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        if recording_name is None:
            recording_name = f"recording_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        self.recording_name = recording_name
        self.output_file = self.output_dir / f"{recording_name}.h5"

        self.anchor_count = int(anchor_count)
        self.h5_file = h5py.File(self.output_file, 'w')
        self._create_datasets()

        self.cycle_buffer: List[CycleRecord] = []
        self.cycle_buffer_lock = threading.Lock()
        self.flush_queue: "queue.Queue[List[CycleRecord]]" = queue.Queue()
        self.flush_stop_event = threading.Event()
        self.cycle_count = 0
        self.last_record_wall_time: Optional[float] = None
        self.flush_every = max(1, int(flush_every))
        self.flush_thread = threading.Thread(
            target=self._flush_worker,
            name="CycleRecorderFlushWorker",
            daemon=True,
        )
        self.flush_thread.start()

        self.metadata = {
            "recording_start_time": datetime.now().isoformat(),
            "recording_name": recording_name,
            "mode_codes": MODE_CODES,
        }

    def _create_datasets(self):
        """Create extensible HDF5 datasets."""
        for name, (_, dtype) in SCALAR_FIELDS.items():
            self.h5_file.create_dataset(name, shape=(0,), maxshape=(None,), dtype=dtype)
        self.h5_file.create_dataset(
            "planner/mode", shape=(0,), maxshape=(None,), dtype=np.int8
        )
        self.h5_file.create_dataset(
            "planner/anchors", shape=(0, self.anchor_count, 2), maxshape=(None, self.anchor_count, 2), dtype=np.float64
        )
        # Trajectory length varies when the previous path overshoots the target
        for axis in ("x", "y"):
            self.h5_file.create_dataset(
                f"trajectory/{axis}",
                shape=(0,),
                maxshape=(None,),
                dtype=h5py.vlen_dtype(np.float64),
            )

    def record_cycle(self, pose, result, timestamp: Optional[float] = None):
        """
        Record a completed planning cycle.

        Args:
            pose: VehiclePose the cycle planned from
            result: CycleResult returned by the planner
            timestamp: Wall-clock time (default: now)
        """
        now = time.time()
        if self.last_record_wall_time is not None:
            gap = now - self.last_record_wall_time
            if gap > CYCLE_GAP_WARN_SECONDS:
                logger.warning(
                    "[RECORDER_ARRIVAL_GAP] gap=%.3fs cycle=%d", gap, result.state.cycle
                )
        self.last_record_wall_time = now

        anchors = result.anchors
        record = CycleRecord(
            timestamp=now if timestamp is None else float(timestamp),
            cycle=result.state.cycle,
            pose_x=pose.x,
            pose_y=pose.y,
            pose_s=pose.s,
            pose_d=pose.d,
            pose_yaw=pose.yaw,
            pose_speed=pose.speed,
            mode=anchors.mode.value,
            commanded_speed=result.state.speed,
            retained=result.retained,
            generated=result.generated,
            x_step=result.x_step,
            reference_x=anchors.origin[0],
            reference_y=anchors.origin[1],
            reference_heading=anchors.heading,
            anchors=anchors.as_array(),
            trajectory_x=np.asarray(result.next_x, dtype=np.float64),
            trajectory_y=np.asarray(result.next_y, dtype=np.float64),
        )

        with self.cycle_buffer_lock:
            self.cycle_buffer.append(record)
            self.cycle_count += 1
            if len(self.cycle_buffer) >= self.flush_every:
                records = self.cycle_buffer
                self.cycle_buffer = []
                self.flush_queue.put(records)

    def flush(self):
        """Hand buffered cycles to the writer thread."""
        with self.cycle_buffer_lock:
            if not self.cycle_buffer:
                return
            records = self.cycle_buffer
            self.cycle_buffer = []
        self.flush_queue.put(records)

    def _flush_worker(self):
        while not self.flush_stop_event.is_set() or not self.flush_queue.empty():
            try:
                records = self.flush_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._write_cycles(records)
            finally:
                self.flush_queue.task_done()

    def _write_cycles(self, records: List[CycleRecord]):
        if not records:
            return
        current_size = self.h5_file["timestamps"].shape[0]
        new_size = current_size + len(records)

        for name, (attr, dtype) in SCALAR_FIELDS.items():
            dataset = self.h5_file[name]
            dataset.resize((new_size,))
            dataset[current_size:new_size] = np.array([getattr(r, attr) for r in records], dtype=dtype)

        self.h5_file["planner/mode"].resize((new_size,))
        self.h5_file["planner/mode"][current_size:new_size] = np.array(
            [MODE_CODES.get(r.mode, -1) for r in records], dtype=np.int8
        )
        self.h5_file["planner/anchors"].resize((new_size, self.anchor_count, 2))
        self.h5_file["planner/anchors"][current_size:new_size] = np.stack([r.anchors for r in records])

        for axis in ("x", "y"):
            dataset = self.h5_file[f"trajectory/{axis}"]
            dataset.resize((new_size,))
            for i, record in enumerate(records):
                dataset[current_size + i] = getattr(record, f"trajectory_{axis}")

        self.h5_file.flush()

    def close(self):
        """Close the recording file."""
        try:
            self.flush()
            self.flush_stop_event.set()
            self.flush_thread.join(timeout=5.0)
        except Exception as e:
            logger.error(f"Error during final flush: {e}", exc_info=True)

        self.metadata["recording_end_time"] = datetime.now().isoformat()
        self.metadata["total_cycles"] = self.cycle_count
        self.h5_file.attrs["metadata"] = json.dumps(self.metadata, indent=2)
        self.h5_file.close()
        logger.info(f"Recording saved to: {self.output_file} ({self.cycle_count} cycles)")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
