"""Batch execution of point-light cloth trials over parameter sweeps.

A sweep maps dotted configuration keys (``"isi.isi_ms"``,
``"size.scaling_ratio"``) to lists of values. The executor expands the
Cartesian product, runs every combination ``repetitions`` times on the
simulated headless clock and writes one telemetry file per trial plus a
batch summary.

The batch executor supports:
- Parameter sweep expansion (Cartesian product)
- Progress tracking with checkpointing
- Reproducibility via deterministic per-trial seeding
- Resume from interruption

Example:
    >>> executor = BatchExecutor(
    ...     config,
    ...     cloth,
    ...     sweep={"isi.isi_ms": [0, 50, 100], "isi.mode": ["blank", "hold"]},
    ...     repetitions=2,
    ...     output_dir="./batch_results",
    ... )
    >>> results = executor.execute()
"""

import copy
import itertools
import json
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pointcloth.config.schema import PointClothConfig
from pointcloth.core.engine import TrialEngine, run_headless, sink_from_config
from pointcloth.core.trajectory import Cloth, load_cloth
from pointcloth.errors import ConfigurationError

_TRIAL_KEYS = ("trial_id", "combo_idx", "rep_idx", "seed")


def set_dotted(data: Dict[str, Any], key: str, value: Any) -> None:
    """Set ``data["a"]["b"] = value`` for ``key == "a.b"``.

    Raises:
        ConfigurationError: If an intermediate key holds a non-mapping.
    """
    parts = key.split(".")
    node = data
    for part in parts[:-1]:
        child = node.setdefault(part, {})
        if child is None:
            child = node[part] = {}
        if not isinstance(child, dict):
            raise ConfigurationError(f"Cannot set '{key}': '{part}' is not a section")
        node = child
    node[parts[-1]] = value


class BatchExecutor:
    """Runs a trial configuration over a parameter sweep.

    Attributes:
        base_config: Configuration shared by every trial.
        cloth: Trajectories loaded once and reused by every trial.
        sweep: Dotted key -> list of values.
        repetitions: Runs per parameter combination.
        base_seed: Seed of the first trial; see :meth:`expand_sweep`.
        output_dir: Directory receiving all batch output.
        checkpoint_path: JSON checkpoint used for resuming.
    """

    def __init__(
        self,
        config: Union[PointClothConfig, Dict[str, Any]],
        cloth: Union[Cloth, str, Path],
        sweep: Optional[Dict[str, Sequence[Any]]] = None,
        repetitions: int = 1,
        base_seed: Optional[int] = None,
        output_dir: Optional[Union[str, Path]] = None,
        batch_name: Optional[str] = None,
        refresh_hz: Optional[float] = None,
    ):
        """Initialize the executor.

        Raises:
            ConfigurationError: If the base config or a sweep value is invalid.
            DataError: If the trajectory file is malformed.
        """
        if isinstance(config, dict):
            config = PointClothConfig.from_dict(config)
        config.validate()
        self.base_config = config
        self.cloth = cloth if isinstance(cloth, Cloth) else load_cloth(cloth)
        self.sweep = {k: list(v) if isinstance(v, (list, tuple)) else [v] for k, v in (sweep or {}).items()}
        if repetitions < 1:
            raise ConfigurationError(f"repetitions must be at least 1, got {repetitions}")
        self.repetitions = int(repetitions)
        if base_seed is None:
            base_seed = config.seed if config.seed is not None else 42
        self.base_seed = int(base_seed)
        self.refresh_hz = refresh_hz

        self.output_dir = Path(output_dir if output_dir is not None else config.output.directory)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.checkpoint_path = self.output_dir / "checkpoint.json"

        self.batch_name = batch_name or config.metadata.get("batch_name", config.output.cloth_name)
        self.batch_id = self._generate_batch_id()
        self.trial_configs = self.expand_sweep()
        for trial in self.trial_configs:
            self.trial_config(trial).validate()

    def _generate_batch_id(self) -> str:
        """Batch ID in format ``{name}_{timestamp}``."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        safe_name = "".join(c if c.isalnum() or c in "_-" else "_" for c in str(self.batch_name))
        return f"{safe_name}_{timestamp}"

    def expand_sweep(self) -> List[Dict[str, Any]]:
        """Expand the sweep into one entry per trial.

        Seeds follow ``base_seed + combo_idx * 10000 + rep`` so that adding
        repetitions never changes the seeds of existing trials.

        Returns:
            List of dicts with ``trial_id``, ``combo_idx``, ``rep_idx``,
            ``seed`` and one entry per swept key.
        """
        keys = list(self.sweep.keys())
        combinations = list(itertools.product(*(self.sweep[k] for k in keys)))

        trials = []
        for combo_idx, combo in enumerate(combinations):
            for rep in range(self.repetitions):
                trial = {
                    "trial_id": None,
                    "combo_idx": combo_idx,
                    "rep_idx": rep,
                    "seed": self.base_seed + combo_idx * 10000 + rep,
                }
                trial.update(zip(keys, combo))
                trial["trial_id"] = self._generate_trial_id(trial)
                trials.append(trial)
        return trials

    def _generate_trial_id(self, trial: Dict[str, Any]) -> str:
        """Readable trial identifier, e.g. ``cloth_isi_ms50_modehold_rep0``."""
        parts = []
        for key, value in trial.items():
            if key in _TRIAL_KEYS:
                continue
            leaf = key.split(".")[-1]
            if isinstance(value, float):
                parts.append(f"{leaf}{value:g}")
            else:
                parts.append(f"{leaf}{value}")
        name = self.base_config.output.cloth_name
        param_str = "_".join(parts) if parts else "default"
        safe = "".join(c if c.isalnum() or c in "_-." else "_" for c in param_str)
        return f"{name}_{safe}_rep{trial['rep_idx']}"

    def trial_config(self, trial: Dict[str, Any]) -> PointClothConfig:
        """Configuration of one trial: base config with swept values applied."""
        data = copy.deepcopy(self.base_config.to_dict())
        for key, value in trial.items():
            if key not in _TRIAL_KEYS:
                set_dotted(data, key, value)
        data["seed"] = trial["seed"]
        output = data.setdefault("output", {})
        output["directory"] = str(self.output_dir / "trials")
        output["cloth_name"] = trial["trial_id"]
        return PointClothConfig.from_dict(data)

    def execute(self, resume_from: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
        """Run every trial with progress output and checkpointing.

        Args:
            resume_from: Optional checkpoint file to resume from.

        Returns:
            Dictionary with ``batch_id``, ``num_trials``, ``summary_path``,
            ``duration_seconds`` and ``failed_trials``.
        """
        print(f"Starting batch execution: {self.batch_id}")
        print(f"Total trials: {len(self.trial_configs)}")
        print(f"Output directory: {self.output_dir}")

        start_time = time.time()
        completed = set()
        failed: List[int] = []
        summaries: List[Dict[str, Any]] = []

        if resume_from:
            checkpoint = self._load_checkpoint(resume_from)
            completed = set(checkpoint["completed_trials"])
            failed = checkpoint.get("failed_trials", [])
            summaries = checkpoint.get("summaries", [])
            print(f"Resuming from checkpoint: {len(completed)} completed")

        total = len(self.trial_configs)
        for idx, trial in enumerate(self.trial_configs):
            if idx in completed:
                print(f"[{idx + 1}/{total}] Skipping {trial['trial_id']} (already completed)")
                continue
            if idx in failed:
                # Retried after a resume; the outcome below replaces it
                failed.remove(idx)
            try:
                print(f"[{idx + 1}/{total}] Executing {trial['trial_id']}...")
                summary = self._execute_single_trial(trial)
                summary["trial"] = trial
                summary["trial_index"] = idx
                summaries.append(summary)
                completed.add(idx)
            except (ValueError, RuntimeError, OSError) as e:
                print(f"ERROR executing trial {idx}: {e}")
                failed.append(idx)
            self._save_checkpoint(completed, failed, summaries, idx + 1)

        summary_path = self.output_dir / f"{self.batch_id}_summary.json"
        with open(summary_path, "w") as f:
            json.dump({"batch_id": self.batch_id, "trials": summaries}, f, indent=2, default=str)
        self._save_metadata()
        self._save_trial_index()

        duration = time.time() - start_time
        print("\nBatch execution completed!")
        print(f"Duration: {duration:.2f} seconds")
        print(f"Successful: {len(summaries)}/{total}")
        print(f"Failed: {len(failed)}")

        return {
            "batch_id": self.batch_id,
            "num_trials": len(summaries),
            "summary_path": str(summary_path),
            "duration_seconds": duration,
            "failed_trials": failed,
        }

    def _execute_single_trial(self, trial: Dict[str, Any]) -> Dict[str, Any]:
        config = self.trial_config(trial)
        engine = TrialEngine(config, self.cloth, sink=sink_from_config(config))
        result = run_headless(engine, refresh_hz=self.refresh_hz)
        summary = {
            key: value
            for key, value in result.summary.items()
            if key != "selected_dot_ids"
        }
        summary["output_path"] = str(result.output_path) if result.output_path else None
        return summary

    def _save_checkpoint(
        self,
        completed: set,
        failed: list,
        summaries: list,
        current_idx: int,
    ) -> None:
        checkpoint = {
            "batch_id": self.batch_id,
            "completed_trials": sorted(completed),
            "failed_trials": failed,
            "summaries": summaries,
            "total_trials": len(self.trial_configs),
            "current_trial": current_idx,
            "timestamp": datetime.now().isoformat(),
        }
        with open(self.checkpoint_path, "w") as f:
            json.dump(checkpoint, f, indent=2, default=str)

    def _load_checkpoint(self, checkpoint_path: Union[str, Path]) -> Dict[str, Any]:
        with open(checkpoint_path, "r") as f:
            return json.load(f)

    def _save_metadata(self) -> None:
        metadata = {
            "batch_id": self.batch_id,
            "config": self.base_config.to_dict(),
            "sweep": self.sweep,
            "repetitions": self.repetitions,
            "base_seed": self.base_seed,
            "num_trials": len(self.trial_configs),
            "timestamp": datetime.now().isoformat(),
        }
        with open(self.output_dir / "batch_metadata.json", "w") as f:
            json.dump(metadata, f, indent=2, default=str)

    def _save_trial_index(self) -> None:
        index = {f"trial_{idx:04d}": trial for idx, trial in enumerate(self.trial_configs)}
        with open(self.output_dir / "trial_index.json", "w") as f:
            json.dump(index, f, indent=2, default=str)
