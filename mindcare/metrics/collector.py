"""
Usage metrics for assistant runs: reply latency, errors and voice reconnections.
"""

import json
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger()


@dataclass
class LatencyStats:
    """Distribution of one latency series, in milliseconds."""
    min: float
    max: float
    avg: float
    p50: float
    p95: float
    samples: int


@dataclass
class RunMetrics:
    """Counters for one assistant run."""
    run_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    total_interactions: int = 0
    reply_latencies: List[float] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    reconnections: int = 0
    voice_cycles: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_time"] = self.start_time.isoformat()
        data["end_time"] = self.end_time.isoformat() if self.end_time else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunMetrics":
        data = dict(data)
        data["start_time"] = datetime.fromisoformat(data["start_time"])
        if data.get("end_time"):
            data["end_time"] = datetime.fromisoformat(data["end_time"])
        return cls(**data)


def latency_stats(latencies: List[float]) -> LatencyStats:
    if not latencies:
        return LatencyStats(0, 0, 0, 0, 0, 0)

    ordered = sorted(latencies)
    count = len(ordered)

    def percentile(p: float) -> float:
        return ordered[min(int(p * count), count - 1)]

    return LatencyStats(
        min=ordered[0],
        max=ordered[-1],
        avg=sum(ordered) / count,
        p50=percentile(0.5),
        p95=percentile(0.95),
        samples=count,
    )


class MetricsCollector:
    """
    Records what happened during a run and writes it to one JSON file per run.
    Recording calls outside an active run are ignored.
    """

    def __init__(self, storage_path: Optional[Path] = None):
        self.storage_path = Path(storage_path or Path.home() / ".mindcare" / "metrics").expanduser()
        self.storage_path.mkdir(parents=True, exist_ok=True)

        self.current_run: Optional[RunMetrics] = None
        self._started_at: Optional[float] = None

    def start_session(self, run_id: str) -> None:
        logger.debug("Starting metrics collection", run_id=run_id)
        self.current_run = RunMetrics(run_id=run_id, start_time=datetime.now())
        self._started_at = time.monotonic()

    def end_session(self) -> None:
        if not self.current_run:
            logger.warning("No active metrics run to end")
            return

        self.current_run.end_time = datetime.now()
        logger.debug(
            "Ending metrics collection",
            run_id=self.current_run.run_id,
            interactions=self.current_run.total_interactions,
        )

    def record_reply_latency(self, latency_ms: float) -> None:
        if self.current_run:
            self.current_run.reply_latencies.append(latency_ms)

    def record_interaction(self) -> None:
        if self.current_run:
            self.current_run.total_interactions += 1

    def record_error(self, component: str, error: str) -> None:
        if self.current_run:
            self.current_run.errors.append(
                {"timestamp": datetime.now().isoformat(), "component": component, "error": error}
            )

    def record_reconnection(self) -> None:
        if self.current_run:
            self.current_run.reconnections += 1

    def record_voice_cycle(self) -> None:
        if self.current_run:
            self.current_run.voice_cycles += 1

    def get_summary(self) -> Dict[str, Any]:
        run = self.current_run
        if not run:
            return {"error": "No active run"}

        duration = time.monotonic() - self._started_at if self._started_at else 0
        return {
            "run_id": run.run_id,
            "duration_seconds": duration,
            "total_interactions": run.total_interactions,
            "reply_latency_ms": asdict(latency_stats(run.reply_latencies)),
            "total_errors": len(run.errors),
            "error_rate": len(run.errors) / max(1, run.total_interactions),
            "reconnections": run.reconnections,
            "voice_cycles": run.voice_cycles,
        }

    def save_metrics(self) -> Optional[Path]:
        """Write the current run to storage. Returns the file written."""
        if not self.current_run:
            logger.warning("No metrics run to save")
            return None

        filename = f"run_{self.current_run.run_id}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
        filepath = self.storage_path / filename
        try:
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(self.current_run.to_dict(), f, indent=2)
        except OSError as e:
            logger.error("Failed to save metrics", error=str(e))
            return None

        logger.info("Metrics saved", filepath=str(filepath))
        return filepath

    def _read_run(self, filepath: Path) -> RunMetrics:
        with open(filepath, "r", encoding="utf-8") as f:
            return RunMetrics.from_dict(json.load(f))

    def load_session_metrics(self, run_id: str) -> Optional[RunMetrics]:
        """Load the most recently saved metrics of a run."""
        files = list(self.storage_path.glob(f"run_{run_id}_*.json"))
        if not files:
            return None

        latest = max(files, key=lambda f: f.stat().st_mtime)
        try:
            return self._read_run(latest)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error("Failed to load run metrics", run_id=run_id, error=str(e))
            return None

    def generate_report(self, days: int = 7) -> Dict[str, Any]:
        """Aggregate every run saved in the last N days."""
        cutoff = datetime.now() - timedelta(days=days)

        runs: List[RunMetrics] = []
        for filepath in self.storage_path.glob("run_*.json"):
            if datetime.fromtimestamp(filepath.stat().st_mtime) < cutoff:
                continue
            try:
                runs.append(self._read_run(filepath))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning("Skipping unreadable metrics file", filepath=str(filepath), error=str(e))

        if not runs:
            return {
                "period_days": days,
                "total_runs": 0,
                "total_interactions": 0,
                "message": "No data available for the specified period",
            }

        latencies: List[float] = []
        for run in runs:
            latencies.extend(run.reply_latencies)
        interactions = sum(run.total_interactions for run in runs)
        errors = sum(len(run.errors) for run in runs)

        return {
            "period_days": days,
            "total_runs": len(runs),
            "total_interactions": interactions,
            "total_errors": errors,
            "error_rate": errors / max(1, interactions),
            "reconnections": sum(run.reconnections for run in runs),
            "voice_cycles": sum(run.voice_cycles for run in runs),
            "reply_latency_ms": asdict(latency_stats(latencies)),
        }
