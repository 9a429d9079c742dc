from pathlib import Path

from prometheus_client import Counter, Gauge, write_to_textfile
from prometheus_client.registry import CollectorRegistry

class MetricsCollector:
    """Collector for browse run metrics, exported as a node-exporter textfile."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self._registry = registry or CollectorRegistry()
        self._deepest = 0

        self.nodes_rendered = Counter(
            "uaconsole_nodes_rendered_total",
            "Number of nodes rendered during the browse",
            registry=self._registry,
        )

        self.nodes_skipped = Counter(
            "uaconsole_nodes_skipped_total",
            "Number of nodes skipped during the browse",
            ["reason"],
            registry=self._registry,
        )

        self.value_read_errors = Counter(
            "uaconsole_value_read_errors_total",
            "Number of variable values that could not be read",
            registry=self._registry,
        )

        self.max_depth_reached = Gauge(
            "uaconsole_max_depth_reached",
            "Deepest level rendered during the browse",
            registry=self._registry,
        )

        self.browse_duration = Gauge(
            "uaconsole_browse_duration_seconds",
            "Wall time of the last browse",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_rendered(self, depth: int) -> None:
        self.nodes_rendered.inc()
        if depth > self._deepest:
            self._deepest = depth
            self.max_depth_reached.set(depth)

    def record_skipped(self, reason: str) -> None:
        self.nodes_skipped.labels(reason=reason).inc()

    def record_value_error(self) -> None:
        self.value_read_errors.inc()

    def set_duration(self, seconds: float) -> None:
        self.browse_duration.set(seconds)

    def write_textfile(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        write_to_textfile(str(path), self._registry)
