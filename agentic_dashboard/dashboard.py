from __future__ import annotations

from dataclasses import dataclass, field

from .adapters import (
    AcfsAdapter,
    AutoClaudeAdapter,
    AutomakerAdapter,
    ContinuousClaudeAdapter,
    ToolAdapter,
)
from .config import Config
from .process_manager import ProcessRunner
from .status import StatusAggregator
from .store import StateStore


@dataclass
class Dashboard:
    """Wires the store, runner, aggregator and the four tool adapters together."""

    config: Config
    store: StateStore
    runner: ProcessRunner
    status: StatusAggregator
    acfs: AcfsAdapter
    adapters: dict[str, ToolAdapter] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Config) -> Dashboard:
        store = StateStore(config.state_file)
        runner = ProcessRunner(config.log_dir)
        acfs = AcfsAdapter(config, store, runner)
        adapters: dict[str, ToolAdapter] = {
            adapter.key: adapter
            for adapter in (
                AutoClaudeAdapter(config, store, runner),
                ContinuousClaudeAdapter(config, store, runner),
                AutomakerAdapter(config, store, runner),
                acfs,
            )
        }
        return cls(
            config=config,
            store=store,
            runner=runner,
            status=StatusAggregator(store),
            acfs=acfs,
            adapters=adapters,
        )

    def adapter(self, key: str) -> ToolAdapter:
        try:
            return self.adapters[key]
        except KeyError:
            raise KeyError(f"Unknown tool '{key}'") from None
