"""Centralized configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from risk_backtest.backtest.simulator import SimulatorConfig
from risk_backtest.risk.state import RiskConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Market
    market: str = Field(default="BTC-PERP", description="Perpetual market to backtest")
    timeframe: str = Field(default="15m", description="Bar timeframe (e.g. 15m, 1h, 4h)")
    leverage: float = Field(default=5.0, ge=1.0, le=50.0, description="Leverage applied to sizing")
    profit_target: float = Field(
        default=1.5, gt=0.0, description="Take-profit as a multiple of margin (price move x leverage)"
    )

    # Risk Management
    initial_capital: float = Field(default=10_000.0, gt=0.0, description="Starting capital in USD")
    max_risk_per_trade: float = Field(
        default=0.02, gt=0.0, le=1.0, description="Risk per trade as fraction of equity"
    )
    max_position_size: float = Field(
        default=0.5, gt=0.0, le=1.0, description="Cap on the risk fraction of a single position"
    )
    max_open_positions: int = Field(default=1, ge=1, description="Open positions without pyramiding")
    max_drawdown: float = Field(
        default=0.25, gt=0.0, le=1.0, description="Drawdown at which trading stops"
    )
    trading_fee: float = Field(default=0.001, ge=0.0, lt=1.0, description="Fee rate per side")

    # Adaptive sizing
    use_volatility_adjustment: bool = Field(default=False, description="Scale risk by volatility")
    volatility_window: int = Field(default=20, ge=2, description="Bars in the volatility window")
    use_kelly_criterion: bool = Field(default=False, description="Cap risk with fractional Kelly")
    kelly_fraction: float = Field(default=0.5, gt=0.0, le=1.0, description="Kelly fraction")
    use_anti_martingale: bool = Field(default=False, description="Scale risk by win/loss streaks")
    win_multiplier: float = Field(default=1.5, gt=0.0, description="Risk multiplier per win")
    loss_multiplier: float = Field(default=0.7, gt=0.0, description="Risk multiplier per loss")
    pyramiding: bool = Field(default=False, description="Allow adding to positions")
    pyramiding_levels: int = Field(default=3, ge=1, description="Max entries per direction")

    # Strategy Parameters
    fast_period: int = Field(default=20, ge=2, le=100, description="Fast EMA period")
    slow_period: int = Field(default=50, ge=5, le=400, description="Slow EMA period")

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Market data directory")
    results_dir: Path = Field(default=Path("results/backtests"), description="Results directory")
    log_dir: Path = Field(default=Path("logs"), description="Log storage directory")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_json: bool = Field(default=False, description="Render logs as JSON")

    @field_validator("slow_period")
    @classmethod
    def slow_must_be_greater_than_fast(cls, v: int, info) -> int:
        """Ensure slow period is greater than fast period."""
        fast = info.data.get("fast_period", 20)
        if v <= fast:
            raise ValueError(f"slow_period ({v}) must be greater than fast_period ({fast})")
        return v

    def to_risk_config(self, **overrides) -> RiskConfig:
        """Build a RiskConfig from settings, with optional field overrides."""
        values = {
            "initial_capital": self.initial_capital,
            "max_risk_per_trade": self.max_risk_per_trade,
            "max_position_size": self.max_position_size,
            "max_open_positions": self.max_open_positions,
            "max_drawdown": self.max_drawdown,
            "trading_fee": self.trading_fee,
            "use_volatility_adjustment": self.use_volatility_adjustment,
            "volatility_window": self.volatility_window,
            "pyramiding": self.pyramiding,
            "pyramiding_levels": self.pyramiding_levels,
            "use_anti_martingale": self.use_anti_martingale,
            "win_multiplier": self.win_multiplier,
            "loss_multiplier": self.loss_multiplier,
            "use_kelly_criterion": self.use_kelly_criterion,
            "kelly_fraction": self.kelly_fraction,
        }
        values.update(overrides)
        return RiskConfig(**values)

    def to_simulator_config(self, risk: RiskConfig | None = None, **overrides) -> SimulatorConfig:
        """Build a SimulatorConfig from settings, with optional field overrides."""
        values = {
            "market": self.market,
            "timeframe": self.timeframe,
            "leverage": self.leverage,
            "profit_target": self.profit_target,
        }
        values.update(overrides)
        return SimulatorConfig(risk=risk or self.to_risk_config(), **values)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
