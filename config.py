import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        aggregation_timeout_secs: float,
        cash_purchase_types: tuple[str, ...],
        max_count_value: int,
        max_integer_amount: int,
        max_decimal_amount: int,
        scheduler_enabled: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.aggregation_timeout_secs = aggregation_timeout_secs
        self.cash_purchase_types = cash_purchase_types
        self.max_count_value = max_count_value
        self.max_integer_amount = max_integer_amount
        self.max_decimal_amount = max_decimal_amount
        self.scheduler_enabled = scheduler_enabled


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "ledger.db"
    database_url = os.getenv("LEDGER_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("LEDGER_TIMEZONE", "UTC")
    aggregation_timeout_secs = float(
        os.getenv("LEDGER_AGGREGATION_TIMEOUT_SECS", "10")
    )
    if aggregation_timeout_secs <= 0:
        raise ValueError("LEDGER_AGGREGATION_TIMEOUT_SECS must be positive")
    cash_purchase_types = _split_csv(
        os.getenv("LEDGER_CASH_PURCHASE_TYPES", "cash,نقد")
    )
    max_count_value = int(os.getenv("LEDGER_MAX_COUNT_VALUE", "10000"))
    max_integer_amount = int(os.getenv("LEDGER_MAX_INTEGER_AMOUNT", "1000000"))
    max_decimal_amount = int(
        os.getenv("LEDGER_MAX_DECIMAL_AMOUNT", "100000000000")
    )
    scheduler_enabled = os.getenv("LEDGER_SCHEDULER_ENABLED", "1") not in (
        "0",
        "false",
        "no",
    )
    return Settings(
        database_url=database_url,
        timezone=timezone,
        aggregation_timeout_secs=aggregation_timeout_secs,
        cash_purchase_types=cash_purchase_types,
        max_count_value=max_count_value,
        max_integer_amount=max_integer_amount,
        max_decimal_amount=max_decimal_amount,
        scheduler_enabled=scheduler_enabled,
    )
