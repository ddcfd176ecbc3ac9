"""TOML configuration loader for the price comparison app."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]


@dataclass
class CameraConfig:
    index: int = 0
    save_dir: str = "/tmp/mubu"


@dataclass
class ClaudeVisionConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiVisionConfig:
    api_key: str = ""
    model: str = "gemini-2.5-flash"


@dataclass
class VisionConfig:
    backend: str = "gemini"
    claude: ClaudeVisionConfig = field(default_factory=ClaudeVisionConfig)
    gemini: GeminiVisionConfig = field(default_factory=GeminiVisionConfig)


@dataclass
class ExchangeConfig:
    home_currency: str = "KRW"
    primary_url: str = "https://open.er-api.com/v6/latest/USD"
    fallback_url: str = "https://api.exchangerate.host/latest?base=USD"
    cache_ttl: int = 300


@dataclass
class HTTPConfig:
    timeout: float = 8.0
    retries: int = 2


@dataclass
class NaverConfig:
    client_id: str = ""
    client_secret: str = ""
    cache_ttl: int = 180


@dataclass
class ShoppingConfig:
    max_results: int = 3
    naver: NaverConfig = field(default_factory=NaverConfig)


@dataclass
class AffiliateConfig:
    coupang_partner_id: str = ""
    naver_affiliate_id: str = ""
    app_url: str = "http://localhost:5000"


@dataclass
class UsageConfig:
    soft_wall_at: int = 5
    hard_wall_at: int = 500


@dataclass
class DatabaseConfig:
    device_path: str = "~/.config/mubu/device.db"
    account_path: str = "~/.config/mubu/account.db"


@dataclass
class StorageConfig:
    backend: str = "local"
    local_dir: str = "~/.config/mubu/objects"
    public_base_url: str = "http://localhost:5000"
    gdrive_credentials_path: str = "~/.config/mubu/gdrive_credentials.json"
    gdrive_token_path: str = "~/.config/mubu/gdrive_token.json"
    gdrive_folder_id: str = ""


@dataclass
class IamportConfig:
    api_key: str = ""
    api_secret: str = ""


@dataclass
class StripeConfig:
    secret_key: str = ""
    currency: str = "krw"


@dataclass
class PaymentConfig:
    iamport: IamportConfig = field(default_factory=IamportConfig)
    stripe: StripeConfig = field(default_factory=StripeConfig)


@dataclass
class SchedulerConfig:
    expire_schedule: str = "0 0 * * *"
    purge_schedule: str = "30 3 * * *"
    anonymous_retention_days: int = 30


@dataclass
class MubuConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    http: HTTPConfig = field(default_factory=HTTPConfig)
    shopping: ShoppingConfig = field(default_factory=ShoppingConfig)
    affiliate: AffiliateConfig = field(default_factory=AffiliateConfig)
    usage: UsageConfig = field(default_factory=UsageConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} 는 정수여야 합니다: {value!r}") from None


def load_config(path: str | Path | None = None) -> MubuConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys can be overridden via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cam = raw.get("camera", {})
    vis = raw.get("vision", {})
    fx = raw.get("exchange", {})
    htp = raw.get("http", {})
    shp = raw.get("shopping", {})
    aff = raw.get("affiliate", {})
    use = raw.get("usage", {})
    dbs = raw.get("database", {})
    sto = raw.get("storage", {})
    pay = raw.get("payment", {})
    sch = raw.get("scheduler", {})

    claude_cfg = vis.get("claude", {})
    gemini_cfg = vis.get("gemini", {})
    naver_cfg = shp.get("naver", {})
    iamport_cfg = pay.get("iamport", {})
    stripe_cfg = pay.get("stripe", {})

    # Resolve secrets: config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )
    naver_id = naver_cfg.get("client_id", "") or os.environ.get(
        "NAVER_CLIENT_ID", ""
    )
    naver_secret = naver_cfg.get("client_secret", "") or os.environ.get(
        "NAVER_CLIENT_SECRET", ""
    )

    # Thresholds: environment variable → config file → default
    soft_wall_at = _env_int("MUBU_SOFT_WALL_AT", use.get("soft_wall_at", 5))
    hard_wall_at = _env_int("MUBU_HARD_WALL_AT", use.get("hard_wall_at", 500))
    if soft_wall_at > hard_wall_at:
        raise ValueError(
            f"soft_wall_at ({soft_wall_at}) 는 hard_wall_at ({hard_wall_at}) 이하여야 합니다"
        )

    return MubuConfig(
        camera=CameraConfig(
            index=cam.get("index", 0),
            save_dir=cam.get("save_dir", "/tmp/mubu"),
        ),
        vision=VisionConfig(
            backend=vis.get("backend", "gemini"),
            claude=ClaudeVisionConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiVisionConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.5-flash"),
            ),
        ),
        exchange=ExchangeConfig(
            home_currency=fx.get("home_currency", "KRW"),
            primary_url=fx.get(
                "primary_url", "https://open.er-api.com/v6/latest/USD"
            ),
            fallback_url=fx.get(
                "fallback_url", "https://api.exchangerate.host/latest?base=USD"
            ),
            cache_ttl=fx.get("cache_ttl", 300),
        ),
        http=HTTPConfig(
            timeout=htp.get("timeout", 8.0),
            retries=htp.get("retries", 2),
        ),
        shopping=ShoppingConfig(
            max_results=shp.get("max_results", 3),
            naver=NaverConfig(
                client_id=naver_id,
                client_secret=naver_secret,
                cache_ttl=naver_cfg.get("cache_ttl", 180),
            ),
        ),
        affiliate=AffiliateConfig(
            coupang_partner_id=aff.get("coupang_partner_id", "")
            or os.environ.get("COUPANG_PARTNER_ID", ""),
            naver_affiliate_id=aff.get("naver_affiliate_id", "")
            or os.environ.get("NAVER_AFFILIATE_ID", ""),
            app_url=aff.get("app_url", "") or os.environ.get(
                "APP_URL", "http://localhost:5000"
            ),
        ),
        usage=UsageConfig(
            soft_wall_at=soft_wall_at,
            hard_wall_at=hard_wall_at,
        ),
        database=DatabaseConfig(
            device_path=dbs.get("device_path", "~/.config/mubu/device.db"),
            account_path=dbs.get("account_path", "~/.config/mubu/account.db"),
        ),
        storage=StorageConfig(
            backend=sto.get("backend", "local"),
            local_dir=sto.get("local_dir", "~/.config/mubu/objects"),
            public_base_url=sto.get("public_base_url", "http://localhost:5000"),
            gdrive_credentials_path=sto.get(
                "gdrive_credentials_path",
                "~/.config/mubu/gdrive_credentials.json",
            ),
            gdrive_token_path=sto.get(
                "gdrive_token_path",
                "~/.config/mubu/gdrive_token.json",
            ),
            gdrive_folder_id=sto.get("gdrive_folder_id", ""),
        ),
        payment=PaymentConfig(
            iamport=IamportConfig(
                api_key=iamport_cfg.get("api_key", "")
                or os.environ.get("IMP_KEY", ""),
                api_secret=iamport_cfg.get("api_secret", "")
                or os.environ.get("IMP_SECRET", ""),
            ),
            stripe=StripeConfig(
                secret_key=stripe_cfg.get("secret_key", "")
                or os.environ.get("STRIPE_SECRET_KEY", ""),
                currency=stripe_cfg.get("currency", "krw"),
            ),
        ),
        scheduler=SchedulerConfig(
            expire_schedule=sch.get("expire_schedule", "0 0 * * *"),
            purge_schedule=sch.get("purge_schedule", "30 3 * * *"),
            anonymous_retention_days=sch.get("anonymous_retention_days", 30),
        ),
    )
