import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"


@dataclass(frozen=True, slots=True)
class SignerSettings:
    address: str
    seed: str
    weight: int = 1


@dataclass(frozen=True, slots=True)
class MultisignSettings:
    address: str
    seed: str
    threshold: int
    signers: tuple[SignerSettings, ...] = ()


@dataclass(frozen=True, slots=True)
class Settings:
    """Everything a conformance run needs to know about the node and its fixtures."""

    ws_url: str
    rpc_url: str
    funding_address: str
    funding_seed: str
    case_timeout: float = 20.0
    poll_interval: float = 1.0
    poll_attempts: int = 10
    poll_overall: float = 15.0
    rpc_timeout: float = 5.0
    probe_retries: int = 30
    probe_delay: float = 2.0
    destinations: tuple[str, ...] = ()
    order_counterparty: str = ""
    payment_destination: str = ""
    currency: str = "USD"
    trust_limit: str = "1341.1"
    issued_amount: str = "123"
    max_ledger_version_offset: int = 10
    multisign: MultisignSettings | None = field(default=None)

    def with_overrides(self, **fields) -> "Settings":
        return replace(self, **{k: v for k, v in fields.items() if v is not None})


def _rippled_host(rippled: dict) -> str:
    if Path("/.dockerenv").is_file():
        host = rippled["docker"]
    else:
        host = rippled["local"]
    return os.getenv("RIPPLED_IP", host)


def _multisign(section: dict | None) -> MultisignSettings | None:
    if not section:
        return None
    signers = tuple(
        SignerSettings(address=s["address"], seed=s["seed"], weight=int(s.get("weight", 1)))
        for s in section.get("signers", [])
    )
    return MultisignSettings(
        address=section["address"],
        seed=section["seed"],
        threshold=int(section["threshold"]),
        signers=signers,
    )


def settings_from_dict(cfg: dict) -> Settings:
    rippled = cfg["rippled"]
    host = _rippled_host(rippled)
    to = cfg.get("timeout", {})
    fx = cfg.get("fixtures", {})
    fw = cfg["funding_account"]

    return Settings(
        ws_url=os.getenv("WS_URL", f"ws://{host}:{rippled['ws_port']}"),
        rpc_url=os.getenv("RPC_URL", f"http://{host}:{rippled['rpc_port']}"),
        funding_address=fw["address"],
        funding_seed=fw["seed"],
        case_timeout=float(to.get("case", 20.0)),
        poll_interval=float(to.get("interval", 1.0)),
        poll_attempts=int(to.get("attempts", 10)),
        poll_overall=float(to.get("overall", 15.0)),
        rpc_timeout=float(to.get("rpc", 5.0)),
        probe_retries=int(to.get("probe_retries", 30)),
        probe_delay=float(to.get("probe_delay", 2.0)),
        destinations=tuple(fx.get("destinations", ())),
        order_counterparty=fx.get("order_counterparty", ""),
        payment_destination=fx.get("payment_destination", ""),
        currency=fx.get("currency", "USD"),
        trust_limit=str(fx.get("trust_limit", "1341.1")),
        issued_amount=str(fx.get("issued_amount", "123")),
        max_ledger_version_offset=int(fx.get("max_ledger_version_offset", 10)),
        multisign=_multisign(cfg.get("multisign")),
    )


def load_settings(path: str | Path | None = None) -> Settings:
    """Read a TOML config (the packaged one by default) into Settings."""
    cfg = tomllib.loads(Path(path or config_file).read_text())
    return settings_from_dict(cfg)
