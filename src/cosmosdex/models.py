"""
Data models for tokens, pools and liquidity positions.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from .amounts import format_amount, format_compact

TOKEN_KINDS = ("native", "ibc", "cw20", "lp")


def _uint(value: Any) -> int:
    """Parse a Uint128 as returned by the contract (decimal string)."""
    if value is None or value == "":
        return 0
    return int(value)


@dataclass
class IbcTrace:
    source_channel: Optional[str] = None
    source_denom: Optional[str] = None
    source_chain: Optional[str] = None


@dataclass
class Token:
    denom: str
    symbol: str
    name: str
    decimals: int = 6
    logo: Optional[str] = None
    kind: str = "native"
    description: Optional[str] = None
    coingecko_id: Optional[str] = None
    ibc: Optional[IbcTrace] = None
    balance: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.kind == "native"

    @property
    def is_ibc(self) -> bool:
        return self.kind == "ibc" or self.ibc is not None

    @property
    def is_lp(self) -> bool:
        return self.kind == "lp"

    @classmethod
    def from_dict(cls, data: dict) -> "Token":
        ibc = data.get("ibc")
        return cls(
            denom=data["denom"],
            symbol=data.get("symbol") or data["denom"],
            name=data.get("name") or data.get("symbol") or data["denom"],
            decimals=int(data.get("decimals", 6)),
            logo=data.get("logo"),
            kind=data.get("kind", "native"),
            description=data.get("description"),
            coingecko_id=data.get("coingecko_id"),
            ibc=IbcTrace(**ibc) if ibc else None,
            balance=data.get("balance"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __repr__(self) -> str:
        return self.symbol

    def __str__(self) -> str:
        lines = [
            f"{self.symbol} ({self.kind})",
            f"├─ {self.name}",
            f"├─ {self.denom}",
        ]
        if self.ibc is not None and self.ibc.source_chain:
            lines.append(f"├─ from {self.ibc.source_chain} ({self.ibc.source_denom})")
        lines.append(f"└─ {self.decimals} decimals")
        return "\n".join(lines)


@dataclass
class Pool:
    token_a: str
    token_b: str
    reserve_a: int
    reserve_b: int
    total_liquidity: int

    @classmethod
    def from_dict(cls, data: dict) -> "Pool":
        return cls(
            token_a=data["token_a"],
            token_b=data["token_b"],
            reserve_a=_uint(data.get("reserve_a")),
            reserve_b=_uint(data.get("reserve_b")),
            total_liquidity=_uint(data.get("total_liquidity")),
        )

    @property
    def pair(self) -> tuple:
        return (self.token_a, self.token_b)

    def price_a_in_b(self) -> Optional[Decimal]:
        """Units of token_b per unit of token_a, in base units."""
        if self.reserve_a == 0:
            return None
        return Decimal(self.reserve_b) / Decimal(self.reserve_a)

    def to_dict(self) -> Dict[str, str]:
        return {
            "token_a": self.token_a,
            "token_b": self.token_b,
            "reserve_a": str(self.reserve_a),
            "reserve_b": str(self.reserve_b),
            "total_liquidity": str(self.total_liquidity),
        }

    def __repr__(self) -> str:
        return f"{self.token_a}/{self.token_b}"


@dataclass
class PoolListing:
    pool: Pool
    token_a: Token
    token_b: Token
    source: str = "contract"

    def __str__(self) -> str:
        price = self.pool.price_a_in_b()
        if price is not None:
            scale = Decimal(10) ** (self.token_a.decimals - self.token_b.decimals)
            price_text = f"{price * scale:.4f}"
        else:
            price_text = "-"
        return (
            f"{self.token_a.symbol}/{self.token_b.symbol}\n"
            f"├─ {self.token_a.symbol}: {format_compact(self.pool.reserve_a, self.token_a.decimals)}\n"
            f"├─ {self.token_b.symbol}: {format_compact(self.pool.reserve_b, self.token_b.decimals)}\n"
            f"├─ price: 1 {self.token_a.symbol} = {price_text} {self.token_b.symbol}\n"
            f"└─ liquidity: {format_compact(self.pool.total_liquidity, 6)}"
        )


@dataclass
class LiquidityInfo:
    liquidity: int
    share_a: int
    share_b: int

    @classmethod
    def from_dict(cls, data: dict) -> "LiquidityInfo":
        return cls(
            liquidity=_uint(data.get("liquidity")),
            share_a=_uint(data.get("share_a")),
            share_b=_uint(data.get("share_b")),
        )


@dataclass
class SimulationResult:
    amount_out: int
    fee: int
    price_impact: str

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationResult":
        return cls(
            amount_out=_uint(data.get("amount_out")),
            fee=_uint(data.get("fee")),
            price_impact=str(data.get("price_impact", "0%")),
        )


@dataclass
class ContractConfig:
    admin: str
    fee_rate: int

    @classmethod
    def from_dict(cls, data: dict) -> "ContractConfig":
        return cls(admin=data["admin"], fee_rate=_uint(data.get("fee_rate")))

    @property
    def fee_percent(self) -> Decimal:
        return Decimal(self.fee_rate) / Decimal(100)


@dataclass
class LPPosition:
    """A user's share of a pool, synthesized client-side from queries."""

    lp_token: Token
    token_a: Token
    token_b: Token
    liquidity: int
    pool: Pool
    share_a: int = 0
    share_b: int = 0

    @property
    def pair_id(self) -> str:
        return self.lp_token.denom

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lp_token": self.lp_token.to_dict(),
            "token_a": self.token_a.to_dict(),
            "token_b": self.token_b.to_dict(),
            "liquidity": str(self.liquidity),
            "pool": self.pool.to_dict(),
            "share_a": str(self.share_a),
            "share_b": str(self.share_b),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LPPosition":
        return cls(
            lp_token=Token.from_dict(data["lp_token"]),
            token_a=Token.from_dict(data["token_a"]),
            token_b=Token.from_dict(data["token_b"]),
            liquidity=_uint(data.get("liquidity")),
            pool=Pool.from_dict(data["pool"]),
            share_a=_uint(data.get("share_a")),
            share_b=_uint(data.get("share_b")),
        )

    def __str__(self) -> str:
        return (
            f"{self.lp_token.symbol}\n"
            f"├─ liquidity: {format_amount(self.liquidity, self.lp_token.decimals)}\n"
            f"├─ {self.token_a.symbol}: {format_amount(self.share_a, self.token_a.decimals)}\n"
            f"└─ {self.token_b.symbol}: {format_amount(self.share_b, self.token_b.decimals)}"
        )


@dataclass
class ExecuteResult:
    tx_hash: str
    height: Optional[int] = None
    gas_used: Optional[int] = None
    raw_log: Optional[str] = None


@dataclass
class Cw20TokenConfig:
    name: str
    symbol: str
    initial_supply: str
    recipient: str
    decimals: int = 6
    max_supply: Optional[str] = None
    mintable: bool = False
    description: Optional[str] = None
    logo_url: Optional[str] = None


@dataclass
class LaunchResult:
    contract_address: str
    token: Token
    total_supply: int
    max_supply: Optional[int] = None
    mintable: bool = False
    tx_hash: Optional[str] = None


@dataclass
class Pair:
    id: str
    token_a: Token
    token_b: Token
    lp_token: Token
    created: float
    pool: Optional[Pool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "token_a": self.token_a.to_dict(),
            "token_b": self.token_b.to_dict(),
            "lp_token": self.lp_token.to_dict(),
            "created": self.created,
            "pool": self.pool.to_dict() if self.pool else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Pair":
        pool = data.get("pool")
        return cls(
            id=data["id"],
            token_a=Token.from_dict(data["token_a"]),
            token_b=Token.from_dict(data["token_b"]),
            lp_token=Token.from_dict(data["lp_token"]),
            created=data.get("created", 0),
            pool=Pool.from_dict(pool) if pool else None,
        )
