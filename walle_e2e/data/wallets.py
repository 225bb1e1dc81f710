"""
Wallet catalogue for agent creation runs.

Every address can create at most one agent, so runs draw from this pool
through the ledger and never reuse an address.
"""

import random
from dataclasses import dataclass
from typing import Iterable

from walle_e2e.data.ledger import Chooser, ResourceLedger

CHAINS = ("ethereum", "base")

WALLETS: dict[str, tuple[str, ...]] = {
    "ethereum": (
        "0xd772ff1b9530fb95c4fb3759f623128b5d2ad879",
        "0x7077190a12b7bb40c0ded8d47b5d8cc599ada5c4",
        "0xa841d6c4764771e50a7e4247429a2840fd04539b",
        "0x43fa92289e934a5591bdecbe28c419494ea39d07",
        "0x361652d911b8f2207721ce4b0dcd86d6e5179eb0",
        "0x6e314220258a6fa41c2d50cd98f123ffff247d9e",
        "0xa104ca3b307382977cf73da7f8391b0cb56c2228",
        "0x28839a2d1fe136108883e644541f380ebb1f5ca1",
        "0xc5d144feedb105794d6e9072c2a22a910df32c69",
        "0x48c59a9c32f6111dc0efeb9e59915d741fde15af",
        "0xd1fec7163e40eed9c6b8f4672d3b57315e99702b",
        "0xa2185397cc81c0472a558e408080734166de20bf",
        "0xa71ba733d2b206ef7378db09353cd043d16db402",
        "0x6b7d0cc17fee1ac9531de30884b0d3ceaa07fd86",
        "0x756b84eb85fcc1f4fcdcc2b08db6a86e135fbc25",
        "0x458a6399f23fb34b98fd12fc855fea89feb2be11",
        "0x4f812f09f4838a001b3ae4b8e7d1e2c4c43e5746",
        "0x03736eb4aee4c0bbe7ead5f14a88e393f44da66c",
        "0xcc2feb273dddab4d4ede72e06c82adfa61684846",
        "0x9bcd04fcf5572ada0356197115f077e55dddd256",
    ),
    "base": (
        "0x88f7667732c23847174cb2d135d0c4a546e70202",
        "0x6e82335749761b4e134f0f44326e5e160b2e5c00",
        "0x3c8ec95dfa17a4b479f943fc22525c1b34d4126a",
        "0x13c634850b62c8c92697837131edf03728d5d664",
        "0xc22826b44ea3fbb52ce0e9c76ea490c63987f870",
        "0x083d1ff23e698d5926b35f552f9bed418b29de1b",
        "0x1dd97e3349a8c687379c4ceb64e93084f74ab601",
        "0x326bb4f6527b4f5a2a4bf357aba2d8db55a232f8",
        "0xeaf194fb9301eb493394addc62111642e663c7d8",
        "0xda3e34ab9d5e43bf1aff3641576215f63dac24e0",
        "0x9066d3cf60d9f7b705026417e8e533b424bc3d48",
        "0xd1ed468a9da3ed02f0c87928350a28666bdbdbcf",
        "0x2c41d75d8323424f89d5a795527ccba52f25e2b8",
        "0x25a697b94b94d6644370f413afca1fe682327537",
        "0x6792ad36c9c47a430451059ff7377eea106480cc",
        "0xf57f34b2dc75018a116b3715a3b67ef50136e1b7",
        "0xdb3cbd99ead05ecf67850b1dfdd2e7c02620b68a",
        "0x78280d5da6c4e064125d78823113718d18e2fbaf",
        "0x19c59cf6e49912e644f2da222ae2645bc78264c7",
        "0xe29d989a5e24fef1d27caa0259de8bc8c852dc21",
    ),
}

# Exchange wallets the product refuses to turn into agents.
BOT_WALLETS: dict[str, tuple[str, ...]] = {
    "ethereum": ("0xBE0eB53F46cd790Cd13851d5EFf43D12404d33E8",),  # Binance cold wallet
}


@dataclass(frozen=True)
class Wallet:
    chain: str
    address: str


def catalogue(chains: Iterable[str] | None = None) -> list[Wallet]:
    """All catalogued wallets, in chain order."""
    selected = tuple(chains) if chains else CHAINS
    unknown = set(selected) - WALLETS.keys()
    if unknown:
        raise ValueError(f"Unknown chain(s): {', '.join(sorted(unknown))}")
    return [Wallet(chain, address) for chain in selected for address in WALLETS[chain]]


def chain_of(address: str) -> str | None:
    needle = address.lower()
    for chain, addresses in {**WALLETS, **BOT_WALLETS}.items():
        if any(a.lower() == needle for a in addresses):
            return chain
    return None


def reserve_wallet(
    ledger: ResourceLedger,
    chains: Iterable[str] | None = None,
    choose: Chooser = random.choice,
) -> Wallet:
    """Reserve a random unused wallet; raises LedgerError when the pool is exhausted."""
    wallets = catalogue(chains)
    address = ledger.reserve([w.address for w in wallets], choose=choose)
    return next(w for w in wallets if w.address == address)


def unused_wallet_count(ledger: ResourceLedger, chains: Iterable[str] | None = None) -> int:
    return ledger.unused_count(w.address for w in catalogue(chains))


def used_wallet(ledger: ResourceLedger, chains: Iterable[str] | None = None) -> Wallet | None:
    """First catalogued wallet that already has an agent, in catalogue order."""
    used = ledger.used()
    return next((w for w in catalogue(chains) if w.address.lower() in used), None)
