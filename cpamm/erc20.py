"""
Fungible token contract used as the pair's external asset collaborator.

Callers identify themselves explicitly: transfer(sender, ...) moves the
sender's own balance, transfer_from(spender, owner, ...) spends an allowance.
Failures raise, so they abort the whole surrounding call.
"""
from cpamm.chain import Chain, Contract
from cpamm.crypto import ZERO_ADDRESS, label_address
from cpamm.errors import InsufficientAllowance, InsufficientBalance, TransferFailed
from cpamm.events import Approval, Transfer
from cpamm.safe_math import UINT256_MAX, add, check_uint


class Token(Contract):
    def __init__(self, chain: Chain, symbol: str, decimals: int = 18,
                 address: bytes = None, name: str = None):
        super().__init__(chain, address or label_address(f"token:{symbol}"))
        self.name = name or symbol
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.balances: dict[bytes, int] = {}
        self.allowances: dict[bytes, dict[bytes, int]] = {}

    @classmethod
    def deploy(cls, chain: Chain, symbol: str, **kwargs) -> 'Token':
        token = cls(chain, symbol, **kwargs)
        chain.deploy(token)
        return token

    def to_dict(self) -> dict:
        return {
            'total_supply': self.total_supply,
            'balances': dict(self.balances),
            'allowances': {owner: dict(spenders) for owner, spenders in self.allowances.items()},
        }

    def load_dict(self, data: dict):
        self.total_supply = data['total_supply']
        self.balances = dict(data['balances'])
        self.allowances = {owner: dict(spenders) for owner, spenders in data['allowances'].items()}

    # ==========================================================================
    # VIEWS
    # ==========================================================================

    def balance_of(self, holder: bytes) -> int:
        return self.balances.get(holder, 0)

    def allowance(self, owner: bytes, spender: bytes) -> int:
        return self.allowances.get(owner, {}).get(spender, 0)

    # ==========================================================================
    # MUTATIONS
    # ==========================================================================

    def mint(self, to: bytes, amount: int):
        """Issue new tokens. Used to fund accounts in tests and demos."""
        self.total_supply = add(self.total_supply, amount)
        self.balances[to] = self.balance_of(to) + amount
        self.emit(Transfer(self.address, ZERO_ADDRESS, to, amount))

    def transfer(self, sender: bytes, to: bytes, amount: int) -> bool:
        self._transfer(sender, to, amount)
        return True

    def approve(self, owner: bytes, spender: bytes, amount: int) -> bool:
        check_uint(amount)
        self.allowances.setdefault(owner, {})[spender] = amount
        self.emit(Approval(self.address, owner, spender, amount))
        return True

    def transfer_from(self, spender: bytes, owner: bytes, to: bytes, amount: int) -> bool:
        allowed = self.allowance(owner, spender)
        if allowed != UINT256_MAX and allowed < amount:
            raise InsufficientAllowance(
                f"{self.symbol}: allowance {allowed} < {amount} for spender {spender.hex()}"
            )
        self._transfer(owner, to, amount)
        if allowed != UINT256_MAX:
            self.allowances.setdefault(owner, {})[spender] = allowed - amount
        return True

    def _transfer(self, sender: bytes, to: bytes, amount: int):
        if amount < 0:
            raise TransferFailed(f"{self.symbol}: negative transfer amount {amount}")
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalance(
                f"{self.symbol}: balance {balance} < {amount} for {sender.hex()}"
            )
        self.balances[sender] = balance - amount
        self.balances[to] = self.balance_of(to) + amount
        self.emit(Transfer(self.address, sender, to, amount))

    def __repr__(self) -> str:
        return f"Token({self.symbol}, address={self.address.hex()}, supply={self.total_supply})"
