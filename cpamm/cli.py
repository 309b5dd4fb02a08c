"""
Command line tool for pricing helpers and a local pair demo.
"""
import argparse
import logging
import sys
from pathlib import Path

from cpamm import library
from cpamm.chain import Chain
from cpamm.config import Config
from cpamm.crypto import label_address
from cpamm.erc20 import Token
from cpamm.errors import ValidationError
from cpamm.factory import PairFactory
from cpamm.monitoring import Monitor
from cpamm.router import Router
from cpamm.safe_math import UINT256_MAX

logger = logging.getLogger(__name__)


def load_config(path) -> Config:
    if path and Path(path).exists():
        return Config.from_file(path)
    return Config.default()


def setup_logging(config: Config):
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format=config.logging.format
    )


def run_demo(config: Config, deposit: int, swap_in: int):
    """Deploy two tokens, a factory and a router, then deposit, swap and withdraw."""
    chain = Chain(chain_id=config.chain.chain_id, timestamp=config.chain.start_timestamp)
    monitor = Monitor(chain, host=config.monitoring.host, port=config.monitoring.port,
                      serve=config.monitoring.enabled)

    factory = PairFactory.deploy(chain, config.factory.fee_to_setter_address())
    if config.factory.fee_to:
        factory.set_fee_to(factory.fee_to_setter, config.factory.fee_to_address())
    router = Router.deploy(chain, factory.address)

    alice = label_address("alice")
    token_a = Token.deploy(chain, "TKA")
    token_b = Token.deploy(chain, "TKB")
    for token in (token_a, token_b):
        token.mint(alice, deposit + swap_in)
        token.approve(alice, router.address, UINT256_MAX)

    deadline = chain.timestamp + 600
    amount_a, amount_b, liquidity = router.add_liquidity(
        alice, token_a.address, token_b.address, deposit, deposit, 0, 0, alice, deadline
    )
    print(f"Deposited ({amount_a}, {amount_b}) for {liquidity} shares")

    chain.advance(60)
    amount_out = router.swap_exact_input(
        alice, swap_in, token_a.address, 0, token_b.address, alice, chain.timestamp + 600
    )
    print(f"Swapped {swap_in} TKA for {amount_out} TKB")

    pair = chain.contract(factory.get_pair(token_a.address, token_b.address))
    reserve0, reserve1, timestamp = pair.get_reserves()
    print(f"Pair {pair.address.hex()}")
    print(f"  - Reserves: ({reserve0}, {reserve1}) at {timestamp}")
    print(f"  - k: {reserve0 * reserve1}")
    print(f"  - Price0 cumulative: {pair.price0_cumulative_last}")

    pair.shares.approve(alice, router.address, liquidity)
    out_a, out_b = router.remove_liquidity(
        alice, token_a.address, token_b.address, liquidity, 0, 0, alice, chain.timestamp + 600
    )
    print(f"Withdrew ({out_a}, {out_b}) for {liquidity} shares")

    monitor.update()
    monitor.stop_server()
    return chain


def main(argv=None):
    parser = argparse.ArgumentParser(description="Constant-product pair tools")
    parser.add_argument('--config', type=str, help='Path to config file')
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_quote = subparsers.add_parser("quote", help="Equivalent amount at the reserve ratio (no fee)")
    parser_quote.add_argument("amount", type=int)
    parser_quote.add_argument("reserve_a", type=int)
    parser_quote.add_argument("reserve_b", type=int)

    parser_out = subparsers.add_parser("amount-out", help="Output for an exact input")
    parser_out.add_argument("amount_in", type=int)
    parser_out.add_argument("reserve_in", type=int)
    parser_out.add_argument("reserve_out", type=int)

    parser_in = subparsers.add_parser("amount-in", help="Input required for an exact output")
    parser_in.add_argument("amount_out", type=int)
    parser_in.add_argument("reserve_in", type=int)
    parser_in.add_argument("reserve_out", type=int)

    parser_init = subparsers.add_parser("init-config", help="Write a default config file")
    parser_init.add_argument("--output", type=str, default="cpamm.json")

    parser_demo = subparsers.add_parser("demo", help="Run a deposit, swap and withdrawal locally")
    parser_demo.add_argument("--deposit", type=int, default=10000)
    parser_demo.add_argument("--swap", type=int, default=1000)

    args = parser.parse_args(argv)
    config = load_config(args.config)
    setup_logging(config)

    try:
        if args.command == "quote":
            print(library.quote(args.amount, args.reserve_a, args.reserve_b))
        elif args.command == "amount-out":
            print(library.get_amount_out(args.amount_in, args.reserve_in, args.reserve_out))
        elif args.command == "amount-in":
            print(library.get_amount_in(args.amount_out, args.reserve_in, args.reserve_out))
        elif args.command == "init-config":
            config.to_file(args.output)
            print(f"Generated default configuration at: {args.output}")
        elif args.command == "demo":
            run_demo(config, args.deposit, args.swap)
    except ValidationError as e:
        print(f"Error: {type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
