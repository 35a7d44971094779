import argparse
import asyncio
import logging
import sys

from olivia.config import settings
from olivia.context import ClientContext
from olivia.errors import OliviaError
from olivia.market.instructions import CircuitName
from olivia.market.setup import ensure_comp_defs, ensure_mxe, load_cluster_address
from olivia.solana.keypair import load_keypair
from olivia.solana.rpc import SolanaRPCClient
from olivia.solana.transaction import TransactionSender

logger = logging.getLogger(__name__)


async def run(args: argparse.Namespace) -> bool:
    payer = load_keypair(args.keypair)
    context = ClientContext.from_settings(
        settings,
        cluster=load_cluster_address(
            settings.cluster_artifact_path, settings.cluster_offset
        ),
    )

    logger.info(f"Program ID: {context.program_id}")
    logger.info(f"Arcium Program ID: {context.arcium_program_id}")

    async with SolanaRPCClient(
        args.rpc_url,
        timeout=settings.rpc_timeout,
        max_retries=settings.rpc_max_retries,
        backoff_seconds=settings.rpc_backoff_seconds,
        commitment=context.commitment,
    ) as rpc:
        sender = TransactionSender(rpc, commitment=context.commitment)

        if not args.skip_mxe:
            result = await ensure_mxe(
                rpc,
                sender,
                context.program_id,
                payer,
                cluster_offset=settings.cluster_offset,
                cluster=context.cluster,
                arcium_program_id=context.arcium_program_id,
            )
            logger.info(f"MXE: {result}")

        results = await ensure_comp_defs(
            rpc,
            sender,
            context.program_id,
            payer,
            circuits=[CircuitName(name) for name in args.circuits],
            arcium_program_id=context.arcium_program_id,
        )

    ok = True
    for circuit, result in results.items():
        if isinstance(result, BaseException):
            ok = False
            logger.error(f"  {circuit.value}: FAILED ({result})")
        else:
            logger.info(f"  {circuit.value}: {result}")
    return ok


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Initialize the MXE account and computation definitions",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--keypair",
        type=str,
        default=str(settings.keypair_path),
        help="Solana CLI keypair file paying for initialization",
    )
    parser.add_argument(
        "--rpc-url", type=str, default=settings.rpc_url, dest="rpc_url"
    )
    parser.add_argument(
        "--circuits",
        nargs="+",
        default=[c.value for c in CircuitName],
        choices=[c.value for c in CircuitName],
        help="Computation definitions to initialize",
    )
    parser.add_argument(
        "--skip-mxe",
        action="store_true",
        dest="skip_mxe",
        help="Only initialize computation definitions",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        dest="log_level",
        help="Logging level",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger.info("=" * 70)
    logger.info("Arcium infrastructure initialization")
    logger.info("=" * 70)

    try:
        ok = asyncio.run(run(args))
    except (OliviaError, OSError, ValueError) as e:
        logger.error(f"Initialization failed: {e}")
        sys.exit(1)

    if not ok:
        sys.exit(1)
    logger.info("Done!")


if __name__ == "__main__":
    main()
