import argparse
import asyncio
import logging
import sys
from urllib.parse import quote

from pydantic import ValidationError

from olivia.config import settings
from olivia.context import ClientContext
from olivia.errors import OliviaError
from olivia.market.idl import ProgramInterface, load_idl
from olivia.market.setup import load_cluster_address
from olivia.market.submission import BetRequest, BetStatus, BetSubmitter, SubmissionStatus
from olivia.solana.keypair import load_keypair
from olivia.solana.rpc import SolanaRPCClient

logger = logging.getLogger(__name__)


def explorer_url(signature: str, rpc_url: str) -> str:
    return (
        f"https://explorer.solana.com/tx/{signature}"
        f"?cluster=custom&customUrl={quote(rpc_url, safe='')}"
    )


def _print_status(status: BetStatus) -> None:
    print(f"[{status.status.value:>10}] {status.message}")


async def run(args: argparse.Namespace, request: BetRequest) -> BetStatus:
    interface = None
    if args.idl:
        try:
            interface = ProgramInterface.from_idl(await load_idl(args.idl))
        except OliviaError as e:
            logger.error(f"Could not load program interface: {e}")

    signer = None
    try:
        signer = load_keypair(args.keypair)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load keypair {args.keypair}: {e}")

    cluster = load_cluster_address(
        settings.cluster_artifact_path,
        settings.cluster_offset,
    )
    context = ClientContext.from_settings(settings, cluster=cluster)

    async with SolanaRPCClient(
        args.rpc_url,
        timeout=settings.rpc_timeout,
        max_retries=settings.rpc_max_retries,
        backoff_seconds=settings.rpc_backoff_seconds,
        commitment=context.commitment,
    ) as rpc:
        submitter = BetSubmitter(
            context,
            rpc=rpc,
            signer=signer,
            interface=interface,
            auto_reset=False,
        )
        submitter.channel.subscribe(_print_status)
        return await submitter.place_bet(request)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Place a confidential bet on a prediction market",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--market-id", type=int, required=True, dest="market_id")
    parser.add_argument(
        "--prediction",
        type=str,
        required=True,
        choices=["yes", "no"],
        help="Predicted outcome (encrypted before it leaves this machine)",
    )
    parser.add_argument("--amount", type=str, required=True, help="Stake in SOL")
    parser.add_argument(
        "--keypair",
        type=str,
        default=str(settings.keypair_path),
        help="Solana CLI keypair file of the bettor",
    )
    parser.add_argument(
        "--rpc-url", type=str, default=settings.rpc_url, dest="rpc_url"
    )
    parser.add_argument(
        "--idl",
        type=str,
        default=settings.idl_path,
        help="Program IDL path or URL",
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

    try:
        request = BetRequest(
            market_id=args.market_id,
            prediction=args.prediction == "yes",
            amount=args.amount,
        )
    except ValidationError as e:
        parser.error(f"invalid bet: {e}")

    try:
        status = asyncio.run(run(args, request))
    except KeyboardInterrupt:
        logger.info("Interrupted; a transaction already sent is not undone")
        sys.exit(130)

    if status.signature:
        print(f"Transaction: {explorer_url(status.signature, args.rpc_url)}")
    if status.finalization_signature:
        print(f"Finalization: {explorer_url(status.finalization_signature, args.rpc_url)}")
    if status.status is not SubmissionStatus.SUCCESS:
        sys.exit(1)


if __name__ == "__main__":
    main()
