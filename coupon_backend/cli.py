import argparse
import asyncio
import json
from pathlib import Path

from coupon_backend.db.base import Base
from coupon_backend.db.session import SessionLocal, engine
from coupon_backend.services import coupons as coupons_service

MAX_SEED_COUNT = 100_000


def _positive_count(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError("count must be an integer") from None
    if value < 1 or value > MAX_SEED_COUNT:
        raise argparse.ArgumentTypeError(f"count must be between 1 and {MAX_SEED_COUNT}")
    return value


def _load_codes(path: Path) -> list[str]:
    if not path.is_file():
        raise SystemExit(f"Input file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(payload, list) or not all(isinstance(item, str) for item in payload):
        raise SystemExit("Expected a JSON list of coupon code strings")
    return payload


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created")


async def seed_coupons(count: int, prefix: str) -> int:
    codes = {coupons_service.generate_coupon_code(prefix) for _ in range(count)}
    # Random collisions are rare; top up until we have the requested number.
    while len(codes) < count:
        codes.add(coupons_service.generate_coupon_code(prefix))
    async with SessionLocal() as session:
        created = await coupons_service.provision_coupons(session, sorted(codes))
    print(f"Seeded {len(created)} coupons")
    return len(created)


async def import_coupons(codes: list[str]) -> int:
    async with SessionLocal() as session:
        created = await coupons_service.provision_coupons(session, codes)
    print(f"Imported {len(created)} coupons ({len(codes) - len(created)} skipped)")
    return len(created)


async def show_stats() -> dict[str, int]:
    async with SessionLocal() as session:
        stats = await coupons_service.coupon_stats(session)
    print(json.dumps(stats))
    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Coupon provisioning utilities")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("create-tables", help="Create database tables (local/dev)")
    seed = subparsers.add_parser("seed-coupons", help="Insert randomly generated coupons")
    seed.add_argument("--count", type=_positive_count, required=True)
    seed.add_argument("--prefix", default="CPN")
    import_cmd = subparsers.add_parser("import-coupons", help="Insert coupon codes from a JSON list")
    import_cmd.add_argument("input", type=Path)
    subparsers.add_parser("stats", help="Show claimed/unclaimed counts")
    return parser


async def _run_and_dispose(coro) -> None:
    try:
        await coro
    finally:
        await engine.dispose()


def _run_cli_command(args: argparse.Namespace) -> bool:
    if args.command == "create-tables":
        asyncio.run(_run_and_dispose(create_tables()))
        return True

    if args.command == "seed-coupons":
        asyncio.run(_run_and_dispose(seed_coupons(args.count, args.prefix)))
        return True

    if args.command == "import-coupons":
        codes = _load_codes(args.input)
        asyncio.run(_run_and_dispose(import_coupons(codes)))
        return True

    if args.command == "stats":
        asyncio.run(_run_and_dispose(show_stats()))
        return True

    return False


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not _run_cli_command(args):
        parser.print_help()


if __name__ == "__main__":
    main()
