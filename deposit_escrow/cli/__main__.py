# deposit_escrow/cli/__main__.py
from __future__ import annotations

import argparse
from decimal import Decimal

from ..db import init_db
from ..logging_config import configure_logging
from .seed_demo import seed_demo


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="deposit_escrow")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init-db", help="create escrow tables on the configured database")

    s = sub.add_parser("seed-demo", help="insert a demo deposit, inspection and deduction")
    s.add_argument("--tenant-id", type=int, default=1001)
    s.add_argument("--property-id", type=int, default=501)
    s.add_argument("--owner-id", type=int, default=1)
    s.add_argument("--monthly-rent", type=Decimal, default=Decimal("10000.00"))
    s.add_argument("--deposit-amount", type=Decimal, default=Decimal("15000.00"))
    s.add_argument("--no-inspection", action="store_true")

    args = p.parse_args(argv)
    configure_logging()

    if args.cmd == "init-db":
        init_db()
        print({"ok": True, "cmd": "init-db"})
        return

    init_db()
    out = seed_demo(
        tenant_id=args.tenant_id,
        property_id=args.property_id,
        owner_id=args.owner_id,
        monthly_rent=args.monthly_rent,
        deposit_amount=args.deposit_amount,
        with_inspection=(not args.no_inspection),
    )
    print(
        {
            "ok": True,
            "created": out.created,
            "deposit_id": out.deposit_id,
            "inspection_id": out.inspection_id,
            "deduction_id": out.deduction_id,
        }
    )


if __name__ == "__main__":
    main()
